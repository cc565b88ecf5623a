"""gitrecords core: records, schemas, storage and the repository context."""
