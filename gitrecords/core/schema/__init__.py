"""Entity schema declarations."""

from .registry import (
    ATTRIBUTE,
    BLOB,
    NOTHING,
    EntitySchema,
    FieldSpec,
    SchemaRegistry,
    default_registry,
)

__all__ = [
    "ATTRIBUTE",
    "BLOB",
    "NOTHING",
    "EntitySchema",
    "FieldSpec",
    "SchemaRegistry",
    "default_registry",
]
