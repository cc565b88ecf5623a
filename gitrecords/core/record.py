"""
Record model

A record is identified by (type, id) and holds two mappings:
- attributes: JSON-serializable values, stored in attributes.json
- blobs: raw bytes, one file per blob

Example:
    class Lemur(Record):
        validators = [presence_of("name")]

        name = attribute()
        colour = attribute(default="grey")
        teeth = attribute(default=lambda: {"molars": 4, "canines": 2})
        avatar = blob()

    lemur = Lemur.create(id="crowned", attributes={"name": "Eulemur coronatus"})
    Lemur.find("crowned").colour  # "grey"
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence

from gitrecords.core.errors import FrozenRecordError
from gitrecords.core.schema.registry import ATTRIBUTE, BLOB, NOTHING, EntitySchema, default_registry
from gitrecords.core.storage.codec import normalize_blob, normalize_key
from gitrecords.core.validation import ValidationErrors, ValidationResult, run_validators

logger = logging.getLogger(__name__)


class AttributeMap(MutableMapping):
    """
    Ordered mapping with normalized string keys

    Lookups by "one", an Enum member whose value is "one", or any key whose
    str() is "one" are equivalent. A frozen map rejects mutation.
    """

    def __init__(
        self,
        data: Optional[Mapping[Any, Any]] = None,
        value_filter: Optional[Callable[[Any], Any]] = None,
        owner: Optional["Record"] = None,
    ):
        self._data: Dict[str, Any] = {}
        self._value_filter = value_filter
        self._owner = owner
        if data:
            for key, value in data.items():
                self[key] = value

    def _check_frozen(self) -> None:
        if self._owner is not None and self._owner.frozen:
            raise FrozenRecordError(type(self._owner).__name__, self._owner.id)

    def __getitem__(self, key: Any) -> Any:
        return self._data[normalize_key(key)]

    def __setitem__(self, key: Any, value: Any) -> None:
        self._check_frozen()
        if self._value_filter is not None:
            value = self._value_filter(value)
        self._data[normalize_key(key)] = value

    def __delitem__(self, key: Any) -> None:
        self._check_frozen()
        del self._data[normalize_key(key)]

    def __contains__(self, key: Any) -> bool:
        return normalize_key(key) in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, AttributeMap):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == {normalize_key(k): v for k, v in other.items()}
        return NotImplemented

    def __repr__(self) -> str:
        return f"AttributeMap({self._data!r})"

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)


class Field:
    """Class-level declaration of an attribute or blob with accessor"""

    def __init__(self, kind: str, default: Any = NOTHING, name: Optional[str] = None):
        self.kind = kind
        self.default = default
        self.name = name

    def __set_name__(self, owner: type, name: str) -> None:
        if self.name is None:
            self.name = name
        default_registry.declare(owner, self.name, self.kind, self.default)

    def _target(self, instance: "Record") -> AttributeMap:
        return instance.attributes if self.kind == ATTRIBUTE else instance.blobs

    def __get__(self, instance: Optional["Record"], owner: type) -> Any:
        if instance is None:
            return self
        return self._target(instance).get(self.name)

    def __set__(self, instance: "Record", value: Any) -> None:
        self._target(instance)[self.name] = value

    def __delete__(self, instance: "Record") -> None:
        self._target(instance).pop(self.name, None)


def attribute(default: Any = NOTHING, name: Optional[str] = None) -> Any:
    """Declare an attribute (optionally with a fixed or generated default)"""
    return Field(ATTRIBUTE, default, name)


def blob(default: Any = NOTHING, name: Optional[str] = None) -> Any:
    """Declare a blob"""
    return Field(BLOB, default, name)


def _service():
    from gitrecords.core.service import RecordService

    return RecordService()


class Record:
    """
    Base class of persistable records

    Class attributes:
        validators: callables run by validate()
        __subdir__: storage subdirectory override (default: pluralized snake_case name)
    """

    validators: Sequence[Callable[["Record", ValidationErrors], None]] = ()

    def __init__(
        self,
        id: Optional[str] = None,
        attributes: Optional[Mapping[Any, Any]] = None,
        blobs: Optional[Mapping[Any, Any]] = None,
        schema: Optional[EntitySchema] = None,
    ):
        self._frozen = False
        self._persisted = False
        self._id = id
        self.schema = schema
        self.errors = ValidationErrors()
        self._attributes = AttributeMap(attributes, owner=self)
        self._blobs = AttributeMap(blobs, value_filter=normalize_blob, owner=self)
        default_registry.materialize(type(self), self, self.schema)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._id!r})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Record) or type(other) is not type(self):
            return NotImplemented
        return (
            self._id == other._id
            and self._attributes == other._attributes
            and self._blobs == other._blobs
        )

    __hash__ = object.__hash__

    def _check_frozen(self) -> None:
        if self._frozen:
            raise FrozenRecordError(type(self).__name__, self._id)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def id(self) -> Optional[str]:
        return self._id

    @id.setter
    def id(self, value: Optional[str]) -> None:
        self._check_frozen()
        self._id = value

    @property
    def identity(self) -> Optional[str]:
        return self._id

    @property
    def attributes(self) -> AttributeMap:
        return self._attributes

    @attributes.setter
    def attributes(self, value: Optional[Mapping[Any, Any]]) -> None:
        self._check_frozen()
        self._attributes = AttributeMap(value, owner=self)

    @property
    def blobs(self) -> AttributeMap:
        return self._blobs

    @blobs.setter
    def blobs(self, value: Optional[Mapping[Any, Any]]) -> None:
        self._check_frozen()
        self._blobs = AttributeMap(value, value_filter=normalize_blob, owner=self)

    @property
    def persisted(self) -> bool:
        return self._persisted and not self._frozen

    @property
    def new_record(self) -> bool:
        return not self._persisted

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def mark_persisted(self) -> None:
        self._persisted = True

    def materialize(self) -> "Record":
        """Fill declared defaults that are still absent"""
        return default_registry.materialize(type(self), self, self.schema)

    def validate(self) -> ValidationResult:
        """Run the type's validators"""
        return run_validators(self, self.validators)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self._id,
            "attributes": self._attributes.to_dict(),
            "blobs": self._blobs.to_dict(),
        }

    # ------------------------------------------------------------------
    # Persistence (delegates to RecordService on the current context)
    # ------------------------------------------------------------------

    def save(self, message: Optional[str] = None):
        return _service().save(self, message=message)

    def save_or_fail(self, message: Optional[str] = None) -> str:
        return _service().save_or_fail(self, message=message)

    def delete(self) -> Optional[str]:
        return _service().delete_record(self)

    def reload(self) -> "Record":
        return _service().reload(self)

    def history(self, count: Optional[int] = None) -> List[dict]:
        return _service().history(type(self), self._id, count=count)

    @classmethod
    def find(cls, record_id: str, at: Optional[str] = None):
        return _service().find(cls, record_id, at=at)

    @classmethod
    def find_all(cls, at: Optional[str] = None) -> list:
        return _service().find_all(cls, at=at)

    @classmethod
    def exists(cls, record_id: str, at: Optional[str] = None) -> bool:
        return _service().exists(cls, record_id, at=at)

    @classmethod
    def create(cls, fields: Any = None, **kwargs: Any):
        return _service().create(cls, fields, **kwargs)

    @classmethod
    def create_or_fail(cls, fields: Any = None, **kwargs: Any):
        return _service().create_or_fail(cls, fields, **kwargs)

    @classmethod
    def delete_id(cls, record_id: str) -> Optional[str]:
        return _service().delete(cls, record_id)

    @classmethod
    def delete_all(cls) -> Optional[str]:
        return _service().delete_all(cls)
