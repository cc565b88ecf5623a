"""
Entity Schema Registry

Per record type, maps field names to their kind (attribute or blob) and
default. Declarations live outside record instances; they are applied to a
record when it is constructed or loaded, filling absent fields only.

Schemas are additive: stored fields that were never declared pass through
untouched.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

logger = logging.getLogger(__name__)

ATTRIBUTE = "attribute"
BLOB = "blob"
FIELD_KINDS = (ATTRIBUTE, BLOB)


class _Nothing:
    """Marker for 'no default declared'"""

    def __repr__(self) -> str:
        return "NOTHING"


NOTHING = _Nothing()


@dataclass(frozen=True)
class FieldSpec:
    """Declared field"""
    name: str
    kind: str
    default: Any = NOTHING

    @property
    def has_default(self) -> bool:
        return self.default is not NOTHING

    def make_default(self) -> Any:
        """
        Fresh default value

        Callables are invoked each time; other values are deep-copied so
        mutable defaults are never shared between records.
        """
        if callable(self.default):
            return self.default()
        return copy.deepcopy(self.default)


class EntitySchema:
    """Ordered set of field declarations"""

    def __init__(self, fields: Optional[Dict[str, FieldSpec]] = None):
        self._fields: Dict[str, FieldSpec] = dict(fields or {})

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, name: str) -> bool:
        return name in self._fields

    def get(self, name: str) -> Optional[FieldSpec]:
        return self._fields.get(name)

    def declare(self, name: str, kind: str = ATTRIBUTE, default: Any = NOTHING) -> FieldSpec:
        if kind not in FIELD_KINDS:
            raise ValueError(f"Unknown field kind: {kind}. Allowed: {FIELD_KINDS}")
        if not name:
            raise ValueError("Field name is empty")
        spec = FieldSpec(name=name, kind=kind, default=default)
        self._fields[name] = spec
        return spec

    def merged(self, other: Optional["EntitySchema"]) -> "EntitySchema":
        """New schema with other's declarations taking precedence"""
        fields = dict(self._fields)
        if other is not None:
            fields.update(other._fields)
        return EntitySchema(fields)


class SchemaRegistry:
    """Thread-safe registry of per-type schemas"""

    def __init__(self):
        self._schemas: Dict[type, EntitySchema] = {}
        self._lock = threading.Lock()

    def declare(self, record_type: type, name: str, kind: str = ATTRIBUTE, default: Any = NOTHING) -> FieldSpec:
        """
        Declare a field on a record type

        Args:
            record_type: Record class
            name: Field name (attribute key or blob name)
            kind: "attribute" or "blob"
            default: Fixed value or zero-argument callable; NOTHING for no default
        """
        with self._lock:
            schema = self._schemas.setdefault(record_type, EntitySchema())
            spec = schema.declare(name, kind, default)
        logger.debug(f"Declared {kind} {record_type.__name__}.{name}")
        return spec

    def schema_for(self, record_type: type) -> EntitySchema:
        """Schema of record_type including declarations inherited along the MRO"""
        merged = EntitySchema()
        with self._lock:
            for klass in reversed(record_type.__mro__):
                merged = merged.merged(self._schemas.get(klass))
        return merged

    def materialize(self, record_type: type, record: Any, extra: Optional[EntitySchema] = None) -> Any:
        """
        Fill every declared but absent field of record with its default

        Args:
            record_type: Type whose declarations apply
            record: Object with `attributes` and `blobs` mappings
            extra: Per-instance schema layered over the type's schema

        Returns:
            the same record
        """
        schema = self.schema_for(record_type).merged(extra)
        for spec in schema:
            if not spec.has_default:
                continue
            target = record.attributes if spec.kind == ATTRIBUTE else record.blobs
            if spec.name in target:
                continue
            value = spec.make_default()
            if spec.kind == BLOB and value is None:
                continue
            target[spec.name] = value
        return record

    def clear(self, record_type: Optional[type] = None) -> None:
        with self._lock:
            if record_type is None:
                self._schemas.clear()
            else:
                self._schemas.pop(record_type, None)


default_registry = SchemaRegistry()
