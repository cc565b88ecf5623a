"""Storage subdirectory naming for record types.

``TestEntity`` is stored under ``test_entities/``. A record class can pin its
directory with a ``__subdir__`` class attribute.
"""

import re

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")

_IRREGULAR = {
    "person": "people",
    "child": "children",
    "datum": "data",
}


def snake_case(name: str) -> str:
    """Convert CamelCase to snake_case"""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def pluralize(word: str) -> str:
    """English plural of the last word of a snake_case name"""
    head, sep, last = word.rpartition("_")
    if last in _IRREGULAR:
        plural = _IRREGULAR[last]
    elif re.search(r"[^aeiou]y$", last):
        plural = last[:-1] + "ies"
    elif re.search(r"(s|x|z|ch|sh)$", last):
        plural = last + "es"
    else:
        plural = last + "s"
    return head + sep + plural


def type_subdirectory(record_type) -> str:
    """Subdirectory holding every record of record_type"""
    explicit = getattr(record_type, "__subdir__", None)
    if explicit:
        return explicit
    return pluralize(snake_case(record_type.__name__))
