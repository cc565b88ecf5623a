"""
Record validation

A validator is a callable ``validator(record, errors)`` that adds messages to
a ValidationErrors mapping. Record types list validators in their
``validators`` class attribute or override ``Record.validate()``.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Pattern, Union


class ValidationErrors(dict):
    """Field name -> messages; fields without errors read as []"""

    def __missing__(self, key: str) -> List[str]:
        return []

    def add(self, field_name: str, message: str) -> None:
        self.setdefault(field_name, []).append(message)

    def full_messages(self) -> List[str]:
        return [f"{name} {message}" for name, messages in self.items() for message in messages]


@dataclass
class ValidationResult:
    """Outcome of Record.validate(); truthy when the record is valid"""
    ok: bool
    errors: ValidationErrors = field(default_factory=ValidationErrors)

    def __bool__(self) -> bool:
        return self.ok


def _field_value(record: Any, name: str) -> Any:
    if name == "id":
        return record.id
    if name in record.attributes:
        return record.attributes[name]
    return record.blobs.get(name)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes)):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return not value
    return False


def presence_of(*field_names: str):
    """Validator: each field is set and not blank"""

    def validate(record: Any, errors: ValidationErrors) -> None:
        for name in field_names:
            if _is_blank(_field_value(record, name)):
                errors.add(name, "can't be blank")

    return validate


def format_of(field_name: str, pattern: Union[str, Pattern[str]], message: str = "is invalid"):
    """Validator: a present string field fully matches pattern"""
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern

    def validate(record: Any, errors: ValidationErrors) -> None:
        value = _field_value(record, field_name)
        if value is None:
            return
        if not isinstance(value, str) or not regex.fullmatch(value):
            errors.add(field_name, message)

    return validate


def run_validators(record: Any, validators) -> ValidationResult:
    errors = ValidationErrors()
    for validator in validators:
        validator(record, errors)
    return ValidationResult(ok=not errors, errors=errors)


def as_dict(errors: ValidationErrors) -> Dict[str, List[str]]:
    return {name: list(messages) for name, messages in errors.items()}
