from __future__ import annotations

from gitrecords.core.record import Record, attribute
from gitrecords.core.validation import ValidationErrors, as_dict, format_of, presence_of, run_validators


class Specimen(Record):
    validators = [
        presence_of("id", "name"),
        format_of("code", r"[A-Z]{3}-\d+", message="must look like ABC-123"),
    ]

    name = attribute()
    code = attribute()


def test_validation_errors_default_to_empty_list() -> None:
    errors = ValidationErrors()
    assert errors["anything"] == []
    assert "anything" not in errors

    errors.add("name", "can't be blank")
    errors.add("name", "is too short")
    assert errors.full_messages() == ["name can't be blank", "name is too short"]
    assert as_dict(errors) == {"name": ["can't be blank", "is too short"]}


def test_presence_of_treats_whitespace_and_empty_containers_as_blank() -> None:
    check = presence_of("tags")
    for value in (None, "", "   ", b"", [], {}):
        errors = ValidationErrors()
        check(Record(attributes={"tags": value}), errors)
        assert errors["tags"] == ["can't be blank"], value

    errors = ValidationErrors()
    check(Record(attributes={"tags": 0}), errors)
    assert not errors


def test_presence_of_reads_blobs() -> None:
    errors = ValidationErrors()
    presence_of("avatar")(Record(blobs={"avatar": b"png"}), errors)
    assert not errors


def test_record_validate_runs_all_validators() -> None:
    result = Specimen(attributes={"code": "nope"}).validate()
    assert not result
    assert result.errors["id"] == ["can't be blank"]
    assert result.errors["name"] == ["can't be blank"]
    assert result.errors["code"] == ["must look like ABC-123"]

    assert Specimen(id="s1", attributes={"name": "Indri", "code": "IND-7"}).validate()


def test_format_of_skips_absent_values() -> None:
    result = run_validators(Specimen(id="s1", attributes={"name": "Indri"}), Specimen.validators)
    assert result.ok
    assert result.errors == {}
