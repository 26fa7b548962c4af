"""
Submission Value Model

Checks user-entered values against a form's fields and encodes them for
transport. Everything here is pure: nothing mutates the form or the
submission it is given.
"""
import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, Mapping, Optional

from formdesk.forms import options as options_codec
from formdesk.forms.exceptions import FormValidationError
from formdesk.forms.field_types import FieldType, coerce_selection, lookup


@dataclass
class ValidationResult:
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            raise FormValidationError(self.errors, "Submission is invalid")


def clean_label(label: Optional[str]) -> str:
    return re.sub(r"^\s*\*\s*", "", label or "").strip()


def required_message(label: Optional[str]) -> str:
    return f"Please fill in the {clean_label(label).lower()}"


def _attr(obj: Any, key: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key, default)
    return getattr(obj, key, default)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def _file_count(files: Optional[Mapping[str, Any]], field_id: str) -> int:
    if not files:
        return 0
    attached = files.get(field_id)
    if attached is None:
        return 0
    if isinstance(attached, int):
        return attached
    return len(attached)


def submitter_errors(user_name: Optional[str], user_email: Optional[str] = None) -> Dict[str, str]:
    """Check the submitter's name (required) and email (optional, syntax only)."""
    errors: Dict[str, str] = {}
    if is_blank(user_name):
        errors["user_name"] = "Please enter your name"
    if not is_blank(user_email):
        reason = lookup(FieldType.email).check(user_email)
        if reason:
            errors["user_email"] = reason
    return errors


def validate_submission(fields: Iterable[Any], values: Optional[Mapping[str, Any]],
                        files: Optional[Mapping[str, Any]] = None) -> ValidationResult:
    """Validate values (and attached files) against each field's rules.

    ``values`` maps field id to the raw value; ``files`` maps field id to
    the list of attached files (or a count). Values for ids the form does
    not contain are ignored.
    """
    values = values or {}
    result = ValidationResult()

    for f in fields:
        field_id = str(_attr(f, "id"))
        ftype = lookup(_attr(f, "field_type"))
        required = bool(_attr(f, "is_required", False))
        label = _attr(f, "label")

        if ftype.tag == FieldType.files.value:
            if required and _file_count(files, field_id) == 0:
                result.errors[field_id] = required_message(label)
            continue

        value = values.get(field_id)
        if ftype.multi_valued and isinstance(value, str) and not is_blank(value):
            selection = coerce_selection(value)
            if selection is not None:
                value_blank = not any(item.strip() for item in selection)
            else:
                value_blank = False
        else:
            value_blank = is_blank(value)

        if value_blank:
            if required:
                result.errors[field_id] = required_message(label)
            continue

        reason = ftype.check(value, options_codec.decode(_attr(f, "options")))
        if reason:
            result.errors[field_id] = reason

    return result


def encode_value(field_type: Any, value: Any) -> Optional[str]:
    """Transport encoding of a single value; None for blank values."""
    if is_blank(value):
        return None
    ftype = lookup(field_type)
    if ftype.tag == FieldType.multiselect.value:
        selection = coerce_selection(value)
        if selection is None:
            selection = [str(value)]
        return json.dumps(selection, ensure_ascii=False, separators=(",", ":"))
    if ftype.tag == FieldType.date.value and isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, str):
        return value
    return str(value)


def serialize_values(fields: Iterable[Any], values: Mapping[str, Any]) -> Dict[str, str]:
    """Encode the non-blank values of the known, non-file fields."""
    encoded: Dict[str, str] = {}
    for f in fields:
        field_id = str(_attr(f, "id"))
        field_type = _attr(f, "field_type")
        if lookup(field_type).tag == FieldType.files.value:
            continue
        value = encode_value(field_type, values.get(field_id))
        if value is not None:
            encoded[field_id] = value
    return encoded
