"""
Field Type Registry

Static catalog of the field kinds a form can hold. Each entry carries the
rendering category, the validation category and the value rule used when a
submission is checked. Call sites look a type up here instead of branching
on the tag.
"""
import enum
import json
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from email_validator import EmailNotValidError, validate_email

from formdesk.core.logging import forms_logger


class FieldType(str, enum.Enum):
    text = "text"
    textarea = "textarea"
    number = "number"
    date = "date"
    select = "select"
    multiselect = "multiselect"
    files = "files"
    email = "email"
    phone = "phone"
    signature = "signature"


class RenderCategory(str, enum.Enum):
    single_line = "single_line"
    multi_line = "multi_line"
    numeric = "numeric"
    date = "date"
    enum_single = "enum_single"
    enum_multi = "enum_multi"
    file = "file"
    image_signature = "image_signature"


class ValidationCategory(str, enum.Enum):
    text = "text"
    numeric = "numeric"
    date = "date"
    enum = "enum"
    file = "file"
    image = "image"
    email = "email"
    phone = "phone"


PHONE_PATTERN = re.compile(r"^[\d\s\-\+\(\)]+$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
SIGNATURE_PATTERN = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,[A-Za-z0-9+/=\s]+$")

# A rule receives the non-blank value and the decoded option list and
# returns a human readable reason, or None when the value is acceptable.
ValueRule = Callable[[Any, List[str]], Optional[str]]


def _accept(value: Any, options: List[str]) -> Optional[str]:
    return None


def _check_number(value: Any, options: List[str]) -> Optional[str]:
    if isinstance(value, bool):
        return "Please enter a valid number"
    try:
        float(str(value).strip())
    except ValueError:
        return "Please enter a valid number"
    return None


def _check_date(value: Any, options: List[str]) -> Optional[str]:
    if isinstance(value, date):
        return None
    text = str(value).strip()
    if not DATE_PATTERN.match(text):
        return "Please enter a valid date (YYYY-MM-DD)"
    try:
        date.fromisoformat(text)
    except ValueError:
        return "Please enter a valid date (YYYY-MM-DD)"
    return None


def _check_email(value: Any, options: List[str]) -> Optional[str]:
    try:
        validate_email(str(value).strip(), check_deliverability=False)
    except EmailNotValidError:
        return "Please enter a valid email address"
    return None


def _check_phone(value: Any, options: List[str]) -> Optional[str]:
    if not PHONE_PATTERN.match(str(value).strip()):
        return "Please enter a valid phone number"
    return None


def _check_choice(value: Any, options: List[str]) -> Optional[str]:
    if options and str(value).strip() not in options:
        return "Please choose one of the available options"
    return None


def _check_choices(value: Any, options: List[str]) -> Optional[str]:
    selected = coerce_selection(value)
    if selected is None:
        return "Please choose from the available options"
    if options and any(item not in options for item in selected):
        return "Please choose from the available options"
    return None


def _check_signature(value: Any, options: List[str]) -> Optional[str]:
    if not SIGNATURE_PATTERN.match(str(value).strip()):
        return "Please provide a signature"
    return None


def coerce_selection(value: Any) -> Optional[List[str]]:
    """Read a multiselect value given as a list or a JSON array string."""
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return None
        if isinstance(parsed, list):
            return [str(item) for item in parsed]
    return None


@dataclass(frozen=True)
class FieldTypeSpec:
    tag: str
    render: RenderCategory
    validation: ValidationCategory
    has_options: bool = False
    multi_valued: bool = False
    rule: ValueRule = _accept
    known: bool = True

    def check(self, value: Any, options: Optional[List[str]] = None) -> Optional[str]:
        return self.rule(value, options or [])


REGISTRY: Dict[str, FieldTypeSpec] = {
    FieldType.text.value: FieldTypeSpec(
        "text", RenderCategory.single_line, ValidationCategory.text),
    FieldType.textarea.value: FieldTypeSpec(
        "textarea", RenderCategory.multi_line, ValidationCategory.text),
    FieldType.number.value: FieldTypeSpec(
        "number", RenderCategory.numeric, ValidationCategory.numeric, rule=_check_number),
    FieldType.date.value: FieldTypeSpec(
        "date", RenderCategory.date, ValidationCategory.date, rule=_check_date),
    FieldType.select.value: FieldTypeSpec(
        "select", RenderCategory.enum_single, ValidationCategory.enum,
        has_options=True, rule=_check_choice),
    FieldType.multiselect.value: FieldTypeSpec(
        "multiselect", RenderCategory.enum_multi, ValidationCategory.enum,
        has_options=True, multi_valued=True, rule=_check_choices),
    FieldType.files.value: FieldTypeSpec(
        "files", RenderCategory.file, ValidationCategory.file, multi_valued=True),
    FieldType.email.value: FieldTypeSpec(
        "email", RenderCategory.single_line, ValidationCategory.email, rule=_check_email),
    FieldType.phone.value: FieldTypeSpec(
        "phone", RenderCategory.single_line, ValidationCategory.phone, rule=_check_phone),
    FieldType.signature.value: FieldTypeSpec(
        "signature", RenderCategory.image_signature, ValidationCategory.image, rule=_check_signature),
}


def is_known(tag: Any) -> bool:
    return _tag(tag) in REGISTRY


def lookup(tag: Any) -> FieldTypeSpec:
    """Return the rules for a field type tag.

    Unknown tags get a permissive single-line text entry with ``known=False``
    so callers can surface a configuration error without failing the whole
    editor or submission flow.
    """
    key = _tag(tag)
    ftype = REGISTRY.get(key)
    if ftype is None:
        forms_logger.warning("Unknown field type, treating as text", field_type=key)
        return FieldTypeSpec(key, RenderCategory.single_line, ValidationCategory.text, known=False)
    return ftype


def has_options(tag: Any) -> bool:
    return lookup(tag).has_options if is_known(tag) else False


def _tag(tag: Any) -> str:
    if isinstance(tag, FieldType):
        return tag.value
    return str(tag or "").strip().lower()
