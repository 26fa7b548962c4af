"""
Form Definition Model

Pure normalization of a form definition: machine names, ordering, option
lists and per-field validation. Persistence lives in
``formdesk.services.forms``; this module never touches the database.
"""
import re
from dataclasses import dataclass, field, replace, asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional

from formdesk.forms import options as options_codec
from formdesk.forms.exceptions import FormValidationError
from formdesk.forms.field_types import has_options, is_known

UP = "up"
DOWN = "down"

MISSING_OPTIONS = "Please add at least one option"


@dataclass
class FieldDefinition:
    field_type: str
    label: str
    name: str
    is_required: bool = False
    order: int = 0
    options: Optional[str] = None
    placeholder: Optional[str] = None
    id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = asdict(self)
        if payload["id"] is None:
            payload.pop("id")
        return payload


@dataclass
class FormDefinition:
    title: str
    description: Optional[str] = None
    fields: List[FieldDefinition] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "fields": [f.to_payload() for f in self.fields],
        }


def derive_field_name(label: Optional[str]) -> str:
    """Machine-safe identifier derived from a field label."""
    name = (label or "").lower().strip()
    name = re.sub(r"[^a-z0-9\s-]", "", name)
    name = re.sub(r"\s+", "_", name)
    name = re.sub(r"-+", "_", name)
    name = re.sub(r"_+", "_", name)
    return name.strip("_")


def assign_unique_names(fields: List[FieldDefinition]) -> List[FieldDefinition]:
    """Disambiguate colliding names in display order.

    The first field keeps the bare name; later ones get ``_2``, ``_3``...
    """
    used = set()
    result = []
    for position, f in enumerate(fields):
        base = f.name or f"field_{position + 1}"
        candidate = base
        suffix = 2
        while candidate in used:
            candidate = f"{base}_{suffix}"
            suffix += 1
        used.add(candidate)
        result.append(replace(f, name=candidate))
    return result


def _read(raw: Any, key: str, default: Any = None) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(key, default)
    return getattr(raw, key, default)


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_fields(fields: Iterable[Any]) -> List[FieldDefinition]:
    """Validate and normalize raw field payloads.

    Raises FormValidationError keyed by the field's position in ``fields``.
    """
    errors: Dict[str, str] = {}
    entries = []

    for position, raw in enumerate(fields or []):
        key = str(position)
        field_type = str(_read(raw, "field_type") or "").strip().lower()
        label = _clean_text(_read(raw, "label")) or ""

        if not field_type:
            errors[key] = "Please choose a field type"
        elif not is_known(field_type):
            errors[key] = f"Unknown field type '{field_type}'"

        if not label:
            errors.setdefault(key, "Please enter the question text")

        options = None
        if has_options(field_type):
            options = options_codec.normalize(_read(raw, "options"))
            if options is None:
                errors.setdefault(key, MISSING_OPTIONS)

        order = _read(raw, "order")
        if order is None:
            order = position

        explicit_name = _clean_text(_read(raw, "name"))
        name = derive_field_name(explicit_name) if explicit_name else derive_field_name(label)

        entries.append((int(order), position, FieldDefinition(
            id=_clean_text(_read(raw, "id")),
            field_type=field_type,
            label=label,
            name=name,
            is_required=bool(_read(raw, "is_required", False)),
            order=int(order),
            options=options,
            placeholder=_clean_text(_read(raw, "placeholder")),
        )))

    if errors:
        raise FormValidationError(errors, "Form definition is invalid")

    entries.sort(key=lambda entry: (entry[0], entry[1]))
    ordered = [entry[2] for entry in entries]

    orders = [f.order for f in ordered]
    if len(set(orders)) != len(orders):
        ordered = [replace(f, order=index) for index, f in enumerate(ordered)]

    return assign_unique_names(ordered)


def normalize_form(title: Optional[str], description: Optional[str] = None,
                   fields: Iterable[Any] = ()) -> FormDefinition:
    errors: Dict[str, str] = {}
    if not _clean_text(title):
        errors["title"] = "Please enter a form title"

    normalized: List[FieldDefinition] = []
    try:
        normalized = normalize_fields(fields)
    except FormValidationError as e:
        errors.update(e.field_errors)

    if errors:
        raise FormValidationError(errors, "Form definition is invalid")

    return FormDefinition(
        title=_clean_text(title),
        description=_clean_text(description),
        fields=normalized,
    )


def apply_update(current: FormDefinition, title: Optional[str] = None,
                 description: Optional[str] = None,
                 fields: Optional[Iterable[Any]] = None) -> FormDefinition:
    """Full-replacement update.

    When ``fields`` is given it replaces the field list entirely. Incoming
    ids that belong to the current form are kept; any other id is dropped
    so the storage layer assigns a new one. An id repeated within ``fields`` is
    kept only on its first occurrence.
    """
    new_title = current.title if title is None else title
    new_description = current.description if description is None else description

    if fields is None:
        raw_fields = [f.to_payload() for f in current.fields]
    else:
        known_ids = {f.id for f in current.fields if f.id}
        claimed = set()
        raw_fields = []
        for raw in fields:
            payload = dict(raw) if isinstance(raw, Mapping) else {
                k: _read(raw, k) for k in (
                    "id", "field_type", "label", "name", "is_required",
                    "order", "options", "placeholder")
            }
            if payload.get("id") not in known_ids or payload["id"] in claimed:
                payload["id"] = None
            else:
                claimed.add(payload["id"])
            raw_fields.append(payload)

    return normalize_form(new_title, new_description, raw_fields)


def reorder(fields: List[FieldDefinition], field_id: str, direction: str) -> List[FieldDefinition]:
    """Swap a field with its neighbour. No-op at the boundaries."""
    ordered = sorted(fields, key=lambda f: f.order)
    index = next((i for i, f in enumerate(ordered) if f.id == field_id), None)
    if index is None:
        return ordered

    if direction == UP:
        other = index - 1
    elif direction == DOWN:
        other = index + 1
    else:
        raise ValueError(f"Unknown direction: {direction}")

    if other < 0 or other >= len(ordered):
        return ordered

    a, b = ordered[index], ordered[other]
    ordered[index] = replace(b, order=a.order)
    ordered[other] = replace(a, order=b.order)
    return ordered
