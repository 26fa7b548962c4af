"""
Form Editor Workflow

In-memory editing session for a form definition. Field drafts, their option
lists and their error markers are all keyed by a stable per-field key, so
removing or moving a field never shifts state onto a neighbour.
"""
import enum
import inspect
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from formdesk.forms import options as options_codec
from formdesk.forms.definition import (
    DOWN,
    MISSING_OPTIONS,
    UP,
    derive_field_name,
    normalize_form,
)
from formdesk.forms.exceptions import FormValidationError
from formdesk.forms.field_types import has_options


class FieldEditState(str, enum.Enum):
    type_unset = "type_unset"
    type_set_no_options = "type_set_no_options"
    type_set_options_valid = "type_set_options_valid"
    type_set_options_invalid = "type_set_options_invalid"


@dataclass
class FieldDraft:
    key: str
    field_type: Optional[str] = None
    label: str = ""
    name: str = ""
    is_required: bool = False
    placeholder: Optional[str] = None


SaveCallback = Callable[[Dict[str, Any]], Union[Awaitable[Any], Any]]


class FormEditor:
    """Editing session for one form.

    ``submit`` is the only way out: it either surfaces per-field errors and
    leaves the editor untouched, or hands the normalized payload to the
    save callback and moves the editor to its saved state.
    """

    def __init__(self, title: str = "", description: Optional[str] = None):
        self.title = title
        self.description = description
        self.form_id: Optional[str] = None
        self.saved = False
        self.saving = False
        self._order: List[str] = []
        self._drafts: Dict[str, FieldDraft] = {}
        self._options: Dict[str, List[str]] = {}
        self._errors: Dict[str, str] = {}
        self._persisted: set = set()

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> "FormEditor":
        """Open an existing form (as returned by the API) for editing."""
        editor = cls(form.get("title") or "", form.get("description"))
        editor.form_id = form.get("id")
        fields = sorted(form.get("fields") or [], key=lambda f: f.get("order", 0))
        for f in fields:
            key = str(f["id"])
            editor._drafts[key] = FieldDraft(
                key=key,
                field_type=f.get("field_type"),
                label=f.get("label") or "",
                name=f.get("name") or "",
                is_required=bool(f.get("is_required")),
                placeholder=f.get("placeholder"),
            )
            editor._order.append(key)
            editor._persisted.add(key)
            if has_options(f.get("field_type")):
                editor._options[key] = options_codec.decode(f.get("options")) or [""]
        return editor

    # -- fields ---------------------------------------------------------

    @property
    def keys(self) -> List[str]:
        return list(self._order)

    @property
    def fields(self) -> List[FieldDraft]:
        return [self._drafts[key] for key in self._order]

    @property
    def errors(self) -> Dict[str, str]:
        return dict(self._errors)

    def field(self, key: str) -> FieldDraft:
        try:
            return self._drafts[key]
        except KeyError:
            raise KeyError(f"Unknown field: {key}") from None

    def add_field(self, field_type: Optional[str] = None, label: str = "",
                  is_required: bool = False, placeholder: Optional[str] = None) -> str:
        self._ensure_editable()
        key = uuid.uuid4().hex
        self._drafts[key] = FieldDraft(key=key, is_required=is_required, placeholder=placeholder)
        self._order.append(key)
        if label:
            self.set_label(key, label)
        if field_type:
            self.set_field_type(key, field_type)
        return key

    def remove_field(self, key: str) -> None:
        self._ensure_editable()
        self.field(key)
        self._order.remove(key)
        del self._drafts[key]
        self._options.pop(key, None)
        self._errors.pop(key, None)
        self._persisted.discard(key)

    def move_field(self, key: str, direction: str) -> bool:
        """Swap with the neighbour in ``direction``. Returns False at a boundary."""
        self._ensure_editable()
        self.field(key)
        index = self._order.index(key)
        if direction == UP:
            other = index - 1
        elif direction == DOWN:
            other = index + 1
        else:
            raise ValueError(f"Unknown direction: {direction}")
        if other < 0 or other >= len(self._order):
            return False
        self._order[index], self._order[other] = self._order[other], self._order[index]
        return True

    def set_field_type(self, key: str, field_type: str) -> None:
        self._ensure_editable()
        draft = self.field(key)
        draft.field_type = field_type
        if has_options(field_type):
            if not self._options.get(key):
                self._options[key] = [""]
        else:
            self._options.pop(key, None)
        self._errors.pop(key, None)

    def set_label(self, key: str, label: str) -> None:
        self._ensure_editable()
        draft = self.field(key)
        draft.label = label
        draft.name = derive_field_name(label)

    def set_required(self, key: str, is_required: bool) -> None:
        self._ensure_editable()
        self.field(key).is_required = is_required

    def set_placeholder(self, key: str, placeholder: Optional[str]) -> None:
        self._ensure_editable()
        self.field(key).placeholder = placeholder

    # -- options --------------------------------------------------------

    def options(self, key: str) -> List[str]:
        return list(self._options.get(key, []))

    def options_by_position(self) -> Dict[int, List[str]]:
        return {
            index: list(self._options[key])
            for index, key in enumerate(self._order)
            if key in self._options
        }

    def errors_by_position(self) -> Dict[int, str]:
        return {
            index: self._errors[key]
            for index, key in enumerate(self._order)
            if key in self._errors
        }

    def add_option(self, key: str, value: str = "") -> None:
        self._ensure_editable()
        self._option_list(key).append(value)
        self._errors.pop(key, None)

    def set_option(self, key: str, index: int, value: str) -> None:
        self._ensure_editable()
        current = self._option_list(key)
        current[index] = value
        if options_codec.trim_nonblank(current):
            self._errors.pop(key, None)

    def remove_option(self, key: str, index: int) -> None:
        self._ensure_editable()
        current = self._option_list(key)
        del current[index]
        if options_codec.trim_nonblank(current):
            self._errors.pop(key, None)
        else:
            self._errors[key] = MISSING_OPTIONS

    def _option_list(self, key: str) -> List[str]:
        draft = self.field(key)
        if not has_options(draft.field_type):
            raise ValueError(f"Field type '{draft.field_type}' does not take options")
        return self._options.setdefault(key, [])

    # -- state ----------------------------------------------------------

    def state(self, key: str) -> FieldEditState:
        draft = self.field(key)
        if not draft.field_type:
            return FieldEditState.type_unset
        if not has_options(draft.field_type):
            return FieldEditState.type_set_no_options
        if options_codec.trim_nonblank(self._options.get(key)):
            return FieldEditState.type_set_options_valid
        return FieldEditState.type_set_options_invalid

    # -- submit ---------------------------------------------------------

    def build_payload(self) -> Dict[str, Any]:
        """Validate every draft and return the create/update payload.

        Raises FormValidationError keyed by field key (or ``title``) and
        records the same markers on ``errors``.
        """
        errors: Dict[str, str] = {}
        for key in self._order:
            if self.state(key) == FieldEditState.type_set_options_invalid:
                errors[key] = MISSING_OPTIONS

        raw_fields = []
        for index, key in enumerate(self._order):
            draft = self._drafts[key]
            raw_fields.append({
                "id": key if key in self._persisted else None,
                "field_type": draft.field_type,
                "label": draft.label,
                "name": draft.name or derive_field_name(draft.label),
                "is_required": draft.is_required,
                "order": index,
                "options": options_codec.encode(self._options.get(key)),
                "placeholder": draft.placeholder,
            })

        definition = None
        try:
            definition = normalize_form(self.title, self.description, raw_fields)
        except FormValidationError as e:
            for position, reason in e.field_errors.items():
                if position == "title":
                    errors.setdefault("title", reason)
                else:
                    errors.setdefault(self._order[int(position)], reason)

        self._errors = {k: v for k, v in errors.items() if k != "title"}
        if errors:
            message = MISSING_OPTIONS if MISSING_OPTIONS in errors.values() else "Form definition is invalid"
            raise FormValidationError(errors, message)
        return definition.to_payload()

    async def submit(self, save: SaveCallback) -> Any:
        """Validate, then hand the payload to ``save``.

        A failing save leaves every draft in place so nothing typed is lost.
        """
        self._ensure_editable()
        payload = self.build_payload()
        self.saving = True
        try:
            result = save(payload)
            if inspect.isawaitable(result):
                result = await result
        finally:
            self.saving = False
        self.saved = True
        if isinstance(result, Mapping) and result.get("id"):
            self.form_id = result["id"]
        return result

    def _ensure_editable(self) -> None:
        if self.saved:
            raise RuntimeError("Form has already been saved")
        if self.saving:
            raise RuntimeError("Form is being saved")
