"""
Form definition and submission core.
Pure models shared by the API services and the HTTP client.
"""
from formdesk.forms.definition import (
    FieldDefinition,
    FormDefinition,
    apply_update,
    derive_field_name,
    normalize_form,
    reorder,
)
from formdesk.forms.editor import FieldEditState, FormEditor
from formdesk.forms.exceptions import FormValidationError
from formdesk.forms.field_types import FieldType, FieldTypeSpec, lookup
from formdesk.forms.submission import ValidationResult, serialize_values, submitter_errors, validate_submission

__all__ = [
    "FieldDefinition",
    "FormDefinition",
    "apply_update",
    "derive_field_name",
    "normalize_form",
    "reorder",
    "FieldEditState",
    "FormEditor",
    "FormValidationError",
    "FieldType",
    "FieldTypeSpec",
    "lookup",
    "ValidationResult",
    "serialize_values",
    "submitter_errors",
    "validate_submission",
]
