from typing import Dict, Optional


class FormValidationError(ValueError):
    """Raised when a form definition or submission fails validation.

    ``field_errors`` maps the offending field (its id, its position in the
    payload, or ``"title"``) to a human readable reason so the caller can
    mark the exact field.
    """

    def __init__(self, field_errors: Dict[str, str], message: Optional[str] = None):
        self.field_errors = {str(key): value for key, value in field_errors.items()}
        self.message = message or "Validation failed"
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {"message": self.message, "field_errors": self.field_errors}
