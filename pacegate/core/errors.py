"""Error types shared across the control plane."""

from typing import Any, Iterable, Optional


class ValidationError(ValueError):
    """A value was rejected before any state was written.

    Carries the offending field, the value, and the allowed set (when the set
    is closed) so the HTTP layer can report it verbatim.
    """

    def __init__(self, field: str, value: Any, message: str, allowed: Optional[Iterable[Any]] = None):
        super().__init__(message)
        self.field = field
        self.value = value
        self.allowed = list(allowed) if allowed is not None else None

    def to_dict(self):
        data = {"field": self.field, "value": self.value, "message": str(self)}
        if self.allowed is not None:
            data["allowed"] = self.allowed
        return data
