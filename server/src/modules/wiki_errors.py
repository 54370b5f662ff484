from __future__ import annotations

from typing import Any


class WikiError(Exception):
    status_code = 500
    code = "internal:error"

    def __init__(self, message: str, data: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.data = data
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"error": self.code, "data": self.data or "", "message": self.message}
        if self.details:
            out["details"] = self.details
        return out


class NotFound(WikiError):
    """A referenced Wiki, WikiPage or Text id does not exist."""

    status_code = 404
    code = "entity:notfound"

    def __init__(self, entity: str, message: str | None = None):
        super().__init__(message or f"{entity} not found", data=entity)


class InvalidParameter(WikiError):
    status_code = 400
    code = "parameter:invalid"

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"Invalid parameter: {field}", data=field)


class Conflict(WikiError):
    """The operation would break a structural rule (non-empty delete, cyclic move, stale version)."""

    status_code = 409
    code = "entity:conflict"

    def __init__(self, entity: str, message: str):
        super().__init__(message, data=entity)


class DataIntegrityError(WikiError):
    """Stored page data is malformed: dangling parents or parent cycles."""

    status_code = 500
    code = "data:integrity"

    def __init__(self, message: str, page_ids: list[str] | None = None):
        super().__init__(message, data="WikiPage", details={"page_ids": list(page_ids or [])})
        self.page_ids = list(page_ids or [])
