from __future__ import annotations


class LedgerError(Exception):
    status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"ok": False, "message": self.message}


class ValidationError(LedgerError):
    """Malformed or out-of-range input. Raised before any transaction opens."""

    status = 400

    def __init__(self, message: str, issues: list[dict] | None = None) -> None:
        super().__init__(message)
        self.issues = issues or []

    def to_payload(self) -> dict:
        body = super().to_payload()
        if self.issues:
            body["issues"] = self.issues
        return body


class NotFound(LedgerError):
    status = 404


class Conflict(LedgerError):
    status = 409


class Forbidden(LedgerError):
    status = 403
