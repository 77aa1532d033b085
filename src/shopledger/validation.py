from __future__ import annotations

from .domain import OrderStatus
from .errors import ValidationError


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


# marks an update field the caller did not send (as opposed to an explicit null)
UNSET = _Unset()


def _fail(field: str, message: str) -> ValidationError:
    return ValidationError(f"{field}: {message}", issues=[{"field": field, "message": message}])


def require_text(value, field: str, *, max_len: int, min_len: int = 1) -> str:
    if not isinstance(value, str):
        raise _fail(field, "must be a string")
    text = value.strip()
    if len(text) < min_len:
        raise _fail(field, "is required")
    if len(text) > max_len:
        raise _fail(field, f"must be at most {max_len} characters")
    return text


def optional_text(value, field: str, *, max_len: int) -> str | None:
    """Empty strings collapse to None."""
    if value is None:
        return None
    return require_text(value, field, max_len=max_len, min_len=0) or None


def require_int(value, field: str, *, min_value: int | None = None, max_value: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _fail(field, "must be an integer")
    if min_value is not None and value < min_value:
        raise _fail(field, f"must be >= {min_value}")
    if max_value is not None and value > max_value:
        raise _fail(field, f"must be <= {max_value}")
    return value


def require_id(value, field: str) -> int:
    # ids may arrive as route strings
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    return require_int(value, field, min_value=1)


def require_bool(value, field: str) -> bool:
    if not isinstance(value, bool):
        raise _fail(field, "must be a boolean")
    return value


def require_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError as e:
        raise _fail("status", f"must be one of {[s.value for s in OrderStatus]}") from e


def require_any(**fields) -> None:
    if all(v is UNSET for v in fields.values()):
        raise ValidationError("Send at least one field to update")


def price(value, field: str = "unitPriceCents") -> int:
    return require_int(value, field, min_value=0)


def quantity(value, field: str = "quantity") -> int:
    return require_int(value, field, min_value=1, max_value=999)
