"""Structured audit diffs and the writer that appends them.

The JSON written to ``audit_log.diff`` is read by other tools, so its shape
is fixed:

    {"created": {"field": value, ...}}
    {"changed": {"field": {"from": old, "to": new}, ...}}
    {"deleted": {"id": 42}}
    {"name": "alice"}                      # LOGIN / LOGOUT

Field names are camelCase on the wire.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Optional, Union

from psycopg import Connection

from .dates import as_utc
from .domain import AuditAction, AuditEntity
from .repositories.audit_repo import AuditRepository

logger = logging.getLogger(__name__)


def camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class Created:
    fields: dict

    def to_payload(self) -> dict:
        return {"created": {camel(k): json_value(v) for k, v in self.fields.items()}}


@dataclass(frozen=True)
class Changed:
    changes: dict = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.changes)

    def to_payload(self) -> dict:
        return {
            "changed": {
                camel(k): {"from": json_value(before), "to": json_value(after)}
                for k, (before, after) in self.changes.items()
            }
        }


@dataclass(frozen=True)
class Deleted:
    id: int

    def to_payload(self) -> dict:
        return {"deleted": {"id": self.id}}


@dataclass(frozen=True)
class AuthEvent:
    name: str

    def to_payload(self) -> dict:
        return {"name": self.name}


Diff = Union[Created, Changed, Deleted, AuthEvent]


def created(row: dict, fields: Iterable[str]) -> Created:
    return Created({k: row[k] for k in fields})


def changed_fields(current: dict, target: dict) -> Changed:
    """Compare a fetched row against the resolved target values.

    Only keys present in ``target`` are considered, and only those whose
    value actually differs end up in the result.
    """
    return Changed({k: (current[k], v) for k, v in target.items() if current[k] != v})


def preview(text: str, limit: int) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


class AuditWriter:
    def __init__(self, audit_repo: AuditRepository) -> None:
        self.audit_repo = audit_repo

    def record(
        self,
        conn: Connection,
        *,
        actor_id: int,
        action: AuditAction,
        entity: AuditEntity,
        entity_id: int,
        diff: Optional[Diff],
        order_id: int | None = None,
    ) -> int:
        # must run on the same connection as the mutation it describes
        audit_id = self.audit_repo.append(
            conn,
            actor_id=actor_id,
            action=action.value,
            entity=entity.value,
            entity_id=entity_id,
            order_id=order_id,
            diff=diff.to_payload() if diff is not None else None,
        )
        logger.debug("audit #%s %s %s#%s by user %s", audit_id, action.value, entity.value, entity_id, actor_id)
        return audit_id
