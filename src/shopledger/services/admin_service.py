from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..audit import AuditWriter, AuthEvent, changed_fields, created
from ..db import Db
from ..domain import Actor, AuditAction, AuditEntity
from ..errors import Conflict, Forbidden, NotFound, ValidationError
from ..importers import CatalogImportError, import_catalog, read_catalog_json
from ..repositories.catalog_repo import CatalogRepository
from ..repositories.user_repo import UserRepository
from ..validation import UNSET, price, require_any, require_bool, require_int, require_text

logger = logging.getLogger(__name__)

_NO_SPACES = re.compile(r"^\S+$")

USER_CREATED_FIELDS = ("id", "name", "is_admin", "is_active", "commission_pct")
SERVICE_CREATED_FIELDS = ("id", "name", "default_price_cents", "is_active")


@dataclass
class CreateUserInput:
    name: Any
    is_admin: Any = False
    is_active: Any = True
    commission_pct: Any = 0


@dataclass
class UpdateUserInput:
    is_admin: Any = UNSET
    is_active: Any = UNSET
    commission_pct: Any = UNSET


@dataclass
class CreateServiceInput:
    name: Any
    default_price_cents: Any
    is_active: Any = True


@dataclass
class UpdateServiceInput:
    name: Any = UNSET
    default_price_cents: Any = UNSET
    is_active: Any = UNSET


def _user_name(value) -> str:
    name = require_text(value, "name", max_len=32)
    if not _NO_SPACES.match(name):
        raise ValidationError(
            "name: must not contain whitespace",
            issues=[{"field": "name", "message": "must not contain whitespace"}],
        )
    return name


def _pct(value) -> int:
    return require_int(value, "commissionPct", min_value=0, max_value=100)


def _service_name(value) -> str:
    return require_text(value, "name", max_len=60)


def _require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise Forbidden("Admin rights required")


class AdminService:
    """Users, the service catalog, and login/logout audit events."""

    def __init__(
        self,
        db: Db,
        *,
        user_repo: UserRepository,
        catalog_repo: CatalogRepository,
        audit: AuditWriter,
    ) -> None:
        self.db = db
        self.user_repo = user_repo
        self.catalog_repo = catalog_repo
        self.audit = audit

    # --- users -----------------------------------------------------------

    def create_user(self, actor: Actor, inp: CreateUserInput) -> dict:
        _require_admin(actor)
        name = _user_name(inp.name)
        is_admin = require_bool(inp.is_admin, "isAdmin")
        is_active = require_bool(inp.is_active, "isActive")
        pct = 0 if is_admin else _pct(inp.commission_pct)

        with self.db.transaction() as conn:
            if self.user_repo.get_by_name(conn, name) is not None:
                raise Conflict("A user with this name already exists")
            user = self.user_repo.create(conn, name=name, is_admin=is_admin, is_active=is_active, commission_pct=pct)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.CREATE,
                entity=AuditEntity.USER,
                entity_id=user["id"],
                diff=created(user, USER_CREATED_FIELDS),
            )
        logger.info("user %s (%s) created by user %s", user["id"], name, actor.id)
        return user

    def update_user(self, actor: Actor, user_id: int, inp: UpdateUserInput) -> dict:
        _require_admin(actor)
        require_any(**vars(inp))
        is_admin = UNSET if inp.is_admin is UNSET else require_bool(inp.is_admin, "isAdmin")
        is_active = UNSET if inp.is_active is UNSET else require_bool(inp.is_active, "isActive")
        pct = UNSET if inp.commission_pct is UNSET else _pct(inp.commission_pct)

        with self.db.transaction() as conn:
            user = self.user_repo.get(conn, user_id)
            if user is None:
                raise NotFound("User not found")

            is_self = user_id == actor.id
            if is_self and is_active is False:
                raise Conflict("You cannot deactivate yourself")
            if is_self and user["is_admin"] and is_admin is False:
                if self.user_repo.count_active_admins(conn) <= 1:
                    raise Conflict("You are the only active admin and cannot drop admin rights")

            next_admin = user["is_admin"] if is_admin is UNSET else is_admin
            target = {
                "is_admin": next_admin,
                "is_active": user["is_active"] if is_active is UNSET else is_active,
                "commission_pct": 0 if next_admin else (user["commission_pct"] if pct is UNSET else pct),
            }
            changes = changed_fields(user, target)
            if not changes:
                logger.debug("user %s update is a no-op", user_id)
                return user

            # existing work lines keep their commission snapshots
            updated = self.user_repo.update(conn, user_id=user_id, **target)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.UPDATE,
                entity=AuditEntity.USER,
                entity_id=user_id,
                diff=changes,
            )
        logger.info("user %s updated by user %s: %s", user_id, actor.id, sorted(changes.changes))
        return updated

    def list_users(self, *, active_only: bool = False) -> list[dict]:
        with self.db.session() as conn:
            return self.user_repo.list(conn, active_only=active_only)

    # --- catalog ---------------------------------------------------------

    def create_service(self, actor: Actor, inp: CreateServiceInput) -> dict:
        _require_admin(actor)
        name = _service_name(inp.name)
        default_price = price(inp.default_price_cents, "defaultPriceCents")
        is_active = require_bool(inp.is_active, "isActive")

        with self.db.transaction() as conn:
            if self.catalog_repo.get_by_name(conn, name) is not None:
                raise Conflict("A service with this name already exists")
            service = self.catalog_repo.create(conn, name=name, default_price_cents=default_price, is_active=is_active)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.CREATE,
                entity=AuditEntity.SERVICE,
                entity_id=service["id"],
                diff=created(service, SERVICE_CREATED_FIELDS),
            )
        logger.info("service %s (%s) created by user %s", service["id"], name, actor.id)
        return service

    def update_service(self, actor: Actor, service_id: int, inp: UpdateServiceInput) -> dict:
        _require_admin(actor)
        require_any(**vars(inp))
        requested = {
            "name": inp.name if inp.name is UNSET else _service_name(inp.name),
            "default_price_cents": inp.default_price_cents
            if inp.default_price_cents is UNSET
            else price(inp.default_price_cents, "defaultPriceCents"),
            "is_active": inp.is_active if inp.is_active is UNSET else require_bool(inp.is_active, "isActive"),
        }

        with self.db.transaction() as conn:
            service = self.catalog_repo.get(conn, service_id)
            if service is None:
                raise NotFound("Service not found")

            target = {k: service[k] if v is UNSET else v for k, v in requested.items()}
            if target["name"] != service["name"]:
                other = self.catalog_repo.get_by_name(conn, target["name"])
                if other is not None and other["id"] != service_id:
                    raise Conflict("A service with this name already exists")

            changes = changed_fields(service, target)
            if not changes:
                logger.debug("service %s update is a no-op", service_id)
                return service

            updated = self.catalog_repo.update(conn, service_id=service_id, **target)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.UPDATE,
                entity=AuditEntity.SERVICE,
                entity_id=service_id,
                diff=changes,
            )
        logger.info("service %s updated by user %s: %s", service_id, actor.id, sorted(changes.changes))
        return updated

    def list_services(self, *, active_only: bool = False) -> list[dict]:
        with self.db.session() as conn:
            return self.catalog_repo.list(conn, active_only=active_only)

    def import_catalog_json(self, actor: Actor, path: str | Path) -> list[dict]:
        _require_admin(actor)
        try:
            entries = read_catalog_json(path)
        except CatalogImportError as e:
            raise ValidationError(str(e)) from e

        with self.db.transaction() as conn:
            rows = import_catalog(conn, entries, self.catalog_repo)
            for row in rows:
                self.audit.record(
                    conn,
                    actor_id=actor.id,
                    action=AuditAction.CREATE,
                    entity=AuditEntity.SERVICE,
                    entity_id=row["id"],
                    diff=created(row, SERVICE_CREATED_FIELDS),
                )
        logger.info("catalog import from %s: %s of %s entries created", path, len(rows), len(entries))
        return rows

    # --- auth events -----------------------------------------------------

    def record_login(self, user_id: int) -> None:
        self._auth_event(AuditAction.LOGIN, user_id)

    def record_logout(self, user_id: int) -> None:
        self._auth_event(AuditAction.LOGOUT, user_id)

    def _auth_event(self, action: AuditAction, user_id: int) -> None:
        with self.db.transaction() as conn:
            user = self.user_repo.get(conn, user_id)
            if user is None:
                raise NotFound("User not found")
            self.audit.record(
                conn,
                actor_id=user_id,
                action=action,
                entity=AuditEntity.AUTH,
                entity_id=user_id,
                diff=AuthEvent(user["name"]),
            )
        logger.info("%s user %s", action.value.lower(), user_id)
