# services/audit_log.py
from __future__ import annotations

import inspect
import logging
import uuid
from functools import wraps
from typing import Any, ClassVar, Iterable, Optional

from pydantic_core import to_jsonable_python

from hackhub.db.database import DataBase
from hackhub.db.schemas.audit_log import AuditLogCreate, AuditLogRead
from hackhub.db.schemas.user import UserRead
from hackhub.errors import HackhubError


def jsonable(value: Any) -> Any:
    """JSON-friendly copy of ``value``; unknown objects fall back to ``str``."""
    return to_jsonable_python(value, fallback=str)


class AuditLogService:
    """
    Append-only trail of state-changing service calls.

    Each entry stores the action label, the acting user, the call arguments and
    either the result or the domain error that was raised. Entries are written
    in their own transaction after the audited call has finished.
    """

    _instance: ClassVar[Optional["AuditLogService"]] = None

    def __new__(cls) -> "AuditLogService":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if getattr(self, "_initialized", False):
            return

        self._database = DataBase()
        self._logger = logging.getLogger("hackhub.audit")
        self._initialized = True

    async def record(
        self,
        *,
        action: str,
        actor: UserRead | uuid.UUID | None = None,
        payload: dict[str, Any] | None = None,
    ) -> AuditLogRead:
        """
        Persist one audit entry.

        :param action: dotted label such as ``services.team.confirm_team``
        :param actor: acting user (its identity is copied into the payload) or a bare id
        :param payload: call details; serialised with pydantic's JSON rules
        """
        data: dict[str, Any] = dict(jsonable(payload or {}))
        actor_id: uuid.UUID | None = None
        if isinstance(actor, UserRead):
            actor_id = actor.id
            data["actor"] = {
                "id": str(actor.id),
                "username": actor.username,
                "roles": [r.value for r in actor.roles],
            }
        elif isinstance(actor, uuid.UUID):
            actor_id = actor

        entry = await self._database.create_audit_log(
            AuditLogCreate(action=action, actor_id=actor_id, payload=data)
        )
        self._logger.info("AUDIT action=%s actor=%s entry=%s", action, actor_id or "-", entry.id)
        return entry

    async def list_entries(
        self,
        *,
        limit: int = 100,
        offset: int = 0,
        actor_id: uuid.UUID | None = None,
        action: str | None = None,
    ) -> tuple[list[AuditLogRead], int]:
        return await self._database.list_audit_logs(
            limit=limit,
            offset=offset,
            actor_id=actor_id,
            action=action,
        )


audit_logger = AuditLogService()


def _error_payload(exc: Exception) -> dict[str, Any]:
    if isinstance(exc, HackhubError):
        return {"type": type(exc).__name__, **exc.to_dict()}
    return {"type": type(exc).__name__, "message": str(exc)}


def _audited(fn, action: str, actor_param: str):
    if getattr(fn, "__audited__", False):
        return fn

    signature = inspect.signature(fn)

    @wraps(fn)
    async def wrapper(*args, **kwargs):
        bound = signature.bind_partial(*args, **kwargs)
        arguments = dict(bound.arguments)
        arguments.pop("self", None)
        actor = arguments.pop(actor_param, None)

        payload: dict[str, Any] = {"arguments": arguments}
        try:
            result = await fn(*args, **kwargs)
        except Exception as exc:
            payload["error"] = _error_payload(exc)
            await audit_logger.record(action=f"{action}.error", actor=actor, payload=payload)
            raise

        payload["result"] = result
        await audit_logger.record(action=action, actor=actor, payload=payload)
        return result

    wrapper.__audited__ = True  # type: ignore[attr-defined]
    return wrapper


def instrument_service_class(
    cls,
    *,
    prefix: str | None = None,
    exclude: Iterable[str] | None = None,
    actor_param: str = "actor",
) -> None:
    """Audit every public coroutine method of ``cls`` except the names in ``exclude``."""
    action_prefix = prefix or cls.__name__
    excluded = set(exclude or ())

    for name, attr in list(vars(cls).items()):
        if name.startswith("_") or name in excluded:
            continue
        if inspect.iscoroutinefunction(attr):
            setattr(cls, name, _audited(attr, f"{action_prefix}.{name}", actor_param))


__all__ = [
    "AuditLogService",
    "audit_logger",
    "instrument_service_class",
    "jsonable",
]
