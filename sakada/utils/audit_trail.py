"""
Sakada Cash Advance - Audit Trail Interceptor

Storage-level audit capture for audited models.

Mapper events fire for every ORM flush of an audited row and insert the
audit entry through the flush's own connection, so the entry commits or
rolls back together with the write. Bulk ORM UPDATE/DELETE statements skip
mapper events and are refused for audited tables. Any other INSERT, UPDATE
or DELETE that reaches an audited table outside an ORM flush (Core
statements, text(), exec_driver_sql) is refused at the cursor.

The acting user is supplied explicitly per unit of work:

    with audit_context(session, AuditContext(user_id=user.id)):
        advance.status = CashAdvanceStatus.APPROVED
        await session.commit()
"""

import logging
import re
import uuid
import weakref
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Set

from sqlalchemy import event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from sakada.utils.error_handling import AuditBypassException

logger = logging.getLogger(__name__)

AUDIT_CONTEXT_KEY = "audit_context"
AUDIT_SESSION_KEY = "audit_session"
FLUSHING_KEY = "audit_flushing"

_audited_models: Set[type] = set()
_audited_tables: Set[str] = set()


@dataclass(frozen=True)
class AuditContext:
    """Who performed a write, and from where."""
    user_id: Optional[uuid.UUID] = None
    ip_address: Optional[str] = None
    
    @classmethod
    def from_request(cls, request, user_id: Optional[uuid.UUID] = None) -> "AuditContext":
        """Build a context from a FastAPI/Starlette request; respects X-Forwarded-For."""
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            ip_address = forwarded.split(",")[0].strip()
        elif request.client:
            ip_address = request.client.host
        else:
            ip_address = None
        return cls(user_id=user_id, ip_address=ip_address)


def _info(session) -> dict:
    if isinstance(session, AsyncSession):
        return session.sync_session.info
    return session.info


def bind_audit_context(session, context: Optional[AuditContext]) -> None:
    """Attach the acting-user context to a session until cleared."""
    if context is None:
        _info(session).pop(AUDIT_CONTEXT_KEY, None)
    else:
        _info(session)[AUDIT_CONTEXT_KEY] = context


def current_audit_context(session) -> Optional[AuditContext]:
    return _info(session).get(AUDIT_CONTEXT_KEY)


@contextmanager
def audit_context(session, context: Optional[AuditContext]) -> Iterator[Optional[AuditContext]]:
    """Scope an acting-user context to one unit of work, restoring the previous one."""
    previous = current_audit_context(session)
    bind_audit_context(session, context)
    try:
        yield context
    finally:
        bind_audit_context(session, previous)


def json_safe(obj: Any) -> Any:
    """Convert values to a JSON-serializable form for the snapshot columns."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return {k: json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [json_safe(v) for v in obj]
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (uuid.UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)


def row_snapshot(target) -> Dict[str, Any]:
    """Current column values of a mapped instance, keyed by column name."""
    state = inspect(target)
    values = {}
    for attr in state.mapper.column_attrs:
        column = attr.columns[0]
        values[column.name] = json_safe(state.dict.get(attr.key))
    return values


def previous_snapshot(target) -> Dict[str, Any]:
    """Column values as they were before the pending flush."""
    state = inspect(target)
    values = {}
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if history.deleted:
            value = history.deleted[0]
        elif history.unchanged:
            value = history.unchanged[0]
        else:
            # Attribute was not loaded before it was set
            value = None
        values[attr.columns[0].name] = json_safe(value)
    return values


def _write_entry(connection, target, action: str, old_values, new_values) -> None:
    # Imported here: sakada.models registers its classes through this module
    from sakada.models.audit import AuditAction, AuditLog
    
    session = inspect(target).session
    context = current_audit_context(session) if session is not None else None
    connection.execute(
        AuditLog.__table__.insert().values(
            id=uuid.uuid4(),
            user_id=context.user_id if context else None,
            action=AuditAction(action),
            entity_type=target.__tablename__,
            entity_id=target.id,
            old_values=old_values,
            new_values=new_values,
            ip_address=context.ip_address if context else None,
            created_at=datetime.now(timezone.utc),
        )
    )


def _before_write(mapper, connection, target) -> None:
    # Cleared when the flush finishes or rolls back
    session = inspect(target).session
    if session is not None:
        session.info[FLUSHING_KEY] = True


def _after_insert(mapper, connection, target) -> None:
    _write_entry(connection, target, "INSERT", None, row_snapshot(target))


def _after_update(mapper, connection, target) -> None:
    _write_entry(
        connection, target, "UPDATE",
        previous_snapshot(target), row_snapshot(target),
    )


def _after_delete(mapper, connection, target) -> None:
    _write_entry(connection, target, "DELETE", row_snapshot(target), None)


def register_audited_model(model: type) -> None:
    """Attach the audit interceptor to a mapped class."""
    if model in _audited_models:
        return
    for name in ("before_insert", "before_update", "before_delete"):
        event.listen(model, name, _before_write, propagate=True)
    event.listen(model, "after_insert", _after_insert, propagate=True)
    event.listen(model, "after_update", _after_update, propagate=True)
    event.listen(model, "after_delete", _after_delete, propagate=True)
    _audited_models.add(model)
    _audited_tables.add(model.__tablename__)
    logger.debug("Audit interceptor attached to %s", model.__tablename__)


def is_audited(model: type) -> bool:
    return model in _audited_models


@event.listens_for(Session, "do_orm_execute")
def _refuse_bulk_writes(orm_execute_state) -> None:
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    table = getattr(orm_execute_state.statement, "table", None)
    if table is not None and table.name in _audited_tables:
        raise AuditBypassException(table.name)


# ===========================================
# DIRECT WRITE GUARD
# ===========================================

_DML_TARGET = re.compile(
    r'(?:\bINTO|(?<!FOR\s)\bUPDATE|\bDELETE\s+FROM)\s+(?:"?\w+"?\.)?"?(\w+)"?',
    re.IGNORECASE,
)


def written_tables(statement: str) -> Set[str]:
    """Tables an INSERT, UPDATE or DELETE statement writes to."""
    return {name.lower() for name in _DML_TARGET.findall(statement)}


@event.listens_for(Session, "after_begin")
def _link_connection(session, transaction, connection) -> None:
    connection.info[AUDIT_SESSION_KEY] = weakref.ref(session)


@event.listens_for(Session, "after_flush_postexec")
def _flush_finished(session, flush_context) -> None:
    session.info.pop(FLUSHING_KEY, None)


@event.listens_for(Session, "after_soft_rollback")
def _flush_abandoned(session, previous_transaction) -> None:
    session.info.pop(FLUSHING_KEY, None)


def _in_orm_flush(connection) -> bool:
    ref = connection.info.get(AUDIT_SESSION_KEY)
    session = ref() if ref is not None else None
    return session is not None and session.info.get(FLUSHING_KEY, False)


@event.listens_for(Engine, "before_cursor_execute")
def _refuse_direct_writes(connection, cursor, statement, parameters, context, executemany) -> None:
    # Covers Core statements, text() and exec_driver_sql on every engine
    touched = written_tables(statement) & _audited_tables
    if touched and not _in_orm_flush(connection):
        raise AuditBypassException(sorted(touched)[0])
