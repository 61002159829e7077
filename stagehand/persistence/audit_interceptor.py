"""
Stagehand - Audit Interceptor
=============================

What:  Stamps audit columns and turns deletes into soft deletes, once per
       flush, before any SQL is emitted. Also filters soft-deleted rows out
       of every ORM read.
How:   Two SQLAlchemy session events on the session class:
       - before_flush: classifies session.new / session.dirty / session.deleted
         by entity mixin and applies the lifecycle methods. Stamping runs
         inside the flush, so it commits or rolls back with the unit of work.
       - do_orm_execute: adds `is_deleted IS false` criteria for every
         SoftDeleteMixin entity to SELECTs, unless the statement carries the
         `include_deleted` or `only_deleted` execution option.

Acting user: `session.info["acting_user"]` when set, otherwise the
acting_user_var ContextVar populated by ActingUserMiddleware.
"""

import logging
from typing import Optional, Type

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria
from sqlalchemy.sql import Select

from stagehand.middleware.acting_user import acting_user_var
from stagehand.models.audit import CreatedAuditableMixin, ModifiedAuditableMixin, SoftDeleteMixin

logger = logging.getLogger(__name__)

ACTING_USER_KEY = "acting_user"


def include_deleted(statement: Select) -> Select:
    """Read soft-deleted rows along with live ones."""
    return statement.execution_options(include_deleted=True)


def only_deleted(statement: Select) -> Select:
    """Read soft-deleted rows only."""
    return statement.execution_options(only_deleted=True)


class AuditInterceptor:
    def resolve_user(self, session: Session) -> Optional[str]:
        return session.info.get(ACTING_USER_KEY) or acting_user_var.get(None)

    def before_flush(self, session: Session, flush_context, instances) -> None:
        """
        Stamp pending entities; any AuditStateError aborts the flush.

        Order matters: modifications are stamped before deletions are
        converted, so a soft-deleted entity does not also get updated_* stamps.
        """
        user = self.resolve_user(session)

        for obj in list(session.new):
            if isinstance(obj, CreatedAuditableMixin):
                obj.mark_as_created(user)
            if isinstance(obj, SoftDeleteMixin):
                obj.mark_as_not_deleted()

        for obj in list(session.dirty):
            if isinstance(obj, ModifiedAuditableMixin) and session.is_modified(
                obj, include_collections=False
            ):
                obj.mark_as_updated(user)

        for obj in list(session.deleted):
            if isinstance(obj, SoftDeleteMixin):
                obj.mark_as_deleted(user)
                # Re-adding a pending delete cancels it; the row is UPDATEd instead
                session.add(obj)
                logger.debug("Converted delete of %r into a soft delete", obj)

    def filter_soft_deleted(self, execute_state: ORMExecuteState) -> None:
        if (
            not execute_state.is_select
            or execute_state.is_column_load
            or execute_state.is_relationship_load
        ):
            return

        options = execute_state.execution_options
        if options.get("only_deleted", False):
            execute_state.statement = execute_state.statement.options(
                with_loader_criteria(
                    SoftDeleteMixin,
                    lambda cls: cls.is_deleted.is_(True),
                    include_aliases=True,
                )
            )
        elif not options.get("include_deleted", False):
            execute_state.statement = execute_state.statement.options(
                with_loader_criteria(
                    SoftDeleteMixin,
                    lambda cls: cls.is_deleted.is_(False),
                    include_aliases=True,
                )
            )

    def install(self, session_class: Type[Session]) -> None:
        """Attach both hooks to `session_class` (idempotent)."""
        if not event.contains(session_class, "before_flush", self.before_flush):
            event.listen(session_class, "before_flush", self.before_flush)
        if not event.contains(session_class, "do_orm_execute", self.filter_soft_deleted):
            event.listen(session_class, "do_orm_execute", self.filter_soft_deleted)


audit_interceptor = AuditInterceptor()


class AuditedSession(Session):
    """Session class carrying the audit hooks; used as AsyncSession's sync session."""


audit_interceptor.install(AuditedSession)
