"""
Stagehand - Auditable Entity Mixins
===================================

What:  Column sets and lifecycle methods for audited, soft-deletable and
       activatable entities.
How:   Declarative mixins combined with the shared `Base`:

           class Item(AuditableMixin, SoftDeleteMixin, Base):
               __tablename__ = "items"
               id: Mapped[int] = mapped_column(primary_key=True)

       The mark_as_* methods enforce the lifecycle rules and raise
       AuditStateError subclasses when a transition is not allowed. Business
       code does not call them; the AuditInterceptor does at flush time.

Lifecycle rules:
    created_at   set once, only when the entity is first persisted
    updated_at   only after created_at exists
    is_deleted   False → True once per delete cycle; restorable to False
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, false
from sqlalchemy.orm import Mapped, mapped_column

from stagehand.exceptions import AlreadyCreatedError, AlreadyDeletedError, NotYetCreatedError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreatedAuditableMixin:
    created_by: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Id of the user who created the row",
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the row was first persisted (UTC)",
    )

    def mark_as_created(self, created_by: Optional[str]) -> None:
        if self.created_at is not None:
            raise AlreadyCreatedError(self)
        self.created_by = created_by
        self.created_at = utcnow()


class ModifiedAuditableMixin:
    updated_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_updated: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    def mark_as_updated(self, updated_by: Optional[str]) -> None:
        # Only entities that went through mark_as_created can be updated
        if getattr(self, "created_at", None) is None:
            raise NotYetCreatedError(self)
        self.updated_by = updated_by
        self.updated_at = utcnow()
        self.is_updated = True


class AuditableMixin(CreatedAuditableMixin, ModifiedAuditableMixin):
    """Created + modified stamping, the usual combination."""


class SoftDeleteMixin:
    is_deleted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
        index=True,
        comment="Soft-delete flag; reads exclude True rows unless asked not to",
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    def mark_as_deleted(self, deleted_by: Optional[str]) -> None:
        if self.is_deleted:
            raise AlreadyDeletedError(self)
        self.is_deleted = True
        self.deleted_at = utcnow()
        self.deleted_by = deleted_by

    def mark_as_not_deleted(self) -> None:
        self.is_deleted = False


class ActiveMixin:
    """Activation flag; None until the entity is first activated or deactivated."""

    is_active: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    activation_changed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    activation_changed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def mark_as_active(self, activated_by: Optional[str]) -> None:
        self.is_active = True
        self.activation_changed_by = activated_by
        self.activation_changed_at = utcnow()

    def mark_as_not_active(self, deactivated_by: Optional[str]) -> None:
        self.is_active = False
        self.activation_changed_by = deactivated_by
        self.activation_changed_at = utcnow()
