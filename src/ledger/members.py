"""
Member Registry

Create, update and delete members. Member IDs are immutable; everything
else may be edited by an admin.

Deleting a member does not touch their payments. Those payments become
orphans: they still count towards weekly totals but no longer resolve to a
name. The registry reports how many were orphaned instead of cascading.
"""

from typing import Any, Optional
from uuid import UUID

import structlog

from src.audit import AuditLogger
from src.config import LedgerSettings, get_settings
from src.models.ledger import Member, utcnow
from src.services.storage import LedgerStorageInterface, NotFoundError
from src.validation import LedgerValidator, ValidationError


logger = structlog.get_logger(__name__)


class MemberRegistry:
    """Member lifecycle on top of the ledger store."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().ledger
        self._validator = validator or LedgerValidator(self._settings)
        self._audit_logger = audit_logger or AuditLogger()

    async def create(
        self,
        data: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Member:
        """
        Create a member from a raw body (name, phone, optional photo/active).

        Raises:
            ValidationError: If name or phone is missing
        """
        result = self._validator.validate_member(data)
        if not result.is_valid:
            raise ValidationError("member", result.issues)

        member = Member(**result.values)
        await self._storage.save_member(member)
        logger.info("member_created", member_id=str(member.id))
        await self._audit_logger.log_member_created(member, correlation_id=correlation_id)
        return member

    async def get(self, member_id: UUID) -> Member:
        """
        Raises:
            NotFoundError: If the member doesn't exist
        """
        member = await self._storage.get_member(member_id)
        if member is None:
            raise NotFoundError(f"Member not found: {member_id}")
        return member

    async def update(
        self,
        member_id: UUID,
        data: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Member:
        """
        Apply a partial update. Unknown keys (including id) are ignored.

        Raises:
            ValidationError: If a provided field is invalid
            NotFoundError: If the member doesn't exist
        """
        result = self._validator.validate_member(data, partial=True)
        if not result.is_valid:
            raise ValidationError("member", result.issues)

        member = await self.get(member_id)
        changes = {
            field: value
            for field, value in result.values.items()
            if getattr(member, field) != value
        }
        updated = member.model_copy(update={**changes, "updated_at": utcnow()})
        await self._storage.update_member(updated)

        await self._audit_logger.log_member_updated(
            updated,
            changed_fields=sorted(changes),
            correlation_id=correlation_id,
        )
        return updated

    async def delete(
        self,
        member_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Member:
        """
        Delete a member. Their payments are left in place.

        Raises:
            NotFoundError: If the member doesn't exist
        """
        member = await self.get(member_id)
        orphaned = len(await self._storage.list_payments(member_id=member_id))
        if not await self._storage.delete_member(member_id):
            raise NotFoundError(f"Member not found: {member_id}")

        if orphaned:
            logger.warning(
                "member_deleted_with_payments",
                member_id=str(member_id),
                orphaned_payments=orphaned,
            )
        await self._audit_logger.log_member_deleted(
            member,
            orphaned_payments=orphaned,
            correlation_id=correlation_id,
        )
        return member

    async def list_all(self) -> list[Member]:
        """All members, sorted by name."""
        return await self._storage.list_members()
