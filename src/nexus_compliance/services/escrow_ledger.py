"""Escrow ledger service - funds held against a contract.

Provides atomic funding and debit of per-contract escrow balances:
- Funding is one INSERT .. ON CONFLICT (contract_id) DO UPDATE statement that
  adds to both balance and deposited, so concurrent fundings never lose an
  increment
- Debits are one conditional UPDATE guarded by ``escrow_balance >= amount``
- Deposited never decreases; balance never goes negative
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_compliance.database import dialect_insert
from nexus_compliance.errors import InsufficientEscrowError, NotFoundError, ValidationError
from nexus_compliance.models import Contract, EscrowRecord, utcnow
from nexus_compliance.services.authorization import (
    AuthorizationGuard,
    Caller,
    RecordParties,
    Role,
)
from nexus_compliance.services.compliance_log import (
    ComplianceEventLog,
    ComplianceEventRecord,
    EventCategory,
    RequestContext,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class FundResult:
    """Result of a funding call.

    ``created`` is True when this call opened the escrow record for the
    contract, False when it added to an existing one.
    """

    escrow: EscrowRecord
    created: bool


def validate_amount(amount: Any) -> Decimal:
    """Coerce and validate a positive currency amount with at most 2 decimals."""
    if amount is None:
        raise ValidationError("amount required")
    try:
        value = Decimal(str(amount))
    except ArithmeticError:
        raise ValidationError("amount must be a decimal number", amount=str(amount)) from None
    if not value.is_finite() or value <= 0:
        raise ValidationError("amount must be positive", amount=str(amount))
    if value != value.quantize(CENT):
        raise ValidationError("amount must have at most 2 decimal places", amount=str(amount))
    return value.quantize(CENT)


class EscrowLedger:
    """Per-contract escrow balances."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        realm_context: str = "corp",
        legal_entity: str | None = None,
    ):
        self.session = session
        self.realm_context = realm_context
        self.legal_entity = legal_entity
        self.events = ComplianceEventLog(session, legal_entity=legal_entity)

    async def fund(
        self,
        caller: Caller,
        contract_id: UUID,
        amount: Any,
        context: RequestContext,
    ) -> FundResult:
        """Deposit funds into the contract's escrow.

        Raises:
            ValidationError: amount missing, non-positive or sub-cent
            NotFoundError: contract does not exist
            AuthorizationError: caller is not the contract client (or admin)
        """
        value = validate_amount(amount)

        contract = await self.session.get(Contract, contract_id)
        if contract is None:
            raise NotFoundError("contract", contract_id)

        role = AuthorizationGuard.require(
            caller,
            RecordParties(client_id=contract.client_id),
            (Role.CLIENT, Role.ADMIN),
            "fund escrow",
        )

        now = utcnow()
        table = EscrowRecord.__table__
        insert_stmt = dialect_insert(self.session, table).values(
            id=uuid4(),
            contract_id=contract.id,
            client_id=contract.client_id,
            creator_id=contract.creator_id,
            escrow_balance=value,
            funds_deposited=value,
            funds_released=Decimal("0"),
            status="funded",
            funded_at=now,
            created_at=now,
            updated_at=now,
        )
        upsert = insert_stmt.on_conflict_do_update(
            index_elements=[table.c.contract_id],
            set_={
                "escrow_balance": table.c.escrow_balance + insert_stmt.excluded.escrow_balance,
                "funds_deposited": table.c.funds_deposited + insert_stmt.excluded.funds_deposited,
                "status": "funded",
                "funded_at": insert_stmt.excluded.funded_at,
                "updated_at": insert_stmt.excluded.updated_at,
            },
        ).returning(table.c.id, table.c.funds_deposited)

        row = (await self.session.execute(upsert)).one()
        # deposited only equals this amount when the row was just inserted
        created = Decimal(str(row.funds_deposited)).quantize(CENT) == value

        escrow = await self._reload(row.id)
        await self.events.record(
            ComplianceEventRecord(
                entity_type="escrow",
                entity_id=escrow.id,
                event_type="escrow_funded",
                event_category=EventCategory.FINANCIAL,
                actor_id=caller.user_id,
                actor_role=role.value,
                realm_context=self.realm_context,
                description=f"Escrow funded with ${value}",
                payload={
                    "contract_id": contract.id,
                    "amount": value,
                    "created": created,
                },
                financial_amount=value,
                legal_entity=self.legal_entity,
            ),
            context,
        )

        logger.info(
            "Escrow for contract %s funded with %s by %s %s (created=%s)",
            contract.id,
            value,
            role.value,
            caller.user_id,
            created,
        )
        return FundResult(escrow=escrow, created=created)

    async def debit(
        self,
        caller: Caller,
        contract_id: UUID,
        amount: Any,
        context: RequestContext,
        *,
        reference: dict[str, Any] | None = None,
    ) -> EscrowRecord:
        """Release funds from escrow to pay out approved work.

        Decreases the balance and increases released; deposited is untouched.

        Raises:
            AuthorizationError: caller is not an admin
            NotFoundError: no escrow record for the contract
            InsufficientEscrowError: balance is lower than the amount
        """
        value = validate_amount(amount)
        AuthorizationGuard.require_admin(caller, "debit escrow")

        table = EscrowRecord.__table__
        result = await self.session.execute(
            update(table)
            .where(
                table.c.contract_id == contract_id,
                table.c.escrow_balance >= value,
            )
            .values(
                escrow_balance=table.c.escrow_balance - value,
                funds_released=table.c.funds_released + value,
                updated_at=utcnow(),
            )
            .returning(table.c.id)
        )
        escrow_id = result.scalar_one_or_none()
        if escrow_id is None:
            balance = await self.session.scalar(
                select(table.c.escrow_balance).where(table.c.contract_id == contract_id)
            )
            if balance is None:
                raise NotFoundError("escrow", contract_id, message="Escrow record not found")
            raise InsufficientEscrowError(
                "Escrow balance is insufficient for this debit",
                contract_id=contract_id,
                available=str(Decimal(str(balance)).quantize(CENT)),
                requested=str(value),
            )

        escrow = await self._reload(escrow_id)
        await self.events.record(
            ComplianceEventRecord(
                entity_type="escrow",
                entity_id=escrow.id,
                event_type="escrow_debited",
                event_category=EventCategory.FINANCIAL,
                actor_id=caller.user_id,
                actor_role=Role.ADMIN.value,
                realm_context=self.realm_context,
                description=f"Escrow debited ${value}",
                payload={"contract_id": contract_id, "amount": value, **(reference or {})},
                financial_amount=value,
                legal_entity=self.legal_entity,
            ),
            context,
        )
        logger.info("Escrow for contract %s debited %s", contract_id, value)
        return escrow

    async def list_for_caller(
        self,
        caller: Caller,
        contract_id: UUID | None = None,
    ) -> list[EscrowRecord]:
        """List escrow records visible to the caller, newest first.

        Admins see every record; everyone else sees records where they are
        the client or the talent. Returns an empty list when nothing matches.
        """
        query = select(EscrowRecord)
        if not caller.is_admin:
            query = query.where(
                or_(
                    EscrowRecord.client_id == caller.user_id,
                    EscrowRecord.creator_id == caller.user_id,
                )
            )
        if contract_id is not None:
            query = query.where(EscrowRecord.contract_id == contract_id)

        result = await self.session.execute(query.order_by(EscrowRecord.created_at.desc()))
        return list(result.scalars().all())

    async def get_for_contract(self, contract_id: UUID) -> EscrowRecord | None:
        """Get the escrow record of one contract, if funded at least once."""
        return await self.session.scalar(
            select(EscrowRecord)
            .where(EscrowRecord.contract_id == contract_id)
            .execution_options(populate_existing=True)
        )

    async def _reload(self, escrow_id: UUID) -> EscrowRecord:
        escrow = await self.session.scalar(
            select(EscrowRecord)
            .where(EscrowRecord.id == escrow_id)
            .execution_options(populate_existing=True)
        )
        if escrow is None:
            raise NotFoundError("escrow", escrow_id)
        return escrow
