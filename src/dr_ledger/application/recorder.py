"""LedgerRecorder: the only writer of billing_records.

`record` never commits. It is always called inside the transaction that
mutates the balance, so a failed insert rolls the balance write back too.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.dr_common.enums import BillType
from src.dr_common.errors import InternalError, ValidationError
from src.dr_common.id_generator import generate_bill_no
from src.dr_common.money import ZERO
from src.dr_ledger.domain.models import BillingRecord, LedgerDraft
from src.dr_ledger.domain.repository import LedgerRepositoryProtocol
from src.dr_ledger.domain.truncation import (
    BUSINESS_ID_MAX_LENGTH,
    CONSUMER_MAX_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    bound_extra_data,
    truncate_text,
)
from src.dr_ledger.infrastructure.persistence import LedgerRepository


class LedgerRecorder:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol | None = None,
        text_max_length: int | None = None,
        extra_max_length: int | None = None,
    ) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()
        self._description_max = min(
            text_max_length or settings.LEDGER_TEXT_MAX_LENGTH, DESCRIPTION_MAX_LENGTH
        )
        self._extra_max = extra_max_length or settings.LEDGER_EXTRA_MAX_LENGTH

    @property
    def repo(self) -> LedgerRepositoryProtocol:
        return self._repo

    async def record(self, db: AsyncSession, draft: LedgerDraft) -> BillingRecord:
        if draft.amount <= ZERO:
            raise ValidationError(f"Billing record amount must be > 0, got {draft.amount}")
        sign = -1 if draft.bill_type == BillType.CONSUME else 1
        if draft.balance_before + sign * draft.amount != draft.balance_after:
            raise InternalError(
                f"Billing snapshot mismatch for {draft.user_id}: "
                f"{draft.balance_before} {draft.bill_type.value} {draft.amount} "
                f"!= {draft.balance_after}"
            )
        draft.description = truncate_text(draft.description, self._description_max)
        draft.consumer = truncate_text(draft.consumer, CONSUMER_MAX_LENGTH)
        draft.business_id = truncate_text(draft.business_id, BUSINESS_ID_MAX_LENGTH)
        draft.extra_data = bound_extra_data(draft.extra_data, self._extra_max)
        return await self._repo.insert(db, draft, generate_bill_no())
