"""Store credit balance movements."""

import logging
from decimal import Decimal
from typing import Optional

from produce_app.models.v1.store import Store, StoreCreditEntry
from produce_app.services.money import money, to_decimal

logger = logging.getLogger(__name__)


def post_credit(store: Store, amount, entry_type: str, reason: str,
                reference_id: Optional[int] = None, reference_model: Optional[str] = None,
                actor=None) -> StoreCreditEntry:
    """Add a signed amount to the store's credit balance and record it.

    The caller commits. A negative resulting balance is allowed but logged.
    """
    amount = money(amount)
    before = to_decimal(store.credit_balance)
    after = money(before + amount)

    entry = StoreCreditEntry(
        entry_type=entry_type,
        amount=amount,
        reference_id=reference_id,
        reference_model=reference_model,
        reason=reason,
        balance_before=before,
        balance_after=after,
        performed_by=getattr(actor, "id", None),
        performed_by_name=getattr(actor, "name", None) or "System",
    )
    store.credit_history.append(entry)
    store.credit_balance = after

    logger.info(f"Store credit {entry_type} {store.display_name}: {before} -> {after}")
    if after < Decimal("0"):
        logger.warning(f"Store {store.id} credit balance is negative: {after}")
    return entry
