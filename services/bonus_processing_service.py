"""
Bonus processing service.

Promotes pending bonuses whose eligibility date has passed into the
customers' ledgers. Safe to run on demand, from cron, and concurrently with
itself.

Each ready record is credited by one database transaction
(credit_pending_bonus) that flips is_processed, adds the amount to the
ledger and flags the originating sale. A record another run already
credited is skipped; a record whose transaction failed stays unprocessed
and is retried on the next run.

One failing record never aborts the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from domain.pending_bonus import PendingBonus, ProcessingStats, summarize_processing
from domain.time import utc_now
from repositories.client import Client
from repositories.pending_bonus_repository import (
    ALREADY_PROCESSED,
    credit_pending_bonus_atomic,
    list_all_pending_bonuses,
)
from services.pending_bonus_service import find_ready_for_processing

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProcessedBonus:
    phone_number: str
    bonus_amount: int
    sale_id: UUID


@dataclass(frozen=True, slots=True)
class ProcessingResult:
    """
    Outcome of one batch run.

    processed_bonuses: records credited by this run
    skipped_count: records another run credited first
    failed_count: records left unprocessed after an error
    """
    processed_bonuses: List[ProcessedBonus] = field(default_factory=list)
    skipped_count: int = 0
    failed_count: int = 0

    @property
    def processed_count(self) -> int:
        return len(self.processed_bonuses)

    @property
    def message(self) -> str:
        if not self.processed_bonuses and not self.failed_count and not self.skipped_count:
            return "No bonuses ready for processing"

        message = f"Processed {self.processed_count} bonuses"
        if self.failed_count:
            message += f", {self.failed_count} failed"
        if self.skipped_count:
            message += f", {self.skipped_count} already processed"
        return message


def _process_one(client: Client, pending: PendingBonus, now: datetime) -> bool:
    """
    Credit a single pending bonus.

    Returns:
        True if credited by this call, False if already credited elsewhere

    Raises:
        RuntimeError: If the crediting transaction failed (nothing was changed)
    """

    result = credit_pending_bonus_atomic(client, pending.pending_bonus_id, now)
    if result.success:
        return True
    if result.error_code == ALREADY_PROCESSED:
        return False
    raise RuntimeError(
        f"Failed to credit pending bonus {pending.pending_bonus_id}: "
        f"{result.error_message or result.error_code}"
    )


def process_pending_bonuses(client: Client, now: Optional[datetime] = None) -> ProcessingResult:
    """
    Credit every unprocessed pending bonus whose available date is <= now.

    Args:
        client: Supabase client
        now: Reference time (UTC); defaults to the current time

    Returns:
        ProcessingResult listing the credited records

    Example:
        result = process_pending_bonuses(client)
        print(f"Processed {result.processed_count} bonuses")
    """
    now = now or utc_now()
    ready = find_ready_for_processing(client, now)

    if not ready:
        logger.info("No bonuses ready for processing")
        return ProcessingResult()

    logger.info("Found %s bonuses ready for processing", len(ready))

    processed: List[ProcessedBonus] = []
    skipped = 0
    failed = 0

    for pending in ready:
        try:
            if not _process_one(client, pending, now):
                logger.warning("Pending bonus %s already processed, skipping", pending.pending_bonus_id)
                skipped += 1
                continue
        except Exception:
            logger.exception("Failed to process bonus for %s", pending.phone_number)
            failed += 1
            continue

        processed.append(ProcessedBonus(
            phone_number=pending.phone_number,
            bonus_amount=pending.bonus_amount,
            sale_id=pending.sale_id,
        ))
        logger.info("Processed bonus for %s: %s bonuses", pending.phone_number, pending.bonus_amount)

    logger.info(
        "Bonus processing completed: %s processed, %s skipped, %s failed",
        len(processed), skipped, failed,
    )
    return ProcessingResult(processed_bonuses=processed, skipped_count=skipped, failed_count=failed)


def get_processing_stats(client: Client, now: Optional[datetime] = None) -> ProcessingStats:
    """Counts, amounts and per-customer roll-up of pending bonuses."""

    now = now or utc_now()
    return summarize_processing(list_all_pending_bonuses(client), now)


__all__ = [
    "ProcessedBonus",
    "ProcessingResult",
    "process_pending_bonuses",
    "get_processing_stats",
]
