"""
Bonus Processing API Endpoints.

Trigger the batch that credits due pending bonuses, and inspect what is
waiting to be processed.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_db
from api.models import (
    ErrorResponse,
    PendingCustomerBonus,
    PendingCustomerResponse,
    ProcessBonusesResponse,
    ProcessedBonusResponse,
    ProcessingStatsBlock,
    ProcessingStatsResponse,
)
from domain.time import utc_now
from repositories.client import Client
from services.bonus_processing_service import get_processing_stats, process_pending_bonuses

logger = logging.getLogger(__name__)

router = APIRouter(responses={500: {"model": ErrorResponse, "description": "Storage or internal failure"}})


@router.post(
    "/process-bonuses",
    response_model=ProcessBonusesResponse,
    summary="Process Bonuses",
    description="Credit every pending bonus whose availability date has passed.",
)
def run_bonus_processing(client: Client = Depends(get_db)):
    """
    Run bonus processing now.

    Safe to call repeatedly: records already credited are never credited
    again, and a second call right after a full run processes nothing.
    """
    try:
        result = process_pending_bonuses(client)

        return ProcessBonusesResponse(
            message=result.message,
            processed_count=result.processed_count,
            processed_bonuses=[
                ProcessedBonusResponse(
                    phone_number=item.phone_number,
                    bonus_amount=item.bonus_amount,
                    sale_id=item.sale_id,
                )
                for item in result.processed_bonuses
            ],
            failed_count=result.failed_count,
            skipped_count=result.skipped_count,
        )

    except Exception:
        logger.exception("Failed to process bonuses")
        raise HTTPException(status_code=500, detail="Failed to process bonuses")


@router.get(
    "/process-bonuses",
    response_model=ProcessingStatsResponse,
    summary="Bonus Processing Stats",
    description="Pending/processed counts and a per-customer roll-up of pending bonuses.",
)
def get_bonus_processing_stats(client: Client = Depends(get_db)):
    try:
        now = utc_now()
        stats = get_processing_stats(client, now)

        return ProcessingStatsResponse(
            stats=ProcessingStatsBlock(
                total_pending=stats.total_pending,
                total_processed=stats.total_processed,
                ready_for_processing=stats.ready_for_processing,
                total_pending_amount=stats.total_pending_amount,
                ready_amount=stats.ready_amount,
            ),
            pending_customers=[
                PendingCustomerResponse(
                    phone_number=customer.phone_number,
                    full_name=customer.full_name,
                    total_bonuses=customer.total_bonuses,
                    total_purchases=customer.total_purchases,
                    bonuses=[
                        PendingCustomerBonus(
                            sale_id=bonus.sale_id,
                            bonus_amount=bonus.bonus_amount,
                            available_date=bonus.available_date,
                            is_ready=bonus.is_ready(now),
                        )
                        for bonus in customer.bonuses
                    ],
                )
                for customer in stats.pending_customers
            ],
        )

    except Exception:
        logger.exception("Failed to get bonus processing stats")
        raise HTTPException(status_code=500, detail="Failed to get stats")
