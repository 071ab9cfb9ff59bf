"""
Pending Bonuses API Endpoints.

Read-only view of a customer's bonuses that are not yet in the ledger.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_db
from api.models import (
    ErrorResponse,
    PendingBonusesResponse,
    PendingBonusesView,
    PendingBonusResponse,
)
from domain.errors import BonusSystemError
from domain.pending_bonus import PendingBonus
from repositories.client import Client
from services.pending_bonus_service import find_by_name, find_by_phone

logger = logging.getLogger(__name__)

router = APIRouter(responses={500: {"model": ErrorResponse, "description": "Storage or internal failure"}})


def _pending_response(pending: PendingBonus) -> PendingBonusResponse:
    return PendingBonusResponse(
        pending_bonus_id=pending.pending_bonus_id,
        phone_number=pending.phone_number,
        full_name=pending.full_name,
        sale_id=pending.sale_id,
        bonus_amount=pending.bonus_amount,
        available_date=pending.available_date,
        is_processed=pending.is_processed,
    )


@router.get(
    "/pending-bonuses",
    response_model=PendingBonusesResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Pending Bonuses",
    description="Unprocessed bonuses split into available now and upcoming.",
)
def get_pending_bonuses(
    phone: Optional[str] = Query(None, description="Customer phone in any format (matched by digits)"),
    name: Optional[str] = Query(None, description="Part of the customer's full name"),
    client: Client = Depends(get_db),
):
    """
    Pending bonuses for a customer.

    `available` holds bonuses whose date has passed but that bonus processing
    has not credited yet; `upcoming` holds bonuses still waiting for their date.
    """
    if not phone and not (name and name.strip()):
        raise HTTPException(status_code=400, detail="Phone number or full name is required")

    try:
        summary = find_by_phone(client, phone) if phone else find_by_name(client, name)

        return PendingBonusesResponse(
            pending_bonuses=PendingBonusesView(
                available=[_pending_response(p) for p in summary.available],
                upcoming=[_pending_response(p) for p in summary.upcoming],
                total_available=summary.total_available,
                total_upcoming=summary.total_upcoming,
            )
        )

    except BonusSystemError:
        raise
    except Exception:
        logger.exception("Failed to fetch pending bonuses")
        raise HTTPException(status_code=500, detail="Failed to fetch pending bonuses")
