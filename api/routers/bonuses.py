"""
Bonus Ledger API Endpoints.

Endpoints for balance lookups, admin credits and redemptions.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_db
from api.models import (
    AddBonusesRequest,
    AddBonusesResponse,
    BonusBalanceResponse,
    DeductBonusesRequest,
    DeductBonusesResponse,
    ErrorResponse,
    UpdateNameRequest,
)
from domain.bonus import BonusAccount
from domain.errors import BonusSystemError
from repositories.client import Client
from services import bonus_ledger_service

logger = logging.getLogger(__name__)

router = APIRouter(responses={500: {"model": ErrorResponse, "description": "Storage or internal failure"}})


def _balance(account: BonusAccount) -> dict:
    return {
        "phone_number": account.phone_number,
        "full_name": account.full_name,
        "available_bonuses": account.available_bonuses,
        "total_bonuses": account.total_bonuses,
        "used_bonuses": account.used_bonuses,
        "last_updated": account.last_updated,
    }


@router.get(
    "/bonuses",
    response_model=BonusBalanceResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Look Up Bonus Balance",
    description="Balance by phone (creates an empty account for new customers) or by name.",
)
def get_bonus_balance(
    phone: Optional[str] = Query(None, description="Customer phone, +7 (XXX) XXX-XX-XX"),
    name: Optional[str] = Query(None, description="Part of the customer's full name"),
    client: Client = Depends(get_db),
):
    """
    Look up a customer's bonus balance.

    - By phone: a first-time customer gets a zero balance, never a 404.
    - By name: case-insensitive substring match; 404 if nobody matches.
    """
    if not phone and not (name and name.strip()):
        raise HTTPException(status_code=400, detail="Phone number or full name is required")

    try:
        if phone:
            account = bonus_ledger_service.lookup_by_phone(client, phone)
        else:
            account = bonus_ledger_service.lookup_by_name(client, name)
        return BonusBalanceResponse(**_balance(account))

    except BonusSystemError:
        raise
    except Exception:
        logger.exception("Failed to fetch bonuses")
        raise HTTPException(status_code=500, detail="Failed to fetch bonuses")


@router.get(
    "/bonuses/all",
    response_model=List[BonusBalanceResponse],
    summary="List Bonus Accounts",
    description="Every customer ledger, newest first (admin view).",
)
def get_all_bonuses(client: Client = Depends(get_db)):
    try:
        return [
            BonusBalanceResponse(**_balance(account))
            for account in bonus_ledger_service.list_all_accounts(client)
        ]
    except Exception:
        logger.exception("Failed to fetch all bonuses")
        raise HTTPException(status_code=500, detail="Failed to fetch bonuses")


@router.post(
    "/bonuses",
    response_model=AddBonusesResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Add Bonuses",
    description="Credit bonuses to a customer directly (admin).",
)
def add_bonuses(request: AddBonusesRequest, client: Client = Depends(get_db)):
    """
    Credit bonuses to a customer account, creating it if needed.

    **Example request:**
    ```json
    {"phoneNumber": "+7 (777) 123-12-12", "bonusesToAdd": 500}
    ```
    """
    try:
        account = bonus_ledger_service.credit(client, request.phone_number, request.bonuses_to_add)
        return AddBonusesResponse(**_balance(account), bonuses_added=request.bonuses_to_add)

    except BonusSystemError:
        raise
    except Exception:
        logger.exception("Failed to add bonuses")
        raise HTTPException(status_code=500, detail="Failed to add bonuses")


@router.post(
    "/bonuses/deduct",
    response_model=DeductBonusesResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Deduct Bonuses",
    description="Redeem bonuses from a customer's available balance.",
)
def deduct_bonuses(request: DeductBonusesRequest, client: Client = Depends(get_db)):
    """
    Redeem bonuses.

    Returns 404 if the customer has no account and 400 if the available
    balance is smaller than the requested amount.
    """
    try:
        account = bonus_ledger_service.deduct(client, request.phone_number, request.bonuses_to_deduct)
        return DeductBonusesResponse(**_balance(account), bonuses_deducted=request.bonuses_to_deduct)

    except BonusSystemError:
        raise
    except Exception:
        logger.exception("Failed to deduct bonuses")
        raise HTTPException(status_code=500, detail="Failed to deduct bonuses")


@router.post(
    "/bonuses/update-name",
    response_model=BonusBalanceResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Update Customer Name",
)
def update_customer_name(request: UpdateNameRequest, client: Client = Depends(get_db)):
    try:
        account = bonus_ledger_service.update_full_name(client, request.phone_number, request.full_name)
        return BonusBalanceResponse(**_balance(account))

    except BonusSystemError:
        raise
    except Exception:
        logger.exception("Failed to update full name")
        raise HTTPException(status_code=500, detail="Failed to update full name")
