"""
Sales API Endpoints.

Endpoints for recording sales and browsing sales history.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_bonus_policy, get_db
from api.models import (
    CreateSaleRequest,
    CreateSaleResponse,
    CustomerBonusesResponse,
    ErrorResponse,
    PaginationResponse,
    PendingBonusInfoResponse,
    SaleItemResponse,
    SaleListResponse,
    SaleResponse,
)
from domain.bonus_policy import BonusPolicy
from domain.errors import BonusSystemError
from domain.sale import SaleRecord
from repositories.client import Client
from services.sale_service import SaleLineRequest, SaleRequest, list_sales, record_sale

logger = logging.getLogger(__name__)

router = APIRouter(responses={500: {"model": ErrorResponse, "description": "Storage or internal failure"}})


def _sale_response(sale: SaleRecord) -> SaleResponse:
    return SaleResponse(
        sale_id=sale.sale_id,
        customer_phone=sale.customer_phone,
        customer_full_name=sale.customer_full_name,
        items=[
            SaleItemResponse(
                product_id=item.product_id,
                product_name=item.product_name,
                price=item.price,
                sale_price=item.sale_price,
                quantity=item.quantity,
                total_price=item.total_price,
            )
            for item in sale.items
        ],
        total_amount=sale.total_amount,
        bonuses_earned=sale.bonuses_earned,
        bonus_status=sale.bonus_status.value,
        bonus_available_date=sale.bonus_available_date,
        sale_date=sale.sale_date,
    )


@router.post(
    "/sales",
    response_model=CreateSaleResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Record Sale",
    description="Record a sale, decrement stock and schedule the customer's bonus.",
)
def create_sale(
    request: CreateSaleRequest,
    client: Client = Depends(get_db),
    policy: BonusPolicy = Depends(get_bonus_policy),
):
    """
    Record a sale for a customer phone.

    **Process:**
    1. Validates the phone format and every line item
    2. Checks every product exists and has enough stock
    3. In one transaction: decrements stock, stores the sale with a price
       snapshot of every line and schedules its bonus
    4. The bonus is credited by bonus processing once available

    **Example request:**
    ```json
    {
      "customerPhone": "+7 (777) 123-12-12",
      "customerFullName": "Aigerim Nurlanovna",
      "items": [{"productId": "kit-robotics-01", "quantity": 2}]
    }
    ```
    """
    try:
        service_request = SaleRequest(
            customer_phone=request.customer_phone,
            customer_full_name=request.customer_full_name,
            items=[
                SaleLineRequest(product_id=item.product_id, quantity=item.quantity)
                for item in request.items
            ],
        )

        receipt = record_sale(client, service_request, policy=policy)

        return CreateSaleResponse(
            sale=_sale_response(receipt.sale),
            customer_bonuses=CustomerBonusesResponse(
                available_bonuses=receipt.customer_bonuses.available_bonuses,
                total_bonuses=receipt.customer_bonuses.total_bonuses,
                used_bonuses=receipt.customer_bonuses.used_bonuses,
            ),
            pending_bonus=PendingBonusInfoResponse(
                amount=receipt.pending_bonus.amount,
                available_date=receipt.pending_bonus.available_date,
            ),
        )

    except BonusSystemError:
        raise
    except Exception:
        logger.exception("Failed to create sale")
        raise HTTPException(status_code=500, detail="Failed to create sale")


@router.get(
    "/sales",
    response_model=SaleListResponse,
    responses={400: {"model": ErrorResponse}},
    summary="List Sales",
    description="Sales history, newest first, optionally filtered by customer phone.",
)
def get_sales(
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    limit: int = Query(20, ge=1, le=100, description="Sales per page"),
    phone: Optional[str] = Query(None, description="Customer phone in any format (matched by digits)"),
    client: Client = Depends(get_db),
):
    """
    List sales with pagination.

    **Example usage:**
    - All sales: `GET /api/sales`
    - One customer: `GET /api/sales?phone=%2B7%20(777)%20123-12-12`
    - Second page: `GET /api/sales?page=2&limit=50`
    """
    try:
        result = list_sales(client, phone=phone, page=page, limit=limit)

        return SaleListResponse(
            sales=[_sale_response(sale) for sale in result.sales],
            pagination=PaginationResponse(
                current_page=result.current_page,
                total_pages=result.total_pages,
                total_sales=result.total_sales,
                has_next_page=result.has_next_page,
                has_prev_page=result.has_prev_page,
            ),
        )

    except BonusSystemError:
        raise
    except Exception:
        logger.exception("Failed to fetch sales (phone=%s, page=%s, limit=%s)", phone, page, limit)
        raise HTTPException(status_code=500, detail="Failed to fetch sales")
