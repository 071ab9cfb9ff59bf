"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from domain.phone import INVALID_PHONE_MESSAGE, is_canonical_phone


class ApiModel(BaseModel):
    """Base model: camelCase aliases, construction by field name allowed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _canonical_phone(value: str) -> str:
    if not is_canonical_phone(value):
        raise ValueError(INVALID_PHONE_MESSAGE)
    return value


# ============================================================================
# Sale Models
# ============================================================================

class SaleItemRequest(ApiModel):
    """One product line of a sale request."""
    product_id: str = Field(..., min_length=1, description="Product identifier")
    quantity: int = Field(..., gt=0, description="Units sold (must be positive)")


class CreateSaleRequest(ApiModel):
    """Request to record a sale."""
    customer_phone: str = Field(..., description="Customer phone, +7 (XXX) XXX-XX-XX")
    customer_full_name: Optional[str] = None
    items: List[SaleItemRequest] = Field(..., min_length=1)

    @field_validator("customer_phone")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return _canonical_phone(value)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "customerPhone": "+7 (777) 123-12-12",
                "customerFullName": "Aigerim Nurlanovna",
                "items": [{"productId": "kit-robotics-01", "quantity": 2}],
            }
        }
    )


class SaleItemResponse(ApiModel):
    product_id: str
    product_name: str
    price: Decimal
    sale_price: Optional[Decimal] = None
    quantity: int
    total_price: Decimal


class SaleResponse(ApiModel):
    """Single sale in API responses."""
    sale_id: UUID
    customer_phone: str
    customer_full_name: Optional[str] = None
    items: List[SaleItemResponse]
    total_amount: Decimal
    bonuses_earned: int
    bonus_status: str  # "pending" or "credited"
    bonus_available_date: datetime
    sale_date: datetime


class CustomerBonusesResponse(ApiModel):
    available_bonuses: int
    total_bonuses: int
    used_bonuses: int


class PendingBonusInfoResponse(ApiModel):
    amount: int
    available_date: datetime


class CreateSaleResponse(ApiModel):
    """Response after a sale is recorded."""
    sale: SaleResponse
    customer_bonuses: CustomerBonusesResponse
    pending_bonus: PendingBonusInfoResponse


class PaginationResponse(ApiModel):
    current_page: int
    total_pages: int
    total_sales: int
    has_next_page: bool
    has_prev_page: bool


class SaleListResponse(ApiModel):
    sales: List[SaleResponse]
    pagination: PaginationResponse


# ============================================================================
# Bonus Ledger Models
# ============================================================================

class BonusBalanceResponse(ApiModel):
    """Customer ledger snapshot."""
    phone_number: str
    full_name: Optional[str] = None
    available_bonuses: int
    total_bonuses: int
    used_bonuses: int
    last_updated: Optional[datetime] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "phoneNumber": "+7 (777) 123-12-12",
                "fullName": "Aigerim Nurlanovna",
                "availableBonuses": 450,
                "totalBonuses": 600,
                "usedBonuses": 150,
                "lastUpdated": "2025-01-01T12:00:00Z",
            }
        }
    )


class AddBonusesRequest(ApiModel):
    """Admin credit of bonuses."""
    phone_number: str
    bonuses_to_add: int = Field(..., ge=0)

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return _canonical_phone(value)


class AddBonusesResponse(BonusBalanceResponse):
    bonuses_added: int


class DeductBonusesRequest(ApiModel):
    """Redemption of bonuses."""
    phone_number: str
    bonuses_to_deduct: int = Field(..., gt=0)

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return _canonical_phone(value)


class DeductBonusesResponse(BonusBalanceResponse):
    bonuses_deducted: int


class UpdateNameRequest(ApiModel):
    phone_number: str
    full_name: str = Field(..., min_length=1)

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return _canonical_phone(value)


# ============================================================================
# Pending Bonus Models
# ============================================================================

class PendingBonusResponse(ApiModel):
    pending_bonus_id: UUID
    phone_number: str
    full_name: Optional[str] = None
    sale_id: UUID
    bonus_amount: int
    available_date: datetime
    is_processed: bool


class PendingBonusesView(ApiModel):
    available: List[PendingBonusResponse]
    upcoming: List[PendingBonusResponse]
    total_available: int
    total_upcoming: int


class PendingBonusesResponse(ApiModel):
    pending_bonuses: PendingBonusesView


# ============================================================================
# Bonus Processing Models
# ============================================================================

class ProcessedBonusResponse(ApiModel):
    phone_number: str
    bonus_amount: int
    sale_id: UUID


class ProcessBonusesResponse(ApiModel):
    """Result of a batch run."""
    message: str
    processed_count: int
    processed_bonuses: List[ProcessedBonusResponse]
    failed_count: int = 0
    skipped_count: int = 0


class ProcessingStatsBlock(ApiModel):
    total_pending: int
    total_processed: int
    ready_for_processing: int
    total_pending_amount: int
    ready_amount: int


class PendingCustomerBonus(ApiModel):
    sale_id: UUID
    bonus_amount: int
    available_date: datetime
    is_ready: bool


class PendingCustomerResponse(ApiModel):
    phone_number: str
    full_name: Optional[str] = None
    total_bonuses: int
    total_purchases: int
    bonuses: List[PendingCustomerBonus]


class ProcessingStatsResponse(ApiModel):
    stats: ProcessingStatsBlock
    pending_customers: List[PendingCustomerResponse]


# ============================================================================
# Error Models
# ============================================================================

class FieldErrorResponse(BaseModel):
    """One rejected request field."""
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error response; `errors` is only set for malformed request bodies."""
    detail: str
    errors: Optional[List[FieldErrorResponse]] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "detail": "Insufficient bonuses. Available: 100, Requested: 150",
            }
        }
    )
