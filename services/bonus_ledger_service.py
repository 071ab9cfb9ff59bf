"""
Bonus ledger service.

Maintains the authoritative per-customer balance:
- credit: find-or-create by phone, add to total_bonuses
- deduct: redeem from available_bonuses (fails if the customer is unknown
  or the balance is insufficient)
- lookups by phone (creates a zero-balance row) or by name (404 if unknown)

Customers are matched by phone digits, so "+7 (777) 123-12-12" and
"7 777 123 12 12" resolve to the same ledger row. New rows are only created
for phones in the canonical format.

Every write is an optimistic update retried a bounded number of times.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from domain.bonus import BonusAccount
from domain.errors import ConcurrencyError, NotFoundError, ValidationError
from domain.phone import INVALID_PHONE_MESSAGE, extract_digits, is_canonical_phone
from domain.time import utc_now
from repositories.bonus_repository import (
    get_account_by_phone_digits,
    insert_account,
    list_accounts,
    list_accounts_by_name,
    update_account,
)
from repositories.client import Client

logger = logging.getLogger(__name__)

_MAX_WRITE_ATTEMPTS = 5


def _require_canonical(phone: str) -> None:
    if not is_canonical_phone(phone):
        raise ValidationError(INVALID_PHONE_MESSAGE)


def get_or_create_account(client: Client, phone: str, now: Optional[datetime] = None) -> BonusAccount:
    """
    Return the ledger row for `phone`, creating a zero-balance row if none exists.

    Raises:
        ValidationError: If a row must be created and `phone` is not canonical
        ConcurrencyError: If concurrent inserts keep racing this one
    """

    now = now or utc_now()
    digits = extract_digits(phone)

    for _ in range(_MAX_WRITE_ATTEMPTS):
        account = get_account_by_phone_digits(client, digits)
        if account is not None:
            return account

        _require_canonical(phone)
        account = BonusAccount(bonus_id=uuid4(), phone_number=phone, last_updated=now)
        if insert_account(client, account):
            logger.info("Created bonus account for %s", phone)
            return account

    raise ConcurrencyError(f"Could not create bonus account for {phone}")


def lookup_by_phone(client: Client, phone: str, now: Optional[datetime] = None) -> BonusAccount:
    """
    Ledger lookup by phone.

    First-time customers get a persisted zero-balance row rather than a 404.
    """

    _require_canonical(phone)
    return get_or_create_account(client, phone, now)


def lookup_by_name(client: Client, name: str) -> BonusAccount:
    """
    Ledger lookup by case-insensitive substring of the full name.

    When several customers match, the most recently updated one wins.

    Raises:
        NotFoundError: If no ledger row matches
    """

    query = name.strip()
    if not query:
        raise ValidationError("Phone number or full name is required")

    matches = list_accounts_by_name(client, query)
    if not matches:
        raise NotFoundError("Customer not found")
    return matches[0]


def list_all_accounts(client: Client) -> List[BonusAccount]:
    return list_accounts(client)


def credit(
    client: Client,
    phone: str,
    amount: int,
    full_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> BonusAccount:
    """
    Add `amount` to a customer's total bonuses.

    The ledger row is created if needed. An existing full name is preserved;
    otherwise `full_name` is adopted.

    Raises:
        ValidationError: If amount is negative, or a row must be created for a non-canonical phone
        ConcurrencyError: If optimistic retries are exhausted
    """

    if amount < 0:
        raise ValidationError("Bonuses to add must be positive")

    now = now or utc_now()
    digits = extract_digits(phone)

    for _ in range(_MAX_WRITE_ATTEMPTS):
        current = get_account_by_phone_digits(client, digits)

        if current is None:
            _require_canonical(phone)
            created = BonusAccount(
                bonus_id=uuid4(),
                phone_number=phone,
                total_bonuses=amount,
                full_name=(full_name or "").strip() or None,
                last_updated=now,
            )
            if insert_account(client, created):
                logger.info("Credited %s bonuses to new account %s", amount, phone)
                return created
            continue

        updated = current.credited(amount, now, full_name=(full_name or "").strip() or None)
        if update_account(client, updated, expected=current):
            logger.info(
                "Credited %s bonuses to %s (available: %s)",
                amount, current.phone_number, updated.available_bonuses,
            )
            return updated

        logger.warning("Bonus account %s changed concurrently, retrying credit", current.phone_number)

    raise ConcurrencyError(f"Could not credit bonuses for {phone}")


def deduct(client: Client, phone: str, amount: int, now: Optional[datetime] = None) -> BonusAccount:
    """
    Redeem `amount` from a customer's available bonuses.

    Deducting exactly the available balance is allowed and leaves zero.

    Raises:
        ValidationError: If amount is not positive
        NotFoundError: If no ledger row matches the phone digits
        InsufficientBonusesError: If amount exceeds the available balance
        ConcurrencyError: If optimistic retries are exhausted
    """

    if amount <= 0:
        raise ValidationError("Bonuses to deduct must be positive")

    now = now or utc_now()
    digits = extract_digits(phone)

    for _ in range(_MAX_WRITE_ATTEMPTS):
        current = get_account_by_phone_digits(client, digits)
        if current is None:
            raise NotFoundError("Customer not found in bonus system")

        updated = current.deducted(amount, now)
        if update_account(client, updated, expected=current):
            logger.info(
                "Deducted %s bonuses from %s (available: %s)",
                amount, current.phone_number, updated.available_bonuses,
            )
            return updated

        logger.warning("Bonus account %s changed concurrently, retrying deduction", current.phone_number)

    raise ConcurrencyError(f"Could not deduct bonuses for {phone}")


def update_full_name(
    client: Client,
    phone: str,
    full_name: str,
    now: Optional[datetime] = None,
) -> BonusAccount:
    """
    Set the full name on an existing ledger row.

    Raises:
        ValidationError: If the name is blank
        NotFoundError: If the customer has no ledger row
    """

    now = now or utc_now()
    digits = extract_digits(phone)

    for _ in range(_MAX_WRITE_ATTEMPTS):
        current = get_account_by_phone_digits(client, digits)
        if current is None:
            raise NotFoundError("Customer not found")

        updated = current.renamed(full_name, now)
        if update_account(client, updated, expected=current):
            return updated

    raise ConcurrencyError(f"Could not update name for {phone}")


__all__ = [
    "get_or_create_account",
    "lookup_by_phone",
    "lookup_by_name",
    "list_all_accounts",
    "credit",
    "deduct",
    "update_full_name",
]
