"""
Ledger Mutation Engine

Every public function here is a state transition (document, intent) -> document.
The input document is never modified; when an intent changes nothing the
very same document object is returned, so callers can test `new is doc` to
decide whether anything needs saving.

Guards:
- Invalid input raises IntentRejectedError before anything is built.
- Deleting or toggling in a month before `current_month` is a silent no-op.
  The current month is passed in, the engine never reads the clock.

Month buckets that become empty are dropped from the mapping. An absent key
means "never populated"; propagation and add_expense rely on the difference.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any, Optional, TypeVar, Union

import structlog
from pydantic import ValidationError

from ledger.dates import is_past_month, month_key, parse_day, parse_month_key
from ledger.engine.propagation import LOOKBACK_MONTHS, resolve_recurring
from ledger.models.ledger import (
    Expense,
    LedgerDocument,
    ValidationIssue,
    ValidationResult,
    VaultItem,
)
from ledger.validation.validator import IntentRejectedError, IntentValidator, to_money

logger = structlog.get_logger(__name__)

_validator = IntentValidator()

T = TypeVar("T")


def _with_bucket(
    buckets: Mapping[str, tuple[T, ...]],
    month: str,
    items: Iterable[T],
) -> dict[str, tuple[T, ...]]:
    """Copy of `buckets` with `month` replaced by `items`; the key is dropped when empty."""
    updated = dict(buckets)
    items = tuple(items)
    if items:
        updated[month] = items
    else:
        updated.pop(month, None)
    return updated


# =============================================================================
# PROPAGATION
# =============================================================================

def missing_occurrences(
    doc: LedgerDocument,
    month: str,
    lookback: int = LOOKBACK_MONTHS,
) -> list[Expense]:
    """
    Recurring expenses that should be in `month` but are not.

    Excludes ids already in the bucket and ids tombstoned for that month.
    """
    existing_ids = {expense.id for expense in doc.expenses_for(month)}
    deleted_ids = doc.tombstones_for(month)
    return [
        expense
        for expense in resolve_recurring(month, doc.expenses_by_month, lookback)
        if expense.id not in existing_ids and expense.id not in deleted_ids
    ]


def ensure_month_populated(
    doc: LedgerDocument,
    month: str,
    lookback: int = LOOKBACK_MONTHS,
) -> LedgerDocument:
    """
    Materialize the recurring expenses of `month`.

    Missing occurrences are appended after the existing ones, in the order
    the ancestor month lists them. Idempotent: a second call finds nothing
    missing and returns `doc` itself.
    """
    missing = missing_occurrences(doc, month, lookback)
    if not missing:
        return doc

    bucket = (*doc.expenses_for(month), *missing)
    return doc.model_copy(update={
        "expenses_by_month": _with_bucket(doc.expenses_by_month, month, bucket),
    })


# =============================================================================
# EXPENSE INTENTS
# =============================================================================

def expense_target_month(expense: Expense, viewed_month: str) -> str:
    """
    Month an added expense is recorded in.

    An installment always starts life in its start month, whatever month
    the user was looking at when creating it.
    """
    if expense.is_installment and expense.start:
        start = parse_day(expense.start)
        if start is not None:
            return month_key(start)
    return viewed_month


def add_expense(
    doc: LedgerDocument,
    expense: Expense,
    viewed_month: str,
    lookback: int = LOOKBACK_MONTHS,
) -> LedgerDocument:
    """
    Append `expense` to its target month.

    A target month that was never populated is first seeded with the
    recurring expenses it inherits, so creating an expense in a month nobody
    has opened yet does not leave it without its fixed expenses.

    Raises:
        IntentRejectedError: if the expense fails validation
    """
    target = expense_target_month(expense, viewed_month)

    bucket = doc.expenses_by_month.get(target)
    if bucket is None:
        bucket = tuple(missing_occurrences(doc, target, lookback))

    _validator.ensure_valid(_validator.validate_expense(expense, bucket))

    return doc.model_copy(update={
        "expenses_by_month": _with_bucket(doc.expenses_by_month, target, (*bucket, expense)),
    })


def _apply_changes(current: Expense, changes: Mapping[str, Any]) -> Expense:
    """Build the edited expense, reporting bad fields as a rejected intent."""
    unknown = sorted(set(changes) - set(Expense.model_fields))
    if unknown:
        raise IntentRejectedError(ValidationResult(
            intent="edit_expense",
            issues=[
                ValidationIssue(
                    field=name,
                    issue_type="unknown_field",
                    message=f"Expenses have no field {name!r}",
                )
                for name in unknown
            ],
        ))

    merged = current.model_dump()
    merged.update(changes)
    merged["id"] = current.id
    if not merged["is_installment"]:
        merged["start"] = None
        merged["end"] = None

    try:
        return Expense.model_validate(merged)
    except ValidationError as e:
        raise IntentRejectedError(ValidationResult(
            intent="edit_expense",
            issues=[
                ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or "expense",
                    issue_type="invalid_value",
                    message=error["msg"],
                )
                for error in e.errors()
            ],
        )) from e


def edit_expense(
    doc: LedgerDocument,
    expense_id: str,
    changes: Mapping[str, Any],
    viewed_month: str,
) -> LedgerDocument:
    """
    Edit one occurrence of an expense.

    Only the copy in `viewed_month` changes; other months keep their own
    copies of the same recurring id. `changes` uses attribute names
    (`amount`, `is_fixed`, ...). Fields not mentioned, including `paid`,
    keep their current value. No-op if the id is not in that month.

    Raises:
        IntentRejectedError: if the edited expense fails validation
    """
    bucket = doc.expenses_for(viewed_month)
    index = next((i for i, e in enumerate(bucket) if e.id == expense_id), None)
    if index is None:
        return doc

    updated = _apply_changes(bucket[index], changes)
    _validator.ensure_valid(
        _validator.validate_expense(updated, intent="edit_expense")
    )

    new_bucket = (*bucket[:index], updated, *bucket[index + 1:])
    return doc.model_copy(update={
        "expenses_by_month": _with_bucket(doc.expenses_by_month, viewed_month, new_bucket),
    })


def delete_occurrence(
    doc: LedgerDocument,
    expense_id: str,
    month: str,
    current_month: str,
) -> LedgerDocument:
    """
    Remove a single occurrence from `month`.

    Recurring expenses get a tombstone for that month so the next
    population of the month does not bring them back. One-off expenses
    never propagate and need none.
    """
    if is_past_month(month, current_month):
        logger.info("past_month_guard", intent="delete_occurrence", month=month)
        return doc

    bucket = doc.expenses_for(month)
    removed = next((e for e in bucket if e.id == expense_id), None)
    if removed is None:
        return doc

    update: dict[str, Any] = {
        "expenses_by_month": _with_bucket(
            doc.expenses_by_month,
            month,
            (e for e in bucket if e.id != expense_id),
        ),
    }

    if removed.is_recurring:
        tombstones = doc.deleted_occurrences.get(month, ())
        if expense_id not in tombstones:
            update["deleted_occurrences"] = {
                **doc.deleted_occurrences,
                month: (*tombstones, expense_id),
            }

    return doc.model_copy(update=update)


def delete_future_occurrences(
    doc: LedgerDocument,
    expense_id: str,
    from_month: str,
    current_month: str,
) -> LedgerDocument:
    """
    End a recurring expense: remove it from `from_month` and every later month.

    Tombstones for the id in those months are dropped too; with every copy
    gone there is nothing left to propagate, so there is nothing to
    suppress. Earlier months keep their copies as history.
    """
    if is_past_month(from_month, current_month):
        logger.info("past_month_guard", intent="delete_future_occurrences", month=from_month)
        return doc

    start = parse_month_key(from_month)
    expenses = dict(doc.expenses_by_month)
    tombstones = dict(doc.deleted_occurrences)
    changed = False

    for month in sorted(set(expenses) | set(tombstones)):
        if parse_month_key(month) < start:
            continue

        bucket = expenses.get(month, ())
        remaining = tuple(e for e in bucket if e.id != expense_id)
        if len(remaining) != len(bucket):
            expenses = _with_bucket(expenses, month, remaining)
            changed = True

        deleted = tombstones.get(month, ())
        if expense_id in deleted:
            tombstones = _with_bucket(
                tombstones, month, (i for i in deleted if i != expense_id)
            )
            changed = True

    if not changed:
        return doc
    return doc.model_copy(update={
        "expenses_by_month": expenses,
        "deleted_occurrences": tombstones,
    })


def toggle_paid(
    doc: LedgerDocument,
    expense_id: str,
    month: str,
    current_month: str,
) -> LedgerDocument:
    """Flip the paid flag of the occurrence in `month` only."""
    if is_past_month(month, current_month):
        logger.info("past_month_guard", intent="toggle_paid", month=month)
        return doc

    bucket = doc.expenses_for(month)
    if not any(e.id == expense_id for e in bucket):
        return doc

    new_bucket = tuple(
        e.model_copy(update={"paid": not e.paid}) if e.id == expense_id else e
        for e in bucket
    )
    return doc.model_copy(update={
        "expenses_by_month": _with_bucket(doc.expenses_by_month, month, new_bucket),
    })


def set_balance(
    doc: LedgerDocument,
    amount: Union[Decimal, int, float, str],
) -> LedgerDocument:
    """
    Replace the account balance.

    Raises:
        IntentRejectedError: if `amount` is not a finite number
    """
    return doc.model_copy(update={"account_balance": to_money(amount, "account_balance")})


# =============================================================================
# VAULT INTENTS
# =============================================================================

def find_vault_item(doc: LedgerDocument, item_id: str) -> Optional[tuple[str, VaultItem]]:
    """(month, item) for the vault item with `item_id`, scanning every month."""
    for month, items in doc.vault_by_month.items():
        for item in items:
            if item.id == item_id:
                return month, item
    return None


def upsert_vault_item(doc: LedgerDocument, item: VaultItem) -> LedgerDocument:
    """
    Create a deposit, or replace the one with the same id.

    A replaced deposit keeps its original date and stays in its bucket.

    Raises:
        IntentRejectedError: if the deposit fails validation
    """
    _validator.ensure_valid(_validator.validate_vault_item(item))

    found = find_vault_item(doc, item.id)
    if found is None:
        month = month_key(item.date)
        bucket = (*doc.vault_for(month), item)
    else:
        month, existing = found
        stored = item.model_copy(update={"date": existing.date})
        bucket = tuple(
            stored if other.id == item.id else other
            for other in doc.vault_for(month)
        )

    return doc.model_copy(update={
        "vault_by_month": _with_bucket(doc.vault_by_month, month, bucket),
    })


def delete_vault_item(doc: LedgerDocument, item_id: str) -> LedgerDocument:
    """Remove the deposit with `item_id` from whichever month holds it."""
    found = find_vault_item(doc, item_id)
    if found is None:
        return doc

    month, _ = found
    remaining = (item for item in doc.vault_for(month) if item.id != item_id)
    return doc.model_copy(update={
        "vault_by_month": _with_bucket(doc.vault_by_month, month, remaining),
    })
