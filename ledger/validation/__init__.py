"""Intent validation package."""

from ledger.validation.validator import IntentRejectedError, IntentValidator, to_money

__all__ = ["IntentRejectedError", "IntentValidator", "to_money"]
