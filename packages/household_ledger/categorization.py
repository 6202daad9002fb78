"""Keyword categorization of transaction descriptions.

Matching is case-insensitive substring search. High-confidence merchant
overrides are evaluated first, then the household's keyword rules in order;
the first rule with a matching keyword wins. Anything unmatched is
``Uncategorized``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .logging_setup import get_logger
from .models import CategoryRule, Transaction

_logger = get_logger("household_ledger.categorization")

UNCATEGORIZED = "Uncategorized"


def _rules(*pairs: tuple[str, tuple[str, ...]]) -> tuple[CategoryRule, ...]:
    return tuple(CategoryRule(category=c, keywords=k) for c, k in pairs)


# Statement merchant strings seen often enough to pin.
MERCHANT_OVERRIDES: tuple[CategoryRule, ...] = _rules(
    ("Transfers", ("direct debit received", "live payments")),
    ("Gambling & Lottery", ("oz lotteries",)),
    ("Alcohol & Bottle Shop", ("bws", "cellars")),
    ("Travel", ("sydney airport", "ayana", "love bali")),
    ("Groceries", ("opera convenience", "our cow")),
    ("Coffee", ("silverleaf", "batch espre", "will & mike")),
    ("Dining Out", ("canteen 1 elizabeth", "gyg", "criniti")),
    ("Education / Career", ("linkedin",)),
    ("Health", ("coastal contacts",)),
)

DEFAULT_CATEGORY_RULES: tuple[CategoryRule, ...] = _rules(
    # Transfers and bill payments must match before the spend categories.
    (
        "Transfers",
        ("transfer", "osko", "payment received", "salary", "payroll", "reimbursement", "refund"),
    ),
    ("Bills Payments", ("bpay", "direct debit", "pay anyone", "amex payment", "loan repayment")),
    (
        "Fees and Interest",
        ("interest", "late fee", "annual fee", "finance charge", "foreign transaction fee"),
    ),
    ("Housing", ("rent", "mortgage", "strata", "real estate", "body corporate")),
    ("Groceries", ("woolworths", "coles", "aldi", "iga", "harris farm", "costco", "butcher")),
    (
        "Dining Out",
        ("restaurant", "bistro", "pub", "mcdonald", "kfc", "pizza", "sushi", "thai", "ramen"),
    ),
    ("Coffee", ("cafe", "coffee", "espresso", "starbucks")),
    (
        "Fuel and Transport",
        ("7-eleven", "caltex", "ampol", "shell", "opal", "uber", "taxi", "parking"),
    ),
    ("Utilities", ("agl", "origin energy", "telstra", "optus", "sydney water")),
    ("Subscriptions", ("netflix", "spotify", "prime vide", "disney", "audible", "openai", "chatgpt")),
    ("Health", ("chemist", "pharmacy", "doctor", "medical", "dental", "physio")),
    ("Insurance", ("nrma", "aami", "allianz", "bupa", "medibank", "hcf")),
    ("Shopping", ("kmart", "big w", "target", "myer", "jb hi-fi", "officeworks", "amazon", "ebay")),
    ("Home and Garden", ("bunnings", "ikea", "hardware", "garden")),
    ("Entertainment", ("cinema", "hoyts", "ticketek", "ticketmaster", "steam")),
    ("Travel", ("qantas", "virgin", "jetstar", "airbnb", "booking.com", "expedia", "hotel")),
)


def _first_match(text: str, rules: Iterable[CategoryRule]) -> str | None:
    for rule in rules:
        if any(k in text for k in rule.keywords):
            return rule.category
    return None


def categorize(
    description: str | None,
    rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
    *,
    overrides: Sequence[CategoryRule] = MERCHANT_OVERRIDES,
) -> str:
    """Return the category for ``description``, or ``Uncategorized``."""

    if not description:
        return UNCATEGORIZED
    text = str(description).lower()
    return _first_match(text, overrides) or _first_match(text, rules) or UNCATEGORIZED


def rescan_categories(
    transactions: Iterable[Transaction],
    rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
    *,
    force: bool = False,
) -> tuple[list[Transaction], int]:
    """Re-run the categorizer over stored transactions.

    By default only uncategorized, non-manual transactions are touched, and
    only when the categorizer finds something better than ``Uncategorized``.
    With ``force=True`` every transaction is recategorized and its manual
    flag cleared.

    Returns the new list and the number of transactions whose category
    changed.
    """

    out: list[Transaction] = []
    updated = 0
    for tx in transactions:
        if not force:
            if tx.is_manual_category or (tx.category and tx.category != UNCATEGORIZED):
                out.append(tx)
                continue
        guessed = categorize(tx.description or tx.item, rules)
        if not force and guessed == UNCATEGORIZED:
            out.append(tx)
            continue
        if guessed != tx.category:
            updated += 1
        out.append(tx.model_copy(update={"category": guessed, "is_manual_category": False}))
    _logger.debug("rescan updated %d transaction(s) (force=%s)", updated, force)
    return out, updated


__all__ = [
    "DEFAULT_CATEGORY_RULES",
    "MERCHANT_OVERRIDES",
    "UNCATEGORIZED",
    "categorize",
    "rescan_categories",
]
