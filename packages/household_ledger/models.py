"""Typed records for the household ledger.

Every record is a frozen pydantic model. Stored household state uses
camelCase keys (``periodKey``, ``isManualCategory``, ``baseId``) and a few
historical field names (``startPeriodKey``, ``manualExpenses``). Those are
folded into one canonical shape here, at validation time, so engine code only
ever sees snake_case attributes and never branches on legacy names.

Amounts are normalized with :func:`~household_ledger.amounts.parse_amount`
while validating, so a junk amount becomes ``0.0`` instead of failing the
whole snapshot.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, get_args

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .amounts import parse_amount
from .logging_setup import get_logger
from .periods import latest_on_or_before

_logger = get_logger("household_ledger.models")

# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

Kind = Literal["expense", "income", "payment", "refund", "transfer"]
KINDS: tuple[str, ...] = get_args(Kind)

TRANSFERS_CATEGORY = "Transfers"
INCOME_CATEGORY = "Income"
PAYMENT_CATEGORIES: frozenset[str] = frozenset({"Debt", "Bills Payments"})
AMEX_SOURCES: frozenset[str] = frozenset({"amex", "amex_csv"})


class _Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
        coerce_numbers_to_str=True,
        str_strip_whitespace=True,
    )


def _derive_period_key(data: Any) -> Any:
    """Fill ``periodKey`` from ``date`` on raw input when it is missing."""

    if not isinstance(data, dict):
        return data
    if data.get("period_key") or data.get("periodKey"):
        return data
    raw_date = data.get("date")
    if raw_date:
        data = dict(data)
        data["periodKey"] = str(raw_date)[:7]
    return data


def _valid_records[M: BaseModel](model: type[M], items: Any, what: str) -> list[M]:
    """Validate ``items`` one at a time, dropping the ones that fail.

    One malformed stored record must not make the whole household unreadable.
    """

    if items is None:
        return []
    if not isinstance(items, (list, tuple)):
        _logger.debug("ignoring %s: expected a list, got %s", what, type(items).__name__)
        return []
    out: list[M] = []
    for idx, raw in enumerate(items):
        try:
            out.append(model.model_validate(raw))
        except ValidationError as e:
            _logger.debug("dropping malformed %s #%d: %s", what, idx, e)
    return out


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class VirtualRef:
    """Origin of a virtual transaction: the rule and the month it expands."""

    base_id: str
    period_key: str


class Transaction(_Record):
    """A single financial event, real (imported/manual) or virtual.

    Sign convention: expenses are negative; income, refunds and payments are
    positive. ``kind`` may be ``None`` on input; the ledger resolves it via
    :func:`household_ledger.classification.classify_kind` before aggregating.
    """

    id: str | None = None
    date: str | None = None
    period_key: str | None = None
    amount: float = 0.0
    kind: Kind | None = None
    type: str | None = None
    category: str | None = None
    description: str | None = None
    merchant: str | None = None
    item: str | None = None
    source: str | None = None
    reference: str | None = None
    memo: str | None = None
    time: str | None = None
    card_member: str | None = Field(
        default=None,
        validation_alias=AliasChoices("card_member", "cardMember", "card"),
        serialization_alias="cardMember",
    )
    is_manual_category: bool = False
    is_virtual: bool = False
    base_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _fill_period_key(cls, data: Any) -> Any:
        return _derive_period_key(data)

    @field_validator("amount", mode="before")
    @classmethod
    def _normalize_amount(cls, v: Any) -> float:
        return parse_amount(v)

    @field_validator("date", mode="before")
    @classmethod
    def _date_to_text(cls, v: Any) -> str | None:
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    @field_validator("kind", mode="before")
    @classmethod
    def _known_kind_or_none(cls, v: Any) -> str | None:
        # Unknown kinds are dropped so classification can run instead.
        if not isinstance(v, str):
            return None
        k = v.strip().lower()
        return k if k in KINDS else None

    @field_validator("is_manual_category", "is_virtual", mode="before")
    @classmethod
    def _none_is_false(cls, v: Any) -> bool:
        return bool(v) if v is not None else False

    @property
    def text(self) -> str:
        """Best available human label (description, then item, then merchant)."""

        return self.description or self.item or self.merchant or ""

    @property
    def virtual_ref(self) -> VirtualRef | None:
        if not self.is_virtual or self.base_id is None or self.period_key is None:
            return None
        return VirtualRef(base_id=self.base_id, period_key=self.period_key)


# ---------------------------------------------------------------------------
# Recurring expense rules
# ---------------------------------------------------------------------------


class MonthOverride(_Record):
    """Per-month exception attached to a recurring rule."""

    amount: float | None = None
    category: str | None = None
    disabled: bool = False

    @field_validator("amount", mode="before")
    @classmethod
    def _normalize_amount(cls, v: Any) -> float | None:
        return None if v is None else parse_amount(v)

    @field_validator("disabled", mode="before")
    @classmethod
    def _none_is_false(cls, v: Any) -> bool:
        return bool(v) if v is not None else False


class RecurringExpenseRule(_Record):
    """Template that synthesizes one virtual expense per valid month.

    ``amount`` is a positive magnitude; the expander flips it to the expense
    sign. ``start_month``/``end_month`` are inclusive ``YYYY-MM`` bounds and
    also accept the legacy ``startPeriodKey``/``endPeriodKey`` names.
    """

    id: str = ""
    description: str = ""
    amount: float = 0.0
    category: str | None = None
    day: int = 1
    frequency: str = "monthly"
    active: bool = True
    start_month: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "start_month", "startMonth", "startPeriodKey", "start_period_key"
        ),
        serialization_alias="startMonth",
    )
    end_month: str | None = Field(
        default=None,
        validation_alias=AliasChoices("end_month", "endMonth", "endPeriodKey", "end_period_key"),
        serialization_alias="endMonth",
    )
    overrides: dict[str, MonthOverride] = Field(default_factory=dict)

    @field_validator("amount", mode="before")
    @classmethod
    def _normalize_amount(cls, v: Any) -> float:
        return parse_amount(v)

    @field_validator("day", mode="before")
    @classmethod
    def _day_or_first(cls, v: Any) -> int:
        d = int(parse_amount(v))
        return d if 1 <= d <= 31 else 1

    @field_validator("active", mode="before")
    @classmethod
    def _active_unless_false(cls, v: Any) -> bool:
        return v is not False

    @field_validator("start_month", "end_month", mode="before")
    @classmethod
    def _empty_bound_is_open(cls, v: Any) -> str | None:
        if v is None:
            return None
        s = str(v).strip()
        return s[:7] or None

    @field_validator("overrides", mode="before")
    @classmethod
    def _valid_overrides(cls, v: Any) -> dict[str, MonthOverride]:
        if not isinstance(v, Mapping):
            if v:
                _logger.debug("ignoring overrides: expected a mapping, got %s", type(v).__name__)
            return {}
        out: dict[str, MonthOverride] = {}
        for key, raw in v.items():
            # A null entry means no override for that month.
            if raw is None:
                continue
            try:
                out[str(key)] = MonthOverride.model_validate(raw)
            except ValidationError as e:
                _logger.debug("dropping malformed override for %s: %s", key, e)
        return out

    def override_for(self, period_key: str) -> MonthOverride | None:
        return self.overrides.get(period_key)


# ---------------------------------------------------------------------------
# Income
# ---------------------------------------------------------------------------


class IncomeComponents(_Record):
    """Named monthly income components; the total is always recomputed."""

    salary_eric: float = 0.0
    salary_rebecca: float = 0.0
    other: float = 0.0

    @field_validator("salary_eric", "salary_rebecca", "other", mode="before")
    @classmethod
    def _normalize_amount(cls, v: Any) -> float:
        return parse_amount(v)

    @property
    def total(self) -> float:
        return self.salary_eric + self.salary_rebecca + self.other


class IncomeConfig(IncomeComponents):
    """The household's current income, used when no history applies."""


class IncomeHistoryEntry(IncomeComponents):
    """Income configuration in force from ``period_key`` until superseded."""

    date: str | None = None
    period_key: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _fill_period_key(cls, data: Any) -> Any:
        return _derive_period_key(data)

    @field_validator("period_key", mode="after")
    @classmethod
    def _truncate_to_month(cls, v: str | None) -> str | None:
        return v[:7] if v else None


# ---------------------------------------------------------------------------
# Debts
# ---------------------------------------------------------------------------


class RateChange(_Record):
    date: str
    rate: float

    @field_validator("rate", mode="before")
    @classmethod
    def _normalize_rate(cls, v: Any) -> float:
        return parse_amount(v)


class DebtAccount(_Record):
    """A debt whose monthly repayment counts as an expense in every period."""

    id: str | None = None
    name: str | None = None
    current_balance: float = 0.0
    monthly_repayment: float = 0.0
    interest_rate: float = 0.0
    future_rates: tuple[RateChange, ...] = ()

    @field_validator("current_balance", "monthly_repayment", "interest_rate", mode="before")
    @classmethod
    def _normalize_amount(cls, v: Any) -> float:
        return parse_amount(v)

    @field_validator("future_rates", mode="before")
    @classmethod
    def _valid_rates(cls, v: Any) -> list[RateChange]:
        return _valid_records(RateChange, v, "rate change")

    def rate_for(self, period_key: str) -> float:
        """Rate in force for ``period_key``: the latest change on or before it."""

        change = latest_on_or_before(
            self.future_rates, period_key, period_of=lambda r: r.date[:7]
        )
        return change.rate if change is not None else self.interest_rate


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class CategoryRule(_Record):
    """Assigns ``category`` to any description containing one of ``keywords``."""

    category: str
    keywords: tuple[str, ...] = ()

    @field_validator("keywords", mode="before")
    @classmethod
    def _lowercase_keywords(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, (list, tuple)):
            return ()
        return tuple(str(k).strip().lower() for k in v if str(k).strip())


# ---------------------------------------------------------------------------
# Snapshot and ledger output
# ---------------------------------------------------------------------------


_SNAPSHOT_ITEMS: dict[str, type[BaseModel]] = {
    "transactions": Transaction,
    "income_history": IncomeHistoryEntry,
    "recurring_expenses": RecurringExpenseRule,
    "debts": DebtAccount,
    "category_rules": CategoryRule,
}


class LedgerSnapshot(_Record):
    """One consistent view of a household's stored state.

    Every engine entry point takes a snapshot explicitly; nothing is read from
    ambient state. Keys the engine does not model (profile, categories, ...)
    are kept as extras so the snapshot round-trips through persistence.
    """

    transactions: tuple[Transaction, ...] = ()
    income_history: tuple[IncomeHistoryEntry, ...] = ()
    recurring_expenses: tuple[RecurringExpenseRule, ...] = Field(
        default=(),
        validation_alias=AliasChoices(
            "recurring_expenses", "recurringExpenses", "manualExpenses", "manual_expenses"
        ),
        serialization_alias="recurringExpenses",
    )
    debts: tuple[DebtAccount, ...] = ()
    category_rules: tuple[CategoryRule, ...] = ()
    income: IncomeConfig = Field(default_factory=IncomeConfig)
    active_period_key: str | None = None
    schema_version: int = 0

    @field_validator(
        "transactions",
        "income_history",
        "recurring_expenses",
        "debts",
        "category_rules",
        mode="before",
    )
    @classmethod
    def _drop_malformed(cls, v: Any, info: ValidationInfo) -> list[BaseModel]:
        model = _SNAPSHOT_ITEMS[info.field_name]
        return _valid_records(model, v, info.field_name)

    @field_validator("income", mode="before")
    @classmethod
    def _income_or_default(cls, v: Any) -> Any:
        return v if isinstance(v, (Mapping, IncomeConfig)) else {}

    @field_validator("active_period_key", mode="before")
    @classmethod
    def _text_or_none(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None

    @field_validator("schema_version", mode="before")
    @classmethod
    def _version_or_zero(cls, v: Any) -> int:
        try:
            return int(v or 0)
        except (TypeError, ValueError):
            return 0

    def to_state(self) -> dict[str, Any]:
        """Serialize back to the stored (camelCase) state shape."""

        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class LedgerRow(BaseModel):
    """Aggregated figures for one period (derived, never persisted).

    ``net_savings == total_income - total_expenses`` always holds, and
    ``total_expenses`` never includes transfers. The ``amex_*``,
    ``payments_to_card``, ``transfers`` and ``amex_income`` figures are signed
    sums kept for reconciliation displays only.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", populate_by_name=True, alias_generator=to_camel
    )

    month_key: str
    total_income: float = 0.0
    total_expenses: float = 0.0
    recurring_spend: float = 0.0
    debt_payments: float = 0.0
    net_savings: float = 0.0
    savings_rate: float = 0.0
    transaction_count: int = 0
    amex_gross_spend: float = 0.0
    amex_refunds: float = 0.0
    amex_net_spend: float = 0.0
    payments_to_card: float = 0.0
    transfers: float = 0.0
    amex_income: float = 0.0


__all__ = [
    "AMEX_SOURCES",
    "CategoryRule",
    "DebtAccount",
    "INCOME_CATEGORY",
    "IncomeComponents",
    "IncomeConfig",
    "IncomeHistoryEntry",
    "KINDS",
    "Kind",
    "LedgerRow",
    "LedgerSnapshot",
    "MonthOverride",
    "PAYMENT_CATEGORIES",
    "RateChange",
    "RecurringExpenseRule",
    "TRANSFERS_CATEGORY",
    "Transaction",
    "VirtualRef",
]
