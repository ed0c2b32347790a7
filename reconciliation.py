from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence, Union

from models import (
    CashDirection,
    CashSource,
    CashTransaction,
    CompanyExpense,
    PaymentRecord,
    utcnow,
)

CASH_PAYMENT_METHOD_CODE = "PAYM032"
CASH_EXPENSE_METHOD = "Cash"
BANK_DEPOSIT_MARKER = "은행 Deposit"
RESERVATION_INCOME_CATEGORY = "예약 수입"
COMPANY_EXPENSE_CATEGORY = "회사 지출"

LEDGER_CATEGORIES = [
    "투어 수입",
    "예약 수입",
    "기타 수입",
    "투어 지출",
    "회사 지출",
    "예약 지출",
    "기타 지출",
]

SOURCE_ID_PREFIXES: dict[CashSource, str] = {
    CashSource.cash_transactions: "",
    CashSource.payment_records: "pr_",
    CashSource.company_expenses: "ce_",
}

SOURCE_LABELS: dict[CashSource, str] = {
    CashSource.cash_transactions: "현금 관리",
    CashSource.payment_records: "예약 결제",
    CashSource.company_expenses: "회사 지출",
}

DIRECTION_FILTERS = ("all", "deposit", "withdrawal", "bank_deposit")

SourceRow = Union[CashTransaction, PaymentRecord, CompanyExpense]


@dataclass(frozen=True)
class UnifiedTransaction:
    id: str
    source: CashSource
    transaction_date: datetime
    transaction_type: CashDirection
    amount: Decimal
    description: Optional[str]
    category: Optional[str]
    reference_type: Optional[str]
    reference_id: Optional[str]
    created_by: str
    created_by_name: str
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    @property
    def original_id(self) -> str:
        return split_unified_id(self.source, self.id)

    @property
    def is_editable(self) -> bool:
        return self.source == CashSource.cash_transactions

    @property
    def is_bank_deposit(self) -> bool:
        return is_bank_deposit(self.transaction_type, self.description)

    @property
    def display_type(self) -> str:
        if self.is_bank_deposit:
            return "bank_deposit"
        return self.transaction_type.value

    @property
    def signed_amount(self) -> Decimal:
        if self.transaction_type == CashDirection.deposit:
            return self.amount
        return -self.amount

    @property
    def source_label(self) -> str:
        return SOURCE_LABELS[self.source]


@dataclass
class CashFilters:
    start: Optional[date] = None
    end: Optional[date] = None
    query: Optional[str] = None
    direction: str = "all"
    category: Optional[str] = None

    def __post_init__(self) -> None:
        if self.direction not in DIRECTION_FILTERS:
            raise ValueError(f"Unknown direction filter: {self.direction}")
        if self.query is not None:
            self.query = self.query.strip() or None
        if self.category in ("", "all"):
            self.category = None
        if self.start and self.end and self.start > self.end:
            raise ValueError("Start date must be before end date")

    @property
    def start_at(self) -> Optional[datetime]:
        if self.start is None:
            return None
        return datetime.combine(self.start, time.min)

    @property
    def end_at(self) -> Optional[datetime]:
        if self.end is None:
            return None
        return datetime.combine(self.end, time.max)

    @property
    def has_date_range(self) -> bool:
        return self.start is not None or self.end is not None


@dataclass
class CashLedgerView:
    transactions: list[UnifiedTransaction]
    balance: Decimal
    visible_balance: Decimal
    total_deposits: Decimal
    total_withdrawals: Decimal
    failed_sources: list[CashSource] = field(default_factory=list)

    def page(self, page: int, per_page: int) -> list[UnifiedTransaction]:
        page = max(page, 1)
        start = (page - 1) * per_page
        return self.transactions[start : start + per_page]

    def total_pages(self, per_page: int) -> int:
        if not self.transactions:
            return 0
        return -(-len(self.transactions) // per_page)


def unified_id(source: CashSource, original_id: str) -> str:
    return f"{SOURCE_ID_PREFIXES[source]}{original_id}"


def split_unified_id(source: CashSource, value: str) -> str:
    prefix = SOURCE_ID_PREFIXES[source]
    if not prefix:
        return value
    if not value.startswith(prefix):
        raise ValueError(f"Id {value!r} does not belong to {source.value}")
    original = value[len(prefix) :]
    if not original:
        raise ValueError("Transaction id is empty")
    return original


def is_bank_deposit(direction: CashDirection, description: Optional[str]) -> bool:
    return direction == CashDirection.withdrawal and BANK_DEPOSIT_MARKER in (
        description or ""
    )


def storage_direction(direction: str) -> CashDirection:
    if direction == "bank_deposit":
        return CashDirection.withdrawal
    return CashDirection(direction)


def with_bank_deposit_marker(description: Optional[str]) -> str:
    if description and BANK_DEPOSIT_MARKER in description:
        return description
    if description:
        return f"{BANK_DEPOSIT_MARKER} - {description}"
    return BANK_DEPOSIT_MARKER


def without_bank_deposit_marker(description: Optional[str]) -> Optional[str]:
    if not description:
        return description
    if description == BANK_DEPOSIT_MARKER:
        return None
    prefix = f"{BANK_DEPOSIT_MARKER} - "
    if description.startswith(prefix):
        return description[len(prefix) :]
    return description


def _display_name(names: Mapping[str, str], email: Optional[str]) -> str:
    email = email or ""
    return names.get(email) or email


def project_ledger(
    row: CashTransaction, names: Mapping[str, str]
) -> UnifiedTransaction:
    return UnifiedTransaction(
        id=row.id,
        source=CashSource.cash_transactions,
        transaction_date=row.transaction_date,
        transaction_type=CashDirection(row.transaction_type),
        amount=Decimal(row.amount),
        description=row.description,
        category=row.category,
        reference_type=row.reference_type,
        reference_id=row.reference_id,
        created_by=row.created_by or "",
        created_by_name=_display_name(names, row.created_by),
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def project_payment(
    row: PaymentRecord, names: Mapping[str, str], *, now: Optional[datetime] = None
) -> UnifiedTransaction:
    stamp = row.submit_on or now or utcnow()
    return UnifiedTransaction(
        id=unified_id(CashSource.payment_records, row.id),
        source=CashSource.payment_records,
        transaction_date=stamp,
        transaction_type=CashDirection.deposit,
        amount=Decimal(row.amount),
        description=row.note or f"예약 결제 ({row.reservation_id})",
        category=RESERVATION_INCOME_CATEGORY,
        reference_type="reservation",
        reference_id=row.reservation_id,
        created_by=row.submit_by or "",
        created_by_name=_display_name(names, row.submit_by),
        notes=row.note or None,
        created_at=stamp,
        updated_at=stamp,
    )


def project_expense(
    row: CompanyExpense, names: Mapping[str, str], *, now: Optional[datetime] = None
) -> UnifiedTransaction:
    stamp = row.submit_on or now or utcnow()
    return UnifiedTransaction(
        id=unified_id(CashSource.company_expenses, row.id),
        source=CashSource.company_expenses,
        transaction_date=stamp,
        transaction_type=CashDirection.withdrawal,
        amount=Decimal(row.amount),
        description=row.description or f"{row.paid_to} - {row.paid_for}",
        category=row.paid_for or COMPANY_EXPENSE_CATEGORY,
        reference_type="company_expense",
        reference_id=row.id,
        created_by=row.submit_by or "",
        created_by_name=_display_name(names, row.submit_by),
        notes=row.notes or None,
        created_at=stamp,
        updated_at=stamp,
    )


def project(
    row: SourceRow, names: Mapping[str, str], *, now: Optional[datetime] = None
) -> UnifiedTransaction:
    if isinstance(row, CashTransaction):
        return project_ledger(row, names)
    if isinstance(row, PaymentRecord):
        return project_payment(row, names, now=now)
    if isinstance(row, CompanyExpense):
        return project_expense(row, names, now=now)
    raise TypeError(f"Unsupported cash source row: {type(row).__name__}")


def sort_transactions(
    items: Iterable[UnifiedTransaction],
) -> list[UnifiedTransaction]:
    return sorted(
        items,
        key=lambda t: (t.transaction_date, t.created_at),
        reverse=True,
    )


def apply_direction_filter(
    items: Sequence[UnifiedTransaction], direction: str
) -> list[UnifiedTransaction]:
    if direction == "all":
        return list(items)
    if direction == "bank_deposit":
        return [t for t in items if t.is_bank_deposit]
    wanted = CashDirection(direction)
    return [t for t in items if t.transaction_type == wanted]


def compute_balance(items: Iterable[UnifiedTransaction]) -> Decimal:
    return sum((t.signed_amount for t in items), Decimal("0"))


def build_ledger_view(
    rows: Iterable[SourceRow],
    filters: CashFilters,
    names: Optional[Mapping[str, str]] = None,
    *,
    failed_sources: Optional[list[CashSource]] = None,
    now: Optional[datetime] = None,
) -> CashLedgerView:
    """
    Merge already-filtered source rows into one view.

    The balance is taken over every merged row; the direction filter only
    narrows the displayed list.
    """
    names = names or {}
    merged = sort_transactions(project(row, names, now=now) for row in rows)
    shown = apply_direction_filter(merged, filters.direction)
    deposits = sum(
        (t.amount for t in shown if t.transaction_type == CashDirection.deposit),
        Decimal("0"),
    )
    withdrawals = sum(
        (t.amount for t in shown if t.transaction_type == CashDirection.withdrawal),
        Decimal("0"),
    )
    return CashLedgerView(
        transactions=shown,
        balance=compute_balance(merged),
        visible_balance=deposits - withdrawals,
        total_deposits=deposits,
        total_withdrawals=withdrawals,
        failed_sources=list(failed_sources or []),
    )


def snapshot(txn: UnifiedTransaction) -> dict[str, object]:
    return {
        "transaction_date": txn.transaction_date.isoformat(),
        "transaction_type": txn.transaction_type.value,
        "amount": str(txn.amount),
        "description": txn.description,
        "category": txn.category,
        "notes": txn.notes,
    }
