from datetime import date, datetime
from decimal import Decimal

import pytest

from models import CashDirection, CashSource, CashTransaction, CompanyExpense, PaymentRecord
from reconciliation import (
    BANK_DEPOSIT_MARKER,
    CashFilters,
    build_ledger_view,
    is_bank_deposit,
    project,
    snapshot,
    sort_transactions,
    split_unified_id,
    storage_direction,
    unified_id,
    with_bank_deposit_marker,
    without_bank_deposit_marker,
)


def ledger_row(row_id, day, direction, amount, description=None, created=None):
    stamp = created or datetime(2024, 1, day, 9, 0)
    return CashTransaction(
        id=row_id,
        transaction_date=datetime(2024, 1, day),
        transaction_type=direction,
        amount=Decimal(amount),
        description=description,
        created_by="kim@tour.test",
        created_at=stamp,
        updated_at=stamp,
    )


def example_rows():
    return [
        ledger_row("l1", 3, CashDirection.deposit, "100"),
        PaymentRecord(
            id="p1",
            reservation_id="R-1",
            amount=Decimal("50"),
            payment_method="PAYM032",
            submit_on=datetime(2024, 1, 2, 10, 0),
            submit_by="lee@tour.test",
        ),
        CompanyExpense(
            id="e1",
            amount=Decimal("30"),
            payment_method="Cash",
            paid_to="Chevron",
            paid_for="투어 지출",
            submit_on=datetime(2024, 1, 1, 8, 0),
        ),
    ]


def test_three_sources_merge_into_one_sorted_ledger() -> None:
    view = build_ledger_view(example_rows(), CashFilters(), {"kim@tour.test": "김가이드"})

    assert [t.id for t in view.transactions] == ["l1", "pr_p1", "ce_e1"]
    assert [t.transaction_type for t in view.transactions] == [
        CashDirection.deposit,
        CashDirection.deposit,
        CashDirection.withdrawal,
    ]
    assert view.balance == Decimal("120")
    assert view.transactions[0].created_by_name == "김가이드"
    assert view.transactions[1].category == "예약 수입"
    assert view.transactions[1].created_by_name == "lee@tour.test"


def test_payment_row_projection_defaults() -> None:
    row = PaymentRecord(
        id="p9",
        reservation_id="R-77",
        amount=Decimal("25"),
        payment_method="PAYM032",
        submit_on=datetime(2024, 2, 1),
    )

    txn = project(row, {})

    assert txn.id == "pr_p9"
    assert txn.source == CashSource.payment_records
    assert txn.description == "예약 결제 (R-77)"
    assert txn.reference_type == "reservation"
    assert txn.reference_id == "R-77"
    assert txn.original_id == "p9"
    assert not txn.is_editable


def test_expense_row_projection_defaults() -> None:
    row = CompanyExpense(
        id="e9",
        amount=Decimal("12.50"),
        payment_method="CASH",
        paid_to="Costco",
        paid_for="회사 지출",
        submit_on=datetime(2024, 2, 1),
    )
    txn = project(row, {})
    assert txn.id == "ce_e9"
    assert txn.transaction_type == CashDirection.withdrawal
    assert txn.description == "Costco - 회사 지출"
    assert txn.reference_type == "company_expense"

    row.paid_for = None
    row.description = "Water"
    txn = project(row, {})
    assert txn.category == "회사 지출"
    assert txn.description == "Water"


def test_missing_submit_time_falls_back_to_now() -> None:
    now = datetime(2024, 5, 5, 12, 0)
    row = PaymentRecord(id="p1", amount=Decimal("1"), payment_method="PAYM032")
    txn = project(row, {}, now=now)
    assert txn.transaction_date == now
    assert txn.created_at == now


def test_unified_ids_round_trip() -> None:
    assert unified_id(CashSource.payment_records, "abc") == "pr_abc"
    assert split_unified_id(CashSource.payment_records, "pr_abc") == "abc"
    assert split_unified_id(CashSource.company_expenses, "ce_abc") == "abc"
    assert split_unified_id(CashSource.cash_transactions, "abc") == "abc"

    with pytest.raises(ValueError):
        split_unified_id(CashSource.company_expenses, "pr_abc")
    with pytest.raises(ValueError):
        split_unified_id(CashSource.payment_records, "pr_")


def test_bank_deposit_is_a_marked_withdrawal() -> None:
    assert is_bank_deposit(CashDirection.withdrawal, f"{BANK_DEPOSIT_MARKER} - Chase")
    assert is_bank_deposit(CashDirection.withdrawal, BANK_DEPOSIT_MARKER)
    assert not is_bank_deposit(CashDirection.deposit, BANK_DEPOSIT_MARKER)
    assert not is_bank_deposit(CashDirection.withdrawal, None)

    assert storage_direction("bank_deposit") == CashDirection.withdrawal
    assert storage_direction("deposit") == CashDirection.deposit


def test_bank_deposit_marker_helpers() -> None:
    assert with_bank_deposit_marker(None) == "은행 Deposit"
    assert with_bank_deposit_marker("Chase") == "은행 Deposit - Chase"
    assert with_bank_deposit_marker("은행 Deposit - Chase") == "은행 Deposit - Chase"
    assert without_bank_deposit_marker("은행 Deposit - Chase") == "Chase"
    assert without_bank_deposit_marker("은행 Deposit") is None
    assert without_bank_deposit_marker("Lunch") == "Lunch"


def test_direction_filter_narrows_list_but_not_balance() -> None:
    rows = example_rows() + [
        ledger_row("l2", 4, CashDirection.withdrawal, "40", "은행 Deposit - Chase")
    ]

    everything = build_ledger_view(rows, CashFilters())
    banks = build_ledger_view(rows, CashFilters(direction="bank_deposit"))
    withdrawals = build_ledger_view(rows, CashFilters(direction="withdrawal"))
    deposits = build_ledger_view(rows, CashFilters(direction="deposit"))

    assert [t.id for t in banks.transactions] == ["l2"]
    assert [t.id for t in withdrawals.transactions] == ["l2", "ce_e1"]
    assert [t.id for t in deposits.transactions] == ["l1", "pr_p1"]

    for view in (everything, banks, withdrawals, deposits):
        assert view.balance == Decimal("80")

    assert deposits.visible_balance == Decimal("150")
    assert withdrawals.visible_balance == Decimal("-70")
    assert withdrawals.total_withdrawals == Decimal("70")
    assert banks.transactions[0].display_type == "bank_deposit"


def test_sort_breaks_ties_on_creation_time_and_is_stable() -> None:
    early = ledger_row("a", 5, CashDirection.deposit, "1", created=datetime(2024, 1, 5, 8))
    late = ledger_row("b", 5, CashDirection.deposit, "1", created=datetime(2024, 1, 5, 9))
    twin = ledger_row("c", 5, CashDirection.deposit, "1", created=datetime(2024, 1, 5, 9))

    ordered = sort_transactions(project(r, {}) for r in [early, late, twin])

    assert [t.id for t in ordered] == ["b", "c", "a"]


def test_filters_validate_input() -> None:
    with pytest.raises(ValueError):
        CashFilters(direction="sideways")
    with pytest.raises(ValueError):
        CashFilters(start=date(2024, 2, 1), end=date(2024, 1, 1))

    filters = CashFilters(query="  ", category="all", end=date(2024, 1, 31))
    assert filters.query is None
    assert filters.category is None
    assert filters.end_at == datetime(2024, 1, 31, 23, 59, 59, 999999)
    assert filters.start_at is None


def test_empty_view_and_paging() -> None:
    view = build_ledger_view([], CashFilters())
    assert view.transactions == []
    assert view.balance == Decimal("0")
    assert view.total_pages(50) == 0

    rows = [
        ledger_row(f"l{day}", day, CashDirection.deposit, "10") for day in range(1, 6)
    ]
    view = build_ledger_view(rows, CashFilters())
    assert view.total_pages(2) == 3
    assert [t.id for t in view.page(3, 2)] == ["l1"]
    assert [t.id for t in view.page(0, 2)] == ["l5", "l4"]


def test_snapshot_stores_amount_as_text() -> None:
    txn = project(ledger_row("l1", 3, CashDirection.deposit, "100.50"), {})
    data = snapshot(txn)
    assert data["amount"] == "100.50"
    assert data["transaction_type"] == "deposit"
    assert data["transaction_date"] == "2024-01-03T00:00:00"
