from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from models import (
    CashDirection,
    CashSource,
    CashTransaction,
    ChangeType,
    CompanyExpense,
    PaymentRecord,
    TeamMember,
)
from reconciliation import CashFilters
from schemas import CashTransactionIn
from services import CashLedgerService


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return engine, SessionLocal()


def seed(session) -> CashTransaction:
    session.add(TeamMember(email="kim@tour.test", name_ko="김가이드"))
    ledger = CashTransaction(
        transaction_date=datetime(2024, 1, 3),
        transaction_type=CashDirection.deposit,
        amount=Decimal("100"),
        description="Tips",
        category="투어 수입",
        created_by="kim@tour.test",
    )
    session.add_all(
        [
            ledger,
            PaymentRecord(
                id="p1",
                reservation_id="R-1",
                amount=Decimal("50"),
                payment_method="PAYM032",
                submit_on=datetime(2024, 1, 2, 15, 30),
                submit_by="kim@tour.test",
            ),
            PaymentRecord(
                id="p2",
                reservation_id="R-2",
                amount=Decimal("999"),
                payment_method="PAYM001",
                submit_on=datetime(2024, 1, 2),
            ),
            CompanyExpense(
                id="e1",
                amount=Decimal("30"),
                payment_method="cash",
                paid_to="Chevron",
                paid_for="투어 지출",
                submit_on=datetime(2024, 1, 1),
            ),
            CompanyExpense(
                id="e2",
                amount=Decimal("400"),
                payment_method="Card",
                paid_to="Hertz",
                paid_for="투어 지출",
                submit_on=datetime(2024, 1, 1),
            ),
        ]
    )
    session.commit()
    return ledger


def entry(**overrides) -> CashTransactionIn:
    data = {
        "transaction_date": date(2024, 1, 4),
        "transaction_type": "deposit",
        "amount": Decimal("20"),
        "description": "Envelope",
    }
    data.update(overrides)
    return CashTransactionIn(**data)


def test_only_cash_rows_are_aggregated() -> None:
    _, session = make_session()
    ledger = seed(session)

    view = CashLedgerService(session, actor="kim@tour.test").load()

    assert [t.id for t in view.transactions] == [ledger.id, "pr_p1", "ce_e1"]
    assert view.balance == Decimal("120")
    assert view.failed_sources == []
    assert view.transactions[1].created_by_name == "김가이드"


def test_search_and_category_are_pushed_to_each_source() -> None:
    _, session = make_session()
    seed(session)
    service = CashLedgerService(session, actor="")

    by_search = service.load(CashFilters(query="CHEVRON"))
    assert [t.id for t in by_search.transactions] == ["ce_e1"]
    assert by_search.balance == Decimal("-30")

    by_category = service.load(CashFilters(category="투어 지출"))
    assert [t.id for t in by_category.transactions] == ["pr_p1", "ce_e1"]


def test_date_range_covers_whole_end_day() -> None:
    _, session = make_session()
    seed(session)

    view = CashLedgerService(session, actor="").load(
        CashFilters(start=date(2024, 1, 2), end=date(2024, 1, 2))
    )

    assert [t.id for t in view.transactions] == ["pr_p1"]


def test_bank_deposit_create_is_stored_as_withdrawal() -> None:
    _, session = make_session()
    seed(session)
    service = CashLedgerService(session, actor="kim@tour.test")

    txn = service.create(
        entry(transaction_type="bank_deposit", amount=Decimal("60"), description="Chase")
    )

    stored = session.get(CashTransaction, txn.id)
    assert stored.transaction_type == CashDirection.withdrawal
    assert stored.description == "은행 Deposit - Chase"
    assert txn.display_type == "bank_deposit"

    banks = service.load(CashFilters(direction="bank_deposit"))
    withdrawals = service.load(CashFilters(direction="withdrawal"))
    assert [t.id for t in banks.transactions] == [txn.id]
    assert txn.id in [t.id for t in withdrawals.transactions]
    assert banks.balance == withdrawals.balance == Decimal("60")
    assert banks.visible_balance == Decimal("-60")


def test_changing_bank_deposit_type_drops_marker() -> None:
    _, session = make_session()
    service = CashLedgerService(session, actor="kim@tour.test")
    txn = service.create(entry(transaction_type="bank_deposit", description="Chase"))

    updated = service.update(
        CashSource.cash_transactions,
        txn.id,
        entry(transaction_type="withdrawal", description="은행 Deposit - Chase"),
    )

    assert updated.description == "Chase"
    assert updated.display_type == "withdrawal"

    again = service.update(
        CashSource.cash_transactions,
        txn.id,
        entry(transaction_type="bank_deposit", description="Chase"),
    )
    assert again.description == "은행 Deposit - Chase"
    assert again.is_bank_deposit


def test_create_records_history() -> None:
    _, session = make_session()
    service = CashLedgerService(session, actor="kim@tour.test")

    txn = service.create(entry())
    history = service.history_for(CashSource.cash_transactions, txn.id)

    assert len(history) == 1
    assert history[0].change_type == ChangeType.created
    assert history[0].old_values is None
    assert history[0].new_values["amount"] == "20.00"
    assert history[0].modified_by == "kim@tour.test"


def test_update_payment_row_writes_its_own_columns() -> None:
    _, session = make_session()
    seed(session)
    service = CashLedgerService(session, actor="kim@tour.test")

    txn = service.update(
        CashSource.payment_records,
        "pr_p1",
        entry(amount=Decimal("75"), description="Balance paid", transaction_date=date(2024, 1, 5)),
    )

    payment = session.get(PaymentRecord, "p1")
    assert payment.amount == Decimal("75")
    assert payment.note == "Balance paid"
    assert payment.submit_on == datetime(2024, 1, 5)
    assert payment.payment_method == "PAYM032"
    assert txn.id == "pr_p1"

    history = service.history_for(CashSource.payment_records, "pr_p1")
    assert history[0].change_type == ChangeType.updated
    assert history[0].transaction_id == "p1"
    assert Decimal(history[0].old_values["amount"]) == Decimal("50")
    assert history[0].modified_by_name == "김가이드"


def test_update_expense_row_maps_category_to_paid_for() -> None:
    _, session = make_session()
    seed(session)
    service = CashLedgerService(session, actor="")

    service.update(
        CashSource.company_expenses,
        "ce_e1",
        entry(amount=Decimal("35"), description="Fuel", category="회사 지출", notes="receipt"),
    )

    expense = session.get(CompanyExpense, "e1")
    assert expense.amount == Decimal("35")
    assert expense.description == "Fuel"
    assert expense.notes == "receipt"
    assert expense.paid_for == "회사 지출"


def test_update_rejects_foreign_and_unknown_ids() -> None:
    _, session = make_session()
    seed(session)
    service = CashLedgerService(session, actor="")

    with pytest.raises(ValueError):
        service.update(CashSource.company_expenses, "pr_p1", entry())
    with pytest.raises(ValueError):
        service.update(CashSource.payment_records, "pr_missing", entry())
    with pytest.raises(ValueError):
        service.update(CashSource.payment_records, "pr_p2", entry())
    with pytest.raises(ValueError):
        service.delete(CashSource.company_expenses, "ce_e2")


def test_delete_ledger_row_keeps_history() -> None:
    _, session = make_session()
    ledger = seed(session)
    service = CashLedgerService(session, actor="")

    service.delete(CashSource.cash_transactions, ledger.id)

    assert session.get(CashTransaction, ledger.id) is None
    history = service.history_for(CashSource.cash_transactions, ledger.id)
    assert history[0].change_type == ChangeType.deleted
    assert history[0].new_values is None
    assert history[0].old_values["description"] == "Tips"


def test_failing_source_does_not_hide_the_others() -> None:
    engine, session = make_session()
    ledger = seed(session)
    Base.metadata.tables["payment_records"].drop(engine)

    view = CashLedgerService(session, actor="").load()

    assert view.failed_sources == [CashSource.payment_records]
    assert [t.id for t in view.transactions] == [ledger.id, "ce_e1"]
    assert view.balance == Decimal("70")


def test_history_failure_does_not_block_mutation() -> None:
    engine, session = make_session()
    Base.metadata.tables["cash_transaction_history"].drop(engine)
    service = CashLedgerService(session, actor="")

    txn = service.create(entry(amount=Decimal("15")))

    stored = session.get(CashTransaction, txn.id)
    assert stored is not None
    assert stored.amount == Decimal("15")
