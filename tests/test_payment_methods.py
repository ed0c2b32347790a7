from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from models import PaymentMethodStatus, TeamMember
from schemas import PaymentMethodIn, PaymentMethodUpdate
from services import PaymentMethodService


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = SessionLocal()
    session.add(TeamMember(email="park@tour.test", name_ko="박매니저"))
    session.commit()
    return session


def test_display_name_depends_on_id_prefix() -> None:
    service = PaymentMethodService(make_session(), actor="admin@tour.test")

    card = service.create(
        PaymentMethodIn(id="PAYM010", method="Chase Visa", user_email="park@tour.test")
    )
    petty = service.create(PaymentMethodIn(id="petty", method="Petty cash", method_type="cash"))

    assert card.display_name == "PAYM010 - Chase Visa"
    assert card.owner.name_ko == "박매니저"
    assert petty.display_name == "Petty cash"

    renamed = service.update("PAYM010", PaymentMethodUpdate(method="Chase Sapphire"))
    assert renamed.display_name == "PAYM010 - Chase Sapphire"
    assert renamed.updated_by == "admin@tour.test"


def test_create_rejects_duplicates_and_unknown_owner() -> None:
    service = PaymentMethodService(make_session(), actor="")
    service.create(PaymentMethodIn(id="PAYM001", method="Amex"))

    with pytest.raises(ValueError):
        service.create(PaymentMethodIn(id="PAYM001", method="Amex again"))
    with pytest.raises(ValueError):
        service.create(
            PaymentMethodIn(id="PAYM002", method="Visa", user_email="ghost@tour.test")
        )
    with pytest.raises(ValueError):
        service.get("PAYM404")


def test_usage_accumulates_and_resets() -> None:
    service = PaymentMethodService(make_session(), actor="")
    service.create(PaymentMethodIn(id="PAYM001", method="Amex", daily_limit=Decimal("500")))

    service.record_usage("PAYM001", Decimal("120.50"))
    method = service.record_usage("PAYM001", Decimal("30"))

    assert method.current_day_usage == Decimal("150.50")
    assert method.current_month_usage == Decimal("150.50")
    assert method.last_used_date is not None

    assert service.reset_usage("daily") == 1
    method = service.get("PAYM001")
    assert method.current_day_usage == Decimal("0")
    assert method.current_month_usage == Decimal("150.50")

    service.reset_usage("monthly")
    assert service.get("PAYM001").current_month_usage == Decimal("0")

    with pytest.raises(ValueError):
        service.reset_usage("weekly")
    with pytest.raises(ValueError):
        service.record_usage("PAYM001", Decimal("0"))


def test_usage_requires_active_method() -> None:
    service = PaymentMethodService(make_session(), actor="")
    service.create(
        PaymentMethodIn(id="PAYM001", method="Amex", status=PaymentMethodStatus.suspended)
    )

    with pytest.raises(ValueError):
        service.record_usage("PAYM001", Decimal("10"))


def test_stats_count_status_and_type() -> None:
    service = PaymentMethodService(make_session(), actor="")
    service.create(
        PaymentMethodIn(id="PAYM001", method="Amex", limit_amount=Decimal("1000"))
    )
    service.create(
        PaymentMethodIn(
            id="PAYM002",
            method="Venmo",
            method_type="mobile",
            status=PaymentMethodStatus.inactive,
            monthly_limit=Decimal("300"),
        )
    )
    service.create(PaymentMethodIn(id="gift", method="Gift card", method_type="voucher"))

    stats = service.stats()

    assert stats["total"] == 3
    assert stats["active"] == 2
    assert stats["inactive"] == 1
    assert stats["suspended"] == 0
    assert stats["by_type"] == {
        "card": 1,
        "cash": 0,
        "transfer": 0,
        "mobile": 1,
        "other": 1,
    }
    assert stats["total_limit"] == Decimal("1000")
    assert stats["total_monthly_limit"] == Decimal("300")

    assert service.stats(method_type="mobile")["total"] == 1
    assert [m.id for m in service.list(status=PaymentMethodStatus.inactive)] == ["PAYM002"]
