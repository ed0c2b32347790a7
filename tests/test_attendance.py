from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from schemas import AttendanceIn, TeamMemberIn
from services import AttendanceService, TeamService, work_hours_between


def make_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    session = Session(engine)
    team = TeamService(session)
    team.upsert(TeamMemberIn(email="Choi@Tour.test", name_ko="최가이드"))
    team.upsert(TeamMemberIn(email="old@tour.test", name_ko="퇴사자", is_active=False))
    return session


def test_work_hours_round_to_two_decimals() -> None:
    start = datetime(2024, 3, 1, 9, 0)
    assert work_hours_between(start, datetime(2024, 3, 1, 17, 30)) == Decimal("8.50")
    assert work_hours_between(start, datetime(2024, 3, 1, 9, 20)) == Decimal("0.33")
    with pytest.raises(ValueError):
        work_hours_between(start, datetime(2024, 3, 1, 8, 0))


def test_sessions_number_per_day() -> None:
    session = make_session()
    service = AttendanceService(session)

    first = service.check_in(
        AttendanceIn(
            employee_email="choi@tour.test",
            date=date(2024, 3, 1),
            check_in_time=datetime(2024, 3, 1, 8, 0),
            check_out_time=datetime(2024, 3, 1, 12, 0),
        )
    )
    second = service.check_in(
        AttendanceIn(
            employee_email="choi@tour.test",
            date=date(2024, 3, 1),
            check_in_time=datetime(2024, 3, 1, 13, 0),
        )
    )
    next_day = service.check_in(
        AttendanceIn(
            employee_email="choi@tour.test",
            date=date(2024, 3, 2),
            check_in_time=datetime(2024, 3, 2, 7, 0),
        )
    )

    assert (first.session_number, second.session_number, next_day.session_number) == (1, 2, 1)
    assert first.work_hours == Decimal("4.00")
    assert second.work_hours == Decimal("0")

    closed = service.check_out(second.id, datetime(2024, 3, 1, 18, 15))
    assert closed.work_hours == Decimal("5.25")
    with pytest.raises(ValueError):
        service.check_out(second.id, datetime(2024, 3, 1, 19, 0))


def test_month_listing_is_newest_first() -> None:
    session = make_session()
    service = AttendanceService(session)
    for day, hour in [(1, 8), (1, 13), (15, 9)]:
        service.check_in(
            AttendanceIn(
                employee_email="choi@tour.test",
                date=date(2024, 3, day),
                check_in_time=datetime(2024, 3, day, hour, 0),
            )
        )
    service.check_in(
        AttendanceIn(
            employee_email="choi@tour.test",
            date=date(2024, 4, 1),
            check_in_time=datetime(2024, 4, 1, 9, 0),
        )
    )

    records = service.list_for_month("choi@tour.test", "2024-03")

    assert [(r.date.day, r.check_in_time.hour) for r in records] == [
        (15, 9),
        (1, 13),
        (1, 8),
    ]
    with pytest.raises(ValueError):
        service.list_for_month("choi@tour.test", "March")


def test_only_active_members_can_check_in() -> None:
    session = make_session()
    service = AttendanceService(session)

    for email in ("old@tour.test", "nobody@tour.test"):
        with pytest.raises(ValueError):
            service.check_in(
                AttendanceIn(
                    employee_email=email,
                    date=date(2024, 3, 1),
                    check_in_time=datetime(2024, 3, 1, 9, 0),
                )
            )
