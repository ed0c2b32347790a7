import datetime as dt
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid4())


class CashDirection(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"


class CashSource(str, Enum):
    cash_transactions = "cash_transactions"
    payment_records = "payment_records"
    company_expenses = "company_expenses"


class ChangeType(str, Enum):
    created = "created"
    updated = "updated"
    deleted = "deleted"


class ChoiceType(str, Enum):
    single = "single"
    multiple = "multiple"
    quantity = "quantity"


class PaymentMethodStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    suspended = "suspended"
    expired = "expired"


MONEY = Numeric(12, 2)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class TeamMember(Base, TimestampMixin):
    __tablename__ = "team"

    email: Mapped[str] = mapped_column(String(255), primary_key=True)
    name_ko: Mapped[str] = mapped_column(String(100), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(100))
    position: Mapped[Optional[str]] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    attendance_records: Mapped[list["AttendanceRecord"]] = relationship(
        "AttendanceRecord", back_populates="employee"
    )


class CashTransaction(Base, TimestampMixin):
    __tablename__ = "cash_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    transaction_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    transaction_type: Mapped[CashDirection] = mapped_column(
        SAEnum(CashDirection), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    reference_type: Mapped[Optional[str]] = mapped_column(String(50))
    reference_id: Mapped[Optional[str]] = mapped_column(String(64))
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_cash_transactions_date", "transaction_date", "created_at"),
        CheckConstraint("amount > 0", name="ck_cash_transactions_amount_positive"),
    )


class PaymentRecord(Base):
    __tablename__ = "payment_records"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    reservation_id: Mapped[Optional[str]] = mapped_column(String(64))
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(64))
    payment_status: Mapped[Optional[str]] = mapped_column(String(40))
    note: Mapped[Optional[str]] = mapped_column(Text)
    submit_on: Mapped[Optional[datetime]] = mapped_column(DateTime)
    submit_by: Mapped[Optional[str]] = mapped_column(String(255))

    __table_args__ = (
        Index("ix_payment_records_method_submit", "payment_method", "submit_on"),
    )


class CompanyExpense(Base):
    __tablename__ = "company_expenses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(64))
    description: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    paid_for: Mapped[Optional[str]] = mapped_column(String(100))
    paid_to: Mapped[Optional[str]] = mapped_column(String(200))
    submit_on: Mapped[Optional[datetime]] = mapped_column(DateTime)
    submit_by: Mapped[Optional[str]] = mapped_column(String(255))

    __table_args__ = (
        Index("ix_company_expenses_method_submit", "payment_method", "submit_on"),
    )


class CashTransactionHistory(Base):
    __tablename__ = "cash_transaction_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    transaction_id: Mapped[str] = mapped_column(String(64), nullable=False)
    source_table: Mapped[CashSource] = mapped_column(
        SAEnum(CashSource), nullable=False
    )
    change_type: Mapped[ChangeType] = mapped_column(SAEnum(ChangeType), nullable=False)
    old_values: Mapped[Optional[dict]] = mapped_column(JSON)
    new_values: Mapped[Optional[dict]] = mapped_column(JSON)
    modified_by: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    modified_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    __table_args__ = (
        Index(
            "ix_cash_history_txn_source",
            "transaction_id",
            "source_table",
            "modified_at",
        ),
    )


class PickupHotel(Base, TimestampMixin):
    __tablename__ = "pickup_hotels"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    hotel: Mapped[str] = mapped_column(String(200), nullable=False)
    pick_up_location: Mapped[str] = mapped_column(String(200), nullable=False)
    description_ko: Mapped[Optional[str]] = mapped_column(Text)
    description_en: Mapped[Optional[str]] = mapped_column(Text)
    address: Mapped[str] = mapped_column(String(300), nullable=False)
    pin: Mapped[Optional[str]] = mapped_column(String(100))
    link: Mapped[Optional[str]] = mapped_column(String(500))
    youtube_link: Mapped[Optional[str]] = mapped_column(String(500))
    media: Mapped[Optional[list]] = mapped_column(JSON)
    is_active: Mapped[Optional[bool]] = mapped_column(Boolean, default=True)
    group_number: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2))


class Product(Base, TimestampMixin):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    name_ko: Mapped[Optional[str]] = mapped_column(String(200))
    category: Mapped[Optional[str]] = mapped_column(String(100))
    sub_category: Mapped[Optional[str]] = mapped_column(String(100))
    base_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    choices: Mapped[list["ProductChoice"]] = relationship(
        "ProductChoice",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductChoice.sort_order",
    )


class ProductChoice(Base):
    __tablename__ = "product_choices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False)
    choice_group: Mapped[str] = mapped_column(String(100), nullable=False)
    choice_group_ko: Mapped[Optional[str]] = mapped_column(String(100))
    choice_type: Mapped[ChoiceType] = mapped_column(
        SAEnum(ChoiceType), nullable=False, default=ChoiceType.single
    )
    is_required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    product: Mapped["Product"] = relationship("Product", back_populates="choices")
    options: Mapped[list["ChoiceOption"]] = relationship(
        "ChoiceOption",
        back_populates="choice",
        cascade="all, delete-orphan",
        order_by="ChoiceOption.sort_order",
    )

    __table_args__ = (
        UniqueConstraint("product_id", "choice_group", name="uq_choice_product_group"),
    )


class ChoiceOption(Base):
    __tablename__ = "choice_options"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    choice_id: Mapped[str] = mapped_column(
        ForeignKey("product_choices.id"), nullable=False
    )
    option_key: Mapped[str] = mapped_column(String(100), nullable=False)
    option_name: Mapped[str] = mapped_column(String(200), nullable=False)
    option_name_ko: Mapped[Optional[str]] = mapped_column(String(200))
    adult_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    child_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    infant_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    capacity: Mapped[Optional[int]] = mapped_column(Integer)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    choice: Mapped["ProductChoice"] = relationship(
        "ProductChoice", back_populates="options"
    )

    __table_args__ = (
        UniqueConstraint("choice_id", "option_key", name="uq_option_choice_key"),
    )


class DocumentTemplate(Base, TimestampMixin):
    __tablename__ = "document_templates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    template_key: Mapped[str] = mapped_column(String(80), nullable=False)
    language: Mapped[str] = mapped_column(String(8), nullable=False, default="ko")
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    subject: Mapped[Optional[str]] = mapped_column(String(300))
    content: Mapped[str] = mapped_column(Text, nullable=False)
    format: Mapped[str] = mapped_column(String(20), nullable=False, default="html")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    channel_id: Mapped[Optional[str]] = mapped_column(String(64))
    product_id: Mapped[Optional[str]] = mapped_column(String(64))

    __table_args__ = (
        Index("ix_document_templates_key_lang", "template_key", "language"),
    )


class PaymentMethod(Base, TimestampMixin):
    __tablename__ = "payment_methods"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    method: Mapped[str] = mapped_column(String(200), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(300))
    method_type: Mapped[str] = mapped_column(String(20), nullable=False, default="card")
    user_email: Mapped[Optional[str]] = mapped_column(
        ForeignKey("team.email"), nullable=True
    )
    limit_amount: Mapped[Optional[Decimal]] = mapped_column(MONEY)
    status: Mapped[PaymentMethodStatus] = mapped_column(
        SAEnum(PaymentMethodStatus), nullable=False, default=PaymentMethodStatus.active
    )
    card_number_last4: Mapped[Optional[str]] = mapped_column(String(4))
    card_type: Mapped[Optional[str]] = mapped_column(String(40))
    card_holder_name: Mapped[Optional[str]] = mapped_column(String(200))
    expiry_date: Mapped[Optional[date]] = mapped_column(Date)
    monthly_limit: Mapped[Optional[Decimal]] = mapped_column(MONEY)
    daily_limit: Mapped[Optional[Decimal]] = mapped_column(MONEY)
    current_month_usage: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=0
    )
    current_day_usage: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    assigned_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    last_used_date: Mapped[Optional[date]] = mapped_column(Date)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[Optional[str]] = mapped_column(String(255))
    updated_by: Mapped[Optional[str]] = mapped_column(String(255))

    owner: Mapped[Optional["TeamMember"]] = relationship("TeamMember")

    __table_args__ = (
        CheckConstraint(
            "limit_amount IS NULL OR limit_amount >= 0",
            name="ck_payment_method_limit_positive",
        ),
    )


class AttendanceRecord(Base, TimestampMixin):
    __tablename__ = "attendance_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_email: Mapped[str] = mapped_column(
        ForeignKey("team.email"), nullable=False
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    session_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    check_in_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    check_out_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    work_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="present")
    notes: Mapped[Optional[str]] = mapped_column(Text)

    employee: Mapped["TeamMember"] = relationship(
        "TeamMember", back_populates="attendance_records"
    )

    __table_args__ = (
        UniqueConstraint(
            "employee_email",
            "date",
            "session_number",
            name="uq_attendance_employee_date_session",
        ),
        Index("ix_attendance_employee_date", "employee_email", "date"),
    )
