import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import ChoiceType, PaymentMethodStatus

DirectionInput = Literal["deposit", "withdrawal", "bank_deposit"]


class CashTransactionIn(BaseModel):
    transaction_date: date
    transaction_type: DirectionInput = "deposit"
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class PickupHotelIn(BaseModel):
    hotel: str = Field(..., min_length=1, max_length=200)
    pick_up_location: str = Field(..., min_length=1, max_length=200)
    address: str = Field(..., min_length=1, max_length=300)
    description_ko: Optional[str] = None
    description_en: Optional[str] = None
    pin: Optional[str] = Field(default=None, max_length=100)
    link: Optional[str] = Field(default=None, max_length=500)
    youtube_link: Optional[str] = Field(default=None, max_length=500)
    media: list[str] = Field(default_factory=list)
    is_active: Optional[bool] = True
    group_number: Optional[Decimal] = Field(default=None, ge=0)


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    name_ko: Optional[str] = Field(default=None, max_length=200)
    category: Optional[str] = Field(default=None, max_length=100)
    sub_category: Optional[str] = Field(default=None, max_length=100)
    base_price: Decimal = Field(default=Decimal("0"), ge=0)
    status: Literal["active", "inactive", "draft"] = "active"


class ChoiceOptionIn(BaseModel):
    option_key: str = Field(..., min_length=1, max_length=100)
    option_name: str = Field(..., min_length=1, max_length=200)
    option_name_ko: Optional[str] = None
    adult_price: Decimal = Decimal("0")
    child_price: Decimal = Decimal("0")
    infant_price: Decimal = Decimal("0")
    capacity: Optional[int] = Field(default=None, ge=0)
    is_default: bool = False
    is_active: bool = True


class ProductChoiceIn(BaseModel):
    choice_group: str = Field(..., min_length=1, max_length=100)
    choice_group_ko: Optional[str] = None
    choice_type: ChoiceType = ChoiceType.single
    is_required: bool = True
    options: list[ChoiceOptionIn] = Field(default_factory=list)


class DocumentTemplateIn(BaseModel):
    template_key: str = Field(..., min_length=1, max_length=80)
    language: str = Field(default="ko", min_length=2, max_length=8)
    name: str = Field(..., min_length=1, max_length=200)
    subject: Optional[str] = Field(default=None, max_length=300)
    content: str
    format: Literal["html", "text"] = "html"
    is_active: bool = True
    channel_id: Optional[str] = None
    product_id: Optional[str] = None


class PaymentMethodIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1, max_length=64)
    method: str = Field(..., min_length=1, max_length=200)
    method_type: str = Field(default="card", max_length=20)
    user_email: Optional[str] = None
    limit_amount: Optional[Decimal] = Field(default=None, ge=0)
    status: PaymentMethodStatus = PaymentMethodStatus.active
    card_number_last4: Optional[str] = Field(default=None, max_length=4)
    card_type: Optional[str] = None
    card_holder_name: Optional[str] = None
    expiry_date: Optional[dt.date] = None
    monthly_limit: Optional[Decimal] = Field(default=None, ge=0)
    daily_limit: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None
    created_by: Optional[str] = None


class PaymentMethodUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    method: Optional[str] = Field(default=None, min_length=1, max_length=200)
    method_type: Optional[str] = Field(default=None, max_length=20)
    user_email: Optional[str] = None
    limit_amount: Optional[Decimal] = Field(default=None, ge=0)
    status: Optional[PaymentMethodStatus] = None
    card_number_last4: Optional[str] = Field(default=None, max_length=4)
    card_type: Optional[str] = None
    card_holder_name: Optional[str] = None
    expiry_date: Optional[dt.date] = None
    monthly_limit: Optional[Decimal] = Field(default=None, ge=0)
    daily_limit: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None
    updated_by: Optional[str] = None


class PaymentUsageIn(BaseModel):
    method_id: str
    amount: Decimal = Field(..., gt=0)


class AttendanceIn(BaseModel):
    employee_email: str = Field(..., min_length=3)
    date: dt.date
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    notes: Optional[str] = None


class TeamMemberIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    name_ko: str = Field(..., min_length=1, max_length=100)
    name_en: Optional[str] = Field(default=None, max_length=100)
    position: Optional[str] = Field(default=None, max_length=50)
    is_active: bool = True
