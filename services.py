from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from config import get_settings
from models import (
    AttendanceRecord,
    CashSource,
    CashTransaction,
    CashTransactionHistory,
    ChangeType,
    ChoiceOption,
    CompanyExpense,
    DocumentTemplate,
    PaymentMethod,
    PaymentMethodStatus,
    PaymentRecord,
    PickupHotel,
    Product,
    ProductChoice,
    TeamMember,
    utcnow,
)
from periods import month_period
from pickup import (
    PickupResolution,
    group_hotels,
    is_active,
    is_integer_group,
    resolve_pickup_request,
)
from pricing import ChoiceCombination, expand_combinations
from reconciliation import (
    CASH_EXPENSE_METHOD,
    CASH_PAYMENT_METHOD_CODE,
    CashFilters,
    CashLedgerView,
    SourceRow,
    UnifiedTransaction,
    build_ledger_view,
    project,
    snapshot,
    split_unified_id,
    storage_direction,
    with_bank_deposit_marker,
    without_bank_deposit_marker,
)
from schemas import (
    AttendanceIn,
    CashTransactionIn,
    DocumentTemplateIn,
    PaymentMethodIn,
    PaymentMethodUpdate,
    PickupHotelIn,
    ProductChoiceIn,
    ProductIn,
    TeamMemberIn,
)
from template_render import DEFAULT_TEMPLATES, render_template_string

logger = logging.getLogger(__name__)

SOURCE_MODELS = {
    CashSource.cash_transactions: CashTransaction,
    CashSource.payment_records: PaymentRecord,
    CashSource.company_expenses: CompanyExpense,
}


def get_current_actor() -> str:
    return get_settings().actor_email


def local_today() -> date:
    tz = ZoneInfo(get_settings().timezone)
    return datetime.now(tz).date()


class TeamService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self, active_only: bool = False) -> list[TeamMember]:
        stmt = select(TeamMember).order_by(TeamMember.name_ko)
        if active_only:
            stmt = stmt.where(TeamMember.is_active.is_(True))
        return self.session.scalars(stmt).all()

    def name_map(self) -> dict[str, str]:
        rows = self.session.execute(select(TeamMember.email, TeamMember.name_ko)).all()
        return {row.email: row.name_ko for row in rows}

    def upsert(self, data: TeamMemberIn) -> TeamMember:
        email = data.email.strip().lower()
        member = self.session.get(TeamMember, email)
        if member is None:
            member = TeamMember(email=email)
            self.session.add(member)
        member.name_ko = data.name_ko.strip()
        member.name_en = data.name_en
        member.position = data.position
        member.is_active = data.is_active
        self.session.commit()
        self.session.refresh(member)
        return member


@dataclass(frozen=True)
class HistoryEntry:
    id: int
    transaction_id: str
    source_table: CashSource
    change_type: ChangeType
    old_values: Optional[dict]
    new_values: Optional[dict]
    modified_by: str
    modified_by_name: str
    modified_at: datetime


class CashHistoryService:
    def __init__(self, session: Session, actor: Optional[str] = None) -> None:
        self.session = session
        self.actor = actor if actor is not None else get_current_actor()

    def record(
        self,
        transaction_id: str,
        source: CashSource,
        change_type: ChangeType,
        old_values: Optional[dict[str, Any]],
        new_values: Optional[dict[str, Any]],
    ) -> bool:
        """Append an audit row; failures are logged and never raised."""
        entry = CashTransactionHistory(
            transaction_id=transaction_id,
            source_table=source,
            change_type=change_type,
            old_values=old_values,
            new_values=new_values,
            modified_by=self.actor,
            modified_at=utcnow(),
        )
        try:
            self.session.add(entry)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.warning(
                f"cash_history_append_failed: source={source.value} "
                f"transaction_id={transaction_id} change={change_type.value}",
                exc_info=True,
            )
            return False
        return True

    def list_for(self, transaction_id: str, source: CashSource) -> list[HistoryEntry]:
        stmt = (
            select(CashTransactionHistory)
            .where(
                CashTransactionHistory.transaction_id == transaction_id,
                CashTransactionHistory.source_table == source,
            )
            .order_by(
                CashTransactionHistory.modified_at.desc(),
                CashTransactionHistory.id.desc(),
            )
        )
        rows = self.session.scalars(stmt).all()
        names = TeamService(self.session).name_map()
        return [
            HistoryEntry(
                id=row.id,
                transaction_id=row.transaction_id,
                source_table=row.source_table,
                change_type=row.change_type,
                old_values=row.old_values,
                new_values=row.new_values,
                modified_by=row.modified_by,
                modified_by_name=names.get(row.modified_by) or row.modified_by,
                modified_at=row.modified_at,
            )
            for row in rows
        ]


class CashLedgerService:
    def __init__(self, session: Session, actor: Optional[str] = None) -> None:
        self.session = session
        self.actor = actor if actor is not None else get_current_actor()
        self.history = CashHistoryService(session, self.actor)

    def _names(self) -> dict[str, str]:
        try:
            return TeamService(self.session).name_map()
        except SQLAlchemyError:
            self.session.rollback()
            logger.warning("cash_team_names_failed", exc_info=True)
            return {}

    def _ledger_rows(self, filters: CashFilters) -> list[CashTransaction]:
        stmt = select(CashTransaction).order_by(
            CashTransaction.transaction_date.desc(), CashTransaction.created_at.desc()
        )
        if filters.query:
            like = f"%{filters.query.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(func.coalesce(CashTransaction.description, "")).like(
                        like
                    ),
                    func.lower(func.coalesce(CashTransaction.notes, "")).like(like),
                )
            )
        if filters.category:
            stmt = stmt.where(CashTransaction.category == filters.category)
        if filters.start_at:
            stmt = stmt.where(CashTransaction.transaction_date >= filters.start_at)
        if filters.end_at:
            stmt = stmt.where(CashTransaction.transaction_date <= filters.end_at)
        return self.session.scalars(stmt).all()

    def _payment_rows(self, filters: CashFilters) -> list[PaymentRecord]:
        stmt = (
            select(PaymentRecord)
            .where(PaymentRecord.payment_method == CASH_PAYMENT_METHOD_CODE)
            .order_by(PaymentRecord.submit_on.desc())
        )
        if filters.query:
            like = f"%{filters.query.lower()}%"
            stmt = stmt.where(func.lower(func.coalesce(PaymentRecord.note, "")).like(like))
        if filters.start_at:
            stmt = stmt.where(PaymentRecord.submit_on >= filters.start_at)
        if filters.end_at:
            stmt = stmt.where(PaymentRecord.submit_on <= filters.end_at)
        return self.session.scalars(stmt).all()

    def _expense_rows(self, filters: CashFilters) -> list[CompanyExpense]:
        stmt = (
            select(CompanyExpense)
            .where(
                func.lower(CompanyExpense.payment_method)
                == CASH_EXPENSE_METHOD.lower()
            )
            .order_by(CompanyExpense.submit_on.desc())
        )
        if filters.query:
            like = f"%{filters.query.lower()}%"
            stmt = stmt.where(
                or_(
                    *[
                        func.lower(func.coalesce(column, "")).like(like)
                        for column in (
                            CompanyExpense.description,
                            CompanyExpense.notes,
                            CompanyExpense.paid_for,
                            CompanyExpense.paid_to,
                        )
                    ]
                )
            )
        if filters.category:
            stmt = stmt.where(CompanyExpense.paid_for == filters.category)
        if filters.start_at:
            stmt = stmt.where(CompanyExpense.submit_on >= filters.start_at)
        if filters.end_at:
            stmt = stmt.where(CompanyExpense.submit_on <= filters.end_at)
        return self.session.scalars(stmt).all()

    def load(self, filters: Optional[CashFilters] = None) -> CashLedgerView:
        filters = filters or CashFilters()
        loaders = [
            (CashSource.cash_transactions, self._ledger_rows),
            (CashSource.payment_records, self._payment_rows),
            (CashSource.company_expenses, self._expense_rows),
        ]
        rows: list[SourceRow] = []
        failed: list[CashSource] = []
        for source, loader in loaders:
            try:
                rows.extend(loader(filters))
            except SQLAlchemyError:
                self.session.rollback()
                failed.append(source)
                logger.exception(f"cash_source_failed: source={source.value}")
        view = build_ledger_view(rows, filters, self._names(), failed_sources=failed)
        logger.info(
            f"cash_ledger_loaded: rows={len(rows)} shown={len(view.transactions)} "
            f"direction={filters.direction} failed={len(failed)}"
        )
        return view

    def source_row(self, source: CashSource, transaction_id: str) -> SourceRow:
        original_id = split_unified_id(source, transaction_id)
        row = self.session.get(SOURCE_MODELS[source], original_id)
        if row is None:
            raise ValueError("Cash transaction not found")
        if isinstance(row, PaymentRecord) and row.payment_method != CASH_PAYMENT_METHOD_CODE:
            raise ValueError("Payment record is not a cash payment")
        if isinstance(row, CompanyExpense) and (
            (row.payment_method or "").lower() != CASH_EXPENSE_METHOD.lower()
        ):
            raise ValueError("Company expense was not paid in cash")
        return row

    def get(self, source: CashSource, transaction_id: str) -> UnifiedTransaction:
        return project(self.source_row(source, transaction_id), self._names())

    @staticmethod
    def _values(data: CashTransactionIn) -> dict[str, Any]:
        description = (data.description or "").strip() or None
        if data.transaction_type == "bank_deposit":
            description = with_bank_deposit_marker(description)
        else:
            description = without_bank_deposit_marker(description)
        return {
            "transaction_date": datetime.combine(data.transaction_date, time.min),
            "transaction_type": storage_direction(data.transaction_type),
            "amount": data.amount,
            "description": description,
            "category": (data.category or "").strip() or None,
            "notes": (data.notes or "").strip() or None,
        }

    def _commit(self, action: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception(f"cash_mutation_failed: action={action}")
            raise

    def create(self, data: CashTransactionIn) -> UnifiedTransaction:
        values = self._values(data)
        row = CashTransaction(created_by=self.actor, **values)
        self.session.add(row)
        self._commit("create")
        self.session.refresh(row)

        txn = project(row, self._names())
        self.history.record(
            row.id, CashSource.cash_transactions, ChangeType.created, None, snapshot(txn)
        )
        return txn

    def update(
        self, source: CashSource, transaction_id: str, data: CashTransactionIn
    ) -> UnifiedTransaction:
        names = self._names()
        row = self.source_row(source, transaction_id)
        old_values = snapshot(project(row, names))
        values = self._values(data)

        if isinstance(row, CashTransaction):
            for key, value in values.items():
                setattr(row, key, value)
        elif isinstance(row, PaymentRecord):
            row.submit_on = values["transaction_date"]
            row.amount = values["amount"]
            row.note = values["description"] or values["notes"]
        else:
            row.submit_on = values["transaction_date"]
            row.amount = values["amount"]
            row.description = values["description"]
            row.notes = values["notes"]
            row.paid_for = values["category"]
        self._commit("update")
        self.session.refresh(row)

        txn = project(row, names)
        self.history.record(
            row.id, source, ChangeType.updated, old_values, snapshot(txn)
        )
        return txn

    def delete(self, source: CashSource, transaction_id: str) -> None:
        row = self.source_row(source, transaction_id)
        original_id = row.id
        old_values = snapshot(project(row, self._names()))
        self.session.delete(row)
        self._commit("delete")
        self.history.record(original_id, source, ChangeType.deleted, old_values, None)

    def history_for(self, source: CashSource, transaction_id: str) -> list[HistoryEntry]:
        original_id = split_unified_id(source, transaction_id)
        return self.history.list_for(original_id, source)


class PickupHotelService:
    SORT_FIELDS = ("hotel", "pick_up_location", "address", "group_number", "created_at")

    def __init__(self, session: Session) -> None:
        self.session = session

    def list(
        self,
        search: Optional[str] = None,
        group_filter: str = "all",
        status_filter: str = "all",
        sort: str = "hotel",
        descending: bool = False,
    ) -> list[PickupHotel]:
        if sort not in self.SORT_FIELDS:
            raise ValueError(f"Cannot sort by {sort}")
        column = getattr(PickupHotel, sort)
        stmt = select(PickupHotel).order_by(
            column.desc() if descending else column.asc(), PickupHotel.hotel.asc()
        )
        if search and search.strip():
            like = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(PickupHotel.hotel).like(like),
                    func.lower(PickupHotel.pick_up_location).like(like),
                    func.lower(PickupHotel.address).like(like),
                )
            )
        hotels = self.session.scalars(stmt).all()
        if group_filter == "integer":
            hotels = [h for h in hotels if is_integer_group(h.group_number)]
        if status_filter == "active":
            hotels = [h for h in hotels if is_active(h)]
        elif status_filter == "inactive":
            hotels = [h for h in hotels if not is_active(h)]
        return hotels

    def get(self, hotel_id: str) -> PickupHotel:
        hotel = self.session.get(PickupHotel, hotel_id)
        if not hotel:
            raise ValueError("Pickup hotel not found")
        return hotel

    def _apply(self, hotel: PickupHotel, data: PickupHotelIn) -> None:
        hotel.hotel = data.hotel.strip()
        hotel.pick_up_location = data.pick_up_location.strip()
        hotel.address = data.address.strip()
        hotel.description_ko = data.description_ko
        hotel.description_en = data.description_en
        hotel.pin = data.pin
        hotel.link = data.link
        hotel.youtube_link = data.youtube_link
        hotel.media = [m for m in data.media if m.strip()] or None
        hotel.is_active = data.is_active
        hotel.group_number = data.group_number

    def create(self, data: PickupHotelIn) -> PickupHotel:
        hotel = PickupHotel()
        self._apply(hotel, data)
        self.session.add(hotel)
        self.session.commit()
        self.session.refresh(hotel)
        return hotel

    def update(self, hotel_id: str, data: PickupHotelIn) -> PickupHotel:
        hotel = self.get(hotel_id)
        self._apply(hotel, data)
        self.session.commit()
        self.session.refresh(hotel)
        return hotel

    def set_group_number(
        self, hotel_id: str, group_number: Optional[Decimal]
    ) -> PickupHotel:
        if group_number is not None and group_number < 0:
            raise ValueError("Group number must not be negative")
        hotel = self.get(hotel_id)
        hotel.group_number = group_number
        self.session.commit()
        self.session.refresh(hotel)
        return hotel

    def delete(self, hotel_id: str) -> None:
        hotel = self.get(hotel_id)
        self.session.delete(hotel)
        self.session.commit()

    def grouped(self, **filters: Any) -> dict[str, list[PickupHotel]]:
        return group_hotels(self.list(**filters))

    def resolve_pickup(self, requested_name: str) -> PickupResolution:
        hotels = self.session.scalars(select(PickupHotel)).all()
        return resolve_pickup_request(requested_name, hotels)


class ProductService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(
        self, search: Optional[str] = None, category: Optional[str] = None
    ) -> list[Product]:
        stmt = select(Product).order_by(Product.name.asc())
        if search and search.strip():
            like = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Product.name).like(like),
                    func.lower(func.coalesce(Product.name_ko, "")).like(like),
                )
            )
        if category:
            stmt = stmt.where(Product.category == category)
        return self.session.scalars(stmt).all()

    def get(self, product_id: str) -> Product:
        stmt = (
            select(Product)
            .options(selectinload(Product.choices).selectinload(ProductChoice.options))
            .where(Product.id == product_id)
        )
        product = self.session.scalar(stmt)
        if not product:
            raise ValueError("Product not found")
        return product

    def create(self, data: ProductIn) -> Product:
        product = Product(**data.model_dump())
        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)
        return product

    def update(self, product_id: str, data: ProductIn) -> Product:
        product = self.get(product_id)
        for key, value in data.model_dump().items():
            setattr(product, key, value)
        self.session.commit()
        self.session.refresh(product)
        return product

    def delete(self, product_id: str) -> None:
        product = self.get(product_id)
        self.session.delete(product)
        self.session.commit()

    @staticmethod
    def _options(data: ProductChoiceIn) -> list[ChoiceOption]:
        if sum(1 for o in data.options if o.is_default) > 1:
            raise ValueError("Only one default option per group")
        keys = [o.option_key for o in data.options]
        if len(keys) != len(set(keys)):
            raise ValueError("Option keys must be unique within a group")
        return [
            ChoiceOption(sort_order=index, **option.model_dump())
            for index, option in enumerate(data.options)
        ]

    def add_choice(self, product_id: str, data: ProductChoiceIn) -> ProductChoice:
        product = self.get(product_id)
        if any(c.choice_group == data.choice_group for c in product.choices):
            raise ValueError("Choice group already exists")
        choice = ProductChoice(
            choice_group=data.choice_group,
            choice_group_ko=data.choice_group_ko,
            choice_type=data.choice_type,
            is_required=data.is_required,
            sort_order=len(product.choices),
            options=self._options(data),
        )
        product.choices.append(choice)
        self.session.commit()
        self.session.refresh(choice)
        return choice

    def replace_choice(self, choice_id: str, data: ProductChoiceIn) -> ProductChoice:
        choice = self.session.get(ProductChoice, choice_id)
        if not choice:
            raise ValueError("Choice group not found")
        options = self._options(data)
        choice.choice_group = data.choice_group
        choice.choice_group_ko = data.choice_group_ko
        choice.choice_type = data.choice_type
        choice.is_required = data.is_required
        # old rows must be gone before reused option keys are inserted
        choice.options.clear()
        self.session.flush()
        choice.options.extend(options)
        self.session.commit()
        self.session.refresh(choice)
        return choice

    def delete_choice(self, choice_id: str) -> None:
        choice = self.session.get(ProductChoice, choice_id)
        if not choice:
            raise ValueError("Choice group not found")
        choice.product.choices.remove(choice)
        self.session.commit()

    def combinations(self, product_id: str) -> list[ChoiceCombination]:
        return expand_combinations(self.get(product_id).choices)


@dataclass(frozen=True)
class RenderedDocument:
    subject: str
    body: str


class DocumentTemplateService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(
        self,
        template_key: Optional[str] = None,
        language: Optional[str] = None,
        channel_id: Optional[str] = None,
        product_id: Optional[str] = None,
    ) -> list[DocumentTemplate]:
        stmt = select(DocumentTemplate).order_by(
            DocumentTemplate.template_key, DocumentTemplate.language, DocumentTemplate.name
        )
        if template_key:
            stmt = stmt.where(DocumentTemplate.template_key == template_key)
        if language:
            stmt = stmt.where(DocumentTemplate.language == language)
        if channel_id:
            stmt = stmt.where(DocumentTemplate.channel_id == channel_id)
        if product_id:
            stmt = stmt.where(DocumentTemplate.product_id == product_id)
        return self.session.scalars(stmt).all()

    def get(self, template_id: str) -> DocumentTemplate:
        template = self.session.get(DocumentTemplate, template_id)
        if not template:
            raise ValueError("Template not found")
        return template

    def create(self, data: DocumentTemplateIn) -> DocumentTemplate:
        template = DocumentTemplate(**data.model_dump())
        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)
        return template

    def update(self, template_id: str, data: DocumentTemplateIn) -> DocumentTemplate:
        template = self.get(template_id)
        for key, value in data.model_dump().items():
            setattr(template, key, value)
        self.session.commit()
        self.session.refresh(template)
        return template

    def delete(self, template_id: str) -> None:
        template = self.get(template_id)
        self.session.delete(template)
        self.session.commit()

    def copy_to_language(self, template_id: str, language: str) -> DocumentTemplate:
        source = self.get(template_id)
        if source.language == language:
            raise ValueError("Template already uses that language")
        clone = DocumentTemplate(
            template_key=source.template_key,
            language=language,
            name=source.name,
            subject=source.subject,
            content=source.content,
            format=source.format,
            is_active=source.is_active,
            channel_id=source.channel_id,
            product_id=source.product_id,
        )
        self.session.add(clone)
        self.session.commit()
        self.session.refresh(clone)
        return clone

    def seed_defaults(self) -> int:
        existing = self.session.execute(
            select(func.count(DocumentTemplate.id))
        ).scalar_one()
        if existing:
            return 0
        for item in DEFAULT_TEMPLATES:
            self.session.add(DocumentTemplate(**item))
        self.session.commit()
        logger.info(f"document_templates_seeded: count={len(DEFAULT_TEMPLATES)}")
        return len(DEFAULT_TEMPLATES)

    def render(
        self, template_id: str, context: Mapping[str, Any]
    ) -> RenderedDocument:
        template = self.get(template_id)
        return RenderedDocument(
            subject=render_template_string(template.subject, context),
            body=render_template_string(template.content, context),
        )


def payment_method_display_name(method_id: str, method: str) -> str:
    if method_id.startswith("PAYM"):
        return f"{method_id} - {method}"
    return method


class PaymentMethodService:
    KNOWN_TYPES = ("card", "cash", "transfer", "mobile")

    def __init__(self, session: Session, actor: Optional[str] = None) -> None:
        self.session = session
        self.actor = actor if actor is not None else get_current_actor()

    def list(
        self,
        user_email: Optional[str] = None,
        status: Optional[PaymentMethodStatus] = None,
        method_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[PaymentMethod]:
        stmt = (
            select(PaymentMethod)
            .options(selectinload(PaymentMethod.owner))
            .order_by(PaymentMethod.created_at.desc(), PaymentMethod.id.asc())
            .offset(offset)
            .limit(limit)
        )
        if user_email:
            stmt = stmt.where(PaymentMethod.user_email == user_email)
        if status:
            stmt = stmt.where(PaymentMethod.status == status)
        if method_type:
            stmt = stmt.where(PaymentMethod.method_type == method_type)
        return self.session.scalars(stmt).all()

    def get(self, method_id: str) -> PaymentMethod:
        method = self.session.get(PaymentMethod, method_id)
        if not method:
            raise ValueError("Payment method not found")
        return method

    def _check_owner(self, user_email: Optional[str]) -> Optional[str]:
        if not user_email:
            return None
        if not self.session.get(TeamMember, user_email):
            raise ValueError("Team member not found")
        return user_email

    def create(self, data: PaymentMethodIn) -> PaymentMethod:
        method_id = data.id.strip()
        if self.session.get(PaymentMethod, method_id):
            raise ValueError("Payment method with this ID already exists")
        values = data.model_dump(exclude={"id", "user_email"})
        method = PaymentMethod(
            id=method_id,
            user_email=self._check_owner(data.user_email),
            display_name=payment_method_display_name(method_id, data.method),
            assigned_date=local_today(),
            **values,
        )
        self.session.add(method)
        self.session.commit()
        self.session.refresh(method)
        return method

    def update(self, method_id: str, data: PaymentMethodUpdate) -> PaymentMethod:
        method = self.get(method_id)
        changes = data.model_dump(exclude_unset=True)
        if "user_email" in changes:
            changes["user_email"] = self._check_owner(changes["user_email"])
        for key, value in changes.items():
            setattr(method, key, value)
        if "method" in changes:
            method.display_name = payment_method_display_name(method.id, method.method)
        if "updated_by" not in changes:
            method.updated_by = self.actor or None
        self.session.commit()
        self.session.refresh(method)
        return method

    def delete(self, method_id: str) -> None:
        method = self.get(method_id)
        self.session.delete(method)
        self.session.commit()

    def record_usage(self, method_id: str, amount: Decimal) -> PaymentMethod:
        if amount <= 0:
            raise ValueError("Invalid amount")
        method = self.get(method_id)
        if method.status != PaymentMethodStatus.active:
            raise ValueError("Payment method is not active")
        method.current_day_usage = Decimal(method.current_day_usage or 0) + amount
        method.current_month_usage = Decimal(method.current_month_usage or 0) + amount
        method.last_used_date = local_today()
        self.session.commit()
        self.session.refresh(method)
        return method

    def reset_usage(self, reset_type: str) -> int:
        if reset_type == "daily":
            values = {"current_day_usage": 0}
        elif reset_type == "monthly":
            values = {"current_month_usage": 0}
        else:
            raise ValueError('reset_type must be "monthly" or "daily"')
        result = self.session.execute(update(PaymentMethod).values(**values))
        self.session.commit()
        return int(result.rowcount or 0)

    def stats(
        self, user_email: Optional[str] = None, method_type: Optional[str] = None
    ) -> dict[str, object]:
        stmt = select(PaymentMethod)
        if user_email:
            stmt = stmt.where(PaymentMethod.user_email == user_email)
        if method_type:
            stmt = stmt.where(PaymentMethod.method_type == method_type)
        methods = self.session.scalars(stmt).all()

        def total(attr: str) -> Decimal:
            return sum((Decimal(getattr(m, attr) or 0) for m in methods), Decimal("0"))

        by_status = {
            status.value: sum(1 for m in methods if m.status == status)
            for status in PaymentMethodStatus
        }
        by_type = {
            kind: sum(1 for m in methods if m.method_type == kind)
            for kind in self.KNOWN_TYPES
        }
        by_type["other"] = sum(
            1 for m in methods if m.method_type not in self.KNOWN_TYPES
        )
        return {
            "total": len(methods),
            **by_status,
            "total_limit": total("limit_amount"),
            "total_monthly_limit": total("monthly_limit"),
            "total_daily_limit": total("daily_limit"),
            "total_current_month_usage": total("current_month_usage"),
            "total_current_day_usage": total("current_day_usage"),
            "by_type": by_type,
        }


def work_hours_between(check_in: datetime, check_out: datetime) -> Decimal:
    if check_out < check_in:
        raise ValueError("Check-out must be after check-in")
    hours = Decimal((check_out - check_in).total_seconds()) / Decimal(3600)
    return hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class AttendanceService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_month(self, employee_email: str, month: Optional[str]) -> list[AttendanceRecord]:
        period = month_period(month, today=local_today())
        stmt = (
            select(AttendanceRecord)
            .where(
                AttendanceRecord.employee_email == employee_email,
                AttendanceRecord.date.between(period.start, period.end),
            )
            .order_by(
                AttendanceRecord.date.desc(),
                AttendanceRecord.check_in_time.desc(),
                AttendanceRecord.session_number.asc(),
            )
        )
        return self.session.scalars(stmt).all()

    def check_in(self, data: AttendanceIn) -> AttendanceRecord:
        member = self.session.get(TeamMember, data.employee_email)
        if not member or not member.is_active:
            raise ValueError("Employee not found")

        last_session = self.session.execute(
            select(func.max(AttendanceRecord.session_number)).where(
                AttendanceRecord.employee_email == data.employee_email,
                AttendanceRecord.date == data.date,
            )
        ).scalar_one()
        work_hours = Decimal("0")
        if data.check_out_time:
            work_hours = work_hours_between(data.check_in_time, data.check_out_time)

        record = AttendanceRecord(
            employee_email=data.employee_email,
            date=data.date,
            session_number=(last_session or 0) + 1,
            check_in_time=data.check_in_time,
            check_out_time=data.check_out_time,
            work_hours=work_hours,
            notes=data.notes,
        )
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def check_out(self, record_id: int, at: datetime) -> AttendanceRecord:
        record = self.session.get(AttendanceRecord, record_id)
        if not record:
            raise ValueError("Attendance record not found")
        if record.check_out_time is not None:
            raise ValueError("Session already checked out")
        record.work_hours = work_hours_between(record.check_in_time, at)
        record.check_out_time = at
        self.session.commit()
        self.session.refresh(record)
        return record
