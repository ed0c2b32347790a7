import logging
import math
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlencode

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import (
    HTMLResponse,
    JSONResponse,
    RedirectResponse,
    Response,
    StreamingResponse,
)
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings
from csrf import generate_csrf_token, validate_csrf_token
from csv_utils import export_cash_transactions, parse_amount, parse_optional_amount
from database import SessionLocal
from models import (
    AttendanceRecord,
    CashSource,
    DocumentTemplate,
    PaymentMethod,
    PaymentMethodStatus,
    PickupHotel,
)
from periods import describe_range, resolve_date_range
from pricing import default_combination
from reconciliation import (
    DIRECTION_FILTERS,
    LEDGER_CATEGORIES,
    CashFilters,
    UnifiedTransaction,
    without_bank_deposit_marker,
)
from scheduler import SchedulerManager
from schemas import (
    AttendanceIn,
    CashTransactionIn,
    DocumentTemplateIn,
    PaymentMethodIn,
    PaymentMethodUpdate,
    PaymentUsageIn,
    PickupHotelIn,
    ProductChoiceIn,
    ProductIn,
    TeamMemberIn,
)
from services import (
    AttendanceService,
    CashLedgerService,
    DocumentTemplateService,
    PaymentMethodService,
    PickupHotelService,
    ProductService,
    TeamService,
    local_today,
)
from template_render import placeholders, sample_context

app = FastAPI(title="Tour Operations Back Office")
BASE_DIR = Path(__file__).resolve().parent

app.mount("/static", StaticFiles(directory=BASE_DIR / "static"), name="static")
templates = Jinja2Templates(directory=BASE_DIR / "templates")


def format_money(amount: Optional[Decimal]) -> str:
    if amount is None:
        return ""
    return f"${Decimal(amount):,.2f}"


templates.env.filters["money"] = format_money
templates.env.globals["math"] = math
templates.env.globals["csrf_token"] = generate_csrf_token
templates.env.globals["LEDGER_CATEGORIES"] = LEDGER_CATEGORIES
templates.env.globals["DIRECTION_FILTERS"] = DIRECTION_FILTERS
templates.env.globals["PaymentMethodStatus"] = PaymentMethodStatus


def static_path(path: str) -> str:
    return app.url_path_for("static", path=path)


templates.env.globals["static_path"] = static_path


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def render(
    request: Request,
    template: str,
    context: dict[str, object],
    status_code: int = 200,
) -> HTMLResponse:
    return templates.TemplateResponse(request, template, context, status_code=status_code)


async def checked_form(request: Request):
    form = await request.form()
    if not validate_csrf_token(form.get("csrf_token", "")):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")
    return form


def done(request: Request, url: str, event: str) -> Response:
    headers = {"HX-Trigger": event}
    if request.headers.get("HX-Request"):
        return Response(status_code=204, headers=headers)
    return RedirectResponse(url=url, status_code=303, headers=headers)


def _optional(form, key: str) -> Optional[str]:
    value = form.get(key)
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def int_param(request: Request, key: str, default: int) -> int:
    value = request.query_params.get(key)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"{key} must be an integer") from exc


def parse_source(value: str) -> CashSource:
    try:
        return CashSource(value)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail="Unknown cash source") from exc


# Cash ledger

CASH_SAVE_FAILED = "현금 거래를 저장하지 못했습니다. 잠시 후 다시 시도하세요."


def cash_filters_from_request(request: Request) -> CashFilters:
    params = request.query_params
    try:
        start, end = resolve_date_range(params.get("start"), params.get("end"))
        return CashFilters(
            start=start,
            end=end,
            query=params.get("q"),
            direction=params.get("direction") or "all",
            category=params.get("category"),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def cash_payload_from_form(form) -> CashTransactionIn:
    return CashTransactionIn(
        transaction_date=date.fromisoformat(form["transaction_date"]),
        transaction_type=form.get("transaction_type", "deposit"),
        amount=parse_amount(form["amount"]),
        description=_optional(form, "description"),
        category=_optional(form, "category"),
        notes=_optional(form, "notes"),
    )


def cash_transaction_json(txn: UnifiedTransaction) -> dict[str, object]:
    return {
        "id": txn.id,
        "source": txn.source.value,
        "source_label": txn.source_label,
        "transaction_date": txn.transaction_date.isoformat(),
        "transaction_type": txn.transaction_type.value,
        "display_type": txn.display_type,
        "amount": str(txn.amount),
        "description": txn.description,
        "category": txn.category,
        "reference_type": txn.reference_type,
        "reference_id": txn.reference_id,
        "created_by": txn.created_by,
        "created_by_name": txn.created_by_name,
        "notes": txn.notes,
        "is_editable": txn.is_editable,
        "created_at": txn.created_at.isoformat(),
        "updated_at": txn.updated_at.isoformat(),
    }


@app.get("/", response_class=HTMLResponse)
def index():
    return RedirectResponse(url="/cash", status_code=303)


@app.get("/cash", response_class=HTMLResponse)
def cash_page(request: Request, db: Session = Depends(get_db)):
    filters = cash_filters_from_request(request)
    page = max(int_param(request, "page", 1), 1)
    per_page = get_settings().cash_page_size
    view = CashLedgerService(db).load(filters)
    filter_params = {
        key: value
        for key, value in {
            "start": filters.start.isoformat() if filters.start else "",
            "end": filters.end.isoformat() if filters.end else "",
            "q": filters.query or "",
            "direction": filters.direction if filters.direction != "all" else "",
            "category": filters.category or "",
        }.items()
        if value
    }
    return render(
        request,
        "cash.html",
        {
            "view": view,
            "transactions": view.page(page, per_page),
            "filters": filters,
            "range_label": describe_range(filters.start, filters.end),
            "page": page,
            "total_pages": view.total_pages(per_page),
            "filter_query": urlencode(filter_params),
            "refresh_url": "/cash?" + urlencode({**filter_params, "page": page}),
            "today": local_today(),
            "strip_marker": without_bank_deposit_marker,
        },
    )


@app.post("/cash")
async def create_cash_transaction(request: Request, db: Session = Depends(get_db)):
    form = await checked_form(request)
    try:
        data = cash_payload_from_form(form)
    except (KeyError, ValueError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        txn = CashLedgerService(db).create(data)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail=CASH_SAVE_FAILED) from exc
    logging.info(f"cash_created: id={txn.id} type={txn.display_type}")
    return done(request, "/cash", "cash-changed")


@app.post("/cash/{source}/{transaction_id}/edit")
async def update_cash_transaction(
    source: str, transaction_id: str, request: Request, db: Session = Depends(get_db)
):
    form = await checked_form(request)
    cash_source = parse_source(source)
    try:
        data = cash_payload_from_form(form)
    except (KeyError, ValueError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        CashLedgerService(db).update(cash_source, transaction_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail=CASH_SAVE_FAILED) from exc
    return done(request, "/cash", "cash-changed")


@app.post("/cash/{source}/{transaction_id}/delete")
async def delete_cash_transaction(
    source: str, transaction_id: str, request: Request, db: Session = Depends(get_db)
):
    await checked_form(request)
    cash_source = parse_source(source)
    try:
        CashLedgerService(db).delete(cash_source, transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail=CASH_SAVE_FAILED) from exc
    return Response(status_code=204, headers={"HX-Trigger": "cash-changed"})


@app.get("/cash/{source}/{transaction_id}/history", response_class=HTMLResponse)
def cash_history_fragment(
    source: str, transaction_id: str, request: Request, db: Session = Depends(get_db)
):
    cash_source = parse_source(source)
    try:
        entries = CashLedgerService(db).history_for(cash_source, transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return render(request, "components/cash_history.html", {"entries": entries})


@app.get("/cash/export.csv")
def export_cash_endpoint(request: Request, db: Session = Depends(get_db)):
    filters = cash_filters_from_request(request)
    view = CashLedgerService(db).load(filters)
    csv_text = export_cash_transactions(view.transactions)
    stamp = local_today().isoformat()
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="cash_{stamp}.csv"'},
    )


@app.get("/api/cash")
def api_cash(request: Request, db: Session = Depends(get_db)):
    filters = cash_filters_from_request(request)
    page = max(int_param(request, "page", 1), 1)
    limit = int_param(request, "limit", get_settings().cash_page_size)
    limit = min(max(limit, 1), 500)
    view = CashLedgerService(db).load(filters)
    return {
        "items": [cash_transaction_json(t) for t in view.page(page, limit)],
        "total": len(view.transactions),
        "page": page,
        "limit": limit,
        "total_pages": view.total_pages(limit),
        "balance": str(view.balance),
        "visible_balance": str(view.visible_balance),
        "total_deposits": str(view.total_deposits),
        "total_withdrawals": str(view.total_withdrawals),
        "failed_sources": [s.value for s in view.failed_sources],
    }


@app.post("/api/cash", status_code=201)
def api_create_cash(data: CashTransactionIn, db: Session = Depends(get_db)):
    return cash_transaction_json(CashLedgerService(db).create(data))


@app.put("/api/cash/{source}/{transaction_id}")
def api_update_cash(
    source: str,
    transaction_id: str,
    data: CashTransactionIn,
    db: Session = Depends(get_db),
):
    cash_source = parse_source(source)
    try:
        txn = CashLedgerService(db).update(cash_source, transaction_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return cash_transaction_json(txn)


@app.delete("/api/cash/{source}/{transaction_id}", status_code=204)
def api_delete_cash(source: str, transaction_id: str, db: Session = Depends(get_db)):
    cash_source = parse_source(source)
    try:
        CashLedgerService(db).delete(cash_source, transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/cash/{source}/{transaction_id}/history")
def api_cash_history(source: str, transaction_id: str, db: Session = Depends(get_db)):
    cash_source = parse_source(source)
    try:
        entries = CashLedgerService(db).history_for(cash_source, transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [
        {
            "id": e.id,
            "transaction_id": e.transaction_id,
            "source_table": e.source_table.value,
            "change_type": e.change_type.value,
            "old_values": e.old_values,
            "new_values": e.new_values,
            "modified_by": e.modified_by,
            "modified_by_name": e.modified_by_name,
            "modified_at": e.modified_at.isoformat(),
        }
        for e in entries
    ]


# Pickup hotels


def hotel_payload_from_form(form) -> PickupHotelIn:
    status = form.get("is_active", "on")
    return PickupHotelIn(
        hotel=form["hotel"],
        pick_up_location=form["pick_up_location"],
        address=form["address"],
        description_ko=_optional(form, "description_ko"),
        description_en=_optional(form, "description_en"),
        pin=_optional(form, "pin"),
        link=_optional(form, "link"),
        youtube_link=_optional(form, "youtube_link"),
        media=[line.strip() for line in (form.get("media") or "").splitlines()],
        is_active=status in ("on", "true", "1"),
        group_number=parse_optional_amount(form.get("group_number")),
    )


def hotel_json(hotel: PickupHotel) -> dict[str, object]:
    return {
        "id": hotel.id,
        "hotel": hotel.hotel,
        "pick_up_location": hotel.pick_up_location,
        "address": hotel.address,
        "description_ko": hotel.description_ko,
        "description_en": hotel.description_en,
        "pin": hotel.pin,
        "link": hotel.link,
        "youtube_link": hotel.youtube_link,
        "media": hotel.media or [],
        "is_active": hotel.is_active,
        "group_number": str(hotel.group_number) if hotel.group_number is not None else None,
    }


def hotel_filters_from_request(request: Request) -> dict[str, Any]:
    params = request.query_params
    return {
        "search": params.get("q"),
        "group_filter": params.get("group", "all"),
        "status_filter": params.get("status", "all"),
        "sort": params.get("sort", "hotel"),
        "descending": params.get("order") == "desc",
    }


@app.get("/hotels", response_class=HTMLResponse)
def hotels_page(request: Request, db: Session = Depends(get_db)):
    filters = hotel_filters_from_request(request)
    try:
        groups = PickupHotelService(db).grouped(**filters)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return render(request, "hotels.html", {"groups": groups, "filters": filters})


@app.post("/hotels")
async def create_hotel(request: Request, db: Session = Depends(get_db)):
    form = await checked_form(request)
    try:
        data = hotel_payload_from_form(form)
    except (KeyError, ValueError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    PickupHotelService(db).create(data)
    return done(request, "/hotels", "hotels-changed")


@app.post("/hotels/{hotel_id}/edit")
async def update_hotel(hotel_id: str, request: Request, db: Session = Depends(get_db)):
    form = await checked_form(request)
    try:
        data = hotel_payload_from_form(form)
    except (KeyError, ValueError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        PickupHotelService(db).update(hotel_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return done(request, "/hotels", "hotels-changed")


@app.post("/hotels/{hotel_id}/group")
async def update_hotel_group(
    hotel_id: str, request: Request, db: Session = Depends(get_db)
):
    form = await checked_form(request)
    try:
        group_number = parse_optional_amount(form.get("group_number"))
        PickupHotelService(db).set_group_number(hotel_id, group_number)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return Response(status_code=204, headers={"HX-Trigger": "hotels-changed"})


@app.post("/hotels/{hotel_id}/delete")
async def delete_hotel(hotel_id: str, request: Request, db: Session = Depends(get_db)):
    await checked_form(request)
    try:
        PickupHotelService(db).delete(hotel_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204, headers={"HX-Trigger": "hotels-changed"})


@app.get("/api/hotels")
def api_hotels(request: Request, db: Session = Depends(get_db)):
    try:
        hotels = PickupHotelService(db).list(**hotel_filters_from_request(request))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [hotel_json(h) for h in hotels]


@app.get("/api/pickup/resolve")
def api_resolve_pickup(hotel: str, db: Session = Depends(get_db)):
    result = PickupHotelService(db).resolve_pickup(hotel)
    return {
        "success": result.success,
        "message": result.message,
        "requested": hotel_json(result.requested) if result.requested else None,
        "target": hotel_json(result.target) if result.target else None,
    }


# Products


def product_payload_from_form(form) -> ProductIn:
    return ProductIn(
        name=form["name"],
        name_ko=_optional(form, "name_ko"),
        category=_optional(form, "category"),
        sub_category=_optional(form, "sub_category"),
        base_price=parse_optional_amount(form.get("base_price")) or Decimal("0"),
        status=form.get("status", "active"),
    )


@app.get("/products", response_class=HTMLResponse)
def products_page(request: Request, db: Session = Depends(get_db)):
    params = request.query_params
    products = ProductService(db).list(params.get("q"), params.get("category"))
    return render(request, "products.html", {"products": products, "q": params.get("q")})


@app.post("/products")
async def create_product(request: Request, db: Session = Depends(get_db)):
    form = await checked_form(request)
    try:
        data = product_payload_from_form(form)
    except (KeyError, ValueError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    product = ProductService(db).create(data)
    return done(request, f"/products/{product.id}", "products-changed")


@app.get("/products/{product_id}", response_class=HTMLResponse)
def product_detail(product_id: str, request: Request, db: Session = Depends(get_db)):
    service = ProductService(db)
    try:
        product = service.get(product_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    combinations = service.combinations(product_id)
    return render(
        request,
        "product_detail.html",
        {
            "product": product,
            "combinations": combinations,
            "default_combination": default_combination(combinations),
        },
    )


@app.post("/products/{product_id}/edit")
async def update_product(
    product_id: str, request: Request, db: Session = Depends(get_db)
):
    form = await checked_form(request)
    try:
        data = product_payload_from_form(form)
    except (KeyError, ValueError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        ProductService(db).update(product_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return done(request, f"/products/{product_id}", "products-changed")


@app.post("/products/{product_id}/delete")
async def delete_product(
    product_id: str, request: Request, db: Session = Depends(get_db)
):
    await checked_form(request)
    try:
        ProductService(db).delete(product_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return done(request, "/products", "products-changed")


@app.post("/api/products/{product_id}/choices", status_code=201)
def api_add_choice(
    product_id: str, data: ProductChoiceIn, db: Session = Depends(get_db)
):
    try:
        choice = ProductService(db).add_choice(product_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"id": choice.id, "choice_group": choice.choice_group}


@app.put("/api/choices/{choice_id}")
def api_replace_choice(
    choice_id: str, data: ProductChoiceIn, db: Session = Depends(get_db)
):
    try:
        choice = ProductService(db).replace_choice(choice_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"id": choice.id, "choice_group": choice.choice_group}


@app.delete("/api/choices/{choice_id}", status_code=204)
def api_delete_choice(choice_id: str, db: Session = Depends(get_db)):
    try:
        ProductService(db).delete_choice(choice_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/products/{product_id}/combinations")
def api_combinations(product_id: str, db: Session = Depends(get_db)):
    try:
        combinations = ProductService(db).combinations(product_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [
        {
            "id": c.id,
            "combination_key": c.combination_key,
            "combination_name": c.combination_name,
            "combination_name_ko": c.combination_name_ko,
            "adult_price": str(c.adult_price),
            "child_price": str(c.child_price),
            "infant_price": str(c.infant_price),
            "is_default": c.is_default,
        }
        for c in combinations
    ]


# Document templates


def document_payload_from_form(form) -> DocumentTemplateIn:
    return DocumentTemplateIn(
        template_key=form["template_key"],
        language=form.get("language", "ko"),
        name=form["name"],
        subject=_optional(form, "subject"),
        content=form["content"],
        format=form.get("format", "html"),
        is_active=form.get("is_active") == "on",
        channel_id=_optional(form, "channel_id"),
        product_id=_optional(form, "product_id"),
    )


def document_json(template: DocumentTemplate) -> dict[str, object]:
    return {
        "id": template.id,
        "template_key": template.template_key,
        "language": template.language,
        "name": template.name,
        "subject": template.subject,
        "content": template.content,
        "format": template.format,
        "is_active": template.is_active,
        "channel_id": template.channel_id,
        "product_id": template.product_id,
        "placeholders": placeholders(template.content),
    }


@app.get("/templates", response_class=HTMLResponse)
def templates_page(request: Request, db: Session = Depends(get_db)):
    params = request.query_params
    items = DocumentTemplateService(db).list(
        template_key=params.get("key"),
        language=params.get("language"),
        channel_id=params.get("channel"),
        product_id=params.get("product"),
    )
    return render(request, "document_templates.html", {"items": items})


@app.post("/templates")
async def create_document_template(request: Request, db: Session = Depends(get_db)):
    form = await checked_form(request)
    try:
        data = document_payload_from_form(form)
    except (KeyError, ValueError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    DocumentTemplateService(db).create(data)
    return done(request, "/templates", "templates-changed")


@app.post("/templates/seed")
async def seed_document_templates(request: Request, db: Session = Depends(get_db)):
    await checked_form(request)
    DocumentTemplateService(db).seed_defaults()
    return done(request, "/templates", "templates-changed")


@app.post("/templates/{template_id}/edit")
async def update_document_template(
    template_id: str, request: Request, db: Session = Depends(get_db)
):
    form = await checked_form(request)
    try:
        data = document_payload_from_form(form)
    except (KeyError, ValueError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        DocumentTemplateService(db).update(template_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return done(request, "/templates", "templates-changed")


@app.post("/templates/{template_id}/copy")
async def copy_document_template(
    template_id: str, request: Request, db: Session = Depends(get_db)
):
    form = await checked_form(request)
    try:
        DocumentTemplateService(db).copy_to_language(
            template_id, form.get("language", "en")
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return done(request, "/templates", "templates-changed")


@app.post("/templates/{template_id}/delete")
async def delete_document_template(
    template_id: str, request: Request, db: Session = Depends(get_db)
):
    await checked_form(request)
    try:
        DocumentTemplateService(db).delete(template_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204, headers={"HX-Trigger": "templates-changed"})


@app.get("/templates/{template_id}/preview", response_class=HTMLResponse)
def preview_document_template(
    template_id: str, request: Request, db: Session = Depends(get_db)
):
    service = DocumentTemplateService(db)
    try:
        template = service.get(template_id)
        rendered = service.render(template_id, sample_context())
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return render(
        request,
        "document_preview.html",
        {"template": template, "rendered": rendered},
    )


@app.get("/templates/{template_id}/pdf")
def document_template_pdf(
    template_id: str, request: Request, db: Session = Depends(get_db)
):
    service = DocumentTemplateService(db)
    try:
        template = service.get(template_id)
        rendered = service.render(template_id, sample_context())
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    try:
        from weasyprint import HTML
    except Exception as exc:
        raise HTTPException(
            status_code=500,
            detail="PDF export requires WeasyPrint system dependencies; install them for your OS and retry.",
        ) from exc

    try:
        start_time = datetime.now()
        html = templates.env.get_template("document_pdf.html").render(
            template=template, rendered=rendered
        )
        pdf_bytes = HTML(string=html, base_url=str(request.base_url)).write_pdf()
        duration = (datetime.now() - start_time).total_seconds()
        logging.info(
            f"document_pdf_generated: template={template.template_key} "
            f"language={template.language} pdf_size_bytes={len(pdf_bytes)} "
            f"pdf_duration={duration:.2f}s"
        )
    except Exception as exc:
        logging.exception("Error generating document PDF")
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    filename = f"{template.template_key}_{template.language}.pdf"
    return StreamingResponse(
        iter([pdf_bytes]),
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Content-Length": str(len(pdf_bytes)),
        },
    )


@app.get("/api/templates")
def api_document_templates(request: Request, db: Session = Depends(get_db)):
    params = request.query_params
    items = DocumentTemplateService(db).list(
        template_key=params.get("key"),
        language=params.get("language"),
        channel_id=params.get("channel"),
        product_id=params.get("product"),
    )
    return [document_json(t) for t in items]


@app.post("/api/templates/{template_id}/render")
def api_render_document(
    template_id: str,
    context: Optional[dict[str, Any]] = Body(default=None),
    db: Session = Depends(get_db),
):
    try:
        rendered = DocumentTemplateService(db).render(
            template_id, context or sample_context()
        )
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"subject": rendered.subject, "body": rendered.body}


# Payment methods


def payment_method_json(method: PaymentMethod) -> dict[str, object]:
    owner = method.owner
    return {
        "id": method.id,
        "method": method.method,
        "display_name": method.display_name,
        "method_type": method.method_type,
        "user_email": method.user_email,
        "owner_name": owner.name_ko if owner else None,
        "limit_amount": method.limit_amount,
        "status": method.status.value,
        "card_number_last4": method.card_number_last4,
        "card_type": method.card_type,
        "card_holder_name": method.card_holder_name,
        "expiry_date": method.expiry_date.isoformat() if method.expiry_date else None,
        "monthly_limit": method.monthly_limit,
        "daily_limit": method.daily_limit,
        "current_month_usage": method.current_month_usage,
        "current_day_usage": method.current_day_usage,
        "assigned_date": method.assigned_date.isoformat(),
        "last_used_date": method.last_used_date.isoformat() if method.last_used_date else None,
        "notes": method.notes,
    }


def parse_status(value: Optional[str]) -> Optional[PaymentMethodStatus]:
    if not value:
        return None
    try:
        return PaymentMethodStatus(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Unknown status") from exc


@app.get("/payment-methods", response_class=HTMLResponse)
def payment_methods_page(request: Request, db: Session = Depends(get_db)):
    params = request.query_params
    service = PaymentMethodService(db)
    methods = service.list(
        user_email=params.get("user"),
        status=parse_status(params.get("status")),
        method_type=params.get("type"),
        limit=200,
    )
    return render(
        request,
        "payment_methods.html",
        {
            "methods": methods,
            "stats": service.stats(),
            "team": TeamService(db).list_all(active_only=True),
        },
    )


@app.get("/api/payment-methods")
def api_payment_methods(request: Request, db: Session = Depends(get_db)):
    params = request.query_params
    limit = min(max(int_param(request, "limit", 50), 1), 200)
    offset = max(int_param(request, "offset", 0), 0)
    methods = PaymentMethodService(db).list(
        user_email=params.get("user"),
        status=parse_status(params.get("status")),
        method_type=params.get("type"),
        limit=limit,
        offset=offset,
    )
    return [payment_method_json(m) for m in methods]


@app.get("/api/payment-methods/stats")
def api_payment_method_stats(request: Request, db: Session = Depends(get_db)):
    params = request.query_params
    return PaymentMethodService(db).stats(
        user_email=params.get("user"), method_type=params.get("type")
    )


@app.post("/api/payment-methods", status_code=201)
def api_create_payment_method(data: PaymentMethodIn, db: Session = Depends(get_db)):
    try:
        method = PaymentMethodService(db).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return payment_method_json(method)


@app.post("/api/payment-methods/usage")
def api_record_usage(data: PaymentUsageIn, db: Session = Depends(get_db)):
    try:
        method = PaymentMethodService(db).record_usage(data.method_id, data.amount)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return payment_method_json(method)


@app.post("/api/payment-methods/reset")
def api_reset_usage(
    reset_type: str = Body(..., embed=True), db: Session = Depends(get_db)
):
    try:
        count = PaymentMethodService(db).reset_usage(reset_type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logging.info(f"usage_reset_run: type={reset_type} source=api methods_reset={count}")
    return {"reset_type": reset_type, "methods_reset": count}


@app.get("/api/payment-methods/{method_id}")
def api_payment_method(method_id: str, db: Session = Depends(get_db)):
    try:
        method = PaymentMethodService(db).get(method_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return payment_method_json(method)


@app.patch("/api/payment-methods/{method_id}")
def api_update_payment_method(
    method_id: str, data: PaymentMethodUpdate, db: Session = Depends(get_db)
):
    service = PaymentMethodService(db)
    try:
        service.get(method_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    try:
        method = service.update(method_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return payment_method_json(method)


@app.delete("/api/payment-methods/{method_id}", status_code=204)
def api_delete_payment_method(method_id: str, db: Session = Depends(get_db)):
    try:
        PaymentMethodService(db).delete(method_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


# Team and attendance


def attendance_json(record: AttendanceRecord) -> dict[str, object]:
    return {
        "id": record.id,
        "employee_email": record.employee_email,
        "date": record.date.isoformat(),
        "session_number": record.session_number,
        "check_in_time": record.check_in_time.isoformat(),
        "check_out_time": record.check_out_time.isoformat() if record.check_out_time else None,
        "work_hours": str(record.work_hours),
        "status": record.status,
        "notes": record.notes,
    }


@app.get("/attendance", response_class=HTMLResponse)
def attendance_page(request: Request, db: Session = Depends(get_db)):
    params = request.query_params
    team = TeamService(db).list_all(active_only=True)
    employee = params.get("employee") or (team[0].email if team else None)
    records: list[AttendanceRecord] = []
    if employee:
        try:
            records = AttendanceService(db).list_for_month(employee, params.get("month"))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    total_hours = sum((r.work_hours for r in records), Decimal("0"))
    return render(
        request,
        "attendance.html",
        {
            "team": team,
            "employee": employee,
            "month": params.get("month") or local_today().strftime("%Y-%m"),
            "records": records,
            "total_hours": total_hours,
        },
    )


@app.post("/attendance")
async def create_attendance(request: Request, db: Session = Depends(get_db)):
    form = await checked_form(request)
    try:
        check_out = _optional(form, "check_out_time")
        data = AttendanceIn(
            employee_email=form["employee_email"],
            date=date.fromisoformat(form["date"]),
            check_in_time=datetime.fromisoformat(form["check_in_time"]),
            check_out_time=datetime.fromisoformat(check_out) if check_out else None,
            notes=_optional(form, "notes"),
        )
        AttendanceService(db).check_in(data)
    except (KeyError, ValueError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    url = f"/attendance?{urlencode({'employee': data.employee_email})}"
    return done(request, url, "attendance-changed")


@app.post("/attendance/{record_id}/check-out")
async def check_out_attendance(
    record_id: int, request: Request, db: Session = Depends(get_db)
):
    form = await checked_form(request)
    try:
        at_value = _optional(form, "check_out_time")
        at = datetime.fromisoformat(at_value) if at_value else datetime.now()
        AttendanceService(db).check_out(record_id, at)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return Response(status_code=204, headers={"HX-Trigger": "attendance-changed"})


@app.get("/api/attendance")
def api_attendance(
    employee: str, month: Optional[str] = None, db: Session = Depends(get_db)
):
    try:
        records = AttendanceService(db).list_for_month(employee, month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [attendance_json(r) for r in records]


@app.post("/api/attendance", status_code=201)
def api_create_attendance(data: AttendanceIn, db: Session = Depends(get_db)):
    try:
        record = AttendanceService(db).check_in(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return attendance_json(record)


@app.get("/api/team")
def api_team(active: bool = False, db: Session = Depends(get_db)):
    return [
        {
            "email": m.email,
            "name_ko": m.name_ko,
            "name_en": m.name_en,
            "position": m.position,
            "is_active": m.is_active,
        }
        for m in TeamService(db).list_all(active_only=active)
    ]


@app.post("/api/team", status_code=201)
def api_upsert_team_member(data: TeamMemberIn, db: Session = Depends(get_db)):
    member = TeamService(db).upsert(data)
    return {"email": member.email, "name_ko": member.name_ko}


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
