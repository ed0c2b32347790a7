import json
import re
from decimal import Decimal
from typing import Any, Mapping, Optional

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z0-9_]+(?:\.[A-Za-z0-9_]+)*)\s*\}\}")

DEFAULT_TEMPLATES: list[dict[str, str]] = [
    {
        "template_key": "reservation_confirmation",
        "language": "ko",
        "name": "예약 확인서",
        "subject": "[예약 확인서] {{reservation.id}}",
        "content": "<h1>예약 확인서</h1><p>{{customer.name}}님, 예약번호 {{reservation.id}}</p>",
    },
    {
        "template_key": "pickup_notification",
        "language": "ko",
        "name": "픽업 안내",
        "subject": "[픽업 안내] {{reservation.id}}",
        "content": "<h1>픽업 안내</h1><p>픽업 호텔: {{pickup.display}} / 시간: {{reservation.pickup_time}}</p>",
    },
    {
        "template_key": "reservation_receipt",
        "language": "ko",
        "name": "예약 영수증",
        "subject": "[예약 영수증] {{reservation.id}}",
        "content": "<h1>예약 영수증</h1><p>총액: {{pricing.total_locale}}원</p>",
    },
]

_MISSING = object()


def lookup_path(context: Mapping[str, Any], path: str) -> Any:
    current: Any = context
    for part in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(part, _MISSING)
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else _MISSING
        else:
            return None
        if current is _MISSING or current is None:
            return None
    return current


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def render_template_string(template: Optional[str], context: Mapping[str, Any]) -> str:
    """Replace ``{{dotted.path}}`` placeholders; unknown paths become empty."""
    if not template:
        return ""
    return PLACEHOLDER_RE.sub(
        lambda match: _stringify(lookup_path(context, match.group(1))), template
    )


def placeholders(template: Optional[str]) -> list[str]:
    seen: list[str] = []
    for match in PLACEHOLDER_RE.finditer(template or ""):
        if match.group(1) not in seen:
            seen.append(match.group(1))
    return seen


def format_locale_amount(amount: Decimal) -> str:
    return f"{amount:,.0f}"


def sample_context() -> dict[str, Any]:
    total = Decimal("389000")
    return {
        "reservation": {
            "id": "R-20240103-001",
            "tour_date": "2024-01-03",
            "tour_time": "08:00",
            "pickup_time": "07:30",
            "selected_options": [],
        },
        "customer": {"name": "Kim", "email": "kim@example.com"},
        "product": {"name": "Grand Canyon Day Tour", "display_name": {"ko": "그랜드캐년 투어"}},
        "pickup": {"display": "Bellagio - Main Lobby"},
        "channel": {"name": "Direct", "type": "self"},
        "pricing": {"total": str(total), "total_locale": format_locale_amount(total)},
    }
