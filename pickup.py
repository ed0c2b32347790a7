from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from rapidfuzz.distance import Levenshtein

from models import PickupHotel

UNGROUPED_LABEL = "그룹 미설정"


@dataclass(frozen=True)
class PickupResolution:
    success: bool
    message: str
    requested: Optional[PickupHotel]
    target: Optional[PickupHotel]


def round_group_number(value: Decimal) -> int:
    return math.floor(Decimal(value) + Decimal("0.5"))


def is_integer_group(value: Optional[Decimal]) -> bool:
    if value is None:
        return False
    value = Decimal(value)
    return value == value.to_integral_value()


def is_active(hotel: PickupHotel) -> bool:
    return hotel.is_active is not False


def group_label(value: Optional[Decimal]) -> str:
    if value is None:
        return UNGROUPED_LABEL
    return f"그룹 {math.floor(Decimal(value))}"


def group_hotels(hotels: Sequence[PickupHotel]) -> dict[str, list[PickupHotel]]:
    groups: dict[str, list[PickupHotel]] = {}
    for hotel in hotels:
        groups.setdefault(group_label(hotel.group_number), []).append(hotel)
    for members in groups.values():
        members.sort(key=lambda h: Decimal(h.group_number or 999))
    return groups


def find_requested_hotel(
    name: str, hotels: Sequence[PickupHotel]
) -> Optional[PickupHotel]:
    needle = name.strip().lower()
    if not needle:
        return None
    for hotel in hotels:
        candidate = hotel.hotel.lower()
        if needle in candidate or candidate in needle:
            return hotel

    close = [h for h in hotels if Levenshtein.distance(needle, h.hotel.lower()) <= 1]
    if len(close) == 1:
        return close[0]
    return None


def resolve_pickup_request(
    name: str, hotels: Sequence[PickupHotel]
) -> PickupResolution:
    requested = find_requested_hotel(name, hotels)
    if requested is None or not requested.group_number:
        return PickupResolution(
            success=False,
            message=f'요청하신 "{name}" 호텔을 찾을 수 없거나 그룹 번호가 설정되지 않았습니다.',
            requested=requested,
            target=None,
        )

    rounded = round_group_number(requested.group_number)
    target = next(
        (
            h
            for h in hotels
            if h.group_number is not None
            and Decimal(h.group_number) == rounded
            and h.is_active is True
        ),
        None,
    )
    if target is None:
        return PickupResolution(
            success=False,
            message=f"그룹 {rounded}에 해당하는 활성 호텔을 찾을 수 없습니다.",
            requested=requested,
            target=None,
        )
    if target.id == requested.id:
        return PickupResolution(
            success=True,
            message=f'"{requested.hotel}" 호텔로 픽업이 가능합니다.',
            requested=requested,
            target=target,
        )
    return PickupResolution(
        success=True,
        message=(
            f'"{requested.hotel}" 요청으로 "{target.hotel}" 호텔로 픽업 안내됩니다. '
            f"(그룹 {requested.group_number} → {target.group_number})"
        ),
        requested=requested,
        target=target,
    )
