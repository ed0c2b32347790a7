from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from itertools import product as cartesian_product
from typing import Optional, Sequence

from models import ChoiceOption, ProductChoice


@dataclass(frozen=True)
class CombinationPart:
    group: str
    group_ko: Optional[str]
    option_key: str
    option_name: str
    option_name_ko: Optional[str]
    adult_price: Decimal
    child_price: Decimal
    infant_price: Decimal


@dataclass(frozen=True)
class ChoiceCombination:
    id: str
    combination_key: str
    combination_name: str
    combination_name_ko: str
    adult_price: Decimal
    child_price: Decimal
    infant_price: Decimal
    parts: tuple[CombinationPart, ...]
    is_default: bool = False


def _part(choice: ProductChoice, option: ChoiceOption) -> CombinationPart:
    return CombinationPart(
        group=choice.choice_group,
        group_ko=choice.choice_group_ko,
        option_key=option.option_key,
        option_name=option.option_name,
        option_name_ko=option.option_name_ko,
        adult_price=Decimal(option.adult_price or 0),
        child_price=Decimal(option.child_price or 0),
        infant_price=Decimal(option.infant_price or 0),
    )


def default_option(choice: ProductChoice) -> Optional[ChoiceOption]:
    options = list(choice.options or [])
    if not options:
        return None
    for option in options:
        if option.is_default:
            return option
    return options[0]


def combination_key(parts: Sequence[CombinationPart]) -> str:
    return "+".join(f"{p.group}_{p.option_key}" for p in parts)


def expand_combinations(choices: Sequence[ProductChoice]) -> list[ChoiceCombination]:
    """
    Price every combination of one option per group.

    Groups are taken in the given order; each combination's prices are the
    sums of its options' prices. The default combination picks each group's
    flagged default option, or the group's first option when none is flagged.
    """
    if not choices:
        return []
    groups = [[_part(c, o) for o in (c.options or [])] for c in choices]
    default_key = combination_key(
        [_part(c, default_option(c)) for c in choices if default_option(c)]
    )

    combinations: list[ChoiceCombination] = []
    for index, parts in enumerate(cartesian_product(*groups)):
        key = combination_key(parts)
        combinations.append(
            ChoiceCombination(
                id=f"combination_{index}",
                combination_key=key,
                combination_name=" + ".join(p.option_name for p in parts),
                combination_name_ko=" + ".join(
                    p.option_name_ko or p.option_name for p in parts
                ),
                adult_price=sum((p.adult_price for p in parts), Decimal("0")),
                child_price=sum((p.child_price for p in parts), Decimal("0")),
                infant_price=sum((p.infant_price for p in parts), Decimal("0")),
                parts=tuple(parts),
                is_default=key == default_key,
            )
        )
    return combinations


def default_combination(
    combinations: Sequence[ChoiceCombination],
) -> Optional[ChoiceCombination]:
    for combo in combinations:
        if combo.is_default:
            return combo
    return None
