import csv
import re
from decimal import Decimal, InvalidOperation
from io import StringIO
from typing import Optional, Sequence

from reconciliation import UnifiedTransaction

# Money columns are NUMERIC(12, 2).
MAX_AMOUNT = Decimal("1e10")


def sanitize_csv_value(value: Optional[str]) -> str:
    """
    Prefix values that spreadsheets would evaluate as formulas with a tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    formula_triggers = ("=", "+", "-", "@", "\t", "\r")

    if value.startswith(formula_triggers):
        return "\t" + value

    dangerous_patterns = [
        r"^cmd\s*",
        r"^powershell\s*",
        r"^bash\s*",
        r"^sh\s*",
        r"^\.",
        r"^http[s]?://",
    ]

    for pattern in dangerous_patterns:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def parse_amount(value: str, *, allow_negative: bool = False) -> Decimal:
    clean = value.strip().replace("$", "").replace("₩", "").replace(" ", "")
    clean = clean.replace(",", "")
    if not clean:
        raise ValueError("Amount is required")
    try:
        amount = Decimal(clean)
        if not amount.is_finite():
            raise ValueError("Invalid amount")
        amount = amount.quantize(Decimal("0.01"))
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    if abs(amount) >= MAX_AMOUNT:
        raise ValueError("Amount is too large")
    if amount < 0 and not allow_negative:
        raise ValueError("Amount must be positive")
    return amount


def parse_optional_amount(value: Optional[str]) -> Optional[Decimal]:
    if value is None or not value.strip():
        return None
    return parse_amount(value)


def export_cash_transactions(transactions: Sequence[UnifiedTransaction]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(
        ["Date", "Type", "Amount", "Description", "Category", "Source", "Notes", "Author"]
    )
    for txn in transactions:
        writer.writerow(
            [
                txn.transaction_date.date().isoformat(),
                txn.display_type,
                f"{txn.amount:.2f}",
                sanitize_csv_value(txn.description),
                sanitize_csv_value(txn.category),
                txn.source.value,
                sanitize_csv_value(txn.notes),
                sanitize_csv_value(txn.created_by_name),
            ]
        )
    return output.getvalue()
