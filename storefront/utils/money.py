# storefront/utils/money.py

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

Money = Decimal

def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))

def round_money(x: Money) -> Money:
    return D(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

def to_float(x):
    """JSON-friendly rendering of a money value."""
    if x is None:
        return None
    return float(round_money(x))

def parse_money(v):
    """Decimal from user input, or None when missing/unparseable."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, str) and v.strip() == "":
        return None
    try:
        d = Decimal(str(v).strip())
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    return d
