from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MONEY_QUANT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value, default=ZERO):
    if value is None or value == "":
        return default
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            return None
    # NaN and Infinity cannot be compared or stored as money.
    if not value.is_finite():
        return None
    return value


def to_money(value):
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def snapshot(instance, fields):
    """Flat dict of ``fields`` for audit before/after snapshots."""
    data = {}
    for field in fields:
        value = getattr(instance, field, None)
        data[field] = value
    return data
