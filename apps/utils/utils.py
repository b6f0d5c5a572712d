import random
import time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .exceptions import ValidationError


MONEY_QUANT = Decimal("0.01")


def generate_order_number():
    """
    Human-readable order number: ORD-<last 8 digits of epoch ms>-<4 random digits>.
    Uniqueness is enforced by the DB constraint, not here.
    """
    timestamp = str(int(time.time() * 1000))[-8:]
    suffix = f"{random.randint(0, 9999):04d}"
    return f"ORD-{timestamp}-{suffix}"


def to_money(value) -> Decimal:
    """
    Coerce int/str/float/Decimal to a 2dp Decimal.
    Floats go through str() so 0.1 stays 0.10.
    Anything that is not a finite number raises ValidationError.
    """
    if value is None or value == "":
        return Decimal("0.00")
    if isinstance(value, float):
        value = str(value)
    if isinstance(value, bool):
        raise ValidationError(f"Invalid monetary amount: {value!r}")
    try:
        amount = Decimal(value)
        if not amount.is_finite():
            raise ValidationError(f"Invalid monetary amount: {value!r}")
        return amount.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid monetary amount: {value!r}") from exc
