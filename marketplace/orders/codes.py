import secrets
from decimal import ROUND_HALF_UP, Decimal

_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_MULTIPLIER = 9973  # prime, scatters consecutive ids
_OFFSET = 12345

CENT = Decimal("0.01")


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ALPHABET[rem])
    return "".join(reversed(digits))


def generate_order_code(order_id: int) -> str:
    return "O" + _base36(order_id * _MULTIPLIER + _OFFSET)


def temporary_code() -> str:
    # placeholder until the row id is known; unique column needs a distinct value
    return "TMP-" + secrets.token_hex(8)


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def seller_payout(total_amount, commission_rate: float) -> Decimal:
    """Order total minus platform commission."""
    return money(money(total_amount) * (Decimal(1) - Decimal(str(commission_rate))))
