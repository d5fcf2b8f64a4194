from decimal import Decimal, InvalidOperation

from .exceptions import InvalidAmount

CENT = Decimal('0.01')
# Largest value a DecimalField(max_digits=12, decimal_places=2) column holds.
MAX_AMOUNT = Decimal('9999999999.99')


def to_amount(value) -> Decimal:
    """
    Parse a money amount. Rejects non-numbers, non-finite values, non-positive
    values, anything finer than a cent and anything too large to store.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmount()
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise InvalidAmount()
        quantized = amount.quantize(CENT)
    except (InvalidOperation, ValueError):
        raise InvalidAmount()

    if amount <= 0 or amount != quantized:
        raise InvalidAmount()
    if quantized > MAX_AMOUNT:
        raise InvalidAmount(f"Amount cannot exceed {MAX_AMOUNT}.")
    return quantized
