from decimal import Decimal, InvalidOperation

from erp.core.errors import InvalidInputError


def parse_quantity(value, field: str = "amount", *, allow_zero: bool = False) -> int:
    """Normalize a stock quantity to a non-negative int or raise InvalidInputError.

    Accepts ints, integral floats/Decimals and numeric strings ("4", " 4.0 ").
    Booleans, fractions, negatives and non-numeric text are rejected.
    """
    if value is None or isinstance(value, bool):
        raise InvalidInputError(field, value, "a whole number is required")

    if isinstance(value, int):
        number = Decimal(value)
    else:
        text = str(value).strip()
        if not text:
            raise InvalidInputError(field, value, "a whole number is required")
        try:
            number = Decimal(text)
        except InvalidOperation:
            raise InvalidInputError(field, value, "not a number") from None
        if not number.is_finite():
            raise InvalidInputError(field, value, "not a number")

    if number != number.to_integral_value():
        raise InvalidInputError(field, value, "must be a whole number")

    quantity = int(number)
    if quantity < 0:
        raise InvalidInputError(field, value, "must not be negative")
    if quantity == 0 and not allow_zero:
        raise InvalidInputError(field, value, "must be greater than zero")
    return quantity


def parse_identifier(value, field: str = "product_id") -> int:
    try:
        return parse_quantity(value, field)
    except InvalidInputError as exc:
        raise InvalidInputError(field, value, "must be a positive integer id") from exc
