"""
Currency arithmetic for quotations, orders and invoices.

Amounts are whole rupees: every derived figure is quantized to one unit with
ROUND_HALF_UP, and totals are summed from already-rounded line figures.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from interio.core.errors import InvalidAmountError


ZERO = Decimal('0')
HUNDRED = Decimal('100')
CURRENCY_UNIT = Decimal('1')


def to_money(value) -> Decimal:
    """Coerce an int, str, float or Decimal to Decimal without float artefacts."""
    if value is None:
        raise InvalidAmountError("Amount is required")
    if isinstance(value, bool):
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidAmountError(f"Invalid amount: {value!r}") from None
    if not result.is_finite():
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    return result


def round_money(value) -> Decimal:
    """Round to the nearest whole currency unit, halves away from zero."""
    return to_money(value).quantize(CURRENCY_UNIT, rounding=ROUND_HALF_UP)


def check_non_negative(value, field: str = "amount") -> Decimal:
    amount = to_money(value)
    if amount < 0:
        raise InvalidAmountError(f"{field} cannot be negative: {amount}")
    return amount


def check_positive(value, field: str = "amount") -> Decimal:
    amount = to_money(value)
    if amount <= 0:
        raise InvalidAmountError(f"{field} must be greater than zero: {amount}")
    return amount


def check_percent(value, field: str = "percentage") -> Decimal:
    """Percentages must lie within [0, 100]."""
    percent = to_money(value)
    if percent < 0 or percent > HUNDRED:
        raise InvalidAmountError(f"{field} must be between 0 and 100: {percent}")
    return percent


def check_quantity(value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
        raise InvalidAmountError(f"Quantity must be a whole number: {value!r}")
    if isinstance(value, Decimal) and value != value.to_integral_value():
        raise InvalidAmountError(f"Quantity must be a whole number: {value}")
    quantity = int(value)
    if quantity < 0:
        raise InvalidAmountError(f"Quantity cannot be negative: {quantity}")
    return quantity


def apply_percent(base, percent) -> Decimal:
    """Return ``base * percent / 100`` rounded to a whole unit."""
    return round_money(to_money(base) * to_money(percent) / HUNDRED)


def line_total(quantity, unit_price, discount_percent=ZERO) -> Decimal:
    """
    Total for one product or accessory line after its own discount.

    Args:
        quantity: Number of units, whole and non-negative
        unit_price: Selling price per unit
        discount_percent: Line discount in percent, 0-100

    Returns:
        ``quantity * unit_price * (1 - discount/100)`` rounded to a whole unit
    """
    qty = check_quantity(quantity)
    price = check_non_negative(unit_price, "selling price")
    discount = check_percent(discount_percent, "line discount")
    gross = Decimal(qty) * price
    return round_money(gross * (HUNDRED - discount) / HUNDRED)


def format_currency(amount) -> str:
    """Format as rupees with Indian digit grouping, e.g. ``₹1,23,456``."""
    value = round_money(amount)
    sign = "-" if value < 0 else ""
    digits = str(abs(int(value)))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups) + "," + tail
    return f"{sign}₹{digits}"


_ONES = [
    'Zero', 'One', 'Two', 'Three', 'Four', 'Five', 'Six', 'Seven', 'Eight', 'Nine'
]
_TEENS = [
    'Ten', 'Eleven', 'Twelve', 'Thirteen', 'Fourteen', 'Fifteen', 'Sixteen',
    'Seventeen', 'Eighteen', 'Nineteen'
]
_TENS = [
    '', '', 'Twenty', 'Thirty', 'Forty', 'Fifty', 'Sixty', 'Seventy', 'Eighty', 'Ninety'
]


def _words_below_thousand(num: int) -> str:
    if num == 0:
        return ''
    if num < 10:
        return _ONES[num]
    if num < 20:
        return _TEENS[num - 10]
    if num < 100:
        rest = f" {_ONES[num % 10]}" if num % 10 else ''
        return _TENS[num // 10] + rest
    rest = f" {_words_below_thousand(num % 100)}" if num % 100 else ''
    return f"{_ONES[num // 100]} Hundred{rest}"


def number_to_indian_words(amount) -> str:
    """Spell an amount in the Indian numbering system for invoices and receipts."""
    num = int(round_money(amount))
    if num == 0:
        return 'Zero Rupees Only'
    if num < 0:
        return 'Minus ' + number_to_indian_words(-num)

    parts = []
    for scale, name in ((10000000, 'Crore'), (100000, 'Lakh'), (1000, 'Thousand')):
        if num >= scale:
            parts.append(f"{_words_below_thousand(num // scale)} {name}")
            num %= scale
    if num > 0:
        parts.append(_words_below_thousand(num))

    return ' '.join(parts) + ' Rupees Only'
