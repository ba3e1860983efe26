"""
Serial number generation for quotations, sales orders and invoices.
Implements PREFIX-YYYY-000001 format with yearly incrementing.
"""

from datetime import datetime

from interio.core.database import get_db_session
from interio.core.models import Invoice, Quotation, SalesOrder


QUOTATION_PREFIX = "Q"
SALES_ORDER_PREFIX = "SO"
INVOICE_PREFIX = "INV"

_SERIAL_COLUMNS = {
    QUOTATION_PREFIX: Quotation.quotation_number,
    SALES_ORDER_PREFIX: SalesOrder.order_number,
    INVOICE_PREFIX: Invoice.invoice_number,
}


def generate_serial(prefix: str, year: int = None, session=None) -> str:
    """
    Generate the next serial number for a document type and year.
    Format: PREFIX-YYYY-000001

    Args:
        prefix: One of Q, SO, INV
        year: Year for the serial (defaults to current year)
        session: Open session to read from; a private one is used otherwise

    Returns:
        Next available serial number string
    """
    if year is None:
        year = datetime.now().year

    column = _SERIAL_COLUMNS[prefix]
    own_session = session is None
    if own_session:
        session = get_db_session()
    try:
        year_prefix = f"{prefix}-{year}-"

        latest_serial = (
            session.query(column)
            .filter(column.like(f"{year_prefix}%"))
            .order_by(column.desc())
            .first()
        )

        next_number = 1
        if latest_serial:
            serial_parts = latest_serial[0].split('-')
            if len(serial_parts) == 3 and serial_parts[2].isdigit():
                next_number = int(serial_parts[2]) + 1

        return f"{prefix}-{year}-{next_number:06d}"

    finally:
        if own_session:
            session.close()


def generate_quotation_serial(year: int = None, session=None) -> str:
    return generate_serial(QUOTATION_PREFIX, year, session)


def generate_order_serial(year: int = None, session=None) -> str:
    return generate_serial(SALES_ORDER_PREFIX, year, session)


def generate_invoice_serial(year: int = None, session=None) -> str:
    return generate_serial(INVOICE_PREFIX, year, session)


def validate_serial_format(serial: str, prefix: str = QUOTATION_PREFIX) -> bool:
    """
    Validate that a serial number matches the expected format.

    Args:
        serial: Serial number to validate
        prefix: Expected document prefix

    Returns:
        True if format is valid (PREFIX-YYYY-NNNNNN)
    """
    if not serial:
        return False

    parts = serial.split('-')
    if len(parts) != 3 or parts[0] != prefix:
        return False

    if not (parts[1].isdigit() and len(parts[1]) == 4 and int(parts[1]) >= 2000):
        return False

    if not (parts[2].isdigit() and len(parts[2]) == 6 and int(parts[2]) >= 1):
        return False

    return True
