from interio.core.serial import (
    generate_invoice_serial, generate_order_serial, generate_quotation_serial,
    validate_serial_format,
)
from interio.core.services import CustomerService, QuotationService


def test_first_serial_of_the_year(db):
    assert generate_quotation_serial(2026) == "Q-2026-000001"
    assert generate_order_serial(2026) == "SO-2026-000001"
    assert generate_invoice_serial(2026) == "INV-2026-000001"


def test_serial_increments_per_year(db, designer):
    customer = CustomerService.create_customer("Asha Rao")
    first = QuotationService.create_quotation(customer.id, designer)
    year = int(first.quotation_number.split('-')[1])

    assert first.quotation_number == f"Q-{year}-000001"
    assert generate_quotation_serial(year) == f"Q-{year}-000002"
    assert generate_quotation_serial(year + 1) == f"Q-{year + 1}-000001"


def test_validate_serial_format():
    assert validate_serial_format("Q-2026-000001")
    assert validate_serial_format("SO-2026-000042", prefix="SO")
    assert not validate_serial_format("SO-2026-000042")
    assert not validate_serial_format("Q-26-000001")
    assert not validate_serial_format("Q-2026-1")
    assert not validate_serial_format("Q-2026-000000")
    assert not validate_serial_format("")
