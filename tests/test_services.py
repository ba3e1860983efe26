from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import text

from interio.core import services
from interio.core.errors import (
    AuthorizationError, ConcurrentConversionError, ConcurrentUpdateError, InvalidAmountError,
    NotFoundError, OverpaymentError, ValidationError,
)
from interio.core.models import (
    CustomerStage, InvoiceStatus, PaymentMethod, PaymentStatus, PaymentType, QuotationStatus,
    SalesOrder, SalesOrderStatus,
)
from interio.core.services import (
    CustomerPaymentService, CustomerService, FollowUpService, InvoiceService,
    QuotationService, SalesOrderService, SettingsService,
)


@pytest.fixture
def customer(db):
    return CustomerService.create_customer("Asha Rao", phone="98450 00000")


@pytest.fixture
def quotation(customer, designer):
    """Draft quotation with one complete room, priced at 4483."""
    quotation = QuotationService.create_quotation(customer.id, designer, title="Villa 12",
                                                  installation_handling=Decimal(500))
    room = QuotationService.add_room(quotation.id, designer, "Kitchen")
    QuotationService.add_product(room.id, designer, "Base unit", Decimal(1000), quantity=2,
                                 discount=Decimal(10))
    QuotationService.add_accessory(room.id, designer, "Handles", Decimal(50), quantity=4)
    QuotationService.add_installation_charge(room.id, designer, "Base cabinets",
                                             width_mm=1000, height_mm=1000)
    return QuotationService.load_quotation_with_rooms(quotation.id)


@pytest.fixture
def approved(quotation, manager):
    QuotationService.save(quotation.id, manager)
    QuotationService.approve(quotation.id, manager)
    return quotation


@pytest.fixture
def order(approved, manager):
    return SalesOrderService.get_sales_order(
        QuotationService.convert_to_sales_order(approved.id, manager).id
    )


def test_new_quotation_takes_defaults_from_settings(customer, designer, admin, manager):
    quotation = QuotationService.create_quotation(customer.id, designer)
    assert quotation.status == QuotationStatus.DRAFT
    assert quotation.global_discount == Decimal(5)
    assert quotation.gst_percentage == Decimal(18)

    with pytest.raises(AuthorizationError):
        SettingsService.update_app_settings(manager, default_global_discount=Decimal(0))
    SettingsService.update_app_settings(admin, default_global_discount=Decimal(0))

    assert QuotationService.create_quotation(customer.id, designer).global_discount == Decimal(0)


def test_settings_updates_are_validated(db, admin):
    with pytest.raises(InvalidAmountError):
        SettingsService.update_app_settings(admin, default_gst_percentage=Decimal(150))
    with pytest.raises(InvalidAmountError):
        SettingsService.update_app_settings(admin, invoice_due_days=-1)
    with pytest.raises(ValidationError):
        SettingsService.update_app_settings(admin, id=99)
    with pytest.raises(ValidationError):
        SettingsService.update_app_settings(admin, default_gst_percentage=Decimal(12), colour="red")

    settings = SettingsService.load_app_settings()
    assert settings.default_gst_percentage == Decimal(18)
    assert settings.invoice_due_days == 30

    SettingsService.update_app_settings(admin, default_gst_percentage=Decimal(12), delivery_lead_days=45)
    settings = SettingsService.load_app_settings()
    assert settings.default_gst_percentage == Decimal(12)
    assert settings.delivery_lead_days == 45


def test_unknown_customer(db, designer):
    with pytest.raises(NotFoundError):
        QuotationService.create_quotation(999, designer)


def test_quotation_round_trip_and_pricing(quotation):
    loaded = QuotationService.load_quotation_with_rooms(quotation.id)
    charge = loaded.rooms[0].installation_charges[0]

    assert loaded.customer.name == "Asha Rao"
    assert charge.amount == Decimal(1399)
    assert charge.area_sqft == Decimal("10.764")

    breakdown, pricing = QuotationService.get_pricing(quotation.id)
    assert breakdown.product_accessory_subtotal == Decimal(2000)
    assert pricing.total_installation == Decimal(1899)
    assert pricing.gst_amount == Decimal(684)
    assert pricing.grand_total == Decimal(4483)


def test_invalid_line_items_are_rejected(quotation, designer):
    room_id = quotation.rooms[0].id
    with pytest.raises(InvalidAmountError):
        QuotationService.add_product(room_id, designer, "Bad", Decimal(-1))
    with pytest.raises(InvalidAmountError):
        QuotationService.add_accessory(room_id, designer, "Bad", Decimal(10), quantity=-2)
    with pytest.raises(ValidationError):
        QuotationService.add_installation_charge(room_id, designer, "No size")
    assert len(QuotationService.load_quotation_with_rooms(quotation.id).rooms[0].products) == 1


def test_viewer_cannot_change_rooms_or_line_items(quotation, viewer):
    room_id = quotation.rooms[0].id
    with pytest.raises(AuthorizationError):
        QuotationService.add_room(quotation.id, viewer, "Study")
    with pytest.raises(AuthorizationError):
        QuotationService.reorder_rooms(quotation.id, viewer, [room_id])
    with pytest.raises(AuthorizationError):
        QuotationService.add_product(room_id, viewer, "Wardrobe", Decimal(100))
    with pytest.raises(AuthorizationError):
        QuotationService.add_accessory(room_id, viewer, "Knobs", Decimal(10))
    with pytest.raises(AuthorizationError):
        QuotationService.add_installation_charge(room_id, viewer, "Loft", amount=Decimal(200))

    assert QuotationService.get_pricing(quotation.id)[1].grand_total == Decimal(4483)


def test_approval_validates_stored_quotation(customer, manager):
    empty = QuotationService.create_quotation(customer.id, manager)
    QuotationService.save(empty.id, manager)

    with pytest.raises(ValidationError) as excinfo:
        QuotationService.approve(empty.id, manager)

    assert {issue.type for issue in excinfo.value.errors} == {"room_zero_value"}
    assert QuotationService.load_quotation_with_rooms(empty.id).status == QuotationStatus.SAVED


def test_convert_to_sales_order(order, approved):
    reloaded = QuotationService.load_quotation_with_rooms(approved.id)

    assert reloaded.status == QuotationStatus.CONVERTED
    assert reloaded.sales_order.id == order.id
    assert order.total_amount == Decimal(4483)
    assert order.amount_due == Decimal(4483)
    assert Decimal(order.pricing_snapshot["grand_total"]) == Decimal(4483)
    assert order.order_number.startswith("SO-")


def test_second_conversion_is_rejected(order, approved, manager):
    with pytest.raises(ConcurrentConversionError):
        QuotationService.convert_to_sales_order(approved.id, manager)


def test_one_order_per_quotation_is_enforced_by_the_database(order, approved):
    with pytest.raises(ConcurrentConversionError):
        with services._unit_of_work(ConcurrentConversionError) as session:
            session.add(SalesOrder(
                order_number="SO-1999-000001", quotation_id=approved.id,
                customer_id=approved.customer_id, total_amount=Decimal(1),
                amount_due=Decimal(1), order_date=datetime.now(),
            ))


def test_stale_order_version_is_reported(order):
    with pytest.raises(ConcurrentUpdateError):
        with services._unit_of_work(ConcurrentUpdateError) as session:
            stale = session.query(SalesOrder).filter(SalesOrder.id == order.id).first()
            session.execute(text("UPDATE sales_orders SET version = version + 1"))
            stale.notes = "edited elsewhere"


def test_payments_against_order(order, designer, manager):
    payment = SalesOrderService.record_payment(order.id, Decimal(1000), PaymentMethod.CASH, designer)
    assert payment.receipt_number.startswith("RCPT-")

    with pytest.raises(OverpaymentError):
        SalesOrderService.record_payment(order.id, Decimal(3484), "upi", designer)

    reloaded = SalesOrderService.get_sales_order(order.id)
    assert reloaded.amount_paid == Decimal(1000)
    assert reloaded.amount_due == Decimal(3483)
    assert reloaded.payment_status == PaymentStatus.PARTIALLY_PAID
    assert len(SalesOrderService.get_payments(order.id)) == 1

    reloaded = SalesOrderService.delete_payment(payment.id, manager)
    assert reloaded.amount_paid == Decimal(0)
    assert reloaded.payment_status == PaymentStatus.UNPAID
    assert SalesOrderService.get_payments(order.id) == []


def test_order_status_changes(order, manager):
    SalesOrderService.update_status(order.id, SalesOrderStatus.CONFIRMED, manager)
    with pytest.raises(ValidationError):
        SalesOrderService.update_status(order.id, SalesOrderStatus.COMPLETED, manager)

    cancelled = SalesOrderService.cancel(order.id, manager)
    assert cancelled.status == SalesOrderStatus.CANCELLED
    with pytest.raises(ValidationError):
        SalesOrderService.record_payment(order.id, Decimal(10), PaymentMethod.CASH, manager)


def test_invoice_from_order_freezes_quotation(order, approved, designer, manager):
    SalesOrderService.record_payment(order.id, Decimal(1000), PaymentMethod.CARD, designer)

    invoice = SalesOrderService.convert_to_invoice(order.id, manager)

    assert invoice.status == InvoiceStatus.PARTIALLY_PAID
    assert invoice.total_amount == Decimal(4483)
    assert invoice.sales_order_id == order.id
    room_id = approved.rooms[0].id
    with pytest.raises(ValidationError):
        QuotationService.add_product(room_id, designer, "Late addition", Decimal(100))
    with pytest.raises(ConcurrentConversionError):
        QuotationService.convert_to_invoice(approved.id, manager)

    InvoiceService.update_status(invoice.id, InvoiceStatus.CANCELLED, manager)
    QuotationService.add_product(room_id, designer, "Late addition", Decimal(100))
    assert QuotationService.get_pricing(approved.id)[1].grand_total > Decimal(4483)


def test_mark_overdue(order, manager):
    invoice = SalesOrderService.convert_to_invoice(order.id, manager, due_date=date(2026, 1, 31))

    changed = InvoiceService.mark_overdue(today=date(2026, 2, 1))

    assert [i.id for i in changed] == [invoice.id]
    assert InvoiceService.get_invoice(invoice.id).status == InvoiceStatus.OVERDUE


def test_duplicate_quotation(approved, customer, designer):
    other = CustomerService.create_customer("Vikram Shah")

    copy = QuotationService.duplicate(approved.id, designer, target_customer_id=other.id)

    loaded = QuotationService.load_quotation_with_rooms(copy.id)
    assert loaded.status == QuotationStatus.DRAFT
    assert loaded.customer_id == other.id
    assert loaded.title == "Villa 12 (Copy)"
    assert loaded.quotation_number != approved.quotation_number
    assert QuotationService.get_pricing(copy.id)[1] == QuotationService.get_pricing(approved.id)[1]


def test_delete_quotation(quotation, order, customer, designer):
    with pytest.raises(ValidationError):
        QuotationService.delete_quotation(quotation.id, designer)

    draft = QuotationService.create_quotation(customer.id, designer)
    assert QuotationService.delete_quotation(draft.id, designer)
    with pytest.raises(NotFoundError):
        QuotationService.load_quotation_with_rooms(draft.id)


def test_direct_payments_and_ledger(order, customer, designer):
    SalesOrderService.record_payment(order.id, Decimal(2000), PaymentMethod.CASH, designer)
    CustomerPaymentService.record_payment(customer.id, Decimal(500), PaymentMethod.UPI, designer,
                                          payment_type=PaymentType.TOKEN_ADVANCE)

    assert SalesOrderService.get_sales_order(order.id).amount_paid == Decimal(2000)
    payments = CustomerPaymentService.get_payments_by_customer(customer.id)
    assert [p.payment_type for p in payments] == [PaymentType.TOKEN_ADVANCE]

    ledger = CustomerService.get_customer_ledger(customer.id)
    assert ledger.total_ordered == Decimal(4483)
    assert ledger.total_received == Decimal(2500)
    assert ledger.outstanding == Decimal(1983)


def test_follow_ups(customer):
    other = CustomerService.create_customer("Meera Iyer")
    today = date.today()
    yesterday = datetime.combine(today - timedelta(days=1), datetime.min.time())
    FollowUpService.create_follow_up(customer.id, "Call back", yesterday)
    FollowUpService.create_follow_up(customer.id, "Site visit", yesterday + timedelta(days=4))
    later = FollowUpService.create_follow_up(other.id, "Send samples", yesterday + timedelta(days=3))

    assert FollowUpService.get_dashboard_counts(today) == {
        "all": 2, "today": 0, "yesterday": 1, "missed": 0, "future": 1,
    }
    assert [f.notes for f in FollowUpService.get_pending(today)] == ["Call back"]
    assert [c.name for c in FollowUpService.get_customers_matching("missed", today)] == ["Asha Rao"]
    assert [c.name for c in FollowUpService.get_customers_matching("future", today)] == [
        "Asha Rao", "Meera Iyer",
    ]
    assert FollowUpService.get_customers_matching("today", today) == []

    FollowUpService.mark_complete(later.id, new_customer_stage=CustomerStage.WARM)
    assert CustomerService.get_customer_by_id(other.id).stage == CustomerStage.WARM
    assert FollowUpService.get_dashboard_counts(today)["all"] == 1


def test_header_edits_and_room_order(quotation, designer):
    QuotationService.update_quotation(quotation.id, designer, global_discount=Decimal(0),
                                      gst_percentage=Decimal(0))
    assert QuotationService.get_pricing(quotation.id)[1].grand_total == Decimal(2000 + 1899)

    with pytest.raises(InvalidAmountError):
        QuotationService.update_quotation(quotation.id, designer, gst_percentage=Decimal(101))

    bedroom = QuotationService.add_room(quotation.id, designer, "Bedroom")
    assert bedroom.order == 1
    QuotationService.reorder_rooms(quotation.id, designer, [bedroom.id, quotation.rooms[0].id])
    names = [room.name for room in QuotationService.load_quotation_with_rooms(quotation.id).rooms]
    assert names == ["Bedroom", "Kitchen"]


def test_search_customers(customer):
    CustomerService.create_customer("Meera Iyer", email="meera@example.com", stage=CustomerStage.WARM)

    assert [c.name for c in CustomerService.search_customers("98450")] == ["Asha Rao"]
    assert [c.name for c in CustomerService.search_customers("example")] == ["Meera Iyer"]
    assert [c.name for c in CustomerService.search_customers(stage=CustomerStage.NEW)] == ["Asha Rao"]
    assert len(CustomerService.search_customers()) == 2
