"""
Business services for Interio Quoter.
Loads and saves documents and runs lifecycle and payment operations
inside one transaction each.
"""

from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import desc, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, selectinload
from sqlalchemy.orm.exc import StaleDataError

from interio.core import lifecycle
from interio.core.auth import AuthContext, Permission, require
from interio.core.calculations import (
    DEFAULT_PRICE_PER_SQFT, FinalPricing, PricingBreakdown, calc_installation_amount,
    calc_quotation_pricing,
)
from interio.core.database import get_db_session
from interio.core.errors import (
    ConcurrencyError, ConcurrentConversionError, ConcurrentUpdateError, NotFoundError,
    ValidationError,
)
from interio.core.followups import count_follow_ups, customers_matching, pending_follow_ups
from interio.core.logging_config import get_logger, log_database_operation
from interio.core.models import (
    Accessory, AppSettings, Customer, CustomerPayment, CustomerStage, FollowUp,
    InstallationCharge, Invoice, InvoiceStatus, OrderPayment, PaymentMethod, PaymentType,
    Product, Quotation, Room, SalesOrder, SalesOrderStatus,
)
from interio.core.money import check_non_negative, check_percent, check_quantity
from interio.core.payments import (
    CustomerLedger, customer_ledger, record_direct_payment, record_order_payment,
    remove_order_payment,
)
from interio.core.serial import (
    generate_invoice_serial, generate_order_serial, generate_quotation_serial,
)
from interio.core.validation import ValidationResult


logger = get_logger(__name__)


@contextmanager
def _unit_of_work(conflict_error=ConcurrencyError):
    """
    Session that commits on success and rolls back on any error.

    Unique-constraint and version-counter conflicts are reported as
    conflict_error so callers know to reload and retry.
    """
    session = get_db_session()
    try:
        yield session
        session.commit()
    except (IntegrityError, StaleDataError) as e:
        session.rollback()
        logger.warning(f"Write conflict: {e}")
        raise conflict_error("The record was changed by another user; reload and try again") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _quotation_query(session):
    return session.query(Quotation).options(
        joinedload(Quotation.customer),
        selectinload(Quotation.rooms).selectinload(Room.products),
        selectinload(Quotation.rooms).selectinload(Room.accessories),
        selectinload(Quotation.rooms).selectinload(Room.installation_charges),
        selectinload(Quotation.sales_order),
        selectinload(Quotation.invoices),
    )


def _get_quotation(session, quotation_id: int, lock: bool = False) -> Quotation:
    query = session.query(Quotation).options(
        selectinload(Quotation.rooms).selectinload(Room.products),
        selectinload(Quotation.rooms).selectinload(Room.accessories),
        selectinload(Quotation.rooms).selectinload(Room.installation_charges),
    ).filter(Quotation.id == quotation_id)
    if lock:
        query = query.with_for_update()
    quotation = query.first()
    if not quotation:
        raise NotFoundError(f"Quotation {quotation_id} not found")
    return quotation


def _get_room(session, room_id: int) -> Room:
    room = session.query(Room).options(joinedload(Room.quotation)).filter(Room.id == room_id).first()
    if not room:
        raise NotFoundError(f"Room {room_id} not found")
    lifecycle.ensure_editable(room.quotation)
    return room


def _get_order(session, order_id: int, lock: bool = False) -> SalesOrder:
    query = session.query(SalesOrder).options(
        selectinload(SalesOrder.payments)
    ).filter(SalesOrder.id == order_id)
    if lock:
        query = query.with_for_update()
    order = query.first()
    if not order:
        raise NotFoundError(f"Sales order {order_id} not found")
    return order


def _get_settings(session) -> AppSettings:
    settings = session.query(AppSettings).first()
    if not settings:
        settings = AppSettings()
        session.add(settings)
        session.flush()
    return settings


class SettingsService:
    """Service for application settings."""

    @staticmethod
    def load_app_settings() -> AppSettings:
        """Get app settings, creating defaults if none exist."""
        with _unit_of_work() as session:
            return _get_settings(session)

    @staticmethod
    def update_app_settings(auth: AuthContext, **kwargs) -> AppSettings:
        """Update the quotation defaults and document terms; unknown fields are rejected."""
        require(auth, Permission.MANAGE_SETTINGS)
        checks = {
            "default_global_discount": lambda v: check_percent(v, "default global discount"),
            "default_gst_percentage": lambda v: check_percent(v, "default GST percentage"),
            "default_installation_handling": lambda v: check_non_negative(v, "default installation handling"),
            "required_accessories": str,
            "invoice_due_days": check_quantity,
            "delivery_lead_days": check_quantity,
        }
        unknown = sorted(set(kwargs) - set(checks))
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(unknown)}")
        values = {key: checks[key](value) for key, value in kwargs.items()}
        with _unit_of_work() as session:
            settings = _get_settings(session)
            for key, value in values.items():
                setattr(settings, key, value)
            log_database_operation("update", "app_settings", settings.id, kwargs)
            return settings


class CustomerService:
    """Service for customer operations."""

    @staticmethod
    def get_all_customers() -> List[Customer]:
        session = get_db_session()
        try:
            return session.query(Customer).order_by(Customer.name).all()
        finally:
            session.close()

    @staticmethod
    def get_customer_by_id(customer_id: int) -> Optional[Customer]:
        session = get_db_session()
        try:
            return session.query(Customer).filter(Customer.id == customer_id).first()
        finally:
            session.close()

    @staticmethod
    def search_customers(query: str = "", stage: CustomerStage = None) -> List[Customer]:
        """Search customers by name, email or phone, optionally within one stage."""
        session = get_db_session()
        try:
            customers = session.query(Customer)
            if query:
                customers = customers.filter(or_(
                    Customer.name.contains(query),
                    Customer.email.contains(query),
                    Customer.phone.contains(query),
                ))
            if stage is not None:
                customers = customers.filter(Customer.stage == CustomerStage(stage))
            return customers.order_by(Customer.name).all()
        finally:
            session.close()

    @staticmethod
    def create_customer(name: str, email: str = "", phone: str = "", address: str = "",
                        stage: CustomerStage = CustomerStage.NEW) -> Customer:
        with _unit_of_work() as session:
            customer = Customer(name=name, email=email, phone=phone, address=address, stage=stage)
            session.add(customer)
            session.flush()
            log_database_operation("insert", "customers", customer.id, name)
            return customer

    @staticmethod
    def update_customer_stage(customer_id: int, stage: CustomerStage) -> Customer:
        with _unit_of_work() as session:
            customer = session.query(Customer).filter(Customer.id == customer_id).first()
            if not customer:
                raise NotFoundError(f"Customer {customer_id} not found")
            customer.stage = CustomerStage(stage)
            return customer

    @staticmethod
    def get_customer_ledger(customer_id: int) -> CustomerLedger:
        """Sales orders and direct payments of one customer, joined for display."""
        session = get_db_session()
        try:
            orders = (
                session.query(SalesOrder)
                .options(selectinload(SalesOrder.payments))
                .filter(SalesOrder.customer_id == customer_id)
                .all()
            )
            payments = (
                session.query(CustomerPayment)
                .filter(CustomerPayment.customer_id == customer_id)
                .order_by(desc(CustomerPayment.payment_date))
                .all()
            )
            return customer_ledger(orders, payments)
        finally:
            session.close()


class QuotationService:
    """Service for quotation operations."""

    @staticmethod
    def get_all_quotations() -> List[Quotation]:
        session = get_db_session()
        try:
            return (
                session.query(Quotation)
                .options(joinedload(Quotation.customer))
                .order_by(desc(Quotation.created_at))
                .all()
            )
        finally:
            session.close()

    @staticmethod
    def load_quotation_with_rooms(quotation_id: int) -> Quotation:
        """Get a quotation with rooms, line items, order and invoices loaded."""
        session = get_db_session()
        try:
            quotation = _quotation_query(session).filter(Quotation.id == quotation_id).first()
            if not quotation:
                raise NotFoundError(f"Quotation {quotation_id} not found")
            return quotation
        finally:
            session.close()

    @staticmethod
    def create_quotation(customer_id: int, auth: AuthContext, title: str = None,
                         global_discount: Decimal = None, gst_percentage: Decimal = None,
                         installation_handling: Decimal = None) -> Quotation:
        """Create an empty draft; unset pricing fields come from app settings."""
        require(auth, Permission.EDIT_QUOTATION)
        with _unit_of_work() as session:
            if not session.query(Customer).filter(Customer.id == customer_id).first():
                raise NotFoundError(f"Customer {customer_id} not found")
            settings = _get_settings(session)

            quotation = Quotation(
                quotation_number=generate_quotation_serial(session=session),
                customer_id=customer_id,
                title=title,
                global_discount=check_percent(
                    settings.default_global_discount if global_discount is None else global_discount,
                    "global discount"),
                gst_percentage=check_percent(
                    settings.default_gst_percentage if gst_percentage is None else gst_percentage,
                    "GST percentage"),
                installation_handling=check_non_negative(
                    settings.default_installation_handling if installation_handling is None
                    else installation_handling,
                    "installation handling"),
            )
            session.add(quotation)
            session.flush()
            log_database_operation("insert", "quotations", quotation.id, quotation.quotation_number)
            return quotation

    @staticmethod
    def update_quotation(quotation_id: int, auth: AuthContext, **kwargs) -> Quotation:
        """Update header fields (title, discount, GST, handling)."""
        require(auth, Permission.EDIT_QUOTATION)
        checks = {
            "global_discount": lambda v: check_percent(v, "global discount"),
            "gst_percentage": lambda v: check_percent(v, "GST percentage"),
            "installation_handling": lambda v: check_non_negative(v, "installation handling"),
            "title": lambda v: v,
        }
        with _unit_of_work(ConcurrentUpdateError) as session:
            quotation = _get_quotation(session, quotation_id)
            lifecycle.ensure_editable(quotation)
            for key, value in kwargs.items():
                if key in checks:
                    setattr(quotation, key, checks[key](value))
            log_database_operation("update", "quotations", quotation_id, kwargs)
            return quotation

    @staticmethod
    def delete_quotation(quotation_id: int, auth: AuthContext) -> bool:
        """Delete a quotation and its rooms unless it has become an order or invoice."""
        require(auth, Permission.EDIT_QUOTATION)
        with _unit_of_work() as session:
            quotation = _get_quotation(session, quotation_id)
            if quotation.sales_order is not None or quotation.invoices:
                raise ValidationError(
                    f"Quotation {quotation.quotation_number} has an order or invoice and cannot be deleted"
                )
            session.delete(quotation)
            log_database_operation("delete", "quotations", quotation_id)
            return True

    @staticmethod
    def add_room(quotation_id: int, auth: AuthContext, name: str, description: str = "") -> Room:
        require(auth, Permission.EDIT_QUOTATION)
        with _unit_of_work() as session:
            quotation = _get_quotation(session, quotation_id)
            lifecycle.ensure_editable(quotation)
            room = Room(name=name, description=description, order=len(quotation.rooms))
            quotation.rooms.append(room)
            session.flush()
            log_database_operation("insert", "rooms", room.id, name)
            return room

    @staticmethod
    def reorder_rooms(quotation_id: int, auth: AuthContext, room_ids: List[int]) -> bool:
        """Set display order; has no effect on any total."""
        require(auth, Permission.EDIT_QUOTATION)
        with _unit_of_work() as session:
            quotation = _get_quotation(session, quotation_id)
            positions = {room_id: index for index, room_id in enumerate(room_ids)}
            for room in quotation.rooms:
                if room.id in positions:
                    room.order = positions[room.id]
            return True

    @staticmethod
    def add_product(room_id: int, auth: AuthContext, name: str, selling_price: Decimal, quantity: int = 1,
                    discount: Decimal = Decimal('0'), description: str = "",
                    category: str = None) -> Product:
        require(auth, Permission.EDIT_QUOTATION)
        with _unit_of_work() as session:
            room = _get_room(session, room_id)
            product = Product(
                name=name,
                description=description,
                category=category,
                quantity=check_quantity(quantity),
                selling_price=check_non_negative(selling_price, "selling price"),
                discount=check_percent(discount, "line discount"),
            )
            room.products.append(product)
            session.flush()
            log_database_operation("insert", "products", product.id, name)
            return product

    @staticmethod
    def add_accessory(room_id: int, auth: AuthContext, name: str, selling_price: Decimal, quantity: int = 1,
                      discount: Decimal = Decimal('0'), description: str = "",
                      category: str = None) -> Accessory:
        require(auth, Permission.EDIT_QUOTATION)
        with _unit_of_work() as session:
            room = _get_room(session, room_id)
            accessory = Accessory(
                name=name,
                description=description,
                category=category,
                quantity=check_quantity(quantity),
                selling_price=check_non_negative(selling_price, "selling price"),
                discount=check_percent(discount, "line discount"),
            )
            room.accessories.append(accessory)
            session.flush()
            log_database_operation("insert", "accessories", accessory.id, name)
            return accessory

    @staticmethod
    def add_installation_charge(room_id: int, auth: AuthContext, name: str, amount: Decimal = None,
                                width_mm: int = None, height_mm: int = None,
                                price_per_sqft: Decimal = DEFAULT_PRICE_PER_SQFT) -> InstallationCharge:
        """
        Attach an installation charge to a room.

        Either give a flat amount, or cabinet dimensions in millimetres and the
        amount is computed from the area at price_per_sqft.
        """
        require(auth, Permission.EDIT_QUOTATION)
        with _unit_of_work() as session:
            room = _get_room(session, room_id)
            area_sqft = None
            if amount is None:
                if width_mm is None or height_mm is None:
                    raise ValidationError("Give an amount or both width and height")
                area_sqft, amount = calc_installation_amount(width_mm, height_mm, price_per_sqft)
            else:
                price_per_sqft = None
            charge = InstallationCharge(
                name=name,
                amount=check_non_negative(amount, "installation charge"),
                width_mm=width_mm,
                height_mm=height_mm,
                area_sqft=area_sqft,
                price_per_sqft=price_per_sqft,
            )
            room.installation_charges.append(charge)
            session.flush()
            log_database_operation("insert", "installation_charges", charge.id, f"{name} {amount}")
            return charge

    @staticmethod
    def get_pricing(quotation_id: int) -> Tuple[PricingBreakdown, FinalPricing]:
        """Totals for display and printing, always computed fresh."""
        session = get_db_session()
        try:
            return calc_quotation_pricing(_get_quotation(session, quotation_id))
        finally:
            session.close()

    @staticmethod
    def save(quotation_id: int, auth: AuthContext) -> Quotation:
        with _unit_of_work(ConcurrentUpdateError) as session:
            quotation = _get_quotation(session, quotation_id, lock=True)
            return lifecycle.save_quotation(quotation, auth)

    @staticmethod
    def approve(quotation_id: int, auth: AuthContext, validator=None) -> ValidationResult:
        with _unit_of_work(ConcurrentUpdateError) as session:
            quotation = _get_quotation(session, quotation_id, lock=True)
            settings = _get_settings(session)
            if validator is None:
                return lifecycle.approve_quotation(quotation, auth, settings=settings)
            return lifecycle.approve_quotation(quotation, auth, validator=validator, settings=settings)

    @staticmethod
    def revert_to_draft(quotation_id: int, auth: AuthContext) -> Quotation:
        with _unit_of_work(ConcurrentUpdateError) as session:
            quotation = _get_quotation(session, quotation_id, lock=True)
            return lifecycle.revert_to_draft(quotation, auth)

    @staticmethod
    def duplicate(quotation_id: int, auth: AuthContext, target_customer_id: int = None) -> Quotation:
        require(auth, Permission.EDIT_QUOTATION)
        with _unit_of_work() as session:
            original = _get_quotation(session, quotation_id)
            copy = lifecycle.duplicate_quotation(
                original,
                target_customer_id=target_customer_id,
                quotation_number=generate_quotation_serial(session=session),
            )
            session.add(copy)
            session.flush()
            log_database_operation(
                "insert", "quotations", copy.id,
                f"duplicate of {original.quotation_number}"
            )
            return copy

    @staticmethod
    def convert_to_sales_order(quotation_id: int, auth: AuthContext,
                               expected_delivery_date: date = None, notes: str = None) -> SalesOrder:
        """
        Create the sales order under a row lock on the quotation.

        A concurrent conversion loses on the quotation's version counter or on
        the unique quotation_id of sales_orders.
        """
        with _unit_of_work(ConcurrentConversionError) as session:
            quotation = _get_quotation(session, quotation_id, lock=True)
            settings = _get_settings(session)
            order = lifecycle.convert_to_sales_order(
                quotation, auth,
                expected_delivery_date=expected_delivery_date,
                notes=notes,
                order_number=generate_order_serial(session=session),
                delivery_lead_days=settings.delivery_lead_days,
            )
            session.add(order)
            session.flush()
            log_database_operation("insert", "sales_orders", order.id, order.order_number)
            return order

    @staticmethod
    def convert_to_invoice(quotation_id: int, auth: AuthContext, due_date: date = None,
                           notes: str = None) -> Invoice:
        with _unit_of_work(ConcurrentConversionError) as session:
            quotation = _get_quotation(session, quotation_id, lock=True)
            return InvoiceService._create(session, quotation, auth, due_date, notes)


class SalesOrderService:
    """Service for sales orders and their payments."""

    @staticmethod
    def get_sales_orders(customer_id: int = None) -> List[SalesOrder]:
        session = get_db_session()
        try:
            query = session.query(SalesOrder).options(joinedload(SalesOrder.customer))
            if customer_id:
                query = query.filter(SalesOrder.customer_id == customer_id)
            return query.order_by(desc(SalesOrder.order_date)).all()
        finally:
            session.close()

    @staticmethod
    def get_sales_order(order_id: int) -> SalesOrder:
        session = get_db_session()
        try:
            return _get_order(session, order_id)
        finally:
            session.close()

    @staticmethod
    def update_status(order_id: int, status: SalesOrderStatus, auth: AuthContext) -> SalesOrder:
        with _unit_of_work(ConcurrentUpdateError) as session:
            order = _get_order(session, order_id, lock=True)
            return lifecycle.transition_sales_order(order, SalesOrderStatus(status), auth)

    @staticmethod
    def cancel(order_id: int, auth: AuthContext) -> SalesOrder:
        return SalesOrderService.update_status(order_id, SalesOrderStatus.CANCELLED, auth)

    @staticmethod
    def record_payment(order_id: int, amount: Decimal, payment_method: PaymentMethod,
                       auth: AuthContext, notes: str = "", payment_date: datetime = None,
                       transaction_id: str = None) -> OrderPayment:
        """
        Record a payment and recompute the balance in the same transaction.

        The order row is locked and its version checked, so two concurrent
        payments cannot both pass the overpayment check.
        """
        with _unit_of_work(ConcurrentUpdateError) as session:
            order = _get_order(session, order_id, lock=True)
            payment = OrderPayment(
                amount=amount,
                payment_method=PaymentMethod(payment_method),
                payment_date=payment_date,
                transaction_id=transaction_id,
                notes=notes,
            )
            record_order_payment(order, payment, auth)
            session.flush()
            log_database_operation("insert", "order_payments", payment.id, payment.receipt_number)
            return payment

    @staticmethod
    def get_payments(order_id: int) -> List[OrderPayment]:
        session = get_db_session()
        try:
            return (
                session.query(OrderPayment)
                .filter(OrderPayment.sales_order_id == order_id)
                .order_by(OrderPayment.payment_date)
                .all()
            )
        finally:
            session.close()

    @staticmethod
    def delete_payment(payment_id: int, auth: AuthContext) -> SalesOrder:
        with _unit_of_work(ConcurrentUpdateError) as session:
            payment = session.query(OrderPayment).filter(OrderPayment.id == payment_id).first()
            if not payment:
                raise NotFoundError(f"Payment {payment_id} not found")
            order = _get_order(session, payment.sales_order_id, lock=True)
            remove_order_payment(order, payment, auth)
            log_database_operation("delete", "order_payments", payment_id)
            return order

    @staticmethod
    def convert_to_invoice(order_id: int, auth: AuthContext, due_date: date = None,
                           notes: str = None) -> Invoice:
        with _unit_of_work(ConcurrentConversionError) as session:
            order = _get_order(session, order_id)
            _get_quotation(session, order.quotation_id, lock=True)
            return InvoiceService._create(session, order, auth, due_date, notes)


class InvoiceService:
    """Service for invoice operations."""

    @staticmethod
    def _create(session, source, auth: AuthContext, due_date: date, notes: str) -> Invoice:
        settings = _get_settings(session)
        invoice = lifecycle.convert_to_invoice(
            source, auth,
            due_date=due_date,
            notes=notes,
            invoice_number=generate_invoice_serial(session=session),
            due_days=settings.invoice_due_days,
        )
        session.add(invoice)
        session.flush()
        log_database_operation("insert", "invoices", invoice.id, invoice.invoice_number)
        return invoice

    @staticmethod
    def get_invoices(customer_id: int = None) -> List[Invoice]:
        session = get_db_session()
        try:
            query = session.query(Invoice).options(joinedload(Invoice.customer))
            if customer_id:
                query = query.filter(Invoice.customer_id == customer_id)
            return query.order_by(desc(Invoice.created_at)).all()
        finally:
            session.close()

    @staticmethod
    def get_invoice(invoice_id: int) -> Invoice:
        session = get_db_session()
        try:
            invoice = session.query(Invoice).filter(Invoice.id == invoice_id).first()
            if not invoice:
                raise NotFoundError(f"Invoice {invoice_id} not found")
            return invoice
        finally:
            session.close()

    @staticmethod
    def update_status(invoice_id: int, status: InvoiceStatus, auth: AuthContext) -> Invoice:
        with _unit_of_work(ConcurrentUpdateError) as session:
            invoice = (
                session.query(Invoice)
                .options(joinedload(Invoice.quotation))
                .filter(Invoice.id == invoice_id)
                .first()
            )
            if not invoice:
                raise NotFoundError(f"Invoice {invoice_id} not found")
            return lifecycle.transition_invoice(invoice, InvoiceStatus(status), auth)

    @staticmethod
    def mark_overdue(today: date = None) -> List[Invoice]:
        with _unit_of_work() as session:
            open_invoices = (
                session.query(Invoice)
                .filter(Invoice.status.in_([InvoiceStatus.PENDING, InvoiceStatus.PARTIALLY_PAID]))
                .all()
            )
            return lifecycle.mark_overdue_invoices(open_invoices, today)


class CustomerPaymentService:
    """Service for direct customer payments, independent of sales orders."""

    @staticmethod
    def record_payment(customer_id: int, amount: Decimal, payment_method: PaymentMethod,
                       auth: AuthContext, payment_type: PaymentType = PaymentType.OTHER,
                       description: str = "", payment_date: datetime = None,
                       receipt_number: str = None, transaction_id: str = None) -> CustomerPayment:
        with _unit_of_work() as session:
            customer = session.query(Customer).filter(Customer.id == customer_id).first()
            if not customer:
                raise NotFoundError(f"Customer {customer_id} not found")
            payment = CustomerPayment(
                amount=amount,
                payment_method=PaymentMethod(payment_method),
                payment_type=PaymentType(payment_type),
                description=description,
                payment_date=payment_date,
                receipt_number=receipt_number,
                transaction_id=transaction_id,
            )
            record_direct_payment(customer, payment, auth)
            session.flush()
            log_database_operation("insert", "customer_payments", payment.id, payment.receipt_number)
            return payment

    @staticmethod
    def get_payments_by_customer(customer_id: int) -> List[CustomerPayment]:
        session = get_db_session()
        try:
            return (
                session.query(CustomerPayment)
                .filter(CustomerPayment.customer_id == customer_id)
                .order_by(desc(CustomerPayment.payment_date))
                .all()
            )
        finally:
            session.close()


class FollowUpService:
    """Service for customer follow-ups."""

    @staticmethod
    def create_follow_up(customer_id: int, notes: str = "",
                         next_follow_up_date: datetime = None,
                         interaction_date: datetime = None) -> FollowUp:
        with _unit_of_work() as session:
            follow_up = FollowUp(
                customer_id=customer_id,
                notes=notes,
                next_follow_up_date=next_follow_up_date,
                interaction_date=interaction_date or datetime.utcnow(),
            )
            session.add(follow_up)
            session.flush()
            log_database_operation("insert", "follow_ups", follow_up.id)
            return follow_up

    @staticmethod
    def mark_complete(follow_up_id: int, new_customer_stage: CustomerStage = None) -> FollowUp:
        """Close a follow-up, optionally moving the customer to a new stage."""
        with _unit_of_work() as session:
            follow_up = (
                session.query(FollowUp)
                .options(joinedload(FollowUp.customer))
                .filter(FollowUp.id == follow_up_id)
                .first()
            )
            if not follow_up:
                raise NotFoundError(f"Follow-up {follow_up_id} not found")
            follow_up.completed = True
            if new_customer_stage is not None:
                follow_up.customer.stage = CustomerStage(new_customer_stage)
            return follow_up

    @staticmethod
    def get_dashboard_counts(today: date = None) -> Dict[str, int]:
        session = get_db_session()
        try:
            open_follow_ups = session.query(FollowUp).filter(FollowUp.completed.is_(False)).all()
            return count_follow_ups(open_follow_ups, today)
        finally:
            session.close()

    @staticmethod
    def get_customers_matching(bucket: str, today: date = None) -> List[Customer]:
        """Customers shown under a dashboard filter ("all", today, yesterday, missed, future)."""
        session = get_db_session()
        try:
            open_follow_ups = session.query(FollowUp).filter(FollowUp.completed.is_(False)).all()
            customer_ids = customers_matching(open_follow_ups, bucket, today)
            if not customer_ids:
                return []
            return (
                session.query(Customer)
                .filter(Customer.id.in_(customer_ids))
                .order_by(Customer.name)
                .all()
            )
        finally:
            session.close()

    @staticmethod
    def get_pending(today: date = None) -> List[FollowUp]:
        session = get_db_session()
        try:
            open_follow_ups = (
                session.query(FollowUp)
                .options(joinedload(FollowUp.customer))
                .filter(FollowUp.completed.is_(False))
                .all()
            )
            return pending_follow_ups(open_follow_ups, today)
        finally:
            session.close()
