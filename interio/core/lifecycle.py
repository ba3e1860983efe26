"""
Document lifecycle for quotations, sales orders and invoices.

Quotation: draft -> saved -> approved -> converted, no skipping.
Sales order: pending -> confirmed -> in_production -> ready_for_delivery
-> delivered -> completed, cancellable until it reaches a terminal state.
Invoice: pending/partially_paid/overdue until paid or cancelled.

These functions only mutate the objects they are given. The services layer
runs them inside a transaction with the row locks and version checks that
make conversions and payments safe under concurrency.
"""

from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List

from interio.core.auth import AuthContext, Permission, require
from interio.core.calculations import calc_quotation_pricing
from interio.core.errors import ConcurrentConversionError, ValidationError
from interio.core.logging_config import get_logger, log_business_operation
from interio.core.models import (
    Accessory, InstallationCharge, Invoice, InvoiceStatus, PaymentStatus, Product,
    Quotation, QuotationStatus, Room, SalesOrder, SalesOrderStatus,
)
from interio.core.money import ZERO, to_money
from interio.core.payments import derive_payment_status
from interio.core.validation import ValidationResult, validate_quotation


logger = get_logger(__name__)

DEFAULT_DELIVERY_LEAD_DAYS = 30
DEFAULT_INVOICE_DUE_DAYS = 30

SALES_ORDER_FLOW = [
    SalesOrderStatus.PENDING,
    SalesOrderStatus.CONFIRMED,
    SalesOrderStatus.IN_PRODUCTION,
    SalesOrderStatus.READY_FOR_DELIVERY,
    SalesOrderStatus.DELIVERED,
    SalesOrderStatus.COMPLETED,
]
SALES_ORDER_TERMINAL = {SalesOrderStatus.COMPLETED, SalesOrderStatus.CANCELLED}

INVOICE_TERMINAL = {InvoiceStatus.PAID, InvoiceStatus.CANCELLED}


def _document_number(prefix: str, quotation, year: int) -> str:
    # SO/INV numbers share the quotation's running number when none is supplied
    parts = (quotation.quotation_number or "").split('-')
    if len(parts) == 3 and parts[2].isdigit():
        return f"{prefix}-{year}-{parts[2]}"
    return f"{prefix}-{year}-{quotation.id or 0:06d}"


def _illegal(action: str, quotation) -> ValidationError:
    status = quotation.status.value if quotation.status else "unknown"
    message = f"Cannot {action} quotation {quotation.quotation_number} in status '{status}'"
    return ValidationError(message, errors=[message])


# Quotation

def ensure_editable(quotation):
    """Line items are frozen once an invoice has been generated from the quotation."""
    if quotation.invoiced_at is not None:
        raise ValidationError(
            f"Quotation {quotation.quotation_number} has been invoiced and can no longer be edited"
        )


def save_quotation(quotation, auth: AuthContext):
    """draft -> saved"""
    require(auth, Permission.EDIT_QUOTATION)
    if quotation.status != QuotationStatus.DRAFT:
        raise _illegal("save", quotation)

    quotation.status = QuotationStatus.SAVED
    log_business_operation("save quotation", quotation.quotation_number, auth.user_id)
    return quotation


def approve_quotation(quotation, auth: AuthContext,
                      validator: Callable = validate_quotation, settings=None) -> ValidationResult:
    """
    saved -> approved, only when the validator reports no errors.

    Returns:
        The validator's result, so warnings can still be shown after approval

    Raises:
        ValidationError: wrong status, or the validator reported errors
    """
    require(auth, Permission.APPROVE_QUOTATION)
    if quotation.status != QuotationStatus.SAVED:
        raise _illegal("approve", quotation)

    result = validator(quotation, settings)
    if result.errors:
        raise ValidationError(
            f"Quotation {quotation.quotation_number} failed validation",
            errors=result.errors
        )

    quotation.status = QuotationStatus.APPROVED
    log_business_operation("approve quotation", quotation.quotation_number, auth.user_id)
    return result


def revert_to_draft(quotation, auth: AuthContext):
    """Send a saved or approved quotation back for editing."""
    require(auth, Permission.EDIT_QUOTATION)
    if quotation.status not in (QuotationStatus.SAVED, QuotationStatus.APPROVED):
        raise _illegal("revert", quotation)

    quotation.status = QuotationStatus.DRAFT
    log_business_operation("revert quotation", quotation.quotation_number, auth.user_id)
    return quotation


def convert_to_sales_order(quotation, auth: AuthContext, expected_delivery_date: date = None,
                           notes: str = None, order_number: str = None, now: datetime = None,
                           delivery_lead_days: int = DEFAULT_DELIVERY_LEAD_DAYS) -> SalesOrder:
    """
    Create the sales order for an approved quotation.

    The order total is the quotation's grand total at this moment, and the
    full FinalPricing is frozen onto the order as a snapshot.

    Raises:
        ConcurrentConversionError: the quotation was already converted or invoiced
        ValidationError: the quotation is not approved
    """
    require(auth, Permission.CONVERT_QUOTATION)
    if (quotation.status == QuotationStatus.CONVERTED
            or quotation.sales_order is not None
            or quotation.invoiced_at is not None):
        raise ConcurrentConversionError(
            f"Quotation {quotation.quotation_number} has already been converted"
        )
    if quotation.status != QuotationStatus.APPROVED:
        raise _illegal("convert", quotation)

    now = now or datetime.utcnow()
    _, pricing = calc_quotation_pricing(quotation)
    total = pricing.grand_total

    order = SalesOrder(
        order_number=order_number or _document_number("SO", quotation, now.year),
        quotation_id=quotation.id,
        customer_id=quotation.customer_id,
        total_amount=total,
        amount_paid=ZERO,
        amount_due=total,
        status=SalesOrderStatus.PENDING,
        payment_status=PaymentStatus.UNPAID,
        order_date=now,
        expected_delivery_date=expected_delivery_date or (now + timedelta(days=delivery_lead_days)).date(),
        pricing_snapshot=pricing.to_dict(),
        notes=notes or "",
    )
    order.quotation = quotation
    quotation.status = QuotationStatus.CONVERTED

    log_business_operation(
        "convert to sales order",
        f"{quotation.quotation_number} -> {order.order_number} total={total}",
        auth.user_id
    )
    return order


def convert_to_invoice(source, auth: AuthContext, due_date: date = None, notes: str = None,
                       invoice_number: str = None, now: datetime = None,
                       due_days: int = DEFAULT_INVOICE_DUE_DAYS) -> Invoice:
    """
    Generate the invoice for a quotation, directly or through its sales order.

    Totals are recomputed from the quotation's current rooms and prices,
    not copied from the order, so edits made after conversion show up on
    the invoice. A mismatch with the order is logged.

    Raises:
        ConcurrentConversionError: the quotation already has a live invoice
        ValidationError: the quotation is not approved or converted, or the
            order is cancelled
    """
    require(auth, Permission.CONVERT_QUOTATION)

    if isinstance(source, SalesOrder):
        order = source
        quotation = source.quotation
        if quotation is None:
            raise ValidationError(f"Sales order {order.order_number} has no quotation")
        if order.status == SalesOrderStatus.CANCELLED:
            raise ValidationError(f"Sales order {order.order_number} is cancelled")
    else:
        quotation = source
        order = quotation.sales_order

    if quotation.invoiced_at is not None:
        raise ConcurrentConversionError(
            f"Quotation {quotation.quotation_number} has already been invoiced"
        )
    if quotation.status not in (QuotationStatus.APPROVED, QuotationStatus.CONVERTED):
        raise _illegal("invoice", quotation)

    now = now or datetime.utcnow()
    _, pricing = calc_quotation_pricing(quotation)

    status = InvoiceStatus.PENDING
    if order is not None:
        if to_money(order.total_amount) != pricing.grand_total:
            logger.warning(
                f"Invoice for {quotation.quotation_number} re-priced at {pricing.grand_total}, "
                f"sales order {order.order_number} was agreed at {order.total_amount}"
            )
        paid_status = derive_payment_status(pricing.grand_total, order.amount_paid or ZERO)
        if paid_status == PaymentStatus.PAID:
            status = InvoiceStatus.PAID
        elif paid_status == PaymentStatus.PARTIALLY_PAID:
            status = InvoiceStatus.PARTIALLY_PAID

    invoice = Invoice(
        invoice_number=invoice_number or _document_number("INV", quotation, now.year),
        quotation_id=quotation.id,
        sales_order_id=order.id if order is not None else None,
        customer_id=quotation.customer_id,
        total_amount=pricing.grand_total,
        total_without_discount=pricing.grand_total_without_discount,
        issue_date=now.date(),
        due_date=due_date or (now + timedelta(days=due_days)).date(),
        status=status,
        notes=notes or "",
    )
    invoice.quotation = quotation
    if order is not None:
        invoice.sales_order = order
    quotation.invoiced_at = now

    log_business_operation(
        "convert to invoice",
        f"{quotation.quotation_number} -> {invoice.invoice_number} total={pricing.grand_total}",
        auth.user_id
    )
    return invoice


def duplicate_quotation(quotation, target_customer_id: int = None,
                        quotation_number: str = None) -> Quotation:
    """Deep copy of a quotation's rooms and line items as a new draft."""
    copy = Quotation(
        quotation_number=quotation_number,
        customer_id=target_customer_id if target_customer_id is not None else quotation.customer_id,
        title=f"{quotation.title} (Copy)" if quotation.title else None,
        status=QuotationStatus.DRAFT,
        global_discount=quotation.global_discount,
        gst_percentage=quotation.gst_percentage,
        installation_handling=quotation.installation_handling,
    )
    for room in quotation.rooms:
        copy.rooms.append(Room(
            name=room.name,
            description=room.description,
            order=room.order,
            products=[
                Product(name=p.name, description=p.description, category=p.category,
                        quantity=p.quantity, selling_price=p.selling_price, discount=p.discount)
                for p in room.products
            ],
            accessories=[
                Accessory(name=a.name, description=a.description, category=a.category,
                          quantity=a.quantity, selling_price=a.selling_price, discount=a.discount)
                for a in room.accessories
            ],
            installation_charges=[
                InstallationCharge(name=c.name, amount=c.amount, width_mm=c.width_mm,
                                   height_mm=c.height_mm, area_sqft=c.area_sqft,
                                   price_per_sqft=c.price_per_sqft)
                for c in room.installation_charges
            ],
        ))
    return copy


# Sales order

def transition_sales_order(order, new_status: SalesOrderStatus, auth: AuthContext):
    """
    Move an order one step along its flow, or cancel it.

    Payment status is never touched here; it follows from the payments.
    """
    require(auth, Permission.MANAGE_SALES_ORDER)
    current = order.status
    if current in SALES_ORDER_TERMINAL:
        raise ValidationError(
            f"Sales order {order.order_number} is {current.value} and cannot change status"
        )

    if new_status == SalesOrderStatus.CANCELLED:
        allowed = True
    else:
        position = SALES_ORDER_FLOW.index(current)
        allowed = (position + 1 < len(SALES_ORDER_FLOW)
                   and SALES_ORDER_FLOW[position + 1] == new_status)
    if not allowed:
        raise ValidationError(
            f"Sales order {order.order_number} cannot move from {current.value} to {new_status.value}"
        )

    order.status = new_status
    log_business_operation(
        "sales order status", f"{order.order_number}: {current.value} -> {new_status.value}",
        auth.user_id
    )
    return order


def cancel_sales_order(order, auth: AuthContext):
    return transition_sales_order(order, SalesOrderStatus.CANCELLED, auth)


# Invoice

def transition_invoice(invoice, new_status: InvoiceStatus, auth: AuthContext):
    """Change an open invoice's status; cancelling frees the quotation for re-invoicing."""
    require(auth, Permission.MANAGE_INVOICE)
    current = invoice.status
    if current in INVOICE_TERMINAL:
        raise ValidationError(
            f"Invoice {invoice.invoice_number} is {current.value} and cannot change status"
        )
    if new_status == current:
        raise ValidationError(f"Invoice {invoice.invoice_number} is already {current.value}")

    invoice.status = new_status
    if new_status == InvoiceStatus.CANCELLED and invoice.quotation is not None:
        invoice.quotation.invoiced_at = None

    log_business_operation(
        "invoice status", f"{invoice.invoice_number}: {current.value} -> {new_status.value}",
        auth.user_id
    )
    return invoice


def mark_overdue_invoices(invoices: Iterable, today: date = None) -> List:
    """Flag open invoices whose due date has passed; returns the ones changed."""
    today = today or date.today()
    changed = []
    for invoice in invoices:
        if invoice.status in (InvoiceStatus.PENDING, InvoiceStatus.PARTIALLY_PAID) \
                and invoice.due_date is not None and invoice.due_date < today:
            invoice.status = InvoiceStatus.OVERDUE
            changed.append(invoice)
    if changed:
        log_business_operation("mark overdue", ", ".join(i.invoice_number for i in changed))
    return changed
