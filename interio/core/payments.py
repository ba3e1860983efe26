"""
Payment reconciliation.

Two separate ledgers: payments against a sales order, which drive the
order's amount_paid/amount_due/payment_status, and direct customer payments,
which never touch an order. customer_ledger() is the only place the two meet.
"""

import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List

from interio.core.auth import AuthContext, Permission, require
from interio.core.errors import NotFoundError, OverpaymentError, ValidationError
from interio.core.logging_config import log_business_operation
from interio.core.models import PaymentStatus, PaymentType, SalesOrderStatus
from interio.core.money import ZERO, check_positive, to_money


_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def _random_suffix(length: int) -> str:
    return ''.join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def generate_transaction_id(now: datetime = None) -> str:
    """TXN-<epoch millis>-<6 random chars>"""
    now = now or datetime.utcnow()
    # naive datetimes are UTC throughout
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return f"TXN-{int(now.timestamp() * 1000)}-{_random_suffix(6)}"


def generate_receipt_number(now: datetime = None) -> str:
    """RCPT-<YYYYMMDDHHMMSS>-<4 random chars>; sorts by time, unique per payment."""
    now = now or datetime.utcnow()
    return f"RCPT-{now.strftime('%Y%m%d%H%M%S')}-{_random_suffix(4)}"


def derive_payment_status(total_amount, amount_paid) -> PaymentStatus:
    """Payment status as a pure function of the order total and what has been paid."""
    total = to_money(total_amount)
    paid = to_money(amount_paid)
    if paid <= 0:
        return PaymentStatus.UNPAID
    if paid < total:
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.PAID


def reconcile_order(order):
    """Recompute amount_paid, amount_due and payment_status from the order's payments."""
    total = to_money(order.total_amount)
    paid = sum((to_money(payment.amount) for payment in order.payments), ZERO)
    order.amount_paid = paid
    order.amount_due = max(ZERO, total - paid)
    order.payment_status = derive_payment_status(total, paid)
    return order


def _stamp(payment, auth: AuthContext, now: datetime):
    if payment.payment_method is None:
        raise ValidationError("Payment method is required")
    if not payment.transaction_id:
        payment.transaction_id = generate_transaction_id(now)
    if not payment.receipt_number:
        payment.receipt_number = generate_receipt_number(now)
    if payment.payment_date is None:
        payment.payment_date = now
    if payment.created_by is None:
        payment.created_by = auth.user_id


def record_order_payment(order, payment, auth: AuthContext, now: datetime = None):
    """
    Apply a payment to a sales order.

    Every check happens before the order is touched, so a rejected payment
    leaves the order exactly as it was.

    Raises:
        InvalidAmountError: amount is zero or negative
        OverpaymentError: amount is larger than what is still due
        ValidationError: the order is cancelled or the payment has no method
    """
    require(auth, Permission.RECORD_PAYMENT)
    amount = check_positive(payment.amount, "payment amount")
    if order.status == SalesOrderStatus.CANCELLED:
        raise ValidationError(f"Sales order {order.order_number} is cancelled")

    amount_due = to_money(order.amount_due)
    if amount > amount_due:
        raise OverpaymentError(amount, amount_due)

    _stamp(payment, auth, now or datetime.utcnow())
    payment.amount = amount
    order.payments.append(payment)
    reconcile_order(order)

    log_business_operation(
        "order payment",
        f"{order.order_number} {payment.receipt_number} amount={amount} due={order.amount_due}",
        auth.user_id
    )
    return order


def remove_order_payment(order, payment, auth: AuthContext):
    """Take a payment off an order and recompute its balance."""
    require(auth, Permission.EDIT_PAYMENT)
    if payment not in order.payments:
        raise NotFoundError(f"Payment {payment.receipt_number} is not on order {order.order_number}")

    order.payments.remove(payment)
    reconcile_order(order)
    log_business_operation(
        "remove order payment", f"{order.order_number} {payment.receipt_number}", auth.user_id
    )
    return order


def record_direct_payment(customer, payment, auth: AuthContext, now: datetime = None) -> str:
    """
    Record a payment against a customer without any sales order.

    Returns:
        The receipt number, generated when the payment did not carry one
    """
    require(auth, Permission.RECORD_PAYMENT)
    payment.amount = check_positive(payment.amount, "payment amount")
    _stamp(payment, auth, now or datetime.utcnow())
    if payment.payment_type is None:
        payment.payment_type = PaymentType.OTHER

    customer.direct_payments.append(payment)
    log_business_operation(
        "direct payment",
        f"customer={customer.id} {payment.receipt_number} amount={payment.amount} "
        f"type={payment.payment_type.value}",
        auth.user_id
    )
    return payment.receipt_number


@dataclass
class LedgerEntry:
    date: datetime
    kind: str          # "order", "order_payment" or "direct_payment"
    reference: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO


@dataclass
class CustomerLedger:
    total_ordered: Decimal
    total_paid_on_orders: Decimal
    total_direct_payments: Decimal
    entries: List[LedgerEntry] = field(default_factory=list)

    @property
    def total_received(self) -> Decimal:
        return self.total_paid_on_orders + self.total_direct_payments

    @property
    def outstanding(self) -> Decimal:
        return max(ZERO, self.total_ordered - self.total_received)


def customer_ledger(orders: Iterable, direct_payments: Iterable) -> CustomerLedger:
    """
    Read-only join of a customer's orders, order payments and direct payments.

    Cancelled orders are not owed, but money already paid on them still
    counts as received. Nothing here is written back to any order.
    """
    entries = []
    total_ordered = ZERO
    total_paid = ZERO
    for order in orders:
        if order.status != SalesOrderStatus.CANCELLED:
            total_ordered += to_money(order.total_amount)
            entries.append(LedgerEntry(order.order_date, "order", order.order_number,
                                       debit=to_money(order.total_amount)))
        for payment in order.payments:
            total_paid += to_money(payment.amount)
            entries.append(LedgerEntry(payment.payment_date, "order_payment",
                                       payment.receipt_number, credit=to_money(payment.amount)))

    total_direct = ZERO
    for payment in direct_payments:
        total_direct += to_money(payment.amount)
        entries.append(LedgerEntry(payment.payment_date, "direct_payment",
                                   payment.receipt_number, credit=to_money(payment.amount)))

    entries.sort(key=lambda entry: entry.date or datetime.min)
    return CustomerLedger(
        total_ordered=total_ordered,
        total_paid_on_orders=total_paid,
        total_direct_payments=total_direct,
        entries=entries,
    )
