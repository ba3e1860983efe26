"""
Data models for Interio Quoter.
Customers, quotations with rooms and line items, sales orders, invoices,
both payment ledgers, follow-ups and application settings.
"""

import enum
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Date, Boolean, JSON,
    ForeignKey, Enum, Numeric
)
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


# Enums
class QuotationStatus(enum.Enum):
    DRAFT = "draft"
    SAVED = "saved"
    APPROVED = "approved"
    CONVERTED = "converted"


class SalesOrderStatus(enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PRODUCTION = "in_production"
    READY_FOR_DELIVERY = "ready_for_delivery"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(enum.Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class InvoiceStatus(enum.Enum):
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    CARD = "card"
    UPI = "upi"
    OTHER = "other"


class PaymentType(enum.Enum):
    TOKEN_ADVANCE = "token_advance"
    STARTING_PRODUCTION = "starting_production"
    FINAL_PAYMENT = "final_payment"
    OTHER = "other"


class CustomerStage(enum.Enum):
    NEW = "new"
    PIPELINE = "pipeline"
    COLD = "cold"
    WARM = "warm"
    BOOKED = "booked"


def Money(**kwargs):
    """Whole-rupee amounts with room for paise from older data."""
    return Column(Numeric(12, 2), **kwargs)


def Percent(**kwargs):
    return Column(Numeric(5, 2), **kwargs)


# Models
class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    email = Column(String(100))
    phone = Column(String(20))
    address = Column(Text)
    stage = Column(Enum(CustomerStage), default=CustomerStage.NEW, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    quotations = relationship("Quotation", back_populates="customer")
    sales_orders = relationship("SalesOrder", back_populates="customer")
    invoices = relationship("Invoice", back_populates="customer")
    direct_payments = relationship(
        "CustomerPayment", back_populates="customer",
        cascade="all, delete-orphan", order_by="CustomerPayment.payment_date.desc()"
    )
    follow_ups = relationship("FollowUp", back_populates="customer", cascade="all, delete-orphan")


class Quotation(Base):
    __tablename__ = "quotations"

    id = Column(Integer, primary_key=True)
    quotation_number = Column(String(30), unique=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    title = Column(String(200))

    status = Column(Enum(QuotationStatus), default=QuotationStatus.DRAFT, nullable=False)

    # Pricing inputs; every total is derived by core.calculations
    global_discount = Percent(default=Decimal('0'), nullable=False)
    gst_percentage = Percent(default=Decimal('18'), nullable=False)
    installation_handling = Money(default=Decimal('0'), nullable=False)

    invoiced_at = Column(DateTime)
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    customer = relationship("Customer", back_populates="quotations")
    rooms = relationship(
        "Room", back_populates="quotation",
        cascade="all, delete-orphan", order_by="Room.order"
    )
    sales_order = relationship("SalesOrder", back_populates="quotation", uselist=False)
    invoices = relationship("Invoice", back_populates="quotation")

    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs):
        kwargs.setdefault("status", QuotationStatus.DRAFT)
        kwargs.setdefault("global_discount", Decimal('0'))
        kwargs.setdefault("gst_percentage", Decimal('18'))
        kwargs.setdefault("installation_handling", Decimal('0'))
        kwargs.setdefault("created_at", datetime.utcnow())
        super().__init__(**kwargs)


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True)
    quotation_id = Column(Integer, ForeignKey("quotations.id"), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    order = Column(Integer, default=0, nullable=False)

    # Relationships
    quotation = relationship("Quotation", back_populates="rooms")
    products = relationship("Product", back_populates="room", cascade="all, delete-orphan")
    accessories = relationship("Accessory", back_populates="room", cascade="all, delete-orphan")
    installation_charges = relationship(
        "InstallationCharge", back_populates="room", cascade="all, delete-orphan"
    )


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    category = Column(String(100))
    quantity = Column(Integer, default=1, nullable=False)
    selling_price = Money(nullable=False)
    discount = Percent(default=Decimal('0'), nullable=False)

    room = relationship("Room", back_populates="products")

    def __init__(self, **kwargs):
        kwargs.setdefault("quantity", 1)
        kwargs.setdefault("discount", Decimal('0'))
        super().__init__(**kwargs)


class Accessory(Base):
    __tablename__ = "accessories"

    id = Column(Integer, primary_key=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    category = Column(String(100))
    quantity = Column(Integer, default=1, nullable=False)
    selling_price = Money(nullable=False)
    discount = Percent(default=Decimal('0'), nullable=False)

    room = relationship("Room", back_populates="accessories")

    def __init__(self, **kwargs):
        kwargs.setdefault("quantity", 1)
        kwargs.setdefault("discount", Decimal('0'))
        super().__init__(**kwargs)


class InstallationCharge(Base):
    __tablename__ = "installation_charges"

    id = Column(Integer, primary_key=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    name = Column(String(200), nullable=False)  # e.g. "Base cabinets"
    amount = Money(nullable=False)

    # Calculator inputs, kept for display
    width_mm = Column(Integer)
    height_mm = Column(Integer)
    area_sqft = Column(Numeric(10, 3))
    price_per_sqft = Money()

    room = relationship("Room", back_populates="installation_charges")


class SalesOrder(Base):
    __tablename__ = "sales_orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(30), unique=True, nullable=False)
    # One order per quotation; the constraint is the last line of defence
    # against two concurrent conversions
    quotation_id = Column(Integer, ForeignKey("quotations.id"), unique=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)

    total_amount = Money(nullable=False)
    amount_paid = Money(default=Decimal('0'), nullable=False)
    amount_due = Money(nullable=False)

    status = Column(Enum(SalesOrderStatus), default=SalesOrderStatus.PENDING, nullable=False)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False)

    order_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    expected_delivery_date = Column(Date)
    pricing_snapshot = Column(JSON)
    notes = Column(Text)

    version = Column(Integer, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    quotation = relationship("Quotation", back_populates="sales_order")
    customer = relationship("Customer", back_populates="sales_orders")
    payments = relationship(
        "OrderPayment", back_populates="sales_order",
        cascade="all, delete-orphan", order_by="OrderPayment.payment_date"
    )
    invoices = relationship("Invoice", back_populates="sales_order")

    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs):
        kwargs.setdefault("status", SalesOrderStatus.PENDING)
        kwargs.setdefault("payment_status", PaymentStatus.UNPAID)
        kwargs.setdefault("amount_paid", Decimal('0'))
        super().__init__(**kwargs)


class OrderPayment(Base):
    __tablename__ = "order_payments"

    id = Column(Integer, primary_key=True)
    sales_order_id = Column(Integer, ForeignKey("sales_orders.id"), nullable=False)

    amount = Money(nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    payment_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    transaction_id = Column(String(60), unique=True)
    receipt_number = Column(String(60), unique=True)
    notes = Column(Text)
    created_by = Column(Integer)

    created_at = Column(DateTime, default=datetime.utcnow)

    sales_order = relationship("SalesOrder", back_populates="payments")


class CustomerPayment(Base):
    __tablename__ = "customer_payments"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)

    amount = Money(nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    payment_type = Column(Enum(PaymentType), default=PaymentType.OTHER, nullable=False)
    payment_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    transaction_id = Column(String(60), unique=True)
    receipt_number = Column(String(60), unique=True)
    description = Column(Text)
    created_by = Column(Integer)

    created_at = Column(DateTime, default=datetime.utcnow)

    customer = relationship("Customer", back_populates="direct_payments")


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    invoice_number = Column(String(30), unique=True, nullable=False)
    quotation_id = Column(Integer, ForeignKey("quotations.id"), nullable=False)
    sales_order_id = Column(Integer, ForeignKey("sales_orders.id"))
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)

    total_amount = Money(nullable=False)
    total_without_discount = Money()
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(Enum(InvoiceStatus), default=InvoiceStatus.PENDING, nullable=False)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    quotation = relationship("Quotation", back_populates="invoices")
    sales_order = relationship("SalesOrder", back_populates="invoices")
    customer = relationship("Customer", back_populates="invoices")

    def __init__(self, **kwargs):
        kwargs.setdefault("status", InvoiceStatus.PENDING)
        super().__init__(**kwargs)


class FollowUp(Base):
    __tablename__ = "follow_ups"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    notes = Column(Text)
    interaction_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    next_follow_up_date = Column(DateTime)
    completed = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    customer = relationship("Customer", back_populates="follow_ups")

    def __init__(self, **kwargs):
        kwargs.setdefault("completed", False)
        super().__init__(**kwargs)


class AppSettings(Base):
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True)
    default_gst_percentage = Percent(default=Decimal('18'), nullable=False)
    default_global_discount = Percent(default=Decimal('5'), nullable=False)
    default_installation_handling = Money(default=Decimal('0'), nullable=False)
    required_accessories = Column(
        Text, default="skirting,handles,sliding mechanism,t profile"
    )
    invoice_due_days = Column(Integer, default=30, nullable=False)
    delivery_lead_days = Column(Integer, default=30, nullable=False)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __init__(self, **kwargs):
        kwargs.setdefault("default_gst_percentage", Decimal('18'))
        kwargs.setdefault("default_global_discount", Decimal('5'))
        kwargs.setdefault("default_installation_handling", Decimal('0'))
        kwargs.setdefault("required_accessories", "skirting,handles,sliding mechanism,t profile")
        kwargs.setdefault("invoice_due_days", 30)
        kwargs.setdefault("delivery_lead_days", 30)
        super().__init__(**kwargs)
