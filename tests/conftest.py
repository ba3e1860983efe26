import os
import tempfile

# Point the package at a throwaway data dir and an in-memory database
# before anything under interio is imported.
os.environ.setdefault("INTERIO_DATA_DIR", tempfile.mkdtemp(prefix="interio-test-"))
os.environ["INTERIO_DATABASE_URL"] = "sqlite://"

from datetime import datetime
from decimal import Decimal

import pytest

from interio.core.auth import AuthContext, Role, SYSTEM
from interio.core.database import configure_database, drop_db, init_db
from interio.core.models import (
    Accessory, InstallationCharge, Product, Quotation, QuotationStatus, Room,
    SalesOrder, SalesOrderStatus,
)


@pytest.fixture
def db():
    """Fresh in-memory database for one test."""
    configure_database("sqlite://")
    init_db()
    yield
    drop_db()


@pytest.fixture
def admin():
    return SYSTEM


@pytest.fixture
def manager():
    return AuthContext(user_id=7, role=Role.MANAGER)


@pytest.fixture
def designer():
    return AuthContext(user_id=11, role=Role.DESIGNER)


@pytest.fixture
def viewer():
    return AuthContext(user_id=13, role=Role.VIEWER)


def make_room(name="Kitchen", products=(), accessories=(), installation=()):
    """Transient room from (quantity, price, discount) tuples and flat charge amounts."""
    return Room(
        name=name,
        products=[
            Product(name=f"{name} product {i}", quantity=qty, selling_price=Decimal(price),
                    discount=Decimal(discount))
            for i, (qty, price, discount) in enumerate(products)
        ],
        accessories=[
            Accessory(name=acc_name, quantity=qty, selling_price=Decimal(price),
                      discount=Decimal(discount))
            for acc_name, qty, price, discount in accessories
        ],
        installation_charges=[
            InstallationCharge(name=f"{name} install {i}", amount=Decimal(amount))
            for i, amount in enumerate(installation)
        ],
    )


def make_quotation(rooms=None, status=QuotationStatus.DRAFT, global_discount="5",
                   gst_percentage="18", installation_handling="500", number="Q-2026-000001"):
    return Quotation(
        id=1,
        quotation_number=number,
        customer_id=1,
        title="Apartment 4B",
        status=status,
        global_discount=Decimal(global_discount),
        gst_percentage=Decimal(gst_percentage),
        installation_handling=Decimal(installation_handling),
        rooms=list(rooms) if rooms is not None else [complete_room()],
    )


def complete_room(name="Kitchen"):
    """A room that passes every approval check."""
    return make_room(
        name,
        products=[(2, "1000", "10")],
        accessories=[("Handles", 4, "50", "0"), ("Skirting", 1, "300", "0"),
                     ("Sliding mechanism", 1, "200", "0"), ("T profile", 2, "25", "0")],
        installation=["800"],
    )


def make_order(total="2608", paid="0", status=SalesOrderStatus.PENDING):
    total = Decimal(total)
    paid = Decimal(paid)
    return SalesOrder(
        order_number="SO-2026-000001",
        quotation_id=1,
        customer_id=1,
        total_amount=total,
        amount_paid=paid,
        amount_due=total - paid,
        status=status,
        order_date=datetime(2026, 3, 1, 10, 0),
    )


@pytest.fixture
def quotation_factory():
    return make_quotation


@pytest.fixture
def room_factory():
    return make_room


@pytest.fixture
def order_factory():
    return make_order
