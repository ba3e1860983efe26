"""
Business calculation functions for quotations.

Every screen, printout, sales order and invoice gets its figures from
calc_quotation_pricing(); nothing else adds up line items or applies GST.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Tuple

from interio.core.money import (
    ZERO, apply_percent, check_non_negative, check_percent, line_total, round_money,
    to_money,
)


SQ_MM_PER_SQ_FT = Decimal('92903.04')
DEFAULT_PRICE_PER_SQFT = Decimal('130')


@dataclass(frozen=True)
class RoomTotal:
    room_id: int
    name: str
    product_accessory_total: Decimal
    installation_total: Decimal


@dataclass(frozen=True)
class PricingBreakdown:
    """Undiscounted, untaxed sums over a quotation's rooms."""
    product_accessory_subtotal: Decimal
    room_installation_total: Decimal
    room_totals: List[RoomTotal] = field(default_factory=list)


@dataclass(frozen=True)
class GstSplit:
    cgst: Decimal
    sgst: Decimal
    rate_each: Decimal


@dataclass(frozen=True)
class FinalPricing:
    product_accessory_subtotal: Decimal
    global_discount: Decimal
    discount_amount: Decimal
    discounted_subtotal: Decimal
    room_installation_total: Decimal
    installation_handling: Decimal
    total_installation: Decimal
    taxable_amount: Decimal
    gst_percentage: Decimal
    gst_amount: Decimal
    grand_total: Decimal
    # Same formula with no global discount, for comparison on invoices
    taxable_without_discount: Decimal
    gst_without_discount: Decimal
    grand_total_without_discount: Decimal

    def to_dict(self) -> Dict[str, str]:
        """Decimal-safe representation for snapshots and JSON responses."""
        return {name: str(value) for name, value in self.__dict__.items()}


def _amount(value) -> Decimal:
    # unset numeric fields on fresh objects count as zero
    return ZERO if value is None else to_money(value)


def item_total(item) -> Decimal:
    """Line total for a product or accessory row."""
    quantity = 0 if item.quantity is None else item.quantity
    return line_total(quantity, _amount(item.selling_price), _amount(item.discount))


def room_total(room) -> Decimal:
    """Sum of product and accessory line totals in one room, installation excluded."""
    lines = list(room.products or []) + list(room.accessories or [])
    return sum((item_total(item) for item in lines), ZERO)


def room_installation_total(room) -> Decimal:
    """Sum of flat installation charges attached to one room."""
    return sum(
        (check_non_negative(_amount(charge.amount), "installation charge")
         for charge in room.installation_charges or []),
        ZERO
    )


def calc_pricing_breakdown(rooms: Iterable) -> PricingBreakdown:
    """
    Aggregate line items across rooms.

    The grand sums are built from the per-room figures so that a room-by-room
    display always adds up to the document total.
    """
    room_totals = [
        RoomTotal(
            room_id=room.id,
            name=room.name,
            product_accessory_total=room_total(room),
            installation_total=room_installation_total(room),
        )
        for room in rooms or []
    ]
    return PricingBreakdown(
        product_accessory_subtotal=sum((r.product_accessory_total for r in room_totals), ZERO),
        room_installation_total=sum((r.installation_total for r in room_totals), ZERO),
        room_totals=room_totals,
    )


def calc_final_pricing(breakdown: PricingBreakdown, global_discount=ZERO,
                       gst_percentage=ZERO, installation_handling=ZERO) -> FinalPricing:
    """
    Apply global discount, installation and GST to a breakdown.

    Args:
        breakdown: Output of calc_pricing_breakdown
        global_discount: Percent applied to products and accessories only
        gst_percentage: GST percent applied after discount, installation included
        installation_handling: Flat handling surcharge, never discounted

    Returns:
        FinalPricing with every intermediate figure
    """
    discount_pct = check_percent(global_discount, "global discount")
    gst_pct = check_percent(gst_percentage, "GST percentage")
    handling = check_non_negative(installation_handling, "installation handling")

    subtotal = breakdown.product_accessory_subtotal
    discount_amount = apply_percent(subtotal, discount_pct)
    discounted_subtotal = subtotal - discount_amount

    total_installation = breakdown.room_installation_total + handling
    taxable_amount = discounted_subtotal + total_installation
    gst_amount = apply_percent(taxable_amount, gst_pct)

    taxable_without_discount = subtotal + total_installation
    gst_without_discount = apply_percent(taxable_without_discount, gst_pct)

    return FinalPricing(
        product_accessory_subtotal=subtotal,
        global_discount=discount_pct,
        discount_amount=discount_amount,
        discounted_subtotal=discounted_subtotal,
        room_installation_total=breakdown.room_installation_total,
        installation_handling=handling,
        total_installation=total_installation,
        taxable_amount=taxable_amount,
        gst_percentage=gst_pct,
        gst_amount=gst_amount,
        grand_total=taxable_amount + gst_amount,
        taxable_without_discount=taxable_without_discount,
        gst_without_discount=gst_without_discount,
        grand_total_without_discount=taxable_without_discount + gst_without_discount,
    )


def calc_quotation_pricing(quotation) -> Tuple[PricingBreakdown, FinalPricing]:
    """Price a quotation from its own rooms and header fields."""
    breakdown = calc_pricing_breakdown(quotation.rooms)
    final = calc_final_pricing(
        breakdown,
        global_discount=_amount(quotation.global_discount),
        gst_percentage=_amount(quotation.gst_percentage),
        installation_handling=_amount(quotation.installation_handling),
    )
    return breakdown, final


def split_gst(pricing: FinalPricing) -> GstSplit:
    """
    Split GST into CGST and SGST halves.

    The second half is derived from the first so the two always add back
    up to gst_amount.
    """
    cgst = round_money(pricing.gst_amount / 2)
    return GstSplit(
        cgst=cgst,
        sgst=pricing.gst_amount - cgst,
        rate_each=pricing.gst_percentage / 2,
    )


def calc_installation_amount(width_mm, height_mm,
                             price_per_sqft=DEFAULT_PRICE_PER_SQFT) -> Tuple[Decimal, Decimal]:
    """
    Installation charge for a cabinet run from its dimensions.

    Returns:
        (area in square feet to 3 places, amount rounded to a whole unit)
    """
    width = check_non_negative(width_mm, "width")
    height = check_non_negative(height_mm, "height")
    rate = check_non_negative(price_per_sqft, "price per sq.ft")

    area_sqft = width * height / SQ_MM_PER_SQ_FT
    rounded_area = area_sqft.quantize(Decimal('0.001'), rounding=ROUND_HALF_UP)
    return rounded_area, round_money(area_sqft * rate)
