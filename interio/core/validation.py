"""
Pre-approval checks for quotations.

validate_quotation() is the default rule set handed to approve_quotation();
any callable returning a ValidationResult can replace it.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from interio.core.calculations import room_total


DEFAULT_REQUIRED_ACCESSORIES = "skirting,handles,sliding mechanism,t profile"


@dataclass
class ValidationIssue:
    type: str
    message: str
    room_id: Optional[int] = None
    room_name: Optional[str] = None


@dataclass
class ValidationWarning:
    type: str
    message: str
    accessories: List[str] = field(default_factory=list)


@dataclass
class ValidationResult:
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _room_issue(kind: str, message: str, room) -> ValidationIssue:
    name = room.name or "Untitled"
    return ValidationIssue(type=kind, message=message.format(name=name),
                           room_id=room.id, room_name=name)


def validate_quotation(quotation, settings=None) -> ValidationResult:
    """
    Check a quotation is complete enough to approve.

    Errors: no rooms, a room priced at zero, a room without products,
    accessories or installation charges, no handling charge.
    Warnings: required accessories (from settings) missing everywhere.
    """
    result = ValidationResult()

    if not quotation.rooms:
        result.errors.append(ValidationIssue(
            type="room_zero_value",
            message="Quotation must have at least one room."
        ))
        return result

    for room in quotation.rooms:
        if room_total(room) == 0:
            result.errors.append(_room_issue(
                "room_zero_value", 'Room "{name}" has a zero value.', room))
        if not room.products:
            result.errors.append(_room_issue(
                "missing_product", 'Room "{name}" does not have any products.', room))
        if not room.accessories:
            result.errors.append(_room_issue(
                "missing_accessory", 'Room "{name}" does not have any accessories.', room))
        if not room.installation_charges:
            result.errors.append(_room_issue(
                "missing_installation", 'Room "{name}" does not have installation charges.', room))

    if not quotation.installation_handling:
        result.errors.append(ValidationIssue(
            type="missing_handling_charge",
            message="Handling charge must be entered."
        ))

    required_setting = getattr(settings, "required_accessories", None) or DEFAULT_REQUIRED_ACCESSORIES
    required = [name.strip().lower() for name in required_setting.split(",") if name.strip()]
    present = [
        accessory.name.lower()
        for room in quotation.rooms
        for accessory in room.accessories or []
    ]
    missing = [req for req in required if not any(req in name for name in present)]
    if missing:
        result.warnings.append(ValidationWarning(
            type="check_accessories",
            message="Please check that the following required accessories are added:",
            accessories=missing
        ))

    return result
