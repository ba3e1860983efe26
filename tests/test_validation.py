from types import SimpleNamespace

from interio.core.validation import validate_quotation


def _types(result):
    return [issue.type for issue in result.errors]


def test_complete_quotation_is_valid(quotation_factory):
    result = validate_quotation(quotation_factory())
    assert result.is_valid
    assert result.warnings == []


def test_quotation_without_rooms(quotation_factory):
    result = validate_quotation(quotation_factory(rooms=[]))
    assert not result.is_valid
    assert len(result.errors) == 1
    assert "at least one room" in result.errors[0].message


def test_every_room_problem_is_reported(quotation_factory, room_factory):
    empty = room_factory("Study")
    result = validate_quotation(quotation_factory(rooms=[empty], installation_handling="0"))

    assert _types(result) == [
        "room_zero_value", "missing_product", "missing_accessory",
        "missing_installation", "missing_handling_charge",
    ]
    assert result.errors[0].room_name == "Study"


def test_missing_required_accessories_only_warn(quotation_factory, room_factory):
    room = room_factory(products=[(1, "1000", "0")], accessories=[("Handles", 2, "50", "0")],
                        installation=["300"])
    result = validate_quotation(quotation_factory(rooms=[room]))

    assert result.is_valid
    assert result.warnings[0].accessories == ["skirting", "sliding mechanism", "t profile"]


def test_required_accessories_come_from_settings(quotation_factory, room_factory):
    room = room_factory(products=[(1, "1000", "0")], accessories=[("Soft-close hinge", 2, "50", "0")],
                        installation=["300"])
    settings = SimpleNamespace(required_accessories="hinge, Basket")

    result = validate_quotation(quotation_factory(rooms=[room]), settings)

    assert result.warnings[0].accessories == ["basket"]
