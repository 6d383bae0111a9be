from types import SimpleNamespace

import pytest

from pos_ledger.errors import ValidationError
from pos_ledger.services.conversion_service import normalize_unit_type, pieces_per_unit, to_pieces


def _product(pieces_per_sheet=10, sheets_per_box=5):
    return SimpleNamespace(pieces_per_sheet=pieces_per_sheet, sheets_per_box=sheets_per_box)


class TestToPieces:
    def test_piece_is_identity(self):
        assert to_pieces(7, "piece", _product()) == 7

    def test_sheet_multiplies_by_pieces_per_sheet(self):
        assert to_pieces(3, "sheet", _product()) == 30

    def test_box_multiplies_through_both_ratios(self):
        assert to_pieces(2, "box", _product()) == 100
        assert to_pieces(3, "box", _product(pieces_per_sheet=12, sheets_per_box=4)) == 144

    def test_missing_ratios_count_as_one(self):
        product = _product(pieces_per_sheet=None, sheets_per_box=None)
        assert to_pieces(4, "sheet", product) == 4
        assert to_pieces(4, "box", product) == 4

    def test_box_with_only_sheet_ratio(self):
        assert to_pieces(2, "box", _product(pieces_per_sheet=10, sheets_per_box=None)) == 20

    def test_unknown_and_missing_unit_fall_back_to_piece(self):
        assert to_pieces(5, "pallet", _product()) == 5
        assert to_pieces(5, None, _product()) == 5

    def test_zero_quantity(self):
        assert to_pieces(0, "box", _product()) == 0

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValidationError):
            to_pieces(-1, "piece", _product())

    def test_monotonic_in_quantity(self):
        product = _product(pieces_per_sheet=6, sheets_per_box=3)
        for unit in ("piece", "sheet", "box"):
            values = [to_pieces(n, unit, product) for n in range(0, 20)]
            assert values == sorted(values)

    def test_pieces_per_unit(self):
        product = _product(pieces_per_sheet=8, sheets_per_box=2)
        assert pieces_per_unit("piece", product) == 1
        assert pieces_per_unit("sheet", product) == 8
        assert pieces_per_unit("box", product) == 16


class TestNormalizeUnitType:
    def test_known_units_pass_through_case_insensitively(self):
        assert normalize_unit_type(" Box ") == ("box", False)
        assert normalize_unit_type("SHEET") == ("sheet", False)

    def test_missing_unit_defaults_to_piece(self):
        assert normalize_unit_type(None) == ("piece", False)
        assert normalize_unit_type("   ") == ("piece", False)

    def test_unknown_unit_coerced_under_piece_policy(self):
        assert normalize_unit_type("carton", "piece") == ("piece", True)

    def test_unknown_unit_rejected_under_reject_policy(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_unit_type("carton", "reject")
        assert exc_info.value.details["unit_type"] == "carton"

    def test_invalid_policy(self):
        with pytest.raises(ValueError):
            normalize_unit_type("box", "ignore")
