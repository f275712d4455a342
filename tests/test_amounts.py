import pytest

from starknet_mcp.amounts import format_percent_bps, format_usd, to_base_units, to_human_units
from starknet_mcp.errors import InvalidAmountError


def test_to_base_units_pads_fraction():
    assert to_base_units("1.5", 18) == 1_500_000_000_000_000_000
    assert to_base_units("1", 6) == 1_000_000
    assert to_base_units("0.000001", 6) == 1


def test_to_base_units_truncates_instead_of_rounding():
    assert to_base_units("1.23456", 2) == 123
    assert to_base_units("0.999", 2) == 99


def test_to_base_units_edge_forms():
    assert to_base_units(".5", 1) == 5
    assert to_base_units("2.", 3) == 2000
    assert to_base_units("7.25", 0) == 7


@pytest.mark.parametrize("bad", ["", ".", "-1", "+1", "1e18", " 1", "1.2.3", "abc", "1,5", "١"])
def test_to_base_units_rejects_malformed(bad):
    with pytest.raises(InvalidAmountError):
        to_base_units(bad, 18)


def test_to_base_units_rejects_negative_decimals_and_non_strings():
    with pytest.raises(InvalidAmountError):
        to_base_units("1", -1)
    with pytest.raises(InvalidAmountError):
        to_base_units(1.5, 18)


def test_to_human_units_strips_trailing_zeros():
    assert to_human_units(1_500_000_000_000_000_000, 18) == "1.5"
    assert to_human_units(1_000_000, 6) == "1"
    assert to_human_units(1, 6) == "0.000001"
    assert to_human_units(0, 18) == "0"
    assert to_human_units(42, 0) == "42"


def test_to_human_units_rejects_negative():
    with pytest.raises(InvalidAmountError):
        to_human_units(-1, 18)


@pytest.mark.parametrize(
    "value,decimals",
    [("0", 0), ("12", 0), ("1.5", 18), ("0.000001", 6), ("123456.789", 9), ("0.1", 1)],
)
def test_round_trip_canonical_values(value, decimals):
    assert to_human_units(to_base_units(value, decimals), decimals) == value


def test_format_helpers():
    assert format_percent_bps(15) == "0.15%"
    assert format_percent_bps(0) is None
    assert format_percent_bps(None) is None
    assert format_usd(1.2345) == "1.23"
    assert format_usd(0.00123, 4) == "0.0012"
    assert format_usd(None) is None
