import pytest

from tools.price_parser import extract_estimated_value, has_million_marker


@pytest.mark.parametrize(
    "price_range, expected",
    [
        ("2.5M EGP", 2_500_000.0),
        ("1,200,000 EGP", 1_200_000.0),
        ("EGP negotiable", 0.0),
        ("3 million", 3_000_000.0),
        ("5Mn EGP", 5_000_000.0),
        ("1.200.000 EGP", 1_200_000.0),
        ("EGP 2,500,000 - 3,000,000", 2_500_000.0),
        ("850000", 850_000.0),
        ("", 0.0),
        (None, 0.0),
    ],
)
def test_extract_estimated_value(price_range, expected):
    assert extract_estimated_value(price_range) == expected


@pytest.mark.parametrize(
    "price_range, expected",
    [
        ("2.5M EGP", True),
        ("3 million", True),
        ("Millions", True),
        ("4 mn", True),
        ("Mansion, 900,000 EGP", False),
        ("1,200,000 EGP", False),
        (None, False),
    ],
)
def test_has_million_marker(price_range, expected):
    assert has_million_marker(price_range) is expected


def test_trailing_period_is_ignored():
    assert extract_estimated_value("Asking 750,000. Negotiable") == 750_000.0
