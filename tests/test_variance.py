from decimal import Decimal

import pytest

from gst_portal.core.variance import calculate_variance, invoice_variances
from conftest import make_record


@pytest.mark.parametrize("ours,theirs", [("1000", "950"), ("1000", "995"), ("50", "200"), ("0", "10"), ("99.99", "100")])
def test_percentage_formula(ours, theirs):
    variance = calculate_variance(Decimal(ours), Decimal(theirs))
    expected = (Decimal(ours) - Decimal(theirs)) / Decimal(theirs) * 100
    assert variance.percentage == expected
    assert variance.is_mismatch == (abs(expected) > 1)
    assert variance.absolute_diff == Decimal(ours) - Decimal(theirs)


def test_five_percent_gap_is_a_mismatch():
    variance = calculate_variance(1000, 950)
    assert variance.is_mismatch
    assert variance.display == "5.26%"
    assert variance.absolute_diff == Decimal("50")


def test_half_percent_gap_is_within_tolerance():
    variance = calculate_variance(1000, 995)
    assert not variance.is_mismatch
    assert variance.display == "0.50%"


def test_exactly_one_percent_is_not_a_mismatch():
    assert not calculate_variance(101, 100).is_mismatch
    assert not calculate_variance(99, 100).is_mismatch


def test_zero_comparison_value():
    both_zero = calculate_variance(0, 0)
    assert both_zero.percentage is None
    assert not both_zero.is_mismatch
    assert both_zero.display == "0.00%"

    ours_only = calculate_variance(250, 0)
    assert ours_only.percentage is None
    assert ours_only.is_mismatch
    assert ours_only.display == "N/A"
    assert ours_only.absolute_diff == Decimal("250")


def test_custom_tolerance():
    assert calculate_variance(1000, 950, tolerance=10).is_mismatch is False
    assert calculate_variance(1000, 995, tolerance="0.1").is_mismatch is True


def test_taxable_and_itc_axes_are_independent():
    record = make_record("a", taxable_value="1000", govt_taxable="1000", igst="180", govt_igst="150")
    variances = invoice_variances(record)
    assert not variances.taxable.is_mismatch
    assert variances.itc.is_mismatch
    assert variances.any_mismatch


def test_display_of_very_large_percentage():
    variance = calculate_variance(Decimal("1E+27"), Decimal("0.01"))
    assert variance.is_mismatch
    assert variance.display.endswith(".00%")
