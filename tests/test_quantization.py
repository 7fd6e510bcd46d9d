"""
Tests for fixed-point quantization.

Covers the unset sentinel, rounding at ties and the decode/encode
round trip for the channel scales in use.
"""

import math
import pytest

from fieldnorm.components.quantization import dequantize, quantize

SCALES = [0.0001, 0.1, 1.0, 0.5, 10.0]


class TestQuantize:
    """Test suite for quantize/dequantize."""

    @pytest.mark.parametrize("scale", SCALES)
    @pytest.mark.parametrize("value", [None, math.nan, math.inf, -math.inf])
    def test_unset_values(self, value, scale):
        """Test that null, NaN and infinities map to unset."""
        assert quantize(value, scale) is None

    def test_zero_is_not_unset(self):
        """Test that zero encodes to 0 rather than None."""
        assert quantize(0.0, 0.1) == 0
        assert quantize(-0.0, 0.0001) == 0

    def test_booleans_are_unset(self):
        """Test that booleans are not treated as numbers."""
        assert quantize(True, 1.0) is None

    @pytest.mark.parametrize("scale", SCALES)
    def test_round_trip(self, scale):
        """Test quantize(dequantize(x)) == x across a range of tick counts."""
        for encoded in list(range(-2000, 2001, 7)) + [123456789, -987654321]:
            assert quantize(dequantize(encoded, scale), scale) == encoded

    def test_scaled_values(self):
        """Test typical channel values."""
        assert quantize(1.2, 0.1) == 12
        assert quantize(0.3, 0.1) == 3
        assert quantize(0.25, 0.0001) == 2500
        assert quantize(12.3456, 0.0001) == 123456
        assert quantize(11, 1.0) == 11

    def test_ties_round_half_away_from_zero(self):
        """Test that exact ties round away from zero in both directions."""
        assert quantize(0.25, 0.1) == 3
        assert quantize(-0.25, 0.1) == -3
        assert quantize(0.05, 0.1) == 1
        assert quantize(2.5, 1.0) == 3
        assert quantize(-2.5, 1.0) == -3

    def test_offset(self):
        """Test that the channel offset is subtracted from the tick count."""
        assert quantize(1.0, 0.1, offset=4) == 6
        assert dequantize(6, 0.1, offset=4) == pytest.approx(1.0)

    def test_within_half_a_tick(self):
        """Test the decoded value stays within half a tick of the input."""
        for value in [0.123456, 3.14159, -7.77777, 1e-3]:
            encoded = quantize(value, 0.0001)
            assert abs(dequantize(encoded, 0.0001) - value) <= 0.00005 + 1e-12

    def test_huge_values(self):
        """Test that tick counts beyond 34 digits are computed exactly."""
        assert quantize(1e40, 0.0001) == 10 ** 44
        assert quantize(-1e40, 0.0001) == -(10 ** 44)
        assert quantize(3.4028235e38, 0.0001) == 34028235 * 10 ** 35
        assert quantize(1.7976931348623157e308, 1e-10) == 17976931348623157 * 10 ** 302

    def test_tiny_values(self):
        """Test that subnormal values round to zero ticks."""
        assert quantize(5e-324, 0.0001) == 0
        assert quantize(0.00005, 0.0001) == 1

    @pytest.mark.parametrize("scale", [0, -0.1])
    def test_invalid_scale(self, scale):
        """Test that a non-positive scale is rejected."""
        with pytest.raises(ValueError):
            quantize(1.0, scale)

    def test_dequantize_unset(self):
        """Test that unset stays unset."""
        assert dequantize(None, 0.1) is None
