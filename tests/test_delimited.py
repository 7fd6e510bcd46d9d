"""
Tests for the delimited sprayer log decoder.

Tests cover schema binding, nullable values, header feasibility checks
and the two coverage channels.
"""

import io
import pytest
import pandas as pd
from datetime import datetime, timedelta, timezone

from fieldnorm.components.delimited import (
    HACKE_SCHEMA,
    Column,
    HackeLogDecoder,
    header_line,
    read_delimited,
)
from fieldnorm.utils import MalformedInputError

T0 = datetime(2023, 6, 1, 10, 0, 0, tzinfo=timezone.utc)


class TestReadDelimited:
    """Test suite for schema binding."""

    def test_typed_columns(self, hacke_csv, three_hacke_rows):
        """Test that every schema column is present, typed and nullable."""
        frame = read_delimited(io.BytesIO(hacke_csv(three_hacke_rows)), HACKE_SCHEMA, ";")

        assert list(frame.columns) == [c.name.lower() for c in HACKE_SCHEMA]
        assert len(frame) == 3
        assert str(frame["time"].dtype) == "Int64"
        assert frame["lon"].dtype == "float64"
        assert pd.isna(frame["alt"].iloc[1])
        assert pd.isna(frame["status"].iloc[0])
        assert frame["mocot"].iloc[0] == pytest.approx(0.25)

    def test_optional_columns_may_be_absent(self):
        """Test that only the required columns must appear in the header."""
        text = "TIME;LON;LAT;ALT\n1000;8.1;52.1;70\n"
        frame = read_delimited(io.BytesIO(text.encode()), HACKE_SCHEMA, ";")

        assert len(frame) == 1
        assert pd.isna(frame["mocot"].iloc[0])

    def test_missing_required_column(self):
        """Test that a header lacking a required column is malformed."""
        text = "TIME;LON;LAT\n1000;8.1;52.1\n"
        with pytest.raises(MalformedInputError, match="ALT"):
            read_delimited(io.BytesIO(text.encode()), HACKE_SCHEMA, ";")

    def test_wrong_delimiter(self, hacke_csv, three_hacke_rows):
        """Test that a comma file read with ';' cannot be bound."""
        data = hacke_csv(three_hacke_rows, delimiter=",")
        with pytest.raises(MalformedInputError):
            read_delimited(io.BytesIO(data), HACKE_SCHEMA, ";")

    def test_comma_delimiter(self, hacke_csv, three_hacke_rows):
        """Test that a comma separated log binds with the comma delimiter."""
        data = hacke_csv(three_hacke_rows, delimiter=",")
        frame = read_delimited(io.BytesIO(data), HACKE_SCHEMA, ",")
        assert len(frame) == 3

    def test_unconvertible_value(self):
        """Test that a non-numeric value names its column."""
        text = "TIME;LON;LAT;ALT\n1000;east;52.1;70\n"
        with pytest.raises(MalformedInputError, match="LON"):
            read_delimited(io.BytesIO(text.encode()), HACKE_SCHEMA, ";")

    def test_fractional_integer(self):
        """Test that an integer column rejects fractional values."""
        text = "TIME;LON;LAT;ALT\n1000.5;8.1;52.1;70\n"
        with pytest.raises(MalformedInputError, match="TIME"):
            read_delimited(io.BytesIO(text.encode()), HACKE_SCHEMA, ";")

    def test_empty_input(self):
        """Test that empty input is malformed."""
        with pytest.raises(MalformedInputError):
            read_delimited(io.BytesIO(b""), HACKE_SCHEMA, ";")

    def test_byte_order_mark(self):
        """Test that a UTF-8 BOM does not hide the first column."""
        text = "\ufeffTIME;LON;LAT;ALT\n1000;8.1;52.1;70\n"
        frame = read_delimited(io.BytesIO(text.encode("utf-8")), HACKE_SCHEMA, ";")
        assert frame["time"].iloc[0] == 1000

    def test_custom_schema(self):
        """Test binding against a caller supplied schema."""
        schema = [Column("A", int, required=True), Column("B", float)]
        frame = read_delimited(io.BytesIO(b"A;B\n1;2.5\n2;\n"), schema, ";")
        assert list(frame["a"]) == [1, 2]
        assert pd.isna(frame["b"].iloc[1])


class TestHackeLogDecoder:
    """Test suite for HackeLogDecoder."""

    def test_header_line(self):
        """Test the literal header written by the terminal."""
        assert header_line(HACKE_SCHEMA, ";") == (
            "TIME;LON;LAT;ALT;SECTION;LON_HEAD;LAT_HEAD;STATUS;RESULTID;SYSTIME;"
            "BEAVP;BRSNN;DICOT;GALAP;MATIN;MOCOT;TRZAW;ZEAMX;"
        )

    def test_feasible(self, sample_config, hacke_csv, three_hacke_rows):
        """Test that the expected header is recognized."""
        decoder = HackeLogDecoder(sample_config)
        assert decoder.test(io.BytesIO(hacke_csv(three_hacke_rows))) is True

    def test_not_feasible(self, sample_config):
        """Test that other text is rejected with a reason."""
        errors = io.StringIO()
        decoder = HackeLogDecoder(sample_config)

        assert decoder.test(io.BytesIO(b"TIME;LON;LAT;ALT\n1;2;3;4\n"), errors) is False
        assert "not found" in errors.getvalue()

    def test_execute(self, sample_config, hacke_csv, three_hacke_rows):
        """Test range and count of a decoded log."""
        decoded = HackeLogDecoder(sample_config).execute(io.BytesIO(hacke_csv(three_hacke_rows)))

        assert decoded.count == 3
        assert decoded.start == T0
        assert decoded.end == T0 + timedelta(seconds=2)

    def test_row_without_altitude_is_skipped(self, sample_config, hacke_csv, three_hacke_rows):
        """Test that rows lacking position yield no sample."""
        decoder = HackeLogDecoder(sample_config)
        samples = list(decoder.samples(decoder.execute(io.BytesIO(hacke_csv(three_hacke_rows)))))

        assert samples[1] is None
        assert samples[0].north == pytest.approx(52.1)
        assert samples[0].east == pytest.approx(8.2)
        assert samples[0].values == pytest.approx([0.25, 1.5])
        assert samples[2].values[1] is None

    def test_channels(self, sample_config, hacke_csv, three_hacke_rows):
        """Test that both coverage channels are described."""
        decoder = HackeLogDecoder(sample_config)
        timelog = decoder.build_timelog(decoder.execute(io.BytesIO(hacke_csv(three_hacke_rows))))
        channels = decoder.describe_channels(timelog)

        assert timelog.name == "Hacke"
        assert [c.designator for c in channels] == ["Mocot", "Dicot"]
        assert channels[0].uri != channels[1].uri
        assert all(c.scale == 0.0001 and c.number_of_decimals == 4 and c.unit == "%" for c in channels)
        assert decoder.channel_types(channels) == {channels[0].uri: "mocot", channels[1].uri: "dicot"}

    def test_no_timestamps(self, sample_config):
        """Test that a log without any time value is malformed."""
        text = "TIME;LON;LAT;ALT\n;8.1;52.1;70\n"
        with pytest.raises(MalformedInputError):
            HackeLogDecoder(sample_config).execute(io.BytesIO(text.encode()))
