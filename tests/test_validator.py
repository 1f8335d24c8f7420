"""
Tests for Track Text Validation
===============================

Length limits, character sets, sentinels and the empty-track placeholder.
"""

import pytest

from msrx_tool.codec.charset import NUMERIC
from msrx_tool.errors import (
    DataForTrackIsTooLong,
    InvalidEndSentinel,
    InvalidStartSentinel,
    InvalidTrackData,
    TrackValidationError,
)
from msrx_tool.tracks.validator import (
    EMPTY_TRACK,
    NUMERIC_CHARSET,
    TRACK1_CHARSET,
    TRACK_RULES,
    is_valid,
    rules_for_track,
    validate,
)


class TestTrackRules:
    """Test the static per-track rules."""

    def test_max_lengths(self):
        assert TRACK_RULES[1].max_length == 79
        assert TRACK_RULES[2].max_length == 40
        assert TRACK_RULES[3].max_length == 107

    def test_start_sentinels(self):
        assert TRACK_RULES[1].start_sentinel == "%"
        assert TRACK_RULES[2].start_sentinel == ";"
        assert TRACK_RULES[3].start_sentinel == ";"

    def test_charsets(self):
        assert TRACK_RULES[1].charset == TRACK1_CHARSET
        assert TRACK_RULES[2].charset == NUMERIC_CHARSET
        assert TRACK_RULES[3].charset == NUMERIC_CHARSET

    def test_track1_charset_contents(self):
        """Track 1 allows space through underscore, no lowercase."""
        assert TRACK1_CHARSET[0] == " "
        assert TRACK1_CHARSET[-1] == "_"
        assert len(TRACK1_CHARSET) == 64
        assert "a" not in TRACK1_CHARSET

    def test_invalid_track_number(self):
        with pytest.raises(ValueError):
            rules_for_track(0)


class TestValidate:
    """Test validate()."""

    def test_valid_track1(self):
        """Valid text comes back as ASCII bytes, sentinels included."""
        assert validate(1, "%ABC123?") == b"%ABC123?"

    def test_valid_track2(self):
        assert validate(2, ";12345?") == b";12345?"

    def test_valid_track3(self):
        assert validate(3, ";0123456789:;<=>?") == b";0123456789:;<=>?"

    def test_empty_track(self):
        """An empty track encodes to the placeholder byte."""
        assert validate(1, "") == EMPTY_TRACK == b"\x00"
        assert validate(2, "") == b"\x00"

    def test_too_long(self):
        with pytest.raises(DataForTrackIsTooLong) as exc_info:
            validate(1, "A" * 80)
        assert exc_info.value.track == 1
        assert exc_info.value.actual == 80
        assert exc_info.value.maximum == 79

    @pytest.mark.parametrize("track,sentinel,maximum", [
        (1, "%", 79),
        (2, ";", 40),
        (3, ";", 107),
    ])
    def test_maximum_length_accepted(self, track, sentinel, maximum):
        fill = "A" if track == 1 else "1"
        text = sentinel + fill * (maximum - 2) + "?"
        assert validate(track, text) == text.encode("ascii")

    @pytest.mark.parametrize("track,sentinel,maximum", [
        (1, "%", 79),
        (2, ";", 40),
        (3, ";", 107),
    ])
    def test_one_over_maximum(self, track, sentinel, maximum):
        fill = "A" if track == 1 else "1"
        text = sentinel + fill * (maximum - 1) + "?"
        with pytest.raises(DataForTrackIsTooLong):
            validate(track, text)

    def test_length_checked_before_charset(self):
        with pytest.raises(DataForTrackIsTooLong):
            validate(1, "a" * 80)

    def test_invalid_character_track1(self):
        with pytest.raises(InvalidTrackData) as exc_info:
            validate(1, "%abc?")
        assert exc_info.value.character == "a"
        assert exc_info.value.allowed_charset == TRACK1_CHARSET

    def test_invalid_character_track2(self):
        with pytest.raises(InvalidTrackData) as exc_info:
            validate(2, ";12A45?")
        assert exc_info.value.track == 2
        assert exc_info.value.character == "A"
        assert exc_info.value.allowed_charset == NUMERIC_CHARSET

    def test_missing_start_sentinel(self):
        with pytest.raises(InvalidStartSentinel) as exc_info:
            validate(1, "ABC123?")
        assert exc_info.value.expected == "%"

    def test_track2_wrong_start_sentinel(self):
        with pytest.raises(InvalidStartSentinel) as exc_info:
            validate(2, "12345?")
        assert exc_info.value.expected == ";"

    def test_missing_end_sentinel(self):
        with pytest.raises(InvalidEndSentinel) as exc_info:
            validate(1, "%ABC123")
        assert exc_info.value.expected == "?"

    def test_explicit_alphabet(self):
        """An explicit alphabet replaces the track's character set."""
        assert validate(3, ";123?", NUMERIC) == b";123?"
        with pytest.raises(InvalidTrackData):
            validate(1, "%123?", NUMERIC)

    def test_errors_share_base_class(self):
        with pytest.raises(TrackValidationError):
            validate(2, "bad")


class TestIsValid:
    """Test is_valid()."""

    def test_valid(self):
        assert is_valid(1, "%ABC?")
        assert is_valid(3, "")

    def test_invalid(self):
        assert not is_valid(1, "ABC?")
        assert not is_valid(2, ";1A?")
