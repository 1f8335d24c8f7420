"""
Tests for the Exception Hierarchy
=================================
"""

import pytest

from msrx_tool.errors import (
    BitConversionError,
    CardNotSwiped,
    ConfigurationError,
    DataForTrackIsTooLong,
    DecodeError,
    DeviceError,
    DeviceNotFoundError,
    DeviceTimeoutError,
    ErrorSettingBPI,
    ErrorSettingLeadingZeros,
    FramingError,
    InvalidEndSentinel,
    InvalidStartSentinel,
    InvalidTrackData,
    InvalidUtf8DataInTrack,
    MsrxError,
    RawDataNotCardData,
    SessionStateError,
    TooManyTracks,
    TrackValidationError,
    UnknownResponseError,
    UnsupportedFormatError,
)


class TestHierarchy:
    """Every error can be caught as MsrxError."""

    @pytest.mark.parametrize("error", [
        DeviceError("x"),
        DeviceTimeoutError("x"),
        DeviceNotFoundError(1, 2),
        RawDataNotCardData(),
        ErrorSettingBPI(1),
        ErrorSettingLeadingZeros(),
        UnknownResponseError(),
        SessionStateError("read", "UNINITIALIZED"),
        CardNotSwiped(),
        DataForTrackIsTooLong(1, 80, 79),
        InvalidTrackData(2, "0123"),
        InvalidStartSentinel(1, "%"),
        InvalidEndSentinel(1, "?"),
        TooManyTracks(4, "_"),
        BitConversionError(),
        InvalidUtf8DataInTrack(1),
        UnsupportedFormatError("data", "x"),
    ])
    def test_base_class(self, error):
        assert isinstance(error, MsrxError)

    def test_groups(self):
        assert issubclass(DeviceTimeoutError, DeviceError)
        assert issubclass(RawDataNotCardData, FramingError)
        assert issubclass(ErrorSettingBPI, ConfigurationError)
        assert issubclass(UnknownResponseError, ConfigurationError)
        assert issubclass(InvalidTrackData, TrackValidationError)
        assert issubclass(TooManyTracks, TrackValidationError)
        assert issubclass(InvalidUtf8DataInTrack, DecodeError)


class TestMessages:
    """Test error messages and attributes."""

    def test_device_not_found(self):
        assert str(DeviceNotFoundError(0x0801, 0x0003)) == "device not found (VID:PID 0801:0003)"

    def test_timeout_flag(self):
        assert DeviceTimeoutError("x").timeout
        assert not DeviceError("x").timeout

    def test_cause(self):
        cause = OSError("backend")
        assert DeviceError("x", cause=cause).cause is cause

    def test_raw_data_not_card_data(self):
        assert str(RawDataNotCardData()) == "raw data was not card data"

    def test_bpi(self):
        error = ErrorSettingBPI(3)
        assert error.track == 3
        assert str(error) == "couldn't set BPI for track 3"

    def test_leading_zeros(self):
        assert str(ErrorSettingLeadingZeros()) == "couldn't set leading zeros"

    def test_session_state(self):
        error = SessionStateError("read tracks", "WRITING")
        assert str(error) == "cannot read tracks in state WRITING (requires READY)"

    def test_card_not_swiped(self):
        assert str(CardNotSwiped()) == "card not swiped"
        assert str(CardNotSwiped(10.0)) == "card not swiped within 10s"

    def test_too_long(self):
        error = DataForTrackIsTooLong(2, 41, 40)
        assert "track 2" in str(error)
        assert "41" in str(error) and "40" in str(error)

    def test_invalid_character(self):
        error = InvalidTrackData(1, "ABC", "a")
        assert "'a'" in str(error)
        assert error.track == 1

    def test_sentinels(self):
        assert str(InvalidStartSentinel(2, ";")) == "track 2 must start with ';'"
        assert str(InvalidEndSentinel(1, "?")) == "track 1 must end with '?'"

    def test_too_many_tracks(self):
        error = TooManyTracks(4, "_")
        assert error.track is None
        assert str(error) == "expected at most 3 tracks separated by '_', got 4"

    def test_utf8(self):
        assert str(InvalidUtf8DataInTrack(2)) == "couldn't convert track 2 data to string"
        assert str(InvalidUtf8DataInTrack()) == "couldn't convert track data to string"

    def test_unsupported_format(self):
        error = UnsupportedFormatError("output", "xml", ("combined", "json"))
        assert str(error) == "unsupported output format: 'xml' (supported: combined, json)"
