"""
MSRX Tool Error Hierarchy
=========================

This module defines the exception hierarchy for the whole package. All
exceptions inherit from MsrxError, allowing callers to catch every
tool-related error with a single except clause if desired.

Exception Hierarchy
-------------------
MsrxError (base)
├── DeviceError - USB transfer failed (wraps the pyusb error)
│   └── DeviceTimeoutError - transfer did not complete in time
├── DeviceNotFoundError - no reader with the configured VID/PID
├── FramingError
│   └── RawDataNotCardData - track block markers missing or out of order
├── ConfigurationError (device setup handshake)
│   ├── ErrorSettingBPI - bits-per-inch rejected for a track
│   ├── ErrorSettingLeadingZeros - leading zero counts rejected
│   └── UnknownResponseError - acknowledgement could not be verified
├── SessionStateError - operation issued from the wrong session state
├── TrackValidationError (user supplied track text)
│   ├── DataForTrackIsTooLong
│   ├── InvalidTrackData
│   ├── InvalidStartSentinel
│   ├── InvalidEndSentinel
│   └── TooManyTracks - combined text has more than three parts
├── CardNotSwiped - read timed out waiting for a swipe
├── DecodeError
│   ├── BitConversionError - bit string cannot be mapped to a character
│   └── InvalidUtf8DataInTrack - segment bytes are not text
└── UnsupportedFormatError - unknown data/input/output format name

Only the device session reinterprets errors (a read timeout becomes
CardNotSwiped). Every other layer lets errors propagate unchanged.
"""

from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class MsrxError(Exception):
    """
    Base exception for all MSRX tool errors.

    All exceptions in the package inherit from this class, allowing callers
    to catch all tool-related errors with a single except clause:

        try:
            session.read_tracks(timeout=10)
        except MsrxError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Transport Exceptions
# =============================================================================

class DeviceError(MsrxError):
    """
    A USB transfer with the reader failed.

    Wraps the error raised by the USB backend so that callers never need
    to import pyusb to handle transport failures.

    Attributes:
        cause: The original backend exception (if any)
    """

    timeout: bool = False

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class DeviceTimeoutError(DeviceError):
    """
    A USB transfer timed out.

    This is never retried by the transport layer. The device session
    turns a timeout during a read into CardNotSwiped.
    """

    timeout = True


class DeviceNotFoundError(MsrxError):
    """No USB device matches the configured vendor/product ID."""

    def __init__(self, vendor_id: int, product_id: int):
        self.vendor_id = vendor_id
        self.product_id = product_id
        super().__init__(
            f"device not found (VID:PID {vendor_id:04X}:{product_id:04X})"
        )


# =============================================================================
# Framing Exceptions
# =============================================================================

class FramingError(MsrxError):
    """Base exception for malformed device frames."""
    pass


class RawDataNotCardData(FramingError):
    """
    Frame does not contain card data.

    Raised when:
    - The start-of-card-data marker (ESC 's') is missing
    - Track markers (ESC 1, ESC 2, ESC 3) are missing or out of order
    - The block terminator (? FS ESC) or status byte is missing
    - A length-prefixed segment runs past the end of the frame
    """

    def __init__(self, message: str = "raw data was not card data"):
        super().__init__(message)


# =============================================================================
# Configuration Exceptions
# =============================================================================

class ConfigurationError(MsrxError):
    """Base exception for failures during the device setup handshake."""
    pass


class ErrorSettingBPI(ConfigurationError):
    """The reader rejected the bits-per-inch setting for a track."""

    def __init__(self, track: int):
        self.track = track
        super().__init__(f"couldn't set BPI for track {track}")


class ErrorSettingLeadingZeros(ConfigurationError):
    """The reader rejected the leading zero counts."""

    def __init__(self):
        super().__init__("couldn't set leading zeros")


class UnknownResponseError(ConfigurationError):
    """
    An acknowledgement could not be verified.

    Raised when the reader answers a configuration command with something
    other than the expected echo (for example, the bit-control-parity
    values coming back changed).
    """

    def __init__(self, message: str = "unknown response from device"):
        super().__init__(message)


# =============================================================================
# Session Exceptions
# =============================================================================

class SessionStateError(MsrxError):
    """
    Operation issued while the session is in the wrong state.

    Track reads and writes are only allowed once the setup handshake has
    completed and the session is Ready.
    """

    def __init__(self, operation: str, state: str, expected: str = "READY"):
        self.operation = operation
        self.state = state
        self.expected = expected
        super().__init__(
            f"cannot {operation} in state {state} (requires {expected})"
        )


class CardNotSwiped(MsrxError):
    """No card was swiped before the read timeout expired."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        if timeout is None:
            message = "card not swiped"
        else:
            message = f"card not swiped within {timeout:g}s"
        super().__init__(message)


# =============================================================================
# Track Validation Exceptions
# =============================================================================

class TrackValidationError(MsrxError):
    """Base exception for user supplied track text that cannot be written."""

    def __init__(self, track: Optional[int], message: str):
        self.track = track
        super().__init__(message)


class DataForTrackIsTooLong(TrackValidationError):
    """Track text exceeds the maximum character count for its track."""

    def __init__(self, track: int, actual: int, maximum: int):
        self.actual = actual
        self.maximum = maximum
        super().__init__(
            track,
            f"data for track {track} is too long: "
            f"{actual} characters, maximum {maximum}",
        )


class InvalidTrackData(TrackValidationError):
    """Track text contains a character outside the track's alphabet."""

    def __init__(
        self,
        track: int,
        allowed_charset: str,
        character: Optional[str] = None,
    ):
        self.allowed_charset = allowed_charset
        self.character = character
        found = f" {character!r}" if character is not None else ""
        super().__init__(
            track,
            f"invalid character{found} in track {track}, "
            f"allowed characters: {allowed_charset}",
        )


class InvalidStartSentinel(TrackValidationError):
    """Track text does not begin with the track's start sentinel."""

    def __init__(self, track: int, expected: str):
        self.expected = expected
        super().__init__(
            track, f"track {track} must start with {expected!r}"
        )


class InvalidEndSentinel(TrackValidationError):
    """Track text does not end with the end sentinel."""

    def __init__(self, track: int, expected: str):
        self.expected = expected
        super().__init__(
            track, f"track {track} must end with {expected!r}"
        )


class TooManyTracks(TrackValidationError):
    """Combined text splits into more than three tracks.

    Not tied to a single track, so track is None.
    """

    def __init__(self, count: int, separator: str):
        self.count = count
        self.separator = separator
        super().__init__(
            None,
            f"expected at most 3 tracks separated by {separator!r}, got {count}",
        )


# =============================================================================
# Decode Exceptions
# =============================================================================

class DecodeError(MsrxError):
    """Base exception for track content that cannot be decoded."""
    pass


class BitConversionError(DecodeError):
    """
    Bit string cannot be converted to or from a character.

    Raised when:
    - The bit string has the wrong length for the alphabet
    - The bit string contains something other than '0' and '1'
    - A character lies outside the alphabet being encoded
    """

    def __init__(self, message: str = "bit conversion error"):
        super().__init__(message)


class InvalidUtf8DataInTrack(DecodeError):
    """Track segment bytes could not be converted to text."""

    def __init__(self, track: Optional[int] = None):
        self.track = track
        if track is None:
            message = "couldn't convert track data to string"
        else:
            message = f"couldn't convert track {track} data to string"
        super().__init__(message)


class UnsupportedFormatError(MsrxError):
    """Unknown data, input or output format name."""

    def __init__(self, kind: str, name: str, supported: tuple[str, ...] = ()):
        self.kind = kind
        self.name = name
        self.supported = supported
        message = f"unsupported {kind} format: {name!r}"
        if supported:
            message += f" (supported: {', '.join(supported)})"
        super().__init__(message)
