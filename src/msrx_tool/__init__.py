"""
MSRX Tool - Magnetic Stripe Card Reader/Writer Driver
=====================================================

This package drives MSR605X-compatible USB magnetic stripe readers: it
configures the reader, reads and writes the three card tracks, and converts
between track text and the reader's wire format.

Main Components
---------------
- **codec**: ISO 7811 bit-serial character codec (parity, LRC, raw bytes)
- **tracks**: Track validation, the framed track data block, and the text
  interchange formats
- **usb**: Packet chunking/reassembly, pyusb device access, and the device
  session (setup handshake, read, write)
- **cli**: The ``msrx`` command-line tool

Quick Start
-----------
Read a card:
    >>> from msrx_tool import DeviceSession
    >>> with DeviceSession() as session:
    ...     block = session.read_tracks(timeout=10)
    >>> block.track1.text()
    '%ABC123?'

Write a card:
    >>> from msrx_tool import DeviceSession, tracks_from_text
    >>> block = tracks_from_text("%ABC123?_;12345?")
    >>> with DeviceSession() as session:
    ...     session.write_tracks(block)
    True

Or use the command-line tool:
    $ msrx read
    $ msrx write "%ABC123?_;12345?"
"""

__version__ = "0.1.0"

# =============================================================================
# Public API Exports
# =============================================================================

from msrx_tool.config import DeviceConfig, ToolSettings, TrackConfig
from msrx_tool.errors import (
    MsrxError,
    DeviceError,
    DeviceTimeoutError,
    DeviceNotFoundError,
    FramingError,
    RawDataNotCardData,
    ConfigurationError,
    ErrorSettingBPI,
    ErrorSettingLeadingZeros,
    UnknownResponseError,
    SessionStateError,
    CardNotSwiped,
    TrackValidationError,
    DataForTrackIsTooLong,
    InvalidTrackData,
    InvalidStartSentinel,
    InvalidEndSentinel,
    TooManyTracks,
    DecodeError,
    BitConversionError,
    InvalidUtf8DataInTrack,
    UnsupportedFormatError,
)
from msrx_tool.codec import ALPHA, NUMERIC, Alphabet, CharacterCodec
from msrx_tool.tracks import (
    DataFormat,
    OutputFormat,
    Status,
    TrackBlockCodec,
    TrackSegment,
    TracksBlock,
    format_tracks,
    tracks_from_text,
    validate,
)
from msrx_tool.usb import (
    DeviceFrame,
    DeviceSession,
    PacketTransport,
    RawPacket,
    UsbDevice,
)

__all__ = [
    "__version__",
    # Configuration
    "DeviceConfig",
    "ToolSettings",
    "TrackConfig",
    # Errors
    "MsrxError",
    "DeviceError",
    "DeviceTimeoutError",
    "DeviceNotFoundError",
    "FramingError",
    "RawDataNotCardData",
    "ConfigurationError",
    "ErrorSettingBPI",
    "ErrorSettingLeadingZeros",
    "UnknownResponseError",
    "SessionStateError",
    "CardNotSwiped",
    "TrackValidationError",
    "DataForTrackIsTooLong",
    "InvalidTrackData",
    "InvalidStartSentinel",
    "InvalidEndSentinel",
    "TooManyTracks",
    "DecodeError",
    "BitConversionError",
    "InvalidUtf8DataInTrack",
    "UnsupportedFormatError",
    # Codec
    "ALPHA",
    "NUMERIC",
    "Alphabet",
    "CharacterCodec",
    # Tracks
    "DataFormat",
    "OutputFormat",
    "Status",
    "TrackBlockCodec",
    "TrackSegment",
    "TracksBlock",
    "format_tracks",
    "tracks_from_text",
    "validate",
    # USB
    "DeviceFrame",
    "DeviceSession",
    "PacketTransport",
    "RawPacket",
    "UsbDevice",
]
