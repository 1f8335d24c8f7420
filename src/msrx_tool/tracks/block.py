"""
Track Data Block Format
=======================

This module builds and parses the block of track data exchanged with the
reader when a card is read or written.

Block Layout
------------
Outbound (write) block:

    ESC 's' | ESC 1 | track 1 | ESC 2 | track 2 | ESC 3 | track 3 | '?' FS

Inbound (read) frame, as reassembled from USB packets:

    hdr | ESC 's' | ESC 1 | track 1 | ESC 2 | track 2 | ESC 3 | track 3 |
    '?' FS ESC | status | padding...

Where ESC = 0x1B, 's' = 0x73, '?' = 0x3F, FS = 0x1C and hdr is the first
USB packet's header byte.

Two track data formats exist:

- **ISO**: the reader has already decoded the stripe. Track bytes are ASCII
  text including sentinels. A track with no data is a single 0x00 byte.
  Track boundaries are found by scanning for the ESC n markers and for the
  '?' FS ESC terminator, because the packet length byte is meaningless once
  several packets have been joined.
- **RAW**: each track marker is followed by a length byte and that many
  undecoded bytes (see msrx_tool.codec.charset for their meaning).

Status Byte
-----------
    0x30  OK
    0x31  Write or read error
    0x32  Command format error
    0x34  Invalid command
    0x39  Invalid card swipe when in write mode
    other Unknown

Example frame (RAW, track 3 only):

    D3 1B 73 1B 01 00 1B 02 00 1B 03 04 AF C2 B0 00 3F 1C 1B 30
"""

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Final, Optional, SupportsBytes, Union

from msrx_tool.codec.charset import alphabet_for_track, decode_raw_track
from msrx_tool.errors import (
    InvalidUtf8DataInTrack,
    RawDataNotCardData,
    UnsupportedFormatError,
)
from msrx_tool.tracks.validator import EMPTY_TRACK

logger = logging.getLogger(__name__)


# =============================================================================
# Block Constants
# =============================================================================

ESC: Final[int] = 0x1B

# ESC 's' - start of card data
START_OF_DATA: Final[bytes] = b"\x1b\x73"

# '?' FS - end of an outbound block
BLOCK_TERMINATOR: Final[bytes] = b"\x3f\x1c"

# '?' FS ESC - end of an inbound block, followed by the status byte
END_OF_DATA: Final[bytes] = b"\x3f\x1c\x1b"

TRACK_NUMBERS: Final[tuple[int, ...]] = (1, 2, 3)


def track_marker(track: int) -> bytes:
    """Return the ESC n marker that opens a track segment."""
    return bytes([ESC, track])


# =============================================================================
# Enumerations
# =============================================================================

class DataFormat(Enum):
    """Format of the track bytes inside a block."""

    ISO = "iso"
    RAW = "raw"

    @classmethod
    def from_name(cls, name: str) -> "DataFormat":
        try:
            return cls(name.lower())
        except ValueError:
            raise UnsupportedFormatError(
                "data", name, tuple(f.value for f in cls)
            ) from None


class Status(IntEnum):
    """Status byte at the end of a read block or write acknowledgement."""

    OK = 0x30
    WRITE_OR_READ_ERROR = 0x31
    COMMAND_FORMAT_ERROR = 0x32
    INVALID_COMMAND = 0x34
    INVALID_CARD_SWIPE_ON_WRITE = 0x39
    UNKNOWN = -1

    @classmethod
    def from_byte(cls, value: int) -> "Status":
        """Map a status byte, falling back to UNKNOWN for unmapped values."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


# =============================================================================
# Track Segments
# =============================================================================

@dataclass(frozen=True)
class TrackSegment:
    """
    The bytes of one track.

    Attributes:
        track: Track number (1-3)
        data: Track bytes; empty when the track holds nothing
        data_format: Whether data is ISO text or raw character bytes
    """

    track: int
    data: bytes = b""
    data_format: DataFormat = DataFormat.ISO

    def __post_init__(self) -> None:
        if self.track not in TRACK_NUMBERS:
            raise ValueError(f"Track number must be 1-3, got {self.track}")

    @property
    def is_empty(self) -> bool:
        return not self.data

    def text(self) -> str:
        """
        Return the track content as text.

        ISO segments are decoded as ASCII. Raw segments are run through the
        bit-serial codec for the track's alphabet.

        Raises:
            InvalidUtf8DataInTrack: If ISO bytes are not text
        """
        if self.data_format is DataFormat.RAW:
            return decode_raw_track(self.data, alphabet_for_track(self.track), self.track)
        try:
            return self.data.decode("ascii")
        except UnicodeDecodeError:
            raise InvalidUtf8DataInTrack(self.track) from None


@dataclass(frozen=True)
class TracksBlock:
    """
    All three tracks of a card plus the status reported by the reader.

    Exactly three segments are always present; an empty track is a segment
    with no data.
    """

    track1: TrackSegment = field(default_factory=lambda: TrackSegment(1))
    track2: TrackSegment = field(default_factory=lambda: TrackSegment(2))
    track3: TrackSegment = field(default_factory=lambda: TrackSegment(3))
    status: Status = Status.OK

    def __post_init__(self) -> None:
        for number, segment in zip(TRACK_NUMBERS, self.segments):
            if segment.track != number:
                raise ValueError(
                    f"Segment for track {segment.track} given as track {number}"
                )

    @property
    def segments(self) -> tuple[TrackSegment, TrackSegment, TrackSegment]:
        return (self.track1, self.track2, self.track3)

    def segment(self, track: int) -> TrackSegment:
        if track not in TRACK_NUMBERS:
            raise ValueError(f"Track number must be 1-3, got {track}")
        return self.segments[track - 1]

    @classmethod
    def from_bytes(
        cls,
        track1: bytes = b"",
        track2: bytes = b"",
        track3: bytes = b"",
        data_format: DataFormat = DataFormat.ISO,
        status: Status = Status.OK,
    ) -> "TracksBlock":
        """Build a block from plain track byte strings."""
        return cls(
            TrackSegment(1, track1, data_format),
            TrackSegment(2, track2, data_format),
            TrackSegment(3, track3, data_format),
            status,
        )


# =============================================================================
# Byte Cursor
# =============================================================================

class ByteCursor:
    """
    Forward-only reader over a byte buffer.

    Every method raises RawDataNotCardData instead of running off the end
    of the buffer, so malformed frames never cause index errors.
    """

    def __init__(self, data: bytes, position: int = 0):
        self.data = data
        self.position = position

    @property
    def remaining(self) -> int:
        return max(len(self.data) - self.position, 0)

    def read(self, count: int) -> bytes:
        if count > self.remaining:
            raise RawDataNotCardData(
                f"frame truncated: needed {count} bytes at offset "
                f"{self.position}, {self.remaining} left"
            )
        chunk = self.data[self.position:self.position + count]
        self.position += count
        return chunk

    def read_byte(self) -> int:
        return self.read(1)[0]

    def expect_marker(self, marker: bytes) -> None:
        """Consume marker or fail if the next bytes differ."""
        found = self.data[self.position:self.position + len(marker)]
        if found != marker:
            raise RawDataNotCardData(
                f"expected marker {marker.hex(' ')} at offset {self.position}, "
                f"found {found.hex(' ') or 'end of frame'}"
            )
        self.position += len(marker)

    def read_length_prefixed_segment(self) -> bytes:
        """Read a length byte followed by that many bytes."""
        length = self.read_byte()
        return self.read(length)

    def read_until(self, marker: bytes) -> bytes:
        """
        Read everything up to the next occurrence of marker.

        The marker itself is left unread.
        """
        index = self.data.find(marker, self.position)
        if index < 0:
            raise RawDataNotCardData(
                f"marker {marker.hex(' ')} not found after offset {self.position}"
            )
        return self.read(index - self.position)


# =============================================================================
# Track Block Codec
# =============================================================================

FrameLike = Union[bytes, bytearray, SupportsBytes]


class TrackBlockCodec:
    """
    Builds outbound track blocks and parses inbound card data frames.

    Attributes:
        data_format: Default format used when none is passed explicitly
    """

    def __init__(self, data_format: DataFormat = DataFormat.ISO):
        self.data_format = data_format

    # -------------------------------------------------------------------------
    # Parsing
    # -------------------------------------------------------------------------

    def parse(self, frame: FrameLike, data_format: Optional[DataFormat] = None) -> TracksBlock:
        """
        Parse a reassembled device frame into a TracksBlock.

        Args:
            frame: Frame bytes, header byte included
            data_format: ISO (marker scanning) or RAW (length prefixed)

        The format must match the read command that produced the frame.
        The example frame in the module docstring is a RAW frame: parsed
        as RAW, track 3 is AF C2 B0 00. Parsed as ISO, the length byte 04
        is kept as part of the track text.

        Raises:
            RawDataNotCardData: If the start marker, a track marker, the
                terminator or the status byte is missing or out of place
        """
        data = bytes(frame)
        data_format = data_format or self.data_format

        cursor = ByteCursor(data, position=1)
        try:
            cursor.expect_marker(START_OF_DATA)
        except RawDataNotCardData:
            raise RawDataNotCardData() from None

        if data_format is DataFormat.RAW:
            tracks = self._parse_length_prefixed(cursor)
        else:
            tracks = self._parse_marker_scan(cursor)

        status_byte = cursor.read_byte()
        status = Status.from_byte(status_byte)
        if status is Status.UNKNOWN:
            logger.warning("Unknown status byte 0x%02x in card data", status_byte)

        block = TracksBlock(
            TrackSegment(1, tracks[0], data_format),
            TrackSegment(2, tracks[1], data_format),
            TrackSegment(3, tracks[2], data_format),
            status,
        )
        logger.debug(
            "Parsed %s block: track sizes %d/%d/%d, status %s",
            data_format.value, len(tracks[0]), len(tracks[1]), len(tracks[2]),
            status.name,
        )
        return block

    def _parse_marker_scan(self, cursor: ByteCursor) -> list[bytes]:
        tracks = []
        for track in TRACK_NUMBERS:
            cursor.expect_marker(track_marker(track))
            if track < 3:
                segment = cursor.read_until(track_marker(track + 1))
            else:
                segment = cursor.read_until(END_OF_DATA)

            for other in TRACK_NUMBERS:
                if track_marker(other) in segment:
                    raise RawDataNotCardData(
                        f"track markers out of order inside track {track}"
                    )

            tracks.append(b"" if segment == EMPTY_TRACK else segment)

        cursor.expect_marker(END_OF_DATA)
        return tracks

    def _parse_length_prefixed(self, cursor: ByteCursor) -> list[bytes]:
        tracks = []
        for track in TRACK_NUMBERS:
            cursor.expect_marker(track_marker(track))
            tracks.append(cursor.read_length_prefixed_segment())
        cursor.expect_marker(END_OF_DATA)
        return tracks

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def format_for(self, block: TracksBlock, data_format: Optional[DataFormat] = None) -> DataFormat:
        """
        Return the format a block must be written in.

        The format of the non-empty segments wins. An explicit data_format
        must agree with it; when every segment is empty the explicit format,
        or else the codec default, is used.

        Raises:
            ValueError: If the non-empty segments mix formats, or disagree
                with data_format
        """
        formats = {s.data_format for s in block.segments if not s.is_empty}
        if len(formats) > 1:
            raise ValueError(
                "Track segments mix data formats: "
                + ", ".join(f"track {s.track}={s.data_format.value}"
                            for s in block.segments if not s.is_empty)
            )

        block_format = formats.pop() if formats else None
        if data_format is not None and block_format is not None and data_format is not block_format:
            raise ValueError(
                f"Block holds {block_format.value} track data but "
                f"{data_format.value} was requested"
            )
        return data_format or block_format or self.data_format

    def build(self, block: TracksBlock, data_format: Optional[DataFormat] = None) -> bytes:
        """
        Build the outbound block for a write command.

        In ISO format an empty track is written as a single 0x00 byte. In RAW
        format every track is written with a length byte. The format comes
        from the block's segments unless given explicitly (see format_for).

        Raises:
            ValueError: If a RAW segment is longer than 255 bytes, or the
                segment formats conflict
        """
        data_format = self.format_for(block, data_format)
        out = bytearray(START_OF_DATA)

        for segment in block.segments:
            out += track_marker(segment.track)
            if data_format is DataFormat.RAW:
                if len(segment.data) > 0xFF:
                    raise ValueError(
                        f"Track {segment.track} too long for a raw block: "
                        f"{len(segment.data)} bytes"
                    )
                out.append(len(segment.data))
                out += segment.data
            else:
                out += segment.data or EMPTY_TRACK

        out += BLOCK_TERMINATOR
        return bytes(out)
