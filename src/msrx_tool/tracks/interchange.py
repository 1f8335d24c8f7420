"""
Track Text Interchange
======================

Conversion between the text the user types or sees and TracksBlock.

Combined Format
---------------
All three tracks in one string, joined by a separator character (default
'_'):

    %ABC123?_;12345?_;999?

Missing trailing tracks are empty, so ``%ABC123?`` alone writes only
track 1 and ``_;12345?`` writes only track 2.

JSON Format
-----------
Output only:

    {"track1": "%ABC123?", "track2": ";12345?", "track3": "", "status": "OK"}
"""

import json
import logging
from enum import Enum

from msrx_tool.codec.charset import alphabet_for_track, encode_raw_track
from msrx_tool.errors import TooManyTracks, UnsupportedFormatError
from msrx_tool.tracks.block import DataFormat, TrackSegment, TracksBlock
from msrx_tool.tracks.validator import EMPTY_TRACK, validate

logger = logging.getLogger(__name__)

DEFAULT_SEPARATOR = "_"


class OutputFormat(Enum):
    """How read results are printed."""

    COMBINED = "combined"
    JSON = "json"

    @classmethod
    def from_name(cls, name: str) -> "OutputFormat":
        try:
            return cls(name.lower())
        except ValueError:
            raise UnsupportedFormatError(
                "output", name, tuple(f.value for f in cls)
            ) from None


# =============================================================================
# Input
# =============================================================================

def parse_combined(text: str, separator: str = DEFAULT_SEPARATOR) -> tuple[str, str, str]:
    """
    Split combined track text into three track strings.

    Raises:
        TooManyTracks: If the text has more than three parts
        ValueError: If the separator is empty
    """
    if not separator:
        raise ValueError("Separator must not be empty")

    parts = text.split(separator)
    if len(parts) > 3:
        raise TooManyTracks(len(parts), separator)

    parts += [""] * (3 - len(parts))
    return parts[0], parts[1], parts[2]


def tracks_from_text(
    text: str,
    separator: str = DEFAULT_SEPARATOR,
    data_format: DataFormat = DataFormat.ISO,
) -> TracksBlock:
    """
    Build a write block from combined track text.

    Each non-empty track is validated against its track's rules. With
    DataFormat.RAW the validated text is additionally encoded into raw
    character bytes with a trailing LRC.

    Raises:
        TrackValidationError: If any track fails validation
    """
    segments = []
    for track, track_text in enumerate(parse_combined(text, separator), start=1):
        data = validate(track, track_text)
        if data == EMPTY_TRACK:
            data = b""
        elif data_format is DataFormat.RAW:
            data = encode_raw_track(track_text, alphabet_for_track(track))
        segments.append(TrackSegment(track, data, data_format))

    logger.debug(
        "Tracks to write: %s",
        ", ".join(f"{s.track}={len(s.data)}" for s in segments),
    )
    return TracksBlock(*segments)


# =============================================================================
# Output
# =============================================================================

def format_combined(block: TracksBlock, separator: str = DEFAULT_SEPARATOR) -> str:
    return separator.join(segment.text() for segment in block.segments)


def format_json(block: TracksBlock) -> str:
    payload = {
        f"track{segment.track}": segment.text() for segment in block.segments
    }
    payload["status"] = block.status.name
    return json.dumps(payload)


def format_tracks(
    block: TracksBlock,
    output_format: OutputFormat = OutputFormat.COMBINED,
    separator: str = DEFAULT_SEPARATOR,
) -> str:
    """Render a read result in the requested output format."""
    if output_format is OutputFormat.JSON:
        return format_json(block)
    return format_combined(block, separator)
