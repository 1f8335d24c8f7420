"""
Track Data Handling
===================

- **validator**: Per-track length, character set and sentinel rules
- **block**: The framed three-track block sent to and read from the reader
- **interchange**: Combined/JSON text formats used by the command line

Note that the default combined separator '_' is also a legal track 1
character; pass a different separator when track 1 data contains '_'.
"""

from msrx_tool.tracks.block import (
    BLOCK_TERMINATOR,
    END_OF_DATA,
    ESC,
    START_OF_DATA,
    ByteCursor,
    DataFormat,
    Status,
    TrackBlockCodec,
    TrackSegment,
    TracksBlock,
    track_marker,
)
from msrx_tool.tracks.interchange import (
    DEFAULT_SEPARATOR,
    OutputFormat,
    format_combined,
    format_json,
    format_tracks,
    parse_combined,
    tracks_from_text,
)
from msrx_tool.tracks.validator import (
    EMPTY_TRACK,
    NUMERIC_CHARSET,
    TRACK1_CHARSET,
    TRACK_RULES,
    TrackRules,
    is_valid,
    rules_for_track,
    validate,
)

__all__ = [
    # Block
    "BLOCK_TERMINATOR",
    "END_OF_DATA",
    "ESC",
    "START_OF_DATA",
    "ByteCursor",
    "DataFormat",
    "Status",
    "TrackBlockCodec",
    "TrackSegment",
    "TracksBlock",
    "track_marker",
    # Interchange
    "DEFAULT_SEPARATOR",
    "OutputFormat",
    "format_combined",
    "format_json",
    "format_tracks",
    "parse_combined",
    "tracks_from_text",
    # Validation
    "EMPTY_TRACK",
    "NUMERIC_CHARSET",
    "TRACK1_CHARSET",
    "TRACK_RULES",
    "TrackRules",
    "is_valid",
    "rules_for_track",
    "validate",
]
