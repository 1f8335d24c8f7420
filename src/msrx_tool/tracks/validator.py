"""
Track Text Validation
=====================

Checks user supplied track text before it is written to a card.

Rules per track:

    Track  Max length  Start  End  Characters
    -----  ----------  -----  ---  ------------------------------------
      1        79        %     ?   space through '_' (ISO 7811-2 alpha)
      2        40        ;     ?   '0'-'9' and ': ; < = > ?'
      3       107        ;     ?   '0'-'9' and ': ; < = > ?'

Checks run in this order: length, character set, start sentinel, end
sentinel. The first failing check is reported. An empty track is exempt
from every rule and encodes to the single placeholder byte 0x00 that the
firmware expects for "nothing on this track".
"""

import logging
from dataclasses import dataclass
from typing import Final, Optional

from msrx_tool.codec.charset import END_SENTINEL, Alphabet, alphabet_for_track
from msrx_tool.errors import (
    DataForTrackIsTooLong,
    InvalidEndSentinel,
    InvalidStartSentinel,
    InvalidTrackData,
    TrackValidationError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Track Rules
# =============================================================================

# Placeholder written for a track with no data
EMPTY_TRACK: Final[bytes] = b"\x00"

TRACK1_CHARSET: Final[str] = (
    " !\"#$%&'()*+,-./0123456789:;<=>?@ABCDEFGHIJKLMNOPQRSTUVWXYZ[\\]^_"
)
NUMERIC_CHARSET: Final[str] = "0123456789:;<=>?"


@dataclass(frozen=True)
class TrackRules:
    """Static limits for one track."""

    track: int
    max_length: int
    start_sentinel: str
    charset: str

    @property
    def alphabet(self) -> Alphabet:
        return alphabet_for_track(self.track)


TRACK_RULES: Final[dict[int, TrackRules]] = {
    1: TrackRules(1, max_length=79, start_sentinel="%", charset=TRACK1_CHARSET),
    2: TrackRules(2, max_length=40, start_sentinel=";", charset=NUMERIC_CHARSET),
    3: TrackRules(3, max_length=107, start_sentinel=";", charset=NUMERIC_CHARSET),
}


def rules_for_track(track: int) -> TrackRules:
    try:
        return TRACK_RULES[track]
    except KeyError:
        raise ValueError(f"Track number must be 1-3, got {track}") from None


# =============================================================================
# Validation
# =============================================================================

def validate(track: int, text: str, alphabet: Optional[Alphabet] = None) -> bytes:
    """
    Validate track text and return the bytes to write.

    The returned bytes are the ASCII text itself, sentinels included, since
    the reader records the sentinels as part of the track in ISO mode.

    Args:
        track: Track number (1-3)
        text: Track text such as "%ABC123?" or ";12345?"
        alphabet: Character set to check against; defaults to the
            track's own alphabet

    Returns:
        Encoded track bytes, or EMPTY_TRACK for an empty string

    Raises:
        DataForTrackIsTooLong: More characters than the track can hold
        InvalidTrackData: A character is outside the track's character set
        InvalidStartSentinel: Text does not begin with the start sentinel
        InvalidEndSentinel: Text does not end with '?'
        ValueError: If track is not 1-3
    """
    rules = rules_for_track(track)

    if not text:
        return EMPTY_TRACK

    if len(text) > rules.max_length:
        raise DataForTrackIsTooLong(track, len(text), rules.max_length)

    charset = alphabet.characters if alphabet is not None else rules.charset
    for ch in text:
        if ch not in charset:
            raise InvalidTrackData(track, charset, ch)

    if text[0] != rules.start_sentinel:
        raise InvalidStartSentinel(track, rules.start_sentinel)

    if text[-1] != END_SENTINEL:
        raise InvalidEndSentinel(track, END_SENTINEL)

    logger.debug("Track %d text valid (%d characters)", track, len(text))
    return text.encode("ascii")


def is_valid(track: int, text: str) -> bool:
    """Return True if the text would pass validate()."""
    try:
        validate(track, text)
    except TrackValidationError:
        return False
    return True
