"""
ISO 7811 Bit-Serial Character Codec
===================================

This module converts single characters to and from the bit patterns that
are physically recorded on a magnetic stripe.

Technical Details
-----------------
Each character is stored as ``data_bits`` bits of a numeric code followed
by one odd parity bit. Bits are recorded least significant bit first, so
the bit string is reversed relative to normal big-endian notation.

Two alphabets exist:

    Alphabet   Tracks  Data bits  ASCII base  Characters
    --------   ------  ---------  ----------  --------------------------
    ALPHA      1       6          0x20        space through '_'
    NUMERIC    2, 3    4          0x30        '0'-'9' and ': ; < = > ?'

For track 1 the code is ``ch - 0x20`` for ``0x20-0x3F`` and
``(ch - 0x40) | 0x20`` for ``0x40-0x5F``. Decoding looks at bit 0x20 of the
code to choose between the two halves again.

Known Encodings
---------------
    '3' on track 1  ->  "1100100"
    ';' on track 2  ->  "11010"
    '?' on track 1  ->  "1111100"

Raw Track Bytes
---------------
A raw track payload carries one character per byte. The byte value is the
bit string read back to front, so the low ``data_bits`` bits hold the code
and the next bit holds the parity. After the end sentinel comes the LRC
character: the XOR of every code in the track (sentinels included),
encoded with its own odd parity bit.

Parity or LRC mismatches on decode are reported as warnings only. Worn
cards routinely produce a bad parity bit on a character that still
decodes to the right value.

Usage
-----
    from msrx_tool.codec.charset import CharacterCodec, ALPHA

    codec = CharacterCodec(ALPHA)
    codec.encode("3")          # "1100100"
    codec.decode("1100100")    # "3"
"""

import logging
from dataclasses import dataclass
from typing import Final, Optional

from msrx_tool.errors import BitConversionError

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Character that closes every track
END_SENTINEL: Final[str] = "?"


# =============================================================================
# Alphabets
# =============================================================================

@dataclass(frozen=True)
class Alphabet:
    """
    Parameters of one ISO 7811 character set.

    Attributes:
        name: Short name used in log and error messages
        data_bits: Number of data bits per character (parity excluded)
        ascii_base: ASCII value of code 0
        case_split_bit: Code bit selecting the upper half of the ASCII
            range (track 1 only), or None for a linear mapping
    """

    name: str
    data_bits: int
    ascii_base: int
    case_split_bit: Optional[int] = None

    @property
    def bit_length(self) -> int:
        """Length of one encoded character, parity bit included."""
        return self.data_bits + 1

    @property
    def code_count(self) -> int:
        return 1 << self.data_bits

    @property
    def code_mask(self) -> int:
        return self.code_count - 1

    @property
    def characters(self) -> str:
        """Every character of the alphabet in code order."""
        codec = CharacterCodec(self)
        return "".join(codec.char_for_code(code) for code in range(self.code_count))


ALPHA: Final[Alphabet] = Alphabet("alpha", data_bits=6, ascii_base=0x20, case_split_bit=0x20)
NUMERIC: Final[Alphabet] = Alphabet("numeric", data_bits=4, ascii_base=0x30)


def alphabet_for_track(track: int) -> Alphabet:
    """Return the alphabet used by track 1, 2 or 3."""
    if track == 1:
        return ALPHA
    if track in (2, 3):
        return NUMERIC
    raise ValueError(f"Track number must be 1-3, got {track}")


# =============================================================================
# Parity
# =============================================================================

def odd_parity_bit(value: int) -> int:
    """Return the bit that makes the total count of 1-bits odd."""
    return 0 if bin(value).count("1") % 2 else 1


def check_parity(bits: str) -> bool:
    """Check that a bit string contains an odd number of 1-bits."""
    return bits.count("1") % 2 == 1


# =============================================================================
# Character Codec
# =============================================================================

class CharacterCodec:
    """
    Encoder/decoder for one alphabet.

    Attributes:
        alphabet: The character set this codec works with
    """

    def __init__(self, alphabet: Alphabet):
        self.alphabet = alphabet

    # -------------------------------------------------------------------------
    # Character <-> code
    # -------------------------------------------------------------------------

    def code_for_char(self, ch: str) -> int:
        """Map a character to its numeric code."""
        if len(ch) != 1:
            raise BitConversionError(f"expected a single character, got {ch!r}")

        alphabet = self.alphabet
        value = ord(ch)
        split = alphabet.case_split_bit

        if split is None:
            code = value - alphabet.ascii_base
        elif alphabet.ascii_base <= value < alphabet.ascii_base + split:
            code = value - alphabet.ascii_base
        elif 0x40 <= value < 0x40 + split:
            code = (value - 0x40) | split
        else:
            code = -1

        if not 0 <= code < alphabet.code_count:
            raise BitConversionError(
                f"character {ch!r} is not in the {alphabet.name} alphabet"
            )
        return code

    def char_for_code(self, code: int) -> str:
        """Map a numeric code back to its character."""
        alphabet = self.alphabet
        if not 0 <= code < alphabet.code_count:
            raise BitConversionError(
                f"code {code} out of range for the {alphabet.name} alphabet"
            )

        split = alphabet.case_split_bit
        if split is None:
            return chr(code | alphabet.ascii_base)
        if code & split:
            return chr((code & ~split) | 0x40)
        return chr(code | alphabet.ascii_base)

    # -------------------------------------------------------------------------
    # Character <-> bit string
    # -------------------------------------------------------------------------

    def encode(self, ch: str) -> str:
        """
        Encode a character as its recorded bit string.

        Args:
            ch: Single character of the alphabet

        Returns:
            String of '0'/'1' of length data_bits + 1: the code bits
            least significant first, then the odd parity bit

        Raises:
            BitConversionError: If ch is not in the alphabet
        """
        code = self.code_for_char(ch)
        data_bits = format(code, f"0{self.alphabet.data_bits}b")[::-1]
        return data_bits + str(odd_parity_bit(code))

    def decode(self, bits: str) -> str:
        """
        Decode a recorded bit string to its character.

        The parity bit is not checked here; use check_parity() when the
        caller cares.

        Raises:
            BitConversionError: If the bit string has the wrong length or
                contains anything other than '0' and '1'
        """
        if len(bits) != self.alphabet.bit_length:
            raise BitConversionError(
                f"expected {self.alphabet.bit_length} bits for the "
                f"{self.alphabet.name} alphabet, got {len(bits)}"
            )
        if set(bits) - {"0", "1"}:
            raise BitConversionError(f"not a bit string: {bits!r}")

        # Reversed, the parity bit comes first
        code = int(bits[::-1][1:], 2)
        return self.char_for_code(code)

    # -------------------------------------------------------------------------
    # Character <-> raw byte
    # -------------------------------------------------------------------------

    def encode_byte(self, ch: str) -> int:
        """Encode a character as one raw track byte (parity in the top bit)."""
        return int(self.encode(ch)[::-1], 2)

    def bits_for_byte(self, value: int) -> str:
        """Return the recorded bit string held in a raw track byte."""
        width = self.alphabet.bit_length
        mask = (1 << width) - 1
        return format(value & mask, f"0{width}b")[::-1]

    def decode_byte(self, value: int) -> str:
        return self.decode(self.bits_for_byte(value))

    def lrc_byte(self, codes: list[int]) -> int:
        """Build the LRC character for a sequence of character codes."""
        lrc = 0
        for code in codes:
            lrc ^= code
        lrc &= self.alphabet.code_mask
        return lrc | (odd_parity_bit(lrc) << self.alphabet.data_bits)


# =============================================================================
# Raw Track Helpers
# =============================================================================

def encode_raw_track(text: str, alphabet: Alphabet) -> bytes:
    """
    Encode track text as raw bytes, one character per byte, followed by
    the LRC character.

    An empty string encodes to an empty byte string.

    Raises:
        BitConversionError: If a character is not in the alphabet
    """
    if not text:
        return b""

    codec = CharacterCodec(alphabet)
    codes = [codec.code_for_char(ch) for ch in text]
    encoded = bytearray(codec.encode_byte(ch) for ch in text)
    encoded.append(codec.lrc_byte(codes))
    return bytes(encoded)


def decode_raw_track(data: bytes, alphabet: Alphabet, track: Optional[int] = None) -> str:
    """
    Decode raw track bytes to text.

    Decoding stops after the end sentinel, or at the first zero byte (a
    recorded character always has at least one 1-bit, so a zero byte is
    padding). The byte after the end sentinel is taken as the LRC.

    Args:
        data: Raw track bytes
        alphabet: Alphabet of the track
        track: Track number, used only in log messages

    Returns:
        Decoded text, end sentinel included. Bits above the character
        width are ignored.
    """
    codec = CharacterCodec(alphabet)
    label = f"track {track}" if track is not None else alphabet.name
    chars: list[str] = []
    codes: list[int] = []
    position = 0

    while position < len(data):
        value = data[position]
        position += 1
        if value == 0:
            break

        bits = codec.bits_for_byte(value)
        if not check_parity(bits):
            logger.warning(
                "Parity error in %s at character %d (0x%02x)",
                label, len(chars), value,
            )

        ch = codec.decode(bits)
        chars.append(ch)
        codes.append(value & alphabet.code_mask)

        if ch == END_SENTINEL:
            if position < len(data) and data[position] != 0:
                lrc = data[position] & ((1 << alphabet.bit_length) - 1)
                expected = codec.lrc_byte(codes)
                if lrc != expected:
                    logger.warning(
                        "LRC mismatch in %s: got 0x%02x, expected 0x%02x",
                        label, lrc, expected,
                    )
            break

    text = "".join(chars)
    logger.debug("Decoded %d raw bytes from %s: %r", len(data), label, text)
    return text
