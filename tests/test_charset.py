"""
Tests for the ISO 7811 Character Codec
======================================

This module tests the bit-serial character codec:
- Per-character encoding against known bit strings
- Decoding, including malformed bit strings
- Parity properties over whole alphabets
- Raw track bytes with LRC (vectors from the reader's manual)
"""

import logging

import pytest

from msrx_tool.codec.charset import (
    ALPHA,
    NUMERIC,
    CharacterCodec,
    alphabet_for_track,
    check_parity,
    decode_raw_track,
    encode_raw_track,
    odd_parity_bit,
)
from msrx_tool.errors import BitConversionError


# Raw track vectors from the reader's programming manual
TRACK1_RAW = bytes([0x45, 0x61, 0x62, 0x23, 0x51, 0x52, 0x13, 0x1F, 0x2A])
TRACK2_RAW = bytes([0x0B, 0x01, 0x02, 0x13, 0x04, 0x15, 0x1F, 0x15])


# =============================================================================
# Alphabet Tests
# =============================================================================

class TestAlphabets:
    """Test alphabet parameters and lookup."""

    def test_alpha_parameters(self):
        """Track 1 uses 6 data bits from ASCII 0x20."""
        assert ALPHA.data_bits == 6
        assert ALPHA.ascii_base == 0x20
        assert ALPHA.bit_length == 7

    def test_numeric_parameters(self):
        """Tracks 2 and 3 use 4 data bits from ASCII 0x30."""
        assert NUMERIC.data_bits == 4
        assert NUMERIC.ascii_base == 0x30
        assert NUMERIC.bit_length == 5

    def test_alpha_characters(self):
        """Track 1 covers space through underscore."""
        assert ALPHA.characters == "".join(chr(c) for c in range(0x20, 0x60))

    def test_numeric_characters(self):
        assert NUMERIC.characters == "0123456789:;<=>?"

    def test_alphabet_for_track(self):
        assert alphabet_for_track(1) is ALPHA
        assert alphabet_for_track(2) is NUMERIC
        assert alphabet_for_track(3) is NUMERIC

    def test_alphabet_for_invalid_track(self):
        with pytest.raises(ValueError):
            alphabet_for_track(4)


# =============================================================================
# Encoding Tests
# =============================================================================

class TestEncode:
    """Test character to bit string encoding."""

    @pytest.mark.parametrize("ch,bits", [
        ("3", "1100100"),
        ("K", "1101011"),
        ("?", "1111100"),
        ("@", "0000010"),
        (" ", "0000001"),
    ])
    def test_track1_known_values(self, ch, bits):
        """Known track 1 encodings."""
        assert CharacterCodec(ALPHA).encode(ch) == bits

    @pytest.mark.parametrize("ch,bits", [
        (";", "11010"),
        ("3", "11001"),
        ("7", "11100"),
        ("0", "00001"),
    ])
    def test_track2_known_values(self, ch, bits):
        """Known track 2/3 encodings."""
        assert CharacterCodec(NUMERIC).encode(ch) == bits

    def test_character_outside_alpha(self):
        """Lowercase letters are not in the track 1 alphabet."""
        with pytest.raises(BitConversionError):
            CharacterCodec(ALPHA).encode("a")

    def test_character_outside_numeric(self):
        codec = CharacterCodec(NUMERIC)
        with pytest.raises(BitConversionError):
            codec.encode("A")
        with pytest.raises(BitConversionError):
            codec.encode(" ")

    def test_multiple_characters_rejected(self):
        with pytest.raises(BitConversionError):
            CharacterCodec(ALPHA).encode("AB")

    def test_encode_byte(self):
        """Raw byte holds the code in the low bits and parity above."""
        codec = CharacterCodec(ALPHA)
        assert codec.encode_byte("A") == 0x61
        assert codec.encode_byte("%") == 0x45
        assert codec.encode_byte("?") == 0x1F


# =============================================================================
# Decoding Tests
# =============================================================================

class TestDecode:
    """Test bit string to character decoding."""

    def test_track1_known_value(self):
        assert CharacterCodec(ALPHA).decode("1100100") == "3"

    def test_track2_known_value(self):
        assert CharacterCodec(NUMERIC).decode("11010") == ";"

    def test_upper_half_of_alpha(self):
        """Codes with bit 0x20 set map to 0x40-0x5F."""
        assert CharacterCodec(ALPHA).decode("1101011") == "K"
        assert CharacterCodec(ALPHA).decode("0000010") == "@"

    def test_parity_not_checked(self):
        """A wrong parity bit still decodes to the data character."""
        assert CharacterCodec(ALPHA).decode("1100101") == "3"

    def test_wrong_length(self):
        with pytest.raises(BitConversionError):
            CharacterCodec(ALPHA).decode("11001")
        with pytest.raises(BitConversionError):
            CharacterCodec(NUMERIC).decode("1100100")

    def test_not_binary(self):
        with pytest.raises(BitConversionError):
            CharacterCodec(NUMERIC).decode("11a10")

    def test_decode_byte(self):
        codec = CharacterCodec(ALPHA)
        assert codec.decode_byte(0x45) == "%"
        assert codec.decode_byte(0x61) == "A"


# =============================================================================
# Whole-Alphabet Properties
# =============================================================================

class TestAlphabetProperties:
    """Properties that must hold for every character of each alphabet."""

    @pytest.mark.parametrize("alphabet", [ALPHA, NUMERIC], ids=["alpha", "numeric"])
    def test_round_trip(self, alphabet):
        """decode(encode(c)) == c for every character."""
        codec = CharacterCodec(alphabet)
        for ch in alphabet.characters:
            assert codec.decode(codec.encode(ch)) == ch

    @pytest.mark.parametrize("alphabet", [ALPHA, NUMERIC], ids=["alpha", "numeric"])
    def test_odd_parity(self, alphabet):
        """Every encoded character has an odd number of 1-bits."""
        codec = CharacterCodec(alphabet)
        for ch in alphabet.characters:
            bits = codec.encode(ch)
            assert len(bits) == alphabet.bit_length
            assert bits.count("1") % 2 == 1

    @pytest.mark.parametrize("alphabet", [ALPHA, NUMERIC], ids=["alpha", "numeric"])
    def test_encoded_byte_never_zero(self, alphabet):
        """Odd parity guarantees no character encodes to 0x00."""
        codec = CharacterCodec(alphabet)
        assert all(codec.encode_byte(ch) != 0 for ch in alphabet.characters)


class TestParityHelpers:
    """Test the parity helper functions."""

    def test_odd_parity_bit(self):
        assert odd_parity_bit(0b0000) == 1
        assert odd_parity_bit(0b0001) == 0
        assert odd_parity_bit(0b1011) == 0
        assert odd_parity_bit(0b0011) == 1

    def test_check_parity(self):
        assert check_parity("1100100")
        assert not check_parity("1100101")


# =============================================================================
# Raw Track Tests
# =============================================================================

class TestRawTrack:
    """Test raw track bytes with LRC."""

    def test_encode_track1(self):
        assert encode_raw_track("%ABC123?", ALPHA) == TRACK1_RAW

    def test_encode_track2(self):
        assert encode_raw_track(";12345?", NUMERIC) == TRACK2_RAW

    def test_encode_empty(self):
        assert encode_raw_track("", ALPHA) == b""

    def test_encode_invalid_character(self):
        with pytest.raises(BitConversionError):
            encode_raw_track(";12A?", NUMERIC)

    def test_decode_track1(self):
        assert decode_raw_track(TRACK1_RAW, ALPHA) == "%ABC123?"

    def test_decode_track2(self):
        assert decode_raw_track(TRACK2_RAW, NUMERIC) == ";12345?"

    def test_decode_stops_at_padding(self):
        """Zero bytes after the data are padding."""
        assert decode_raw_track(TRACK2_RAW + b"\x00\x00\x00", NUMERIC) == ";12345?"

    def test_decode_without_end_sentinel(self):
        """Data cut short by padding still yields what was read."""
        data = bytes([0x0B, 0x01, 0x02, 0x00, 0x13])
        assert decode_raw_track(data, NUMERIC) == ";12"

    def test_decode_empty(self):
        assert decode_raw_track(b"", ALPHA) == ""
        assert decode_raw_track(b"\x00\x00", ALPHA) == ""

    def test_lrc_mismatch_is_warning(self, caplog):
        """A bad LRC is logged but does not fail the decode."""
        data = TRACK2_RAW[:-1] + bytes([0x04])
        with caplog.at_level(logging.WARNING, logger="msrx_tool.codec.charset"):
            assert decode_raw_track(data, NUMERIC, track=2) == ";12345?"
        assert "LRC mismatch in track 2" in caplog.text

    def test_parity_error_is_warning(self, caplog):
        """A character with bad parity decodes and logs a warning."""
        # 'A' without its parity bit
        data = bytes([0x45, 0x21, 0x62, 0x23, 0x51, 0x52, 0x13, 0x1F, 0x2A])
        with caplog.at_level(logging.WARNING, logger="msrx_tool.codec.charset"):
            assert decode_raw_track(data, ALPHA, track=1) == "%ABC123?"
        assert "Parity error in track 1 at character 1" in caplog.text

    @pytest.mark.parametrize("text,alphabet", [
        ("%ABCDEFGHIJKLMNOPQRSTUVWXYZ 0123456789^/?", ALPHA),
        (";4111111111111111=2512101?", NUMERIC),
    ])
    def test_round_trip(self, text, alphabet):
        assert decode_raw_track(encode_raw_track(text, alphabet), alphabet) == text
