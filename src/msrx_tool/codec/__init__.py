"""
Magnetic Stripe Character Codec
===============================

This package converts between printable track characters and the bit
patterns recorded on the stripe (ISO 7811).

- **charset**: Alphabets, per-character encode/decode, parity and LRC,
  raw track byte helpers

The device does this conversion itself in ISO mode. The codec is used when
the reader is switched to raw mode and hands back undecoded bytes.
"""

from msrx_tool.codec.charset import (
    ALPHA,
    END_SENTINEL,
    NUMERIC,
    Alphabet,
    CharacterCodec,
    alphabet_for_track,
    check_parity,
    decode_raw_track,
    encode_raw_track,
    odd_parity_bit,
)

__all__ = [
    "ALPHA",
    "END_SENTINEL",
    "NUMERIC",
    "Alphabet",
    "CharacterCodec",
    "alphabet_for_track",
    "check_parity",
    "decode_raw_track",
    "encode_raw_track",
    "odd_parity_bit",
]
