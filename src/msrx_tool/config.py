"""
Device Profiles and Runtime Settings
====================================

This module holds the static description of the supported reader and the
runtime defaults used by the command-line tool.

Device Profile
--------------
A DeviceConfig is immutable and built once when a session starts. It
describes, per track, the bits-per-character (BPC) the reader is told to
use and the recording density (BPI) together with the opcode bytes that
select 75 or 210 bpi for that track. It also carries the leading zero
counts, the coercivity mode and the USB addressing of the reader.

The MSRX6 profile (MSR605X-compatible readers, VID 0x0801 / PID 0x0003):

    Track  BPC  BPI  75bpi opcode  210bpi opcode
    -----  ---  ---  ------------  -------------
      1     7   210      A0             A1
      2     5    75      C0             C1
      3     5   210      4B             D2

Runtime Settings
----------------
ToolSettings holds timeouts and text formatting defaults. Values can come
from:
- Default values (defined here)
- Environment variables (ToolSettings.from_env)
- Command-line options (applied by the CLI on top of the above)
"""

import logging
import os
from dataclasses import dataclass
from typing import Final

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Recording densities understood by the reader
VALID_BPI: Final[tuple[int, ...]] = (75, 210)

# USB identifiers of MSR605X-compatible readers
MSRX6_VENDOR_ID: Final[int] = 0x0801
MSRX6_PRODUCT_ID: Final[int] = 0x0003


# =============================================================================
# Track Configuration
# =============================================================================

@dataclass(frozen=True)
class TrackConfig:
    """
    Per-track recording parameters.

    Attributes:
        bpc: Bits per character sent with the SetBitControlParity command
        bpi: Recording density, 75 or 210
        bpi75_opcode: Opcode byte selecting 75 bpi for this track
        bpi210_opcode: Opcode byte selecting 210 bpi for this track
    """

    bpc: int
    bpi: int
    bpi75_opcode: int
    bpi210_opcode: int

    def __post_init__(self) -> None:
        if self.bpi not in VALID_BPI:
            raise ValueError(f"Invalid BPI: {self.bpi}, must be 75 or 210")

    def bpi_payload(self) -> bytes:
        """Return the SetBitsPerInch payload for the configured density."""
        if self.bpi == 75:
            return bytes([self.bpi75_opcode])
        return bytes([self.bpi210_opcode])


# =============================================================================
# Device Configuration
# =============================================================================

@dataclass(frozen=True)
class DeviceConfig:
    """
    Static parameters of one reader model.

    Attributes:
        track1, track2, track3: Per-track recording parameters
        leading_zero_210: Leading zeros written before data at 210 bpi
        leading_zero_75: Leading zeros written before data at 75 bpi
        is_hi_co: True for high coercivity, False for low coercivity
        vendor_id: USB vendor ID
        product_id: USB product ID
        interface: USB interface number to claim
        control_index: wIndex used for class control transfers
        interrupt_endpoint: Address of the interrupt IN endpoint
    """

    track1: TrackConfig
    track2: TrackConfig
    track3: TrackConfig
    leading_zero_210: int
    leading_zero_75: int
    is_hi_co: bool
    vendor_id: int
    product_id: int
    interface: int = 0
    control_index: int = 0
    interrupt_endpoint: int = 0x81

    @classmethod
    def msrx6(cls) -> "DeviceConfig":
        """Profile of MSR605X-compatible USB readers."""
        return cls(
            track1=TrackConfig(bpc=7, bpi=210, bpi75_opcode=0xA0, bpi210_opcode=0xA1),
            track2=TrackConfig(bpc=5, bpi=75, bpi75_opcode=0xC0, bpi210_opcode=0xC1),
            track3=TrackConfig(bpc=5, bpi=210, bpi75_opcode=0x4B, bpi210_opcode=0xD2),
            leading_zero_210=61,
            leading_zero_75=22,
            is_hi_co=True,
            vendor_id=MSRX6_VENDOR_ID,
            product_id=MSRX6_PRODUCT_ID,
        )

    @property
    def tracks(self) -> tuple[TrackConfig, TrackConfig, TrackConfig]:
        return (self.track1, self.track2, self.track3)

    def track(self, number: int) -> TrackConfig:
        """Return the configuration of track 1, 2 or 3."""
        if number not in (1, 2, 3):
            raise ValueError(f"Track number must be 1-3, got {number}")
        return self.tracks[number - 1]

    def bpc_payload(self) -> bytes:
        """SetBitControlParity payload: one BPC byte per track."""
        return bytes(track.bpc for track in self.tracks)

    def leading_zero_payload(self) -> bytes:
        """SetLeadingZeros payload: 210 bpi count, then 75 bpi count."""
        return bytes([self.leading_zero_210, self.leading_zero_75])


# =============================================================================
# Runtime Settings
# =============================================================================

@dataclass
class ToolSettings:
    """
    Runtime defaults for the command-line tool.

    Attributes:
        read_timeout: Seconds to wait for a card swipe when reading
        write_timeout: Seconds to wait for a card swipe when writing
        command_timeout: Seconds to wait for a command acknowledgement
        separator: Character joining the three tracks in combined text
        data_format: Track data format, "iso" or "raw"
        output_format: Output format for reads, "combined" or "json"
    """

    read_timeout: float = 10.0
    write_timeout: float = 10.0
    command_timeout: float = 1.0
    separator: str = "_"
    data_format: str = "iso"
    output_format: str = "combined"

    @classmethod
    def from_env(cls) -> "ToolSettings":
        """
        Create ToolSettings from environment variables.

        Environment variables (all optional):
            MSRX_READ_TIMEOUT: Read timeout in seconds
            MSRX_WRITE_TIMEOUT: Write timeout in seconds
            MSRX_COMMAND_TIMEOUT: Command timeout in seconds
            MSRX_SEPARATOR: Track separator character
            MSRX_DATA_FORMAT: "iso" or "raw"
            MSRX_OUTPUT_FORMAT: "combined" or "json"

        Returns:
            ToolSettings with values from environment variables
        """
        settings = cls()

        for attr, var in (
            ("read_timeout", "MSRX_READ_TIMEOUT"),
            ("write_timeout", "MSRX_WRITE_TIMEOUT"),
            ("command_timeout", "MSRX_COMMAND_TIMEOUT"),
        ):
            if value := os.environ.get(var):
                try:
                    setattr(settings, attr, float(value))
                except ValueError:
                    logger.warning("Ignoring invalid %s: %r", var, value)

        if separator := os.environ.get("MSRX_SEPARATOR"):
            if len(separator) == 1:
                settings.separator = separator
            else:
                logger.warning("Ignoring invalid MSRX_SEPARATOR: %r "
                               "(must be a single character)", separator)

        if data_format := os.environ.get("MSRX_DATA_FORMAT"):
            settings.data_format = data_format.lower()

        if output_format := os.environ.get("MSRX_OUTPUT_FORMAT"):
            settings.output_format = output_format.lower()

        return settings
