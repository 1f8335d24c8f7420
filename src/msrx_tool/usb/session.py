"""
Device Session
==============

High level conversation with the reader: the setup handshake and the
read/write track operations.

State Machine
-------------
    UNINITIALIZED --open()--> CONFIGURING --setup ok--> READY
    READY --read_tracks()--> READING --> READY
    READY --write_tracks()--> WRITING --> READY
    any --close()--> UNINITIALIZED

Track operations are only allowed from READY. A failed setup step closes
the device again and leaves the session UNINITIALIZED.

Setup Handshake
---------------
Steps run in this fixed order, each checked before the next is sent:

1. Reset                  -> ESC '0'
2. Set bit-control-parity -> ESC '0' followed by the three BPC values echoed
3. Set HiCo / LoCo        -> ESC '0'
4. Set BPI, per track     -> anything but ESC '1'
5. Set leading zeros      -> anything but ESC '1'

Acknowledgements are checked on frame bytes [1:3], after the packet
header byte.

Usage
-----
    from msrx_tool.usb.session import DeviceSession

    with DeviceSession() as session:
        print(session.get_firmware_version())
        block = session.read_tracks(timeout=10)
"""

import logging
from enum import Enum
from typing import Final, Optional

from msrx_tool.config import DeviceConfig
from msrx_tool.errors import (
    CardNotSwiped,
    DeviceTimeoutError,
    ErrorSettingBPI,
    ErrorSettingLeadingZeros,
    MsrxError,
    SessionStateError,
    UnknownResponseError,
)
from msrx_tool.tracks.block import DataFormat, TrackBlockCodec, TracksBlock
from msrx_tool.usb.device import UsbDevice
from msrx_tool.usb.packet import DeviceFrame, PacketTransport, to_hex

logger = logging.getLogger(__name__)


# =============================================================================
# Commands
# =============================================================================

ACK_OK: Final[bytes] = b"\x1b\x30"
ACK_FAIL: Final[bytes] = b"\x1b\x31"


class Command(Enum):
    """Reader commands and their two-byte opcodes."""

    RESET = b"\x1b\x61"
    GET_FIRMWARE_VERSION = b"\x1b\x76"
    GET_DEVICE_MODEL = b"\x1b\x74"
    SET_BIT_CONTROL_PARITY = b"\x1b\x6f"
    SET_BITS_PER_INCH = b"\x1b\x62"
    SET_HI_CO = b"\x1b\x78"
    SET_LO_CO = b"\x1b\x79"
    SET_LEADING_ZEROS = b"\x1b\x7a"
    SET_READ_MODE_ISO = b"\x1b\x72"
    SET_READ_MODE_RAW = b"\x1b\x6d"
    SET_WRITE_MODE_ISO = b"\x1b\x77"
    SET_WRITE_MODE_RAW = b"\x1b\x6e"
    LED_ALL_ON = b"\x1b\x82"
    LED_GREEN_ON = b"\x1b\x83"
    LED_YELLOW_ON = b"\x1b\x84"
    LED_RED_ON = b"\x1b\x85"
    LED_ALL_OFF = b"\x1b\x81"

    # Reset also takes the reader out of read mode
    SET_READ_MODE_OFF = b"\x1b\x61"

    @property
    def opcode(self) -> bytes:
        return self.value

    def with_payload(self, payload: bytes = b"") -> bytes:
        return self.value + bytes(payload)


class Led(Enum):
    """LED states selectable with set_leds()."""

    ALL_ON = Command.LED_ALL_ON
    GREEN = Command.LED_GREEN_ON
    YELLOW = Command.LED_YELLOW_ON
    RED = Command.LED_RED_ON
    ALL_OFF = Command.LED_ALL_OFF


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    CONFIGURING = "configuring"
    READY = "ready"
    READING = "reading"
    WRITING = "writing"


def is_ack_ok(frame: DeviceFrame) -> bool:
    return frame.data[1:3] == ACK_OK


def is_ack_failure(frame: DeviceFrame) -> bool:
    return frame.data[1:3] == ACK_FAIL


# =============================================================================
# Device Session
# =============================================================================

class DeviceSession:
    """
    One conversation with one reader.

    Not thread-safe. Issue one operation at a time.

    Attributes:
        config: Device profile
        state: Current SessionState
        command_timeout: Seconds to wait for command acknowledgements
    """

    DEFAULT_COMMAND_TIMEOUT: Final[float] = 1.0
    DEFAULT_SWIPE_TIMEOUT: Final[float] = 10.0

    def __init__(
        self,
        config: Optional[DeviceConfig] = None,
        device: Optional[UsbDevice] = None,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ):
        self.config = config or DeviceConfig.msrx6()
        self.device = device if device is not None else UsbDevice(self.config)
        self.transport = PacketTransport(
            self.device,
            control_index=self.config.control_index,
            interrupt_endpoint=self.config.interrupt_endpoint,
        )
        self.codec = TrackBlockCodec()
        self.command_timeout = command_timeout
        self.state = SessionState.UNINITIALIZED

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> None:
        """
        Claim the device and run the setup handshake.

        Raises:
            SessionStateError: If the session is already open
            ConfigurationError: If a setup step is rejected
            DeviceError: If a transfer fails
        """
        self._require_state("open", SessionState.UNINITIALIZED)

        self.device.open()
        self.state = SessionState.CONFIGURING

        try:
            self.configure()
        except Exception:
            self.close()
            raise

        self.state = SessionState.READY
        logger.info("Reader configured and ready")

    def close(self) -> None:
        """Release the device. Safe to call more than once."""
        self.device.close()
        self.state = SessionState.UNINITIALIZED

    def __enter__(self) -> "DeviceSession":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Setup Handshake
    # -------------------------------------------------------------------------

    def configure(self) -> None:
        """Run every setup step in order; the first failure aborts."""
        self._require_state("configure", SessionState.CONFIGURING)
        self._reset()
        self._set_bit_control_parity()
        self._set_coercivity()
        self._set_bits_per_inch()
        self._set_leading_zeros()

    def _command(self, command: Command, payload: bytes = b"") -> DeviceFrame:
        logger.debug("Command %s %s", command.name, to_hex(payload))
        self.transport.send(command.with_payload(payload), self.command_timeout)
        return self.transport.receive(self.command_timeout)

    def _reset(self) -> None:
        frame = self._command(Command.RESET)
        if not is_ack_ok(frame):
            raise UnknownResponseError(
                f"reset not acknowledged: {to_hex(frame.data[:4])}"
            )

    def _set_bit_control_parity(self) -> None:
        expected = self.config.bpc_payload()
        frame = self._command(Command.SET_BIT_CONTROL_PARITY, expected)
        if not is_ack_ok(frame) or frame.data[3:6] != expected:
            raise UnknownResponseError(
                f"bit control parity not echoed: expected {to_hex(expected)}, "
                f"got {to_hex(frame.data[1:6])}"
            )

    def _set_coercivity(self) -> None:
        command = Command.SET_HI_CO if self.config.is_hi_co else Command.SET_LO_CO
        frame = self._command(command)
        if not is_ack_ok(frame):
            raise UnknownResponseError(
                f"{command.name} not acknowledged: {to_hex(frame.data[:4])}"
            )

    def _set_bits_per_inch(self) -> None:
        for track, track_config in enumerate(self.config.tracks, start=1):
            frame = self._command(Command.SET_BITS_PER_INCH, track_config.bpi_payload())
            if is_ack_failure(frame):
                raise ErrorSettingBPI(track)

    def _set_leading_zeros(self) -> None:
        frame = self._command(Command.SET_LEADING_ZEROS, self.config.leading_zero_payload())
        if is_ack_failure(frame):
            raise ErrorSettingLeadingZeros()

    # -------------------------------------------------------------------------
    # Track Operations
    # -------------------------------------------------------------------------

    def read_tracks(
        self,
        timeout: float = DEFAULT_SWIPE_TIMEOUT,
        data_format: DataFormat = DataFormat.ISO,
    ) -> TracksBlock:
        """
        Arm the reader and wait for one card swipe.

        Args:
            timeout: Seconds to wait for the swipe
            data_format: ISO for decoded text, RAW for undecoded bytes

        Raises:
            CardNotSwiped: If no card is swiped in time
            RawDataNotCardData: If the reply is not card data
            SessionStateError: If the session is not READY
        """
        self._require_state("read tracks", SessionState.READY)
        command = (
            Command.SET_READ_MODE_RAW if data_format is DataFormat.RAW
            else Command.SET_READ_MODE_ISO
        )

        self.state = SessionState.READING
        try:
            self.transport.send(command.opcode, self.command_timeout)
            logger.info("Waiting %gs for card swipe", timeout)
            try:
                frame = self.transport.receive(timeout)
            except DeviceTimeoutError:
                self._disable_read_mode()
                raise CardNotSwiped(timeout) from None
            return self.codec.parse(frame, data_format)
        finally:
            self.state = SessionState.READY

    def _disable_read_mode(self) -> None:
        try:
            self._command(Command.SET_READ_MODE_OFF)
        except MsrxError as e:
            logger.warning("Could not disable read mode: %s", e)

    def write_tracks(
        self,
        tracks: TracksBlock,
        timeout: float = DEFAULT_SWIPE_TIMEOUT,
        data_format: Optional[DataFormat] = None,
    ) -> bool:
        """
        Write tracks to the next card swiped.

        Args:
            tracks: Tracks to write, normally from tracks_from_text()
            timeout: Seconds to wait for the swipe and acknowledgement
            data_format: Format of the block sent to the reader. Taken from
                the block's segments when not given

        Returns:
            True if the reader acknowledged the write with ESC '0'

        Raises:
            DeviceTimeoutError: If no acknowledgement arrives in time
            SessionStateError: If the session is not READY
            ValueError: If the segment formats conflict with each other or
                with data_format
        """
        self._require_state("write tracks", SessionState.READY)
        data_format = self.codec.format_for(tracks, data_format)
        command = (
            Command.SET_WRITE_MODE_RAW if data_format is DataFormat.RAW
            else Command.SET_WRITE_MODE_ISO
        )
        block = self.codec.build(tracks, data_format)

        self.state = SessionState.WRITING
        try:
            self.transport.send(command.with_payload(block), self.command_timeout)
            logger.info("Waiting %gs for card swipe to write", timeout)
            frame = self.transport.receive(timeout)
        finally:
            self.state = SessionState.READY

        success = is_ack_ok(frame)
        if not success:
            logger.debug("Write rejected: %s", to_hex(frame.data[:4]))
        return success

    # -------------------------------------------------------------------------
    # Device Information and Control
    # -------------------------------------------------------------------------

    def _text_reply(self, command: Command) -> str:
        self._require_open(command.name.lower())
        frame = self._command(command)
        # Skip the header byte and the leading ESC
        text = frame.data[2:1 + frame.length]
        return text.decode("ascii", errors="replace")

    def get_firmware_version(self) -> str:
        """Return the firmware version string, e.g. "REVT3.12"."""
        return self._text_reply(Command.GET_FIRMWARE_VERSION)

    def get_model(self) -> str:
        return self._text_reply(Command.GET_DEVICE_MODEL)

    def set_leds(self, led: Led) -> None:
        """Switch the front LEDs. The reader sends no reply."""
        self._require_open("set leds")
        self.transport.send(led.value.opcode, self.command_timeout)

    def reset(self) -> bool:
        """Reset the reader. Returns True if it acknowledged."""
        self._require_open("reset")
        return is_ack_ok(self._command(Command.RESET))

    # -------------------------------------------------------------------------
    # State Checks
    # -------------------------------------------------------------------------

    def _require_state(self, operation: str, expected: SessionState) -> None:
        if self.state is not expected:
            raise SessionStateError(operation, self.state.name, expected.name)

    def _require_open(self, operation: str) -> None:
        if self.state is SessionState.UNINITIALIZED:
            raise SessionStateError(operation, self.state.name, "open session")
