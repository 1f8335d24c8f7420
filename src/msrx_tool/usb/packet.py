"""
USB Packet Transport
====================

The reader speaks in 64-byte HID reports. A logical command or response
longer than one report is split into several, each starting with a header
byte.

Packet Header
-------------
    Bit 7:     frame marker (always set on outbound chunks; set on the
               first packet of an inbound response)
    Bit 6:     last packet of the command/response
    Bits 0-5:  payload length of this packet (0-63)

Outbound
--------
A command is cut into chunks of at most 63 bytes. Each chunk is prefixed
with its header and sent with a HID SET_REPORT class control transfer:

    bmRequestType = 0x21, bRequest = 9, wValue = 0x0300, wIndex = interface

A 70-byte command therefore goes out as:

    BF + 63 bytes
    C7 +  7 bytes

Inbound
-------
Responses arrive on the interrupt IN endpoint. Packets are read until one
has the last-packet bit set. The frame is the first packet's full 64 bytes
followed by bytes [1:] of each later packet. The length field is only
meaningful for the first packet, so later layers locate data by markers.

A timeout is raised as DeviceTimeoutError and is never retried here.
"""

import logging
from dataclasses import dataclass
from typing import Final, Optional, Protocol

from msrx_tool.errors import DeviceError

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

PACKET_SIZE: Final[int] = 64
MAX_CHUNK_PAYLOAD: Final[int] = 63

FRAME_MARKER_BIT: Final[int] = 0x80
LAST_PACKET_BIT: Final[int] = 0x40
LENGTH_MASK: Final[int] = 0x3F

# HID SET_REPORT (output report 0)
HID_REQUEST_TYPE: Final[int] = 0x21
HID_SET_REPORT: Final[int] = 0x09
HID_REPORT_VALUE: Final[int] = 0x0300

DEFAULT_TIMEOUT: Final[float] = 1.0


def to_hex(data: bytes) -> str:
    """Format bytes as space separated hex pairs for log messages."""
    return " ".join(f"{b:02x}" for b in data)


# =============================================================================
# Transfer Primitive
# =============================================================================

class TransferPrimitive(Protocol):
    """
    Blocking USB transfers used by PacketTransport.

    Both methods raise DeviceError on failure and DeviceTimeoutError when
    the transfer does not complete within ``timeout`` seconds.
    """

    def control_write(
        self,
        request_type: int,
        request: int,
        value: int,
        index: int,
        data: bytes,
        timeout: float,
    ) -> None:
        ...

    def interrupt_read(self, endpoint: int, size: int, timeout: float) -> bytes:
        ...


# =============================================================================
# Packets and Frames
# =============================================================================

@dataclass(frozen=True)
class RawPacket:
    """
    One USB transfer unit.

    Attributes:
        is_header: Bit 7 of the header byte
        is_last: Bit 6 of the header byte
        length: Bits 0-5 of the header byte
        payload: Bytes following the header byte
    """

    is_header: bool
    is_last: bool
    length: int
    payload: bytes

    def __post_init__(self) -> None:
        if not 0 <= self.length <= LENGTH_MASK:
            raise ValueError(f"Packet length out of range: {self.length}")

    @property
    def header(self) -> int:
        value = self.length
        if self.is_header:
            value |= FRAME_MARKER_BIT
        if self.is_last:
            value |= LAST_PACKET_BIT
        return value

    def to_bytes(self) -> bytes:
        return bytes([self.header]) + self.payload

    @classmethod
    def from_bytes(cls, data: bytes) -> "RawPacket":
        """
        Parse a packet read from the interrupt endpoint.

        Raises:
            DeviceError: If the transfer returned no data
        """
        if not data:
            raise DeviceError("empty packet received from device")
        header = data[0]
        return cls(
            is_header=bool(header & FRAME_MARKER_BIT),
            is_last=bool(header & LAST_PACKET_BIT),
            length=header & LENGTH_MASK,
            payload=bytes(data[1:]),
        )


@dataclass(frozen=True)
class DeviceFrame:
    """
    A reassembled response.

    ``data`` starts with the first packet's header byte. For single packet
    replies the length field of that header tells how many bytes follow.
    """

    data: bytes
    packet_count: int = 1

    def __bytes__(self) -> bytes:
        return self.data

    def __len__(self) -> int:
        return len(self.data)

    def __getitem__(self, index):
        return self.data[index]

    @property
    def length(self) -> int:
        """Length field of the first packet's header."""
        return self.data[0] & LENGTH_MASK if self.data else 0

    def body(self) -> bytes:
        """The bytes announced by the first header's length field."""
        return self.data[1:1 + self.length]

    @classmethod
    def from_packets(cls, packets: list[bytes]) -> "DeviceFrame":
        """Join packets: the first in full, then bytes [1:] of the rest."""
        if not packets:
            raise ValueError("At least one packet is required")
        data = bytes(packets[0]) + b"".join(bytes(p[1:]) for p in packets[1:])
        return cls(data, len(packets))


# =============================================================================
# Packet Transport
# =============================================================================

def split_command(command: bytes) -> list[RawPacket]:
    """
    Cut a command into header-prefixed chunks.

    An empty command yields a single empty last chunk.
    """
    chunks = [
        command[offset:offset + MAX_CHUNK_PAYLOAD]
        for offset in range(0, len(command), MAX_CHUNK_PAYLOAD)
    ] or [b""]

    return [
        RawPacket(
            is_header=True,
            is_last=index == len(chunks) - 1,
            length=len(chunk),
            payload=chunk,
        )
        for index, chunk in enumerate(chunks)
    ]


class PacketTransport:
    """
    Sends commands and receives responses over a TransferPrimitive.

    Attributes:
        device: The USB transfer primitive
        control_index: wIndex used for control transfers
        interrupt_endpoint: Interrupt IN endpoint address
    """

    def __init__(
        self,
        device: TransferPrimitive,
        control_index: int = 0,
        interrupt_endpoint: int = 0x81,
    ):
        self.device = device
        self.control_index = control_index
        self.interrupt_endpoint = interrupt_endpoint

    def send(self, command: bytes, timeout: float = DEFAULT_TIMEOUT) -> None:
        """
        Send one logical command.

        Chunks go out strictly in order. The first failing transfer aborts
        the send and its DeviceError propagates.
        """
        packets = split_command(command)
        logger.debug("TX %d bytes in %d packet(s): %s",
                     len(command), len(packets), to_hex(command))

        for packet in packets:
            self.device.control_write(
                HID_REQUEST_TYPE,
                HID_SET_REPORT,
                HID_REPORT_VALUE,
                self.control_index,
                packet.to_bytes(),
                timeout,
            )

    def receive(self, timeout: float = DEFAULT_TIMEOUT) -> DeviceFrame:
        """
        Receive one logical response.

        Raises:
            DeviceTimeoutError: If any packet read times out
            DeviceError: If any packet read fails
        """
        packets = []
        while True:
            data = self.device.interrupt_read(self.interrupt_endpoint, PACKET_SIZE, timeout)
            packet = RawPacket.from_bytes(data)
            packets.append(bytes(data))
            logger.debug("RX packet %d (len=%d, last=%s): %s",
                         len(packets), packet.length, packet.is_last, to_hex(data))
            if packet.is_last:
                break

        return DeviceFrame.from_packets(packets)

    def transact(
        self,
        command: bytes,
        timeout: float = DEFAULT_TIMEOUT,
        response_timeout: Optional[float] = None,
    ) -> DeviceFrame:
        """Send a command and receive its response."""
        self.send(command, timeout)
        return self.receive(timeout if response_timeout is None else response_timeout)
