"""
USB Communication
=================

- **packet**: Chunking of commands into HID reports and reassembly of
  multi-packet responses
- **device**: pyusb-backed transfers and the interface claim/release
  lifecycle
- **session**: The setup handshake and track read/write operations

Quick Start
-----------
    from msrx_tool.usb import DeviceSession

    with DeviceSession() as session:
        block = session.read_tracks(timeout=10)
        print(block.track1.text())

Thread Safety
-------------
Sessions are NOT thread-safe. Use one session from one thread, or guard
every call with an external lock.
"""

from msrx_tool.usb.device import UsbDevice
from msrx_tool.usb.packet import (
    MAX_CHUNK_PAYLOAD,
    PACKET_SIZE,
    DeviceFrame,
    PacketTransport,
    RawPacket,
    TransferPrimitive,
    split_command,
    to_hex,
)
from msrx_tool.usb.session import (
    Command,
    DeviceSession,
    Led,
    SessionState,
)

__all__ = [
    # Packets
    "MAX_CHUNK_PAYLOAD",
    "PACKET_SIZE",
    "DeviceFrame",
    "PacketTransport",
    "RawPacket",
    "TransferPrimitive",
    "split_command",
    "to_hex",
    # Device
    "UsbDevice",
    # Session
    "Command",
    "DeviceSession",
    "Led",
    "SessionState",
]
