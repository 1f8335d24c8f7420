"""
USB Device Access
=================

This module wraps pyusb to give PacketTransport the two blocking transfers
it needs, and handles the device lifecycle around a session:

1. Find the reader by vendor/product ID
2. Detach the kernel HID driver from the interface (Linux)
3. Claim the interface
4. ... session runs ...
5. Release the interface
6. Re-attach the kernel driver

Errors raised by pyusb are translated into DeviceError (or
DeviceTimeoutError for timeouts) so callers never deal with usb.core
exceptions directly.

Permissions
-----------
On Linux the reader is usually only accessible to root. Add a udev rule
such as:

    SUBSYSTEM=="usb", ATTR{idVendor}=="0801", ATTR{idProduct}=="0003", MODE="0666"
"""

import errno
import logging
from typing import Any, Optional

import usb.core
import usb.util

from msrx_tool.config import DeviceConfig
from msrx_tool.errors import DeviceError, DeviceNotFoundError, DeviceTimeoutError

logger = logging.getLogger(__name__)


def _seconds_to_ms(timeout: float) -> int:
    return max(int(timeout * 1000), 1)


def _is_timeout(error: usb.core.USBError) -> bool:
    if isinstance(error, usb.core.USBTimeoutError):
        return True
    # Older backends report a plain USBError with ETIMEDOUT
    return getattr(error, "errno", None) == errno.ETIMEDOUT


def _translate(error: usb.core.USBError, action: str) -> DeviceError:
    if _is_timeout(error):
        return DeviceTimeoutError(f"{action} timed out", cause=error)
    if getattr(error, "errno", None) == errno.EACCES:
        return DeviceError(
            f"{action} failed: permission denied. "
            "Run as root or add a udev rule for the reader.",
            cause=error,
        )
    return DeviceError(f"{action} failed: {error}", cause=error)


class UsbDevice:
    """
    A claimed MSR reader.

    Implements the transfer primitive used by PacketTransport. Use open()
    and close(), or the instance as a context manager.

    Attributes:
        config: Device profile supplying IDs and interface number
    """

    def __init__(self, config: DeviceConfig, device: Optional[Any] = None):
        self.config = config
        self._device = device
        self._claimed = False
        self._detached_kernel_driver = False

    @property
    def is_open(self) -> bool:
        return self._claimed

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> None:
        """
        Find the reader, detach the kernel driver and claim the interface.

        Raises:
            DeviceNotFoundError: If no device matches the configured IDs
            DeviceError: If the interface cannot be claimed
        """
        if self._claimed:
            return

        config = self.config
        if self._device is None:
            try:
                self._device = usb.core.find(
                    idVendor=config.vendor_id, idProduct=config.product_id
                )
            except usb.core.NoBackendError as e:
                raise DeviceError(
                    "No USB backend available. Install libusb.", cause=e
                ) from e
            if self._device is None:
                raise DeviceNotFoundError(config.vendor_id, config.product_id)

        interface = config.interface
        try:
            if self._device.is_kernel_driver_active(interface):
                self._device.detach_kernel_driver(interface)
                self._detached_kernel_driver = True
                logger.debug("Detached kernel driver from interface %d", interface)
        except NotImplementedError:
            # Not supported on this platform
            pass
        except usb.core.USBError as e:
            raise _translate(e, "detaching kernel driver") from e

        try:
            usb.util.claim_interface(self._device, interface)
        except usb.core.USBError as e:
            raise _translate(e, "claiming interface") from e

        self._claimed = True
        logger.info(
            "Opened reader %04x:%04x (interface %d)",
            config.vendor_id, config.product_id, interface,
        )

    def close(self) -> None:
        """
        Release the interface and give the device back to the kernel.

        Failures are logged, never raised, so close() is safe in finally
        blocks.
        """
        if self._device is None:
            return

        interface = self.config.interface
        if self._claimed:
            try:
                usb.util.release_interface(self._device, interface)
            except usb.core.USBError as e:
                logger.warning("Error releasing interface %d: %s", interface, e)
            self._claimed = False

        if self._detached_kernel_driver:
            try:
                self._device.attach_kernel_driver(interface)
                logger.debug("Re-attached kernel driver to interface %d", interface)
            except (usb.core.USBError, NotImplementedError) as e:
                logger.warning("Error re-attaching kernel driver: %s", e)
            self._detached_kernel_driver = False

        try:
            usb.util.dispose_resources(self._device)
        except usb.core.USBError as e:
            logger.warning("Error disposing USB resources: %s", e)

        logger.info("Released reader")

    def __enter__(self) -> "UsbDevice":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    def control_write(
        self,
        request_type: int,
        request: int,
        value: int,
        index: int,
        data: bytes,
        timeout: float,
    ) -> None:
        if self._device is None:
            raise DeviceError("device is not open")
        try:
            self._device.ctrl_transfer(
                request_type,
                request,
                wValue=value,
                wIndex=index,
                data_or_wLength=data,
                timeout=_seconds_to_ms(timeout),
            )
        except usb.core.USBError as e:
            raise _translate(e, "control transfer") from e

    def interrupt_read(self, endpoint: int, size: int, timeout: float) -> bytes:
        if self._device is None:
            raise DeviceError("device is not open")
        try:
            data = self._device.read(endpoint, size, timeout=_seconds_to_ms(timeout))
        except usb.core.USBError as e:
            raise _translate(e, "interrupt read") from e
        return bytes(data)
