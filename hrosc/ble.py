"""Bluetooth LE heart rate peripheral connection (Heart Rate Service 0x180D)."""

import asyncio
from typing import Callable, Optional

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.exc import BleakError

from hrosc.config import RECONNECT_DELAY_S
from hrosc.log import get_logger

logger = get_logger(__name__)

HEART_RATE_SERVICE_UUID = "0000180d-0000-1000-8000-00805f9b34fb"
HEART_RATE_MEASUREMENT_UUID = "00002a37-0000-1000-8000-00805f9b34fb"

SCAN_TIMEOUT_S = 10.0


class HeartRateMonitor:
    """Keeps a heart rate peripheral subscribed, reconnecting until stopped.

    Notifications are passed untouched to on_notification(sender, data), which
    runs on the asyncio loop and must return quickly.

    Args:
        on_notification: bleak notification callback
        device_name: Case-insensitive substring of the advertised name
        address: Explicit device address (takes precedence over name)
        reconnect_delay_s: Wait before the next scan/connect attempt
        scan_timeout_s: Duration of each scan
    """

    def __init__(self, on_notification: Callable[[object, bytearray], object],
                 device_name: Optional[str] = None, address: Optional[str] = None,
                 reconnect_delay_s: float = RECONNECT_DELAY_S,
                 scan_timeout_s: float = SCAN_TIMEOUT_S):
        self.on_notification = on_notification
        self.device_name = device_name
        self.address = address
        self.reconnect_delay_s = reconnect_delay_s
        self.scan_timeout_s = scan_timeout_s

        self.client: Optional[BleakClient] = None
        self._stop_event: Optional[asyncio.Event] = None

    def matches(self, device: BLEDevice, service_uuids) -> bool:
        """Whether a scanned device is the heart rate peripheral we want."""
        if self.device_name:
            return self.device_name.lower() in (device.name or "").lower()
        return HEART_RATE_SERVICE_UUID in [u.lower() for u in (service_uuids or [])]

    async def find_device(self) -> Optional[BLEDevice]:
        """Scan for the configured device.

        Returns:
            Matching device, or None if nothing was found before the timeout
        """
        if self.address:
            return await BleakScanner.find_device_by_address(self.address, timeout=self.scan_timeout_s)

        found = await BleakScanner.discover(timeout=self.scan_timeout_s, return_adv=True)
        for device, advertisement in found.values():
            if self.matches(device, advertisement.service_uuids):
                return device
        return None

    async def _session(self, device: BLEDevice) -> None:
        """Connect, subscribe, and wait until disconnected or stopped."""
        disconnected = asyncio.Event()

        def on_disconnect(_client):
            disconnected.set()

        async with BleakClient(device, disconnected_callback=on_disconnect) as client:
            self.client = client
            logger.info(f"Connected to {device.name or 'heart rate device'} ({device.address})")

            await client.start_notify(HEART_RATE_MEASUREMENT_UUID, self.on_notification)
            logger.info("Subscribed to heart rate notifications")

            waiters = {
                asyncio.ensure_future(disconnected.wait()),
                asyncio.ensure_future(self._stop_event.wait()),
            }
            try:
                await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for waiter in waiters:
                    waiter.cancel()

            if client.is_connected:
                try:
                    await client.stop_notify(HEART_RATE_MEASUREMENT_UUID)
                except (BleakError, OSError) as e:
                    # Device may already be gone
                    logger.debug(f"stop_notify failed: {e}")

        self.client = None
        if disconnected.is_set() and not self._stop_event.is_set():
            logger.warning("Heart rate device disconnected")

    async def run(self) -> None:
        """Scan, connect and stay subscribed until stop() is called."""
        self._stop_event = asyncio.Event()

        while not self._stop_event.is_set():
            try:
                device = await self.find_device()
                if device is None:
                    logger.info("No heart rate device found, retrying...")
                else:
                    await self._session(device)
            except (BleakError, OSError, asyncio.TimeoutError) as e:
                logger.warning(f"BLE connection error: {e}")
                self.client = None

            if self._stop_event.is_set():
                break
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.reconnect_delay_s)
            except asyncio.TimeoutError:
                pass

        logger.info("Heart rate monitor stopped")

    def stop(self) -> None:
        """Request shutdown. Must be called from the monitor's event loop."""
        if self._stop_event is not None:
            self._stop_event.set()
