"""
Heart Rate Measurement decoder (GATT characteristic 0x2A37).

Payload layout:
    byte 0      flags
                  bit 0  heart rate width (0 = uint8, 1 = uint16 LE)
                  bit 1  sensor contact detected
                  bit 2  sensor contact supported
                  bit 3  energy expended present (uint16 LE, kJ)
                  bit 4  RR intervals present
    byte 1..    heart rate (1 or 2 bytes)
    ...         energy expended (2 bytes, if bit 3)
    ...         RR intervals, uint16 LE each, units of 1/1024 s (if bit 4)

Remaining flag bits are reserved and ignored.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from hrosc.config import RR_INTERVAL_RESOLUTION


FLAG_HR_UINT16 = 0x01
FLAG_CONTACT_DETECTED = 0x02
FLAG_CONTACT_SUPPORTED = 0x04
FLAG_ENERGY_EXPENDED = 0x08
FLAG_RR_INTERVALS = 0x10


class MalformedPayload(ValueError):
    """Raised when a notification is shorter than its flags promise."""


@dataclass(frozen=True)
class Measurement:
    """One decoded heart rate notification.

    Attributes:
        heart_rate: Heart rate in beats per minute
        intervals: Beat-to-beat intervals in seconds, in wire order
        sensor_contact: Contact state, None if the device can't report it
        energy_expended: Cumulative energy in kJ, None if not present
    """
    heart_rate: int
    intervals: Tuple[float, ...] = ()
    sensor_contact: Optional[bool] = None
    energy_expended: Optional[int] = None


def _read_uint16(data: bytes, offset: int, field_name: str) -> int:
    if len(data) < offset + 2:
        raise MalformedPayload(
            f"Payload too short for {field_name}: need {offset + 2} bytes, got {len(data)}"
        )
    return data[offset] | (data[offset + 1] << 8)


def decode_measurement(data: bytes) -> Measurement:
    """Decode a raw 0x2A37 notification payload.

    Args:
        data: Notification bytes (bytes, bytearray or memoryview)

    Returns:
        Measurement with heart rate and zero or more intervals

    Raises:
        MalformedPayload: If the payload is empty or truncated, or if the
            interval flag is set with no samples or an odd byte count

    Examples:
        >>> decode_measurement(bytes([0x00, 72]))
        Measurement(heart_rate=72, intervals=(), sensor_contact=None, energy_expended=None)
        >>> decode_measurement(bytes([0x10, 72, 0x00, 0x04, 0x00, 0x08])).intervals
        (1.0, 2.0)
    """
    data = bytes(data)
    if not data:
        raise MalformedPayload("Empty payload")

    flags = data[0]
    offset = 1

    if flags & FLAG_HR_UINT16:
        heart_rate = _read_uint16(data, offset, "16-bit heart rate")
        offset += 2
    else:
        if len(data) < offset + 1:
            raise MalformedPayload("Payload too short for 8-bit heart rate")
        heart_rate = data[offset]
        offset += 1

    sensor_contact = None
    if flags & FLAG_CONTACT_SUPPORTED:
        sensor_contact = bool(flags & FLAG_CONTACT_DETECTED)

    energy_expended = None
    if flags & FLAG_ENERGY_EXPENDED:
        energy_expended = _read_uint16(data, offset, "energy expended")
        offset += 2

    intervals = []
    if flags & FLAG_RR_INTERVALS:
        remaining = len(data) - offset
        if remaining == 0:
            raise MalformedPayload("RR interval flag set but no samples follow")
        if remaining % 2:
            raise MalformedPayload(
                f"Odd number of RR interval bytes: {remaining}"
            )
        for i in range(offset, len(data), 2):
            raw = data[i] | (data[i + 1] << 8)
            intervals.append(raw / RR_INTERVAL_RESOLUTION)

    return Measurement(
        heart_rate=heart_rate,
        intervals=tuple(intervals),
        sensor_contact=sensor_contact,
        energy_expended=energy_expended,
    )


def encode_measurement(heart_rate: int, intervals=(), uint16: bool = False,
                       sensor_contact: Optional[bool] = None,
                       energy_expended: Optional[int] = None) -> bytes:
    """Build a 0x2A37 payload; inverse of decode_measurement.

    Intervals are given in seconds and rounded to the nearest 1/1024 s.

    Raises:
        ValueError: If a field does not fit its wire width
    """
    flags = 0
    body = bytearray()

    if uint16 or heart_rate > 0xFF:
        flags |= FLAG_HR_UINT16
        if not 0 <= heart_rate <= 0xFFFF:
            raise ValueError(f"Heart rate out of uint16 range: {heart_rate}")
        body += heart_rate.to_bytes(2, 'little')
    else:
        if heart_rate < 0:
            raise ValueError(f"Heart rate must be non-negative: {heart_rate}")
        body.append(heart_rate)

    if sensor_contact is not None:
        flags |= FLAG_CONTACT_SUPPORTED
        if sensor_contact:
            flags |= FLAG_CONTACT_DETECTED

    if energy_expended is not None:
        flags |= FLAG_ENERGY_EXPENDED
        body += min(max(int(energy_expended), 0), 0xFFFF).to_bytes(2, 'little')

    if intervals:
        flags |= FLAG_RR_INTERVALS
        for seconds in intervals:
            raw = int(round(seconds * RR_INTERVAL_RESOLUTION))
            if not 0 <= raw <= 0xFFFF:
                raise ValueError(f"RR interval out of range: {seconds}s")
            body += raw.to_bytes(2, 'little')

    return bytes([flags]) + bytes(body)
