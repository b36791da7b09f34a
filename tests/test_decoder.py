"""
Tests for Heart Rate Measurement decoding

Covers heart rate width selection, RR interval extraction, the optional
energy expended field, sensor contact bits and truncated payloads.
"""

import pytest

from hrosc.decoder import (
    MalformedPayload,
    Measurement,
    decode_measurement,
    encode_measurement,
)


class TestHeartRateWidth:
    """Flags bit 0 selects 8-bit or 16-bit heart rate."""

    def test_uint8_heart_rate(self):
        m = decode_measurement(bytes([0x00, 72]))

        assert m.heart_rate == 72
        assert m.intervals == ()

    def test_uint16_heart_rate_little_endian(self):
        m = decode_measurement(bytes([0x01, 0x48, 0x00]))

        assert m.heart_rate == 72
        assert m.intervals == ()

    def test_uint16_high_byte_used(self):
        m = decode_measurement(bytes([0x01, 0x2C, 0x01]))

        assert m.heart_rate == 300

    def test_accepts_bytearray(self):
        """bleak hands notifications over as bytearray."""
        m = decode_measurement(bytearray([0x00, 60]))

        assert m.heart_rate == 60


class TestRRIntervals:
    """Flags bit 4 marks trailing RR samples in 1/1024 s."""

    def test_two_intervals_in_wire_order(self):
        m = decode_measurement(bytes([0x10, 72, 0x00, 0x04, 0x00, 0x08]))

        assert m.heart_rate == 72
        assert m.intervals == (1.0, 2.0)

    def test_intervals_after_uint16_heart_rate(self):
        m = decode_measurement(bytes([0x11, 0x48, 0x00, 0x00, 0x04]))

        assert m.heart_rate == 72
        assert m.intervals == (1.0,)

    def test_fractional_interval(self):
        # 820 / 1024 = 0.80078125
        m = decode_measurement(bytes([0x10, 75, 0x34, 0x03]))

        assert m.intervals == (820 / 1024,)

    def test_flag_set_without_samples(self):
        with pytest.raises(MalformedPayload, match="no samples"):
            decode_measurement(bytes([0x10, 72]))

    def test_flag_set_without_samples_after_energy(self):
        with pytest.raises(MalformedPayload):
            decode_measurement(bytes([0x18, 72, 0x02, 0x01]))

    def test_trailing_bytes_ignored_without_flag(self):
        m = decode_measurement(bytes([0x00, 72, 0x00, 0x04]))

        assert m.intervals == ()

    def test_energy_expended_skipped_before_intervals(self):
        # flags: energy (bit 3) + RR (bit 4); energy = 0x0102 = 258
        m = decode_measurement(bytes([0x18, 72, 0x02, 0x01, 0x00, 0x04]))

        assert m.energy_expended == 258
        assert m.intervals == (1.0,)


class TestSensorContact:

    def test_contact_not_supported(self):
        assert decode_measurement(bytes([0x00, 72])).sensor_contact is None

    def test_contact_supported_not_detected(self):
        assert decode_measurement(bytes([0x04, 72])).sensor_contact is False

    def test_contact_detected(self):
        assert decode_measurement(bytes([0x06, 72])).sensor_contact is True

    def test_reserved_bits_ignored(self):
        m = decode_measurement(bytes([0xE0, 72]))

        assert m == Measurement(heart_rate=72)


class TestMalformedPayloads:

    def test_empty_payload(self):
        with pytest.raises(MalformedPayload):
            decode_measurement(b"")

    def test_missing_uint8_heart_rate(self):
        with pytest.raises(MalformedPayload):
            decode_measurement(bytes([0x00]))

    def test_truncated_uint16_heart_rate(self):
        with pytest.raises(MalformedPayload):
            decode_measurement(bytes([0x01, 0x48]))

    def test_odd_interval_bytes(self):
        with pytest.raises(MalformedPayload):
            decode_measurement(bytes([0x10, 72, 0x00, 0x04, 0x00]))

    def test_truncated_energy_field(self):
        with pytest.raises(MalformedPayload):
            decode_measurement(bytes([0x08, 72, 0x01]))

    def test_malformed_is_value_error(self):
        """Callers catching ValueError also catch decode failures."""
        assert issubclass(MalformedPayload, ValueError)


class TestEncodeMeasurement:
    """encode_measurement builds payloads for the emulator."""

    def test_matches_reference_payload(self):
        assert encode_measurement(72, [1.0, 2.0]) == bytes([0x10, 72, 0x00, 0x04, 0x00, 0x08])

    def test_large_heart_rate_switches_to_uint16(self):
        payload = encode_measurement(300)

        assert payload[0] & 0x01
        assert decode_measurement(payload).heart_rate == 300

    def test_contact_and_energy_flags(self):
        m = decode_measurement(encode_measurement(80, [0.75], sensor_contact=True, energy_expended=12))

        assert m.sensor_contact is True
        assert m.energy_expended == 12
        assert m.intervals == (0.75,)

    def test_interval_out_of_wire_range(self):
        with pytest.raises(ValueError):
            encode_measurement(72, [100.0])
