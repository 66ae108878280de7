"""
Unit tests for the wire codec.

Tests cover:
- Round trip of every field, including zero measurements
- Deterministic encoding and wire field names
- Defensive decoding of malformed records
- Encode contract for reports without a device id
"""

import json

import pytest

from cpm_core.exceptions import CodecError, DecodeError, EncodeError
from cpm_core.proto import Report, SatelliteMeasurement, decode, encode


def wire_record(**overrides) -> bytes:
    """Well-formed wire record with optional field overrides (None removes)."""
    record = {
        "deviceId": "dev-1",
        "timestamp": 1700000000000,
        "latitude": 22.29,
        "longitude": 114.17,
        "altitude": 2.0,
        "accuracy": 3.0,
        "measurements": [{"svid": 5, "carrierFreq": 0.0, "prRate": 1.5, "cn0": 35.0}],
    }
    for key, value in overrides.items():
        if value is None:
            record.pop(key, None)
        else:
            record[key] = value
    return json.dumps(record).encode('utf-8')


class TestRoundTrip:
    """decode(encode(r)) == r."""

    def test_round_trip_with_measurements(self, sample_report):
        """Every field survives, floats exactly."""
        decoded = decode(encode(sample_report))

        assert decoded == sample_report
        assert decoded.measurements[2].pseudorange_rate_mps == 0.1 + 0.2

    def test_round_trip_zero_measurements(self):
        """Empty measurement list is valid."""
        report = Report("lonely", 42, -33.8688, 151.2093, -5.0, 12.5, ())

        decoded = decode(encode(report))

        assert decoded == report
        assert decoded.measurements == ()

    def test_measurement_order_preserved(self):
        """Measurements come back in input order, not sorted."""
        measurements = [SatelliteMeasurement(svid, 0.0, float(svid), 30.0) for svid in (9, 2, 31, 2)]
        report = Report("ordered", 1, 0.0, 0.0, 0.0, 1.0, measurements)

        decoded = decode(encode(report))

        assert [m.svid for m in decoded.measurements] == [9, 2, 31, 2]

    def test_extreme_doubles(self):
        """Subnormal and large doubles round-trip exactly."""
        report = Report("edge", 2**53, 5e-324, -179.99999999999997, 1.7976931348623157e308, 0.0)

        assert decode(encode(report)) == report


class TestEncode:
    """Encoding format and contract."""

    def test_wire_field_names(self, sample_report):
        """Record uses the documented keys."""
        obj = json.loads(encode(sample_report).decode('utf-8'))

        assert set(obj) == {
            "deviceId", "timestamp", "latitude", "longitude",
            "altitude", "accuracy", "measurements",
        }
        assert set(obj["measurements"][0]) == {"svid", "carrierFreq", "prRate", "cn0"}
        assert obj["deviceId"] == sample_report.device_id

    def test_deterministic(self, sample_report):
        """Equal reports encode to identical bytes."""
        copy = Report(**{f: getattr(sample_report, f) for f in sample_report.__dataclass_fields__})

        assert encode(copy) == encode(sample_report)

    def test_list_measurements_frozen(self):
        """A list given to Report is stored as a tuple."""
        report = Report("d", 1, 0.0, 0.0, 0.0, 1.0, [SatelliteMeasurement(1, 0.0, 0.0, 0.0)])

        assert isinstance(report.measurements, tuple)

    @pytest.mark.parametrize("device_id", ["", None])
    def test_missing_device_id_raises(self, device_id):
        """EncodeError for a report without an id."""
        report = Report(device_id, 1, 0.0, 0.0, 0.0, 1.0)

        with pytest.raises(EncodeError):
            encode(report)


class TestDecodeErrors:
    """Every malformed record raises DecodeError and nothing else."""

    @pytest.mark.parametrize("payload", [
        b"",
        b"not json",
        b"{\"deviceId\": ",
        b"[1, 2, 3]",
        b"\"just a string\"",
        b"\xff\xfe\x00garbage",
    ])
    def test_not_well_formed(self, payload):
        with pytest.raises(DecodeError):
            decode(payload)

    @pytest.mark.parametrize("field", [
        "deviceId", "timestamp", "latitude", "longitude", "altitude", "accuracy", "measurements",
    ])
    def test_missing_required_field(self, field):
        with pytest.raises(DecodeError, match=field):
            decode(wire_record(**{field: None}))

    @pytest.mark.parametrize("field,value", [
        ("latitude", "north"),
        ("timestamp", "yesterday"),
        ("timestamp", 1.5),
        ("accuracy", True),
        ("altitude", {"m": 2}),
        ("deviceId", 17),
        ("deviceId", ""),
        ("measurements", {"svid": 1}),
    ])
    def test_bad_field_value(self, field, value):
        with pytest.raises(DecodeError):
            decode(wire_record(**{field: value}))

    @pytest.mark.parametrize("payload", [
        b"[" * 60000,
        b"[" * 5000 + b"]" * 5000,
        b'{"deviceId": "d", "measurements": ' + b"[" * 60000,
    ])
    def test_deep_nesting(self, payload):
        """Nesting that exhausts the parser's recursion limit is a DecodeError."""
        with pytest.raises(DecodeError):
            decode(payload)

    @pytest.mark.parametrize("field,value", [
        ("latitude", float("inf")),
        ("longitude", float("-inf")),
        ("altitude", float("nan")),
        ("latitude", "inf"),
        ("accuracy", "NaN"),
        ("latitude", 10 ** 400),
    ])
    def test_non_finite_numbers(self, field, value):
        with pytest.raises(DecodeError, match=field):
            decode(wire_record(**{field: value}))

    def test_non_finite_measurement(self):
        measurement = {"svid": 1, "carrierFreq": 0.0, "prRate": float("inf"), "cn0": 30.0}

        with pytest.raises(DecodeError, match="prRate"):
            decode(wire_record(measurements=[measurement]))

    def test_overflowing_literal(self):
        payload = wire_record().replace(b'"latitude": 22.29', b'"latitude": 1e999')

        with pytest.raises(DecodeError, match="latitude"):
            decode(payload)

    def test_huge_integer_literal(self):
        """More digits than int() will parse, or a value no float can hold."""
        payload = wire_record().replace(b'"latitude": 22.29', b'"latitude": 1' + b"0" * 5000)

        with pytest.raises(DecodeError):
            decode(payload)

    def test_bad_measurement(self):
        with pytest.raises(DecodeError, match="prRate"):
            decode(wire_record(measurements=[{"svid": 1, "carrierFreq": 0.0, "cn0": 30.0}]))

        with pytest.raises(DecodeError):
            decode(wire_record(measurements=["svid=1"]))

    def test_decode_error_is_codec_error(self):
        """Callers can catch the codec family as a whole."""
        with pytest.raises(CodecError):
            decode(b"{}")


class TestDecodeLenient:
    """Numeric strings and integral floats are coerced."""

    def test_numeric_strings_parsed(self):
        report = decode(wire_record(latitude="22.5", timestamp="1700000000001"))

        assert report.latitude == 22.5
        assert report.timestamp == 1700000000001

    def test_integer_floats(self):
        report = decode(wire_record(latitude=22, timestamp=1700000000000.0))

        assert report.latitude == 22.0
        assert isinstance(report.timestamp, int)

    def test_unknown_fields_ignored(self):
        data = json.loads(wire_record())
        data["extra"] = "ignored"

        report = decode(json.dumps(data).encode('utf-8'))

        assert report.device_id == "dev-1"
