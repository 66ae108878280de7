"""
Wire codec for Report records.

One Report is carried as one UTF-8 JSON object:

    {"deviceId": str, "timestamp": int, "latitude": float,
     "longitude": float, "altitude": float, "accuracy": float,
     "measurements": [{"svid": int, "carrierFreq": float,
                       "prRate": float, "cn0": float}, ...]}

Encoding is deterministic (fixed key order, compact separators). Floats are
written with their shortest repr so every IEEE-754 double round-trips exactly.
Anything malformed raises DecodeError and nothing else.
"""

import json
import logging
import math
from typing import Any, Dict

from cpm_core.exceptions import DecodeError, EncodeError
from .report import Report, SatelliteMeasurement

logger = logging.getLogger(__name__)

ENCODING = 'utf-8'


def report_to_dict(report: Report) -> Dict[str, Any]:
    """
    Map a Report onto wire field names.

    Args:
        report: Report to convert

    Returns:
        Dict with wire keys, in wire order
    """
    return {
        'deviceId': report.device_id,
        'timestamp': int(report.timestamp),
        'latitude': float(report.latitude),
        'longitude': float(report.longitude),
        'altitude': float(report.altitude),
        'accuracy': float(report.accuracy),
        'measurements': [
            {
                'svid': int(m.svid),
                'carrierFreq': float(m.carrier_frequency_hz),
                'prRate': float(m.pseudorange_rate_mps),
                'cn0': float(m.cn0_dbhz),
            }
            for m in report.measurements
        ],
    }


def encode(report: Report) -> bytes:
    """
    Serialize a Report to its wire record.

    Args:
        report: Report to encode

    Returns:
        UTF-8 JSON bytes

    Raises:
        EncodeError: If the report has no device id
    """
    if not report.device_id:
        raise EncodeError("Report has no device id")

    return json.dumps(
        report_to_dict(report),
        separators=(',', ':'),
        ensure_ascii=False,
    ).encode(ENCODING)


def decode(data: bytes) -> Report:
    """
    Parse a wire record into a Report.

    Args:
        data: UTF-8 JSON bytes

    Returns:
        Decoded Report

    Raises:
        DecodeError: If the record is not well-formed, a required field is
            missing, or a numeric field cannot be parsed
    """
    try:
        obj = json.loads(data.decode(ENCODING))
    except UnicodeDecodeError as e:
        raise DecodeError(f"Record is not valid UTF-8: {e}") from e
    except ValueError as e:
        raise DecodeError(f"Record is not valid JSON: {e}") from e
    except RecursionError as e:
        raise DecodeError("Record is nested too deeply") from e

    if not isinstance(obj, dict):
        raise DecodeError(f"Record must be a JSON object, got {type(obj).__name__}")

    device_id = _require(obj, 'deviceId')
    if not isinstance(device_id, str) or not device_id:
        raise DecodeError("Field 'deviceId' must be a non-empty string")

    raw_measurements = _require(obj, 'measurements')
    if not isinstance(raw_measurements, list):
        raise DecodeError("Field 'measurements' must be an array")

    measurements = []
    for index, item in enumerate(raw_measurements):
        if not isinstance(item, dict):
            raise DecodeError(f"Measurement {index} must be an object")
        measurements.append(SatelliteMeasurement(
            svid=_parse_int(item, 'svid'),
            carrier_frequency_hz=_parse_float(item, 'carrierFreq'),
            pseudorange_rate_mps=_parse_float(item, 'prRate'),
            cn0_dbhz=_parse_float(item, 'cn0'),
        ))

    return Report(
        device_id=device_id,
        timestamp=_parse_int(obj, 'timestamp'),
        latitude=_parse_float(obj, 'latitude'),
        longitude=_parse_float(obj, 'longitude'),
        altitude=_parse_float(obj, 'altitude'),
        accuracy=_parse_float(obj, 'accuracy'),
        measurements=tuple(measurements),
    )


def _require(obj: Dict[str, Any], key: str) -> Any:
    if key not in obj or obj[key] is None:
        raise DecodeError(f"Missing required field '{key}'")
    return obj[key]


def _parse_float(obj: Dict[str, Any], key: str) -> float:
    value = _require(obj, key)
    # bool is an int subclass but never a valid measurement
    if isinstance(value, bool):
        raise DecodeError(f"Field '{key}' must be numeric, got bool")
    if not isinstance(value, (int, float, str)):
        raise DecodeError(f"Field '{key}' is not a number: {value!r}")
    try:
        number = float(value)
    except (ValueError, OverflowError):
        raise DecodeError(f"Field '{key}' is not a number: {value!r}") from None
    # inf and nan would poison every distance computed against this report
    if not math.isfinite(number):
        raise DecodeError(f"Field '{key}' is not finite: {value!r}")
    return number


def _parse_int(obj: Dict[str, Any], key: str) -> int:
    value = _require(obj, key)
    if isinstance(value, bool):
        raise DecodeError(f"Field '{key}' must be an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    raise DecodeError(f"Field '{key}' is not an integer: {value!r}")
