"""Line grammars spoken by the serial sensor bridge.

Each line is either a flat ``KEY:VALUE,KEY:VALUE`` list or a single JSON
object. The form is picked from the first non-whitespace character and the
result is always a :class:`PartialReading` holding only the fields the line
actually carried.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable, Mapping

from sensorlink.errors import DecodeError
from sensorlink.state.reading import PartialReading


class LineForm(StrEnum):
    FLAT = "flat"
    OBJECT = "object"


def _round_half_up(value: float) -> int | None:
    shifted = value + 0.5
    if not math.isfinite(shifted):
        return None
    return math.floor(shifted)


def _round_tenth(value: float) -> float | None:
    scaled = _round_half_up(value * 10)
    return None if scaled is None else scaled / 10


@dataclass(frozen=True, slots=True)
class FieldRule:
    target: str
    convert: Callable[[float], Any]


FLAT_SYMBOLS: Mapping[str, FieldRule] = {
    "HR": FieldRule("heart_rate", _round_half_up),
    "BPM": FieldRule("heart_rate", _round_half_up),
    "TEMP": FieldRule("temperature", _round_tenth),
    "AX": FieldRule("accel_x", float),
    "AY": FieldRule("accel_y", float),
    "AZ": FieldRule("accel_z", float),
    "ECG": FieldRule("ecg", _round_half_up),
    "SPO2": FieldRule("spo2", _round_half_up),
    "STEPS": FieldRule("steps", _round_half_up),
}

OBJECT_NUMERIC_KEYS: Mapping[str, FieldRule] = {
    "temp": FieldRule("temperature", _round_tenth),
    "bpm": FieldRule("heart_rate", _round_half_up),
    "steps": FieldRule("steps", _round_half_up),
    "ecg": FieldRule("ecg", _round_half_up),
    "spo2": FieldRule("spo2", _round_half_up),
}

_AXIS_TARGETS = {"x": "accel_x", "y": "accel_y", "z": "accel_z"}


def detect_form(line: str) -> LineForm:
    return LineForm.OBJECT if line.lstrip().startswith("{") else LineForm.FLAT


def coerce_number(raw: object) -> float | None:
    """Return ``raw`` as a finite float, or ``None`` when it is not numeric."""

    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        try:
            value = float(raw)
        except OverflowError:
            return None
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def _apply(values: dict[str, Any], rule: FieldRule, raw: object) -> None:
    number = coerce_number(raw)
    if number is None:
        return
    converted = rule.convert(number)
    if converted is not None:
        values[rule.target] = converted


def decode_flat(line: str) -> PartialReading:
    values: dict[str, Any] = {}
    saw_pair = False
    for segment in line.split(","):
        key, separator, raw = segment.partition(":")
        if not separator:
            continue
        saw_pair = True
        rule = FLAT_SYMBOLS.get(key.strip().upper())
        if rule is None:
            continue
        _apply(values, rule, raw)

    if not saw_pair:
        raise DecodeError(line, "no KEY:VALUE pairs")
    return PartialReading(**values)


def decode_object(line: str) -> PartialReading:
    try:
        payload = json.loads(line)
    except (ValueError, RecursionError) as exc:
        raise DecodeError(line, "malformed JSON object") from exc
    if not isinstance(payload, dict):
        raise DecodeError(line, "expected a JSON object")

    values: dict[str, Any] = {}
    for key, rule in OBJECT_NUMERIC_KEYS.items():
        _apply(values, rule, payload.get(key))

    accel = payload.get("accel")
    if isinstance(accel, dict):
        for axis, target in _AXIS_TARGETS.items():
            number = coerce_number(accel.get(axis))
            if number is not None:
                values[target] = number
    else:
        magnitude = coerce_number(accel)
        if magnitude is not None:
            values["acceleration_magnitude"] = magnitude

    status = payload.get("status")
    if isinstance(status, str):
        values["status"] = status

    return PartialReading(**values)


def decode_line(line: str) -> PartialReading | None:
    """Decode one line; blank lines return ``None`` and broken ones raise :class:`DecodeError`."""

    stripped = line.strip()
    if not stripped:
        return None
    if detect_form(stripped) is LineForm.OBJECT:
        return decode_object(stripped)
    return decode_flat(stripped)
