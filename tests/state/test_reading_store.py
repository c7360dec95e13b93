"""Tests for reading snapshots and merges."""

from __future__ import annotations

import pytest

from sensorlink.state import (Acceleration, PartialReading, ReadingStore,
                              SensorReading)

from helpers.time import ManualClock


class TestSensorReadingDefaults:
    def test_defaults_match_resting_values(self) -> None:
        reading = SensorReading()

        assert reading.heart_rate == 72
        assert reading.temperature == 36.8
        assert reading.ecg == 950
        assert reading.spo2 == 98
        assert reading.acceleration == Acceleration(0.0, 0.0, 9.8)
        assert reading.acceleration_magnitude is None
        assert reading.steps == 0
        assert reading.status == "UNKNOWN"


class TestPartialReading:
    """Verify that partial readings overlay only what they specify."""

    def test_specified_lists_only_set_fields(self) -> None:
        partial = PartialReading(heart_rate=80, status="OK")

        assert partial.specified() == {"heart_rate": 80, "status": "OK"}
        assert not partial.is_empty()
        assert PartialReading().is_empty()

    def test_single_axis_keeps_other_axes(self) -> None:
        reading = SensorReading(acceleration=Acceleration(1.0, 2.0, 3.0))

        merged = PartialReading(accel_y=-4.0).apply_to(reading)

        assert merged.acceleration == Acceleration(1.0, -4.0, 3.0)

    def test_zero_values_are_applied(self) -> None:
        merged = PartialReading(steps=0, accel_z=0.0).apply_to(
            SensorReading(steps=10)
        )

        assert merged.steps == 0
        assert merged.acceleration.z == 0.0


class TestReadingStore:
    """Verify that merges swap whole snapshots and notify subscribers. Readers never see half-applied updates."""

    def test_empty_merge_is_identity(self) -> None:
        store = ReadingStore()
        seen: list[SensorReading] = []
        store.observe.subscribe(on_next=seen.append)
        before = store.reading

        assert store.merge(PartialReading()) is before
        assert store.reading is before
        assert store.updated_at is None
        assert seen == [before]

    def test_merge_replaces_snapshot_and_emits(self) -> None:
        clock = ManualClock(5.0)
        store = ReadingStore(clock=clock)
        seen: list[SensorReading] = []
        store.observe.subscribe(on_next=seen.append)
        before = store.reading

        merged = store.merge(PartialReading(heart_rate=90, temperature=37.5))

        assert merged is store.reading
        assert merged is not before
        assert before.heart_rate == 72
        assert (merged.heart_rate, merged.temperature) == (90, 37.5)
        assert seen == [before, merged]
        assert store.updated_at == 5.0

    def test_unchanged_values_refresh_without_emitting(self) -> None:
        clock = ManualClock()
        store = ReadingStore(clock=clock)
        seen: list[SensorReading] = []
        store.observe.subscribe(on_next=seen.append)

        clock.advance(3.0)
        store.merge(PartialReading(heart_rate=72))

        assert len(seen) == 1
        assert store.seconds_since_update() == 0.0

    def test_seconds_since_update(self) -> None:
        clock = ManualClock()
        store = ReadingStore(clock=clock)

        assert store.seconds_since_update() is None

        store.merge(PartialReading(spo2=95))
        clock.advance(1.25)

        assert store.seconds_since_update() == pytest.approx(1.25)

    def test_initial_snapshot(self) -> None:
        initial = SensorReading(status="OK")

        assert ReadingStore(initial).reading is initial
