from __future__ import annotations

from typing import Dict

import pytest

from hubbank.schedule.airport_dataset import AirportDataset
from hubbank.schedule.consolidation import build_hub_slots
from hubbank.schedule.domain_types import Direction, FlightRecord
from hubbank.sync.anchor_sync import AnchorState, AnchorSyncEngine
from hubbank.sync.manual_store import ManualBlockRepository


def _make_datasets() -> Dict[str, AirportDataset]:
    blr = AirportDataset.from_records(
        "BLR",
        [
            {"hub_time": "10:00", "arrival_port": "DXB", "arrival_airline": "EK", "arrival_flight_no": "EK564", "arrival_freq": "7"},
            {"hub_time": "11:00", "arrival_port": "DXB", "arrival_airline": "6E", "arrival_flight_no": "6E1456", "arrival_freq": "7"},
            {"hub_time": "12:00", "arrival_port": "LHR", "arrival_airline": "BA", "arrival_flight_no": "BA119", "arrival_freq": "7"},
        ],
    )
    dxb = AirportDataset.from_records(
        "DXB",
        [
            {"hub_time": "14:00", "departure_port": "BLR", "departure_airline": "EK", "departure_flight_no": "EK568"},
            {"hub_time": "07:00", "arrival_port": "LHR", "arrival_airline": "EK"},
        ],
    )
    return {"BLR": blr, "DXB": dxb}


def _make_engine():
    datasets = _make_datasets()
    repository = ManualBlockRepository()
    return AnchorSyncEngine(repository, datasets), repository, datasets


def _block(datasets, slot_index: int, port: str):
    slots = build_hub_slots(datasets["BLR"])
    return next(b for b in slots[slot_index].arrivals if b.flight.port_code == port)


def test_first_touch_anchors_and_creates_reciprocal_flight():
    engine, repository, datasets = _make_engine()
    placed = engine.manual_drop("BLR", 10, Direction.ARRIVAL, _block(datasets, 10, "DXB"), exact_time="10:45")

    assert placed.is_manual
    assert placed.id == "m-000001"
    assert placed.label == "DXB NEW"
    assert placed.hub_time_str == "10:45"
    assert placed.anchor_time_str == "10:00"

    synced = repository.store("DXB").flights()
    assert len(synced) == 1
    counterpart = synced[0]
    assert counterpart.direction is Direction.DEPARTURE
    assert counterpart.port_code == "BLR"
    assert counterpart.label == "BLR EK SYNC"
    assert counterpart.airline == "EK"
    assert counterpart.weekly_frequency == 7
    assert counterpart.anchor_time_str == "14:00"
    assert counterpart.hub_time_str == "14:45"
    assert engine.anchor_state("BLR", placed.id) is AnchorState.SYNCED


def test_retime_replays_delta_from_each_flights_own_anchor():
    engine, repository, datasets = _make_engine()
    placed = engine.manual_drop("BLR", 10, Direction.ARRIVAL, _block(datasets, 10, "DXB"), exact_time="10:45")

    retimed = engine.retime("BLR", placed.id, "09:30")
    assert retimed.anchor_time_str == "10:00"
    assert [f.id for f in repository.store("BLR").flights_in_slot(9, Direction.ARRIVAL)] == [placed.id]
    assert repository.store("BLR").flights_in_slot(10, Direction.ARRIVAL) == []

    dxb = repository.store("DXB")
    assert len(dxb) == 1
    counterpart = dxb.flights()[0]
    assert counterpart.hub_time_str == "13:30"
    assert counterpart.anchor_time_str == "14:00"
    assert dxb.flights_in_slot(13, Direction.DEPARTURE) == [counterpart]

    engine.retime("DXB", counterpart.id, "14:10")
    home = repository.store("BLR").find(placed.id)[2]
    assert home.hub_time_str == "10:10"


def test_no_reciprocal_flight_is_fabricated():
    engine, repository, datasets = _make_engine()
    engine.manual_drop("BLR", 12, Direction.ARRIVAL, _block(datasets, 12, "LHR"), exact_time="12:30")
    engine.manual_drop("BLR", 11, Direction.ARRIVAL, _block(datasets, 11, "DXB"), exact_time="11:20")

    assert "LHR" not in repository.hubs()
    assert len(repository.store("DXB")) == 0
    assert "DXB" not in repository.to_dict()
    assert len(repository.store("BLR")) == 2


def test_unrelated_flights_at_target_hub_are_preserved():
    engine, repository, datasets = _make_engine()
    unrelated = engine.create_manual_flight("DXB", "arr", "LHR", "07:05", label="LHR OPS", weekly_frequency=3)
    engine.manual_drop("BLR", 10, Direction.ARRIVAL, _block(datasets, 10, "DXB"), exact_time="10:15")

    dxb = repository.store("DXB")
    assert len(dxb) == 2
    assert dxb.find(unrelated.id)[2] == unrelated


def test_manual_labels_are_numbered_per_slot():
    engine, repository, datasets = _make_engine()
    block = _block(datasets, 10, "DXB")
    first = engine.manual_drop("BLR", 10, Direction.ARRIVAL, block)
    second = engine.manual_drop("BLR", 10, Direction.ARRIVAL, block)
    third = engine.manual_drop("BLR", 11, Direction.ARRIVAL, block)
    assert [first.label, second.label, third.label] == ["DXB NEW", "DXB NEW 2", "DXB NEW"]
    assert len({first.id, second.id, third.id}) == 3


def test_moving_a_manual_flight_keeps_identity_and_anchor():
    engine, repository, datasets = _make_engine()
    placed = engine.manual_drop("BLR", 10, Direction.ARRIVAL, _block(datasets, 10, "DXB"))
    moved = engine.manual_drop("BLR", 12, Direction.ARRIVAL, placed, from_slot=10)

    assert moved.id == placed.id
    assert moved.label == placed.label
    assert moved.anchor_time_str == "10:00"
    assert moved.hub_time_str == "12:00"
    store = repository.store("BLR")
    assert len(store) == 1
    assert store.flights_in_slot(12, Direction.ARRIVAL) == [moved]
    assert repository.store("DXB").flights()[0].hub_time_str == "16:00"


def test_anchor_falls_back_to_source_slot_without_import_row():
    engine, repository, _datasets = _make_engine()
    stray = FlightRecord(id="BLR:arr:SIN:07:40:XX", port_code="SIN", direction="arr", hub_time=460)
    placed = engine.manual_drop("BLR", 9, Direction.ARRIVAL, stray, from_slot=7)
    assert placed.anchor_time_str == "07:00"
    assert placed.hub_time_str == "09:00"
    assert engine.anchor_state("BLR", placed.id) is AnchorState.ANCHORED


def test_update_keeps_existing_anchor():
    engine, repository, datasets = _make_engine()
    placed = engine.manual_drop("BLR", 10, Direction.ARRIVAL, _block(datasets, 10, "DXB"))
    updated = engine.update_manual_flight(
        "BLR", 10, Direction.ARRIVAL, placed.with_changes(hub_time=615, original_anchor_time=None, weekly_frequency=4)
    )
    assert updated.anchor_time_str == "10:00"
    assert updated.weekly_frequency == 4
    assert repository.store("DXB").flights()[0].hub_time_str == "14:15"


def test_operator_created_flights_do_not_propagate():
    engine, repository, _datasets = _make_engine()
    created = engine.create_manual_flight("BLR", Direction.ARRIVAL, "DXB", "10:30", airline="EK")
    assert created.original_anchor_time is None
    assert created.is_manual
    assert len(repository.store("DXB")) == 0
    assert engine.anchor_state("BLR", created.id) is AnchorState.UNANCHORED


def test_delete_does_not_propagate():
    engine, repository, datasets = _make_engine()
    placed = engine.manual_drop("BLR", 10, Direction.ARRIVAL, _block(datasets, 10, "DXB"), exact_time="10:45")
    removed = engine.delete_manual_flight("BLR", placed.id)
    assert removed.id == placed.id
    assert len(repository.store("BLR")) == 0
    assert len(repository.store("DXB")) == 1
    assert engine.delete_manual_flight("BLR", placed.id) is None


def test_linked_flight_without_anchor_is_sealed_before_retiming():
    engine, repository, datasets = _make_engine()
    loose = engine.create_manual_flight("DXB", "dep", "BLR", "15:00", airline="EK", label="BLR EK")
    engine.manual_drop("BLR", 10, Direction.ARRIVAL, _block(datasets, 10, "DXB"), exact_time="10:20")

    linked = repository.store("DXB").find(loose.id)[2]
    assert linked.anchor_time_str == "15:00"
    assert linked.hub_time_str == "15:20"
    assert len(repository.store("DXB")) == 1


def test_anchor_comes_from_the_promoted_flights_own_import_row():
    datasets = {
        "BLR": AirportDataset.from_records(
            "BLR",
            [
                {"hub_time": "08:00", "arrival_port": "DXB", "arrival_airline": "EK", "arrival_flight_no": "EK564"},
                {"hub_time": "18:00", "arrival_port": "DXB", "arrival_airline": "EK", "arrival_flight_no": "EK568"},
            ],
        ),
        "DXB": AirportDataset.from_records(
            "DXB",
            [{"hub_time": "14:00", "departure_port": "BLR", "departure_airline": "EK"}],
        ),
    }
    repository = ManualBlockRepository()
    engine = AnchorSyncEngine(repository, datasets)
    evening = build_hub_slots(datasets["BLR"])[18].arrivals[0]

    placed = engine.manual_drop("BLR", 18, Direction.ARRIVAL, evening, exact_time="18:30")
    assert placed.flight_number == "EK568"
    assert placed.anchor_time_str == "18:00"
    assert repository.store("DXB").flights()[0].hub_time_str == "14:30"


def test_counterpart_row_lookup_narrows_by_flight_and_time():
    dataset = _make_datasets()["BLR"]
    assert dataset.find_counterpart_row("arr", "DXB").hub_time == "10:00"
    assert dataset.find_counterpart_row("arr", "DXB", flight_number="6e1456").hub_time == "11:00"
    assert dataset.find_counterpart_row("arr", "DXB", hub_minutes=660).hub_time == "11:00"
    assert dataset.find_counterpart_row("arr", "DXB", "EK", hub_minutes=660) is None


def test_retime_unknown_flight_raises():
    engine, _repository, _datasets = _make_engine()
    with pytest.raises(KeyError):
        engine.retime("BLR", "m-999999", "10:00")
