from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import pytest

from hubbank.connect.matcher import ConnectionMatcher
from hubbank.connect.synergy import (
    SynergyAggregator,
    filter_by_market,
    safe_ratio,
    synergy_score,
    two_way_dataframe,
)
from hubbank.schedule.clock import parse_clock
from hubbank.schedule.consolidation import consolidate
from hubbank.schedule.domain_types import Direction, FlightRecord, HubSlot, MarketSegment, Region
from hubbank.schedule.reference_data import DEFAULT_REFERENCE


def _flight(
    fid: str,
    port: str,
    direction: str,
    clock: str,
    freq: int = 7,
    flight_no: str | None = None,
    manual: bool = False,
) -> FlightRecord:
    return FlightRecord(
        id=fid,
        port_code=port,
        direction=direction,
        hub_time=parse_clock(clock),
        weekly_frequency=freq,
        seats=100 * freq,
        region=DEFAULT_REFERENCE.region_for(port),
        flight_number=flight_no,
        is_manual=manual,
    )


def _make_slots(flights: Sequence[FlightRecord]) -> Tuple[HubSlot, ...]:
    buckets: Dict[Tuple[int, Direction], List[FlightRecord]] = {}
    for flight in flights:
        buckets.setdefault((flight.slot_index, flight.direction), []).append(flight)
    return tuple(
        HubSlot(
            index=index,
            arrivals=consolidate(buckets.get((index, Direction.ARRIVAL), [])),
            departures=consolidate(buckets.get((index, Direction.DEPARTURE), [])),
        )
        for index in range(24)
    )


def _network() -> List[FlightRecord]:
    return [
        _flight("dxb-in", "DXB", "arr", "08:00"),
        _flight("dxb-out", "DXB", "dep", "18:00"),
        _flight("del-1", "DEL", "dep", "09:40", freq=7, flight_no="6E201"),
        _flight("del-2", "DEL", "dep", "10:10", freq=3, flight_no="6E205"),
        _flight("del-in", "DEL", "arr", "15:00", freq=5, flight_no="6E310"),
        _flight("bom", "BOM", "dep", "11:00", freq=4, flight_no="AI611"),
        _flight("lhr", "LHR", "dep", "12:00", freq=2, flight_no="BA118"),
    ]


def _aggregator(flights: Sequence[FlightRecord]) -> SynergyAggregator:
    return SynergyAggregator(_make_slots(flights), ConnectionMatcher(90, 360), focus_hub="BLR")


def test_synergy_rewards_balanced_ports():
    assert synergy_score(10, 10) == pytest.approx(20.0)
    assert synergy_score(20, 0) == 0.0
    assert synergy_score(10, 10) > synergy_score(20, 0)
    assert synergy_score(9, 4) == pytest.approx(6.0 * (1 + 4 / 9))
    assert synergy_score(0, 0) == 0.0


def test_safe_ratio_returns_zero_for_empty_denominator():
    assert safe_ratio(5, 0) == 0.0
    assert safe_ratio(1, 4) == pytest.approx(0.25)


def test_two_way_summary_orders_by_synergy():
    connections = _aggregator(_network()).two_way_summary("DXB")
    assert [c.port_code for c in connections] == ["DEL", "BOM", "LHR"]

    delhi = connections[0]
    assert delhi.region is Region.ASIA_PACIFIC
    assert delhi.market is MarketSegment.DOMESTIC
    assert delhi.outbound_volume == 10
    assert delhi.inbound_volume == 5
    assert delhi.synergy_score == pytest.approx(synergy_score(5, 10))
    assert [d.flight_number for d in delhi.outbound_details] == ["6E201", "6E205"]
    assert delhi.best_outbound.connecting_time == "09:40"
    assert delhi.best_outbound.time_minutes == 100
    assert delhi.best_inbound.time_minutes == 180
    assert connections[1].synergy_score == 0.0


def test_two_way_summary_is_repeatable():
    aggregator = _aggregator(_network())
    assert aggregator.two_way_summary("DXB") == aggregator.two_way_summary("DXB")


def test_arrival_summary_rolls_up_connecting_ports():
    summary = _aggregator(_network()).summary(8, Direction.ARRIVAL)
    assert summary is not None
    assert summary.focal_flight.id == "dxb-in"
    assert summary.focus_time == "08:00"
    assert summary.window_start == "09:30"
    assert summary.window_end == "15:30"
    assert summary.total_frequency == 16
    assert summary.total_seats == 1600
    assert summary.international_frequency == 2
    assert summary.international_share == pytest.approx(12.5)
    assert summary.network_breadth == 2
    assert summary.top_regions == ((Region.ASIA_PACIFIC, 14), (Region.EUROPE, 2))
    assert summary.other_domestic_ports == (("DEL", 10), ("BOM", 4))
    assert summary.international_ports == (("LHR", 2),)
    assert summary.catchment_ports == ()


def test_departure_summary_uses_mirrored_window():
    summary = _aggregator(_network()).summary(18, "dep")
    assert summary.focal_flight.id == "dxb-out"
    assert summary.window_start == "10:30"
    assert summary.window_end == "16:30"
    assert summary.total_frequency == 5
    assert [c.port_code for c in summary.two_way if c.inbound_details] == ["DEL"]


def test_merged_focal_block_reports_earliest_time():
    flights = _network() + [_flight("dxb-in-2", "DXB", "arr", "08:20")]
    summary = _aggregator(flights).summary(8, Direction.ARRIVAL)
    assert summary.focal_flight.id.startswith("merged-DXB-")
    assert summary.focus_time == "08:00+"
    assert summary.window_end == "15:50"


def test_manual_focal_block_uses_only_that_flight():
    manual = _flight("m-000001", "DXB", "arr", "08:50", manual=True)
    aggregator = _aggregator(_network() + [manual])
    summary = aggregator.summary(8, Direction.ARRIVAL, flight_id="m-000001")
    assert summary.focus_time == "08:50"
    assert [c.port_code for c in summary.two_way] == ["BOM", "LHR"]
    assert summary.total_frequency == 6


def test_summary_without_connections_yields_zero_share():
    summary = _aggregator([_flight("lonely", "DXB", "arr", "03:00")]).summary(3, Direction.ARRIVAL)
    assert summary.total_frequency == 0
    assert summary.international_share == 0.0
    assert summary.two_way == ()
    assert _aggregator(_network()).summary(3, Direction.ARRIVAL) is None


def test_market_filter_and_dataframe_export():
    connections = _aggregator(_network()).two_way_summary("DXB")
    assert [c.port_code for c in filter_by_market(connections, MarketSegment.INTERNATIONAL)] == ["LHR"]
    assert len(filter_by_market(connections, "All")) == 3

    frame = two_way_dataframe(connections)
    assert len(frame) == 5
    assert set(frame["flow"]) == {"outbound", "inbound"}
    assert frame.loc[frame["flow"] == "inbound", "port_code"].tolist() == ["DEL"]
    assert two_way_dataframe([]).empty
