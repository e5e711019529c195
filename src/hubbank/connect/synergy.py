"""Two-way connection summaries, hub-wide rollups and synergy scoring."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from hubbank.schedule.clock import format_clock, minutes_of, shift
from hubbank.schedule.consolidation import iter_individuals
from hubbank.schedule.domain_types import (
    Block,
    Direction,
    FlightRecord,
    HubSlot,
    MarketSegment,
    Region,
)
from hubbank.schedule.reference_data import DEFAULT_REFERENCE, ReferenceData

from .matcher import ConnectionDetails, ConnectionMatcher

logger = logging.getLogger(__name__)

TOP_PORTS = 5


def synergy_score(inbound_volume: float, outbound_volume: float) -> float:
    """
    Balance-weighted two-way strength: ``sqrt(in * out) * (1 + min/max)``.

    A port fed only one way scores 0, and among ports with the same total
    volume the balanced one scores highest.
    """
    inbound = max(float(inbound_volume), 0.0)
    outbound = max(float(outbound_volume), 0.0)
    largest = max(inbound, outbound)
    balance = min(inbound, outbound) / largest if largest > 0 else 0.0
    return math.sqrt(inbound * outbound) * (1.0 + balance)


def safe_ratio(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return float(numerator) / float(denominator)


@dataclass
class TwoWayConnection:
    """Per-port view of how a focal port's bank feeds and is fed by it."""

    port_code: str
    region: Region
    market: MarketSegment
    outbound_details: List[ConnectionDetails] = field(default_factory=list)
    inbound_details: List[ConnectionDetails] = field(default_factory=list)
    synergy_score: float = 0.0

    @property
    def inbound_volume(self) -> int:
        return sum(detail.connecting_frequency for detail in self.inbound_details)

    @property
    def outbound_volume(self) -> int:
        return sum(detail.connecting_frequency for detail in self.outbound_details)

    @property
    def best_outbound(self) -> Optional[ConnectionDetails]:
        return min(self.outbound_details, key=lambda d: d.time_minutes, default=None)

    @property
    def best_inbound(self) -> Optional[ConnectionDetails]:
        return min(self.inbound_details, key=lambda d: d.time_minutes, default=None)

    def details(self, direction: Direction) -> List[ConnectionDetails]:
        """Rows relevant to a focal flight of ``direction``."""
        if Direction.parse(direction) is Direction.ARRIVAL:
            return self.outbound_details
        return self.inbound_details


@dataclass(frozen=True)
class Summary:
    """Hub-wide rollup of the connections reachable from one focal block."""

    focal_flight: FlightRecord
    direction: Direction
    focus_time: str
    window_start: str
    window_end: str
    total_frequency: int
    total_seats: int
    total_passengers: int
    international_frequency: int
    international_share: float
    network_breadth: int
    top_regions: Tuple[Tuple[Region, int], ...]
    catchment_ports: Tuple[Tuple[str, int], ...]
    other_domestic_ports: Tuple[Tuple[str, int], ...]
    international_ports: Tuple[Tuple[str, int], ...]
    two_way: Tuple[TwoWayConnection, ...]


class SynergyAggregator:
    """
    Builds connection summaries over one hub's consolidated slots.

    The aggregator holds no state beyond its inputs; calling it again with the
    same slots returns equal results.
    """

    def __init__(
        self,
        slots: Sequence[HubSlot],
        matcher: ConnectionMatcher,
        reference: ReferenceData | None = None,
        focus_hub: Optional[str] = None,
    ):
        self.slots = tuple(slots)
        self.matcher = matcher
        self.reference = reference or DEFAULT_REFERENCE
        self.focus_hub = (focus_hub or "").upper() or None

    # --------------------------------------------------------------- two-way
    def two_way_summary(
        self,
        port_code: str,
        focal_flights: Optional[Sequence[FlightRecord]] = None,
    ) -> List[TwoWayConnection]:
        """
        Pair ``port_code``'s flights with every other port, in both directions.

        Outbound rows link focal arrivals to other ports' departures; inbound
        rows link other ports' arrivals to focal departures. ``focal_flights``
        overrides the default focal set (all individual flights at the port).
        """
        port = str(port_code or "").strip().upper()
        if focal_flights is None:
            focal = [
                flight
                for direction in (Direction.ARRIVAL, Direction.DEPARTURE)
                for _slot_index, flight in iter_individuals(self.slots, direction)
                if flight.port_code == port
            ]
        else:
            focal = list(focal_flights)

        outbound = self.matcher.best_connections(focal, self.slots, Direction.ARRIVAL)
        inbound = self.matcher.best_connections(focal, self.slots, Direction.DEPARTURE)

        by_port: Dict[str, TwoWayConnection] = {}
        for source, attribute in ((outbound, "outbound_details"), (inbound, "inbound_details")):
            for other_port, rows in source.items():
                connection = by_port.get(other_port)
                if connection is None:
                    connection = TwoWayConnection(
                        port_code=other_port,
                        region=self.reference.region_for(other_port),
                        market=self.reference.market_for(other_port),
                    )
                    by_port[other_port] = connection
                getattr(connection, attribute).extend(rows)

        for connection in by_port.values():
            connection.synergy_score = synergy_score(
                connection.inbound_volume, connection.outbound_volume
            )
        connections = sorted(by_port.values(), key=lambda c: c.synergy_score, reverse=True)
        logger.debug("Two-way summary for %s touched %d ports", port, len(connections))
        return connections

    # --------------------------------------------------------------- summary
    def resolve_focal_block(
        self, slot_index: int, direction: Direction, flight_id: Optional[str] = None
    ) -> Optional[Block]:
        if not 0 <= slot_index < len(self.slots):
            return None
        blocks = self.slots[slot_index].blocks(direction)
        if flight_id is not None:
            return next((b for b in blocks if b.flight.id == flight_id), None)
        for block in blocks:
            if block.flight.port_code == self.focus_hub or block.flight.is_manual:
                return block
        return blocks[0] if blocks else None

    def summary(
        self, slot_index: int, direction: Direction, flight_id: Optional[str] = None
    ) -> Optional[Summary]:
        direction = Direction.parse(direction)
        block = self.resolve_focal_block(slot_index, direction, flight_id)
        if block is None:
            return None
        source = block.flight
        individuals = block.individuals

        if source.is_manual:
            two_way = self.two_way_summary(source.port_code, focal_flights=individuals)
        else:
            two_way = self.two_way_summary(source.port_code)

        timings = sorted(minutes_of(slot_index, f.hub_time) for f in individuals)
        earliest, latest = timings[0], timings[-1]

        region_freq: Dict[Region, int] = {}
        catchment: List[Tuple[str, int]] = []
        other_domestic: List[Tuple[str, int]] = []
        international: List[Tuple[str, int]] = []
        total_freq = total_seats = total_pax = intl_freq = 0

        opposite = direction.opposite
        for connection in two_way:
            if not connection.details(direction):
                continue
            code = connection.port_code
            matching = [
                flight
                for _slot_index, flight in iter_individuals(self.slots, opposite)
                if flight.port_code == code
            ]
            freq = sum(f.weekly_frequency for f in matching)
            total_freq += freq
            total_seats += sum(f.seats for f in matching)
            total_pax += sum(f.passengers for f in matching)
            region_freq[connection.region] = region_freq.get(connection.region, 0) + freq

            domestic = self.reference.is_domestic(code)
            if not domestic:
                intl_freq += freq
            if self.reference.is_catchment(code):
                catchment.append((code, freq))
            elif domestic:
                other_domestic.append((code, freq))
            else:
                international.append((code, freq))

        mct = self.matcher.mct_minutes
        window = self.matcher.window_minutes
        if direction is Direction.ARRIVAL:
            window_start = shift(earliest, mct)
            window_end = shift(latest, mct + window)
        else:
            window_start = shift(earliest, -(window + mct))
            window_end = shift(latest, -mct)

        if source.is_manual:
            focus_time = source.hub_time_str
        else:
            focus_time = format_clock(earliest) + ("+" if len(individuals) > 1 else "")

        return Summary(
            focal_flight=source,
            direction=direction,
            focus_time=focus_time,
            window_start=format_clock(window_start),
            window_end=format_clock(window_end),
            total_frequency=total_freq,
            total_seats=total_seats,
            total_passengers=total_pax,
            international_frequency=intl_freq,
            international_share=safe_ratio(intl_freq, total_freq) * 100.0,
            network_breadth=len(region_freq),
            top_regions=tuple(sorted(region_freq.items(), key=lambda item: item[1], reverse=True)),
            catchment_ports=_top(catchment),
            other_domestic_ports=_top(other_domestic),
            international_ports=_top(international),
            two_way=tuple(two_way),
        )


def _top(entries: List[Tuple[str, int]]) -> Tuple[Tuple[str, int], ...]:
    return tuple(sorted(entries, key=lambda item: item[1], reverse=True)[:TOP_PORTS])


def filter_by_market(
    connections: Sequence[TwoWayConnection], segment: MarketSegment
) -> List[TwoWayConnection]:
    segment = MarketSegment.parse(segment)
    if segment is MarketSegment.ALL:
        return list(connections)
    return [connection for connection in connections if connection.market is segment]


def two_way_dataframe(connections: Sequence[TwoWayConnection]) -> pd.DataFrame:
    """Flatten two-way connections into one row per connection detail."""
    columns = [
        "port_code",
        "region",
        "market",
        "synergy_score",
        "flow",
        "time_minutes",
        "focal_time",
        "focal_frequency",
        "connecting_time",
        "connecting_frequency",
        "airline",
        "flight_number",
    ]
    records = []
    for connection in connections:
        for flow, rows in (("outbound", connection.outbound_details), ("inbound", connection.inbound_details)):
            for detail in rows:
                records.append(
                    {
                        "port_code": connection.port_code,
                        "region": connection.region.value,
                        "market": connection.market.value,
                        "synergy_score": connection.synergy_score,
                        "flow": flow,
                        "time_minutes": detail.time_minutes,
                        "focal_time": detail.focal_time,
                        "focal_frequency": detail.focal_frequency,
                        "connecting_time": detail.connecting_time,
                        "connecting_frequency": detail.connecting_frequency,
                        "airline": detail.airline,
                        "flight_number": detail.flight_number,
                    }
                )
    return pd.DataFrame.from_records(records, columns=columns)


__all__ = [
    "Summary",
    "SynergyAggregator",
    "TwoWayConnection",
    "filter_by_market",
    "safe_ratio",
    "synergy_score",
    "two_way_dataframe",
]
