"""
Hub slot construction and block consolidation.

Imported rows become automatic flight records bucketed by hour; manual flights
from the operator's store are appended to their hour; each slot/direction list
is then consolidated so that several automatic flights to the same port show
as one merged block. Manual flights are never merged, so each one stays
individually editable.

Every identifier produced here is derived from content (hub, port, time,
flight number, constituent ids), so rebuilding the slots from the same inputs
yields identical output.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .airport_dataset import AirportDataset, LegInfo
from .clock import SLOTS_PER_DAY, format_clock
from .domain_types import (
    Block,
    Direction,
    FlightRecord,
    HubSlot,
    MarketSegment,
    MergedBlock,
    SingleBlock,
)
from .reference_data import DEFAULT_REFERENCE, ReferenceData
from .simulation_config import SimulationParameters

logger = logging.getLogger(__name__)


def merged_block_id(port_code: str, constituents: Sequence[FlightRecord]) -> str:
    digest = hashlib.sha1("|".join(f.id for f in constituents).encode("utf-8")).hexdigest()
    return f"merged-{port_code}-{digest[:10]}"


def consolidate(flights: Iterable[FlightRecord]) -> Tuple[Block, ...]:
    """Group automatic flights by port into blocks; manual flights pass through one block each."""
    manual: List[FlightRecord] = []
    groups: Dict[str, List[FlightRecord]] = {}
    for flight in flights:
        if flight.is_manual:
            manual.append(flight)
        else:
            groups.setdefault(flight.port_code, []).append(flight)

    blocks: List[Block] = []
    for port_code, group in groups.items():
        if len(group) == 1:
            blocks.append(SingleBlock(group[0]))
            continue
        first = group[0]
        summary = first.with_changes(
            id=merged_block_id(port_code, group),
            weekly_frequency=sum(f.weekly_frequency for f in group),
            seats=sum(f.seats for f in group),
            passengers=sum(f.passengers for f in group),
        )
        blocks.append(MergedBlock(flight=summary, constituents=tuple(group)))
    blocks.extend(SingleBlock(flight) for flight in manual)
    return tuple(blocks)


@dataclass
class _LegAggregate:
    port_code: str
    hub_time: int
    airline: Optional[str]
    flight_number: Optional[str]
    weekly_frequency: int = 0
    seats: int = 0
    passengers: int = 0


class HubSlotBuilder:
    """Builds the 24 consolidated hub slots for one hub."""

    def __init__(
        self,
        parameters: SimulationParameters | None = None,
        reference: ReferenceData | None = None,
    ):
        self.parameters = parameters or SimulationParameters()
        self.reference = reference or DEFAULT_REFERENCE

    def build(
        self,
        dataset: AirportDataset,
        manual_flights: Iterable[FlightRecord] = (),
    ) -> Tuple[HubSlot, ...]:
        automatic = self._automatic_flights(dataset)
        manual_by_slot: Dict[Tuple[int, Direction], List[FlightRecord]] = {}
        for flight in manual_flights:
            manual_by_slot.setdefault((flight.slot_index, flight.direction), []).append(flight)

        slots: List[HubSlot] = []
        for index in range(SLOTS_PER_DAY):
            arrivals = automatic.get((index, Direction.ARRIVAL), []) + manual_by_slot.get(
                (index, Direction.ARRIVAL), []
            )
            departures = automatic.get((index, Direction.DEPARTURE), []) + manual_by_slot.get(
                (index, Direction.DEPARTURE), []
            )
            slots.append(
                HubSlot(index=index, arrivals=consolidate(arrivals), departures=consolidate(departures))
            )
        return tuple(slots)

    # ------------------------------------------------------------------ filters
    def passes_filters(self, hub_code: str, leg: LegInfo) -> bool:
        params = self.parameters
        code = leg.port_code.upper()
        region = self.reference.region_for(code)
        passes_region = region in params.selected_regions or (
            params.always_show_focus_hub and code == hub_code
        )
        if params.selected_airlines:
            passes_airline = bool(leg.airline) and leg.airline in params.selected_airlines
        else:
            # an empty selection also keeps legs without an airline
            passes_airline = True
        market = self.reference.market_for(code)
        passes_market = params.market_filter is MarketSegment.ALL or market is params.market_filter
        return passes_region and passes_airline and passes_market

    # ------------------------------------------------------------------ helpers
    def _automatic_flights(
        self, dataset: AirportDataset
    ) -> Dict[Tuple[int, Direction], List[FlightRecord]]:
        aggregates: Dict[Tuple[int, Direction], Dict[Tuple[str, int, str], _LegAggregate]] = {}
        skipped = 0
        for row in dataset.rows:
            minutes = row.hub_minutes
            if minutes is None:
                skipped += 1
                continue
            slot_index = minutes // 60
            for direction in (Direction.ARRIVAL, Direction.DEPARTURE):
                leg = row.leg(direction)
                if len(leg.port_code) < 3:
                    continue
                if not self.passes_filters(dataset.port_code, leg):
                    continue
                key = (leg.port_code.upper(), minutes, leg.flight_number or "XX")
                bucket = aggregates.setdefault((slot_index, direction), {})
                entry = bucket.get(key)
                if entry is None:
                    entry = _LegAggregate(
                        port_code=key[0],
                        hub_time=minutes,
                        airline=leg.airline,
                        flight_number=leg.flight_number,
                    )
                    bucket[key] = entry
                entry.weekly_frequency += leg.weekly_frequency
                entry.seats += leg.seats
                entry.passengers += leg.passengers
        if skipped:
            logger.debug("Skipped %d rows without a usable hub time for %s", skipped, dataset.port_code)

        flights: Dict[Tuple[int, Direction], List[FlightRecord]] = {}
        for (slot_index, direction), bucket in aggregates.items():
            records = flights.setdefault((slot_index, direction), [])
            for (port, minutes, flight_key), entry in bucket.items():
                records.append(
                    FlightRecord(
                        id=f"{dataset.port_code}:{direction.value}:{port}:{format_clock(minutes)}:{flight_key}",
                        port_code=port,
                        direction=direction,
                        hub_time=minutes,
                        weekly_frequency=entry.weekly_frequency,
                        seats=entry.seats,
                        passengers=entry.passengers,
                        region=self.reference.region_for(port),
                        airline=entry.airline,
                        flight_number=entry.flight_number,
                    )
                )
        return flights


def build_hub_slots(
    dataset: AirportDataset,
    manual_flights: Iterable[FlightRecord] = (),
    parameters: SimulationParameters | None = None,
    reference: ReferenceData | None = None,
) -> Tuple[HubSlot, ...]:
    return HubSlotBuilder(parameters, reference).build(dataset, manual_flights)


def iter_individuals(
    slots: Sequence[HubSlot], direction: Direction
) -> Iterator[Tuple[int, FlightRecord]]:
    """Yield ``(slot_index, flight)`` for every individual flight, expanding merged blocks."""
    for slot in slots:
        for block in slot.blocks(direction):
            for flight in block.individuals:
                yield slot.index, flight


__all__ = [
    "HubSlotBuilder",
    "build_hub_slots",
    "consolidate",
    "iter_individuals",
    "merged_block_id",
]
