"""
Connection matcher: which flights at other ports a focal flight feeds or is fed by.

Window test
-----------
For a focal arrival at minute ``a`` and a candidate departure at minute ``d``
the pair connects when ``d`` lies inside ``[a + MCT, a + MCT + Window]`` on the
cyclic clock. A focal departure pairs with a candidate arrival under the same
rule with the roles swapped: the arrival plus MCT must open a window that still
contains the departure. Both bounds are inclusive and every test is delegated
to :func:`hubbank.schedule.clock.in_wraparound_window`, so banks straddling
midnight behave like any other.

Best connection
---------------
Merged blocks are always expanded; analysis runs on individual flights. For
each connecting flight only the pairing with the smallest forward time
difference is kept (the first one scanned wins a tie), and rows are
deduplicated per port on ``(connecting_time, flight_number)``. Different flight
numbers to the same port therefore remain separate rows.

Example
-------
With MCT 1.5h and Window 6h, an arrival at 08:00 connects to a 10:00 departure
(120 minutes, inside 90-450) but not to a 09:00 departure (60 < 90).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from hubbank.schedule.clock import forward_distance, in_wraparound_window, shift
from hubbank.schedule.consolidation import iter_individuals
from hubbank.schedule.domain_types import Direction, FlightRecord, HubSlot
from hubbank.schedule.simulation_config import SimulationParameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionDetails:
    """Best pairing between one connecting flight and the focal set."""

    time_minutes: int
    focal_time: str
    focal_frequency: int
    connecting_time: str
    connecting_frequency: int
    airline: Optional[str] = None
    flight_number: Optional[str] = None

    @property
    def dedup_key(self) -> Tuple[str, Optional[str]]:
        return (self.connecting_time, self.flight_number)


class ConnectionMatcher:
    """Applies the MCT / Window rule between arrivals and departures."""

    def __init__(self, mct_minutes: int, window_minutes: int):
        if mct_minutes < 0:
            raise ValueError("mct_minutes cannot be negative")
        if window_minutes <= 0:
            raise ValueError("window_minutes must be positive")
        self.mct_minutes = int(mct_minutes)
        self.window_minutes = int(window_minutes)

    @classmethod
    def from_parameters(cls, parameters: SimulationParameters) -> "ConnectionMatcher":
        return cls(parameters.mct_minutes, parameters.window_minutes)

    # ------------------------------------------------------------- predicates
    def arrival_feeds_departure(self, arrival_minutes: int, departure_minutes: int) -> bool:
        valid_start = shift(arrival_minutes, self.mct_minutes)
        return in_wraparound_window(departure_minutes, valid_start, self.window_minutes)

    def connects(self, focal: FlightRecord, candidate: FlightRecord) -> bool:
        if focal.direction is candidate.direction:
            return False
        if focal.direction is Direction.ARRIVAL:
            return self.arrival_feeds_departure(focal.hub_time, candidate.hub_time)
        return self.arrival_feeds_departure(candidate.hub_time, focal.hub_time)

    def connecting_flags(self, focal: FlightRecord, slot: HubSlot) -> List[bool]:
        """Per-block flags for the opposite-direction blocks of ``slot``."""
        blocks = slot.blocks(focal.direction.opposite)
        return [any(self.connects(focal, flight) for flight in block.individuals) for block in blocks]

    # ------------------------------------------------------------- searching
    def best_connections(
        self,
        focal_flights: Sequence[FlightRecord],
        slots: Sequence[HubSlot],
        direction: Direction,
    ) -> Dict[str, List[ConnectionDetails]]:
        """
        Find the best pairing for every connecting flight.

        Args:
            focal_flights: Individual flights of the focal set; only those in
                ``direction`` take part.
            slots: Consolidated hub slots to scan for candidates.
            direction: Direction of the focal flights. Candidates are taken
                from the opposite direction.
        Returns:
            Mapping port code -> connection rows, in first-touched port order.
        """
        direction = Direction.parse(direction)
        focal = [f for f in focal_flights if f.direction is direction]
        if not focal:
            return {}
        focal_ports = {f.port_code for f in focal}

        by_port: Dict[str, List[ConnectionDetails]] = {}
        for _slot_index, candidate in iter_individuals(slots, direction.opposite):
            if candidate.port_code in focal_ports:
                continue
            best = self._best_for_candidate(focal, candidate)
            if best is None:
                continue
            rows = by_port.setdefault(candidate.port_code, [])
            if any(row.dedup_key == best.dedup_key for row in rows):
                continue
            rows.append(best)
        return by_port

    def connections_for(
        self, focal: FlightRecord, slots: Sequence[HubSlot]
    ) -> Dict[str, List[ConnectionDetails]]:
        return self.best_connections([focal], slots, focal.direction)

    def _best_for_candidate(
        self, focal_flights: Sequence[FlightRecord], candidate: FlightRecord
    ) -> Optional[ConnectionDetails]:
        best: Optional[ConnectionDetails] = None
        for focal in focal_flights:
            if not self.connects(focal, candidate):
                continue
            if focal.direction is Direction.ARRIVAL:
                diff = forward_distance(focal.hub_time, candidate.hub_time)
            else:
                diff = forward_distance(candidate.hub_time, focal.hub_time)
            if best is None or diff < best.time_minutes:
                best = ConnectionDetails(
                    time_minutes=diff,
                    focal_time=focal.hub_time_str,
                    focal_frequency=focal.weekly_frequency,
                    connecting_time=candidate.hub_time_str,
                    connecting_frequency=candidate.weekly_frequency,
                    airline=candidate.airline,
                    flight_number=candidate.flight_number,
                )
        if best is not None:
            logger.debug(
                "Best pairing for %s %s at %s: %d min",
                candidate.port_code,
                candidate.flight_number or "-",
                candidate.hub_time_str,
                best.time_minutes,
            )
        return best


__all__ = ["ConnectionDetails", "ConnectionMatcher"]
