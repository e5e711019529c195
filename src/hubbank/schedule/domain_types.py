"""Core dataclasses shared across the schedule, connect and sync packages."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

from .clock import MINUTES_PER_DAY, format_clock, slot_label


class Direction(str, Enum):
    """Movement direction relative to the hub."""

    ARRIVAL = "arr"
    DEPARTURE = "dep"

    @property
    def opposite(self) -> "Direction":
        return Direction.DEPARTURE if self is Direction.ARRIVAL else Direction.ARRIVAL

    @property
    def long_name(self) -> str:
        return "arrival" if self is Direction.ARRIVAL else "departure"

    @classmethod
    def parse(cls, value: object) -> "Direction":
        token = str(getattr(value, "value", value) or "").strip().lower()
        if token in {"arr", "arrival", "arrivals"}:
            return cls.ARRIVAL
        if token in {"dep", "departure", "departures"}:
            return cls.DEPARTURE
        raise ValueError(f"Unknown flight direction: {value!r}")


class Region(str, Enum):
    """Continental bucket a port belongs to."""

    AFRICA = "Africa"
    ASIA_PACIFIC = "Asia/Pacific"
    EUROPE = "Europe"
    MIDDLE_EAST = "Middle East"
    AMERICAS = "Americas"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: object) -> "Region":
        token = str(getattr(value, "value", value) or "").strip()
        for region in cls:
            if token.lower() in {region.value.lower(), region.name.lower()}:
                return region
        raise ValueError(f"Unknown region: {value!r}")


CONTINENTAL_REGIONS: Tuple[Region, ...] = (
    Region.AFRICA,
    Region.ASIA_PACIFIC,
    Region.EUROPE,
    Region.MIDDLE_EAST,
    Region.AMERICAS,
)


class MarketSegment(str, Enum):
    ALL = "All"
    DOMESTIC = "Domestic"
    INTERNATIONAL = "International"

    @classmethod
    def parse(cls, value: object) -> "MarketSegment":
        token = str(getattr(value, "value", value) or "").strip().lower()
        for segment in cls:
            if token == segment.value.lower():
                return segment
        raise ValueError(f"Unknown market segment: {value!r}")


@dataclass(frozen=True)
class FlightRecord:
    """One scheduled movement at a hub, imported or operator-made."""

    id: str
    port_code: str
    direction: Direction
    hub_time: int
    weekly_frequency: int = 0
    seats: int = 0
    passengers: int = 0
    region: Region = Region.UNKNOWN
    airline: Optional[str] = None
    flight_number: Optional[str] = None
    is_manual: bool = False
    original_anchor_time: Optional[int] = None
    label: str = ""

    def __post_init__(self) -> None:
        port = str(self.port_code or "").strip().upper()
        object.__setattr__(self, "port_code", port)
        object.__setattr__(self, "direction", Direction.parse(self.direction))
        object.__setattr__(self, "hub_time", int(self.hub_time) % MINUTES_PER_DAY)
        if self.original_anchor_time is not None:
            object.__setattr__(
                self, "original_anchor_time", int(self.original_anchor_time) % MINUTES_PER_DAY
            )
        if not self.label:
            object.__setattr__(self, "label", port)
        for name in ("weekly_frequency", "seats", "passengers"):
            value = int(getattr(self, name) or 0)
            if value < 0:
                raise ValueError(f"{name} cannot be negative for flight {self.id!r}")
            object.__setattr__(self, name, value)

    @property
    def hub_time_str(self) -> str:
        return format_clock(self.hub_time)

    @property
    def anchor_time_str(self) -> Optional[str]:
        if self.original_anchor_time is None:
            return None
        return format_clock(self.original_anchor_time)

    @property
    def slot_index(self) -> int:
        return self.hub_time // 60

    def with_changes(self, **changes: object) -> "FlightRecord":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class SingleBlock:
    """A displayed block holding exactly one flight."""

    flight: FlightRecord

    @property
    def individuals(self) -> Tuple[FlightRecord, ...]:
        return (self.flight,)

    @property
    def is_merged(self) -> bool:
        return False

    def render_key(self, slot_index: int) -> str:
        return f"{slot_index}:{self.flight.direction.value}:{self.flight.id}"


@dataclass(frozen=True)
class MergedBlock:
    """Several automatic flights to one port shown as one block.

    ``flight`` carries the summed numbers used for display; ``constituents``
    keeps every original record for connection analysis.
    """

    flight: FlightRecord
    constituents: Tuple[FlightRecord, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "constituents", tuple(self.constituents))
        if len(self.constituents) < 2:
            raise ValueError("A merged block needs at least two constituent flights")

    @property
    def individuals(self) -> Tuple[FlightRecord, ...]:
        return self.constituents

    @property
    def is_merged(self) -> bool:
        return True

    def render_key(self, slot_index: int) -> str:
        return f"{slot_index}:{self.flight.direction.value}:{self.flight.id}"


Block = Union[SingleBlock, MergedBlock]


@dataclass(frozen=True)
class HubSlot:
    """One hour-of-day bucket of a hub's schedule."""

    index: int
    arrivals: Tuple[Block, ...] = ()
    departures: Tuple[Block, ...] = ()

    @property
    def label(self) -> str:
        return slot_label(self.index)

    def blocks(self, direction: Direction) -> Tuple[Block, ...]:
        return self.arrivals if Direction.parse(direction) is Direction.ARRIVAL else self.departures

    def find_block(self, direction: Direction, flight_id: str) -> Optional[Block]:
        for block in self.blocks(direction):
            if block.flight.id == flight_id:
                return block
        return None


__all__ = [
    "Block",
    "CONTINENTAL_REGIONS",
    "Direction",
    "FlightRecord",
    "HubSlot",
    "MarketSegment",
    "MergedBlock",
    "Region",
    "SingleBlock",
]
