"""Operator-owned manual flights, kept per hub and per hour slot."""

from __future__ import annotations

import copy
import logging
import re
from typing import Dict, Iterator, List, Mapping, NewType, Optional, Tuple

from hubbank.schedule.clock import SLOTS_PER_DAY, parse_clock
from hubbank.schedule.domain_types import Direction, FlightRecord, Region

logger = logging.getLogger(__name__)

HubKey = NewType("HubKey", str)

_MANUAL_ID = re.compile(r"^m-(\d+)$")

# Location of a stored flight: (slot index, direction, record)
StoredFlight = Tuple[int, Direction, FlightRecord]


def hub_key(code: str) -> HubKey:
    key = str(code or "").strip().upper()
    if not key:
        raise ValueError("Hub key cannot be empty")
    return HubKey(key)


class ManualBlockStore:
    """Manual flights of one hub, bucketed by the hour of their ``hub_time``."""

    def __init__(self, hub: str):
        self.hub = hub_key(hub)
        self._slots: Dict[int, Dict[Direction, List[FlightRecord]]] = {}

    # ---------------------------------------------------------------- queries
    def flights_in_slot(self, slot_index: int, direction: Direction) -> List[FlightRecord]:
        return list(self._slots.get(int(slot_index), {}).get(Direction.parse(direction), []))

    def iter_flights(self) -> Iterator[StoredFlight]:
        for slot_index in sorted(self._slots):
            buckets = self._slots[slot_index]
            for direction in (Direction.ARRIVAL, Direction.DEPARTURE):
                for flight in buckets.get(direction, []):
                    yield slot_index, direction, flight

    def flights(self) -> List[FlightRecord]:
        return [flight for _slot, _direction, flight in self.iter_flights()]

    def find(self, flight_id: str) -> Optional[StoredFlight]:
        for entry in self.iter_flights():
            if entry[2].id == flight_id:
                return entry
        return None

    def __len__(self) -> int:
        return sum(1 for _ in self.iter_flights())

    def __contains__(self, flight_id: object) -> bool:
        return any(entry[2].id == flight_id for entry in self.iter_flights())

    # -------------------------------------------------------------- mutation
    def add(self, flight: FlightRecord) -> None:
        """Append ``flight`` to the bucket of its hour."""
        self._check(flight)
        bucket = self._slots.setdefault(flight.slot_index, {}).setdefault(flight.direction, [])
        bucket.append(flight)

    def remove(self, flight_id: str, slot_index: Optional[int] = None) -> Optional[FlightRecord]:
        """Remove a flight by id, optionally only from one slot. Returns the removed record."""
        slots = [int(slot_index)] if slot_index is not None else sorted(self._slots)
        for index in slots:
            buckets = self._slots.get(index, {})
            for direction, flights in buckets.items():
                for position, flight in enumerate(flights):
                    if flight.id == flight_id:
                        del flights[position]
                        self._prune(index)
                        return flight
        return None

    def upsert(self, flight: FlightRecord) -> None:
        """Replace the flight with the same id (keeping its position when its hour is unchanged)."""
        self._check(flight)
        located = self.find(flight.id)
        if located is not None:
            slot_index, direction, _old = located
            if slot_index == flight.slot_index and direction is flight.direction:
                bucket = self._slots[slot_index][direction]
                for position, existing in enumerate(bucket):
                    if existing.id == flight.id:
                        bucket[position] = flight
                        return
            self.remove(flight.id, slot_index)
        self.add(flight)

    def clear(self) -> None:
        self._slots.clear()

    def copy(self) -> "ManualBlockStore":
        clone = ManualBlockStore(self.hub)
        clone._slots = copy.deepcopy(self._slots)
        return clone

    # -------------------------------------------------------------- helpers
    def _check(self, flight: FlightRecord) -> None:
        if not flight.is_manual:
            raise ValueError(f"Only manual flights can be stored (got {flight.id!r})")
        if not flight.id:
            raise ValueError("Manual flights require a non-empty id")

    def _prune(self, slot_index: int) -> None:
        buckets = self._slots.get(slot_index)
        if buckets is None:
            return
        for direction in [d for d, flights in buckets.items() if not flights]:
            del buckets[direction]
        if not buckets:
            del self._slots[slot_index]

    # ---------------------------------------------------------------- I/O
    def to_dict(self) -> Dict[str, Dict[str, List[Dict[str, object]]]]:
        payload: Dict[str, Dict[str, List[Dict[str, object]]]] = {}
        for slot_index, direction, flight in self.iter_flights():
            entry = payload.setdefault(str(slot_index), {"arrivals": [], "departures": []})
            key = "arrivals" if direction is Direction.ARRIVAL else "departures"
            entry[key].append(flight_to_dict(flight))
        return payload

    @classmethod
    def from_dict(cls, hub: str, payload: Mapping[str, object]) -> "ManualBlockStore":
        if not isinstance(payload, Mapping):
            raise ValueError(f"Manual blocks for {hub} must be a mapping of slot -> flights")
        store = cls(hub)
        for slot_token, buckets in payload.items():
            try:
                slot_index = int(slot_token)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Invalid slot index {slot_token!r} for hub {hub}") from exc
            if not 0 <= slot_index < SLOTS_PER_DAY or not isinstance(buckets, Mapping):
                raise ValueError(f"Invalid manual slot {slot_token!r} for hub {hub}")
            for key, direction in (("arrivals", Direction.ARRIVAL), ("departures", Direction.DEPARTURE)):
                for raw in buckets.get(key) or []:
                    store.add(flight_from_dict(raw, direction, slot_index))
        return store


class ManualBlockRepository:
    """All hubs' manual stores plus the sequence that names new manual flights."""

    def __init__(self, stores: Optional[Mapping[str, ManualBlockStore]] = None, next_id: int = 1):
        self._stores: Dict[HubKey, ManualBlockStore] = {}
        for code, store in (stores or {}).items():
            self._stores[hub_key(code)] = store
        self._next_id = max(int(next_id), 1)
        self._resume_sequence()

    def store(self, hub: str) -> ManualBlockStore:
        key = hub_key(hub)
        existing = self._stores.get(key)
        if existing is None:
            existing = ManualBlockStore(key)
            self._stores[key] = existing
        return existing

    def hubs(self) -> List[HubKey]:
        return sorted(self._stores)

    def next_manual_id(self) -> str:
        identifier = f"m-{self._next_id:06d}"
        self._next_id += 1
        return identifier

    def stage(self) -> "ManualBlockRepository":
        """Working copy for an edit; apply with :meth:`commit`."""
        staged = ManualBlockRepository(next_id=self._next_id)
        staged._stores = {key: store.copy() for key, store in self._stores.items()}
        return staged

    def commit(self, staged: "ManualBlockRepository") -> None:
        self._stores = staged._stores
        self._next_id = max(self._next_id, staged._next_id)

    def clear(self) -> None:
        self._stores.clear()

    def to_dict(self) -> Dict[str, object]:
        return {key: store.to_dict() for key, store in sorted(self._stores.items()) if len(store)}

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "ManualBlockRepository":
        if not isinstance(payload, Mapping):
            raise ValueError("Manual block payload must be a mapping of hub -> slots")
        stores = {
            str(code): ManualBlockStore.from_dict(str(code), slots) for code, slots in payload.items()
        }
        return cls(stores)

    def _resume_sequence(self) -> None:
        highest = 0
        for store in self._stores.values():
            for flight in store.flights():
                match = _MANUAL_ID.match(flight.id)
                if match:
                    highest = max(highest, int(match.group(1)))
        self._next_id = max(self._next_id, highest + 1)


def flight_to_dict(flight: FlightRecord) -> Dict[str, object]:
    return {
        "id": flight.id,
        "code": flight.label,
        "port": flight.port_code,
        "flightNo": flight.flight_number,
        "freq": flight.weekly_frequency,
        "seats": flight.seats,
        "pax": flight.passengers,
        "region": flight.region.value,
        "airline": flight.airline,
        "isManual": flight.is_manual,
        "exactTime": flight.hub_time_str,
        "originalHubTime": flight.anchor_time_str,
    }


def flight_from_dict(raw: object, direction: Direction, slot_index: int) -> FlightRecord:
    if not isinstance(raw, Mapping):
        raise ValueError("Stored manual flight must be a mapping")
    label = str(raw.get("code") or "").strip()
    port = str(raw.get("port") or (label.split(" ")[0] if label else "")).strip().upper()
    if not port:
        raise ValueError(f"Stored manual flight {raw.get('id')!r} has no port code")
    exact = parse_clock(raw.get("exactTime"))
    hub_time = exact if exact is not None else slot_index * 60
    region_raw = raw.get("region")
    try:
        region = Region.parse(region_raw) if region_raw else Region.UNKNOWN
    except ValueError:
        logger.warning("Unknown region %r on stored flight %s", region_raw, raw.get("id"))
        region = Region.UNKNOWN
    return FlightRecord(
        id=str(raw.get("id") or ""),
        port_code=port,
        direction=direction,
        hub_time=hub_time,
        weekly_frequency=int(raw.get("freq") or 0),
        seats=int(raw.get("seats") or 0),
        passengers=int(raw.get("pax") or 0),
        region=region,
        airline=raw.get("airline") or None,
        flight_number=raw.get("flightNo") or None,
        is_manual=True,
        original_anchor_time=parse_clock(raw.get("originalHubTime")),
        label=label or port,
    )


__all__ = [
    "HubKey",
    "ManualBlockRepository",
    "ManualBlockStore",
    "flight_from_dict",
    "flight_to_dict",
    "hub_key",
]
