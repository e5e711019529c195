"""
Manual edits and their reciprocal propagation between hubs.

A flight first touched by the operator is sealed with an anchor: the hub time
of its matching import row, or the top of the hour it came from. Every later
retime is expressed as a signed delta from that anchor and replayed on the
reciprocal hub (the hub named by the flight's port). Flights already linked at
the reciprocal hub are retimed from their own anchors; otherwise the first
matching import row there seeds a new ``SYNC`` flight. Nothing is ever created
without an import row to anchor it.

Each edit works on a staged copy of the repository. The local change and its
propagation are committed together, so readers never see hub A updated while
hub B is still pending.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import List, Mapping, Optional, Union

from hubbank.schedule.airport_dataset import AirportDataset
from hubbank.schedule.clock import minutes_of, shift, signed_delta
from hubbank.schedule.domain_types import Block, Direction, FlightRecord, MergedBlock, SingleBlock
from hubbank.schedule.reference_data import DEFAULT_REFERENCE, ReferenceData

from .manual_store import ManualBlockRepository, ManualBlockStore, hub_key

logger = logging.getLogger(__name__)

_NEW_SUFFIX = re.compile(r" NEW( \d+)?$")


class AnchorState(str, Enum):
    UNANCHORED = "unanchored"
    ANCHORED = "anchored"
    SYNCED = "synced"


class AnchorSyncEngine:
    """Applies manual edits for one hub and mirrors them onto the reciprocal hub."""

    def __init__(
        self,
        repository: ManualBlockRepository,
        datasets: Mapping[str, AirportDataset],
        reference: ReferenceData | None = None,
    ):
        self.repository = repository
        self.datasets = datasets
        self.reference = reference or DEFAULT_REFERENCE

    # ------------------------------------------------------------------ edits
    def manual_drop(
        self,
        hub: str,
        slot_index: int,
        direction: Direction,
        block: Union[Block, FlightRecord],
        from_slot: Optional[int] = None,
        exact_time: Union[str, int, None] = None,
    ) -> FlightRecord:
        """
        Place ``block`` into ``slot_index`` as a manual flight.

        An automatic record is promoted: it gets a fresh manual id, a
        ``"<PORT> NEW"`` style label unique within the slot and its anchor.
        A manual record keeps its id, label and anchor and is moved out of
        ``from_slot``. The new time is ``exact_time`` or the slot's top of hour.
        """
        direction = Direction.parse(direction)
        flight = block.flight if isinstance(block, (SingleBlock, MergedBlock)) else block
        hub_code = hub_key(hub)
        staged = self.repository.stage()
        store = staged.store(hub_code)
        hub_time = minutes_of(slot_index, exact_time)

        if flight.is_manual:
            store.remove(flight.id, from_slot)
            placed = flight.with_changes(hub_time=hub_time, direction=direction)
        else:
            anchor = self._import_anchor(hub_code, direction, flight)
            if anchor is None:
                anchor = (slot_index if from_slot is None else from_slot) * 60
                logger.debug(
                    "No import row for %s at %s; anchoring at %02d:00", flight.port_code, hub_code, anchor // 60
                )
            placed = flight.with_changes(
                id=staged.next_manual_id(),
                direction=direction,
                hub_time=hub_time,
                is_manual=True,
                original_anchor_time=anchor,
                label=self._next_label(store, hub_time // 60, direction, flight.label),
            )
        store.add(placed)
        self._commit(staged, hub_code, placed)
        return placed

    def update_manual_flight(
        self, hub: str, slot_index: int, direction: Direction, updated: FlightRecord
    ) -> FlightRecord:
        """Replace a manual flight with ``updated`` and move it to the hour of its new time."""
        direction = Direction.parse(direction)
        hub_code = hub_key(hub)
        staged = self.repository.stage()
        store = staged.store(hub_code)

        previous = next((f for f in store.flights_in_slot(slot_index, direction) if f.id == updated.id), None)
        if previous is None:
            located = store.find(updated.id)
            previous = located[2] if located else None

        final = updated.with_changes(is_manual=True, direction=direction)
        if final.original_anchor_time is None and previous is not None:
            final = final.with_changes(original_anchor_time=previous.original_anchor_time)
        store.remove(updated.id)
        store.add(final)
        self._commit(staged, hub_code, final)
        return final

    def retime(self, hub: str, flight_id: str, new_time: Union[str, int]) -> FlightRecord:
        located = self.repository.store(hub).find(flight_id)
        if located is None:
            raise KeyError(f"No manual flight {flight_id!r} at {hub_key(hub)}")
        slot_index, direction, flight = located
        hub_time = minutes_of(slot_index, new_time)
        return self.update_manual_flight(hub, slot_index, direction, flight.with_changes(hub_time=hub_time))

    def create_manual_flight(
        self,
        hub: str,
        direction: Direction,
        port_code: str,
        hub_time: Union[str, int],
        **fields: object,
    ) -> FlightRecord:
        """Add an operator flight from scratch. It has no anchor, so it never propagates."""
        hub_code = hub_key(hub)
        staged = self.repository.stage()
        minutes = minutes_of(0, hub_time)
        port = str(port_code or "").strip().upper()
        fields.setdefault("region", self.reference.region_for(port))
        flight = FlightRecord(
            id=staged.next_manual_id(),
            port_code=port,
            direction=Direction.parse(direction),
            hub_time=minutes,
            is_manual=True,
            **fields,
        )
        staged.store(hub_code).add(flight)
        self._commit(staged, hub_code, flight)
        return flight

    def delete_manual_flight(self, hub: str, flight_id: str) -> Optional[FlightRecord]:
        """Remove a manual flight locally. The reciprocal hub is left as it is."""
        staged = self.repository.stage()
        removed = staged.store(hub).remove(flight_id)
        if removed is not None:
            self.repository.commit(staged)
            logger.debug("Deleted manual flight %s at %s", flight_id, hub_key(hub))
        return removed

    # ------------------------------------------------------------------ state
    def anchor_state(self, hub: str, flight_id: str) -> AnchorState:
        hub_code = hub_key(hub)
        located = self.repository.store(hub_code).find(flight_id)
        if located is None or located[2].original_anchor_time is None:
            return AnchorState.UNANCHORED
        flight = located[2]
        target = self._reciprocal_hub(hub_code, flight)
        if target is not None and self._linked_flights(self.repository.store(target), hub_code, flight):
            return AnchorState.SYNCED
        return AnchorState.ANCHORED

    # ------------------------------------------------------------ propagation
    def _commit(self, staged: ManualBlockRepository, hub_code: str, flight: FlightRecord) -> None:
        propagated = staged.stage()
        try:
            self._propagate(propagated, hub_code, flight)
        except ValueError:
            logger.exception("Propagation of %s from %s failed; keeping the local edit only", flight.id, hub_code)
            propagated = staged
        self.repository.commit(propagated)

    def _propagate(
        self, staged: ManualBlockRepository, source_hub: str, flight: FlightRecord
    ) -> List[FlightRecord]:
        """Mirror ``flight``'s anchor delta onto the reciprocal hub. Returns the records written there."""
        target_hub = self._reciprocal_hub(source_hub, flight)
        if target_hub is None:
            logger.debug("No reciprocal dataset for %s (%s); nothing to propagate", flight.id, flight.label)
            return []
        if flight.original_anchor_time is None:
            logger.debug("Flight %s at %s has no anchor yet; nothing to propagate", flight.id, source_hub)
            return []

        delta = signed_delta(flight.original_anchor_time, flight.hub_time)
        target_store = staged.store(target_hub)
        linked = self._linked_flights(target_store, source_hub, flight)

        written: List[FlightRecord] = []
        if linked:
            for counterpart in linked:
                anchor = counterpart.original_anchor_time
                if anchor is None:
                    anchor = counterpart.hub_time
                    logger.debug("Sealing anchor %s on linked flight %s", counterpart.hub_time_str, counterpart.id)
                retimed = counterpart.with_changes(hub_time=shift(anchor, delta), original_anchor_time=anchor)
                target_store.upsert(retimed)
                written.append(retimed)
        else:
            created = self._seed_from_import(staged, target_hub, source_hub, flight, delta)
            if created is None:
                logger.debug("No import row at %s links back to %s; nothing created", target_hub, source_hub)
                return []
            target_store.add(created)
            written.append(created)

        logger.info(
            "Propagated %+d min from %s %s to %d flight(s) at %s",
            delta,
            source_hub,
            flight.id,
            len(written),
            target_hub,
        )
        return written

    def _seed_from_import(
        self,
        staged: ManualBlockRepository,
        target_hub: str,
        source_hub: str,
        flight: FlightRecord,
        delta: int,
    ) -> Optional[FlightRecord]:
        reciprocal = flight.direction.opposite
        row = self.datasets[target_hub].find_counterpart_row(reciprocal, source_hub, flight.airline)
        if row is None or row.hub_minutes is None:
            return None
        anchor = row.hub_minutes
        airline = flight.airline
        return FlightRecord(
            id=staged.next_manual_id(),
            port_code=source_hub,
            direction=reciprocal,
            hub_time=shift(anchor, delta),
            weekly_frequency=flight.weekly_frequency,
            region=self.reference.region_for(source_hub),
            airline=airline,
            flight_number=row.leg(reciprocal).flight_number,
            is_manual=True,
            original_anchor_time=anchor,
            label=f"{source_hub}{' ' + airline if airline else ''} SYNC",
        )

    # ---------------------------------------------------------------- lookups
    def _reciprocal_hub(self, source_hub: str, flight: FlightRecord) -> Optional[str]:
        candidates = [(flight.label or "").split(" ")[0].upper(), flight.port_code]
        for code in candidates:
            if code and code != source_hub and code in self.datasets:
                return code
        return None

    def _linked_flights(
        self, store: ManualBlockStore, source_hub: str, flight: FlightRecord
    ) -> List[FlightRecord]:
        reciprocal = flight.direction.opposite
        airline = (flight.airline or "").upper()
        linked = []
        for _slot_index, direction, candidate in store.iter_flights():
            if direction is not reciprocal or candidate.port_code != source_hub:
                continue
            if airline and (candidate.airline or "").upper() != airline and airline not in candidate.label.upper():
                continue
            linked.append(candidate)
        return linked

    def _import_anchor(self, hub: str, direction: Direction, flight: FlightRecord) -> Optional[int]:
        dataset = self.datasets.get(hub)
        if dataset is None:
            return None
        row = dataset.find_counterpart_row(
            direction,
            flight.port_code,
            flight.airline,
            flight_number=flight.flight_number,
            hub_minutes=flight.hub_time,
        )
        return row.hub_minutes if row is not None else None

    @staticmethod
    def _next_label(store: ManualBlockStore, slot_index: int, direction: Direction, label: str) -> str:
        base = _NEW_SUFFIX.sub("", label)
        pattern = re.compile(rf"^{re.escape(base)} NEW( (\d+))?$")
        highest = 0
        for existing in store.flights_in_slot(slot_index, direction):
            match = pattern.match(existing.label)
            if match:
                highest = max(highest, int(match.group(2)) if match.group(2) else 1)
        return f"{base} NEW" if highest == 0 else f"{base} NEW {highest + 1}"


__all__ = ["AnchorState", "AnchorSyncEngine"]
