"""High-level API tying imported schedules, manual edits and connection analysis together.

:class:`HubBankService` owns the loaded :class:`AirportDataset` objects, the
operator's :class:`ManualBlockRepository` and the active
:class:`SimulationParameters`. Every query rebuilds its view from that state,
so the results always reflect the latest edit, including edits propagated
from another hub.

Example Usage
-------------
.. code-block:: python

    from hubbank.connect.hub_service import HubBankService
    from hubbank.schedule.airport_dataset import load_airport_datasets

    service = HubBankService(load_airport_datasets(["data/BLR_S24.csv", "data/DXB_S24.csv"]))
    slots = service.hub_slots("BLR")
    block = slots[10].arrivals[0]
    service.manual_drop("BLR", 10, "arr", block, exact_time="10:45")
    print(service.summary("BLR", 10, "arr"))

Notes
-----
- Edits go through :class:`hubbank.sync.anchor_sync.AnchorSyncEngine`, so a
  retime at one hub may also move or create a flight at the reciprocal hub.
- Parameter changes only affect analysis and filtering; manual flights stay
  where they are.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Tuple, Union

from hubbank.schedule.airport_dataset import AirportDataset
from hubbank.schedule.consolidation import build_hub_slots
from hubbank.schedule.domain_types import Block, Direction, FlightRecord, HubSlot
from hubbank.schedule.reference_data import DEFAULT_REFERENCE, ReferenceData
from hubbank.schedule.simulation_config import SimulationParameters
from hubbank.sync.anchor_sync import AnchorState, AnchorSyncEngine
from hubbank.sync.manual_store import ManualBlockRepository, hub_key
from hubbank.sync.workspace import WorkspaceManager, WorkspaceSnapshot

from .commentary import (
    CommentaryGenerator,
    build_commentary_prompt,
    build_comparison_payload,
    generate_commentary,
)
from .matcher import ConnectionMatcher
from .synergy import Summary, SynergyAggregator, TwoWayConnection

logger = logging.getLogger(__name__)


class HubBankService:
    """Facade over the schedule, connect and sync packages for one session."""

    def __init__(
        self,
        datasets: Mapping[str, AirportDataset] | None = None,
        *,
        parameters: SimulationParameters | None = None,
        repository: ManualBlockRepository | None = None,
        reference: ReferenceData | None = None,
        workspace: WorkspaceManager | None = None,
    ) -> None:
        self._datasets: Dict[str, AirportDataset] = {}
        for dataset in (datasets or {}).values():
            self.register_dataset(dataset)
        self.parameters = parameters or SimulationParameters()
        self.repository = repository or ManualBlockRepository()
        self.reference = reference or DEFAULT_REFERENCE
        self.workspace = workspace
        self._engine = AnchorSyncEngine(self.repository, self._datasets, self.reference)

    # --------------------------------------------------------------- datasets
    @property
    def datasets(self) -> Mapping[str, AirportDataset]:
        return self._datasets

    def register_dataset(self, dataset: AirportDataset) -> None:
        if dataset.port_code in self._datasets:
            logger.info("Replacing dataset for %s", dataset.port_code)
        self._datasets[dataset.port_code] = dataset

    def remove_dataset(self, hub: str) -> Optional[AirportDataset]:
        """Forget a hub's import. Its manual flights are kept in the repository."""
        return self._datasets.pop(hub_key(hub), None)

    def dataset(self, hub: str) -> AirportDataset:
        code = hub_key(hub)
        try:
            return self._datasets[code]
        except KeyError as exc:
            raise KeyError(f"No dataset loaded for hub {code}") from exc

    def airlines(self) -> List[str]:
        found = {airline for dataset in self._datasets.values() for airline in dataset.airlines()}
        return sorted(found)

    # ---------------------------------------------------------------- queries
    def set_parameters(self, parameters: SimulationParameters) -> None:
        self.parameters = parameters

    def matcher(self) -> ConnectionMatcher:
        return ConnectionMatcher.from_parameters(self.parameters)

    def hub_slots(self, hub: str) -> Tuple[HubSlot, ...]:
        dataset = self.dataset(hub)
        manual = self.repository.store(dataset.port_code).flights()
        return build_hub_slots(dataset, manual, self.parameters, self.reference)

    def aggregator(self, hub: str) -> SynergyAggregator:
        code = hub_key(hub)
        return SynergyAggregator(self.hub_slots(code), self.matcher(), self.reference, focus_hub=code)

    def two_way_summary(self, hub: str, port_code: str) -> List[TwoWayConnection]:
        return self.aggregator(hub).two_way_summary(port_code)

    def summary(
        self, hub: str, slot_index: int, direction: Direction, flight_id: Optional[str] = None
    ) -> Optional[Summary]:
        return self.aggregator(hub).summary(slot_index, direction, flight_id)

    def anchor_state(self, hub: str, flight_id: str) -> AnchorState:
        return self._engine.anchor_state(hub, flight_id)

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
        return self._engine.manual_drop(hub, slot_index, direction, block, from_slot, exact_time)

    def update_manual_flight(
        self, hub: str, slot_index: int, direction: Direction, updated: FlightRecord
    ) -> FlightRecord:
        return self._engine.update_manual_flight(hub, slot_index, direction, updated)

    def retime(self, hub: str, flight_id: str, new_time: Union[str, int]) -> FlightRecord:
        return self._engine.retime(hub, flight_id, new_time)

    def create_manual_flight(
        self, hub: str, direction: Direction, port_code: str, hub_time: Union[str, int], **fields: object
    ) -> FlightRecord:
        return self._engine.create_manual_flight(hub, direction, port_code, hub_time, **fields)

    def delete_manual_flight(self, hub: str, flight_id: str) -> Optional[FlightRecord]:
        return self._engine.delete_manual_flight(hub, flight_id)

    # ------------------------------------------------------------- commentary
    def commentary(
        self,
        hub: str,
        selections: List[Tuple[int, Direction, Optional[str]]],
        generator: CommentaryGenerator,
        *,
        daily: bool = False,
    ) -> str:
        """Summarise each ``(slot, direction, flight_id)`` selection and ask ``generator`` for advice."""
        aggregator = self.aggregator(hub)
        entries = [
            (Direction.parse(direction), aggregator.summary(slot_index, direction, flight_id))
            for slot_index, direction, flight_id in selections
        ]
        payload = build_comparison_payload(entries, daily=daily)
        prompt = build_commentary_prompt(hub_key(hub), self.parameters, payload)
        return generate_commentary(generator, prompt)

    # -------------------------------------------------------------- workspace
    def _require_workspace(self) -> WorkspaceManager:
        if self.workspace is None:
            raise RuntimeError("No workspace store configured for this service")
        return self.workspace

    def save_workspace(self) -> None:
        self._require_workspace().save_current(self.repository, self.parameters)

    def load_workspace(self) -> None:
        repository, parameters = self._require_workspace().load_current()
        self._adopt(repository, parameters)

    def capture_snapshot(self, name: str) -> WorkspaceSnapshot:
        return self._require_workspace().capture(name, self.repository, self.parameters)

    def restore_snapshot(self, snapshot_id: str) -> None:
        repository, parameters = self._require_workspace().restore(snapshot_id)
        self._adopt(repository, parameters)

    def reset_workspace(self) -> None:
        if self.workspace is not None:
            repository, parameters = self.workspace.reset()
        else:
            repository, parameters = ManualBlockRepository(), SimulationParameters()
        self._adopt(repository, parameters)

    def _adopt(self, repository: ManualBlockRepository, parameters: SimulationParameters) -> None:
        self.repository.commit(repository)
        self.parameters = parameters


__all__ = ["HubBankService"]
