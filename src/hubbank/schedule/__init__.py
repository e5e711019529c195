"""Schedule model: hub clock, flight records, imported datasets and hub slots."""

from .airport_dataset import AirportDataset, ImportRow, LegInfo, load_airport_dataset, load_airport_datasets
from .consolidation import HubSlotBuilder, build_hub_slots, consolidate, iter_individuals
from .domain_types import (
    Block,
    Direction,
    FlightRecord,
    HubSlot,
    MarketSegment,
    MergedBlock,
    Region,
    SingleBlock,
)
from .reference_data import DEFAULT_REFERENCE, ReferenceData
from .simulation_config import SimulationParameters

__all__ = [
    "AirportDataset",
    "Block",
    "DEFAULT_REFERENCE",
    "Direction",
    "FlightRecord",
    "HubSlot",
    "HubSlotBuilder",
    "ImportRow",
    "LegInfo",
    "MarketSegment",
    "MergedBlock",
    "ReferenceData",
    "Region",
    "SimulationParameters",
    "SingleBlock",
    "build_hub_slots",
    "consolidate",
    "iter_individuals",
    "load_airport_dataset",
    "load_airport_datasets",
]
