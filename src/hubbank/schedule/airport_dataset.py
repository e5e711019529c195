"""Imported hub schedules and the CSV importer that produces them."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .clock import parse_clock
from .domain_types import Direction

logger = logging.getLogger(__name__)

_DAY_DIGITS = re.compile(r"[1-7]")
_PORT_IN_NAME = re.compile(r"[A-Z]{3}")


@dataclass(frozen=True)
class LegInfo:
    """One side (inbound or outbound) of an imported schedule row."""

    port_code: str = ""
    airline: Optional[str] = None
    flight_number: Optional[str] = None
    weekly_frequency: int = 0
    seats: int = 0
    passengers: int = 0
    scheduled_time: Optional[str] = None

    def matches(self, port_code: str, airline: Optional[str]) -> bool:
        """Port must match exactly; the airline, when given, must appear in the leg's airline."""
        if self.port_code.upper() != str(port_code or "").upper():
            return False
        if not airline:
            return True
        return bool(self.airline) and airline.upper() in self.airline.upper()


@dataclass(frozen=True)
class ImportRow:
    """A hub connection row: the inbound leg and the outbound leg share one hub time."""

    hub_time: str
    arrival: LegInfo = field(default_factory=LegInfo)
    departure: LegInfo = field(default_factory=LegInfo)

    @property
    def hub_minutes(self) -> Optional[int]:
        return parse_clock(self.hub_time)

    def leg(self, direction: Direction) -> LegInfo:
        return self.arrival if Direction.parse(direction) is Direction.ARRIVAL else self.departure


@dataclass(frozen=True)
class AirportDataset:
    """A hub's identity plus its imported rows. Read-only once built."""

    port_code: str
    rows: Tuple[ImportRow, ...] = ()
    file_name: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "port_code", str(self.port_code or "").strip().upper())
        object.__setattr__(self, "rows", tuple(self.rows))

    def find_counterpart_row(
        self,
        direction: Direction,
        port_code: str,
        airline: Optional[str] = None,
        flight_number: Optional[str] = None,
        hub_minutes: Optional[int] = None,
    ) -> Optional[ImportRow]:
        """
        Return the first row whose ``direction`` leg serves ``port_code`` with ``airline``.

        ``flight_number`` and ``hub_minutes`` narrow the match to one specific
        imported flight when given.
        """
        direction = Direction.parse(direction)
        for row in self.rows:
            leg = row.leg(direction)
            if not leg.matches(port_code, airline):
                continue
            if flight_number and (leg.flight_number or "").upper() != flight_number.upper():
                continue
            if hub_minutes is not None and row.hub_minutes != hub_minutes:
                continue
            return row
        return None

    def airlines(self) -> List[str]:
        found = set()
        for row in self.rows:
            for leg in (row.arrival, row.departure):
                if leg.airline:
                    found.add(leg.airline)
        return sorted(found)

    @classmethod
    def from_records(
        cls,
        port_code: str,
        records: Iterable[Mapping[str, object]],
        file_name: Optional[str] = None,
    ) -> "AirportDataset":
        """Build a dataset from importer-style dictionaries (see :func:`row_from_mapping`)."""
        rows: List[ImportRow] = []
        dropped = 0
        for record in records:
            row = row_from_mapping(record)
            if row is None:
                dropped += 1
                continue
            rows.append(row)
        if dropped:
            logger.warning("Dropped %d rows with unparsable hub_time for %s", dropped, port_code)
        return cls(port_code=port_code, rows=tuple(rows), file_name=file_name)


def parse_days_of_operation(value: object) -> int:
    """Count operating days in a pattern such as ``"1234567"``, ``"1.3.5.7"`` or ``"x2x4x6x"``."""
    text = _as_text(value)
    if text is None:
        return 0
    return len(set(_DAY_DIGITS.findall(text)))


def parse_weekly_frequency(value: object) -> int:
    """Interpret a numeric flights-per-week cell, clamped to 0-7."""
    return min(_as_count(value), 7)


def _as_count(value: object) -> int:
    if value is None:
        return 0
    try:
        if pd.isna(value):
            return 0
    except (TypeError, ValueError):
        pass
    try:
        return max(int(float(value)), 0)
    except (TypeError, ValueError):
        return 0


def _as_text(value: object) -> Optional[str]:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    text = str(value).strip()
    return text or None


def _leg_from_mapping(record: Mapping[str, object], prefix: str) -> LegInfo:
    days = record.get(f"{prefix}_days")
    if _as_text(days) is not None:
        frequency = parse_days_of_operation(days)
    else:
        frequency = parse_weekly_frequency(record.get(f"{prefix}_freq"))
    return LegInfo(
        port_code=(_as_text(record.get(f"{prefix}_port")) or "").upper(),
        airline=_as_text(record.get(f"{prefix}_airline")),
        flight_number=_as_text(record.get(f"{prefix}_flight_no")),
        weekly_frequency=frequency,
        seats=_as_count(record.get(f"{prefix}_seats")),
        passengers=_as_count(record.get(f"{prefix}_pax")),
        scheduled_time=_as_text(record.get(f"{prefix}_time")),
    )


def row_from_mapping(record: Mapping[str, object]) -> Optional[ImportRow]:
    """Convert one importer record into an :class:`ImportRow`, or ``None`` if its hub time is bad."""
    hub_time = _as_text(record.get("hub_time"))
    if hub_time is None or parse_clock(hub_time) is None:
        return None
    return ImportRow(
        hub_time=hub_time,
        arrival=_leg_from_mapping(record, "arrival"),
        departure=_leg_from_mapping(record, "departure"),
    )


def port_code_from_file_name(path: str | Path) -> str:
    match = _PORT_IN_NAME.search(Path(path).stem.upper())
    return match.group(0) if match else "UNK"


def load_airport_dataset(path: str | Path, port_code: Optional[str] = None) -> AirportDataset:
    """
    Load one hub schedule CSV.

    Column names are normalised to snake_case (``"Arrival Port"`` becomes
    ``arrival_port``). The hub code defaults to the first three-letter token of
    the file name, so ``BLR_S24.csv`` loads as ``BLR``.
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Schedule CSV not found at {csv_path}")
    df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    df.columns = [_normalise_column(col) for col in df.columns]
    if "hub_time" not in df.columns:
        raise ValueError(f"Schedule CSV {csv_path} must include a 'hub_time' column")
    code = (port_code or port_code_from_file_name(csv_path)).upper()
    dataset = AirportDataset.from_records(
        code, df.to_dict(orient="records"), file_name=csv_path.name
    )
    logger.info("Loaded %d schedule rows for hub %s from %s", len(dataset.rows), code, csv_path)
    return dataset


def load_airport_datasets(paths: Sequence[str | Path]) -> Dict[str, AirportDataset]:
    datasets: Dict[str, AirportDataset] = {}
    for path in paths:
        dataset = load_airport_dataset(path)
        if not dataset.rows:
            logger.warning("Skipping %s: no usable rows", path)
            continue
        if dataset.port_code in datasets:
            logger.warning("Dataset for %s loaded twice; keeping %s", dataset.port_code, path)
        datasets[dataset.port_code] = dataset
    return datasets


def _normalise_column(name: object) -> str:
    return re.sub(r"[^a-z0-9]+", "_", str(name).strip().lower()).strip("_")


__all__ = [
    "AirportDataset",
    "ImportRow",
    "LegInfo",
    "load_airport_dataset",
    "load_airport_datasets",
    "parse_days_of_operation",
    "parse_weekly_frequency",
    "port_code_from_file_name",
    "row_from_mapping",
]
