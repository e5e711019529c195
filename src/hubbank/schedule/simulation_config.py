from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Tuple

import yaml

from .domain_types import CONTINENTAL_REGIONS, MarketSegment, Region

logger = logging.getLogger(__name__)

DEFAULT_MCT_HOURS = 1.5
DEFAULT_WINDOW_HOURS = 6.0


@dataclass(frozen=True)
class SimulationParameters:
    """Operator-tunable settings for connection analysis and slot filtering."""

    mct_hours: float = DEFAULT_MCT_HOURS
    window_hours: float = DEFAULT_WINDOW_HOURS
    selected_regions: Tuple[Region, ...] = CONTINENTAL_REGIONS
    market_filter: MarketSegment = MarketSegment.ALL
    selected_airlines: Tuple[str, ...] = ()
    always_show_focus_hub: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "mct_hours", float(self.mct_hours))
        object.__setattr__(self, "window_hours", float(self.window_hours))
        object.__setattr__(
            self, "selected_regions", tuple(Region.parse(r) for r in self.selected_regions)
        )
        object.__setattr__(self, "market_filter", MarketSegment.parse(self.market_filter))
        object.__setattr__(
            self, "selected_airlines", tuple(str(a) for a in self.selected_airlines if str(a))
        )
        object.__setattr__(self, "always_show_focus_hub", bool(self.always_show_focus_hub))
        self._validate()

    def _validate(self) -> None:
        if self.mct_hours < 0:
            raise ValueError("Minimum connection time cannot be negative")
        if self.window_hours <= 0:
            raise ValueError("Connection window must be positive")
        if self.window_hours > 24:
            logger.warning(
                "Connection window of %.1fh exceeds a day; every flight will connect",
                self.window_hours,
            )

    @property
    def mct_minutes(self) -> int:
        return int(round(self.mct_hours * 60))

    @property
    def window_minutes(self) -> int:
        return int(round(self.window_hours * 60))

    # ------------------------------------------------------------------- I/O
    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "SimulationParameters":
        if not isinstance(data, Mapping):
            raise TypeError("Simulation parameters must be a mapping")
        regions = data.get("selected_regions")
        if regions is not None and not isinstance(regions, (list, tuple)):
            raise TypeError("'selected_regions' must be a list of region names")
        airlines = data.get("selected_airlines") or []
        if not isinstance(airlines, (list, tuple)):
            raise TypeError("'selected_airlines' must be a list of airline codes")
        return cls(
            mct_hours=float(data.get("mct_hours", DEFAULT_MCT_HOURS)),
            window_hours=float(data.get("window_hours", DEFAULT_WINDOW_HOURS)),
            selected_regions=tuple(regions) if regions is not None else CONTINENTAL_REGIONS,
            market_filter=data.get("market_filter", MarketSegment.ALL.value),
            selected_airlines=tuple(airlines),
            always_show_focus_hub=bool(data.get("always_show_focus_hub", True)),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "mct_hours": self.mct_hours,
            "window_hours": self.window_hours,
            "selected_regions": [region.value for region in self.selected_regions],
            "market_filter": self.market_filter.value,
            "selected_airlines": list(self.selected_airlines),
            "always_show_focus_hub": self.always_show_focus_hub,
        }

    @classmethod
    def from_yaml(cls, path: str | Path) -> "SimulationParameters":
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Simulation parameters YAML not found at {config_path}")
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        return cls.from_mapping(data)

    def to_yaml(self, path: str | Path) -> None:
        dest = Path(path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        with dest.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(self.to_dict(), handle, sort_keys=True)


__all__ = ["DEFAULT_MCT_HOURS", "DEFAULT_WINDOW_HOURS", "SimulationParameters"]
