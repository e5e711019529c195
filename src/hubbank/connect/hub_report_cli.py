"""CLI that prints the two-way connection report of one port at a hub."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd
from rich.console import Console
from rich.table import Table

from hubbank.schedule.airport_dataset import load_airport_datasets
from hubbank.schedule.clock import format_duration
from hubbank.schedule.reference_data import ReferenceData
from hubbank.schedule.simulation_config import SimulationParameters
from hubbank.sync.workspace import JsonDirectoryStore, WorkspaceManager

from .hub_service import HubBankService
from .matcher import ConnectionDetails
from .synergy import TwoWayConnection, filter_by_market, two_way_dataframe

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--dataset",
        action="append",
        required=True,
        help="Hub schedule CSV; repeat for every hub. The hub code comes from the file name.",
    )
    parser.add_argument("--hub", required=True, help="Hub whose bank is analysed, e.g. BLR.")
    parser.add_argument("--port", required=True, help="Focal port at the hub, e.g. DXB.")
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML file with simulation parameters (mct_hours, window_hours, filters).",
    )
    parser.add_argument("--reference", default=None, help="Optional YAML file overriding reference data.")
    parser.add_argument(
        "--workspace",
        default=None,
        help="Optional workspace directory; its saved manual blocks and settings are applied.",
    )
    parser.add_argument(
        "--market",
        default="All",
        choices=["All", "Domestic", "International"],
        help="Only report ports of this market.",
    )
    parser.add_argument("--output-csv", default=None, help="Destination CSV for the connection rows.")
    parser.add_argument("--daily", action="store_true", help="Show frequencies per day instead of per week.")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


def build_service(args: argparse.Namespace) -> HubBankService:
    try:
        datasets = load_airport_datasets(args.dataset)
        reference = ReferenceData.from_yaml(args.reference) if args.reference else None
        workspace = WorkspaceManager(JsonDirectoryStore(args.workspace)) if args.workspace else None
        service = HubBankService(datasets, reference=reference, workspace=workspace)
        if workspace is not None:
            service.load_workspace()
        if args.config:
            service.set_parameters(SimulationParameters.from_yaml(args.config))
    except (FileNotFoundError, TypeError, ValueError) as exc:
        raise SystemExit(str(exc)) from exc
    if args.hub.upper() not in service.datasets:
        raise SystemExit(f"No dataset loaded for hub {args.hub.upper()}")
    return service


def render_table(
    hub: str, port: str, connections: Sequence[TwoWayConnection], *, daily: bool = False
) -> Table:
    unit = "/day" if daily else "/wk"
    table = Table(title=f"{port.upper()} two-way connections at {hub.upper()}")
    table.add_column("Port")
    table.add_column("Region")
    table.add_column("Market")
    table.add_column(f"Out {unit}", justify="right")
    table.add_column(f"In {unit}", justify="right")
    table.add_column("Best out", justify="right")
    table.add_column("Best in", justify="right")
    table.add_column("Synergy", justify="right")
    for connection in connections:
        table.add_row(
            connection.port_code,
            connection.region.value,
            connection.market.value,
            _frequency(connection.outbound_volume, daily),
            _frequency(connection.inbound_volume, daily),
            _best(connection.best_outbound),
            _best(connection.best_inbound),
            f"{connection.synergy_score:.1f}",
        )
    return table


def _frequency(value: float, daily: bool) -> str:
    return f"{value / 7:.1f}" if daily else f"{value:g}"


def _best(detail: Optional[ConnectionDetails]) -> str:
    if detail is None:
        return "-"
    return f"{detail.connecting_time} ({format_duration(detail.time_minutes)})"


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    service = build_service(args)

    connections: List[TwoWayConnection] = service.two_way_summary(args.hub, args.port)
    connections = filter_by_market(connections, args.market)
    logger.info(
        "%d ports connect with %s at %s (MCT %s, window %s)",
        len(connections),
        args.port.upper(),
        args.hub.upper(),
        format_duration(service.parameters.mct_minutes),
        format_duration(service.parameters.window_minutes),
    )

    Console().print(render_table(args.hub, args.port, connections, daily=args.daily))

    if args.output_csv:
        dataframe = two_way_dataframe(connections)
        if args.daily:
            for column in ("focal_frequency", "connecting_frequency"):
                dataframe[column] = dataframe[column] / 7
        _write_csv(args.output_csv, dataframe)
        logger.info("Wrote %d connection rows to %s", len(dataframe), args.output_csv)


def _write_csv(path: str | Path, dataframe: pd.DataFrame) -> None:
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    dataframe.to_csv(output_path, index=False)


if __name__ == "__main__":
    main()
