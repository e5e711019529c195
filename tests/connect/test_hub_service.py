from __future__ import annotations

import textwrap
from typing import List

import pandas as pd
import pytest

from hubbank.connect.hub_report_cli import _best, main as hub_report_main
from hubbank.connect.hub_service import HubBankService
from hubbank.connect.matcher import ConnectionDetails
from hubbank.schedule.airport_dataset import AirportDataset
from hubbank.schedule.domain_types import Direction
from hubbank.schedule.simulation_config import SimulationParameters
from hubbank.sync.anchor_sync import AnchorState
from hubbank.sync.workspace import InMemoryKeyValueStore, WorkspaceManager


class StubGenerator:
    def __init__(self):
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return "Shift the DXB arrival earlier."


def _make_service(**kwargs) -> HubBankService:
    blr = AirportDataset.from_records(
        "BLR",
        [
            {"hub_time": "08:00", "arrival_port": "DXB", "arrival_airline": "EK", "arrival_flight_no": "EK564",
             "arrival_freq": "7"},
            {"hub_time": "10:00", "departure_port": "DEL", "departure_airline": "6E", "departure_flight_no": "6E201",
             "departure_freq": "7"},
            {"hub_time": "11:00", "departure_port": "LHR", "departure_airline": "BA", "departure_flight_no": "BA118",
             "departure_freq": "3"},
            {"hub_time": "15:00", "arrival_port": "DEL", "arrival_airline": "6E", "arrival_flight_no": "6E310",
             "arrival_freq": "5"},
            {"hub_time": "18:00", "departure_port": "DXB", "departure_airline": "EK", "departure_flight_no": "EK565",
             "departure_freq": "7"},
        ],
    )
    dxb = AirportDataset.from_records(
        "DXB",
        [{"hub_time": "14:00", "departure_port": "BLR", "departure_airline": "EK", "departure_freq": "7"}],
    )
    return HubBankService({"BLR": blr, "DXB": dxb}, **kwargs)


def test_service_reports_connections_for_a_port():
    service = _make_service()
    connections = service.two_way_summary("blr", "DXB")
    assert [c.port_code for c in connections] == ["DEL", "LHR"]
    assert connections[0].outbound_volume == 7
    assert connections[0].inbound_volume == 5

    summary = service.summary("BLR", 8, Direction.ARRIVAL)
    assert summary.total_frequency == 10
    assert summary.international_frequency == 3
    assert service.airlines() == ["6E", "BA", "EK"]


def test_service_edits_propagate_and_show_in_slots():
    service = _make_service()
    block = service.hub_slots("BLR")[8].arrivals[0]
    placed = service.manual_drop("BLR", 8, Direction.ARRIVAL, block, exact_time="08:30")

    blr_slots = service.hub_slots("BLR")
    assert [b.flight.id for b in blr_slots[8].arrivals] == [block.flight.id, placed.id]
    dxb_slots = service.hub_slots("DXB")
    assert [b.flight.label for b in dxb_slots[14].departures] == ["BLR", "BLR EK SYNC"]
    assert dxb_slots[14].departures[1].flight.hub_time_str == "14:30"
    assert service.anchor_state("BLR", placed.id) is AnchorState.SYNCED

    summary = service.summary("BLR", 8, Direction.ARRIVAL, flight_id=placed.id)
    assert summary.focus_time == "08:30"

    service.delete_manual_flight("BLR", placed.id)
    assert len(service.hub_slots("BLR")[8].arrivals) == 1


def test_parameters_change_connection_window():
    service = _make_service()
    service.set_parameters(SimulationParameters(mct_hours=2.5))
    connections = service.two_way_summary("BLR", "DXB")
    assert [c.port_code for c in connections if c.outbound_details] == ["LHR"]
    assert [c.port_code for c in connections if c.inbound_details] == ["DEL"]


def test_workspace_capture_and_restore():
    service = _make_service(workspace=WorkspaceManager(InMemoryKeyValueStore()))
    block = service.hub_slots("BLR")[8].arrivals[0]
    snapshot = service.capture_snapshot("Before edit")
    service.manual_drop("BLR", 8, Direction.ARRIVAL, block, exact_time="08:30")
    service.set_parameters(SimulationParameters(window_hours=3))
    service.save_workspace()

    service.restore_snapshot(snapshot.id)
    assert service.repository.to_dict() == {}
    assert service.parameters == SimulationParameters()

    service.load_workspace()
    assert service.repository.to_dict() == {}

    created = service.create_manual_flight("BLR", "arr", "SIN", "09:15")
    assert created.id == "m-000003"
    service.reset_workspace()
    assert service.repository.to_dict() == {}


def test_dataset_registration_and_commentary():
    service = _make_service()
    removed = service.remove_dataset("dxb")
    assert removed.port_code == "DXB"
    with pytest.raises(KeyError):
        service.hub_slots("DXB")

    generator = StubGenerator()
    text = service.commentary("BLR", [(8, Direction.ARRIVAL, None), (18, "dep", None)], generator)
    assert text == "Shift the DXB arrival earlier."
    assert "for BLR." in generator.prompts[0]


def test_report_cli_writes_connection_csv(tmp_path, capsys):
    csv_path = tmp_path / "BLR_S24.csv"
    csv_path.write_text(
        textwrap.dedent(
            """
            hub_time,arrival_port,arrival_freq,departure_port,departure_flight_no,departure_freq
            08:00,DXB,7,,,
            10:00,,,DEL,6E201,7
            11:00,,,LHR,BA118,3
            """
        ).strip()
        + "\n",
        encoding="utf-8",
    )
    config_path = tmp_path / "params.yaml"
    config_path.write_text("mct_hours: 1.5\nwindow_hours: 6\n", encoding="utf-8")
    output_csv = tmp_path / "out" / "dxb.csv"

    hub_report_main(
        [
            "--dataset", str(csv_path),
            "--hub", "BLR",
            "--port", "DXB",
            "--config", str(config_path),
            "--output-csv", str(output_csv),
            "--log-level", "WARNING",
        ]
    )

    frame = pd.read_csv(output_csv)
    assert frame["port_code"].tolist() == ["DEL", "LHR"]
    assert frame["flow"].unique().tolist() == ["outbound"]
    assert "two-way connections at BLR" in capsys.readouterr().out


def test_report_cli_exits_on_missing_dataset(tmp_path):
    with pytest.raises(SystemExit):
        hub_report_main(["--dataset", str(tmp_path / "missing.csv"), "--hub", "BLR", "--port", "DXB"])


def test_report_best_column_formats_wait_time():
    detail = ConnectionDetails(
        time_minutes=135,
        focal_time="08:00",
        focal_frequency=7,
        connecting_time="10:15",
        connecting_frequency=7,
        flight_number="6E201",
    )
    assert _best(detail) == "10:15 (2h 15m)"
    assert _best(None) == "-"
