"""
Tests for the command-line interface in mock mode.
"""

import json
from pathlib import Path

from typer.testing import CliRunner

from salonbook import __version__
from salonbook.cli.app import app

runner = CliRunner()

DATA = {
    "shops": [{"id": "shop-1", "name": "Salon Mitte", "opening_time": "09:00", "closing_time": "20:30"}],
    "team_members": [
        {"id": "tm-anna", "shop_id": "shop-1", "name": "Anna", "working_days": ["Tuesday"]},
    ],
    "services": [{"id": "svc-cut", "shop_id": "shop-1", "name": "Haircut", "duration": 60, "buffer_time": 10}],
    "appointments": [
        {
            "id": "apt-1",
            "shop_id": "shop-1",
            "team_member_id": "tm-anna",
            "start_time": "2099-03-03T09:00:00Z",
            "end_time": "2099-03-03T10:10:00Z",
            "type": "appointment",
            "service_id": "svc-cut",
            "client_id": "cl-1",
            "client_name": "Maria",
        }
    ],
}


def _setup(tmp_path: Path) -> Path:
    (tmp_path / "data.json").write_text(json.dumps(DATA), encoding="utf-8")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "shop_id: shop-1\ntimezone: Europe/Berlin\ndata_file: data.json\n",
        encoding="utf-8",
    )
    return config_path


def _stored(tmp_path: Path) -> dict:
    data = json.loads((tmp_path / "data.json").read_text(encoding="utf-8"))
    return {row["id"]: row for row in data["appointments"]}


class TestCli:

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_grid(self, tmp_path):
        config_path = _setup(tmp_path)

        result = runner.invoke(app, ["grid", "--config", str(config_path), "--date", "2099-03-03", "--mock"])

        assert result.exit_code == 0
        assert "20:30" in result.stdout
        assert "21:00" in result.stdout

    def test_day(self, tmp_path):
        config_path = _setup(tmp_path)

        result = runner.invoke(app, ["day", "--config", str(config_path), "--date", "2099-03-03", "--mock"])

        assert result.exit_code == 0
        assert "Anna" in result.stdout
        assert "Maria" in result.stdout

    def test_book_saves_to_data_file(self, tmp_path):
        config_path = _setup(tmp_path)

        result = runner.invoke(
            app,
            [
                "book", "anna", "14:00",
                "--service", "svc-cut",
                "--client", "cl-2",
                "--config", str(config_path),
                "--date", "2099-03-03",
                "--mock",
            ],
        )

        assert result.exit_code == 0
        assert len(_stored(tmp_path)) == 2

    def test_book_conflict_fails(self, tmp_path):
        config_path = _setup(tmp_path)

        result = runner.invoke(
            app,
            [
                "book", "tm-anna", "10:30",
                "--service", "svc-cut",
                "--client", "cl-2",
                "--config", str(config_path),
                "--date", "2099-03-03",
                "--mock",
            ],
        )

        assert result.exit_code == 1
        assert len(_stored(tmp_path)) == 1

    def test_move(self, tmp_path):
        config_path = _setup(tmp_path)

        result = runner.invoke(
            app,
            [
                "move", "apt-1", "anna", "13:00",
                "--offset", "12",
                "--config", str(config_path),
                "--date", "2099-03-03",
                "--mock",
            ],
        )

        assert result.exit_code == 0
        assert _stored(tmp_path)["apt-1"]["start_time"] == "2099-03-03T12:10:00Z"

    def test_delete(self, tmp_path):
        config_path = _setup(tmp_path)

        result = runner.invoke(
            app,
            ["delete", "apt-1", "--config", str(config_path), "--date", "2099-03-03", "--mock"],
        )

        assert result.exit_code == 0
        assert _stored(tmp_path) == {}

    def test_unknown_member(self, tmp_path):
        config_path = _setup(tmp_path)

        result = runner.invoke(
            app,
            ["book", "zoe", "14:00", "--config", str(config_path), "--date", "2099-03-03", "--mock"],
        )

        assert result.exit_code == 1

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["day", "--config", str(tmp_path / "nope.yaml")])

        assert result.exit_code == 1
