"""Tests for the command-line front end."""
import pytest

from netreconcile import cli


class TestParser:
    """Tests for argument parsing."""

    def test_show_path(self):
        args = cli.build_parser().parse_args(["edge-fw", "show", "vlans", "users"])
        assert args.device == "edge-fw"
        assert args.command == "show"
        assert args.path == ["vlans", "users"]

    def test_routes_table(self):
        args = cli.build_parser().parse_args(["--config", "d.yaml", "edge-fw", "routes", "--table", "inet.0"])
        assert args.config == "d.yaml"
        assert args.table == "inet.0"

    def test_get_unknown_type(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["edge-fw", "get", "firewall", "x"])


class TestMain:
    """Tests for exit codes."""

    def test_missing_inventory(self, tmp_path):
        assert cli.main(["--config", str(tmp_path / "missing.yaml"), "edge-fw", "facts"]) == 1

    def test_unknown_device(self, tmp_path):
        path = tmp_path / "devices.yaml"
        path.write_text("devices:\n  edge-fw:\n    host: 192.0.2.1\n")
        assert cli.main(["--config", str(path), "core", "facts"]) == 1

    def test_get_reads_through_reconciler(self, tmp_path, monkeypatch, capsys, device):
        from conftest import FakeSession

        path = tmp_path / "devices.yaml"
        path.write_text("devices:\n  edge-fw:\n    host: 192.0.2.1\n    password: x\n")
        device.running = ["vlans users vlan-id 10"]

        async def fake_open(config, **kwargs):
            return FakeSession(device)

        monkeypatch.setattr(cli.JunosSession, "open", fake_open)
        assert cli.main(["--config", str(path), "edge-fw", "get", "vlan", "users"]) == 0
        out = capsys.readouterr().out
        assert "vlan_id: 10" in out
