"""Tests for the offline sink."""
import os
import stat

import pytest

from netreconcile.config_engine import OfflineSink


class TestOfflineSink:
    """Tests for appending deltas to a set file."""

    def test_append_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "out.set"
        sink = OfflineSink(str(target))
        sink.append(["set vlans users vlan-id 10"])
        assert target.read_text(encoding="utf-8") == "set vlans users vlan-id 10\n"

    def test_append_accumulates(self, tmp_path):
        target = tmp_path / "out.set"
        sink = OfflineSink(str(target))
        sink.append(["set a 1"])
        sink.append(["set b 2", "set c 3"])
        assert target.read_text().splitlines() == ["set a 1", "set b 2", "set c 3"]

    def test_new_file_mode(self, tmp_path):
        target = tmp_path / "out.set"
        OfflineSink(str(target), file_mode=0o600).append(["set a 1"])
        assert stat.S_IMODE(os.stat(target).st_mode) == 0o600

    def test_existing_file_mode_untouched(self, tmp_path):
        target = tmp_path / "out.set"
        target.write_text("set a 1\n")
        os.chmod(target, 0o640)
        OfflineSink(str(target), file_mode=0o600).append(["set b 2"])
        assert stat.S_IMODE(os.stat(target).st_mode) == 0o640

    def test_target_override(self, tmp_path):
        sink = OfflineSink(str(tmp_path / "default.set"))
        other = tmp_path / "other.set"
        assert sink.append(["set a 1"], target_path=str(other)) == other
        assert other.exists()
        assert not (tmp_path / "default.set").exists()

    def test_utf8(self, tmp_path):
        target = tmp_path / "out.set"
        OfflineSink(str(target)).append(['set vlans users description "Büro"'])
        assert "Büro" in target.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_append_async(self, tmp_path):
        target = tmp_path / "out.set"
        await OfflineSink(str(target)).append_async(["set a 1"])
        assert target.read_text() == "set a 1\n"
