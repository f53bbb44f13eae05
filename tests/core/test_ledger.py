"""Tests for durable progress records."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from resumeft.core.ledger import LedgerWriteError, ProgressLedger, ledger_path_for


class TestLedgerPaths:
    """Tests for record naming."""

    def test_record_is_adjacent_to_target(self, tmp_path: Path) -> None:
        """Record should be <target>.progress next to the target."""
        target = tmp_path / "movie.mkv"
        ledger = ProgressLedger(target)
        assert ledger.path == tmp_path / "movie.mkv.progress"
        assert ledger.tmp_path == tmp_path / "movie.mkv.progress.tmp"
        assert ledger_path_for(target) == ledger.path


class TestLedgerRecord:
    """Tests for recording, reading and clearing."""

    @pytest.fixture
    def ledger(self, tmp_path: Path) -> ProgressLedger:
        return ProgressLedger(tmp_path / "data.bin")

    def test_absent_record_reads_none(self, ledger: ProgressLedger) -> None:
        """No record means no known in-progress transfer."""
        assert ledger.read() is None
        assert not ledger.exists

    def test_record_is_decimal_text(self, ledger: ProgressLedger) -> None:
        """Record content should be a human-readable decimal count."""
        ledger.record(16384)
        assert ledger.path.read_text() == "16384\n"
        assert ledger.read() == 16384

    def test_no_temporary_file_left(self, ledger: ProgressLedger) -> None:
        """A completed update should leave no temporary file."""
        ledger.record(1)
        ledger.record(2)
        assert not ledger.tmp_path.exists()

    def test_survives_new_instance(self, tmp_path: Path) -> None:
        """A record should be readable after a simulated restart."""
        ProgressLedger(tmp_path / "f").record(777)
        assert ProgressLedger(tmp_path / "f").read() == 777

    def test_monotonic(self, ledger: ProgressLedger) -> None:
        """Recorded values should never decrease."""
        ledger.record(8192)
        ledger.record(8192)
        with pytest.raises(ValueError):
            ledger.record(4096)
        assert ledger.read() == 8192

    def test_negative_rejected(self, ledger: ProgressLedger) -> None:
        """Negative counts should be rejected."""
        with pytest.raises(ValueError):
            ledger.record(-1)

    def test_clear_removes_record_and_tmp(self, ledger: ProgressLedger) -> None:
        """Clear should remove the record and any stray temporary file."""
        ledger.record(10)
        ledger.tmp_path.write_text("99\n")
        ledger.clear()
        assert not ledger.path.exists()
        assert not ledger.tmp_path.exists()

    def test_clear_is_idempotent(self, ledger: ProgressLedger) -> None:
        """Clearing without a record should not fail."""
        ledger.clear()
        ledger.clear()

    def test_clear_resets_monotonic_floor(self, ledger: ProgressLedger) -> None:
        """After clearing, a new transfer can start from zero."""
        ledger.record(500)
        ledger.clear()
        ledger.record(0)
        assert ledger.read() == 0

    @pytest.mark.parametrize("content", ["", "abc\n", "-5\n", "12 34\n"])
    def test_malformed_record_ignored(self, ledger: ProgressLedger, content: str) -> None:
        """Unparsable records should be treated as absent."""
        ledger.path.write_text(content)
        assert ledger.read() is None


class TestLedgerAtomicity:
    """Tests for crash-consistent updates."""

    def test_failed_replace_keeps_previous_value(self, tmp_path: Path) -> None:
        """A failed swap should leave the old record intact."""
        ledger = ProgressLedger(tmp_path / "f.bin")
        ledger.record(4096)

        with patch("resumeft.core.ledger.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(LedgerWriteError):
                ledger.record(8192)

        assert ledger.read() == 4096
        assert not ledger.tmp_path.exists()

    def test_fsyncs_before_replace(self, tmp_path: Path) -> None:
        """The temporary record should be forced durable before the swap."""
        ledger = ProgressLedger(tmp_path / "f.bin")
        calls: list[str] = []
        real_fsync = os.fsync
        real_replace = os.replace

        def fsync(fd: int) -> None:
            calls.append("fsync")
            real_fsync(fd)

        def replace(src: object, dst: object) -> None:
            calls.append("replace")
            real_replace(src, dst)

        with patch("resumeft.core.ledger.os.fsync", side_effect=fsync), \
                patch("resumeft.core.ledger.os.replace", side_effect=replace):
            ledger.record(1)

        assert calls.index("fsync") < calls.index("replace")

    def test_unwritable_directory(self, tmp_path: Path) -> None:
        """A missing directory should raise LedgerWriteError."""
        ledger = ProgressLedger(tmp_path / "missing" / "f.bin")
        with pytest.raises(LedgerWriteError):
            ledger.record(1)
