"""Tests for the chunked send and receive loops."""

from __future__ import annotations

import io
import socket
from pathlib import Path
from unittest.mock import patch

import pytest

from resumeft.core.ledger import LedgerWriteError, ProgressLedger
from resumeft.core.transfer import prepare_destination, receive_range, send_range
from resumeft.core.types import LocalIOError, TransportError
from resumeft.core.wire import ReliableStream, read_exact

Pair = tuple[socket.socket, socket.socket]


class TestSendRange:
    """Tests for the sending loop."""

    def test_sends_exact_range(self, socket_pair: Pair, payload) -> None:
        """Should send bytes [offset, offset + count) in chunks."""
        a, b = socket_pair
        data = payload(20000)
        stats = send_range(ReliableStream(a), io.BytesIO(data), 15000, 5000, chunk_size=1024)
        assert read_exact(b, 5000) == data[15000:]
        assert stats.bytes_sent == 5000
        assert stats.chunks == 5

    def test_zero_count_sends_nothing(self, socket_pair: Pair) -> None:
        """A complete transfer should send no payload bytes."""
        a, b = socket_pair
        stats = send_range(ReliableStream(a), io.BytesIO(b"abc"), 3, 0)
        assert stats.bytes_sent == 0
        assert stats.chunks == 0

    def test_file_shorter_than_declared(self, socket_pair: Pair) -> None:
        """A source that ends early should be a local I/O error."""
        a, _ = socket_pair
        with pytest.raises(LocalIOError, match="ended"):
            send_range(ReliableStream(a), io.BytesIO(b"x" * 10), 0, 20)

    def test_reports_chunks(self, socket_pair: Pair, payload) -> None:
        """Callback should see every position up to the size."""
        a, b = socket_pair
        seen: list[tuple[int, int]] = []
        send_range(
            ReliableStream(a), io.BytesIO(payload(3000)), 1000, 2000,
            chunk_size=1000, on_chunk=lambda pos, size: seen.append((pos, size)),
        )
        read_exact(b, 2000)
        assert seen == [(2000, 3000), (3000, 3000)]

    def test_observational_ledger(self, socket_pair: Pair, tmp_path: Path, payload) -> None:
        """Sender-side ledger should follow bytes sent."""
        a, b = socket_pair
        ledger = ProgressLedger(tmp_path / "src.bin")
        send_range(ReliableStream(a), io.BytesIO(payload(4096)), 0, 4096, chunk_size=1024, ledger=ledger)
        read_exact(b, 4096)
        assert ledger.read() == 4096

    def test_peer_gone(self, socket_pair: Pair, payload) -> None:
        """Writing to a closed peer should be a transport error."""
        a, b = socket_pair
        b.close()
        with pytest.raises(TransportError):
            send_range(ReliableStream(a), io.BytesIO(payload(1 << 20)), 0, 1 << 20)


class TestPrepareDestination:
    """Tests for positioning the destination."""

    def test_creates_missing_file(self, tmp_path: Path) -> None:
        """A missing destination (and parents) should be created."""
        target = tmp_path / "a" / "b" / "new.bin"
        with prepare_destination(target, 0) as f:
            assert f.tell() == 0
        assert target.exists()

    def test_truncates_stale_tail(self, tmp_path: Path) -> None:
        """Bytes beyond the offset should be discarded before writing."""
        target = tmp_path / "f.bin"
        target.write_bytes(b"A" * 100)
        with prepare_destination(target, 40) as f:
            assert f.tell() == 40
            assert target.stat().st_size == 40

    def test_keeps_prefix(self, tmp_path: Path) -> None:
        """Bytes before the offset should be untouched."""
        target = tmp_path / "f.bin"
        target.write_bytes(b"0123456789")
        with prepare_destination(target, 4) as f:
            f.write(b"xy")
        assert target.read_bytes() == b"0123xy"

    def test_shorter_than_offset(self, tmp_path: Path) -> None:
        """A file shorter than the offset cannot be resumed."""
        target = tmp_path / "f.bin"
        target.write_bytes(b"abc")
        with pytest.raises(LocalIOError):
            prepare_destination(target, 10)


class TestReceiveRange:
    """Tests for the receiving loop and its ledger updates."""

    def test_receives_and_clears_ledger(self, socket_pair: Pair, tmp_path: Path, payload) -> None:
        """A complete receive should write all bytes and remove the record."""
        a, b = socket_pair
        data = payload(20000)
        target = tmp_path / "out.bin"
        ledger = ProgressLedger(target)
        a.sendall(data)

        with prepare_destination(target, 0) as dest:
            stats = receive_range(ReliableStream(b), dest, 0, 20000, ledger, chunk_size=8192)

        assert target.read_bytes() == data
        assert stats.bytes_received == 20000
        assert stats.chunks == 3
        assert not ledger.exists

    def test_record_follows_each_chunk(self, socket_pair: Pair, tmp_path: Path, payload) -> None:
        """The record should be updated after every chunk, monotonically."""
        a, b = socket_pair
        target = tmp_path / "out.bin"
        ledger = ProgressLedger(target)
        recorded: list[int] = []
        real_record = ProgressLedger.record

        def spy(self: ProgressLedger, value: int) -> None:
            real_record(self, value)
            recorded.append(value)

        a.sendall(payload(2500))
        with patch.object(ProgressLedger, "record", spy), prepare_destination(target, 0) as dest:
            receive_range(ReliableStream(b), dest, 0, 2500, ledger, chunk_size=1000)

        assert recorded == [1000, 2000, 2500]

    def test_disconnect_leaves_last_record(self, socket_pair: Pair, tmp_path: Path, payload) -> None:
        """An early disconnect should keep the record at confirmed bytes."""
        a, b = socket_pair
        data = payload(10000)
        target = tmp_path / "out.bin"
        ledger = ProgressLedger(target)
        a.sendall(data[:3500])
        a.close()

        with prepare_destination(target, 0) as dest:
            with pytest.raises(TransportError):
                receive_range(ReliableStream(b), dest, 0, 10000, ledger, chunk_size=1000)

        recorded = ledger.read()
        assert recorded == 3000
        assert target.stat().st_size >= recorded
        assert target.read_bytes()[:recorded] == data[:recorded]

    def test_ledger_failure_is_not_fatal(self, socket_pair: Pair, tmp_path: Path, payload) -> None:
        """Failing to persist progress should only be counted."""
        a, b = socket_pair
        data = payload(3000)
        target = tmp_path / "out.bin"
        ledger = ProgressLedger(target)
        a.sendall(data)

        with patch.object(ProgressLedger, "record", side_effect=LedgerWriteError("nope")):
            with prepare_destination(target, 0) as dest:
                stats = receive_range(ReliableStream(b), dest, 0, 3000, ledger, chunk_size=1000)

        assert target.read_bytes() == data
        assert stats.ledger_failures == 3

    def test_resumes_at_offset(self, socket_pair: Pair, tmp_path: Path, payload) -> None:
        """Receiving from an offset should append after the kept prefix."""
        a, b = socket_pair
        data = payload(20000)
        target = tmp_path / "out.bin"
        target.write_bytes(data[:15000])
        a.sendall(data[15000:])

        with prepare_destination(target, 15000) as dest:
            stats = receive_range(ReliableStream(b), dest, 15000, 20000, ProgressLedger(target))

        assert stats.bytes_received == 5000
        assert target.read_bytes() == data

    def test_stale_record_lowered_to_offset(self, socket_pair: Pair, tmp_path: Path) -> None:
        """A record above the agreed offset should be lowered before receiving."""
        a, b = socket_pair
        target = tmp_path / "out.bin"
        target.write_bytes(b"z" * 10)
        ProgressLedger(target).record(9000)
        a.close()

        ledger = ProgressLedger(target)
        with prepare_destination(target, 10) as dest:
            with pytest.raises(TransportError):
                receive_range(ReliableStream(b), dest, 10, 100, ledger)

        assert ledger.read() == 10
