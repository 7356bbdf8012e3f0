"""Unit tests for the ClamAV engine adapter.

All tests are fully offline.  The ``clamd.ClamdNetworkSocket`` client is
replaced by :class:`unittest.mock.MagicMock` so no live clamd daemon is
required.

Coverage areas:

* ``_parse_clamd_response`` — clamd response dict → Verdict, including
  ``ERROR`` results mapping to ``unchecked``.
* ``ClamAVSession`` — spooling fed chunks, oversize input, ``finish`` with
  clean, infected and every failure mode.
* ``ClamAVEngine`` — constructor wiring, ``open_session`` and ``ping``.
"""

from __future__ import annotations

import socket
from unittest.mock import MagicMock, patch

import clamd
import pytest

from scanguard.core.verdict import Verdict
from scanguard.engines.base import ScanEngineError
from scanguard.engines.clamav import ClamAVEngine, ClamAVSession, _parse_clamd_response


# ---------------------------------------------------------------------------
# _parse_clamd_response
# ---------------------------------------------------------------------------


def test_parse_ok_response_returns_clean() -> None:
    assert _parse_clamd_response({"stream": ("OK", None)}) == Verdict.clean()


def test_parse_found_response_returns_infected() -> None:
    verdict = _parse_clamd_response({"stream": ("FOUND", "Win.Test.EICAR_HDB-1")})
    assert verdict == Verdict.infected("Win.Test.EICAR_HDB-1")


def test_parse_found_without_name_uses_placeholder() -> None:
    assert _parse_clamd_response({"stream": ("FOUND", None)}) == Verdict.infected("UNKNOWN")


def test_parse_error_response_returns_unchecked() -> None:
    verdict = _parse_clamd_response({"stream": ("ERROR", "INSTREAM size limit exceeded")})
    assert verdict == Verdict.unchecked("INSTREAM size limit exceeded")


def test_parse_error_without_message_still_has_details() -> None:
    verdict = _parse_clamd_response({"stream": ("ERROR", None)})
    assert verdict is not None and verdict.is_unchecked and verdict.details


@pytest.mark.parametrize("response", [None, {}])
def test_parse_empty_response_returns_none(response) -> None:
    assert _parse_clamd_response(response) is None


def test_parse_unrecognised_status_returns_none() -> None:
    assert _parse_clamd_response({"stream": ("WHAT", None)}) is None


# ---------------------------------------------------------------------------
# ClamAVSession
# ---------------------------------------------------------------------------


def _capturing_client(response) -> tuple[MagicMock, list[bytes]]:
    captured: list[bytes] = []
    client = MagicMock()

    def instream(buff):
        captured.append(buff.read())
        return response

    client.instream.side_effect = instream
    return client, captured


class TestClamAVSession:
    def test_feed_returns_none_until_finish(self) -> None:
        client, _ = _capturing_client({"stream": ("OK", None)})
        session = ClamAVSession(client, stream_max_length=100)
        assert session.feed(b"abc") is None
        assert session.feed(b"def") is None
        client.instream.assert_not_called()

    def test_finish_streams_all_fed_bytes(self) -> None:
        client, captured = _capturing_client({"stream": ("OK", None)})
        session = ClamAVSession(client, stream_max_length=100)
        session.feed(b"abc")
        session.feed(b"def")
        assert session.finish() == Verdict.clean()
        assert captured == [b"abcdef"]

    def test_finish_returns_infected(self) -> None:
        client, _ = _capturing_client({"stream": ("FOUND", "Eicar-Signature")})
        session = ClamAVSession(client, stream_max_length=100)
        session.feed(b"X5O!P%@AP")
        assert session.finish() == Verdict.infected("Eicar-Signature")

    def test_oversize_input_returns_unchecked(self) -> None:
        client, _ = _capturing_client({"stream": ("OK", None)})
        session = ClamAVSession(client, stream_max_length=5)
        assert session.feed(b"abc") is None
        verdict = session.feed(b"def")
        assert verdict is not None and verdict.is_unchecked
        assert "5 bytes" in verdict.details

    def test_connection_error_returns_unchecked(self) -> None:
        client = MagicMock()
        client.instream.side_effect = clamd.ConnectionError("refused")
        session = ClamAVSession(client, stream_max_length=100)
        session.feed(b"abc")
        verdict = session.finish()
        assert verdict.is_unchecked
        assert "unreachable" in verdict.details

    def test_buffer_too_long_returns_unchecked(self) -> None:
        client = MagicMock()
        client.instream.side_effect = clamd.BufferTooLongError("too long")
        session = ClamAVSession(client, stream_max_length=100)
        session.feed(b"abc")
        assert session.finish().is_unchecked

    def test_socket_timeout_returns_unchecked(self) -> None:
        client = MagicMock()
        client.instream.side_effect = socket.timeout("timed out")
        session = ClamAVSession(client, stream_max_length=100)
        session.feed(b"abc")
        assert session.finish().is_unchecked

    def test_empty_response_returns_none(self) -> None:
        client, _ = _capturing_client({})
        session = ClamAVSession(client, stream_max_length=100)
        session.feed(b"abc")
        assert session.finish() is None

    def test_close_is_idempotent(self) -> None:
        session = ClamAVSession(MagicMock(), stream_max_length=100)
        session.close()
        session.close()

    def test_finish_releases_buffer(self) -> None:
        client, _ = _capturing_client({"stream": ("OK", None)})
        session = ClamAVSession(client, stream_max_length=100)
        session.feed(b"abc")
        session.finish()
        assert session._buffer.closed


# ---------------------------------------------------------------------------
# ClamAVEngine
# ---------------------------------------------------------------------------


class TestClamAVEngine:
    def test_constructor_builds_network_client(self) -> None:
        with patch("scanguard.engines.clamav.clamd.ClamdNetworkSocket") as mock_cls:
            ClamAVEngine(host="av.local", port=3311, timeout=5.0)
        mock_cls.assert_called_once_with(host="av.local", port=3311, timeout=5.0)

    def test_non_positive_stream_limit_rejected(self) -> None:
        with pytest.raises(ScanEngineError):
            ClamAVEngine(stream_max_length=0)

    def test_open_session_returns_fresh_sessions(self) -> None:
        engine = ClamAVEngine()
        first = engine.open_session()
        second = engine.open_session()
        assert isinstance(first, ClamAVSession)
        assert first is not second
        first.close()
        second.close()

    def test_session_uses_engine_stream_limit(self) -> None:
        engine = ClamAVEngine(stream_max_length=2)
        session = engine.open_session()
        assert session.feed(b"abc").is_unchecked
        session.close()

    def test_ping_returns_true_when_daemon_answers(self) -> None:
        engine = ClamAVEngine()
        engine._client = MagicMock()
        engine._client.ping.return_value = "PONG"
        assert engine.ping() is True

    def test_ping_returns_false_on_connection_error(self) -> None:
        engine = ClamAVEngine()
        engine._client = MagicMock()
        engine._client.ping.side_effect = clamd.ConnectionError("refused")
        assert engine.ping() is False
