"""ClamAV engine adapter.

Connects to a running ``clamd`` daemon via TCP socket and streams file
contents to it with the ``INSTREAM`` command.  Chunks fed to a
:class:`ClamAVSession` are spooled locally (in memory up to a threshold,
then on disk) and sent to the daemon in one ``INSTREAM`` exchange when the
session finishes.

Engine faults never raise out of a session: an unreachable daemon, a
protocol error, or an input larger than the daemon's ``StreamMaxLength``
all produce an ``"unchecked"`` verdict.
"""
from __future__ import annotations

import logging
import tempfile

import clamd

from scanguard.core.verdict import Verdict
from scanguard.engines.base import ScanEngine, ScanEngineError, ScanSession

logger = logging.getLogger(__name__)

# ClamAV reports detected threats with this status string.
_STATUS_FOUND = "FOUND"
_STATUS_ERROR = "ERROR"
_STATUS_OK = "OK"

# Spooled chunks stay in memory up to this many bytes.
_SPOOL_MEMORY_LIMIT = 1024 * 1024


def _parse_clamd_response(response: dict[str, tuple[str, str | None]] | None) -> Verdict | None:
    """Translate a clamd ``INSTREAM`` response into a :class:`Verdict`.

    The clamd library returns a dict mapping ``"stream"`` to a
    ``(result_code, detail)`` tuple:

    * ``("OK", None)``        – clean.
    * ``("FOUND", name)``     – threat *name* detected.
    * ``("ERROR", message)``  – the daemon could not scan the stream.

    Returns ``None`` for an empty or unrecognised response.
    """
    if not response:
        return None

    for _path, (result_code, detail) in response.items():
        if result_code == _STATUS_FOUND:
            return Verdict.infected(detail or "UNKNOWN")
        if result_code == _STATUS_ERROR:
            return Verdict.unchecked(detail or "ClamAV reported an unspecified error")
        if result_code == _STATUS_OK:
            return Verdict.clean()

    logger.warning("ClamAV returned an unrecognised response: %r", response)
    return None


class ClamAVSession(ScanSession):
    """A single ``INSTREAM`` scan against ``clamd``.

    Args:
        client: ``clamd.ClamdNetworkSocket`` used for the exchange.
        stream_max_length: Largest input accepted before the session gives
            up with an ``"unchecked"`` verdict.
    """

    def __init__(self, client: clamd.ClamdNetworkSocket, stream_max_length: int) -> None:
        self._client = client
        self._stream_max_length = stream_max_length
        self._buffer = tempfile.SpooledTemporaryFile(max_size=_SPOOL_MEMORY_LIMIT)
        self._size = 0

    def feed(self, chunk: bytes) -> Verdict | None:
        self._size += len(chunk)
        if self._size > self._stream_max_length:
            return Verdict.unchecked(
                f"File exceeds the stream max length of {self._stream_max_length} bytes"
            )
        self._buffer.write(chunk)
        return None

    def finish(self) -> Verdict | None:
        self._buffer.seek(0)
        try:
            response = self._client.instream(self._buffer)
        except clamd.BufferTooLongError:
            return Verdict.unchecked("ClamAV rejected the stream as too long")
        except clamd.ConnectionError as exc:
            logger.error("ClamAV daemon unreachable: %s", exc)
            return Verdict.unchecked(f"ClamAV daemon unreachable: {exc}")
        except Exception as exc:  # noqa: BLE001
            logger.error("ClamAV scan failed: %r", exc)
            return Verdict.unchecked(f"ClamAV scan failed: {exc}")
        finally:
            self.close()
        return _parse_clamd_response(response)

    def close(self) -> None:
        if not self._buffer.closed:
            self._buffer.close()


class ClamAVEngine(ScanEngine):
    """Scan engine backed by the ClamAV daemon (``clamd``).

    The underlying ``clamd`` library opens a new socket per command, so one
    engine instance can serve sessions from many threads.

    Args:
        host: Hostname or IP address of the ``clamd`` daemon.
        port: TCP port the daemon listens on.
        timeout: Socket timeout in seconds.
        stream_max_length: Largest stream, in bytes, the daemon accepts.

    Raises:
        ScanEngineError: If *stream_max_length* is not positive.
    """

    def __init__(
        self,
        host: str = "clamav",
        port: int = 3310,
        timeout: float = 30.0,
        stream_max_length: int = 26_214_400,
    ) -> None:
        if stream_max_length < 1:
            raise ScanEngineError(
                f"stream_max_length must be positive, got {stream_max_length}"
            )
        self._host = host
        self._port = port
        self._stream_max_length = stream_max_length
        self._client = clamd.ClamdNetworkSocket(host=host, port=port, timeout=timeout)

    def open_session(self) -> ClamAVSession:
        return ClamAVSession(self._client, self._stream_max_length)

    def ping(self) -> bool:
        """Check whether the ``clamd`` daemon is reachable.

        Returns:
            ``True`` if the daemon responds to a ``PING`` command,
            ``False`` on any connection or protocol error.
        """
        try:
            self._client.ping()
            return True
        except Exception:  # noqa: BLE001
            logger.warning("ClamAV daemon at %s:%d did not answer PING", self._host, self._port)
            return False
