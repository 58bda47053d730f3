"""
Audit destinations.

Each writer knows how to open one kind of destination and append a single
serialized record to it. Writers are not thread-safe on their own; the
AuditSink serializes every call.

Available writers:
    - StdoutWriter: one JSON line per record on standard output
    - FileWriter: appends to a log file, opened once and kept open
    - SyslogWriter: forwards to the local syslog daemon at error severity
"""

import logging
import sys
from abc import ABC, abstractmethod
from logging.handlers import SysLogHandler
from pathlib import Path
from typing import IO, ClassVar

from authzgate.config import DEFAULT_AUDIT_LOG_PATH, AuditSettings
from authzgate.schema import AuditHook

logger = logging.getLogger(__name__)

SYSLOG_ADDRESS = "/dev/log"
SYSLOG_IDENT = "authz"


class AuditWriter(ABC):
    """
    Abstract base class for audit destinations.

    open() is called exactly once before the first write. Errors from
    open() and write() are raised as OSError and translated into audit
    errors by the sink.
    """

    hook: ClassVar[AuditHook]

    def open(self) -> None:
        """Acquire the destination. The default does nothing."""

    @abstractmethod
    def write(self, line: str) -> None:
        """Append one serialized record."""
        ...

    def close(self) -> None:
        """Release the destination. The default does nothing."""


class StdoutWriter(AuditWriter):
    """Writes records to the process standard output."""

    hook = AuditHook.STDOUT

    def write(self, line: str) -> None:
        stream = sys.stdout
        stream.write(line + "\n")
        stream.flush()


class FileWriter(AuditWriter):
    """
    Appends records to a log file.

    The parent directory is created if missing. The file is opened in
    append mode once and reused for every record.
    """

    hook = AuditHook.FILE

    def __init__(self, path: Path) -> None:
        self.path = path
        self._file: IO[str] | None = None

    def open(self) -> None:
        self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        self._file = self.path.open("a", encoding="utf-8")

    def write(self, line: str) -> None:
        if self._file is None:
            raise OSError(f"Audit log {self.path} is not open")
        self._file.write(line + "\n")
        self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


class _StrictSysLogHandler(SysLogHandler):
    """SysLogHandler that raises on emit failures instead of printing them."""

    def handleError(self, record: logging.LogRecord) -> None:
        exc = sys.exc_info()[1]
        raise OSError(f"syslog write failed: {exc}") from exc


class SyslogWriter(AuditWriter):
    """Forwards records to the local syslog daemon at error severity."""

    hook = AuditHook.SYSLOG

    def __init__(
        self,
        address: str = SYSLOG_ADDRESS,
        facility: int = SysLogHandler.LOG_DAEMON,
    ) -> None:
        self.address = address
        self.facility = facility
        self._handler: SysLogHandler | None = None

    def open(self) -> None:
        handler = _StrictSysLogHandler(address=self.address, facility=self.facility)
        # The handler swallows connect errors and keeps the closed socket
        sock = handler.socket
        if sock is None or sock.fileno() == -1:
            handler.close()
            raise ConnectionError(f"syslog is not reachable at {self.address}")
        handler.ident = f"{SYSLOG_IDENT}: "
        self._handler = handler

    def write(self, line: str) -> None:
        if self._handler is None:
            raise OSError("syslog is not connected")
        record = logging.LogRecord(
            name="authzgate.audit",
            level=logging.ERROR,
            pathname=__file__,
            lineno=0,
            msg=line,
            args=None,
            exc_info=None,
        )
        self._handler.emit(record)

    def close(self) -> None:
        if self._handler is not None:
            self._handler.close()
            self._handler = None


def make_writer(settings: AuditSettings) -> AuditWriter:
    """Create the writer for the configured audit hook."""
    if settings.hook is AuditHook.FILE:
        if settings.log_path is None:
            logger.info("Using default audit log path '%s'", DEFAULT_AUDIT_LOG_PATH)
        return FileWriter(settings.resolved_log_path)
    if settings.hook is AuditHook.SYSLOG:
        return SyslogWriter()
    return StdoutWriter()
