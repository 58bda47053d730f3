"""
Audit Sink for authzgate.

Records every authorization decision, together with the request it was
made for, to the configured destination. Records are append-only: one JSON
object per line with the keys method, uri, user, allow, msg and err.

Design Principles:
    - Append-only: Records are never modified once written
    - Lazy: The destination is opened on the first record and kept open
    - Serialized: One writer at a time, so records never interleave
    - Isolated: Audit failures raise AuditError to the caller

A destination that fails to open is left closed, and the next record()
tries to open it again.

Only requests are audited. Responses pass through record_response(),
which does nothing, so a request is never counted twice.
"""

import logging
import threading
from collections.abc import Callable

from authzgate.audit.writers import AuditWriter, make_writer
from authzgate.config import AuditSettings
from authzgate.errors import AuditArgumentError, AuditInitError, AuditWriteError
from authzgate.schema import AuditHook, AuditRecord, Decision, Request

logger = logging.getLogger(__name__)


class AuditSink:
    """
    Writes audit records to stdout, a file or syslog.

    Usage:
        sink = AuditSink(AuditSettings(hook=AuditHook.FILE, log_path=path))
        sink.record(request, decision)
        sink.close()

    The sink is shared by all request workers. Opening the destination and
    writing to it both happen under a single lock.
    """

    def __init__(
        self,
        settings: AuditSettings | None = None,
        writer_factory: Callable[[AuditSettings], AuditWriter] = make_writer,
    ) -> None:
        """
        Initialize the sink. Nothing is opened until the first record.

        Args:
            settings: Audit destination settings (stdout if omitted)
            writer_factory: Builds the writer for the configured hook
        """
        self.settings = settings or AuditSettings()
        self._writer_factory = writer_factory
        self._writer: AuditWriter | None = None
        self._lock = threading.Lock()

    @property
    def hook(self) -> AuditHook:
        return self.settings.hook

    @property
    def initialized(self) -> bool:
        return self._writer is not None

    def record(self, request: Request | None, decision: Decision | None) -> None:
        """
        Append one record for a request and the decision made for it.

        Args:
            request: The intercepted request
            decision: The decision returned for it

        Raises:
            AuditArgumentError: If request or decision is None
            AuditInitError: If the destination cannot be opened
            AuditWriteError: If the record cannot be written
        """
        if request is None:
            raise AuditArgumentError(hook=self.hook.value, argument="request")
        if decision is None:
            raise AuditArgumentError(hook=self.hook.value, argument="decision")

        line = AuditRecord.from_decision(request, decision).to_line()

        with self._lock:
            writer = self._ensure_writer()
            try:
                writer.write(line)
            except (OSError, ValueError) as e:
                raise AuditWriteError(
                    hook=self.hook.value,
                    underlying_error=str(e),
                ) from e

    def record_response(self, request: Request | None, decision: Decision | None) -> None:
        """Responses are not audited."""
        return None

    def close(self) -> None:
        """Close the destination. A later record() opens it again."""
        with self._lock:
            if self._writer is not None:
                self._writer.close()
                self._writer = None

    def _ensure_writer(self) -> AuditWriter:
        """Open the destination on first use. Caller must hold the lock."""
        if self._writer is None:
            writer = self._writer_factory(self.settings)
            try:
                writer.open()
            except OSError as e:
                raise AuditInitError(
                    hook=self.hook.value,
                    underlying_error=str(e),
                ) from e
            self._writer = writer
            logger.info("Audit destination initialized: %s", self.hook.name.lower())
        return self._writer
