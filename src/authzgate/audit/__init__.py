"""
Audit module for authzgate.

Every authorization decision is recorded, with the request it was made
for, as one JSON object per line.

Destinations:
    - stdout (the default, hook "")
    - file (hook "file"), appended to and created if missing
    - syslog (hook "syslog"), at error severity
"""

from authzgate.audit.sink import AuditSink
from authzgate.audit.writers import (
    AuditWriter,
    FileWriter,
    StdoutWriter,
    SyslogWriter,
    make_writer,
)

__all__ = [
    "AuditSink",
    "AuditWriter",
    "FileWriter",
    "StdoutWriter",
    "SyslogWriter",
    "make_writer",
]
