#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Audit Logger
------------
Writes one line per successfully served file to standard output and to an
append-only log file (``latest.log`` by default)::

    <token> | ClientIP: <ip> | Port: <port> | File: <path> | Time: <YYYY-MM-DD HH:MM:SS> | BytesSent: <n>

The token is a random 16 character correlation aid and is not unique.
"""

import sys
import random
import string
import logging
from datetime import datetime
from typing import NamedTuple

logger = logging.getLogger(__name__)

DEFAULT_LOG_FILE = "latest.log"
TOKEN_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
TOKEN_LENGTH = 16


class AuditRecord(NamedTuple):
    token: str
    client_ip: str
    port: str
    file_path: str
    timestamp: datetime
    bytes_sent: int

    def format(self):
        """Render the record as a single log line (no trailing newline)."""
        return (f"{self.token} | ClientIP: {self.client_ip} | Port: {self.port} | "
                f"File: {self.file_path} | Time: {self.timestamp.strftime('%Y-%m-%d %H:%M:%S')} | "
                f"BytesSent: {self.bytes_sent}")


class AuditLogger:
    """
    Emits audit records for served files.

    The logger owns its own random generator, seeded once from OS entropy,
    so tokens do not depend on the wall clock. The log file is opened and
    closed on every write; each line goes out in a single write call.
    """

    def __init__(self, port, log_file=DEFAULT_LOG_FILE, stream=None, rng=None):
        """
        Args:
            port: Server port reported in every record
            log_file: Path of the append-only audit log
            stream: Console stream (default: sys.stdout at write time)
            rng: random.Random instance (default: a fresh, OS-seeded one)
        """
        self.port = port
        self.log_file = log_file
        self.stream = stream
        self.rng = rng if rng is not None else random.Random()

    def generate_token(self, length=TOKEN_LENGTH):
        return "".join(self.rng.choice(TOKEN_ALPHABET) for _ in range(length))

    def log(self, client_ip, file_path, bytes_sent, timestamp=None):
        """
        Write one audit record.

        Failing to open the log file is reported but not raised; the line
        has already been printed to the console.

        Args:
            client_ip: Client IP address
            file_path: URL path of the served file
            bytes_sent: Size of the file at resolution time
            timestamp: Request time (default: now)

        Returns:
            AuditRecord: The record that was written
        """
        record = AuditRecord(
            token=self.generate_token(),
            client_ip=client_ip,
            port=self.port,
            file_path=file_path,
            timestamp=timestamp or datetime.now(),
            bytes_sent=bytes_sent,
        )
        line = record.format() + "\n"

        stream = self.stream or sys.stdout
        stream.write(line)
        stream.flush()

        try:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error(f"Error opening log file: {e}")

        return record
