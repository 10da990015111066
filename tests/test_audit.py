import io
import re
import random
from datetime import datetime

from staticserver.audit import TOKEN_ALPHABET, AuditLogger, AuditRecord

LINE_PATTERN = re.compile(
    r"^[A-Za-z0-9]{16} \| ClientIP: 10\.0\.0\.5 \| Port: 8080 \| File: /index\.html \| "
    r"Time: \d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} \| BytesSent: 312$"
)


def test_record_format():
    record = AuditRecord(
        token="abcdEFGH12345678",
        client_ip="127.0.0.1",
        port="8080",
        file_path="/style.css",
        timestamp=datetime(2026, 10, 18, 9, 5, 3),
        bytes_sent=42,
    )

    assert record.format() == (
        "abcdEFGH12345678 | ClientIP: 127.0.0.1 | Port: 8080 | File: /style.css | "
        "Time: 2026-10-18 09:05:03 | BytesSent: 42"
    )


def test_log_writes_console_and_file(tmp_path):
    stream = io.StringIO()
    log_file = tmp_path / "latest.log"
    audit = AuditLogger(port="8080", log_file=str(log_file), stream=stream)

    record = audit.log("10.0.0.5", "/index.html", 312)

    assert LINE_PATTERN.match(stream.getvalue().rstrip("\n"))
    assert log_file.read_text() == record.format() + "\n"


def test_log_file_is_appended(tmp_path):
    log_file = tmp_path / "latest.log"
    log_file.write_text("earlier line\n")
    audit = AuditLogger(port="8080", log_file=str(log_file), stream=io.StringIO())

    audit.log("10.0.0.5", "/index.html", 312)
    audit.log("10.0.0.5", "/index.html", 312)

    lines = log_file.read_text().splitlines()
    assert lines[0] == "earlier line"
    assert len(lines) == 3
    assert all(LINE_PATTERN.match(line) for line in lines[1:])


def test_unopenable_log_file_is_not_fatal(tmp_path, caplog):
    stream = io.StringIO()
    audit = AuditLogger(port="8080", log_file=str(tmp_path / "no-such-dir" / "latest.log"), stream=stream)

    record = audit.log("10.0.0.5", "/index.html", 312)

    assert stream.getvalue() == record.format() + "\n"
    assert "Error opening log file" in caplog.text


def test_tokens_use_alphanumeric_alphabet():
    audit = AuditLogger(port="8080", stream=io.StringIO())

    tokens = {audit.generate_token() for _ in range(50)}

    assert all(len(token) == 16 for token in tokens)
    assert all(set(token) <= set(TOKEN_ALPHABET) for token in tokens)
    assert len(tokens) > 1
    assert len(TOKEN_ALPHABET) == 62


def test_generator_is_owned_by_the_logger():
    first = AuditLogger(port="8080", rng=random.Random(7))
    second = AuditLogger(port="8080", rng=random.Random(7))

    assert first.generate_token() == second.generate_token()
    assert first.generate_token() != first.generate_token()
