import select
import sys
import time

import pytest

from webservconf.cgi import CGIProcess, build_environment, parse_cgi_output
from webservconf.constants import MAX_BODY_SIZE, MAX_HEADER_LENGTH
from webservconf.errors import CGIError

ECHO_SCRIPT = (
    "import os, sys\n"
    "data = sys.stdin.buffer.read()\n"
    "sys.stdout.buffer.write(b'Content-Type: text/plain\\r\\n\\r\\n' + data"
    " + os.environ['REQUEST_METHOD'].encode())\n"
)

SLEEP_SCRIPT = "import time\ntime.sleep(5)\n"


def _env(method="POST", length=0):
    return build_environment(
        "localhost", "8080", method, "", "", "/cgi/echo.py", "/tmp/echo.py",
        "", "127.0.0.1", None, length,
    )


def _write_script(tmp_path, text):
    path = tmp_path / "script.py"
    path.write_text(text)
    return str(path)


def _drive(proc, limit=10.0):
    deadline = time.monotonic() + limit
    while not proc.is_complete():
        assert time.monotonic() < deadline
        readers = [proc.output_socket] if proc.output_socket else []
        writers = [proc.input_socket] if proc.input_socket else []
        ready_r, ready_w, _ = select.select(readers, writers, [], 0.05)
        if ready_w:
            proc.send_post_body()
        if ready_r:
            proc.read_available_output()
    return proc.parse_output()


def test_build_environment_defaults():
    env = _env(method="GET", length=5)
    assert env["GATEWAY_INTERFACE"] == "CGI/1.1"
    assert env["SERVER_PROTOCOL"] == "HTTP/1.1"
    assert env["CONTENT_TYPE"] == "plain/text"
    assert env["CONTENT_LENGTH"] == "5"
    assert env["REQUEST_METHOD"] == "GET"
    assert env["REDIRECT_STATUS"] == "200"


def test_build_environment_keeps_content_type():
    env = build_environment(
        "h", "80", "POST", "", "", "", "", "a=1", "127.0.0.1", "text/html", 0
    )
    assert env["CONTENT_TYPE"] == "text/html"
    assert env["QUERY_STRING"] == "a=1"


def test_parse_defaults_status():
    out = parse_cgi_output(b"Content-Type: text/html\r\n\r\nhello")
    assert out.status == "200"
    assert out.content_type == "text/html"
    assert out.body == b"hello"


def test_parse_status_header():
    out = parse_cgi_output(b"Status: 404 NotFound\r\nContent-Type: text/plain\r\n\r\n")
    assert out.status == "404"
    assert out.body == b""


def test_parse_header_name_case_insensitive():
    out = parse_cgi_output(b"STATUS: 201 Created\r\ncontent-type: a/b\r\n\r\nx")
    assert out.status == "201"
    assert out.content_type == "a/b"


@pytest.mark.parametrize(
    "raw",
    [
        b"Content-Type: text/html\r\nbody",
        b"Content-Type:text/html\r\n\r\n",
        b"\r\n\r\n",
        b"Status: 200 OK\r\n\r\n",
        b"Status: 404 Not Found\r\nContent-Type: text/html\r\n\r\n",
        b"Status: 20x OK\r\nContent-Type: text/html\r\n\r\n",
        b"Status: 2000 OK\r\nContent-Type: text/html\r\n\r\n",
        b"Status: 200 O1\r\nContent-Type: text/html\r\n\r\n",
        b": x\r\nContent-Type: text/html\r\n\r\n",
    ],
)
def test_parse_rejects_malformed(raw):
    with pytest.raises(CGIError) as exc:
        parse_cgi_output(raw)
    assert exc.value.status == 502


def test_parse_rejects_large_body():
    raw = b"Content-Type: text/html\r\n\r\n" + b"a" * (MAX_BODY_SIZE + 1)
    with pytest.raises(CGIError) as exc:
        parse_cgi_output(raw)
    assert exc.value.status == 502


def test_parse_accepts_body_at_limit():
    raw = b"Content-Type: text/html\r\n\r\n" + b"a" * MAX_BODY_SIZE
    assert len(parse_cgi_output(raw).body) == MAX_BODY_SIZE


def test_parse_rejects_long_headers():
    raw = b"Content-Type: text/html\r\nX-Long: " + b"a" * MAX_HEADER_LENGTH + b"\r\n\r\n"
    with pytest.raises(CGIError) as exc:
        parse_cgi_output(raw)
    assert exc.value.status == 502


def test_process_not_started():
    proc = CGIProcess("/nonexistent.py", sys.executable, _env(), b"")
    assert proc.has_timed_out() is False
    assert proc.is_complete() is False


def test_post_body_round_trip(tmp_path):
    script = _write_script(tmp_path, ECHO_SCRIPT)
    body = b"name=value&x=1"
    with CGIProcess(script, sys.executable, _env(length=len(body)), body) as proc:
        proc.start()
        out = _drive(proc)
    assert out.body == body + b"POST"
    assert out.content_type == "text/plain"
    assert out.status == "200"
    assert proc.error_code == 0


def test_large_post_body_round_trip(tmp_path):
    script = _write_script(tmp_path, ECHO_SCRIPT)
    body = bytes(range(256)) * 200
    with CGIProcess(script, sys.executable, _env(length=len(body)), body) as proc:
        proc.start()
        out = _drive(proc)
    assert out.body == body + b"POST"


def test_get_without_body(tmp_path):
    script = _write_script(tmp_path, ECHO_SCRIPT)
    with CGIProcess(script, sys.executable, _env(method="GET"), b"") as proc:
        proc.start()
        out = _drive(proc)
    assert out.body == b"GET"
    assert proc.running is False


def test_bad_output_sets_error_code(tmp_path):
    script = _write_script(tmp_path, "print('no headers here')\n")
    with CGIProcess(script, sys.executable, _env(method="GET"), b"") as proc:
        proc.start()
        with pytest.raises(CGIError) as exc:
            _drive(proc)
    assert exc.value.status == 502
    assert proc.error_code == 502


def test_timeout_kills_child(tmp_path):
    script = _write_script(tmp_path, SLEEP_SCRIPT)
    proc = CGIProcess(script, sys.executable, _env(method="GET"), b"")
    proc.timeout = 0.0
    proc.start()
    time.sleep(0.05)
    assert proc.has_timed_out() is True
    with pytest.raises(CGIError) as exc:
        proc.read_available_output()
    assert exc.value.status == 504
    assert proc.error_code == 504
    assert proc.timed_out is True
    assert proc.running is False
    assert proc.output_socket is None


def test_missing_executor(tmp_path):
    script = _write_script(tmp_path, ECHO_SCRIPT)
    proc = CGIProcess(script, str(tmp_path / "missing-interpreter"), _env(), b"")
    with pytest.raises(CGIError) as exc:
        proc.start()
    assert exc.value.status == 502
    assert proc.input_socket is None


def test_clean_child_stops_running_process(tmp_path):
    script = _write_script(tmp_path, SLEEP_SCRIPT)
    proc = CGIProcess(script, sys.executable, _env(method="GET"), b"")
    proc.start()
    assert proc.running is True
    proc.clean_child()
    assert proc.running is False
    assert proc.input_socket is None
    assert proc.output_socket is None