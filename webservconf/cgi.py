"""Running CGI scripts and validating what they print."""

from __future__ import annotations

import enum
import socket
import subprocess
import time
from collections.abc import Mapping
from dataclasses import dataclass

from .constants import CGI_TIMEOUT, MAX_BODY_SIZE, MAX_HEADER_LENGTH
from .errors import CGIError

_CHUNK = 16384
_DIGITS = "0123456789"
_LETTERS = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
_EXIT_GRACE = 0.1


class ParserState(enum.Enum):
    """Progress of reading a CGI script's output."""

    READING_HEADERS = enum.auto()
    READING_BODY = enum.auto()
    ERROR = enum.auto()
    COMPLETE = enum.auto()


@dataclass(frozen=True)
class CGIOutput:
    """The validated output of a CGI script."""

    status: str
    content_type: str
    headers: str
    body: bytes


def build_environment(
    host: str,
    port: str,
    method: str,
    path_info: str,
    path_translated: str,
    script_name: str,
    script_filename: str,
    query: str,
    remote_addr: str,
    content_type: str | None,
    content_length: int,
) -> dict[str, str]:
    """Build the environment a CGI script is started with."""
    return {
        "SERVER_SOFTWARE": "Webserv/1.0",
        "SERVER_NAME": host,
        "GATEWAY_INTERFACE": "CGI/1.1",
        "SERVER_PROTOCOL": "HTTP/1.1",
        "SERVER_PORT": str(port),
        "REQUEST_METHOD": method,
        "PATH_INFO": path_info,
        "PATH_TRANSLATED": path_translated,
        "SCRIPT_NAME": script_name,
        "SCRIPT_FILENAME": script_filename,
        "QUERY_STRING": query,
        "REMOTE_ADDR": remote_addr,
        "REDIRECT_STATUS": "200",
        "CONTENT_TYPE": content_type if content_type is not None else "plain/text",
        "CONTENT_LENGTH": str(content_length),
    }


def _malformed(message: str) -> CGIError:
    return CGIError(message, 502)


def _valid_status(value: str) -> str:
    parts = value.split()
    if len(parts) != 2:
        raise _malformed("Malformed status line")
    code, message = parts
    if len(code) != 3 or not all(c in _DIGITS for c in code):
        raise _malformed("Malformed status line")
    if not all(c in _LETTERS for c in message):
        raise _malformed("Malformed status line")
    return code


def parse_cgi_output(output: bytes) -> CGIOutput:
    """Split raw CGI output into status, content type and body.

    Raises CGIError with status 502 when the output is malformed.
    """
    header_end = output.find(b"\r\n\r\n")
    if header_end < 0:
        raise _malformed("Process completed without proper headers")
    headers = output[: header_end + 2].decode("latin-1")
    body = output[header_end + 4:]

    if len(headers) > MAX_HEADER_LENGTH:
        raise _malformed("CGI response headers too long")

    status: str | None = None
    content_type: str | None = None
    for line in headers.split("\r\n")[:-1]:
        if not line:
            raise _malformed("Empty header line")
        colon = line.find(": ")
        if colon <= 0:
            raise _malformed("Invalid header format")
        name, value = line[:colon], line[colon + 2:]
        if not value:
            raise _malformed("Empty header value")
        lowered = name.lower()
        if lowered == "status":
            status = _valid_status(value)
        elif lowered == "content-type":
            content_type = value

    if content_type is None:
        raise _malformed("Missing Content-Type header")
    if len(body) > MAX_BODY_SIZE:
        raise _malformed("CGI response body too large")
    return CGIOutput(status or "200", content_type, headers, body)


class CGIProcess:
    """A CGI script run through its interpreter over a pair of sockets.

    The caller watches :attr:`input_socket` for writability and
    :attr:`output_socket` for readability, calling :meth:`send_post_body`
    and :meth:`read_available_output` until :meth:`is_complete`.
    """

    timeout: float = CGI_TIMEOUT

    def __init__(
        self,
        script_path: str,
        executor_path: str,
        environ: Mapping[str, str],
        post_body: bytes,
    ) -> None:
        self.script_path = script_path
        self.executor_path = executor_path
        self.environ = dict(environ)
        self.post_body = bytes(post_body)
        self.input_socket: socket.socket | None = None
        self.output_socket: socket.socket | None = None
        self.output = b""
        self.state = ParserState.READING_HEADERS
        self.error_code = 0
        self.timed_out = False
        self.process_complete = False
        self.result: CGIOutput | None = None
        self._bytes_sent = 0
        self._start_time: float | None = None
        self._proc: subprocess.Popen | None = None

    def __enter__(self) -> CGIProcess:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.clean_child()

    def _fail(self, message: str, status: int) -> CGIError:
        self.error_code = status
        return CGIError(message, status)

    @property
    def running(self) -> bool:
        """True while the child process has not exited."""
        return self._proc is not None and self._proc.poll() is None

    def start(self) -> None:
        """Create the sockets and start the interpreter on the script."""
        try:
            parent_in, child_in = socket.socketpair()
        except OSError as exc:
            raise self._fail("Socket pair creation failed", 500) from exc
        try:
            parent_out, child_out = socket.socketpair()
        except OSError as exc:
            parent_in.close()
            child_in.close()
            raise self._fail("Socket pair creation failed", 500) from exc

        try:
            self._proc = subprocess.Popen(
                [self.executor_path, self.script_path],
                stdin=child_in.fileno(),
                stdout=child_out.fileno(),
                env=self.environ,
                close_fds=True,
            )
        except OSError as exc:
            parent_in.close()
            parent_out.close()
            self.state = ParserState.ERROR
            raise self._fail("CGI executor could not be started", 502) from exc
        finally:
            child_in.close()
            child_out.close()

        parent_in.setblocking(False)
        parent_out.setblocking(False)
        self.input_socket = parent_in
        self.output_socket = parent_out
        self._start_time = time.monotonic()

    def has_timed_out(self) -> bool:
        """True once the script has run longer than :attr:`timeout` seconds."""
        if self._start_time is None:
            return False
        return time.monotonic() - self._start_time > self.timeout

    def is_complete(self) -> bool:
        return self.state is ParserState.COMPLETE

    def _check_timeout(self) -> None:
        if self.has_timed_out():
            self.timed_out = True
            self.clean_child()
            raise self._fail("CGI timeout occurred", 504)

    def _close_input(self) -> None:
        if self.input_socket is not None:
            self.input_socket.close()
            self.input_socket = None

    def send_post_body(self) -> int:
        """Write the next piece of the request body; return the bytes sent."""
        self._check_timeout()
        if self.input_socket is None:
            return 0
        remaining = self.post_body[self._bytes_sent:]
        if not remaining:
            self._close_input()
            return 0
        try:
            sent = self.input_socket.send(remaining[:_CHUNK])
        except BlockingIOError:
            return 0
        except OSError as exc:
            self.clean_child()
            raise self._fail("Send failed to CGI process", 500) from exc
        self._bytes_sent += sent
        return sent

    def read_available_output(self) -> bytes:
        """Read what the script has printed; empty bytes when nothing is ready."""
        self._check_timeout()
        if self.output_socket is None:
            return b""
        try:
            chunk = self.output_socket.recv(_CHUNK)
        except BlockingIOError:
            return b""
        except OSError as exc:
            self.clean_child()
            raise self._fail("Error reading from CGI", 500) from exc
        if chunk:
            self.output += chunk
            return chunk
        self.state = ParserState.COMPLETE
        if self._proc is not None:
            try:
                self._proc.wait(_EXIT_GRACE)
            except subprocess.TimeoutExpired:
                pass
        self.clean_child()
        return b""

    def parse_output(self) -> CGIOutput:
        """Validate the collected output and return it."""
        try:
            self.result = parse_cgi_output(self.output)
        except CGIError as exc:
            self.error_code = exc.status
            raise
        return self.result

    def _close_sockets(self) -> None:
        if self.output_socket is not None:
            self.output_socket.close()
            self.output_socket = None
        self._close_input()

    def _reap(self) -> None:
        if self._proc is None or self.process_complete:
            return
        returncode = self._proc.poll()
        if returncode is None:
            return
        if returncode < 0:
            self.error_code = 504 if self.timed_out else 502
            self.state = ParserState.ERROR
        self.process_complete = True

    def clean_child(self) -> None:
        """Close the sockets and stop the child if it is still running."""
        self._close_sockets()
        if self.running:
            self._proc.terminate()
            try:
                self._proc.wait(_EXIT_GRACE)
            except subprocess.TimeoutExpired:
                self._proc.kill()
                self._proc.wait()
        self._reap()