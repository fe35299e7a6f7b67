"""Line-oriented parser for the server configuration file."""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import ConfigError
from .helpers import (
    add_valid_ip,
    check_duplicate_ip_port_domains,
    check_duplicates,
    check_extension,
    convert_to_bytes,
    count_words,
    generate_ip_port_domain,
    has_alpha,
    is_valid_ip,
    is_valid_ip_alone,
    remove_consecutive_slashes,
    split_directive,
    transform_root,
)
from .locations import apply_location_directive, init_location
from .model import LocationType, ServerConfig

_log = logging.getLogger(__name__)

_WHITESPACE = " \t\n\v\f\r"
_DIGITS = "0123456789"


def _atoi(s: str) -> int:
    s = s.lstrip(_WHITESPACE)
    sign = 1
    if s[:1] in ("+", "-"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    digits = ""
    for char in s:
        if char not in _DIGITS:
            break
        digits += char
    return sign * int(digits) if digits else 0


class ConfigParser:
    """Incremental parser: feed it lines, then call :meth:`finish`."""

    def __init__(self) -> None:
        self.configs: list[ServerConfig] = []
        self._error_codes: list[int] = []
        self._loc_path = ""
        self._in_location = False
        self._location_type = 0
        self._in_location_block = False
        self._server_nbr = 0
        self._server_seen = False
        self._in_server_block = False
        self._depth = 0
        self._empty = True
        self._finished = False

    @property
    def _server(self) -> ServerConfig:
        return self.configs[self._server_nbr - 1]

    def feed(self, line: str) -> None:
        """Process one line of configuration text."""
        line = line.lstrip(_WHITESPACE)
        if not line or line[0] == "#":
            return
        line = line.rstrip(" ")
        if not line:
            return
        self._empty = False
        if line.endswith("{"):
            self._depth += 1
        elif line.endswith("}"):
            self._depth -= 1
        self._check_server_block(line)

    def finish(self) -> list[ServerConfig]:
        """Validate the whole file and return the parsed server blocks."""
        if self._finished:
            return self.configs
        if self._depth != 0:
            _log.error("'{' is left opened.")
            raise ConfigError("Syntax error. Fix .conf file.")
        if self._empty:
            raise ConfigError("Config file is empty.")
        for server in self.configs:
            check_duplicates(server)
        for server in self.configs:
            generate_ip_port_domain(server)
        check_duplicate_ip_port_domains(self.configs)
        self._finished = True
        return self.configs

    # server blocks

    def _open_server(self) -> None:
        self._server_nbr += 1
        self._in_server_block = True
        self.configs.append(ServerConfig.new(self._server_nbr))

    def _check_server_block(self, value: str) -> None:
        while value:
            if self._in_server_block:
                self._add_server_directive(value)
                break
            if value.startswith("server"):
                self._server_seen = True
                value = value[6:]
                while value:
                    if value[0] in _WHITESPACE:
                        value = value[1:]
                    elif value[0] == "{":
                        value = value[1:]
                        self._open_server()
                    else:
                        raise ConfigError("server block error!")
            elif value[0] == "{" and self._server_seen:
                value = value[1:]
                self._open_server()
            else:
                raise ConfigError("server block cannot be found!")

    def _add_server_directive(self, line: str) -> None:
        line, key, value = split_directive(line)
        if line.startswith("location") or self._in_location:
            self._check_location_block(line)
        else:
            self._server_directive(line, key, value)

    def _server_directive(self, line: str, key: str, value: str) -> None:
        server = self._server
        wordcount = count_words(line)
        if not value:
            if key == "}":
                self._server_seen = False
                self._in_server_block = False
                return
            raise ConfigError("server block directive requires parameters!")

        param = 1
        for v in (token for token in value.split(" ") if token):
            if key.startswith("listen") and len(key) == 6 and wordcount == 2:
                self._listen(server, v)
            elif key.startswith("server_name"):
                if v not in server.domains:
                    server.domains.append(v)
            elif key.startswith("index"):
                if not server.index_cleared:
                    server.index = []
                    server.index_cleared = True
                check_extension(v)
                if v not in server.index:
                    server.index.append(v)
            elif key.startswith("root"):
                if server.root_set:
                    raise ConfigError("conflicting directive 'root' is used more than once!")
                if wordcount != 2:
                    raise ConfigError("root directive error detected!")
                server.root = transform_root(v)
                server.root_set = True
            elif key.startswith("autoindex"):
                if server.autoindex_set:
                    raise ConfigError("'autoindex' is used more than once!")
                if v.startswith("on"):
                    server.autoindex = True
                elif v.startswith("off"):
                    server.autoindex = False
                else:
                    raise ConfigError("autoindex parameters only allows 'on' or 'off'!")
                server.autoindex_set = True
            elif key.startswith("client_max_body_size"):
                if server.cmbs_set:
                    raise ConfigError("'client_max_body_size' is used more than once!")
                server.client_max_body_size = convert_to_bytes(v)
                server.cmbs_set = True
            elif key.startswith("error_page") and wordcount >= 3:
                param += 1
                self._error_page(server, v, param, wordcount)
            elif key.startswith("return"):
                self._return(server, v, wordcount)
            elif key.startswith("cgi_exec") and wordcount == 3:
                self._cgi_exec(server, v)
            else:
                raise ConfigError("unknown server directive")

    @staticmethod
    def _listen(server: ServerConfig, v: str) -> None:
        if "." in v and ":" in v:
            if not is_valid_ip(v):
                raise ConfigError("invalid IP address/Port!")
            add_valid_ip(server, v)
        elif "." in v or ":" in v:
            if is_valid_ip_alone(v):
                add_valid_ip(server, v + ":8080")
        else:
            add_valid_ip(server, "0.0.0.0:" + v)

    def _error_page(self, server: ServerConfig, v: str, param: int, wordcount: int) -> None:
        if v[0] == "/" and param == wordcount:
            page = remove_consecutive_slashes(v)
            for code in self._error_codes:
                server.error_pages[code] = page
            self._error_codes.clear()
        elif not has_alpha(v) and param < wordcount:
            code = _atoi(v)
            if not 400 <= code <= 599:
                raise ConfigError("invalid error code detected! Must be 400 - 599!")
            self._error_codes.append(code)
        else:
            raise ConfigError("error_page directive error detected!")

    @staticmethod
    def _return(server: ServerConfig, v: str, wordcount: int) -> None:
        if wordcount == 2 and not has_alpha(v):
            if server.ret:
                return
            code = _atoi(v)
            if not 100 <= code <= 599:
                raise ConfigError(
                    "in return directive: invalid error code detected! Must be 400 - 599!"
                )
            server.ret.setdefault(code, "")
        elif wordcount == 3:
            if server.ret:
                return
            if not has_alpha(v) and v[0] in _DIGITS:
                code = _atoi(v)
                if not 100 <= code <= 599:
                    raise ConfigError(
                        "in return directive: invalid error code detected! Must be 400 - 599!"
                    )
                server.ret_err_c = code
            elif v.startswith("/") or v.startswith("http"):
                server.ret_value = v
                if server.ret_err_c >= 100 and server.ret_value:
                    server.ret[server.ret_err_c] = remove_consecutive_slashes(server.ret_value)
                    server.ret_err_c = 0
                    server.ret_value = ""
                else:
                    raise ConfigError("return directive must have an error_code + URL/PATH!")
            else:
                raise ConfigError("invalid return parameter detected!")
        else:
            raise ConfigError("return directive error detected!")

    @staticmethod
    def _cgi_exec(server: ServerConfig, v: str) -> None:
        if v[0] == ".":
            if len(v) > 1:
                server.cgi_ext = v
        elif v[0] == "/":
            server.cgi_path = remove_consecutive_slashes(v)
        else:
            raise ConfigError("cgi_ext parameters are invalid!")
        if server.cgi_ext and server.cgi_path:
            server.cgi[server.cgi_ext] = server.cgi_path
            server.cgi_ext = ""
            server.cgi_path = ""

    # location blocks

    def _open_location(self) -> None:
        self._in_location_block = True
        init_location(self._server, self._loc_path, self._location_type)

    def _check_location_block(self, line: str) -> None:
        while line:
            if self._in_location_block:
                if self._location_type == 0 or not self._loc_path:
                    raise ConfigError("invalid location type and/or path is empty!")
                self._add_location_directive(line)
                break
            if line.startswith("location"):
                self._in_location = True
                self._location_type = 0
                line = line[8:]
                while line:
                    if line[0] in _WHITESPACE:
                        line = line[1:]
                    elif line[0] == "=":
                        if self._location_type != 0:
                            raise ConfigError("on 'location' line!")
                        self._location_type = LocationType.EXACT
                        line = line[1:]
                    elif line.startswith("^~"):
                        if self._location_type != 0:
                            raise ConfigError("on 'location' line!")
                        self._location_type = LocationType.PREFER
                        line = line[2:]
                    elif line[0] == "/":
                        path = line.split(" ", 1)[0]
                        if self._location_type == 0:
                            self._location_type = LocationType.PREFIX
                        if path.endswith("{"):
                            path = path[:-1]
                        self._loc_path = path
                        line = line[len(path):]
                    elif line[0] == "{" and self._location_type != 0:
                        line = line[1:]
                        self._open_location()
                    else:
                        raise ConfigError("location block error!")
            elif line[0] == "{" and self._in_location:
                line = line[1:]
                self._open_location()
            else:
                raise ConfigError("location block cannot be found!")

    def _add_location_directive(self, line: str) -> None:
        line, key, value = split_directive(line)
        server = self._server
        for locations in (server.exact_loc, server.prefer_loc, server.prefix_loc):
            location = locations.get(self._loc_path)
            if location is not None and location.path == self._loc_path:
                if apply_location_directive(location, line, key, value, self._error_codes):
                    self._in_location = False
                    self._in_location_block = False
                return


def parse_config_text(text: str) -> list[ServerConfig]:
    """Parse configuration text and return its server blocks."""
    parser = ConfigParser()
    for line in text.split("\n"):
        parser.feed(line)
    return parser.finish()


def load_config(filename: str | Path) -> list[ServerConfig]:
    """Read and parse the configuration file at ``filename``."""
    try:
        with open(filename, encoding="utf-8", errors="surrogateescape", newline="") as handle:
            text = handle.read()
    except OSError as exc:
        raise ConfigError("Cannot open .conf file") from exc
    return parse_config_text(text)