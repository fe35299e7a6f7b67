"""Value checks and conversions used while parsing the configuration."""

from __future__ import annotations

import logging
import os
import re
import string
from collections.abc import Iterable
from typing import TYPE_CHECKING

from .constants import MAX_BODY_SIZE
from .errors import ConfigError

if TYPE_CHECKING:
    from .model import ServerConfig

_log = logging.getLogger(__name__)

_WHITESPACE = " \t\n\v\f\r"
_DIGITS = "0123456789"
_ALLOWED_INDEX_EXTENSIONS = (".html", ".htm", ".php")
_UNITS = {"k": 1024, "m": 1048576, "g": 1073741824}
_ATOI = re.compile(r"[ \t\n\v\f\r]*([+-]?[0-9]+)")
_UNSIGNED = re.compile(r"[ \t\n\v\f\r]*\+?([0-9]+)")
_DIRECTIVE = re.compile(r"[ \t\n\v\f\r]*([^ \t\n\v\f\r]*)(.*)", re.S)


def _atoi(s: str) -> int:
    match = _ATOI.match(s)
    return int(match.group(1)) if match else 0


def _is_digits(s: str) -> bool:
    return all(c in _DIGITS for c in s)


def remove_consecutive_slashes(path: str) -> str:
    """Collapse every run of slashes into a single slash."""
    return re.sub(r"/{2,}", "/", path)


def transform_root(root: str) -> str:
    """Make ``root`` absolute against the working directory, ending in a slash."""
    result = root if root.startswith("/") else os.getcwd() + "/" + root
    if result and not result.endswith("/"):
        result += "/"
    return remove_consecutive_slashes(result)


def count_words(line: str) -> int:
    """Count the whitespace-separated words of a line."""
    return len(line.split())


def is_valid_port_number(port: int) -> bool:
    return 1 <= port <= 65535


def has_alpha(s: str) -> bool:
    return any(c in string.ascii_letters for c in s)


def _split_ip_port(s: str) -> tuple[str, str]:
    colon = s.find(":")
    ip_part = s if colon < 0 else s[:colon]
    return ip_part, s[colon + 1:]


def _check_ipv4(ip: str) -> bool:
    octets = ip.split(".") if ip else []
    if octets and octets[-1] == "" and len(octets) > 1:
        octets.pop()
    values = []
    for octet in octets:
        if not _is_digits(octet):
            return False
        num = int(octet) if octet else 0
        if num > 255:
            return False
        values.append(num)
    if len(values) != 4:
        return False
    if values == [0, 0, 0, 0] or values[0] == 127:
        return True
    raise ConfigError("Valid ranges: 0.0.0.0 or (127.0.0.0 to 127.255.255.255)")


def is_valid_ip(s: str) -> bool:
    """Check an ``ip:port`` pair; out-of-range addresses raise ConfigError."""
    ip_part, port_part = _split_ip_port(s)
    if not is_valid_port_number(_atoi(port_part)):
        return False
    return _check_ipv4(ip_part)


def is_valid_ip_alone(s: str) -> bool:
    """Check a bare IPv4 address; out-of-range addresses raise ConfigError."""
    return _check_ipv4(s)


def add_valid_ip(server: ServerConfig, s: str) -> None:
    """Record the ``ip:port`` pair ``s`` in the server's listen table."""
    ip_part, port_part = _split_ip_port(s)
    if has_alpha(port_part):
        raise ConfigError("port cannot contain alphabets!")
    port = _atoi(port_part)
    ports = server.ip_port.get(ip_part)
    if ports is not None:
        if port in ports:
            raise ConfigError("duplicate port number detected!")
        if is_valid_port_number(port):
            ports.append(port)
    else:
        server.ip_port[ip_part] = [port] if is_valid_port_number(port) else []


def convert_to_bytes(v: str) -> int:
    """Convert a size such as ``512``, ``10k`` or ``1M`` into bytes."""
    if not v:
        raise ConfigError("invalid value, conversion failed.")
    if v[-1] in string.ascii_letters:
        unit, number = v[-1], v[:-1]
        match = _UNSIGNED.fullmatch(number)
        if not match:
            raise ConfigError("invalid value, conversion failed.")
        value = int(match.group(1)) * _UNITS.get(unit.lower(), 1)
        if value > MAX_BODY_SIZE:
            raise ConfigError("client_max_body_size set too high!")
        return value
    match = _UNSIGNED.match(v)
    if not match:
        _log.warning("Invalid input: conversion failed.")
        return 0
    if match.end() != len(v):
        _log.warning("Invalid input: conversion failed.")
    return int(match.group(1))


def check_extension(s: str) -> None:
    """Require an index file name to end in .html, .htm or .php."""
    dot = s.find(".")
    if dot < 0 or dot == len(s) - 1:
        raise ConfigError("Index parameters require an extension! .html, .htm, .php!")
    if s[dot:] not in _ALLOWED_INDEX_EXTENSIONS:
        raise ConfigError("Invalid extension! Only .html, .htm, .php are accepted.")


def convert_str_to_size(nbr: str) -> int:
    """Convert a timeout value made only of digits."""
    if not _is_digits(nbr):
        raise ConfigError("Non-numeric character detected in timeout parameter!")
    return int(nbr) if nbr else 0


def split_directive(line: str) -> tuple[str, str, str]:
    """Split a directive line into (trimmed line, key, value)."""
    match = _DIRECTIVE.match(line)
    key = match.group(1)
    value = match.group(2).lstrip(_WHITESPACE)
    comment = value.find("#")
    if comment > 0:
        value = value[:comment]
    trim = ";" + _WHITESPACE
    return line.rstrip(trim), key, value.rstrip(trim)


def _reject_duplicates(values: Iterable, label: str) -> None:
    seen = []
    for value in values:
        if value in seen:
            raise ConfigError(f"duplicate value found in {label}!")
        seen.append(value)


def check_duplicates(server: ServerConfig) -> None:
    """Raise ConfigError if ports, domains, index or methods repeat."""
    _reject_duplicates(server.ports, "ports")
    _reject_duplicates(server.domains, "domains")
    _reject_duplicates(server.index, "index")
    _reject_duplicates(server.limit_except, "limit_except")


def generate_ip_port_domain(server: ServerConfig) -> None:
    """Fill the server's ``ip:port`` and ``ip:port:domain`` lists."""
    for ip in sorted(server.ip_port):
        server.ip_port_vec.extend(f"{ip}:{port}" for port in server.ip_port[ip])
    for ip_port in server.ip_port_vec:
        server.ip_port_domain.extend(f"{ip_port}:{domain}" for domain in server.domains)


def check_duplicate_ip_port_domains(configs: list[ServerConfig]) -> None:
    """Drop ``ip:port:domain`` entries claimed again by a later server."""
    for config in configs:
        own = config.ip_port_domain
        position = 0
        while position < len(own):
            check = own[position]
            count = 0
            for other in configs:
                for entry in other.ip_port_domain:
                    if entry == check:
                        count += 1
                        if count > 1:
                            if check in own:
                                own.remove(check)
                            break
            position += 1