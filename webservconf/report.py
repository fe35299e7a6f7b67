"""Human-readable dump of parsed server configurations."""

from __future__ import annotations

import sys
from collections.abc import Iterable, Mapping
from typing import TextIO

from .model import Location, ServerConfig

RED = "\033[31m"
ORANGE = "\033[38;5;214m"
YELLOW = "\033[33m"
GREEN = "\033[32m"
BLUE = "\033[34m"
RESET = "\033[0m"

_RULE = "-" * 37


def _joined(items: Iterable[str]) -> str:
    items = list(items)
    return ", ".join(items) if items else "(empty)"


def _location_lines(key: str, loc: Location) -> list[str]:
    label = f"{BLUE}  {{}}: {RESET}".format
    lines = [
        f"{RED}Key: {RESET}{key}",
        f"{RED}Container members: {RESET}",
        label("type") + ("(empty)" if loc.kind is None else str(int(loc.kind))),
        label("path") + (loc.path or "(empty)"),
        label("root") + (loc.root or "(empty)"),
        label("index") + _joined(loc.index),
        label("alias") + (loc.alias or "(empty)"),
    ]
    if loc.ret:
        rets = [f"({code}, {value})" for code, value in sorted(loc.ret.items())]
        lines.append(label("ret") + rets[0])
        lines.extend(rets[1:])
    else:
        lines.append(label("ret") + "(empty)")

    lines.append(f"{BLUE}  error_pages:{RESET}")
    if loc.error_pages:
        lines.extend(f"    {code}, {page}" for code, page in sorted(loc.error_pages.items()))
    else:
        lines.append("  (empty)")

    lines.append(label("client_max_body_size") + str(loc.client_max_body_size))
    lines.append(label("autoindex") + str(int(bool(loc.autoindex))))
    lines.append(label("limit_except") + _joined(loc.limit_except))

    # The colour reset follows the line break here.
    lines.append(f"{BLUE}  cgi:")
    if loc.cgi:
        cgi = [f"    {ext}, {path}" for ext, path in sorted(loc.cgi.items())]
        lines.append(RESET + cgi[0])
        lines.extend(cgi[1:])
    else:
        lines.append(RESET + "  (empty)")
    return lines


def format_locations(locations: Mapping[str, Location]) -> str:
    """Describe every location of a location map, ordered by path."""
    lines: list[str] = []
    for key in sorted(locations):
        lines.extend(_location_lines(key, locations[key]))
    return "".join(line + "\n" for line in lines)


def _server_text(server: ServerConfig) -> str:
    out: list[str] = [_RULE + "\n", f"{YELLOW}{server.name}{RESET}\n"]

    out.append(f"{GREEN}ip_port:\n{RESET}")
    if server.ip_port:
        for ip in sorted(server.ip_port):
            out.extend(f"{ip}:{port}\n" for port in server.ip_port[ip])
    else:
        out.append("(empty)\n")

    out.append(f"{GREEN}server_name/domains: {RESET}{_joined(server.domains)}\n")

    out.append(f"{GREEN}ipPortDomains:\n{RESET}")
    if server.ip_port_domain:
        out.extend(entry + "\n" for entry in server.ip_port_domain)
    else:
        out.append("(empty)\n")

    out.append(f"{GREEN}index: {RESET}{_joined(server.index)}\n")
    out.append(f"{GREEN}root: {RESET}{server.root or '(empty)'}\n")

    out.append(f"{GREEN}ret: {RESET}")
    if server.ret:
        out.extend(f"({code}, {value})\n" for code, value in sorted(server.ret.items()))
    else:
        out.append("(empty)\n")

    out.append(f"{GREEN}error_pages:\n{RESET}")
    if server.error_pages:
        out.extend(f"{code}, {page}\n" for code, page in sorted(server.error_pages.items()))
    else:
        out.append("(empty)\n")

    out.append(f"{GREEN}client_max_body_size: {RESET}{server.client_max_body_size}\n")
    out.append(f"{GREEN}autoindex: {RESET}{int(bool(server.autoindex))}\n")
    out.append(f"{GREEN}limit_except: {RESET}{_joined(server.limit_except)}\n")

    out.append(f"{GREEN}cgi:\n{RESET}")
    if server.cgi:
        out.extend(f"{ext}, {path}\n" for ext, path in sorted(server.cgi.items()))
    else:
        out.append("(empty)\n")

    out.append(f"{YELLOW}Locations:\n{RESET}")
    for label, locations in (
        ("exact_loc", server.exact_loc),
        ("prefer_loc", server.prefer_loc),
        ("prefix_loc", server.prefix_loc),
    ):
        if not locations:
            out.append(f"{label}: (empty)\n")
            continue
        out.append(f"{ORANGE}* in {label} *{RESET}\n")
        out.append(format_locations(locations))
        out.append(f"Map size = {len(locations)}\n")
    out.append(_RULE + "\n")
    return "".join(out)


def format_configs(configs: Iterable[ServerConfig]) -> str:
    """Describe every server block and its locations."""
    return "".join(_server_text(server) for server in configs)


def print_configs(configs: Iterable[ServerConfig], file: TextIO | None = None) -> None:
    """Write the description of ``configs`` to ``file`` (standard output by default)."""
    target = sys.stdout if file is None else file
    target.write(format_configs(configs))