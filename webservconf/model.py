"""Data model for parsed server and location blocks."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from .constants import MAX_BODY_SIZE
from .helpers import transform_root

DEFAULT_INDEX = ("index.html", "index.htm")
DEFAULT_METHODS = ("GET", "POST", "DELETE")


class LocationType(enum.IntEnum):
    """How a location path is matched against a request URI."""

    EXACT = 1
    PREFER = 2
    PREFIX = 3


@dataclass
class Location:
    """Settings of one ``location`` block."""

    kind: LocationType | None = None
    path: str = ""
    index: list[str] = field(default_factory=list)
    index_wiped: bool = False
    ret: dict[int, str] = field(default_factory=dict)
    ret_err_c: int = 0
    ret_value: str = ""
    root: str = ""
    alias: str = ""
    root_alias_set: bool = False
    error_pages: dict[int, str] = field(default_factory=dict)
    client_max_body_size: int = 1048576
    cmbs_set: bool = False
    autoindex: bool = False
    autoindex_set: bool = False
    limit_except: list[str] = field(default_factory=list)
    limit_except_set: bool = False
    cgi: dict[str, str] = field(default_factory=dict)
    cgi_ext: str = ""
    cgi_path: str = ""


@dataclass
class ServerConfig:
    """Settings of one ``server`` block."""

    name: str = ""
    ports: list[int] = field(default_factory=list)
    ipaddr: str = ""
    ip_port: dict[str, list[int]] = field(default_factory=dict)
    ip_port_vec: list[str] = field(default_factory=list)
    ip_port_domain: list[str] = field(default_factory=list)
    domains: list[str] = field(default_factory=list)
    index: list[str] = field(default_factory=list)
    index_cleared: bool = False
    ret: dict[int, str] = field(default_factory=dict)
    ret_err_c: int = 0
    ret_value: str = ""
    root: str = ""
    root_set: bool = False
    error_pages: dict[int, str] = field(default_factory=dict)
    client_max_body_size: int = 1048576
    cmbs_set: bool = False
    autoindex: bool = False
    autoindex_set: bool = False
    limit_except: list[str] = field(default_factory=list)
    exact_loc: dict[str, Location] = field(default_factory=dict)
    prefer_loc: dict[str, Location] = field(default_factory=dict)
    prefix_loc: dict[str, Location] = field(default_factory=dict)
    upload_store: str = ""
    max_file_size: int = 0
    allowed_types: list[str] = field(default_factory=list)
    cgi: dict[str, str] = field(default_factory=dict)
    cgi_ext: str = ""
    cgi_path: str = ""
    client_header_timeout: int = 0
    client_body_timeout: int = 0
    send_timeout: int = 0
    keepalive_timeout: int = 0
    cgi_read_timeout: int = 0
    cgi_send_timeout: int = 0
    cgi_connect_timeout: int = 0

    @classmethod
    def new(cls, number: int) -> ServerConfig:
        """Create the server block numbered ``number`` with its defaults."""
        return cls(
            name=f"server{number}",
            client_max_body_size=MAX_BODY_SIZE,
            root=transform_root("www"),
            index=list(DEFAULT_INDEX),
            limit_except=list(DEFAULT_METHODS),
        )

    def locations(self, kind: LocationType) -> dict[str, Location]:
        """Return the location map for the given match kind."""
        return {
            LocationType.EXACT: self.exact_loc,
            LocationType.PREFER: self.prefer_loc,
            LocationType.PREFIX: self.prefix_loc,
        }[kind]