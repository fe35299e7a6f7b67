"""Creation of location blocks and handling of their directives."""

from __future__ import annotations

import re

from .errors import ConfigError
from .helpers import (
    check_extension,
    convert_to_bytes,
    count_words,
    has_alpha,
    remove_consecutive_slashes,
    transform_root,
)
from .model import Location, LocationType, ServerConfig

_ATOI = re.compile(r"[ \t\n\v\f\r]*([+-]?[0-9]+)")
_METHOD_PREFIXES = ("GET", "POST", "DELETE")


def _atoi(s: str) -> int:
    match = _ATOI.match(s)
    return int(match.group(1)) if match else 0


def init_location(server: ServerConfig, path: str, location_type: int) -> Location:
    """Create (or re-initialise) the location ``path`` with the server's defaults."""
    if not location_type:
        raise ConfigError("initLocationBlock unexpected error!")
    try:
        kind = LocationType(location_type)
    except ValueError as exc:
        raise ConfigError("initLocationBlock unexpected error!") from exc

    location = server.locations(kind).setdefault(path, Location())
    location.kind = kind
    location.path = path
    location.client_max_body_size = server.client_max_body_size
    location.limit_except_set = False
    location.limit_except = list(server.limit_except)
    location.error_pages = dict(server.error_pages)
    location.autoindex = server.autoindex
    location.index = list(server.index)
    location.index_wiped = False
    location.root = server.root
    location.root_alias_set = False
    location.cgi = dict(server.cgi)
    return location


def _apply_index(location: Location, v: str) -> None:
    check_extension(v)
    if not location.index_wiped:
        location.index = []
        location.index_wiped = True
        location.index.append(v)
    elif v in location.index:
        raise ConfigError("(location) duplicate index detected!")
    else:
        location.index.append(v)


def _apply_return(location: Location, v: str, wordcount: int) -> None:
    if wordcount == 2 and not has_alpha(v):
        if location.ret:
            return
        code = _atoi(v)
        if not 100 <= code <= 599:
            raise ConfigError(
                "(location) in return directive: invalid error code detected! Must be 400 - 599!"
            )
        location.ret.setdefault(code, "")
    elif wordcount == 3:
        if location.ret:
            return
        if not has_alpha(v) and v[0] in "0123456789":
            code = _atoi(v)
            if not 100 <= code <= 599:
                raise ConfigError(
                    "(location) in return directive: invalid error code detected! Must be 400 - 599!"
                )
            location.ret_err_c = code
        elif v.startswith("/") or v.startswith("http"):
            location.ret_value = v
            if location.ret_err_c >= 100 and location.ret_value:
                location.ret[location.ret_err_c] = remove_consecutive_slashes(location.ret_value)
                location.ret_err_c = 0
                location.ret_value = ""
            else:
                raise ConfigError(
                    "(location) return directive must have an error_code + URL/PATH!"
                )
        else:
            raise ConfigError("(location) invalid return parameter detected!")
    else:
        raise ConfigError("return directive error detected!")


def _apply_cgi(location: Location, v: str) -> None:
    if v[0] == ".":
        if len(v) > 1:
            location.cgi_ext = v
    elif v[0] == "/":
        location.cgi_path = remove_consecutive_slashes(v)
    else:
        raise ConfigError("cgi_ext parameters are invalid!")
    if location.cgi_ext and location.cgi_path:
        location.cgi[location.cgi_ext] = location.cgi_path
        location.cgi_ext = ""
        location.cgi_path = ""


def apply_location_directive(
    location: Location, line: str, key: str, value: str, error_codes: list[int]
) -> bool:
    """Apply one directive line to ``location``.

    Returns True when the line closes the location block. ``error_codes``
    collects the codes of an ``error_page`` directive and is emptied once
    its page is assigned.
    """
    wordcount = count_words(line)
    if not value:
        if key == "}":
            return True
        raise ConfigError("location block directive requires parameters!")

    param = 1
    le_pushing = False
    for v in (token for token in value.split(" ") if token):
        if key.startswith("index"):
            _apply_index(location, v)
        elif key.startswith("root"):
            if location.root_alias_set:
                raise ConfigError(
                    "conflicting directive 'root' and 'alias' in location block,\n"
                    "or 'root' is used more than once!"
                )
            if wordcount != 2:
                raise ConfigError("root directive error detected!")
            location.root = transform_root(v)
            location.root_alias_set = True
        elif key.startswith("limit_except"):
            if location.limit_except_set:
                raise ConfigError("(location) 'limit_except' is used more than once!")
            if not le_pushing:
                location.limit_except = []
                le_pushing = True
            param += 1
            v = v.upper()
            if le_pushing and param < wordcount:
                if not v.startswith(_METHOD_PREFIXES):
                    raise ConfigError("unknown parameters.")
                if v not in location.limit_except:
                    location.limit_except.append(v)
            elif le_pushing and param == wordcount:
                if not v.startswith(_METHOD_PREFIXES):
                    raise ConfigError("unknown parameters.")
                le_pushing = False
                if v not in location.limit_except:
                    location.limit_except.append(v)
                    location.limit_except_set = True
        elif key.startswith("autoindex"):
            if location.autoindex_set:
                raise ConfigError("(Location) 'autoindex' is used more than once!")
            if v.startswith("on"):
                location.autoindex = True
            elif v.startswith("off"):
                location.autoindex = False
            else:
                raise ConfigError("autoindex parameters only allows 'on' or 'off'!")
            location.autoindex_set = True
        elif key.startswith("client_max_body_size"):
            if location.cmbs_set:
                raise ConfigError("(Location) 'client_max_body_size' is used more than once!")
            location.client_max_body_size = convert_to_bytes(v)
            location.cmbs_set = True
        elif key.startswith("error_page") and wordcount >= 3:
            param += 1
            if v[0] == "/" and param == wordcount:
                page = remove_consecutive_slashes(v)
                for code in error_codes:
                    location.error_pages[code] = page
                error_codes.clear()
            elif not has_alpha(v) and param < wordcount:
                code = _atoi(v)
                if not 400 <= code <= 599:
                    raise ConfigError("invalid error code detected! Must be 400 - 599!")
                error_codes.append(code)
            else:
                raise ConfigError("error_page directive error detected!")
        elif key.startswith("alias"):
            if location.root_alias_set:
                raise ConfigError(
                    "conflicting directive 'root' and 'alias' in location block,\n"
                    "or 'alias' is used more than once!"
                )
            if v[0] != "/" or wordcount != 2:
                raise ConfigError("alias directive error detected!")
            location.alias = transform_root(v)
            location.root_alias_set = True
            location.root = ""
        elif key.startswith("return"):
            _apply_return(location, v, wordcount)
        elif key.startswith("cgi_exec") and wordcount == 3:
            _apply_cgi(location, v)
        else:
            raise ConfigError("unknown location directive!")
    return False