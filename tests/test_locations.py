import pytest

from webservconf.errors import ConfigError
from webservconf.helpers import split_directive
from webservconf.locations import apply_location_directive, init_location
from webservconf.model import LocationType, ServerConfig


@pytest.fixture
def server():
    return ServerConfig.new(1)


@pytest.fixture
def location(server):
    return init_location(server, "/site", LocationType.PREFIX)


def apply(location, raw, codes=None):
    line, key, value = split_directive(raw)
    return apply_location_directive(location, line, key, value, [] if codes is None else codes)


def test_init_location_copies_server_defaults(server):
    loc = init_location(server, "/a", LocationType.EXACT)
    assert server.exact_loc["/a"] is loc
    assert loc.kind == LocationType.EXACT
    assert loc.path == "/a"
    assert loc.index == server.index
    assert loc.limit_except == server.limit_except
    assert loc.root == server.root
    assert loc.client_max_body_size == server.client_max_body_size


def test_init_location_copies_are_independent(server):
    loc = init_location(server, "/a", LocationType.PREFER)
    loc.index.append("other.html")
    loc.limit_except.clear()
    assert "other.html" not in server.index
    assert server.limit_except == ["GET", "POST", "DELETE"]
    assert "/a" in server.prefer_loc


def test_init_location_invalid_type(server):
    with pytest.raises(ConfigError):
        init_location(server, "/a", 0)


def test_reinit_keeps_return_resets_root(server, location):
    apply(location, "return 301 /moved;")
    apply(location, "root /srv/data;")
    again = init_location(server, "/site", LocationType.PREFIX)
    assert again is location
    assert again.ret == {301: "/moved"}
    assert again.root == server.root
    assert again.root_alias_set is False


def test_closing_brace_ends_block(location):
    assert apply(location, "}") is True


def test_missing_parameters_raise(location):
    with pytest.raises(ConfigError):
        apply(location, "root;")


def test_index_wipes_defaults(location):
    assert apply(location, "index a.html b.php;") is False
    assert location.index == ["a.html", "b.php"]
    assert location.index_wiped is True


def test_index_duplicate_on_second_line(location):
    apply(location, "index a.html;")
    with pytest.raises(ConfigError):
        apply(location, "index a.html;")


def test_index_bad_extension(location):
    with pytest.raises(ConfigError):
        apply(location, "index main.txt;")


def test_root_absolute(location):
    apply(location, "root /srv//data;")
    assert location.root == "/srv/data/"
    assert location.root_alias_set is True


def test_root_twice_raises(location):
    apply(location, "root /srv/data;")
    with pytest.raises(ConfigError):
        apply(location, "root /srv/other;")


def test_alias_clears_root(location):
    apply(location, "alias /srv/alias;")
    assert location.alias == "/srv/alias/"
    assert location.root == ""


def test_alias_after_root_raises(location):
    apply(location, "root /srv/data;")
    with pytest.raises(ConfigError):
        apply(location, "alias /srv/alias;")


def test_alias_relative_raises(location):
    with pytest.raises(ConfigError):
        apply(location, "alias relative;")


def test_limit_except(location):
    apply(location, "limit_except get post;")
    assert location.limit_except == ["GET", "POST"]
    assert location.limit_except_set is True
    with pytest.raises(ConfigError):
        apply(location, "limit_except delete;")


def test_limit_except_unknown_method(location):
    with pytest.raises(ConfigError):
        apply(location, "limit_except get put;")


@pytest.mark.parametrize("raw, expected", [("autoindex on;", True), ("autoindex off;", False)])
def test_autoindex(location, raw, expected):
    apply(location, raw)
    assert location.autoindex is expected
    assert location.autoindex_set is True


def test_autoindex_invalid(location):
    with pytest.raises(ConfigError):
        apply(location, "autoindex maybe;")


def test_client_max_body_size(location):
    apply(location, "client_max_body_size 1k;")
    assert location.client_max_body_size == 1024
    with pytest.raises(ConfigError):
        apply(location, "client_max_body_size 2k;")


def test_error_page(location):
    codes = []
    apply(location, "error_page 404 500 /errors//page.html;", codes)
    assert location.error_pages[404] == "/errors/page.html"
    assert location.error_pages[500] == "/errors/page.html"
    assert codes == []


def test_error_page_code_out_of_range(location):
    with pytest.raises(ConfigError):
        apply(location, "error_page 300 /e.html;")


def test_return_with_path(location):
    apply(location, "return 301 /new;")
    assert location.ret == {301: "/new"}
    assert location.ret_err_c == 0


def test_return_code_only(location):
    apply(location, "return 204;")
    assert location.ret == {204: ""}


def test_return_first_wins(location):
    apply(location, "return 301 /first;")
    apply(location, "return 302 /second;")
    assert location.ret == {301: "/first"}


def test_return_invalid_code(location):
    with pytest.raises(ConfigError):
        apply(location, "return 700;")


def test_return_invalid_target(location):
    with pytest.raises(ConfigError):
        apply(location, "return 301 ftp:target;")


def test_cgi_exec(location):
    apply(location, "cgi_exec .py /usr//bin/python3;")
    assert location.cgi[".py"] == "/usr/bin/python3"
    assert location.cgi_ext == ""
    assert location.cgi_path == ""


def test_cgi_exec_invalid(location):
    with pytest.raises(ConfigError):
        apply(location, "cgi_exec py python3;")


def test_unknown_directive(location):
    with pytest.raises(ConfigError):
        apply(location, "listen 8080;")