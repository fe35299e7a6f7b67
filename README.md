# webservconf

`webservconf` reads web server configuration files written in an
nginx-like syntax and turns them into plain Python objects. It also runs
CGI/1.1 scripts through their interpreter and checks what they print.

It uses only the standard library.

## Modules

- `webservconf.parser`: `ConfigParser`, `parse_config_text`, `load_config`
- `webservconf.model`: `ServerConfig`, `Location`, `LocationType`
- `webservconf.locations`: `init_location`, `apply_location_directive`
- `webservconf.helpers`: value checks and conversions used by the parser
- `webservconf.report`: `format_locations`, `format_configs`, `print_configs`
- `webservconf.cgi`: `build_environment`, `parse_cgi_output`, `CGIProcess`, `CGIOutput`
- `webservconf.errors`: `ServerException`, `DisconnectedException`, `ConfigError`, `CGIError`
- `webservconf.constants`: size limits and timeouts

## Configuration files

A file holds one or more `server` blocks. Each block may hold `location`
blocks:

```
server {
    listen 127.0.0.1:8080;
    server_name example.com www.example.com;
    root www;
    index index.html index.htm;
    client_max_body_size 1M;
    error_page 404 500 /errors/oops.html;
    cgi_exec .py /usr/bin/python3;

    location = /exact {
        return 301 /elsewhere;
    }

    location ^~ /static {
        autoindex on;
    }

    location /upload {
        limit_except POST DELETE;
        alias /srv/uploads;
    }
}
```

### Server directives

`listen`, `server_name`, `index`, `root`, `autoindex`,
`client_max_body_size`, `error_page`, `return` and `cgi_exec`.

`listen` takes `ip:port`, a bare address (the port then defaults to 8080)
or a bare port (the address then defaults to `0.0.0.0`).

A new server block starts with the name `server<N>`, the root `www`
(resolved against the current directory), the index files `index.html`
and `index.htm`, the methods `GET`, `POST` and `DELETE`, and a body limit
of 1 MiB.

### Location directives

`index`, `root`, `alias`, `limit_except`, `autoindex`,
`client_max_body_size`, `error_page`, `return` and `cgi_exec`.

A location block starts from its server's settings as they stand when
the block opens. Its own directives then override them.

### Location types

Each location is stored by its match type, given by `LocationType`:

- `location = /path`: `EXACT`, kept in `ServerConfig.exact_loc`
- `location ^~ /path`: `PREFER`, kept in `ServerConfig.prefer_loc`
- `location /path`: `PREFIX`, kept in `ServerConfig.prefix_loc`

`ServerConfig.locations(kind)` returns the map for a given type.

### Checks

A rejected file raises `ConfigError`. The parser rejects, among others:

- unknown directives and text outside a `server` block
- braces left open at the end of the file
- an empty file
- `listen` addresses other than `0.0.0.0` or `127.x.x.x`, an invalid
  port in an `ip:port` pair, a port with letters in it, and a port
  repeated on the same address
- `root`, `alias`, `autoindex` or `client_max_body_size` given twice in
  one block, and `root` together with `alias` in a location
- index files whose extension is not `.html`, `.htm` or `.php`
- `error_page` codes outside 400–599 and `return` codes outside 100–599
- a `client_max_body_size` with a `k`, `m` or `g` suffix above 1 MiB
- repeated domains, index files or methods within a server

When two servers claim the same `ip:port:domain`, the later claim is
dropped from `ServerConfig.ip_port_domain`.

Relative roots are resolved against the current working directory. Every
root and alias ends with a single `/`, and runs of slashes are collapsed.

## Loading a configuration

```python
from webservconf.parser import load_config, parse_config_text

configs = load_config("server.conf")

for server in configs:
    print(server.name, server.ip_port, server.domains)
    for path, location in server.prefix_loc.items():
        print(path, location.root, location.limit_except)
```

`parse_config_text` does the same for a string you already hold. To feed
lines as they arrive, use `ConfigParser` directly:

```python
from webservconf.parser import ConfigParser

parser = ConfigParser()
for line in text.splitlines():
    parser.feed(line)
configs = parser.finish()
```

`finish` runs the whole-file checks and fills each server's `ip:port`
and `ip:port:domain` lists.

To get a readable summary of the parsed servers, use `format_configs`,
which returns it as a string, or `print_configs`, which writes it to a
file object (standard output when none is given):

```python
import sys
from webservconf.report import format_configs, print_configs

print_configs(configs, sys.stdout)
```

## Running CGI scripts

`build_environment` assembles the CGI/1.1 environment. `CGIProcess` starts
the interpreter on the script, connected through a pair of non-blocking
sockets, `input_socket` and `output_socket`, which a caller may watch
with `selectors`:

```python
from webservconf.cgi import CGIProcess, build_environment

body = b"name=value"
environ = build_environment(
    "localhost", "8080", "POST", "", "", "/cgi-bin/hello.py",
    "/srv/www/cgi-bin/hello.py", "name=value", "127.0.0.1",
    "application/x-www-form-urlencoded", len(body),
)
with CGIProcess("/srv/www/cgi-bin/hello.py", "/usr/bin/python3",
                environ, body) as process:
    process.start()
    while not process.is_complete():
        process.send_post_body()
        process.read_available_output()
    result = process.parse_output()
print(result.status, result.content_type, result.body)
```

Leaving the `with` block calls `clean_child`, which closes the sockets and
stops the child if it is still running.

### Output rules

The script's output must:

- start with headers ending in a blank line (`\r\n\r\n`)
- include a `Content-Type` header
- keep any `Status` header in the form `NNN Word`; without one the
  status is `200`
- keep headers within `MAX_HEADER_LENGTH` and the body within
  `MAX_BODY_SIZE` from `webservconf.constants`

Anything else raises `CGIError`. The error's `status` is the HTTP status
the server should reply with: 502 for bad output, 504 when the script
runs longer than `CGI_TIMEOUT` seconds, 500 when the sockets fail.

`parse_cgi_output` applies the same rules to output you already have and
returns a `CGIOutput`.

## What this package does not do

It does not listen on sockets, accept connections, parse HTTP requests or
build HTTP responses, and it has no command to start a server. It gives a
server its configuration and its CGI handling; the server itself is up to
you.