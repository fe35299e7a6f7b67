"""Web server configuration parsing, configuration reports and CGI script handling."""

__version__ = "0.1.0"

__all__ = ["constants", "errors", "model", "helpers", "locations", "parser", "cgi", "report"]