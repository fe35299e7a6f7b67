"""Exception types raised by the server components."""


class ServerException(Exception):
    """A fatal server-side error."""


class DisconnectedException(Exception):
    """The peer closed the connection."""


class ConfigError(ServerException):
    """The configuration file is invalid."""


class CGIError(ServerException):
    """A CGI script could not be run or produced bad output."""

    def __init__(self, message: str, status: int = 500) -> None:
        super().__init__(message)
        self.status = status