"""Limits and timeouts shared by the server components."""

MAX_URI_LENGTH = 2048
MAX_HEADER_LENGTH = 8192
MAX_BODY_SIZE = 1048576
MAX_TOTAL_HEADER_SIZE = 8192
MAX_REQUEST_SIZE = 1048576
MAX_HEADERS = 100
MAX_HEADER_NAME_LENGTH = 256
MAX_HEADER_VALUE_LENGTH = 4096
MAX_CLIENT_BODY_SIZE_LIMIT = 2147483648

REQ_TIMEOUT = 30
SEND_TIMEOUT = 30
KEEP_ALIVE_TIMEOUT = 30
READ_TIMEOUT = 30
WRITE_TIMEOUT = 30
CGI_TIMEOUT = 15