"""Process exit statuses following BSD sysexits.h conventions."""
from __future__ import annotations
from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    ERROR = 1
    USAGE = 64          # Invalid arguments, missing required args
    DATAERR = 65        # Input data was incorrect
    NOUSER = 67         # User, group or attribute does not exist
    UNAVAILABLE = 69    # Server down, connection refused
    IOERR = 74          # File not found, path traversal
    TEMPFAIL = 75       # Rate limited, retry later
    PROTOCOL = 76       # Malformed server response
    NOPERM = 77         # Authentication failed or session expired
    CONFIG = 78         # Missing required configuration
