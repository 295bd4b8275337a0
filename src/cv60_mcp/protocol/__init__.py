"""Protocol layer: command headers, status trailers, opcodes, response parsing and retry policy."""

from .framing import build_header, is_status_trailer, new_check_value
from .retry import StatusByteAction
