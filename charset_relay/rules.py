"""
Fixed negotiation rules.

This file exists to keep buffer sizing and configuration names in one place.
"""

MAX_LINE_CHARS = 512  # RFC 2812 line length
MAX_CHAR_BYTES = 4
# Same sizing ICU applies to a conversion buffer for MAX_LINE_CHARS characters
CONVERT_BUFFER_LEN = (MAX_LINE_CHARS + 10) * MAX_CHAR_BYTES

LIST_SEPARATOR = ","

ENV_LOCAL_CHARSETS = "CHARSET_RELAY_LOCAL"
ENV_REMOTE_CHARSETS = "CHARSET_RELAY_REMOTE"
ENV_GUESS = "CHARSET_RELAY_GUESS"
ENV_INBOUND_ONLY = "CHARSET_RELAY_INBOUND_ONLY"

USAGE = (
    "Two charset lists are required: "
    "<local_charset1[,local_charset2[,...]]> "
    "<remote_charset1[,remote_charset2[,...]]>. "
    "The first charset in each list is the preferred one for messages "
    "to that side."
)
