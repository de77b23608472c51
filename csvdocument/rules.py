"""
Deterministic defaults.

This file exists to keep the library's defaults in one place.
"""

DEFAULT_DELIMITER = ","
DEFAULT_ENCLOSURE = '"'
DEFAULT_ESCAPE = "\\"
DEFAULT_NEWLINE = "\n"
# construction creates a missing file on write; derived views reopen the existing one
DEFAULT_OPEN_MODE = "a+"
VIEW_OPEN_MODE = "r+"

FALLBACK_ENCODING = "utf-8"
TARGET_ENCODING = "utf-8-sig"  # UTF-8 with BOM
NORMALIZED_DELIMITER = ","

# read size used by filtered streams and the sample size for encoding detection
CHUNK_SIZE = 8192
DETECTION_SAMPLE_SIZE = 65536

# characters that force a field to be enclosed on write, besides the dialect's own
ENCLOSE_TRIGGERS = " \t\r\n"
