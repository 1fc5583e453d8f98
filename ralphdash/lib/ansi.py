"""
ANSI escape code handling for subprocess output.

Only CSI (``ESC [ params intermediates final``) and OSC (``ESC ] ... BEL``
or ``ESC ] ... ESC \\``) sequences are removed. That covers colors, cursor
movement, private modes (``ESC [ ? 25 l``) and hyperlinks, which is what
claude emits.
"""

import re

# CSI per ECMA-48: parameter bytes 0x30-0x3F, intermediate bytes 0x20-0x2F, final byte 0x40-0x7E
ANSI_PATTERN = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b\].*?(?:\x07|\x1b\\)")


def strip_ansi(text: str) -> str:
    """Remove CSI and OSC sequences from text."""
    return ANSI_PATTERN.sub("", text)
