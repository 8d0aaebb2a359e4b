from __future__ import annotations
import logging
import re
from typing import Dict

logger = logging.getLogger(__name__)

# "<id> <content>": first run of non-space characters is the id
_LINE_RE = re.compile(r"^(\S+)\s+(.*)$")

# Listing file name fragment -> Audio column it fills
LISTING_FIELDS: Dict[str, str] = {
    "original.txt": "text",
    "chinese.txt": "chinese",
    "misstext.txt": "miss_text",
}


def parse_listing(text: str) -> Dict[str, str]:
    """Parse a transcript listing with one ``<id> <content>`` entry per line."""
    parsed: Dict[str, str] = {}
    for line in text.strip().split("\n"):
        if not line.strip():
            continue
        match = _LINE_RE.match(line)
        if not match:
            logger.warning("Skipping malformed listing line: %r", line)
            continue
        parsed[match.group(1)] = match.group(2)
    return parsed


def listing_field(filename: str) -> str | None:
    name = filename.lower()
    for fragment, field in LISTING_FIELDS.items():
        if fragment in name:
            return field
    return None
