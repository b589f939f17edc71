"""Case conversion for command and flag names."""

from __future__ import annotations

import re

# Matches any character that is not alphanumeric or a hyphen.
_INVALID_NAME_RE = re.compile(r"[^a-z0-9-]")


def to_kebab(name: str) -> str:
    """Convert a method or field name to kebab-case.

    CamelCase boundaries and underscores both become hyphens, and acronym runs
    stay together.

    Example::

        >>> to_kebab("SendCoins")
        'send-coins'
        >>> to_kebab("XMLParser")
        'xml-parser'
        >>> to_kebab("from_address")
        'from-address'
    """
    # "SendCoins" -> "Send-Coins", "XMLParser" -> "XML-Parser"
    result = re.sub(r"([a-z0-9])([A-Z])", r"\1-\2", name)
    result = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1-\2", result)
    result = result.lower()
    result = result.replace("_", "-").replace(".", "-")
    result = _INVALID_NAME_RE.sub("-", result)
    return re.sub(r"-+", "-", result).strip("-")
