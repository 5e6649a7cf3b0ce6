"""Screens free-text feedback for personally identifying content.

Feedback is stored anonymously, so anything that looks like contact details,
a street address, a self-introduced name or a session/token identifier is
rejected before it reaches the ledger.
"""

import re

_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("email address", re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")),
    ("social security number", re.compile(r"\b\d{3}-\d{2}-\d{4}\b")),
    (
        "phone number",
        re.compile(r"(?<!\d)(?:\+?\d{1,2}[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}(?!\d)"),
    ),
    (
        "street address",
        re.compile(
            r"\b\d{1,6}\s+(?:[a-z0-9.']+\s+){0,4}"
            r"(?:street|st|avenue|ave|road|rd|boulevard|blvd|lane|ln|drive|dr|court|ct|way|place|pl|calle|avenida)\b",
            re.IGNORECASE,
        ),
    ),
    (
        "name",
        re.compile(r"\b(?:my name is|my name's|i am called|me llamo|mi nombre es)\s+\w", re.IGNORECASE),
    ),
    ("access token", re.compile(r"\beyJ[\w-]{5,}\.[\w-]{5,}\.[\w-]+")),
    (
        "session identifier",
        re.compile(r"\b(?:session|sessionid|sid|token|bearer|api[_-]?key)\s*[:=]?\s*[\w.-]{12,}", re.IGNORECASE),
    ),
    ("identifier", re.compile(r"\b[0-9a-f]{32,}\b", re.IGNORECASE)),
]


def find_pii(text: str | None) -> str | None:
    """Return the kind of personal data found in ``text``, or None."""
    if not text:
        return None
    for kind, pattern in _PATTERNS:
        if pattern.search(text):
            return kind
    return None
