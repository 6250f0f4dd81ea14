"""
Input Validators and Sanitizers

Subject identifiers arrive from the identity provider's headers and from
admin path parameters. They are used as database keys and written to logs,
so they are checked before use.
"""

import re
from typing import Optional

MAX_SUBJECT_ID_LENGTH = 255

# Covers UUIDs, numeric ids, emails and provider-prefixed ids like "auth0|abc"
SUBJECT_ID_PATTERN = re.compile(r'^[0-9A-Za-z._:@|+-]+$')


def sanitize_subject_id(subject_id: str) -> Optional[str]:
    """
    Sanitize and validate a subject identifier.

    Args:
        subject_id: Raw identifier

    Returns:
        Stripped identifier if valid, None otherwise

    Security:
    - Rejects whitespace and control characters (log injection)
    - Rejects path separators (path traversal in admin routes)
    - Caps the length at the column size
    """
    if not subject_id or not isinstance(subject_id, str):
        return None

    subject_id = subject_id.strip()

    if len(subject_id) > MAX_SUBJECT_ID_LENGTH:
        return None

    if not SUBJECT_ID_PATTERN.match(subject_id):
        return None

    return subject_id


def normalize_role(role: Optional[str]) -> Optional[str]:
    """Lower-case and strip a role header value; empty becomes None."""
    if not role or not isinstance(role, str):
        return None
    role = role.strip().lower()
    return role or None
