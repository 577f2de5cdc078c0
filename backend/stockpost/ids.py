# Overview: Opaque identifier generation for all stockpost tables.

from __future__ import annotations

import secrets
import string

ID_ALPHABET = string.ascii_letters + string.digits + "_-"
ID_LENGTH = 10


def new_id(size: int = ID_LENGTH) -> str:
    """Short random id (URL-safe alphabet), generated application side."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(size))
