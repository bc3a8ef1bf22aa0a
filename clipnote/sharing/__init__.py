"""Share-link identifiers and the share flows built on them."""

from __future__ import annotations

from .identifiers import ALPHABET, allocate_unique, generate_share_id
from .service import SharedView, ShareLink, ShareService

__all__ = [
    "ALPHABET",
    "ShareLink",
    "ShareService",
    "SharedView",
    "allocate_unique",
    "generate_share_id",
]
