"""URL classification and metadata resolution across video platforms."""

from __future__ import annotations

from .classifier import canonical_url, classify_url, embed_url
from .credentials import Credential, CredentialPool, call_with_rotation
from .models import Platform, ResolvedMetadata, VideoReference
from .resolver import MetadataResolver

__all__ = [
    "Credential",
    "CredentialPool",
    "MetadataResolver",
    "Platform",
    "ResolvedMetadata",
    "VideoReference",
    "call_with_rotation",
    "canonical_url",
    "classify_url",
    "embed_url",
]
