"""Platform metadata adapters."""

from __future__ import annotations

from .base import MetadataAdapter
from .chzzk import ChzzkAdapter, VodMatch
from .twitch import TwitchAdapter
from .youtube import YouTubeAdapter

__all__ = ["ChzzkAdapter", "MetadataAdapter", "TwitchAdapter", "VodMatch", "YouTubeAdapter"]
