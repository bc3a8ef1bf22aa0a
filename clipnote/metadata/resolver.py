"""Single entry point from a video URL to normalized metadata."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from ..errors import ChannelNotLive, ConfigurationMissing, UnsupportedVideoUrl, UpstreamNotFound
from ..logging_utils import log_once
from .adapters.base import MetadataAdapter
from .classifier import classify_url
from .models import Platform, ResolvedMetadata, VideoReference

logger = logging.getLogger(__name__)


class MetadataResolver:
    """Classify, dispatch to the platform adapter, and check live status."""

    def __init__(self, adapters: Mapping[Platform, MetadataAdapter]) -> None:
        self.adapters = dict(adapters)

    async def resolve(self, url: str) -> ResolvedMetadata:
        return await self.resolve_reference(classify_url(url), source=url)

    async def resolve_reference(self, reference: VideoReference, *, source: Optional[str] = None) -> ResolvedMetadata:
        """Resolve an already classified reference (e.g. one read back from the store)."""
        if not reference.is_known:
            raise UnsupportedVideoUrl(source if source is not None else reference.resource_id)
        adapter = self.adapters.get(reference.platform)
        if adapter is None:
            raise ConfigurationMissing(reference.platform.value, "no adapter registered")

        try:
            metadata = await adapter.resolve(reference.resource_id, reference.is_live)
        except ConfigurationMissing as exc:
            log_once(
                logger,
                f"config-missing:{exc.platform}",
                logging.WARNING,
                "%s metadata disabled: %s; videos still play, enrichment is skipped",
                exc.platform,
                exc.detail,
                extra={"event": "metadata.configuration_missing", "platform": exc.platform},
            )
            raise
        except UpstreamNotFound as exc:
            logger.info(
                "Metadata lookup found nothing for %s %s: %s",
                reference.platform.value,
                reference.resource_id,
                exc,
                extra={"event": "metadata.not_found", "platform": reference.platform.value},
            )
            raise

        if reference.is_live and not metadata.is_open_live:
            raise ChannelNotLive(reference.platform.value, reference.resource_id)
        return metadata
