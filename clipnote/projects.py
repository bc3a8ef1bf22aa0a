"""Project creation and live-to-VOD conversion."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .db import ProjectRecord, ProjectStore
from .errors import (
    ChannelNotLive,
    ConfigurationMissing,
    CredentialPoolExhausted,
    ProjectNotFound,
    ProjectNotLive,
    UnsupportedVideoUrl,
    UpstreamNotFound,
)
from .metadata.adapters.chzzk import ChzzkAdapter
from .metadata.classifier import classify_url
from .metadata.models import Platform, ResolvedMetadata
from .metadata.resolver import MetadataResolver
from .metadata.utils import parse_upstream_datetime
from .sharing.service import ShareService

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Project"


class ProjectService:
    def __init__(
        self,
        resolver: MetadataResolver,
        store: ProjectStore,
        shares: ShareService,
        *,
        vod_finder: Optional[ChzzkAdapter] = None,
    ) -> None:
        self.resolver = resolver
        self.store = store
        self.shares = shares
        self.vod_finder = vod_finder

    async def create_project(
        self,
        user_id: str,
        video_url: str,
        *,
        title: Optional[str] = None,
        notes: Any = "",
    ) -> ProjectRecord:
        """Classify, enrich where possible, and persist a new project.

        Metadata is best effort: missing or exhausted credentials and unknown
        videos still create the project with a fallback title. A live URL whose
        channel is offline is rejected, since there is nothing to annotate yet.
        """
        reference = classify_url(video_url)
        if not reference.is_known:
            raise UnsupportedVideoUrl(video_url)

        metadata: Optional[ResolvedMetadata] = None
        try:
            metadata = await self.resolver.resolve_reference(reference, source=video_url)
        except ChannelNotLive:
            raise
        except (ConfigurationMissing, CredentialPoolExhausted, UpstreamNotFound) as exc:
            logger.warning(
                "Creating project without metadata for %s: %s",
                video_url,
                exc,
                extra={"event": "project.metadata_degraded", "platform": reference.platform.value},
            )

        fields: dict[str, Any] = {
            "user_id": user_id,
            "video_url": video_url,
            "platform": reference.platform.value,
            "video_id": reference.resource_id,
            "is_live": reference.is_live,
            "title": (title or "").strip() or (metadata.title if metadata else "") or DEFAULT_TITLE,
            "notes": notes,
            "share_id": self.shares.allocate_share_id(),
            "is_shared": False,
        }
        if metadata is not None:
            fields.update(
                thumbnail_url=metadata.thumbnail_url,
                duration=metadata.duration_seconds,
                channel_id=metadata.channel_id,
                channel_name=metadata.channel_name,
            )
        if reference.is_live and reference.platform is Platform.CHZZK:
            fields["live_channel_id"] = reference.resource_id
            if metadata is not None and metadata.live_opened_at is not None:
                fields["live_open_date"] = metadata.live_opened_at

        project = self.store.create(fields)
        logger.info(
            "Created project %s for %s %s",
            project["id"],
            reference.platform.value,
            reference.resource_id,
            extra={"event": "project.created", "platform": reference.platform.value},
        )
        return project

    async def convert_live_to_vod(self, project_id: str) -> ProjectRecord:
        """Repoint a finished Chzzk live project at the VOD published for that broadcast."""
        project = self.store.find_one({"id": project_id})
        if project is None:
            raise ProjectNotFound(project_id)
        if not project.get("is_live") or project.get("platform") != Platform.CHZZK.value:
            raise ProjectNotLive(project_id)
        if self.vod_finder is None:
            raise ConfigurationMissing(Platform.CHZZK.value, "no VOD lookup configured")

        channel_id = project.get("live_channel_id") or project.get("video_id")
        open_date = parse_upstream_datetime(project.get("live_open_date"))
        if open_date is None:
            raise UpstreamNotFound(Platform.CHZZK.value, channel_id, "Live start time is unknown; cannot match a VOD")

        match = await self.vod_finder.find_vod_by_open_date(channel_id, open_date)
        if match is None:
            raise UpstreamNotFound(Platform.CHZZK.value, channel_id, "The VOD for this broadcast is not published yet")

        changes: dict[str, Any] = {
            "video_url": match.url,
            "video_id": match.video_no,
            "is_live": False,
        }
        if match.thumbnail_url:
            changes["thumbnail_url"] = match.thumbnail_url
        if match.duration:
            changes["duration"] = match.duration
        if not self.store.update(project_id, changes):
            raise ProjectNotFound(project_id)
        logger.info(
            "Converted live project %s to VOD %s",
            project_id,
            match.video_no,
            extra={"event": "project.converted_to_vod"},
        )
        updated = self.store.find_one({"id": project_id})
        return updated if updated is not None else {**project, **changes}
