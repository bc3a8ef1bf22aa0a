"""Public share links for projects."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel

from ..clips.timestamps import ClipTimestamp, clips_from_notes
from ..db import ProjectRecord, ShareStore
from ..errors import EmptyClipList, ProjectNotFound, ShareNotFound
from .identifiers import DEFAULT_LENGTH, DEFAULT_MAX_ATTEMPTS, allocate_unique

logger = logging.getLogger(__name__)


class ShareLink(BaseModel):
    project_id: str
    share_id: str
    is_shared: bool
    share_url: Optional[str] = None


class SharedView(BaseModel):
    """What an anonymous visitor of a share link gets to see."""

    share_id: str
    title: str
    video_url: str
    platform: str
    video_id: str
    thumbnail_url: Optional[str] = None
    channel_name: Optional[str] = None
    duration: Optional[float] = None
    view_count: int = 0
    clips: list[ClipTimestamp]


class ShareService:
    def __init__(
        self,
        store: ShareStore,
        *,
        app_url: Optional[str] = None,
        id_length: int = DEFAULT_LENGTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self.store = store
        self.app_url = app_url.rstrip("/") if app_url else None
        self.id_length = id_length
        self.max_attempts = max_attempts

    def share_url(self, share_id: str) -> Optional[str]:
        return f"{self.app_url}/shared/{share_id}" if self.app_url else None

    def allocate_share_id(self) -> str:
        return allocate_unique(
            self.store.share_id_exists,
            length=self.id_length,
            max_attempts=self.max_attempts,
        )

    def enable_share(self, project_id: str) -> ShareLink:
        """Turn sharing on, reusing the project's share id when it already has one."""
        project = self._project(project_id)
        if not clips_from_notes(project.get("notes")):
            raise EmptyClipList()

        share_id = project.get("share_id") or self.allocate_share_id()
        if not self.store.update(project_id, {"share_id": share_id, "is_shared": True}):
            raise ProjectNotFound(project_id)
        logger.info(
            "Sharing enabled for project %s",
            project_id,
            extra={"event": "share.enabled", "share_id": share_id},
        )
        return ShareLink(project_id=project_id, share_id=share_id, is_shared=True, share_url=self.share_url(share_id))

    def disable_share(self, project_id: str) -> ShareLink:
        """Hide the link; the id stays on the project so re-enabling restores the same URL."""
        project = self._project(project_id)
        if not self.store.update(project_id, {"is_shared": False}):
            raise ProjectNotFound(project_id)
        share_id = project.get("share_id") or ""
        logger.info("Sharing disabled for project %s", project_id, extra={"event": "share.disabled"})
        return ShareLink(project_id=project_id, share_id=share_id, is_shared=False, share_url=None)

    def get_shared_view(self, share_id: str) -> SharedView:
        project = self.store.find_one({"share_id": share_id}) if share_id else None
        if project is None:
            raise ShareNotFound(share_id)
        if not project.get("is_shared"):
            raise ShareNotFound(share_id, "This project is not shared")

        view_count = self.store.increment_share_views(share_id)
        if view_count is None:
            raise ShareNotFound(share_id)
        return SharedView(
            share_id=share_id,
            title=project.get("title") or "Untitled Project",
            video_url=project["video_url"],
            platform=str(project.get("platform") or ""),
            video_id=project.get("video_id") or "",
            thumbnail_url=project.get("thumbnail_url"),
            channel_name=project.get("channel_name"),
            duration=project.get("duration"),
            view_count=view_count,
            clips=clips_from_notes(project.get("notes")),
        )

    def _project(self, project_id: str) -> ProjectRecord:
        project: Any = self.store.find_one({"id": project_id})
        if project is None:
            raise ProjectNotFound(project_id)
        return project
