"""Exception hierarchy shared by the metadata, sharing, and refresh layers."""

from __future__ import annotations


class ClipNoteError(Exception):
    """Base class for every error raised by the ClipNote core."""


class UserInputError(ClipNoteError):
    """Input the end user has to fix; surfaced verbatim and never retried."""


class UnsupportedVideoUrl(UserInputError):
    def __init__(self, url: object) -> None:
        super().__init__("Invalid video URL. Supported platforms: YouTube, Chzzk, Twitch")
        self.url = url


class EmptyClipList(UserInputError):
    def __init__(self) -> None:
        super().__init__("Notes contain no timestamp ranges to share")


class ProjectNotLive(UserInputError):
    def __init__(self, project_id: str) -> None:
        super().__init__("Project is not a live stream")
        self.project_id = project_id


class ConfigurationMissing(ClipNoteError):
    """Credentials required by a platform adapter are not configured."""

    def __init__(self, platform: str, detail: str) -> None:
        super().__init__(f"{platform}: {detail}")
        self.platform = platform
        self.detail = detail


class UpstreamNotFound(ClipNoteError):
    """The upstream platform answered but has no matching resource."""

    default_message = "Video not found on the source platform"

    def __init__(self, platform: str, resource_id: str, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.platform = platform
        self.resource_id = resource_id


class ChannelNotLive(UpstreamNotFound):
    default_message = "The channel is not streaming live right now"


class TransientUpstreamError(UpstreamNotFound):
    """Transport or 5xx failure; reads as NotFound unless the caller checks for it."""

    def __init__(self, platform: str, resource_id: str, cause: str) -> None:
        super().__init__(platform, resource_id)
        self.cause = cause


class QuotaExceeded(ClipNoteError):
    """Upstream rejected the credential used for this call because of quota/rate limits."""

    def __init__(self, platform: str, detail: str = "quota exceeded") -> None:
        super().__init__(f"{platform}: {detail}")
        self.platform = platform


class CredentialPoolExhausted(ClipNoteError):
    def __init__(self, platform: str) -> None:
        super().__init__(f"All {platform} API credentials have exceeded their quota")
        self.platform = platform


class CollisionExhausted(ClipNoteError):
    def __init__(self, attempts: int) -> None:
        super().__init__(f"Could not allocate a unique share id after {attempts} attempts")
        self.attempts = attempts


class ProjectNotFound(ClipNoteError):
    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class ShareNotFound(ClipNoteError):
    def __init__(self, share_id: str, reason: str = "Share not found") -> None:
        super().__init__(reason)
        self.share_id = share_id


class RefreshAborted(ClipNoteError):
    """The batch refresh could not load the projects it was asked to process."""
