import asyncio
import json
import threading
from datetime import datetime, timezone
from types import SimpleNamespace

import httpx
import pytest
from googleapiclient.errors import HttpError

from clipnote.errors import (
    ChannelNotLive,
    ConfigurationMissing,
    CredentialPoolExhausted,
    TransientUpstreamError,
    UpstreamNotFound,
)
from clipnote.metadata.adapters import ChzzkAdapter, TwitchAdapter, YouTubeAdapter
from clipnote.metadata.credentials import CredentialPool


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _chzzk(handler) -> ChzzkAdapter:
    return ChzzkAdapter(client=_client(handler))


# --------------------------------------------------------------------------- #
# Chzzk
# --------------------------------------------------------------------------- #


def test_chzzk_vod_metadata() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/service/v3/videos/123"
        return httpx.Response(
            200,
            json={
                "code": 200,
                "content": {
                    "videoTitle": "Big match",
                    "videoImageUrl": "https://img.chzzk/{type}.jpg",
                    "duration": 3600,
                    "channel": {"channelId": "c1", "channelName": "Streamer"},
                },
            },
        )

    metadata = asyncio.run(_chzzk(handler).resolve("123"))

    assert metadata.title == "Big match"
    assert metadata.thumbnail_url == "https://img.chzzk/720.jpg"
    assert metadata.duration_seconds == 3600
    assert (metadata.channel_id, metadata.channel_name) == ("c1", "Streamer")


def test_chzzk_vod_missing_is_not_found() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": 404, "message": "no video", "content": None})

    with pytest.raises(UpstreamNotFound) as excinfo:
        asyncio.run(_chzzk(handler).resolve("404"))
    assert not isinstance(excinfo.value, (ChannelNotLive, TransientUpstreamError))


def test_chzzk_live_open() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/service/v3/channels/chan/live-detail"
        return httpx.Response(
            200,
            json={
                "code": 200,
                "content": {
                    "liveTitle": "Late night",
                    "status": "OPEN",
                    "openDate": "2024-03-01 21:00:00",
                    "channel": {"channelId": "chan", "channelName": "Night Owl"},
                },
            },
        )

    metadata = asyncio.run(_chzzk(handler).resolve("chan", is_live=True))

    assert metadata.is_open_live
    assert metadata.live_opened_at == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_chzzk_live_closed_reports_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": 200, "content": {"status": "CLOSE", "openDate": "2024-03-01 21:00:00"}})

    metadata = asyncio.run(_chzzk(handler).resolve("chan", is_live=True))

    assert metadata.live_status == "CLOSE"
    assert metadata.live_opened_at is None


def test_chzzk_live_without_content_is_channel_not_live() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": 200, "content": None})

    with pytest.raises(ChannelNotLive):
        asyncio.run(_chzzk(handler).resolve("chan", is_live=True))


def test_chzzk_server_error_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="down")

    with pytest.raises(TransientUpstreamError) as excinfo:
        asyncio.run(_chzzk(handler).resolve("1"))
    assert isinstance(excinfo.value, UpstreamNotFound)
    assert excinfo.value.cause == "HTTP 503"


def test_chzzk_transport_error_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientUpstreamError):
        asyncio.run(_chzzk(handler).resolve("1"))


def test_chzzk_find_vod_by_open_date() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/service/v1/channels/chan/videos"
        assert request.url.params["sortType"] == "LATEST"
        return httpx.Response(
            200,
            json={
                "code": 200,
                "content": {
                    "data": [
                        {"videoNo": 11, "videoTitle": "other", "liveOpenDate": "2024-02-28 20:00:00"},
                        {
                            "videoNo": 12,
                            "videoTitle": "Late night (VOD)",
                            "duration": 7200,
                            "liveOpenDate": "2024-03-01 21:00:00",
                            "thumbnailImageUrl": "https://img/{type}.jpg",
                        },
                    ]
                },
            },
        )

    adapter = _chzzk(handler)
    match = asyncio.run(adapter.find_vod_by_open_date("chan", datetime(2024, 3, 1, 12, tzinfo=timezone.utc)))
    missing = asyncio.run(adapter.find_vod_by_open_date("chan", datetime(2023, 1, 1, tzinfo=timezone.utc)))

    assert match is not None
    assert match.video_no == "12"
    assert match.url == "https://chzzk.naver.com/video/12"
    assert match.duration == 7200
    assert missing is None


# --------------------------------------------------------------------------- #
# Twitch
# --------------------------------------------------------------------------- #


def _twitch_video() -> dict:
    return {
        "data": [
            {
                "title": "Speedrun",
                "thumbnail_url": "https://static-cdn/%{width}x%{height}.jpg",
                "duration": "1h2m3s",
                "user_id": "42",
                "user_name": "Runner",
            }
        ]
    }


def test_twitch_metadata_and_headers() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Client-ID"] == "cid"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.url.params["id"] == "777"
        return httpx.Response(200, json=_twitch_video())

    adapter = TwitchAdapter(CredentialPool(["tok"], platform="TWITCH"), "cid", client=_client(handler))
    metadata = asyncio.run(adapter.resolve("777"))

    assert metadata.title == "Speedrun"
    assert metadata.thumbnail_url == "https://static-cdn/640x360.jpg"
    assert metadata.duration_seconds == 3723
    assert (metadata.channel_id, metadata.channel_name) == ("42", "Runner")


@pytest.mark.parametrize("status", [401, 429])
def test_twitch_rotates_token_on_auth_or_rate_limit(status: int) -> None:
    tokens: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        token = request.headers["Authorization"].removeprefix("Bearer ")
        tokens.append(token)
        if token == "first":
            return httpx.Response(status, json={"message": "nope"})
        return httpx.Response(200, json=_twitch_video())

    pool = CredentialPool(["first", "second"], platform="TWITCH")
    metadata = asyncio.run(TwitchAdapter(pool, "cid", client=_client(handler)).resolve("1"))

    assert metadata.title == "Speedrun"
    assert tokens == ["first", "second"]
    assert pool.stats()["available_keys"] == 1


def test_twitch_all_tokens_limited() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429)

    pool = CredentialPool(["a", "b"], platform="TWITCH")
    with pytest.raises(CredentialPoolExhausted):
        asyncio.run(TwitchAdapter(pool, "cid", client=_client(handler)).resolve("1"))


def test_twitch_without_client_id_is_configuration_missing() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    adapter = TwitchAdapter(CredentialPool(["tok"]), None, client=_client(handler))
    with pytest.raises(ConfigurationMissing):
        asyncio.run(adapter.resolve("1"))


def test_twitch_empty_data_is_not_found() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": []})

    adapter = TwitchAdapter(CredentialPool(["tok"]), "cid", client=_client(handler))
    with pytest.raises(UpstreamNotFound):
        asyncio.run(adapter.resolve("1"))


# --------------------------------------------------------------------------- #
# YouTube
# --------------------------------------------------------------------------- #


class FakeRequest:
    def __init__(self, outcome) -> None:
        self.outcome = outcome

    def execute(self):
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class FakeYouTube:
    """Mimics ``build("youtube", "v3").videos().list(...).execute()``."""

    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.list_calls: list[dict] = []

    def videos(self):
        return self

    def list(self, **kwargs):
        self.list_calls.append(kwargs)
        return FakeRequest(self.outcome)


def _http_error(status: int, reason: str) -> HttpError:
    body = json.dumps({"error": {"code": status, "message": reason, "errors": [{"reason": reason}]}}).encode()
    return HttpError(SimpleNamespace(status=status, reason="error"), body)


VIDEO = {
    "items": [
        {
            "snippet": {
                "title": "Never Gonna",
                "channelId": "UC1",
                "channelTitle": "Rick",
                "liveBroadcastContent": "none",
                "thumbnails": {
                    "default": {"url": "https://i.ytimg.com/default.jpg"},
                    "high": {"url": "https://i.ytimg.com/high.jpg"},
                },
            },
            "contentDetails": {"duration": "PT3M33S"},
        }
    ]
}


def test_youtube_metadata_prefers_largest_thumbnail() -> None:
    fake = FakeYouTube(VIDEO)
    adapter = YouTubeAdapter(CredentialPool(["k1"], platform="YOUTUBE"), client_factory=lambda key: fake)

    metadata = asyncio.run(adapter.resolve("dQw4w9WgXcQ"))

    assert metadata.thumbnail_url == "https://i.ytimg.com/high.jpg"
    assert metadata.duration_seconds == 213
    assert metadata.channel_name == "Rick"
    assert fake.list_calls[0]["id"] == "dQw4w9WgXcQ"


def test_youtube_quota_error_rotates_key() -> None:
    clients = {"k1": FakeYouTube(_http_error(403, "quotaExceeded")), "k2": FakeYouTube(VIDEO)}
    pool = CredentialPool(["k1", "k2"], platform="YOUTUBE")
    adapter = YouTubeAdapter(pool, client_factory=clients.__getitem__)

    metadata = asyncio.run(adapter.resolve("dQw4w9WgXcQ"))

    assert metadata.title == "Never Gonna"
    assert pool.stats()["available_keys"] == 1


def test_youtube_clients_are_not_shared_between_threads() -> None:
    built: list[FakeYouTube] = []

    def factory(key: str) -> FakeYouTube:
        built.append(FakeYouTube(VIDEO))
        return built[-1]

    adapter = YouTubeAdapter(CredentialPool(["k1"], platform="YOUTUBE"), client_factory=factory)
    per_thread: dict[str, list] = {}

    def worker(name: str) -> None:
        per_thread[name] = [adapter._client("k1"), adapter._client("k1")]

    threads = [threading.Thread(target=worker, args=(name,)) for name in ("a", "b")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(built) == 2
    assert per_thread["a"][0] is per_thread["a"][1]
    assert per_thread["a"][0] is not per_thread["b"][0]


def test_youtube_empty_items_is_not_found() -> None:
    adapter = YouTubeAdapter(CredentialPool(["k1"]), client_factory=lambda key: FakeYouTube({"items": []}))

    with pytest.raises(UpstreamNotFound):
        asyncio.run(adapter.resolve("missing123"))


def test_youtube_server_error_is_transient() -> None:
    adapter = YouTubeAdapter(CredentialPool(["k1"]), client_factory=lambda key: FakeYouTube(_http_error(500, "backendError")))

    with pytest.raises(TransientUpstreamError):
        asyncio.run(adapter.resolve("abcdef123"))


def test_youtube_without_keys_is_configuration_missing() -> None:
    adapter = YouTubeAdapter(CredentialPool([]), client_factory=lambda key: FakeYouTube(VIDEO))

    with pytest.raises(ConfigurationMissing):
        asyncio.run(adapter.resolve("abcdef123"))
