import pytest

from clipnote.metadata.classifier import canonical_url, classify_url, embed_url
from clipnote.metadata.models import Platform, VideoReference


@pytest.mark.parametrize(
    "url, video_id",
    [
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://youtu.be/dQw4w9WgXcQ?t=42", "dQw4w9WgXcQ"),
        ("https://m.youtube.com/shorts/abcDEF12345", "abcDEF12345"),
        ("youtube.com/embed/abcDEF12345", "abcDEF12345"),
        ("https://www.youtube-nocookie.com/embed/abcDEF12345", "abcDEF12345"),
    ],
)
def test_youtube_urls(url: str, video_id: str) -> None:
    assert classify_url(url) == VideoReference(platform=Platform.YOUTUBE, resource_id=video_id)


def test_chzzk_vod_and_live() -> None:
    vod = classify_url("https://chzzk.naver.com/video/1234567")
    live = classify_url("https://chzzk.naver.com/live/abcdef0123456789")

    assert (vod.platform, vod.resource_id, vod.is_live) == (Platform.CHZZK, "1234567", False)
    assert (live.platform, live.resource_id, live.is_live) == (Platform.CHZZK, "abcdef0123456789", True)


def test_twitch_vod_requires_numeric_id() -> None:
    assert classify_url("https://www.twitch.tv/videos/2012345678").resource_id == "2012345678"
    assert classify_url("https://www.twitch.tv/videos/latest").platform is Platform.UNKNOWN


@pytest.mark.parametrize(
    "value",
    ["", "   ", "not a url at all", "https://vimeo.com/12345", "ftp://youtube.com/watch?v=abcdefgh", None, 17,
     "https://www.youtube.com/watch", "https://chzzk.naver.com/"],
)
def test_everything_else_is_unknown(value) -> None:
    reference = classify_url(value)

    assert reference.platform is Platform.UNKNOWN
    assert not reference.is_known


def test_canonical_and_embed_urls() -> None:
    live = VideoReference(platform=Platform.CHZZK, resource_id="chan", is_live=True)
    twitch = VideoReference(platform=Platform.TWITCH, resource_id="99")

    assert canonical_url(live) == "https://chzzk.naver.com/live/chan"
    assert embed_url(twitch, parent="clipnote.app") == "https://player.twitch.tv/?video=99&parent=clipnote.app"
    assert canonical_url(VideoReference.unknown()) == ""
