import asyncio
import logging

import pytest

from clipnote.errors import ChannelNotLive, ConfigurationMissing, UnsupportedVideoUrl, UpstreamNotFound, UserInputError
from clipnote.metadata.models import Platform, ResolvedMetadata
from clipnote.metadata.resolver import MetadataResolver
from tests.fakes import FakeAdapter


def _resolver(**adapters: FakeAdapter) -> MetadataResolver:
    return MetadataResolver({Platform[name.upper()]: adapter for name, adapter in adapters.items()})


def test_unknown_url_is_rejected_without_adapter_calls() -> None:
    youtube = FakeAdapter(Platform.YOUTUBE)
    chzzk = FakeAdapter(Platform.CHZZK)
    resolver = _resolver(youtube=youtube, chzzk=chzzk)

    with pytest.raises(UnsupportedVideoUrl) as excinfo:
        asyncio.run(resolver.resolve("definitely not a video"))

    assert isinstance(excinfo.value, UserInputError)
    assert "Supported platforms" in str(excinfo.value)
    assert youtube.calls == [] and chzzk.calls == []


def test_dispatches_to_platform_adapter() -> None:
    twitch = FakeAdapter(Platform.TWITCH, {"123": ResolvedMetadata(title="VOD")})

    metadata = asyncio.run(_resolver(twitch=twitch).resolve("https://www.twitch.tv/videos/123"))

    assert metadata.title == "VOD"
    assert twitch.calls == [("123", False)]


def test_live_reference_that_is_not_open_raises_channel_not_live() -> None:
    chzzk = FakeAdapter(Platform.CHZZK, {"chan": ResolvedMetadata(title="x", live_status="CLOSE")})

    with pytest.raises(ChannelNotLive) as excinfo:
        asyncio.run(_resolver(chzzk=chzzk).resolve("https://chzzk.naver.com/live/chan"))

    assert str(excinfo.value) != str(UpstreamNotFound("CHZZK", "chan"))
    assert chzzk.calls == [("chan", True)]


def test_missing_adapter_is_configuration_missing() -> None:
    with pytest.raises(ConfigurationMissing):
        asyncio.run(_resolver().resolve("https://youtu.be/dQw4w9WgXcQ"))


def test_configuration_missing_is_logged_once_per_platform(caplog) -> None:
    youtube = FakeAdapter(
        Platform.YOUTUBE,
        {"dQw4w9WgXcQ": [ConfigurationMissing("YOUTUBE", "no keys"), ConfigurationMissing("YOUTUBE", "no keys")]},
    )
    resolver = _resolver(youtube=youtube)

    with caplog.at_level(logging.WARNING, logger="clipnote.metadata.resolver"):
        for _ in range(2):
            with pytest.raises(ConfigurationMissing):
                asyncio.run(resolver.resolve("https://youtu.be/dQw4w9WgXcQ"))

    warnings = [r for r in caplog.records if getattr(r, "event", None) == "metadata.configuration_missing"]
    assert len(warnings) == 1
