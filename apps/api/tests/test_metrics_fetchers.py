from unittest.mock import patch

import httpx
import pytest

from config import AnalyticsConfigurationError
from ingestion.apify import ApifyClient, ApifyRunTimeoutError
from services.fetchers import MetricsResult, compute_engagement_rate, get_metrics_fetcher
from services.fetchers.apify import InstagramMetricsFetcher, TikTokMetricsFetcher
from services.fetchers.base import BaseMetricsFetcher
from services.fetchers.youtube import YouTubeMetricsFetcher
from tests.conftest import FakeFetcher


YOUTUBE_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
INSTAGRAM_URL = "https://www.instagram.com/p/Cxyz123/"
TIKTOK_URL = "https://www.tiktok.com/@creator/video/7234567890123456789"


class _FakeYouTubeClient:
    def __init__(self, video):
        self.video = video
        self.requested = []

    def get_video_statistics(self, video_id):
        self.requested.append(video_id)
        if isinstance(self.video, Exception):
            raise self.video
        return self.video


def _apify_transport(statuses, items, *, start_status=201, recorder=None):
    polls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if recorder is not None:
            recorder.append(request)
        assert request.url.params.get("token") == "test-token"
        path = request.url.path
        if request.method == "POST" and path == "/v2/acts/actor-1/runs":
            if start_status >= 400:
                return httpx.Response(start_status, text="nope")
            return httpx.Response(start_status, json={"data": {"id": "run-1", "status": "READY"}})
        if request.method == "GET" and path == "/v2/actor-runs/run-1":
            status = statuses[min(polls["count"], len(statuses) - 1)]
            polls["count"] += 1
            return httpx.Response(200, json={"data": {"id": "run-1", "status": status}})
        if request.method == "GET" and path == "/v2/actor-runs/run-1/dataset/items":
            return httpx.Response(200, json=items)
        return httpx.Response(404, text="unexpected")

    return httpx.MockTransport(handler), polls


async def _no_sleep(_seconds):
    return None


def _apify_client(transport, *, max_poll_attempts=30):
    return ApifyClient(
        "test-token",
        base_url="https://api.apify.test",
        poll_interval_seconds=2,
        max_poll_attempts=max_poll_attempts,
        transport=transport,
        sleep=_no_sleep,
    )


def test_compute_engagement_rate_rounds_and_handles_zero_views():
    assert compute_engagement_rate(50, 1000) == 5.0
    assert compute_engagement_rate(1, 3) == 33.33
    assert compute_engagement_rate(10, 0) == 0.0


def test_failure_result_has_zero_counts_and_non_empty_error():
    result = MetricsResult.failure("")
    assert result.error
    assert (result.views, result.engagement, result.rate) == (0, 0, 0.0)
    assert not result.ok


@pytest.mark.asyncio
async def test_youtube_fetcher_maps_statistics():
    client = _FakeYouTubeClient(
        {"id": "dQw4w9WgXcQ", "title": "Launch", "view_count": 1000, "like_count": 40, "comment_count": 10}
    )
    fetcher = YouTubeMetricsFetcher(lambda: client)

    result = await fetcher.fetch(YOUTUBE_URL)

    assert client.requested == ["dQw4w9WgXcQ"]
    assert result.ok
    assert result.views == 1000
    assert result.engagement == 50
    assert result.rate == 5.0
    assert result.title == "Launch"


@pytest.mark.asyncio
async def test_youtube_fetcher_reports_invalid_url_and_missing_video():
    fetcher = YouTubeMetricsFetcher(lambda: _FakeYouTubeClient(None))

    invalid = await fetcher.fetch("https://www.youtube.com/channel/UC123")
    missing = await fetcher.fetch(YOUTUBE_URL)

    assert invalid.error == "Invalid YouTube URL"
    assert missing.error == "Video not found on YouTube"
    assert missing.views == 0


@pytest.mark.asyncio
async def test_youtube_fetcher_turns_client_errors_into_failures():
    fetcher = YouTubeMetricsFetcher(lambda: _FakeYouTubeClient(RuntimeError("quotaExceeded")))

    result = await fetcher.fetch(YOUTUBE_URL)

    assert result.error == "quotaExceeded"
    assert result.engagement == 0


@pytest.mark.asyncio
async def test_missing_youtube_key_propagates_as_configuration_error():
    with patch("config.settings.YOUTUBE_API_KEY", ""):
        fetcher = YouTubeMetricsFetcher()
        with pytest.raises(AnalyticsConfigurationError):
            await fetcher.fetch(YOUTUBE_URL)


@pytest.mark.asyncio
async def test_missing_apify_token_propagates_as_configuration_error():
    with patch("config.settings.APIFY_API_TOKEN", ""):
        fetcher = TikTokMetricsFetcher()
        with pytest.raises(AnalyticsConfigurationError):
            await fetcher.fetch(TIKTOK_URL)


@pytest.mark.asyncio
async def test_instagram_fetcher_runs_actor_and_maps_item():
    requests = []
    transport, polls = _apify_transport(
        ["RUNNING", "SUCCEEDED"],
        [{"videoViewCount": 2000, "likesCount": 150, "commentsCount": 50, "caption": "New drop"}],
        recorder=requests,
    )
    client = _apify_client(transport)
    fetcher = InstagramMetricsFetcher(lambda: client, actor_id="actor-1")

    result = await fetcher.fetch(INSTAGRAM_URL)

    assert result.ok
    assert result.views == 2000
    assert result.engagement == 200
    assert result.shares == 0
    assert result.rate == 10.0
    assert polls["count"] == 2
    start = requests[0]
    assert start.method == "POST"
    assert b'"resultsLimit":1' in start.content.replace(b" ", b"")


@pytest.mark.asyncio
async def test_tiktok_fetcher_falls_back_to_video_meta():
    transport, _ = _apify_transport(
        ["SUCCEEDED"],
        [{"videoMeta": {"playCount": 5000}, "diggCount": 300, "commentCount": 20, "shareCount": 30}],
    )
    fetcher = TikTokMetricsFetcher(lambda: _apify_client(transport), actor_id="actor-1")

    result = await fetcher.fetch(TIKTOK_URL)

    assert result.views == 5000
    assert result.engagement == 350
    assert result.rate == 7.0


@pytest.mark.asyncio
async def test_apify_empty_dataset_is_a_failure():
    transport, _ = _apify_transport(["SUCCEEDED"], [])
    fetcher = InstagramMetricsFetcher(lambda: _apify_client(transport), actor_id="actor-1")

    result = await fetcher.fetch(INSTAGRAM_URL)

    assert result.error == "No data found for the Instagram URL"


@pytest.mark.asyncio
async def test_apify_failed_run_status_is_a_failure():
    transport, _ = _apify_transport(["FAILED"], [])
    fetcher = TikTokMetricsFetcher(lambda: _apify_client(transport), actor_id="actor-1")

    result = await fetcher.fetch(TIKTOK_URL)

    assert result.error == "Actor run failed with status: FAILED"


@pytest.mark.asyncio
async def test_apify_rate_limit_is_a_failure():
    transport, _ = _apify_transport(["SUCCEEDED"], [], start_status=429)
    fetcher = TikTokMetricsFetcher(lambda: _apify_client(transport), actor_id="actor-1")

    result = await fetcher.fetch(TIKTOK_URL)

    assert result.error == "Apify rate limit exceeded"


@pytest.mark.asyncio
async def test_apify_polling_is_bounded():
    transport, polls = _apify_transport(["RUNNING"], [])
    client = _apify_client(transport, max_poll_attempts=3)

    with pytest.raises(ApifyRunTimeoutError):
        await client.run_actor("actor-1", {"postURLs": [TIKTOK_URL]})
    assert polls["count"] == 3


@pytest.mark.asyncio
async def test_base_fetcher_times_out_slow_calls():
    fetcher = FakeFetcher("youtube", delay=0.5, timeout_seconds=0.05)

    result = await fetcher.fetch(YOUTUBE_URL)

    assert result.error == "youtube fetch timed out after 0.05s"
    assert result.views == 0


@pytest.mark.asyncio
async def test_base_fetcher_rejects_malformed_results():
    class _BrokenFetcher(BaseMetricsFetcher):
        platform = "tiktok"

        async def _fetch_raw(self, url):
            return {"views": 10}

    result = await _BrokenFetcher(timeout_seconds=1).fetch(TIKTOK_URL)

    assert result.error == "Invalid response format"


def test_registry_returns_none_for_unknown_platform():
    fetchers = {"youtube": FakeFetcher("youtube")}
    assert get_metrics_fetcher("youtube", fetchers) is fetchers["youtube"]
    assert get_metrics_fetcher("unknown", fetchers) is None
