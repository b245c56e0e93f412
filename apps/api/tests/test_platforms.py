import pytest

from services.platforms import (
    extract_youtube_video_id,
    fingerprint,
    normalize_url,
    resolve_platform,
)


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", "youtube"),
        ("https://youtu.be/dQw4w9WgXcQ", "youtube"),
        ("https://m.youtube.com/shorts/dQw4w9WgXcQ", "youtube"),
        ("HTTPS://WWW.YOUTUBE.COM/watch?v=dQw4w9WgXcQ", "youtube"),
        ("https://www.instagram.com/p/Cxyz123/", "instagram"),
        ("https://instagram.com/reel/Cxyz123", "instagram"),
        ("https://www.tiktok.com/@creator/video/7234567890123456789", "tiktok"),
        ("https://vm.tiktok.com/ZMabc123/", "tiktok"),
        ("https://example.com/video/1", "unknown"),
        ("https://notyoutube.company.com/watch", "unknown"),
        ("", "unknown"),
        ("   ", "unknown"),
    ],
)
def test_resolve_platform(url, expected):
    assert resolve_platform(url) == expected


def test_resolve_platform_never_raises_on_non_strings():
    assert resolve_platform(None) == "unknown"
    assert resolve_platform(42) == "unknown"


def test_normalize_url_drops_tracking_noise():
    a = normalize_url("https://www.youtube.com/watch?v=dQw4w9WgXcQ&utm_source=x#t=10")
    b = normalize_url("http://youtube.com/watch?feature=share&v=dQw4w9WgXcQ")
    assert a == b == "https://youtube.com/watch?v=dQw4w9WgXcQ"


def test_normalize_url_strips_trailing_slash_and_host_case():
    assert normalize_url("https://WWW.Instagram.com/p/Cxyz123/") == "https://instagram.com/p/Cxyz123"


def test_fingerprint_is_platform_scoped():
    url = "https://www.tiktok.com/@creator/video/1/"
    assert fingerprint("tiktok", url) == "tiktok:https://tiktok.com/@creator/video/1"
    assert fingerprint("tiktok", url) == fingerprint("tiktok", "https://tiktok.com/@creator/video/1?lang=en")


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://youtu.be/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://www.youtube.com/embed/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://www.youtube.com/shorts/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://www.youtube.com/channel/UC123", None),
    ],
)
def test_extract_youtube_video_id(url, expected):
    assert extract_youtube_video_id(url) == expected


def test_unbalanced_bracket_url_is_tagged_but_cannot_be_normalized():
    url = "https://[@youtube.com/watch?v=abc12345678"
    assert resolve_platform(url) == "youtube"
    with pytest.raises(ValueError):
        normalize_url(url)
