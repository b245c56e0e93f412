"""
YouTube Data API client for fetching video statistics.
"""

from typing import Optional, Dict, Any
from googleapiclient.discovery import build


class YouTubeClient:
    """Client for interacting with YouTube Data API v3."""

    def __init__(self, api_key: Optional[str] = None, credentials: Any = None):
        """
        Initialize YouTube client.

        Args:
            api_key: API key for public data access
            credentials: OAuth2 credentials for authenticated access
        """
        if credentials:
            self.youtube = build("youtube", "v3", credentials=credentials, cache_discovery=False)
        elif api_key:
            self.youtube = build("youtube", "v3", developerKey=api_key, cache_discovery=False)
        else:
            raise ValueError("Either api_key or credentials must be provided")

    def get_video_statistics(self, video_id: str) -> Optional[Dict[str, Any]]:
        """
        Get public statistics for a single video.

        Returns:
            Dict with: id, title, published_at, view_count, like_count,
                       comment_count; None when the video does not exist.

        Raises:
            googleapiclient.errors.HttpError on API failures (quota, auth, 5xx).
        """
        response = self.youtube.videos().list(
            part="statistics,snippet",
            id=video_id,
        ).execute()

        items = response.get("items") or []
        if not items:
            return None

        item = items[0]
        snippet = item.get("snippet", {})
        stats = item.get("statistics", {})
        return {
            "id": item.get("id", video_id),
            "title": snippet.get("title", ""),
            "published_at": snippet.get("publishedAt", ""),
            "view_count": int(stats.get("viewCount", 0) or 0),
            "like_count": int(stats.get("likeCount", 0) or 0),
            "comment_count": int(stats.get("commentCount", 0) or 0),
        }


def create_youtube_client_with_api_key(api_key: str) -> YouTubeClient:
    """Create a YouTube client using an API key."""
    return YouTubeClient(api_key=api_key)
