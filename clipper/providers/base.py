"""Abstract base class for video providers."""

from abc import ABC, abstractmethod
from typing import Optional

from clipper.models.video import VideoInfo


class VideoProvider(ABC):
    """Abstract base class for video metadata providers."""

    @abstractmethod
    def validate_url(self, url: str) -> bool:
        """
        Validate if URL belongs to this provider.

        Args:
            url: Video URL or bare video ID

        Returns:
            True if URL is valid for this provider, False otherwise
        """
        pass

    @abstractmethod
    def extract_video_id(self, url: str) -> Optional[str]:
        """
        Extract the provider's video ID from a URL.

        Args:
            url: Video URL or bare video ID

        Returns:
            Video ID if found, None otherwise
        """
        pass

    @abstractmethod
    def canonical_url(self, video_id: str) -> str:
        """
        Build the provider's canonical watch URL for a video ID.

        Downloaders are given this URL instead of the user's input.
        """
        pass

    @abstractmethod
    async def get_info(self, url: str) -> VideoInfo:
        """
        Extract video metadata together with every advertised stream variant.

        Args:
            url: Video URL or bare video ID

        Returns:
            VideoInfo with ``variants`` populated

        Raises:
            InvalidURLError: If URL is invalid
            VideoUnavailableError: If video is not accessible
            ProcessFailedError: If metadata extraction fails
        """
        pass
