"""HTTP client for fetching the kiosk playlist."""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .. import __version__
from ..config.settings import KioskSettings

logger = logging.getLogger(__name__)

PLAYLIST_PATH = "/get_all_apps_for_tauri"


class PlaylistError(Exception):
    """Base exception for playlist errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PlaylistFetchError(PlaylistError):
    """The playlist could not be fetched or understood. Recoverable."""


class PlaylistEntry(BaseModel):
    """One URL shown on the kiosk and how long it stays on screen."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    target: str = Field(alias="url", min_length=1, description="URL to display")
    dwell_seconds: int = Field(
        alias="on_screen_duration_seconds", ge=0, description="Seconds to keep it on screen"
    )


class PlaylistResponse(BaseModel):
    """Envelope returned by the playlist service."""

    apps: list[PlaylistEntry] = Field(default_factory=list)


class PlaylistClient:
    """Async HTTP client for the playlist service."""

    def __init__(self, settings: KioskSettings, token: str):
        """Initialize playlist client.

        Args:
            settings: Kiosk settings with the service URL and timeouts
            token: TV login token identifying this appliance
        """
        self.settings = settings
        self.token = token
        self.client: Optional[httpx.AsyncClient] = None

        logger.debug("Playlist client initialized")

    async def __aenter__(self) -> "PlaylistClient":
        """Async context manager entry."""
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    @property
    def url(self) -> str:
        return f"{self.settings.api_base_url.rstrip('/')}{PLAYLIST_PATH}"

    async def _ensure_client(self) -> None:
        """Ensure HTTP client exists."""
        if self.client is None or self.client.is_closed:
            timeout = httpx.Timeout(
                connect=10.0, read=self.settings.request_timeout, write=10.0, pool=30.0
            )
            self.client = httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                headers={
                    "User-Agent": f"RCTV/{__version__}",
                    "Accept": "application/json",
                    "Cache-Control": "no-cache",
                },
            )

    async def close(self) -> None:
        """Close HTTP client."""
        if self.client and not self.client.is_closed:
            await self.client.aclose()

    async def fetch(self) -> list[PlaylistEntry]:
        """Fetch the current playlist.

        Returns:
            Playlist entries in display order (possibly empty)

        Raises:
            PlaylistFetchError: On network errors, non-2xx status, or malformed data
        """
        await self._ensure_client()
        assert self.client is not None

        try:
            response = await self.client.get(self.url, params={"tv_login_token": self.token})
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            raise PlaylistFetchError(f"Playlist request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise PlaylistFetchError(
                f"Playlist service returned HTTP {status}: {e.response.reason_phrase}", status
            ) from e
        except httpx.HTTPError as e:
            raise PlaylistFetchError(f"Network error fetching playlist: {e}") from e
        except ValueError as e:
            raise PlaylistFetchError(f"Playlist response is not valid JSON: {e}") from e

        try:
            playlist = PlaylistResponse.model_validate(payload)
        except ValidationError as e:
            raise PlaylistFetchError(f"Playlist response has unexpected shape: {e}") from e

        logger.debug(f"Fetched {len(playlist.apps)} playlist entries")
        return playlist.apps
