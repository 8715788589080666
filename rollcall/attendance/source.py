"""Remote attendance source clients used by the import pipeline."""

from __future__ import annotations

import dataclasses
import typing as typ

import httpx

from .errors import (
    AttendanceFetchError,
    AttendanceSourceConfigError,
    MalformedPayloadError,
)

if typ.TYPE_CHECKING:
    from .config import ImportConfig

_HTTP_ERROR_STATUS_THRESHOLD = 400

# Remote exports are regenerated in place; never accept a cached copy.
_NO_CACHE_HEADERS: typ.Final = {
    "Accept": "application/json",
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}


@dataclasses.dataclass(frozen=True, slots=True)
class RemotePayloads:
    """Decoded JSON documents fetched for one import run."""

    attendance: object
    roster: object = None


class AttendanceSource(typ.Protocol):
    """Interface for fetching the raw documents of one import run."""

    @property
    def label(self) -> str:
        """Return the label recorded on run outcomes."""
        ...

    async def fetch(self) -> RemotePayloads:
        """Fetch attendance and, when configured, roster documents."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class HttpSourceConfig:
    """Location and timeout of the remote JSON documents."""

    attendance_url: str | None
    roster_url: str | None = None
    timeout_s: float = 20.0
    label: str = "remote"
    user_agent: str = "rollcall/0.1"

    @classmethod
    def from_import_config(cls, config: ImportConfig) -> HttpSourceConfig:
        """Build a source configuration from the import settings."""
        return cls(
            attendance_url=config.attendance_url,
            roster_url=config.roster_url,
            timeout_s=config.fetch_timeout_s,
            label=config.source_label,
        )


class HttpAttendanceSource:
    """Fetch attendance JSON over HTTP with ``httpx``."""

    def __init__(
        self,
        config: HttpSourceConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the source; an owned client is created when none is given."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={**_NO_CACHE_HEADERS, "User-Agent": config.user_agent},
        )

    @property
    def label(self) -> str:
        """Return the configured source label."""
        return self._config.label

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self) -> RemotePayloads:
        """Fetch the attendance document and the optional roster document.

        Raises
        ------
        AttendanceSourceConfigError
            If no attendance URL is configured.
        AttendanceFetchError
            If either request fails or returns a non-2xx status.
        MalformedPayloadError
            If a response body is not valid JSON.

        """
        attendance_url = (self._config.attendance_url or "").strip()
        if not attendance_url:
            raise AttendanceSourceConfigError.missing_attendance_url()

        attendance = await self._get_json(attendance_url)
        roster: object = None
        roster_url = (self._config.roster_url or "").strip()
        if roster_url:
            roster = await self._get_json(roster_url)
        return RemotePayloads(attendance=attendance, roster=roster)

    async def _get_json(self, url: str) -> object:
        try:
            response = await self._client.get(url, headers=_NO_CACHE_HEADERS)
        except httpx.HTTPError as exc:
            raise AttendanceFetchError.transport_error(url, exc) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise AttendanceFetchError.http_error(url, response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedPayloadError.invalid_json(url) from exc
