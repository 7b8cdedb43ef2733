# cabinetry/services/geocoding.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional
from urllib.parse import quote as urlquote

import httpx

from cabinetry.core.errors import ExternalServiceError
from cabinetry.core.logging_config import logger
from cabinetry.core.settings import settings
from cabinetry.infra.retry import retry_on
from cabinetry.observability.metrics import geocode_counter


@dataclass
class GeocodeResult:
    postcode: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    place_name: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.latitude is not None and self.longitude is not None


class _RetryableStatus(Exception):
    def __init__(self, status_code: int):
        super().__init__(f"geocoder returned {status_code}")
        self.status_code = status_code


def _is_retryable(e: Exception) -> bool:
    return isinstance(e, (httpx.TransportError, _RetryableStatus))


class GeocodingClient:
    """Mapbox Places lookups for Australian postcodes."""

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        country: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        retry_attempts: int = 3,
        retry_base: float = 0.2,
    ):
        self.token = token if token is not None else settings.MAPBOX_TOKEN
        self.base_url = (base_url or settings.MAPBOX_BASE_URL).rstrip("/")
        self.country = (country or settings.GEOCODE_COUNTRY).lower()
        self.client = client or httpx.Client(timeout=10.0)
        self.retry_attempts = retry_attempts
        self.retry_base = retry_base

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    def _query(self, postcode: str, suburb: Optional[str], state: Optional[str]) -> str:
        parts = [p for p in (suburb, state, postcode) if p]
        parts.append("Australia")
        return " ".join(parts)

    def _get(self, url: str, params: dict) -> httpx.Response:
        resp = self.client.get(url, params=params)
        if resp.status_code == 429 or resp.status_code >= 500:
            raise _RetryableStatus(resp.status_code)
        return resp

    def geocode_postcode(
        self, postcode: str, suburb: Optional[str] = None, state: Optional[str] = None
    ) -> GeocodeResult:
        if not self.enabled:
            raise ExternalServiceError("Geocoding is not configured (MAPBOX_TOKEN missing)")

        url = f"{self.base_url}/{urlquote(self._query(postcode, suburb, state))}.json"
        params = {
            "access_token": self.token,
            "country": self.country,
            "types": "postcode,locality,place",
            "limit": 1,
        }
        log = logger.bind(postcode=postcode)
        try:
            resp = retry_on(
                lambda: self._get(url, params),
                attempts=self.retry_attempts,
                base=self.retry_base,
                is_retryable=_is_retryable,
            )
        except (httpx.HTTPError, _RetryableStatus) as e:
            geocode_counter.labels(result="error").inc()
            log.warning("geocode_failed", error=str(e))
            raise ExternalServiceError(f"Geocoding failed for {postcode}: {e}") from e

        if resp.status_code != 200:
            geocode_counter.labels(result="error").inc()
            log.warning("geocode_rejected", status_code=resp.status_code)
            raise ExternalServiceError(
                f"Geocoding rejected for {postcode}", meta={"status_code": resp.status_code}
            )

        features = resp.json().get("features") or []
        if not features:
            geocode_counter.labels(result="not_found").inc()
            return GeocodeResult(postcode=postcode, error="not_found")

        lon, lat = features[0]["center"][:2]
        geocode_counter.labels(result="success").inc()
        return GeocodeResult(
            postcode=postcode,
            latitude=float(lat),
            longitude=float(lon),
            place_name=features[0].get("place_name"),
        )

    def geocode_many(self, rows: Iterable[tuple[str, Optional[str], Optional[str]]],
                     limit: Optional[int] = None) -> List[GeocodeResult]:
        """Batch lookup; one failing postcode never aborts the batch."""
        limit = limit or settings.GEOCODE_BATCH_LIMIT
        results: List[GeocodeResult] = []
        for postcode, suburb, state in list(rows)[:limit]:
            try:
                results.append(self.geocode_postcode(postcode, suburb, state))
            except ExternalServiceError as e:
                results.append(GeocodeResult(postcode=postcode, error=e.message))
        return results
