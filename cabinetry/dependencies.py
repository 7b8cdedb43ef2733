from __future__ import annotations

from cabinetry.services.geocoding import GeocodingClient
from cabinetry.services.storage import Storage, get_storage


def get_storage_service() -> Storage:
    """Storage backend (local or S3) for request handlers."""
    return get_storage()


def get_geocoder() -> GeocodingClient:
    return GeocodingClient()
