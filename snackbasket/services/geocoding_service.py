from __future__ import annotations

import json
import logging
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from snackbasket.config import settings
from snackbasket.services.errors import BackendFailure

logger = logging.getLogger(__name__)


def coordinates_label(latitude: float, longitude: float) -> str:
    return f'Location ({latitude:.6f}, {longitude:.6f})'


def _geocoder_get(path: str, params: dict) -> dict:
    req = Request(
        url=f"{settings.geocoder_base_url.rstrip('/')}{path}?{urlencode(params)}",
        headers={
            'Accept': 'application/json',
            'User-Agent': settings.geocoder_user_agent,
        },
        method='GET',
    )
    try:
        with urlopen(req, timeout=settings.geocoder_timeout_seconds) as response:
            parsed = json.loads(response.read().decode('utf-8'))
    except HTTPError as exc:
        body = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
        raise BackendFailure(f'Geocoder error {exc.code}: {body}') from exc
    except URLError as exc:
        raise BackendFailure(f'Geocoder network error: {exc.reason}') from exc
    except ValueError as exc:
        raise BackendFailure('Geocoder returned invalid JSON') from exc

    if not isinstance(parsed, dict):
        raise BackendFailure('Geocoder returned an unexpected payload')
    if parsed.get('error'):
        raise BackendFailure(f"Geocoder returned error: {parsed['error']}")
    return parsed


def reverse_geocode(latitude: float, longitude: float) -> str:
    """Resolve coordinates to a display address, falling back to the raw coordinates."""
    try:
        payload = _geocoder_get(
            '/reverse',
            {'format': 'json', 'lat': latitude, 'lon': longitude, 'zoom': 18, 'addressdetails': 1},
        )
    except BackendFailure as exc:
        logger.warning('Reverse geocoding failed for (%s, %s): %s', latitude, longitude, exc)
        return coordinates_label(latitude, longitude)

    display_name = (payload.get('display_name') or '').strip()
    return display_name or coordinates_label(latitude, longitude)
