from __future__ import annotations

import io
import json
import unittest
from unittest.mock import patch
from urllib.error import URLError

from snackbasket.services.geocoding_service import coordinates_label, reverse_geocode


class _FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
        return False


class GeocodingServiceTests(unittest.TestCase):
    @patch('snackbasket.services.geocoding_service.urlopen')
    def test_returns_display_name(self, urlopen_mock) -> None:
        urlopen_mock.return_value = _FakeResponse(json.dumps({'display_name': 'MG Road, Bengaluru'}).encode())

        self.assertEqual(reverse_geocode(12.9756, 77.605), 'MG Road, Bengaluru')
        request = urlopen_mock.call_args.args[0]
        self.assertIn('/reverse?', request.full_url)
        self.assertIn('lat=12.9756', request.full_url)

    @patch('snackbasket.services.geocoding_service.urlopen')
    def test_network_failure_falls_back_to_coordinates(self, urlopen_mock) -> None:
        urlopen_mock.side_effect = URLError('offline')

        self.assertEqual(reverse_geocode(12.5, 77.25), 'Location (12.500000, 77.250000)')

    @patch('snackbasket.services.geocoding_service.urlopen')
    def test_error_payload_falls_back_to_coordinates(self, urlopen_mock) -> None:
        urlopen_mock.return_value = _FakeResponse(json.dumps({'error': 'Unable to geocode'}).encode())

        self.assertEqual(reverse_geocode(1, 2), coordinates_label(1, 2))


if __name__ == '__main__':
    unittest.main()
