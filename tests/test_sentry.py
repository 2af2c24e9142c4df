"""
Tests for Sentry event filtering.
"""

from fastapi import HTTPException

from healthvibe.integrations.sentry import _filter_events, _filter_transactions, init_sentry


class TestFilters:
    def test_expected_http_errors_dropped(self):
        exc = HTTPException(status_code=401, detail="Please authenticate.")

        assert _filter_events({}, {"exc_info": (HTTPException, exc, None)}) is None

    def test_server_errors_kept_and_scrubbed(self):
        event = {
            "request": {
                "headers": {"Authorization": "Bearer abc", "Cookie": "authToken=abc", "Accept": "*/*"},
                "data": {"email": "jo@x.io", "password": "secret1"},
            }
        }

        result = _filter_events(event, {"exc_info": (RuntimeError, RuntimeError("boom"), None)})

        assert result["request"]["headers"]["Authorization"] == "[Filtered]"
        assert result["request"]["headers"]["Cookie"] == "[Filtered]"
        assert result["request"]["headers"]["Accept"] == "*/*"
        assert result["request"]["data"] == {"email": "jo@x.io", "password": "[Filtered]"}

    def test_health_transactions_dropped(self):
        assert _filter_transactions({"transaction": "/health"}, {}) is None
        assert _filter_transactions({"transaction": "/login"}, {}) is not None

    def test_disabled_without_dsn(self, settings):
        assert init_sentry(settings) is False
