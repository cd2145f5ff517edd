"""Tests for logging helpers."""

from adapter_bridge.utils.logging import sanitize_payload, truncate_payload


class TestSanitizePayload:
    def test_redacts_nested_secrets(self):
        payload = {"name": "x", "auth": {"api_token": "abc"}, "items": [{"password": "p"}]}

        sanitized = sanitize_payload(payload)

        assert sanitized == {
            "name": "x",
            "auth": {"api_token": "[REDACTED]"},
            "items": [{"password": "[REDACTED]"}],
        }
        assert payload["auth"]["api_token"] == "abc"

    def test_depth_limit(self):
        assert sanitize_payload({"a": {"b": 1}}, max_depth=1) == {"a": "[MAX_DEPTH_EXCEEDED]"}


def test_truncate_payload():
    truncated = truncate_payload({"data": "x" * 100}, max_size=20)

    assert truncated.startswith('{\n  "data"')
    assert "TRUNCATED" in truncated
