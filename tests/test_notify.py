"""Tests for webhook notification."""

from unittest.mock import MagicMock, patch

import requests

from gateway_sync.notify import notify_webhook


class TestNotifyWebhook:
    def test_no_url(self):
        with patch("gateway_sync.notify.requests.post") as post:
            assert notify_webhook(None, "done") is False
        post.assert_not_called()

    def test_posts_message(self):
        with patch("gateway_sync.notify.requests.post") as post:
            post.return_value = MagicMock(status_code=204)
            assert notify_webhook("https://hooks.example/abc", "done") is True

        post.assert_called_once()
        args, kwargs = post.call_args
        assert args == ("https://hooks.example/abc",)
        assert kwargs["json"] == {"content": "done"}

    def test_failure_is_swallowed(self):
        with patch("gateway_sync.notify.requests.post",
                   side_effect=requests.exceptions.ConnectionError("down")):
            assert notify_webhook("https://hooks.example/abc", "done") is False

    def test_http_error_is_swallowed(self):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("500")
        with patch("gateway_sync.notify.requests.post", return_value=response):
            assert notify_webhook("https://hooks.example/abc", "done") is False
