import json

import httpx
import pytest

from reply_tracker.notify.slack import SlackWebhookNotifier

WEBHOOK = "https://hooks.slack.example/services/T000/B000/XXXX"


async def test_posts_text():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, text="ok")

    notifier = SlackWebhookNotifier(WEBHOOK, transport=httpx.MockTransport(handler))
    result = await notifier.notify("line-test:U1", "*New message*")
    await notifier.aclose()

    assert result.ok
    (request,) = requests
    assert str(request.url) == WEBHOOK
    assert json.loads(request.content) == {"text": "*New message*"}


async def test_error_status_is_failure():
    notifier = SlackWebhookNotifier(
        WEBHOOK, transport=httpx.MockTransport(lambda r: httpx.Response(404, text="no_service"))
    )
    result = await notifier.notify(None, "hello")
    await notifier.aclose()
    assert not result.ok
    assert "404" in result.error


async def test_transport_error_is_failure():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    notifier = SlackWebhookNotifier(WEBHOOK, transport=httpx.MockTransport(handler))
    result = await notifier.notify(None, "hello")
    await notifier.aclose()
    assert not result.ok
    assert "ReadTimeout" in result.error


def test_empty_url_rejected():
    with pytest.raises(ValueError):
        SlackWebhookNotifier("")
