import pytest
from fastapi.testclient import TestClient
from zulipbridge.server.app import create_app
from zulipbridge.zulip.adapter import ZulipChannel

def test_healthz_and_metrics(settings, fake_api):
    fake_api.block_when_idle = True
    adapter = ZulipChannel(settings, api=fake_api)
    app = create_app(settings, adapter=adapter)

    with TestClient(app) as client:
        res = client.get(settings.health_path)
        assert res.status_code == 200
        body = res.json()
        assert body["ok"] is True
        assert body["status"] == "ready"
        assert body["account"] == "zulip.test"
        assert body["queue_id"] == "q1"

        res = client.get(settings.metrics_path)
        assert res.status_code == 200
        assert "zb_last_event_id" in res.text

    assert adapter.status.value == "offline"

def test_adapter_is_registered_only_while_running(settings, fake_api):
    fake_api.block_when_idle = True
    adapter = ZulipChannel(settings, api=fake_api)
    app = create_app(settings, adapter=adapter)
    bus = app.state.bus

    with pytest.raises(KeyError):
        bus.adapter("zulip.test")
    with TestClient(app):
        assert bus.adapter("zulip.test") is adapter
    with pytest.raises(KeyError):
        bus.adapter("zulip.test")
