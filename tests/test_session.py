import pytest
from zulipbridge.domain.models import Session
from zulipbridge.zulip.errors import AuthenticationError, BackoffError, NetworkError
from zulipbridge.zulip.session import SessionManager

def manager(api, **kw):
    return SessionManager(
        api,
        Session(email="bot@x", api_key="k", base_url="https://x/api/v1/"),
        account="zulip.test",
        retry_min_wait=0,
        retry_max_wait=0,
        **kw,
    )

@pytest.mark.asyncio
async def test_connect_registers_queue(fake_api):
    fake_api.registrations = [("abc", 12)]
    sm = manager(fake_api)
    s = await sm.connect()
    assert s.queue_id == "abc" and s.last_event_id == 12
    assert sm.queue_id == "abc"

@pytest.mark.asyncio
async def test_connect_auth_failure_is_fatal(fake_api):
    fake_api.registrations = [AuthenticationError("bad api key", status=401)]
    sm = manager(fake_api)
    with pytest.raises(AuthenticationError):
        await sm.connect()
    assert fake_api.calls == ["register"]
    assert sm.queue_id is None

@pytest.mark.asyncio
async def test_connect_retries_transient_errors(fake_api):
    fake_api.registrations = [NetworkError("refused"), BackoffError("429"), ("q9", 3)]
    sm = manager(fake_api)
    await sm.connect()
    assert fake_api.calls == ["register"] * 3
    assert sm.queue_id == "q9"

@pytest.mark.asyncio
async def test_connect_gives_up_after_retries(fake_api):
    fake_api.registrations = [NetworkError("refused")] * 2
    sm = manager(fake_api, connect_retries=2)
    with pytest.raises(NetworkError):
        await sm.connect()

@pytest.mark.asyncio
async def test_recover_replaces_queue_and_cursor(fake_api):
    fake_api.registrations = [("q1", 50), ("q2", 7)]
    sm = manager(fake_api)
    await sm.connect()
    sm.advance(55)
    await sm.recover()
    assert sm.queue_id == "q2"
    assert sm.last_event_id == 7

@pytest.mark.asyncio
async def test_recover_failure_drops_old_handle(fake_api):
    fake_api.registrations = [("q1", 0), NetworkError("down")]
    sm = manager(fake_api)
    await sm.connect()
    with pytest.raises(NetworkError):
        await sm.recover()
    assert sm.queue_id is None

@pytest.mark.asyncio
async def test_advance_is_monotonic(fake_api):
    sm = manager(fake_api)
    await sm.connect()
    sm.advance(5)
    sm.advance(3)
    assert sm.last_event_id == 5
    sm.advance(6)
    assert sm.last_event_id == 6
