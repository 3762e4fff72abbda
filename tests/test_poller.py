from __future__ import annotations

import httpx
import pytest

from conftest import API_KEY, BASE_URL, FakeRemote, SleepRecorder, corrupt_gzip, reply
from phantom.dialects import DialectState
from phantom.errors import JobFailed, PollTimeout
from phantom.poller import JobStatus, Poller, PollPolicy, classify_status
from phantom.transport import RemoteTransport

FETCH_STATUS = "/api/v2/containers/fetch-status"
FETCH = "/api/v2/containers/fetch"
V1_STATUS = "/api/v1/container/c-1/status"


def _poller(fake: FakeRemote, sleeper: SleepRecorder, policy: PollPolicy | None = None, state: DialectState | None = None, clock=None) -> Poller:
    transport = RemoteTransport(BASE_URL, API_KEY, retry_attempts=1, http_client=fake.http_client())
    kwargs = {"clock": clock} if clock else {}
    return Poller(
        transport,
        state or DialectState("status"),
        policy=policy or PollPolicy(interval_seconds=5.0),
        sleep=sleeper,
        **kwargs,
    )


def test_classify_status():
    assert classify_status("finished") is JobStatus.FINISHED
    assert classify_status("done") is JobStatus.FINISHED
    assert classify_status(" Failed ") is JobStatus.FAILED
    assert classify_status("running") is JobStatus.RUNNING
    assert classify_status("queued") is JobStatus.RUNNING
    assert classify_status(None) is JobStatus.RUNNING


@pytest.mark.asyncio
async def test_three_running_then_finished_waits_exactly_three_times(fake_remote, sleeper):
    fake_remote.on(
        "GET",
        FETCH_STATUS,
        {"status": "running"},
        {"status": "running"},
        {"status": "running"},
        {"status": "finished"},
    )
    await _poller(fake_remote, sleeper).await_completion("c-1")
    assert sleeper.calls == [5.0, 5.0, 5.0]
    assert len(fake_remote.calls) == 4
    assert all(c.url.params["id"] == "c-1" for c in fake_remote.calls)


@pytest.mark.asyncio
async def test_failed_on_first_poll_raises_without_waiting(fake_remote, sleeper):
    fake_remote.on("GET", FETCH_STATUS, {"status": "failed", "exitCode": 1})
    with pytest.raises(JobFailed) as ei:
        await _poller(fake_remote, sleeper).await_completion("c-1")
    assert sleeper.calls == []
    assert ei.value.container_id == "c-1"
    assert '"exitCode"' in (ei.value.raw_response or "")


@pytest.mark.asyncio
async def test_done_is_terminal_success(fake_remote, sleeper):
    fake_remote.on("GET", FETCH_STATUS, {"status": "done"})
    await _poller(fake_remote, sleeper).await_completion("c-1")
    assert sleeper.calls == []


@pytest.mark.asyncio
async def test_status_dialect_probe_falls_back_and_caches(fake_remote, sleeper):
    fake_remote.on("GET", V1_STATUS, {"status": "success", "data": {"status": "running"}}, {"status": "success", "data": {"status": "finished"}})
    state = DialectState("status")
    await _poller(fake_remote, sleeper, state=state).await_completion("c-1")
    assert state.confirmed == "v1-envelope"
    # first poll probed all three, second used the confirmed dialect only
    assert fake_remote.paths() == [FETCH_STATUS, FETCH, V1_STATUS, V1_STATUS]
    assert sleeper.calls == [5.0]


@pytest.mark.asyncio
async def test_transport_and_http_errors_are_transient(sleeper):
    calls = {"n": 0}

    def _status(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(200, json={"status": "running"})
        if calls["n"] == 2:
            raise httpx.ReadTimeout("slow", request=request)
        if calls["n"] == 3:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(200, json={"status": "finished"})

    fake = FakeRemote()
    fake.on("GET", FETCH_STATUS, _status)
    state = DialectState("status")
    await _poller(fake, sleeper, state=state).await_completion("c-1")
    assert sleeper.calls == [5.0, 5.0, 5.0]
    assert state.confirmed == "v2-fetch-status"


@pytest.mark.asyncio
async def test_unreadable_status_everywhere_keeps_polling(fake_remote, sleeper):
    fake_remote.on("GET", FETCH_STATUS, reply({"oops": True}), reply({"status": "finished"}))
    await _poller(fake_remote, sleeper).await_completion("c-1")
    assert sleeper.calls == [5.0]


@pytest.mark.asyncio
async def test_max_attempts_bound_raises_poll_timeout(fake_remote, sleeper):
    fake_remote.on("GET", FETCH_STATUS, {"status": "running"})
    policy = PollPolicy(interval_seconds=1.0, max_attempts=3)
    with pytest.raises(PollTimeout) as ei:
        await _poller(fake_remote, sleeper, policy=policy).await_completion("c-1")
    assert ei.value.attempts == 3
    assert ei.value.last_status == "running"
    assert sleeper.calls == [1.0, 1.0]


@pytest.mark.asyncio
async def test_max_duration_bound_uses_clock(fake_remote, sleeper):
    fake_remote.on("GET", FETCH_STATUS, {"status": "running"})
    ticks = iter([0.0, 4.0, 8.0, 12.0, 16.0])
    policy = PollPolicy(interval_seconds=4.0, max_duration_seconds=10.0)
    with pytest.raises(PollTimeout):
        await _poller(fake_remote, sleeper, policy=policy, clock=lambda: next(ticks)).await_completion("c-1")
    assert len(sleeper.calls) == 2


def test_default_policy_is_unbounded():
    policy = PollPolicy()
    assert policy.unbounded
    assert policy.interval_seconds == 5.0
    assert not policy.exhausted(10_000, 1e9)


@pytest.mark.asyncio
async def test_undecodable_status_is_transient(fake_remote, sleeper):
    fake_remote.on("GET", FETCH_STATUS, corrupt_gzip, {"status": "finished"})
    state = DialectState("status")
    await _poller(fake_remote, sleeper, state=state).await_completion("c-1")
    assert sleeper.calls == [5.0]
    assert state.confirmed == "v2-fetch-status"
