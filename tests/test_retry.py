"""Tests for retry_async."""
from __future__ import annotations

import pytest

from zulipbridge.core.retry import RateLimitError, TransientError, retry_async


class Flaky:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self, value):
        self.calls += 1
        r = self.outcomes.pop(0)
        if isinstance(r, Exception):
            raise r
        return f"{r}:{value}"


@pytest.mark.asyncio
async def test_retries_until_success():
    func = Flaky(TransientError("blip"), RateLimitError("slow"), "ok")
    assert await retry_async(func, "q", max_attempts=3, min_wait=0, max_wait=0) == "ok:q"
    assert func.calls == 3


@pytest.mark.asyncio
async def test_last_error_propagates_when_attempts_run_out():
    func = Flaky(TransientError("one"), TransientError("two"))
    with pytest.raises(TransientError, match="two"):
        await retry_async(func, "q", max_attempts=2, min_wait=0, max_wait=0)
    assert func.calls == 2


@pytest.mark.asyncio
async def test_non_retryable_error_is_raised_at_once():
    func = Flaky(ValueError("bad"), "ok")
    with pytest.raises(ValueError):
        await retry_async(func, "q", max_attempts=3, min_wait=0, max_wait=0)
    assert func.calls == 1
