import asyncio

import pytest

from agentloop.domain import StepLimitExceededError, ToolCallInfo
from agentloop.runtime.state import LoopStateManager, ToolCallRecord, stable_hash


def test_stable_hash_ignores_key_order_and_whitespace():
    a = stable_hash(b'{"query": "x", "limit": 3}')
    b = stable_hash('{"limit":3,"query":"x"}')
    assert a == b
    assert len(a) == 64


def test_stable_hash_distinguishes_values():
    assert stable_hash(b'{"query": "x"}') != stable_hash(b'{"query": "y"}')


def test_stable_hash_invalid_json_uses_raw_bytes():
    assert stable_hash(b"not json") == stable_hash("not json")
    assert stable_hash(b"not json") != stable_hash(b"not json ")


def test_tool_call_record_equality_ignores_timestamp():
    r1 = ToolCallRecord(name="search", input_hash="abc", timestamp=1.0)
    r2 = ToolCallRecord(name="search", input_hash="abc", timestamp=2.0)
    assert r1 == r2
    assert r1 != ToolCallRecord(name="search", input_hash="def")


@pytest.mark.asyncio
async def test_increment_step_rejects_past_limit():
    state = LoopStateManager(max_steps=2)

    assert await state.increment_step() == 1
    assert await state.increment_step() == 2

    with pytest.raises(StepLimitExceededError) as exc_info:
        await state.increment_step()

    assert exc_info.value.steps == 2
    # The rejected increment is not applied
    assert state.current_step == 2


@pytest.mark.asyncio
async def test_concurrent_increments_never_exceed_limit():
    state = LoopStateManager(max_steps=5)

    results = await asyncio.gather(
        *(state.increment_step() for _ in range(8)), return_exceptions=True
    )

    successes = [r for r in results if isinstance(r, int)]
    failures = [r for r in results if isinstance(r, StepLimitExceededError)]
    assert sorted(successes) == [1, 2, 3, 4, 5]
    assert len(failures) == 3
    assert state.current_step == 5


@pytest.mark.asyncio
async def test_tool_call_counts():
    state = LoopStateManager(max_steps=10)
    await state.record_tool_call(ToolCallInfo(id="1", name="search", arguments=b'{"q": "a"}'))
    await state.record_tool_call(ToolCallInfo(id="2", name="search", arguments=b'{"q":"a"}'))
    await state.record_tool_call(ToolCallInfo(id="3", name="search", arguments=b'{"q": "b"}'))
    await state.record_tool_call(ToolCallInfo(id="4", name="fetch", arguments=b"{}"))

    assert await state.count_tool_calls("search") == 3
    assert await state.count_tool_calls("fetch") == 1
    assert await state.count_tool_calls("missing") == 0
    assert await state.count_duplicate_tool_calls("search", stable_hash(b'{"q": "a"}')) == 2

    last = await state.last_tool_call("search")
    assert last.input_hash == stable_hash(b'{"q": "b"}')
    assert (await state.last_tool_call()).name == "fetch"


@pytest.mark.asyncio
async def test_consecutive_same_tool_calls():
    state = LoopStateManager(max_steps=10)
    assert await state.count_consecutive_same_tool_calls() == 0

    await state.record_tool_call(ToolCallInfo(id="1", name="a", arguments=b"{}"))
    await state.record_tool_call(ToolCallInfo(id="2", name="b", arguments=b"{}"))
    await state.record_tool_call(ToolCallInfo(id="3", name="b", arguments=b"{}"))

    assert await state.count_consecutive_same_tool_calls() == 2


@pytest.mark.asyncio
async def test_can_continue_and_completion():
    state = LoopStateManager(max_steps=1)
    assert await state.can_continue() is True

    await state.increment_step()
    assert await state.can_continue() is False

    state = LoopStateManager(max_steps=3)
    await state.mark_completed()
    assert state.is_completed
    assert await state.can_continue() is False


@pytest.mark.asyncio
async def test_snapshot_is_immutable_copy():
    state = LoopStateManager(max_steps=3)
    await state.increment_step()
    await state.record_tool_call(ToolCallInfo(id="1", name="a"))

    snapshot = await state.snapshot()
    await state.record_tool_call(ToolCallInfo(id="2", name="a"))
    await state.increment_step()

    assert snapshot.current_step == 1
    assert snapshot.remaining_steps == 2
    assert not snapshot.is_at_step_limit
    assert snapshot.count_tool_calls("a") == 1
    assert len(state.tool_call_history) == 2


@pytest.mark.asyncio
async def test_reset_clears_everything():
    state = LoopStateManager(max_steps=2)
    await state.increment_step()
    await state.record_tool_call(ToolCallInfo(id="1", name="a"))
    await state.mark_completed()

    await state.reset()

    assert state.current_step == 0
    assert not state.is_completed
    assert state.tool_call_history == ()


def test_max_steps_must_be_positive():
    with pytest.raises(ValueError):
        LoopStateManager(max_steps=0)
