# tests/test_generation_guard.py
import asyncio

import pytest
from core.exceptions import GenerationCancelled
from core.generation_guard import GenerationCoordinator


@pytest.mark.asyncio
async def test_begin_clears_a_stale_cancel_request():
    coordinator = GenerationCoordinator()
    coordinator.request_cancel()
    assert coordinator.is_cancelled

    async with coordinator.begin("outline") as handle:
        assert handle.sequence == 1
        assert handle.label == "outline"
        assert not coordinator.is_cancelled
        coordinator.raise_if_cancelled()


@pytest.mark.asyncio
async def test_cancel_inside_generation_is_observed():
    coordinator = GenerationCoordinator()
    async with coordinator.begin():
        coordinator.request_cancel()
        with pytest.raises(GenerationCancelled):
            coordinator.raise_if_cancelled()
    assert not coordinator.is_busy


@pytest.mark.asyncio
async def test_slot_is_released_when_body_raises():
    coordinator = GenerationCoordinator()
    with pytest.raises(RuntimeError):
        async with coordinator.begin():
            assert coordinator.is_busy
            raise RuntimeError("boom")
    assert not coordinator.is_busy

    async with coordinator.begin() as handle:
        assert handle.sequence == 2


@pytest.mark.asyncio
async def test_waiters_are_served_in_arrival_order():
    coordinator = GenerationCoordinator()
    order: list[str] = []
    release_first = asyncio.Event()

    async def worker(name: str, gate: asyncio.Event | None = None) -> None:
        async with coordinator.begin(name):
            order.append(f"{name}:start")
            if gate is not None:
                await gate.wait()
            await asyncio.sleep(0)
            order.append(f"{name}:end")

    first = asyncio.create_task(worker("a", release_first))
    await asyncio.sleep(0)
    second = asyncio.create_task(worker("b"))
    third = asyncio.create_task(worker("c"))
    await asyncio.sleep(0.01)

    assert coordinator.is_busy
    assert coordinator.waiting == 2
    assert order == ["a:start"]

    release_first.set()
    await asyncio.gather(first, second, third)

    assert order == ["a:start", "a:end", "b:start", "b:end", "c:start", "c:end"]
    assert coordinator.waiting == 0
    assert not coordinator.is_busy


@pytest.mark.asyncio
async def test_cancel_from_another_thread_sets_signal():
    coordinator = GenerationCoordinator()
    async with coordinator.begin():
        await asyncio.to_thread(coordinator.request_cancel)
        assert coordinator.is_cancelled
