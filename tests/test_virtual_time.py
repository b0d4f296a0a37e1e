#!/usr/bin/env python
import asyncio
import time

from raftsim.simulation.virtual_time import VirtualClock, VirtualTimeEventLoop, run_in_virtual_time


async def test_test_loop_is_virtual():
    loop = asyncio.get_running_loop()
    assert isinstance(loop, VirtualTimeEventLoop)
    wall_start = time.monotonic()
    start = loop.time()
    await asyncio.sleep(3600)
    assert loop.time() - start >= 3600 - 1e-6
    assert time.monotonic() - wall_start < 5


async def test_timer_order():
    order = []

    async def sleeper(delay, name):
        await asyncio.sleep(delay)
        order.append(name)

    await asyncio.gather(sleeper(0.3, "c"), sleeper(0.1, "a"), sleeper(0.2, "b"))
    assert order == ["a", "b", "c"]


def test_run_in_virtual_time():
    leftover = []

    async def forever():
        try:
            await asyncio.sleep(10 ** 6)
        except asyncio.CancelledError:
            leftover.append("cancelled")
            raise

    async def main(delay):
        loop = asyncio.get_running_loop()
        asyncio.create_task(forever())
        start = loop.time()
        await asyncio.sleep(delay)
        return loop.time() - start

    wall_start = time.monotonic()
    elapsed = run_in_virtual_time(main, 500.0)
    assert elapsed >= 500.0 - 1e-6
    assert time.monotonic() - wall_start < 5
    assert leftover == ["cancelled"]


def test_clock_always_moves():
    clock = VirtualClock(0.4062153789225902)
    before = clock.now
    # too small to change the float by plain addition
    assert before + 1e-17 == before
    assert clock.advance(1e-17) > before
    assert clock.advance(0) == clock.now
    assert clock.advance(-1) == clock.now


async def test_timer_chasing_leftover_finishes():
    """
    A callback that keeps rescheduling itself for whatever is left until a
    deadline reaches the deadline instead of firing forever at one instant.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + 0.4062153789225902
    done = loop.create_future()
    hops = []

    def chase():
        remaining = deadline - loop.time()
        if remaining <= 0:
            done.set_result(len(hops))
            return
        hops.append(remaining)
        if len(hops) > 1000:
            done.set_exception(Exception(f"still chasing, last leftover {remaining}"))
            return
        loop.call_later(remaining, chase)

    loop.call_later(0.4, chase)
    assert await done < 1000
    assert loop.time() >= deadline


async def test_tiny_delay_moves_clock():
    loop = asyncio.get_running_loop()
    await asyncio.sleep(0.4062153789225902)
    before = loop.time()
    fired = loop.create_future()
    loop.call_later(1e-17, lambda: fired.set_result(loop.time()))
    assert await fired > before
