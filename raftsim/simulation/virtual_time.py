"""
An asyncio event loop that runs on a virtual clock.

The loop behaves exactly like the standard selector loop, except that
`loop.time()` reports a simulated clock, and whenever the loop would block
waiting for the next scheduled timer, the clock jumps forward to that timer
instead of sleeping. Every `asyncio.sleep`, `call_later` and `wait_for`
timeout therefore completes in (almost) no wall clock time, and in the same
order every run, which makes election timing in cluster tests reproducible.

Real file descriptor activity is still polled, without blocking, each time
through the loop, so a loop with no timers and no ready callbacks will
block in the real selector just as a normal loop would.
"""
import asyncio
import math
import selectors


class VirtualClock:

    def __init__(self, start=0.0):
        self.now = start

    def advance(self, seconds):
        if seconds > 0:
            # always moves, even when seconds is below the float resolution at now
            self.now = max(self.now + seconds, math.nextafter(self.now, math.inf))
        return self.now


class _VirtualTimeSelector:

    def __init__(self, clock):
        self.clock = clock
        self.real_selector = selectors.DefaultSelector()

    def select(self, timeout=None):
        events = self.real_selector.select(0)
        if events:
            return events
        if timeout is None:
            # nothing scheduled, only a real event can wake us
            return self.real_selector.select(None)
        self.clock.advance(timeout)
        return []

    def __getattr__(self, name):
        # register, unregister, modify, get_key, get_map, close
        return getattr(self.real_selector, name)


class VirtualTimeEventLoop(asyncio.SelectorEventLoop):

    def __init__(self, start_time=0.0):
        self.clock = VirtualClock(start_time)
        super().__init__(selector=_VirtualTimeSelector(self.clock))

    def time(self):
        return self.clock.now

    def call_later(self, delay, callback, *args, context=None):
        now = self.time()
        when = now + delay
        if delay > 0 and when <= now:
            # a positive delay always lands after now
            when = math.nextafter(now, math.inf)
        return self.call_at(when, callback, *args, context=context)


class VirtualTimeLoopPolicy(asyncio.DefaultEventLoopPolicy):

    def new_event_loop(self):
        return VirtualTimeEventLoop()


def run_in_virtual_time(main, *args, **kwargs):
    """
    Runs the coroutine function `main` to completion on a fresh virtual time
    loop and returns its result. Tasks left running at the end are cancelled.
    """
    loop = VirtualTimeEventLoop()
    try:
        return loop.run_until_complete(main(*args, **kwargs))
    finally:
        try:
            pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
        finally:
            loop.close()
