"""
StreamGo — Bounded Retry

One polling combinator for everything that has to wait on the web page
without an event to wait for: the stream locator, and element waits for
injected UI. A probe is called with a ``deliver`` callback and answers
(synchronously or later) with a value, or None for "not yet". Between misses
the poll sleeps on the scheduler, never blocking the GUI thread.
"""

from typing import Callable, Sequence


class RetryPoll:
    """
    probe(deliver)    ask once; deliver(value) with None meaning a miss
    attempts          total number of probe calls allowed
    delays            ms between attempts; an int, or a backoff sequence
                      (the last entry repeats)
    on_done(value)    called exactly once: the first non-None value, or None
                      after the last miss. Never called after cancel().
    on_miss(n)        optional, after the n-th miss (1-based) that will be
                      retried or is final
    """

    def __init__(
        self,
        scheduler,
        probe: Callable,
        attempts: int,
        delays: int | Sequence[int],
        on_done: Callable,
        on_miss: Callable | None = None,
        label: str = "retry",
    ):
        self._scheduler = scheduler
        self._probe = probe
        self._attempts = max(1, int(attempts))
        self._delays = (int(delays),) if isinstance(delays, (int, float)) else tuple(int(d) for d in delays) or (0,)
        self._on_done = on_done
        self._on_miss = on_miss
        self._label = label
        self._handle = None
        self._token = 0
        self.attempt = 0
        self.finished = False
        self.result = None

    def start(self) -> "RetryPoll":
        if self.attempt == 0 and not self.finished:
            self._run()
        return self

    def cancel(self):
        self.finished = True
        self._scheduler.cancel(self._handle)
        self._handle = None

    def delay_for(self, miss_number: int) -> int:
        return self._delays[min(miss_number - 1, len(self._delays) - 1)]

    def _run(self):
        self._handle = None
        if self.finished:
            return
        self.attempt += 1
        self._token += 1
        token = self._token
        try:
            self._probe(lambda value: self._deliver(token, value))
        except Exception as e:
            print(f"[{self._label}] Attempt {self.attempt} error: {e}")
            self._deliver(token, None)

    def _deliver(self, token: int, value):
        if self.finished or token != self._token:
            return
        # Later answers to this attempt are ignored.
        self._token += 1
        if value is not None:
            self._finish(value)
            return
        if self._on_miss is not None:
            try:
                self._on_miss(self.attempt)
            except Exception as e:
                print(f"[{self._label}] Miss hook error: {e}")
        if self.attempt >= self._attempts:
            self._finish(None)
            return
        self._handle = self._scheduler.call_later(self.delay_for(self.attempt), self._run)

    def _finish(self, value):
        self.finished = True
        self.result = value
        self._on_done(value)


def retry_poll(scheduler, probe, attempts, delays, on_done, on_miss=None, label="retry") -> RetryPoll:
    """Build a RetryPoll and start it."""
    return RetryPoll(scheduler, probe, attempts, delays, on_done, on_miss, label).start()
