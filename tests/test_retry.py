from __future__ import annotations

from streamgo.retry import RetryPoll, retry_poll


def test_first_value_finishes_the_poll(scheduler):
    answers = iter([None, None, "found"])
    done = []
    poll = retry_poll(scheduler, lambda deliver: deliver(next(answers)), 5, 100, done.append)

    assert poll.attempt == 1
    scheduler.advance(100)
    assert done == []
    scheduler.advance(100)
    assert done == ["found"]
    assert poll.attempt == 3
    assert poll.finished
    assert scheduler.pending_timers == 0


def test_backoff_sequence_repeats_last_delay(scheduler):
    times = []
    done = []

    def probe(deliver):
        times.append(scheduler.now_ms())
        deliver(None)

    retry_poll(scheduler, probe, 5, (50, 100), done.append)
    scheduler.advance(1000)
    assert times == [0, 50, 150, 250, 350]
    assert done == [None]


def test_probe_exception_counts_as_miss(scheduler):
    calls = []
    done = []

    def probe(deliver):
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("page not ready")
        deliver("ok")

    retry_poll(scheduler, probe, 3, 10, done.append, label="test")
    scheduler.advance(10)
    assert done == ["ok"]
    assert len(calls) == 2


def test_cancel_prevents_completion(scheduler):
    done = []
    poll = retry_poll(scheduler, lambda deliver: deliver(None), 3, 10, done.append)
    poll.cancel()
    scheduler.advance(100)
    assert done == []
    assert poll.attempt == 1


def test_late_answer_from_old_attempt_is_ignored(scheduler):
    delivers = []
    done = []
    poll = RetryPoll(scheduler, delivers.append, 3, 10, done.append).start()

    delivers[0](None)
    scheduler.advance(10)
    assert poll.attempt == 2
    delivers[0]("stale")
    assert done == []
    delivers[1]("fresh")
    assert done == ["fresh"]


def test_on_miss_sees_every_miss(scheduler):
    misses = []
    retry_poll(scheduler, lambda deliver: deliver(None), 3, 10, lambda v: None, on_miss=misses.append)
    scheduler.advance(100)
    assert misses == [1, 2, 3]
