from __future__ import annotations

import asyncio
import threading

import pytest

from prognest import Progress


def _hammer(prog: Progress, steps: int, barrier: threading.Barrier) -> None:
    barrier.wait()
    for _ in range(steps):
        prog.advance(1)


def test_disjoint_subtrees_lose_no_updates() -> None:
    workers, steps = 8, 500
    prog = Progress(workers * 1000)
    obs = prog.subscribe()
    barrier = threading.Barrier(workers)
    threads = []
    for _ in range(workers):
        sub = prog.allocate(1000)
        sub.set_internal(steps)
        leaf = sub.allocate(steps)
        threads.append(threading.Thread(target=_hammer, args=(leaf, steps, barrier)))
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    assert obs.read_and_acknowledge() == pytest.approx(workers * 1000)


def test_concurrent_allocation_and_advance_on_shared_parent() -> None:
    prog = Progress(4000)
    barrier = threading.Barrier(4)

    def worker() -> None:
        barrier.wait()
        for _ in range(100):
            child = prog.allocate(10)
            child.advance(10)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    tree = prog._tree
    assert tree is not None
    assert len(tree) == 401
    assert prog.subscribe().peek() == 4000


def test_async_observer_sees_monotonic_values_while_threads_advance() -> None:
    prog = Progress(2000)
    subs = [prog.allocate(1000, internal=100) for _ in range(2)]

    async def scenario() -> list[float]:
        obs = prog.subscribe()
        seen: list[float] = []

        def run(sub: Progress) -> None:
            for _ in range(100):
                sub.advance(1)

        threads = [threading.Thread(target=run, args=(s,)) for s in subs]
        for t in threads:
            t.start()
        while True:
            value = await asyncio.wait_for(obs.wait_for_change(), timeout=5.0)
            seen.append(value)
            if value == pytest.approx(2000):
                break
        for t in threads:
            t.join()
        return seen

    seen = asyncio.run(scenario())
    assert seen == sorted(seen)
    assert seen[-1] == pytest.approx(2000)
