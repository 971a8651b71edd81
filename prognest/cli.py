# prognest.cli — demo entrypoint ("prognest" / "python -m prognest")
from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import List

import typer

from . import __version__
from .bridges import live_percent
from .engine import Progress
from .exceptions import ChannelClosed
from .logging_config import get_log_path, setup_logging
from .progress_ux import format_amount

LOGGER = logging.getLogger(__name__)
LOGGER.addHandler(logging.NullHandler())

app = typer.Typer(add_completion=False, help="Nested progress mapped onto one absolute range.")


def _worker(prog: Progress, name: str, steps: int, delay: float) -> None:
    # Half of the allocation is plain steps, the other half a nested "verify" pass.
    prog.set_internal(2 * steps)
    verify = prog.allocate(steps)
    verify.set_internal(100)
    for _ in range(steps):
        time.sleep(delay)
        prog.advance(1)
    for _ in range(10):
        time.sleep(delay)
        verify.advance(10)
    LOGGER.info("worker %s finished", name)


async def _log_changes(prog: Progress, done: threading.Event) -> List[float]:
    """Record every value the root publishes until the workers are done."""
    seen: List[float] = []
    obs = prog.subscribe()
    while not done.is_set():
        try:
            value = await asyncio.wait_for(obs.wait_for_change(), timeout=0.2)
        except asyncio.TimeoutError:
            continue
        except ChannelClosed:
            break
        seen.append(float(value))
        LOGGER.info("absolute progress %s/%s", value, prog.allocation)
    return seen


@app.command()
def demo(
    total: int = typer.Option(10000, "--total", "-n", help="Absolute range of the root"),
    workers: int = typer.Option(4, "--workers", "-w", min=1, help="Parallel subtasks"),
    steps: int = typer.Option(20, "--steps", "-s", min=1, help="Steps per subtask"),
    delay: float = typer.Option(0.02, "--delay", help="Seconds per step"),
) -> None:
    """Advance nested subtasks from worker threads and render the absolute value."""
    setup_logging()
    prog = Progress(total)
    done = threading.Event()
    threads = [
        threading.Thread(
            target=_worker,
            args=(prog.allocate_fraction(workers), f"w{i}", steps, delay),
            name=f"prognest-demo-{i}",
        )
        for i in range(workers)
    ]

    async def _run() -> List[float]:
        logger_task = asyncio.create_task(_log_changes(prog, done))
        await asyncio.to_thread(_join_all, threads, done)
        return await logger_task

    with live_percent(prog, prefix="PROGNEST", task="demo") as sp:
        for t in threads:
            t.start()
        seen = asyncio.run(_run())
        sp.update(task="done")

    final = prog.subscribe().read_and_acknowledge()
    typer.echo(f"final {format_amount(final)}/{total} after {len(seen)} observed changes")
    log_path = get_log_path()
    if log_path is not None:
        typer.echo(f"log: {log_path}")


def _join_all(threads: List[threading.Thread], done: threading.Event) -> None:
    for t in threads:
        t.join()
    done.set()


@app.command()
def version() -> None:
    """Print the installed version."""
    typer.echo(__version__)


def main() -> None:
    app(prog_name="prognest")


if __name__ == "__main__":
    main()
