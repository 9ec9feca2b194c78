from __future__ import annotations

import itertools
import logging
import threading
from concurrent.futures import Future
from typing import Callable

LOGGER = logging.getLogger("mongobench.parallel")

Handler = Callable[[int], object]


def _resolved() -> Future[None]:
    future: Future[None] = Future()
    future.set_result(None)
    return future


class BoundedTaskRunner:
    """Run ``handler(i)`` for every ``i`` in ``1..count`` with at most ``concurrency`` in flight.

    The runner starts working as soon as it is constructed. Each slot is a
    thread that claims the next index, runs the handler and claims again until
    every index is taken or the runner is paused.
    """

    def __init__(
        self,
        handler: Handler,
        count: int,
        concurrency: int | None = None,
        *,
        fail_fast: bool = False,
        name: str = "parallel",
    ) -> None:
        if count <= 0:
            raise ValueError("count must be > 0")
        if concurrency is None:
            concurrency = count
        if concurrency <= 0:
            raise ValueError("concurrency must be > 0")

        self._handler = handler
        self._count = count
        self._concurrency = min(concurrency, count)
        self._fail_fast = fail_fast
        self._name = name

        self._lock = threading.Lock()
        self._offset = 0
        self._processing = 0
        self._paused = False
        self._finished = False
        self._error: BaseException | None = None
        self._failures: dict[int, BaseException] = {}
        self._finish_future: Future[None] = Future()
        self._drain_futures: list[Future[None]] = []
        self._slot_ids = itertools.count(start=1)

        with self._lock:
            first_indices = self._claim_many(self._concurrency)
        self._launch(first_indices)

    @property
    def count(self) -> int:
        return self._count

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def offset(self) -> int:
        """Number of indices claimed so far."""
        with self._lock:
            return self._offset

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._processing

    @property
    def paused(self) -> bool:
        with self._lock:
            return self._paused

    @property
    def finished(self) -> bool:
        with self._lock:
            return self._finished

    @property
    def failures(self) -> dict[int, BaseException]:
        with self._lock:
            return dict(self._failures)

    def wait_finish(self) -> Future[None]:
        """Future resolved once every index has been claimed and has finished.

        The same future is handed to every caller. In fail-fast mode it carries
        the first handler exception instead.
        """
        return self._finish_future

    def pause(self) -> Future[None]:
        """Stop claiming new indices; the returned future resolves once in-flight units drain."""
        with self._lock:
            if self._processing == 0:
                LOGGER.warning("Pause called on a %s runner with nothing in flight", self._name)
                return _resolved()
            self._paused = True
            future: Future[None] = Future()
            self._drain_futures.append(future)
        return future

    def resume(self) -> bool:
        """Relaunch slots after a drained pause. Returns False while units are still running."""
        with self._lock:
            if self._processing > 0:
                LOGGER.warning(
                    "Resume rejected on %s runner with %d unit(s) in flight",
                    self._name,
                    self._processing,
                )
                return False
            self._paused = False
            indices = self._claim_many(min(self._concurrency, self._count - self._offset))
        self._launch(indices)
        return True

    def _claim_many(self, slots: int) -> list[int]:
        indices = []
        for _ in range(slots):
            index = self._claim()
            if index is None:
                break
            indices.append(index)
        return indices

    def _claim(self) -> int | None:
        # Caller holds the lock.
        if self._paused or self._error is not None or self._offset >= self._count:
            return None
        self._offset += 1
        self._processing += 1
        return self._offset

    def _launch(self, indices: list[int]) -> None:
        for index in indices:
            thread = threading.Thread(
                target=self._run_slot,
                args=(index,),
                name=f"{self._name}-slot-{next(self._slot_ids)}",
                daemon=True,
            )
            thread.start()

    def _run_slot(self, index: int | None) -> None:
        while index is not None:
            try:
                error = self._execute(index)
            except BaseException as exc:
                # The slot thread dies with exc, so abort the run to release waiters.
                LOGGER.error("Unit %d of %s runner aborted the run: %r", index, self._name, exc)
                self._release(index, exc, abort=True)
                raise
            index = self._release(index, error)

    def _execute(self, index: int) -> BaseException | None:
        try:
            self._handler(index)
        except Exception as exc:  # noqa: BLE001
            if self._fail_fast:
                LOGGER.error("Unit %d of %s runner failed: %r", index, self._name, exc)
            else:
                LOGGER.exception("Unit %d of %s runner failed", index, self._name)
            return exc
        return None

    def _release(self, index: int, error: BaseException | None, abort: bool = False) -> int | None:
        to_resolve: list[Future[None]] = []
        finish_error: BaseException | None = None
        fire_finish = False

        with self._lock:
            self._processing -= 1
            if error is not None:
                self._failures[index] = error
                if (self._fail_fast or abort) and self._error is None:
                    self._error = error

            next_index = None if abort else self._claim()
            if next_index is not None:
                return next_index

            if self._processing == 0:
                to_resolve, self._drain_futures = self._drain_futures, []
                done = self._offset == self._count or self._error is not None
                if done and not self._finished:
                    self._finished = True
                    fire_finish = True
                    finish_error = self._error

        if fire_finish:
            if finish_error is not None:
                self._finish_future.set_exception(finish_error)
            else:
                LOGGER.debug("%s runner finished %d unit(s)", self._name, self._count)
                self._finish_future.set_result(None)
        for future in to_resolve:
            future.set_result(None)
        return None


def run_parallel(
    handler: Handler,
    count: int,
    concurrency: int | None = None,
    *,
    fail_fast: bool = False,
    name: str = "parallel",
    timeout: float | None = None,
) -> BoundedTaskRunner:
    """Run a runner to completion and hand it back for inspection."""
    runner = BoundedTaskRunner(handler, count, concurrency, fail_fast=fail_fast, name=name)
    runner.wait_finish().result(timeout=timeout)
    return runner


__all__ = ["BoundedTaskRunner", "Handler", "run_parallel"]
