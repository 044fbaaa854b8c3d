"""
Owner loop: the single thread allowed to mutate view-state controllers.

Work is posted from any thread and executed in FIFO order by whichever
thread drives the loop: either an embedding UI/event loop calling
``drain()``, or the loop's own daemon thread started with ``start()``.
"""
import logging
import queue
import threading
from concurrent.futures import Future
from typing import Any, Callable

logger = logging.getLogger(__name__)

_STOP = object()


class OwnerLoop:

    def __init__(self, name: str = "offshore-owner"):
        self.name = name
        self._queue: "queue.SimpleQueue" = queue.SimpleQueue()
        self._thread: threading.Thread | None = None
        self._owner_ident: int | None = None

    # --- posting ---

    def post(self, fn: Callable, *args: Any) -> None:
        """Schedule ``fn(*args)`` for the next tick. Never runs it inline."""
        self._queue.put((fn, args))

    def call(self, fn: Callable, *args: Any, timeout: float | None = 10.0) -> Any:
        """
        Run ``fn(*args)`` on the owner thread and wait for its result.

        Runs inline when already on the owner thread; otherwise requires the
        loop to be running (``start()``).
        """
        if self.is_owner_thread():
            return fn(*args)
        if not self.is_running:
            raise RuntimeError("OwnerLoop.call() needs a running loop; use post()+drain() instead")
        future: Future = Future()

        def _run():
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(fn(*args))
            except BaseException as exc:
                future.set_exception(exc)

        self.post(_run)
        return future.result(timeout=timeout)

    # --- driving ---

    def is_owner_thread(self) -> bool:
        return self._owner_ident == threading.get_ident()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def drain(self, max_tasks: int | None = None) -> int:
        """
        Run queued tasks on the calling thread until the queue is empty.

        Tasks posted while draining are run in the same call. Returns the
        number of tasks executed.
        """
        if self.is_running:
            raise RuntimeError("OwnerLoop is driven by its own thread")
        previous = self._owner_ident
        self._owner_ident = threading.get_ident()
        executed = 0
        try:
            while max_tasks is None or executed < max_tasks:
                try:
                    item = self._queue.get_nowait()
                except queue.Empty:
                    break
                if item is _STOP:
                    continue
                self._run_task(item)
                executed += 1
        finally:
            self._owner_ident = previous
        return executed

    def start(self) -> None:
        if self.is_running:
            return
        self._thread = threading.Thread(target=self._run_forever, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        thread = self._thread
        if thread is None:
            return
        self._queue.put(_STOP)
        thread.join(timeout)
        self._thread = None

    def _run_forever(self) -> None:
        self._owner_ident = threading.get_ident()
        logger.debug("Owner loop %s started", self.name)
        try:
            while True:
                item = self._queue.get()
                if item is _STOP:
                    break
                self._run_task(item)
        finally:
            self._owner_ident = None
            logger.debug("Owner loop %s stopped", self.name)

    @staticmethod
    def _run_task(item) -> None:
        fn, args = item
        try:
            fn(*args)
        except Exception:
            logger.exception("Owner loop task %r failed", fn)
