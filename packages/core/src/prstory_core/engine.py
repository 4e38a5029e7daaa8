"""Engine: the single owner of the Session.

One asyncio task pops Actions off a FIFO queue, applies ``update``, hands the
optional Command to the executor and re-renders. Terminal input and command
results share the queue, so they are processed strictly in arrival order.
Nothing else ever reads a mutable Session: ``render`` receives the frozen
value produced by the last update.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from prstory_core.commands import Dispatch
from prstory_core.session import Session
from prstory_core.update import update

logger = logging.getLogger(__name__)


class Engine:
    def __init__(self, session: Session, executor, render: Optional[Callable[[Session], None]] = None):
        self.session = session
        self.executor = executor
        self.render = render
        self._queue: asyncio.Queue = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()
        self._stopped = False
        executor.bind(self.post, lambda: self.session.generation)

    @property
    def stopped(self) -> bool:
        return self._stopped

    def post(self, action) -> None:
        """Enqueue an Action. The only way into the engine."""
        if not self._stopped:
            self._queue.put_nowait(action)

    def dispatch(self, command) -> None:
        """Start ``command`` stamped with the current generation."""
        if command is None:
            return
        job = Dispatch(command, self.session.generation)
        logger.debug("Dispatching %s (generation %d)", type(command).__name__, job.generation)
        task = asyncio.get_running_loop().create_task(self.executor.run(job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def step(self, action) -> None:
        """Apply one Action. Must run on the engine's event loop."""
        before = self.session.state
        self.session, command = update(self.session, action)
        if type(self.session.state) is not type(before):
            logger.debug(
                "%s: %s -> %s", type(action).__name__, type(before).__name__, type(self.session.state).__name__
            )
        self.dispatch(command)
        if self.render is not None:
            self.render(self.session)

    async def run(self, initial_command=None) -> Session:
        """Process Actions until the session reaches Quitting."""
        if self.render is not None:
            self.render(self.session)
        self.dispatch(initial_command)
        while not self.session.is_terminal:
            action = await self._queue.get()
            self.step(action)
        self._stop()
        return self.session

    def _stop(self) -> None:
        self._stopped = True
        for task in list(self._tasks):
            task.cancel()
        logger.info("Engine stopped at generation %d", self.session.generation)

    async def wait_idle(self) -> None:
        """Wait until no command is in flight and the queue is empty."""
        while not self._stopped:
            pending = [t for t in self._tasks if not t.done()]
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            elif self._queue.empty():
                return
            else:
                await asyncio.sleep(0)
