import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from engine.domain import AlertIntent
from engine.events import LEDGER_MUTATIONS, Event, EventBus
from engine.services import EventEngine

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs evaluation passes on a timer and on demand, one at a time.

    Triggers that arrive while a pass is running collapse into a single
    follow-up pass. The engine call itself runs on a worker thread.
    """

    def __init__(self, engine: EventEngine, interval: Optional[float] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.engine = engine
        self.interval = interval if interval is not None else engine.config.evaluation_interval
        self.clock = clock
        self.passes = 0
        self.last_result: List[AlertIntent] = []
        self._lock = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self._stopping = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def attach(self, bus: EventBus) -> None:
        bus.subscribe_many(LEDGER_MUTATIONS, self._on_mutation)

    def detach(self, bus: EventBus) -> None:
        for name in LEDGER_MUTATIONS:
            bus.unsubscribe(name, self._on_mutation)

    def _on_mutation(self, event: Event, payload: dict) -> dict:
        self.request_pass()
        return {"pass_requested": event.name}

    def request_pass(self) -> None:
        self._signal()

    def stop(self) -> None:
        self._stopping = True
        self._signal()

    def _signal(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            self._wakeup.set()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._wakeup.set()
        else:
            loop.call_soon_threadsafe(self._wakeup.set)

    async def run_pass(self) -> List[AlertIntent]:
        async with self._lock:
            now = self.clock()
            try:
                result = await asyncio.to_thread(self.engine.run_evaluation_pass, now)
            except Exception:
                logger.exception("Evaluation pass at %s failed", now)
                result = []
            self.passes += 1
            self.last_result = result
            logger.debug("Pass %d at %s dispatched %d alerts", self.passes, now, len(result))
            return result

    async def run(self) -> None:
        """Loop until ``stop()``: one pass immediately, then on every timer tick or trigger."""
        self._loop = asyncio.get_running_loop()
        self._stopping = False
        await self.run_pass()
        while not self._stopping:
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            if self._stopping:
                break
            self._wakeup.clear()
            await self.run_pass()
        logger.info("Orchestrator stopped after %d passes", self.passes)
