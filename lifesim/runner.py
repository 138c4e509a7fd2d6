import logging
import threading
import time
from typing import Optional

from .sim import Sim

log = logging.getLogger(__name__)


class SimRunner:
    """Drives ``Sim.tick`` on a fixed wall-clock cadence in a background thread.

    ``stop()`` is cooperative: the flag is checked between ticks, a tick in
    progress always runs to completion.
    """

    def __init__(self, sim: Sim, interval: Optional[float] = None, max_ticks: Optional[int] = None):
        self.sim = sim
        self.interval = sim.cfg.TICK_INTERVAL if interval is None else interval
        self.max_ticks = max_ticks
        self.ticks = 0
        self.error: Optional[BaseException] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="sim-ticker", daemon=True)
        self._thread.start()
        log.info("runner started: interval=%.3fs max_ticks=%s", self.interval, self.max_ticks)

    def _loop(self):
        next_tick = time.monotonic()
        try:
            while not self._stop.is_set():
                self.sim.tick()
                self.ticks += 1
                if self.max_ticks is not None and self.ticks >= self.max_ticks:
                    break
                next_tick += self.interval
                delay = next_tick - time.monotonic()
                if delay < 0:
                    # fell behind; resync instead of bursting to catch up
                    next_tick = time.monotonic()
                    delay = 0.0
                self._stop.wait(delay)
        except Exception as e:
            self.error = e
            log.exception("tick loop aborted after %d ticks", self.ticks)
            raise
        finally:
            log.info("runner stopped after %d ticks (%d snapshots dropped)",
                     self.ticks, self.sim.publisher.dropped)

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        self.join(timeout)

    def join(self, timeout: Optional[float] = None):
        if self._thread is not None:
            self._thread.join(timeout)
