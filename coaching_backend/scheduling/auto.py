"""Auto-scheduling controller: the persisted on/off flag and its repeating timer."""

import logging
import threading
from typing import Callable, Protocol

from coaching_backend.core import config
from coaching_backend.scheduling.engine import AssignmentResult
from coaching_backend.scheduling.settings import SettingsStore

logger = logging.getLogger(__name__)


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


class RepeatingTimer:
    """Calls ``callback`` every ``interval`` seconds on a daemon thread until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], None]):
        self.interval = interval
        self.callback = callback
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._loop, name='auto-scheduling', daemon=True)

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._stopped.set()

    def _loop(self) -> None:
        while not self._stopped.wait(self.interval):
            self.callback()


class AutoScheduler:
    def __init__(
        self,
        run_pass: Callable[[], AssignmentResult],
        settings: SettingsStore,
        interval_seconds: float = config.AUTO_SCHEDULING_INTERVAL_SECONDS,
        timer_factory: TimerFactory = RepeatingTimer,
    ):
        self._run_pass = run_pass
        self._settings = settings
        self._interval_seconds = interval_seconds
        self._timer_factory = timer_factory
        self._timer: Timer | None = None
        self._lock = threading.Lock()

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        """Arm the timer if auto-scheduling was left enabled."""
        if self._settings.get_auto_scheduling():
            self._arm()

    def shutdown(self) -> None:
        self._disarm()

    def is_enabled(self) -> bool:
        return self._settings.get_auto_scheduling()

    def set_enabled(self, enabled: bool) -> AssignmentResult | None:
        """Persist the flag. Enabling also runs one pass right away and returns it."""
        self._settings.set_auto_scheduling(enabled)
        if not enabled:
            self._disarm()
            return None

        self._arm()
        return self._run_pass()

    def on_supply_changed(self, reason: str) -> AssignmentResult:
        logger.info('Running assignment after %s', reason)
        return self._run_pass()

    def _arm(self) -> None:
        with self._lock:
            if self._timer is not None:
                return
            self._timer = self._timer_factory(self._interval_seconds, self._tick)
            self._timer.start()
        logger.info('Auto-scheduling timer armed every %s seconds', self._interval_seconds)

    def _disarm(self) -> None:
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            logger.info('Auto-scheduling timer cancelled')

    def _tick(self) -> None:
        try:
            self._run_pass()
        except Exception:
            logger.exception('Scheduled assignment run failed')
