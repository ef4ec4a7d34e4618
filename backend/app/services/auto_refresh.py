"""
Timer-driven refresher for dashboard clients (polling hook)
  - fires `callback` every `interval_sec`
  - a tick is skipped while hidden / offline / within `interaction_grace_sec` of user activity
    (each gate switchable)
  - regaining visibility refreshes at once if a full interval passed since the last refresh,
    regaining connectivity if RECONNECT_GAP_SEC passed
  - at most one refresh per `min_refresh_gap_sec`, whatever triggered it; force_refresh() ignores every gate
"""
from __future__ import annotations
import logging, threading, time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

RECONNECT_GAP_SEC = 30.0


class AutoRefresher:

    def __init__(
        self,
        callback: Callable[[], None],
        interval_sec: float = 60.0,
        pause_when_hidden: bool = True,
        pause_when_offline: bool = True,
        pause_on_interaction: bool = True,
        interaction_grace_sec: float = 2.0,
        min_refresh_gap_sec: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.callback = callback
        self.interval_sec = interval_sec
        self.pause_when_hidden = pause_when_hidden
        self.pause_when_offline = pause_when_offline
        self.pause_on_interaction = pause_on_interaction
        self.interaction_grace_sec = interaction_grace_sec
        self.min_refresh_gap_sec = min_refresh_gap_sec
        self._clock = clock

        self.visible = True
        self.online = True
        self.last_refresh_at: Optional[float] = None
        self.last_interaction_at: Optional[float] = None
        self.refresh_count = 0

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None


    # ---------- triggers ----------
    def tick(self) -> bool:
        """Periodic trigger; returns True when the callback ran."""
        with self._lock:
            fire = not self._paused() and not self._cooling_down() and self._claim()
        return self._invoke("tick") if fire else False


    def set_visible(self, visible: bool) -> bool:
        with self._lock:
            regained = visible and not self.visible
            self.visible = visible
            fire = (regained and self._elapsed_at_least(self.interval_sec)
                    and not self._cooling_down() and self._claim())
        return self._invoke("visible") if fire else False


    def set_online(self, online: bool) -> bool:
        with self._lock:
            regained = online and not self.online
            self.online = online
            fire = (regained and self._elapsed_at_least(RECONNECT_GAP_SEC)
                    and not self._cooling_down() and self._claim())
        return self._invoke("online") if fire else False


    def record_interaction(self) -> None:
        with self._lock:
            self.last_interaction_at = self._clock()


    def force_refresh(self) -> bool:
        with self._lock:
            self._claim()
        return self._invoke("force")


    # ---------- timer ----------
    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            logger.warning("AutoRefresher already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="auto-refresh", daemon=True)
        self._thread.start()
        logger.info("AutoRefresher started, interval=%ss", self.interval_sec)


    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread:
            # stop() from inside the callback runs on the timer thread itself
            if self._thread is not threading.current_thread():
                self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("AutoRefresher stopped")


    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


    def _run(self) -> None:
        # Event.wait returns True as soon as stop() is called
        while not self._stop.wait(self.interval_sec):
            self.tick()


    # ---------- Helpers ----------
    def _paused(self) -> bool:
        if self.pause_when_hidden and not self.visible:
            return True
        if self.pause_when_offline and not self.online:
            return True
        if self.pause_on_interaction and self.last_interaction_at is not None:
            if self._clock() - self.last_interaction_at < self.interaction_grace_sec:
                return True
        return False


    def _cooling_down(self) -> bool:
        return self.last_refresh_at is not None and self._clock() - self.last_refresh_at < self.min_refresh_gap_sec


    def _elapsed_at_least(self, seconds: float) -> bool:
        return self.last_refresh_at is None or self._clock() - self.last_refresh_at >= seconds


    def _claim(self) -> bool:
        """Book the refresh slot; caller holds the lock."""
        self.last_refresh_at = self._clock()
        self.refresh_count += 1
        return True


    def _invoke(self, trigger: str) -> bool:
        # runs without the lock, so the callback may call back into the refresher
        try:
            self.callback()
        except Exception:
            logger.exception("auto refresh callback failed (trigger=%s)", trigger)
        return True
