import threading

import pytest

from app.services.auto_refresh import AutoRefresher


class Ticker:
    def __init__(self):
        self.t = 1000.0

    def __call__(self):
        return self.t


@pytest.fixture()
def ticker():
    return Ticker()


def make(ticker, **kwargs):
    calls = []
    refresher = AutoRefresher(lambda: calls.append(ticker.t), clock=ticker, **kwargs)
    return refresher, calls


def test_triggers_ten_seconds_apart_refresh_once(ticker):
    r, calls = make(ticker)

    assert r.tick() is True
    ticker.t += 10
    assert r.tick() is False
    assert len(calls) == 1


def test_triggers_thirty_five_seconds_apart_both_refresh(ticker):
    r, calls = make(ticker)

    r.tick()
    ticker.t += 35
    assert r.tick() is True
    assert len(calls) == 2


def test_hidden_offline_and_interaction_pause_ticks(ticker):
    r, calls = make(ticker)

    r.set_visible(False)
    assert r.tick() is False
    r.visible = True

    r.set_online(False)
    assert r.tick() is False
    r.online = True

    r.record_interaction()
    ticker.t += 1
    assert r.tick() is False
    ticker.t += 2
    assert r.tick() is True
    assert len(calls) == 1


def test_gates_can_be_switched_off(ticker):
    r, calls = make(ticker, pause_when_hidden=False, pause_when_offline=False, pause_on_interaction=False)

    r.set_visible(False)
    r.set_online(False)
    r.record_interaction()

    assert r.tick() is True


def test_regaining_visibility_refreshes_after_full_interval(ticker):
    r, calls = make(ticker, interval_sec=60)
    r.tick()
    r.set_visible(False)

    ticker.t += 40
    assert r.set_visible(True) is False
    r.set_visible(False)
    ticker.t += 20
    assert r.set_visible(True) is True
    assert len(calls) == 2


def test_reconnecting_refreshes_after_thirty_seconds(ticker):
    r, calls = make(ticker)
    r.tick()
    r.set_online(False)

    ticker.t += 20
    assert r.set_online(True) is False
    r.set_online(False)
    ticker.t += 11
    assert r.set_online(True) is True


def test_force_refresh_bypasses_gates_and_cooldown(ticker):
    r, calls = make(ticker)
    r.tick()
    r.set_visible(False)
    r.record_interaction()

    assert r.force_refresh() is True
    assert r.force_refresh() is True
    assert r.refresh_count == 3


def test_callback_errors_are_contained(ticker):
    def boom():
        raise RuntimeError("refetch failed")

    r = AutoRefresher(boom, clock=ticker)

    assert r.tick() is True
    assert r.refresh_count == 1


def test_background_timer_runs_and_stops():
    fired = threading.Event()
    r = AutoRefresher(fired.set, interval_sec=0.01, min_refresh_gap_sec=0)

    r.start()
    try:
        assert fired.wait(2.0)
        assert r.running
    finally:
        r.stop()
    assert not r.running


def test_callback_may_call_back_into_the_refresher(ticker):
    r = AutoRefresher(lambda: r.record_interaction(), clock=ticker)

    worker = threading.Thread(target=r.force_refresh, daemon=True)
    worker.start()
    worker.join(2.0)

    assert not worker.is_alive()
    assert r.last_interaction_at == ticker.t
    assert r.tick() is False


def test_stop_from_inside_the_callback():
    stopped = threading.Event()

    def callback():
        r.stop()
        stopped.set()

    r = AutoRefresher(callback, interval_sec=0.05, min_refresh_gap_sec=0)
    r.start()
    thread = r._thread

    assert stopped.wait(2.0)
    thread.join(2.0)
    assert not thread.is_alive()
    assert not r.running
