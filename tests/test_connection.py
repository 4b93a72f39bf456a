from rvbridge.connection import HSStatus, Millis64, WifiMonitor


def test_millis64_passes_through_without_wrap():
    counter = Millis64()
    assert counter.update(100) == 100
    assert counter.update(200) == 200


def test_millis64_counts_wraps():
    counter = Millis64()
    counter.update(0xFFFFFFF0)
    assert counter.update(50) == 2**32 + 50
    assert counter.update(60) == 2**32 + 60
    assert counter.update(10) == 2 * 2**32 + 10


def test_millis64_is_monotonic():
    counter = Millis64()
    readings = [5, 0xFFFFFFFF, 3, 9, 0x80000000, 1]
    values = [counter.update(r) for r in readings]
    assert values == sorted(values)


def test_ready_and_lost():
    monitor = WifiMonitor(clock=lambda: 0)
    assert monitor.connected is False
    monitor.ready()
    assert monitor.connected and monitor.had_connection
    monitor.status_changed(HSStatus.WIFI_CONNECTING)
    assert monitor.connected is False
    assert monitor.had_connection is True


def test_other_status_keeps_connection():
    monitor = WifiMonitor(clock=lambda: 0)
    monitor.ready()
    monitor.status_changed(HSStatus.PAIRED)
    assert monitor.connected is True


def test_verify_does_nothing_before_first_connection():
    calls = []
    monitor = WifiMonitor(clock=lambda: 0)
    assert monitor.verify(lambda: calls.append(1) or True) is False
    assert calls == []


def test_verify_reconnects_and_respects_interval():
    now = [1000]
    calls = []

    def link_down():
        calls.append(now[0])
        return False

    monitor = WifiMonitor(clock=lambda: now[0], check_interval_ms=500)
    monitor.ready()
    monitor.status_changed(HSStatus.WIFI_CONNECTING)

    assert monitor.verify(link_down) is False
    now[0] = 1200
    monitor.verify(link_down)
    assert calls == [1000]

    now[0] = 1500
    assert monitor.verify(lambda: True) is True
    assert monitor.connected is True