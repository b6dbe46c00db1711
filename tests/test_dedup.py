from __future__ import annotations

from onsite_redemption.station.dedup import ScanDeduplicationCache, ScanKey


def key(code="REG-001", option="opt-lunch"):
    return ScanKey.build("evt-1", "food", option, code)


def test_suppresses_within_ttl(fake_clock):
    cache = ScanDeduplicationCache(ttl_seconds=3, clock=fake_clock)
    assert not cache.should_suppress(key())
    cache.remember(key(), "Recorded")
    fake_clock.advance(2.9)
    assert cache.should_suppress(key())
    assert cache.get(key()) == "Recorded"


def test_expires_after_ttl(fake_clock):
    cache = ScanDeduplicationCache(ttl_seconds=3, clock=fake_clock)
    cache.remember(key(), "Recorded")
    fake_clock.advance(3)
    assert not cache.should_suppress(key())
    assert cache.get(key()) is None
    assert len(cache) == 0


def test_key_covers_option_and_code(fake_clock):
    cache = ScanDeduplicationCache(clock=fake_clock)
    cache.remember(key(), "Recorded")
    assert not cache.should_suppress(key(option="opt-dinner"))
    assert not cache.should_suppress(key(code="REG-002"))
    assert cache.should_suppress(key(code=" REG-001 "))


def test_oldest_evicted_when_full(fake_clock):
    cache = ScanDeduplicationCache(ttl_seconds=60, max_entries=2, clock=fake_clock)
    cache.remember(key("A"), 1)
    cache.remember(key("B"), 2)
    cache.remember(key("A"), 3)
    cache.remember(key("C"), 4)
    assert cache.get(key("B")) is None
    assert cache.get(key("A")) == 3
    assert cache.get(key("C")) == 4


def test_per_entry_ttl(fake_clock):
    cache = ScanDeduplicationCache(ttl_seconds=3, clock=fake_clock)
    cache.remember(key("A"), 1, ttl=10)
    cache.remember(key("B"), 2, ttl=0)
    fake_clock.advance(5)
    assert cache.should_suppress(key("A"))
    assert not cache.should_suppress(key("B"))


def test_caches_are_independent(fake_clock):
    first = ScanDeduplicationCache(clock=fake_clock)
    second = ScanDeduplicationCache(clock=fake_clock)
    first.remember(key(), "Recorded")
    assert not second.should_suppress(key())
