from datetime import datetime, timedelta, timezone

from dirimsi_core.agents.greeting import (
    FIRST_VISIT_KEY,
    LAST_GREETING_KEY,
    GreetingPolicy,
)
from dirimsi_core.infrastructure.storage.preference_store import InMemoryPreferenceStore


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def test_first_visit_gets_full_greeting_and_sets_markers():
    prefs = InMemoryPreferenceStore()
    clock = Clock(datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc))
    policy = GreetingPolicy(prefs, cooldown=timedelta(hours=24), clock=clock)
    text = policy.greeting("DirimSi AI")
    assert text.startswith("Greetings! I am DirimSi AI.")
    assert prefs.get(FIRST_VISIT_KEY) == clock.now.isoformat()
    assert prefs.get(LAST_GREETING_KEY) == clock.now.isoformat()


def test_returning_within_cooldown_gets_short_greeting():
    prefs = InMemoryPreferenceStore()
    clock = Clock(datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc))
    policy = GreetingPolicy(prefs, cooldown=timedelta(hours=24), clock=clock)
    policy.greeting("DirimSi AI")

    clock.now += timedelta(hours=2)
    assert policy.greeting("DirimSi AI").startswith("Welcome back!")

    clock.now += timedelta(hours=30)
    assert policy.greeting("DirimSi AI").startswith("Greetings!")
    # 首次访问时间不会被覆盖
    assert prefs.get(FIRST_VISIT_KEY) == "2026-10-18T09:00:00+00:00"


def test_unparseable_marker_is_ignored():
    prefs = InMemoryPreferenceStore({FIRST_VISIT_KEY: "yesterday", LAST_GREETING_KEY: "???"})
    policy = GreetingPolicy(prefs, clock=Clock(datetime(2026, 10, 18, tzinfo=timezone.utc)))
    assert policy.greeting("DirimSi AI").startswith("Greetings!")
