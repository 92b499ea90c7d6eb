"""Tests for tasksync.oauth.state: single-use, time-boxed CSRF state"""

from tasksync.constants import GOOGLE, MICROSOFT
from tasksync.oauth import OAuthStateStore


class TestOAuthStateStore:

    def test_issue_and_consume(self, clock):
        store = OAuthStateStore(clock=clock)
        state = store.issue("user-1", GOOGLE)
        assert len(state) >= 32
        assert store.consume(state, GOOGLE) == "user-1"

    def test_single_use(self, clock):
        store = OAuthStateStore(clock=clock)
        state = store.issue("user-1")
        assert store.consume(state) == "user-1"
        assert store.consume(state) is None

    def test_states_are_unique(self, clock):
        store = OAuthStateStore(clock=clock)
        assert store.issue("user-1") != store.issue("user-1")

    def test_valid_until_ttl(self, clock):
        store = OAuthStateStore(clock=clock)
        state = store.issue("user-1")
        clock.advance(minutes=10)
        assert store.consume(state) == "user-1"

    def test_expired_after_ttl(self, clock):
        store = OAuthStateStore(clock=clock)
        state = store.issue("user-1")
        clock.advance(minutes=10, seconds=1)
        assert store.consume(state) is None

    def test_unknown_state(self, clock):
        store = OAuthStateStore(clock=clock)
        assert store.consume("not-a-state") is None
        assert store.consume("") is None

    def test_provider_mismatch_rejected(self, clock):
        store = OAuthStateStore(clock=clock)
        state = store.issue("user-1", MICROSOFT)
        assert store.consume(state, GOOGLE) is None
        # consumed even on mismatch
        assert store.consume(state, MICROSOFT) is None

    def test_stale_entries_purged_on_issue(self, clock):
        store = OAuthStateStore(ttl_seconds=60, clock=clock)
        store.issue("user-1")
        store.issue("user-2")
        clock.advance(minutes=2)
        store.issue("user-3")
        assert len(store) == 1
