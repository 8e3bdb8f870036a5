"""Token blacklist and security event cache."""

import threading

import pytest

from auth.cache_manager import InMemoryCacheManager
from auth.errors import AuthenticationFailed
from auth.permissions import Role

from conftest import ROLE_EMAILS


def test_blacklist_until_expiry():
    cache = InMemoryCacheManager()
    cache.blacklist_token("abc", ttl=60)
    assert cache.is_token_blacklisted("abc")
    assert not cache.is_token_blacklisted("other")


def test_expired_entries_are_dropped():
    cache = InMemoryCacheManager()
    cache.blacklist_token("old", ttl=-5)
    assert not cache.is_token_blacklisted("old")
    assert cache.blacklist_size() == 0


def test_security_events_newest_first_and_bounded():
    cache = InMemoryCacheManager(max_events_per_user=3)
    for i in range(5):
        cache.log_security_event(7, "login_failed", {"attempt": i})

    events = cache.get_security_events(7)
    assert [e["details"]["attempt"] for e in events] == [4, 3, 2]
    assert cache.get_security_events(7, limit=1)[0]["details"]["attempt"] == 4
    assert cache.get_security_events(8) == []


def test_concurrent_revocations():
    cache = InMemoryCacheManager()

    def revoke(start):
        for i in range(start, start + 100):
            cache.blacklist_token(f"jti-{i}", ttl=60)

    threads = [threading.Thread(target=revoke, args=(n * 100,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert cache.blacklist_size() == 400


def test_failed_logins_recorded(app, user_ids):
    auth_manager = app.state.auth_manager
    with pytest.raises(AuthenticationFailed):
        auth_manager.login(ROLE_EMAILS[Role.STAFF], "wrong")
    events = auth_manager.cache.get_security_events(user_ids[Role.STAFF])
    assert events[0]["event_type"] == "login_failed"
    assert events[0]["details"]["reason"] == "bad_password"
