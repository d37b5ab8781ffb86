# backend/tests/unit/test_cache.py
import pytest

from ledgerbot.services.cache_service import ExtractionCache, ExtractionCaches, confirm_staged


@pytest.fixture
def cache(clock):
    return ExtractionCache("documents", default_ttl=300, clock=clock)


def test_put_then_get_within_ttl(cache, clock):
    cache.put("alice", {"rows": 3})
    clock.advance(300)
    assert cache.get("alice") == {"rows": 3}


def test_read_past_ttl_is_absent_and_evicts(cache, clock):
    cache.put("alice", {"rows": 3})
    clock.advance(300.5)

    assert cache.get("alice") is None
    assert len(cache) == 0
    # A second read of the evicted key is still just a miss
    assert cache.get("alice") is None


def test_put_replaces_wholesale_and_restarts_ttl(cache, clock):
    cache.put("alice", {"rows": 3})
    clock.advance(200)
    cache.put("alice", {"rows": 1})
    clock.advance(200)
    assert cache.get("alice") == {"rows": 1}


def test_custom_ttl_overrides_default(cache, clock):
    cache.put("alice", "short", ttl_seconds=10)
    clock.advance(11)
    assert cache.get("alice") is None


def test_non_positive_ttl_is_rejected(cache, clock):
    with pytest.raises(ValueError):
        cache.put("alice", "x", ttl_seconds=0)
    with pytest.raises(ValueError):
        ExtractionCache("documents", default_ttl=0, clock=clock)


def test_pop_consumes_entry(cache):
    cache.put("alice", "payload")
    assert cache.pop("alice") == "payload"
    assert cache.get("alice") is None
    assert cache.pop("alice") is None


def test_delete_reports_whether_something_was_removed(cache):
    cache.put("alice", "payload")
    assert cache.delete("alice") is True
    assert cache.delete("alice") is False


def test_namespaces_sharing_a_store_do_not_collide(clock):
    caches = ExtractionCaches(categorization_ttl=1800, document_ttl=300, clock=clock)
    caches.categorization.put("alice", "working-set")
    caches.documents.put("alice", "batch")

    clock.advance(301)

    assert caches.documents.get("alice") is None
    assert caches.categorization.get("alice") == "working-set"


def test_ages_and_clear_user(clock):
    caches = ExtractionCaches(categorization_ttl=1800, document_ttl=300, clock=clock)
    caches.documents.put("alice", "batch")
    clock.advance(42)

    assert caches.ages("alice") == {"categorization": None, "documents": 42}
    assert caches.clear_user("alice") == 1
    assert caches.ages("alice") == {"categorization": None, "documents": None}


def test_sweep_expired_reclaims_unread_entries(clock):
    caches = ExtractionCaches(categorization_ttl=1800, document_ttl=300, clock=clock)
    caches.documents.put("alice", "batch")
    caches.documents.put("bob", "batch")
    caches.categorization.put("alice", "working-set")
    clock.advance(301)

    assert caches.sweep_expired() == 2
    assert len(caches.documents) == 0
    assert len(caches.categorization) == 1


def test_confirm_staged_needs_only_user_and_namespace(cache, clock):
    cache.put("alice", "batch")
    assert confirm_staged(cache, "alice") == "batch"
    assert confirm_staged(cache, "alice") is None

    cache.put("bob", "batch")
    clock.advance(301)
    assert confirm_staged(cache, "bob") is None
