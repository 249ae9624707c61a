"""Tests for the in-memory post store."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

from postgate.services.posts import InMemoryPostStore, seed_posts


def test_list_returns_posts_in_creation_order(post_store: InMemoryPostStore) -> None:
    created = post_store.create("Fourth", "Body", "Grace Hopper")

    posts = post_store.list()

    assert [post.id for post in posts] == ["1", "2", "3", "4"]
    assert posts[-1] == created


def test_find_returns_post_or_none(post_store: InMemoryPostStore) -> None:
    assert post_store.find("2").author == "Jane Smith"
    assert post_store.find("missing") is None


def test_filter_by_author_is_case_insensitive_substring(
    post_store: InMemoryPostStore,
) -> None:
    assert [post.id for post in post_store.filter_by_author("SMITH")] == ["2"]
    assert [post.id for post in post_store.filter_by_author("j")] == ["1", "2", "3"]
    assert len(post_store.filter_by_author("")) == 3
    assert post_store.filter_by_author("nonexistent-xyz") == []


def test_create_stamps_time_and_continues_after_seeded_ids() -> None:
    fixed = datetime(2024, 3, 1, 8, 0, tzinfo=UTC)
    store = InMemoryPostStore.with_posts(seed_posts())
    store.clock = lambda: fixed

    post = store.create("Title", "Content", "Author")

    assert post.id == "4"
    assert post.created_at == fixed
    assert store.find("4") == post


def test_list_snapshot_is_not_affected_by_later_writes(
    post_store: InMemoryPostStore,
) -> None:
    snapshot = post_store.list()
    post_store.create("Later", "Body", "Author")

    assert len(snapshot) == 3
    assert len(post_store.list()) == 4


def test_concurrent_creates_yield_distinct_ids() -> None:
    store = InMemoryPostStore()
    workers = 32
    barrier = threading.Barrier(workers)

    def create(index: int) -> str:
        barrier.wait()
        return store.create(f"Title {index}", "Content", "Author").id

    with ThreadPoolExecutor(max_workers=workers) as pool:
        ids = list(pool.map(create, range(workers)))

    assert len(set(ids)) == workers
    assert sorted(int(post_id) for post_id in ids) == list(range(1, workers + 1))
    assert len(store.list()) == workers
