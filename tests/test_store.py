import threading
from datetime import datetime, timezone

import pytest

from collagify.errors import DuplicateChannelError, StoreError
from collagify.services.store import AggregationStore, ReadWriteLock


def test_list_channels_is_sorted(store):
    for chat_id in (30, -100200, 7):
        store.register_channel(chat_id, datetime(2024, 8, 31, 12, 0))

    assert store.list_channels() == [-100200, 7, 30]


def test_register_channel_twice_raises_duplicate(store):
    store.register_channel(1337, datetime(2024, 8, 31, 12, 0))

    with pytest.raises(DuplicateChannelError) as excinfo:
        store.register_channel(1337, datetime(2024, 9, 1, 12, 0))

    assert excinfo.value.chat_id == 1337
    assert isinstance(excinfo.value, StoreError)
    assert store.list_channels() == [1337]


def test_drain_groups_orders_and_partitions_by_day(store):
    # Inserted out of order on purpose
    store.record_link(1, 3, datetime(2024, 9, 1, 8, 0), "u3")
    store.record_link(1, 1, datetime(2024, 8, 31, 9, 0), "u1")
    store.record_link(1, 4, datetime(2024, 9, 2, 0, 0), "u4")
    store.record_link(1, 2, datetime(2024, 8, 31, 23, 59, 59), "u2")

    drained = store.drain_groups(1)

    assert drained.message_ids == [1, 2, 3, 4]
    assert [g.day for g in drained.groups] == ["2024-08-31", "2024-09-01", "2024-09-02"]
    assert [g.urls for g in drained.groups] == [["u1", "u2"], ["u3"], ["u4"]]
    assert [g.message_ids for g in drained.groups] == [[1, 2], [3], [4]]


def test_drain_groups_keeps_insertion_order_for_equal_timestamps(store):
    at = datetime(2024, 8, 31, 14, 19)
    for message_id in (5, 3, 9):
        store.record_link(1, message_id, at, f"u{message_id}")

    drained = store.drain_groups(1)

    assert drained.message_ids == [5, 3, 9]
    assert len(drained.groups) == 1


def test_drain_groups_is_scoped_to_channel(store):
    store.record_link(1, 1, datetime(2024, 8, 31, 9, 0), "a")
    store.record_link(2, 1, datetime(2024, 8, 31, 9, 0), "b")

    assert store.drain_groups(1).groups[0].urls == ["a"]
    assert store.drain_groups(2).groups[0].urls == ["b"]


def test_drain_unknown_channel_is_empty(store):
    drained = store.drain_groups(404)

    assert drained.message_ids == []
    assert drained.groups == []


def test_drain_does_not_delete(store):
    store.record_link(1, 1, datetime(2024, 8, 31, 9, 0), "a")

    store.drain_groups(1)

    assert store.drain_groups(1).message_ids == [1]


def test_aware_timestamps_are_stored_by_wall_clock(store):
    at = datetime(2024, 8, 31, 23, 30, tzinfo=timezone.utc)
    store.record_link(1, 1, at, "a")

    group = store.drain_groups(1).groups[0]

    assert group.day == "2024-08-31"
    assert group.links[0].submitted_at == datetime(2024, 8, 31, 23, 30)


def test_delete_links_is_idempotent(store):
    for message_id in (1, 2, 3):
        store.record_link(1, message_id, datetime(2024, 8, 31, 9, message_id), "u")

    assert store.delete_links(1, [1, 2]) == 2
    assert store.delete_links(1, [1, 2]) == 0
    assert store.drain_groups(1).message_ids == [3]


def test_delete_links_ignores_absent_ids_and_other_channels(store):
    store.record_link(1, 1, datetime(2024, 8, 31, 9, 0), "a")
    store.record_link(2, 1, datetime(2024, 8, 31, 9, 0), "b")

    store.delete_links(1, [1, 42])
    store.delete_links(1, [])

    assert store.drain_groups(1).message_ids == []
    assert store.drain_groups(2).message_ids == [1]


def test_store_persists_across_reopen(tmp_path):
    url = f"sqlite:///{tmp_path / 'persist.sqlite'}"
    first = AggregationStore(url)
    first.register_channel(1337, datetime(2024, 8, 31, 12, 0))
    first.record_link(1337, 8, datetime(2024, 8, 31, 14, 19), "a")
    first.close()

    second = AggregationStore(url)
    try:
        assert second.list_channels() == [1337]
        assert second.drain_groups(1337).message_ids == [8]
    finally:
        second.close()


def test_open_unreachable_database_raises_store_error(tmp_path):
    missing_dir = tmp_path / "missing" / "db.sqlite"

    with pytest.raises(StoreError):
        AggregationStore(f"sqlite:///{missing_dir}")


def test_writer_waits_for_readers():
    lock = ReadWriteLock()
    acquired = threading.Event()

    def writer():
        with lock.write():
            acquired.set()

    with lock.read():
        with lock.read():
            thread = threading.Thread(target=writer)
            thread.start()
            assert not acquired.wait(0.1)

    assert acquired.wait(1)
    thread.join()


def test_other_integrity_errors_are_not_reported_as_duplicates(store):
    with pytest.raises(StoreError) as excinfo:
        store.register_channel(1337, None)

    assert not isinstance(excinfo.value, DuplicateChannelError)
    assert store.list_channels() == []
