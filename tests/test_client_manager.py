import threading

import pytest

from mdfeed.client_manager import ClientManager


@pytest.fixture
def manager():
    return ClientManager()


def test_starts_empty(manager):
    assert len(manager) == 0
    assert manager.all_clients() == []


def test_add_and_remove_clients(manager):
    manager.add_client(5)
    manager.add_client(6)
    assert len(manager) == 2
    assert sorted(manager.all_clients()) == [5, 6]
    manager.remove_client(5)
    assert manager.all_clients() == [6]


def test_remove_unknown_client_is_harmless(manager):
    manager.add_client(5)
    manager.remove_client(99)
    assert manager.all_clients() == [5]


def test_new_client_has_fresh_stats(manager):
    manager.add_client(7)
    info = manager.client_info(7)
    assert info.fd == 7
    assert (info.messages_sent, info.bytes_sent, info.send_errors, info.is_slow) == (
        0,
        0,
        0,
        False,
    )


def test_unknown_client_info_is_none(manager):
    assert manager.client_info(42) is None


def test_update_stats_success_and_failure(manager):
    manager.add_client(7)
    manager.update_stats(7, 32, True)
    manager.update_stats(7, 44, True)
    manager.update_stats(7, 44, False)
    info = manager.client_info(7)
    assert info.messages_sent == 2
    assert info.bytes_sent == 32 + 44
    assert info.send_errors == 1


def test_update_stats_for_unknown_client_is_ignored(manager):
    manager.update_stats(9, 32, True)
    assert manager.client_info(9) is None
    assert len(manager) == 0


def test_client_info_is_a_copy(manager):
    manager.add_client(7)
    info = manager.client_info(7)
    info.messages_sent = 100
    assert manager.client_info(7).messages_sent == 0


def test_mark_slow_client(manager):
    manager.add_client(7)
    manager.mark_slow_client(7)
    manager.mark_slow_client(8)
    assert manager.client_info(7).is_slow is True
    assert manager.client_info(8) is None


def test_re_adding_resets_stats(manager):
    manager.add_client(7)
    manager.update_stats(7, 10, True)
    manager.add_client(7)
    assert manager.client_info(7).messages_sent == 0
    assert len(manager) == 1


def test_subscribe_and_query(manager):
    manager.add_client(3)
    manager.subscribe(3, {0, 1})
    assert manager.is_subscribed(3, 0)
    assert manager.is_subscribed(3, 1)
    assert not manager.is_subscribed(3, 2)
    assert manager.subscription_count(3) == 2


def test_subscribe_replaces_previous_set(manager):
    manager.subscribe(3, [0, 1, 2])
    manager.subscribe(3, [5])
    assert manager.subscription_count(3) == 1
    assert not manager.is_subscribed(3, 0)
    assert manager.is_subscribed(3, 5)


def test_subscribe_deduplicates(manager):
    manager.subscribe(3, [4, 4, 4])
    assert manager.subscription_count(3) == 1


def test_unsubscribe(manager):
    manager.subscribe(3, {0, 1})
    manager.unsubscribe(3, 0)
    manager.unsubscribe(4, 0)
    assert not manager.is_subscribed(3, 0)
    assert manager.subscription_count(3) == 1


def test_clear_subscriptions(manager):
    manager.subscribe(3, {0, 1})
    manager.clear_subscriptions(3)
    assert manager.subscription_count(3) == 0
    assert not manager.is_subscribed(3, 1)


def test_unknown_client_has_no_subscriptions(manager):
    assert manager.subscription_count(11) == 0
    assert not manager.is_subscribed(11, 0)


def test_subscribed_clients(manager):
    manager.subscribe(1, {0})
    manager.subscribe(2, {0, 1})
    manager.subscribe(3, {1})
    assert sorted(manager.subscribed_clients(0)) == [1, 2]
    assert sorted(manager.subscribed_clients(1)) == [2, 3]
    assert manager.subscribed_clients(9) == []


def test_remove_client_clears_subscriptions(manager):
    manager.add_client(1)
    manager.subscribe(1, {0})
    manager.remove_client(1)
    assert manager.subscribed_clients(0) == []
    assert manager.subscription_count(1) == 0


def test_concurrent_updates_are_counted(manager):
    manager.add_client(1)

    def worker():
        for _ in range(1000):
            manager.update_stats(1, 2, True)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    info = manager.client_info(1)
    assert info.messages_sent == 4 * 1000
    assert info.bytes_sent == 4 * 1000 * 2