from datetime import timedelta

import pytest

from ptstudio.ledger import StoreUnavailableError
from ptstudio.services.balance import calculate_remaining_sessions, refresh_client_balance
from ptstudio.services.duplicate_guard import has_recent_check_in, seconds_until_allowed


# ===== Session Balance Calculator =====

def test_balance_sums_all_purchases(store, trainer_id):
    client_id = store.add_client(trainer_id)
    store.add_purchase(client_id, remaining_sessions=4)
    store.add_purchase(client_id, remaining_sessions=0)
    store.add_purchase(client_id, remaining_sessions=6)

    assert calculate_remaining_sessions(store, client_id) == 10


def test_balance_is_zero_without_purchases(store, trainer_id):
    client_id = store.add_client(trainer_id)

    assert calculate_remaining_sessions(store, client_id) == 0


def test_balance_of_unknown_client_raises(store):
    with pytest.raises(LookupError):
        calculate_remaining_sessions(store, 404)


def test_balance_with_store_down_raises_instead_of_zero(store, trainer_id):
    client_id = store.add_client(trainer_id)
    store.fail("list_purchases", StoreUnavailableError("Can't connect to MySQL server"))

    with pytest.raises(LookupError):
        calculate_remaining_sessions(store, client_id)


def test_balance_still_computed_for_deleted_client(store, trainer_id):
    client_id = store.add_client(trainer_id)
    store.add_purchase(client_id, remaining_sessions=2)
    store.soft_delete_client(client_id)

    assert calculate_remaining_sessions(store, client_id) == 2


def test_refresh_rewrites_drifted_cache(store, trainer_id):
    client_id = store.add_client(trainer_id)
    store.add_purchase(client_id, remaining_sessions=7)
    store.clients[client_id]["remaining_sessions"] = 12

    assert refresh_client_balance(store, client_id) == 7
    assert store.clients[client_id]["remaining_sessions"] == 7


# ===== Duplicate Guard =====

def test_no_sessions_means_no_recent_check_in(store, clock, trainer_id):
    client_id = store.add_client(trainer_id)

    assert has_recent_check_in(store, client_id, 30, now=clock()) is False
    assert seconds_until_allowed(store, client_id, 30, now=clock()) == 0


def test_guard_window_boundaries(store, clock, trainer_id):
    client_id = store.add_client(trainer_id)
    store.insert_session(client_id, trainer_id)

    assert has_recent_check_in(store, client_id, 30, now=clock() + timedelta(seconds=29)) is True
    assert has_recent_check_in(store, client_id, 30, now=clock() + timedelta(seconds=30)) is True
    assert has_recent_check_in(store, client_id, 30, now=clock() + timedelta(seconds=31)) is False


def test_guard_uses_store_time_by_default(store, clock, trainer_id):
    client_id = store.add_client(trainer_id)
    store.insert_session(client_id, trainer_id)
    clock.advance(12)

    assert has_recent_check_in(store, client_id) is True
    assert seconds_until_allowed(store, client_id) == 18


def test_guard_only_looks_at_the_given_client(store, trainer_id):
    client_id = store.add_client(trainer_id, "A")
    other_id = store.add_client(trainer_id, "B")
    store.insert_session(other_id, trainer_id)

    assert has_recent_check_in(store, client_id) is False
