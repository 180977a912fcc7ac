from ptstudio.ledger import StoreError
from ptstudio.tasks.balance_jobs import job_reconcile_balances


def test_reconcile_corrects_only_drifted_clients(store, trainer_id):
    in_sync = store.add_client(trainer_id)
    store.add_purchase(in_sync, remaining_sessions=3)
    drifted = store.add_client(trainer_id)
    store.add_purchase(drifted, remaining_sessions=5)
    store.clients[drifted]["remaining_sessions"] = 6

    corrected = job_reconcile_balances(store)

    assert corrected == 1
    assert store.clients[drifted]["remaining_sessions"] == 5
    assert store.clients[in_sync]["remaining_sessions"] == 3


def test_reconcile_skips_failing_client(store, trainer_id):
    first = store.add_client(trainer_id)
    store.add_purchase(first, remaining_sessions=2)
    store.clients[first]["remaining_sessions"] = 0
    second = store.add_client(trainer_id)
    store.add_purchase(second, remaining_sessions=2)
    store.clients[second]["remaining_sessions"] = 0
    store.fail("update_client_remaining_sessions", StoreError("deadlock"))

    corrected = job_reconcile_balances(store)

    assert corrected == 1
    assert store.clients[first]["remaining_sessions"] == 0
    assert store.clients[second]["remaining_sessions"] == 2


def test_reconcile_with_store_down(store):
    store.fail("list_client_ids")

    assert job_reconcile_balances(store) == 0
