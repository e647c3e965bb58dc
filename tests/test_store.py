"""Tests for ledger storage backends and staged transactions."""

import json
import sqlite3

import pytest

from seatledger.ledger.models import Event, LedgerCounters, Ticket
from seatledger.ledger.store import (
    InMemoryLedgerStore,
    JSONLedgerStore,
    SQLiteLedgerStore,
    StorageError,
    StorageFactory,
    get_store,
)

# =============================================================================
# FIXTURES
# =============================================================================


def make_event(event_id: int = 1, available: int = 10) -> Event:
    return Event(
        event_id=event_id,
        name=f"Event {event_id}",
        description="",
        venue="Hall A",
        event_type="concert",
        event_height=500,
        total_supply=10,
        available_supply=available,
        base_price=1000,
        creator="organizer",
    )


def make_ticket(ticket_id: int = 1, owner: str = "alice", event_id: int = 1) -> Ticket:
    return Ticket(
        ticket_id=ticket_id,
        event_id=event_id,
        owner=owner,
        price_paid=1000,
        purchase_height=100,
        seat_info=f"S{ticket_id}",
    )


@pytest.fixture(params=["memory", "json", "sqlite"])
def store(request, tmp_path):
    """One store per backend."""
    if request.param == "memory":
        yield InMemoryLedgerStore()
    elif request.param == "json":
        yield JSONLedgerStore(tmp_path / "ledger.json")
    else:
        s = SQLiteLedgerStore(tmp_path / "ledger.db")
        yield s
        s.close()


@pytest.fixture(autouse=True)
def clear_factory_cache():
    yield
    StorageFactory.clear_cache()


# =============================================================================
# TRANSACTION TESTS
# =============================================================================


class TestTransaction:
    """Behaviour shared by every backend."""

    def test_empty_store(self, store):
        """A new store starts with fresh counters and no records."""
        assert store.get_counters() == LedgerCounters()
        assert store.list_events() == []
        assert store.list_tickets() == []

    def test_commit_applies_all_writes(self, store):
        """Writes become visible together when the block exits."""
        with store.transaction() as txn:
            event_id = txn.allocate_event_id()
            txn.put_event(make_event(event_id))
            ticket_id = txn.allocate_ticket_id()
            txn.put_ticket(make_ticket(ticket_id))
            txn.accrue_platform_revenue(50)

        assert store.get_event(1) == make_event(1)
        assert store.get_ticket(1) == make_ticket(1)
        assert store.get_counters() == LedgerCounters(
            next_event_id=2, next_ticket_id=2, total_platform_revenue=50
        )

    def test_exception_discards_writes(self, store):
        """Nothing is written when the block raises."""
        with pytest.raises(RuntimeError):
            with store.transaction() as txn:
                txn.put_event(make_event(txn.allocate_event_id()))
                txn.accrue_platform_revenue(10)
                raise RuntimeError("boom")

        assert store.get_event(1) is None
        assert store.get_counters() == LedgerCounters()

    def test_aborted_transaction_does_not_consume_ids(self, store):
        """Ids are only used up by committed transactions."""
        with pytest.raises(RuntimeError):
            with store.transaction() as txn:
                txn.allocate_ticket_id()
                raise RuntimeError("boom")

        with store.transaction() as txn:
            assert txn.allocate_ticket_id() == 1

    def test_reads_see_staged_writes(self, store):
        """A transaction reads its own writes before they commit."""
        with store.transaction() as txn:
            txn.put_event(make_event(1, available=10))
            txn.put_event(make_event(1, available=7))

            assert txn.get_event(1).available_supply == 7
            assert store.get_event(1) is None

        assert store.get_event(1).available_supply == 7

    def test_update_replaces_record(self, store):
        with store.transaction() as txn:
            txn.put_ticket(make_ticket(1, owner="alice"))
        with store.transaction() as txn:
            txn.put_ticket(make_ticket(1, owner="bob"))

        assert store.get_ticket(1).owner == "bob"
        assert len(store.list_tickets()) == 1

    def test_negative_revenue_rejected(self, store):
        """The revenue accumulator only grows."""
        with pytest.raises(ValueError):
            with store.transaction() as txn:
                txn.accrue_platform_revenue(-1)

        assert store.get_counters().total_platform_revenue == 0

    def test_supply_out_of_range_rejected(self, store):
        """Available supply must stay within 0..total."""
        with pytest.raises(ValueError):
            with store.transaction() as txn:
                txn.put_event(make_event(1, available=11))
        with pytest.raises(ValueError):
            with store.transaction() as txn:
                txn.put_event(make_event(1, available=-1))

        assert store.get_event(1) is None

    def test_list_tickets_filters(self, store):
        with store.transaction() as txn:
            txn.put_event(make_event(1))
            txn.put_event(make_event(2))
            txn.put_ticket(make_ticket(3, owner="bob", event_id=2))
            txn.put_ticket(make_ticket(1, owner="alice", event_id=1))
            txn.put_ticket(make_ticket(2, owner="alice", event_id=2))

        assert [t.ticket_id for t in store.list_tickets()] == [1, 2, 3]
        assert [t.ticket_id for t in store.list_tickets(owner="alice")] == [1, 2]
        assert [t.ticket_id for t in store.list_tickets(event_id=2)] == [2, 3]
        assert [t.ticket_id for t in store.list_tickets(owner="alice", event_id=2)] == [2]

    def test_snapshot(self, store):
        with store.transaction() as txn:
            txn.put_event(make_event(txn.allocate_event_id()))

        snapshot = store.snapshot()

        assert snapshot.events == {1: make_event(1)}
        assert snapshot.counters.next_event_id == 2

    def test_backup_and_restore(self, store, tmp_path):
        """Restoring a backup brings back the state at backup time."""
        with store.transaction() as txn:
            txn.put_event(make_event(txn.allocate_event_id()))

        backup_path = tmp_path / "backups" / "ledger.bak"
        assert store.backup(backup_path) is True

        with store.transaction() as txn:
            txn.put_event(make_event(txn.allocate_event_id()))
        assert len(store.list_events()) == 2

        assert store.restore(backup_path) is True
        assert [e.event_id for e in store.list_events()] == [1]
        assert store.get_counters().next_event_id == 2

    def test_restore_missing_backup(self, store, tmp_path):
        assert store.restore(tmp_path / "nope.bak") is False

    def test_restore_corrupt_backup(self, store, tmp_path):
        """A damaged backup is refused and the live ledger is kept."""
        with store.transaction() as txn:
            txn.put_event(make_event(txn.allocate_event_id()))
        before = store.snapshot()

        bad = tmp_path / "bad.bak"
        bad.write_text("not a database")

        with pytest.raises(StorageError):
            store.restore(bad)

        assert store.snapshot() == before
        assert store.get_event(1) == make_event(1)

    def test_restore_unrelated_sqlite_file(self, tmp_path):
        """A valid database without the ledger tables is not a backup."""
        store = SQLiteLedgerStore(tmp_path / "ledger.db")
        with store.transaction() as txn:
            txn.put_event(make_event(txn.allocate_event_id()))

        other = tmp_path / "other.db"
        conn = sqlite3.connect(other)
        conn.execute("CREATE TABLE notes (body TEXT)")
        conn.commit()
        conn.close()

        try:
            with pytest.raises(StorageError):
                store.restore(other)
            assert store.get_event(1) == make_event(1)
        finally:
            store.close()


# =============================================================================
# PERSISTENCE TESTS
# =============================================================================


class TestPersistence:
    """File backends survive reopening."""

    def test_json_reload(self, tmp_path):
        path = tmp_path / "ledger.json"
        store = JSONLedgerStore(path)
        with store.transaction() as txn:
            txn.put_event(make_event(txn.allocate_event_id()))
            txn.put_ticket(make_ticket(txn.allocate_ticket_id()))

        reopened = JSONLedgerStore(path)

        assert reopened.get_event(1) == make_event(1)
        assert reopened.get_ticket(1) == make_ticket(1)
        assert reopened.get_counters().next_ticket_id == 2

    def test_json_file_layout(self, tmp_path):
        path = tmp_path / "ledger.json"
        store = JSONLedgerStore(path)
        with store.transaction() as txn:
            txn.put_event(make_event(txn.allocate_event_id()))

        data = json.loads(path.read_text())

        assert set(data) == {"events", "tickets", "metadata"}
        assert data["events"]["1"]["name"] == "Event 1"
        assert data["metadata"]["next_event_id"] == 2

    def test_json_corrupt_file(self, tmp_path):
        """A damaged ledger file is an error, not an empty ledger."""
        path = tmp_path / "ledger.json"
        path.write_text("{not json")

        with pytest.raises(StorageError):
            JSONLedgerStore(path)

    def test_sqlite_reload(self, tmp_path):
        path = tmp_path / "ledger.db"
        store = SQLiteLedgerStore(path)
        with store.transaction() as txn:
            txn.put_event(make_event(txn.allocate_event_id()))
            txn.accrue_platform_revenue(75)
        store.close()

        reopened = SQLiteLedgerStore(path)
        try:
            assert reopened.get_event(1) == make_event(1)
            assert reopened.get_counters().total_platform_revenue == 75
        finally:
            reopened.close()


# =============================================================================
# FACTORY TESTS
# =============================================================================


class TestStorageFactory:
    """Tests for backend selection."""

    def test_file_stores_are_cached(self, tmp_path):
        path = tmp_path / "ledger.json"
        assert StorageFactory.create("json", path) is StorageFactory.create("json", path)

    def test_memory_stores_are_fresh(self):
        assert StorageFactory.create("memory") is not StorageFactory.create("memory")

    def test_unknown_type(self, tmp_path):
        with pytest.raises(ValueError):
            StorageFactory.create("postgres", tmp_path / "x")

    def test_file_store_needs_path(self):
        with pytest.raises(ValueError):
            StorageFactory.create("json")

    def test_get_store_sqlite(self, tmp_path):
        store = get_store(tmp_path / "ledger.db", storage_type="sqlite")
        assert isinstance(store, SQLiteLedgerStore)

    def test_get_default(self, tmp_path):
        store = StorageFactory.get_default(tmp_path)
        assert isinstance(store, JSONLedgerStore)
        assert store.path == tmp_path / ".seatledger" / "ledger.json"
