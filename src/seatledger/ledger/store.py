"""
Ledger storage backends.

Provides:
- LedgerStore: Abstract base class for storage
- LedgerTransaction: Staged writes applied to a store in one step
- InMemoryLedgerStore: Dictionary-backed storage
- JSONLedgerStore: JSON file-based storage
- SQLiteLedgerStore: SQLite database storage
- StorageFactory: Factory for creating stores

Stores only expose reads. Every write goes through ``transaction()``,
which buffers changes and applies them together when the block exits
cleanly, or drops them when it raises.
"""

import json
import logging
import os
import shutil
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from seatledger.ledger.models import Event, LedgerCounters, LedgerSnapshot, Ticket

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a backing file or database cannot be read."""


@dataclass
class StagedChanges:
    """Writes collected by a transaction, ready to be applied."""

    events: Dict[int, Event] = field(default_factory=dict)
    tickets: Dict[int, Ticket] = field(default_factory=dict)
    counters: LedgerCounters = field(default_factory=LedgerCounters)


class LedgerTransaction:
    """
    Write buffer over a LedgerStore.

    Reads see the transaction's own staged writes first and fall back to
    committed state. Nothing reaches the store until the owning
    ``LedgerStore.transaction()`` block exits without an exception.

    Also acts as the id allocator: event and ticket ids are handed out
    from the staged counters, so an aborted transaction never consumes
    an id.
    """

    def __init__(self, store: "LedgerStore"):
        self._store = store
        self._events: Dict[int, Event] = {}
        self._tickets: Dict[int, Ticket] = {}
        self._initial_counters = store.get_counters()
        self._counters = self._initial_counters

    @property
    def counters(self) -> LedgerCounters:
        return self._counters

    @property
    def has_changes(self) -> bool:
        return bool(
            self._events
            or self._tickets
            or self._counters != self._initial_counters
        )

    def get_event(self, event_id: int) -> Optional[Event]:
        if event_id in self._events:
            return self._events[event_id]
        return self._store.get_event(event_id)

    def get_ticket(self, ticket_id: int) -> Optional[Ticket]:
        if ticket_id in self._tickets:
            return self._tickets[ticket_id]
        return self._store.get_ticket(ticket_id)

    def put_event(self, event: Event) -> None:
        if not 0 <= event.available_supply <= event.total_supply:
            raise ValueError(
                f"event {event.event_id}: available_supply {event.available_supply} "
                f"outside 0..{event.total_supply}"
            )
        self._events[event.event_id] = event

    def put_ticket(self, ticket: Ticket) -> None:
        self._tickets[ticket.ticket_id] = ticket

    def allocate_event_id(self) -> int:
        """Reserve the next event id."""
        event_id = self._counters.next_event_id
        self._counters = replace(self._counters, next_event_id=event_id + 1)
        return event_id

    def allocate_ticket_id(self) -> int:
        """Reserve the next ticket id."""
        ticket_id = self._counters.next_ticket_id
        self._counters = replace(self._counters, next_ticket_id=ticket_id + 1)
        return ticket_id

    def accrue_platform_revenue(self, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"platform revenue cannot decrease (got {amount})")
        self._counters = replace(
            self._counters,
            total_platform_revenue=self._counters.total_platform_revenue + amount,
        )

    def changes(self) -> StagedChanges:
        return StagedChanges(
            events=dict(self._events),
            tickets=dict(self._tickets),
            counters=self._counters,
        )


class LedgerStore(ABC):
    """
    Abstract base class for ledger storage.

    All storage backends must implement these methods.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()

    @abstractmethod
    def get_event(self, event_id: int) -> Optional[Event]:
        """Get an event by ID."""
        pass

    @abstractmethod
    def get_ticket(self, ticket_id: int) -> Optional[Ticket]:
        """Get a ticket by ID."""
        pass

    @abstractmethod
    def list_events(self) -> List[Event]:
        """List all events ordered by ID."""
        pass

    @abstractmethod
    def list_tickets(
        self,
        owner: Optional[str] = None,
        event_id: Optional[int] = None,
    ) -> List[Ticket]:
        """List tickets ordered by ID with optional filters."""
        pass

    @abstractmethod
    def get_counters(self) -> LedgerCounters:
        """Get the id generators and revenue accumulator."""
        pass

    @abstractmethod
    def _apply(self, changes: StagedChanges) -> None:
        """Write a set of staged changes in one step."""
        pass

    # Backup support
    @abstractmethod
    def backup(self, backup_path: Path) -> bool:
        """Create a backup of the storage."""
        pass

    @abstractmethod
    def restore(self, backup_path: Path) -> bool:
        """Restore from a backup."""
        pass

    @contextmanager
    def transaction(self) -> Iterator[LedgerTransaction]:
        """
        Open a write transaction.

        Example:
            with store.transaction() as txn:
                event_id = txn.allocate_event_id()
                txn.put_event(Event(event_id=event_id, ...))
            # committed here; an exception inside the block discards it
        """
        with self._lock:
            txn = LedgerTransaction(self)
            try:
                yield txn
            except BaseException:
                logger.debug("Ledger transaction discarded")
                raise
            if txn.has_changes:
                changes = txn.changes()
                self._apply(changes)
                logger.debug(
                    f"Ledger transaction committed: {len(changes.events)} event(s), "
                    f"{len(changes.tickets)} ticket(s)"
                )

    def snapshot(self) -> LedgerSnapshot:
        """Copy the committed state."""
        with self._lock:
            return LedgerSnapshot(
                events={e.event_id: e for e in self.list_events()},
                tickets={t.ticket_id: t for t in self.list_tickets()},
                counters=self.get_counters(),
            )


def _snapshot_to_dict(snapshot: LedgerSnapshot) -> Dict[str, Any]:
    return {
        "events": {str(k): e.to_dict() for k, e in snapshot.events.items()},
        "tickets": {str(k): t.to_dict() for k, t in snapshot.tickets.items()},
        "metadata": snapshot.counters.to_dict(),
    }


def _snapshot_from_dict(data: Dict[str, Any]) -> LedgerSnapshot:
    return LedgerSnapshot(
        events={int(k): Event.from_dict(v) for k, v in data.get("events", {}).items()},
        tickets={int(k): Ticket.from_dict(v) for k, v in data.get("tickets", {}).items()},
        counters=LedgerCounters.from_dict(data.get("metadata", {})),
    )


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise StorageError(f"Corrupt ledger file {path}: {e}") from e


class InMemoryLedgerStore(LedgerStore):
    """
    Dictionary-backed ledger storage.

    Used for tests and embedding; nothing survives the process.
    """

    def __init__(self, snapshot: Optional[LedgerSnapshot] = None):
        super().__init__()
        snapshot = snapshot or LedgerSnapshot()
        self._events: Dict[int, Event] = dict(snapshot.events)
        self._tickets: Dict[int, Ticket] = dict(snapshot.tickets)
        self._counters = snapshot.counters

    def get_event(self, event_id: int) -> Optional[Event]:
        with self._lock:
            return self._events.get(event_id)

    def get_ticket(self, ticket_id: int) -> Optional[Ticket]:
        with self._lock:
            return self._tickets.get(ticket_id)

    def list_events(self) -> List[Event]:
        with self._lock:
            return [self._events[k] for k in sorted(self._events)]

    def list_tickets(
        self,
        owner: Optional[str] = None,
        event_id: Optional[int] = None,
    ) -> List[Ticket]:
        with self._lock:
            tickets = []
            for key in sorted(self._tickets):
                ticket = self._tickets[key]
                if owner is not None and ticket.owner != owner:
                    continue
                if event_id is not None and ticket.event_id != event_id:
                    continue
                tickets.append(ticket)
            return tickets

    def get_counters(self) -> LedgerCounters:
        with self._lock:
            return self._counters

    def _apply(self, changes: StagedChanges) -> None:
        with self._lock:
            self._events.update(changes.events)
            self._tickets.update(changes.tickets)
            self._counters = changes.counters

    def backup(self, backup_path: Path) -> bool:
        """Write the current state to a JSON file."""
        try:
            backup_path = Path(backup_path)
            backup_path.parent.mkdir(parents=True, exist_ok=True)
            with open(backup_path, "w", encoding="utf-8") as f:
                json.dump(_snapshot_to_dict(self.snapshot()), f, indent=2)
            return True
        except OSError as e:
            logger.warning(f"Ledger backup to {backup_path} failed: {e}")
            return False

    def restore(self, backup_path: Path) -> bool:
        """Replace the current state with a JSON backup."""
        backup_path = Path(backup_path)
        if not backup_path.exists():
            return False

        snapshot = _snapshot_from_dict(_read_json(backup_path))
        with self._lock:
            self._events = dict(snapshot.events)
            self._tickets = dict(snapshot.tickets)
            self._counters = snapshot.counters
        return True


class JSONLedgerStore(LedgerStore):
    """
    JSON file-based ledger storage.

    Stores the ledger in a JSON file with the structure:
    {
        "events": {...},
        "tickets": {...},
        "metadata": {...}
    }

    Each commit rewrites the file through a temporary sibling, so a
    failed write leaves both the file and the in-memory copy untouched.
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._data: Dict[str, Any] = {
            "events": {},
            "tickets": {},
            "metadata": {
                "version": "1.0",
                "created_at": datetime.now().isoformat(),
                "last_modified": datetime.now().isoformat(),
                **LedgerCounters().to_dict(),
            },
        }
        self._load()

    def _load(self) -> None:
        """Load data from file."""
        if self.path.exists():
            with self._lock:
                data = _read_json(self.path)
                data.setdefault("events", {})
                data.setdefault("tickets", {})
                data.setdefault("metadata", LedgerCounters().to_dict())
                self._data = data
                logger.debug(f"Loaded ledger from {self.path}")

    def _write(self, data: Dict[str, Any]) -> None:
        data["metadata"]["last_modified"] = datetime.now().isoformat()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.path)

    def get_event(self, event_id: int) -> Optional[Event]:
        with self._lock:
            data = self._data["events"].get(str(event_id))
            if data:
                return Event.from_dict(data)
            return None

    def get_ticket(self, ticket_id: int) -> Optional[Ticket]:
        with self._lock:
            data = self._data["tickets"].get(str(ticket_id))
            if data:
                return Ticket.from_dict(data)
            return None

    def list_events(self) -> List[Event]:
        with self._lock:
            events = [Event.from_dict(d) for d in self._data["events"].values()]
            return sorted(events, key=lambda e: e.event_id)

    def list_tickets(
        self,
        owner: Optional[str] = None,
        event_id: Optional[int] = None,
    ) -> List[Ticket]:
        with self._lock:
            tickets = []
            for data in self._data["tickets"].values():
                if owner is not None and data.get("owner") != owner:
                    continue
                if event_id is not None and int(data.get("event_id", 0)) != event_id:
                    continue
                tickets.append(Ticket.from_dict(data))
            return sorted(tickets, key=lambda t: t.ticket_id)

    def get_counters(self) -> LedgerCounters:
        with self._lock:
            return LedgerCounters.from_dict(self._data["metadata"])

    def _apply(self, changes: StagedChanges) -> None:
        with self._lock:
            data = {
                "events": dict(self._data["events"]),
                "tickets": dict(self._data["tickets"]),
                "metadata": dict(self._data["metadata"]),
            }
            for event_id, event in changes.events.items():
                data["events"][str(event_id)] = event.to_dict()
            for ticket_id, ticket in changes.tickets.items():
                data["tickets"][str(ticket_id)] = ticket.to_dict()
            data["metadata"].update(changes.counters.to_dict())

            self._write(data)
            self._data = data

    def backup(self, backup_path: Path) -> bool:
        """Create a backup of the storage."""
        try:
            with self._lock:
                backup_path = Path(backup_path)
                backup_path.parent.mkdir(parents=True, exist_ok=True)
                if self.path.exists():
                    shutil.copy2(self.path, backup_path)
                else:
                    with open(backup_path, "w", encoding="utf-8") as f:
                        json.dump(self._data, f, indent=2, ensure_ascii=False)
            return True
        except OSError as e:
            logger.warning(f"Ledger backup to {backup_path} failed: {e}")
            return False

    def restore(self, backup_path: Path) -> bool:
        """Restore from a backup."""
        backup_path = Path(backup_path)
        if not backup_path.exists():
            return False

        with self._lock:
            _read_json(backup_path)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(backup_path, self.path)
            self._load()
        return True


class SQLiteLedgerStore(LedgerStore):
    """
    SQLite database ledger storage.

    Each commit runs as a single SQL transaction.
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._local = threading.local()
        self._init_db()

    @property
    def _conn(self) -> sqlite3.Connection:
        """Get thread-local connection."""
        if not hasattr(self._local, "conn"):
            self._local.conn = sqlite3.connect(
                self.path,
                check_same_thread=False,
            )
            self._local.conn.row_factory = sqlite3.Row
        return self._local.conn

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Get a cursor with automatic commit."""
        cursor = self._conn.cursor()
        try:
            yield cursor
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise
        finally:
            cursor.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        with self._cursor() as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    event_id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    event_height INTEGER NOT NULL,
                    available_supply INTEGER NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1,
                    data TEXT NOT NULL  -- Full JSON data
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tickets (
                    ticket_id INTEGER PRIMARY KEY,
                    event_id INTEGER NOT NULL,
                    owner TEXT NOT NULL,
                    data TEXT NOT NULL  -- Full JSON data
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

            for key, value in LedgerCounters().to_dict().items():
                cursor.execute(
                    "INSERT OR IGNORE INTO metadata (key, value) VALUES (?, ?)",
                    (key, str(value)),
                )

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_tickets_owner ON tickets(owner)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_tickets_event ON tickets(event_id)"
            )

    def get_event(self, event_id: int) -> Optional[Event]:
        with self._cursor() as cursor:
            cursor.execute("SELECT data FROM events WHERE event_id = ?", (event_id,))
            row = cursor.fetchone()
            if row:
                return Event.from_dict(json.loads(row["data"]))
            return None

    def get_ticket(self, ticket_id: int) -> Optional[Ticket]:
        with self._cursor() as cursor:
            cursor.execute("SELECT data FROM tickets WHERE ticket_id = ?", (ticket_id,))
            row = cursor.fetchone()
            if row:
                return Ticket.from_dict(json.loads(row["data"]))
            return None

    def list_events(self) -> List[Event]:
        with self._cursor() as cursor:
            cursor.execute("SELECT data FROM events ORDER BY event_id")
            return [Event.from_dict(json.loads(row["data"])) for row in cursor.fetchall()]

    def list_tickets(
        self,
        owner: Optional[str] = None,
        event_id: Optional[int] = None,
    ) -> List[Ticket]:
        query = "SELECT data FROM tickets WHERE 1=1"
        params: List[Any] = []

        if owner is not None:
            query += " AND owner = ?"
            params.append(owner)
        if event_id is not None:
            query += " AND event_id = ?"
            params.append(event_id)

        query += " ORDER BY ticket_id"

        with self._cursor() as cursor:
            cursor.execute(query, params)
            return [Ticket.from_dict(json.loads(row["data"])) for row in cursor.fetchall()]

    def get_counters(self) -> LedgerCounters:
        with self._cursor() as cursor:
            cursor.execute("SELECT key, value FROM metadata")
            return LedgerCounters.from_dict({row["key"]: row["value"] for row in cursor.fetchall()})

    def _apply(self, changes: StagedChanges) -> None:
        with self._lock, self._cursor() as cursor:
            for event in changes.events.values():
                cursor.execute(
                    """
                    INSERT OR REPLACE INTO events (
                        event_id, name, event_height, available_supply, active, data
                    ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                    (
                        event.event_id,
                        event.name,
                        event.event_height,
                        event.available_supply,
                        1 if event.active else 0,
                        json.dumps(event.to_dict()),
                    ),
                )

            for ticket in changes.tickets.values():
                cursor.execute(
                    """
                    INSERT OR REPLACE INTO tickets (ticket_id, event_id, owner, data)
                    VALUES (?, ?, ?, ?)
                """,
                    (
                        ticket.ticket_id,
                        ticket.event_id,
                        ticket.owner,
                        json.dumps(ticket.to_dict()),
                    ),
                )

            for key, value in changes.counters.to_dict().items():
                cursor.execute(
                    "UPDATE metadata SET value = ? WHERE key = ?",
                    (str(value), key),
                )

    def backup(self, backup_path: Path) -> bool:
        """Create a backup of the storage."""
        try:
            backup_path = Path(backup_path)
            backup_path.parent.mkdir(parents=True, exist_ok=True)

            # Use SQLite backup API
            backup_conn = sqlite3.connect(backup_path)
            with self._lock:
                self._conn.backup(backup_conn)
            backup_conn.close()
            return True
        except (OSError, sqlite3.Error) as e:
            logger.warning(f"Ledger backup to {backup_path} failed: {e}")
            return False

    def restore(self, backup_path: Path) -> bool:
        """
        Restore from a backup.

        The backup is checked before anything is replaced and copied in
        through the SQLite backup API, so open connections see the
        restored pages.

        Raises:
            StorageError: If the backup is not a readable ledger database.
        """
        backup_path = Path(backup_path)
        if not backup_path.exists():
            return False

        source = sqlite3.connect(backup_path)
        try:
            try:
                (check,) = source.execute("PRAGMA integrity_check").fetchone()
                for table in ("events", "tickets", "metadata"):
                    source.execute(f"SELECT * FROM {table} LIMIT 1").fetchall()
            except sqlite3.DatabaseError as e:
                raise StorageError(f"{backup_path} is not a ledger database: {e}") from e
            if check != "ok":
                raise StorageError(f"{backup_path} failed integrity check: {check}")

            with self._lock:
                source.backup(self._conn)
        finally:
            source.close()

        logger.debug(f"Restored ledger from {backup_path}")
        return True

    def close(self) -> None:
        """Close the database connection."""
        if hasattr(self._local, "conn"):
            self._local.conn.close()
            delattr(self._local, "conn")


class StorageFactory:
    """Factory for creating ledger storage instances."""

    _stores: Dict[str, LedgerStore] = {}

    @classmethod
    def create(
        cls,
        storage_type: str,
        path: Optional[Path] = None,
    ) -> LedgerStore:
        """
        Create a ledger store.

        Args:
            storage_type: "memory", "json" or "sqlite"
            path: Path to storage file (ignored for "memory")

        Returns:
            LedgerStore instance
        """
        if storage_type == "memory":
            return InMemoryLedgerStore()

        if path is None:
            raise ValueError(f"Storage type '{storage_type}' requires a path")

        key = f"{storage_type}:{Path(path).resolve()}"

        if key not in cls._stores:
            if storage_type == "json":
                cls._stores[key] = JSONLedgerStore(path)
            elif storage_type == "sqlite":
                cls._stores[key] = SQLiteLedgerStore(path)
            else:
                raise ValueError(f"Unknown storage type: {storage_type}")

        return cls._stores[key]

    @classmethod
    def get_default(cls, project_path: Path) -> LedgerStore:
        """
        Get the default store for a project.

        Uses JSON storage in .seatledger/ledger.json by default.
        """
        return cls.create("json", project_path / ".seatledger" / "ledger.json")

    @classmethod
    def clear_cache(cls) -> None:
        """Clear the store cache."""
        for store in cls._stores.values():
            if isinstance(store, SQLiteLedgerStore):
                store.close()
        cls._stores.clear()


def get_store(
    path: Optional[Path] = None,
    storage_type: str = "json",
) -> LedgerStore:
    """
    Get a ledger store.

    Args:
        path: Path to storage file (defaults to current directory)
        storage_type: "memory", "json" or "sqlite"

    Returns:
        LedgerStore instance
    """
    if path is None and storage_type != "memory":
        path = Path.cwd() / ".seatledger" / "ledger.json"

    return StorageFactory.create(storage_type, path)
