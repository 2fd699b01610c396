"""Repository layer responsible for all ledger and order storage."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime, time
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from backend.domain.constraints import (
    FIRST_SPOT,
    LAST_SPOT,
    MAX_SLOTS_PER_BOOKING,
    SLOTS_PER_DAY,
    TOTAL_SPOTS,
)
from backend.domain.errors import ConflictError, PersistenceError, ReservationTimeoutError
from backend.domain.models import AggregateCount, LedgerEntry, ParkingOrder
from backend.domain.slot_clock import slot_end_at, slot_label, slot_time
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def _is_lock_timeout(exc: sqlite3.OperationalError) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def _parse_time(value: str) -> time:
    return datetime.strptime(value, "%H:%M").time()


def _order_from_row(row: sqlite3.Row) -> ParkingOrder:
    return ParkingOrder(
        order_id=int(row["id"]),
        spot=int(row["spot_number"]),
        customer_id=str(row["customer_id"]),
        date=date.fromisoformat(str(row["parking_date"])),
        start_time=_parse_time(str(row["start_time"])),
        end_time=_parse_time(str(row["end_time"])),
        slot_count=int(row["slot_count"]),
        placed_on=date.fromisoformat(str(row["placed_on"])),
    )


class LedgerRepository:
    """Encapsulates SQLite access so the ledger and planner stay storage-agnostic.

    Every method opens its own connection, which keeps the repository safe to
    share between concurrent request handlers. Writers serialise on
    ``BEGIN IMMEDIATE``; the connection busy timeout bounds how long a writer
    waits for that lock.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._seeded_dates: set[str] = set()
        self._seed_lock = threading.Lock()

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self, timeout: Optional[float] = None) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=timeout if timeout is not None else self._settings.commit_timeout_seconds,
            isolation_level=None,
            check_same_thread=False,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _session(self, timeout: Optional[float] = None) -> Iterator[sqlite3.Connection]:
        """Yield a connection, translating driver failures into ledger errors."""
        try:
            connection = self._connect(timeout)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Ledger store unreachable: {exc}") from exc
        try:
            yield connection
        except sqlite3.OperationalError as exc:
            if connection.in_transaction:
                connection.execute("ROLLBACK;")
            if _is_lock_timeout(exc):
                raise ReservationTimeoutError(
                    "Ledger transaction did not complete before the deadline"
                ) from exc
            raise PersistenceError(f"Ledger query failed: {exc}") from exc
        except sqlite3.Error as exc:
            if connection.in_transaction:
                connection.execute("ROLLBACK;")
            raise PersistenceError(f"Ledger query failed: {exc}") from exc
        except BaseException:
            if connection.in_transaction:
                connection.execute("ROLLBACK;")
            raise
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        with self._session() as conn:
            conn.execute("PRAGMA journal_mode = WAL;")
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS ParkingOrders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    spot_number INTEGER NOT NULL
                        CHECK (spot_number BETWEEN {FIRST_SPOT} AND {LAST_SPOT}),
                    customer_id TEXT NOT NULL,
                    parking_date TEXT NOT NULL,
                    placed_on TEXT NOT NULL,
                    start_slot INTEGER NOT NULL,
                    slot_count INTEGER NOT NULL
                        CHECK (slot_count BETWEEN 1 AND {MAX_SLOTS_PER_BOOKING}),
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                );
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS ParkingAvailability (
                    availability_date TEXT NOT NULL,
                    slot_index INTEGER NOT NULL,
                    time_slot TEXT NOT NULL,
                    occupied_spots INTEGER NOT NULL DEFAULT 0,
                    free_spots INTEGER NOT NULL DEFAULT {TOTAL_SPOTS},
                    last_updated DATETIME DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (availability_date, slot_index),
                    CHECK (occupied_spots BETWEEN 0 AND {TOTAL_SPOTS}),
                    CHECK (free_spots BETWEEN 0 AND {TOTAL_SPOTS}),
                    CHECK (occupied_spots + free_spots = {TOTAL_SPOTS})
                );
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS SpotAvailability (
                    availability_date TEXT NOT NULL,
                    slot_index INTEGER NOT NULL,
                    time_slot TEXT NOT NULL,
                    spot_number INTEGER NOT NULL
                        CHECK (spot_number BETWEEN {FIRST_SPOT} AND {LAST_SPOT}),
                    is_occupied INTEGER NOT NULL DEFAULT 0 CHECK (is_occupied IN (0,1)),
                    reserved_by TEXT DEFAULT NULL,
                    order_id INTEGER DEFAULT NULL,
                    PRIMARY KEY (availability_date, slot_index, spot_number),
                    FOREIGN KEY (order_id) REFERENCES ParkingOrders(id)
                );
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_spot_date_slot
                ON SpotAvailability(availability_date, spot_number, slot_index);
                """
            )
        logger.info("Database initialized at %s", self._db_path)

    def ensure_ledger_dates(self, dates: Iterable[date]) -> int:
        """Create free ledger rows for every date not yet populated.

        Idempotent and safe under concurrency: rows are inserted with
        ``INSERT OR IGNORE`` inside one write transaction per date. Returns the
        number of dates that were actually populated.
        """
        populated = 0
        for target_date in dates:
            key = target_date.isoformat()
            with self._seed_lock:
                if key in self._seeded_dates:
                    continue
            if self._populate_date(key):
                populated += 1
            with self._seed_lock:
                self._seeded_dates.add(key)
        return populated

    def _populate_date(self, key: str) -> bool:
        with self._session() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS count FROM ParkingAvailability WHERE availability_date = ?;",
                (key,),
            ).fetchone()
            if int(row["count"]) >= SLOTS_PER_DAY:
                return False

            conn.execute("BEGIN IMMEDIATE;")
            conn.executemany(
                """
                INSERT OR IGNORE INTO ParkingAvailability (
                    availability_date, slot_index, time_slot, occupied_spots, free_spots
                )
                VALUES (?, ?, ?, 0, ?);
                """,
                [
                    (key, index, slot_label(index), TOTAL_SPOTS)
                    for index in range(SLOTS_PER_DAY)
                ],
            )
            conn.executemany(
                """
                INSERT OR IGNORE INTO SpotAvailability (
                    availability_date, slot_index, time_slot, spot_number, is_occupied
                )
                VALUES (?, ?, ?, ?, 0);
                """,
                [
                    (key, index, slot_label(index), spot)
                    for index in range(SLOTS_PER_DAY)
                    for spot in range(FIRST_SPOT, LAST_SPOT + 1)
                ],
            )
            conn.execute("COMMIT;")
        logger.info("Ledger rows populated | date=%s | slots=%s", key, SLOTS_PER_DAY)
        return True

    def load_ledger_window(
        self,
        target_date: date,
        from_slot: int,
        count: int,
        spot: Optional[int] = None,
    ) -> List[LedgerEntry]:
        """Return ledger rows for ``[from_slot, from_slot + count)`` ordered by spot, slot."""
        query = """
            SELECT availability_date, slot_index, spot_number, is_occupied, reserved_by
            FROM SpotAvailability
            WHERE availability_date = ?
              AND slot_index >= ?
              AND slot_index < ?
        """
        params: list[object] = [target_date.isoformat(), from_slot, from_slot + count]
        if spot is not None:
            query += " AND spot_number = ?"
            params.append(spot)
        query += " ORDER BY spot_number ASC, slot_index ASC;"

        with self._session() as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            LedgerEntry(
                date=date.fromisoformat(str(row["availability_date"])),
                slot_index=int(row["slot_index"]),
                spot=int(row["spot_number"]),
                occupied=bool(row["is_occupied"]),
                reserved_by=row["reserved_by"],
            )
            for row in rows
        ]

    def read_aggregate(self, target_date: date, slot_index: int) -> Optional[AggregateCount]:
        """Return the cached free/occupied counts for a slot, if present."""
        with self._session() as conn:
            row = conn.execute(
                """
                SELECT free_spots, occupied_spots
                FROM ParkingAvailability
                WHERE availability_date = ? AND slot_index = ?;
                """,
                (target_date.isoformat(), slot_index),
            ).fetchone()
        if row is None:
            return None
        return AggregateCount(
            date=target_date,
            slot_index=slot_index,
            free_spots=int(row["free_spots"]),
            occupied_spots=int(row["occupied_spots"]),
        )

    def count_slot_occupancy(self, target_date: date, slot_index: int) -> Optional[AggregateCount]:
        """Scan ledger rows for a slot; used when no aggregate row exists."""
        with self._session() as conn:
            row = conn.execute(
                f"""
                SELECT
                    COUNT(*) AS total_spots,
                    SUM(CASE WHEN is_occupied = 0 THEN 1 ELSE 0 END) AS free_spots,
                    SUM(CASE WHEN is_occupied = 1 THEN 1 ELSE 0 END) AS occupied_spots
                FROM SpotAvailability
                WHERE availability_date = ?
                  AND slot_index = ?
                  AND spot_number BETWEEN {FIRST_SPOT} AND {LAST_SPOT};
                """,
                (target_date.isoformat(), slot_index),
            ).fetchone()
        if row is None or int(row["total_spots"]) == 0:
            return None
        return AggregateCount(
            date=target_date,
            slot_index=slot_index,
            free_spots=int(row["free_spots"]),
            occupied_spots=int(row["occupied_spots"]),
        )

    def list_aggregates(self, target_date: date) -> List[AggregateCount]:
        with self._session() as conn:
            rows = conn.execute(
                """
                SELECT slot_index, free_spots, occupied_spots
                FROM ParkingAvailability
                WHERE availability_date = ?
                ORDER BY slot_index ASC;
                """,
                (target_date.isoformat(),),
            ).fetchall()
        return [
            AggregateCount(
                date=target_date,
                slot_index=int(row["slot_index"]),
                free_spots=int(row["free_spots"]),
                occupied_spots=int(row["occupied_spots"]),
            )
            for row in rows
        ]

    def find_aggregate_drift(self, target_date: date) -> List[int]:
        """Return slot indices whose cached counts disagree with the ledger rows."""
        with self._session() as conn:
            rows = conn.execute(
                """
                SELECT pa.slot_index
                FROM ParkingAvailability AS pa
                INNER JOIN (
                    SELECT slot_index, SUM(is_occupied) AS occupied
                    FROM SpotAvailability
                    WHERE availability_date = ?
                    GROUP BY slot_index
                ) AS sa ON sa.slot_index = pa.slot_index
                WHERE pa.availability_date = ?
                  AND pa.occupied_spots != sa.occupied
                ORDER BY pa.slot_index ASC;
                """,
                (target_date.isoformat(), target_date.isoformat()),
            ).fetchall()
        return [int(row["slot_index"]) for row in rows]

    def write_reservation(
        self,
        *,
        target_date: date,
        spot: int,
        from_slot: int,
        slot_count: int,
        customer_id: str,
        placed_on: date,
        timeout: Optional[float] = None,
    ) -> ParkingOrder:
        """Atomically re-check, occupy the slot range and insert the order.

        Raises ``ConflictError`` when any targeted slot is no longer free and
        ``ReservationTimeoutError`` when the write lock is not acquired within
        ``timeout`` seconds. Nothing is written unless every step succeeds.
        """
        key = target_date.isoformat()
        to_slot = from_slot + slot_count
        start_time = slot_time(from_slot)
        end_time = slot_end_at(target_date, start_time, slot_count).time()

        with self._session(timeout) as conn:
            conn.execute("BEGIN IMMEDIATE;")
            row = conn.execute(
                """
                SELECT COUNT(*) AS free_count
                FROM SpotAvailability
                WHERE availability_date = ?
                  AND spot_number = ?
                  AND slot_index >= ?
                  AND slot_index < ?
                  AND is_occupied = 0;
                """,
                (key, spot, from_slot, to_slot),
            ).fetchone()
            if int(row["free_count"]) != slot_count:
                raise ConflictError(
                    f"Spot {spot} is no longer free for {slot_count} slots from "
                    f"{start_time.strftime('%H:%M')} on {key}"
                )

            cursor = conn.execute(
                """
                INSERT INTO ParkingOrders (
                    spot_number,
                    customer_id,
                    parking_date,
                    placed_on,
                    start_slot,
                    slot_count,
                    start_time,
                    end_time
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    spot,
                    customer_id,
                    key,
                    placed_on.isoformat(),
                    from_slot,
                    slot_count,
                    start_time.strftime("%H:%M"),
                    end_time.strftime("%H:%M"),
                ),
            )
            order_id = int(cursor.lastrowid)

            cursor = conn.execute(
                """
                UPDATE SpotAvailability
                SET is_occupied = 1,
                    reserved_by = ?,
                    order_id = ?
                WHERE availability_date = ?
                  AND spot_number = ?
                  AND slot_index >= ?
                  AND slot_index < ?
                  AND is_occupied = 0;
                """,
                (customer_id, order_id, key, spot, from_slot, to_slot),
            )
            if cursor.rowcount != slot_count:
                raise ConflictError(f"Spot {spot} changed while reserving on {key}")

            cursor = conn.execute(
                """
                UPDATE ParkingAvailability
                SET occupied_spots = occupied_spots + 1,
                    free_spots = free_spots - 1,
                    last_updated = CURRENT_TIMESTAMP
                WHERE availability_date = ?
                  AND slot_index >= ?
                  AND slot_index < ?;
                """,
                (key, from_slot, to_slot),
            )
            if cursor.rowcount != slot_count:
                raise PersistenceError(
                    f"Aggregate rows missing for {key} slots {from_slot}..{to_slot - 1}"
                )
            conn.execute("COMMIT;")

        logger.info(
            "Reservation committed | order_id=%s | spot=%s | date=%s | slots=%s..%s | customer_id=%s",
            order_id,
            spot,
            key,
            from_slot,
            to_slot - 1,
            customer_id,
        )
        return ParkingOrder(
            order_id=order_id,
            spot=spot,
            customer_id=customer_id,
            date=target_date,
            start_time=start_time,
            end_time=end_time,
            slot_count=slot_count,
            placed_on=placed_on,
        )

    def get_order(self, order_id: int) -> Optional[ParkingOrder]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM ParkingOrders WHERE id = ?;",
                (order_id,),
            ).fetchone()
        if row is None:
            return None
        return _order_from_row(row)

    def count_orders(self) -> int:
        with self._session() as conn:
            row = conn.execute("SELECT COUNT(*) AS count FROM ParkingOrders;").fetchone()
        return int(row["count"])

    def count_spot_order_overlaps(self, target_date: date) -> int:
        """Count ledger cells claimed by more than one order (must stay zero)."""
        with self._session() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS overlaps
                FROM ParkingOrders AS a
                INNER JOIN ParkingOrders AS b
                    ON a.id < b.id
                   AND a.spot_number = b.spot_number
                   AND a.parking_date = b.parking_date
                   AND a.start_slot < b.start_slot + b.slot_count
                   AND b.start_slot < a.start_slot + a.slot_count
                WHERE a.parking_date = ?;
                """,
                (target_date.isoformat(),),
            ).fetchone()
        return int(row["overlaps"])
