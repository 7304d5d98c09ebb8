from __future__ import annotations

import logging
import queue
import sqlite3
import threading
import time
from collections.abc import Callable

from skygrid.common.types import Cell
from skygrid.persist.base import Persistence

logger = logging.getLogger(__name__)


class SqlitePersistence(Persistence):
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._pragmas = (
            "PRAGMA journal_mode=WAL",
            "PRAGMA synchronous=NORMAL",
            "PRAGMA busy_timeout=5000",
        )
        self._local = threading.local()
        self._init_db()
        self._write_queue: queue.Queue[
            tuple[Callable[[sqlite3.Connection], object], threading.Event, dict[str, object]] | None
        ] = queue.Queue()
        self._writer_stop = threading.Event()
        self._writer_thread = threading.Thread(
            target=self._writer_loop, name="sqlite-writer", daemon=True
        )
        self._writer_thread.start()

    def _writer_loop(self) -> None:
        conn = sqlite3.connect(self.db_path)
        self._apply_pragmas(conn)
        while True:
            task = self._write_queue.get()
            if task is None:
                self._write_queue.task_done()
                break
            fn, event, holder = task
            try:
                holder["result"] = fn(conn)
                conn.commit()
            except Exception as exc:
                conn.rollback()
                holder["error"] = exc
                logger.exception("SQLite write failed")
            finally:
                event.set()
                self._write_queue.task_done()
        conn.close()

    def _run_write(self, fn: Callable[[sqlite3.Connection], object], wait: bool = True):
        if self._writer_stop.is_set():
            raise RuntimeError("Persistence writer stopped")
        event = threading.Event()
        holder: dict[str, object] = {"result": None, "error": None}
        self._write_queue.put((fn, event, holder))
        if not wait:
            return None
        event.wait()
        if holder["error"] is not None:
            raise holder["error"]
        return holder["result"]

    def flush(self) -> None:
        self._write_queue.join()

    def _init_db(self) -> None:
        conn = self._get_conn()
        conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
                """)
        conn.execute("""
                CREATE TABLE IF NOT EXISTS islands (
                    x INTEGER NOT NULL,
                    z INTEGER NOT NULL,
                    owner TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    PRIMARY KEY (x, z)
                )
                """)
        conn.execute("""
                CREATE TABLE IF NOT EXISTS orphans (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    x INTEGER NOT NULL,
                    z INTEGER NOT NULL,
                    created_at INTEGER NOT NULL,
                    UNIQUE(x, z)
                )
                """)
        conn.commit()

    def _apply_pragmas(self, conn: sqlite3.Connection) -> None:
        for pragma in self._pragmas:
            conn.execute(pragma)

    def _get_conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(self.db_path)
            self._apply_pragmas(conn)
            self._local.conn = conn
        return conn

    def close(self) -> None:
        self.flush()
        self._writer_stop.set()
        self._write_queue.put(None)
        self._writer_thread.join(timeout=2)
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    def load_namespace(self, namespace: str) -> dict[str, str]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT key, value FROM kv_store WHERE namespace = ?", (namespace,)
        ).fetchall()
        return {row[0]: row[1] for row in rows}

    def save_namespace(self, namespace: str, values: dict[str, str]) -> None:
        rows = [(namespace, key, str(value)) for key, value in values.items()]

        def _task(conn: sqlite3.Connection) -> None:
            conn.execute("DELETE FROM kv_store WHERE namespace = ?", (namespace,))
            conn.executemany(
                "INSERT INTO kv_store(namespace, key, value) VALUES (?, ?, ?)", rows
            )

        self._run_write(_task, wait=True)

    def delete_namespace(self, namespace: str) -> None:
        def _task(conn: sqlite3.Connection) -> None:
            conn.execute("DELETE FROM kv_store WHERE namespace = ?", (namespace,))

        self._run_write(_task, wait=True)

    def add_island(self, cell: Cell, owner: str) -> bool:
        x, z = cell
        created_at = int(time.time())

        def _task(conn: sqlite3.Connection) -> bool:
            cur = conn.execute(
                "INSERT OR IGNORE INTO islands(x, z, owner, created_at) VALUES (?, ?, ?, ?)",
                (x, z, owner, created_at),
            )
            if cur.rowcount:
                conn.execute("DELETE FROM orphans WHERE x = ? AND z = ?", (x, z))
            return cur.rowcount > 0

        return bool(self._run_write(_task, wait=True))

    def remove_island(self, cell: Cell) -> bool:
        x, z = cell

        def _task(conn: sqlite3.Connection) -> bool:
            cur = conn.execute("DELETE FROM islands WHERE x = ? AND z = ?", (x, z))
            return cur.rowcount > 0

        return bool(self._run_write(_task, wait=True))

    def has_island(self, cell: Cell) -> bool:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT 1 FROM islands WHERE x = ? AND z = ?", (cell[0], cell[1])
        ).fetchone()
        return row is not None

    def list_islands(self, limit: int = 100) -> list[dict]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT x, z, owner, created_at FROM islands ORDER BY created_at ASC, x, z LIMIT ?",
            (limit,),
        ).fetchall()
        return [
            {
                "x": row[0],
                "z": row[1],
                "owner": row[2],
                "created_at": row[3],
            }
            for row in rows
        ]

    def add_orphan(self, cell: Cell) -> None:
        x, z = cell
        created_at = int(time.time())

        def _task(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT OR IGNORE INTO orphans(x, z, created_at) VALUES (?, ?, ?)",
                (x, z, created_at),
            )

        self._run_write(_task, wait=True)

    def list_orphans(self, limit: int = 100) -> list[Cell]:
        conn = self._get_conn()
        rows = conn.execute("SELECT x, z FROM orphans ORDER BY id ASC LIMIT ?", (limit,)).fetchall()
        return [(int(row[0]), int(row[1])) for row in rows]

    def remove_orphan(self, cell: Cell) -> bool:
        x, z = cell

        def _task(conn: sqlite3.Connection) -> bool:
            cur = conn.execute("DELETE FROM orphans WHERE x = ? AND z = ?", (x, z))
            return cur.rowcount > 0

        return bool(self._run_write(_task, wait=True))

    def orphan_count(self) -> int:
        conn = self._get_conn()
        row = conn.execute("SELECT COUNT(*) FROM orphans").fetchone()
        return int(row[0]) if row else 0
