# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
SQLite storage for workflow runs and their event chains.

One row per event, keyed by id, with the per-run sequence number assigned when
the event is linked and the id of its predecessor. The chain is read back by
sequence, so it is a plain ordered scan rather than pointer chasing.
"""

import json
import sqlite3

from typing import Iterable
from pathlib import Path
from datetime import datetime
from contextlib import contextmanager

from .event_repository import EventRepository, IssueRunState, Transaction
from ..events.errors import EventOrderingError, WorkflowRunNotFoundError
from ..types.event_types import Event, EventType, WorkflowState
from ..types.workflow_types import (
    IssueRef,
    WorkflowRun,
    WorkflowRunConfig,
    WorkflowTarget,
    WorkflowType,
)


class SqliteTransaction(Transaction):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.closed = False

    def commit(self) -> None:
        try:
            self.conn.commit()
        finally:
            self.conn.close()
            self.closed = True

    def rollback(self) -> None:
        try:
            self.conn.rollback()
        finally:
            self.conn.close()
            self.closed = True


class SqliteEventRepository(EventRepository):
    """
    Repository for workflow runs and events backed by a SQLite file.

    Reads open a short-lived connection each; writes happen on the connection
    of the transaction handed in by the unit of work.
    """

    def __init__(self, db_path: Path | str):
        """
        Initialize repository with database path.

        Args:
            db_path: Path to SQLite database file (will be created if doesn't exist)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections with transaction support."""
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_schema(self):
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS workflow_runs (
                    run_id TEXT PRIMARY KEY,
                    type TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    initiator TEXT NOT NULL,
                    issue_key TEXT,
                    target TEXT,
                    config TEXT NOT NULL
                )
            """)

            # sequence and parent_id stay NULL until the event is linked
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    event_id TEXT PRIMARY KEY,
                    run_id TEXT NOT NULL,
                    sequence INTEGER,
                    parent_id TEXT,
                    type TEXT NOT NULL,
                    state TEXT,
                    content TEXT,
                    metadata TEXT NOT NULL,
                    timestamp TEXT,

                    FOREIGN KEY (run_id) REFERENCES workflow_runs(run_id),
                    UNIQUE (run_id, sequence)
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_runs_issue ON workflow_runs(issue_key, created_at)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_run_state ON events(run_id, state, sequence)"
            )

    @staticmethod
    def _tx_conn(tx: Transaction) -> sqlite3.Connection:
        if not isinstance(tx, SqliteTransaction) or tx.closed:
            raise ValueError("An open transaction from this repository is required")
        return tx.conn

    def begin(self) -> SqliteTransaction:
        conn = self._connect()
        # Take the write lock up front so concurrent writers serialise
        conn.execute("BEGIN IMMEDIATE")
        return SqliteTransaction(conn)

    # Row mapping =============================================================

    @staticmethod
    def _row_to_run(row: sqlite3.Row) -> WorkflowRun:
        return WorkflowRun(
            id=row["run_id"],
            type=WorkflowType(row["type"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            initiator=row["initiator"],
            target=WorkflowTarget.model_validate_json(row["target"]) if row["target"] else None,
            config=WorkflowRunConfig.model_validate_json(row["config"]),
        )

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> Event:
        return Event(
            id=row["event_id"],
            type=EventType(row["type"]),
            content=row["content"],
            metadata=json.loads(row["metadata"]),
            timestamp=datetime.fromisoformat(row["timestamp"]) if row["timestamp"] else None,
            sequence=row["sequence"],
            parent_id=row["parent_id"],
        )

    # Runs ====================================================================

    def create_run(self, run: WorkflowRun) -> None:
        issue = run.target.issue if run.target else None
        with self._get_connection() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO workflow_runs (run_id, type, created_at, initiator, issue_key, target, config)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        run.id,
                        run.type.value,
                        run.created_at.isoformat(),
                        run.initiator,
                        issue.key if issue else None,
                        run.target.model_dump_json() if run.target else None,
                        run.config.model_dump_json(),
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise ValueError(f"Workflow run {run.id} already exists") from e

    def get_run(self, run_id: str) -> WorkflowRun | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM workflow_runs WHERE run_id = ?", (run_id,)
            ).fetchone()
        return self._row_to_run(row) if row else None

    def list_runs_for_issue(self, issue: IssueRef) -> list[WorkflowRun]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM workflow_runs WHERE issue_key = ? ORDER BY created_at DESC, rowid DESC",
                (issue.key,),
            ).fetchall()
        return [self._row_to_run(row) for row in rows]

    # Events ==================================================================

    def create_event(self, run_id: str, event: Event, tx: Transaction) -> None:
        conn = self._tx_conn(tx)
        if conn.execute("SELECT 1 FROM workflow_runs WHERE run_id = ?", (run_id,)).fetchone() is None:
            raise WorkflowRunNotFoundError(run_id)
        try:
            conn.execute(
                """
                INSERT INTO events (event_id, run_id, type, state, content, metadata, timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.id,
                    run_id,
                    event.type.value,
                    event.state.value if event.is_lifecycle else None,
                    event.content,
                    json.dumps(event.metadata, default=str),
                    event.timestamp.isoformat() if event.timestamp else None,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise EventOrderingError(f"Event {event.id} already exists") from e

    def append_to_chain_end(
        self, run_id: str, event_id: str, parent_id: str | None, tx: Transaction
    ) -> int:
        conn = self._tx_conn(tx)
        row = conn.execute(
            "SELECT sequence FROM events WHERE event_id = ? AND run_id = ?", (event_id, run_id)
        ).fetchone()
        if row is None:
            raise EventOrderingError(f"Event {event_id} was not created in run {run_id}")
        if row["sequence"] is not None:
            raise EventOrderingError(f"Event {event_id} is already linked in run {run_id}")

        tail = conn.execute(
            """
            SELECT event_id, sequence FROM events
            WHERE run_id = ? AND sequence IS NOT NULL
            ORDER BY sequence DESC LIMIT 1
            """,
            (run_id,),
        ).fetchone()

        if parent_id is not None:
            parent = conn.execute(
                "SELECT 1 FROM events WHERE event_id = ? AND run_id = ? AND sequence IS NOT NULL",
                (parent_id, run_id),
            ).fetchone()
            if parent is None:
                raise EventOrderingError(f"Parent event {parent_id} is not part of run {run_id}")
            predecessor = parent_id
        else:
            predecessor = tail["event_id"] if tail else None

        sequence = tail["sequence"] + 1 if tail else 0
        conn.execute(
            "UPDATE events SET sequence = ?, parent_id = ? WHERE event_id = ?",
            (sequence, predecessor, event_id),
        )
        return sequence

    def get_chain(self, run_id: str) -> list[Event]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM events WHERE run_id = ? AND sequence IS NOT NULL ORDER BY sequence",
                (run_id,),
            ).fetchall()
        return [self._row_to_event(row) for row in rows]

    def get_chain_tail(self, run_id: str) -> Event | None:
        with self._get_connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM events WHERE run_id = ? AND sequence IS NOT NULL
                ORDER BY sequence DESC LIMIT 1
                """,
                (run_id,),
            ).fetchone()
        return self._row_to_event(row) if row else None

    def get_latest_lifecycle_event(self, run_id: str) -> Event | None:
        with self._get_connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM events
                WHERE run_id = ? AND state IS NOT NULL AND sequence IS NOT NULL
                ORDER BY sequence DESC LIMIT 1
                """,
                (run_id,),
            ).fetchone()
        return self._row_to_event(row) if row else None

    def get_latest_states_for_issues(self, issues: Iterable[IssueRef]) -> dict[str, IssueRunState]:
        keys = list({issue.key for issue in issues})
        if not keys:
            return {}

        placeholders = ", ".join("?" for _ in keys)
        query = f"""
            WITH latest_runs AS (
                SELECT run_id, issue_key,
                       ROW_NUMBER() OVER (
                           PARTITION BY issue_key ORDER BY created_at DESC, rowid DESC
                       ) AS rn
                FROM workflow_runs
                WHERE issue_key IN ({placeholders})
            ),
            latest_states AS (
                SELECT e.run_id, e.state,
                       ROW_NUMBER() OVER (PARTITION BY e.run_id ORDER BY e.sequence DESC) AS rn
                FROM events e
                JOIN latest_runs lr ON lr.run_id = e.run_id AND lr.rn = 1
                WHERE e.state IS NOT NULL AND e.sequence IS NOT NULL
            )
            SELECT lr.issue_key, lr.run_id, ls.state
            FROM latest_runs lr
            LEFT JOIN latest_states ls ON ls.run_id = lr.run_id AND ls.rn = 1
            WHERE lr.rn = 1
        """
        with self._get_connection() as conn:
            rows = conn.execute(query, keys).fetchall()

        return {
            row["issue_key"]: IssueRunState(
                issue_key=row["issue_key"],
                run_id=row["run_id"],
                state=WorkflowState(row["state"]) if row["state"] else WorkflowState.PENDING,
            )
            for row in rows
        }
