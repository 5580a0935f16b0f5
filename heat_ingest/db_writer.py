"""Row store for submissions.

Provides a DBWriter class that handles connections and the three row
operations the application needs: insert a row and get its id, update a
row by id, and read rows with a filter and ordering. Uses psycopg2;
list/dict values (marker notes, tags) are stored through
psycopg2.extras.Json.

Writes are issued once. Failures are logged and re-raised so the caller
can report them and let the contributor retry the whole submission.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence
import re
import time
import psycopg2
import psycopg2.extras
import logging

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_identifier(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def _adapt(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        return psycopg2.extras.Json(value)
    return value


class DBWriter:
    """Simple database writer helper.

    Usage:
        db = DBWriter(os.getenv('DATABASE_URL'))
        db.connect()
        row_id = db.insert_row("csv_submissions", {...})
        db.update_row("csv_submissions", row_id, {"significance": "..."})
        db.close()
    """

    def __init__(self, db_url: str, connect_timeout: int = 10):
        self.db_url = db_url
        self.connect_timeout = connect_timeout
        self.conn: Optional[psycopg2.extensions.connection] = None

        # Connection establishment only; statements are never re-executed
        self.max_retries = 3
        self.retry_backoff_seconds = 2

    def _attempt_connect(self) -> psycopg2.extensions.connection:
        """Attempt a single database connection."""
        return psycopg2.connect(self.db_url, connect_timeout=self.connect_timeout)

    def connect(self) -> None:
        if self.conn:
            return

        logger.debug("Connecting to database with retries")
        last_exc = None
        for attempt in range(1, self.max_retries + 1):
            try:
                self.conn = self._attempt_connect()
                logger.debug("Database connection established")
                return
            except Exception as e:
                last_exc = e
                logger.warning(
                    "Database connection attempt %d/%d failed: %s",
                    attempt,
                    self.max_retries,
                    e,
                )
                if attempt < self.max_retries:
                    sleep_time = self.retry_backoff_seconds * (2 ** (attempt - 1))
                    logger.debug("Sleeping %s seconds before retry", sleep_time)
                    time.sleep(sleep_time)

        logger.error("All database connection attempts failed")
        raise last_exc

    def is_connected(self) -> bool:
        if self.conn is None:
            return False

        # psycopg2 reports `.closed == 0` when open; mocks may carry other types
        closed = getattr(self.conn, "closed", None)
        if isinstance(closed, (int, bool)):
            return closed == 0 or closed is False
        return True

    def close(self) -> None:
        if self.conn and not self.conn.closed:
            try:
                self.conn.close()
            except Exception:
                logger.exception("Error closing DB connection")
        self.conn = None

    def _require_connection(self) -> None:
        if not self.is_connected():
            raise RuntimeError("Not connected to database")

    def _execute(self, sql: str, params: Sequence[Any], operation_name: str, fetch: str = ""):
        """Run one statement in its own transaction.

        Args:
            sql: Statement with %s placeholders
            params: Parameters for the placeholders
            operation_name: Used in the error log
            fetch: "" (none), "one" or "all"

        Returns:
            The fetched row(s) and the cursor rowcount as a tuple
        """
        self._require_connection()
        cur = self.conn.cursor()
        try:
            cur.execute(sql, params)
            result = None
            if fetch == "one":
                result = cur.fetchone()
            elif fetch == "all":
                result = cur.fetchall()
            rowcount = cur.rowcount
            self.conn.commit()
            return result, rowcount
        except Exception:
            self.conn.rollback()
            logger.exception("Failed to %s", operation_name)
            raise
        finally:
            if cur and not cur.closed:
                cur.close()

    def insert_row(self, table: str, row: Mapping[str, Any]) -> int:
        """Insert one row and return its generated id."""
        if not row:
            raise ValueError("Cannot insert an empty row")

        table = _check_identifier(table)
        columns = [_check_identifier(c) for c in row]
        placeholders = ", ".join(["%s"] * len(columns))
        sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) RETURNING id"
        )
        result, _ = self._execute(
            sql, [_adapt(row[c]) for c in columns], f"insert into {table}", fetch="one"
        )
        row_id = result[0]
        logger.info("Inserted %s row id=%s", table, row_id)
        return row_id

    def update_row(self, table: str, row_id: int, fields: Mapping[str, Any]) -> int:
        """Update one row by id. Raises LookupError when no row matched."""
        if not fields:
            raise ValueError("Nothing to update")

        table = _check_identifier(table)
        columns = [_check_identifier(c) for c in fields]
        assignments = ", ".join(f"{c} = %s" for c in columns)
        sql = f"UPDATE {table} SET {assignments} WHERE id = %s"
        params = [_adapt(fields[c]) for c in columns] + [row_id]

        _, rowcount = self._execute(sql, params, f"update {table} id={row_id}")
        if rowcount == 0:
            raise LookupError(f"No {table} row with id={row_id}")
        logger.info("Updated %s row id=%s (%s)", table, row_id, ", ".join(columns))
        return rowcount

    def fetch_rows(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        not_null: Sequence[str] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Read rows as dicts with equality filters and optional ordering."""
        table = _check_identifier(table)
        clauses = []
        params: List[Any] = []
        for column, value in (filters or {}).items():
            clauses.append(f"{_check_identifier(column)} = %s")
            params.append(value)
        for column in not_null:
            clauses.append(f"{_check_identifier(column)} IS NOT NULL")

        sql = f"SELECT * FROM {table}"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        if order_by:
            sql += f" ORDER BY {_check_identifier(order_by)}"
            sql += " DESC" if descending else " ASC"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))

        self._require_connection()
        cur = self.conn.cursor()
        try:
            cur.execute(sql, params)
            names = [d[0] for d in cur.description]
            return [dict(zip(names, r)) for r in cur.fetchall()]
        except Exception:
            self.conn.rollback()
            logger.exception("Failed to read from %s", table)
            raise
        finally:
            if cur and not cur.closed:
                cur.close()
