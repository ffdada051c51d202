"""Base Repository — eliminates connection boilerplate across all repos.

Provides query_one(), query_all(), execute(), execute_many() that handle
get_db()/get_cursor()/release_db() and try/finally automatically.

Every helper also accepts ``cursor=``. When given, the statement runs on
that cursor and nothing is committed: the caller owns the transaction.
This is how the approval service writes request state and audit rows in
one unit of work.

Usage:
    class MyRepo(BaseRepository):
        def get_thing(self, id, cursor=None):
            return self.query_one('SELECT * FROM things WHERE id = %s', (id,), cursor=cursor)

        def save_thing(self, name):
            return self.execute(
                'INSERT INTO things (name) VALUES (%s) RETURNING id',
                (name,), returning=True
            )

    with transaction() as conn:
        cursor = get_cursor(conn)
        repo.save_thing_in(cursor, ...)
"""

from signoff.core.database import get_db, get_cursor, release_db, dict_from_row


class BaseRepository:

    def query_one(self, sql, params=None, cursor=None):
        """Execute a SELECT and return a single row as dict, or None."""
        if cursor is not None:
            cursor.execute(sql, params or ())
            row = cursor.fetchone()
            return dict_from_row(row) if row else None
        conn = get_db()
        try:
            cur = get_cursor(conn)
            cur.execute(sql, params or ())
            row = cur.fetchone()
            return dict_from_row(row) if row else None
        finally:
            release_db(conn)

    def query_all(self, sql, params=None, cursor=None):
        """Execute a SELECT and return all rows as list of dicts."""
        if cursor is not None:
            cursor.execute(sql, params or ())
            return [dict_from_row(r) for r in cursor.fetchall()]
        conn = get_db()
        try:
            cur = get_cursor(conn)
            cur.execute(sql, params or ())
            return [dict_from_row(r) for r in cur.fetchall()]
        finally:
            release_db(conn)

    def execute(self, sql, params=None, returning=False, cursor=None):
        """Execute an INSERT/UPDATE/DELETE.

        Args:
            sql: SQL statement
            params: Query parameters
            returning: If True, fetchone() and return dict. If False, return rowcount.
            cursor: Run inside the caller's transaction instead of auto-committing.

        Returns:
            dict if returning=True, else int (rowcount)
        """
        if cursor is not None:
            cursor.execute(sql, params or ())
            if returning:
                result = cursor.fetchone()
                return dict_from_row(result) if result else None
            return cursor.rowcount
        conn = get_db()
        try:
            cur = get_cursor(conn)
            cur.execute(sql, params or ())
            if returning:
                result = cur.fetchone()
                conn.commit()
                return dict_from_row(result) if result else None
            conn.commit()
            return cur.rowcount
        except Exception:
            conn.rollback()
            raise
        finally:
            release_db(conn)

    def execute_many(self, callback):
        """Execute multiple statements in a single transaction.

        Args:
            callback: Function that receives (cursor) and returns a result.
                      All statements within callback share one connection/transaction.

        Returns:
            Whatever callback returns
        """
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            result = callback(cursor)
            conn.commit()
            return result
        except Exception:
            conn.rollback()
            raise
        finally:
            release_db(conn)
