"""
Database gateway for the portal scraper.

The job talks to the store through one SQLAlchemy connection, strictly
sequentially. Statements are raw SQL run through ``text()`` with bound
parameters; list-valued ``IN`` parameters use expanding bind parameters so
portal ids are never spliced into SQL.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Mapping

from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql.elements import TextClause

from .logging import logger


def _statement(sql: str | TextClause, expanding: Iterable[str] = ()) -> TextClause:
    stmt = text(sql) if isinstance(sql, str) else sql
    names = tuple(expanding)
    if names:
        stmt = stmt.bindparams(*(bindparam(name, expanding=True) for name in names))
    return stmt


class Database:
    """Thin wrapper exposing the handful of primitives the job needs.

    Outside of ``transaction()`` every statement is committed as soon as it
    runs, so progress made before a later failure is kept.
    """

    def __init__(self, connection: Connection) -> None:
        self.connection = connection
        self._in_transaction = False

    def exec(self, sql: str | TextClause) -> None:
        """Run a statement that returns nothing."""
        self.connection.execute(_statement(sql))
        self._autocommit()

    def exec_params(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any],
        expanding: Iterable[str] = (),
    ) -> int:
        """Run a statement with named bound parameters; returns the rowcount."""
        result = self.connection.execute(_statement(sql, expanding), dict(params))
        rowcount = result.rowcount
        self._autocommit()
        return rowcount

    def query_ids(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
        expanding: Iterable[str] = (),
    ) -> list[str]:
        """Run a single-column query and materialize every value as a string."""
        result = self.connection.execute(_statement(sql, expanding), dict(params or {}))
        ids = [str(row[0]) for row in result.fetchall()]
        self._autocommit()
        return ids

    @contextmanager
    def transaction(self) -> Iterator[Database]:
        """Group the enclosed statements into one atomic unit."""
        if self._in_transaction:
            raise RuntimeError("Nested transactions are not supported")
        if self.connection.in_transaction():
            self.connection.commit()
        self._in_transaction = True
        try:
            with self.connection.begin():
                yield self
        finally:
            self._in_transaction = False

    def _autocommit(self) -> None:
        if not self._in_transaction:
            self.connection.commit()


def create_db_engine(database_url: str) -> Engine:
    return create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,
    )


@contextmanager
def open_database(database_url: str | None = None, *, engine: Engine | None = None) -> Iterator[Database]:
    """
    Open the job's single database session.

    Connection errors propagate to the caller. Any exception raised inside
    the block rolls back the open transaction, is logged and re-raised.

    Usage:
        with open_database(settings.database_url) as db:
            db.exec_params("UPDATE gym SET name = :name WHERE id = :id", {...})
    """
    if engine is None:
        if database_url is None:
            raise ValueError("open_database needs a database_url or an engine")
        engine = create_db_engine(database_url)
        owns_engine = True
    else:
        owns_engine = False

    connection = engine.connect()
    try:
        yield Database(connection)
    except Exception as exc:
        connection.rollback()
        logger.exception("db_session_rollback", error=str(exc))
        raise
    finally:
        connection.close()
        if owns_engine:
            engine.dispose()


__all__ = ["Database", "create_db_engine", "open_database"]
