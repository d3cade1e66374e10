"""Content store backed by SQLAlchemy 2.0 sessions.

One ``transaction()`` scope owns one session. Writes are flushed
immediately so constraint violations surface on the entity that caused
them, inside that entity's savepoint. Driver errors are translated to
``StoreConstraintError`` (integrity) and ``StoreError`` (everything else).
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Engine, create_engine, delete, event, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..exceptions import StoreConstraintError, StoreError
from ..models.config import TransferConfig
from ..models.options import PageStatus
from ..models.schema import EntityType
from .tables import TABLES, Base, TableSpec

logger = logging.getLogger(__name__)


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Re-raise SQLAlchemy errors as store errors."""
    try:
        yield
    except IntegrityError as e:
        raise StoreConstraintError(f"{action}: constraint violated ({e.orig})") from e
    except SQLAlchemyError as e:
        raise StoreError(f"{action}: {e}") from e


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite emits its own BEGIN lazily, which breaks SAVEPOINT;
    # take over transaction control and turn on foreign keys.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


class SQLAlchemyTransaction:
    """Typed CRUD operations over one session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def iter_rows(
        self, entity_type: EntityType, *, page_status: PageStatus = PageStatus.ALL
    ) -> Iterator[dict[str, Any]]:
        """Yield every row of a type as a mapping keyed by envelope field names.

        Args:
            entity_type: Type to read
            page_status: Status filter, applied to pages only
        """
        spec = TABLES[entity_type]
        stmt = select(spec.model).order_by(spec.model.id)
        if entity_type is EntityType.PAGES and page_status is not PageStatus.ALL:
            stmt = stmt.where(spec.model.status == page_status.value)

        with translate_errors(f"Reading {entity_type.value}"):
            rows = [self._to_row(spec, obj) for obj in self._session.scalars(stmt).all()]
        yield from rows

    def find_id(self, entity_type: EntityType, identity: Mapping[str, Any]) -> int | None:
        """Return the id of the row whose identity columns match, if any."""
        spec = TABLES[entity_type]
        stmt = select(spec.model.id)
        for name, value in identity.items():
            column = getattr(spec.model, spec.refs.get(name, name))
            stmt = stmt.where(column.is_(None) if value is None else column == value)

        with translate_errors(f"Looking up {entity_type.value}"):
            return self._session.scalars(stmt.limit(1)).first()

    def insert(self, entity_type: EntityType, values: Mapping[str, Any]) -> int:
        """Insert a row and return its id."""
        spec = TABLES[entity_type]
        columns, links = self._split(spec, values)

        with translate_errors(f"Creating {entity_type.value}"):
            obj = spec.model(**columns)
            self._session.add(obj)
            self._session.flush()
            self._replace_links(spec, obj.id, links)
            return obj.id

    def update(self, entity_type: EntityType, row_id: int, values: Mapping[str, Any]) -> None:
        """Overwrite a row's fields in place.

        Raises:
            StoreError: If the row does not exist
        """
        spec = TABLES[entity_type]
        columns, links = self._split(spec, values)

        with translate_errors(f"Updating {entity_type.value} {row_id}"):
            obj = self._session.get(spec.model, row_id)
            if obj is None:
                raise StoreError(f"{entity_type.value} {row_id} does not exist")
            for name, value in columns.items():
                setattr(obj, name, value)
            self._session.flush()
            self._replace_links(spec, row_id, links)

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        """Nested transaction; its writes roll back alone if the block raises."""
        with translate_errors("Savepoint"):
            with self._session.begin_nested():
                yield

    def _to_row(self, spec: TableSpec, obj: Base) -> dict[str, Any]:
        fk_columns = set(spec.refs.values())
        row: dict[str, Any] = {}
        for column in spec.model.__table__.columns:
            if column.key in fk_columns or column.key in spec.private:
                continue
            row[column.key] = getattr(obj, column.key)
        for name, fk in spec.refs.items():
            row[name] = getattr(obj, fk)
        for name, (table, owner, target) in spec.links.items():
            stmt = (
                select(table.c[target])
                .where(table.c[owner] == obj.id)
                .order_by(table.c[target])
            )
            row[name] = list(self._session.scalars(stmt))
        return row

    @staticmethod
    def _split(
        spec: TableSpec, values: Mapping[str, Any]
    ) -> tuple[dict[str, Any], dict[str, list[int]]]:
        columns: dict[str, Any] = {}
        links: dict[str, list[int]] = {}
        for name, value in values.items():
            if name == "id":
                continue
            if name in spec.links:
                links[name] = list(value or [])
            else:
                columns[spec.refs.get(name, name)] = value
        return columns, links

    def _replace_links(self, spec: TableSpec, row_id: int, links: dict[str, list[int]]) -> None:
        for name, target_ids in links.items():
            table, owner, target = spec.links[name]
            self._session.execute(delete(table).where(table.c[owner] == row_id))
            unique_ids = list(dict.fromkeys(target_ids))
            if unique_ids:
                self._session.execute(
                    insert(table), [{owner: row_id, target: tid} for tid in unique_ids]
                )


class SQLAlchemyContentStore:
    """Content store over a SQLAlchemy engine.

    Example:
        >>> store = SQLAlchemyContentStore("sqlite:///site.db")
        >>> store.create_schema()
        >>> with store.transaction() as tx:
        ...     language_id = tx.insert(EntityType.LANGUAGES, {"code": "en", "name": "English"})
    """

    def __init__(self, url_or_engine: str | Engine, *, echo: bool = False) -> None:
        """Initialize the store.

        Args:
            url_or_engine: SQLAlchemy URL or an existing engine
            echo: Log every SQL statement
        """
        if isinstance(url_or_engine, str):
            kwargs: dict[str, Any] = {"echo": echo, "future": True}
            if url_or_engine.startswith("sqlite") and (
                ":memory:" in url_or_engine or url_or_engine in ("sqlite://", "sqlite+pysqlite://")
            ):
                # One shared connection, otherwise every session sees an empty database
                kwargs.update(
                    poolclass=StaticPool, connect_args={"check_same_thread": False}
                )
            self.engine: Engine = create_engine(url_or_engine, **kwargs)
        else:
            self.engine = url_or_engine

        if self.engine.dialect.name == "sqlite":
            _enable_sqlite_savepoints(self.engine)

        self._session_factory = sessionmaker(
            bind=self.engine,
            autoflush=True,
            expire_on_commit=False,
        )

    @classmethod
    def from_config(cls, config: TransferConfig) -> SQLAlchemyContentStore:
        """Build a store from a TransferConfig."""
        return cls(config.database_url, echo=config.echo_sql)

    def create_schema(self) -> None:
        """Create all content tables that do not exist yet."""
        with translate_errors("Creating schema"):
            Base.metadata.create_all(self.engine)

    @contextmanager
    def transaction(self, *, read_only: bool = False) -> Iterator[SQLAlchemyTransaction]:
        """Provide a transactional scope around a series of operations.

        Commits on success unless ``read_only``; always rolls back on error.

        Args:
            read_only: Roll back on exit even when the block succeeds

        Raises:
            StoreError: If the session cannot begin or commit
        """
        session = self._session_factory()
        try:
            yield SQLAlchemyTransaction(session)
            if read_only:
                session.rollback()
            else:
                with translate_errors("Commit"):
                    session.commit()
                logger.debug("Transaction committed")
        except BaseException:
            session.rollback()
            logger.debug("Transaction rolled back")
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()
