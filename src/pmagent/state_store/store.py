"""TicketStore - Main API for ticket persistence.

All statements name their columns explicitly so that the same code can run
against stores that predate the repository-scoping columns. Callers pass
``scoped=False`` to stay within the legacy column set; touching a missing
column raises ScopingUnsupportedError.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Integer, cast, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError, SQLAlchemyError
from sqlalchemy.orm import Session

from pmagent.state_store.database import Database
from pmagent.state_store.exceptions import (
    DuplicateTicketError,
    ScopingUnsupportedError,
    StateStoreError,
    TicketNotFoundError,
)
from pmagent.state_store.models import (
    LEGACY_COLUMNS,
    SCOPED_COLUMNS,
    SCOPED_FIELDS,
    KanbanColumn,
    RepoSummary,
    Ticket,
    TicketRecord,
)

logger = logging.getLogger("pmagent.state_store")

_MISSING_COLUMN_MARKERS = ("no such column", "has no column named", "does not exist")


def is_missing_column_error(error: Exception) -> bool:
    """Whether a driver error means a referenced column is absent."""
    message = str(getattr(error, "orig", error)).lower()
    return any(marker in message for marker in _MISSING_COLUMN_MARKERS)


class TicketStore:
    """Main API for ticket store operations."""

    def __init__(self, db_path: str = "pmagent.db", create_tables: bool = True) -> None:
        """Initialize TicketStore with SQLite database.

        Args:
            db_path: Path to SQLite database file
            create_tables: Create missing tables on startup
        """
        self._db = Database(db_path)
        if create_tables:
            self._db.create_tables()

    @property
    def database(self) -> Database:
        """Underlying connection manager."""
        return self._db

    def close(self) -> None:
        """Close the database connection."""
        self._db.close()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Session scope translating driver errors into store exceptions."""
        session = self._db.get_session()
        try:
            yield session
        except IntegrityError as e:
            session.rollback()
            raise DuplicateTicketError(f"Uniqueness conflict: {e.orig}") from e
        except (OperationalError, ProgrammingError) as e:
            session.rollback()
            if is_missing_column_error(e):
                raise ScopingUnsupportedError(
                    f"Ticket store lacks repository scoping columns: {e.orig}"
                ) from e
            raise StateStoreError(f"Ticket store query failed: {e.orig}") from e
        except SQLAlchemyError as e:
            session.rollback()
            raise StateStoreError(f"Ticket store query failed: {e}") from e
        finally:
            session.close()

    @staticmethod
    def _columns(scoped: bool) -> tuple[Any, ...]:
        return SCOPED_COLUMNS if scoped else LEGACY_COLUMNS

    @staticmethod
    def _to_record(row: Any) -> TicketRecord:
        return TicketRecord(**dict(row._mapping))

    # --- Numbering ---

    def max_legacy_number(self) -> int:
        """Highest legacy global id in the store (0 when empty)."""
        with self._session() as session:
            value = session.execute(select(func.max(cast(Ticket.id, Integer)))).scalar()
            return int(value or 0)

    def max_ticket_number(self, repo_full_name: str) -> int | None:
        """Highest per-repository sequence number, or None if the repo has none.

        Raises:
            ScopingUnsupportedError: If the store has no scoping columns
        """
        with self._session() as session:
            stmt = select(func.max(Ticket.ticket_number)).where(
                Ticket.repo_full_name == repo_full_name
            )
            value = session.execute(stmt).scalar()
            return None if value is None else int(value)

    def count_repo_tickets(self, repo_full_name: str) -> int:
        """Number of tickets owned by a repository (zero is a valid answer).

        Raises:
            ScopingUnsupportedError: If the store has no scoping columns
            StateStoreError: If the query itself fails
        """
        with self._session() as session:
            stmt = select(func.count()).select_from(Ticket).where(
                Ticket.repo_full_name == repo_full_name
            )
            return int(session.execute(stmt).scalar() or 0)

    # --- Ticket Operations ---

    def insert_ticket(self, record: TicketRecord, scoped: bool = True) -> TicketRecord:
        """Insert a new ticket row.

        Args:
            record: Values to insert
            scoped: Whether to write the repository-scoping columns

        Returns:
            The stored ticket as read back from the database

        Raises:
            DuplicateTicketError: If id, filename or (repo, number) is taken
            ScopingUnsupportedError: If scoped=True on a legacy store
        """
        values = record.to_dict()
        values["kanban_moved_at"] = record.kanban_moved_at
        if not scoped:
            values = {k: v for k, v in values.items() if k not in SCOPED_FIELDS}
        with self._session() as session:
            session.execute(insert(Ticket.__table__).values(**values))
            session.commit()
        logger.debug("Inserted ticket id=%s display_id=%s", record.id, record.display_id)
        return self.get_by_legacy_id(record.id, scoped=scoped)

    def get_by_legacy_id(self, legacy_id: str, scoped: bool = True) -> TicketRecord:
        """Get ticket by legacy global id.

        Raises:
            TicketNotFoundError: If ticket doesn't exist
        """
        with self._session() as session:
            stmt = select(*self._columns(scoped)).where(Ticket.id == legacy_id)
            row = session.execute(stmt).first()
            if row is None:
                raise TicketNotFoundError(f"Ticket '{legacy_id}' not found")
            return self._to_record(row)

    def get_by_display_id(self, display_id: str) -> TicketRecord:
        """Get ticket by display id (case-insensitive).

        Raises:
            TicketNotFoundError: If ticket doesn't exist
        """
        with self._session() as session:
            stmt = select(*SCOPED_COLUMNS).where(
                func.upper(Ticket.display_id) == display_id.upper()
            )
            row = session.execute(stmt).first()
            if row is None:
                raise TicketNotFoundError(f"Ticket '{display_id}' not found")
            return self._to_record(row)

    def get_by_number(self, repo_full_name: str, ticket_number: int) -> TicketRecord:
        """Get ticket by repository scope and sequence number.

        Raises:
            TicketNotFoundError: If ticket doesn't exist
        """
        with self._session() as session:
            stmt = select(*SCOPED_COLUMNS).where(
                Ticket.repo_full_name == repo_full_name,
                Ticket.ticket_number == ticket_number,
            )
            row = session.execute(stmt).first()
            if row is None:
                raise TicketNotFoundError(
                    f"Ticket #{ticket_number} not found in {repo_full_name}"
                )
            return self._to_record(row)

    def update_ticket(
        self, legacy_id: str, values: dict[str, Any], scoped: bool = True
    ) -> TicketRecord:
        """Update the given fields of one ticket in a single statement.

        Args:
            legacy_id: The ticket's legacy global id
            values: Column values to write
            scoped: Whether the store has scoping columns

        Returns:
            The updated ticket

        Raises:
            TicketNotFoundError: If ticket doesn't exist
            DuplicateTicketError: If the new values violate a unique constraint
            ScopingUnsupportedError: If scoping fields are written to a legacy store
        """
        if not scoped and SCOPED_FIELDS.intersection(values):
            raise ScopingUnsupportedError("Ticket store lacks repository scoping columns")
        with self._session() as session:
            stmt = update(Ticket.__table__).where(Ticket.__table__.c.id == legacy_id)
            result = session.execute(stmt.values(**values))
            if result.rowcount == 0:
                raise TicketNotFoundError(f"Ticket '{legacy_id}' not found")
            session.commit()
        return self.get_by_legacy_id(legacy_id, scoped=scoped)

    # --- Kanban Operations ---

    @staticmethod
    def _column_filter(column_id: str) -> Any:
        if column_id == KanbanColumn.UNASSIGNED.value:
            return or_(
                Ticket.kanban_column_id == column_id,
                Ticket.kanban_column_id.is_(None),
                Ticket.kanban_column_id == "",
            )
        return Ticket.kanban_column_id == column_id

    def max_position(self, column_id: str, repo_full_name: str | None = None) -> int | None:
        """Highest position in a column (optionally within one repo), None if empty."""
        with self._session() as session:
            stmt = select(func.max(Ticket.kanban_position)).where(self._column_filter(column_id))
            if repo_full_name is not None:
                stmt = stmt.where(Ticket.repo_full_name == repo_full_name)
            value = session.execute(stmt).scalar()
            return None if value is None else int(value)

    def list_by_column(
        self,
        column_id: str,
        repo_full_name: str | None = None,
        scoped: bool = True,
    ) -> list[TicketRecord]:
        """List tickets in a column, ordered by position.

        Args:
            column_id: Kanban column id; "col-unassigned" includes unplaced tickets
            repo_full_name: Restrict to one repository scope (scoped stores only)
            scoped: Whether the store has scoping columns
        """
        with self._session() as session:
            stmt = select(*self._columns(scoped)).where(self._column_filter(column_id))
            if repo_full_name is not None:
                stmt = stmt.where(Ticket.repo_full_name == repo_full_name)
            stmt = stmt.order_by(Ticket.kanban_position.is_(None), Ticket.kanban_position, Ticket.id)
            return [self._to_record(row) for row in session.execute(stmt)]

    def list_repos(self) -> list[RepoSummary]:
        """List repository scopes that own tickets, with ticket counts.

        Raises:
            ScopingUnsupportedError: If the store has no scoping columns
        """
        with self._session() as session:
            stmt = (
                select(Ticket.repo_full_name, func.count().label("ticket_count"))
                .where(Ticket.repo_full_name.is_not(None))
                .group_by(Ticket.repo_full_name)
                .order_by(Ticket.repo_full_name)
            )
            return [
                RepoSummary(repo_full_name=row.repo_full_name, ticket_count=row.ticket_count)
                for row in session.execute(stmt)
            ]
