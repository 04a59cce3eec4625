"""Ticket lifecycle - creation, numbering and Kanban column transitions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TypeVar

from pmagent.state_store import (
    DuplicateTicketError,
    KanbanColumn,
    RepoSummary,
    ScopingUnsupportedError,
    StateStoreError,
    TicketNotFoundError,
    TicketRecord,
    TicketStore,
)
from pmagent.state_store.models import generate_uuid
from pmagent.tickets.exceptions import (
    IdAllocationError,
    TicketError,
    TicketMoveError,
    TicketValidationError,
)
from pmagent.tickets.identifiers import (
    format_display_id,
    format_legacy_id,
    normalize_section_headings,
    normalize_title,
    normalize_title_line,
    parse_ticket_ref,
    repo_prefix,
    slugify,
    strip_display_prefix,
    validate_repo_ref,
)
from pmagent.tickets.models import (
    ColumnListing,
    CreateTicketResult,
    MoveResult,
    UpdateBodyResult,
)
from pmagent.tickets.readiness import (
    convert_acceptance_bullets,
    evaluate_ticket_ready,
    find_placeholders,
)

logger = logging.getLogger("pmagent.tickets")

MAX_ALLOCATION_ATTEMPTS = 10
DEFAULT_REPO = "local/default"

_UNASSIGNED_VALUES = (None, "", KanbanColumn.UNASSIGNED.value)

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(UTC)


def _checked_title_line(body_md: str, reference: str, title: str) -> str:
    """Rewrite the body's title line, refusing a result with placeholders.

    Raises:
        TicketValidationError: If the rewritten body contains placeholders
    """
    body = normalize_title_line(body_md, reference, title)
    introduced = find_placeholders(body)
    if introduced:
        raise TicketValidationError(
            f"Ticket {reference} would contain unresolved template placeholders after "
            "its title line is rewritten: " + ", ".join(introduced)
        )
    return body


class TicketLifecycle:
    """Ticket operations for one repository scope.

    Works against both scoped stores (per-repository numbering with
    ``PREFIX-NNNN`` display ids) and legacy stores that only know the global
    four-digit id. The mode is detected on first use.
    """

    def __init__(self, store: TicketStore, repo_full_name: str = DEFAULT_REPO) -> None:
        """Initialize the lifecycle manager.

        Args:
            store: Ticket store to operate on
            repo_full_name: Repository scope (``owner/name``) new tickets belong to
        """
        self.store = store
        self.repo_full_name = validate_repo_ref(repo_full_name)
        self._scoped: bool | None = None

    @property
    def scoped(self) -> bool:
        """Whether the store supports per-repository numbering."""
        if self._scoped is None:
            try:
                self.store.max_ticket_number(self.repo_full_name)
                self._scoped = True
            except ScopingUnsupportedError:
                logger.warning("Ticket store has no repository scoping; using legacy ids")
                self._scoped = False
        return self._scoped

    # --- Numbering ---

    def _allocate(self, start: int, attempt: Callable[[int], T]) -> tuple[T, int]:
        """Try consecutive candidate numbers until one is accepted by the store.

        Returns:
            The attempt's result and the number of attempts made

        Raises:
            IdAllocationError: If every candidate within the bound conflicted
        """
        for offset in range(MAX_ALLOCATION_ATTEMPTS):
            number = start + offset
            try:
                return attempt(number), offset + 1
            except DuplicateTicketError as e:
                logger.info("Ticket number %d is taken (%s), trying %d", number, e, number + 1)
        last = start + MAX_ALLOCATION_ATTEMPTS - 1
        raise IdAllocationError(
            f"Could not allocate a ticket number after {MAX_ALLOCATION_ATTEMPTS} "
            f"attempts (tried {start}-{last})"
        )

    def _next_number(self) -> int:
        if self.scoped:
            return (self.store.max_ticket_number(self.repo_full_name) or 0) + 1
        return self.store.max_legacy_number() + 1

    def _number_taken(self, number: int) -> bool:
        try:
            self.store.get_by_number(self.repo_full_name, number)
        except TicketNotFoundError:
            return False
        return True

    def _legacy_id_taken(self, legacy_id: str) -> bool:
        try:
            self.store.get_by_legacy_id(legacy_id)
        except TicketNotFoundError:
            return False
        return True

    def _tail_position(self, column_id: str, repo_full_name: str | None) -> int:
        scope = repo_full_name if self.scoped else None
        current = self.store.max_position(column_id, scope)
        return 0 if current is None else current + 1

    # --- Lookup ---

    def fetch(self, ticket_ref: str) -> TicketRecord:
        """Resolve a ticket reference to the stored ticket.

        ``PREFIX-NNNN`` is looked up by display id. A bare number is tried as
        this repository's sequence number first, then as a legacy global id.

        Raises:
            TicketValidationError: If the reference is malformed
            TicketNotFoundError: If no ticket matches
        """
        ref = parse_ticket_ref(ticket_ref)
        if not self.scoped:
            return self.store.get_by_legacy_id(ref.legacy_id, scoped=False)
        if ref.prefix:
            return self.store.get_by_display_id(format_display_id(ref.prefix, ref.number))
        try:
            return self.store.get_by_number(self.repo_full_name, ref.number)
        except TicketNotFoundError:
            return self.store.get_by_legacy_id(ref.legacy_id)

    def list_by_column(self, column_id: str) -> ColumnListing:
        """List this repository's tickets in a Kanban column.

        Raises:
            TicketValidationError: If the column id is unknown
        """
        try:
            column = KanbanColumn(column_id)
        except ValueError as e:
            known = ", ".join(c.value for c in KanbanColumn)
            raise TicketValidationError(
                f"Unknown column '{column_id}': expected one of {known}"
            ) from e
        scope = self.repo_full_name if self.scoped else None
        tickets = self.store.list_by_column(column.value, scope, scoped=self.scoped)
        return ColumnListing(column_id=column.value, tickets=tickets)

    def list_repos(self) -> list[RepoSummary]:
        """Repository scopes that currently own tickets.

        Raises:
            TicketError: If the store has no repository scoping
        """
        if not self.scoped:
            raise TicketError("Repository listing needs a ticket store with repository scoping")
        return self.store.list_repos()

    # --- Creation ---

    def create_ticket(self, title: str, body_md: str) -> CreateTicketResult:
        """Create a ticket in Unassigned and move it to To Do when ready.

        Args:
            title: Ticket title (any existing id prefix is replaced)
            body_md: Markdown body

        Returns:
            CreateTicketResult with readiness and move outcome

        Raises:
            TicketValidationError: If the title is empty or the title or body has placeholders
            IdAllocationError: If no free number was found
        """
        clean_title = strip_display_prefix(title)
        if not clean_title:
            raise TicketValidationError("Ticket title is required")
        title_placeholders = find_placeholders(clean_title)
        if title_placeholders:
            raise TicketValidationError(
                "Ticket title contains text that reads as a template placeholder: "
                + ", ".join(title_placeholders)
                + ". Rephrase the title without angle brackets."
            )
        placeholders = find_placeholders(body_md)
        if placeholders:
            raise TicketValidationError(
                "Ticket body contains unresolved template placeholders: "
                + ", ".join(placeholders)
                + ". Replace them with real content before creating the ticket."
            )

        body = normalize_section_headings(body_md)
        position = self._tail_position(KanbanColumn.UNASSIGNED.value, self.repo_full_name)
        moved_at = _now()

        def build(number: int, legacy_id: str) -> TicketRecord:
            if self.scoped:
                display_id: str | None = format_display_id(
                    repo_prefix(self.repo_full_name), number
                )
                reference = display_id
            else:
                display_id = None
                reference = legacy_id
            record = TicketRecord(
                id=legacy_id,
                filename=f"{reference}-{slugify(clean_title)}.md",
                title=normalize_title(clean_title, reference),
                body_md=_checked_title_line(body, reference, clean_title),
                kanban_column_id=KanbanColumn.UNASSIGNED.value,
                kanban_position=position,
                kanban_moved_at=moved_at,
            )
            if self.scoped:
                record.pk = generate_uuid()
                record.repo_full_name = self.repo_full_name
                record.ticket_number = number
                record.display_id = display_id
            return record

        def insert(number: int) -> TicketRecord:
            if not self.scoped:
                return self.store.insert_ticket(build(number, format_legacy_id(number)), False)
            # A clash on the global id alone is retried with a fresh id; the
            # sequence number only advances when it is the number that is taken.
            for _ in range(MAX_ALLOCATION_ATTEMPTS):
                legacy_id = format_legacy_id(self.store.max_legacy_number() + 1)
                try:
                    return self.store.insert_ticket(build(number, legacy_id))
                except DuplicateTicketError:
                    if self._number_taken(number) or not self._legacy_id_taken(legacy_id):
                        raise
                    logger.info("Legacy id %s is taken, retrying number %d", legacy_id, number)
            raise IdAllocationError(
                f"Could not allocate a legacy id for number {number} after "
                f"{MAX_ALLOCATION_ATTEMPTS} attempts"
            )

        ticket, attempts = self._allocate(self._next_number(), insert)
        logger.info(
            "Created ticket %s in %s (attempts=%d)",
            ticket.reference,
            self.repo_full_name if self.scoped else "legacy store",
            attempts,
        )

        readiness = evaluate_ticket_ready(ticket.body_md)
        auto_fixed = False
        if not readiness.checklist_results.get("acceptance_criteria", False):
            fixed = convert_acceptance_bullets(ticket.body_md)
            if fixed is not None:
                ticket = self.store.update_ticket(ticket.id, {"body_md": fixed}, self.scoped)
                readiness = evaluate_ticket_ready(fixed)
                auto_fixed = True
                logger.info("Converted acceptance bullets to checkboxes for %s", ticket.reference)

        result = CreateTicketResult(
            ticket=ticket, readiness=readiness, auto_fixed=auto_fixed, attempts=attempts
        )
        if readiness.ready:
            try:
                result.ticket = self._place_in_todo(ticket)
                result.moved_to_todo = True
            except (TicketError, StateStoreError) as e:
                logger.warning("Auto-move of %s to To Do failed: %s", ticket.reference, e)
                result.move_error = str(e)
        return result

    # --- Column transitions ---

    def _place_in_todo(self, ticket: TicketRecord) -> TicketRecord:
        position = self._tail_position(
            KanbanColumn.TODO.value, ticket.repo_full_name or self.repo_full_name
        )
        values = {
            "kanban_column_id": KanbanColumn.TODO.value,
            "kanban_position": position,
            "kanban_moved_at": _now(),
        }
        moved = self.store.update_ticket(ticket.id, values, self.scoped)
        logger.info("Moved %s to To Do at position %d", moved.reference, position)
        return moved

    def move_to_todo(self, ticket_ref: str) -> MoveResult:
        """Move a ticket from Unassigned to the tail of To Do.

        Raises:
            TicketMoveError: If the ticket is in any other column
            TicketNotFoundError: If the ticket doesn't exist
        """
        ticket = self.fetch(ticket_ref)
        current = ticket.kanban_column_id
        if current not in _UNASSIGNED_VALUES:
            raise TicketMoveError(
                f"Ticket {ticket.reference} is not in Unassigned (current column: {current})"
            )
        moved = self._place_in_todo(ticket)
        return MoveResult(ticket=moved, from_column=current, to_column=KanbanColumn.TODO.value)

    def move_to_other_repo_todo(self, ticket_ref: str, target_repo: str) -> MoveResult:
        """Move a ticket from any column into another repository's To Do.

        The ticket gets the target's next sequence number (or keeps its own when
        the target has no tickets yet), a display id with the target's prefix,
        a rewritten title line and the tail position, all in one update.

        Raises:
            TicketValidationError: If either reference is malformed or the moved title
                line would contain placeholders
            TicketMoveError: If the store is unscoped or the target check fails
            IdAllocationError: If no free number was found in the target
        """
        target = validate_repo_ref(target_repo)
        ticket = self.fetch(ticket_ref)
        if not self.scoped:
            raise TicketMoveError("Cross-repository moves need a ticket store with repository scoping")

        # Zero tickets is a valid target; only a failing query is not
        try:
            existing = self.store.count_repo_tickets(target)
        except StateStoreError as e:
            raise TicketMoveError(f"Could not check target repository {target}: {e}") from e
        logger.debug("Target repository %s has %d tickets", target, existing)

        own_number = ticket.ticket_number if ticket.ticket_number is not None else int(ticket.id)
        if target == ticket.repo_full_name:
            start = own_number
        else:
            target_max = self.store.max_ticket_number(target)
            start = own_number if target_max is None else target_max + 1

        clean_title = strip_display_prefix(ticket.title)
        prefix = repo_prefix(target)
        position = self._tail_position(KanbanColumn.TODO.value, target)

        def reassign(number: int) -> TicketRecord:
            display_id = format_display_id(prefix, number)
            values = {
                "repo_full_name": target,
                "ticket_number": number,
                "display_id": display_id,
                "title": normalize_title(clean_title, display_id),
                "body_md": _checked_title_line(ticket.body_md, display_id, clean_title),
                "filename": f"{display_id}-{slugify(clean_title)}.md",
                "kanban_column_id": KanbanColumn.TODO.value,
                "kanban_position": position,
                "kanban_moved_at": _now(),
            }
            return self.store.update_ticket(ticket.id, values)

        moved, attempts = self._allocate(start, reassign)
        logger.info(
            "Moved %s (%s) to %s as %s (attempts=%d)",
            ticket.reference,
            ticket.repo_full_name,
            target,
            moved.reference,
            attempts,
        )
        return MoveResult(
            ticket=moved,
            from_column=ticket.kanban_column_id,
            to_column=KanbanColumn.TODO.value,
            from_repo=ticket.repo_full_name,
        )

    # --- Content ---

    def update_body(self, ticket_ref: str, body_md: str) -> UpdateBodyResult:
        """Replace a ticket's body and re-evaluate readiness.

        Raises:
            TicketValidationError: If the body has placeholders or the reference is malformed
            TicketNotFoundError: If the ticket doesn't exist
        """
        placeholders = find_placeholders(body_md)
        if placeholders:
            raise TicketValidationError(
                "Ticket body contains unresolved template placeholders: " + ", ".join(placeholders)
            )
        ticket = self.fetch(ticket_ref)
        body = normalize_section_headings(body_md)
        body = _checked_title_line(body, ticket.reference, strip_display_prefix(ticket.title))
        updated = self.store.update_ticket(ticket.id, {"body_md": body}, self.scoped)
        logger.info("Updated body of %s", updated.reference)
        return UpdateBodyResult(ticket=updated, readiness=evaluate_ticket_ready(body))
