"""Ticket identifiers and body normalization helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass

from pmagent.tickets.exceptions import TicketValidationError
from pmagent.tickets.readiness import canonical_section

REPO_REF_PATTERN = re.compile(r"^[\w.-]+/[\w.-]+$")

_TICKET_REF_PATTERN = re.compile(r"^#?(?:([A-Za-z][A-Za-z0-9]*)-)?(\d+)$")
_LEGACY_HEADING_PATTERN = re.compile(r"^#\s+(.+?)\s*$")
_TITLE_FIELD_PATTERN = re.compile(r"^(\s*(?:-\s+)?\*\*Title\*\*:\s*).*$", re.MULTILINE)
_ID_FIELD_PATTERN = re.compile(r"^(\s*(?:-\s+)?\*\*ID\*\*:\s*).*$", re.MULTILINE)
_DISPLAY_PREFIX_PATTERN = re.compile(r"^\s*(?:[A-Za-z][A-Za-z0-9]*-)?\d{4}\s*[:\-–—]\s*")


@dataclass(frozen=True)
class TicketRef:
    """A parsed ticket reference such as "HAL-0012", "0012" or "12"."""

    number: int
    prefix: str | None = None

    @property
    def legacy_id(self) -> str:
        """Zero-padded legacy id for this number."""
        return format_legacy_id(self.number)


def parse_ticket_ref(value: str) -> TicketRef:
    """Parse a user- or model-supplied ticket reference.

    Raises:
        TicketValidationError: If the reference is malformed
    """
    match = _TICKET_REF_PATTERN.match((value or "").strip())
    if not match:
        raise TicketValidationError(
            f"Invalid ticket reference '{value}': expected e.g. 'HAL-0012', '0012' or '12'"
        )
    prefix = match.group(1).upper() if match.group(1) else None
    return TicketRef(number=int(match.group(2)), prefix=prefix)


def format_legacy_id(number: int) -> str:
    """Legacy global ids are four-digit zero-padded numbers."""
    return f"{number:04d}"


def format_display_id(prefix: str, number: int) -> str:
    """Human-facing id, PREFIX-NNNN."""
    return f"{prefix}-{number:04d}"


def validate_repo_ref(repo_full_name: str) -> str:
    """Check an ``owner/name`` repository reference.

    Raises:
        TicketValidationError: If the separator or either part is missing
    """
    candidate = (repo_full_name or "").strip()
    if not REPO_REF_PATTERN.match(candidate):
        raise TicketValidationError(
            f"Invalid repository '{repo_full_name}': expected 'owner/name'"
        )
    return candidate


def repo_prefix(repo_full_name: str) -> str:
    """Derive the short display-id prefix for a repository.

    The final path segment is lowercased and split on non-alphanumeric runs;
    scanning from the end, the first purely alphabetic token of 2-6 letters
    becomes the prefix. Otherwise the first 1-4 letters of the name are used.

    >>> repo_prefix("acme/portfolio-2026-hal")
    'HAL'
    """
    name = (repo_full_name or "").rstrip("/").split("/")[-1].lower()
    tokens = [t for t in re.split(r"[^a-z0-9]+", name) if t]
    for token in reversed(tokens):
        if token.isalpha() and 2 <= len(token) <= 6:
            return token.upper()
    letters = re.sub(r"[^a-z]", "", name)[:4]
    return letters.upper() or "PRJ"


def slugify(text: str, max_length: int = 60) -> str:
    """Filename-safe slug of a title."""
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")
    return slug[:max_length].rstrip("-") or "ticket"


def strip_display_prefix(title: str) -> str:
    """Remove a leading "PREFIX-NNNN:" or "NNNN:" from a title."""
    return _DISPLAY_PREFIX_PATTERN.sub("", title or "", count=1).strip() or (title or "").strip()


def normalize_title(title: str, reference: str) -> str:
    """Title that embeds the ticket's display (or legacy) id exactly once."""
    return f"{reference}: {strip_display_prefix(title)}"


def normalize_section_headings(body_md: str) -> str:
    """Promote legacy single-``#`` required section headings to ``##``."""
    lines = (body_md or "").split("\n")
    for index, line in enumerate(lines):
        match = _LEGACY_HEADING_PATTERN.match(line)
        if match and canonical_section(match.group(1)) is not None:
            lines[index] = f"## {match.group(1)}"
    return "\n".join(lines)


def normalize_title_line(body_md: str, reference: str, title: str) -> str:
    """Keep the body's title line consistent with the ticket id.

    Rewrites a ``**Title**:`` field (and an ``**ID**:`` field) when present,
    otherwise a leading ``# `` heading that is not a required section. Bodies
    without a title line are returned unchanged.
    """
    full_title = normalize_title(title, reference)
    body = body_md or ""
    if _TITLE_FIELD_PATTERN.search(body):
        body = _TITLE_FIELD_PATTERN.sub(lambda m: m.group(1) + full_title, body, count=1)
        return _ID_FIELD_PATTERN.sub(lambda m: m.group(1) + reference, body, count=1)

    lines = body.split("\n")
    for index, line in enumerate(lines):
        if not line.strip():
            continue
        heading = _LEGACY_HEADING_PATTERN.match(line)
        if heading and canonical_section(heading.group(1)) is None:
            lines[index] = f"# {full_title}"
        break
    return "\n".join(lines)
