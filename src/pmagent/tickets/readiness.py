"""Definition of Ready evaluation for ticket bodies.

A ticket is ready to start when its markdown body has the five required
sections filled in, at least one acceptance-criteria checkbox, and no
unresolved template placeholders anywhere.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

GOAL = "Goal"
DELIVERABLE = "Human-verifiable deliverable"
ACCEPTANCE_CRITERIA = "Acceptance criteria"
CONSTRAINTS = "Constraints"
NON_GOALS = "Non-goals"

REQUIRED_SECTIONS = (GOAL, DELIVERABLE, ACCEPTANCE_CRITERIA, CONSTRAINTS, NON_GOALS)

# Template placeholders such as <what the user will see>
PLACEHOLDER_PATTERN = re.compile(r"<[\w\s-]+>")

UNCHECKED_BOX_PATTERN = re.compile(r"^\s*- \[ \]", re.MULTILINE)
_PLAIN_BULLET_PATTERN = re.compile(r"^(\s*)[-*]\s+(?!\[[ xX]\])(\S.*)$")
_HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")


def find_placeholders(text: str) -> list[str]:
    """Distinct placeholder tokens in order of first appearance."""
    seen: dict[str, None] = {}
    for token in PLACEHOLDER_PATTERN.findall(text or ""):
        seen.setdefault(token, None)
    return list(seen)


def canonical_section(heading_text: str) -> str | None:
    """Map heading text to a required section name.

    Exact text, optionally followed by a parenthetical qualifier, e.g.
    "Goal (one sentence)".
    """
    for name in REQUIRED_SECTIONS:
        if heading_text == name:
            return name
        if heading_text.startswith(name + " (") and heading_text.endswith(")"):
            return name
    return None


def extract_sections(body_md: str) -> dict[str, str]:
    """Content of each required ``##`` section, keyed by canonical name.

    A section runs until the next level-1 or level-2 heading; deeper
    headings are part of the content. The first occurrence wins.
    """
    sections: dict[str, str] = {}
    current: str | None = None
    buffer: list[str] = []

    def flush() -> None:
        if current is not None and current not in sections:
            sections[current] = "\n".join(buffer).strip()

    for line in (body_md or "").split("\n"):
        heading = _HEADING_PATTERN.match(line)
        if heading and len(heading.group(1)) <= 2:
            flush()
            buffer = []
            current = canonical_section(heading.group(2)) if len(heading.group(1)) == 2 else None
            continue
        if current is not None:
            buffer.append(line)
    flush()
    return sections


@dataclass(frozen=True)
class ReadinessResult:
    """Outcome of a readiness evaluation.

    Attributes:
        ready: Whether every check passed.
        missing_items: Human-readable reasons for each failed check.
        checklist_results: Per-check booleans.
    """

    ready: bool
    missing_items: list[str] = field(default_factory=list)
    checklist_results: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the tool-facing dictionary."""
        return {
            "ready": self.ready,
            "missingItems": list(self.missing_items),
            "checklistResults": dict(self.checklist_results),
        }


def evaluate_ticket_ready(body_md: str) -> ReadinessResult:
    """Evaluate a ticket body against the Definition of Ready.

    Pure function: the same body always yields the same result.
    """
    sections = extract_sections(body_md)
    goal = sections.get(GOAL, "")
    deliverable = sections.get(DELIVERABLE, "")
    criteria = sections.get(ACCEPTANCE_CRITERIA, "")
    placeholders = find_placeholders(body_md)

    checks = {
        "goal": bool(goal) and not PLACEHOLDER_PATTERN.search(goal),
        "deliverable": bool(deliverable) and not PLACEHOLDER_PATTERN.search(deliverable),
        "acceptance_criteria": UNCHECKED_BOX_PATTERN.search(criteria) is not None,
        "constraints": bool(sections.get(CONSTRAINTS)),
        "non_goals": bool(sections.get(NON_GOALS)),
        "no_placeholders": not placeholders,
    }

    reasons = {
        "goal": f"{GOAL} section is missing, empty or still has placeholders",
        "deliverable": f"{DELIVERABLE} section is missing, empty or still has placeholders",
        "acceptance_criteria": (
            f"{ACCEPTANCE_CRITERIA} section needs at least one unchecked checkbox (- [ ])"
        ),
        "constraints": f"{CONSTRAINTS} section is missing or empty",
        "non_goals": f"{NON_GOALS} section is missing or empty",
        "no_placeholders": (
            "Unresolved template placeholders: " + ", ".join(placeholders)
            if placeholders
            else ""
        ),
    }

    missing = [reasons[name] for name, passed in checks.items() if not passed]
    return ReadinessResult(ready=not missing, missing_items=missing, checklist_results=checks)


def convert_acceptance_bullets(body_md: str) -> str | None:
    """Turn plain bullets in the Acceptance criteria section into checkboxes.

    Returns:
        The rewritten body, or None when there was nothing to convert.
    """
    lines = (body_md or "").split("\n")
    in_criteria = False
    changed = False
    for index, line in enumerate(lines):
        heading = _HEADING_PATTERN.match(line)
        if heading and len(heading.group(1)) <= 2:
            in_criteria = (
                len(heading.group(1)) == 2
                and canonical_section(heading.group(2)) == ACCEPTANCE_CRITERIA
            )
            continue
        if not in_criteria:
            continue
        bullet = _PLAIN_BULLET_PATTERN.match(line)
        if bullet:
            lines[index] = f"{bullet.group(1)}- [ ] {bullet.group(2)}"
            changed = True
    return "\n".join(lines) if changed else None
