"""Unit tests for ticket readiness evaluation."""

import pytest

from pmagent.tickets.readiness import (
    convert_acceptance_bullets,
    evaluate_ticket_ready,
    extract_sections,
    find_placeholders,
)

READY_BODY = """# Fix login

## Goal

Users can log in with their email address.

## Human-verifiable deliverable

The login form accepts an email and shows the dashboard.

## Acceptance criteria

- [ ] Works
- [ ] Wrong password shows an error

## Constraints

Keep the existing session cookie.

## Non-goals

Social login.
"""


@pytest.mark.unit
class TestEvaluateTicketReady:
    """Tests for evaluate_ticket_ready."""

    def test_complete_body_is_ready(self) -> None:
        """All five sections, a checkbox and no placeholders means ready."""
        result = evaluate_ticket_ready(READY_BODY)

        assert result.ready is True
        assert result.missing_items == []
        assert all(result.checklist_results.values())

    def test_idempotent(self) -> None:
        """Evaluating the same body twice gives identical results."""
        assert evaluate_ticket_ready(READY_BODY) == evaluate_ticket_ready(READY_BODY)

    def test_plain_bullets_not_ready(self) -> None:
        """Acceptance criteria without checkbox syntax is never ready."""
        body = READY_BODY.replace("- [ ] Works", "- Works").replace(
            "- [ ] Wrong password", "- Wrong password"
        )
        result = evaluate_ticket_ready(body)

        assert result.ready is False
        assert result.checklist_results["acceptance_criteria"] is False
        assert any("Acceptance criteria" in item for item in result.missing_items)

    def test_checked_boxes_do_not_count(self) -> None:
        """Only unchecked boxes satisfy the criteria check."""
        body = READY_BODY.replace("- [ ]", "- [x]")
        assert evaluate_ticket_ready(body).checklist_results["acceptance_criteria"] is False

    def test_missing_section(self) -> None:
        """A missing Non-goals section is reported."""
        body = READY_BODY.split("## Non-goals")[0]
        result = evaluate_ticket_ready(body)

        assert result.ready is False
        assert result.checklist_results["non_goals"] is False
        assert result.missing_items == ["Non-goals section is missing or empty"]

    def test_empty_goal(self) -> None:
        """An empty Goal section fails the goal check."""
        body = READY_BODY.replace("Users can log in with their email address.", "")
        assert evaluate_ticket_ready(body).checklist_results["goal"] is False

    def test_placeholder_in_goal(self) -> None:
        """Placeholders in Goal fail both the goal and global checks."""
        body = READY_BODY.replace(
            "Users can log in with their email address.", "<what the user will see>"
        )
        result = evaluate_ticket_ready(body)

        assert result.checklist_results["goal"] is False
        assert result.checklist_results["no_placeholders"] is False
        assert "Unresolved template placeholders: <what the user will see>" in result.missing_items

    def test_placeholder_outside_sections(self) -> None:
        """A placeholder anywhere in the body invalidates readiness."""
        body = READY_BODY + "\n## Notes\n\nSee <link-to-design>\n"
        result = evaluate_ticket_ready(body)

        assert result.ready is False
        assert result.checklist_results == {
            "goal": True,
            "deliverable": True,
            "acceptance_criteria": True,
            "constraints": True,
            "non_goals": True,
            "no_placeholders": False,
        }

    def test_heading_qualifier_accepted(self) -> None:
        """Headings such as 'Goal (one sentence)' count as the section."""
        body = READY_BODY.replace("## Goal\n", "## Goal (one sentence)\n")
        assert evaluate_ticket_ready(body).ready is True

    def test_single_hash_sections_not_recognized(self) -> None:
        """Required sections must be level-2 headings."""
        body = READY_BODY.replace("## Constraints", "# Constraints")
        assert evaluate_ticket_ready(body).checklist_results["constraints"] is False

    def test_to_dict(self) -> None:
        """to_dict uses the tool-facing key names."""
        data = evaluate_ticket_ready(READY_BODY).to_dict()
        assert set(data) == {"ready", "missingItems", "checklistResults"}


@pytest.mark.unit
class TestHelpers:
    """Tests for section and placeholder helpers."""

    def test_extract_sections_first_occurrence_wins(self) -> None:
        """Duplicate headings keep the first section's content."""
        body = "## Goal\n\nfirst\n\n## Goal\n\nsecond\n"
        assert extract_sections(body)["Goal"] == "first"

    def test_deeper_headings_are_content(self) -> None:
        """### headings stay inside the enclosing section."""
        body = "## Constraints\n\n### Tech\n\nPython only\n"
        assert "Python only" in extract_sections(body)["Constraints"]

    def test_find_placeholders_distinct_in_order(self) -> None:
        """Placeholders are reported once each, in order of appearance."""
        assert find_placeholders("<b> <a> <b>") == ["<b>", "<a>"]

    def test_html_like_tags_with_symbols_ignored(self) -> None:
        """Tokens with characters outside word/space/hyphen are not placeholders."""
        assert find_placeholders("<a href='x'>") == []


@pytest.mark.unit
class TestConvertAcceptanceBullets:
    """Tests for convert_acceptance_bullets."""

    def test_converts_plain_bullets(self) -> None:
        """- and * bullets in Acceptance criteria become checkboxes."""
        body = "## Acceptance criteria\n\n- Works\n* Fast\n- [ ] Already\n\n## Constraints\n\n- keep\n"
        converted = convert_acceptance_bullets(body)

        assert converted == (
            "## Acceptance criteria\n\n- [ ] Works\n- [ ] Fast\n- [ ] Already\n\n"
            "## Constraints\n\n- keep\n"
        )

    def test_nothing_to_convert(self) -> None:
        """None when the section already uses checkboxes."""
        assert convert_acceptance_bullets(READY_BODY) is None

    def test_converted_body_becomes_ready(self) -> None:
        """Converting bullets is enough to make an otherwise complete body ready."""
        body = READY_BODY.replace("- [ ] ", "- ")
        converted = convert_acceptance_bullets(body)
        assert converted is not None
        assert evaluate_ticket_ready(converted).ready is True
