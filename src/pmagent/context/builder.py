"""Context pack builder - prompt material assembled once per turn.

Sections, in order: conversation so far, user message, repo rules, ticket
template, ready-to-start checklist and git status. Missing documents and a
failing ``git status`` degrade to placeholder text; only assembling the
conversation can fail the turn.
"""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
from pathlib import Path

from pmagent.context.exceptions import ContextPackError
from pmagent.context.models import ContextPackConfig, ConversationTurn

logger = logging.getLogger("pmagent.context")

CONVERSATION_CHAR_BUDGET = 12_000
OLDER_OMITTED_NOTE = "(older messages omitted)"

TICKET_TEMPLATE_PATH = "docs/templates/ticket.template.md"
CHECKLIST_PATH = "docs/process/ready-to-start-checklist.md"
RULE_EXTENSIONS = (".mdc", ".md")

STATUS_UNAVAILABLE = "(status unavailable)"


def render_conversation(
    turns: list[ConversationTurn],
    budget: int = CONVERSATION_CHAR_BUDGET,
) -> str:
    """Render the most recent turns that fit within ``budget`` characters.

    Oldest turns are dropped first; a note is prepended when any were dropped.
    """
    rendered = [turn.render() for turn in turns]
    selected: list[str] = []
    used = 0
    for text in reversed(rendered):
        cost = len(text) + 2
        if used + cost > budget:
            break
        selected.append(text)
        used += cost
    selected.reverse()
    if len(selected) < len(rendered):
        selected.insert(0, OLDER_OMITTED_NOTE)
    return "\n\n".join(selected)


def _conversation_section(config: ContextPackConfig) -> str | None:
    if config.conversation_summary:
        return config.conversation_summary
    if not config.conversation_history:
        return None
    return render_conversation(config.conversation_history)


def _rules_section(repo_root: str, rules_dir: str) -> str:
    parts = [f"## Repo rules ({rules_dir})"]
    rules_path = Path(repo_root) / rules_dir
    try:
        names = sorted(n for n in os.listdir(rules_path) if n.endswith(RULE_EXTENSIONS))
    except OSError:
        parts.append("(rules directory not found or not readable)")
        return "\n\n".join(parts)

    found = False
    for name in names:
        try:
            content = (rules_path / name).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Skipping unreadable rule file %s: %s", name, e)
            continue
        parts.append(f"### {name}\n\n{content.strip()}")
        found = True
    if not found:
        parts.append("(no rule files found)")
    return "\n\n".join(parts)


def _document_section(repo_root: str, heading: str, rel_path: str, missing: str) -> str:
    try:
        content = (Path(repo_root) / rel_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return f"{heading}\n\n{missing}"
    return f"{heading}\n\n{content.strip()}"


def _git_status(repo_root: str) -> str:
    try:
        result = subprocess.run(
            ["git", "status", "-sb"],
            cwd=repo_root,
            capture_output=True,
            text=True,
            check=True,
        )
    except (subprocess.CalledProcessError, OSError) as e:
        logger.debug("git status unavailable in %s: %s", repo_root, e)
        return STATUS_UNAVAILABLE
    return "```\n" + result.stdout.strip() + "\n```"


async def build_context_pack(config: ContextPackConfig, user_message: str) -> str:
    """Assemble the context pack for one turn.

    Args:
        config: Repository location and conversation inputs
        user_message: The current user message

    Returns:
        The context pack as one markdown text block

    Raises:
        ContextPackError: If the conversation could not be assembled
    """
    try:
        conversation = _conversation_section(config)
    except (MemoryError, TypeError, ValueError) as e:
        raise ContextPackError(f"Failed to assemble conversation: {e}") from e

    sections: list[str] = []
    if conversation:
        sections.append(f"## Conversation so far\n\n{conversation}")
    sections.append(f"## User message\n\n{user_message}")

    root = config.repo_root
    sections.append(await asyncio.to_thread(_rules_section, root, config.rules_dir))
    sections.append(
        await asyncio.to_thread(
            _document_section,
            root,
            "## Ticket template",
            TICKET_TEMPLATE_PATH,
            "(ticket template not found)",
        )
    )
    sections.append(
        await asyncio.to_thread(
            _document_section,
            root,
            "## Ready-to-start checklist",
            CHECKLIST_PATH,
            "(checklist not found)",
        )
    )
    status = await asyncio.to_thread(_git_status, root)
    sections.append(f"## Git status (git status -sb)\n\n{status}")

    pack = "\n\n".join(sections)
    logger.debug("Built context pack (%d chars, %d sections)", len(pack), len(sections))
    return pack
