# File: schemaforge/conflicts.py
"""
SchemaForge - Conflict Resolution
===================================
Decides whether an artifact may overwrite an existing file.

Decision order for ``resolve``:
    1. external force or ``force_overwrite_all`` → WRITE
    2. ``skip_all``                                → SKIP
    3. target does not exist                      → WRITE
    4. ask ``y / n / all / skip-all`` (default ``n``)

``all`` and ``skip-all`` set a blanket flag on the run's policy, after which
no further question is put to the operator for the rest of the run.
"""

from __future__ import annotations

import logging
from typing import List

from schemaforge.models import RunContext, WriteDecision
from schemaforge.prompts import PromptProvider

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.conflicts")

ANSWER_YES: tuple = ("y", "yes")
ANSWER_ALL: str = "all"
ANSWER_SKIP_ALL: str = "skip-all"


class ConflictResolver:
    """Pure decision layer in front of a ``PromptProvider``."""

    def __init__(self, prompt: PromptProvider) -> None:
        self.prompt: PromptProvider = prompt

    def ask_permission(self, context: RunContext, message: str) -> bool:
        """
        Put a yes/no/all/skip-all question, honouring blanket answers.

        Examples of *message*: ``"File app/models/user.py exists. Overwrite?"``.
        """
        policy = context.policy
        if context.force or policy.force_overwrite_all:
            return True
        if policy.skip_all:
            return False

        answer: str = self.prompt.ask(f"{message} (y/n/all/skip-all)", "n").strip().lower()
        if answer == ANSWER_ALL:
            policy.force_overwrite_all = True
            logger.info("Overwrite-all selected; no further prompts this run.")
            return True
        if answer == ANSWER_SKIP_ALL:
            policy.skip_all = True
            logger.info("Skip-all selected; no further prompts this run.")
            return False
        return answer in ANSWER_YES

    def resolve(self, context: RunContext, path: str, exists: bool) -> WriteDecision:
        if context.force or context.policy.force_overwrite_all:
            return WriteDecision.WRITE
        if context.policy.skip_all:
            return WriteDecision.SKIP
        if not exists:
            return WriteDecision.WRITE
        if self.ask_permission(context, f"File {path} already exists. Overwrite?"):
            return WriteDecision.WRITE
        logger.info("Skipped existing file: %s", path)
        return WriteDecision.SKIP


__all__: List[str] = ["ConflictResolver", "ANSWER_ALL", "ANSWER_SKIP_ALL"]
