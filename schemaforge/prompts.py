# File: schemaforge/prompts.py
"""
SchemaForge - Operator Prompt Channel
=======================================
The only place the engine waits on a human. Every decision layer talks to a
``PromptProvider`` so it can be driven by a terminal, by defaults alone
(``--no-interaction``), or by a scripted answer list in tests.
"""

from __future__ import annotations

import logging
import sys
from typing import Iterable, List, Optional, Protocol, Sequence, TextIO, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.prompts")


class PromptProvider(Protocol):
    """Interface consumed by the conflict resolver and the orchestrator."""

    def ask(self, question: str, default: str = "") -> str:
        ...

    def choose(self, question: str, options: Sequence[str], default: str) -> str:
        ...

    def confirm(self, question: str, default: bool = False) -> bool:
        ...


class ConsolePrompt:
    """Reads answers from a terminal; questions go to stderr."""

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        self._in: TextIO = stdin or sys.stdin
        self._out: TextIO = stdout or sys.stderr

    def _readline(self, prompt: str) -> Optional[str]:
        self._out.write(prompt)
        self._out.flush()
        line: str = self._in.readline()
        if not line:
            # EOF: behave like an empty answer so the default applies
            return None
        return line.strip()

    def ask(self, question: str, default: str = "") -> str:
        suffix: str = f" [{default}]" if default else ""
        raw: Optional[str] = self._readline(f"{question}{suffix}: ")
        return raw if raw else default

    def choose(self, question: str, options: Sequence[str], default: str) -> str:
        lowered: List[str] = [o.lower() for o in options]
        while True:
            raw: Optional[str] = self._readline(
                f"{question} ({'/'.join(options)}) [{default}]: "
            )
            if raw is None or not raw:
                return default
            if raw.lower() in lowered:
                return options[lowered.index(raw.lower())]
            if raw.isdigit() and 1 <= int(raw) <= len(options):
                return options[int(raw) - 1]
            self._out.write(f"  Please enter one of: {', '.join(options)}.\n")

    def confirm(self, question: str, default: bool = False) -> bool:
        suffix: str = "[Y/n]" if default else "[y/N]"
        while True:
            raw: Optional[str] = self._readline(f"{question} {suffix}: ")
            if raw is None or not raw:
                return default
            if raw.lower() in ("y", "yes"):
                return True
            if raw.lower() in ("n", "no"):
                return False
            self._out.write("  Please enter 'y' or 'n'.\n")


class NonInteractivePrompt:
    """Answers every question with its default."""

    def ask(self, question: str, default: str = "") -> str:
        logger.debug("Non-interactive answer for %r: %r", question, default)
        return default

    def choose(self, question: str, options: Sequence[str], default: str) -> str:
        logger.debug("Non-interactive choice for %r: %r", question, default)
        return default

    def confirm(self, question: str, default: bool = False) -> bool:
        logger.debug("Non-interactive confirm for %r: %r", question, default)
        return default


class ScriptedPrompt:
    """
    Replays pre-recorded answers and records every question asked.

    Once the script runs out, defaults are returned. ``asked`` holds
    ``(method, question)`` tuples in call order.
    """

    def __init__(self, answers: Iterable[object] = ()) -> None:
        self._answers: List[object] = list(answers)
        self.asked: List[Tuple[str, str]] = []

    def _next(self) -> Optional[object]:
        if self._answers:
            return self._answers.pop(0)
        return None

    @property
    def remaining(self) -> int:
        return len(self._answers)

    def ask(self, question: str, default: str = "") -> str:
        self.asked.append(("ask", question))
        answer: Optional[object] = self._next()
        return default if answer is None else str(answer)

    def choose(self, question: str, options: Sequence[str], default: str) -> str:
        self.asked.append(("choose", question))
        answer: Optional[object] = self._next()
        if answer is None:
            return default
        for option in options:
            if option.lower() == str(answer).lower():
                return option
        return default

    def confirm(self, question: str, default: bool = False) -> bool:
        self.asked.append(("confirm", question))
        answer: Optional[object] = self._next()
        if answer is None:
            return default
        if isinstance(answer, bool):
            return answer
        return str(answer).strip().lower() in ("y", "yes", "true", "1")


__all__: List[str] = [
    "PromptProvider",
    "ConsolePrompt",
    "NonInteractivePrompt",
    "ScriptedPrompt",
]
