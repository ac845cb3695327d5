"""Post-commit side effects for queue transitions.

Hooks are collected while the primary transition is built and run only after
its commit. A failing hook is logged and recorded; it never undoes or fails
the transition.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass
class HookOutcome:
    name: str
    ok: bool
    value: Any = None


@dataclass
class PostCommitHooks:
    """Ordered outbox of best-effort callables.

    When a session is given, the open transaction of a failing hook is rolled
    back so the next hook starts clean.
    """

    db: Session | None = None
    _hooks: list[tuple[str, Callable[[], Any]]] = field(default_factory=list)
    outcomes: list[HookOutcome] = field(default_factory=list)

    def add(self, name: str, fn: Callable[[], Any]) -> None:
        self._hooks.append((name, fn))

    def __len__(self) -> int:
        return len(self._hooks)

    def run(self) -> list[HookOutcome]:
        """Run every queued hook once, in order. Returns the outcomes."""
        pending, self._hooks = self._hooks, []
        for name, fn in pending:
            try:
                value = fn()
            except Exception:
                if self.db is not None:
                    self.db.rollback()
                logger.exception("Post-commit hook failed: %s", name)
                self.outcomes.append(HookOutcome(name=name, ok=False))
                continue
            self.outcomes.append(HookOutcome(name=name, ok=True, value=value))
        return self.outcomes

    def result_of(self, name: str) -> Any:
        """Return the value of the named hook, or None if it failed or never ran."""
        for outcome in self.outcomes:
            if outcome.name == name and outcome.ok:
                return outcome.value
        return None
