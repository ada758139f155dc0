"""Runner for side-channel writes that must never fail the caller."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Optional, TypeVar

from ..observability.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BestEffortFailure:
    label: str
    error: str


@dataclass
class BestEffort:
    """Await operations and record their failures instead of raising.

    Every failure is logged at warning level and appended to ``failures``.
    """

    failures: list[BestEffortFailure] = field(default_factory=list)

    async def run(self, label: str, op: Awaitable[T], **log_context: Any) -> Optional[T]:
        try:
            return await op
        except Exception as e:
            self.failures.append(BestEffortFailure(label=label, error=str(e)))
            logger.warning("best_effort_failed", operation=label, error=str(e), **log_context)
            return None

    @property
    def failed(self) -> bool:
        return bool(self.failures)

    def messages(self) -> list[str]:
        return [f"{f.label}: {f.error}" for f in self.failures]
