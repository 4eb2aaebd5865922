"""
Post-commit secondary updates.

A booking or a completed payment has one required write; everything after it
(profile bookkeeping, attendee lists on the other side of a payment, cache
invalidation, the confirmation mail) is queued here and run once the required
write has committed. Each effect is isolated: a failure is logged and counted,
rolled back on its own, and never reaches the caller.

Effects receive nothing but the ids they were built with and re-read what they
need, because a rollback from an earlier effect expires every loaded object.
"""

from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.logging import get_logger
from huntbook.core.metrics import record_side_effect_failure

logger = get_logger(__name__)

Effect = Callable[[], Awaitable[None]]


class SideEffects:
    def __init__(self, session: Optional[AsyncSession] = None):
        # With a session, each effect gets its own commit
        self.session = session
        self._effects: list[tuple[str, Effect]] = []

    def add(self, name: str, effect: Effect) -> None:
        self._effects.append((name, effect))

    def __len__(self) -> int:
        return len(self._effects)

    async def run(self) -> list[str]:
        """Run queued effects in order. Returns the names of the ones that failed."""
        failed = []
        effects, self._effects = self._effects, []

        for name, effect in effects:
            try:
                await effect()
                if self.session is not None:
                    await self.session.commit()
            except Exception as e:
                failed.append(name)
                record_side_effect_failure(name)
                logger.warning("side_effect_failed", effect=name, error=str(e))
                if self.session is not None:
                    await self.session.rollback()

        return failed
