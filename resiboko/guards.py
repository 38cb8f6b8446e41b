"""
Action Guard

At most one AI request per user action. A second start while one is
pending is ignored, and a response that arrives after the user moved
on (the ticket was invalidated) is dropped instead of overwriting
whatever the user is looking at now.

Lives in the user's session state, never in a shared cache.
"""

from typing import Awaitable, Callable, Optional, TypeVar

from resiboko.audit import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


class ActionGuard:
    """Busy flag plus a monotonically increasing ticket."""

    def __init__(self, name: str = "action"):
        self.name = name
        self._busy = False
        self._ticket = 0

    @property
    def busy(self) -> bool:
        return self._busy

    def start(self) -> Optional[int]:
        """Claim the guard. Returns a ticket, or None if already busy."""
        if self._busy:
            return None
        self._busy = True
        self._ticket += 1
        return self._ticket

    def is_current(self, ticket: int) -> bool:
        return ticket == self._ticket

    def finish(self, ticket: int) -> bool:
        """
        Release the guard for `ticket`.

        Returns True if the result belonging to this ticket should be used.
        """
        if not self.is_current(ticket):
            return False
        self._busy = False
        return True

    def invalidate(self) -> None:
        """Forget the pending action; its result will be discarded."""
        self._ticket += 1
        self._busy = False

    async def run(self, action: Callable[[], Awaitable[T]]) -> Optional[T]:
        """
        Run `action` under the guard.

        Returns None when the call was ignored (busy) or its result went
        stale. Errors from a stale call are dropped; errors from the
        current call propagate.
        """
        ticket = self.start()
        if ticket is None:
            logger.info("action_ignored_busy", action=self.name)
            return None

        try:
            result = await action()
        except Exception as e:
            if self.finish(ticket):
                raise
            logger.info("stale_action_error_dropped", action=self.name, error=str(e))
            return None
        except BaseException:
            # Cancelled or the script run was stopped: nobody awaits this result
            if self.is_current(ticket):
                self.invalidate()
            raise

        if not self.finish(ticket):
            logger.info("stale_action_result_dropped", action=self.name)
            return None
        return result
