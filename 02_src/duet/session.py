"""A signed-in participant: session context plus the engines bound to it."""

from .auth import SessionContext
from .feed import MessageFeed
from .lists import ListEngine
from .logging_config import get_logger
from .models import UserProfile
from .profiles import CounterpartWatcher

logger = get_logger(__name__)


class ChatSession:
    """Everything one identity sees, torn down together on sign-out."""

    def __init__(
        self,
        context: SessionContext,
        profile: UserProfile,
        feed: MessageFeed,
        lists: ListEngine,
        counterpart: CounterpartWatcher,
    ):
        self.context = context
        self.profile = profile
        self.feed = feed
        self.lists = lists
        self._counterpart = counterpart
        feed.add_listener(counterpart.on_feed_change)

    @property
    def identity(self) -> str:
        return self.context.identity

    @property
    def counterpart(self) -> UserProfile | None:
        return self._counterpart.counterpart

    @property
    def active(self) -> bool:
        return not self.context.closed

    async def activate(self) -> None:
        await self.feed.activate()
        await self.lists.activate()
        logger.info("Session active for %s", self.identity)

    async def close(self) -> None:
        await self.feed.deactivate()
        await self.lists.deactivate()
        self._counterpart.close()
        self.context.close()
