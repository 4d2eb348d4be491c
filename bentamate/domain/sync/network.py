# bentamate/domain/sync/network.py
import asyncio
import logging
from typing import Awaitable, Callable, List

logger = logging.getLogger(__name__)

StatusCallback = Callable[[bool], None]


class _Subscription:
    __slots__ = ("callback", "active")

    def __init__(self, callback: StatusCallback):
        self.callback = callback
        self.active = True


class NetworkStatusObserver:
    """Current connectivity plus synchronous change notifications.

    Subscribers are called once per transition, never on a repeated report of
    the same status. Detection only: acting on a transition is up to the
    subscriber.
    """

    def __init__(self, online: bool = True):
        self._online = bool(online)
        self._subscriptions: List[_Subscription] = []

    def get_status(self) -> bool:
        return self._online

    def set_status(self, online: bool) -> None:
        online = bool(online)
        if online == self._online:
            return
        self._online = online
        logger.info("Network status changed: %s", "online" if online else "offline")

        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.callback(online)
            except Exception:
                logger.exception("Network status subscriber %r failed", subscription.callback)

    def on_status_change(self, callback: StatusCallback) -> Callable[[], None]:
        subscription = _Subscription(callback)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if not subscription.active:
                return
            subscription.active = False
            self._subscriptions.remove(subscription)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def dispose(self) -> None:
        for subscription in self._subscriptions:
            subscription.active = False
        self._subscriptions.clear()


async def watch_connectivity(
    observer: NetworkStatusObserver,
    probe: Callable[[], Awaitable[bool]],
    interval: float,
) -> None:
    """Feed the observer from a reachability probe until cancelled.

    A probe that raises leaves the status as it was for that round.
    """
    while True:
        try:
            online = await probe()
        except Exception:
            logger.exception("Connectivity probe failed")
        else:
            observer.set_status(online)
        await asyncio.sleep(interval)
