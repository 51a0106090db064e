"""Online/offline signal with transition subscriptions."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

_logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], None]


@dataclass(eq=False)
class Subscription:
    """Handle returned by ``ConnectivityMonitor.subscribe``."""

    monitor: "ConnectivityMonitor"
    listener: ConnectivityListener
    active: bool = True

    def unsubscribe(self) -> None:
        """Stop delivering transitions to the listener. Safe to call twice."""
        self.monitor.unsubscribe(self)


@dataclass
class ConnectivityMonitor:
    """Process-wide connectivity state driven by host change events.

    ``set_online`` is the host entry point. Listeners are invoked once per
    observed transition; reporting the current state again is a no-op.
    """

    online: bool = True
    _subscriptions: list[Subscription] = field(default_factory=list, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @property
    def is_online(self) -> bool:
        """Return the last observed connectivity state."""
        with self._lock:
            return self.online

    def set_online(self, online: bool) -> bool:
        """Record a host connectivity event and return True on transition."""
        with self._lock:
            if online == self.online:
                return False
            self.online = online
            subscriptions = list(self._subscriptions)
            _logger.info("Connectivity changed: %s", "online" if online else "offline")
            for subscription in subscriptions:
                # re-checked per listener so an unsubscribe from an earlier
                # listener takes effect immediately
                if not subscription.active:
                    continue
                try:
                    subscription.listener(online)
                except Exception:
                    _logger.exception("Connectivity listener failed")
        return True

    def subscribe(self, listener: ConnectivityListener) -> Subscription:
        """Register a listener for online/offline transitions."""
        subscription = Subscription(monitor=self, listener=listener)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription; removing an inactive one is a no-op."""
        with self._lock:
            subscription.active = False
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def listener_count(self) -> int:
        """Return the number of active subscriptions."""
        with self._lock:
            return len(self._subscriptions)
