"""Notification Gateway collaborator and the engine-side dedup bookkeeping."""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Hashable, List, Optional

from engine.domain import AlertIntent
from engine.errors import DispatchFailure

logger = logging.getLogger(__name__)


class NotificationGateway(ABC):

    @abstractmethod
    def dispatch(self, intent: AlertIntent) -> None:
        pass

    @abstractmethod
    def cancel_pending(self, identifier: str) -> None:
        pass


class RecordingGateway(NotificationGateway):
    """Keeps pending alerts in memory, replacing by identifier like a device notification center."""

    def __init__(self, authorized: bool = True):
        self.authorized = authorized
        self.pending: Dict[str, AlertIntent] = {}
        self.delivered: List[AlertIntent] = []
        self._lock = threading.Lock()

    def dispatch(self, intent: AlertIntent) -> None:
        if not self.authorized:
            raise DispatchFailure("notifications are not authorized")
        with self._lock:
            self.pending[intent.identifier] = intent
            self.delivered.append(intent)

    def cancel_pending(self, identifier: str) -> None:
        with self._lock:
            self.pending.pop(identifier, None)


class AlertRegistry:
    """What the engine has already sent, keyed by alert identifier.

    The stored signature captures the logical state an alert was sent for
    (e.g. month and level of a budget alert) so repeated passes stay quiet.
    It lives outside the evaluators and is untouched while an alert class
    is disabled.
    """

    def __init__(self):
        self._sent: Dict[str, Hashable] = {}
        self._lock = threading.Lock()

    def __contains__(self, identifier: str) -> bool:
        with self._lock:
            return identifier in self._sent

    def signature(self, identifier: str) -> Optional[Hashable]:
        with self._lock:
            return self._sent.get(identifier)

    def record(self, identifier: str, signature: Hashable) -> None:
        with self._lock:
            self._sent[identifier] = signature

    def forget(self, identifier: str) -> None:
        with self._lock:
            self._sent.pop(identifier, None)

    def identifiers(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(i for i in self._sent if i.startswith(prefix))

    def prune(self, prefix: str, keep: str) -> None:
        """Forget every identifier starting with ``prefix`` except ``keep``."""
        with self._lock:
            for ident in [i for i in self._sent if i.startswith(prefix) and i != keep]:
                del self._sent[ident]


class AlertDispatcher:

    def __init__(self, gateway: NotificationGateway, registry: AlertRegistry):
        self.gateway = gateway
        self.registry = registry

    def replace(self, intent: AlertIntent, signature: Hashable) -> bool:
        """Send ``intent`` in place of any pending alert under the same identifier.

        Returns False when nothing was sent: the same signature is already
        outstanding, or the gateway failed (it is retried next pass).
        """
        ident = intent.identifier
        if self.registry.signature(ident) == signature:
            logger.debug("Alert %s already sent for %r", ident, signature)
            return False
        try:
            self.gateway.cancel_pending(ident)
            self.gateway.dispatch(intent)
        except Exception as e:
            logger.warning("Dispatch of %s failed: %s", ident, e)
            return False
        self.registry.record(ident, signature)
        logger.info("Dispatched %s (%s)", ident, intent.kind.value)
        return True

    def first_fire(self, intent: AlertIntent) -> bool:
        """Send ``intent`` only if nothing was ever sent under its identifier."""
        ident = intent.identifier
        if ident in self.registry:
            logger.debug("Alert %s already fired", ident)
            return False
        try:
            self.gateway.dispatch(intent)
        except Exception as e:
            logger.warning("Dispatch of %s failed: %s", ident, e)
            return False
        self.registry.record(ident, intent.kind.value)
        logger.info("Dispatched %s (%s)", ident, intent.kind.value)
        return True

    def withdraw(self, identifier: str) -> None:
        if identifier not in self.registry:
            return
        try:
            self.gateway.cancel_pending(identifier)
        except Exception as e:
            logger.warning("Cancel of %s failed: %s", identifier, e)
            return
        self.registry.forget(identifier)


def format_currency(amount, symbol: str = "$") -> str:
    """Whole-unit currency text used in alert bodies, e.g. ``$1,250``."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.0f}"
