import logging
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple

from gastos.aggregation import STATUS_OK, budget_utilization
from gastos.formatting import format_money

__all__ = [
    'event_bus', 'Event', 'EventBus', 'Handler',
    'EXPENSES_CHANGED', 'TEMPLATES_CHANGED', 'BUDGETS_CHANGED',
    'SIGNED_IN', 'SIGNED_OUT', 'BUDGET_ALERT',
    'check_budget_handler', 'register_default_handlers',
]

logger = logging.getLogger(__name__)


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], dict]


class EventBus:
    """Synchronous publish/subscribe hub.

    Stores publish a change event after every successful write; the payload
    is informational only and subscribers should treat any change event as
    "re-fetch now".
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        self._subscribers.setdefault(name, []).append(handler)
        return lambda: self.unsubscribe(name, handler)

    def publish(self, name: str, payload: dict) -> List[dict]:
        handlers = list(self._subscribers.get(name, ()))
        if not handlers:
            return []

        event = Event(name=name, ts=datetime.now().isoformat(), payload=payload)
        results = []
        for handler in handlers:
            try:
                results.append(handler(event, payload))
            except Exception:
                # a broken subscriber must not turn a committed write into a failure
                logger.exception("Handler %r failed for %s", handler, name)
        return results

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if handler in self._subscribers.get(name, ()):
            self._subscribers[name].remove(handler)

    def subscriber_count(self, name: str) -> int:
        return len(self._subscribers.get(name, ()))


EXPENSES_CHANGED = "EXPENSES_CHANGED"
TEMPLATES_CHANGED = "TEMPLATES_CHANGED"
BUDGETS_CHANGED = "BUDGETS_CHANGED"
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
BUDGET_ALERT = "BUDGET_ALERT"

event_bus = EventBus()


def check_budget_handler(event: Event, payload: dict) -> dict:
    period_total = payload.get("period_total", 0.0)
    budget_amount = payload.get("budget_amount")

    util = budget_utilization(period_total, budget_amount)
    if util is None or util.status == STATUS_OK:
        return {}
    if util.exceeded_by > 0:
        message = f"Presupuesto excedido por ${format_money(util.exceeded_by)}"
    else:
        message = f"Usaste el {util.ratio:.0f}% del presupuesto"
    return {"alert": message, "status": util.status, "percent": util.percent}


def register_default_handlers(bus: EventBus = event_bus) -> None:
    bus.subscribe(BUDGET_ALERT, check_budget_handler)


register_default_handlers()
