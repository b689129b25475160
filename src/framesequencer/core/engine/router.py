from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Protocol, Sequence

from framesequencer.core.events.base import Event
from framesequencer.core.events.bus import EventBus, Subscription


EventHandler = Callable[[Event], None]


class EventComponent(Protocol):
    """
    A collaborator that registers event handlers on an EventBus
    (renderer, preloader, test probes, ...).
    """

    def subscriptions(self) -> Sequence[tuple[str, EventHandler]]:
        """
        Return (event_type, handler) tuples.
        """
        ...


@dataclass(frozen=True, slots=True)
class WiredSubscription:
    """
    A subscription + the component that produced it (debuggable wiring).
    """

    component: str
    subscription: Subscription


@dataclass(frozen=True, slots=True)
class RouterWiring:
    """
    Captures the wiring produced when components are registered, so it can
    be torn down again.
    """

    subscriptions: tuple[WiredSubscription, ...]

    @property
    def components(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for w in self.subscriptions:
            seen.setdefault(w.component, None)
        return tuple(seen)


class ComponentRouter:
    """
    Registers collaborators onto an EventBus in a predictable order.

    Rules:
      - components are wired in the order provided
      - each component's subscriptions() order is preserved
    """

    def __init__(self, *, bus: EventBus) -> None:
        self._bus = bus

    @staticmethod
    def _component_name(component: object) -> str:
        return type(component).__name__

    def register(self, components: Iterable[EventComponent]) -> RouterWiring:
        wired: list[WiredSubscription] = []
        seen: set[tuple[str, int]] = set()
        # key: (event_type, id(handler)) to detect accidental double wiring

        for component in components:
            cname = self._component_name(component)

            subs = component.subscriptions()
            if not isinstance(subs, Sequence):
                raise TypeError(f"{cname}.subscriptions() must return a Sequence")

            for event_type, handler in subs:
                if not event_type:
                    raise ValueError(f"{cname} produced empty event_type")

                key = (event_type, id(handler))
                if key in seen:
                    raise RuntimeError(f"duplicate subscription detected: component={cname} event_type={event_type}")
                seen.add(key)

                s = self._bus.subscribe(event_type=event_type, handler=handler)
                wired.append(WiredSubscription(component=cname, subscription=s))

        return RouterWiring(subscriptions=tuple(wired))

    def unregister(self, wiring: RouterWiring) -> None:
        for w in reversed(wiring.subscriptions):
            self._bus.unsubscribe(w.subscription)
