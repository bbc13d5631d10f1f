from engine.events import LEDGER_MUTATIONS, TRANSACTION_ADDED, Event, EventBus


def test_event_bus_subscribe_and_publish():
    bus = EventBus()
    collected = []

    def handler(event: Event, payload: dict) -> dict:
        collected.append(payload)
        return {"processed": True}

    bus.subscribe(TRANSACTION_ADDED, handler)
    results = bus.publish(TRANSACTION_ADDED, {"amount": 50})

    assert results == [{"processed": True}]
    assert collected == [{"amount": 50}]


def test_publish_without_subscribers():
    assert EventBus().publish(TRANSACTION_ADDED, {}) == []


def test_failing_handler_does_not_stop_others():
    bus = EventBus()
    calls = []

    def broken(event, payload):
        raise RuntimeError("boom")

    bus.subscribe(TRANSACTION_ADDED, broken)
    bus.subscribe(TRANSACTION_ADDED, lambda e, p: calls.append(e.name))

    bus.publish(TRANSACTION_ADDED, {})
    assert calls == [TRANSACTION_ADDED]


def test_subscribe_many_and_unsubscribe():
    bus = EventBus()
    seen = []

    def handler(event, payload):
        seen.append(event.name)

    bus.subscribe_many(LEDGER_MUTATIONS, handler)
    for name in LEDGER_MUTATIONS:
        bus.publish(name, {})
    assert seen == list(LEDGER_MUTATIONS)

    bus.unsubscribe(TRANSACTION_ADDED, handler)
    bus.publish(TRANSACTION_ADDED, {})
    assert len(seen) == len(LEDGER_MUTATIONS)
