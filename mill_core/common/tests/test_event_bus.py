import pytest

from mill_core.common.events import PRODUCT_UPDATED, TRANSACTION_CREATED, EventBus, get_event_bus


def test_handlers_receive_events_by_name():
    bus = EventBus()
    seen = []

    @bus.on(TRANSACTION_CREATED)
    def _h(event):
        seen.append((event.name, event.tenant_id, event.payload))

    bus.publish("t-1", TRANSACTION_CREATED, {"id": "x"})
    bus.publish("t-1", PRODUCT_UPDATED, {"id": "y"})

    assert seen == [(TRANSACTION_CREATED, "t-1", {"id": "x"})]


def test_failing_handler_does_not_reach_publisher_or_block_others():
    bus = EventBus()
    seen = []

    @bus.on(TRANSACTION_CREATED)
    def _boom(event):
        raise RuntimeError("handler bug")

    @bus.on(TRANSACTION_CREATED)
    def _ok(event):
        seen.append(event.tenant_id)

    event = bus.publish("t-1", TRANSACTION_CREATED)

    assert event.name == TRANSACTION_CREATED
    assert seen == ["t-1"]


def test_subscriptions_only_see_their_own_tenant():
    bus = EventBus()
    a = bus.subscribe("tenant-a")
    b = bus.subscribe("tenant-b")

    bus.publish("tenant-a", TRANSACTION_CREATED, {"n": 1})

    assert [e.payload for e in a.drain()] == [{"n": 1}]
    assert b.drain() == []
    assert b.get(timeout=0.01) is None


def test_full_subscriber_queue_drops_instead_of_blocking():
    bus = EventBus(queue_size=2)
    sub = bus.subscribe("t")

    for i in range(5):
        bus.publish("t", TRANSACTION_CREATED, {"n": i})

    assert [e.payload["n"] for e in sub.drain()] == [0, 1]


def test_close_unsubscribes():
    bus = EventBus()
    sub = bus.subscribe("t")
    assert bus.subscriber_count("t") == 1

    sub.close()

    assert bus.subscriber_count("t") == 0
    bus.publish("t", TRANSACTION_CREATED)
    assert sub.drain() == []


@pytest.mark.django_db
def test_app_bus_is_shared_singleton():
    assert get_event_bus() is get_event_bus()
