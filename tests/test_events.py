"""Tests for EventStream and Subscription."""

from __future__ import annotations

import logging

import pytest

from guilded_commands.events import EventStream


def test_publish_reaches_subscribers_in_order() -> None:
    stream: EventStream[int] = EventStream("numbers")
    seen: list[tuple[str, int]] = []
    stream.subscribe(lambda n: seen.append(("a", n)))
    stream.subscribe(lambda n: seen.append(("b", n)))

    stream.publish(1)
    stream.publish(2)

    assert seen == [("a", 1), ("b", 1), ("a", 2), ("b", 2)]


def test_publish_without_subscribers_is_noop() -> None:
    stream: EventStream[int] = EventStream("numbers")
    stream.publish(1)
    assert stream.subscriber_count == 0


def test_dispose_stops_delivery() -> None:
    stream: EventStream[int] = EventStream("numbers")
    seen: list[int] = []
    sub = stream.subscribe(seen.append)

    stream.publish(1)
    sub.dispose()
    stream.publish(2)

    assert seen == [1]
    assert sub.active is False
    assert stream.subscriber_count == 0


def test_dispose_is_idempotent() -> None:
    stream: EventStream[int] = EventStream("numbers")
    sub = stream.subscribe(lambda _n: None)
    sub.dispose()
    sub.dispose()
    assert stream.subscriber_count == 0


def test_subscription_context_manager() -> None:
    stream: EventStream[int] = EventStream("numbers")
    seen: list[int] = []
    with stream.subscribe(seen.append) as sub:
        assert sub.active
        stream.publish(1)
    stream.publish(2)
    assert seen == [1]


def test_callback_may_dispose_itself() -> None:
    stream: EventStream[int] = EventStream("numbers")
    seen: list[int] = []
    holder = {}

    def once(n: int) -> None:
        seen.append(n)
        holder["sub"].dispose()

    holder["sub"] = stream.subscribe(once)
    stream.publish(1)
    stream.publish(2)
    assert seen == [1]


def test_failing_subscriber_is_isolated(caplog: pytest.LogCaptureFixture) -> None:
    stream: EventStream[int] = EventStream("numbers")
    seen: list[int] = []

    def boom(_n: int) -> None:
        raise RuntimeError("boom")

    stream.subscribe(boom)
    stream.subscribe(seen.append)

    with caplog.at_level(logging.ERROR, logger="guilded_commands.events"):
        stream.publish(7)

    assert seen == [7]
    assert "Subscriber of numbers failed" in caplog.text
