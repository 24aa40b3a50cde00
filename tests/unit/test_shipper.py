from __future__ import annotations

import asyncio
import math
import threading
from typing import Any

import pytest

from lokiship import LokiShipper, ShipperState
from lokiship.core import shutdown as shutdown_registry
from lokiship.transport.base import DeliveryOutcome, count_entries


class _StubTransport:
    """Push stub that resolves after ``delay`` unless it is cancelled first."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.payloads: list[dict[str, Any]] = []
        self.resolved = 0
        self.aborted = 0
        self.threads: set[str] = set()

    async def send(self, payload: dict[str, Any]) -> DeliveryOutcome:
        self.payloads.append(payload)
        self.threads.add(threading.current_thread().name)
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.aborted += 1
            raise
        self.resolved += 1
        return DeliveryOutcome(ok=True, entries=count_entries(payload), status_code=204)

    async def aclose(self) -> None:
        return None


def _shipper(transport: _StubTransport, **cfg: Any) -> LokiShipper:
    cfg.setdefault("url", "http://loki")
    cfg.setdefault("labels", {"instance": "testing"})
    return LokiShipper(transport=transport, **cfg)


@pytest.mark.critical
@pytest.mark.asyncio
async def test_log_one_message_is_delivered_before_completion() -> None:
    transport = _StubTransport(delay=0.0)
    shipper = _shipper(transport)
    completed: list[bool] = []

    shipper.info("hello world", category="test")
    await asyncio.wrap_future(shipper.shutdown(lambda: completed.append(True)))

    assert completed == [True]
    assert transport.resolved == 1
    assert transport.aborted == 0
    payload = transport.payloads[0]
    assert len(payload["streams"]) == 1
    stream = payload["streams"][0]
    assert stream["stream"] == {"instance": "testing", "category": "test", "level": "INFO"}
    assert len(stream["values"]) == 1
    ts, message = stream["values"][0]
    assert message == "hello world"
    assert ts.endswith("000000") and ts.isdigit()


@pytest.mark.critical
@pytest.mark.slow
@pytest.mark.asyncio
async def test_log_one_message_delayed_is_aborted_at_deadline() -> None:
    transport = _StubTransport(delay=4.0)
    shipper = _shipper(transport)

    shipper.info("hello world", category="test")
    await shipper.stop_and_drain()

    assert transport.resolved == 0
    assert transport.aborted == 1
    assert shipper.in_flight == 0


@pytest.mark.asyncio
async def test_three_immediate_messages_send_three_requests() -> None:
    transport = _StubTransport(delay=0.0)
    shipper = _shipper(transport, batch=False)

    for _ in range(3):
        shipper.info("hello world", category="test")
    await shipper.stop_and_drain()

    assert transport.resolved == 3
    assert transport.aborted == 0
    assert [len(p["streams"]) for p in transport.payloads] == [1, 1, 1]


@pytest.mark.asyncio
async def test_three_immediate_messages_delayed_are_all_aborted() -> None:
    transport = _StubTransport(delay=2.0)
    shipper = _shipper(transport, batch=False, shutdown_timeout_seconds=0.2)

    for _ in range(3):
        shipper.info("hello world", category="test")
    await shipper.stop_and_drain()

    assert transport.resolved == 0
    assert transport.aborted == 3
    assert shipper.in_flight == 0


@pytest.mark.asyncio
async def test_batched_requests_respect_batch_size() -> None:
    transport = _StubTransport()
    shipper = _shipper(transport, batch_size=4, batch_timeout_ms=60_000)

    for i in range(10):
        shipper.info(f"m{i}")
    await shipper.stop_and_drain()

    sizes = [len(p["streams"]) for p in transport.payloads]
    assert sizes == [4, 4, 2]
    assert len(sizes) <= math.ceil(10 / 4)
    messages = [s["values"][0][1] for p in transport.payloads for s in p["streams"]]
    assert messages == [f"m{i}" for i in range(10)]


@pytest.mark.asyncio
async def test_submit_does_not_raise_or_block() -> None:
    transport = _StubTransport(delay=10.0)
    shipper = _shipper(transport, batch=False, shutdown_timeout_seconds=0.1)
    loop = asyncio.get_running_loop()

    started = loop.time()
    for _ in range(50):
        shipper.info("x")
    assert loop.time() - started < 0.5
    assert shipper.in_flight == 50
    await shipper.stop_and_drain()


@pytest.mark.asyncio
async def test_second_shutdown_fires_callback_without_new_traffic() -> None:
    transport = _StubTransport()
    shipper = _shipper(transport, batch=False)
    calls: list[str] = []

    shipper.info("one")
    first = shipper.shutdown(lambda: calls.append("first"))
    await asyncio.wrap_future(first)
    shipper.info("after shutdown")
    second = shipper.shutdown(lambda: calls.append("second"))
    await asyncio.wrap_future(second)

    assert first is second
    assert calls == ["first", "second"]
    assert len(transport.payloads) == 1
    assert shipper.state is ShipperState.TERMINATED


@pytest.mark.asyncio
async def test_shippers_do_not_share_state() -> None:
    t1, t2 = _StubTransport(), _StubTransport()
    s1 = _shipper(t1, batch_size=2, batch_timeout_ms=60_000)
    s2 = _shipper(t2, batch_size=2, batch_timeout_ms=60_000, labels={"instance": "other"})

    s1.info("a")
    s2.info("b")
    assert s1.pending == 1 and s2.pending == 1

    await s1.stop_and_drain()
    assert s2.state is ShipperState.ACTIVE
    await s2.stop_and_drain()

    assert [s["values"][0][1] for s in t1.payloads[0]["streams"]] == ["a"]
    assert t2.payloads[0]["streams"][0]["stream"]["instance"] == "other"


@pytest.mark.asyncio
async def test_flush_sends_partial_batch() -> None:
    transport = _StubTransport()
    shipper = _shipper(transport, batch_size=10, batch_timeout_ms=60_000)

    shipper.info("a")
    shipper.flush()
    await asyncio.sleep(0.01)

    assert len(transport.payloads) == 1
    await shipper.stop_and_drain()
    assert len(transport.payloads) == 1


@pytest.mark.asyncio
async def test_close_on_owning_loop_raises() -> None:
    shipper = _shipper(_StubTransport())
    shipper.start()

    with pytest.raises(RuntimeError):
        shipper.close()
    await shipper.stop_and_drain()


@pytest.mark.asyncio
async def test_async_context_manager_drains() -> None:
    transport = _StubTransport()
    async with _shipper(transport, batch_size=10, batch_timeout_ms=60_000) as shipper:
        shipper.warning("careful", category="ctx")

    assert transport.resolved == 1
    assert transport.payloads[0]["streams"][0]["stream"]["level"] == "WARNING"


def test_disabled_shipper_is_silent_noop() -> None:
    captured: list[dict] = []
    from lokiship.core import diagnostics

    diagnostics.set_writer_for_tests(captured.append)
    transport = _StubTransport()
    shipper = LokiShipper(url=None, transport=transport)
    completed: list[bool] = []

    shipper.error("dropped")
    shipper.shutdown(lambda: completed.append(True)).result(timeout=1.0)

    assert shipper.enabled is False
    assert transport.payloads == []
    assert completed == [True]
    errors = [d for d in captured if d["component"] == "config"]
    assert len(errors) == 1
    assert errors[0]["level"] == "ERROR"


def test_conflicting_auth_warns(capture_diagnostics: list[dict]) -> None:
    LokiShipper(url="http://loki", token="t", username="u", password="p", transport=_StubTransport())
    assert any("bearer" in d["message"] for d in capture_diagnostics)


def test_thread_mode_delivers_from_sync_code() -> None:
    transport = _StubTransport()
    shipper = _shipper(transport, batch_size=10, batch_timeout_ms=60_000)

    shipper.info("from sync code", category="sync")
    thread = shipper._loop_thread  # noqa: SLF001
    assert isinstance(thread, threading.Thread)
    assert thread.is_alive()
    assert shutdown_registry.registered_count() >= 1

    shipper.close()

    assert transport.resolved == 1
    assert transport.threads == {"lokiship-loop"}
    assert not thread.is_alive()
    assert shipper._loop_thread is None  # noqa: SLF001
    assert shipper.state is ShipperState.TERMINATED


def test_thread_mode_accepts_submits_from_many_threads() -> None:
    transport = _StubTransport()
    shipper = _shipper(transport, batch_size=5, batch_timeout_ms=60_000)

    def _worker(n: int) -> None:
        for i in range(10):
            shipper.info(f"t{n}-{i}")

    workers = [threading.Thread(target=_worker, args=(n,)) for n in range(4)]
    for w in workers:
        w.start()
    for w in workers:
        w.join()
    shipper.close()

    total = sum(len(p["streams"]) for p in transport.payloads)
    assert total == 40
    assert all(len(p["streams"]) <= 5 for p in transport.payloads)


def test_sync_context_manager_closes() -> None:
    transport = _StubTransport()
    with _shipper(transport, batch=False) as shipper:
        shipper.debug("ctx")
    assert transport.resolved == 1
    assert shipper.state is ShipperState.TERMINATED


def test_stop_and_drain_from_foreign_loop() -> None:
    transport = _StubTransport()
    shipper = _shipper(transport, batch_size=10, batch_timeout_ms=60_000)
    shipper.critical("late")

    asyncio.run(shipper.stop_and_drain())

    assert transport.resolved == 1
    assert shipper._loop_thread is None  # noqa: SLF001


def test_shutdown_before_any_submit_completes_immediately() -> None:
    shipper = _shipper(_StubTransport())
    completed: list[bool] = []
    shipper.shutdown(lambda: completed.append(True))
    assert completed == [True]
    assert shipper.state is ShipperState.TERMINATED
