"""HttpTelemetrySink tests with a fake requests session."""

import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from attention_engine.data_structures import AggregateStats, FrameStatus, Report
from attention_engine.exceptions import TransportFailure
from telemetry.http_sink import HttpTelemetrySink


def _report(pid="p-1"):
    return Report(
        subject_id=pid,
        display_name="Ada",
        status=FrameStatus.DISTRACTED,
        stats=AggregateStats(total_checks=4, distracted_checks=2,
                             current_distracted_pct=50, peak_distracted_pct=67,
                             peak_distracted_at=123),
        emitted_at=456,
    )


def _fake_session(ok=True, status_code=200, error=None):
    session = MagicMock(spec=requests.Session)
    resp = MagicMock()
    resp.ok = ok
    resp.status_code = status_code
    if error is not None:
        session.post.side_effect = error
        session.delete.side_effect = error
    else:
        session.post.return_value = resp
        session.delete.return_value = resp
    return session


@pytest.fixture
def session():
    return _fake_session()


def test_endpoint_strips_trailing_slash(session):
    sink = HttpTelemetrySink("https://app.example/", meeting_id="m-42", session=session)
    assert sink.endpoint == "https://app.example/api/meeting/m-42/distraction"


def test_posts_record_and_deletes_on_remove(session):
    sink = HttpTelemetrySink("https://app.example", meeting_id="m-42", timeout=1.5, session=session)
    sink.start()
    assert sink.submit(_report())
    assert sink.remove("p-1")
    sink.close()

    url = "https://app.example/api/meeting/m-42/distraction"
    session.post.assert_called_once_with(url, json=_report().to_record(), timeout=1.5)
    session.delete.assert_called_once_with(url, params={"participantId": "p-1"}, timeout=1.5)
    session.close.assert_called_once()
    assert sink.sent == 2
    assert sink.failed == 0


def test_http_error_counted_not_raised():
    session = _fake_session(ok=False, status_code=503)
    sink = HttpTelemetrySink(session=session)
    sink.start()
    sink.submit(_report())
    sink.close()
    assert sink.failed == 1
    assert sink.sent == 0


def test_connection_error_counted_not_raised():
    session = _fake_session(error=requests.ConnectionError("refused"))
    sink = HttpTelemetrySink(session=session)
    sink.start()
    sink.submit(_report())
    sink.remove("p-1")
    sink.close()
    assert sink.failed == 2


def test_send_raises_transport_failure_with_status():
    sink = HttpTelemetrySink(session=_fake_session(ok=False, status_code=404))
    with pytest.raises(TransportFailure) as exc:
        sink._send("POST", {"participantId": "p-1"})
    assert exc.value.status_code == 404


def test_full_queue_drops_without_blocking(session):
    sink = HttpTelemetrySink(queue_size=2, session=session)
    # Worker not started, so nothing drains the queue
    assert sink.submit(_report())
    assert sink.submit(_report())
    assert not sink.submit(_report())
    assert sink.dropped == 1


def test_submit_after_close_dropped(session):
    sink = HttpTelemetrySink(session=session)
    sink.start()
    sink.close()
    sink.close()
    assert not sink.submit(_report())
    assert sink.dropped == 1
    session.close.assert_called_once()


def test_close_with_stalled_worker_returns():
    release = threading.Event()
    sink = HttpTelemetrySink(queue_size=1, session=_fake_session())
    # A worker that never drains the queue
    stalled = threading.Thread(target=release.wait, daemon=True)
    stalled.start()
    sink._thread = stalled
    assert sink.submit(_report())

    started = time.monotonic()
    sink.close(timeout=0.1)
    assert time.monotonic() - started < 1.0
    release.set()


def test_unexpected_error_does_not_kill_worker():
    session = _fake_session()
    resp = session.post.return_value
    session.post.side_effect = [ValueError("bad record"), resp]
    sink = HttpTelemetrySink(session=session)
    sink.start()
    sink.submit(_report("p-1"))
    sink.submit(_report("p-2"))
    sink.close()
    assert session.post.call_count == 2
    assert sink.failed == 1
    assert sink.sent == 1
