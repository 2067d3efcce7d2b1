import io
import re
import threading

from planctl.modules.ansible import events as ev
from planctl.modules.ansible.events import Event, EventStream
from planctl.modules.ansible.runner import TeeWriter, TimestampWriter
from planctl.modules.explain import DefaultExplainer, PreflightExplainer, StreamExplainer

TIMESTAMPED = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}\+0000 - ")


def test_event_from_runner_event():
    event = Event.from_runner_event({
        "event": ev.RUNNER_FAILED,
        "counter": 7,
        "stdout": "fatal: [worker1]: FAILED!",
        "event_data": {
            "host": "worker1",
            "play": "Install",
            "task": "start kubelet",
            "ignore_errors": None,
            "res": {"msg": "service failed"},
        },
    })
    assert event.type == ev.RUNNER_FAILED
    assert event.host == "worker1"
    assert event.task == "start kubelet"
    assert event.ignore_errors is False
    assert event.result == {"msg": "service failed"}
    assert event.counter == 7


def test_stats_event():
    event = Event.from_runner_event({
        "event": ev.PLAYBOOK_STATS,
        "event_data": {"ok": {"worker1": 3}, "failures": {"worker2": 1}, "dark": None},
    })
    assert event.stats["ok"] == {"worker1": 3}
    assert event.stats["failures"] == {"worker2": 1}
    assert event.stats["dark"] == {}


def test_stream_preserves_order_through_small_buffer():
    stream = EventStream(maxsize=2)
    received = []

    def read():
        received.extend(e.counter for e in stream)

    reader = threading.Thread(target=read)
    reader.start()
    for i in range(500):
        stream.put(Event(type=ev.RUNNER_OK, counter=i))
    stream.close()
    reader.join(timeout=10)
    assert received == list(range(500))


def test_closed_stream_returns_none():
    stream = EventStream()
    stream.close()
    stream.close()
    assert stream.get() is None
    assert stream.get() is None
    assert list(stream) == []


def test_timestamp_writer_prefixes_complete_lines():
    out = io.StringIO()
    writer = TimestampWriter(out)
    writer.write("PLAY [all]\nTASK [ping]")
    assert len(out.getvalue().splitlines()) == 1
    writer.write(" ***\n")
    writer.write("trailing")
    writer.flush()
    lines = out.getvalue().splitlines()
    assert [TIMESTAMPED.sub("", line) for line in lines] == ["PLAY [all]", "TASK [ping] ***", "trailing"]
    assert all(TIMESTAMPED.match(line) for line in lines)


def test_tee_writer():
    a, b = io.StringIO(), io.StringIO()
    TeeWriter(a, b).write("hello\n")
    assert a.getvalue() == b.getvalue() == "hello\n"


def explain(explainer, events):
    stream = EventStream()
    for e in events:
        stream.put(e)
    stream.close()
    StreamExplainer(explainer).explain(stream)


def test_default_explainer_quiet_mode():
    out = io.StringIO()
    explain(DefaultExplainer(verbose=False, out=out), [
        Event(type=ev.PLAY_START, play="Install cluster"),
        Event(type=ev.TASK_START, task="install packages"),
        Event(type=ev.RUNNER_OK, host="worker1"),
        Event(type=ev.RUNNER_FAILED, host="worker2", task="install packages", result={"msg": "no space left"}),
    ])
    text = out.getvalue()
    assert "▶ Install cluster" in text
    assert "✅ worker1" not in text
    assert "worker2 failed during 'install packages': no space left" in text


def test_default_explainer_verbose_mode():
    out = io.StringIO()
    explain(DefaultExplainer(verbose=True, out=out), [
        Event(type=ev.TASK_START, task="install packages"),
        Event(type=ev.RUNNER_OK, host="worker1"),
        Event(type=ev.PLAYBOOK_STATS, stats={"ok": {"worker1": 4}, "failures": {}, "dark": {"worker2": 1}}),
    ])
    text = out.getvalue()
    assert "- install packages" in text
    assert "✅ worker1" in text
    assert "✅ worker1: ok=4 changed=0 failed=0 unreachable=0" in text
    assert "❌ worker2: ok=0 changed=0 failed=0 unreachable=1" in text


def test_preflight_explainer_summary():
    out = io.StringIO()
    explain(PreflightExplainer(out=out), [
        Event(type=ev.PLAY_START, play="Run pre-flight checks"),
        Event(type=ev.RUNNER_FAILED, host="worker1", task="check ports", result={"msg": "port 6443 in use"}),
        Event(type=ev.PLAYBOOK_STATS, stats={"failures": {"worker1": 1}, "dark": {}}),
    ])
    text = out.getvalue()
    assert "🔍 Run pre-flight checks" in text
    assert "❌ worker1: check ports: port 6443 in use" in text
    assert "Pre-flight checks failed on: worker1" in text


def test_explainer_without_output_discards():
    explain(PreflightExplainer(out=None), [Event(type=ev.PLAYBOOK_STATS, stats={})])


def test_stream_explainer_keeps_draining_after_error():
    class Broken(DefaultExplainer):
        def explain_event(self, event):
            if event.counter == 1:
                raise RuntimeError("boom")
            return f"event {event.counter}"

    out = io.StringIO()
    explain(Broken(out=out), [Event(type=ev.RUNNER_OK, counter=i) for i in range(3)])
    assert out.getvalue().splitlines() == ["event 0", "event 2"]


def test_stream_explainer_drains_after_output_fails():
    class ClosedPipe(io.StringIO):
        writes = 0

        def write(self, s):
            ClosedPipe.writes += 1
            raise BrokenPipeError(32, "Broken pipe")

    stream = EventStream(maxsize=2)
    reader = threading.Thread(target=StreamExplainer(DefaultExplainer(out=ClosedPipe())).explain, args=(stream,))
    reader.start()
    for i in range(10):
        stream.put(Event(type=ev.PLAY_START, play=f"play {i}"))
    stream.close()
    reader.join(timeout=10)
    assert not reader.is_alive()
    assert ClosedPipe.writes == 1
