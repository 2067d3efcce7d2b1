"""Events emitted by a playbook run."""
import queue
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

# Playbook event types
PLAYBOOK_START = 'playbook_on_start'
PLAY_START = 'playbook_on_play_start'
TASK_START = 'playbook_on_task_start'
HANDLER_TASK_START = 'playbook_on_handler_task_start'
RUNNER_OK = 'runner_on_ok'
RUNNER_FAILED = 'runner_on_failed'
RUNNER_SKIPPED = 'runner_on_skipped'
RUNNER_UNREACHABLE = 'runner_on_unreachable'
RUNNER_ITEM_OK = 'runner_item_on_ok'
RUNNER_ITEM_FAILED = 'runner_item_on_failed'
PLAYBOOK_STATS = 'playbook_on_stats'

EVENT_BUFFER_SIZE = 256


@dataclass
class Event:
    """A single progress event from the automation engine."""
    type: str
    host: str = ''
    play: str = ''
    task: str = ''
    ignore_errors: bool = False
    result: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Dict[str, int]] = field(default_factory=dict)
    stdout: str = ''
    counter: int = 0

    @classmethod
    def from_runner_event(cls, data: Dict[str, Any]) -> 'Event':
        """Build an event from an ansible-runner event dictionary."""
        event_data = data.get('event_data') or {}
        stats = {}
        if data.get('event') == PLAYBOOK_STATS:
            for key in ('ok', 'changed', 'failures', 'dark', 'skipped', 'rescued', 'ignored'):
                stats[key] = dict(event_data.get(key) or {})
        return cls(
            type=data.get('event', ''),
            host=event_data.get('host', '') or event_data.get('remote_addr', ''),
            play=event_data.get('play', ''),
            task=event_data.get('task', ''),
            ignore_errors=bool(event_data.get('ignore_errors')),
            result=dict(event_data.get('res') or {}),
            stats=stats,
            stdout=data.get('stdout', ''),
            counter=data.get('counter', 0),
        )


class EventStream:
    """A bounded channel of events between the engine and an explainer.

    put() blocks while the buffer is full, so the engine stalls until
    someone reads. Iterating yields events in the order they were put
    until close() is called.
    """

    _CLOSED = object()

    def __init__(self, maxsize: int = EVENT_BUFFER_SIZE):
        self._queue = queue.Queue(maxsize=maxsize)
        self._closed = False

    def put(self, event: Event) -> None:
        self._queue.put(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put(self._CLOSED)

    def get(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Return the next event, or None once the stream is closed."""
        item = self._queue.get(timeout=timeout)
        if item is self._CLOSED:
            # Leave the marker for any other reader
            self._queue.put(self._CLOSED)
            return None
        return item

    def __iter__(self) -> Iterator[Event]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event


def utc_timestamp() -> str:
    """Capture timestamp used to prefix engine log lines."""
    now = time.time()
    millis = int((now - int(now)) * 1000)
    return time.strftime('%Y-%m-%d %H:%M:%S', time.gmtime(now)) + f".{millis:03d}+0000"
