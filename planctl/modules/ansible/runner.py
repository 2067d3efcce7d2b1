"""Run playbooks through ansible-runner and stream their events."""
import logging
import os
import threading
from typing import Any, Dict, List, Optional, TextIO

import ansible_runner

from planctl.errors import AutomationFailure
from .catalog import ClusterCatalog
from .events import Event, EventStream, utc_timestamp
from .inventory import Inventory

logger = logging.getLogger("planctl.ansible.runner")


class TimestampWriter:
    """Prefix each line written with a UTC capture timestamp.

    Lines are written in the order they arrive; a trailing partial line is
    held until its newline shows up or the writer is flushed.
    """

    def __init__(self, out: TextIO):
        self.out = out
        self._partial = ''
        self._lock = threading.Lock()

    def write(self, text: str) -> int:
        with self._lock:
            data = self._partial + text
            lines = data.split('\n')
            self._partial = lines.pop()
            for line in lines:
                self.out.write(f"{utc_timestamp()} - {line}\n")
            self.out.flush()
        return len(text)

    def flush(self) -> None:
        with self._lock:
            if self._partial:
                self.out.write(f"{utc_timestamp()} - {self._partial}\n")
                self._partial = ''
            self.out.flush()


class TeeWriter:
    """Write everything to several sinks."""

    def __init__(self, *outs):
        self.outs = outs

    def write(self, text: str) -> int:
        for out in self.outs:
            out.write(text)
        return len(text)

    def flush(self) -> None:
        for out in self.outs:
            out.flush()


class Runner:
    """Executes one playbook invocation.

    start() must not block: it returns the event stream right away and the
    invocation proceeds in the background. The invocation blocks on the
    stream once its buffer is full, so the caller has to start reading the
    stream before calling wait().
    """

    def start(
        self,
        playbook: str,
        inventory: Inventory,
        catalog: ClusterCatalog,
        limit: Optional[List[str]] = None,
    ) -> EventStream:
        raise NotImplementedError

    def wait(self) -> None:
        """Block until the invocation exits.

        Raises:
            AutomationFailure: If the invocation did not succeed
        """
        raise NotImplementedError


class AnsibleRunner(Runner):
    """Runner backed by ansible_runner.run_async."""

    def __init__(
        self,
        out: Any,
        ansible_dir: str,
        run_dir: str,
        verbosity: int = 0,
        envvars: Optional[Dict[str, str]] = None,
    ):
        """Initialize the runner.

        Args:
            out: Sink for the engine's stdout
            ansible_dir: Directory holding the playbooks/ directory
            run_dir: Run directory, used as ansible-runner's private data dir
            verbosity: ansible-playbook verbosity level
            envvars: Extra environment variables for ansible-playbook
        """
        self.out = out
        self.ansible_dir = ansible_dir
        self.run_dir = run_dir
        self.verbosity = verbosity
        self.envvars = envvars or {}
        self._thread = None
        self._runner = None
        self._stream = None

    def _event_handler(self, data: Dict[str, Any]) -> bool:
        stdout = data.get('stdout')
        if stdout:
            self.out.write(stdout + '\n')
        # Blocks while the stream is full
        self._stream.put(Event.from_runner_event(data))
        return True

    def start(self, playbook, inventory, catalog, limit=None) -> EventStream:
        if self._thread is not None:
            raise RuntimeError("runner already started")
        self._stream = EventStream()
        envvars = {
            'ANSIBLE_HOST_KEY_CHECKING': 'False',
            'ANSIBLE_RETRY_FILES_ENABLED': 'False',
        }
        envvars.update(self.envvars)
        kwargs = dict(
            private_data_dir=os.path.abspath(self.run_dir),
            project_dir=os.path.abspath(os.path.join(self.ansible_dir, "playbooks")),
            playbook=playbook,
            inventory=inventory.to_dict(),
            extravars=catalog.to_extra_vars(),
            envvars=envvars,
            event_handler=self._event_handler,
            quiet=True,
            verbosity=self.verbosity or None,
        )
        if limit:
            kwargs['limit'] = ",".join(limit)
        logger.debug(f"Starting playbook {playbook} (limit={limit or 'all'}) in {self.run_dir}")
        try:
            self._thread, self._runner = ansible_runner.run_async(**kwargs)
        except Exception as e:
            self._stream.close()
            raise AutomationFailure(f"error running ansible playbook {playbook}: {e}") from e
        return self._stream

    def wait(self) -> None:
        if self._thread is None:
            raise RuntimeError("runner was not started")
        self._thread.join()
        self._stream.close()
        if hasattr(self.out, 'flush'):
            self.out.flush()
        status = getattr(self._runner, 'status', None)
        rc = getattr(self._runner, 'rc', None)
        logger.debug(f"Playbook finished with status={status} rc={rc}")
        if status != 'successful':
            raise AutomationFailure(
                f"ansible-playbook finished with status {status!r} (rc={rc})",
                status=status,
                rc=rc,
            )
