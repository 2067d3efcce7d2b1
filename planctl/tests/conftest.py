import threading

import pytest

from planctl.config import ExecutorOptions
from planctl.errors import AutomationFailure
from planctl.modules.ansible import events as ev
from planctl.modules.ansible.events import Event, EventStream
from planctl.modules.ansible.runner import Runner
from planctl.modules.certificates import PKI
from planctl.modules.plan.models import (
    MasterNodeGroup, Node, NodeGroup, OptionalNodeGroup, Plan, Taint,
)


def build_plan() -> Plan:
    etcd1 = Node(host="etcd1", ip="10.0.0.1", internal_ip="192.168.0.1")
    master1 = Node(host="master1", ip="10.0.0.2", internal_ip="192.168.0.2",
                   labels={"tier": "control"})
    worker1 = Node(host="worker1", ip="10.0.0.3", labels={"zone": "a"},
                   taints=[Taint(key="dedicated", value="gpu")],
                   kubelet_options={"max-pods": "200"})
    worker1_ingress = Node(host="worker1", ip="10.0.0.3", labels={"ingress": "yes"})
    worker2 = Node(host="worker2", ip="10.0.0.4", internal_ip="192.168.0.4")
    storage1 = Node(host="storage1", ip="10.0.0.5")

    plan = Plan()
    plan.cluster.name = "test-cluster"
    plan.cluster.admin_password = "s3cret"
    plan.etcd = NodeGroup(expected_count=1, nodes=[etcd1])
    plan.master = MasterNodeGroup(expected_count=1, nodes=[master1])
    plan.worker = NodeGroup(expected_count=2, nodes=[worker1, worker2])
    plan.ingress = OptionalNodeGroup(expected_count=1, nodes=[worker1_ingress])
    plan.storage = OptionalNodeGroup(expected_count=1, nodes=[storage1])
    return plan


@pytest.fixture
def plan():
    return build_plan()


def sample_events():
    return [
        Event(type=ev.PLAYBOOK_START),
        Event(type=ev.PLAY_START, play="Install cluster", stdout="PLAY [Install cluster] ****"),
        Event(type=ev.TASK_START, task="install packages"),
        Event(type=ev.RUNNER_OK, host="worker1", task="install packages", stdout="ok: [worker1]"),
        Event(type=ev.PLAYBOOK_STATS, stats={"ok": {"worker1": 1}, "failures": {}, "dark": {}}),
    ]


class FakeRunner(Runner):
    """Feeds canned events through the stream from a background thread."""

    def __init__(self, factory, log_sink, run_dir):
        self.factory = factory
        self.log_sink = log_sink
        self.run_dir = run_dir
        self.playbook = None
        self.inventory = None
        self.catalog = None
        self.limit = None
        self._thread = None
        self._stream = None

    def _emit(self, events):
        for e in events:
            if e.stdout:
                self.log_sink.write(e.stdout + "\n")
            self._stream.put(e)

    def start(self, playbook, inventory, catalog, limit=None):
        self.playbook = playbook
        self.inventory = inventory
        self.catalog = catalog
        self.limit = limit
        if self.factory.start_error is not None:
            raise self.factory.start_error
        self._stream = EventStream(maxsize=self.factory.buffer_size)
        self._thread = threading.Thread(target=self._emit, args=(list(self.factory.events),))
        self._thread.start()
        return self._stream

    def wait(self):
        self._thread.join()
        self._stream.close()
        index = self.factory.runners.index(self)
        if index in self.factory.fail_on:
            raise AutomationFailure("ansible-playbook finished with status 'failed' (rc=2)", status="failed", rc=2)


class FakeRunnerFactory:
    def __init__(self):
        self.runners = []
        self.events = sample_events()
        self.fail_on = set()
        self.start_error = None
        self.buffer_size = ev.EVENT_BUFFER_SIZE

    def __call__(self, log_sink, run_dir):
        runner = FakeRunner(self, log_sink, run_dir)
        self.runners.append(runner)
        return runner

    @property
    def playbooks(self):
        return [r.playbook for r in self.runners]


@pytest.fixture
def runner_factory():
    return FakeRunnerFactory()


class FakePKI(PKI):
    def __init__(self, ca_exists=True, fail_on=None):
        self.ca_exists = ca_exists
        self.fail_on = fail_on
        self.calls = []

    def _call(self, name, result=None):
        self.calls.append(name)
        if name == self.fail_on:
            raise ValueError("disk on fire")
        return result

    def certificate_authority_exists(self):
        return self._call("certificate_authority_exists", self.ca_exists)

    def get_cluster_ca(self):
        return self._call("get_cluster_ca", "existing-ca")

    def generate_cluster_ca(self, plan):
        return self._call("generate_cluster_ca", "new-ca")

    def generate_proxy_client_ca(self, plan):
        return self._call("generate_proxy_client_ca", "proxy-ca")

    def generate_cluster_certificates(self, plan, cluster_ca, proxy_client_ca):
        self.calls.append(("generate_cluster_certificates", cluster_ca, proxy_client_ca))
        if self.fail_on == "generate_cluster_certificates":
            raise ValueError("disk on fire")


@pytest.fixture
def fake_pki():
    return FakePKI()


@pytest.fixture
def options(tmp_path):
    return ExecutorOptions.create(
        generated_assets_directory=str(tmp_path / "generated"),
        runs_directory=str(tmp_path / "runs"),
        diagnostics_directory=str(tmp_path / "diagnostics"),
    )
