"""Task execution: one automation invocation per task.

Each task gets its own run directory holding the exact plan that was used
and the raw engine log, so a failed or interrupted run can always be
matched with the configuration that produced it.
"""
import logging
import os
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TextIO

from planctl.config import ExecutorOptions, OutputFormat
from planctl.errors import AutomationFailure, WorkspaceError
from planctl.modules.ansible.catalog import ClusterCatalog
from planctl.modules.ansible.inventory import Inventory
from planctl.modules.ansible.runner import AnsibleRunner, Runner, TeeWriter, TimestampWriter
from planctl.modules.explain import DefaultExplainer, EventExplainer, PreflightExplainer, StreamExplainer
from planctl.modules.plan.models import Plan
from planctl.modules.plan.planner import FilePlanner
from planctl.utils import redact_sensitive_data

logger = logging.getLogger("planctl.executor")

RUN_TIMESTAMP_FORMAT = "%Y-%m-%d-%H-%M-%S"
PLAN_SNAPSHOT_FILE = "plan-snapshot.yaml"
AUTOMATION_LOG_FILE = "automation.log"

# (log sink, run directory) -> runner
RunnerFactory = Callable[[object, str], Runner]


@dataclass
class Task:
    """Parameters of one automation invocation."""
    # name of the task, used for the run directory
    name: str
    # the playbook filename
    playbook: str
    inventory: Inventory
    cluster_catalog: ClusterCatalog
    explainer: EventExplainer
    # the plan that is recorded with the run
    plan: Plan
    # run the task on specific nodes only
    limit: List[str] = field(default_factory=list)


class TaskExecutor:
    """Runs tasks through the automation engine.

    The output format is resolved once here into the two things that depend
    on it: where the engine's raw output goes and where explainers write.
    """

    def __init__(
        self,
        options: ExecutorOptions,
        stdout: Optional[TextIO] = None,
        runner_factory: Optional[RunnerFactory] = None,
    ):
        self.options = options
        self.stdout = stdout if stdout is not None else sys.stdout
        self.runner_factory = runner_factory or self._ansible_runner
        if options.output_format == OutputFormat.RAW:
            self._echo_engine_output = True
            self._explainer_out = None
        else:
            self._echo_engine_output = False
            self._explainer_out = self.stdout

    def _ansible_runner(self, log_sink, run_dir: str) -> Runner:
        return AnsibleRunner(
            log_sink,
            self.options.ansible_directory,
            run_dir,
            verbosity=1 if self.options.verbose else 0,
        )

    def default_explainer(self) -> EventExplainer:
        return DefaultExplainer(self.options.verbose, self._explainer_out)

    def preflight_explainer(self) -> EventExplainer:
        return PreflightExplainer(self.options.verbose, self._explainer_out)

    def create_run_directory(self, run_name: str) -> str:
        """Create <runs>/<run name>/<timestamp>.

        Raises:
            WorkspaceError: If the directory cannot be created
        """
        start = time.strftime(RUN_TIMESTAMP_FORMAT, time.localtime())
        base = os.path.join(self.options.runs_directory, run_name, start)
        run_directory = base
        attempt = 0
        while True:
            try:
                os.makedirs(run_directory)
                return run_directory
            except FileExistsError:
                # Same task started twice within one second
                attempt += 1
                run_directory = f"{base}.{attempt}"
            except OSError as e:
                raise WorkspaceError(f"error creating directory {run_directory}: {e}") from e

    def execute(self, t: Task) -> None:
        """Run a task.

        Raises:
            WorkspaceError: If the run directory or its files cannot be written
            AutomationFailure: If the playbook run fails
        """
        if self.options.dry_run:
            logger.info(f"Dry run: skipping task {t.name} ({t.playbook})")
            return

        try:
            run_directory = self.create_run_directory(t.name)
        except WorkspaceError as e:
            raise WorkspaceError(f"error creating working directory for {t.name!r}: {e}") from e

        # Save the plan that was used for this execution
        planner = FilePlanner(os.path.join(run_directory, PLAN_SNAPSHOT_FILE))
        try:
            planner.write(t.plan)
        except (OSError, ValueError) as e:
            raise WorkspaceError(f"error recording plan file to {planner.file}: {e}") from e

        log_filename = os.path.join(run_directory, AUTOMATION_LOG_FILE)
        try:
            log_file = open(log_filename, 'w', encoding='utf-8')
        except OSError as e:
            raise WorkspaceError(f"error creating automation log file {log_filename!r}: {e}") from e

        logger.info(f"Running task {t.name} with playbook {t.playbook} in {run_directory}")
        logger.debug(f"Catalog for {t.name}: {redact_sensitive_data(t.cluster_catalog.to_extra_vars())}")

        with log_file:
            log_sink = TimestampWriter(log_file)
            if self._echo_engine_output:
                log_sink = TeeWriter(self.stdout, log_sink)
            try:
                self._run(t, self.runner_factory(log_sink, run_directory))
            finally:
                log_sink.flush()

    def _run(self, t: Task, runner: Runner) -> None:
        try:
            stream = runner.start(t.playbook, t.inventory, t.cluster_catalog, t.limit or None)
        except AutomationFailure as e:
            raise AutomationFailure(f"error running task {t.name!r}: {e}", e.status, e.rc) from e

        # The engine blocks until the stream is read, so the explainer
        # has to be running before we wait on the engine.
        explainer = StreamExplainer(t.explainer)
        reader = threading.Thread(
            target=explainer.explain,
            args=(stream,),
            name=f"explain-{t.name}",
            daemon=True,
        )
        reader.start()

        try:
            runner.wait()
        except AutomationFailure as e:
            raise AutomationFailure(f"error running playbook for task {t.name!r}: {e}", e.status, e.rc) from e
        finally:
            stream.close()
            reader.join()
