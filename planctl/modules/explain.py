"""Render playbook events as human readable progress."""
import logging
from typing import Dict, Optional, TextIO

import typer

from planctl.modules.ansible import events as ev
from planctl.modules.ansible.events import Event, EventStream

logger = logging.getLogger("planctl.explain")


class EventExplainer:
    """Turns a single event into output."""

    def __init__(self, verbose: bool = False, out: Optional[TextIO] = None):
        self.verbose = verbose
        self.out = out

    def explain_event(self, event: Event) -> Optional[str]:
        """Return the text for an event, or None to print nothing."""
        raise NotImplementedError

    def echo(self, message: str) -> None:
        if self.out is None:
            return
        typer.echo(message, file=self.out)


class DefaultExplainer(EventExplainer):
    """Verbose progress: plays, tasks and the result of each host."""

    def __init__(self, verbose: bool = False, out: Optional[TextIO] = None):
        super().__init__(verbose, out)
        self._current_task = ''

    def explain_event(self, event: Event) -> Optional[str]:
        if event.type == ev.PLAY_START:
            return f"\n▶ {event.play}"
        if event.type in (ev.TASK_START, ev.HANDLER_TASK_START):
            self._current_task = event.task
            return f"  - {event.task}" if self.verbose else None
        if event.type == ev.RUNNER_OK:
            return f"    ✅ {event.host}" if self.verbose else None
        if event.type == ev.RUNNER_SKIPPED:
            return f"    ⏭️  {event.host} (skipped)" if self.verbose else None
        if event.type == ev.RUNNER_FAILED:
            if event.ignore_errors:
                return f"    ⚠️  {event.host} failed (ignored)" if self.verbose else None
            return f"    ❌ {event.host} failed during {event.task or self._current_task!r}: {_failure_message(event.result)}"
        if event.type == ev.RUNNER_UNREACHABLE:
            return f"    ❌ {event.host} is unreachable: {_failure_message(event.result)}"
        if event.type == ev.PLAYBOOK_STATS:
            return _stats_summary(event.stats)
        return None


class PreflightExplainer(EventExplainer):
    """Pass/fail oriented output for preflight checks."""

    def explain_event(self, event: Event) -> Optional[str]:
        if event.type == ev.PLAY_START:
            return f"\n🔍 {event.play}"
        if event.type in (ev.RUNNER_OK, ev.RUNNER_ITEM_OK):
            if not self.verbose:
                return None
            return f"    ✅ {event.host}: {event.task}"
        if event.type in (ev.RUNNER_FAILED, ev.RUNNER_ITEM_FAILED):
            label = "⚠️ " if event.ignore_errors else "❌"
            return f"    {label} {event.host}: {event.task}: {_failure_message(event.result)}"
        if event.type == ev.RUNNER_UNREACHABLE:
            return f"    ❌ {event.host} is unreachable: {_failure_message(event.result)}"
        if event.type == ev.PLAYBOOK_STATS:
            failed = sorted(set(event.stats.get('failures', {})) | set(event.stats.get('dark', {})))
            if failed:
                return f"\n❌ Pre-flight checks failed on: {', '.join(failed)}"
            return "\n✅ Pre-flight checks passed"
        return None


class StreamExplainer:
    """Consumes an event stream until it closes."""

    def __init__(self, event_explainer: EventExplainer):
        self.event_explainer = event_explainer

    def explain(self, stream: EventStream) -> None:
        output_broken = False
        for event in stream:
            if output_broken:
                # Keep draining, the engine blocks if nobody reads
                continue
            try:
                message = self.event_explainer.explain_event(event)
            except Exception as e:
                logger.error(f"Failed to explain event {event.type}: {e}", exc_info=True)
                continue
            if message is None:
                continue
            try:
                self.event_explainer.echo(message)
            except OSError as e:
                logger.warning(f"Output is no longer writable, dropping further progress: {e}")
                output_broken = True


def _failure_message(result: Dict) -> str:
    msg = result.get('msg') or result.get('stderr') or result.get('reason') or ''
    return str(msg).strip() or 'no details'


def _stats_summary(stats: Dict[str, Dict[str, int]]) -> str:
    hosts = set()
    for counts in stats.values():
        hosts.update(counts)
    lines = ["\nSummary:"]
    for host in sorted(hosts):
        ok = stats.get('ok', {}).get(host, 0)
        changed = stats.get('changed', {}).get(host, 0)
        failed = stats.get('failures', {}).get(host, 0)
        unreachable = stats.get('dark', {}).get(host, 0)
        marker = "❌" if failed or unreachable else "✅"
        lines.append(
            f"  {marker} {host}: ok={ok} changed={changed} failed={failed} unreachable={unreachable}"
        )
    return "\n".join(lines)
