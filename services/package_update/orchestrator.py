"""Run guarded update cycles and report their failures."""

from __future__ import annotations

import logging
import threading
from enum import Enum

from services.package_update.archive import ArchiveFetcher
from services.package_update.constants import (
    AUTOMATED_SELF_UPDATE_MESSAGE,
    ERROR_DIALOG_PREFIX,
    ERROR_DIALOG_TITLE,
)
from services.package_update.installers import InstallApplicator
from services.package_update.inventory import InventoryReader
from services.package_update.manifest import ManifestSource
from services.package_update.models import (
    AutomatedSelfUpdateError,
    CycleOutcome,
    UpdateAction,
    UpdatePlan,
    describe_error,
    find_root_cause,
)
from services.package_update.notifier import Notifier
from services.package_update.planner import plan_updates


_LOGGER = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class RunGuard:
    """Idle/Running flag allowing at most one update cycle at a time."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = RunState.IDLE

    @property
    def state(self) -> RunState:
        with self._lock:
            return self._state

    @property
    def running(self) -> bool:
        return self.state is RunState.RUNNING

    def try_enter(self) -> bool:
        """Move from Idle to Running; return ``False`` if already Running."""

        with self._lock:
            if self._state is RunState.RUNNING:
                return False
            self._state = RunState.RUNNING
            return True

    def leave(self) -> None:
        with self._lock:
            self._state = RunState.IDLE


class UpdateOrchestrator:
    """Coordinate manifest fetch, planning, download and install.

    Every failure inside a cycle ends at a single error boundary: it is
    logged, reported once through the notifier and never re-raised to the
    caller of :meth:`start_cycle` or :meth:`run_cycle`.
    """

    def __init__(
        self,
        manifest_source: ManifestSource,
        inventory: InventoryReader,
        fetcher: ArchiveFetcher,
        applicator: InstallApplicator,
        notifier: Notifier,
        *,
        self_package_id: str,
        guard: RunGuard | None = None,
    ) -> None:
        self._manifest_source = manifest_source
        self._inventory = inventory
        self._fetcher = fetcher
        self._applicator = applicator
        self._notifier = notifier
        self._self_package_id = self_package_id
        self._guard = guard or RunGuard()
        self.last_outcome: CycleOutcome | None = None
        self.last_error: BaseException | None = None

    @property
    def guard(self) -> RunGuard:
        return self._guard

    def start_cycle(self, automated: bool = False) -> threading.Thread | None:
        """Start a cycle on a background thread.

        Returns ``None`` without doing anything when a cycle is already
        running.
        """

        if not self._guard.try_enter():
            _LOGGER.debug("Update cycle already running; ignoring request")
            return None

        thread = threading.Thread(
            target=self._run_entered,
            args=(automated,),
            name="package-update-auto" if automated else "package-update-manual",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError:
            self._guard.leave()
            raise
        return thread

    def run_cycle(self, automated: bool = False) -> CycleOutcome:
        """Run a cycle on the calling thread."""

        if not self._guard.try_enter():
            _LOGGER.debug("Update cycle already running; ignoring request")
            return CycleOutcome.SKIPPED
        return self._run_entered(automated)

    def _run_entered(self, automated: bool) -> CycleOutcome:
        try:
            outcome = self._run_with_error_boundary(automated)
        finally:
            self._guard.leave()
        self.last_outcome = outcome
        return outcome

    def _run_with_error_boundary(self, automated: bool) -> CycleOutcome:
        self.last_error = None
        try:
            return self._run_cycle_unsafe(automated)
        except Exception as exc:
            cause = find_root_cause(exc)
            self.last_error = cause
            _LOGGER.exception("Update cycle failed: %s", describe_error(exc))
            self._report_failure(exc)
            return CycleOutcome.FAILED

    def _run_cycle_unsafe(self, automated: bool) -> CycleOutcome:
        _LOGGER.info("Starting %s update cycle", "automated" if automated else "manual")
        manifest = self._manifest_source.fetch_manifest()
        installed = self._inventory.list_installed()
        plan = plan_updates(manifest, installed, self_package_id=self._self_package_id)
        if plan.is_empty:
            return CycleOutcome.UP_TO_DATE
        if plan.self_update is not None:
            return self._apply_self_update(plan.self_update, automated)
        return self._apply_updates(plan)

    def _apply_self_update(self, action: UpdateAction, automated: bool) -> CycleOutcome:
        if automated:
            raise AutomatedSelfUpdateError(AUTOMATED_SELF_UPDATE_MESSAGE)
        staged = self._fetcher.fetch(action.archive_url, action.package_id)
        self._applicator.apply([staged], self_update=True)
        _LOGGER.info(
            "Updater replaced with %s; remaining updates continue after the host restarts",
            action.to_version,
        )
        return CycleOutcome.SELF_UPDATED

    def _apply_updates(self, plan: UpdatePlan) -> CycleOutcome:
        staged = self._fetcher.fetch_all(plan.updates)
        self._applicator.apply(staged, self_update=False)
        return CycleOutcome.UPDATED

    def _report_failure(self, error: BaseException) -> None:
        message = ERROR_DIALOG_PREFIX + describe_error(error)
        try:
            self._notifier.show_error(ERROR_DIALOG_TITLE, message)
        except Exception:
            _LOGGER.exception("Unable to report update failure")


__all__ = ["RunGuard", "RunState", "UpdateOrchestrator"]
