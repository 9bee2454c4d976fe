"""Main orchestrator for Azure SKU migrations"""

import logging
import threading
import time
import uuid
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .classifier import ResourceClassifier
from .errors import (
    ClassificationError,
    DependencyNotSatisfied,
    MigrationError,
    VerificationFailure,
)
from .interfaces import AutoConfirm, IBackupRecorder, IConfirmationPrompt
from .models import (
    BatchReport,
    InputRejection,
    MigrationConfiguration,
    MigrationPlan,
    MigrationResult,
    PlanEntry,
    ResourceIdentifier,
    ResourceState,
    utc_now,
)
from .planner import DependencyGraphBuilder
from ..strategies.registry import StrategyRegistry
from ..utils.batch_input import BatchLine, parse_batch
from ..utils.logger import setup_logger

CLEAN_STATES = (ResourceState.SUCCEEDED, ResourceState.SKIPPED)


class MigrationOrchestrator:
    """Drives a migration plan one resource at a time.

    Per resource: Pending -> DependencyCheck -> BackingUp -> Executing ->
    Verifying -> Succeeded, or Failed/Skipped. Entries are processed strictly in
    plan order; a stop request is honoured only between entries.
    """

    def __init__(
        self,
        classifier: ResourceClassifier,
        registry: StrategyRegistry,
        backup_recorder: IBackupRecorder,
        config: Optional[MigrationConfiguration] = None,
        logger: Optional[logging.Logger] = None,
        confirmation: Optional[IConfirmationPrompt] = None,
        planner: Optional[DependencyGraphBuilder] = None,
        sleep: Callable[[float], None] = time.sleep,
        stop_event: Optional[threading.Event] = None,
    ):
        self.classifier = classifier
        self.registry = registry
        self.backup_recorder = backup_recorder
        self.config = config or MigrationConfiguration()
        self.logger = logger or setup_logger(self.__class__.__name__)
        self.confirmation = confirmation or AutoConfirm()
        self.planner = planner or DependencyGraphBuilder()
        self.sleep = sleep
        self.stop_event = stop_event or threading.Event()

    def prepare(self, batch: Iterable[BatchLine]) -> Tuple[MigrationPlan, List[InputRejection]]:
        """Parse, classify and plan a batch.

        Malformed, duplicate and unclassifiable lines are returned as rejections.
        CyclicDependency propagates and aborts the batch.
        """
        parsed, rejections = parse_batch(batch)

        assessments = []
        seen: Dict[ResourceIdentifier, int] = {}
        for line, parsed_identifier in parsed:
            # Child paths name their parent resource
            identifier = parsed_identifier.top_level
            if identifier in seen:
                rejections.append(InputRejection(
                    line_number=line.line_number,
                    raw=line.text,
                    error_kind="DuplicateIdentifier",
                    message=f"Already listed on line {seen[identifier]}",
                ))
                continue
            seen[identifier] = line.line_number

            try:
                assessments.append((identifier, self.classifier.classify(identifier)))
            except ClassificationError as e:
                self.logger.error(f"Line {line.line_number}: {e}")
                rejections.append(InputRejection(
                    line_number=line.line_number,
                    raw=line.text,
                    error_kind=type(e).__name__,
                    message=str(e),
                ))

        rejections.sort(key=lambda r: r.line_number)
        return self.planner.plan(assessments), rejections

    def migrate(self, batch: Iterable[BatchLine]) -> BatchReport:
        plan, rejections = self.prepare(batch)
        return self.run(plan, rejections)

    def run(
        self,
        plan: MigrationPlan,
        rejections: Optional[List[InputRejection]] = None
    ) -> BatchReport:
        """Execute (or, in dry-run mode, pre-flight) every entry of ``plan``"""

        report = BatchReport(
            run_id=str(uuid.uuid4()),
            started_at=utc_now(),
            dry_run=self.config.dry_run,
            rejections=list(rejections or []),
            edges=list(plan.edges),
        )
        results: Dict[ResourceIdentifier, MigrationResult] = {}
        for entry in plan:
            result = MigrationResult(
                identifier=entry.identifier,
                migration_type=entry.assessment.migration_type,
                warnings=list(entry.assessment.warnings),
            )
            results[entry.identifier] = result
            report.results.append(result)

        mode = "dry run" if self.config.dry_run else "migration"
        self.logger.info(f"Starting {mode} {report.run_id}: {len(plan)} resources, {plan.migration_count} to migrate")

        if self.config.dry_run:
            for entry in plan:
                self._preflight_entry(entry, results[entry.identifier])
        else:
            self._execute_plan(plan, results, report)

        report.finished_at = utc_now()
        self.logger.info(
            f"Run {report.run_id} finished: {report.succeeded} succeeded, {report.skipped} skipped, "
            f"{report.failed} failed, {report.not_attempted} not attempted"
        )
        return report

    def request_stop(self) -> None:
        """Stop accepting new resources after the current one"""
        self.stop_event.set()

    def _execute_plan(
        self,
        plan: MigrationPlan,
        results: Dict[ResourceIdentifier, MigrationResult],
        report: BatchReport
    ) -> None:
        halted: Optional[str] = None

        if plan.migration_count and not self.config.force:
            message = f"About to migrate {plan.migration_count} resource(s). Continue?"
            if not self.confirmation.confirm(message):
                self.logger.warning("Migration declined by operator")
                halted = "declined by operator"

        attempted = 0
        for entry in plan:
            result = results[entry.identifier]

            if not entry.needs_migration:
                self._skip(result, entry.assessment.reason)
                continue

            if halted is None and self.stop_event.is_set():
                halted = "stop requested"
                self.logger.warning("Stop requested; no further resources will be started")

            if halted is not None:
                result.detail = f"not attempted: {halted}"
                continue

            if attempted and self.config.pacing_delay_seconds > 0:
                self.sleep(self.config.pacing_delay_seconds)
            attempted += 1

            self._migrate_entry(entry, result, results)

            if result.failed and not self.config.continue_on_error:
                halted = f"batch halted after {entry.identifier.resource_name} failed"
                self.logger.error(f"Halting batch: {entry.identifier.resource_name} failed")

        report.halted_by = halted

    def _migrate_entry(
        self,
        entry: PlanEntry,
        result: MigrationResult,
        results: Dict[ResourceIdentifier, MigrationResult]
    ) -> None:
        identifier = entry.identifier
        result.started_at = utc_now()

        try:
            self._transition(result, ResourceState.DEPENDENCY_CHECK)
            self._check_dependencies(entry, results)

            record = self.classifier.fetch_record(identifier)
            if not self.classifier.requires_migration(record):
                self._skip(result, "already migrated")
                return

            strategy = self.registry.resolve(entry.assessment.migration_type)
            strategy.validate(record)

            self._transition(result, ResourceState.BACKING_UP)
            result.backup_reference = self.backup_recorder.snapshot(record)

            self._transition(result, ResourceState.EXECUTING)
            handle = strategy.execute(record, self.config)

            self._transition(result, ResourceState.VERIFYING)
            outcome = strategy.verify(handle)
            if not outcome.passed:
                result.needs_manual_verification = True
                raise VerificationFailure(
                    f"{identifier.resource_name} needs manual verification: {outcome.details}"
                )

            result.detail = outcome.details or None
            self._finish(result, ResourceState.SUCCEEDED)

        except MigrationError as e:
            self._fail(result, e)
        except Exception as e:
            self.logger.exception(f"Unexpected error migrating {identifier.resource_name}")
            self._fail(result, e)

    def _check_dependencies(
        self,
        entry: PlanEntry,
        results: Dict[ResourceIdentifier, MigrationResult]
    ) -> None:
        for dependency in entry.depends_on:
            upstream = results.get(dependency)
            if upstream is None or upstream.state not in CLEAN_STATES:
                state = upstream.state.value if upstream else "missing"
                raise DependencyNotSatisfied(
                    f"{dependency.resource_name} must be migrated first (state: {state})"
                )

        for dependency in entry.external_dependencies:
            try:
                record = self.classifier.fetch_record(dependency)
            except ClassificationError as e:
                raise DependencyNotSatisfied(
                    f"Could not confirm {dependency.resource_name} is migrated: {e}"
                ) from e
            if self.classifier.requires_migration(record):
                raise DependencyNotSatisfied(
                    f"{dependency.resource_name} is outside this batch and still needs migration"
                )

    def _preflight_entry(self, entry: PlanEntry, result: MigrationResult) -> None:
        """Read-only checks: no backup, no execute, no verify"""

        if not entry.needs_migration:
            self._skip(result, entry.assessment.reason)
            return

        identifier = entry.identifier
        try:
            record = self.classifier.fetch_record(identifier)
            if not self.classifier.requires_migration(record):
                self._skip(result, "already migrated")
                return
            strategy = self.registry.resolve(entry.assessment.migration_type)
            strategy.validate(record)
        except MigrationError as e:
            self._fail(result, e)
            return

        for dependency in entry.external_dependencies:
            result.warnings.append(f"depends on {dependency} outside this batch")
        upstream = ", ".join(d.resource_name for d in entry.depends_on)
        result.detail = f"dry run: would run {entry.assessment.migration_type.value}"
        if upstream:
            result.detail += f" after {upstream}"
        self.logger.info(f"[dry run] {identifier.resource_name}: {result.detail}")

    def _transition(self, result: MigrationResult, state: ResourceState) -> None:
        self.logger.debug(f"{result.identifier.resource_name}: {result.state.value} -> {state.value}")
        result.state = state

    def _skip(self, result: MigrationResult, reason: str) -> None:
        result.detail = reason
        self._finish(result, ResourceState.SKIPPED)
        self.logger.info(f"Skipped {result.identifier.resource_name}: {reason}")

    def _finish(self, result: MigrationResult, state: ResourceState) -> None:
        result.state = state
        result.finished_at = utc_now()
        if state == ResourceState.SUCCEEDED:
            self.logger.info(f"Migrated {result.identifier.resource_name} ({result.migration_type.value})")

    def _fail(self, result: MigrationResult, error: Exception) -> None:
        failed_in = result.state.value
        result.error_kind = type(error).__name__
        result.error_message = str(error) or result.error_kind
        self._finish(result, ResourceState.FAILED)
        message = f"{result.identifier.resource_name} failed during {failed_in}: {result.error_message}"
        if result.backup_reference:
            message += f" (backup: {result.backup_reference.location})"
        self.logger.error(message)
