"""Sensemaking job records: lifecycle predicates, output resolution and cleanup.

A job only records what happened to an external analysis run. Paths are
always resolved through an explicit ``PathsConfig`` so a job stored under one
deployment root resolves correctly under another.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .artifacts import ArtifactLayout, UnknownScriptError, layout_for
from .config import PathsConfig
from .csv_export import UNFILTERED_SUFFIX
from .resources import AGGREGATE_TYPE, ANALYSABLE_TYPES, ResourceRef
from .utils import is_blank, log_event, utc_now_iso

CANCELLED = "Cancelled"

logger = logging.getLogger("sensemaking.jobs")


class JobValidationError(ValueError):
    pass


@dataclass
class Job:
    analysable_type: str
    analysable_id: int | None
    script: str
    id: int | None = None
    user_id: int | None = None
    started_at: str | None = None
    finished_at: str | None = None
    error: str | None = None
    published: bool = False
    persisted_output: str | None = None
    additional_context: str | None = None
    parent_job_id: int | None = None
    created_at: str | None = None

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(self.analysable_type, self.analysable_id)

    @property
    def layout(self) -> ArtifactLayout:
        return layout_for(self.script)

    def started(self) -> bool:
        return self.started_at is not None

    def finished(self) -> bool:
        return self.finished_at is not None

    def errored(self) -> bool:
        return not is_blank(self.error)

    def cancelled(self) -> bool:
        return self.finished() and self.error == CANCELLED

    def start(self) -> None:
        if self.finished():
            raise JobValidationError(f"job {self.id} has already finished")
        if self.started_at is None:
            self.started_at = utc_now_iso()

    def finish(self, error: str | None = None) -> None:
        if self.finished():
            raise JobValidationError(f"job {self.id} has already finished")
        self.finished_at = utc_now_iso()
        self.error = error

    def cancel(self) -> None:
        if self.cancelled():
            return
        if self.finished():
            raise JobValidationError(f"job {self.id} has already finished")
        self.finished_at = utc_now_iso()
        self.error = CANCELLED

    def has_multiple_outputs(self) -> bool:
        return self.layout.multiple_outputs

    def output_file_name(self) -> str:
        return self.layout.file_name(self.id)

    def input_file_path(self, paths: PathsConfig) -> str:
        return os.path.join(paths.data_folder(), f"input-{self.id}.csv")

    def context_file_path(self, paths: PathsConfig) -> str:
        return os.path.join(paths.data_folder(), f"context-{self.id}.md")

    def default_output_path(self, paths: PathsConfig) -> str:
        return os.path.join(paths.data_folder(), self.output_file_name())

    def relative_output_path(self, paths: PathsConfig) -> str:
        return os.path.join(paths.relative_data_folder(), self.output_file_name())

    def persisted_output_path(self, paths: PathsConfig) -> str | None:
        if is_blank(self.persisted_output):
            return None
        return paths.resolve(self.persisted_output)

    def output_base_path(self, paths: PathsConfig) -> str:
        return self.persisted_output_path(paths) or self.default_output_path(paths)

    def output_artifact_paths(self, paths: PathsConfig) -> list[str]:
        return self.layout.paths_for(self.output_base_path(paths))

    def has_outputs(self, paths: PathsConfig) -> bool:
        return all(os.path.exists(path) for path in self.output_artifact_paths(paths))

    def publishable(self, paths: PathsConfig) -> bool:
        return (
            self.layout.publishable
            and self.finished()
            and not self.errored()
            and self.has_outputs(paths)
        )


def validate_job(job: Job, paths: PathsConfig, was_published: bool = False) -> None:
    errors: list[str] = []
    if is_blank(job.analysable_type):
        errors.append("analysable_type is required")
    elif job.analysable_type not in ANALYSABLE_TYPES:
        errors.append(f"analysable_type {job.analysable_type} is not supported")
    elif job.analysable_id is None and job.analysable_type != AGGREGATE_TYPE:
        errors.append("analysable_id is required")
    try:
        layout_for(job.script)
    except UnknownScriptError:
        errors.append(f"script {job.script} is not supported")
    else:
        if job.published and not was_published and not job.publishable(paths):
            errors.append("published requires a finished job without errors and with all outputs")
    if errors:
        raise JobValidationError("Invalid job: " + "; ".join(errors))


def apply_save_hooks(job: Job, paths: PathsConfig) -> None:
    if not job.finished() or job.errored() or not is_blank(job.persisted_output):
        return
    if job.has_outputs(paths):
        job.persisted_output = job.relative_output_path(paths)
        log_event(
            logger,
            logging.INFO,
            "job_output_persisted",
            job_id=job.id,
            persisted_output=job.persisted_output,
        )


@dataclass
class CleanupReport:
    job_id: int | None
    removed: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def cleanup_associated_files(job: Job, paths: PathsConfig) -> CleanupReport:
    report = CleanupReport(job_id=job.id)
    for path in _cleanup_targets(job, paths):
        _remove(path, report)
    if report.failed:
        log_event(
            logger,
            logging.WARNING,
            "job_files_cleanup_incomplete",
            job_id=job.id,
            removed=len(report.removed),
            failed=len(report.failed),
        )
    else:
        log_event(logger, logging.INFO, "job_files_cleaned", job_id=job.id, removed=len(report.removed))
    return report


def _cleanup_targets(job: Job, paths: PathsConfig) -> list[str]:
    input_path = job.input_file_path(paths)
    targets = [input_path, input_path + UNFILTERED_SUFFIX, job.context_file_path(paths)]
    layout = job.layout
    outputs = layout.paths_for(job.default_output_path(paths))
    outputs.extend(job.output_artifact_paths(paths))
    for path in outputs:
        targets.append(path)
        if path.endswith(".csv"):
            targets.append(path + UNFILTERED_SUFFIX)
    persisted = job.persisted_output_path(paths)
    if persisted and os.path.isfile(persisted):
        targets.append(persisted)

    unique: list[str] = []
    for path in targets:
        if path not in unique:
            unique.append(path)
    return unique


def _remove(path: str, report: CleanupReport) -> None:
    if not os.path.lexists(path):
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        report.failed.append((path, str(exc)))
        log_event(
            logger,
            logging.WARNING,
            "job_file_cleanup_failed",
            job_id=report.job_id,
            path=path,
            error=str(exc),
        )
        return
    report.removed.append(path)
