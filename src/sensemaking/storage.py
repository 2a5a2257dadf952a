from __future__ import annotations

import logging
import sqlite3
from typing import Any, Iterable

from .config import PathsConfig
from .db import connect_db
from .jobs import (
    CleanupReport,
    Job,
    JobValidationError,
    apply_save_hooks,
    cleanup_associated_files,
    validate_job,
)
from .resources import Catalog, ResourceRef
from .utils import log_event, utc_now_iso

logger = logging.getLogger("sensemaking.storage")

_JOB_COLUMNS = """
    id, analysable_type, analysable_id, script, user_id, started_at, finished_at,
    error, published, persisted_output, additional_context, parent_job_id, created_at
"""


def init_db(path: str) -> sqlite3.Connection:
    return connect_db(path)


def create_job(conn: Any, job: Job, paths: PathsConfig) -> Job:
    validate_job(job, paths)
    now = utc_now_iso()
    job.created_at = job.created_at or now
    cursor = conn.execute(
        """
        INSERT INTO sensemaking_jobs
            (analysable_type, analysable_id, script, user_id, started_at, finished_at,
             error, published, persisted_output, additional_context, parent_job_id,
             created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            job.analysable_type,
            job.analysable_id,
            job.script,
            job.user_id,
            job.started_at,
            job.finished_at,
            job.error,
            1 if job.published else 0,
            job.persisted_output,
            job.additional_context,
            job.parent_job_id,
            job.created_at,
            now,
        ),
    )
    conn.commit()
    job.id = cursor.lastrowid
    persisted_output = job.persisted_output
    apply_save_hooks(job, paths)
    if job.persisted_output != persisted_output:
        conn.execute(
            "UPDATE sensemaking_jobs SET persisted_output = ?, updated_at = ? WHERE id = ?",
            (job.persisted_output, now, job.id),
        )
        conn.commit()
    log_event(
        logger,
        logging.INFO,
        "job_created",
        job_id=job.id,
        resource=job.ref,
        script=job.script,
    )
    return job


def save_job(conn: Any, job: Job, paths: PathsConfig) -> Job:
    if job.id is None:
        return create_job(conn, job, paths)
    row = conn.execute(
        "SELECT published FROM sensemaking_jobs WHERE id = ?", (job.id,)
    ).fetchone()
    if row is None:
        raise LookupError(f"job {job.id} not found")
    validate_job(job, paths, was_published=bool(row[0]))
    apply_save_hooks(job, paths)
    conn.execute(
        """
        UPDATE sensemaking_jobs
        SET analysable_type = ?,
            analysable_id = ?,
            script = ?,
            user_id = ?,
            started_at = ?,
            finished_at = ?,
            error = ?,
            published = ?,
            persisted_output = ?,
            additional_context = ?,
            parent_job_id = ?,
            updated_at = ?
        WHERE id = ?
        """,
        (
            job.analysable_type,
            job.analysable_id,
            job.script,
            job.user_id,
            job.started_at,
            job.finished_at,
            job.error,
            1 if job.published else 0,
            job.persisted_output,
            job.additional_context,
            job.parent_job_id,
            utc_now_iso(),
            job.id,
        ),
    )
    conn.commit()
    return job


def get_job(conn: Any, job_id: int) -> Job | None:
    row = conn.execute(
        f"SELECT {_JOB_COLUMNS} FROM sensemaking_jobs WHERE id = ?", (job_id,)
    ).fetchone()
    return _row_to_job(row) if row else None


def require_job(conn: Any, job_id: int) -> Job:
    job = get_job(conn, job_id)
    if job is None:
        raise LookupError(f"job {job_id} not found")
    return job


def list_jobs(conn: Any, limit: int = 50) -> list[Job]:
    cursor = conn.execute(
        f"""
        SELECT {_JOB_COLUMNS}
        FROM sensemaking_jobs
        ORDER BY id DESC
        LIMIT ?
        """,
        (limit,),
    )
    return [_row_to_job(row) for row in cursor.fetchall()]


def list_child_jobs(conn: Any, parent_job_id: int) -> list[Job]:
    cursor = conn.execute(
        f"""
        SELECT {_JOB_COLUMNS}
        FROM sensemaking_jobs
        WHERE parent_job_id = ?
        ORDER BY id
        """,
        (parent_job_id,),
    )
    return [_row_to_job(row) for row in cursor.fetchall()]


def list_jobs_for_resource(
    conn: Any,
    resource_type: str,
    resource_id: int | None,
    published_only: bool = False,
) -> list[Job]:
    return list_jobs_for_resources(
        conn, [ResourceRef(resource_type, resource_id)], published_only=published_only
    )


def list_jobs_for_resources(
    conn: Any, refs: Iterable[ResourceRef], published_only: bool = False
) -> list[Job]:
    clauses: list[str] = []
    params: list[object] = []
    for ref in refs:
        if ref.resource_id is None:
            clauses.append("(analysable_type = ? AND analysable_id IS NULL)")
            params.append(ref.resource_type)
        else:
            clauses.append("(analysable_type = ? AND analysable_id = ?)")
            params.extend([ref.resource_type, ref.resource_id])
    if not clauses:
        return []
    where = " OR ".join(clauses)
    if published_only:
        where = f"({where}) AND published = 1"
    cursor = conn.execute(
        f"SELECT {_JOB_COLUMNS} FROM sensemaking_jobs WHERE {where} ORDER BY id DESC",
        params,
    )
    return [_row_to_job(row) for row in cursor.fetchall()]


def start_job(conn: Any, job_id: int, paths: PathsConfig) -> Job:
    job = require_job(conn, job_id)
    job.start()
    log_event(logger, logging.INFO, "job_started", job_id=job_id)
    return save_job(conn, job, paths)


def finish_job(conn: Any, job_id: int, paths: PathsConfig, error: str | None = None) -> Job:
    job = require_job(conn, job_id)
    job.finish(error)
    if error:
        log_event(logger, logging.ERROR, "job_failed", job_id=job_id, error=error)
    else:
        log_event(logger, logging.INFO, "job_finished", job_id=job_id)
    return save_job(conn, job, paths)


def cancel_job(conn: Any, job_id: int, paths: PathsConfig) -> Job:
    job = require_job(conn, job_id)
    job.cancel()
    log_event(logger, logging.INFO, "job_cancelled", job_id=job_id)
    return save_job(conn, job, paths)


def publish_job(conn: Any, job_id: int, paths: PathsConfig) -> Job:
    job = require_job(conn, job_id)
    if job.published:
        return job
    job.published = True
    try:
        save_job(conn, job, paths)
    except JobValidationError:
        job.published = False
        log_event(logger, logging.WARNING, "job_publish_rejected", job_id=job_id)
        raise
    log_event(logger, logging.INFO, "job_published", job_id=job_id)
    return job


def destroy_job(conn: Any, job_id: int, paths: PathsConfig) -> CleanupReport | None:
    job = get_job(conn, job_id)
    if job is None:
        return None
    conn.execute(
        "UPDATE sensemaking_jobs SET parent_job_id = NULL WHERE parent_job_id = ?", (job_id,)
    )
    conn.execute("DELETE FROM sensemaking_jobs WHERE id = ?", (job_id,))
    conn.commit()
    try:
        report = cleanup_associated_files(job, paths)
    except Exception as exc:  # noqa: BLE001
        log_event(logger, logging.WARNING, "job_cleanup_failed", job_id=job_id, error=str(exc))
        report = CleanupReport(job_id=job_id, failed=[("*", str(exc))])
    log_event(logger, logging.INFO, "job_destroyed", job_id=job_id)
    return report


def report_available(
    conn: Any, catalog: Catalog, resource_type: str, resource_id: int | None
) -> bool:
    """Whether a public analysis link should be shown for a resource page.

    Budgets and budget groups count any job run on the budget or one of its
    groups; legislation processes count jobs on their debates and proposals.
    Everything else needs a published job on exactly that resource.
    """
    if resource_type in ("Budget", "Budget::Group"):
        budget_id = resource_id
        if resource_type == "Budget::Group":
            group = catalog.get("budget_groups", resource_id)
            if group is None:
                return False
            budget_id = group.budget_id
        refs = [ResourceRef("Budget", budget_id)]
        refs.extend(ResourceRef("Budget::Group", group.id) for group in catalog.budget_groups(budget_id))
        return bool(list_jobs_for_resources(conn, refs))
    if resource_type == "Legislation::Process":
        refs = catalog.process_item_refs(resource_id)
        return bool(list_jobs_for_resources(conn, refs))
    return bool(list_jobs_for_resource(conn, resource_type, resource_id, published_only=True))


def _row_to_job(row: tuple) -> Job:
    (
        job_id,
        analysable_type,
        analysable_id,
        script,
        user_id,
        started_at,
        finished_at,
        error,
        published,
        persisted_output,
        additional_context,
        parent_job_id,
        created_at,
    ) = row
    return Job(
        id=job_id,
        analysable_type=analysable_type,
        analysable_id=analysable_id,
        script=script,
        user_id=user_id,
        started_at=started_at,
        finished_at=finished_at,
        error=error,
        published=bool(published),
        persisted_output=persisted_output,
        additional_context=additional_context,
        parent_job_id=parent_job_id,
        created_at=created_at,
    )
