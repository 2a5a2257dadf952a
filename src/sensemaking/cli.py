from __future__ import annotations

import argparse
import logging
import sys

from .artifacts import LAYOUTS, artifact_path, content_type_for, layout_for
from .config import Config, ConfigError, load_config
from .conversation import Conversation
from .csv_export import CsvExporter, filter_zero_vote_comments_from_csv
from .jobs import Job, JobValidationError
from .pipelines.job_inputs import filter_categorization_output, write_job_inputs
from .resources import ANALYSABLE_TYPES, Catalog, CatalogError, load_catalog
from .storage import (
    cancel_job,
    create_job,
    destroy_job,
    finish_job,
    get_job,
    init_db,
    list_child_jobs,
    list_jobs,
    publish_job,
    report_available,
    start_job,
)
from .utils import configure_logging, json_dumps, log_event

# ValueError covers catalog and resource errors, LookupError missing records
_RESOURCE_ERRORS = (ValueError, LookupError)


def _load(args: argparse.Namespace, logger: logging.Logger) -> Config | None:
    try:
        return load_config(args.config)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return None


def _load_catalog(path: str, logger: logging.Logger) -> Catalog | None:
    try:
        return load_catalog(path)
    except CatalogError as exc:
        log_event(logger, logging.ERROR, "catalog_error", error=str(exc))
        return None


def _log_job(args: argparse.Namespace, logger: logging.Logger, job: Job, config: Config) -> None:
    if getattr(args, "json", False):
        sys.stdout.write(json_dumps(job) + "\n")
        return
    log_event(
        logger,
        logging.INFO,
        "job",
        job_id=job.id,
        resource=job.ref,
        script=job.script,
        parent_job_id=job.parent_job_id,
        started_at=job.started_at,
        finished_at=job.finished_at,
        error=job.error,
        published=job.published,
        output=job.output_base_path(config.paths),
    )


def _cmd_context(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    catalog = _load_catalog(args.catalog, logger)
    if catalog is None:
        return 1
    try:
        conversation = Conversation(
            args.resource_type, args.resource_id, catalog, proposals=config.proposals
        )
        text = conversation.compile_context(additional_context=args.additional_context)
    except _RESOURCE_ERRORS as exc:
        log_event(logger, logging.ERROR, "context_failed", error=str(exc))
        return 1
    sys.stdout.write(text)
    return 0


def _cmd_export_csv(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    catalog = _load_catalog(args.catalog, logger)
    if catalog is None:
        return 1
    try:
        exporter = CsvExporter(
            Conversation(args.resource_type, args.resource_id, catalog, proposals=config.proposals)
        )
        if args.output:
            exporter.export_to_csv(args.output)
        else:
            sys.stdout.write(exporter.export_to_string())
    except _RESOURCE_ERRORS as exc:
        log_event(logger, logging.ERROR, "export_failed", error=str(exc))
        return 1
    return 0


def _cmd_filter_csv(args: argparse.Namespace, logger: logging.Logger) -> int:
    remaining = filter_zero_vote_comments_from_csv(args.path)
    if remaining is None:
        log_event(logger, logging.ERROR, "csv_not_found", path=args.path)
        return 1
    log_event(logger, logging.INFO, "csv_filtered", path=args.path, remaining=remaining)
    return 0


def _cmd_jobs_list(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    conn = init_db(config.paths.state_db)
    for job in list_jobs(conn, limit=args.limit):
        _log_job(args, logger, job, config)
    return 0


def _cmd_jobs_show(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    conn = init_db(config.paths.state_db)
    job = get_job(conn, args.job_id)
    if job is None:
        log_event(logger, logging.ERROR, "job_not_found", job_id=args.job_id)
        return 1
    _log_job(args, logger, job, config)
    for name in sorted(job.layout.artifacts):
        path = artifact_path(job, name, config.paths)
        log_event(
            logger,
            logging.INFO,
            "job_artifact",
            job_id=job.id,
            name=name,
            path=path,
            content_type=content_type_for(path),
        )
    return 0


def _cmd_jobs_children(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    conn = init_db(config.paths.state_db)
    for job in list_child_jobs(conn, args.job_id):
        _log_job(args, logger, job, config)
    return 0


def _cmd_jobs_create(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    conn = init_db(config.paths.state_db)
    job = Job(
        analysable_type=args.resource_type,
        analysable_id=args.resource_id,
        script=layout_for(args.script).script,
        user_id=args.user_id,
        additional_context=args.additional_context,
        parent_job_id=args.parent_job_id,
    )
    try:
        create_job(conn, job, config.paths)
    except JobValidationError as exc:
        log_event(logger, logging.ERROR, "job_invalid", error=str(exc))
        return 1
    return 0


def _run_transition(args: argparse.Namespace, logger: logging.Logger, action) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    conn = init_db(config.paths.state_db)
    try:
        job = action(conn, config)
    except LookupError as exc:
        log_event(logger, logging.ERROR, "job_not_found", job_id=args.job_id, error=str(exc))
        return 1
    except JobValidationError as exc:
        log_event(logger, logging.ERROR, "job_invalid", job_id=args.job_id, error=str(exc))
        return 1
    _log_job(args, logger, job, config)
    return 0


def _cmd_jobs_start(args: argparse.Namespace, logger: logging.Logger) -> int:
    return _run_transition(
        args, logger, lambda conn, config: start_job(conn, args.job_id, config.paths)
    )


def _cmd_jobs_finish(args: argparse.Namespace, logger: logging.Logger) -> int:
    def action(conn, config):
        job = finish_job(conn, args.job_id, config.paths, error=args.error)
        if job.layout.kind == "categorization" and not job.errored():
            filter_categorization_output(job, config.paths)
        return job

    return _run_transition(args, logger, action)


def _cmd_jobs_cancel(args: argparse.Namespace, logger: logging.Logger) -> int:
    return _run_transition(
        args, logger, lambda conn, config: cancel_job(conn, args.job_id, config.paths)
    )


def _cmd_jobs_publish(args: argparse.Namespace, logger: logging.Logger) -> int:
    return _run_transition(
        args, logger, lambda conn, config: publish_job(conn, args.job_id, config.paths)
    )


def _cmd_jobs_delete(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    conn = init_db(config.paths.state_db)
    report = destroy_job(conn, args.job_id, config.paths)
    if report is None:
        log_event(logger, logging.ERROR, "job_not_found", job_id=args.job_id)
        return 1
    if not report.ok:
        for path, error in report.failed:
            log_event(logger, logging.WARNING, "job_file_left", path=path, error=error)
    return 0


def _cmd_jobs_prepare(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    catalog = _load_catalog(args.catalog, logger)
    if catalog is None:
        return 1
    conn = init_db(config.paths.state_db)
    job = get_job(conn, args.job_id)
    if job is None:
        log_event(logger, logging.ERROR, "job_not_found", job_id=args.job_id)
        return 1
    try:
        write_job_inputs(job, catalog, config)
    except _RESOURCE_ERRORS as exc:
        log_event(logger, logging.ERROR, "job_inputs_failed", job_id=job.id, error=str(exc))
        return 1
    return 0


def _cmd_report_available(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    catalog = _load_catalog(args.catalog, logger)
    if catalog is None:
        return 1
    conn = init_db(config.paths.state_db)
    try:
        available = report_available(conn, catalog, args.resource_type, args.resource_id)
    except _RESOURCE_ERRORS as exc:
        log_event(logger, logging.ERROR, "report_failed", error=str(exc))
        return 1
    log_event(
        logger,
        logging.INFO,
        "report_available",
        resource_type=args.resource_type,
        resource_id=args.resource_id,
        available=available,
    )
    return 0 if available else 1


def _add_resource_arguments(
    parser: argparse.ArgumentParser, choices: tuple[str, ...] = ANALYSABLE_TYPES
) -> None:
    parser.add_argument("resource_type", choices=choices, help="Resource type tag")
    parser.add_argument(
        "resource_id",
        nargs="?",
        type=int,
        default=None,
        help="Resource id (omit for all proposals)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sensemaking", description="Sensemaking CLI")
    parser.add_argument(
        "--config",
        dest="config",
        default=None,
        help="Path to config.yml (built-in defaults when omitted)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    context_parser = subparsers.add_parser("context", help="Print the context for a resource")
    _add_resource_arguments(context_parser)
    context_parser.add_argument("--catalog", required=True, help="Path to catalog YAML")
    context_parser.add_argument("--additional-context", default=None, help="Operator notes")
    context_parser.set_defaults(func=_cmd_context)

    export_parser = subparsers.add_parser("export-csv", help="Export comments as CSV")
    _add_resource_arguments(export_parser)
    export_parser.add_argument("--catalog", required=True, help="Path to catalog YAML")
    export_parser.add_argument("--output", default=None, help="Output CSV path (stdout if omitted)")
    export_parser.set_defaults(func=_cmd_export_csv)

    filter_parser = subparsers.add_parser("filter-csv", help="Drop zero-vote rows from a CSV")
    filter_parser.add_argument("path", help="CSV file to filter in place")
    filter_parser.set_defaults(func=_cmd_filter_csv)

    report_parser = subparsers.add_parser(
        "report-available", help="Exit 0 when a public analysis link should be shown"
    )
    _add_resource_arguments(report_parser, ANALYSABLE_TYPES + ("Legislation::Process",))
    report_parser.add_argument("--catalog", required=True, help="Path to catalog YAML")
    report_parser.set_defaults(func=_cmd_report_available)

    jobs_parser = subparsers.add_parser("jobs", help="Sensemaking job commands")
    jobs_subparsers = jobs_parser.add_subparsers(dest="jobs_command", required=True)

    jobs_list = jobs_subparsers.add_parser("list", help="List recent jobs")
    jobs_list.add_argument("--limit", type=int, default=20, help="Number of jobs to show")
    jobs_list.add_argument("--json", action="store_true", help="Print one JSON object per job")
    jobs_list.set_defaults(func=_cmd_jobs_list)

    jobs_show = jobs_subparsers.add_parser("show", help="Show a job and its artifacts")
    jobs_show.add_argument("job_id", type=int, help="Job id")
    jobs_show.add_argument("--json", action="store_true", help="Print the job as JSON")
    jobs_show.set_defaults(func=_cmd_jobs_show)

    jobs_children = jobs_subparsers.add_parser("children", help="List jobs derived from a job")
    jobs_children.add_argument("job_id", type=int, help="Parent job id")
    jobs_children.add_argument("--json", action="store_true", help="Print one JSON object per job")
    jobs_children.set_defaults(func=_cmd_jobs_children)

    jobs_create = jobs_subparsers.add_parser("create", help="Record a new job")
    _add_resource_arguments(jobs_create)
    jobs_create.add_argument(
        "--script",
        required=True,
        choices=sorted(LAYOUTS),
        help="Analysis kind (stored as its runner script)",
    )
    jobs_create.add_argument("--user-id", type=int, default=None, help="Requesting user id")
    jobs_create.add_argument("--parent-job-id", type=int, default=None, help="Parent job id")
    jobs_create.add_argument("--additional-context", default=None, help="Operator notes")
    jobs_create.set_defaults(func=_cmd_jobs_create)

    jobs_start = jobs_subparsers.add_parser("start", help="Mark a job as started")
    jobs_start.add_argument("job_id", type=int, help="Job id")
    jobs_start.set_defaults(func=_cmd_jobs_start)

    jobs_finish = jobs_subparsers.add_parser("finish", help="Mark a job as finished")
    jobs_finish.add_argument("job_id", type=int, help="Job id")
    jobs_finish.add_argument("--error", default=None, help="Error message if the run failed")
    jobs_finish.set_defaults(func=_cmd_jobs_finish)

    jobs_cancel = jobs_subparsers.add_parser("cancel", help="Cancel a job")
    jobs_cancel.add_argument("job_id", type=int, help="Job id")
    jobs_cancel.set_defaults(func=_cmd_jobs_cancel)

    jobs_publish = jobs_subparsers.add_parser("publish", help="Publish a finished job")
    jobs_publish.add_argument("job_id", type=int, help="Job id")
    jobs_publish.set_defaults(func=_cmd_jobs_publish)

    jobs_delete = jobs_subparsers.add_parser("delete", help="Delete a job and its files")
    jobs_delete.add_argument("job_id", type=int, help="Job id")
    jobs_delete.set_defaults(func=_cmd_jobs_delete)

    jobs_prepare = jobs_subparsers.add_parser(
        "prepare", help="Write the input CSV and context file for a job"
    )
    jobs_prepare.add_argument("job_id", type=int, help="Job id")
    jobs_prepare.add_argument("--catalog", required=True, help="Path to catalog YAML")
    jobs_prepare.set_defaults(func=_cmd_jobs_prepare)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = configure_logging("sensemaking")
    return args.func(args, logger)


if __name__ == "__main__":
    raise SystemExit(main())
