import os

import pytest

from sensemaking.jobs import Job, JobValidationError
from sensemaking.storage import (
    cancel_job,
    create_job,
    destroy_job,
    finish_job,
    get_job,
    init_db,
    list_child_jobs,
    list_jobs,
    list_jobs_for_resource,
    publish_job,
    report_available,
    save_job,
    start_job,
)


def _touch(path: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write("x")


def test_create_and_get_job(paths):
    conn = init_db(paths.state_db)
    job = create_job(
        conn,
        Job(
            analysable_type="Debate",
            analysable_id=1,
            script="runner.ts",
            user_id=3,
            additional_context="Focus on parking",
        ),
        paths,
    )

    assert job.id is not None
    stored = get_job(conn, job.id)
    assert stored is not None
    assert stored.analysable_type == "Debate"
    assert stored.analysable_id == 1
    assert stored.user_id == 3
    assert stored.additional_context == "Focus on parking"
    assert stored.published is False
    assert stored.created_at is not None
    assert get_job(conn, 999) is None


def test_create_job_rejects_invalid_job(paths):
    conn = init_db(paths.state_db)
    with pytest.raises(JobValidationError):
        create_job(conn, Job(analysable_type="Debate", analysable_id=None, script="runner.ts"), paths)
    assert list_jobs(conn) == []


def test_all_proposals_job_is_stored_without_id(paths):
    conn = init_db(paths.state_db)
    job = create_job(conn, Job(analysable_type="Proposal", analysable_id=None, script="full"), paths)
    found = list_jobs_for_resource(conn, "Proposal", None)
    assert [item.id for item in found] == [job.id]
    assert list_jobs_for_resource(conn, "Proposal", 1) == []


def test_finish_persists_output_path(paths):
    conn = init_db(paths.state_db)
    job = create_job(conn, Job(analysable_type="Debate", analysable_id=1, script="runner.ts"), paths)
    start_job(conn, job.id, paths)
    for path in job.output_artifact_paths(paths):
        _touch(path)

    finished = finish_job(conn, job.id, paths)

    stored = get_job(conn, job.id)
    assert finished.persisted_output == os.path.join("data", f"output-{job.id}")
    assert stored.persisted_output == finished.persisted_output
    assert stored.started_at is not None
    assert stored.finished_at is not None


def test_create_finished_job_persists_output_path(paths):
    conn = init_db(paths.state_db)
    expected = Job(analysable_type="Debate", analysable_id=1, script="runner.ts", id=1)
    for path in expected.output_artifact_paths(paths):
        _touch(path)

    job = create_job(
        conn,
        Job(
            analysable_type="Debate",
            analysable_id=1,
            script="runner.ts",
            started_at="2024-01-01T00:00:00Z",
            finished_at="2024-01-01T00:05:00Z",
        ),
        paths,
    )

    assert job.id == 1
    assert job.persisted_output == os.path.join("data", "output-1")
    assert get_job(conn, job.id).persisted_output == job.persisted_output


def test_failed_job_keeps_no_persisted_output(paths):
    conn = init_db(paths.state_db)
    job = create_job(conn, Job(analysable_type="Debate", analysable_id=1, script="runner.ts"), paths)
    for path in job.output_artifact_paths(paths):
        _touch(path)
    finish_job(conn, job.id, paths, error="boom")
    stored = get_job(conn, job.id)
    assert stored.errored()
    assert stored.persisted_output is None


def test_cancel_job_twice_is_harmless(paths):
    conn = init_db(paths.state_db)
    job = create_job(conn, Job(analysable_type="Topic", analysable_id=1, script="health-check"), paths)
    cancel_job(conn, job.id, paths)
    cancel_job(conn, job.id, paths)
    assert get_job(conn, job.id).cancelled()
    with pytest.raises(JobValidationError):
        finish_job(conn, job.id, paths)


def test_publish_requires_publishable_job(paths):
    conn = init_db(paths.state_db)
    job = create_job(conn, Job(analysable_type="Debate", analysable_id=1, script="runner.ts"), paths)
    with pytest.raises(JobValidationError):
        publish_job(conn, job.id, paths)
    assert get_job(conn, job.id).published is False

    for path in job.output_artifact_paths(paths):
        _touch(path)
    finish_job(conn, job.id, paths)
    published = publish_job(conn, job.id, paths)
    assert published.published is True
    assert get_job(conn, job.id).published is True


def test_publish_rejects_categorization_job(paths):
    conn = init_db(paths.state_db)
    job = create_job(
        conn,
        Job(analysable_type="Debate", analysable_id=1, script="categorization_runner.ts"),
        paths,
    )
    _touch(job.default_output_path(paths))
    finish_job(conn, job.id, paths)
    with pytest.raises(JobValidationError):
        publish_job(conn, job.id, paths)


def test_published_job_stays_valid_after_outputs_vanish(paths):
    conn = init_db(paths.state_db)
    job = create_job(conn, Job(analysable_type="Debate", analysable_id=1, script="runner.ts"), paths)
    outputs = job.output_artifact_paths(paths)
    for path in outputs:
        _touch(path)
    finish_job(conn, job.id, paths)
    publish_job(conn, job.id, paths)
    os.remove(outputs[0])

    stored = get_job(conn, job.id)
    stored.additional_context = "edited"
    save_job(conn, stored, paths)
    assert get_job(conn, job.id).additional_context == "edited"


def test_destroy_job_removes_row_files_and_detaches_children(paths):
    conn = init_db(paths.state_db)
    parent = create_job(conn, Job(analysable_type="Debate", analysable_id=1, script="runner.ts"), paths)
    child = create_job(
        conn,
        Job(
            analysable_type="Debate",
            analysable_id=1,
            script="single-html-build.js",
            parent_job_id=parent.id,
        ),
        paths,
    )
    assert [job.id for job in list_child_jobs(conn, parent.id)] == [child.id]
    input_path = parent.input_file_path(paths)
    _touch(input_path)

    report = destroy_job(conn, parent.id, paths)

    assert report is not None
    assert report.ok
    assert input_path in report.removed
    assert not os.path.exists(input_path)
    assert get_job(conn, parent.id) is None
    assert get_job(conn, child.id).parent_job_id is None
    assert destroy_job(conn, parent.id, paths) is None


def test_report_available_for_published_resource(paths, catalog):
    conn = init_db(paths.state_db)
    job = create_job(conn, Job(analysable_type="Debate", analysable_id=1, script="runner.ts"), paths)
    assert not report_available(conn, catalog, "Debate", 1)

    for path in job.output_artifact_paths(paths):
        _touch(path)
    finish_job(conn, job.id, paths)
    publish_job(conn, job.id, paths)
    assert report_available(conn, catalog, "Debate", 1)
    assert not report_available(conn, catalog, "Debate", 2)


def test_report_available_for_budget_and_group(paths, catalog):
    conn = init_db(paths.state_db)
    assert not report_available(conn, catalog, "Budget", 1)
    create_job(conn, Job(analysable_type="Budget::Group", analysable_id=1, script="runner.ts"), paths)
    assert report_available(conn, catalog, "Budget", 1)
    assert report_available(conn, catalog, "Budget::Group", 1)
    assert not report_available(conn, catalog, "Budget::Group", 99)


def test_report_available_for_legislation_process(paths, catalog):
    conn = init_db(paths.state_db)
    assert not report_available(conn, catalog, "Legislation::Process", 1)
    create_job(
        conn,
        Job(analysable_type="Legislation::Question", analysable_id=1, script="runner.ts"),
        paths,
    )
    assert report_available(conn, catalog, "Legislation::Process", 1)
