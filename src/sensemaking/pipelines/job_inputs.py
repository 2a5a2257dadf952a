from __future__ import annotations

import logging
from pathlib import Path

from ..config import Config, PathsConfig
from ..conversation import Conversation
from ..csv_export import CsvExporter, filter_zero_vote_comments_from_csv
from ..jobs import Job
from ..resources import Catalog
from ..utils import log_event

logger = logging.getLogger("sensemaking.pipelines.job_inputs")


def write_job_inputs(job: Job, catalog: Catalog, config: Config) -> dict[str, str]:
    """Write the comment CSV and context file an analysis run reads for ``job``."""
    paths = config.paths
    Path(paths.data_folder()).mkdir(parents=True, exist_ok=True)
    conversation = Conversation(
        job.analysable_type, job.analysable_id, catalog, proposals=config.proposals
    )
    context = conversation.compile_context(additional_context=job.additional_context)
    input_path = CsvExporter(conversation).export_to_csv(job.input_file_path(paths))
    context_path = job.context_file_path(paths)
    Path(context_path).write_text(context, encoding="utf-8")
    log_event(
        logger,
        logging.INFO,
        "job_inputs_written",
        job_id=job.id,
        input_path=input_path,
        context_path=context_path,
    )
    return {"input_path": input_path, "context_path": context_path}


def filter_categorization_output(job: Job, paths: PathsConfig) -> int | None:
    if job.layout.kind != "categorization":
        raise ValueError(f"job {job.id} does not produce a categorization output")
    output_path = job.output_artifact_paths(paths)[0]
    remaining = filter_zero_vote_comments_from_csv(output_path)
    log_event(
        logger,
        logging.INFO,
        "categorization_output_filtered",
        job_id=job.id,
        path=output_path,
        remaining=remaining,
    )
    return remaining
