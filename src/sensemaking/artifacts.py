from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .config import PathsConfig

if TYPE_CHECKING:
    from .jobs import Job


class UnknownScriptError(ValueError):
    pass


@dataclass(frozen=True)
class ArtifactLayout:
    kind: str
    script: str
    file_name_template: str
    suffixes: tuple[str, ...] = ("",)
    publishable: bool = False
    artifacts: dict[str, str] = field(default_factory=dict)

    @property
    def multiple_outputs(self) -> bool:
        return self.suffixes != ("",)

    def file_name(self, job_id: int | str | None) -> str:
        return self.file_name_template.format(job_id=job_id)

    def paths_for(self, base: str) -> list[str]:
        return [f"{base}{suffix}" for suffix in self.suffixes]


LAYOUTS: dict[str, ArtifactLayout] = {
    layout.kind: layout
    for layout in (
        ArtifactLayout(
            kind="categorization",
            script="categorization_runner.ts",
            file_name_template="categorization-output-{job_id}.csv",
            artifacts={"report": ""},
        ),
        ArtifactLayout(
            kind="advanced",
            script="advanced_runner.ts",
            file_name_template="output-{job_id}",
            suffixes=("-summary.json", "-topic-stats.json", "-comments-with-scores.json"),
            artifacts={
                "summary": "-summary.json",
                "topic-stats": "-topic-stats.json",
                "comments": "-comments-with-scores.json",
            },
        ),
        ArtifactLayout(
            kind="full",
            script="runner.ts",
            file_name_template="output-{job_id}",
            suffixes=("-summary.json", "-summary.html", "-summary.md", "-summaryAndSource.csv"),
            publishable=True,
            artifacts={"report": "-summary.html", "summary": "-summary.json"},
        ),
        ArtifactLayout(
            kind="health-check",
            script="health_check_runner.ts",
            file_name_template="health-check-{job_id}.txt",
            artifacts={"report": ""},
        ),
        ArtifactLayout(
            kind="report-build",
            script="single-html-build.js",
            file_name_template="report-{job_id}.html",
            publishable=True,
            artifacts={"report": ""},
        ),
    )
}

_LAYOUTS_BY_SCRIPT = {layout.script: layout for layout in LAYOUTS.values()}

CONTENT_TYPES = {
    ".html": "text/html",
    ".csv": "text/csv",
    ".json": "application/json",
    ".txt": "text/plain",
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def layout_for(script: str | None) -> ArtifactLayout:
    if script in LAYOUTS:
        return LAYOUTS[script]
    if script in _LAYOUTS_BY_SCRIPT:
        return _LAYOUTS_BY_SCRIPT[script]
    raise UnknownScriptError(f"Unknown script: {script}")


def content_type_for(path: str) -> str:
    _, extension = os.path.splitext(str(path))
    return CONTENT_TYPES.get(extension.lower(), DEFAULT_CONTENT_TYPE)


def artifact_path(job: Job, name: str, paths: PathsConfig) -> str | None:
    """Resolve a named artifact (report, summary, topic-stats, comments) for serving."""
    layout = layout_for(job.script)
    suffix = layout.artifacts.get(name)
    if suffix is None:
        return None
    return f"{job.output_base_path(paths)}{suffix}"
