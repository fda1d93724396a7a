"""Filtering of jobs for listing queries."""

from __future__ import annotations

from .models import Job, JobStatus


def resolve_filters(
    job: Job,
    name: str | None = None,
    owner: str | None = None,
    job_status: JobStatus | None = None,
) -> bool:
    """Whether the job matches every filter that is given."""
    if job_status is not None and job_status != job.status:
        return False
    if name is not None and name != job.name:
        return False
    if owner is not None and owner != job.owner:
        return False
    return True