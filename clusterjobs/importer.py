"""
Bulk import of job-meta documents.

Each document is validated, started, and, if it describes a finished job
with statistics, archived right away. Jobs already present (same job id,
cluster and start time) are skipped.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError

from .logger import get_logger
from .repository import JobRepository
from .schema import JobMeta, MonitoringStatus, validate_job_meta


@dataclass
class ImportReport:
    imported: int = 0
    archived: int = 0
    skipped: int = 0
    invalid: int = 0
    errors: List[str] = field(default_factory=list)


def load_documents(path: Path) -> List[Dict[str, Any]]:
    """
    Read job-meta documents from a JSON file.

    The file holds either a list of documents or an object with a
    ``jobs`` list.
    """
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("jobs", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of job documents")
    return data


def import_jobs(
    repo: Optional[JobRepository],
    documents: Iterable[Dict[str, Any]],
    dry_run: bool = False,
) -> ImportReport:
    """
    Start (and where possible archive) one job per document.

    Args:
        repo: Repository to write to; may be None when ``dry_run`` is set
        documents: camelCase job-meta documents
        dry_run: Validate only, write nothing

    Returns:
        Counts of imported, archived, skipped and invalid documents
    """
    if repo is None and not dry_run:
        raise ValueError("a repository is required unless dry_run is set")

    logger = get_logger()
    report = ImportReport()

    for i, doc in enumerate(documents):
        problems = validate_job_meta(doc) if isinstance(doc, dict) else ["not an object"]
        if problems:
            report.invalid += 1
            report.errors.append(f"document {i}: {'; '.join(problems)}")
            logger.warning("Skipping invalid job document", index=i, errors=problems)
            continue

        meta = JobMeta.from_dict(doc)
        if dry_run:
            report.imported += 1
            continue

        try:
            id_ = repo.start(meta)
        except IntegrityError:
            report.skipped += 1
            logger.info(
                "Job already imported",
                job_id=meta.job_id, cluster=meta.cluster, start_time=meta.start_time,
            )
            continue
        report.imported += 1

        if meta.state.is_terminal and meta.statistics:
            repo.archive(id_, MonitoringStatus.ARCHIVING_SUCCESSFUL, meta.statistics)
            report.archived += 1

    logger.info(
        "Import complete",
        imported=report.imported,
        archived=report.archived,
        skipped=report.skipped,
        invalid=report.invalid,
        dry_run=dry_run,
    )
    return report
