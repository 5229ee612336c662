"""
Job entities and job-meta validation.

``JobMeta`` is what a scheduler reports when a job starts and what
``JobRepository.start`` persists. ``Job`` is what reads return.
"""

import enum
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


class JobState(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    STOPPED = "stopped"
    TIMEOUT = "timeout"
    PREEMPTED = "preempted"
    OUT_OF_MEMORY = "out_of_memory"

    @property
    def is_terminal(self) -> bool:
        return self is not JobState.RUNNING


class MonitoringStatus(enum.IntEnum):
    DISABLED = 0
    RUNNING_OR_ARCHIVING = 1
    ARCHIVING_FAILED = 2
    ARCHIVING_SUCCESSFUL = 3


@dataclass
class Resource:
    """One allocated node and the hardware threads/accelerators used on it."""

    hostname: str
    hwthreads: Optional[List[int]] = None
    accelerators: Optional[List[str]] = None
    configuration: Optional[str] = None


@dataclass
class JobStatistics:
    avg: float
    min: float
    max: float
    unit: Optional[str] = None


@dataclass
class JobMeta:
    """Job as reported at start. ``statistics`` is never written by start()."""

    job_id: int
    user: str
    project: str
    cluster: str
    start_time: int
    num_nodes: int
    resources: List[Resource]
    partition: Optional[str] = None
    array_job_id: Optional[int] = None
    num_hwthreads: Optional[int] = None
    num_acc: Optional[int] = None
    exclusive: int = 1
    monitoring_status: int = MonitoringStatus.RUNNING_OR_ARCHIVING
    smt: int = 1
    state: JobState = JobState.RUNNING
    duration: int = 0
    meta_data: Optional[str] = None
    statistics: Dict[str, JobStatistics] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobMeta":
        """Build from a camelCase job-meta document (see validate_job_meta)."""
        meta_data = data.get("metaData")
        if isinstance(meta_data, dict):
            meta_data = json.dumps(meta_data)

        return cls(
            job_id=data["jobId"],
            user=data["user"],
            project=data["project"],
            cluster=data["cluster"],
            start_time=data["startTime"],
            num_nodes=data["numNodes"],
            resources=[
                Resource(
                    hostname=r["hostname"],
                    hwthreads=r.get("hwthreads"),
                    accelerators=r.get("accelerators"),
                    configuration=r.get("configuration"),
                )
                for r in data["resources"]
            ],
            partition=data.get("partition"),
            array_job_id=data.get("arrayJobId"),
            num_hwthreads=data.get("numHwthreads"),
            num_acc=data.get("numAcc"),
            exclusive=data.get("exclusive", 1),
            monitoring_status=data.get("monitoringStatus", MonitoringStatus.RUNNING_OR_ARCHIVING),
            smt=data.get("smt", 1),
            state=JobState(data["jobState"]),
            duration=data.get("duration", 0),
            meta_data=meta_data,
            statistics={
                name: JobStatistics(
                    avg=s["avg"], min=s["min"], max=s["max"], unit=s.get("unit")
                )
                for name, s in (data.get("statistics") or {}).items()
            },
        )


@dataclass
class Job:
    """Job as read back from the store."""

    id: int
    job_id: int
    user: str
    project: str
    cluster: str
    start_time_unix: int
    start_time: Optional[datetime]
    partition: Optional[str]
    array_job_id: Optional[int]
    num_nodes: int
    num_hwthreads: Optional[int]
    num_acc: Optional[int]
    exclusive: int
    monitoring_status: int
    smt: int
    state: JobState
    duration: int
    resources: List[Resource] = field(default_factory=list)
    raw_resources: Optional[bytes] = None
    meta_data: Optional[str] = None


REQUIRED_STR_FIELDS = ["user", "project", "cluster"]
REQUIRED_INT_FIELDS = ["jobId", "startTime", "numNodes"]
OPTIONAL_STR_FIELDS = ["partition"]
OPTIONAL_INT_FIELDS = [
    "arrayJobId",
    "numHwthreads",
    "numAcc",
    "exclusive",
    "monitoringStatus",
    "smt",
    "duration",
]


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _resource_errors(resources: Any) -> List[str]:
    if not isinstance(resources, list) or not resources:
        return ["Field 'resources' must be a non-empty list"]

    errors: List[str] = []
    for i, r in enumerate(resources):
        if not isinstance(r, dict):
            errors.append(f"Resource {i} must be an object")
            continue
        if not _is_non_empty_str(r.get("hostname")):
            errors.append(f"Resource {i} is missing a hostname")
        hwthreads = r.get("hwthreads")
        if hwthreads is not None and not (
            isinstance(hwthreads, list) and all(_is_int(t) for t in hwthreads)
        ):
            errors.append(f"Resource {i}: 'hwthreads' must be a list of integers")
        accelerators = r.get("accelerators")
        if accelerators is not None and not (
            isinstance(accelerators, list) and all(isinstance(a, str) for a in accelerators)
        ):
            errors.append(f"Resource {i}: 'accelerators' must be a list of strings")
        configuration = r.get("configuration")
        if configuration is not None and not isinstance(configuration, str):
            errors.append(f"Resource {i}: 'configuration' must be a string")
    return errors


def validate_job_meta(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    errors: List[str] = []

    for f in REQUIRED_STR_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    for f in REQUIRED_INT_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_int(data[f]):
            errors.append(f"Field '{f}' must be an integer")

    for f in OPTIONAL_STR_FIELDS:
        if data.get(f) is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    for f in OPTIONAL_INT_FIELDS:
        if data.get(f) is not None and not _is_int(data[f]):
            errors.append(f"Field '{f}' must be an integer if provided")

    state = data.get("jobState")
    if state is None:
        errors.append("Missing required field: jobState")
    elif state not in {s.value for s in JobState}:
        errors.append(f"Field 'jobState' has unknown value: {state!r}")

    if "resources" not in data:
        errors.append("Missing required field: resources")
    else:
        errors.extend(_resource_errors(data["resources"]))

    meta_data = data.get("metaData")
    if meta_data is not None and not isinstance(meta_data, (str, dict)):
        errors.append("Field 'metaData' must be an object or string if provided")

    statistics = data.get("statistics")
    if statistics is not None:
        if not isinstance(statistics, dict):
            errors.append("Field 'statistics' must be an object if provided")
        else:
            for name, stats in statistics.items():
                if not isinstance(stats, dict) or not all(
                    _is_number(stats.get(k)) for k in ("avg", "min", "max")
                ):
                    errors.append(f"Statistics for '{name}' need numeric avg, min and max")

    return errors
