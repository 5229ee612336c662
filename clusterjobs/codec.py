"""
Conversion between stored job rows and ``Job`` entities.

Rows must carry the columns of ``query.JOB_COLUMNS`` in that order.
"""

import json
import time
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Union

from .errors import DecodeError
from .schema import Job, JobState, Resource


def _check_resource(r: Resource):
    if not isinstance(r.hostname, str):
        raise ValueError("resource hostname must be a string")
    if r.hwthreads is not None and not (
        isinstance(r.hwthreads, list)
        and all(isinstance(t, int) and not isinstance(t, bool) for t in r.hwthreads)
    ):
        raise ValueError("resource field 'hwthreads' must be a list of integers")
    if r.accelerators is not None and not (
        isinstance(r.accelerators, list) and all(isinstance(a, str) for a in r.accelerators)
    ):
        raise ValueError("resource field 'accelerators' must be a list of strings")
    if r.configuration is not None and not isinstance(r.configuration, str):
        raise ValueError("resource field 'configuration' must be a string")


def encode_resources(resources: List[Resource]) -> str:
    """
    Serialize resources to the stored JSON text, omitting empty optionals.

    Raises:
        ValueError: a resource has a shape ``decode_resources`` would reject
    """
    out = []
    for r in resources:
        _check_resource(r)
        item = {"hostname": r.hostname}
        if r.hwthreads:
            item["hwthreads"] = list(r.hwthreads)
        if r.accelerators:
            item["accelerators"] = list(r.accelerators)
        if r.configuration:
            item["configuration"] = r.configuration
        out.append(item)
    return json.dumps(out)


def _int_list(value: Any, key: str) -> Optional[List[int]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(
        isinstance(v, int) and not isinstance(v, bool) for v in value
    ):
        raise DecodeError(f"resource field '{key}' must be a list of integers")
    return value


def _str_list(value: Any, key: str) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise DecodeError(f"resource field '{key}' must be a list of strings")
    return value


def decode_resources(raw: Union[str, bytes, None]) -> List[Resource]:
    """
    Parse stored resource JSON into ``Resource`` records.

    Raises:
        DecodeError: text is missing, not JSON, or not a list of
            objects with a string ``hostname``
    """
    if raw is None:
        raise DecodeError("job has no resources")
    try:
        data = json.loads(raw)
    except (ValueError, TypeError) as e:
        raise DecodeError(f"invalid resources JSON: {e}") from e

    if data is None:
        return []
    if not isinstance(data, list):
        raise DecodeError("resources must be a JSON list")

    resources = []
    for item in data:
        if not isinstance(item, dict) or not isinstance(item.get("hostname"), str):
            raise DecodeError("each resource must be an object with a hostname")
        configuration = item.get("configuration")
        if configuration is not None and not isinstance(configuration, str):
            raise DecodeError("resource field 'configuration' must be a string")
        resources.append(
            Resource(
                hostname=item["hostname"],
                hwthreads=_int_list(item.get("hwthreads"), "hwthreads"),
                accelerators=_str_list(item.get("accelerators"), "accelerators"),
                configuration=configuration,
            )
        )
    return resources


def decode_job(row: Sequence[Any], now: Optional[Callable[[], float]] = None) -> Job:
    """
    Build a ``Job`` from a row of ``JOB_COLUMNS``.

    A running job whose stored duration is 0 gets the elapsed time since
    its start as duration. The raw resource text is not kept on the job.

    Args:
        row: Row in ``JOB_COLUMNS`` order
        now: Clock returning epoch seconds (default: time.time)

    Raises:
        DecodeError: if the resources column cannot be decoded
    """
    (
        id_, job_id, user, project, cluster, start_time, partition, array_job_id,
        num_nodes, num_hwthreads, num_acc, exclusive, monitoring_status, smt, state,
        duration, raw_resources, meta_data,
    ) = row

    try:
        state = JobState(state)
    except ValueError as e:
        raise DecodeError(f"unknown job state: {state!r}") from e

    job = Job(
        id=id_,
        job_id=job_id,
        user=user,
        project=project,
        cluster=cluster,
        start_time_unix=start_time,
        start_time=None,
        partition=partition,
        array_job_id=array_job_id,
        num_nodes=num_nodes,
        num_hwthreads=num_hwthreads,
        num_acc=num_acc,
        exclusive=exclusive,
        monitoring_status=monitoring_status,
        smt=smt,
        state=state,
        duration=duration,
        raw_resources=raw_resources.encode() if isinstance(raw_resources, str) else raw_resources,
        meta_data=meta_data,
    )
    job.resources = decode_resources(job.raw_resources)

    job.start_time = datetime.fromtimestamp(job.start_time_unix, tz=timezone.utc)
    if job.duration == 0 and job.state is JobState.RUNNING:
        clock = now or time.time
        job.duration = int(clock() - job.start_time_unix)

    job.raw_resources = None
    return job
