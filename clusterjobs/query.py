"""
Statement builders for the job table.

Every builder returns an SQLAlchemy construct with all values as bound
parameters. The grouped-count builder is the only place a caller-chosen
name becomes a column reference, and only after ``check_aggregate``.
"""

import enum
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import Insert, Select, Update, func, insert, select, update

from .auth import User
from .codec import encode_resources
from .database import job_table
from .errors import InvalidAggregateError
from .filters import JobFilter, build_where_clause, security_check
from .schema import JobMeta, JobState, JobStatistics

_c = job_table.c

# Order matters: codec.decode_job unpacks rows positionally.
JOB_COLUMNS = [
    _c.id, _c.job_id, _c.user, _c.project, _c.cluster, _c.start_time, _c.partition, _c.array_job_id,
    _c.num_nodes, _c.num_hwthreads, _c.num_acc, _c.exclusive, _c.monitoring_status, _c.smt, _c.job_state,
    _c.duration, _c.resources, _c.meta_data,
]

# metric name -> (statistic column, JobStatistics attribute)
ARCHIVE_COLUMNS: Dict[str, Tuple[str, str]] = {
    "flops_any": ("flops_any_avg", "avg"),
    "mem_used": ("mem_used_max", "max"),
    "mem_bw": ("mem_bw_avg", "avg"),
    "load": ("load_avg", "avg"),
    "net_bw": ("net_bw_avg", "avg"),
    "file_bw": ("file_bw_avg", "avg"),
}


class Aggregate(str, enum.Enum):
    """Columns jobs may be grouped by."""

    USER = "user"
    PROJECT = "project"
    CLUSTER = "cluster"


def check_aggregate(value) -> Aggregate:
    """Return ``value`` as an ``Aggregate`` or raise InvalidAggregateError."""
    if isinstance(value, Aggregate):
        return value
    if isinstance(value, str):
        try:
            return Aggregate(value)
        except ValueError:
            pass
    raise InvalidAggregateError(value)


def select_jobs() -> Select:
    return select(*JOB_COLUMNS).select_from(job_table)


def find_query(job_id: int, cluster: Optional[str] = None, start_time: Optional[int] = None) -> Select:
    q = select_jobs().where(_c.job_id == job_id)
    if cluster is not None:
        q = q.where(_c.cluster == cluster)
    if start_time is not None:
        q = q.where(_c.start_time == start_time)
    return q


def find_by_id_query(id_: int) -> Select:
    return select_jobs().where(_c.id == id_)


def insert_query(meta: JobMeta) -> Insert:
    """INSERT for a new job. Statistic columns are left unset."""
    return insert(job_table).values(
        job_id=meta.job_id,
        user=meta.user,
        project=meta.project,
        cluster=meta.cluster,
        partition=meta.partition,
        array_job_id=meta.array_job_id,
        num_nodes=meta.num_nodes,
        num_hwthreads=meta.num_hwthreads,
        num_acc=meta.num_acc,
        exclusive=meta.exclusive,
        monitoring_status=int(meta.monitoring_status),
        smt=meta.smt,
        job_state=JobState(meta.state).value,
        start_time=meta.start_time,
        duration=meta.duration,
        resources=encode_resources(meta.resources),
        meta_data=meta.meta_data,
    )


def update_query(id_: int, **values) -> Update:
    return update(job_table).where(_c.id == id_).values(**values)


def archive_query(
    id_: int,
    monitoring_status: int,
    metric_stats: Dict[str, JobStatistics],
) -> Tuple[Update, List[str]]:
    """
    UPDATE for archiving a job.

    Returns:
        The statement and the metric names that have no statistic column
    """
    values = {"monitoring_status": int(monitoring_status)}
    ignored = []
    for metric, stats in metric_stats.items():
        target = ARCHIVE_COLUMNS.get(metric)
        if target is None:
            ignored.append(metric)
            continue
        column, attr = target
        values[column] = getattr(stats, attr)
    return update_query(id_, **values), ignored


def search_job_query(job_id: int, user: Optional[User]) -> Select:
    """Surrogate id of a job by scheduler id; non-admins see only their own."""
    q = select(_c.id).where(_c.job_id == job_id)
    if user is not None and not user.is_admin:
        q = q.where(_c.user == user.username)
    return q


def search_user_query(username: str) -> Select:
    return select(_c.user).distinct().where(_c.user == username)


def grouped_count_query(
    aggregate,
    filters: Iterable[JobFilter] = (),
    limit: Optional[int] = None,
    user: Optional[User] = None,
) -> Select:
    """
    Count jobs per value of ``aggregate``, largest groups first.

    Scoping is applied before filters, then grouping, then the limit.

    Raises:
        InvalidAggregateError: ``aggregate`` is not an allowed column
    """
    column = job_table.c[check_aggregate(aggregate).value]
    if limit is not None and limit < 0:
        raise ValueError(f"limit must not be negative: {limit}")

    count = func.count().label("count")
    q = select(column, count).select_from(job_table)
    q = security_check(q, user)
    for f in filters:
        q = build_where_clause(q, f)
    q = q.group_by(column).order_by(count.desc(), column)
    if limit is not None:
        q = q.limit(limit)
    return q
