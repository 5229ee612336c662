"""
Job filter model and the two query transforms the repository consumes.

``security_check`` restricts a SELECT to the rows a caller may see,
``build_where_clause`` narrows it by one ``JobFilter``. Both return a new
statement and leave their input untouched. Filter values are always bound
parameters.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Select, String, cast

from .auth import ROLE_ADMIN, ROLE_API, User
from .database import job_table
from .schema import JobState


@dataclass
class StringInput:
    eq: Optional[str] = None
    contains: Optional[str] = None
    starts_with: Optional[str] = None
    ends_with: Optional[str] = None


@dataclass
class IntRange:
    from_: int
    to: int


@dataclass
class FloatRange:
    from_: float
    to: float


@dataclass
class TimeRange:
    from_: Optional[datetime] = None
    to: Optional[datetime] = None


@dataclass
class JobFilter:
    job_id: Optional[StringInput] = None
    array_job_id: Optional[int] = None
    user: Optional[StringInput] = None
    project: Optional[StringInput] = None
    cluster: Optional[StringInput] = None
    partition: Optional[StringInput] = None
    duration: Optional[IntRange] = None
    num_nodes: Optional[IntRange] = None
    num_hwthreads: Optional[IntRange] = None
    num_accelerators: Optional[IntRange] = None
    start_time: Optional[TimeRange] = None
    state: Optional[List[JobState]] = None
    exclusive: Optional[int] = None
    flops_any_avg: Optional[FloatRange] = None
    mem_bw_avg: Optional[FloatRange] = None
    load_avg: Optional[FloatRange] = None
    mem_used_max: Optional[FloatRange] = None


def security_check(query: Select, user: Optional[User]) -> Select:
    """Limit ``query`` to the caller's own jobs unless they are admin or api."""
    if user is None or user.has_role(ROLE_ADMIN) or user.has_role(ROLE_API):
        return query
    return query.where(job_table.c.user == user.username)


def _string_condition(query: Select, column, cond: StringInput) -> Select:
    if cond.eq is not None:
        query = query.where(column == cond.eq)
    if cond.starts_with is not None:
        query = query.where(column.startswith(cond.starts_with, autoescape=True))
    if cond.contains is not None:
        query = query.where(column.contains(cond.contains, autoescape=True))
    if cond.ends_with is not None:
        query = query.where(column.endswith(cond.ends_with, autoescape=True))
    return query


def _range_condition(query: Select, column, cond) -> Select:
    return query.where(column.between(cond.from_, cond.to))


def _time_condition(query: Select, column, cond: TimeRange) -> Select:
    if cond.from_ is not None:
        query = query.where(column >= int(cond.from_.timestamp()))
    if cond.to is not None:
        query = query.where(column <= int(cond.to.timestamp()))
    return query


def build_where_clause(query: Select, job_filter: JobFilter) -> Select:
    """Add the conditions of ``job_filter`` to ``query`` (AND-ed)."""
    c = job_table.c
    f = job_filter

    if f.job_id is not None:
        query = _string_condition(query, cast(c.job_id, String), f.job_id)
    if f.array_job_id is not None:
        query = query.where(c.array_job_id == f.array_job_id)
    if f.user is not None:
        query = _string_condition(query, c.user, f.user)
    if f.project is not None:
        query = _string_condition(query, c.project, f.project)
    if f.cluster is not None:
        query = _string_condition(query, c.cluster, f.cluster)
    if f.partition is not None:
        query = _string_condition(query, c.partition, f.partition)
    if f.start_time is not None:
        query = _time_condition(query, c.start_time, f.start_time)
    if f.state:
        query = query.where(c.job_state.in_([JobState(s).value for s in f.state]))
    if f.exclusive is not None:
        query = query.where(c.exclusive == f.exclusive)

    ranges = [
        (f.duration, c.duration),
        (f.num_nodes, c.num_nodes),
        (f.num_hwthreads, c.num_hwthreads),
        (f.num_accelerators, c.num_acc),
        (f.flops_any_avg, c.flops_any_avg),
        (f.mem_bw_avg, c.mem_bw_avg),
        (f.load_avg, c.load_avg),
        (f.mem_used_max, c.mem_used_max),
    ]
    for cond, column in ranges:
        if cond is not None:
            query = _range_condition(query, column, cond)

    return query
