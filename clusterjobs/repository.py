"""
Job repository: lifecycle updates and lookups for the job table.

Every public operation issues exactly one SQL statement. Store errors are
logged and re-raised unchanged; nothing is retried.
"""

import re
import time
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional

from sqlalchemy.engine import Engine, Row

from .auth import User
from .codec import decode_job
from .errors import InvalidTransitionError, NotFoundError, StoreError
from .filters import JobFilter
from .logger import StructuredLogger, get_logger
from .query import (
    archive_query,
    find_by_id_query,
    find_query,
    grouped_count_query,
    insert_query,
    search_job_query,
    search_user_query,
    update_query,
)
from .schema import Job, JobMeta, JobState, JobStatistics
from .stmtcache import StatementCache

NO_SUCH_JOB_OR_USER = "no such job or user"

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1


class SearchHit(NamedTuple):
    """Result of find_job_or_user: exactly one field is set."""

    job_id: Optional[int] = None
    username: Optional[str] = None


def _parse_job_id(term: str) -> Optional[int]:
    if not _INT_RE.fullmatch(term):
        return None
    value = int(term)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


class JobRepository:
    """
    Persistence for job rows.

    Safe to share between threads: the only shared state is the
    statement cache, which locks internally.
    """

    def __init__(
        self,
        engine: Engine,
        stmt_cache: Optional[StatementCache] = None,
        clock: Optional[Callable[[], float]] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.engine = engine
        self.stmt_cache = stmt_cache or StatementCache(engine)
        self._clock = clock or time.time
        self.logger = logger or get_logger()

    def _run(self, operation: str, execute: Callable, stmt):
        self.logger.record_statement(operation)
        try:
            return execute(stmt)
        except StoreError as e:
            self.logger.record_failure(operation, type(e).__name__)
            self.logger.error(f"{operation} failed", error=str(e))
            raise

    def _query_uncached(self, stmt) -> List[Row]:
        with self.engine.connect() as conn:
            return conn.execute(stmt).all()

    def _decode(self, row: Optional[Row], what: str) -> Job:
        if row is None:
            raise NotFoundError(f"no job with {what}")
        return decode_job(row, now=self._clock)

    # Lookups

    def find(
        self,
        job_id: int,
        cluster: Optional[str] = None,
        start_time: Optional[int] = None,
    ) -> Job:
        """
        Find a job by scheduler job id.

        The scheduler id alone is not unique; pass ``cluster`` and
        ``start_time`` (epoch seconds) to pin down a single execution.
        When several rows match, one of them is returned.

        Raises:
            NotFoundError: no matching job
            DecodeError: the stored row is corrupt
        """
        row = self._run("find", self.stmt_cache.query_row, find_query(job_id, cluster, start_time))
        return self._decode(row, f"job_id={job_id} cluster={cluster} start_time={start_time}")

    def find_by_id(self, id_: int) -> Job:
        """
        Find a job by its database id.

        Raises:
            NotFoundError: no job with that id
            DecodeError: the stored row is corrupt
        """
        row = self._run("find_by_id", self.stmt_cache.query_row, find_by_id_query(id_))
        return self._decode(row, f"id={id_}")

    def count_grouped_jobs(
        self,
        aggregate,
        filters: Optional[Iterable[JobFilter]] = None,
        limit: Optional[int] = None,
        user: Optional[User] = None,
    ) -> Dict[str, int]:
        """
        Count the jobs visible to ``user`` per user, project or cluster.

        Returns:
            Mapping of group value to job count, largest first, at most
            ``limit`` entries

        Raises:
            InvalidAggregateError: ``aggregate`` is not an allowed column
        """
        stmt = grouped_count_query(aggregate, filters or (), limit, user)
        # Filter combinations are caller-driven, keep them out of the statement cache
        rows = self._run("count_grouped_jobs", self._query_uncached, stmt)
        return {str(group): count for group, count in rows}

    def find_job_or_user(self, search_term: str, user: Optional[User] = None) -> SearchHit:
        """
        Resolve a search term to a job or a username.

        A numeric term is looked up as a scheduler job id, restricted to
        the caller's own jobs unless the caller is an admin. Otherwise, and
        only for admins or internal calls (``user`` is None), the term is
        matched against usernames.

        Raises:
            NotFoundError: nothing matched, or the caller may not see it
        """
        job_id = _parse_job_id(search_term)
        if job_id is not None:
            row = self._run(
                "find_job_or_user", self.stmt_cache.query_row, search_job_query(job_id, user)
            )
            if row is not None:
                return SearchHit(job_id=row[0])

        if user is None or user.is_admin:
            row = self._run(
                "find_job_or_user", self.stmt_cache.query_row, search_user_query(search_term)
            )
            if row is not None:
                return SearchHit(username=row[0])

        raise NotFoundError(NO_SUCH_JOB_OR_USER)

    # Lifecycle

    def start(self, meta: JobMeta) -> int:
        """
        Insert a new job and return its database id.

        Statistics in ``meta`` are not stored; use archive() for that.
        """
        result = self._run("start", self.stmt_cache.exec, insert_query(meta))
        self.logger.debug(
            "Job started", id=result.lastrowid, job_id=meta.job_id, cluster=meta.cluster
        )
        return result.lastrowid

    def update_monitoring_status(self, id_: int, monitoring_status: int) -> int:
        """Set the monitoring status. Returns the number of rows updated."""
        stmt = update_query(id_, monitoring_status=int(monitoring_status))
        return self._run("update_monitoring_status", self.stmt_cache.exec, stmt).rowcount

    def stop(self, id_: int, duration: int, state, monitoring_status: int) -> int:
        """
        Record the end of a job. Returns the number of rows updated.

        Raises:
            InvalidTransitionError: ``state`` is not a terminal job state
        """
        try:
            state = JobState(state)
        except ValueError as e:
            raise InvalidTransitionError(f"unknown job state: {state!r}") from e
        if not state.is_terminal:
            raise InvalidTransitionError(f"cannot stop job {id_} into state {state.value!r}")

        stmt = update_query(
            id_,
            job_state=state.value,
            duration=duration,
            monitoring_status=int(monitoring_status),
        )
        return self._run("stop", self.stmt_cache.exec, stmt).rowcount

    def archive(
        self,
        id_: int,
        monitoring_status: int,
        metric_stats: Dict[str, JobStatistics],
    ) -> int:
        """
        Store the monitoring status and metric summaries of a finished job.

        Metrics without a summary column are skipped. Returns the number
        of rows updated.
        """
        stmt, ignored = archive_query(id_, monitoring_status, metric_stats)
        if ignored:
            self.logger.debug("Metrics without summary column skipped", id=id_, metrics=sorted(ignored))
        return self._run("archive", self.stmt_cache.exec, stmt).rowcount
