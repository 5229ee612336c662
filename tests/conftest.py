"""
Pytest configuration and shared fixtures.
"""

import pytest
from sqlalchemy import event

from clusterjobs.database import init_database
from clusterjobs.logger import StructuredLogger
from clusterjobs.repository import JobRepository
from clusterjobs.schema import JobMeta, JobState, Resource

NOW = 1_700_000_000


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database with the job table."""
    engine = init_database(f"sqlite:///{tmp_path / 'job.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def quiet_logger():
    """Logger with no output handlers; metrics are still tracked."""
    return StructuredLogger(name="clusterjobs.test", level="DEBUG", enable_console=False)


@pytest.fixture
def repo(engine, quiet_logger) -> JobRepository:
    """Repository with a fixed clock at NOW."""
    return JobRepository(engine, clock=lambda: NOW, logger=quiet_logger)


@pytest.fixture
def statements(engine):
    """List collecting the SQL text of every statement sent to the database."""
    seen = []

    def record(conn, cursor, statement, parameters, context, executemany):
        seen.append(statement)

    event.listen(engine, "before_cursor_execute", record)
    yield seen
    event.remove(engine, "before_cursor_execute", record)


@pytest.fixture
def make_meta():
    """Factory for JobMeta with sensible defaults."""

    def factory(**overrides) -> JobMeta:
        values = dict(
            job_id=1001,
            user="alice",
            project="climate",
            cluster="fritz",
            start_time=NOW - 3600,
            num_nodes=2,
            resources=[
                Resource(hostname="f0101", hwthreads=[0, 1, 2, 3]),
                Resource(hostname="f0102", hwthreads=[0, 1, 2, 3], accelerators=["gpu0"]),
            ],
            partition="main",
            array_job_id=None,
            num_hwthreads=8,
            num_acc=1,
            exclusive=1,
            monitoring_status=1,
            smt=1,
            state=JobState.RUNNING,
            duration=0,
            meta_data='{"jobName": "simulate"}',
        )
        values.update(overrides)
        return JobMeta(**values)

    return factory


@pytest.fixture
def valid_job_document():
    """Valid camelCase job-meta document."""
    return {
        "jobId": 4242,
        "user": "bob",
        "project": "astro",
        "cluster": "alex",
        "partition": "gpu",
        "startTime": NOW - 7200,
        "duration": 3600,
        "numNodes": 1,
        "numHwthreads": 16,
        "numAcc": 2,
        "exclusive": 1,
        "smt": 1,
        "monitoringStatus": 1,
        "jobState": "completed",
        "resources": [{"hostname": "a0601", "accelerators": ["gpu0", "gpu1"]}],
        "metaData": {"jobName": "train"},
        "statistics": {
            "flops_any": {"avg": 120.5, "min": 10.0, "max": 300.0, "unit": "GF/s"},
            "mem_used": {"avg": 20.0, "min": 1.0, "max": 64.0, "unit": "GB"},
            "ib_bw": {"avg": 1.0, "min": 0.0, "max": 2.0},
        },
    }


@pytest.fixture
def now() -> int:
    """Epoch seconds the repository clock reports."""
    return NOW
