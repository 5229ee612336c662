"""
Tests for database.py - table setup and constraints.
"""

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clusterjobs.database import JobRecord, init_database


class TestDatabaseInit:
    """Test database initialization."""

    def test_init_creates_database_file(self, tmp_path):
        db_path = tmp_path / "job.db"
        assert not db_path.exists()

        init_database(f"sqlite:///{db_path}")

        assert db_path.exists()

    def test_init_creates_parent_directories(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "job.db"
        init_database(f"sqlite:///{db_path}")
        assert db_path.exists()

    def test_init_is_idempotent(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'job.db'}"
        init_database(url)
        init_database(url)

    def test_job_table_columns(self, engine):
        """Column names are part of the on-disk contract."""
        columns = {c["name"] for c in inspect(engine).get_columns("job")}
        assert columns == {
            "id", "job_id", "cluster", "partition", "array_job_id", "user", "project",
            "start_time", "duration", "job_state", "meta_data", "resources", "num_nodes",
            "num_hwthreads", "num_acc", "smt", "exclusive", "monitoring_status",
            "mem_used_max", "flops_any_avg", "mem_bw_avg", "load_avg", "net_bw_avg", "file_bw_avg",
        }

    def test_in_memory_database(self):
        engine = init_database("sqlite://")
        assert "job" in inspect(engine).get_table_names()


class TestConstraints:
    """Test table constraints."""

    @pytest.fixture
    def session(self, engine):
        with Session(engine) as session:
            yield session

    def make_record(self, **overrides):
        values = dict(
            job_id=1, cluster="fritz", user="alice", project="p", start_time=100,
            job_state="running", resources="[]", num_nodes=1,
        )
        values.update(overrides)
        return JobRecord(**values)

    def test_defaults_applied(self, session):
        record = self.make_record()
        session.add(record)
        session.commit()

        assert record.id is not None
        assert (record.duration, record.smt, record.exclusive, record.monitoring_status) == (0, 1, 1, 1)
        assert record.flops_any_avg is None

    def test_duplicate_job_fails(self, session):
        session.add(self.make_record())
        session.commit()

        session.add(self.make_record(user="bob"))
        with pytest.raises(IntegrityError):
            session.commit()

    def test_missing_required_fields_fail(self, session):
        session.add(JobRecord(job_id=2))
        with pytest.raises(IntegrityError):
            session.commit()
