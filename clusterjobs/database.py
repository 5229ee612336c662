"""
Database schema and connection management.

The ``job`` table layout, including the statistic column names, is shared
with existing job databases and must not change.
"""

from pathlib import Path

from sqlalchemy import (
    BigInteger,
    Column,
    Float,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class JobRecord(Base):
    """One observed execution of a batch job."""

    __tablename__ = "job"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(BigInteger, nullable=False)  # scheduler id, unique only with cluster+start_time
    cluster = Column(String(255), nullable=False)
    partition = Column(String(255))
    array_job_id = Column(BigInteger)
    user = Column(String(255), nullable=False)
    project = Column(String(255), nullable=False)
    start_time = Column(BigInteger, nullable=False)  # epoch seconds
    duration = Column(Integer, nullable=False, default=0)
    job_state = Column(String(255), nullable=False)
    meta_data = Column(Text)
    resources = Column(Text, nullable=False)  # JSON list of resources
    num_nodes = Column(Integer, nullable=False)
    num_hwthreads = Column(Integer)
    num_acc = Column(Integer)
    smt = Column(SmallInteger, nullable=False, default=1)
    exclusive = Column(SmallInteger, nullable=False, default=1)
    monitoring_status = Column(SmallInteger, nullable=False, default=1)

    # Written by archive only
    mem_used_max = Column(Float)
    flops_any_avg = Column(Float)
    mem_bw_avg = Column(Float)
    load_avg = Column(Float)
    net_bw_avg = Column(Float)
    file_bw_avg = Column(Float)

    __table_args__ = (
        UniqueConstraint("job_id", "cluster", "start_time", name="uq_job_id_cluster_start_time"),
    )

    def __repr__(self):
        return f"<JobRecord(id={self.id}, job_id={self.job_id}, cluster='{self.cluster}')>"


job_table = JobRecord.__table__


def get_engine(db_url: str) -> Engine:
    """
    Create an engine for the given database URL.

    Args:
        db_url: SQLAlchemy URL, e.g. ``sqlite:///var/job.db``

    Returns:
        SQLAlchemy engine
    """
    return create_engine(db_url)


def init_database(db_url: str) -> Engine:
    """
    Create the job table if it is missing and return an engine.

    For file-backed SQLite the parent directory is created as well.

    Args:
        db_url: SQLAlchemy URL

    Returns:
        SQLAlchemy engine bound to the initialized database
    """
    url = make_url(db_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = get_engine(db_url)
    Base.metadata.create_all(engine)
    return engine
