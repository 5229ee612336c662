"""
Tests for stmtcache.py - compiled statement reuse.
"""

from concurrent.futures import ThreadPoolExecutor

from sqlalchemy import select

from clusterjobs.database import job_table
from clusterjobs.query import find_by_id_query, find_query, insert_query, update_query
from clusterjobs.stmtcache import StatementCache


class TestMappingProtocol:
    """Test the mapping behaviour SQLAlchemy relies on."""

    def test_get_counts_hits_and_misses(self, engine):
        cache = StatementCache(engine)
        assert cache.get("shape") is None
        cache["shape"] = "compiled"
        assert cache.get("shape") == "compiled"
        assert cache.misses == 1
        assert cache.hits == 1

    def test_first_prepared_form_wins(self, engine):
        """A second store for the same shape should not replace the first."""
        cache = StatementCache(engine)
        cache["shape"] = "first"
        cache["shape"] = "second"
        assert cache["shape"] == "first"
        assert len(cache) == 1

    def test_clear(self, engine):
        cache = StatementCache(engine)
        cache["shape"] = "compiled"
        cache.get("shape")
        cache.clear()
        assert len(cache) == 0
        assert "shape" not in cache
        assert cache.hits == 0


class TestExecution:
    """Test running statements through the cache."""

    def test_exec_insert_returns_new_id(self, engine, make_meta):
        cache = StatementCache(engine)
        first = cache.exec(insert_query(make_meta(job_id=1)))
        second = cache.exec(insert_query(make_meta(job_id=2)))

        assert first.rowcount == 1
        assert second.lastrowid == first.lastrowid + 1

    def test_exec_update_returns_rowcount(self, engine, make_meta):
        cache = StatementCache(engine)
        id_ = cache.exec(insert_query(make_meta())).lastrowid

        assert cache.exec(update_query(id_, duration=5)).rowcount == 1
        assert cache.exec(update_query(id_ + 100, duration=5)).rowcount == 0

    def test_query_row_and_all(self, engine, make_meta):
        cache = StatementCache(engine)
        cache.exec(insert_query(make_meta(job_id=1)))
        cache.exec(insert_query(make_meta(job_id=2)))

        rows = cache.query_all(select(job_table.c.job_id).order_by(job_table.c.job_id))
        assert [r[0] for r in rows] == [1, 2]
        assert cache.query_row(find_query(3)) is None

    def test_same_shape_compiled_once(self, engine, make_meta):
        """Lookups differing only in values should share one cache entry."""
        cache = StatementCache(engine)
        a = cache.exec(insert_query(make_meta(job_id=1))).lastrowid
        b = cache.exec(insert_query(make_meta(job_id=2))).lastrowid
        size = len(cache)

        cache.query_row(find_by_id_query(a))
        assert len(cache) == size + 1
        hits = cache.hits

        cache.query_row(find_by_id_query(b))
        assert len(cache) == size + 1
        assert cache.hits == hits + 1

    def test_different_shapes_get_own_entries(self, engine):
        cache = StatementCache(engine)
        cache.query_row(find_query(1))
        cache.query_row(find_query(1, cluster="fritz"))
        cache.query_row(find_query(1, cluster="fritz", start_time=10))
        cache.query_row(find_query(2, cluster="alex"))

        assert len(cache) == 3
        assert all("FROM job" in sql for sql in cache.statements())

    def test_concurrent_lookups(self, engine, make_meta):
        """Many threads using one shape should all succeed and share one entry."""
        cache = StatementCache(engine)
        ids = [cache.exec(insert_query(make_meta(job_id=i))).lastrowid for i in range(10)]
        size = len(cache)

        def lookup(id_):
            return cache.query_row(find_by_id_query(id_))[0]

        with ThreadPoolExecutor(max_workers=8) as pool:
            found = list(pool.map(lookup, ids * 5))

        assert found == ids * 5
        assert len(cache) == size + 1
