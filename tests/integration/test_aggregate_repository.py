"""
Integration tests for the SQLite nightly aggregate repository.
"""

from datetime import date

import pytest

from sqlalchemy.exc import IntegrityError

from pneumaflow.database import AggregateRepository, Database
from pneumaflow.database.models import NightlyAggregate
from pneumaflow.models.aggregate import NightlyAggregateRecord


def _record(day: date, session_id: str, **overrides) -> NightlyAggregateRecord:
    values = {
        "date": day,
        "session_id": session_id,
        "sample_rate_hz": 25.0,
        "sample_count": 1_500,
        "total_usage_minutes": 1.0,
        "mask_on_minutes": 1.0,
        "ahi": 2.0,
        "quality_score": 100,
        "parquet_path": f"/data/{session_id}",
    }
    values.update(overrides)
    return NightlyAggregateRecord(**values)


class TestUpsert:
    def test_insert_new_date(self, repository):
        replaced = repository.upsert(_record(date(2024, 1, 15), "2024-01-15-aaaaaaaa"))

        assert replaced is None
        row = repository.get_by_date(date(2024, 1, 15))
        assert row.session_id == "2024-01-15-aaaaaaaa"
        assert row.ahi == 2.0

    def test_replace_same_date(self, repository):
        repository.upsert(_record(date(2024, 1, 15), "2024-01-15-aaaaaaaa"))
        replaced = repository.upsert(
            _record(date(2024, 1, 15), "2024-01-15-bbbbbbbb", ahi=7.5, quality_score=85)
        )

        assert replaced == "2024-01-15-aaaaaaaa"
        rows = repository.list_range()
        assert len(rows) == 1
        assert rows[0].session_id == "2024-01-15-bbbbbbbb"
        assert rows[0].ahi == 7.5
        assert rows[0].quality_score == 85
        assert repository.get_by_session_id("2024-01-15-aaaaaaaa") is None

    def test_same_session_is_not_reported_as_replaced(self, repository):
        record = _record(date(2024, 1, 15), "2024-01-15-aaaaaaaa")
        repository.upsert(record)
        assert repository.upsert(record) is None


class TestQueries:
    @pytest.fixture
    def populated(self, repository):
        for day in range(15, 20):
            repository.upsert(
                _record(date(2024, 1, day), f"2024-01-{day}-aaaaaaaa")
            )
        return repository

    def test_list_range_inclusive(self, populated):
        rows = populated.list_range(date(2024, 1, 16), date(2024, 1, 18))
        assert [r.date for r in rows] == [
            date(2024, 1, 16),
            date(2024, 1, 17),
            date(2024, 1, 18),
        ]

    def test_list_range_open_ended(self, populated):
        assert len(populated.list_range(start=date(2024, 1, 18))) == 2
        assert len(populated.list_range(end=date(2024, 1, 15))) == 1

    def test_data_bounds(self, populated):
        bounds = populated.data_bounds()
        assert bounds.min_date == date(2024, 1, 15)
        assert bounds.max_date == date(2024, 1, 19)
        assert bounds.total_nights == 5

    def test_data_bounds_empty(self, repository):
        assert repository.data_bounds() is None

    def test_rows_usable_after_session_closes(self, populated):
        row = populated.get_by_session_id("2024-01-17-aaaaaaaa")
        record = NightlyAggregateRecord.model_validate(row, from_attributes=True)
        assert record.date == date(2024, 1, 17)


class TestConstraints:
    def test_usage_check_constraint(self, database):
        with pytest.raises(IntegrityError):
            with database.session_scope() as session:
                session.add(
                    NightlyAggregate(
                        date=date(2024, 1, 15),
                        session_id="2024-01-15-aaaaaaaa",
                        sample_rate_hz=25.0,
                        total_usage_minutes=1.0,
                        mask_on_minutes=5.0,
                        quality_score=50,
                    )
                )

    def test_unique_date(self, database):
        with pytest.raises(IntegrityError):
            with database.session_scope() as session:
                for suffix in ("aaaaaaaa", "bbbbbbbb"):
                    session.add(
                        NightlyAggregate(
                            date=date(2024, 1, 15),
                            session_id=f"2024-01-15-{suffix}",
                            sample_rate_hz=25.0,
                            quality_score=50,
                        )
                    )


class TestDatabaseLifecycle:
    def test_session_requires_open(self, temp_db):
        database = Database(str(temp_db))
        with pytest.raises(RuntimeError):
            database.get_session()

    def test_reopen_preserves_data(self, temp_db):
        with Database(str(temp_db)) as database:
            AggregateRepository(database).upsert(
                _record(date(2024, 1, 15), "2024-01-15-aaaaaaaa")
            )

        with Database(str(temp_db)) as database:
            assert AggregateRepository(database).data_bounds().total_nights == 1

    def test_invalid_path(self):
        with pytest.raises(ValueError):
            Database("")
