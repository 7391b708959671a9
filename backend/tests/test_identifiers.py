from concurrent.futures import ThreadPoolExecutor

import pytest

from printshop.database import session_scope
from printshop.errors import SequenceExhausted, ValidationError
from printshop.models.sequence import SequenceCounter
from printshop.services.identifiers import allocate_identifier, format_identifier


class TestFormat:
    def test_zero_padded(self):
        assert format_identifier("INV", 2025, 1) == "INV20250001"
        assert format_identifier("PJ", 2025, 42) == "PJ20250042"

    def test_overflow(self):
        with pytest.raises(SequenceExhausted):
            format_identifier("INV", 2025, 10000)

    @pytest.mark.parametrize("kind,year", [("XX", 2025), ("INV", 25), ("INV", "2025")])
    def test_bad_input(self, kind, year):
        with pytest.raises(ValidationError):
            format_identifier(kind, year, 1)


class TestAllocate:
    def test_sequential_per_kind_and_year(self, engine):
        assert allocate_identifier(engine, "INV", 2025) == "INV20250001"
        assert allocate_identifier(engine, "INV", 2025) == "INV20250002"
        assert allocate_identifier(engine, "PJ", 2025) == "PJ20250001"
        assert allocate_identifier(engine, "INV", 2026) == "INV20260001"

    def test_concurrent_callers_get_distinct_numbers(self, engine):
        with ThreadPoolExecutor(max_workers=8) as pool:
            numbers = list(pool.map(lambda _: allocate_identifier(engine, "PJ", 2025), range(40)))
        assert len(set(numbers)) == 40
        assert sorted(numbers)[-1] == "PJ20250040"

    def test_exhausted(self, engine, session_factory):
        with session_scope(session_factory) as db:
            db.add(SequenceCounter(kind="INV", year=2025, value=9999))
        with pytest.raises(SequenceExhausted):
            allocate_identifier(engine, "INV", 2025)
        assert allocate_identifier(engine, "INV", 2024) == "INV20240001"
