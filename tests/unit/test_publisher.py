"""
Unit tests for the publisher.
"""

from datetime import datetime, timezone

import pytest

from prompt_ingest.batch import Publisher
from prompt_ingest.categories import CategoryRegistry
from prompt_ingest.core.models import PromptRecord, StoredPrompt
from prompt_ingest.store import InMemoryPromptStore
from prompt_ingest.utils.validation import ValidationError


def _record(title: str, category: str = "Animals", status: str = "Published") -> PromptRecord:
    return PromptRecord(title=title, prompt=f"prompt for {title}", category=category, status=status)


def _published(category: str) -> StoredPrompt:
    return StoredPrompt(
        id=f"seed-{category}",
        title="seed",
        category=category,
        status="Published",
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.mark.unit
class TestPublisher:
    """Tests for Publisher"""

    async def test_results_follow_input_order(self, publisher):
        """Test one result per record, indexed by input position"""
        records = [_record(f"r{i}") for i in range(7)]

        summary = await publisher.publish(records, [f"row-{i}" for i in range(7)])

        assert [r.index for r in summary.results] == list(range(7))
        assert [r.row_id for r in summary.results] == [f"row-{i}" for i in range(7)]
        assert summary.succeeded == 7
        assert all(r.record_id for r in summary.results)

    async def test_concurrency_is_bounded_by_batch_size(self, meta_store):
        """Test no more than batch_size creates run at once"""
        store = InMemoryPromptStore(delay=0.01)
        publisher = Publisher(store, CategoryRegistry(source=store, meta_store=meta_store), batch_size=3)

        await publisher.publish([_record(f"r{i}") for i in range(10)])

        assert store.max_in_flight == 3
        assert store.create_calls == 10

    async def test_failures_are_isolated(self, publisher, prompt_store):
        """Test one rejected create does not affect the others"""
        prompt_store.reject_titles.add("r1")

        summary = await publisher.publish([_record("r0"), _record("r1"), _record("r2")])

        assert [r.success for r in summary.results] == [True, False, True]
        assert "duplicate key" in summary.results[1].error
        assert summary.message == "2 succeeded, 1 failed"

    async def test_empty_response_is_a_failure(self, publisher, prompt_store):
        """Test a create that returns nothing is reported as No data returned"""
        prompt_store.empty_titles.add("ghost")

        summary = await publisher.publish([_record("ghost")])

        assert summary.results[0].success is False
        assert summary.results[0].error == "No data returned"

    async def test_new_categories_get_metadata(self, prompt_store, meta_store):
        """Test categories missing from the catalogue get metadata once each"""
        prompt_store.records.append(_published("Animals"))
        publisher = Publisher(prompt_store, CategoryRegistry(source=prompt_store, meta_store=meta_store))

        summary = await publisher.publish([
            _record("a", "Animals"),
            _record("b", "Space"),
            _record("c", "Space"),
            _record("d", "Food"),
        ])

        assert summary.new_categories == ("Space", "Food")
        assert sorted(meta_store.upsert_calls) == ["Food", "Space"]

    async def test_metadata_failure_does_not_block_publish(self, prompt_store, meta_store):
        """Test a failed metadata write is logged and publishing continues"""
        meta_store.fail_for.add("Space")
        publisher = Publisher(prompt_store, CategoryRegistry(source=prompt_store, meta_store=meta_store))

        summary = await publisher.publish([_record("a", "Space")])

        assert summary.succeeded == 1
        assert "Space" not in meta_store.names

    async def test_registry_invalidated_once_on_success(self, prompt_store, meta_store):
        """Test the category cache is dropped after a successful publish"""
        registry = CategoryRegistry(source=prompt_store, meta_store=meta_store)
        prompt_store.records.append(_published("Animals"))
        await registry.list_categories()
        assert "categories" in registry.cached_keys

        await Publisher(prompt_store, registry).publish([_record("a"), _record("b")])

        assert registry.cached_keys == set()

    async def test_registry_kept_when_everything_fails(self, prompt_store, meta_store):
        """Test a fully failed publish leaves the cache alone"""
        registry = CategoryRegistry(source=prompt_store, meta_store=meta_store)
        prompt_store.records.append(_published("Animals"))
        prompt_store.reject_titles.add("a")

        await Publisher(prompt_store, registry).publish([_record("a")])

        assert "categories" in registry.cached_keys

    async def test_empty_input(self, publisher, prompt_store):
        """Test publishing nothing touches nothing"""
        summary = await publisher.publish([])

        assert summary.results == ()
        assert prompt_store.create_calls == 0

    async def test_row_ids_must_be_parallel(self, publisher):
        """Test mismatched row ids are rejected"""
        with pytest.raises(ValueError, match="parallel"):
            await publisher.publish([_record("a")], ["x", "y"])

    def test_batch_size_is_validated(self, prompt_store, registry):
        """Test batch sizes outside 1..100 are rejected"""
        with pytest.raises(ValidationError):
            Publisher(prompt_store, registry, batch_size=0)
