"""
Unit tests for the batch orchestrator over in-memory stores.
"""

import asyncio
import json

import pytest

from prompt_ingest.batch import BatchOrchestrator, Publisher
from prompt_ingest.categories import CategoryRegistry
from prompt_ingest.core.errors import (
    DraftStoreError,
    FileRejectedError,
    NothingToPublishError,
    RowNotFoundError,
)
from prompt_ingest.core.models import DraftRow, RowState
from prompt_ingest.core.ratio import RatioInferrer
from prompt_ingest.core.rules import RuleConfigBuilder, RuleEngine
from prompt_ingest.store import InMemoryDraftStore, InMemoryPromptStore

from conftest import SlowDraftStore, StubImageLoader, make_image

WIDE = "https://img.example.com/wide.png"
TALL = "https://img.example.com/tall.png"
SQUARE = "https://img.example.com/square.png"


async def _ingest(orchestrator, csv_upload):
    rows = await orchestrator.ingest_file(csv_upload, "prompts.csv", "text/csv")
    await orchestrator.wait_for_enrichment()
    return rows


@pytest.mark.unit
class TestIngest:
    """Tests for file ingestion"""

    async def test_rows_are_validated_and_enriched(self, orchestrator, csv_upload):
        """Test valid rows get a detected ratio and invalid rows keep their errors"""
        await _ingest(orchestrator, csv_upload)
        wide, tall, broken = orchestrator.rows

        assert wide.state is RowState.NORMALIZED
        assert wide.image_ratio == "16:9"
        assert wide.normalized.image_ratio == "16:9"
        assert wide.normalized.tags == ["cute", "cats"]
        assert tall.image_ratio == "9:16"
        assert broken.state is RowState.INVALID
        assert broken.validation_errors == ["category is required"]
        assert broken.normalized is None

    async def test_rows_are_enriching_until_detection_resolves(self, draft_store, publisher, csv_upload):
        """Test rows with an image report the enriching state while detection runs"""
        loader = StubImageLoader({WIDE: make_image(1920, 1080), TALL: make_image(1080, 1920)}, delay=0.05)
        orchestrator = BatchOrchestrator(draft_store, publisher, RatioInferrer(loader=loader), autosave_delay=0.01)

        rows = await orchestrator.ingest_file(csv_upload, "prompts.csv")

        assert [row.state for row in rows] == [RowState.ENRICHING, RowState.ENRICHING, RowState.INVALID]
        assert rows[0].normalized.image_ratio == "4:3"
        await orchestrator.wait_for_enrichment()
        assert [row.state for row in orchestrator.rows][:2] == [RowState.NORMALIZED, RowState.NORMALIZED]
        await orchestrator.close()

    async def test_without_inferrer_rows_keep_default_ratio(self, draft_store, publisher, csv_upload):
        """Test detection is skipped entirely when no inferrer is configured"""
        orchestrator = BatchOrchestrator(draft_store, publisher, inferrer=None, autosave_delay=0.01)

        rows = await orchestrator.ingest_file(csv_upload, "prompts.csv")

        assert all(not row.is_detecting_ratio for row in rows)
        assert rows[0].image_ratio == "4:3"
        await orchestrator.close()

    async def test_custom_engine_governs_ingest(self, draft_store, publisher):
        """Test a looser rule set admits rows the built-in rules would reject"""
        engine = RuleEngine(
            RuleConfigBuilder()
            .add_required_field("title")
            .add_required_field("prompt")
            .add_required_field("category")
            .build()
        )
        orchestrator = BatchOrchestrator(draft_store, publisher, inferrer=None, engine=engine, autosave_delay=0.01)
        content = json.dumps([{"title": "t", "prompt": "p", "category": "c", "status": "Archived"}]).encode()

        (row,) = await orchestrator.ingest_file(content, "prompts.json", "application/json")

        assert row.state is RowState.NORMALIZED
        assert row.normalized.status == "Published"
        await orchestrator.close()

    async def test_record_the_payload_refuses_is_invalid(self, draft_store, publisher):
        """Test a row that passes the rules but cannot be built is kept as invalid"""
        engine = RuleEngine(RuleConfigBuilder().add_required_field("title").build())
        orchestrator = BatchOrchestrator(draft_store, publisher, inferrer=None, engine=engine, autosave_delay=0.01)
        content = json.dumps([{"title": "t", "category": "c"}]).encode()

        (row,) = await orchestrator.ingest_file(content, "prompts.json", "application/json")

        assert row.state is RowState.INVALID
        assert row.normalized is None
        assert any(message.startswith("prompt") for message in row.validation_errors)

        updated = await orchestrator.edit_row(row.row_id, {**row.raw, "prompt": "p"})
        assert updated.state is RowState.NORMALIZED
        await orchestrator.close()

    async def test_raising_inferrer_leaves_enriching_state(self, draft_store, publisher, csv_upload):
        """Test an inferrer that raises resolves rows to the default ratio"""
        class BrokenInferrer(RatioInferrer):
            async def infer(self, source):
                raise RuntimeError("inferrer bug")

        orchestrator = BatchOrchestrator(draft_store, publisher, BrokenInferrer(), autosave_delay=0.01)

        await _ingest(orchestrator, csv_upload)

        assert all(not row.is_detecting_ratio for row in orchestrator.rows)
        assert orchestrator.rows[0].state is RowState.NORMALIZED
        assert orchestrator.rows[0].image_ratio == "4:3"
        await orchestrator.close()

    async def test_ingest_replaces_batch(self, orchestrator, csv_upload):
        """Test a second upload replaces the first"""
        await _ingest(orchestrator, csv_upload)
        content = json.dumps([{"title": "Only", "prompt": "p", "category": "c"}]).encode()

        await orchestrator.ingest_file(content, "more.json")

        assert [row.raw["title"] for row in orchestrator.rows] == ["Only"]

    async def test_ingest_can_append(self, orchestrator, csv_upload):
        """Test append keeps existing rows"""
        await _ingest(orchestrator, csv_upload)
        content = json.dumps([{"title": "Extra", "prompt": "p", "category": "c"}]).encode()

        await orchestrator.ingest_file(content, "more.json", append=True)

        assert len(orchestrator.rows) == 4
        assert orchestrator.rows[-1].raw["title"] == "Extra"

    async def test_rejected_file_leaves_batch_untouched(self, orchestrator, csv_upload):
        """Test a whole-file rejection raises before the batch changes"""
        await _ingest(orchestrator, csv_upload)

        with pytest.raises(FileRejectedError):
            await orchestrator.ingest_file(b"[]", "empty.json")

        assert len(orchestrator.rows) == 3

    async def test_row_ids_are_unique(self, orchestrator, csv_upload):
        """Test every row gets its own temporary id"""
        rows = await _ingest(orchestrator, csv_upload)

        assert len({row.row_id for row in rows}) == 3
        assert all(row.row_id.startswith("temp-") for row in rows)

    async def test_changes_are_autosaved(self, orchestrator, draft_store, csv_upload):
        """Test the draft store receives the batch after the debounce delay"""
        rows = await _ingest(orchestrator, csv_upload)
        await asyncio.sleep(0.1)

        assert [draft.id for draft in draft_store.rows] == [row.row_id for row in rows]
        assert [draft.position for draft in draft_store.rows] == [0, 1, 2]
        assert draft_store.rows[0].image_ratio == "16:9"


@pytest.mark.unit
class TestEditing:
    """Tests for row edits and deletion"""

    async def test_edit_fixes_invalid_row(self, orchestrator, csv_upload):
        """Test editing a missing field makes the row valid"""
        rows = await _ingest(orchestrator, csv_upload)
        broken = rows[2]

        updated = await orchestrator.edit_row(broken.row_id, {**broken.raw, "category": "Misc"})

        assert updated.is_valid
        assert updated.validation_errors == []
        assert updated.normalized.category == "Misc"

    async def test_edit_can_invalidate_and_deselect(self, orchestrator, csv_upload):
        """Test a row that becomes invalid leaves the selection"""
        rows = await _ingest(orchestrator, csv_upload)
        orchestrator.toggle_select(rows[0].row_id)

        updated = await orchestrator.edit_row(rows[0].row_id, {**rows[0].raw, "title": "   "})

        assert updated.validation_errors == ["title is required"]
        assert rows[0].row_id not in orchestrator.selected

    async def test_text_edit_does_not_redetect(self, orchestrator, image_loader, csv_upload):
        """Test edits that keep the image reference keep the detected ratio"""
        rows = await _ingest(orchestrator, csv_upload)
        calls = len(image_loader.calls)

        updated = await orchestrator.edit_row(rows[0].row_id, {**rows[0].raw, "title": "Renamed"})
        await orchestrator.wait_for_enrichment()

        assert len(image_loader.calls) == calls
        assert updated.image_ratio == "16:9"
        assert updated.normalized.image_ratio == "16:9"
        assert updated.normalized.title == "Renamed"

    async def test_new_image_url_is_redetected(self, orchestrator, csv_upload):
        """Test changing the image reference triggers detection"""
        rows = await _ingest(orchestrator, csv_upload)

        await orchestrator.edit_row(rows[0].row_id, {**rows[0].raw, "preview_image_url": SQUARE})
        await orchestrator.wait_for_enrichment()

        row = orchestrator.get_row(rows[0].row_id)
        assert row.image_ratio == "1:1"
        assert row.normalized.image_ratio == "1:1"

    async def test_uploaded_image_bytes_are_detected(self, orchestrator, csv_upload):
        """Test an uploaded image replaces the URL as the detection source"""
        rows = await _ingest(orchestrator, csv_upload)

        await orchestrator.edit_row(rows[1].row_id, rows[1].raw, image=make_image(1500, 1000))
        await orchestrator.wait_for_enrichment()

        assert orchestrator.get_row(rows[1].row_id).image_ratio == "3:2"

    async def test_removing_image_resets_ratio(self, orchestrator, csv_upload):
        """Test clearing the image reference falls back to the default ratio"""
        rows = await _ingest(orchestrator, csv_upload)

        updated = await orchestrator.edit_row(rows[0].row_id, {**rows[0].raw, "preview_image_url": ""})

        assert updated.image_ratio == "4:3"
        assert updated.is_detecting_ratio is False

    async def test_stale_detection_is_discarded(self, draft_store, publisher, csv_upload):
        """Test only the latest image reference's detection is applied"""
        loader = StubImageLoader(
            {WIDE: make_image(1920, 1080), TALL: make_image(1080, 1920), SQUARE: make_image(500, 500)},
            delay=0.03,
        )
        orchestrator = BatchOrchestrator(draft_store, publisher, RatioInferrer(loader=loader), autosave_delay=0.01)
        rows = await orchestrator.ingest_file(csv_upload, "prompts.csv")
        row_id = rows[0].row_id

        await orchestrator.edit_row(row_id, {**rows[0].raw, "preview_image_url": TALL})
        await orchestrator.edit_row(row_id, {**rows[0].raw, "preview_image_url": SQUARE})
        await orchestrator.wait_for_enrichment()

        assert orchestrator.get_row(row_id).image_ratio == "1:1"
        await orchestrator.close()

    async def test_edit_unknown_row(self, orchestrator):
        """Test editing a row that is not in the batch raises"""
        with pytest.raises(RowNotFoundError):
            await orchestrator.edit_row("temp-missing", {})

    async def test_delete_row(self, orchestrator, draft_store, csv_upload):
        """Test deleting removes the row from the batch and the draft store"""
        rows = await _ingest(orchestrator, csv_upload)

        await orchestrator.delete_row(rows[1].row_id)

        assert [row.row_id for row in orchestrator.rows] == [rows[0].row_id, rows[2].row_id]
        assert draft_store.deleted_ids == [rows[1].row_id]

    async def test_delete_row_survives_store_failure(self, orchestrator, draft_store, csv_upload):
        """Test a failed draft delete is logged and the row is still removed"""
        rows = await _ingest(orchestrator, csv_upload)
        draft_store.fail_on.add("delete_row")

        await orchestrator.delete_row(rows[0].row_id)

        assert len(orchestrator.rows) == 2

    async def test_delete_selected(self, orchestrator, csv_upload):
        """Test every selected row is removed"""
        rows = await _ingest(orchestrator, csv_upload)
        orchestrator.select_all()

        removed = await orchestrator.delete_selected()

        assert removed == 2
        assert [row.row_id for row in orchestrator.rows] == [rows[2].row_id]
        assert orchestrator.selected == frozenset()

    async def test_clear(self, orchestrator, draft_store, csv_upload):
        """Test clear empties the batch and the draft store"""
        await _ingest(orchestrator, csv_upload)
        await asyncio.sleep(0.05)

        await orchestrator.clear()
        await asyncio.sleep(0.05)

        assert orchestrator.rows == ()
        assert draft_store.rows == []

    async def test_clear_failure_keeps_batch(self, orchestrator, draft_store, csv_upload):
        """Test a failed clear raises and leaves the batch as it was"""
        await _ingest(orchestrator, csv_upload)
        draft_store.fail_on.add("clear")

        with pytest.raises(DraftStoreError):
            await orchestrator.clear()

        assert len(orchestrator.rows) == 3

    async def test_clear_waits_for_autosave_in_flight(self, publisher, csv_upload):
        """Test a snapshot write already running cannot bring cleared drafts back"""
        draft_store = SlowDraftStore(save_delay=0.05)
        orchestrator = BatchOrchestrator(draft_store, publisher, inferrer=None, autosave_delay=0)
        await orchestrator.ingest_file(csv_upload, "prompts.csv", "text/csv")
        await asyncio.sleep(0.01)

        await orchestrator.clear()
        await asyncio.sleep(0.1)

        assert orchestrator.rows == ()
        assert draft_store.rows == []
        await orchestrator.close()


@pytest.mark.unit
class TestSelection:
    """Tests for row selection"""

    async def test_invalid_rows_cannot_be_selected(self, orchestrator, csv_upload):
        """Test toggling an invalid row leaves it unselected"""
        rows = await _ingest(orchestrator, csv_upload)

        assert orchestrator.toggle_select(rows[2].row_id) is False
        assert orchestrator.selected == frozenset()

    async def test_toggle(self, orchestrator, csv_upload):
        """Test toggling twice deselects"""
        rows = await _ingest(orchestrator, csv_upload)

        assert orchestrator.toggle_select(rows[0].row_id) is True
        assert orchestrator.toggle_select(rows[0].row_id) is False

    async def test_select_all_toggles(self, orchestrator, csv_upload):
        """Test select_all selects every valid row, then clears"""
        rows = await _ingest(orchestrator, csv_upload)

        assert orchestrator.select_all() == {rows[0].row_id, rows[1].row_id}
        assert orchestrator.all_selected is True
        assert orchestrator.select_all() == frozenset()

    async def test_batch_view_is_consistent(self, orchestrator, csv_upload):
        """Test the read-only batch mirrors rows and selection"""
        rows = await _ingest(orchestrator, csv_upload)
        orchestrator.toggle_select(rows[1].row_id)

        batch = orchestrator.batch

        assert len(batch) == 3
        assert batch.selected == {rows[1].row_id}
        assert [row.row_id for row in batch.invalid_rows] == [rows[2].row_id]


@pytest.mark.unit
class TestPublishing:
    """Tests for publish actions"""

    async def test_publish_all(self, orchestrator, prompt_store, draft_store, csv_upload):
        """Test valid rows are created and removed; invalid rows stay"""
        rows = await _ingest(orchestrator, csv_upload)

        summary = await orchestrator.publish_all()

        assert summary.message == "2 succeeded, 0 failed"
        assert [r.title for r in prompt_store.records] == ["Neon cat", "Tall tower"]
        assert [r.image_ratio for r in prompt_store.records] == ["16:9", "9:16"]
        assert [row.row_id for row in orchestrator.rows] == [rows[2].row_id]
        assert [draft.id for draft in draft_store.rows] == [rows[2].row_id]

    async def test_failed_rows_stay_in_batch(self, orchestrator, prompt_store, csv_upload):
        """Test rows whose create failed remain for a retry"""
        rows = await _ingest(orchestrator, csv_upload)
        prompt_store.reject_titles.add("Tall tower")

        summary = await orchestrator.publish_all()

        assert summary.succeeded == 1
        assert summary.failed == 1
        assert [row.row_id for row in orchestrator.rows] == [rows[1].row_id, rows[2].row_id]

    async def test_publish_all_with_status(self, orchestrator, prompt_store, csv_upload):
        """Test an explicit status applies to every created record"""
        await _ingest(orchestrator, csv_upload)

        await orchestrator.publish_all(status="Pending")

        assert {r.status for r in prompt_store.records} == {"Pending"}

    async def test_nothing_to_publish(self, orchestrator):
        """Test publishing an empty batch raises"""
        with pytest.raises(NothingToPublishError, match="No valid prompts to publish"):
            await orchestrator.publish_all()

    async def test_publish_selected(self, orchestrator, prompt_store, csv_upload):
        """Test only selected rows are published and the selection clears"""
        rows = await _ingest(orchestrator, csv_upload)
        orchestrator.toggle_select(rows[1].row_id)

        summary = await orchestrator.publish_selected()

        assert summary.succeeded == 1
        assert [r.title for r in prompt_store.records] == ["Tall tower"]
        assert orchestrator.selected == frozenset()
        assert len(orchestrator.rows) == 2

    async def test_publish_selected_without_selection(self, orchestrator, csv_upload):
        """Test publishing an empty selection raises"""
        await _ingest(orchestrator, csv_upload)

        with pytest.raises(NothingToPublishError):
            await orchestrator.publish_selected()

    @pytest.mark.parametrize("action, status", [
        ("publish_row", "Published"),
        ("send_row_to_review", "Review"),
        ("save_row_as_draft", "Draft"),
    ])
    async def test_single_row_actions(self, orchestrator, prompt_store, csv_upload, action, status):
        """Test single-row actions create one record with their status"""
        rows = await _ingest(orchestrator, csv_upload)
        orchestrator.toggle_select(rows[1].row_id)

        result = await getattr(orchestrator, action)(rows[0].row_id)

        assert result.success is True
        assert prompt_store.records[0].status == status
        assert [row.row_id for row in orchestrator.rows] == [rows[1].row_id, rows[2].row_id]
        assert orchestrator.selected == {rows[1].row_id}

    async def test_single_row_action_on_invalid_row(self, orchestrator, csv_upload):
        """Test an invalid row cannot be published on its own"""
        rows = await _ingest(orchestrator, csv_upload)

        with pytest.raises(NothingToPublishError, match="validation errors"):
            await orchestrator.publish_row(rows[2].row_id)

    async def test_publish_waits_for_enrichment(self, draft_store, csv_upload):
        """Test publishing right after upload still uses the detected ratio"""
        loader = StubImageLoader({WIDE: make_image(1920, 1080), TALL: make_image(1080, 1920)}, delay=0.05)
        store = InMemoryPromptStore()
        publisher = Publisher(store, CategoryRegistry(source=store))
        orchestrator = BatchOrchestrator(draft_store, publisher, RatioInferrer(loader=loader), autosave_delay=0.01)
        await orchestrator.ingest_file(csv_upload, "prompts.csv")

        await orchestrator.publish_all()

        assert [r.image_ratio for r in store.records] == ["16:9", "9:16"]
        await orchestrator.close()


@pytest.mark.unit
class TestRestore:
    """Tests for draft restoration"""

    def _draft(self, row_id: str, position: int, **changes) -> DraftRow:
        data = {"title": f"Row {position}", "prompt": "p", "category": "Animals"}
        normalized = {**data, "image_ratio": "4:3", "status": "Published", "views": 0}
        return DraftRow(**{"id": row_id, "position": position, "data": data, "normalized": normalized, **changes})

    async def test_restore_keeps_ids_and_order(self, publisher, inferrer):
        """Test drafts are restored in position order with their ids"""
        store = InMemoryDraftStore([self._draft("temp-a", 0), self._draft("temp-b", 1)])
        orchestrator = BatchOrchestrator(store, publisher, inferrer, autosave_delay=0.01)

        restored = await orchestrator.restore()

        assert [row.row_id for row in restored] == ["temp-a", "temp-b"]
        assert orchestrator.get_row("temp-b").normalized.title == "Row 1"
        assert store.save_calls == []

    async def test_restore_runs_once(self, publisher, inferrer):
        """Test a second restore does nothing"""
        store = InMemoryDraftStore([self._draft("temp-a", 0)])
        orchestrator = BatchOrchestrator(store, publisher, inferrer)

        await orchestrator.restore()
        assert await orchestrator.restore() == []
        assert len(orchestrator.rows) == 1

    async def test_restore_skips_non_empty_batch(self, publisher, inferrer, csv_upload):
        """Test drafts are not merged into a batch that already has rows"""
        store = InMemoryDraftStore([self._draft("temp-a", 0)])
        orchestrator = BatchOrchestrator(store, publisher, inferrer, autosave_delay=10)
        await orchestrator.ingest_file(csv_upload, "prompts.csv")

        assert await orchestrator.restore() == []
        assert "temp-a" not in {row.row_id for row in orchestrator.rows}
        orchestrator.autosave.cancel()
        await orchestrator.close()

    async def test_inconsistent_draft_is_rebuilt(self, publisher, inferrer):
        """Test a draft claiming validity without a payload is validated again"""
        store = InMemoryDraftStore([self._draft("temp-a", 0, normalized=None)])
        orchestrator = BatchOrchestrator(store, publisher, inferrer)

        rows = await orchestrator.restore()

        assert rows[0].row_id == "temp-a"
        assert rows[0].is_valid
        assert rows[0].normalized.title == "Row 0"

    async def test_interrupted_detection_resumes(self, publisher, inferrer):
        """Test rows saved mid-detection are detected again"""
        draft = self._draft("temp-a", 0, is_detecting_ratio=True)
        draft = draft.model_copy(update={"data": {**draft.data, "preview_image_url": TALL}})
        orchestrator = BatchOrchestrator(InMemoryDraftStore([draft]), publisher, inferrer)

        await orchestrator.restore()
        await orchestrator.wait_for_enrichment()

        row = orchestrator.get_row("temp-a")
        assert row.image_ratio == "9:16"
        assert row.is_detecting_ratio is False
        await orchestrator.close()

    async def test_load_failure_starts_empty(self, publisher, inferrer):
        """Test an unreadable draft store yields an empty batch"""
        store = InMemoryDraftStore()
        store.fail_on.add("load")
        orchestrator = BatchOrchestrator(store, publisher, inferrer)

        assert await orchestrator.restore() == []
        assert orchestrator.rows == ()
