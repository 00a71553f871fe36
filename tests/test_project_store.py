"""
Unit tests for the JSON project store.

Tests cover:
1. Project create / get / update / list
2. Slot replacement and per-slot updates
3. All-or-nothing batch updates
4. Job id lookup and persistence across store instances
"""
import os

import pytest

from schemas import ContinuityMetadata, VideoStatus
from store import ProjectStore
from utils.errors import NotFoundError, ValidationError

from conftest import add_slots


class TestProjects:

    def test_create_and_get(self, store):
        created = store.create("A short script.")
        loaded = store.get(created.id)
        assert loaded.final_script == "A short script."
        assert loaded.slots == []
        assert os.path.exists(os.path.join(store.projects_dir, f"{created.id}.json"))

    def test_create_requires_script(self, store):
        with pytest.raises(ValidationError):
            store.create("   ")

    def test_get_unknown_project(self, store):
        with pytest.raises(NotFoundError):
            store.get("missing")

    def test_get_rejects_path_like_ids(self, store):
        with pytest.raises(NotFoundError):
            store.get("../etc/passwd")

    def test_update_mutable_fields(self, store):
        created = store.create("Script")
        updated = store.update(created.id, style_prompt="noir", aspect_ratio="9:16")
        assert updated.style_prompt == "noir"
        assert store.get(created.id).aspect_ratio == "9:16"
        assert updated.updated_at >= created.updated_at

    def test_final_script_is_immutable(self, store):
        created = store.create("Script")
        with pytest.raises(ValidationError):
            store.update(created.id, final_script="Other")

    def test_list_projects_newest_first(self, store):
        first = store.create("First")
        second = store.create("Second")
        ids = [p.id for p in store.list_projects()]
        assert ids.index(second.id) < ids.index(first.id)

    def test_document_uses_camel_case(self, store):
        created = store.create("Script")
        with open(os.path.join(store.projects_dir, f"{created.id}.json"), encoding="utf-8") as f:
            content = f.read()
        assert '"finalScript"' in content
        assert '"final_script"' not in content


class TestSlots:

    def test_replace_slots_orders_by_index(self, store, project):
        assert [s.index for s in project.slots] == [0, 1, 2]
        assert all(s.project_id == project.id for s in project.slots)

    def test_replace_slots_rejects_gaps(self, store, project):
        from schemas import SlotDraft
        drafts = [
            SlotDraft(index=0, text_segment="a", scene_description="a", timestamp="0-6s"),
            SlotDraft(index=2, text_segment="b", scene_description="b", timestamp="6-12s"),
        ]
        with pytest.raises(ValidationError):
            store.replace_slots(project.id, drafts)

    def test_resegmentation_drops_old_slots(self, store, project):
        old_id = project.slots[0].id
        store.update_slot(old_id, image_url="https://img.example/0.png")

        replaced = add_slots(store, project.id, 2)
        assert len(replaced.slots) == 2
        assert all(s.image_url is None for s in replaced.slots)
        with pytest.raises(NotFoundError):
            store.get_slot(old_id)

    def test_update_slot(self, store, project):
        slot_id = project.slots[1].id
        updated = store.update_slot(
            slot_id,
            image_prompt="A fox",
            continuity_metadata={"elementsToMaintain": ["fox"], "elementsToEvolve": []},
        )
        assert updated.image_prompt == "A fox"
        assert isinstance(updated.continuity_metadata, ContinuityMetadata)
        assert store.get_slot(slot_id).continuity_metadata.elements_to_maintain == ["fox"]

    def test_update_slot_rejects_immutable_fields(self, store, project):
        with pytest.raises(ValidationError):
            store.update_slot(project.slots[0].id, text_segment="changed")

    def test_update_unknown_slot(self, store, project):
        with pytest.raises(NotFoundError):
            store.update_slot("nope", image_url="x")


class TestBatchUpdates:

    def test_batch_applies_every_update(self, store, project):
        updates = [(s.id, {"image_prompt": f"P{s.index}"}) for s in project.slots]
        results = store.batch_update_slots(updates)
        assert [r.image_prompt for r in results] == ["P0", "P1", "P2"]
        assert [s.image_prompt for s in store.get(project.id).ordered_slots()] == ["P0", "P1", "P2"]

    def test_batch_is_all_or_nothing(self, store, project):
        updates = [
            (project.slots[0].id, {"image_prompt": "P0"}),
            (project.slots[1].id, {"image_prompt": "P1"}),
            ("unknown-slot", {"image_prompt": "P2"}),
        ]
        with pytest.raises(NotFoundError):
            store.batch_update_slots(updates)
        assert all(s.image_prompt is None for s in store.get(project.id).slots)

    def test_batch_invalid_value_writes_nothing(self, store, project):
        updates = [
            (project.slots[0].id, {"image_prompt": "P0"}),
            (project.slots[1].id, {"video_status": "NOT_A_STATUS"}),
        ]
        with pytest.raises(ValidationError):
            store.batch_update_slots(updates)
        assert store.get_slot(project.slots[0].id).image_prompt is None


class TestLookup:

    def test_find_slot_by_job_id(self, store, project):
        target = project.slots[2]
        store.update_slot(target.id, video_job_id="pred-9", video_status=VideoStatus.PROCESSING)
        found = store.find_slot_by_job_id("pred-9")
        assert found.id == target.id
        assert store.find_slot_by_job_id("pred-unknown") is None

    def test_new_store_instance_finds_existing_slots(self, tmp_path, store, project):
        reopened = ProjectStore(str(tmp_path))
        slot = reopened.get_slot(project.slots[1].id)
        assert slot.text_segment == "Text 1"

    def test_superseded_job_id_not_found(self, store, project):
        slot_id = project.slots[0].id
        store.update_slot(slot_id, video_job_id="pred-1")
        store.update_slot(slot_id, video_job_id="pred-2")
        assert store.find_slot_by_job_id("pred-1") is None
        assert store.find_slot_by_job_id("pred-2").id == slot_id

    def test_job_id_dropped_after_resegmentation(self, store, project):
        store.update_slot(project.slots[0].id, video_job_id="pred-1")
        add_slots(store, project.id, 2)
        assert store.find_slot_by_job_id("pred-1") is None

    def test_new_store_instance_finds_job(self, tmp_path, store, project):
        store.update_slot(project.slots[1].id, video_job_id="pred-7")
        reopened = ProjectStore(str(tmp_path))
        assert reopened.find_slot_by_job_id("pred-7").id == project.slots[1].id

    def test_indexed_lookup_reads_one_project(self, store, project, monkeypatch):
        other = store.create("Another story")
        add_slots(store, other.id, 3)
        store.update_slot(project.slots[2].id, video_job_id="pred-3")

        loaded = []
        real_load = store._load

        def counting_load(project_id):
            loaded.append(project_id)
            return real_load(project_id)

        monkeypatch.setattr(store, "_load", counting_load)
        for _ in range(3):
            assert store.find_slot_by_job_id("pred-3").id == project.slots[2].id
        assert loaded == [project.id] * 3
