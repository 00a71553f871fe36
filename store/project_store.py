"""
Project Store: 프로젝트와 슬롯의 단일 진실 원천 (JSON 문서 저장소)

- 프로젝트 하나 = <base_dir>/projects/<id>.json 문서 하나
- 쓰기는 RLock으로 직렬화, temp 파일 + os.replace로 atomic write
- batch_update_slots: 전부 적용되거나 하나도 적용되지 않음
- 낙관적 버전 관리 없음 (last write wins)
"""

import json
import os
import threading
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple, Iterable

from schemas import (
    Project,
    Slot,
    SlotDraft,
    MUTABLE_PROJECT_FIELDS,
    MUTABLE_SLOT_FIELDS,
)
from utils.errors import NotFoundError, ValidationError
from utils.logger import get_logger
logger = get_logger("project_store")


SlotUpdate = Tuple[str, Dict[str, Any]]


class ProjectStore:
    """
    Durable key-value store for Project records and their ordered slots.

    Every public method returns fresh copies; mutating a returned model
    never changes stored state.
    """

    def __init__(self, base_dir: str = "outputs"):
        self.projects_dir = os.path.join(base_dir, "projects")
        os.makedirs(self.projects_dir, exist_ok=True)
        self._lock = threading.RLock()
        # slot_id → project_id, videoJobId → slot_id (miss 시 전체 스캔으로 재구성)
        self._slot_owner: Dict[str, str] = {}
        self._job_slot: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # 파일 I/O
    # ------------------------------------------------------------------

    def _path(self, project_id: str) -> str:
        if not project_id or os.sep in project_id or "/" in project_id or project_id.startswith("."):
            raise NotFoundError(f"Project not found: {project_id}")
        return os.path.join(self.projects_dir, f"{project_id}.json")

    def _load(self, project_id: str) -> Project:
        path = self._path(project_id)
        if not os.path.exists(path):
            raise NotFoundError(f"Project not found: {project_id}")
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return Project.model_validate(data)

    def _save(self, project: Project) -> None:
        """atomic write (temp 파일 → os.replace)"""
        project.updated_at = datetime.now()
        path = self._path(project.id)
        temp_path = f"{path}.tmp"
        data = project.model_dump(mode="json", by_alias=True)
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(temp_path, path)

        self._index_slots(project)

    def _iter_project_ids(self) -> Iterable[str]:
        for name in sorted(os.listdir(self.projects_dir)):
            if name.endswith(".json"):
                yield name[:-len(".json")]

    def _index_slots(self, project: Project) -> None:
        for slot in project.slots:
            self._slot_owner[slot.id] = project.id
            if slot.video_job_id:
                self._job_slot[slot.video_job_id] = slot.id

    def _rebuild_slot_index(self) -> None:
        self._slot_owner.clear()
        self._job_slot.clear()
        for project_id in self._iter_project_ids():
            self._index_slots(self._load(project_id))

    def _owner_of(self, slot_id: str) -> str:
        project_id = self._slot_owner.get(slot_id)
        if project_id is None:
            self._rebuild_slot_index()
            project_id = self._slot_owner.get(slot_id)
        if project_id is None:
            raise NotFoundError(f"Slot not found: {slot_id}")
        return project_id

    # ------------------------------------------------------------------
    # 프로젝트
    # ------------------------------------------------------------------

    def create(self, final_script: str) -> Project:
        if not final_script or not final_script.strip():
            raise ValidationError("finalScript is required")
        project = Project(final_script=final_script)
        with self._lock:
            self._save(project)
        logger.info(f"[ProjectStore] Created project {project.id}")
        return project

    def get(self, project_id: str) -> Project:
        with self._lock:
            return self._load(project_id)

    def list_projects(self) -> List[Project]:
        """최근 생성 순으로 정렬된 프로젝트 목록"""
        with self._lock:
            projects = [self._load(pid) for pid in self._iter_project_ids()]
        return sorted(projects, key=lambda p: p.created_at, reverse=True)

    def update(self, project_id: str, **fields) -> Project:
        """
        프로젝트 필드 갱신. finalScript와 slots는 여기서 변경할 수 없습니다.

        Raises:
            ValidationError: 변경 불가 필드 / 잘못된 값
            NotFoundError: 프로젝트 없음
        """
        unknown = set(fields) - MUTABLE_PROJECT_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update project fields: {', '.join(sorted(unknown))}")

        with self._lock:
            project = self._load(project_id)
            data = project.model_dump()
            data.update(fields)
            try:
                updated = Project.model_validate(data)
            except ValueError as e:
                raise ValidationError(f"Invalid project update: {e}")
            self._save(updated)
            return updated

    # ------------------------------------------------------------------
    # 슬롯
    # ------------------------------------------------------------------

    def replace_slots(self, project_id: str, drafts: List[SlotDraft]) -> Project:
        """
        슬롯 목록 전체 교체 (재세그멘테이션).

        기존 슬롯의 이미지/비디오 필드는 모두 사라집니다.
        """
        indices = [d.index for d in drafts]
        if sorted(indices) != list(range(len(drafts))):
            raise ValidationError(f"Slot indices must be contiguous from 0, got {indices}")

        with self._lock:
            project = self._load(project_id)
            old_ids = {old.id for old in project.slots}
            for slot_id in old_ids:
                self._slot_owner.pop(slot_id, None)
            self._job_slot = {j: s for j, s in self._job_slot.items() if s not in old_ids}

            project.slots = [
                Slot(
                    project_id=project_id,
                    index=d.index,
                    text_segment=d.text_segment,
                    scene_description=d.scene_description,
                    timestamp=d.timestamp,
                )
                for d in sorted(drafts, key=lambda d: d.index)
            ]
            self._save(project)

        logger.info(f"[ProjectStore] Project {project_id}: replaced slots ({len(drafts)})")
        return project

    def get_slot(self, slot_id: str) -> Slot:
        with self._lock:
            project_id = self._owner_of(slot_id)
            return self._find_slot(self._load(project_id), slot_id)

    def update_slot(self, slot_id: str, **fields) -> Slot:
        return self.batch_update_slots([(slot_id, fields)])[0]

    def batch_update_slots(self, updates: List[SlotUpdate]) -> List[Slot]:
        """
        여러 슬롯을 한 번에 갱신 (all-or-nothing).

        모든 변경을 메모리 사본에 먼저 적용하고, 하나라도 실패하면
        아무것도 기록하지 않습니다.

        Args:
            updates: [(slot_id, {field: value}), ...]

        Returns:
            갱신된 슬롯 목록 (입력 순서)
        """
        with self._lock:
            staged: Dict[str, Project] = {}
            results: List[Slot] = []

            for slot_id, fields in updates:
                project_id = self._owner_of(slot_id)
                if project_id not in staged:
                    staged[project_id] = self._load(project_id)
                results.append(self._apply_slot_update(staged[project_id], slot_id, fields))

            # TODO: multi-project batches are not atomic across files if a write fails midway
            for project in staged.values():
                self._save(project)

        return results

    def _apply_slot_update(self, project: Project, slot_id: str, fields: Dict[str, Any]) -> Slot:
        unknown = set(fields) - MUTABLE_SLOT_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update slot fields: {', '.join(sorted(unknown))}")

        current = self._find_slot(project, slot_id)
        data = current.model_dump()
        data.update(fields)
        try:
            updated = Slot.model_validate(data)
        except ValueError as e:
            raise ValidationError(f"Invalid slot update for {slot_id}: {e}")

        project.slots = [updated if s.id == slot_id else s for s in project.slots]
        return updated

    @staticmethod
    def _find_slot(project: Project, slot_id: str) -> Slot:
        for slot in project.slots:
            if slot.id == slot_id:
                return slot
        raise NotFoundError(f"Slot not found: {slot_id}")

    def find_slot_by_job_id(self, job_id: str) -> Optional[Slot]:
        """
        videoJobId로 슬롯 조회 (없으면 None).

        job 인덱스로 슬롯 문서 하나만 읽습니다. 슬롯이 그 사이 다른 작업으로
        넘어갔으면 None.
        """
        if not job_id:
            return None
        with self._lock:
            slot_id = self._job_slot.get(job_id)
            if slot_id is None:
                self._rebuild_slot_index()
                slot_id = self._job_slot.get(job_id)
            if slot_id is None:
                return None
            try:
                slot = self.get_slot(slot_id)
            except NotFoundError:
                self._job_slot.pop(job_id, None)
                return None
        return slot if slot.video_job_id == job_id else None
