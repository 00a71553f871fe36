"""
SCRIPTCUT Data Models

공통 데이터 모델 정의 (Pydantic 기반)
- Project / Slot: 프로젝트와 타임드 세그먼트(슬롯) 레코드
- SegmentationResponse / PromptGenerationResponse: LLM 응답 검증 경계
- PredictionResult: Replicate prediction 결과
- BulkImageResult: 일괄 이미지 생성 결과 (부분 성공 허용)
- PipelineSettings: 파이프라인 설정
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from utils.constants import (
    MODEL_CHAT,
    MODEL_SEGMENTATION,
    MODEL_PROMPT_EXPANSION,
    MODEL_IMAGE,
    MODEL_VIDEO,
    MIN_SECONDS_PER_SEGMENT,
    MAX_SECONDS_PER_SEGMENT,
    VIDEO_POLL_INTERVAL_SEC,
    PREDICTION_SUCCEEDED,
    TERMINAL_PREDICTION_STATES,
)


class CamelModel(BaseModel):
    """snake_case 속성, camelCase JSON (웹 UI 필드명과 호환)."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class VideoStatus(str, Enum):
    """슬롯 비디오 작업 상태 (None = 시작 안 함)"""
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ContinuityMetadata(CamelModel):
    """씬 간 시각적 연속성: 유지할 요소 / 변화 허용 요소"""
    elements_to_maintain: List[str] = Field(default_factory=list)
    elements_to_evolve: List[str] = Field(default_factory=list)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class SlotDraft(BaseModel):
    """세그멘테이션 결과 한 줄 (아직 저장 전)"""
    index: int = Field(ge=0)
    text_segment: str
    scene_description: str
    timestamp: str


class Slot(CamelModel):
    """
    하나의 타임드 내레이션 세그먼트.

    이미지/비디오 필드는 작업 완료 시 슬롯 단위로 갱신되며,
    재세그멘테이션 때만 일괄 삭제됩니다.
    """
    id: str = Field(default_factory=_new_id)
    project_id: str
    index: int = Field(ge=0)
    text_segment: str = ""
    scene_description: str = ""
    timestamp: str = ""

    image_prompt: Optional[str] = None
    continuity_metadata: Optional[ContinuityMetadata] = None
    image_url: Optional[str] = None

    video_prompt: Optional[str] = None
    video_url: Optional[str] = None
    video_status: Optional[VideoStatus] = None
    video_job_id: Optional[str] = Field(default=None, description="마지막 비디오 prediction ID")


# update_slot / batch_update_slots로 변경 가능한 필드
MUTABLE_SLOT_FIELDS = frozenset({
    "image_prompt",
    "continuity_metadata",
    "image_url",
    "video_prompt",
    "video_url",
    "video_status",
    "video_job_id",
})


class Project(CamelModel):
    """프로젝트 레코드 (슬롯 목록 포함)"""
    id: str = Field(default_factory=_new_id)
    final_script: str

    tts_audio_url: Optional[str] = None
    audio_duration: Optional[float] = Field(default=None, description="내레이션 길이 (초)")

    style_prompt: Optional[str] = None
    aspect_ratio: Optional[str] = None
    style_preview_url: Optional[str] = None
    # 마지막 샘플 생성에 사용된 값 (승인 시 stale 여부 판단)
    style_preview_prompt: Optional[str] = None
    style_preview_aspect_ratio: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    slots: List[Slot] = Field(default_factory=list)

    def ordered_slots(self) -> List[Slot]:
        return sorted(self.slots, key=lambda s: s.index)


MUTABLE_PROJECT_FIELDS = frozenset({
    "tts_audio_url",
    "audio_duration",
    "style_prompt",
    "aspect_ratio",
    "style_preview_url",
    "style_preview_prompt",
    "style_preview_aspect_ratio",
})


# ============================================================================
# LLM 응답 검증 모델
# ============================================================================

def _require_text(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        raise ValueError("must not be empty")
    return value


class SegmentItem(BaseModel):
    """세그멘테이션 LLM 응답의 세그먼트 한 개 (snake_case 그대로)"""
    segment_number: int = Field(ge=1)
    text: str
    scene_description: str
    timestamp: Optional[str] = None  # 모델이 준 값은 사용하지 않음

    @field_validator("text", "scene_description")
    @classmethod
    def check_text(cls, value: str) -> str:
        return _require_text(value)


class SegmentationResponse(BaseModel):
    segments: List[SegmentItem]


class GeneratedPrompt(CamelModel):
    """프롬프트 확장 응답의 씬 한 개"""
    scene_index: int
    prompt: str
    visual_continuity: ContinuityMetadata = Field(default_factory=ContinuityMetadata)

    @field_validator("prompt")
    @classmethod
    def check_prompt(cls, value: str) -> str:
        return _require_text(value)


class PromptGenerationResponse(CamelModel):
    prompts: List[GeneratedPrompt]
    metadata: Optional[Dict[str, Any]] = None


# ============================================================================
# 외부 작업 / 결과 모델
# ============================================================================

class PredictionResult(BaseModel):
    """Replicate prediction 상태 스냅샷"""
    id: Optional[str] = None
    status: str
    output_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == PREDICTION_SUCCEEDED and bool(self.output_url)


class SlotFailure(CamelModel):
    index: int
    slot_id: str
    error: str


class BulkImageResult(CamelModel):
    """일괄 이미지 생성 결과. 부분 성공도 정상 종료 상태입니다."""
    project_id: str
    total: int = 0
    succeeded: List[int] = Field(default_factory=list, description="성공한 슬롯 index")
    failures: List[SlotFailure] = Field(default_factory=list)
    prompts_refreshed: bool = False

    @computed_field
    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @computed_field
    @property
    def failure_count(self) -> int:
        return len(self.failures)


class VideoJobStatus(CamelModel):
    """check_status 결과: prediction 상태 + 반영 후 슬롯"""
    job_id: str
    status: str
    output_url: Optional[str] = None
    error: Optional[str] = None
    applied: bool = Field(default=False, description="슬롯에 반영되었는지 (stale 작업이면 False)")
    slot: Optional[Slot] = None

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_PREDICTION_STATES


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


# ============================================================================
# 설정
# ============================================================================

class PipelineSettings(BaseModel):
    """
    파이프라인 설정 (config/pipeline.yaml)

    기본값: 순차 이미지 생성, 5초 폴링.
    """
    output_dir: str = Field(default="outputs", description="프로젝트/오디오 저장 경로")

    chat_model: str = MODEL_CHAT
    segmentation_model: str = MODEL_SEGMENTATION
    prompt_model: str = MODEL_PROMPT_EXPANSION
    image_model: str = MODEL_IMAGE
    video_model: str = MODEL_VIDEO

    min_seconds_per_segment: float = Field(default=MIN_SECONDS_PER_SEGMENT, gt=0)
    max_seconds_per_segment: float = Field(default=MAX_SECONDS_PER_SEGMENT, gt=0)

    image_concurrency: int = Field(default=1, ge=1, description="일괄 이미지 동시 실행 수")
    video_poll_interval_sec: float = Field(default=VIDEO_POLL_INTERVAL_SEC, ge=0)

    num_inference_steps: int = 50
    guidance_scale: float = 7.5
    output_quality: int = 100

    @property
    def avg_seconds_per_segment(self) -> float:
        return (self.min_seconds_per_segment + self.max_seconds_per_segment) / 2
