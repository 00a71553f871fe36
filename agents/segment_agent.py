"""
Segment Agent: 최종 스크립트를 타임드 내레이션 세그먼트(슬롯)로 분할.

- 세그먼트 수 N = ceil(audioDuration / 평균 세그먼트 길이)
- LLM에게 정확히 N개를 요청하고, 타임스탬프는 위치 기반으로 다시 계산
- 응답 검증 실패 시 아무것도 저장하지 않음
"""

import math
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from schemas import PipelineSettings, Project, SegmentationResponse, SegmentItem, SlotDraft
from utils.errors import AdapterContractViolation, ValidationError
from utils.llm_utils import parse_llm_json
from utils.logger import get_logger
logger = get_logger("segment_agent")


SEGMENTATION_SYSTEM_PROMPT = (
    "You are a script segmentation expert. "
    "Always respond with valid JSON that matches the requested format exactly."
)


def round_half_up(value: float) -> int:
    """0.5는 항상 올림 (5.5 → 6, 16.5 → 17). Python round()의 banker's rounding과 다름."""
    return int(math.floor(value + 0.5))


def segment_count(audio_duration: float, avg_seconds: float) -> int:
    return math.ceil(audio_duration / avg_seconds)


def compute_timestamps(audio_duration: float, count: int) -> List[str]:
    """
    위치 i의 타임스탬프 "<start>-<end>s".

    end(i) == start(i + 1)이 항상 성립합니다.
    """
    segment_duration = audio_duration / count
    stamps = []
    for i in range(count):
        start = round_half_up(i * segment_duration)
        end = round_half_up((i + 1) * segment_duration)
        stamps.append(f"{start}-{end}s")
    return stamps


class SegmentAgent:
    """
    스크립트 세그멘테이션 단계.
    """

    def __init__(self, chat_agent, store, settings: Optional[PipelineSettings] = None):
        self.chat_agent = chat_agent
        self.store = store
        self.settings = settings or PipelineSettings()

    def build_prompt(self, script: str, count: int, audio_duration: float) -> str:
        return f"""You are a professional script segmentation expert. I need you to divide the following script into exactly {count} segments.

Requirements:
1. Each segment should be a coherent scene or moment
2. Maintain narrative flow and context
3. Segments should be roughly equal in length/timing
4. Include a brief scene description for each segment

Format your response as follows (maintain exact JSON structure):
{{
  "segments": [
    {{
      "segment_number": 1,
      "text": "The actual script segment text",
      "scene_description": "Brief description of the scene",
      "timestamp": "0-5s"
    }}
  ]
}}

Script to segment:
{script}

Remember:
- Create exactly {count} segments
- Keep segments balanced in length
- Ensure each segment can be visualized
- Calculate timestamps based on {audio_duration} total seconds"""

    def request_segments(self, script: str, count: int, audio_duration: float) -> List[SegmentItem]:
        """
        LLM 호출 + 응답 검증.

        Returns:
            segment_number 순으로 정렬된 세그먼트 (정확히 count개, 번호 1..count)

        Raises:
            AdapterContractViolation: JSON 아님 / 필드 누락 / 개수 불일치 / 번호 중복·누락
        """
        messages = [
            {"role": "system", "content": SEGMENTATION_SYSTEM_PROMPT},
            {"role": "user", "content": self.build_prompt(script, count, audio_duration)},
        ]
        raw = self.chat_agent.complete(messages, model=self.settings.segmentation_model)
        data = parse_llm_json(raw, source="segmentation")

        try:
            response = SegmentationResponse.model_validate(data)
        except PydanticValidationError as e:
            raise AdapterContractViolation("Invalid segment data from OpenAI", details=str(e))

        segments = response.segments
        if len(segments) != count:
            raise AdapterContractViolation(f"Expected {count} segments but got {len(segments)}")

        numbers = sorted(s.segment_number for s in segments)
        if numbers != list(range(1, count + 1)):
            raise AdapterContractViolation(f"Segment numbers must be exactly 1..{count}, got {numbers}")

        return sorted(segments, key=lambda s: s.segment_number)

    def segment(
        self,
        project_id: str,
        script: Optional[str] = None,
        audio_duration: Optional[float] = None,
    ) -> Project:
        """
        세그멘테이션 실행 후 프로젝트 슬롯 전체 교체.

        Args:
            project_id: 프로젝트 ID
            script: 분할할 스크립트 (기본: finalScript)
            audio_duration: 내레이션 길이 (기본: 프로젝트 audioDuration)

        Returns:
            새 슬롯이 들어간 Project
        """
        project = self.store.get(project_id)
        script = script if script is not None else project.final_script
        if audio_duration is None:
            audio_duration = project.audio_duration

        if not script or not script.strip():
            raise ValidationError("Script is required")
        if audio_duration is None or audio_duration <= 0:
            raise ValidationError("audioDuration is required before segmentation")

        count = segment_count(audio_duration, self.settings.avg_seconds_per_segment)
        logger.info(f"[SegmentAgent] Project {project_id}: {audio_duration}s → {count} segments")

        segments = self.request_segments(script, count, audio_duration)
        timestamps = compute_timestamps(audio_duration, count)

        drafts = [
            SlotDraft(
                index=seg.segment_number - 1,
                text_segment=seg.text,
                scene_description=seg.scene_description,
                timestamp=timestamps[seg.segment_number - 1],
            )
            for seg in segments
        ]
        return self.store.replace_slots(project_id, drafts)
