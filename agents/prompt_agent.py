"""
Prompt Agent: 슬롯별 독립 이미지 프롬프트 확장 (GPT-4o, JSON mode).

LLM 응답은 명시적 검증 경계를 통과해야만 저장됩니다.
- 프롬프트 수 == 슬롯 수
- sceneIndex: 유효 범위의 정수, 중복 없음
- prompt: 비어 있지 않음
저장은 all-or-nothing 배치 한 번.
"""

import json
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from schemas import PipelineSettings, Project, PromptGenerationResponse
from agents.image_agent import normalize_aspect_ratio
from utils.errors import AdapterContractViolation, ValidationError
from utils.llm_utils import parse_llm_json
from utils.logger import get_logger
logger = get_logger("prompt_agent")


PROMPT_ENGINEER_SYSTEM_PROMPT = """You are a master cinematographer and visual storyteller. Your task is to create detailed, standalone scene descriptions for EVERY segment in the story. You must generate exactly one prompt for each segment provided, maintaining the same order.

CRITICAL REQUIREMENTS:
1. Generate EXACTLY one prompt for EACH segment in the input
2. Each prompt must be completely self-contained
3. Never use pronouns without clear antecedents
4. Always introduce subjects and settings as if for the first time
5. Include complete visual context in every scene

SCENE DESCRIPTION STRUCTURE:
1. COMPLETE SETTING ESTABLISHMENT
   - Time of day, weather, location
   - Full environmental context
   - Atmosphere and mood

2. SUBJECT INTRODUCTION
   - Introduce every subject as if for the first time
   - Include all identifying characteristics
   - Describe their current state and actions

3. VISUAL DETAILS
   - Lighting conditions
   - Camera angle and framing
   - Color palette and tone
   - Textures and materials
   - Depth and perspective

4. TECHNICAL SPECIFICATIONS
   - Composition guidelines for the specified aspect ratio
   - Key focal points
   - Depth of field

BAD EXAMPLE:
"The tiger continues hunting in the snow" (lacks context, uses pronouns without antecedents)

GOOD EXAMPLE:
"A massive Canadian Snow Tiger, its white fur shimmering with subtle black stripes, stalks through a pristine snow-covered pine forest at dawn. Golden morning light filters through frost-laden branches, creating a dramatic rim lighting effect on the tiger's fur. Shot from a low angle, the tiger's powerful form dominates the right third of the frame while snow-covered pines recede into the misty distance, creating depth."

OUTPUT FORMAT:
You MUST return a JSON object with this EXACT structure:
{
  "prompts": [
    {
      "sceneIndex": number (matching the input segment's index),
      "prompt": string (the complete scene description),
      "visualContinuity": {
        "elementsToMaintain": string[],
        "elementsToEvolve": string[]
      }
    }
  ]
}

CRITICAL REMINDERS:
1. You MUST generate EXACTLY one prompt for EACH segment
2. NEVER skip any segments
3. NEVER combine segments
4. NEVER use pronouns without clear antecedents
5. ALWAYS describe the complete setting
6. ALWAYS introduce subjects as if for the first time
7. ALWAYS include full visual context"""


class PromptAgent:
    """
    프롬프트 확장 단계
    """

    def __init__(self, chat_agent, store, settings: Optional[PipelineSettings] = None):
        self.chat_agent = chat_agent
        self.store = store
        self.settings = settings or PipelineSettings()

    @staticmethod
    def build_request(project: Project, style_prompt: str, aspect_ratio: str) -> Dict[str, Any]:
        return {
            "story": {
                "fullScript": project.final_script,
                "segments": [
                    {
                        "index": slot.index,
                        "text": slot.text_segment or "",
                        "description": slot.scene_description or "",
                        "timestamp": slot.timestamp or "",
                    }
                    for slot in project.ordered_slots()
                ],
            },
            "style": {
                "desiredStyle": style_prompt,
                "aspectRatio": aspect_ratio,
            },
        }

    @staticmethod
    def validate_response(data: Dict[str, Any], slot_count: int) -> PromptGenerationResponse:
        """
        LLM 응답 검증 경계.

        Returns:
            sceneIndex 순으로 정렬된 응답

        Raises:
            AdapterContractViolation: 스키마 위반 / 개수 불일치 / 잘못된·중복 sceneIndex
        """
        prompts = data.get("prompts")
        if not isinstance(prompts, list):
            raise AdapterContractViolation("Response is missing the 'prompts' array")
        if len(prompts) != slot_count:
            raise AdapterContractViolation(f"Expected {slot_count} prompts but got {len(prompts)}")

        try:
            response = PromptGenerationResponse.model_validate(data)
        except PydanticValidationError as e:
            raise AdapterContractViolation("Invalid prompt entry from OpenAI", details=str(e))

        seen = set()
        for position, item in enumerate(response.prompts):
            if item.scene_index < 0 or item.scene_index >= slot_count:
                raise AdapterContractViolation(
                    f"Invalid scene index {item.scene_index} at prompt {position}"
                )
            if item.scene_index in seen:
                raise AdapterContractViolation(
                    f"Duplicate scene index {item.scene_index} at prompt {position}"
                )
            seen.add(item.scene_index)

        response.prompts.sort(key=lambda p: p.scene_index)
        return response

    def expand_prompts(
        self,
        project_id: str,
        style_prompt: Optional[str] = None,
        aspect_ratio: Optional[str] = None,
    ) -> PromptGenerationResponse:
        """
        모든 슬롯의 imagePrompt / continuityMetadata 생성.

        Args:
            project_id: 프로젝트 ID
            style_prompt: 스타일 (기본: 승인된 stylePrompt)
            aspect_ratio: 비율 (기본: 프로젝트 aspectRatio)
        """
        project = self.store.get(project_id)
        style = style_prompt or project.style_prompt
        if not style:
            raise ValidationError("stylePrompt is required before prompt generation")
        slots = project.ordered_slots()
        if not slots:
            raise ValidationError("Project has no segments; run segmentation first")
        ratio = normalize_aspect_ratio(aspect_ratio or project.aspect_ratio)

        logger.info(f"[PromptAgent] Starting prompt generation for {len(slots)} slots")
        request = self.build_request(project, style, ratio)
        messages = [
            {"role": "system", "content": PROMPT_ENGINEER_SYSTEM_PROMPT},
            {"role": "user", "content": json.dumps(request, ensure_ascii=False)},
        ]
        raw = self.chat_agent.complete(messages, model=self.settings.prompt_model, json_mode=True)
        response = self.validate_response(parse_llm_json(raw, source="prompt expansion"), len(slots))

        updates = [
            (
                slots[item.scene_index].id,
                {
                    "image_prompt": item.prompt,
                    "continuity_metadata": item.visual_continuity,
                },
            )
            for item in response.prompts
        ]
        self.store.batch_update_slots(updates)
        logger.info(f"[PromptAgent] Saved {len(updates)} prompts for project {project_id}")
        return response
