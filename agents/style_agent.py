"""
Style Agent: 스타일 샘플 생성과 승인.

- 샘플: 이미지 1장 생성, 슬롯은 건드리지 않음. 프로젝트에 미리보기 캐시
- 승인: 현재 값으로 만든 샘플이 있어야 함 (프롬프트/비율 수정 시 다시 샘플링)
"""

from typing import Optional

from schemas import Project
from agents.image_agent import normalize_aspect_ratio
from utils.errors import ValidationError
from utils.logger import get_logger
logger = get_logger("style_agent")


class StyleAgent:
    """
    스타일 보정 단계

    프로젝트 전체에 적용될 시각 스타일(stylePrompt + aspectRatio)을
    샘플 이미지로 확인한 뒤 확정합니다.
    """

    def __init__(self, image_agent, store):
        self.image_agent = image_agent
        self.store = store

    def generate_sample(
        self,
        project_id: str,
        style_prompt: str,
        aspect_ratio: Optional[str],
        segment_text: Optional[str] = None,
        scene_description: Optional[str] = None,
    ) -> str:
        """
        스타일 샘플 이미지 생성.

        Args:
            project_id: 프로젝트 ID
            style_prompt: 스타일 설명
            aspect_ratio: 요청 비율 (허용 목록 밖이면 1:1)
            segment_text / scene_description: 둘 다 있을 때만 씬 문맥 포함

        Returns:
            샘플 이미지 URL (stylePreviewUrl로도 저장됨)
        """
        if not style_prompt or not style_prompt.strip():
            raise ValidationError("stylePrompt is required")
        self.store.get(project_id)

        logger.info(f"[StyleAgent] Generating style sample for project {project_id}")
        image_url = self.image_agent.generate_sample_image(
            style_prompt,
            aspect_ratio,
            segment_text=segment_text,
            scene_description=scene_description,
        )

        self.store.update(
            project_id,
            style_preview_url=image_url,
            style_preview_prompt=style_prompt,
            style_preview_aspect_ratio=normalize_aspect_ratio(aspect_ratio),
        )
        logger.info(f"[StyleAgent] Sample ready: {image_url[:60]}...")
        return image_url

    def approve_style(self, project_id: str, style_prompt: str, aspect_ratio: Optional[str]) -> Project:
        """
        샘플로 확인한 스타일을 프로젝트 스타일로 확정.

        Raises:
            ValidationError: 샘플 없음 / 샘플 이후 프롬프트나 비율이 바뀜
        """
        if not style_prompt or not style_prompt.strip():
            raise ValidationError("stylePrompt is required")

        project = self.store.get(project_id)
        ratio = normalize_aspect_ratio(aspect_ratio)

        if not project.style_preview_url:
            raise ValidationError("Generate a style sample before approving")
        if project.style_preview_prompt != style_prompt or project.style_preview_aspect_ratio != ratio:
            raise ValidationError("Style changed since the last sample; generate a new sample first")

        logger.info(f"[StyleAgent] Style approved for project {project_id} ({ratio})")
        return self.store.update(project_id, style_prompt=style_prompt, aspect_ratio=ratio)
