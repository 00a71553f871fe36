"""
Image Agent: 슬롯별 스틸 이미지 생성 (Replicate flux-1.1-pro).

- 허용되지 않은 aspect ratio는 제출 시점에 1:1로 대체
- 한 슬롯의 생성/재생성은 다른 슬롯을 건드리지 않음
- 실패한 prediction은 AdapterJobFailure (슬롯 단위)
"""

import os
from typing import Optional

import httpx
import replicate
from replicate.exceptions import ReplicateError

from schemas import PipelineSettings, PredictionResult, Slot
from utils.constants import VALID_ASPECT_RATIOS, DEFAULT_ASPECT_RATIO, NEGATIVE_PROMPT
from utils.errors import (
    AdapterJobFailure,
    MissingCredentialsError,
    TransientNetworkFailure,
    ValidationError,
)
from utils.replicate_utils import to_prediction_result
from utils.logger import get_logger
logger = get_logger("image_agent")


def normalize_aspect_ratio(aspect_ratio: Optional[str]) -> str:
    """허용 목록에 없으면 조용히 1:1로 대체"""
    return aspect_ratio if aspect_ratio in VALID_ASPECT_RATIOS else DEFAULT_ASPECT_RATIO


def composition_hint(aspect_ratio: str) -> str:
    if aspect_ratio == "9:16":
        return "vertical"
    if aspect_ratio == "16:9":
        return "horizontal"
    return "square"


def build_image_prompt(scene: str, text: str, style: str, aspect_ratio: str) -> str:
    ratio = normalize_aspect_ratio(aspect_ratio)
    return (
        f"{scene}. {text}. Style: {style}. Aspect ratio {ratio}, "
        f"composition optimized for {composition_hint(ratio)} format."
    )


def build_style_prompt(style: str, aspect_ratio: str) -> str:
    """씬 정보 없는 스타일 전용 샘플 프롬프트"""
    ratio = normalize_aspect_ratio(aspect_ratio)
    return (
        f"{style}. Aspect ratio {ratio}, "
        f"composition optimized for {composition_hint(ratio)} format."
    )


class ImageAgent:
    """
    이미지 생성 에이전트

    submit()은 prediction이 끝날 때까지 블로킹합니다.
    오케스트레이터가 executor에서 실행합니다.
    """

    def __init__(
        self,
        api_token: str = None,
        client=None,
        store=None,
        settings: Optional[PipelineSettings] = None,
    ):
        """
        Initialize Image Agent.

        Args:
            api_token: Replicate API token (기본: REPLICATE_API_TOKEN)
            client: 주입용 replicate.Client (테스트)
            store: ProjectStore
            settings: 모델 ID / 고정 파라미터
        """
        self.store = store
        self.settings = settings or PipelineSettings()
        if client is not None:
            self.client = client
            return

        self.replicate_token = api_token or os.getenv("REPLICATE_API_TOKEN")
        if not self.replicate_token:
            raise MissingCredentialsError(["REPLICATE_API_TOKEN"])
        self.client = replicate.Client(api_token=self.replicate_token)

    def submit(self, prompt: str, aspect_ratio: Optional[str]) -> PredictionResult:
        """
        Replicate prediction 생성 후 완료까지 대기.

        Raises:
            TransientNetworkFailure: 연결 실패 / 타임아웃
            AdapterJobFailure: Replicate API 오류
        """
        ratio = normalize_aspect_ratio(aspect_ratio)
        input_params = {
            "prompt": prompt,
            "aspect_ratio": ratio,
            "prompt_upsampling": True,
            "num_inference_steps": self.settings.num_inference_steps,
            "guidance_scale": self.settings.guidance_scale,
            "negative_prompt": NEGATIVE_PROMPT,
            "output_format": "png",
            "output_quality": self.settings.output_quality,
        }

        logger.info(f"[ImageAgent] Calling Replicate ({self.settings.image_model}) | ratio={ratio}")
        logger.debug(f"     Prompt: {prompt[:80]}...")
        try:
            prediction = self.client.predictions.create(model=self.settings.image_model, input=input_params)
            prediction.wait()
        except httpx.TransportError as e:
            raise TransientNetworkFailure(f"Replicate request failed: {e}")
        except ReplicateError as e:
            raise AdapterJobFailure(f"Replicate API error: {e}")

        return to_prediction_result(prediction)

    def _render(self, prompt: str, aspect_ratio: Optional[str]) -> str:
        result = self.submit(prompt, aspect_ratio)
        if result.succeeded:
            return result.output_url
        if result.error:
            raise AdapterJobFailure(f"Prediction failed: {result.error}")
        raise AdapterJobFailure("Prediction completed but no output was generated")

    def generate_sample_image(
        self,
        style_prompt: str,
        aspect_ratio: Optional[str],
        segment_text: Optional[str] = None,
        scene_description: Optional[str] = None,
    ) -> str:
        """
        스타일 샘플 이미지 생성. 어떤 슬롯도 변경하지 않습니다.

        Returns:
            샘플 이미지 URL
        """
        if not style_prompt or not style_prompt.strip():
            raise ValidationError("stylePrompt is required")

        if segment_text and scene_description:
            prompt = build_image_prompt(scene_description, segment_text, style_prompt, aspect_ratio)
        else:
            prompt = build_style_prompt(style_prompt, aspect_ratio)
        return self._render(prompt, aspect_ratio)

    def generate_image(
        self,
        slot_id: str,
        style_prompt: Optional[str] = None,
        aspect_ratio: Optional[str] = None,
    ) -> Slot:
        """
        슬롯 하나의 이미지 생성 후 imageUrl 기록.

        씬 부분은 imagePrompt가 있으면 그것을, 없으면 sceneDescription을 사용합니다.
        """
        slot = self.store.get_slot(slot_id)
        project = self.store.get(slot.project_id)

        style = style_prompt or project.style_prompt
        if not style:
            raise ValidationError("stylePrompt is required before image generation")
        ratio = aspect_ratio or project.aspect_ratio

        scene = slot.image_prompt or slot.scene_description
        prompt = build_image_prompt(scene, slot.text_segment, style, ratio)

        logger.info(f"[ImageAgent] Generating image for slot {slot.index} ({slot_id})")
        image_url = self._render(prompt, ratio)
        return self.store.update_slot(slot_id, image_url=image_url)

    def regenerate_image(self, slot_id: str, image_prompt: str) -> Slot:
        """수정된 프롬프트를 그 슬롯에만 저장하고 그 슬롯만 다시 생성"""
        if not image_prompt or not image_prompt.strip():
            raise ValidationError("imagePrompt is required")
        self.store.update_slot(slot_id, image_prompt=image_prompt)
        return self.generate_image(slot_id)
