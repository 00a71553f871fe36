"""
Video Agent: 슬롯 이미지를 첫 프레임으로 짧은 비디오 생성 (Replicate minimax/video-01).

submit/poll 방식:
- start_video: prediction 생성, 슬롯에 videoJobId 기록 후 PROCESSING
- check_status: job id로 슬롯을 찾아 결과 반영 (terminal 상태만)
주기적 폴링은 오케스트레이터(ScriptcutPipeline)가 담당합니다.
"""

import os
from typing import Optional

import httpx
import replicate
from replicate.exceptions import ReplicateError

from schemas import PipelineSettings, PredictionResult, Slot, VideoJobStatus, VideoStatus
from utils.constants import PREDICTION_SUCCEEDED, PREDICTION_FAILED, PREDICTION_CANCELED
from utils.errors import (
    AdapterJobFailure,
    MissingCredentialsError,
    NotFoundError,
    ScriptcutError,
    TransientNetworkFailure,
    ValidationError,
)
from utils.replicate_utils import to_prediction_result
from utils.logger import get_logger
logger = get_logger("video_agent")


class VideoAgent:
    """
    비디오 생성 에이전트
    """

    def __init__(
        self,
        api_token: str = None,
        client=None,
        store=None,
        settings: Optional[PipelineSettings] = None,
    ):
        """
        Initialize Video Agent.

        Args:
            api_token: Replicate API token (기본: REPLICATE_API_TOKEN)
            client: 주입용 replicate.Client (테스트)
            store: ProjectStore
            settings: 비디오 모델 ID
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

    # ------------------------------------------------------------------
    # Replicate 어댑터
    # ------------------------------------------------------------------

    def submit(self, prompt: str, first_frame_image: str) -> str:
        """prediction 생성 (대기하지 않음). Returns: job id"""
        try:
            prediction = self.client.predictions.create(
                model=self.settings.video_model,
                input={
                    "prompt": prompt,
                    "first_frame_image": first_frame_image,
                    "prompt_optimizer": True,
                },
            )
        except httpx.TransportError as e:
            raise TransientNetworkFailure(f"Replicate request failed: {e}")
        except ReplicateError as e:
            raise AdapterJobFailure(f"Failed to start video generation: {e}")

        if not prediction.id:
            raise AdapterJobFailure("Replicate returned a prediction without an id")
        return prediction.id

    def get_status(self, job_id: str) -> PredictionResult:
        try:
            prediction = self.client.predictions.get(job_id)
        except httpx.TransportError as e:
            raise TransientNetworkFailure(f"Replicate status check failed: {e}")
        except ReplicateError as e:
            raise AdapterJobFailure(f"Failed to check prediction status: {e}")
        return to_prediction_result(prediction)

    # ------------------------------------------------------------------
    # 단계 연산
    # ------------------------------------------------------------------

    def start_video(self, slot_id: str, prompt: Optional[str] = None) -> Slot:
        """
        슬롯 비디오 작업 시작.

        프롬프트 기본값: videoPrompt → imagePrompt → sceneDescription.
        제출 자체가 실패하면 슬롯을 FAILED로 표시하고 오류를 다시 던집니다.
        """
        slot = self.store.get_slot(slot_id)
        if not slot.image_url:
            raise ValidationError(f"Slot {slot.index} has no image; generate an image first")

        prompt = prompt or slot.video_prompt or slot.image_prompt or slot.scene_description
        if not prompt:
            raise ValidationError("Video prompt is required")

        logger.info(f"[VideoAgent] Starting video for slot {slot.index} ({slot_id})")
        try:
            job_id = self.submit(prompt, slot.image_url)
        except ScriptcutError:
            self.store.update_slot(slot_id, video_prompt=prompt, video_status=VideoStatus.FAILED)
            raise

        logger.info(f"[VideoAgent] Prediction {job_id} created for slot {slot.index}")
        return self.store.update_slot(
            slot_id,
            video_job_id=job_id,
            video_prompt=prompt,
            video_status=VideoStatus.PROCESSING,
            video_url=None,
        )

    def check_status(self, job_id: str) -> VideoJobStatus:
        """
        prediction 상태 확인 후 해당 job을 가진 슬롯에 반영.

        - succeeded → videoUrl, COMPLETED
        - failed / canceled → FAILED
        - 그 외 → 변경 없음

        Raises:
            NotFoundError: 이 job id를 가진 슬롯 없음
        """
        slot = self.store.find_slot_by_job_id(job_id)
        if slot is None:
            raise NotFoundError(f"No slot tracks prediction {job_id}")

        result = self.get_status(job_id)
        status = VideoJobStatus(
            job_id=job_id,
            status=result.status,
            output_url=result.output_url,
            error=result.error,
            slot=slot,
        )

        if result.status == PREDICTION_SUCCEEDED and result.output_url:
            fields = {"video_url": result.output_url, "video_status": VideoStatus.COMPLETED}
        elif result.status in (PREDICTION_SUCCEEDED, PREDICTION_FAILED, PREDICTION_CANCELED):
            if result.status == PREDICTION_SUCCEEDED:
                status.error = "Prediction completed but no output was generated"
            fields = {"video_status": VideoStatus.FAILED}
        else:
            return status

        # 그 사이 새 작업이 시작됐으면 반영하지 않음
        current = self.store.get_slot(slot.id)
        if current.video_job_id != job_id:
            logger.info(f"[VideoAgent] Ignoring stale prediction {job_id} for slot {slot.index}")
            status.slot = current
            return status

        status.slot = self.store.update_slot(slot.id, **fields)
        status.applied = True
        logger.info(f"[VideoAgent] Slot {slot.index}: prediction {job_id} → {result.status}")
        return status
