"""
SCRIPTCUT 통합 파이프라인

스토리 → 세그먼트 → 스타일 → 프롬프트 → 이미지 → 비디오.
각 단계는 결과를 ProjectStore에 독립적으로 저장하므로 어느 경계에서든 재개 가능.

실행 플로우:
1. TTSAgent - 최종 스크립트 내레이션 (audioDuration)
2. SegmentAgent - 타임드 세그먼트(슬롯) 생성
3. StyleAgent - 스타일 샘플 / 승인
4. PromptAgent - 슬롯별 이미지 프롬프트 확장
5. ImageAgent - 슬롯별 이미지 (일괄: 슬롯 단위 실패 허용)
6. VideoAgent - 슬롯별 비디오 작업 + 백그라운드 폴링
"""

import asyncio
import functools
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from config import load_settings, require_credentials
from schemas import (
    BulkImageResult,
    PipelineSettings,
    Project,
    PromptGenerationResponse,
    Slot,
    SlotFailure,
    VideoJobStatus,
    VideoStatus,
)
from agents import (
    ChatAgent,
    TTSAgent,
    SegmentAgent,
    StyleAgent,
    PromptAgent,
    ImageAgent,
    VideoAgent,
)
from store import ProjectStore
from utils.error_manager import ErrorManager
from utils.errors import (
    AdapterContractViolation,
    AdapterJobFailure,
    NotFoundError,
    ScriptcutError,
    TransientNetworkFailure,
    ValidationError,
)
from utils.storage import StorageManager
from utils.logger import get_logger
logger = get_logger("pipeline")


# ErrorManager에 기록하는 오류 (요청 오류는 제외)
_RECORDED_ERRORS = (AdapterContractViolation, AdapterJobFailure, TransientNetworkFailure)

ProgressCallback = Callable[[str, int, str, Dict[str, Any]], Union[None, Awaitable[None]]]


class ScriptcutPipeline:
    """
    SCRIPTCUT 오케스트레이터

    단계 구현은 동기 코드이고, 여기서 기본 executor로 실행합니다.
    슬롯별 비디오 폴링 태스크를 소유하며 close()에서 모두 취소합니다.
    """

    def __init__(
        self,
        store: ProjectStore,
        chat_agent: ChatAgent,
        tts_agent: TTSAgent,
        segment_agent: SegmentAgent,
        style_agent: StyleAgent,
        prompt_agent: PromptAgent,
        image_agent: ImageAgent,
        video_agent: VideoAgent,
        settings: Optional[PipelineSettings] = None,
    ):
        self.store = store
        self.chat_agent = chat_agent
        self.tts_agent = tts_agent
        self.segment_agent = segment_agent
        self.style_agent = style_agent
        self.prompt_agent = prompt_agent
        self.image_agent = image_agent
        self.video_agent = video_agent
        self.settings = settings or PipelineSettings()

        # slot_id → 폴링 태스크
        self._video_tasks: Dict[str, asyncio.Task] = {}

    @classmethod
    def from_env(cls, settings: Optional[PipelineSettings] = None) -> "ScriptcutPipeline":
        """
        환경변수 / config/pipeline.yaml로 전체 파이프라인 구성.

        Raises:
            MissingCredentialsError: 필수 API 키 누락
        """
        require_credentials()
        settings = settings or load_settings()
        ErrorManager.configure(settings.output_dir)

        store = ProjectStore(settings.output_dir)
        storage = StorageManager(settings.output_dir)
        chat_agent = ChatAgent(model=settings.chat_model)
        image_agent = ImageAgent(store=store, settings=settings)

        logger.info(f"[Pipeline] Output dir: {settings.output_dir} | image concurrency: {settings.image_concurrency}")
        return cls(
            store=store,
            chat_agent=chat_agent,
            tts_agent=TTSAgent(store=store, storage=storage),
            segment_agent=SegmentAgent(chat_agent, store, settings),
            style_agent=StyleAgent(image_agent, store),
            prompt_agent=PromptAgent(chat_agent, store, settings),
            image_agent=image_agent,
            video_agent=VideoAgent(store=store, settings=settings),
            settings=settings,
        )

    # ------------------------------------------------------------------
    # 실행 헬퍼
    # ------------------------------------------------------------------

    async def _run(self, func: Callable, *args, **kwargs):
        """블로킹 호출을 기본 executor에서 실행"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def _stage(
        self,
        service: str,
        func: Callable,
        *args,
        project_id: Optional[str] = None,
        slot_id: Optional[str] = None,
        **kwargs,
    ):
        """단계 실행. 어댑터 오류는 ErrorManager에 기록 후 그대로 전파"""
        try:
            return await self._run(func, *args, **kwargs)
        except _RECORDED_ERRORS as e:
            ErrorManager.log_error(service, e.message, e.details, project_id=project_id, slot_id=slot_id)
            raise

    @staticmethod
    async def _notify(callback: Optional[ProgressCallback], step: str, progress: int, message: str, data: Dict[str, Any] = None):
        if callback is None:
            return
        result = callback(step, progress, message, data or {})
        if inspect.isawaitable(result):
            await result

    # ------------------------------------------------------------------
    # 프로젝트 / 채팅 / 내레이션
    # ------------------------------------------------------------------

    async def chat(self, messages: List[Dict[str, str]]) -> str:
        return await self._stage("ChatAgent", self.chat_agent.reply, messages)

    async def list_voices(self) -> List[Dict[str, Any]]:
        return await self._stage("TTSAgent", self.tts_agent.get_available_voices)

    async def create_project(self, final_script: str) -> Project:
        return await self._run(self.store.create, final_script)

    async def get_project(self, project_id: str) -> Project:
        return await self._run(self.store.get, project_id)

    async def list_projects(self) -> List[Project]:
        return await self._run(self.store.list_projects)

    async def update_project(self, project_id: str, **fields) -> Project:
        return await self._run(self.store.update, project_id, **fields)

    async def update_slot(self, slot_id: str, **fields) -> Slot:
        return await self._run(self.store.update_slot, slot_id, **fields)

    async def narrate(self, project_id: str, voice_id: str, text: Optional[str] = None) -> Project:
        return await self._stage(
            "TTSAgent", self.tts_agent.narrate, project_id, voice_id, text, project_id=project_id
        )

    # ------------------------------------------------------------------
    # 세그먼트 / 스타일 / 프롬프트
    # ------------------------------------------------------------------

    async def segment(
        self,
        project_id: str,
        script: Optional[str] = None,
        audio_duration: Optional[float] = None,
    ) -> Project:
        """슬롯 전체 교체. 기존 슬롯의 비디오 폴링은 취소"""
        old_slots = (await self._run(self.store.get, project_id)).slots
        project = await self._stage(
            "SegmentAgent", self.segment_agent.segment, project_id, script, audio_duration,
            project_id=project_id,
        )
        for slot in old_slots:
            self.cancel_video_polling(slot.id)
        return project

    async def generate_sample(
        self,
        project_id: str,
        style_prompt: str,
        aspect_ratio: Optional[str],
        segment_text: Optional[str] = None,
        scene_description: Optional[str] = None,
    ) -> str:
        return await self._stage(
            "StyleAgent", self.style_agent.generate_sample,
            project_id, style_prompt, aspect_ratio, segment_text, scene_description,
            project_id=project_id,
        )

    async def approve_style(self, project_id: str, style_prompt: str, aspect_ratio: Optional[str]) -> Project:
        return await self._run(self.style_agent.approve_style, project_id, style_prompt, aspect_ratio)

    async def expand_prompts(
        self,
        project_id: str,
        style_prompt: Optional[str] = None,
        aspect_ratio: Optional[str] = None,
    ) -> PromptGenerationResponse:
        return await self._stage(
            "PromptAgent", self.prompt_agent.expand_prompts, project_id, style_prompt, aspect_ratio,
            project_id=project_id,
        )

    # ------------------------------------------------------------------
    # 이미지
    # ------------------------------------------------------------------

    async def generate_image(
        self,
        slot_id: str,
        style_prompt: Optional[str] = None,
        aspect_ratio: Optional[str] = None,
        image_prompt: Optional[str] = None,
    ) -> Slot:
        """슬롯 하나 생성. image_prompt가 주어지면 그 슬롯만 프롬프트 저장 후 재생성"""
        if image_prompt is not None:
            return await self._stage(
                "ImageAgent", self.image_agent.regenerate_image, slot_id, image_prompt, slot_id=slot_id
            )
        return await self._stage(
            "ImageAgent", self.image_agent.generate_image, slot_id, style_prompt, aspect_ratio,
            slot_id=slot_id,
        )

    async def generate_all_images(
        self,
        project_id: str,
        refresh_prompts: bool = True,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BulkImageResult:
        """
        프로젝트 전체 이미지 일괄 생성.

        - stylePrompt 필수
        - refresh_prompts이거나 imagePrompt 없는 슬롯이 있으면 프롬프트 확장 먼저 실행
          (확장 실패는 전체 중단)
        - 슬롯은 index 순, 동시 실행 수는 settings.image_concurrency (기본 1 = 순차)
        - 슬롯 단위 실패는 기록하고 계속 진행

        Returns:
            BulkImageResult (성공/실패 정확한 개수)
        """
        project = await self._run(self.store.get, project_id)
        if not project.style_prompt:
            raise ValidationError("Approve a style before generating images")
        if not project.slots:
            raise ValidationError("Project has no segments; run segmentation first")

        needs_prompts = refresh_prompts or any(not s.image_prompt for s in project.slots)
        if needs_prompts:
            await self._notify(progress_callback, "prompts", 5, "Generating image prompts...")
            await self.expand_prompts(project_id)

        slots = (await self._run(self.store.get, project_id)).ordered_slots()
        total = len(slots)
        result = BulkImageResult(project_id=project_id, total=total, prompts_refreshed=needs_prompts)
        semaphore = asyncio.Semaphore(self.settings.image_concurrency)
        done = 0

        async def _generate(slot: Slot) -> Optional[SlotFailure]:
            nonlocal done
            async with semaphore:
                await self._notify(
                    progress_callback, f"image_{slot.index}", 10 + int(done / total * 85),
                    f"Generating image {slot.index + 1}/{total}...", {"slot_id": slot.id},
                )
                try:
                    updated = await self.generate_image(slot.id)
                except ScriptcutError as e:
                    logger.warning(f"[Pipeline] Slot {slot.index} image failed: {e.message}")
                    failure = SlotFailure(index=slot.index, slot_id=slot.id, error=e.message)
                except Exception as e:
                    logger.error(f"[Pipeline] Slot {slot.index} image crashed: {e!r}")
                    ErrorManager.log_error(
                        "ImageAgent", f"Unexpected error: {e}", type(e).__name__,
                        project_id=project_id, slot_id=slot.id,
                    )
                    failure = SlotFailure(index=slot.index, slot_id=slot.id, error=str(e) or type(e).__name__)
                else:
                    failure = None
                done += 1
                await self._notify(
                    progress_callback, f"image_{slot.index}", 10 + int(done / total * 85),
                    f"Image {slot.index + 1}/{total} {'failed' if failure else 'done'}",
                    {
                        "slot_id": slot.id,
                        "image_url": None if failure else updated.image_url,
                        "error": failure.error if failure else None,
                    },
                )
                return failure

        failures = await asyncio.gather(*(_generate(slot) for slot in slots))

        for slot, failure in zip(slots, failures):
            if failure is None:
                result.succeeded.append(slot.index)
            else:
                result.failures.append(failure)

        logger.info(
            f"[Pipeline] Bulk images for {project_id}: "
            f"{result.success_count} succeeded, {result.failure_count} failed"
        )
        await self._notify(
            progress_callback, "complete", 100, "Image generation finished",
            result.model_dump(mode="json", by_alias=True),
        )
        return result

    # ------------------------------------------------------------------
    # 비디오
    # ------------------------------------------------------------------

    async def start_video(self, slot_id: str, prompt: Optional[str] = None) -> Slot:
        """
        비디오 작업 시작 후 슬롯 폴링 태스크 등록.

        같은 슬롯의 이전 폴링 태스크는 취소됩니다.
        """
        try:
            slot = await self._stage("VideoAgent", self.video_agent.start_video, slot_id, prompt, slot_id=slot_id)
        except (ValidationError, NotFoundError):
            raise
        except ScriptcutError:
            # 슬롯은 이미 FAILED, 이전 작업은 더 이상 추적하지 않음
            self.cancel_video_polling(slot_id)
            raise

        self.cancel_video_polling(slot_id)
        task = asyncio.create_task(self._poll_video(slot_id, slot.video_job_id))
        self._video_tasks[slot_id] = task
        task.add_done_callback(functools.partial(self._forget_task, slot_id))
        return slot

    def _forget_task(self, slot_id: str, task: asyncio.Task):
        if self._video_tasks.get(slot_id) is task:
            del self._video_tasks[slot_id]

    async def check_video_status(self, job_id: str) -> VideoJobStatus:
        return await self._stage("VideoAgent", self.video_agent.check_status, job_id)

    async def _poll_video(self, slot_id: str, job_id: str):
        """terminal 상태가 될 때까지 고정 간격으로 상태 확인 (타임아웃 / 백오프 없음)"""
        interval = self.settings.video_poll_interval_sec
        logger.info(f"[Pipeline] Polling prediction {job_id} for slot {slot_id} every {interval}s")
        while True:
            await asyncio.sleep(interval)
            try:
                status = await self.check_video_status(job_id)
            except Exception as e:
                logger.error(f"[Pipeline] Polling {job_id} failed: {e}")
                ErrorManager.log_error("VideoAgent", f"Polling failed: {e}", slot_id=slot_id)
                await self._run(self._mark_video_failed, slot_id, job_id)
                return

            if status.terminal:
                logger.info(f"[Pipeline] Prediction {job_id} finished: {status.status}")
                return
            if status.slot is not None and status.slot.video_job_id != job_id:
                return

    def _mark_video_failed(self, slot_id: str, job_id: str):
        try:
            slot = self.store.get_slot(slot_id)
        except NotFoundError:
            # 재세그멘테이션으로 슬롯이 사라짐
            logger.info(f"[Pipeline] Slot {slot_id} no longer exists; dropping prediction {job_id}")
            return
        if slot.video_job_id == job_id:
            self.store.update_slot(slot_id, video_status=VideoStatus.FAILED)

    def cancel_video_polling(self, slot_id: str) -> bool:
        task = self._video_tasks.pop(slot_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info(f"[Pipeline] Cancelled video polling for slot {slot_id}")
        return True

    async def wait_for_video(self, slot_id: str) -> Slot:
        """슬롯 폴링 태스크가 끝날 때까지 대기 (CLI용)"""
        task = self._video_tasks.get(slot_id)
        if task is not None:
            await task
        return await self._run(self.store.get_slot, slot_id)

    @property
    def active_video_slots(self) -> List[str]:
        return [slot_id for slot_id, task in self._video_tasks.items() if not task.done()]

    async def close(self):
        """모든 폴링 태스크 취소 (서버 종료 / CLI 종료)"""
        tasks = list(self._video_tasks.values())
        self._video_tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"[Pipeline] Cancelled {len(tasks)} video polling task(s)")
