"""
SCRIPTCUT FastAPI Server

웹 UI와 Python 파이프라인을 연결하는 API 서버
WebSocket으로 일괄 이미지 생성 진행상황 전달
"""

import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional, Dict, Any, List

from dotenv import load_dotenv

# .env 파일 로드
load_dotenv()

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import Field

from config import load_settings
from pipeline import ScriptcutPipeline
from schemas import ChatMessage, Project
from schemas.models import CamelModel
from utils.errors import ScriptcutError, ValidationError
from utils.logger import get_logger
logger = get_logger("api_server")


# ============================================================================
# Request 모델 (camelCase JSON)
# ============================================================================

class ChatRequest(CamelModel):
    messages: List[ChatMessage] = Field(min_length=1)


class CreateProjectRequest(CamelModel):
    final_script: str


class UpdateProjectRequest(CamelModel):
    style_prompt: Optional[str] = None
    aspect_ratio: Optional[str] = None
    style_preview_url: Optional[str] = None


class TTSRequest(CamelModel):
    project_id: str
    voice_id: str
    text: Optional[str] = None


class SegmentRequest(CamelModel):
    project_id: str
    script: Optional[str] = None
    audio_duration: Optional[float] = None


class UpdateSlotRequest(CamelModel):
    image_prompt: Optional[str] = None
    image_url: Optional[str] = None


class PromptRequest(CamelModel):
    project_id: str
    style_prompt: Optional[str] = None
    aspect_ratio: Optional[str] = None


class SampleRequest(CamelModel):
    project_id: str
    style_prompt: str
    aspect_ratio: Optional[str] = None
    segment_text: Optional[str] = None
    scene_description: Optional[str] = None


class ApproveStyleRequest(CamelModel):
    project_id: str
    style_prompt: str
    aspect_ratio: Optional[str] = None


class ImageRequest(CamelModel):
    slot_id: str
    style_prompt: Optional[str] = None
    aspect_ratio: Optional[str] = None
    image_prompt: Optional[str] = Field(default=None, description="수정된 프롬프트 (재생성)")


class BulkImageRequest(CamelModel):
    project_id: str
    refresh_prompts: bool = True


class VideoRequest(CamelModel):
    slot_id: str
    prompt: Optional[str] = None


# ============================================================================
# WebSocket 진행상황 전달
# ============================================================================

class ProgressBroadcaster:
    """
    프로젝트별 WebSocket 연결과 이벤트 히스토리.

    재접속/새로고침 시 히스토리를 모두 다시 보내 상태를 복구합니다.
    """

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}
        self.history: Dict[str, List[Dict[str, Any]]] = {}

    async def send_progress(self, project_id: str, step: str, progress: int, message: str, data: Dict = None):
        """
        WebSocket으로 진행상황 전송

        Args:
            project_id: 프로젝트 ID
            step: 현재 단계 (prompts, image_0, image_1, ..., complete)
            progress: 진행률 (0-100)
            message: 상태 메시지
            data: 추가 데이터
        """
        payload = {
            "type": "progress",
            "step": step,
            "progress": progress,
            "message": message,
            "data": data or {},
            "timestamp": datetime.now().isoformat(),
        }
        self.history.setdefault(project_id, []).append(payload)

        for ws in list(self.active_connections.get(project_id, [])):
            try:
                await ws.send_json(payload)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug(f"[WS] send failed for {project_id}: {e}")
                self.disconnect(project_id, ws)

    def progress_callback(self, project_id: str):
        async def _callback(step: str, progress: int, message: str, data: Dict[str, Any]):
            await self.send_progress(project_id, step, progress, message, data)
        return _callback

    async def connect(self, project_id: str, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.setdefault(project_id, []).append(websocket)

        # 접속 시 지난 히스토리 모두 전송 (상태 복구)
        for event in self.history.get(project_id, []):
            await websocket.send_json(event)

    def disconnect(self, project_id: str, websocket: WebSocket):
        connections = self.active_connections.get(project_id, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.active_connections.pop(project_id, None)

    @property
    def connection_count(self) -> int:
        return sum(len(c) for c in self.active_connections.values())


# ============================================================================
# 응답 헬퍼
# ============================================================================

def project_json(project: Project) -> Dict[str, Any]:
    """프로젝트 + index 순 슬롯"""
    data = project.model_dump(mode="json", by_alias=True)
    data["slots"] = [s.model_dump(mode="json", by_alias=True) for s in project.ordered_slots()]
    return data


def get_pipeline(request: Request) -> ScriptcutPipeline:
    return request.app.state.pipeline


def get_broadcaster(request: Request) -> ProgressBroadcaster:
    return request.app.state.broadcaster


# ============================================================================
# 앱 생성
# ============================================================================

def create_app(pipeline: Optional[ScriptcutPipeline] = None) -> FastAPI:
    """
    FastAPI 앱 생성.

    Args:
        pipeline: 미리 구성된 파이프라인 (없으면 시작 시 환경변수로 구성,
                  API 키 누락이면 시작 거부)
    """
    settings = pipeline.settings if pipeline is not None else load_settings()
    upload_dir = os.path.join(settings.output_dir, "uploads")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        os.makedirs(upload_dir, exist_ok=True)
        if app.state.pipeline is None:
            app.state.pipeline = ScriptcutPipeline.from_env(settings)
        logger.info("[API] SCRIPTCUT server started")
        yield
        await app.state.pipeline.close()
        logger.info("[API] SCRIPTCUT server stopped")

    app = FastAPI(title="SCRIPTCUT API", version="1.0", lifespan=lifespan)
    app.state.pipeline = pipeline
    app.state.broadcaster = ProgressBroadcaster()

    # CORS 설정
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 내레이션 오디오 서빙
    app.mount("/uploads", StaticFiles(directory=upload_dir, check_dir=False), name="uploads")

    @app.exception_handler(ScriptcutError)
    async def scriptcut_error_handler(request: Request, exc: ScriptcutError):
        content = {"error": exc.message}
        if exc.details:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Missing required fields", "details": str(exc.errors())},
        )

    register_routes(app)
    return app


def register_routes(app: FastAPI):
    # ------------------------------------------------------------------
    # 채팅 / 음성
    # ------------------------------------------------------------------

    @app.post("/api/chat")
    async def chat(req: ChatRequest, pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        """스토리 멘토 채팅"""
        messages = [m.model_dump() for m in req.messages]
        return {"response": await pipeline.chat(messages)}

    @app.get("/api/voices")
    async def list_voices(pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        return {"voices": await pipeline.list_voices()}

    # ------------------------------------------------------------------
    # 프로젝트
    # ------------------------------------------------------------------

    @app.post("/api/projects")
    async def create_project(req: CreateProjectRequest, pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        return project_json(await pipeline.create_project(req.final_script))

    @app.get("/api/projects")
    async def list_projects(pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        return [project_json(p) for p in await pipeline.list_projects()]

    @app.get("/api/projects/{project_id}")
    async def get_project(project_id: str, pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        return project_json(await pipeline.get_project(project_id))

    @app.patch("/api/projects/{project_id}")
    async def update_project(
        project_id: str,
        req: UpdateProjectRequest,
        pipeline: ScriptcutPipeline = Depends(get_pipeline),
    ):
        """
        프로젝트 필드 직접 수정 (스타일 승인 절차를 거치지 않음).
        미리보기 URL을 바꾸면 샘플 출처 기록을 지워 이후 승인은 새 샘플을 요구.
        """
        fields = req.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationError("No fields to update")
        if "style_preview_url" in fields:
            fields.update(style_preview_prompt=None, style_preview_aspect_ratio=None)
        return project_json(await pipeline.update_project(project_id, **fields))

    @app.post("/api/tts")
    async def narrate(req: TTSRequest, pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        """최종 스크립트 내레이션 생성"""
        project = await pipeline.narrate(req.project_id, req.voice_id, req.text)
        return {
            "audioUrl": project.tts_audio_url,
            "duration": project.audio_duration,
            "project": project_json(project),
        }

    # ------------------------------------------------------------------
    # 세그먼트 / 슬롯
    # ------------------------------------------------------------------

    @app.post("/api/segments")
    async def create_segments(req: SegmentRequest, pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        project = await pipeline.segment(req.project_id, req.script, req.audio_duration)
        return project_json(project)

    @app.get("/api/segments/{project_id}")
    async def get_segments(project_id: str, pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        return project_json(await pipeline.get_project(project_id))

    @app.patch("/api/slots/{slot_id}")
    async def update_slot(slot_id: str, req: UpdateSlotRequest, pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        fields = {k: v for k, v in req.model_dump(exclude_unset=True).items() if v}
        if not fields:
            raise ValidationError("imagePrompt or imageUrl is required")
        slot = await pipeline.update_slot(slot_id, **fields)
        return slot.model_dump(mode="json", by_alias=True)

    # ------------------------------------------------------------------
    # 프롬프트 / 스타일 / 이미지
    # ------------------------------------------------------------------

    @app.post("/api/prompts/generate")
    async def generate_prompts(req: PromptRequest, pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        response = await pipeline.expand_prompts(req.project_id, req.style_prompt, req.aspect_ratio)
        return response.model_dump(mode="json", by_alias=True, exclude_none=True)

    @app.post("/api/images/sample")
    async def generate_sample(req: SampleRequest, pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        image_url = await pipeline.generate_sample(
            req.project_id, req.style_prompt, req.aspect_ratio, req.segment_text, req.scene_description
        )
        return {"imageUrl": image_url}

    @app.post("/api/style/approve")
    async def approve_style(req: ApproveStyleRequest, pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        project = await pipeline.approve_style(req.project_id, req.style_prompt, req.aspect_ratio)
        return project_json(project)

    @app.post("/api/images/generate")
    async def generate_image(req: ImageRequest, pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        slot = await pipeline.generate_image(req.slot_id, req.style_prompt, req.aspect_ratio, req.image_prompt)
        return {"imageUrl": slot.image_url, "slot": slot.model_dump(mode="json", by_alias=True)}

    @app.post("/api/images/bulk")
    async def generate_all_images(
        req: BulkImageRequest,
        pipeline: ScriptcutPipeline = Depends(get_pipeline),
        broadcaster: ProgressBroadcaster = Depends(get_broadcaster),
    ):
        """일괄 이미지 생성 (진행상황은 /ws/{projectId})"""
        result = await pipeline.generate_all_images(
            req.project_id,
            refresh_prompts=req.refresh_prompts,
            progress_callback=broadcaster.progress_callback(req.project_id),
        )
        return result.model_dump(mode="json", by_alias=True)

    # ------------------------------------------------------------------
    # 비디오
    # ------------------------------------------------------------------

    @app.post("/api/videos/generate")
    async def start_video(req: VideoRequest, pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        """비디오 작업 시작 (서버가 완료까지 폴링)"""
        slot = await pipeline.start_video(req.slot_id, req.prompt)
        return {
            "predictionId": slot.video_job_id,
            "status": slot.video_status,
            "slot": slot.model_dump(mode="json", by_alias=True),
        }

    @app.get("/api/videos/{prediction_id}")
    async def video_status(prediction_id: str, pipeline: ScriptcutPipeline = Depends(get_pipeline)):
        status = await pipeline.check_video_status(prediction_id)
        return status.model_dump(mode="json", by_alias=True)

    # ------------------------------------------------------------------
    # WebSocket / 헬스 체크
    # ------------------------------------------------------------------

    @app.websocket("/ws/{project_id}")
    async def websocket_endpoint(websocket: WebSocket, project_id: str):
        """WebSocket 연결 (실시간 진행상황)"""
        broadcaster: ProgressBroadcaster = websocket.app.state.broadcaster
        await broadcaster.connect(project_id, websocket)
        try:
            while True:
                # 클라이언트로부터 메시지 수신 (연결 유지용)
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_json({"type": "pong"})
        except WebSocketDisconnect:
            # 연결이 끊겨도 히스토리는 유지 (재접속 가능성)
            broadcaster.disconnect(project_id, websocket)

    @app.get("/health")
    async def health_check(request: Request):
        """헬스 체크"""
        pipeline = request.app.state.pipeline
        return {
            "status": "ok",
            "version": "1.0",
            "active_connections": request.app.state.broadcaster.connection_count,
            "active_video_jobs": len(pipeline.active_video_slots) if pipeline else 0,
        }


app = create_app()


if __name__ == "__main__":
    import uvicorn

    print("""
============================================================
              SCRIPTCUT API Server v1.0
============================================================
  Server: http://localhost:8000
  API Docs: http://localhost:8000/docs
============================================================
    """)

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "api_server:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        log_level="info"
    )
