"""
TTS Agent: 최종 스크립트 내레이션 생성.
ElevenLabs 전용. 오디오 바이트 길이로 재생 시간을 추정합니다.
"""

import os
import time
from typing import Optional, List, Dict, Any

import httpx
from elevenlabs import VoiceSettings
from elevenlabs.client import ElevenLabs
from elevenlabs.core.api_error import ApiError

from schemas import Project
from utils.audio_utils import calculate_audio_duration
from utils.constants import TTS_MODEL_ID, TTS_OUTPUT_FORMAT
from utils.errors import (
    AdapterJobFailure,
    MissingCredentialsError,
    TransientNetworkFailure,
    ValidationError,
)
from utils.logger import get_logger
logger = get_logger("tts_agent")


# Voice list cache
_voice_cache: Dict[str, Any] = {"data": None, "expires": 0}
VOICE_CACHE_TTL_SEC = 300

VOICE_STABILITY = 0.5
VOICE_SIMILARITY_BOOST = 0.75


class TTSAgent:
    """
    Generates narration audio using ElevenLabs TTS.

    synthesize()는 순수 어댑터 호출, narrate()는 저장 + 프로젝트 갱신까지 수행합니다.
    """

    def __init__(self, api_key: str = None, client=None, store=None, storage=None):
        """
        Initialize TTS Agent.

        Args:
            api_key: ElevenLabs API key (기본: ELEVENLABS_API_KEY)
            client: 주입용 ElevenLabs 클라이언트 (테스트)
            store: ProjectStore (narrate용)
            storage: StorageManager (narrate용)
        """
        self.store = store
        self.storage = storage
        if client is not None:
            self.client = client
            return

        self.elevenlabs_key = api_key or os.getenv("ELEVENLABS_API_KEY")
        if not self.elevenlabs_key:
            raise MissingCredentialsError(["ELEVENLABS_API_KEY"])
        self.client = ElevenLabs(api_key=self.elevenlabs_key)
        logger.info("[TTS Agent] Provider: ElevenLabs")

    def synthesize(self, text: str, voice_id: str) -> bytes:
        """
        텍스트 → mp3 바이트 (mp3_44100_128).

        Raises:
            TransientNetworkFailure: 연결 실패 / 타임아웃
            AdapterJobFailure: ElevenLabs가 오류를 반환
        """
        logger.info(f"  [TTS Agent] Generating speech (Voice: {voice_id[:8]}...)")
        logger.info(f"     Text: {text[:60]}...")
        try:
            audio_generator = self.client.text_to_speech.convert(
                voice_id=voice_id,
                text=text,
                model_id=TTS_MODEL_ID,
                output_format=TTS_OUTPUT_FORMAT,
                voice_settings=VoiceSettings(
                    stability=VOICE_STABILITY,
                    similarity_boost=VOICE_SIMILARITY_BOOST,
                ),
            )
            audio = b"".join(audio_generator)
        except httpx.TransportError as e:
            raise TransientNetworkFailure(f"ElevenLabs request failed: {e}")
        except ApiError as e:
            raise AdapterJobFailure(f"Failed to generate speech: {e.body}", details=str(e.status_code))

        if not audio:
            raise AdapterJobFailure("ElevenLabs returned empty audio")
        return audio

    def narrate(self, project_id: str, voice_id: str, text: Optional[str] = None) -> Project:
        """
        프로젝트 내레이션 생성 후 ttsAudioUrl / audioDuration 기록.

        Args:
            project_id: 프로젝트 ID
            voice_id: ElevenLabs voice ID
            text: 내레이션 텍스트 (기본: finalScript)

        Returns:
            갱신된 Project
        """
        if not voice_id:
            raise ValidationError("voiceId is required")
        project = self.store.get(project_id)
        text = text or project.final_script
        if not text or not text.strip():
            raise ValidationError("Text is required")

        audio = self.synthesize(text, voice_id)
        duration = calculate_audio_duration(audio)
        audio_url = self.storage.save_audio(project_id, audio)

        logger.info(f"     [TTS Agent] Audio saved: {audio_url} (duration: {duration:.2f}s)")
        return self.store.update(project_id, tts_audio_url=audio_url, audio_duration=duration)

    def get_available_voices(self) -> List[Dict[str, Any]]:
        """
        ElevenLabs 음성 목록 반환 (5분 캐시).

        Returns:
            [{"voice_id": "...", "name": "...", "category": "...",
              "preview_url": "...", "labels": {"gender": "male", "age": "young"}}]
        """
        global _voice_cache

        # Check cache
        if _voice_cache["data"] is not None and time.time() < _voice_cache["expires"]:
            return _voice_cache["data"]

        try:
            response = self.client.voices.get_all()
        except httpx.TransportError as e:
            raise TransientNetworkFailure(f"Failed to fetch voices: {e}")
        except ApiError as e:
            raise AdapterJobFailure(f"Failed to fetch voices: {e.body}", details=str(e.status_code))

        voices = []
        for v in response.voices:
            labels = v.labels if isinstance(getattr(v, "labels", None), dict) else {}
            voices.append({
                "voice_id": v.voice_id,
                "name": v.name,
                "category": getattr(v, "category", None) or "custom",
                "preview_url": getattr(v, "preview_url", None) or "",
                "labels": labels,
            })

        _voice_cache["data"] = voices
        _voice_cache["expires"] = time.time() + VOICE_CACHE_TTL_SEC

        logger.info(f"[TTS Agent] Loaded {len(voices)} voices from ElevenLabs")
        return voices
