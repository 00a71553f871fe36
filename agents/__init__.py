"""
SCRIPTCUT Agents Package

에이전트 기반 아키텍처:
- ChatAgent: OpenAI 텍스트 생성 어댑터 + 스토리 멘토 채팅
- TTSAgent: ElevenLabs 내레이션
- SegmentAgent: 스크립트 → 타임드 세그먼트(슬롯)
- StyleAgent: 스타일 샘플 / 승인
- PromptAgent: 슬롯별 이미지 프롬프트 확장
- ImageAgent: Replicate 이미지 생성
- VideoAgent: Replicate 비디오 생성 (submit / poll)
"""

from .chat_agent import ChatAgent
from .tts_agent import TTSAgent
from .segment_agent import SegmentAgent
from .style_agent import StyleAgent
from .prompt_agent import PromptAgent
from .image_agent import ImageAgent
from .video_agent import VideoAgent

__all__ = [
    "ChatAgent",
    "TTSAgent",
    "SegmentAgent",
    "StyleAgent",
    "PromptAgent",
    "ImageAgent",
    "VideoAgent",
]
