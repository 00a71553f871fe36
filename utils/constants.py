"""
SCRIPTCUT 공통 상수 모듈

프로젝트 전체에서 반복 사용되는 상수를 단일 소스로 관리합니다.
"""

# ─── OpenAI 모델명 ────────────────────────────────────────
MODEL_CHAT = "gpt-4"
MODEL_SEGMENTATION = "gpt-4"
MODEL_PROMPT_EXPANSION = "gpt-4o"

# ─── Replicate 모델 ──────────────────────────────────────
MODEL_IMAGE = "black-forest-labs/flux-1.1-pro"
MODEL_VIDEO = "minimax/video-01"

# ─── ElevenLabs ──────────────────────────────────────────
TTS_MODEL_ID = "eleven_monolingual_v1"
TTS_OUTPUT_FORMAT = "mp3_44100_128"
TTS_BITRATE_BPS = 128 * 1024  # mp3_44100_128 고정 비트레이트 가정

# ─── 세그먼트 길이 (초) ───────────────────────────────────
MIN_SECONDS_PER_SEGMENT = 5
MAX_SECONDS_PER_SEGMENT = 7

# ─── 이미지 생성 ─────────────────────────────────────────
VALID_ASPECT_RATIOS = ("1:1", "16:9", "3:2", "2:3", "4:5", "5:4", "9:16", "3:4", "4:3")
DEFAULT_ASPECT_RATIO = "1:1"
NEGATIVE_PROMPT = "blurry, low quality, distorted, deformed"

# ─── 비디오 폴링 ─────────────────────────────────────────
VIDEO_POLL_INTERVAL_SEC = 5.0

# Replicate prediction 상태
PREDICTION_SUCCEEDED = "succeeded"
PREDICTION_FAILED = "failed"
PREDICTION_CANCELED = "canceled"
TERMINAL_PREDICTION_STATES = (PREDICTION_SUCCEEDED, PREDICTION_FAILED, PREDICTION_CANCELED)

REQUIRED_CREDENTIALS = ("OPENAI_API_KEY", "ELEVENLABS_API_KEY", "REPLICATE_API_TOKEN")
