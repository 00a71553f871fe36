"""
SCRIPTCUT Configuration Loader
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Iterable

from schemas import PipelineSettings
from utils.constants import REQUIRED_CREDENTIALS
from utils.errors import MissingCredentialsError

# 기본 설정 디렉토리
CONFIG_DIR = Path(__file__).parent

# 환경변수 → PipelineSettings 필드
_ENV_OVERRIDES = {
    "SCRIPTCUT_OUTPUT_DIR": "output_dir",
    "SCRIPTCUT_IMAGE_CONCURRENCY": "image_concurrency",
    "SCRIPTCUT_POLL_INTERVAL": "video_poll_interval_sec",
}


def load_pipeline_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    파이프라인 설정 원본 dict 로드

    Args:
        config_path: 설정 파일 경로 (기본: config/pipeline.yaml)

    Returns:
        설정 딕셔너리 (파일 없으면 빈 dict → 기본값 사용)
    """
    if config_path is None:
        config_path = CONFIG_DIR / "pipeline.yaml"

    if not os.path.exists(config_path):
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    return config.get("pipeline", config)


def load_settings(config_path: Optional[str] = None) -> PipelineSettings:
    """
    YAML + 환경변수 오버라이드를 합쳐 PipelineSettings 반환

    Raises:
        pydantic.ValidationError: 설정 값이 잘못된 경우
    """
    data = dict(load_pipeline_config(config_path))
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value not in (None, ""):
            data[field_name] = value
    return PipelineSettings(**data)


def require_credentials(names: Iterable[str] = REQUIRED_CREDENTIALS) -> None:
    """
    필수 API 키 확인. 하나라도 없으면 시작을 거부합니다.

    Raises:
        MissingCredentialsError: 누락된 환경변수 목록 포함
    """
    missing = [name for name in names if not os.getenv(name)]
    if missing:
        raise MissingCredentialsError(missing)
