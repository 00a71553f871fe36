"""
LLM 응답 파싱 유틸리티

OpenAI가 반환하는 (가끔 마크다운으로 래핑된) JSON을 안전하게 파싱합니다.
파싱 실패는 AdapterContractViolation으로 변환됩니다.
"""
import json
from typing import Any, Dict

from utils.errors import AdapterContractViolation


def strip_code_fence(text: str) -> str:
    """마크다운 코드블록 제거.

    지원 패턴:
      - ```json ... ```
      - ``` ... ```
      - 순수 JSON
    """
    text = text.strip()
    if text.startswith("```"):
        parts = text.split("```")
        if len(parts) >= 3:
            inner = parts[1]
            if inner.startswith("json"):
                inner = inner[4:]
            text = inner.strip()
        else:
            # 닫는 ``` 없는 경우 fallback
            text = text.split("\n", 1)[1] if "\n" in text else text[3:]
            if text.endswith("```"):
                text = text[:-3]
            text = text.strip()
    return text


def parse_llm_json(text: str, source: str = "LLM") -> Dict[str, Any]:
    """LLM 응답을 JSON object로 파싱. 객체가 아니면 계약 위반."""
    if not text or not text.strip():
        raise AdapterContractViolation(f"Empty response from {source}")
    try:
        data = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise AdapterContractViolation(f"Invalid JSON from {source}: {e}")
    if not isinstance(data, dict):
        raise AdapterContractViolation(
            f"Expected a JSON object from {source}, got {type(data).__name__}"
        )
    return data
