"""
Replicate prediction 헬퍼

모델마다 output 형태가 다름 (str / list / FileOutput)
→ 하나의 URL 문자열로 정규화합니다.
"""

from typing import Any, Optional

from schemas import PredictionResult


def output_to_url(output: Any) -> Optional[str]:
    """Handle different output formats"""
    if output is None:
        return None
    if isinstance(output, str):
        return output or None
    if isinstance(output, (list, tuple)):
        return output_to_url(output[0]) if output else None
    if hasattr(output, "url"):
        # FileOutput object from Replicate
        return output.url
    return str(output)


def to_prediction_result(prediction: Any) -> PredictionResult:
    """replicate Prediction → PredictionResult"""
    error = getattr(prediction, "error", None)
    return PredictionResult(
        id=getattr(prediction, "id", None),
        status=getattr(prediction, "status", None) or "unknown",
        output_url=output_to_url(getattr(prediction, "output", None)),
        error=str(error) if error else None,
    )
