"""
SCRIPTCUT Data Models (Pydantic Schemas)
"""

from .models import (
    VideoStatus,
    ContinuityMetadata,
    SlotDraft,
    Slot,
    Project,
    MUTABLE_SLOT_FIELDS,
    MUTABLE_PROJECT_FIELDS,
    SegmentItem,
    SegmentationResponse,
    GeneratedPrompt,
    PromptGenerationResponse,
    PredictionResult,
    SlotFailure,
    BulkImageResult,
    VideoJobStatus,
    ChatMessage,
    PipelineSettings,
)

__all__ = [
    "VideoStatus",
    "ContinuityMetadata",
    "SlotDraft",
    "Slot",
    "Project",
    "MUTABLE_SLOT_FIELDS",
    "MUTABLE_PROJECT_FIELDS",
    "SegmentItem",
    "SegmentationResponse",
    "GeneratedPrompt",
    "PromptGenerationResponse",
    "PredictionResult",
    "SlotFailure",
    "BulkImageResult",
    "VideoJobStatus",
    "ChatMessage",
    "PipelineSettings",
]
