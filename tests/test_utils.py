"""
Unit tests for small helpers: LLM JSON parsing, audio duration, error log.
"""
import pytest

from utils.audio_utils import calculate_audio_duration
from utils.error_manager import ErrorManager
from utils.errors import AdapterContractViolation
from utils.llm_utils import parse_llm_json, strip_code_fence
from utils.replicate_utils import output_to_url


class TestLlmJson:

    @pytest.mark.parametrize("raw", [
        '{"a": 1}',
        '```json\n{"a": 1}\n```',
        '```\n{"a": 1}\n```',
        '```json\n{"a": 1}',
    ])
    def test_code_fences(self, raw):
        assert parse_llm_json(raw) == {"a": 1}

    def test_strip_plain(self):
        assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'

    @pytest.mark.parametrize("raw", ["", "   ", "[1, 2]", "{broken"])
    def test_rejects(self, raw):
        with pytest.raises(AdapterContractViolation):
            parse_llm_json(raw)


class TestAudioDuration:

    def test_constant_bitrate(self):
        assert calculate_audio_duration(b"\x00" * 16384) == 1.0
        assert calculate_audio_duration(b"\x00" * 16384 * 33) == 33.0
        assert calculate_audio_duration(b"") == 0.0

    def test_bad_bitrate(self):
        with pytest.raises(ValueError):
            calculate_audio_duration(b"\x00", bitrate_bps=0)


class TestReplicateOutput:

    def test_output_to_url(self):
        assert output_to_url(None) is None
        assert output_to_url([]) is None
        assert output_to_url(["https://a", "https://b"]) == "https://a"


class TestErrorManager:

    def test_log_and_filter(self):
        ErrorManager.log_error("ImageAgent", "Prediction failed", project_id="p1", slot_id="s1")
        ErrorManager.log_error("PromptAgent", "Bad JSON", details="prompts missing", project_id="p2")

        assert len(ErrorManager.get_recent_errors()) == 2
        only_p2 = ErrorManager.get_recent_errors(project_id="p2")
        assert [e["service"] for e in only_p2] == ["PromptAgent"]
        assert only_p2[0]["details"] == "prompts missing"

    def test_rolling_limit(self, monkeypatch):
        monkeypatch.setattr(ErrorManager, "MAX_ENTRIES", 3)
        for i in range(5):
            ErrorManager.log_error("VideoAgent", f"error {i}")
        messages = {e["message"] for e in ErrorManager.get_recent_errors()}
        assert messages == {"error 2", "error 3", "error 4"}

    def test_clear(self):
        ErrorManager.log_error("VideoAgent", "boom")
        ErrorManager.clear_logs()
        assert ErrorManager.get_recent_errors() == []
