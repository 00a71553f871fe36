"""
오디오 길이 추정

ElevenLabs mp3_44100_128 출력은 고정 비트레이트(128kbps)라고 가정하고
바이트 길이로 재생 시간을 계산합니다. 디코딩하지 않으므로 근사치입니다.
"""

from typing import Union

from utils.constants import TTS_BITRATE_BPS


def calculate_audio_duration(audio: Union[bytes, bytearray, memoryview], bitrate_bps: int = TTS_BITRATE_BPS) -> float:
    """
    Estimate the playback length of a constant-bitrate audio buffer.

    Args:
        audio: Raw audio bytes
        bitrate_bps: Bits per second of the encoding

    Returns:
        Duration in seconds, rounded to 2 decimals
    """
    if bitrate_bps <= 0:
        raise ValueError("bitrate_bps must be positive")
    duration = (len(audio) * 8) / bitrate_bps
    return round(duration, 2)
