"""
Chat Agent: OpenAI chat completions 어댑터 + 스토리 멘토 대화.

모든 텍스트 생성 단계(세그멘테이션, 프롬프트 확장)가 이 어댑터의
complete()를 공유합니다.
"""

import os
from typing import Dict, List, Optional

from openai import OpenAI, APIConnectionError, APITimeoutError, APIStatusError

from utils.constants import MODEL_CHAT
from utils.errors import (
    AdapterContractViolation,
    MissingCredentialsError,
    TransientNetworkFailure,
    ValidationError,
)
from utils.logger import get_logger
logger = get_logger("chat_agent")


SYSTEM_PROMPT = """You are a story-writing mentor helping users develop short stories for narration. Your role is to guide the user through a structured story development process.

INITIAL CONVERSATION:
When starting a new conversation, always ask about:
1. Genre preferences (e.g., horror, fantasy, drama)
2. Desired tone (e.g., dark, lighthearted, mysterious)
3. Target length (2-5 minutes when narrated)
4. Any specific themes or elements they want to include

ONGOING CONVERSATION:
For each user message:
1. Acknowledge their input
2. Ask 1-2 specific questions about unclear elements
3. Provide constructive suggestions for improvement
4. Keep track of established story elements

STORY ELEMENTS TO TRACK:
- Genre and tone
- Main characters
- Setting
- Core conflict
- Plot points
- Desired ending type

WHEN USER IS SATISFIED:
1. Confirm they want the final version
2. Provide a polished, well-structured draft
3. Remind them to copy it to the "Final Script" box

Keep responses concise and focused. Use a friendly, encouraging tone while maintaining professional guidance.

Remember to maintain story coherence and pacing suitable for narration."""

CHAT_MAX_TOKENS = 500


class ChatAgent:
    """
    OpenAI 텍스트 생성 어댑터.

    재시도 없음: 연결/타임아웃 오류는 TransientNetworkFailure로 그대로 전파됩니다.
    """

    def __init__(self, api_key: str = None, model: str = MODEL_CHAT, client=None):
        """
        Initialize Chat Agent.

        Args:
            api_key: OpenAI API key (기본: OPENAI_API_KEY)
            model: 기본 채팅 모델
            client: 주입용 OpenAI 클라이언트 (테스트)
        """
        self.model = model
        if client is not None:
            self.client = client
            return

        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise MissingCredentialsError(["OPENAI_API_KEY"])
        self.client = OpenAI(api_key=self.api_key)

    def complete(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> str:
        """
        Chat completion 한 번 호출하고 응답 텍스트를 반환.

        Raises:
            TransientNetworkFailure: 연결 실패 / 타임아웃
            AdapterContractViolation: 빈 응답 또는 API 오류 응답
        """
        model = model or self.model
        kwargs = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        logger.debug(f"[ChatAgent] Request: model={model}, messages={len(messages)}, json={json_mode}")
        try:
            response = self.client.chat.completions.create(**kwargs)
        except (APIConnectionError, APITimeoutError) as e:
            raise TransientNetworkFailure(f"OpenAI request failed: {e}")
        except APIStatusError as e:
            raise AdapterContractViolation(f"OpenAI API error ({e.status_code}): {e.message}")

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AdapterContractViolation("No response content from OpenAI")
        return content

    def reply(self, messages: List[Dict[str, str]]) -> str:
        """
        스토리 멘토 답변.

        대화의 첫 메시지일 때만 멘토 시스템 프롬프트를 앞에 붙입니다.
        """
        if not messages:
            raise ValidationError("Messages array is required")

        full_messages = list(messages)
        if len(full_messages) == 1:
            full_messages = [{"role": "system", "content": SYSTEM_PROMPT}] + full_messages

        logger.info(f"[ChatAgent] Chat reply ({len(messages)} messages)")
        return self.complete(full_messages, model=self.model, max_tokens=CHAT_MAX_TOKENS)
