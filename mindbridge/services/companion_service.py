"""Companion Service - The AI chat companion.

This module handles:
- Crisis keyword screening before any model call
- Prompt assembly (therapist context + recent history + latest message)
- Mapping provider failures to supportive, user-facing replies

Interface Contract:
- reply(messages) -> CompanionReply
- Raises CompanionServiceError only for malformed input; provider failures
  become a friendly reply instead
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import config
from mindbridge.services.errors import ServiceError
from mindbridge.services.llm_service import LLMServiceError

logger = logging.getLogger(__name__)

CRISIS_KEYWORDS = (
    "suicide",
    "kill myself",
    "end it all",
    "no reason to live",
    "hurt myself",
    "self-harm",
    "abuse",
    "emergency",
)

THERAPY_CONTEXT = """You are an empathetic and professional AI therapist. Your responses should be:
- Compassionate and understanding
- Non-judgmental
- Focused on active listening
- Encouraging but not prescriptive
- Professional while maintaining warmth

Guidelines:
1. Always maintain appropriate therapeutic boundaries
2. Suggest professional help when needed
3. Focus on emotional support and understanding
4. Use natural, conversational language
5. Acknowledge and validate feelings
6. Avoid giving direct advice unless specifically asked
7. Keep responses concise but meaningful
8. Be patient and understanding

Safety Protocol:
1. If the user expresses thoughts of self-harm or suicide, immediately provide crisis resources
2. If the user mentions abuse or dangerous situations, encourage seeking professional help
3. Maintain appropriate boundaries and avoid enabling harmful behaviors
4. Always prioritize user safety and well-being

Remember: This is for supportive conversations only and should not replace professional mental health services."""

CRISIS_RESPONSE = """I'm concerned about what you're sharing. Your safety is important, and I want to make sure you have access to professional help:

1. National Crisis Hotline (24/7): 988
2. Crisis Text Line: Text HOME to 741741
3. Emergency Services: 911

These services are free, confidential, and available 24/7. Would you like me to help you find local mental health resources?"""

FALLBACK_RESPONSE = """I'm here to support you, but my AI service is currently undergoing maintenance.

In the meantime, I can still listen and provide a space for you to share your thoughts. Please know that help is always available through resources like the National Crisis Hotline (988) or Crisis Text Line (Text HOME to 741741).

Our team is working to restore full functionality as soon as possible."""

# Checked in order against the lower-cased provider error
ERROR_RESPONSES = (
    ("api key", "I'm having trouble accessing my AI services. It appears there might be an issue with my configuration. I'll still try to assist you as best I can."),
    ("quota", "I've reached my usage limit for the moment. Please try again in a few minutes and I'll be ready to assist you then."),
    ("model", "I'm experiencing some technical difficulties with my AI system. Our team is working on resolving this issue. Thank you for your patience."),
)
GENERIC_ERROR_RESPONSE = "I apologize, but I'm having trouble processing your message right now. This could be due to high demand or a temporary service disruption. Please try again shortly."


class CompanionServiceError(ServiceError):
    """Raised when the chat payload is malformed."""


@dataclass
class CompanionReply:
    """Reply returned to the chat UI."""
    response: str
    is_crisis: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"response": self.response, "isCrisis": self.is_crisis}


def detect_crisis(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in CRISIS_KEYWORDS)


class CompanionService:
    """Service for the AI chat companion."""

    def __init__(self, llm_service=None, history_turns: int | None = None):
        """Initialize with optional LLM service dependency.

        Args:
            llm_service: LLM service for replies. If None, uses default.
            history_turns: Earlier turns included in the prompt.
        """
        self._llm = llm_service
        self.history_turns = config.COMPANION_HISTORY_TURNS if history_turns is None else history_turns

    @property
    def llm(self):
        """Lazy load LLM service."""
        if self._llm is None:
            from mindbridge.services.llm_service import LLMService
            self._llm = LLMService.get_instance()
        return self._llm

    def reply(self, messages: Any) -> CompanionReply:
        """Answer the latest user message.

        Raises:
            CompanionServiceError: If `messages` is not a non-empty list of
                {role, content} objects.
        """
        latest = self._validate(messages)

        if detect_crisis(latest):
            logger.warning("Crisis keywords detected in companion message")
            return CompanionReply(response=CRISIS_RESPONSE, is_crisis=True)

        if not self.llm.is_configured():
            logger.warning("Companion model is not configured; using fallback response")
            return CompanionReply(response=FALLBACK_RESPONSE)

        prompt = self._build_prompt(messages)
        try:
            return CompanionReply(response=self.llm.call(prompt))
        except LLMServiceError as e:
            logger.error("Companion generation failed: %s", e)
            return CompanionReply(response=self._error_response(str(e)))

    @staticmethod
    def _validate(messages: Any) -> str:
        if not isinstance(messages, list) or not messages:
            raise CompanionServiceError("Invalid message format")
        latest = messages[-1]
        if not isinstance(latest, dict) or not isinstance(latest.get("content"), str):
            raise CompanionServiceError("Invalid message format")
        return latest["content"]

    def _build_prompt(self, messages: list[dict[str, Any]]) -> str:
        """Build the therapist prompt from recent turns."""
        earlier = messages[:-1][-self.history_turns:] if self.history_turns > 0 else []
        lines = [THERAPY_CONTEXT, ""]
        for turn in earlier:
            if not isinstance(turn, dict) or not isinstance(turn.get("content"), str):
                continue
            speaker = "User" if turn.get("role", "user") == "user" else "Therapist"
            lines.append(f"{speaker}: {turn['content']}")
        lines.append(f"User: {messages[-1]['content']}")
        lines.append("Therapist:")
        return "\n".join(lines)

    @staticmethod
    def _error_response(error: str) -> str:
        lowered = error.lower()
        for needle, response in ERROR_RESPONSES:
            if needle in lowered:
                return response
        return GENERIC_ERROR_RESPONSE
