"""LLM Service - Abstraction layer for AI model calls.

This module provides a unified interface for calling different LLM providers
(Gemini, OpenAI) with consistent error handling and response formatting.

Interface Contract:
- `call(prompt)` returns the raw response text
- All methods raise LLMServiceError on failure
- `is_configured()` tells callers whether a key is available at all
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from openai import OpenAI

import config


class LLMServiceError(Exception):
    """Raised when LLM call fails."""
    pass


# Placeholder values that count as "no key configured"
_PLACEHOLDER_KEYS = {"", "your_api_key_here", "mock-key-for-development"}


class BaseLLMService(ABC):
    """Abstract base class for LLM services."""

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether an API key is available."""

    @abstractmethod
    def call(self, prompt: str) -> str:
        """Call the LLM with a prompt.

        Args:
            prompt: The prompt to send to the LLM

        Returns:
            str: The LLM response text

        Raises:
            LLMServiceError: If the call fails
        """


class GeminiService(BaseLLMService):
    """Google Gemini LLM service implementation."""

    GENERATION_CONFIG = {
        "temperature": 0.7,
        "top_k": 40,
        "top_p": 0.95,
        "max_output_tokens": 1024,
    }

    SAFETY_SETTINGS = {
        HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
        HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
        HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
        HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    }

    def __init__(self, model: str | None = None, api_key: str | None = None):
        self.model = model or config.COMPANION_MODEL
        self.api_key = config.GOOGLE_AI_API_KEY if api_key is None else api_key
        self._configured = False

    def is_configured(self) -> bool:
        return self.api_key not in _PLACEHOLDER_KEYS

    def _configure(self) -> None:
        """Configure Gemini API (lazy initialization)."""
        if self._configured:
            return
        if not self.is_configured():
            raise LLMServiceError("GOOGLE_AI_API_KEY environment variable not set")
        genai.configure(api_key=self.api_key)
        self._configured = True

    def call(self, prompt: str) -> str:
        """Call Gemini model."""
        self._configure()
        try:
            model = genai.GenerativeModel(
                self.model,
                generation_config=genai.GenerationConfig(**self.GENERATION_CONFIG),
                safety_settings=self.SAFETY_SETTINGS,
            )
            response = model.generate_content(prompt)
            text = response.text
        except Exception as e:
            raise LLMServiceError(f"Gemini call failed: {e}") from e
        if not text:
            raise LLMServiceError("No response from model")
        return text


class OpenAIService(BaseLLMService):
    """OpenAI LLM service implementation."""

    def __init__(self, model: str | None = None, api_key: str | None = None):
        self.model = model or config.OPENAI_MODEL
        self.api_key = api_key
        self._client: OpenAI | None = None

    def is_configured(self) -> bool:
        return (self.api_key or os.environ.get("OPENAI_API_KEY", "")) not in _PLACEHOLDER_KEYS

    def _get_client(self) -> OpenAI:
        """Get or create OpenAI client (lazy initialization)."""
        if self._client is None:
            if not self.is_configured():
                raise LLMServiceError("OPENAI_API_KEY environment variable not set")
            self._client = OpenAI(api_key=self.api_key) if self.api_key else OpenAI()
        return self._client

    def call(self, prompt: str) -> str:
        """Call OpenAI model."""
        try:
            client = self._get_client()
            response = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.7,
                max_tokens=1024,
            )
            return response.choices[0].message.content or ""
        except LLMServiceError:
            raise
        except Exception as e:
            raise LLMServiceError(f"OpenAI call failed: {e}") from e


# Default service instance (can be swapped for testing)
class LLMService:
    """Facade for LLM services with provider switching."""

    _instance: BaseLLMService | None = None

    @classmethod
    def get_instance(cls) -> BaseLLMService:
        """Get the configured LLM service instance."""
        if cls._instance is None:
            if config.LLM_PROVIDER == "openai":
                cls._instance = OpenAIService()
            else:
                cls._instance = GeminiService()
        return cls._instance

    @classmethod
    def set_instance(cls, service: BaseLLMService) -> None:
        """Set a custom LLM service (useful for testing)."""
        cls._instance = service

    @classmethod
    def reset(cls) -> None:
        """Reset to default service."""
        cls._instance = None
