"""
LLM Client wrapper for OpenAI-compatible chat completion APIs.
Handles request building, transport retries and streamed responses.
"""
import json
import time
import logging
from typing import Any, Dict, Iterator, List, Optional

import requests

from ..models.errors import ConfigurationError, GenerationError
from ..models.schemas import ChatMessage, Speaker
from ..utils.config import config

logger = logging.getLogger(__name__)

STREAM_DONE = "[DONE]"


class LLMClient:
    """
    Client for the /chat/completions endpoint.
    Transport failures surface as GenerationError, never as content.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self.base_url = base_url or config.llm.base_url
        self.chat_url = f"{self.base_url.rstrip('/')}{config.llm.chat_endpoint}"
        self.api_key = api_key if api_key is not None else config.llm.api_key
        self.model = model or config.llm.default_model
        self.timeout = config.llm.timeout
        self.max_retries = config.llm.max_retries
        logger.info(f"LLM Client initialized: {self.chat_url} (timeout={self.timeout}s)")

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ConfigurationError("LLM_API_KEY is not set")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(
        self,
        system_instruction: str,
        conversation: List[ChatMessage],
        model: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int],
        stream: bool,
    ) -> Dict[str, Any]:
        messages = [{"role": "system", "content": system_instruction}]
        messages.extend(
            {"role": message.speaker.value, "content": message.text}
            for message in conversation
        )
        return {
            "model": model or self.model,
            "messages": messages,
            "temperature": temperature if temperature is not None else config.llm.default_temperature,
            "max_tokens": max_tokens or config.llm.max_tokens,
            "stream": stream,
        }

    def _make_request(self, payload: Dict[str, Any], stream: bool = False) -> requests.Response:
        """Make HTTP request to the generation service with retries."""
        headers = self._headers()
        last_error = None

        for attempt in range(self.max_retries + 1):
            try:
                response = requests.post(
                    self.chat_url,
                    json=payload,
                    headers=headers,
                    timeout=self.timeout,
                    stream=stream,
                )
            except requests.exceptions.Timeout as e:
                last_error = e
                if attempt < self.max_retries:
                    time.sleep(1 * (attempt + 1))
                continue
            except requests.exceptions.RequestException as e:
                last_error = e
                if attempt < self.max_retries:
                    time.sleep(0.5 * (attempt + 1))
                continue

            if response.status_code >= 400:
                raise GenerationError(
                    f"Generation request failed with status {response.status_code}: {response.text[:200]}"
                )
            return response

        raise GenerationError(
            f"Failed to reach generation service after {self.max_retries + 1} attempts: {last_error}"
        )

    def complete(
        self,
        system_instruction: str,
        conversation: List[ChatMessage],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Generate a single completion.

        Args:
            system_instruction: Persona or task instruction sent as the system message
            conversation: Ordered messages following the instruction
            model: Model identifier (None uses the client default)
            temperature: Sampling temperature (None uses default)
            max_tokens: Maximum tokens to generate (None uses default)

        Returns:
            The generated text
        """
        payload = self._build_payload(system_instruction, conversation, model, temperature, max_tokens, False)
        response = self._make_request(payload)

        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationError(f"Malformed completion response: {e}") from e

        if content is None:
            raise GenerationError("Completion response has no content")

        logger.debug(f"Completion ({payload['model']}): {content[:200]}")
        return content

    def stream(
        self,
        system_instruction: str,
        conversation: List[ChatMessage],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Iterator[str]:
        """
        Generate a completion as incremental text fragments.

        Yields fragments in order; the iterator ends when the service sends
        its end-of-stream marker.
        """
        payload = self._build_payload(system_instruction, conversation, model, temperature, max_tokens, True)
        response = self._make_request(payload, stream=True)

        try:
            for line in response.iter_lines(decode_unicode=True):
                if not line or not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if data == STREAM_DONE:
                    return
                try:
                    chunk = json.loads(data)
                    fragment = chunk["choices"][0].get("delta", {}).get("content")
                except (ValueError, KeyError, IndexError, TypeError) as e:
                    raise GenerationError(f"Malformed stream chunk: {e}") from e
                if fragment:
                    yield fragment
        except requests.exceptions.RequestException as e:
            raise GenerationError(f"Stream interrupted: {e}") from e
        finally:
            response.close()

        raise GenerationError("Stream ended without end-of-stream marker")

    def health_check(self) -> bool:
        """Check if the generation service is responding."""
        try:
            reply = self.complete("Reply with OK.", [ChatMessage(speaker=Speaker.USER, text="ping")], max_tokens=5)
            return bool(reply.strip())
        except (GenerationError, ConfigurationError):
            return False


# Global client instance
llm_client = LLMClient()
