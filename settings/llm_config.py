# llm_config.py — Hybrid LLM factory (Groq / Ollama) for the NLQ and insight collaborators
# Handles provider switching and client instantiation
"""
llm_config.py — LLM Configuration & Factory

Supports:
1. Groq API (cloud, OpenAI-compatible) - used when GROQ_API_KEY is set
2. Ollama (local) - fallback when no API key

When neither is reachable `get_llm()` returns None and the collaborators
run their local heuristics only.
"""

from __future__ import annotations

import json
import logging
import os
import urllib.error
import urllib.request
from dataclasses import dataclass

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_MODEL = "tinyllama"
DEFAULT_GROQ_MODEL = "llama-3.1-8b-instant"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
GROQ_API_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 500
REQUEST_TIMEOUT = 30  # seconds


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LLMError(Exception):
    """Base exception for LLM errors."""
    pass


class OllamaConnectionError(LLMError):
    """Raised when the Ollama server is not reachable."""
    pass


class OllamaGenerationError(LLMError):
    """Raised when text generation fails."""
    pass


# =============================================================================
# OLLAMA CLIENT
# =============================================================================

@dataclass
class OllamaConfig:
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_OLLAMA_BASE_URL
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: int = REQUEST_TIMEOUT


class OllamaLLM:
    """
    Minimal Ollama client for single-shot completions.

    Uses only stdlib (urllib).
    """

    def __init__(self, config: OllamaConfig | None = None):
        self.config = config or OllamaConfig()

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def base_url(self) -> str:
        return self.config.base_url.rstrip("/")

    def is_available(self) -> bool:
        """True when the server answers on /api/tags."""
        try:
            request = urllib.request.Request(f"{self.base_url}/api/tags", method="GET")
            with urllib.request.urlopen(request, timeout=5) as response:
                return response.status == 200
        except (urllib.error.URLError, OSError):
            return False

    def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """
        Generate a completion.

        Raises:
            OllamaConnectionError: If the server is not reachable
            OllamaGenerationError: If the request or its response is invalid
        """
        payload = {
            "model": self.config.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": temperature if temperature is not None else self.config.temperature,
                "num_predict": max_tokens or self.config.max_tokens,
            },
        }
        if system_prompt:
            payload["system"] = system_prompt

        request = urllib.request.Request(
            f"{self.base_url}/api/generate",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self.config.timeout) as response:
                data = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            raise OllamaGenerationError(f"HTTP error {e.code}: {e.reason}") from e
        except (urllib.error.URLError, OSError) as e:
            # socket timeouts while reading the body are raw TimeoutError
            raise OllamaConnectionError(
                f"Cannot connect to Ollama at {self.base_url}. Error: {e}"
            ) from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise OllamaGenerationError(f"Invalid response from Ollama: {e}") from e

        if not isinstance(data, dict):
            raise OllamaGenerationError("Invalid response from Ollama: expected a JSON object")

        return str(data.get("response") or "").strip()


# =============================================================================
# GROQ CLIENT (Cloud LLM)
# =============================================================================

@dataclass
class GroqConfig:
    model: str = DEFAULT_GROQ_MODEL
    api_key: str = ""
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: int = REQUEST_TIMEOUT


class GroqLLM:
    """Groq chat-completions client (OpenAI-compatible request format)."""

    def __init__(self, config: GroqConfig | None = None):
        self.config = config or GroqConfig()
        if not self.config.api_key:
            self.config.api_key = os.environ.get("GROQ_API_KEY", "")

    @property
    def model(self) -> str:
        return self.config.model

    def is_available(self) -> bool:
        return bool(self.config.api_key)

    def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """
        Generate a chat completion.

        Raises:
            LLMError: Missing key, non-2xx response or malformed body
        """
        if not self.config.api_key:
            raise LLMError("Groq API key not configured")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.config.model,
            "messages": messages,
            "temperature": temperature if temperature is not None else self.config.temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }

        request = urllib.request.Request(
            f"{GROQ_API_BASE_URL}/chat/completions",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.config.api_key}",
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self.config.timeout) as response:
                result = json.loads(response.read().decode("utf-8"))
            return result["choices"][0]["message"]["content"].strip()
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else str(e)
            raise LLMError(f"Groq API error ({e.code}): {error_body}") from e
        except (urllib.error.URLError, OSError) as e:
            raise LLMError(f"Groq request failed: {e}") from e
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            # ValueError covers JSONDecodeError and UnicodeDecodeError
            raise LLMError(f"Malformed Groq response: {e}") from e


# =============================================================================
# FACTORY FUNCTION
# =============================================================================

def get_llm(
    model: str | None = None,
    temperature: float = DEFAULT_TEMPERATURE,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    base_url: str = DEFAULT_OLLAMA_BASE_URL,
    prefer_cloud: bool = True,
) -> GroqLLM | OllamaLLM | None:
    """
    Create an LLM client.

    Priority order (when prefer_cloud=True):
    1. Groq API (if GROQ_API_KEY is available)
    2. Ollama (local, if running)
    3. None (heuristic-only mode)
    """
    if prefer_cloud:
        groq_llm = GroqLLM(GroqConfig(
            model=model or DEFAULT_GROQ_MODEL,
            temperature=temperature,
            max_tokens=max_tokens,
        ))
        if groq_llm.is_available():
            log.info("Using Groq model %s", groq_llm.model)
            return groq_llm

    ollama_llm = OllamaLLM(OllamaConfig(
        model=model or DEFAULT_MODEL,
        base_url=base_url,
        temperature=temperature,
        max_tokens=max_tokens,
    ))
    if ollama_llm.is_available():
        log.info("Using Ollama model %s at %s", ollama_llm.model, ollama_llm.base_url)
        return ollama_llm

    log.info("No LLM provider available, collaborators will use local heuristics")
    return None
