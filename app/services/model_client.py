"""
Generative model client with backend selection.
Supports mock (testing), OpenAI-compatible servers and the Gemini API.

Interface: generate(prompt, output_schema=None, temperature, top_p, top_k)
-> GenerationResult(output, text). Transport problems raise ServiceError
subclasses; the plan generator turns them into tier failures.

PII-safe: NEVER log prompt or model output.
"""
import copy
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from app.core.config import get_settings
from app.core.logging import get_safe_logger
from app.services.exceptions import (
    BackendTimeoutError,
    BackendUnavailableError,
    ModelError,
    RateLimitedError,
)

logger = get_safe_logger(__name__)

MOCK_MODEL_VERSION = "mock-0"


@dataclass
class GenerationResult:
    """Raw model result. `output` is set when the backend returned parseable JSON."""
    output: Optional[Dict[str, Any]] = None
    text: Optional[str] = None
    model_version: str = ""
    inference_ms: int = 0


def _try_parse_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    if not text:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


async def _post_json(
    url: str,
    payload: dict,
    headers: dict,
    timeout_s: float,
    backend: str,
) -> Any:
    """POST and decode JSON, mapping transport failures to service errors."""
    start = time.perf_counter()
    try:
        async with httpx.AsyncClient(timeout=timeout_s) as client:
            response = await client.post(url, json=payload, headers=headers)

            if response.status_code == 429:
                raise RateLimitedError()
            if response.status_code >= 500:
                raise BackendUnavailableError(backend)
            response.raise_for_status()

    except httpx.ConnectError:
        raise BackendUnavailableError(backend)
    except httpx.TimeoutException:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        raise BackendTimeoutError(elapsed_ms)
    except (RateLimitedError, BackendUnavailableError):
        raise
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code == 429:
            raise RateLimitedError()
        raise BackendUnavailableError(backend)

    try:
        result = response.json()
    except json.JSONDecodeError:
        raise ModelError("Invalid JSON response from backend")

    if isinstance(result, dict) and "error" in result:
        err = result.get("error") or {}
        logger.error(
            "Model backend returned error object",
            error_code="MODEL_ERROR",
            backend=backend,
            status_code=response.status_code,
            exception_class=err.get("type") or err.get("status") if isinstance(err, dict) else None,
        )
        raise ModelError("Backend returned an error response")

    return result


class ModelClient:
    """Base class for generation backends."""

    backend = "base"

    @property
    def model_version(self) -> str:
        return self.backend

    async def generate(
        self,
        prompt: str,
        output_schema: Optional[Dict[str, Any]] = None,
        temperature: float = 0.7,
        top_p: float = 0.95,
        top_k: int = 40,
    ) -> GenerationResult:
        raise NotImplementedError

    async def check_health(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Mock backend
# ---------------------------------------------------------------------------

_MOCK_PLAN = {
    "emotionalSupport": (
        "It sounds like you've been carrying a lot lately. Your feelings make sense, "
        "and small steps can help you feel a bit more steady."
    ),
    "wellnessTips": (
        "Keep water nearby, take short movement breaks, and give yourself a calm "
        "wind-down before bed."
    ),
    "personalizedPlan": {
        "id": "steady-start",
        "title": "A Steady Start",
        "overview": "A light routine to ease tension during the day and rest better at night.",
        "summaryBullets": [
            "Pause for slow breathing when tension builds",
            "Move for a few minutes between tasks",
            "Wind down without screens before bed",
        ],
        "steps": [
            {"id": "step-1", "text": "Take 5 slow breaths, exhaling longer than you inhale.",
             "category": "breathing", "durationMinutes": 2, "frequency": "3 times a day",
             "priority": "high"},
            {"id": "step-2", "text": "Stand up and stretch or walk for 5 minutes every 90 minutes.",
             "category": "movement", "durationMinutes": 5, "frequency": "during work hours"},
            {"id": "step-3", "text": "Put your phone away 30 minutes before bed and dim the lights.",
             "category": "sleep", "when": "before bed", "priority": "medium",
             "followUpQuestion": "How long did it take you to fall asleep?"},
        ],
        "estimatedEffort": "low",
        "timeframe": "1 week",
    },
    "safetyFlag": False,
    "safetyMessage": None,
}


class MockModelClient(ModelClient):
    """Deterministic backend for local development and tests."""

    backend = "mock"

    @property
    def model_version(self) -> str:
        return MOCK_MODEL_VERSION

    async def generate(
        self,
        prompt: str,
        output_schema: Optional[Dict[str, Any]] = None,
        temperature: float = 0.7,
        top_p: float = 0.95,
        top_k: int = 40,
    ) -> GenerationResult:
        plan = copy.deepcopy(_MOCK_PLAN)
        text = json.dumps(plan)
        return GenerationResult(
            output=plan if output_schema is not None else None,
            text=text,
            model_version=MOCK_MODEL_VERSION,
            inference_ms=30,
        )


# ---------------------------------------------------------------------------
# OpenAI-compatible backend (LM Studio, Ollama, vLLM, ...)
# ---------------------------------------------------------------------------

class OpenAICompatModelClient(ModelClient):
    """Chat completions backend."""

    backend = "openai_compat"

    def __init__(self):
        settings = get_settings()
        self._base_url = settings.openai_compat_base_url.rstrip("/")
        self._model = settings.openai_compat_model
        self._api_key = settings.openai_compat_api_key
        self._timeout_s = settings.openai_compat_timeout_ms / 1000.0
        self._max_tokens = settings.max_output_tokens

    @property
    def model_version(self) -> str:
        return f"openai-compat-{self._model}" if self._model else "openai-compat-unknown"

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def generate(
        self,
        prompt: str,
        output_schema: Optional[Dict[str, Any]] = None,
        temperature: float = 0.7,
        top_p: float = 0.95,
        top_k: int = 40,
    ) -> GenerationResult:
        start = time.perf_counter()

        payload: Dict[str, Any] = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "top_p": top_p,
            "top_k": top_k,
            "max_tokens": self._max_tokens,
            "stream": False,
        }
        if output_schema is not None:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": "wellness_plan",
                    "schema": copy.deepcopy(output_schema),
                },
            }

        result = await _post_json(
            f"{self._base_url}/chat/completions",
            payload,
            self._headers(),
            self._timeout_s,
            self.backend,
        )

        try:
            choices = result.get("choices", []) if isinstance(result, dict) else []
            if not choices:
                raise KeyError("choices")

            first = choices[0] if isinstance(choices[0], dict) else {}
            msg = first.get("message")

            if isinstance(msg, dict) and isinstance(msg.get("content"), str):
                text = msg["content"].strip()
            elif isinstance(first.get("text"), str):
                text = first["text"].strip()
            else:
                raise KeyError("content")

        except (KeyError, IndexError, TypeError):
            raise ModelError("Invalid response format from backend")

        if not text:
            raise ModelError("Empty output returned by model")

        return GenerationResult(
            output=_try_parse_object(text) if output_schema is not None else None,
            text=text,
            model_version=self.model_version,
            inference_ms=int((time.perf_counter() - start) * 1000),
        )

    async def check_health(self) -> bool:
        """
        Tries /models first, then the base URL.
        Any 200 or 404 means the server is up.
        """
        try:
            async with httpx.AsyncClient(timeout=2.0) as client:
                try:
                    response = await client.get(f"{self._base_url}/models", headers=self._headers())
                    if response.status_code in (200, 404):
                        return True
                except httpx.HTTPError:
                    pass

                try:
                    response = await client.get(self._base_url.replace("/v1", ""))
                    return response.status_code in (200, 404)
                except httpx.HTTPError:
                    pass

                return False

        except Exception:
            return False


# ---------------------------------------------------------------------------
# Gemini backend
# ---------------------------------------------------------------------------

class GeminiModelClient(ModelClient):
    """Google AI generateContent backend."""

    backend = "gemini"

    def __init__(self):
        settings = get_settings()
        self._base_url = settings.gemini_base_url.rstrip("/")
        self._model = settings.gemini_model
        self._api_key = settings.gemini_api_key or ""
        self._timeout_s = settings.gemini_timeout_ms / 1000.0
        self._max_tokens = settings.max_output_tokens

    @property
    def model_version(self) -> str:
        return f"gemini-{self._model}"

    def _headers(self) -> dict:
        return {"Content-Type": "application/json", "x-goog-api-key": self._api_key}

    async def generate(
        self,
        prompt: str,
        output_schema: Optional[Dict[str, Any]] = None,
        temperature: float = 0.7,
        top_p: float = 0.95,
        top_k: int = 40,
    ) -> GenerationResult:
        start = time.perf_counter()

        generation_config: Dict[str, Any] = {
            "temperature": temperature,
            "topP": top_p,
            "topK": top_k,
            "maxOutputTokens": self._max_tokens,
        }
        if output_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseJsonSchema"] = copy.deepcopy(output_schema)

        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

        result = await _post_json(
            f"{self._base_url}/models/{self._model}:generateContent",
            payload,
            self._headers(),
            self._timeout_s,
            self.backend,
        )

        try:
            candidates = result.get("candidates", []) if isinstance(result, dict) else []
            if not candidates:
                raise KeyError("candidates")
            parts = candidates[0]["content"]["parts"]
            text = "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()
        except (KeyError, IndexError, TypeError):
            raise ModelError("Invalid response format from backend")

        if not text:
            raise ModelError("Empty output returned by model")

        return GenerationResult(
            output=_try_parse_object(text) if output_schema is not None else None,
            text=text,
            model_version=self.model_version,
            inference_ms=int((time.perf_counter() - start) * 1000),
        )

    async def check_health(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=2.0) as client:
                response = await client.get(
                    f"{self._base_url}/models/{self._model}",
                    headers=self._headers(),
                )
                return response.status_code == 200
        except Exception:
            return False


def get_model_client() -> ModelClient:
    """Return a client for the configured backend."""
    settings = get_settings()
    if settings.model_backend == "openai_compat":
        return OpenAICompatModelClient()
    if settings.model_backend == "gemini":
        return GeminiModelClient()
    return MockModelClient()


def get_model_version() -> str:
    """Get the model version string of the configured backend."""
    return get_model_client().model_version
