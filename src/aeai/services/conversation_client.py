import asyncio
import json
import logging
import re
import socket
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from requests import exceptions as requests_exceptions

from src.aeai.config import CONVERSATION_WINDOW, REQUEST_CONFIG
from src.aeai.models.conversation import ChatResult, ConversationHistory
from src.aeai.models.event_types import LLM_SERVICE_ERROR, LLM_SERVICE_WARNING
from src.aeai.models.events import Event
from src.aeai.models.exceptions import (
    LLMConnectionError,
    LLMRateLimitError,
    LLMServiceError,
    LLMTimeoutError,
)
from src.aeai.prompts.analysis_prompts import ANALYSIS_PROMPTS
from src.aeai.prompts.prompt_manager import PromptManager
from src.aeai.services.action_catalog import ActionCatalog
from src.aeai.services.user_settings_manager import load_user_settings

logger = logging.getLogger(__name__)

_LOOSE_JSON_PATTERN = re.compile(r"\{[\s\S]*\}")


class ConversationClient:
    """
    Talks to the OpenAI-compatible inference endpoint.

    Responsibilities:
    - Keep the bounded exchange history (user turns appended before sending,
      assistant turns only after a successful reply).
    - Build chat and vision requests and return uniform ``ChatResult`` objects.
    - Retry transient transport failures before giving up on a turn.
    """

    _RETRY_BACKOFF_SECONDS: Tuple[int, ...] = (1, 2, 4)
    _RETRY_SUGGESTIONS: Tuple[str, ...] = (
        "Check the endpoint URL and API key in Settings.",
        "Make sure the inference proxy is running.",
        "Ensure your network connection is stable.",
    )

    def __init__(
        self,
        catalog: ActionCatalog,
        *,
        event_bus: Optional[Any] = None,
        prompt_manager: Optional[PromptManager] = None,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        models: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
        window: int = CONVERSATION_WINDOW,
    ) -> None:
        self.catalog = catalog
        self.event_bus = event_bus
        self.prompt_manager = prompt_manager or PromptManager()
        self.session = session or requests.Session()
        self.history = ConversationHistory(window=window)

        settings = load_user_settings() if api_url is None or models is None else {}
        self.api_url = (api_url or settings.get("api_url", "")).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.get("api_key", "")
        self.models: Dict[str, str] = dict(models or settings.get("models") or {})

        self._system_prompt = self._render_system_prompt()

    # ------------------- Configuration -------------------
    def update_endpoint(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        models: Optional[Dict[str, str]] = None,
    ) -> None:
        """Apply runtime overrides coming from the settings window."""
        if api_url:
            self.api_url = api_url.rstrip("/")
        if api_key is not None:
            self.api_key = api_key
        if models:
            self.models.update(models)
        logger.info("Endpoint configuration updated: %s", self.api_url)

    def reload_settings(self) -> None:
        settings = load_user_settings()
        self.update_endpoint(settings["api_url"], settings["api_key"], settings["models"])

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    def _render_system_prompt(self) -> str:
        categories = [
            (category, self.catalog.by_category(category))
            for category in self.catalog.categories()
        ]
        prompt = self.prompt_manager.render(
            "system_prompt.jinja2",
            categories=categories,
            catalog_version=self.catalog.version,
        )
        if not prompt:
            raise RuntimeError("System prompt could not be rendered.")
        return prompt

    def _model_for(self, purpose: str) -> str:
        return self.models.get(purpose) or self.models.get("text", "")

    # ------------------- Public API -------------------
    async def converse(self, user_message: str, model: str = "text") -> ChatResult:
        """
        Send one user turn with the trimmed history and return the reply verbatim.

        Returns:
            ``ChatResult(success=True, content, usage)`` or ``ChatResult(success=False, error)``.
            On failure the assistant turn is not recorded.
        """
        self.history.append("user", user_message)

        messages: List[Dict[str, Any]] = [{"role": "system", "content": self._system_prompt}]
        messages.extend(self.history.to_payload())
        payload = {
            "model": self._model_for(model),
            "messages": messages,
            "temperature": REQUEST_CONFIG["chat"]["temperature"],
            "max_tokens": REQUEST_CONFIG["chat"]["max_tokens"],
        }

        try:
            data = await asyncio.to_thread(self._post_completion, payload, "chat")
            content = self._message_content(data)
        except LLMServiceError as exc:
            return ChatResult(success=False, error=str(exc))

        self.history.append("assistant", content)
        return ChatResult(success=True, content=content, usage=data.get("usage"))

    async def analyze_frame(
        self,
        base64_image: str,
        analysis_type: str = "full",
        mime_type: str = "image/png",
    ) -> ChatResult:
        """
        Ask the vision model about a captured frame.

        The returned ``analysis`` is a best-effort JSON salvage for display and
        must never be used to authorize a host action.
        """
        prompt = ANALYSIS_PROMPTS.get(analysis_type, ANALYSIS_PROMPTS["full"])
        payload = {
            "model": self._model_for("vision"),
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime_type};base64,{base64_image}"},
                        },
                        {"type": "text", "text": prompt},
                    ],
                }
            ],
            "max_tokens": REQUEST_CONFIG["vision"]["max_tokens"],
        }

        try:
            data = await asyncio.to_thread(self._post_completion, payload, "analyze_frame")
            content = self._message_content(data)
        except LLMServiceError as exc:
            return ChatResult(success=False, error=str(exc))

        return ChatResult(
            success=True,
            content=content,
            usage=data.get("usage"),
            analysis=self.extract_json(content),
        )

    async def test_connection(self) -> ChatResult:
        """Check that the endpoint answers ``GET /models`` with the configured key."""
        try:
            models = await asyncio.to_thread(self._get_models)
        except LLMServiceError as exc:
            return ChatResult(success=False, error=str(exc))
        return ChatResult(success=True, models=models)

    async def generate_command(self, task: str, context: Optional[Dict[str, Any]] = None) -> ChatResult:
        """Ask for a command for ``task`` given composition context, through the normal chat path."""
        context = context or {}
        prompt = self.prompt_manager.render(
            "generate_command.jinja2",
            task=task,
            context=context,
            layers_json=json.dumps(context.get("layers") or []),
            analysis_json=json.dumps(context.get("analysis") or {}),
        )
        return await self.converse(prompt)

    def clear_history(self) -> None:
        self.history.clear()
        logger.info("Conversation history cleared.")

    @staticmethod
    def extract_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
        """Permissive salvage: parse the widest ``{...}`` span in ``text`` or return None."""
        if not text:
            return None
        match = _LOOSE_JSON_PATTERN.search(text)
        if not match:
            return None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None

    # ------------------- Transport -------------------
    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _post_completion(self, payload: Dict[str, Any], operation_name: str) -> Dict[str, Any]:
        url = f"{self.api_url}/chat/completions"

        def _request() -> Dict[str, Any]:
            response = self.session.post(
                url,
                headers=self._headers(),
                json=payload,
                timeout=REQUEST_CONFIG["http_timeout_seconds"],
            )
            response.raise_for_status()
            return response.json()

        return self._run_with_retries(operation_name, _request)

    def _get_models(self) -> Any:
        def _request() -> Any:
            response = self.session.get(
                f"{self.api_url}/models",
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=REQUEST_CONFIG["http_timeout_seconds"],
            )
            response.raise_for_status()
            return response.json()

        # A connectivity probe reports the first failure instead of retrying.
        try:
            return _request()
        except Exception as exc:  # noqa: BLE001 - classification occurs below
            error, _ = self._categorize_exception(exc, "test_connection")
            raise error

    @staticmethod
    def _message_content(data: Dict[str, Any]) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMServiceError(f"Malformed response from endpoint: {exc}", cause=exc) from exc
        if content is None:
            raise LLMServiceError("Endpoint returned an empty message.")
        return str(content)

    def _run_with_retries(self, operation_name: str, request: Callable[[], Any]) -> Any:
        """
        Execute a blocking request with exponential backoff for transient failures.

        Raises:
            LLMServiceError: If the request fails permanently or after all retries.
        """
        total_attempts = len(self._RETRY_BACKOFF_SECONDS) + 1
        for attempt in range(total_attempts):
            try:
                result = request()
            except Exception as exc:  # noqa: BLE001 - classification occurs below
                error, retryable = self._categorize_exception(exc, operation_name)
                if not retryable or attempt == len(self._RETRY_BACKOFF_SECONDS):
                    self._handle_permanent_failure(operation_name, error, attempt + 1)
                self._handle_retry(operation_name, error, attempt + 1)
                time.sleep(self._RETRY_BACKOFF_SECONDS[attempt])
                continue
            if attempt:
                logger.info("LLM %s succeeded on attempt %d/%d.", operation_name, attempt + 1, total_attempts)
            return result

        raise LLMServiceError(f"Unexpected retry state for operation '{operation_name}'.", operation=operation_name)

    def _handle_retry(self, operation_name: str, error: LLMServiceError, retry_count: int) -> None:
        total_retries = len(self._RETRY_BACKOFF_SECONDS)
        logger.warning(
            "LLM %s failed (%s). Retrying attempt %d/%d.",
            operation_name,
            error,
            retry_count,
            total_retries,
        )
        self._dispatch_service_event(
            LLM_SERVICE_WARNING,
            {"message": f"Retrying request (attempt {retry_count}/{total_retries})..."},
        )

    def _handle_permanent_failure(self, operation_name: str, error: LLMServiceError, attempts: int) -> None:
        """
        Log and publish a terminal failure, then raise it.

        Raises:
            LLMServiceError: Always.
        """
        logger.error("LLM %s failed after %d attempt(s): %s", operation_name, attempts, error)
        self._dispatch_service_event(
            LLM_SERVICE_ERROR,
            {"message": str(error), "suggestions": list(self._RETRY_SUGGESTIONS)},
        )
        raise error

    def _dispatch_service_event(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.event_bus is None:
            return
        try:
            self.event_bus.dispatch(Event(event_type=event_type, payload=payload))
        except Exception:  # pragma: no cover - telemetry must not mask the real failure
            logger.debug("Failed to dispatch '%s' event with payload %s", event_type, payload, exc_info=True)

    def _categorize_exception(self, exc: Exception, operation_name: str) -> Tuple[LLMServiceError, bool]:
        """
        Classify the exception and determine if it is transient.

        Returns:
            A tuple of (classified error, is_retryable).
        """
        if isinstance(exc, LLMServiceError):
            return exc, False

        if self._is_timeout_error(exc):
            return LLMTimeoutError(f"Request timed out: {exc}", operation=operation_name, cause=exc), True

        if self._is_rate_limit_error(exc):
            return LLMRateLimitError("Rate limited by endpoint (HTTP 429)", operation=operation_name, cause=exc), True

        if self._is_connection_error(exc):
            return LLMConnectionError(f"Connection error: {exc}", operation=operation_name, cause=exc), True

        if isinstance(exc, requests_exceptions.HTTPError):
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            return LLMServiceError(f"HTTP {status_code}", operation=operation_name, cause=exc), False

        if isinstance(exc, ValueError):
            return LLMServiceError(f"Endpoint returned invalid JSON: {exc}", operation=operation_name, cause=exc), False

        return LLMServiceError(f"Unhandled endpoint error: {exc}", operation=operation_name, cause=exc), False

    @staticmethod
    def _is_timeout_error(exc: Exception) -> bool:
        if isinstance(exc, (requests_exceptions.Timeout, socket.timeout, TimeoutError)):
            return True
        message = str(exc).lower()
        return "timed out" in message

    @staticmethod
    def _is_rate_limit_error(exc: Exception) -> bool:
        if isinstance(exc, requests_exceptions.HTTPError):
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            return status_code == 429
        return False

    @staticmethod
    def _is_connection_error(exc: Exception) -> bool:
        if isinstance(exc, (requests_exceptions.ConnectionError, ConnectionError, socket.gaierror)):
            return True
        message = str(exc).lower()
        return any(
            indicator in message
            for indicator in ("connection reset", "connection refused", "connection aborted", "network unreachable")
        )
