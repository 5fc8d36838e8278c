# eumlog/llm_client.py

import logging
import re
import time
from typing import Any, Callable, Dict, List, TypeVar

import openai
from google.api_core import exceptions as google_exceptions
from langchain_core.messages import AIMessage, BaseMessage, SystemMessage
from langchain_google_vertexai import ChatVertexAI

logger = logging.getLogger("eumlog_backend")

T = TypeVar("T")


class MaxRetryErrorsException(Exception):
    pass


class TerminalLlmError(Exception):
    """Authentication / request-validation failure: retrying cannot help."""


_TERMINAL_ERRORS = (
    openai.AuthenticationError,
    openai.PermissionDeniedError,
    openai.BadRequestError,
    openai.UnprocessableEntityError,
    google_exceptions.Unauthenticated,
    google_exceptions.PermissionDenied,
    google_exceptions.InvalidArgument,
)
# Wrapped errors only keep the status text; status codes must stand alone.
_TERMINAL_MESSAGE_RE = re.compile(
    r"\b(?:401|403)\b|UNAUTHENTICATED|PERMISSION_DENIED|INVALID_ARGUMENT|API key not valid"
)


def is_terminal_error(e: Exception) -> bool:
    if isinstance(e, (TerminalLlmError,) + _TERMINAL_ERRORS):
        return True
    return bool(_TERMINAL_MESSAGE_RE.search(str(e)))


def call_with_retries_sync(
    fn: Callable[[], T],
    *,
    retries: int = 3,
    backoff_seconds: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
    log: Callable[[str], None] | None = None,
) -> T:
    """
    Run a sync LLM call with linear backoff (backoff_seconds * attempt) between
    attempts. Terminal errors are re-raised as TerminalLlmError on first sight.
    """
    last_exception: Exception | None = None

    for attempt in range(1, retries + 1):
        start_time = time.time()
        try:
            return fn()
        except Exception as e:
            elapsed = time.time() - start_time
            if is_terminal_error(e):
                if isinstance(e, TerminalLlmError):
                    raise
                raise TerminalLlmError(str(e)) from e

            last_exception = e
            if log:
                log(f"Attempt {attempt} failed (elapsed={elapsed:.2f}s): {e}")
            if attempt < retries:
                sleep(backoff_seconds * attempt)

    raise MaxRetryErrorsException(f"All {retries} retry attempts failed.") from last_exception


def is_openai_model(model_name: str) -> bool:
    prefixes = ("gpt-", "gpt4", "o1", "o3", "o4")
    return any((model_name or "").startswith(p) for p in prefixes)


class ChatLlmClient:
    """
    Consultant-side generation client. Takes langchain messages, returns the
    reply text. Gemini models go through ChatVertexAI, gpt-/o-series models
    through the OpenAI Responses API.
    """

    def __init__(
        self,
        model_name: str,
        *,
        vertex_project: str = "",
        vertex_region: str = "",
        timeout: float | None = None,
        temperature: float | None = None,
        retries: int = 3,
        backoff_seconds: float = 2.0,
    ):
        self.provider = "openai" if is_openai_model(model_name) else "vertex"
        self.model_name = model_name
        self.retries = retries
        self.backoff_seconds = backoff_seconds

        if self.provider == "vertex":
            vertex_kwargs: Dict[str, Any] = {
                "project": vertex_project,
                "location": vertex_region,
                "model_name": model_name,
                "timeout": timeout,
            }
            if temperature is not None:
                vertex_kwargs["temperature"] = temperature
            self._vertex = ChatVertexAI(**vertex_kwargs)
            self._client = None
            self._openai_params: Dict[str, Any] = {}
        else:
            self._vertex = None
            client_kwargs: Dict[str, Any] = {"max_retries": 0}
            if timeout is not None:
                client_kwargs["timeout"] = timeout
            self._client = openai.OpenAI(**client_kwargs)
            self._openai_params = {"temperature": temperature} if temperature is not None else {}

    @classmethod
    def from_config(cls, config) -> "ChatLlmClient":
        return cls(
            config.llm_model,
            vertex_project=config.vertex_project,
            vertex_region=config.vertex_region,
            timeout=config.llm_timeout,
            temperature=config.llm_temperature,
            retries=config.llm_retries,
            backoff_seconds=config.llm_backoff_seconds,
        )

    def _to_openai_messages(self, messages: List[BaseMessage]) -> List[Dict[str, str]]:
        roles = {SystemMessage: "developer", AIMessage: "assistant"}
        return [
            {"role": roles.get(type(m), "user"), "content": str(m.content)}
            for m in messages
        ]

    def _invoke_vertex(self, messages: List[BaseMessage]) -> str:
        resp = self._vertex.invoke(messages)
        if isinstance(resp, str):
            return resp
        return str(getattr(resp, "content", resp))

    def _invoke_openai(self, messages: List[BaseMessage]) -> str:
        resp = self._client.responses.create(
            model=self.model_name,
            input=self._to_openai_messages(messages),
            **self._openai_params,
        )
        return (getattr(resp, "output_text", "") or "").strip()

    def _invoke_once(self, messages: List[BaseMessage]) -> str:
        """One generation call, no retries."""
        if self.provider == "vertex":
            return self._invoke_vertex(messages)
        return self._invoke_openai(messages)

    def invoke(self, messages: List[BaseMessage], *, retries: int | None = None) -> str:
        """
        Generate the next consultant reply. Transient failures are retried with
        linear backoff; auth and validation errors surface at once.
        """
        return call_with_retries_sync(
            lambda: self._invoke_once(messages),
            retries=retries or self.retries,
            backoff_seconds=self.backoff_seconds,
            log=lambda msg: logger.warning(f"[CHAT-LLM-RETRY] {self.model_name}: {msg}"),
        )
