"""HTTP client for an Ollama-compatible vision model service.

Endpoints used:
- POST /api/generate  (prompt + base64 image, non-streaming)
- GET  /api/tags      (installed models)
- GET  /              (liveness)

Transport failures are mapped onto the extraction error taxonomy. Each call
opens its own ``httpx.Client``; a cancellable generate call runs its POST
on a worker thread so cancelling returns control to the caller immediately.
"""

import base64
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field

from idextract.config import settings
from idextract.errors import (
    ExtractionError,
    ExtractionTimeoutError,
    InvalidResponseError,
    ModelUnavailableError,
    RateLimitedError,
    ServiceUnavailableError,
)
from idextract.extraction.cancellation import CancellationToken, OperationCancelled

logger = logging.getLogger(__name__)

DEFAULT_TOP_P = 0.9


class GenerateRequest(BaseModel):
    """Body of an ``/api/generate`` call."""

    model: str
    prompt: str
    images: list[str] = Field(default_factory=list, description="Base64 encoded images")
    stream: bool = False
    options: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def for_image(
        cls,
        model: str,
        prompt: str,
        image: bytes,
        temperature: float,
        max_tokens: int,
        num_ctx: Optional[int] = None,
    ) -> "GenerateRequest":
        return cls(
            model=model,
            prompt=prompt,
            images=[base64.b64encode(image).decode("ascii")],
            options={
                "temperature": temperature,
                "top_p": DEFAULT_TOP_P,
                "num_predict": max_tokens,
                "num_ctx": num_ctx or settings.ollama_num_ctx,
            },
        )


class OllamaClient:
    """Synchronous Ollama API client."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize client.

        Args:
            base_url: Service URL (default from settings).
            model: Model identifier (default from settings).
            timeout: Request timeout in seconds (default from settings).
            transport: Custom httpx transport, e.g. ``httpx.MockTransport``.
        """
        self.base_url = (base_url or settings.ollama_host).rstrip("/")
        self.model = model or settings.ollama_model
        self.timeout = timeout or settings.ollama_timeout
        self.transport = transport

    def _open(self, timeout: Optional[float] = None) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            transport=self.transport,
        )

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code == 429:
            raise RateLimitedError("AI service rate limit exceeded")
        if response.status_code == 404 and "model" in response.text.lower():
            raise ModelUnavailableError(
                f"Model {self.model} is not available. Please run: ollama pull {self.model}"
            )
        if response.status_code >= 500:
            raise ExtractionError(
                f"AI service error {response.status_code}: {response.text[:200]}",
                retryable=True,
            )
        if response.status_code >= 400:
            raise ExtractionError(f"AI service rejected request ({response.status_code})")

    def _post(
        self,
        http: httpx.Client,
        body: dict[str, Any],
        token: Optional[CancellationToken],
    ) -> httpx.Response:
        """POST to ``/api/generate``; with a token, on a worker thread.

        Returns as soon as either the request finishes or the token is
        cancelled. An abandoned worker ends when its read fails on the closed
        client or times out.
        """
        if token is None:
            return http.post("/api/generate", json=body)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ollama-generate")
        future = executor.submit(http.post, "/api/generate", json=body)
        executor.shutdown(wait=False)

        wake = threading.Event()
        future.add_done_callback(lambda _: wake.set())
        unregister = token.register(wake.set)
        try:
            wake.wait()
        finally:
            unregister()

        if token.cancelled:
            raise OperationCancelled(token.reason or "cancelled")
        return future.result()

    def generate(self, request: GenerateRequest, token: Optional[CancellationToken] = None) -> str:
        """Send a generate request and return the model's text.

        Args:
            request: Request body.
            token: Cancellation token; cancelling stops the wait at once and
                closes the connection.

        Returns:
            The ``response`` text of the reply.

        Raises:
            OperationCancelled: The token was cancelled before or during the call.
            ExtractionError: Transport, HTTP or payload failure.
        """
        if token is not None:
            token.raise_if_cancelled()

        http = self._open()
        try:
            response = self._post(http, request.model_dump(), token)
            self._raise_for_status(response)
            try:
                payload = response.json()
            except ValueError as exc:
                raise InvalidResponseError(
                    "AI service returned a non-JSON body", response.text
                ) from exc
        except httpx.TimeoutException as exc:
            if token is not None and token.cancelled:
                raise OperationCancelled(token.reason) from exc
            raise ExtractionTimeoutError(
                f"AI service did not respond within {self.timeout:.0f}s"
            ) from exc
        except (httpx.HTTPError, RuntimeError) as exc:
            # A client closed by cancellation surfaces as a transport or state error
            if token is not None and token.cancelled:
                raise OperationCancelled(token.reason) from exc
            if isinstance(exc, httpx.ConnectError):
                raise ServiceUnavailableError(
                    f"Cannot connect to Ollama service at {self.base_url}. "
                    "Please ensure Ollama is running."
                ) from exc
            if isinstance(exc, httpx.HTTPError):
                raise ServiceUnavailableError(f"AI service request failed: {exc}") from exc
            raise
        finally:
            http.close()

        if token is not None:
            token.raise_if_cancelled()

        text = payload.get("response") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise InvalidResponseError("AI service reply has no 'response' text", response.text)
        logger.debug("Generate returned %d characters", len(text), extra={"model": request.model})
        return text

    def list_models(self) -> list[str]:
        """Names of the models installed on the service."""
        with self._open() as http:
            try:
                response = http.get("/api/tags")
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise ServiceUnavailableError(f"Cannot list models: {exc}") from exc
        return [model["name"] for model in response.json().get("models", []) if "name" in model]

    def is_available(self, timeout: float = 5.0) -> bool:
        """True when the service answers on its root URL."""
        try:
            with self._open(timeout) as http:
                return http.get("/").status_code == 200
        except httpx.HTTPError:
            return False
