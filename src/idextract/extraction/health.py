"""AI service health check."""

import logging
from typing import Optional

from idextract.errors import ServiceUnavailableError
from idextract.extraction.client import OllamaClient
from idextract.models import HealthReport, HealthStatus

logger = logging.getLogger(__name__)


def _model_installed(model: str, available: list[str]) -> bool:
    # "qwen2.5vl:7b" matches itself; a bare "qwen2.5vl" matches its ":latest" tag
    candidates = {model} if ":" in model else {model, f"{model}:latest"}
    return any(name in candidates for name in available)


def check_health(client: Optional[OllamaClient] = None, model: Optional[str] = None) -> HealthReport:
    """Report whether the service is reachable and the model is installed.

    Returns:
        HealthReport: healthy (200) when both hold, degraded (206) when the
        service is up without the model, unhealthy (503) otherwise.
    """
    client = client or OllamaClient()
    model = model or client.model

    if not client.is_available():
        logger.warning("AI service at %s is not reachable", client.base_url)
        return HealthReport(
            status=HealthStatus.UNHEALTHY,
            service_available=False,
            model_available=False,
            model=model,
            message=f"Cannot connect to Ollama service at {client.base_url}",
        )

    try:
        available = client.list_models()
    except ServiceUnavailableError as exc:
        return HealthReport(
            status=HealthStatus.UNHEALTHY,
            service_available=False,
            model_available=False,
            model=model,
            message=exc.message,
        )

    if _model_installed(model, available):
        return HealthReport(
            status=HealthStatus.HEALTHY,
            service_available=True,
            model_available=True,
            model=model,
            available_models=available,
            message="AI service and model are ready",
        )

    return HealthReport(
        status=HealthStatus.DEGRADED,
        service_available=True,
        model_available=False,
        model=model,
        available_models=available,
        message=f"Model {model} is not available. Please run: ollama pull {model}",
    )
