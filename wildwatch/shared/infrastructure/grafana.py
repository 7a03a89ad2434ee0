"""
Grafana OTLP Metrics Exporter
==============================

Pushes model usage and triage outcome metrics to Grafana Cloud via OTLP.

Metrics exported:
- llm_tokens_total / llm_latency_ms: per text-generation call
- triage_requests_total: one point per triage, tagged with decision and
  whether the sequential retry path was taken
"""

import base64
import time
from typing import Dict, List, Optional

import httpx

from wildwatch.config import settings
from wildwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _gauge(name: str, unit: str, value: int, timestamp_ns: int, attributes: List[dict]) -> dict:
    return {
        "name": name,
        "unit": unit,
        "gauge": {
            "dataPoints": [
                {"asInt": value, "timeUnixNano": timestamp_ns, "attributes": attributes}
            ]
        },
    }


def _attributes(values: Dict[str, str]) -> List[dict]:
    return [{"key": key, "value": {"stringValue": str(value)}} for key, value in values.items()]


class GrafanaOTLPExporter:
    """
    Export metrics to Grafana Cloud via the OTLP HTTP endpoint.

    Disabled (every export is a no-op returning False) unless host, API key
    and instance id are all configured.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        instance_id: Optional[str] = None
    ):
        self._host = host or settings.grafana_host
        self._api_key = api_key or settings.grafana_api_key
        self._instance_id = instance_id or settings.grafana_instance_id
        self._enabled = bool(self._host and self._api_key and self._instance_id)

        if self._enabled:
            auth_pair = f"{self._instance_id}:{self._api_key}"
            self._auth_encoded = base64.b64encode(auth_pair.encode()).decode()
            if "/otlp/v1/metrics" not in self._host:
                self._url = f"{self._host.rstrip('/')}/otlp/v1/metrics"
            else:
                self._url = self._host
            logger.info(
                "Grafana OTLP exporter initialized",
                extra={"host": self._host, "instance_id": self._instance_id}
            )

    def is_enabled(self) -> bool:
        """Check if exporter is properly configured."""
        return self._enabled

    async def export_llm_metrics(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int,
        operation: str = "chat_completion",
        attributes: Optional[Dict[str, str]] = None
    ) -> bool:
        """
        Export usage metrics for one text-generation call.

        Returns:
            True if export succeeded, False otherwise
        """
        if not self._enabled:
            return False

        timestamp_ns = int(time.time() * 1_000_000_000)
        attrs = _attributes({
            "model": model,
            "operation": operation,
            "service": settings.app_name,
            **(attributes or {}),
        })
        metrics = [
            _gauge("llm_tokens_total", "1", prompt_tokens + completion_tokens, timestamp_ns, attrs),
            _gauge("llm_prompt_tokens", "1", prompt_tokens, timestamp_ns, attrs),
            _gauge("llm_completion_tokens", "1", completion_tokens, timestamp_ns, attrs),
            _gauge("llm_latency_ms", "ms", latency_ms, timestamp_ns, attrs),
        ]
        return await self._push(metrics, context={"model": model, "operation": operation})

    async def export_triage_metrics(
        self,
        decision: str,
        office: str,
        sequential_fallback: bool,
        latency_ms: int
    ) -> bool:
        """Export the outcome of a single triage call."""
        if not self._enabled:
            return False

        timestamp_ns = int(time.time() * 1_000_000_000)
        attrs = _attributes({
            "decision": decision,
            "office": office,
            "sequential_fallback": str(sequential_fallback).lower(),
            "service": settings.app_name,
        })
        metrics = [
            _gauge("triage_requests_total", "1", 1, timestamp_ns, attrs),
            _gauge("triage_latency_ms", "ms", latency_ms, timestamp_ns, attrs),
        ]
        return await self._push(metrics, context={"decision": decision})

    async def _push(self, metrics: List[dict], context: Dict[str, str]) -> bool:
        payload = {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": _attributes({
                            "service.name": settings.app_name,
                            "service.version": settings.app_version,
                            "deployment.environment": settings.environment,
                        })
                    },
                    "scopeMetrics": [{"metrics": metrics}],
                }
            ]
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth_encoded}",
            "X-Grafana-Org-Id": str(self._instance_id),
        }

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(self._url, headers=headers, json=payload)
        except Exception as e:
            logger.error(
                "Error exporting metrics to Grafana",
                extra={"error": str(e), **context}
            )
            return False

        if response.status_code in (200, 202):
            logger.debug("Metrics exported to Grafana", extra=context)
            return True

        logger.warning(
            "Failed to export metrics to Grafana",
            extra={
                "status_code": response.status_code,
                "response": response.text[:500],
                "url": self._url,
                **context,
            }
        )
        return False


# Global exporter instance
_grafana_exporter: Optional[GrafanaOTLPExporter] = None


def get_grafana_exporter() -> Optional[GrafanaOTLPExporter]:
    """Get or create global Grafana exporter instance."""
    global _grafana_exporter
    if _grafana_exporter is None:
        _grafana_exporter = GrafanaOTLPExporter()
    return _grafana_exporter


def init_grafana_exporter(
    host: str,
    api_key: str,
    instance_id: str
) -> GrafanaOTLPExporter:
    """Initialize Grafana exporter with credentials."""
    global _grafana_exporter
    _grafana_exporter = GrafanaOTLPExporter(
        host=host,
        api_key=api_key,
        instance_id=instance_id
    )
    return _grafana_exporter
