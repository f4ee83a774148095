"""
Health check and monitoring endpoints for production readiness.
"""
import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from public_api_server.logging_config import get_logger

router = APIRouter(prefix="/api/v1", tags=["health"])


class Metrics:
    """Simple in-memory metrics storage"""
    def __init__(self):
        self.start_time = time.time()
        self.request_count = 0
        self.status_counts: Dict[int, int] = defaultdict(int)
        self.total_duration_ms = 0.0

    def record_request(self, status_code: int, duration_ms: float = 0.0):
        self.request_count += 1
        self.status_counts[status_code] += 1
        self.total_duration_ms += duration_ms

    def get_uptime_seconds(self) -> float:
        return time.time() - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        uptime = self.get_uptime_seconds()
        return {
            "uptime_seconds": round(uptime, 2),
            "uptime_human": self._format_uptime(uptime),
            "requests": {
                "total": self.request_count,
                "rate_per_second": round(self.request_count / uptime, 2) if uptime > 0 else 0,
                "avg_duration_ms": round(self.total_duration_ms / self.request_count, 2) if self.request_count else 0,
                "by_status": {str(code): count for code, count in sorted(self.status_counts.items())},
                "rate_limited": self.status_counts.get(429, 0),
                "server_errors": sum(c for code, c in self.status_counts.items() if code >= 500),
            },
        }

    @staticmethod
    def _format_uptime(seconds: float) -> str:
        """Format uptime in human-readable format"""
        days = int(seconds // 86400)
        hours = int((seconds % 86400) // 3600)
        minutes = int((seconds % 3600) // 60)
        secs = int(seconds % 60)

        if days > 0:
            return f"{days}d {hours}h {minutes}m {secs}s"
        elif hours > 0:
            return f"{hours}h {minutes}m {secs}s"
        elif minutes > 0:
            return f"{minutes}m {secs}s"
        else:
            return f"{secs}s"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check(request: Request):
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "timestamp": _now_iso(),
        "service": request.app.state.settings.app_name,
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness check endpoint.
    Returns 200 only if the record store answers.
    """
    logger = get_logger("health")

    start = time.time()
    try:
        store_ok = await request.app.state.store.ping()
        store_check = {
            "status": "healthy" if store_ok else "unhealthy",
            "response_time_ms": round((time.time() - start) * 1000, 2),
        }
    except Exception as e:
        logger.error(f"Record store health check failed: {e}")
        store_check = {"status": "unhealthy", "error": str(e)}

    is_ready = store_check["status"] == "healthy"
    response = {
        "ready": is_ready,
        "timestamp": _now_iso(),
        "checks": {"record_store": store_check},
    }

    if not is_ready:
        logger.warning("Readiness check failed", checks=response["checks"])

    return JSONResponse(content=response, status_code=200 if is_ready else 503)


@router.get("/metrics")
async def get_metrics(request: Request):
    """
    Get application metrics.
    Returns uptime and request counters.
    """
    return {
        "timestamp": _now_iso(),
        "metrics": request.app.state.metrics.to_dict(),
    }


@router.get("/version")
async def get_version(request: Request):
    """
    Get application version and configuration info.
    """
    settings = request.app.state.settings
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": _now_iso(),
    }


__all__ = ["router", "Metrics"]
