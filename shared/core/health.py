"""
Health and readiness endpoints.

/health and /health/live are cheap liveness probes; /health/ready checks the
ledger database (and Redis when REDIS_URL is configured) plus local disk and
memory headroom.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from typing import Callable, Dict, Any, Optional
import os
import time
import redis
from datetime import datetime, timezone
from enum import Enum
import psutil
import logging

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


class ServiceHealth:
    """
    Health checks for one service.

    ``engine_provider`` returns the SQLAlchemy engine the service writes to;
    it is resolved lazily so tests can swap the engine after import.
    """

    def __init__(self, service_name: str, version: str = "1.0.0",
                 engine_provider: Optional[Callable[[], Engine]] = None):
        self.service_name = service_name
        self.version = version
        self.engine_provider = engine_provider
        self.start_time = time.time()
        self.checks_performed = 0
        self.last_check_time = None

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health", status_code=status.HTTP_200_OK)
        def health_check() -> Dict[str, Any]:
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "timestamp": _now()
            }

        @router.get("/health/live", status_code=status.HTTP_200_OK)
        def liveness() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        def readiness() -> JSONResponse:
            checks = self.perform_readiness_checks()
            overall_status = self.calculate_overall_status(checks)
            status_code = status.HTTP_200_OK if overall_status != HealthStatus.FAIL else status.HTTP_503_SERVICE_UNAVAILABLE

            return JSONResponse(status_code=status_code, content={
                "status": overall_status,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "checks": checks,
                "serviceId": self.service_name,
                "description": f"{self.service_name} service",
                "timestamp": _now()
            })

        @router.get("/metrics")
        def metrics() -> Dict[str, Any]:
            process = psutil.Process()
            memory = process.memory_info()
            return {
                "service": self.service_name,
                "version": self.version,
                "uptime_seconds": time.time() - self.start_time,
                "checks_performed": self.checks_performed,
                "timestamp": _now(),
                "system": {
                    "memory_rss_bytes": memory.rss,
                    "memory_vms_bytes": memory.vms,
                    "cpu_percent": process.cpu_percent(),
                    "num_threads": process.num_threads()
                }
            }

        return router

    def perform_readiness_checks(self) -> Dict[str, Dict[str, Any]]:
        self.checks_performed += 1
        self.last_check_time = time.time()

        checks = {"database:connectivity": self._check_database()}
        if os.getenv("REDIS_URL"):
            checks["cache:connectivity"] = self._check_redis()
        checks["storage:disk_space"] = self._check_disk_space()
        checks["system:memory"] = self._check_memory()
        return checks

    def _check_database(self) -> Dict[str, Any]:
        if self.engine_provider is None:
            return {"status": HealthStatus.WARN, "componentType": "datastore",
                    "output": "No database configured", "time": _now()}
        try:
            start_time = time.time()
            engine = self.engine_provider()
            with engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
                migrated = inspect(conn).has_table("alembic_version")
            response_time = (time.time() - start_time) * 1000

            result = {
                "status": HealthStatus.PASS,
                "componentType": "datastore",
                "observedValue": f"{response_time:.2f}ms",
                "observedUnit": "ms",
                "time": _now()
            }
            if not migrated:
                result["output"] = "Migrations table not found"
            return result
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": HealthStatus.FAIL,
                "componentType": "datastore",
                "output": str(e),
                "time": _now()
            }

    def _check_redis(self) -> Dict[str, Any]:
        try:
            start_time = time.time()
            r = redis.from_url(os.getenv("REDIS_URL"), socket_connect_timeout=1)
            r.ping()
            response_time = (time.time() - start_time) * 1000
            return {
                "status": HealthStatus.PASS,
                "componentType": "cache",
                "observedValue": f"{response_time:.2f}ms",
                "observedUnit": "ms",
                "time": _now()
            }
        except Exception as e:
            # Redis is optional for the ledger
            return {
                "status": HealthStatus.WARN,
                "componentType": "cache",
                "output": str(e),
                "time": _now()
            }

    def _check_disk_space(self) -> Dict[str, Any]:
        try:
            free_gb = psutil.disk_usage('/').free / (1024 ** 3)
            if free_gb < 1:
                status_val = HealthStatus.FAIL
            elif free_gb < 5:
                status_val = HealthStatus.WARN
            else:
                status_val = HealthStatus.PASS
            return {
                "status": status_val,
                "componentType": "system",
                "observedValue": f"{free_gb:.2f}",
                "observedUnit": "GB",
                "time": _now()
            }
        except Exception as e:
            return {"status": HealthStatus.WARN, "componentType": "system",
                    "output": str(e), "time": _now()}

    def _check_memory(self) -> Dict[str, Any]:
        try:
            available_mb = psutil.virtual_memory().available / (1024 ** 2)
            if available_mb < 100:
                status_val = HealthStatus.FAIL
            elif available_mb < 500:
                status_val = HealthStatus.WARN
            else:
                status_val = HealthStatus.PASS
            return {
                "status": status_val,
                "componentType": "system",
                "observedValue": f"{available_mb:.2f}",
                "observedUnit": "MB",
                "time": _now()
            }
        except Exception as e:
            return {"status": HealthStatus.WARN, "componentType": "system",
                    "output": str(e), "time": _now()}

    @staticmethod
    def calculate_overall_status(checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
        statuses = [check.get("status", HealthStatus.PASS) for check in checks.values()]
        if HealthStatus.FAIL in statuses:
            return HealthStatus.FAIL
        if HealthStatus.WARN in statuses:
            return HealthStatus.WARN
        return HealthStatus.PASS
