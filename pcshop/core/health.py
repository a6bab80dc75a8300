"""
Health checks for the shop service.

Liveness never touches dependencies. Readiness checks the database, the
optional redis cache and free memory. Metrics add shop counters (orders per
status, sold-out stock items) to process figures.
"""

import logging
import time
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import psutil
import redis
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

class HealthStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"

def _now() -> str:
    return datetime.utcnow().isoformat() + "Z"

def _component(component_type: str, state: HealthStatus, **observed) -> Dict[str, Any]:
    return {"status": state, "componentType": component_type, "time": _now(), **observed}

class ServiceHealth:
    MEMORY_FAIL_MB = 100
    MEMORY_WARN_MB = 500

    def __init__(self, service_name: str, version: str, engine: Engine, redis_url: Optional[str] = None):
        self.service_name = service_name
        self.version = version
        self.engine = engine
        self.redis_url = redis_url
        self.started = time.monotonic()
        self.readiness_probes = 0

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health")
        def health() -> Dict[str, Any]:
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "timestamp": _now(),
            }

        @router.get("/health/live")
        def live() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        def ready() -> JSONResponse:
            """503 when any dependency check fails."""
            checks = self.perform_readiness_checks()
            overall = self.calculate_overall_status(checks)
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE if overall == HealthStatus.FAIL else status.HTTP_200_OK,
                content={
                    "status": overall,
                    "serviceId": self.service_name,
                    "version": self.version,
                    "checks": checks,
                    "timestamp": _now(),
                },
            )

        @router.get("/metrics")
        def metrics() -> Dict[str, Any]:
            process = psutil.Process()
            return {
                "service": self.service_name,
                "version": self.version,
                "uptime_seconds": round(time.monotonic() - self.started, 3),
                "readiness_probes": self.readiness_probes,
                "shop": self.shop_counters(),
                "system": {
                    "memory_rss_bytes": process.memory_info().rss,
                    "cpu_percent": process.cpu_percent(),
                    "num_threads": process.num_threads(),
                },
                "timestamp": _now(),
            }

        return router

    def perform_readiness_checks(self) -> Dict[str, Dict[str, Any]]:
        self.readiness_probes += 1
        checks = {"database:connectivity": self._check_database()}
        if self.redis_url:
            checks["cache:connectivity"] = self._check_redis()
        checks["system:memory"] = self._check_memory()
        return checks

    def shop_counters(self) -> Dict[str, Any]:
        try:
            with self.engine.connect() as conn:
                by_status = dict(conn.execute(text("SELECT status, COUNT(*) FROM orders GROUP BY status")).all())
                sold_out = conn.execute(text("SELECT COUNT(*) FROM stock_items WHERE quantity = 0")).scalar()
        except SQLAlchemyError as e:
            logger.warning(f"Shop counters unavailable: {e}")
            return {}
        return {"orders_by_status": by_status, "sold_out_items": sold_out}

    def _check_database(self) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return _component("datastore", HealthStatus.FAIL, output=str(e))
        return _component("datastore", HealthStatus.PASS,
                          observedValue=f"{(time.perf_counter() - started) * 1000:.2f}", observedUnit="ms")

    def _check_redis(self) -> Dict[str, Any]:
        try:
            redis.from_url(self.redis_url, socket_connect_timeout=1).ping()
        except redis.RedisError as e:
            # the response cache falls back to process memory, so this only degrades
            return _component("cache", HealthStatus.WARN, output=str(e))
        return _component("cache", HealthStatus.PASS)

    def _check_memory(self) -> Dict[str, Any]:
        available_mb = psutil.virtual_memory().available / (1024 ** 2)
        if available_mb < self.MEMORY_FAIL_MB:
            state = HealthStatus.FAIL
        elif available_mb < self.MEMORY_WARN_MB:
            state = HealthStatus.WARN
        else:
            state = HealthStatus.PASS
        return _component("system", state, observedValue=f"{available_mb:.2f}", observedUnit="MB")

    @staticmethod
    def calculate_overall_status(checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
        """Worst status across all checks."""
        statuses = {check.get("status", HealthStatus.PASS) for check in checks.values()}
        for candidate in (HealthStatus.FAIL, HealthStatus.WARN):
            if candidate in statuses:
                return candidate
        return HealthStatus.PASS
