# backend/app/services/logs/loki_client.py
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
import logging

import httpx

from app.core.config import settings
from app.core.errors import LogSourceUnavailable
from app.schemas.logs import RawLogRecord
from app.services.logs.retry import async_retry

logger = logging.getLogger(__name__)


QUERY_RANGE_PATH = "/loki/api/v1/query_range"


def _escape_logql(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _ns_to_datetime(value: str) -> datetime:
    ns = int(value)
    return datetime.fromtimestamp(ns // 1_000_000_000, tz=timezone.utc) + timedelta(
        microseconds=(ns % 1_000_000_000) // 1000
    )


def _to_ns(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - datetime(1970, 1, 1, tzinfo=timezone.utc)
    return str((delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1000)


class LokiClient:
    """
    Minimal Loki query_range client.

    Every query is scoped to one project via the `project_id` stream label,
    optionally narrowed by a line filter (`|= "..."`).
    """

    def __init__(
        self,
        base_url: str = settings.LOKI_BASE_URL,
        *,
        limit: int = settings.LOKI_QUERY_LIMIT,
        timeout: float = settings.LOKI_TIMEOUT_SECONDS,
        attempts: int = settings.LOKI_RETRY_ATTEMPTS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.limit = limit
        self.timeout = timeout
        self.attempts = attempts
        self._transport = transport

    async def query_range(
        self,
        project_id: str,
        start: datetime,
        end: datetime,
        line_filter: str = "",
    ) -> List[RawLogRecord]:
        """
        Raises LogSourceUnavailable when Loki cannot be reached or answers
        with an error / undecodable body.
        """
        query = f'{{project_id="{_escape_logql(project_id)}"}}'
        if line_filter:
            query += f' |= "{_escape_logql(line_filter)}"'

        params = {
            "query": query,
            "start": _to_ns(start),
            "end": _to_ns(end),
            "limit": str(self.limit),
        }

        async def _call() -> Any:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                resp = await client.get(QUERY_RANGE_PATH, params=params)
                resp.raise_for_status()
                return resp.json()

        try:
            body = await async_retry(_call, attempts=self.attempts, base_delay=0.5)
        except (httpx.HTTPError, ValueError) as exc:
            raise LogSourceUnavailable(
                f"Loki query failed for project {project_id}: {type(exc).__name__}: {exc}"
            ) from exc

        return self._parse_streams(body)

    @staticmethod
    def _parse_streams(body: Any) -> List[RawLogRecord]:
        """
        A body that is not a streams response raises LogSourceUnavailable;
        individual malformed streams or values are skipped.
        """
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise LogSourceUnavailable(
                f"unexpected Loki response shape: {type(body).__name__}"
            )

        logs: List[RawLogRecord] = []
        for stream in data.get("result") or []:
            if not isinstance(stream, dict):
                continue
            labels = stream.get("stream") or {}
            if not isinstance(labels, dict):
                labels = {}
            labels = {str(k): str(v) for k, v in labels.items()}

            for value in stream.get("values") or []:
                if not isinstance(value, (list, tuple)) or len(value) < 2:
                    continue
                if not isinstance(value[1], str):
                    logger.debug("Skipping Loki value with non-string line: %r", value[1])
                    continue
                try:
                    ts = _ns_to_datetime(value[0])
                except (TypeError, ValueError):
                    logger.debug("Skipping Loki value with bad timestamp: %r", value[0])
                    continue
                logs.append(RawLogRecord(line=value[1], timestamp=ts, labels=labels))
        return logs

    async def query_logs_around_time(
        self,
        project_id: str,
        alert_time: datetime,
        window_minutes: int = settings.ANALYSIS_WINDOW_MINUTES,
    ) -> List[RawLogRecord]:
        delta = timedelta(minutes=window_minutes)
        return await self.query_range(project_id, alert_time - delta, alert_time + delta)

    async def query_logs_by_ip(
        self, project_id: str, ip_address: str, start: datetime, end: datetime
    ) -> List[RawLogRecord]:
        return await self.query_range(project_id, start, end, line_filter=ip_address)

    async def query_logs_by_user(
        self, project_id: str, user_identifier: str, start: datetime, end: datetime
    ) -> List[RawLogRecord]:
        return await self.query_range(project_id, start, end, line_filter=user_identifier)


loki_client = LokiClient()
