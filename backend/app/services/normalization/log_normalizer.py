# backend/app/services/normalization/log_normalizer.py
import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.core.errors import RecordCorrupt
from app.schemas.logs import (
    LogContext,
    NormalizedLogRecord,
    RawLogRecord,
    SourceSystem,
)
from app.services.normalization.field_extractor import (
    extract_addresses,
    extract_identities,
    is_valid_address,
)

logger = logging.getLogger(__name__)


# Semantic field -> candidate keys across WAF / EDR vendors.
# The first candidate present with a non-null value wins.
FIELD_MAPPINGS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("company_code", ("company_code", "companyCode")),
    ("action", ("action", "terminatingRuleType", "operationName")),
    ("severity", ("severity", "Importance")),
    ("host", ("host", "reqHost", "Host", "Company_host")),
    ("uri", ("uri", "requestUri", "reqPath")),
    ("method", ("httpMethod", "reqMethod")),
    ("status_code", ("statusCode", "status")),
    ("country", ("country", "client_country_name", "client_country_code")),
)

CLIENT_IP_FIELDS = ("clientIP", "cliIP", "client_ip", "clientIp")
FORWARDED_FIELDS = ("xForwardedFor", "x-forwarded-for")

DEEP_SECURITY_MARKER = "Deep Security"
HOST_LABEL = "Host:"

KNOWN_SOURCES = {s.value for s in SourceSystem if s is not SourceSystem.UNKNOWN}


def _to_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def _reject_constant(name: str) -> Any:
    # NaN / Infinity are not valid JSON; such lines are treated as text
    raise ValueError(f"non-standard JSON constant: {name}")


class LogNormalizer:
    """
    Turns one raw log line (JSON or free text) into a NormalizedLogRecord.

    The payload is classified once, on entry:
      - a JSON object  -> "structured" (field table + client-IP keys)
      - anything else  -> "text" (vendor keyword heuristics)

    Addresses and identities are always extracted from the whole line as
    well, since free-text fields often carry values structured keys miss.
    """

    def normalize(self, raw: RawLogRecord) -> NormalizedLogRecord:
        line = self._decode_line(raw)
        if not isinstance(raw.timestamp, datetime):
            raise RecordCorrupt("log record has no usable timestamp")

        data = self._parse_structured(line)
        fields: Dict[str, str] = {}
        addresses: set[str] = set()

        if data is not None:
            fields = self._extract_structured_fields(data)
            addresses.update(self._extract_structured_addresses(data))
        else:
            host = self._extract_text_host(line)
            if host:
                fields["host"] = host

        addresses.update(extract_addresses(line))

        return NormalizedLogRecord(
            original_text=line,
            source_system=self.determine_source(line, data, raw.labels),
            timestamp=raw.timestamp,
            network_addresses=frozenset(addresses),
            identity_strings=extract_identities(line),
            context=LogContext(**fields),
            structured_fields=data or {},
            payload_kind="structured" if data is not None else "text",
        )

    def normalize_batch(self, raws: Iterable[RawLogRecord]) -> List[NormalizedLogRecord]:
        """Normalize a batch, skipping (and logging) corrupt records."""
        out: List[NormalizedLogRecord] = []
        for raw in raws:
            try:
                out.append(self.normalize(raw))
            except RecordCorrupt as exc:
                logger.warning("Skipping corrupt log record: %s", exc)
        return out

    # ------------------------------------------------------------------
    # Payload classification
    # ------------------------------------------------------------------
    @staticmethod
    def _decode_line(raw: RawLogRecord) -> str:
        if isinstance(raw.line, bytes):
            try:
                return raw.line.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise RecordCorrupt(f"log line is not valid UTF-8: {exc}") from exc
        return raw.line

    @staticmethod
    def _parse_structured(line: str) -> Optional[Dict[str, Any]]:
        try:
            data = json.loads(line, parse_constant=_reject_constant)
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    # ------------------------------------------------------------------
    # Structured mode
    # ------------------------------------------------------------------
    @staticmethod
    def _extract_structured_fields(data: Dict[str, Any]) -> Dict[str, str]:
        fields: Dict[str, str] = {}
        for field, keys in FIELD_MAPPINGS:
            for key in keys:
                value = data.get(key)
                if value is not None:
                    fields[field] = _to_str(value)
                    break
        return fields

    @staticmethod
    def _extract_structured_addresses(data: Dict[str, Any]) -> set[str]:
        found: set[str] = set()

        for key in CLIENT_IP_FIELDS:
            if key in data:
                ip = _to_str(data[key]).strip()
                if is_valid_address(ip):
                    found.add(ip)

        for key in FORWARDED_FIELDS:
            if key in data:
                for ip in _to_str(data[key]).split(","):
                    ip = ip.strip()
                    if is_valid_address(ip):
                        found.add(ip)

        return found

    # ------------------------------------------------------------------
    # Text mode
    # ------------------------------------------------------------------
    @staticmethod
    def _extract_text_host(line: str) -> Optional[str]:
        # Deep Security syslog: "... Host: web-01, Reason: ..."
        if DEEP_SECURITY_MARKER not in line or HOST_LABEL not in line:
            return None
        host_part = line.split(HOST_LABEL, 1)[1].strip()
        host_end = host_part.find(",")
        if host_end > 0:
            return host_part[:host_end]
        return None

    # ------------------------------------------------------------------
    # Source detection
    # ------------------------------------------------------------------
    @staticmethod
    def determine_source(
        line: str,
        data: Optional[Dict[str, Any]] = None,
        labels: Optional[Dict[str, str]] = None,
    ) -> SourceSystem:
        if data is not None:
            if "webaclId" in data:
                return SourceSystem.AWS_WAF
            if "operationName" in data and "Microsoft.Cdn" in _to_str(data["operationName"]):
                return SourceSystem.AZURE_WAF
            if "streamId" in data:
                return SourceSystem.AKAMAI_WAF
            if "Rule_name" in data:
                return SourceSystem.DEEP_SECURITY
            if "type" in data and "guardduty" in _to_str(data["type"]):
                return SourceSystem.AWS_GUARDDUTY

        if DEEP_SECURITY_MARKER in line:
            return SourceSystem.DEEP_SECURITY
        if "GuardDuty" in line:
            return SourceSystem.AWS_GUARDDUTY
        if "Akamai" in line:
            return SourceSystem.AKAMAI_WAF

        # Last hint: the Loki stream's own "source" label
        label = (labels or {}).get("source")
        if label in KNOWN_SOURCES:
            return SourceSystem(label)

        return SourceSystem.UNKNOWN


log_normalizer = LogNormalizer()
