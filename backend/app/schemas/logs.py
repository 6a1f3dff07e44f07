# backend/app/schemas/logs.py
from typing import Any, Dict, Literal, Optional
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SourceSystem(str, Enum):
    AWS_WAF = "aws_waf"
    AZURE_WAF = "azure_waf"
    AKAMAI_WAF = "akamai_waf"
    DEEP_SECURITY = "deep_security"
    AWS_GUARDDUTY = "aws_guardduty"
    UNKNOWN = "unknown"


class RawLogRecord(BaseModel):
    """One line as returned by the log store (Loki stream value)."""
    model_config = ConfigDict(frozen=True)

    line: str | bytes
    timestamp: Optional[datetime] = None
    labels: Dict[str, str] = Field(default_factory=dict)


class LogContext(BaseModel):
    """
    Correlation context pulled out of structured payloads.
    Never used as primary evidence, only to boost confidence.
    """
    model_config = ConfigDict(frozen=True)

    company_code: Optional[str] = None
    host: Optional[str] = None
    uri: Optional[str] = None
    method: Optional[str] = None
    status_code: Optional[str] = None
    country: Optional[str] = None
    action: Optional[str] = None
    severity: Optional[str] = None


class NormalizedLogRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_text: str
    source_system: SourceSystem = SourceSystem.UNKNOWN
    timestamp: datetime
    network_addresses: frozenset[str] = frozenset()
    identity_strings: frozenset[str] = frozenset()
    context: LogContext = Field(default_factory=LogContext)
    structured_fields: Dict[str, Any] = Field(default_factory=dict)
    payload_kind: Literal["structured", "text"] = "text"

    @property
    def has_identities(self) -> bool:
        return bool(self.identity_strings)

    @property
    def has_addresses(self) -> bool:
        return bool(self.network_addresses)
