# backend/app/services/normalization/field_extractor.py
import re
from ipaddress import ip_address

# Compiled once, shared read-only by every normalizer.
EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
IPV4_RE = re.compile(r"\b(?:[0-9]{1,3}\.){3}[0-9]{1,3}\b")


def is_valid_address(value: str) -> bool:
    """Parseable IP (v4 or v6) that is neither loopback nor unspecified."""
    try:
        ip_obj = ip_address(value)
    except ValueError:
        return False
    return not (ip_obj.is_loopback or ip_obj.is_unspecified)


def extract_addresses(text: str) -> frozenset[str]:
    return frozenset(m for m in IPV4_RE.findall(text) if is_valid_address(m))


def extract_identities(text: str) -> frozenset[str]:
    return frozenset(m.lower() for m in EMAIL_RE.findall(text))
