from __future__ import annotations

import re
import unicodedata

SLUG_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")
DOMAIN_PATTERN = re.compile(r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?)(?:\.[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?)+$")


def normalize_slug(value: str) -> str:
    if not value:
        return ""

    value = unicodedata.normalize("NFKD", value)
    value = value.encode("ascii", "ignore").decode("ascii")
    value = value.lower()
    value = re.sub(r"[^a-z0-9]+", "-", value).strip("-")
    value = re.sub(r"-{2,}", "-", value)

    return value


def is_valid_slug(value: str) -> bool:
    return bool(value) and bool(SLUG_PATTERN.match(value))


def normalize_domain(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower().rstrip(".")
    if normalized.startswith("http://") or normalized.startswith("https://"):
        normalized = normalized.split("://", 1)[1]
    normalized = normalized.split("/")[0]
    return normalized or None


def is_valid_domain(value: str) -> bool:
    return bool(DOMAIN_PATTERN.match(value))
