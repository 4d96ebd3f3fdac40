from __future__ import annotations
"""Application settings and their loading helpers."""

from dataclasses import dataclass, fields, replace
import json
import logging
import os
from pathlib import Path
from typing import Mapping

LOGGER = logging.getLogger(__name__)

TRANSPORTS = ("http", "boto3")
ENV_OVERRIDES = {
    "S3NAV_BUCKET": "bucket",
    "S3NAV_REGION": "region",
    "S3NAV_PROXY_BASE": "proxy_base",
    "S3NAV_TRANSPORT": "transport",
}


@dataclass(frozen=True)
class AppSettings:
    """Connection and request settings for a single public bucket."""

    bucket: str = "ons-aws-prod-opendata"
    region: str = "us-west-2"
    proxy_base: str = "corsproxy.io"
    transport: str = "http"
    timeout_seconds: float = 30.0
    max_retries: int = 2
    backoff_factor: float = 0.5
    max_pages: int = 1000

    def endpoint_for(self, bucket: str) -> str:
        return f"https://{bucket}.s3-{self.region}.amazonaws.com"

    @property
    def proxy_url(self) -> str:
        base = self.proxy_base.strip().rstrip("/")
        if not base:
            return ""
        if "://" not in base:
            base = f"https://{base}"
        return base

    def build_url(self, target: str) -> str:
        """Route ``target`` through the configured proxy, if any."""

        proxy = self.proxy_url
        if not proxy:
            return target
        return f"{proxy}/?{target}"


def _positive_int(value: object, default: int, *, allow_zero: bool = False) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < 0 or (number == 0 and not allow_zero):
        return default
    return number


def _positive_float(value: object, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number <= 0:
        return default
    return number


def _text(value: object, default: str) -> str:
    if not isinstance(value, str) or not value.strip():
        return default
    return value.strip()


def settings_from_mapping(data: Mapping[str, object]) -> AppSettings:
    """Build :class:`AppSettings` from loosely typed data, falling back to defaults."""

    defaults = AppSettings()
    transport = _text(data.get("transport"), defaults.transport).lower()
    if transport not in TRANSPORTS:
        transport = defaults.transport
    proxy_base = data.get("proxy_base", defaults.proxy_base)
    return AppSettings(
        bucket=_text(data.get("bucket"), defaults.bucket),
        region=_text(data.get("region"), defaults.region),
        # An empty proxy is meaningful: request S3 directly.
        proxy_base=proxy_base.strip() if isinstance(proxy_base, str) else defaults.proxy_base,
        transport=transport,
        timeout_seconds=_positive_float(data.get("timeout_seconds"), defaults.timeout_seconds),
        max_retries=_positive_int(data.get("max_retries"), defaults.max_retries, allow_zero=True),
        backoff_factor=_positive_float(data.get("backoff_factor"), defaults.backoff_factor),
        max_pages=_positive_int(data.get("max_pages"), defaults.max_pages),
    )


def apply_env_overrides(settings: AppSettings, environ: Mapping[str, str] | None = None) -> AppSettings:
    environ = os.environ if environ is None else environ
    overrides = {
        attribute: environ[variable]
        for variable, attribute in ENV_OVERRIDES.items()
        if variable in environ
    }
    if not overrides:
        return settings
    LOGGER.debug("Applying environment overrides for %s", ", ".join(sorted(overrides)))
    current = {item.name: getattr(settings, item.name) for item in fields(settings)}
    merged = settings_from_mapping({**current, **overrides})
    return replace(settings, **{name: getattr(merged, name) for name in overrides})


class SettingsStorage:
    """Read-only JSON source for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3nav_settings.json"
        self._path = Path(storage_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Ignoring unreadable settings file %s", self._path)
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()
        return settings_from_mapping(data)
