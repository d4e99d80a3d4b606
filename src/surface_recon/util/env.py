"""Load and validate environment configuration.

Settings come from the process environment, optionally seeded from a .env
file. Unlike a standalone scanner, the engine runs inside another service,
so a missing .env is fine - every setting has a default.
"""

import os
from pathlib import Path
from typing import Optional, FrozenSet
from dotenv import load_dotenv

from surface_recon.util.types import ScanConfig, ScanPolicy, WildcardMatch, DEFAULT_BLOCKED_HOSTS, DEFAULT_USER_AGENT


def _load_env_file(env_file: Optional[Path]) -> None:
    if env_file is None:
        env_file = get_repo_root() / ".env"
    if env_file.exists():
        load_dotenv(env_file)


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _get_number(name: str, default, cast, minimum=None):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be a {cast.__name__}, got {raw!r}") from None
    if minimum is not None and value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_set(name: str) -> FrozenSet[str]:
    raw = os.getenv(name, "")
    return frozenset(item.strip().lower() for item in raw.split(",") if item.strip())


def load_config(env_file: Optional[Path] = None) -> ScanConfig:
    """Build a ScanConfig from the environment.

    Crashes early on malformed values rather than scanning with surprises.
    """
    _load_env_file(env_file)

    raw_match = os.getenv("WILDCARD_MATCH", WildcardMatch.EXACT.value).strip().lower()
    try:
        wildcard_match = WildcardMatch(raw_match)
    except ValueError:
        choices = ", ".join(m.value for m in WildcardMatch)
        raise ValueError(f"WILDCARD_MATCH must be one of: {choices}") from None

    return ScanConfig(
        dns_timeout=_get_number("DNS_TIMEOUT", 3.0, float, minimum=0.1),
        probe_timeout=_get_number("PROBE_TIMEOUT", 3.0, float, minimum=0.1),
        http_timeout=_get_number("HTTP_TIMEOUT", 8.0, float, minimum=0.1),

        enum_batch_size=_get_number("ENUM_BATCH_SIZE", 10, int, minimum=1),
        enum_max_discoveries=_get_number("ENUM_MAX_DISCOVERIES", 20, int, minimum=1),
        wildcard_match=wildcard_match,

        crawl_batch_size=_get_number("CRAWL_BATCH_SIZE", 5, int, minimum=1),
        crawl_max_pages=_get_number("CRAWL_MAX_PAGES", 50, int, minimum=1),
        crawl_time_budget=_get_number("CRAWL_TIME_BUDGET", 30.0, float, minimum=0.0),
        max_body_bytes=_get_number("MAX_BODY_BYTES", 500_000, int, minimum=1),

        allow_insecure_tls=_get_bool("ALLOW_INSECURE_TLS", False),
        user_agent=os.getenv("USER_AGENT") or DEFAULT_USER_AGENT,
    )


def load_policy(env_file: Optional[Path] = None) -> ScanPolicy:
    """Build the organization-level SSRF policy from the environment.

    SSRF_BLOCKED_HOSTS extends the built-in block list, it never replaces it.
    """
    _load_env_file(env_file)

    protocols = _get_set("SSRF_ALLOWED_PROTOCOLS") or frozenset({"http", "https"})

    return ScanPolicy(
        allow_private_ips=_get_bool("SSRF_ALLOW_PRIVATE_IPS", False),
        allowed_protocols=protocols,
        allowed_hosts=_get_set("SSRF_ALLOWED_HOSTS"),
        blocked_hosts=DEFAULT_BLOCKED_HOSTS | _get_set("SSRF_BLOCKED_HOSTS"),
        max_redirects=_get_number("SSRF_MAX_REDIRECTS", 5, int, minimum=0),
    )


def get_repo_root() -> Path:
    """Return the repository root directory."""
    return Path(__file__).parent.parent.parent.parent
