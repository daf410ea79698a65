"""
db/config.py

Where the sales ledgers live.

The URL comes from the process environment, seeded from ``.env`` and
``.env.local`` at the project root. Lookup order:

``DATABASE_URL``        always wins when set
``CLOUD_DATABASE_URL``  only when ENVIRONMENT is prod, production, staging or cloud
``LOCAL_DATABASE_URL``  fallback in every environment

Bare ``postgres://`` and ``postgresql://`` URLs are rewritten to the
psycopg 3 driver. Passwords never reach the logs: use
``DatabaseUrl.masked()``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

CLOUD_LIKE_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})
ENV_FILES: tuple[str, ...] = (".env", ".env.local")
POSTGRES_DRIVER = "postgresql+psycopg"

_BARE_POSTGRES_DRIVERS = frozenset({"postgres", "postgresql"})
_PROJECT_ROOT = Path(__file__).resolve().parents[1]


@dataclass(frozen=True)
class DatabaseUrl:
    """A resolved URL and the variable it was read from."""

    url: str
    source: str

    @property
    def backend(self) -> str:
        return _parse(self.url, self.source).get_backend_name()

    def masked(self) -> str:
        return _parse(self.url, self.source).render_as_string(hide_password=True)


def _parse(url: str, source: str | None = None) -> URL:
    try:
        return make_url(url.strip())
    except ArgumentError as exc:
        subject = source or "value"
        raise RuntimeError(f"{subject} is not a valid database URL") from exc


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, value = (part.strip() for part in line.split("=", 1))
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        value = value[1:-1]
    return (key, value) if key else None


def load_env_files(root: Path | None = None) -> list[str]:
    """
    Copy KEY=VALUE pairs from the project's env files into ``os.environ``.

    Variables already present in the process are left alone, and an earlier
    file wins over a later one. Returns the keys that were set.
    """

    loaded: list[str] = []
    for filename in ENV_FILES:
        env_path = (root or _PROJECT_ROOT) / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            pair = _parse_env_line(raw_line)
            if pair is None or pair[0] in os.environ:
                continue
            os.environ[pair[0]] = pair[1]
            loaded.append(pair[0])
    return loaded


def normalize_postgres_url(url: str, source: str | None = None) -> str:
    """
    Point bare PostgreSQL URLs at the psycopg 3 driver; other URLs pass through.

    Raises:
        RuntimeError: when ``url`` cannot be parsed.
    """

    parsed = _parse(url, source)
    if parsed.drivername in _BARE_POSTGRES_DRIVERS:
        parsed = parsed.set(drivername=POSTGRES_DRIVER)
    return parsed.render_as_string(hide_password=False)


def is_postgres_url(url: str) -> bool:
    try:
        return make_url(url.strip()).get_backend_name() == "postgresql"
    except ArgumentError:
        return False


def _candidate_variables(environment: str) -> tuple[str, ...]:
    if environment in CLOUD_LIKE_ENVIRONMENTS:
        return ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")
    return ("DATABASE_URL", "LOCAL_DATABASE_URL")


def resolve_database_url_source(environ: Mapping[str, str] | None = None) -> DatabaseUrl:
    """
    Pick the ledger database URL and remember which variable supplied it.

    Args:
        environ: Variables to read instead of ``os.environ``; env files are
            only loaded when this is omitted.

    Raises:
        RuntimeError: when no candidate variable is set, or the chosen one
            does not parse.
    """

    if environ is None:
        load_env_files()
        environ = os.environ

    environment = environ.get("ENVIRONMENT", "local").strip().lower()
    candidates = _candidate_variables(environment)
    for variable in candidates:
        value = (environ.get(variable) or "").strip()
        if value:
            return DatabaseUrl(url=normalize_postgres_url(value, variable), source=variable)

    raise RuntimeError(
        f"No database URL configured for ENVIRONMENT={environment!r}. "
        f"Set one of: {', '.join(candidates)}."
    )


def resolve_database_url(environ: Mapping[str, str] | None = None) -> str:
    return resolve_database_url_source(environ).url
