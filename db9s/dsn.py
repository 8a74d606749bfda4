"""DSN parsing and validation for connection strings."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote, urlsplit


class DsnError(ValueError):
    """Raised when a DSN is malformed or names an unsupported driver."""


class BackendKind(str, Enum):
    """Closed set of backends the browser can talk to."""

    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"
    REDIS = "redis"
    ELASTICSEARCH = "elasticsearch"


DRIVERS: dict[str, BackendKind] = {
    "postgres": BackendKind.POSTGRES,
    "postgresql": BackendKind.POSTGRES,
    "mysql": BackendKind.MYSQL,
    "sqlite": BackendKind.SQLITE,
    "redis": BackendKind.REDIS,
    "elasticsearch": BackendKind.ELASTICSEARCH,
}

SUPPORTED_DRIVERS: tuple[str, ...] = tuple(DRIVERS)


@dataclass(frozen=True, slots=True)
class Dsn:
    """Parsed `<driver>://[user[:password]@]host[:port][/subject]` string."""

    driver: str
    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None
    subject: str | None = None
    location: str = ""

    @property
    def kind(self) -> BackendKind:
        return DRIVERS[self.driver]

    @property
    def address(self) -> str:
        """`host:port` summary used by the connection list."""

        return f"{self.host or 'unset'}:{self.port or 0}"


def parse_dsn(raw: str) -> Dsn:
    """Parse and validate a DSN, raising `DsnError` on failure."""

    text = (raw or "").strip()
    if "://" not in text:
        raise DsnError("Invalid DSN")
    parsed = urlsplit(text)
    driver = parsed.scheme.lower()
    if not driver:
        raise DsnError("Invalid DSN")
    if driver not in DRIVERS:
        raise DsnError(f"Unsupported DSN type. Allowed: ({', '.join(SUPPORTED_DRIVERS)})")
    try:
        port = parsed.port
    except ValueError as exc:
        raise DsnError("Invalid DSN") from exc
    location = parsed.netloc.rpartition("@")[2] + parsed.path
    if DRIVERS[driver] is BackendKind.SQLITE:
        if not location:
            raise DsnError("Invalid DSN")
    elif not parsed.hostname:
        raise DsnError("Invalid DSN")
    subject = parsed.path.lstrip("/") or None
    return Dsn(
        driver=driver,
        host=parsed.hostname,
        port=port,
        username=unquote(parsed.username) if parsed.username else None,
        password=unquote(parsed.password) if parsed.password is not None else None,
        subject=subject,
        location=location,
    )


def validate_dsn(raw: str) -> str:
    """Return an empty string for a valid DSN, otherwise the reason it was rejected."""

    try:
        parse_dsn(raw)
    except DsnError as exc:
        return str(exc)
    return ""


def backend_kind(raw: str) -> BackendKind:
    return parse_dsn(raw).kind


__all__ = [
    "BackendKind",
    "DRIVERS",
    "Dsn",
    "DsnError",
    "SUPPORTED_DRIVERS",
    "backend_kind",
    "parse_dsn",
    "validate_dsn",
]
