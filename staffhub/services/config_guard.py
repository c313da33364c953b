from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from staffhub.errors import ConfigurationError
from staffhub.settings import missing_connection_settings


@dataclass(frozen=True, slots=True)
class ConfigGuardResult:
    ok: bool
    checked_at_utc: datetime
    missing: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "missing": list(self.missing),
            "missing_count": len(self.missing),
        }

    def raise_for_missing(self) -> None:
        if self.missing:
            raise ConfigurationError(self.missing)


def verify_connection_settings() -> ConfigGuardResult:
    missing = missing_connection_settings()
    return ConfigGuardResult(
        ok=not missing,
        checked_at_utc=datetime.now(timezone.utc),
        missing=missing,
    )
