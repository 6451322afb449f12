from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_dir(var_name: str, default: Path) -> Path:
    value = os.getenv(var_name)
    return Path(value).expanduser().resolve() if value else default


@dataclass(frozen=True)
class Paths:
    """Browser profile and log locations for one installation."""

    user_data_dir: Path
    logs_dir: Path

    @classmethod
    def under(cls, root: Path) -> "Paths":
        root = root.resolve()
        return cls(user_data_dir=root / "data" / "user_data", logs_dir=root / "logs")

    @classmethod
    def from_env(cls, root: Path) -> "Paths":
        """``under(root)`` with USER_DATA_DIR / LOGS_DIR overrides."""
        base = cls.under(root)
        return cls(
            user_data_dir=_env_dir("USER_DATA_DIR", base.user_data_dir),
            logs_dir=_env_dir("LOGS_DIR", base.logs_dir),
        )

    def ensure(self) -> None:
        self.user_data_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)
