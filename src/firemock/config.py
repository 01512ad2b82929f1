"""
Configuration for a mock database.

All configuration is validated at construction time. Environment variables
are read once via ``MockConfig.from_env()`` and the resulting object is
immutable.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_DEFAULT_ROOT_PATH = "Mock://"
_DEFAULT_AUTO_ID_LENGTH = 20
_DEFAULT_STREAM_TIMEOUT = 5.0
_MAX_AUTO_ID_LENGTH = 100


@dataclass(frozen=True)
class MockConfig:
    """Validated, immutable configuration for :class:`~firemock.client.MockFirestore`.

    Args:
        root_path: Path prefix reported by the root and by detached queries.
        auto_flush: ``False`` to flush only on demand, ``True`` to flush on
            every deferred operation, or a delay in seconds.
        auto_id_length: Length of generated document ids (1-100).
        stream_timeout: Seconds a synchronous stream consumer waits for the
            query to be flushed.
    """

    root_path: str = _DEFAULT_ROOT_PATH
    auto_flush: bool | float = False
    auto_id_length: int = _DEFAULT_AUTO_ID_LENGTH
    stream_timeout: float = _DEFAULT_STREAM_TIMEOUT

    def __post_init__(self) -> None:
        errors: list[str] = []

        if not self.root_path:
            errors.append("root_path must be a non-empty string")
        if not isinstance(self.auto_flush, bool) and self.auto_flush < 0:
            errors.append(f"auto_flush delay must be >= 0, got {self.auto_flush}")
        if self.auto_id_length < 1 or self.auto_id_length > _MAX_AUTO_ID_LENGTH:
            errors.append(
                f"auto_id_length must be 1-{_MAX_AUTO_ID_LENGTH}, got {self.auto_id_length}"
            )
        if self.stream_timeout <= 0:
            errors.append(f"stream_timeout must be > 0, got {self.stream_timeout}")

        if errors:
            raise ValueError("Invalid firemock configuration: " + "; ".join(errors))

    @classmethod
    def from_env(cls, **overrides: object) -> MockConfig:
        """Build config from environment variables with optional overrides.

        Environment variables:
            FIREMOCK_ROOT_PATH        -- Root path (default Mock://)
            FIREMOCK_AUTO_FLUSH       -- "true", "false", or a delay in seconds
            FIREMOCK_AUTO_ID_LENGTH   -- Generated id length (default 20)
            FIREMOCK_STREAM_TIMEOUT   -- Stream wait seconds (default 5.0)

        Explicit keyword arguments override environment variables.
        """

        def _env_float(key: str, default: float) -> float:
            raw = os.environ.get(key)
            if raw is None:
                return default
            try:
                return float(raw)
            except ValueError:
                raise ValueError(f"Environment variable {key}={raw!r} is not a valid number")

        def _env_int(key: str, default: int) -> int:
            raw = os.environ.get(key)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                raise ValueError(f"Environment variable {key}={raw!r} is not a valid integer")

        def _env_flush(key: str, default: bool | float) -> bool | float:
            raw = os.environ.get(key)
            if raw is None:
                return default
            low = raw.strip().lower()
            if low in ("true", "1", "yes"):
                return True
            if low in ("false", "0", "no", ""):
                return False
            try:
                return float(low)
            except ValueError:
                raise ValueError(
                    f"Environment variable {key}={raw!r} must be true, false or seconds"
                )

        kwargs: dict[str, object] = {
            "root_path": os.environ.get("FIREMOCK_ROOT_PATH", _DEFAULT_ROOT_PATH),
            "auto_flush": _env_flush("FIREMOCK_AUTO_FLUSH", False),
            "auto_id_length": _env_int("FIREMOCK_AUTO_ID_LENGTH", _DEFAULT_AUTO_ID_LENGTH),
            "stream_timeout": _env_float("FIREMOCK_STREAM_TIMEOUT", _DEFAULT_STREAM_TIMEOUT),
        }
        kwargs.update({k: v for k, v in overrides.items() if v is not None})

        config = cls(**kwargs)  # type: ignore[arg-type]
        logger.debug(
            "firemock config: root_path=%s auto_flush=%r auto_id_length=%d stream_timeout=%.1f",
            config.root_path,
            config.auto_flush,
            config.auto_id_length,
            config.stream_timeout,
        )
        return config
