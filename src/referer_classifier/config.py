"""
Configuration for the referer classifier.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Snowplow publishes the canonical referer database here
DEFAULT_DATA_URL = (
    "https://s3-eu-west-1.amazonaws.com/snowplow-hosted-assets/"
    "third-party/referer-parser/referers-latest.json"
)
DEFAULT_FETCH_TIMEOUT = 30.0

ENV_PREFIX = "REFERER_"


class InvalidSettingError(ValueError):
    """Raised when a configuration value is out of range."""
    pass


@dataclass
class RefererSettings:
    """Settings for loading the referer database.

    Usage:
        settings = RefererSettings(data_path=Path("/etc/referers.json"))
        db = load_referers(settings.data_path)

    Or from the environment (REFERER_DATA_PATH, REFERER_DATA_URL,
    REFERER_FETCH_TIMEOUT):

        settings = RefererSettings.from_env()
    """

    # None means the database bundled with the package
    data_path: Path | None = None

    # Remote database (used by fetch_referers)
    data_url: str = DEFAULT_DATA_URL
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.data_path is not None and not isinstance(self.data_path, Path):
            self.data_path = Path(self.data_path)

        if self.fetch_timeout <= 0:
            raise InvalidSettingError(
                f"fetch_timeout must be positive. Got {self.fetch_timeout}."
            )

        if not self.data_url.startswith("https://"):
            logger.warning(
                f"Referer database URL {self.data_url} is not served over https"
            )

    @property
    def uses_bundled_data(self) -> bool:
        """Check if the bundled database is used."""
        return self.data_path is None

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "RefererSettings":
        """Build settings from REFERER_* environment variables."""
        env = os.environ if environ is None else environ

        kwargs = {}
        data_path = env.get(f"{ENV_PREFIX}DATA_PATH")
        if data_path:
            kwargs["data_path"] = Path(data_path)

        data_url = env.get(f"{ENV_PREFIX}DATA_URL")
        if data_url:
            kwargs["data_url"] = data_url

        timeout = env.get(f"{ENV_PREFIX}FETCH_TIMEOUT")
        if timeout:
            try:
                kwargs["fetch_timeout"] = float(timeout)
            except ValueError as e:
                raise InvalidSettingError(
                    f"{ENV_PREFIX}FETCH_TIMEOUT must be a number. Got {timeout!r}."
                ) from e

        return cls(**kwargs)
