"""Parser for stream definition files and connection settings."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from ksqlstream.core.models import KsqlConfig, StreamDescriptor

URL_ENV_VAR = "KSQLDB_URL"
USERNAME_ENV_VAR = "KSQLDB_USERNAME"
PASSWORD_ENV_VAR = "KSQLDB_PASSWORD"


class EnvVarError(Exception):
    """Error when environment variable is not set."""

    pass


class ParseError(Exception):
    """Error during parsing."""

    pass


class ConfigError(Exception):
    """Error in connection settings."""

    pass


class StreamFileParser:
    """Parser for YAML stream definition files."""

    ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

    def __init__(self, path: Path) -> None:
        """Initialize parser with the definition file path."""
        self.path = path.resolve()
        self._data: Optional[dict[str, Any]] = None

        # Load .env file next to the definition file if present
        env_file = self.path.parent / ".env"
        if env_file.exists():
            load_dotenv(env_file)

    @property
    def data(self) -> dict[str, Any]:
        """Raw file content with environment variables resolved."""
        if self._data is None:
            raw = self._load_yaml(self.path)
            missing = self._check_env_vars(raw)
            if missing:
                raise EnvVarError(
                    f"Environment variable{'s' if len(missing) > 1 else ''} "
                    f"not set: {', '.join(sorted(set(missing)))}"
                )
            self._data = self._resolve_env_vars(raw)
        return self._data

    def parse_streams(self) -> list[StreamDescriptor]:
        """Parse the streams section."""
        streams_data = self.data.get("streams")
        if streams_data is None:
            raise ParseError(f"Missing 'streams' section in {self.path}")
        if not isinstance(streams_data, list):
            raise ParseError(f"'streams' must be a list in {self.path}")

        streams = []
        for index, stream_data in enumerate(streams_data):
            if not isinstance(stream_data, dict):
                raise ParseError(f"Stream #{index + 1} in {self.path} must be a mapping")
            try:
                streams.append(StreamDescriptor(**stream_data))
            except ValidationError as e:
                name = stream_data.get("name", f"#{index + 1}")
                raise ParseError(f"Invalid stream '{name}': {e}") from e
        return streams

    def parse_config(
        self,
        url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> KsqlConfig:
        """Parse connection settings, letting explicit values win over the file."""
        settings = self.data.get("ksqldb") or {}
        if not isinstance(settings, dict):
            raise ParseError(f"'ksqldb' must be a mapping in {self.path}")
        return load_config(
            url=url or settings.get("url"),
            username=username or settings.get("username"),
            password=password or settings.get("password"),
            timeout=settings.get("timeout"),
        )

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        """Load and parse a YAML file."""
        try:
            with open(path) as f:
                content = f.read()
        except OSError as e:
            raise ParseError(f"Cannot read '{path}': {e}") from e
        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ParseError(f"YAML parse error in '{path}': {e}") from e
        if not isinstance(data, dict):
            raise ParseError(f"Top level of '{path}' must be a mapping")
        return data

    def _resolve_env_vars(self, value: Any) -> Any:
        """Recursively resolve environment variables in a value."""
        if isinstance(value, str):
            return self._resolve_env_var_string(value)
        elif isinstance(value, dict):
            return {k: self._resolve_env_vars(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [self._resolve_env_vars(v) for v in value]
        return value

    def _resolve_env_var_string(self, value: str) -> str:
        """Resolve environment variables in a string."""

        def replace(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise EnvVarError(f"Environment variable '{var_name}' not set")
            return env_value

        return self.ENV_VAR_PATTERN.sub(replace, value)

    def _check_env_vars(self, value: Any) -> list[str]:
        """Check which environment variables are used but not set."""
        missing = []
        if isinstance(value, str):
            for match in self.ENV_VAR_PATTERN.finditer(value):
                var_name = match.group(1)
                if os.environ.get(var_name) is None:
                    missing.append(var_name)
        elif isinstance(value, dict):
            for v in value.values():
                missing.extend(self._check_env_vars(v))
        elif isinstance(value, list):
            for v in value:
                missing.extend(self._check_env_vars(v))
        return missing


def load_config(
    url: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    timeout: Optional[float] = None,
) -> KsqlConfig:
    """Build connection settings, falling back to KSQLDB_* environment variables."""
    url = url or os.environ.get(URL_ENV_VAR, "")
    username = username or os.environ.get(USERNAME_ENV_VAR, "")
    password = password or os.environ.get(PASSWORD_ENV_VAR, "")

    if not url:
        raise ConfigError(
            f"Missing URL configuration: the ksqlDB URL was not found in the "
            f"{URL_ENV_VAR} environment variable, the 'ksqldb.url' setting or the --url option."
        )

    kwargs: dict[str, Any] = {"url": url, "username": username, "password": password}
    if timeout is not None:
        kwargs["timeout"] = timeout
    try:
        return KsqlConfig(**kwargs)
    except ValidationError as e:
        raise ConfigError(f"Invalid ksqlDB configuration: {e}") from e
