"""Unified settings: CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs   CLI flags passed by Click
  2. Env vars      ``TXNFLOW_*`` prefix
  3. TOML file     ``txnflow.toml`` discovered via walk-up
  4. Code defaults baked into the section models

Uses Pydantic Settings v2 with a custom :class:`TomlSettingsSource` that
reuses the ``find_config`` walk-up discovery from
:mod:`txnflow.config.discovery`.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from txnflow.config.discovery import find_config, read_toml
from txnflow.config.models import CatalogConfig, DatabaseConfig, EngineConfig


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from a ``txnflow.toml`` file discovered via walk-up."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            self._data = read_toml(toml_path)

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        """Return the full TOML data dict for Pydantic to merge."""
        return self._data


# Thread-local storage for TOML path during construction.
_tls = threading.local()


class TxnSettings(BaseSettings):
    """Unified settings for the txnflow engine and CLI.

    Attributes:
        root: Project directory (parent of ``txnflow.toml``, or CWD if no
            config found). Relative database paths resolve against it.
        config_path: Explicit ``--config`` override, or None for discovery.
        db_path: Explicit ``--db`` override of ``[database] path``.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "TXNFLOW_",
        "env_nested_delimiter": "__",
    }

    root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None
    db_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    # --- TOML sections ---
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)

    @property
    def database_path(self) -> Path:
        """Resolved SQLite file location."""
        path = self.db_path if self.db_path is not None else Path(self.database.path)
        if not path.is_absolute():
            path = self.root / path
        return path

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | Path | None = None,
        root: Path | None = None,
        **cli_flags: Any,
    ) -> TxnSettings:
        """Construct settings from a CLI invocation (or a test).

        Discovers ``txnflow.toml`` via walk-up (or explicit *config_path*),
        resolves *root* from the config file's parent directory, and merges
        CLI flags as highest-priority overrides. ``None`` flag values are
        dropped so they never mask TOML or env values.
        """
        toml_path: Path | None = None
        if config_path:
            p = Path(config_path)
            if p.is_file():
                toml_path = p
        else:
            toml_path = find_config(root)

        resolved_root = root
        if resolved_root is None:
            resolved_root = toml_path.parent if toml_path else Path.cwd()

        flags = {k: v for k, v in cli_flags.items() if v is not None}
        _tls.toml_path = toml_path
        try:
            return cls(
                root=resolved_root,
                config_path=toml_path,
                **flags,
            )
        finally:
            _tls.toml_path = None
