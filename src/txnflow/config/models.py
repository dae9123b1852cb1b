"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, txnflow.toml only contains overrides.
An empty file (or no file at all) is a valid configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from txnflow.domain.types import DEFAULT_WILDCARD_TYPES, Anchor, ReapplyPolicy


class DatabaseConfig(BaseModel):
    """[database] section."""

    model_config = {"frozen": True}

    # Relative paths resolve against the project root (where txnflow.toml lives).
    path: str = ".txnflow/txnflow.db"
    echo: bool = False


class EngineConfig(BaseModel):
    """[engine] section."""

    model_config = {"frozen": True}

    reapply: ReapplyPolicy = ReapplyPolicy.REJECT
    default_anchor: Anchor = Anchor.CONTRACT


class CatalogConfig(BaseModel):
    """[catalog] section."""

    model_config = {"frozen": True}

    wildcard_types: list[str] = Field(default_factory=lambda: list(DEFAULT_WILDCARD_TYPES))


class TxnConfig(BaseModel):
    """Root configuration composing all sections."""

    model_config = {"frozen": True}

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
