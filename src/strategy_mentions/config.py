"""
Configuration model for the strategy mention system.
"""

from __future__ import annotations

import os
from typing import Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from strategy_mentions.exceptions import ConfigError

ENV_PREFIX = "STRATEGY_MENTIONS_"

# Environment variable suffix -> config field
ENV_FIELDS: dict[str, str] = {
    "API_URL": "api_url",
    "DEBOUNCE_MS": "debounce_ms",
    "MAX_LENGTH": "max_length",
    "MAX_QUERY_LENGTH": "max_query_length",
    "SEARCH_LIMIT": "search_limit",
    "HTTP_TIMEOUT": "http_timeout",
    "CREATURE_ROUTE": "creature_route",
    "CATALOG_ROUTE": "catalog_route",
}


class MentionConfig(BaseModel):
    """Settings for editing, searching and rendering mention-bearing text.

    Defaults match the team builder's strategy field: a 2000 character
    ceiling, 50 character queries and a 300 ms search debounce.
    """

    # Search backend
    api_url: str = Field(
        default="http://localhost:3001/api",
        description="REST API root serving the creature/move/item/ability catalogs",
    )
    http_timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="Per-request timeout in seconds for catalog loads",
    )
    search_limit: int = Field(
        default=100,
        ge=1,
        description="Maximum candidates returned for a non-empty query",
    )
    debounce_ms: int = Field(
        default=300,
        ge=0,
        le=10000,
        description="Quiet period after the last keystroke before searching",
    )

    # Editing
    max_length: int = Field(
        default=2000,
        ge=1,
        le=100000,
        description="Maximum flat-text length accepted by the edit surface",
    )
    max_query_length: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Longest '@query' that still counts as a mention gesture",
    )

    # Rendering
    creature_route: str = Field(
        default="/entity/{ref}",
        description="Creature chip link; {ref} is the national number, or the id when unset",
    )
    catalog_route: str = Field(
        default="/catalog/{category}/{id}",
        description="Move/item/ability chip link",
    )

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        *,
        load_env_file: bool = True,
    ) -> MentionConfig:
        """Build a config from ``STRATEGY_MENTIONS_*`` variables.

        Args:
            env: Mapping to read instead of ``os.environ``.
            load_env_file: Load a ``.env`` file first (ignored when ``env`` is given).

        Raises:
            ConfigError: If a variable holds an invalid value
        """
        if env is None:
            if load_env_file:
                load_dotenv()
            env = os.environ

        values: dict[str, str] = {}
        for suffix, field_name in ENV_FIELDS.items():
            raw = env.get(f"{ENV_PREFIX}{suffix}")
            if raw is not None and raw.strip() != "":
                values[field_name] = raw.strip()

        try:
            return cls(**values)
        except ValidationError as e:
            problems = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise ConfigError(
                "Invalid strategy mention configuration: " + "; ".join(problems),
                details={"errors": problems},
            ) from e


__all__ = ["ENV_PREFIX", "MentionConfig"]
