"""Versioned seed table for the canonical built-in roles.

The table is configuration (config/roles.yaml), not code. It is parsed
with yaml.safe_load and validated with pydantic before any role is
written, so a bad deploy fails before touching the store.
"""

from __future__ import annotations

from pathlib import Path

import pydantic
import yaml
from pydantic import BaseModel, field_validator, model_validator

from src.authz.catalog import PERMISSION_CATALOG
from src.shared.errors import ValidationError

DEFAULT_SEED_PATH = Path(__file__).resolve().parents[2] / "config" / "roles.yaml"


class SeedRole(BaseModel):
    name: str
    display_name: str
    description: str = ""
    level: int
    is_default: bool = False
    permissions: list[str]

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            msg = "role name cannot be empty"
            raise ValueError(msg)
        return v.strip().lower()

    @field_validator("permissions")
    @classmethod
    def permissions_in_catalog(cls, v: list[str]) -> list[str]:
        unknown = sorted(set(v) - PERMISSION_CATALOG)
        if unknown:
            msg = f"unknown permission(s): {', '.join(unknown)}"
            raise ValueError(msg)
        return v


class SeedTable(BaseModel):
    version: int
    roles: list[SeedRole]

    @model_validator(mode="after")
    def check_table_invariants(self) -> SeedTable:
        names = [r.name for r in self.roles]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            msg = f"duplicate role name(s): {', '.join(dupes)}"
            raise ValueError(msg)
        defaults = [r.name for r in self.roles if r.is_default]
        if len(defaults) > 1:
            msg = f"at most one default role allowed, got: {', '.join(defaults)}"
            raise ValueError(msg)
        return self


def parse_seed_table(data: object) -> SeedTable:
    """Validate an already-parsed seed document."""
    try:
        return SeedTable.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid seed table: {exc}", field="seed") from exc


def load_seed_table(path: Path | None = None) -> SeedTable:
    """Load and validate the seed table from YAML.

    Raises:
        ValidationError: If the file is missing or fails validation.
    """
    seed_path = path or DEFAULT_SEED_PATH
    if not seed_path.exists():
        raise ValidationError(f"Seed table not found: {seed_path}", field="seed")
    with seed_path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return parse_seed_table(data)
