"""Config mutations: every setter is load, change one field, save."""

from __future__ import annotations

import os
from pathlib import Path

from archiver.errors import ValidationError
from archiver.models import Config
from archiver.store import MetadataStore

_ON_OFF = ("on", "off")


def _on_off(field: str, value: str) -> str:
    if value not in _ON_OFF:
        raise ValidationError(f"{field} must be 'on' or 'off', got '{value}'")
    return value


class ConfigService:
    def __init__(self, store: MetadataStore):
        self.store = store

    def get(self) -> Config:
        return self.store.load_config()

    def _update(self, **changes: object) -> Config:
        config = self.store.load_config()
        for name, value in changes.items():
            setattr(config, name, value)
        self.store.save_config(config)
        return self.store.load_config()

    def set_update_check(self, value: str) -> Config:
        return self._update(update_check=_on_off("updateCheck", value))

    def set_style(self, value: str) -> Config:
        return self._update(style=_on_off("style", value))

    def set_vault_item_separator(self, separator: str) -> Config:
        if not separator:
            raise ValidationError("vault item separator cannot be empty")
        return self._update(vault_item_separator=separator)

    def set_current_vault(self, vault_id: int) -> Config:
        return self._update(current_vault_id=vault_id)

    def update_last_check(self, timestamp: str) -> Config:
        return self._update(last_update_check=timestamp)

    def add_alias(self, alias: str, target: Path | str) -> Config:
        alias = alias.strip()
        if not alias:
            raise ValidationError("alias cannot be empty")
        config = self.store.load_config()
        aliases = dict(config.alias_map)
        aliases[alias] = os.path.abspath(target)
        return self._update(alias_map=aliases)

    def remove_alias(self, alias: str) -> Config:
        config = self.store.load_config()
        if alias not in config.alias_map:
            raise ValidationError(f"alias '{alias}' is not defined")
        aliases = {k: v for k, v in config.alias_map.items() if k != alias}
        return self._update(alias_map=aliases)

    @staticmethod
    def render_path_with_alias(raw_path: Path | str, alias_map: dict[str, str]) -> str:
        """Replace the longest aliased prefix of *raw_path* with its alias."""
        full = Path(os.path.abspath(raw_path))
        for alias, mapped in sorted(alias_map.items(), key=lambda kv: len(kv[1]), reverse=True):
            base = Path(os.path.abspath(mapped))
            if full == base:
                return alias
            if base in full.parents:
                return str(Path(alias) / full.relative_to(base))
        return str(full)
