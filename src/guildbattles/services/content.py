from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from guildbattles.engine.state import GameConfig
from guildbattles.engine.types import AbilityCatalog


class ContentError(RuntimeError):
    pass


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ContentError(f"Missing content file: {path}") from e
    except json.JSONDecodeError as e:
        raise ContentError(f"Invalid JSON in {path}: {e}") from e


def _load_schema(path: Path) -> object:
    return _load_json(path)


def validate_json(instance: object, schema: object, *, context: str) -> None:
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: [str(p) for p in e.path])
    if errors:
        lines = [f"Schema validation failed for {context}:"]
        for err in errors[:10]:
            loc = "/".join(str(p) for p in err.absolute_path)
            lines.append(f"- {loc}: {err.message}")
        raise ContentError("\n".join(lines))


def _require_int(obj: Mapping[str, object], key: str) -> int:
    v = obj.get(key)
    if not isinstance(v, int):
        raise ContentError(f"Expected int for {key}")
    return v


def _require_mapping(obj: Mapping[str, object], key: str) -> Mapping[str, object]:
    v = obj.get(key)
    if not isinstance(v, dict):
        raise ContentError(f"Expected object for {key}")
    return v


class ContentService:
    def __init__(self, data_dir: Path, schema_dir: Path) -> None:
        self._data_dir = data_dir
        self._schema_dir = schema_dir
        self._intent_schema: object | None = None

    def _load_validated(self, name: str, schema_name: str) -> Mapping[str, object]:
        path = self._data_dir / name
        raw = _load_json(path)
        schema = _load_schema(self._schema_dir / schema_name)
        validate_json(raw, schema, context=str(path))
        if not isinstance(raw, dict):
            raise ContentError(f"{name} must be an object")
        return raw

    def load_catalog(self) -> AbilityCatalog:
        raw = self._load_validated("abilities.json", "abilities.schema.json")
        table = _require_mapping(raw, "standardized")
        standardized: dict[str, str | None] = {}
        for legacy, text in table.items():
            if text is not None and not isinstance(text, str):
                raise ContentError(f"Standardized text for {legacy!r} must be a string or null")
            standardized[legacy] = text
        names = raw.get("card_names")
        if not isinstance(names, list):
            raise ContentError("abilities.json.card_names must be a list")
        catalog = AbilityCatalog(
            standardized=standardized,
            card_names=tuple(n for n in names if isinstance(n, str)),
        )
        if not catalog.active_texts():
            raise ContentError("abilities.json has no active abilities")
        return catalog

    def load_rules(self) -> GameConfig:
        raw = self._load_validated("rules.json", "rules.schema.json")
        deck = _require_mapping(raw, "deck")
        cfg = GameConfig(
            hand_size=_require_int(raw, "hand_size"),
            draws_per_turn=_require_int(raw, "draws_per_turn"),
            win_threshold=_require_int(raw, "win_threshold"),
            min_players=_require_int(raw, "min_players"),
            max_players=_require_int(raw, "max_players"),
            min_unit_size=_require_int(raw, "min_unit_size"),
            attacks_per_turn=_require_int(raw, "attacks_per_turn"),
            deck_colors=_require_int(deck, "colors"),
            cards_per_color=_require_int(deck, "cards_per_color"),
        )
        if cfg.min_players > cfg.max_players:
            raise ContentError("rules.json: min_players exceeds max_players")
        return cfg

    def load_intent_schema(self) -> object:
        if self._intent_schema is None:
            self._intent_schema = _load_schema(self._schema_dir / "intent.schema.json")
        return self._intent_schema

    def validate_intent(self, payload: object) -> None:
        validate_json(payload, self.load_intent_schema(), context="intent")

    def validate_all(self) -> None:
        # Load is validation (schema + parse)
        _ = self.load_catalog()
        _ = self.load_rules()
        try:
            Draft202012Validator.check_schema(self.load_intent_schema())  # type: ignore[arg-type]
        except SchemaError as e:
            raise ContentError(f"Invalid intent schema: {e.message}") from e
