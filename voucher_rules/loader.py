"""Loader utilities for validation-rule definition files (YAML or JSON)."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Tuple

import yaml
from pydantic import ValidationError

from .evaluator import validate_rule_payload
from .registry import RuleAssignment, RuleRegistry, ValidationRule

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".yaml", ".yml", ".json")


def _load_file(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        if path.suffix == ".json":
            return json.load(handle)
        return yaml.safe_load(handle)


def _entries(raw: Any) -> List[Any]:
    """Accept either a top-level list or a mapping with ``validation_rules``/``data``."""
    if raw is None:
        return []
    if isinstance(raw, dict):
        return raw.get("validation_rules") or raw.get("data") or []
    if isinstance(raw, list):
        return raw
    return []


def _normalize(source: Path, raw: Any) -> Tuple[List[ValidationRule], List[RuleAssignment]]:
    rules: List[ValidationRule] = []
    assignments: List[RuleAssignment] = []
    for entry in _entries(raw):
        if not isinstance(entry, dict):
            continue
        data = dict(entry)
        targets = data.pop("assignments", None) or []
        data["source"] = source.name
        try:
            rule = ValidationRule.model_validate(data)
            for target in targets:
                if isinstance(target, str):
                    target = {"related_object_id": target}
                elif not isinstance(target, dict):
                    raise ValueError(
                        f"Invalid assignment for rule {rule.id} in {source.name}: expected a string or mapping, got {target!r}"
                    )
                assignments.append(RuleAssignment.model_validate({**target, "rule_id": rule.id}))
        except ValidationError as exc:
            raise ValueError(f"Invalid validation rule in {source.name}: {exc}") from exc

        for problem in validate_rule_payload(rule.rules):
            logger.warning("%s: rule %s: %s", source.name, rule.id, problem)
        rules.append(rule)
    return rules, assignments


@lru_cache(maxsize=8)
def load_validation_rules(rules_dir: Path | str) -> Tuple[Tuple[ValidationRule, ...], Tuple[RuleAssignment, ...]]:
    """Load every rule file in ``rules_dir`` (sorted by name) into rules and assignments."""
    directory = Path(rules_dir)
    if not directory.exists():
        raise FileNotFoundError(f"Rules directory not found: {directory}")

    all_rules: List[ValidationRule] = []
    all_assignments: List[RuleAssignment] = []
    for path in sorted(directory.iterdir()):
        if path.suffix not in SUPPORTED_SUFFIXES:
            continue
        try:
            raw = _load_file(path)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ValueError(f"Could not parse rule file {path.name}: {exc}") from exc
        rules, assignments = _normalize(path, raw)
        all_rules.extend(rules)
        all_assignments.extend(assignments)
    return tuple(all_rules), tuple(all_assignments)


def load_registry(rules_dir: Path | str) -> RuleRegistry:
    rules, assignments = load_validation_rules(rules_dir)
    return RuleRegistry(rules, assignments)


def reload_caches() -> None:
    """Clear cached loaders (useful for tests)."""
    load_validation_rules.cache_clear()


__all__ = ["load_registry", "load_validation_rules", "reload_caches"]
