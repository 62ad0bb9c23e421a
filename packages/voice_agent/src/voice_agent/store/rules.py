"""Notification rules.

Each rule targets one event source (an app identifier), carries a
natural-language instruction and an optional natural-language condition that
the triage sub-agent evaluates. The sorted set of sources with at least one
enabled rule is written next to the rules on every save so the event listener
can filter events before any sub-agent is started.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError

from voice_agent.store.files import read_json, write_json_atomic
from voice_agent.utils import utc_timestamp

logger = logging.getLogger(__name__)

SUBSCRIBED_SOURCES_FILE = "subscribed_sources.json"


def _generate_id() -> str:
    return f"rule_{int(time.time() * 1000)}_{uuid4().hex[:6]}"


class NotificationRule(BaseModel, frozen=True):
    """A user-authored triage rule."""

    id: str = Field(default_factory=_generate_id)
    target_source: str = Field(alias="targetSource")
    human_label: str = Field(default="", alias="humanLabel")
    enabled: bool = True
    instruction: str
    condition: str = ""
    created_at: str = Field(default_factory=utc_timestamp, alias="createdAt")

    model_config = {"populate_by_name": True}

    @property
    def has_condition(self) -> bool:
        return bool(self.condition.strip())


def rules_for_source(rules: list[NotificationRule], source: str) -> list[NotificationRule]:
    """Return enabled rules for ``source`` in their stored order."""
    return [rule for rule in rules if rule.enabled and rule.target_source == source]


def subscribed_sources(rules: list[NotificationRule]) -> list[str]:
    """Return the sorted distinct sources that have at least one enabled rule."""
    return sorted({rule.target_source for rule in rules if rule.enabled})


class RulesStore:
    """Ordered rule list persisted as JSON, with its subscribed-sources projection."""

    def __init__(self, path: str | Path, sources_path: str | Path | None = None) -> None:
        self._path = Path(path)
        self._sources_path = (
            Path(sources_path) if sources_path else self._path.with_name(SUBSCRIBED_SOURCES_FILE)
        )

    @property
    def sources_path(self) -> Path:
        return self._sources_path

    def load_rules(self) -> list[NotificationRule]:
        """Load all rules. A missing or unreadable file yields no rules."""
        try:
            raw = read_json(self._path)
        except (OSError, ValueError):
            logger.warning("Notification rules at %s are unreadable", self._path)
            return []
        if not isinstance(raw, list):
            return []
        rules: list[NotificationRule] = []
        for item in raw:
            try:
                rules.append(NotificationRule.model_validate(item))
            except ValidationError:
                logger.warning("Skipping invalid notification rule: %r", item)
        return rules

    def save_rules(self, rules: list[NotificationRule]) -> None:
        """Persist rules and refresh the subscribed-sources projection."""
        write_json_atomic(self._path, [rule.model_dump(by_alias=True) for rule in rules])
        self._write_sources(rules)

    def _write_sources(self, rules: list[NotificationRule]) -> None:
        write_json_atomic(self._sources_path, subscribed_sources(rules))

    def add_rule(
        self,
        *,
        target_source: str,
        instruction: str,
        human_label: str = "",
        condition: str = "",
        enabled: bool = True,
    ) -> NotificationRule:
        rule = NotificationRule(
            target_source=target_source,
            human_label=human_label,
            instruction=instruction,
            condition=condition,
            enabled=enabled,
        )
        self.save_rules([*self.load_rules(), rule])
        logger.info("Added notification rule %s for %s", rule.id, target_source)
        return rule

    def update_rule(
        self,
        rule_id: str,
        *,
        instruction: str | None = None,
        condition: str | None = None,
        enabled: bool | None = None,
    ) -> NotificationRule | None:
        """Merge the given fields into a rule. Returns None for an unknown id."""
        rules = self.load_rules()
        for index, rule in enumerate(rules):
            if rule.id != rule_id:
                continue
            updates = {
                key: value
                for key, value in (
                    ("instruction", instruction),
                    ("condition", condition),
                    ("enabled", enabled),
                )
                if value is not None
            }
            rules[index] = rule.model_copy(update=updates)
            self.save_rules(rules)
            return rules[index]
        return None

    def delete_rule(self, rule_id: str) -> bool:
        rules = self.load_rules()
        remaining = [rule for rule in rules if rule.id != rule_id]
        if len(remaining) == len(rules):
            return False
        self.save_rules(remaining)
        return True

    def delete_rules_for_source(self, source: str) -> int:
        """Delete every rule for ``source`` and return how many were removed."""
        rules = self.load_rules()
        remaining = [rule for rule in rules if rule.target_source != source]
        removed = len(rules) - len(remaining)
        if removed:
            self.save_rules(remaining)
        return removed

    def rules_for_source(self, source: str) -> list[NotificationRule]:
        return rules_for_source(self.load_rules(), source)

    def subscribed_sources(self) -> list[str]:
        return subscribed_sources(self.load_rules())

    def sync_on_startup(self) -> list[str]:
        """Rewrite the subscribed-sources projection from the stored rules."""
        rules = self.load_rules()
        self._write_sources(rules)
        return subscribed_sources(rules)
