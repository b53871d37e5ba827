"""
Rule Set Registry - loads rename/filter/prune rules for survey exports.

Each YAML file under kobo_prep/schemas/ describes one survey export:
which columns hold the project and validation status, which statuses are
excluded, how the generated headers are renamed, and which column groups
can be dropped.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from kobo_prep.core.config import get_settings
from kobo_prep.exceptions import ConfigurationError
from kobo_prep.preprocessing.pruner import CHECK_GROUP, PHOTO_GROUP, ColumnGroup
from kobo_prep.preprocessing.renamer import ColumnOverride, RenameRule
from kobo_prep.preprocessing.row_filter import (
    BANNED_STATUSES,
    PROJECT_COLUMN,
    STATUS_COLUMN,
    FilterConfig,
)

logger = logging.getLogger(__name__)


@dataclass
class RuleSet:
    """
    Complete preparation rules for one survey export.

    Headers are converted to syntactic names on load when syntactic_names
    is set. Rename stage order: overrides, rename_rules, boundary noise
    stripping, final_renames.
    """
    name: str
    description: str = ""
    project_column: str = PROJECT_COLUMN
    status_column: str = STATUS_COLUMN
    syntactic_names: bool = False  # convert raw export headers on load
    banned_statuses: List[str] = field(default_factory=lambda: list(BANNED_STATUSES))
    row_filters: List[FilterConfig] = field(default_factory=list)
    overrides: List[ColumnOverride] = field(default_factory=list)
    rename_rules: List[RenameRule] = field(default_factory=list)
    final_renames: List[RenameRule] = field(default_factory=list)
    column_groups: Dict[str, ColumnGroup] = field(
        default_factory=lambda: {"photo": PHOTO_GROUP, "checks": CHECK_GROUP}
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuleSet":
        """Create from dictionary (from YAML)."""
        if "name" not in data:
            raise ConfigurationError("Rule set is missing 'name'", field="name")

        columns = data.get("columns", {})

        groups = {"photo": PHOTO_GROUP, "checks": CHECK_GROUP}
        for group_name, group_data in (data.get("column_groups") or {}).items():
            groups[group_name] = ColumnGroup.from_dict(group_name, group_data)

        return cls(
            name=data["name"],
            description=data.get("description", ""),
            project_column=columns.get("project", PROJECT_COLUMN),
            status_column=columns.get("validation_status", STATUS_COLUMN),
            syntactic_names=bool(data.get("syntactic_names", False)),
            banned_statuses=list(data.get("banned_statuses", BANNED_STATUSES)),
            row_filters=[FilterConfig.from_dict(f) for f in data.get("row_filters", [])],
            overrides=[ColumnOverride.from_dict(o) for o in data.get("overrides", [])],
            rename_rules=[RenameRule.from_dict(r) for r in data.get("rename_rules", [])],
            final_renames=[RenameRule.from_dict(r) for r in data.get("final_renames", [])],
            column_groups=groups,
        )

    @classmethod
    def from_yaml_file(cls, yaml_path: Union[str, Path]) -> "RuleSet":
        """Load a rule set from a YAML file."""
        path = Path(yaml_path)

        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    def get_group(self, name: str) -> Optional[ColumnGroup]:
        """Get a column group by name."""
        return self.column_groups.get(name)

    def __repr__(self):
        return (
            f"RuleSet({self.name}, {len(self.rename_rules)} rename rules, "
            f"{len(self.final_renames)} final renames)"
        )


class RuleSetRegistry:
    """
    Registry for all rule sets.
    Loads rule sets from YAML files on initialization.
    """

    def __init__(self, rules_dir: Optional[Union[str, Path]] = None):
        """
        Initialize the rule set registry.

        Args:
            rules_dir: Path to rule set directory.
                       Defaults to kobo_prep/schemas/
        """
        if rules_dir is None:
            rules_dir = Path(__file__).parent.parent / "schemas"

        self.rules_dir = Path(rules_dir)
        self.rule_sets: Dict[str, RuleSet] = {}

        self._load_all()

    def _load_all(self):
        """Load all rule sets from the rules directory."""
        if not self.rules_dir.exists():
            logger.warning(f"Rules directory not found: {self.rules_dir}")
            return

        for rule_file in sorted(self.rules_dir.glob("*.yaml")):
            rule_set = RuleSet.from_yaml_file(rule_file)
            self.rule_sets[rule_set.name] = rule_set
            logger.debug(f"Loaded rule set: {rule_set.name} from {rule_file.name}")

    def get(self, name: str) -> RuleSet:
        """Get a rule set by name."""
        try:
            return self.rule_sets[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown rule set '{name}' (available: {sorted(self.rule_sets)})",
                field="rule_set",
            ) from None

    def names(self) -> List[str]:
        return sorted(self.rule_sets)


_registry: Optional[RuleSetRegistry] = None


def get_rule_registry(rules_dir: Optional[Union[str, Path]] = None) -> RuleSetRegistry:
    """Get the global rule set registry, reloading if rules_dir changes."""
    global _registry
    rules_dir = Path(rules_dir or get_settings().rules_dir)
    if _registry is None or _registry.rules_dir != rules_dir:
        _registry = RuleSetRegistry(rules_dir)
    return _registry
