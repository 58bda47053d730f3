"""
Policy Store for authzgate.

Holds the policy set loaded at startup and answers "which policy applies to
this user". The store is immutable once built, so it can be read from many
request workers at once without locking.

Loading is all-or-nothing: every policy is validated before the store is
constructed, and any malformed entry raises ConfigError.

Policy file formats:
    - YAML (or JSON): a list of policies, or a mapping with a ``policies`` key
    - JSON lines (``.jsonl``): one policy object per line

Example (YAML):
    policies:
      - name: ops
        users: [alice]
        actions: ["container_.*", "image_.*"]
      - name: auditors
        users: [carol]
        actions: [".*"]
        readonly: true
"""

import json
import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from authzgate.errors import (
    ERROR_CONFIG_NOT_FOUND,
    ConfigError,
    PolicyAmbiguityError,
    PolicyPatternError,
)
from authzgate.schema import Policy

logger = logging.getLogger(__name__)


class PolicyStore:
    """
    Read-only collection of policies in load order.

    Usage:
        store = PolicyStore.from_file("/etc/authzgate/policy.yaml")
        policy = store.find_policy("alice")

    A user should belong to a single policy. When the same user appears in
    several policies the configuration is ambiguous: a warning is logged
    and the first policy in load order is used. Pass strict=True to reject
    such configurations instead.
    """

    def __init__(self, policies: Iterable[Policy] = ()) -> None:
        self._policies: tuple[Policy, ...] = tuple(policies)

    @property
    def policies(self) -> tuple[Policy, ...]:
        return self._policies

    def __len__(self) -> int:
        return len(self._policies)

    def __iter__(self):
        return iter(self._policies)

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def load(
        cls,
        source: Iterable[Mapping[str, Any] | Policy] | Mapping[str, Any] | None,
        strict: bool = False,
        origin: str = "<policies>",
    ) -> "PolicyStore":
        """
        Build a store from parsed policy definitions.

        Args:
            source: Policy definitions, or a mapping with a "policies" key
            strict: Reject users that appear in more than one policy
            origin: Description of where the definitions came from

        Returns:
            A fully validated PolicyStore

        Raises:
            ConfigError: If any definition is malformed
        """
        entries = cls._entries(source, origin)

        policies: list[Policy] = []
        names: set[str] = set()
        for index, entry in enumerate(entries):
            policy = cls._validate_entry(entry, index, origin)
            if policy.name in names:
                raise ConfigError(
                    source=origin,
                    message=f"Duplicate policy name '{policy.name}' in {origin}",
                )
            names.add(policy.name)
            policies.append(policy)

        store = cls(policies)

        for user, owners in store.ambiguous_users().items():
            if strict:
                raise PolicyAmbiguityError(source=origin, user=user, policies=owners)
            logger.warning(
                "User '%s' appears in multiple policies %s, using '%s'",
                user,
                owners,
                owners[0],
            )

        logger.info("Loaded %d policies from %s", len(store), origin)
        return store

    @classmethod
    def from_file(cls, path: Path | str, strict: bool = False) -> "PolicyStore":
        """
        Load a policy file.

        Files ending in ``.jsonl`` are read as one JSON policy per line,
        anything else as YAML.

        Raises:
            ConfigError: If the file cannot be read or is malformed
        """
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(
                source=str(path),
                message=f"Cannot read policy file {path}: {e}",
                code=ERROR_CONFIG_NOT_FOUND,
                suggestion="Check the --policy-file path",
            ) from e

        if path.suffix == ".jsonl":
            return cls.load(_parse_json_lines(content, str(path)), strict, str(path))
        return cls.from_string(content, strict, origin=str(path))

    @classmethod
    def from_string(
        cls,
        content: str,
        strict: bool = False,
        origin: str = "<string>",
    ) -> "PolicyStore":
        """Load policies from YAML text."""
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(
                source=origin,
                message=f"Policy file {origin} is not valid YAML: {e}",
            ) from e
        return cls.load(data, strict, origin)

    @staticmethod
    def _entries(source: Any, origin: str) -> list[Any]:
        if source is None:
            return []
        if isinstance(source, Mapping):
            if "policies" not in source:
                raise ConfigError(
                    source=origin,
                    message=f"Policy mapping in {origin} has no 'policies' key",
                    suggestion="Use a list of policies, or put them under a top-level 'policies' key",
                )
            source = source["policies"]
        if isinstance(source, (str, bytes, Mapping)) or not isinstance(source, Iterable):
            raise ConfigError(
                source=origin,
                message=f"Policies in {origin} must be a list",
            )
        return list(source)

    @staticmethod
    def _validate_entry(entry: Any, index: int, origin: str) -> Policy:
        if isinstance(entry, Policy):
            return entry
        if not isinstance(entry, Mapping):
            raise ConfigError(
                source=origin,
                message=f"Policy #{index} in {origin} must be a mapping",
            )
        try:
            return Policy.model_validate(dict(entry))
        except ValidationError as e:
            name = str(entry.get("name", f"#{index}"))
            for err in e.errors():
                if err["loc"] == ("actions",) and err["type"] == "value_error":
                    raise PolicyPatternError(
                        source=origin,
                        policy=name,
                        pattern=_bad_pattern(entry.get("actions")),
                        underlying_error=err["msg"],
                    ) from e
            raise ConfigError(
                source=origin,
                message=f"Invalid policy '{name}' in {origin}: {e}",
            ) from e

    # =========================================================================
    # Lookup
    # =========================================================================

    def find_policy(self, user: str) -> Policy | None:
        """
        Return the first policy, in load order, that claims the user.

        This is a linear scan over all policies. A user listed in several
        policies is ambiguous; the first one wins and later ones are never
        consulted. An empty user never matches.
        """
        if not user:
            return None
        for policy in self._policies:
            if policy.applies_to(user):
                return policy
        return None

    def ambiguous_users(self) -> dict[str, list[str]]:
        """Users claimed by more than one policy, with the policy names in load order."""
        owners: dict[str, list[str]] = {}
        for policy in self._policies:
            for user in dict.fromkeys(policy.users):
                owners.setdefault(user, []).append(policy.name)
        return {user: names for user, names in owners.items() if len(names) > 1}


def _parse_json_lines(content: str, origin: str) -> list[Any]:
    entries = []
    for lineno, line in enumerate(content.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            entries.append(json.loads(line))
        except json.JSONDecodeError as e:
            raise ConfigError(
                source=origin,
                message=f"Line {lineno} of {origin} is not valid JSON: {e}",
            ) from e
    return entries


def _bad_pattern(actions: Any) -> str:
    """Find the first pattern that does not compile, for error reporting."""
    if not isinstance(actions, list):
        return repr(actions)
    for pattern in actions:
        try:
            re.compile(pattern)
        except (re.error, TypeError):
            return str(pattern)
    return ""
