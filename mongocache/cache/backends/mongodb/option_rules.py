"""
mongocache — Resource Option Table

Every resource option is declared once here with its validator, the keyword
the MongoDB client expects, and whether changing it requires a new client.
Accessors in the resource manager dispatch through OPTION_RULES; nothing is
derived from method names at call time.
"""

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ....errors import InvalidOptionError, UnknownOptionError
from .servers import normalize_servers

_INT_PATTERN = re.compile(r"^\s*\d+\s*$")

# Backend spelling of each read preference mode, keyed by a lowercase,
# separator-free form so "primary-preferred" and "primary_preferred" match too.
READ_PREFERENCE_MODES: dict[str, str] = {
    "nearest": "nearest",
    "primary": "primary",
    "primarypreferred": "primaryPreferred",
    "secondary": "secondary",
    "secondarypreferred": "secondaryPreferred",
}


def validate_string(name: str, value: Any) -> str:
    """Non-empty string."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidOptionError(name, "must be a non-empty string", value)
    return value


def validate_bool(name: str, value: Any) -> bool:
    """Strict boolean, or the integers 0 and 1."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise InvalidOptionError(name, "must be a boolean or 0/1", value)


def validate_timeout(name: str, value: Any) -> int:
    """Non-negative integer, or a string holding one."""
    if isinstance(value, bool):
        raise InvalidOptionError(name, "must be an integer number of milliseconds", value)
    if isinstance(value, int):
        if value < 0:
            raise InvalidOptionError(name, "must not be negative", value)
        return value
    if isinstance(value, str) and _INT_PATTERN.match(value):
        return int(value)
    raise InvalidOptionError(name, "must be an integer number of milliseconds", value)


def validate_read_preference(name: str, value: Any) -> str:
    """One of the read preference modes; returns the backend spelling."""
    if isinstance(value, str):
        mode = READ_PREFERENCE_MODES.get(value.replace("-", "").replace("_", "").lower())
        if mode is not None:
            return mode
    raise InvalidOptionError(
        name,
        f"must be one of {', '.join(sorted(READ_PREFERENCE_MODES.values()))}",
        value,
    )


def _validate_string_list(name: str, value: Any) -> list[str]:
    if isinstance(value, str) or not isinstance(value, Sequence) or not value:
        raise InvalidOptionError(name, "must be a non-empty sequence of strings", value)
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise InvalidOptionError(name, "every entry must be a non-empty string", value)
    return list(value)


def validate_read_preference_tags(name: str, value: Any) -> list[str]:
    """Non-empty sequence of tag sets such as "dc:ny,rack:1"."""
    return _validate_string_list(name, value)


def validate_write_concern(name: str, value: Any) -> int | str | list[str]:
    """Integer >= 1, "majority", or a non-empty sequence of tag-set names."""
    if isinstance(value, bool):
        raise InvalidOptionError(name, "must be an integer >= 1, 'majority' or a list of tag sets", value)
    if isinstance(value, int):
        if value < 1:
            raise InvalidOptionError(name, "integer write concern must be >= 1", value)
        return value
    if isinstance(value, str):
        if value == "majority":
            return value
        raise InvalidOptionError(name, "the only string write concern is 'majority'", value)
    return _validate_string_list(name, value)


def validate_servers(name: str, value: Any) -> list[Any]:
    return list(normalize_servers(value))


@dataclass(frozen=True)
class OptionRule:
    """
    Declaration of one resource option.

    Attributes:
        name: Canonical option name used as the storage key
        validate: Callable(name, value) returning the normalized value or raising
        driver_key: Keyword passed to the client constructor (None: not passed)
        affects_connection: Whether a change invalidates the memoized client
        aliases: Additional names accepted in configuration mappings
    """

    name: str
    validate: Callable[[str, Any], Any]
    driver_key: str | None = None
    affects_connection: bool = True
    aliases: tuple[str, ...] = ()


def _driver_write_concern(value: Any) -> Any:
    # A tag-set list is sent as one custom write concern mode name.
    if isinstance(value, list):
        return ",".join(value)
    return value


DRIVER_TRANSFORMS: dict[str, Callable[[Any], Any]] = {
    "w": _driver_write_concern,
}


OPTION_RULES: dict[str, OptionRule] = {
    rule.name: rule
    for rule in (
        OptionRule("servers", validate_servers),
        OptionRule("database", validate_string, affects_connection=False, aliases=("db",)),
        OptionRule("collection", validate_string, affects_connection=False),
        OptionRule("replica_set", validate_string, "replicaSet", aliases=("replicaSet",)),
        OptionRule("username", validate_string),
        OptionRule("password", validate_string),
        OptionRule("auth_source", validate_string, "authSource", aliases=("authSource",)),
        OptionRule("connect_timeout_ms", validate_timeout, "connectTimeoutMS", aliases=("connectTimeoutMS",)),
        OptionRule("socket_timeout_ms", validate_timeout, "socketTimeoutMS", aliases=("socketTimeoutMS",)),
        OptionRule("w_timeout_ms", validate_timeout, "wTimeoutMS", aliases=("wTimeoutMS",)),
        OptionRule("connect", validate_bool, "connect"),
        OptionRule("tls", validate_bool, "tls", aliases=("ssl",)),
        OptionRule("fsync", validate_bool, "fsync"),
        OptionRule("journal", validate_bool, "journal"),
        OptionRule("read_preference", validate_read_preference, "readPreference", aliases=("readPreference",)),
        OptionRule(
            "read_preference_tags",
            validate_read_preference_tags,
            "readPreferenceTags",
            aliases=("readPreferenceTags",),
        ),
        OptionRule("w", validate_write_concern, "w"),
    )
}

_ALIASES: dict[str, str] = {alias: rule.name for rule in OPTION_RULES.values() for alias in rule.aliases}

# Merged under every configuration mapping passed to set_resource().
RESOURCE_DEFAULTS: dict[str, Any] = {
    "servers": "localhost:27017",
    "database": "cache",
    "collection": "cache",
    "w": 1,
    "connect": True,
}


def resolve_option(name: str) -> OptionRule:
    """
    Look up the rule for an option name or one of its aliases.

    Raises:
        UnknownOptionError: If the name is not recognized
    """
    rule = OPTION_RULES.get(name) or OPTION_RULES.get(_ALIASES.get(name, ""))
    if rule is None:
        raise UnknownOptionError(name)
    return rule


def validate_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """
    Validate a whole mapping of options.

    Returns:
        Normalized values keyed by canonical option name

    Raises:
        UnknownOptionError: For an unrecognized name
        InvalidOptionError: For a value violating its rule
    """
    validated: dict[str, Any] = {}
    for name, value in options.items():
        rule = resolve_option(name)
        validated[rule.name] = rule.validate(rule.name, value)
    return validated


def driver_kwargs(client_options: Mapping[str, Any]) -> dict[str, Any]:
    """Translate stored options into client constructor keywords, skipping unset ones."""
    kwargs: dict[str, Any] = {}
    for name, value in client_options.items():
        rule = OPTION_RULES[name]
        if rule.driver_key is None or value is None:
            continue
        transform = DRIVER_TRANSFORMS.get(name)
        kwargs[rule.driver_key] = transform(value) if transform else value
    return kwargs
