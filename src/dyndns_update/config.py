"""Configuration model: zones, search rules and credentials.

Example config file::

    ipv4_service: "https://api.ipify.org"
    ipv6_service: "https://api6.ipify.org"
    zones:
      - identifier: "023e105f4ecef8ad9ca31a8372d0c353"
        auth:
          bearer_auth: "YQSn-xWAQiiEh9qM58wZNnyQS7FUdoqGIUAbrh7T"
        search:
          - name: "home.example.com"
            type: "A"
          - comment:
              contains: "dyndns"
            match: "all"
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .errors import ConfigError
from .records import MAX_ID_LENGTH, MAX_NAME_LENGTH, RecordType

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_TIMEOUT_SECONDS = 10.0

PAGE_MIN, PAGE_MAX = 1, 65535
PER_PAGE_MIN, PER_PAGE_MAX = 5, 50000

# =============================================================================
# Enums
# =============================================================================


class Direction(Enum):
    ASC = "asc"
    DESC = "desc"


class Match(Enum):
    ANY = "any"
    ALL = "all"


class Order(Enum):
    TYPE = "type"
    NAME = "name"
    CONTENT = "content"
    TTL = "ttl"
    PROXIED = "proxied"


class ApiKeyKind(Enum):
    """Legacy API key schemes and the header each one is sent in."""

    EMAIL = "email"
    KEY = "key"
    USER_SERVICE_KEY = "user_service_key"


API_KEY_HEADERS = {
    ApiKeyKind.EMAIL: "X-Auth-Email",
    ApiKeyKind.KEY: "X-Auth-Key",
    ApiKeyKind.USER_SERVICE_KEY: "X-Auth-User-Service-Key",
}

# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class StringMatch:
    """Matcher for free-text record fields (comment, tag)."""

    exact: Optional[str] = None
    absent: Optional[bool] = None
    contains: Optional[str] = None
    endswith: Optional[str] = None
    present: Optional[bool] = None
    startswith: Optional[str] = None

    def to_params(self, prefix: str) -> List[Tuple[str, str]]:
        params = []
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                params.append((f"{prefix}.{f.name}", _param_value(value)))
        return params


@dataclass(frozen=True)
class SearchRule:
    """A provider-side filter selecting records of one zone."""

    comment: Optional[StringMatch] = None
    content: Optional[str] = None
    direction: Optional[Direction] = None
    match: Optional[Match] = None
    name: Optional[str] = None
    order: Optional[Order] = None
    page: Optional[int] = None
    per_page: Optional[int] = None
    proxied: Optional[bool] = None
    search: Optional[str] = None
    tag: Optional[StringMatch] = None
    tag_match: Optional[Match] = None
    type: Optional[RecordType] = None

    def to_params(self) -> List[Tuple[str, str]]:
        """Query parameters for the list endpoint. Absent fields are omitted."""
        params: List[Tuple[str, str]] = []
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, StringMatch):
                params.extend(value.to_params(f.name))
            else:
                params.append((f.name, _param_value(value)))
        return params


@dataclass(frozen=True)
class BearerAuth:
    token: str

    def __repr__(self) -> str:
        return "BearerAuth(token='***')"


@dataclass(frozen=True)
class ApiKey:
    kind: ApiKeyKind
    value: str

    def __repr__(self) -> str:
        return f"ApiKey(kind={self.kind.value}, value='***')"


Authorization = Union[BearerAuth, ApiKey]


@dataclass(frozen=True)
class Zone:
    identifier: str
    auth: Authorization
    search: Tuple[SearchRule, ...] = ()


@dataclass(frozen=True)
class Config:
    zones: Tuple[Zone, ...] = ()
    ipv4_service: Optional[str] = None
    ipv6_service: Optional[str] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    api_base_url: str = DEFAULT_API_BASE_URL

    @property
    def total_search_rules(self) -> int:
        return sum(len(zone.search) for zone in self.zones)


# =============================================================================
# Authorization
# =============================================================================


def auth_header(auth: Authorization) -> Tuple[str, str]:
    """Return the (name, value) header pair a request with ``auth`` must carry."""
    if isinstance(auth, BearerAuth):
        return "Authorization", f"Bearer {auth.token}"
    if isinstance(auth, ApiKey):
        return API_KEY_HEADERS[auth.kind], auth.value
    raise TypeError(f"Unsupported authorization: {type(auth).__name__}")


# =============================================================================
# Parsing
# =============================================================================


def _param_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _expect_mapping(value: Any, path: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"{path}: expected a mapping, got {type(value).__name__}")
    return value


def _reject_unknown_keys(data: Dict[str, Any], allowed: List[str], path: str) -> None:
    unknown = sorted(set(data) - set(allowed))
    if unknown:
        raise ConfigError(f"{path}: unknown key(s) {', '.join(unknown)}")


def _parse_str(value: Any, path: str, max_len: Optional[int] = None) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{path}: expected a string, got {type(value).__name__}")
    if max_len is not None and len(value) > max_len:
        raise ConfigError(f"{path}: '{value}' exceeds max length of {max_len}")
    return value


def _parse_bool(value: Any, path: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{path}: expected true or false, got {value!r}")
    return value


def _parse_int(value: Any, path: str, minimum: int, maximum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{path}: expected an integer, got {value!r}")
    if not minimum <= value <= maximum:
        raise ConfigError(f"{path}: {value} is outside {minimum}-{maximum}")
    return value


def _parse_enum(enum_cls: Any, value: Any, path: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(str(member.value) for member in enum_cls)
        raise ConfigError(f"{path}: {value!r} is not one of {choices}") from None


def _parse_string_match(raw: Any, path: str) -> StringMatch:
    data = _expect_mapping(raw, path)
    _reject_unknown_keys(data, [f.name for f in fields(StringMatch)], path)
    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        if key in ("absent", "present"):
            kwargs[key] = _parse_bool(value, f"{path}.{key}")
        else:
            kwargs[key] = _parse_str(value, f"{path}.{key}")
    return StringMatch(**kwargs)


def parse_search_rule(raw: Any, path: str = "search") -> SearchRule:
    data = _expect_mapping(raw, path)
    _reject_unknown_keys(data, [f.name for f in fields(SearchRule)], path)

    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        key_path = f"{path}.{key}"
        if key in ("comment", "tag"):
            kwargs[key] = _parse_string_match(value, key_path)
        elif key == "direction":
            kwargs[key] = _parse_enum(Direction, value, key_path)
        elif key in ("match", "tag_match"):
            kwargs[key] = _parse_enum(Match, value, key_path)
        elif key == "order":
            kwargs[key] = _parse_enum(Order, value, key_path)
        elif key == "type":
            kwargs[key] = _parse_enum(RecordType, value, key_path)
        elif key == "page":
            kwargs[key] = _parse_int(value, key_path, PAGE_MIN, PAGE_MAX)
        elif key == "per_page":
            kwargs[key] = _parse_int(value, key_path, PER_PAGE_MIN, PER_PAGE_MAX)
        elif key == "proxied":
            kwargs[key] = _parse_bool(value, key_path)
        elif key == "name":
            kwargs[key] = _parse_str(value, key_path, MAX_NAME_LENGTH)
        else:
            kwargs[key] = _parse_str(value, key_path)
    return SearchRule(**kwargs)


def parse_authorization(raw: Any, path: str = "auth") -> Authorization:
    data = _expect_mapping(raw, path)
    if len(data) != 1:
        raise ConfigError(f"{path}: expected exactly one of bearer_auth, api_key")

    scheme, value = next(iter(data.items()))
    if scheme == "bearer_auth":
        return BearerAuth(token=_parse_str(value, f"{path}.bearer_auth"))
    if scheme == "api_key":
        key_data = _expect_mapping(value, f"{path}.api_key")
        if len(key_data) != 1:
            raise ConfigError(f"{path}.api_key: expected exactly one of email, key, user_service_key")
        kind, key_value = next(iter(key_data.items()))
        return ApiKey(
            kind=_parse_enum(ApiKeyKind, kind, f"{path}.api_key"),
            value=_parse_str(key_value, f"{path}.api_key.{kind}"),
        )
    raise ConfigError(f"{path}: unsupported authorization scheme '{scheme}'")


def parse_zone(raw: Any, path: str = "zone") -> Zone:
    data = _expect_mapping(raw, path)
    _reject_unknown_keys(data, ["identifier", "auth", "search"], path)

    if "identifier" not in data:
        raise ConfigError(f"{path}: missing 'identifier'")
    if "auth" not in data:
        raise ConfigError(f"{path}: missing 'auth'")

    rules = data.get("search") or []
    if not isinstance(rules, list):
        raise ConfigError(f"{path}.search: expected a list")

    return Zone(
        identifier=_parse_str(data["identifier"], f"{path}.identifier", MAX_ID_LENGTH),
        auth=parse_authorization(data["auth"], f"{path}.auth"),
        search=tuple(
            parse_search_rule(rule, f"{path}.search[{i}]") for i, rule in enumerate(rules)
        ),
    )


def parse_config(raw: Any) -> Config:
    """Build a Config from the decoded YAML document."""
    if raw is None:
        raw = {}
    data = _expect_mapping(raw, "config")

    known = ["zones", "ipv4_service", "ipv6_service", "timeout_seconds", "api_base_url"]
    zones_raw = data.get("zones") or []
    if not isinstance(zones_raw, list):
        raise ConfigError("zones: expected a list")

    timeout = data.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(f"timeout_seconds: expected a positive number, got {timeout!r}")

    services: Dict[str, Optional[str]] = {}
    for key in ("ipv4_service", "ipv6_service"):
        value = data.get(key)
        if value is None:
            services[key] = None
        else:
            services[key] = _parse_str(value, key).strip() or None

    for key in sorted(set(data) - set(known)):
        logger.warning(f"Ignoring unknown config key '{key}'")

    return Config(
        zones=tuple(parse_zone(z, f"zones[{i}]") for i, z in enumerate(zones_raw)),
        ipv4_service=services["ipv4_service"],
        ipv6_service=services["ipv6_service"],
        timeout_seconds=float(timeout),
        api_base_url=_parse_str(data.get("api_base_url", DEFAULT_API_BASE_URL), "api_base_url").rstrip("/"),
    )


def load_config(config_path: str) -> Config:
    """Read and validate a YAML config file."""
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {config_path}") from None
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read config file {config_path}: {e}") from e
    return parse_config(raw)


def get_config_file_mtime(config_path: str) -> float:
    """Get modification time of config file, returns 0 if file doesn't exist."""
    try:
        return os.path.getmtime(config_path) if os.path.exists(config_path) else 0.0
    except OSError:
        return 0.0
