"""Utilities for loading detector configuration and contract ABIs."""

from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import yaml

from .errors import ConfigurationError
from .utils import is_filled_string

SHARED_FIELDS = ("developerAbbreviation", "protocolName", "protocolAbbreviation")


def parse_optional_decimal(value: object, field_name: str) -> Optional[Decimal]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return Decimal(text)
    except InvalidOperation as exc:
        raise ConfigurationError(f"Invalid decimal value '{value}' for {field_name}") from exc


def parse_optional_int(value: object, field_name: str) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer value '{value}' for {field_name}") from exc


def load_config(path: Path) -> Dict[str, Any]:
    """Load a YAML (or JSON) detector configuration file."""
    text = Path(path).read_text(encoding="utf-8")
    try:
        config = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Could not parse configuration {path}: {exc}") from exc
    if not isinstance(config, dict):
        raise ConfigurationError(f"Configuration {path} must be a mapping at the top level")
    return config


def build_agent_configs(config: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Copy the protocol-wide fields into every agent entry."""
    for key in SHARED_FIELDS:
        if not is_filled_string(config.get(key)):
            raise ConfigurationError(f"{key} required")

    agents = config.get("agents")
    if not isinstance(agents, list):
        raise ConfigurationError("agents must be a list")

    agent_configs: List[Dict[str, Any]] = []
    for index, entry in enumerate(agents):
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"agents[{index}] must be a mapping")
        if not is_filled_string(entry.get("agentType")):
            raise ConfigurationError(f"agents[{index}] has no agentType")
        agent = dict(entry)
        agent.setdefault("name", f"{entry['agentType']}-{index}")
        for key in SHARED_FIELDS:
            agent[key] = config[key]
        agent_configs.append(agent)
    return agent_configs


class FileAbiLoader:
    """Resolve ``abiFile`` references against a base directory."""

    def __init__(self, base_dir: Union[str, Path]) -> None:
        self.base_dir = Path(base_dir)

    def __call__(self, abi_file: str) -> List[Dict[str, Any]]:
        path = self.base_dir / abi_file
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ConfigurationError(f"ABI file not found: {path}") from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Could not read ABI file {path}: {exc}") from exc

        # hardhat/truffle artifacts wrap the ABI
        if isinstance(payload, dict):
            payload = payload.get("abi")
        if not isinstance(payload, list):
            raise ConfigurationError(f"ABI file {path} does not contain an ABI list")
        return payload


def _canonical_type(entry: Mapping[str, Any]) -> str:
    abi_type = str(entry["type"])
    if abi_type.startswith("tuple"):
        inner = ",".join(_canonical_type(component) for component in entry.get("components", []))
        return f"({inner}){abi_type[len('tuple'):]}"
    return abi_type


def event_signature(entry: Mapping[str, Any]) -> str:
    inputs = entry.get("inputs", [])
    return f"{entry['name']}({','.join(_canonical_type(item) for item in inputs)})"


def get_events_from_abi(abi: Sequence[Mapping[str, Any]]) -> Dict[str, Mapping[str, Any]]:
    return {
        str(entry["name"]): entry
        for entry in abi
        if entry.get("type") == "event" and entry.get("name")
    }
