"""
Configuration Loader (``reimburse_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the typed
``reimburse_config.schema`` dataclasses.  Runtime callers go through
``reimburse_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Every parsed object is a frozen dataclass.
* An approval letter template may only reference the known letter
  placeholders.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown role or field type, or an unusable letter template  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from reimburse_config.schema import AppConfig, SeedData
from reimburse_engines.workflow_engine import (
    LETTER_PLACEHOLDERS,
    letter_template_placeholders,
)
from reimburse_kernel.domain.reimbursement import Role, User, UserRecord
from reimburse_kernel.domain.templates import FieldDescriptor, TemplateCatalog
from reimburse_kernel.exceptions import InvalidFieldTypeError

# Stand-in values for a trial render of a configured letter template.
_LETTER_SAMPLE: dict[str, Any] = {name: "" for name in LETTER_PLACEHOLDERS} | {"item_count": 1}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def parse_role(value: Any) -> Role:
    try:
        return Role(str(value))
    except ValueError:
        allowed = ", ".join(r.value for r in Role)
        raise ValueError(f"Unknown role {value!r}; expected one of: {allowed}") from None


def parse_user(data: dict[str, Any]) -> UserRecord:
    """Parse a seed ``UserRecord`` from a dict.

    ``id``, ``username``, ``password`` and ``role`` are required.
    """
    username = str(data["username"])
    fund_sources = data.get("fund_sources") or ()
    if isinstance(fund_sources, str):
        fund_sources = fund_sources.split(",")
    return UserRecord(
        user=User(
            id=str(data["id"]),
            role=parse_role(data["role"]),
            name=str(data.get("name") or username),
            username=username,
            fund_sources=frozenset(
                str(f).strip() for f in fund_sources if str(f).strip()
            ),
        ),
        password=str(data["password"]),
        email=str(data.get("email", "")),
        phone=str(data.get("phone", "")),
        national_id=str(data.get("national_id", "")),
        driver_license=str(data.get("driver_license", "")),
        passport=str(data.get("passport", "")),
    )


def parse_field(data: dict[str, Any]) -> FieldDescriptor:
    try:
        return FieldDescriptor(
            key=str(data["key"]),
            label=str(data.get("label") or data["key"]),
            type=data.get("type", "text"),
        )
    except InvalidFieldTypeError as exc:
        raise ValueError(f"Template field {data.get('key')!r}: {exc}") from exc


def parse_templates(data: dict[str, Any]) -> TemplateCatalog:
    """Parse ``{category: [field, ...]}`` preserving YAML order."""
    return TemplateCatalog.from_mapping({
        str(category): [parse_field(f) for f in (fields or [])]
        for category, fields in data.items()
    })


def parse_seed(data: dict[str, Any]) -> SeedData:
    users = tuple(parse_user(u) for u in data.get("users", []))
    usernames = [u.username for u in users]
    duplicates = sorted({n for n in usernames if usernames.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate seed usernames: {duplicates}")
    return SeedData(
        users=users,
        templates=parse_templates(data.get("templates") or {}),
    )


def parse_letter_template(value: Any) -> str | None:
    if value is None or value == "":
        return None
    template = str(value)
    try:
        unknown = letter_template_placeholders(template) - LETTER_PLACEHOLDERS
    except ValueError as exc:
        raise ValueError(f"Approval letter template is malformed: {exc}") from None
    if unknown:
        raise ValueError(
            f"Approval letter template uses unknown placeholders: {sorted(unknown)}"
        )
    # Format specs and conversions only fail at render time.
    try:
        template.format(**_LETTER_SAMPLE)
    except (ValueError, TypeError, IndexError, KeyError) as exc:
        raise ValueError(f"Approval letter template cannot be rendered: {exc}") from None
    return template


def parse_config(data: dict[str, Any]) -> AppConfig:
    """
    Parse an ``AppConfig`` from a dict.

    ``funders`` is required and must be a non-empty list.
    """
    funders = tuple(str(f) for f in data["funders"] or ())
    if not funders:
        raise ValueError("At least one funder must be configured")
    return AppConfig(
        funders=funders,
        currency_label=str(data.get("currency_label", "")),
        database_url=str(data.get("database_url", "sqlite:///reimbursement.db")),
        approval_letter_template=parse_letter_template(data.get("approval_letter_template")),
        seed=parse_seed(data.get("seed") or {}),
        config_id=str(data.get("config_id", "reimbursement")),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> AppConfig:
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
