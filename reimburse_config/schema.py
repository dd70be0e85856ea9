"""
Application configuration schema.

The YAML file is parsed by the loader into these frozen types.  Nothing at
runtime reads the YAML directly; services receive an ``AppConfig``.
"""

from __future__ import annotations

from dataclasses import dataclass

from reimburse_kernel.domain.reimbursement import UserRecord
from reimburse_kernel.domain.templates import TemplateCatalog


@dataclass(frozen=True)
class SeedData:
    """Users and templates installed into an unseeded dataset."""

    users: tuple[UserRecord, ...] = ()
    templates: TemplateCatalog = TemplateCatalog()


@dataclass(frozen=True)
class AppConfig:
    """Runtime configuration of the reimbursement application."""

    funders: tuple[str, ...]
    currency_label: str = ""
    database_url: str = "sqlite:///reimbursement.db"
    approval_letter_template: str | None = None
    seed: SeedData = SeedData()
    config_id: str = "reimbursement"
    version: int = 1
    checksum: str = ""
