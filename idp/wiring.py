"""Explicit wiring of core components.

Every collaborator is built once here and passed to its consumers through
constructors. The Flask app keeps the result in ``app.extensions["idp"]``.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass

from idp.config import AppConfig
from idp.core.audit import AuditTrail
from idp.core.claims import ClaimAssembler
from idp.core.persister import AttributePersister
from idp.core.resolver import AttributeResolver
from idp.core.service_filter import ServiceProviderAttributeFilter
from idp.core.store import Directory
from idp.core.user_service import UserService

logger = logging.getLogger(__name__)


@dataclass
class IdentityServices:
    directory: Directory
    resolver: AttributeResolver
    attribute_filter: ServiceProviderAttributeFilter
    claims: ClaimAssembler
    persister: AttributePersister
    users: UserService
    audit: AuditTrail


def load_directory(cfg: AppConfig) -> Directory:
    if cfg.directory_seed_file is None:
        logger.warning("DIRECTORY_SEED_FILE not set, starting with an empty directory")
        return Directory()
    return Directory.from_yaml(cfg.directory_seed_file, separator=cfg.attribute_value_separator)


def build_services(cfg: AppConfig, directory: Directory | None = None) -> IdentityServices:
    if directory is None:
        directory = load_directory(cfg)

    audit = AuditTrail(cfg.audit_log_dir, cfg.audit_log_signing_key)
    resolver = AttributeResolver(
        directory.attributes,
        directory.attributes,
        role_precedence=cfg.role_precedence,
    )
    attribute_filter = ServiceProviderAttributeFilter(directory.attributes)
    persister = AttributePersister(
        directory.attributes,
        directory.attributes,
        separator=cfg.attribute_value_separator,
        audit=audit,
    )

    return IdentityServices(
        directory=directory,
        resolver=resolver,
        attribute_filter=attribute_filter,
        claims=ClaimAssembler(resolver, attribute_filter, directory.service_providers),
        persister=persister,
        users=UserService(
            directory.users,
            directory.user_types,
            directory.roles,
            persister,
            resolver,
            audit=audit,
        ),
        audit=audit,
    )
