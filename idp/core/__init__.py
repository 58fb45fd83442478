"""Core Business Logic Module

Attribute resolution for the SAML identity provider, independent of Flask.

Module Structure:
    - models.py          : Identity and attribute dataclasses
    - repositories.py    : Collaborator interfaces (typing.Protocol)
    - store.py           : In-memory repositories + YAML seed loader
    - resolver.py        : Attribute value resolution (override precedence)
    - service_filter.py  : Per service provider attribute allow-list
    - claims.py          : SAML claim assembly + claim name constants
    - persister.py       : Validated writes of attribute overrides
    - user_service.py    : User/role management use cases
    - validators.py      : Input validation for user fields
    - audit.py           : Signed JSONL audit trail

Usage Pattern:
    Import explicitly when needed:
        from idp.core.resolver import AttributeResolver
        from idp.core.claims import ClaimAssembler, ClaimTypes
        from idp.core.persister import AttributePersister
"""
