"""SAML IdP attribute service package.

To use the Flask app:
    from idp.flask_app import create_app

To use the attribute resolution core without Flask:
    from idp.core.resolver import AttributeResolver
    from idp.core.claims import ClaimAssembler
"""
# Note: We don't import flask_app by default so the core can be used
# from scripts and tests without pulling in Flask
