"""Pytest shared fixtures."""
import datetime
import pathlib
import sys

import pytest

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from idp.config import AppConfig
from idp.core.models import (
    AttributeDefinition,
    AttributeType,
    RoleAssignment,
    User,
    UserRole,
    UserType,
)
from idp.core.store import Directory, InMemoryAttributeStore
from idp.flask_app import create_app

FIXTURES = ROOT / "tests" / "fixtures"
SEED_FILE = FIXTURES / "directory.yaml"

ALICE_UUID = "11111111-1111-4111-8111-111111111111"
BOB_UUID = "22222222-2222-4222-8222-222222222222"
SP1 = "https://sp1.example.org"
SP2 = "https://sp2.example.org"


def utc(year, month, day, hour=0):
    return datetime.datetime(year, month, day, hour, tzinfo=datetime.timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# Core objects
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def office():
    return AttributeDefinition(id=1, name="office", saml_attribute_name="ext:office", label="Office")


@pytest.fixture()
def languages():
    return AttributeDefinition(
        id=2,
        name="languages",
        saml_attribute_name="urn:languages",
        type=AttributeType.CHOICE,
        options={"English": "en", "German": "de", "French": "fr"},
        multiple_choice=True,
        user_editable=True,
    )


@pytest.fixture()
def department():
    return AttributeDefinition(
        id=3,
        name="department",
        saml_attribute_name="urn:department",
        type=AttributeType.CHOICE,
        options={"Mathematics": "math", "Physics": "physics"},
    )


@pytest.fixture()
def store(office, languages, department):
    return InMemoryAttributeStore([office, languages, department])


@pytest.fixture()
def staff_role():
    return UserRole(id=1, name="Staff")


@pytest.fixture()
def library_role():
    return UserRole(id=2, name="Library")


@pytest.fixture()
def teacher_type():
    return UserType(id=2, name="Teacher", alias="teacher", edu_person=["faculty", "staff"])


@pytest.fixture()
def user(teacher_type, staff_role):
    return User(
        username="alice",
        uuid=ALICE_UUID,
        email="alice@example.org",
        firstname="Alice",
        lastname="Example",
        external_id="T-001",
        type=teacher_type,
        roles=[RoleAssignment(role=staff_role, assigned_at=utc(2024, 1, 1))],
    )


# ─────────────────────────────────────────────────────────────────────────────
# Seeded directory + Flask test client
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def directory():
    return Directory.from_yaml(SEED_FILE)


@pytest.fixture()
def app_config(tmp_path):
    return AppConfig(
        demo_mode=True,
        secret_key="test-secret",
        idp_issuer="https://localhost/realms/demo",
        jwks_url="https://localhost/realms/demo/protocol/openid-connect/certs",
        audit_log_dir=tmp_path / "audit",
        audit_log_signing_key="test-signing-key",
    )


@pytest.fixture()
def flask_app(app_config, directory):
    app = create_app(app_config, directory)
    app.config.update(TESTING=True, SKIP_OAUTH_FOR_TESTS=True)
    return app


@pytest.fixture()
def client(flask_app):
    """Flask test client with token validation bypassed."""
    with flask_app.test_client() as client:
        yield client
