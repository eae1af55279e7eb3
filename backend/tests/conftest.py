"""
Pytest configuration and fixtures
"""
import os
import sys
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Settings are cached on first use, so the test environment is set before imports
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FILE_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"
os.environ["REGISTRY_BACKEND"] = "subgraph"
os.environ.pop("GUARD_PRIVATE_KEYS", None)
os.environ.pop("PRIVATE_KEY", None)

import pytest
from eth_account import Account
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from boost_guard.core.database import build_engine, get_db, init_db
from boost_guard.models.boost import Boost
from boost_guard.services.boost_registry import InMemoryBoostRegistry
from boost_guard.services.claim_ledger import ClaimLedger
from boost_guard.services.entitlement_service import EntitlementEvaluator
from boost_guard.services.key_custody import LocalKeyCustody
from boost_guard.services.signature_issuer import SignatureIssuer
from boost_guard.services.status_service import StatusService
from boost_guard.services.strategy_registry import build_default_registry

CHAIN_ID = 11155111
NOW = 1_700_000_000
RECIPIENT = "0x" + "ab" * 20
OTHER_RECIPIENT = "0x" + "cd" * 20
OWNER = "0x" + "0f" * 20
TOKEN_ADDRESS = "0x" + "70" * 20


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every session of a test"""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    """Create a database session for testing"""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def ledger(session_factory):
    return ClaimLedger(session_factory)


@pytest.fixture
def guard_account():
    """Fresh guard key for each test"""
    return Account.create()


@pytest.fixture
def key_custody(guard_account):
    return LocalKeyCustody(["0x" + bytes(guard_account.key).hex()])


@pytest.fixture
def issuer(key_custody):
    return SignatureIssuer(key_custody)


@pytest.fixture
def make_boost(guard_account):
    """Factory for boosts guarded by `guard_account`; keyword args override wire fields"""

    def _make(**overrides):
        data = {
            "id": 1,
            "chainId": CHAIN_ID,
            "strategyURI": "ipfs://boost",
            "balance": "1000",
            "guard": guard_account.address,
            "start": 0,
            "end": 9999999999,
            "owner": OWNER,
            "token": {"address": TOKEN_ADDRESS, "name": "Test", "symbol": "TST", "decimals": 18},
            "strategy": {
                "strategy": "whitelist",
                "params": {"recipients": {RECIPIENT: "300"}},
            },
        }
        data.update(overrides)
        return Boost.model_validate(data)

    return _make


@pytest.fixture
def boost_registry():
    return InMemoryBoostRegistry()


@pytest.fixture
def evaluator():
    return EntitlementEvaluator(build_default_registry())


@pytest.fixture
def status_service(boost_registry, evaluator, ledger, issuer):
    return StatusService(
        registry=boost_registry,
        evaluator=evaluator,
        ledger=ledger,
        issuer=issuer,
        clock=lambda: NOW,
    )


@pytest.fixture
def client(status_service, session_factory):
    """API client wired to the test status service and database"""
    from boost_guard.main import create_app

    app = create_app(status_service=status_service, init_database=False)

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
