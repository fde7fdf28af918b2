"""
Общие фикстуры: env по умолчанию (до импорта lockpost.core.config) и SQLite in-memory БД.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("ENCRYPTION_KEY", "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff")
os.environ.setdefault("WATERMARK_SECRET", "test-watermark-secret")
os.environ.setdefault("SESSION_SECRET", "test-session-secret-0123456789")
os.environ.setdefault("PUBLIC_BASE_URL", "https://lockpost.test")
os.environ.setdefault("TREASURY_WALLET_ADDRESS", "TreasuryWa11et1111111111111111111111111111")

import pybreaker  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import lockpost.models  # noqa: E402,F401
from lockpost.db.base import Base  # noqa: E402
from lockpost.errors import SettlementFailed  # noqa: E402
from lockpost.services.payments.facilitator import FacilitatorClient  # noqa: E402
from lockpost.services.payments.models import SettlementReceipt  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def session_factory():
    Base.metadata.create_all(engine)
    yield TestingSessionLocal
    Base.metadata.drop_all(engine)


@pytest.fixture
def file_session_factory(tmp_path):
    """File-backed SQLite: a separate connection per session, for real concurrency."""
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(file_engine)
    yield sessionmaker(bind=file_engine, autocommit=False, autoflush=False)
    file_engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store_resource(db):
    """Create a draft resource; returns StoredContent."""
    from lockpost.services.content.service import ContentStore

    def _store(content="premium text", message_id="dm-1", **kwargs):
        return ContentStore(db).store(
            owner_id=kwargs.pop("owner_id", "owner-1"),
            handle=kwargs.pop("handle", "alice"),
            plaintext=content,
            source_platform=kwargs.pop("source_platform", "x"),
            source_message_id=message_id,
            **kwargs,
        )

    return _store


@pytest.fixture
def publish_resource(db):
    """Consume the proof of a stored resource."""
    from lockpost.services.proofs.service import ProofService

    def _publish(resource_id, post_id="post-1", price_minor_units=None):
        return ProofService(db).consume(
            resource_id, post_id, f"https://x.com/alice/status/{post_id}", price_minor_units
        )

    return _publish


# In-memory x402 facilitator
class FakeFacilitator:
    def __init__(self, valid: bool = True, settle_ok: bool = True) -> None:
        self.valid = valid
        self.settle_ok = settle_ok
        self.verified = []
        self.settled = []
        self._requirements = FacilitatorClient(base_url="http://facilitator.test", breaker=pybreaker.CircuitBreaker())

    def build_requirements(self, **kwargs):
        return self._requirements.build_requirements(**kwargs)

    def verify(self, payment_header, requirements):
        self.verified.append((payment_header, requirements))
        return self.valid

    def settle(self, payment_header, requirements):
        if not self.settle_ok:
            raise SettlementFailed("insufficient_funds")
        self.settled.append((payment_header, requirements))
        return SettlementReceipt(success=True, transaction="5igTx", network=requirements.network, payer="BuyerWallet")

    def close(self):
        pass


@pytest.fixture
def facilitator():
    return FakeFacilitator()
