"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from puretrans.cleaning.cleaner import ContentCleaner
from puretrans.core.config import PureTransConfig
from puretrans.core.gateway import TranslationGateway
from puretrans.core.validator import PurityValidator
from puretrans.detection.detector import PatternDetector
from puretrans.terminology.reference import JsonReferenceDataset
from puretrans.terminology.store import TerminologyStore
from tests.fixtures.fake_engines import FakeEngine


@pytest.fixture
def detector():
    return PatternDetector()


@pytest.fixture
def validator(detector):
    return PurityValidator(detector, threshold=0.90)


@pytest.fixture
def cleaner(detector):
    return ContentCleaner(detector)


@pytest.fixture(scope="session")
def store():
    """Terminology store seeded from the bundled dataset (read-only in tests)."""
    return TerminologyStore(JsonReferenceDataset())


@pytest.fixture
def fresh_store():
    """A store tests may modify."""
    return TerminologyStore(JsonReferenceDataset())


@pytest.fixture
def make_gateway():
    """Factory building a gateway around a fake engine with test-friendly config."""
    created = []

    def _make(engine=None, **overrides):
        overrides.setdefault("engine_timeout", 2.0)
        config = PureTransConfig(**overrides)
        config.validate()
        gateway = TranslationGateway.from_config(config, engine or FakeEngine())
        created.append(gateway)
        return gateway

    yield _make
    for gateway in created:
        gateway.close()
