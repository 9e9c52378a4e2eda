"""
Pytest configuration and fixtures for advisor gateway tests
"""

import pytest
from prometheus_client import REGISTRY

from advisor_gateway.models import Scholarship, University
from advisor_gateway.services.demo_mode import DemoMode


@pytest.fixture(autouse=True)
def demo_mode_off(monkeypatch):
    """Every test starts with demo mode off unless it turns it on itself"""
    monkeypatch.setenv("DEMO_MODE", "false")
    DemoMode.reset()
    yield
    DemoMode.reset()


@pytest.fixture
def candidates():
    """Stored universities offered to the matching prompt"""
    return [
        University(id="u1", name="University of Toronto", country="Canada",
                   specialties=["Computer Science", "Engineering"]),
        University(id="u2", name="University of Melbourne", country="Australia",
                   specialties=["Medicine"]),
        University(id="u3", name="ETH Zurich", country="Switzerland",
                   specialties=["Physics"]),
        University(id="u4", name="National University of Singapore", country="Singapore",
                   specialties=["Business"]),
    ]


@pytest.fixture
def stored_scholarships():
    return [
        Scholarship(id="s1", name="Australia Awards", provider="DFAT", country="Australia",
                    eligible_programs=["Computer Science"]),
        Scholarship(id="s2", name="Open Research Grant", provider="ARC", country="Australia"),
        Scholarship(id="s3", name="Medical Excellence", provider="NHMRC", country="Australia",
                    eligible_programs=["Medicine"]),
        Scholarship(id="s4", name="Vanier", provider="Government of Canada", country="Canada"),
    ]


@pytest.fixture
def metric():
    """Current value of a Prometheus sample, 0 when it has not been emitted yet"""
    def read(name, **labels):
        return REGISTRY.get_sample_value(name, labels) or 0.0
    return read
