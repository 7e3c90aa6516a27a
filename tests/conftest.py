"""
Pytest Configuration and Fixtures

This module provides:
- A per-run report in test_results/, grouped by application layer
- Shared fixtures for all tests (in-memory backend, users, vibes)
- Marker registration
"""

import pytest
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import Mock

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tests.test_config import (
    CONFIG, EXPECTED, MESSAGES, TEST_CATEGORIES,
    get_sample_user, get_sample_vibe,
)

from vibechecc.analytics import AnalyticsClient
from vibechecc.auth import Identity
from vibechecc.backend import Backend
from vibechecc.models import Rating, Vibe
from vibechecc.storage import MemoryStorage, RATINGS, VIBES
from vibechecc.utils import utcnow


# =============================================================================
# RUN REPORT
# =============================================================================

RESULTS_DIR = PROJECT_ROOT / CONFIG["test_output_dir"]

# Test module (without "test_") -> layer shown in the report
LAYERS = {
    "Foundation": ["settings", "models", "validation", "utils", "storage", "airtable"],
    "Services": ["users", "vibes", "ratings", "rating_likes", "follows", "notifications", "tags", "admin", "scoring"],
    "Integrations": ["auth", "analytics", "environment", "seo", "sitemap"],
    "Surfaces": ["rpc", "web_app", "pipeline", "cli"],
}

SLOWEST_SHOWN = 5

STATUS_MARKS = {"passed": "✓", "failed": "✗", "skipped": "○"}


@dataclass
class TestOutcome:
    """One test's call-phase result."""
    __test__ = False

    nodeid: str
    outcome: str
    duration: float
    message: str = ""

    @property
    def module(self) -> str:
        """tests/test_vibes.py::TestCreate::test_x -> "vibes"."""
        filename = self.nodeid.split("::")[0].rsplit("/", 1)[-1]
        return filename[len("test_"):-len(".py")] if filename.startswith("test_") else filename

    @property
    def label(self) -> str:
        parts = self.nodeid.split("::")
        return "::".join(parts[1:]) if len(parts) > 1 else self.nodeid


class RunReport:
    """Accumulates outcomes and renders the text report."""
    __test__ = False

    def __init__(self):
        self.outcomes: List[TestOutcome] = []
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None

    def record(self, outcome: TestOutcome) -> None:
        self.outcomes.append(outcome)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.outcome == status)

    def by_module(self) -> Dict[str, List[TestOutcome]]:
        modules: Dict[str, List[TestOutcome]] = {}
        for outcome in self.outcomes:
            modules.setdefault(outcome.module, []).append(outcome)
        return modules

    @property
    def pass_rate(self) -> float:
        return self.count("passed") / max(len(self.outcomes), 1) * 100

    def render(self) -> str:
        lines = [
            "=" * 80,
            "VIBECHECC - TEST RESULTS REPORT",
            "=" * 80,
            f"Run Date:   {self.started_at:%Y-%m-%d %H:%M:%S}",
        ]
        if self.finished_at:
            lines.append(f"Duration:   {(self.finished_at - self.started_at).total_seconds():.2f}s")
        lines.extend([
            f"Tests:      {len(self.outcomes)} "
            f"({self.count('passed')} passed, {self.count('failed')} failed, {self.count('skipped')} skipped)",
            f"Pass Rate:  {self.pass_rate:.1f}%",
            "",
        ])

        modules = self.by_module()
        placed = set()
        for layer, names in LAYERS.items():
            present = [n for n in names if n in modules]
            if not present:
                continue
            lines.extend(["-" * 80, layer.upper(), "-" * 80])
            for name in present:
                placed.add(name)
                lines.extend(self._render_module(name, modules[name]))

        others = sorted(set(modules) - placed)
        if others:
            lines.extend(["-" * 80, "OTHER", "-" * 80])
            for name in others:
                lines.extend(self._render_module(name, modules[name]))

        slowest = sorted(self.outcomes, key=lambda o: o.duration, reverse=True)[:SLOWEST_SHOWN]
        if slowest:
            lines.extend(["", "Slowest tests:"])
            for outcome in slowest:
                lines.append(f"  {outcome.duration * 1000:7.0f}ms  {outcome.nodeid}")

        failures = [o for o in self.outcomes if o.outcome == "failed"]
        if failures:
            lines.extend(["", "=" * 80, "FAILURES", "=" * 80])
            for outcome in failures:
                lines.extend(["", outcome.nodeid])
                lines.extend(f"  {line}" for line in outcome.message.splitlines()[:12])

        lines.extend(["", "=" * 80])
        return "\n".join(lines)

    def _render_module(self, name: str, outcomes: List[TestOutcome]) -> List[str]:
        info = TEST_CATEGORIES.get(name, {})
        passed = sum(1 for o in outcomes if o.outcome == "passed")
        lines = ["", f"{info.get('name', name.replace('_', ' ').title())}  [{passed}/{len(outcomes)}]"]
        if info.get("description"):
            lines.append(f"  {info['description']}")
        for risk in info.get("protects_against", []):
            lines.append(f"  guards: {risk}")
        for outcome in outcomes:
            if outcome.outcome != "passed":
                lines.append(f"    {STATUS_MARKS.get(outcome.outcome, '?')} {outcome.label}")
        return lines

    def save(self) -> Path:
        RESULTS_DIR.mkdir(exist_ok=True)
        path = RESULTS_DIR / f"test_results_{self.started_at:%Y%m%d_%H%M%S}.txt"
        path.write_text(self.render(), encoding="utf-8")
        return path


_report = RunReport()


def pytest_configure(config):
    """Register markers and start the clock."""
    config.addinivalue_line("markers", "config_validation: Configuration validation tests")
    config.addinivalue_line("markers", "cli_behavior: CLI interface tests")
    config.addinivalue_line("markers", "pipeline_orchestration: Sitemap pipeline tests")
    _report.started_at = datetime.now()


def pytest_runtest_logreport(report):
    if report.when == "call" or (report.when == "setup" and report.outcome == "skipped"):
        _report.record(TestOutcome(
            nodeid=report.nodeid,
            outcome=report.outcome,
            duration=report.duration,
            message=str(report.longrepr) if report.longrepr else "",
        ))


def pytest_sessionfinish(session, exitstatus):
    _report.finished_at = datetime.now()
    path = _report.save()
    print(f"\n📄 Test results saved to: {path}")
    print(
        f"Total: {len(_report.outcomes)} | Passed: {_report.count('passed')} | "
        f"Failed: {_report.count('failed')} | Pass Rate: {_report.pass_rate:.1f}%"
    )



# =============================================================================
# SHARED FIXTURES
# =============================================================================

@pytest.fixture
def test_config():
    return CONFIG


@pytest.fixture
def expected_values():
    return EXPECTED


@pytest.fixture
def messages():
    return MESSAGES


@pytest.fixture
def storage():
    """Fresh in-memory storage."""
    return MemoryStorage()


@pytest.fixture
def analytics():
    """Analytics client double that records calls."""
    client = Mock(spec=AnalyticsClient)
    client.enabled = False
    client.capture.return_value = True
    client.identify.return_value = True
    client.is_feature_enabled.return_value = False
    return client


@pytest.fixture
def backend(storage, analytics):
    """Backend on in-memory storage without rate limiting."""
    return Backend(storage=storage, analytics=analytics, rate_limiter=None)


@pytest.fixture
def make_user(backend):
    """Create a user profile. Accepts the TEST_DATA user fields."""
    def _make(external_id: str, **fields):
        return backend.users.ensure_user_exists(external_id, **fields)
    return _make


@pytest.fixture
def alice(make_user):
    return make_user(**get_sample_user(0))


@pytest.fixture
def bob(make_user):
    return make_user(**get_sample_user(1))


@pytest.fixture
def carol(make_user):
    return make_user(**get_sample_user(2))


@pytest.fixture
def make_vibe(backend):
    """Create a vibe through the service, returning its id."""
    def _make(user_id: str, index: int = 0, **overrides):
        data = {**get_sample_vibe(index), **overrides}
        return backend.vibes.create(user_id, **data)
    return _make


@pytest.fixture
def insert_vibe(storage):
    """
    Insert a vibe directly with an explicit creation time.

    ``hours_ago`` makes ordering deterministic.
    """
    def _insert(user_id: str, title: str = "A vibe", hours_ago: float = 0, **fields):
        created_at = utcnow() - timedelta(hours=hours_ago)
        vibe = Vibe(
            title=title,
            description=fields.pop("description", f"About {title}"),
            created_by_id=user_id,
            created_at=created_at,
            updated_at=created_at,
            **fields,
        )
        return storage.insert(VIBES, vibe.to_record())
    return _insert


@pytest.fixture
def insert_rating(storage):
    """Insert a rating directly, bypassing notifications and rules."""
    def _insert(vibe_id: str, user_id: str, value: int = 4, emoji: str = "🔥", hours_ago: float = 0, **fields):
        created_at = utcnow() - timedelta(hours=hours_ago)
        rating = Rating(
            vibe_id=vibe_id,
            user_id=user_id,
            emoji=emoji,
            value=value,
            review=fields.pop("review", "solid vibe"),
            created_at=created_at,
            updated_at=created_at,
            **fields,
        )
        return storage.insert(RATINGS, rating.to_record())
    return _insert


@pytest.fixture
def identity():
    """Build an Identity for a user id."""
    def _identity(subject: str = "user_alice", roles=None, org_role=None):
        return Identity(subject=subject, roles=list(roles or []), org_role=org_role)
    return _identity


@pytest.fixture
def temp_output_dir(tmp_path):
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir
