from dataclasses import replace
from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from sedsim.core.oracle import PhysiologyOracle
from sedsim.core.state import LogEntry, SimulationConfig, SimulationSnapshot, Vitals
from sedsim.patient.patient import get_archetype
from sedsim.scenarios.base import ScenarioScript
from sedsim.scenarios.engine import ScenarioEngine
from sedsim.scenarios.presentation import RecordingSink


class StubOracle:
    """
    Oracle with directly settable vitals, for driving triggers and alerts.

    Records every input call in `calls`.
    """
    def __init__(self):
        self.vitals = Vitals()
        self.depth = 5
        self.calls = []
        self.event_log = []
        self.trend_data = []
        self.patient_key = None

    def set_vitals(self, **values):
        self.vitals = replace(self.vitals, **values)

    def snapshot(self):
        return SimulationSnapshot(time=0.0, vitals=self.vitals, sedation_depth=self.depth)

    def reset(self):
        self.calls.append(("reset",))

    def select_patient(self, key):
        self.patient_key = key
        self.calls.append(("select_patient", key))
        return True

    def administer_drug(self, name, dose):
        self.calls.append(("administer_drug", name, dose))
        return True

    def set_environment(self, fio2=None, airway_device=None):
        self.calls.append(("set_environment", fio2, airway_device))

    def apply_intervention(self, name):
        self.calls.append(("apply_intervention", name))
        return True

    def log_event(self, entry_type, message, severity="info"):
        self.event_log.append(LogEntry(0.0, entry_type, message, severity))

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


@pytest.fixture
def patient():
    """Healthy adult archetype used across most tests."""
    return get_archetype("healthy_adult")


@pytest.fixture
def oracle():
    """Noise-free reference oracle (healthy adult)."""
    return PhysiologyOracle(SimulationConfig(noise_enabled=False))


@pytest.fixture
def stub_oracle():
    return StubOracle()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def engine(stub_oracle, sink):
    """Scenario engine without a scheduler; tests tick it by hand."""
    return ScenarioEngine(stub_oracle, sink)


@pytest.fixture
def make_script():
    """Build a ScenarioScript around a list of steps."""
    def _make(steps, script_id="test_script", archetype="healthy_adult", **extra):
        return ScenarioScript(
            id=script_id,
            title="Test Scenario",
            difficulty="easy",
            patient_archetype=archetype,
            description="Scenario used in tests.",
            steps=list(steps),
            **extra,
        )

    return _make


@pytest.fixture
def tick():
    """Tick a scenario engine (or anything with tick(dt)) n times."""
    def _tick(target, n=1, dt=1.0):
        for _ in range(n):
            target.tick(dt)

    return _tick
