"""
Pytest fixtures shared across the adas_scrub test suite.
"""

import io
import logging

import pytest
from rich.console import Console

from adas_scrub import startup
from adas_scrub.cli import _console, cmd_learning, cmd_scrub
from adas_scrub.catalog import InMemoryVehicleCatalog
from adas_scrub.learning import InMemoryLearningStore, LearningEngine
from adas_scrub.schemas.vehicle import AdasSystemRecord, RepairTriggerMapping, VehicleRecord

SAMPLE_ESTIMATE = """CCC ONE Estimating
Preliminary Estimate
VIN: 4T1B11HK5NU123456
2022 TOYOTA Camry SE 4dr Sedan

1 FRONT BUMPER
2 * Rpr Bumper cover
6 O/H Front Bumper Cover
7 Repl Grille assy
9 R&I Windshield
Subtotals 1,234.56
"""


@pytest.fixture(autouse=True)
def _reset_startup_state():
    """Each test resolves settings from scratch."""
    startup.reset()
    yield
    startup.reset()


@pytest.fixture(autouse=True)
def _no_openai_credentials(monkeypatch):
    """Never reach a real OpenAI endpoint from tests."""
    for name in (
        "OPENAI_API_KEY",
        "AZURE_OPENAI_API_KEY",
        "AZURE_OPENAI_ENDPOINT",
        "AZURE_OPENAI_BASE_URL",
        "ADAS_SCRUB_CONFIG",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sample_estimate() -> str:
    return SAMPLE_ESTIMATE


@pytest.fixture
def camry_record() -> VehicleRecord:
    """2018-2024 Camry with a front bumper -> front radar trigger."""
    return VehicleRecord(
        id="toyota-camry-2018",
        year_start=2018,
        year_end=2024,
        make="Toyota",
        model="Camry",
        source_provider="oem-portal",
        repair_trigger_mappings=[
            RepairTriggerMapping(
                keywords=["front bumper"],
                triggered_systems=["Front Radar / ACC-AEB"],
                repair_operation="Front Bumper R&R",
                procedure_type="Required",
            ),
        ],
        adas_systems=[
            AdasSystemRecord(system_name="Front Radar / ACC-AEB", calibration_type="Static"),
        ],
    )


@pytest.fixture
def catalog(camry_record) -> InMemoryVehicleCatalog:
    return InMemoryVehicleCatalog([camry_record])


@pytest.fixture
def learning_store() -> InMemoryLearningStore:
    return InMemoryLearningStore()


@pytest.fixture
def learning_engine(learning_store) -> LearningEngine:
    return LearningEngine(learning_store)


@pytest.fixture
def scrub_logs(caplog):
    """Capture adas_scrub logs at DEBUG for assertions."""
    caplog.set_level(logging.DEBUG, logger="adas_scrub")
    return caplog


@pytest.fixture
def cli_output(monkeypatch, tmp_path):
    """Route CLI consoles to buffers and keep logging config untouched.

    Returns a dict with ``stdout`` (JSON output) and ``stderr`` (status
    messages and tables) StringIO buffers.
    """
    buffers = {"stdout": io.StringIO(), "stderr": io.StringIO()}
    stdout_console = Console(file=buffers["stdout"], width=200)
    stderr_console = Console(file=buffers["stderr"], width=200)

    monkeypatch.setattr(_console, "stdout_console", stdout_console)
    monkeypatch.setattr(_console, "console", stderr_console)
    monkeypatch.setattr(cmd_scrub, "console", stderr_console)
    monkeypatch.setattr(cmd_scrub, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(cmd_learning, "setup_logging", lambda **kwargs: None)
    monkeypatch.chdir(tmp_path)
    return buffers
