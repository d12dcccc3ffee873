from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

from .constants import (
    ALARM_LOG_INTERVAL_SEC,
    ALERT_COOLDOWN_SEC,
    FIO2_ROOM_AIR,
    MONITOR_PERIOD_SEC,
    ON_START_WINDOW_SEC,
    TREND_INTERVAL_SEC,
    CoherenceThresholds,
)
from .enums import AirwayDevice, Intervention


@dataclass
class SimulationConfig:
    """Configuration for the physiology oracle."""
    dt: float = 1.0  # Oracle tick (seconds)
    patient_archetype: str = "healthy_adult"

    # Vitals noise. Disable (or seed) for reproducible runs.
    noise_enabled: bool = True
    noise_scale: float = 1.0
    rng_seed: Optional[int] = None

    # Bookkeeping cadence.
    trend_interval_sec: float = TREND_INTERVAL_SEC
    alarm_log_interval_sec: float = ALARM_LOG_INTERVAL_SEC


@dataclass
class ScenarioConfig:
    """Configuration for the scenario state machine."""
    tick_period_sec: float = 1.0
    on_start_window_sec: float = ON_START_WINDOW_SEC


@dataclass
class MonitorConfig:
    """Configuration for the vital coherence monitor."""
    period_sec: float = MONITOR_PERIOD_SEC
    cooldown_sec: float = ALERT_COOLDOWN_SEC
    thresholds: CoherenceThresholds = field(default_factory=CoherenceThresholds)


@dataclass(frozen=True)
class Vitals:
    hr: float = 75.0     # Heart rate (bpm)
    sbp: float = 120.0   # Systolic BP (mmHg)
    dbp: float = 80.0    # Diastolic BP (mmHg)
    map: float = 93.0    # Mean arterial pressure (mmHg)
    rr: float = 14.0     # Respiratory rate (breaths/min)
    spo2: float = 99.0   # Oxygen saturation (%)
    etco2: float = 38.0  # End-tidal CO2 (mmHg)


@dataclass(frozen=True)
class Environment:
    """Oxygen delivery and airway support around the patient."""
    fio2: float = FIO2_ROOM_AIR
    airway_device: AirwayDevice = AirwayDevice.ROOM_AIR
    interventions: FrozenSet[Intervention] = frozenset()


@dataclass(frozen=True)
class SimulationSnapshot:
    """Immutable snapshot of the simulated patient at a specific time."""
    time: float = 0.0
    vitals: Vitals = field(default_factory=Vitals)
    sedation_depth: int = 5  # MOASS 0 (unresponsive) .. 5 (awake)
    combined_effect: float = 0.0
    ce_by_drug: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class InfusionState:
    drug_name: str
    rate: float  # dose units per minute into V1
    is_running: bool = True


@dataclass(frozen=True)
class LogEntry:
    time: float
    type: str  # bolus | infusion_start | infusion_stop | intervention | environment | alert
    message: str
    severity: str = "info"  # info | warning | danger


@dataclass(frozen=True)
class TrendPoint:
    time: float
    vitals: Vitals
    sedation_depth: int
    ce_by_drug: Dict[str, float] = field(default_factory=dict)
