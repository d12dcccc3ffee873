"""
Physiological, pedagogical and numerical constants for SedSim.

This module centralizes magic numbers used throughout the simulation.

NOTE: Only add constants here that are ACTIVELY IMPORTED elsewhere.
"""

from dataclasses import dataclass

# Numerical safeguards (used in utils.py hill_function).

# Epsilon for preventing division by zero in Hill functions
HILL_EPSILON = 1e-12

# Maximum Hill coefficient (gamma) to prevent numerical overflow
GAMMA_MAX = 20.0

# Concentration ratio above which Hill function returns near-saturation
CONCENTRATION_RATIO_SATURATION = 100.0

# Pharmacodynamic interaction constants (used in pd_models.py).
#
# Opioids alone produce drowsiness (MOASS 4) but not deep sedation; the
# opioid-only arm of the response surface saturates early.
# Reference: Bouillon et al. Anesthesiology. 2004.
OPIOID_SEDATION_CEILING = 0.22

# Opioid left-shift of hypnotic EC50 at full opioid effect.
OPIOID_POTENTIATION_MAX = 0.35

# Combined-effect cut points for MOASS 5..1 (anything above the last is 0).
MOASS_CUTPOINTS = (0.10, 0.25, 0.45, 0.65, 0.85)

# Effect-site concentrations below this are treated as drug-free.
CE_NEGLIGIBLE = 1e-4

# Vitals model (used in physiology/vitals.py).

# First-order lag of vitals toward their drug-driven targets (seconds).
VITALS_TAU_SEC = 20.0

# Lower/upper physiological clamps for the simplified vitals model.
HR_FLOOR = 30.0
SBP_FLOOR = 50.0
DBP_FLOOR = 30.0
RR_FLOOR = 0.0
SPO2_FLOOR = 50.0
SPO2_CEILING = 100.0
ETCO2_FLOOR = 15.0

# Room-air oxygen fraction.
FIO2_ROOM_AIR = 0.21

# Scenario engine (used in scenarios/engine.py).

# on_start steps may fire while elapsed scenario time is at or below this.
ON_START_WINDOW_SEC = 2.0

# Highlight severity margins: how far past its threshold a value must be
# to be shown as 'warning' / 'danger'.
SEVERITY_WARNING_MARGIN = 3.0
SEVERITY_DANGER_MARGIN = 10.0

# Oracle bookkeeping (used in core/oracle.py).
TREND_INTERVAL_SEC = 5.0
ALARM_LOG_INTERVAL_SEC = 10.0

# Vital coherence monitor (used in monitors/coherence.py).
MONITOR_PERIOD_SEC = 2.0
ALERT_COOLDOWN_SEC = 15.0


@dataclass(frozen=True)
class CoherenceThresholds:
    """Hard warning/critical cutoffs watched by the coherence monitor."""
    spo2_warning: float = 90.0
    spo2_critical: float = 85.0
    hr_low_warning: float = 50.0
    hr_low_critical: float = 40.0
    hr_high_warning: float = 120.0
    hr_high_critical: float = 150.0
    sbp_warning: float = 80.0
    sbp_critical: float = 70.0
    rr_warning: float = 8.0
    rr_critical: float = 4.0
    etco2_warning: float = 60.0
    etco2_critical: float = 80.0
    moass_critical: int = 0
