import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

import numpy as np

from .constants import FIO2_ROOM_AIR
from .enums import AirwayDevice, Intervention
from .predict import DEFAULT_SAMPLE_TIMES, HypotheticalBolus, PredictionSnapshot, predict_forward
from .state import (
    Environment,
    InfusionState,
    LogEntry,
    SimulationConfig,
    SimulationSnapshot,
    TrendPoint,
    Vitals,
)
from .utils import clamp
from sedsim.monitors.alarms import AlarmSystem
from sedsim.patient.patient import get_archetype
from sedsim.patient.pd_models import moass_label, summarize_effects
from sedsim.patient.pk_models import DRUG_DATABASE, PKState, lookup_drug, step_pk
from sedsim.physiology.vitals import apply_noise, baseline_vitals, calculate_vitals

logger = logging.getLogger(__name__)

# FiO2 delivered once supplemental oxygen is turned up.
INCREASED_FIO2 = 0.6

# Alarm log entries are marked "danger" below this SpO2 or during apnea.
DANGER_SPO2 = 85.0


def _parse_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return None


class PhysiologyOracle:
    """
    Reference physiology simulation for sedation scenarios.

    Owns the per-drug PK state, infusions, oxygen/airway environment and the
    patient profile, and produces an immutable SimulationSnapshot each tick.

    State management:
    - `self._vitals` is the noise-free lagged state that drives the next tick.
    - `self._snapshot` is the public, noisy and rounded view for consumers.
    - `drug_states()` and `active_infusions()` return copies, so callers
      (e.g. the forward predictor) can never alias live state.
    """
    def __init__(self, config: SimulationConfig = None, rng: Optional[np.random.Generator] = None):
        self.config = config or SimulationConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.rng_seed)
        self.alarms = AlarmSystem(dt=self.config.dt)

        self.patient_key = "healthy_adult"
        self.patient = get_archetype(self.patient_key)
        selected = get_archetype(self.config.patient_archetype)
        if selected is None:
            logger.warning("Unknown patient archetype '%s', using %s",
                           self.config.patient_archetype, self.patient_key)
        else:
            self.patient_key = self.config.patient_archetype
            self.patient = selected

        self.reset()

    def reset(self):
        """Clear drugs, environment, logs and time; keep the current patient."""
        self._pk: Dict[str, PKState] = {}
        self._infusions: Dict[str, InfusionState] = {}
        self.environment = Environment()
        self.elapsed = 0.0
        self.event_log: List[LogEntry] = []
        self.trend_data: List[TrendPoint] = []
        self.alarms.reset()
        self._next_alarm_log = 0.0
        self._next_trend = 0.0
        self._vitals = baseline_vitals(self.patient)
        self._snapshot = SimulationSnapshot(
            time=0.0,
            vitals=apply_noise(self._vitals, None),
            sedation_depth=5,
        )

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def select_patient(self, archetype: str) -> bool:
        patient = get_archetype(archetype)
        if patient is None:
            logger.warning("Unknown patient archetype '%s', ignored", archetype)
            return False
        self.patient_key = archetype
        self.patient = patient
        self._vitals = baseline_vitals(patient)
        self._snapshot = replace(self._snapshot, vitals=apply_noise(self._vitals, None))
        logger.info("Patient archetype set to %s", archetype)
        return True

    def administer_drug(self, name: str, dose: float) -> bool:
        """
        Give a bolus. Updates PK state instantaneously: C1 += dose / V1.

        Returns False (and changes nothing) for an unknown drug or a
        non-positive dose.
        """
        key, drug = lookup_drug(name)
        if drug is None:
            logger.warning("Unknown drug '%s', bolus ignored", name)
            return False
        if dose <= 0:
            logger.warning("Non-positive dose %s for %s, bolus ignored", dose, drug.name)
            return False
        state = self._pk.get(key, PKState())
        self._pk[key] = step_pk(state, drug, dose, 0.0, 0.0)
        self._log("bolus", f"{drug.name} {dose:g} {drug.unit}")
        return True

    def start_infusion(self, name: str, rate: float) -> bool:
        key, drug = lookup_drug(name)
        if drug is None:
            logger.warning("Unknown drug '%s', infusion ignored", name)
            return False
        if rate <= 0:
            return self.stop_infusion(name)
        self._infusions[key] = InfusionState(drug_name=key, rate=rate, is_running=True)
        self._pk.setdefault(key, PKState())
        self._log("infusion_start", f"{drug.name} infusion {rate:g} {drug.unit}/min")
        return True

    def stop_infusion(self, name: str) -> bool:
        key, drug = lookup_drug(name)
        infusion = self._infusions.get(key) if key else None
        if infusion is None or not infusion.is_running:
            return False
        self._infusions[key] = replace(infusion, is_running=False)
        self._log("infusion_stop", f"{drug.name} infusion stopped")
        return True

    def set_environment(self, fio2: Optional[float] = None, airway_device=None) -> Environment:
        """Set FiO2 (0.21-1.0) and/or the airway device. Unknown devices are ignored."""
        env = self.environment
        if fio2 is not None:
            env = replace(env, fio2=clamp(float(fio2), FIO2_ROOM_AIR, 1.0))
            self._log("environment", f"FiO2 set to {env.fio2:.2f}")
        if airway_device is not None:
            device = _parse_enum(AirwayDevice, airway_device)
            if device is None:
                logger.warning("Unknown airway device '%s', ignored", airway_device)
            else:
                env = replace(env, airway_device=device)
                self._log("environment", f"Airway device: {device.value}")
        self.environment = env
        return env

    def apply_intervention(self, name) -> bool:
        intervention = _parse_enum(Intervention, name)
        if intervention is None:
            logger.warning("Unknown intervention '%s', ignored", name)
            return False
        env = replace(self.environment,
                      interventions=self.environment.interventions | {intervention})
        if intervention is Intervention.INCREASE_FIO2:
            env = replace(env, fio2=max(env.fio2, INCREASED_FIO2))
        self.environment = env
        self._log("intervention", f"Intervention: {intervention.value}")
        return True

    def remove_intervention(self, name) -> bool:
        intervention = _parse_enum(Intervention, name)
        if intervention is None or intervention not in self.environment.interventions:
            return False
        self.environment = replace(
            self.environment,
            interventions=self.environment.interventions - {intervention},
        )
        self._log("intervention", f"Intervention removed: {intervention.value}")
        return True

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def tick(self, dt: float = None) -> SimulationSnapshot:
        """Advance the simulation by dt seconds and return the new snapshot."""
        dt = self.config.dt if dt is None else dt
        if dt <= 0:
            return self._snapshot

        clearance = self.patient.clearance_factor
        for key, state in self._pk.items():
            drug = DRUG_DATABASE[key]
            infusion = self._infusions.get(key)
            rate = infusion.rate if infusion is not None and infusion.is_running else 0.0
            self._pk[key] = step_pk(state, drug, 0.0, rate, dt, clearance)

        self.elapsed += dt
        effects = summarize_effects(self._pk, self.patient.brain_sensitivity)
        self._vitals = calculate_vitals(
            effects.combined, self.patient, self.environment, self._vitals, dt
        )

        rng = self.rng if self.config.noise_enabled else None
        displayed = apply_noise(self._vitals, rng, self.config.noise_scale)
        self._snapshot = SimulationSnapshot(
            time=self.elapsed,
            vitals=displayed,
            sedation_depth=effects.moass,
            combined_effect=effects.combined,
            ce_by_drug=effects.ce_by_drug,
        )

        self._update_alarms(displayed, dt)
        if self.elapsed >= self._next_trend:
            self.trend_data.append(TrendPoint(
                time=self.elapsed,
                vitals=displayed,
                sedation_depth=effects.moass,
                ce_by_drug=dict(effects.ce_by_drug),
            ))
            self._next_trend = self.elapsed + self.config.trend_interval_sec

        return self._snapshot

    def _update_alarms(self, vitals: Vitals, dt: float):
        self.alarms.update({
            "SpO2": vitals.spo2,
            "HR": vitals.hr,
            "SBP": vitals.sbp,
            "RR": vitals.rr,
            "EtCO2": vitals.etco2,
        }, dt)
        messages = self.alarms.alarm_messages()
        if messages and self.elapsed >= self._next_alarm_log:
            severe = vitals.spo2 < DANGER_SPO2 or vitals.rr == 0
            self._log("alert", "Alarm: " + ", ".join(messages),
                      severity="danger" if severe else "warning")
            self._next_alarm_log = self.elapsed + self.config.alarm_log_interval_sec

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def snapshot(self) -> SimulationSnapshot:
        return self._snapshot

    def current_vitals(self) -> Vitals:
        return self._snapshot.vitals

    def current_sedation_depth(self) -> int:
        return self._snapshot.sedation_depth

    def sedation_label(self) -> str:
        return moass_label(self._snapshot.sedation_depth)

    def drug_states(self) -> Dict[str, PKState]:
        return {key: state.copy() for key, state in self._pk.items()}

    def active_infusions(self) -> Dict[str, InfusionState]:
        return {key: inf for key, inf in self._infusions.items() if inf.is_running}

    def predict(
        self,
        sample_times: Iterable[float] = DEFAULT_SAMPLE_TIMES,
        hypothetical_bolus: Optional[HypotheticalBolus] = None,
    ) -> List[PredictionSnapshot]:
        """Look ahead from the current state without touching it."""
        return predict_forward(
            self.drug_states(),
            self.active_infusions(),
            replace(self.patient),
            self.environment,
            self._vitals,
            sample_times,
            hypothetical_bolus,
        )

    def log_event(self, entry_type: str, message: str, severity: str = "info"):
        """Append an externally observed event (e.g. a mentor alert) to the event log."""
        self._log(entry_type, message, severity)

    def _log(self, entry_type: str, message: str, severity: str = "info"):
        self.event_log.append(LogEntry(self.elapsed, entry_type, message, severity))
        logger.debug("[%.0fs] %s: %s", self.elapsed, entry_type, message)
