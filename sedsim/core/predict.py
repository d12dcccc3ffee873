"""
Forward prediction ("what happens if...").

Runs the PK/PD chain forward from a copy of the live drug state, optionally
with a hypothetical (ghost) bolus, and returns snapshots at the requested
times. Nothing passed in is modified, so the same call always returns the
same result and the live simulation is never touched.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from sedsim.core.state import Environment, InfusionState, Vitals
from sedsim.patient.patient import Patient
from sedsim.patient.pd_models import summarize_effects
from sedsim.patient.pk_models import DRUG_DATABASE, PKState, lookup_drug, step_pk
from sedsim.physiology.vitals import calculate_vitals

DEFAULT_SAMPLE_TIMES = (30, 60, 120, 300, 600)

# Simulated seconds per prediction step.
PREDICTION_STEP_SEC = 1


@dataclass(frozen=True)
class HypotheticalBolus:
    drug_name: str
    dose: float


@dataclass(frozen=True)
class PredictionSnapshot:
    seconds_ahead: float
    ce_by_drug: Dict[str, float] = field(default_factory=dict)
    effect_by_drug: Dict[str, float] = field(default_factory=dict)
    combined_effect: float = 0.0
    sedation_depth: int = 5
    vitals: Vitals = field(default_factory=Vitals)


def _infusion_rate(infusions: Mapping[str, InfusionState], key: str) -> float:
    infusion = infusions.get(key)
    if infusion is None or not infusion.is_running:
        return 0.0
    return infusion.rate


def predict_forward(
    drug_states: Mapping[str, PKState],
    active_infusions: Mapping[str, InfusionState],
    patient: Patient,
    environment: Environment,
    prev_vitals: Vitals,
    sample_times: Iterable[float] = DEFAULT_SAMPLE_TIMES,
    hypothetical_bolus: Optional[HypotheticalBolus] = None,
) -> List[PredictionSnapshot]:
    """
    Simulate forward from the given state and sample it at `sample_times`.

    Args:
        drug_states: Current PK state per drug key (copied, never modified)
        active_infusions: Infusion per drug key; stopped infusions count as 0
        patient: Patient profile (sensitivity, clearance, respiratory drive)
        environment: FiO2 / airway support held constant over the horizon
        prev_vitals: Vitals at t=0 (noise-free starting point for the lag)
        sample_times: Whole seconds ahead to sample; order and duplicates ignored
        hypothetical_bolus: Optional dose applied to the copy at t=0.
            Unknown drug names are ignored.

    Returns:
        One PredictionSnapshot per distinct sample time, ascending.

    Raises:
        ValueError: if any sample time is negative or not a whole second.
    """
    times = sorted(set(float(t) for t in sample_times))
    if times and times[0] < 0:
        raise ValueError(f"Sample times must be >= 0, got {times[0]}")
    fractional = [t for t in times if not t.is_integer()]
    if fractional:
        raise ValueError(f"Sample times must be whole seconds, got {fractional[0]}")

    sim_pk = {name: state.copy() for name, state in drug_states.items()}

    if hypothetical_bolus is not None:
        key, drug = lookup_drug(hypothetical_bolus.drug_name)
        if drug is not None:
            current = sim_pk.get(key, PKState())
            sim_pk[key] = step_pk(current, drug, hypothetical_bolus.dose, 0.0, 0.0)

    clearance = patient.clearance_factor
    sensitivity = patient.brain_sensitivity
    vitals = prev_vitals
    last_sample_t = 0.0
    t = 0
    snapshots = []

    for target in times:
        while t < target:
            for name, state in sim_pk.items():
                drug = DRUG_DATABASE.get(name)
                if drug is None:
                    continue
                rate = _infusion_rate(active_infusions, name)
                sim_pk[name] = step_pk(state, drug, 0.0, rate, PREDICTION_STEP_SEC, clearance)
            t += PREDICTION_STEP_SEC

        effects = summarize_effects(sim_pk, sensitivity)
        vitals = calculate_vitals(effects.combined, patient, environment, vitals, t - last_sample_t)
        last_sample_t = t

        snapshots.append(PredictionSnapshot(
            seconds_ahead=target,
            ce_by_drug=effects.ce_by_drug,
            effect_by_drug=effects.effect_by_drug,
            combined_effect=effects.combined,
            sedation_depth=effects.moass,
            vitals=vitals,
        ))

    return snapshots
