from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Tuple

from .pk_models import DRUG_DATABASE, DrugParams, PKState
from sedsim.core.constants import (
    CE_NEGLIGIBLE,
    MOASS_CUTPOINTS,
    OPIOID_POTENTIATION_MAX,
    OPIOID_SEDATION_CEILING,
)
from sedsim.core.enums import DrugClass
from sedsim.core.utils import clamp01, hill_function

# -----------------------------------------------------------------------------
# Sedation response surface
# -----------------------------------------------------------------------------
#
# Drugs are split into hypnotics, opioids and reversal agents
# (Bouillon et al. Anesthesiology. 2004; AReS simulator response surface):
#
# 1. Reversal agents reduce the effective Ce of the drugs they antagonise.
# 2. Opioids alone saturate at OPIOID_SEDATION_CEILING (drowsiness only).
# 3. Opioids left-shift hypnotic EC50 by up to OPIOID_POTENTIATION_MAX.
# 4. Hypnotics combine by Bliss independence; the opioid component is added
#    on top the same way.
#
# Patient brain sensitivity divides every EC50 (sensitive patients respond
# to lower concentrations).
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class EffectSummary:
    ce_by_drug: Dict[str, float]
    effect_by_drug: Dict[str, float]
    combined: float
    moass: int


def combined_effect(
    drug_effects: Iterable[Tuple[DrugParams, float]],
    sensitivity: float = 1.0,
) -> float:
    """
    Combine simultaneous drug effects into a single 0-1 sedation scalar.

    Args:
        drug_effects: (params, effect-site concentration) pairs
        sensitivity: Patient brain sensitivity multiplier
    """
    entries = list(drug_effects)
    if not entries:
        return 0.0
    sensitivity = sensitivity if sensitivity > 0 else 1.0

    by_key = {_key_for(drug): (drug, ce) for drug, ce in entries}

    # Step 1: reversal antagonism per target drug.
    reversal = {}
    for key, (drug, ce) in by_key.items():
        if drug.drug_class is not DrugClass.REVERSAL:
            continue
        rev_effect = hill_function(ce, drug.ec50, drug.gamma)
        for target in drug.reverses:
            reversal[target] = min(1.0, reversal.get(target, 0.0) + rev_effect)

    # Step 2: raw opioid effect (Bliss) and its capped sedation share.
    opioid_raw = 0.0
    for key, (drug, ce) in by_key.items():
        if drug.drug_class is not DrugClass.OPIOID:
            continue
        effective_ce = ce * (1.0 - reversal.get(key, 0.0))
        effect = hill_function(effective_ce, drug.ec50 / sensitivity, drug.gamma)
        opioid_raw = 1.0 - (1.0 - opioid_raw) * (1.0 - effect)
    opioid_sedation = min(opioid_raw * OPIOID_SEDATION_CEILING, OPIOID_SEDATION_CEILING)

    # Step 3-4: potentiated hypnotic effect.
    potentiation = opioid_raw * OPIOID_POTENTIATION_MAX
    hypnotic_product = 1.0
    for key, (drug, ce) in by_key.items():
        if drug.drug_class is not DrugClass.HYPNOTIC:
            continue
        effective_ce = ce * (1.0 - reversal.get(key, 0.0))
        ec50 = drug.ec50 * (1.0 - potentiation) / sensitivity
        hypnotic_product *= 1.0 - hill_function(effective_ce, ec50, drug.gamma)
    hypnotic = 1.0 - hypnotic_product

    # Step 5: modified Bliss combination.
    return clamp01(1.0 - (1.0 - hypnotic) * (1.0 - opioid_sedation))


def effect_to_moass(combined: float) -> int:
    """
    Map combined effect (0-1) to MOASS (5 awake .. 0 unresponsive).

    Calibration (healthy adult):
        Fentanyl alone saturates near 0.22 -> MOASS 4
        Propofol 50 mg -> ~0.30 -> MOASS 3
    """
    level = 5
    for cut in MOASS_CUTPOINTS:
        if combined < cut:
            return level
        level -= 1
    return 0


def moass_label(level: int) -> str:
    return {
        5: "Awake / Alert",
        4: "Drowsy",
        3: "Moderate Sedation",
        2: "Deep Sedation",
        1: "General Anesthesia",
        0: "Unresponsive",
    }.get(level, "Unknown")


def summarize_effects(states: Mapping[str, PKState], sensitivity: float = 1.0) -> EffectSummary:
    """Per-drug effect-site concentrations and effects plus the combined result."""
    ce_by_drug = {}
    effect_by_drug = {}
    active = []
    for key, state in states.items():
        drug = DRUG_DATABASE.get(key)
        if drug is None:
            continue
        ce_by_drug[key] = state.ce
        effect_by_drug[key] = hill_function(state.ce, drug.ec50, drug.gamma)
        if state.ce > CE_NEGLIGIBLE:
            active.append((drug, state.ce))
    combined = combined_effect(active, sensitivity)
    return EffectSummary(ce_by_drug, effect_by_drug, combined, effect_to_moass(combined))


def _key_for(drug: DrugParams) -> str:
    return drug.name.lower()
