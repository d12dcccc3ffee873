from dataclasses import dataclass, field
from typing import Dict, Tuple

from sedsim.core.enums import DrugClass

# =============================================================================
# PHARMACOKINETIC MODELS - PARAMETER NOTES
# =============================================================================
#
# 3-compartment mammillary models with an effect-site compartment, advanced
# with an explicit Euler step (1 s in the live oracle and the predictor).
#
#   - Propofol: Marsh et al. Br J Anaesth. 1991 (70 kg adult)
#   - Remifentanil: Minto et al. Anesthesiology. 1997 (ke0 0.595, EC50 13.1 ng/mL)
#   - Midazolam, fentanyl, ketamine, dexmedetomidine: simplified
#     3-compartment parameter sets for a 70 kg adult
#   - Naloxone, flumazenil: heuristic 2-compartment reversal agents
#
# Units:
#   - V1: L
#   - Rate constants (k10, k12, ...): min^-1
#   - Concentrations: dose unit per L (mg/L == µg/mL, µg/L == ng/mL)
#   - EC50 is expressed in the same concentration unit as the drug's state
#   - Infusion rates: dose unit per minute into V1
# =============================================================================


@dataclass
class PKState:
    """State of the 3-compartment PK model."""
    c1: float = 0.0  # Central compartment concentration
    c2: float = 0.0  # Fast peripheral
    c3: float = 0.0  # Slow peripheral
    ce: float = 0.0  # Effect site

    def copy(self) -> "PKState":
        return PKState(self.c1, self.c2, self.c3, self.ce)


@dataclass(frozen=True)
class DrugParams:
    name: str
    k10: float
    k12: float
    k13: float
    k21: float
    k31: float
    ke0: float
    v1: float
    ec50: float
    gamma: float
    unit: str
    drug_class: DrugClass = DrugClass.HYPNOTIC
    reverses: Tuple[str, ...] = field(default_factory=tuple)


def step_pk(
    state: PKState,
    drug: DrugParams,
    bolus_amount: float,
    infusion_rate: float,
    dt: float,
    clearance_factor: float = 1.0,
) -> PKState:
    """
    Advance PK state by dt seconds and return a NEW state.

    Args:
        state: Current concentrations (not modified)
        drug: Drug parameters
        bolus_amount: Amount added instantaneously to V1 (dose unit)
        infusion_rate: Continuous infusion (dose unit/min into V1)
        dt: Time step in seconds (0 applies only the bolus)
        clearance_factor: Scales k10 (hepatic impairment, age)
    """
    dt_min = dt / 60.0
    c1, c2, c3, ce = state.c1, state.c2, state.c3, state.ce
    k10 = drug.k10 * clearance_factor

    bolus_conc = bolus_amount / drug.v1
    infusion_conc = (infusion_rate * dt_min) / drug.v1

    dc1 = (-(k10 + drug.k12 + drug.k13) * c1 + drug.k21 * c2 + drug.k31 * c3) * dt_min
    dc2 = (drug.k12 * c1 - drug.k21 * c2) * dt_min
    dc3 = (drug.k13 * c1 - drug.k31 * c3) * dt_min

    # Effect-site equilibration
    dce = drug.ke0 * (c1 - ce) * dt_min

    return PKState(
        c1=max(0.0, c1 + dc1 + bolus_conc + infusion_conc),
        c2=max(0.0, c2 + dc2),
        c3=max(0.0, c3 + dc3),
        ce=max(0.0, ce + dce),
    )


DRUG_DATABASE: Dict[str, DrugParams] = {
    "propofol": DrugParams(
        name="Propofol", k10=0.119, k12=0.112, k13=0.042, k21=0.055, k31=0.0033,
        ke0=0.26, v1=15.9, ec50=3.4, gamma=2.8, unit="mg",
    ),
    "midazolam": DrugParams(
        name="Midazolam", k10=0.032, k12=0.077, k13=0.017, k21=0.025, k31=0.004,
        ke0=0.13, v1=8.6, ec50=0.12, gamma=3.0, unit="mg",
    ),
    "ketamine": DrugParams(
        name="Ketamine", k10=0.064, k12=0.231, k13=0.062, k21=0.069, k31=0.007,
        ke0=0.2, v1=14.4, ec50=1.5, gamma=1.8, unit="mg",
    ),
    "dexmedetomidine": DrugParams(
        name="Dexmedetomidine", k10=0.06, k12=0.2, k13=0.05, k21=0.1, k31=0.01,
        ke0=0.1, v1=8.0, ec50=0.7, gamma=2.0, unit="mcg",
    ),
    "fentanyl": DrugParams(
        name="Fentanyl", k10=0.094, k12=0.471, k13=0.225, k21=0.066, k31=0.013,
        ke0=0.147, v1=12.7, ec50=3.0, gamma=2.0, unit="mcg",
        drug_class=DrugClass.OPIOID,
    ),
    "remifentanil": DrugParams(
        name="Remifentanil", k10=0.5, k12=0.4, k13=0.013, k21=0.2, k31=0.013,
        ke0=0.595, v1=5.0, ec50=13.1, gamma=2.0, unit="mcg",
        drug_class=DrugClass.OPIOID,
    ),
    "naloxone": DrugParams(
        name="Naloxone", k10=0.23, k12=0.3, k13=0.0, k21=0.2, k31=0.0,
        ke0=0.5, v1=10.0, ec50=0.01, gamma=1.5, unit="mg",
        drug_class=DrugClass.REVERSAL, reverses=("fentanyl", "remifentanil"),
    ),
    "flumazenil": DrugParams(
        name="Flumazenil", k10=0.35, k12=0.2, k13=0.0, k21=0.15, k31=0.0,
        ke0=0.6, v1=12.0, ec50=0.008, gamma=1.5, unit="mg",
        drug_class=DrugClass.REVERSAL, reverses=("midazolam",),
    ),
}


def lookup_drug(name: str):
    """Return (key, params) for a drug name, case-insensitive; (None, None) if unknown."""
    if not name:
        return None, None
    key = name.strip().lower()
    return (key, DRUG_DATABASE[key]) if key in DRUG_DATABASE else (None, None)
