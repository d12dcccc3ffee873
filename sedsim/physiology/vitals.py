"""
Vitals model.

Maps combined sedation effect, patient modifiers and oxygen/airway support
to vital signs. Sedation depresses HR, BP and respiratory drive in
proportion to the combined effect. Desaturation appears beyond deep sedation
and is blunted by supplemental oxygen and airway support.

Vitals follow their targets with a first-order lag so a sudden bolus does not
produce a step change on the monitor. Noise is applied separately so the
lagged state stays noise-free.
"""

import math
from dataclasses import replace
from typing import Optional

import numpy as np

from sedsim.core.constants import (
    DBP_FLOOR,
    ETCO2_FLOOR,
    FIO2_ROOM_AIR,
    HR_FLOOR,
    RR_FLOOR,
    SBP_FLOOR,
    SPO2_CEILING,
    SPO2_FLOOR,
    VITALS_TAU_SEC,
)
from sedsim.core.enums import AirwayDevice, Intervention
from sedsim.core.state import Environment, Vitals
from sedsim.core.utils import clamp
from sedsim.patient.patient import Patient

# Fraction of desaturation remaining with each airway device in place.
AIRWAY_DEVICE_DESAT_FACTOR = {
    AirwayDevice.ROOM_AIR: 1.0,
    AirwayDevice.NASAL_CANNULA: 1.0,
    AirwayDevice.NASAL_HOOD: 0.9,
    AirwayDevice.ORAL_AIRWAY: 0.6,
    AirwayDevice.NASAL_AIRWAY: 0.65,
    AirwayDevice.LMA: 0.2,
    AirwayDevice.ETT: 0.1,
}

INTERVENTION_DESAT_FACTOR = {
    Intervention.JAW_THRUST: 0.6,
    Intervention.CHIN_LIFT: 0.75,
    Intervention.BAG_MASK: 0.2,
    Intervention.SUCTION: 0.9,
    Intervention.INCREASE_FIO2: 1.0,
}

# Noise amplitudes (1 SD) per displayed vital.
NOISE_SD = {"hr": 2.0, "sbp": 3.0, "dbp": 2.0, "rr": 0.7, "spo2": 0.4, "etco2": 1.0}

# Respiratory rate delivered by manual bag-mask ventilation.
BAG_MASK_RR = 12.0


def baseline_vitals(patient: Patient) -> Vitals:
    """Resting vitals for a patient before any drug is given."""
    sbp, dbp = patient.baseline_sbp, patient.baseline_dbp
    return Vitals(
        hr=patient.baseline_hr,
        sbp=sbp,
        dbp=dbp,
        map=(sbp + 2.0 * dbp) / 3.0,
        rr=patient.baseline_rr,
        spo2=patient.baseline_spo2,
        etco2=patient.baseline_etco2,
    )


def airway_support_factor(environment: Environment) -> float:
    """Fraction (0-1] of the unsupported desaturation that still occurs."""
    factor = AIRWAY_DEVICE_DESAT_FACTOR.get(environment.airway_device, 1.0)
    for intervention in environment.interventions:
        factor *= INTERVENTION_DESAT_FACTOR.get(intervention, 1.0)
    return factor


def target_vitals(effect: float, patient: Patient, environment: Environment) -> Vitals:
    """Steady-state vitals implied by a combined effect (no lag, no noise)."""
    drive = patient.respiratory_drive
    bag_mask = Intervention.BAG_MASK in environment.interventions
    secured = environment.airway_device in (AirwayDevice.ETT, AirwayDevice.LMA)

    hr = patient.baseline_hr - effect * 25.0
    sbp = patient.baseline_sbp - effect * 35.0
    dbp = patient.baseline_dbp - effect * 21.0

    rr = patient.baseline_rr - effect * 12.0 / drive
    if rr < 1.0:
        rr = 0.0  # apnea
    if bag_mask:
        rr = max(rr, BAG_MASK_RR)

    # Desaturation beyond deep sedation, worse with low respiratory drive.
    desat = max(0.0, effect - 0.6) * 40.0 / drive
    if rr == 0.0:
        desat += 15.0
    desat *= airway_support_factor(environment)
    fio2 = max(FIO2_ROOM_AIR, environment.fio2)
    desat *= 1.0 - min(0.6, fio2 - FIO2_ROOM_AIR)
    o2_bonus = min((fio2 - FIO2_ROOM_AIR) * 10.0, SPO2_CEILING - patient.baseline_spo2)
    spo2 = patient.baseline_spo2 + o2_bonus - desat

    etco2_rise = effect * 15.0 / drive
    if rr == 0.0:
        etco2_rise += 25.0
    if bag_mask or secured:
        etco2_rise *= 0.5
    etco2 = patient.baseline_etco2 + etco2_rise

    sbp = max(SBP_FLOOR, sbp)
    dbp = max(DBP_FLOOR, dbp)
    return Vitals(
        hr=max(HR_FLOOR, hr),
        sbp=sbp,
        dbp=dbp,
        map=(sbp + 2.0 * dbp) / 3.0,
        rr=max(RR_FLOOR, rr),
        spo2=clamp(spo2, SPO2_FLOOR, SPO2_CEILING),
        etco2=max(ETCO2_FLOOR, etco2),
    )


def calculate_vitals(
    effect: float,
    patient: Patient,
    environment: Environment,
    prev_vitals: Optional[Vitals] = None,
    dt: float = 1.0,
) -> Vitals:
    """
    Advance the (noise-free) vitals toward their targets.

    Args:
        effect: Combined sedation effect (0-1)
        patient: Patient profile
        environment: FiO2 and airway support
        prev_vitals: Vitals at the previous evaluation (None -> jump to target)
        dt: Seconds since prev_vitals
    """
    target = target_vitals(effect, patient, environment)
    if prev_vitals is None or dt <= 0:
        return target

    alpha = 1.0 - math.exp(-dt / VITALS_TAU_SEC)

    def lag(name: str) -> float:
        prev = getattr(prev_vitals, name)
        return prev + (getattr(target, name) - prev) * alpha

    sbp, dbp = lag("sbp"), lag("dbp")
    rr = lag("rr")
    if target.rr == 0.0 and rr < 1.0:
        rr = 0.0
    return Vitals(
        hr=lag("hr"),
        sbp=sbp,
        dbp=dbp,
        map=(sbp + 2.0 * dbp) / 3.0,
        rr=rr,
        spo2=lag("spo2"),
        etco2=lag("etco2"),
    )


def apply_noise(
    vitals: Vitals,
    rng: Optional[np.random.Generator],
    scale: float = 1.0,
) -> Vitals:
    """Add monitor noise and round to display precision."""
    values = {name: getattr(vitals, name) for name in NOISE_SD}
    if rng is not None and scale > 0:
        for name, sd in NOISE_SD.items():
            if name == "rr" and values[name] == 0.0:
                continue  # apnea stays flat
            values[name] += float(rng.normal(0.0, sd * scale))

    sbp = round(max(SBP_FLOOR, values["sbp"]))
    dbp = round(max(DBP_FLOOR, values["dbp"]))
    return replace(
        vitals,
        hr=round(max(HR_FLOOR, values["hr"])),
        sbp=sbp,
        dbp=dbp,
        map=round((sbp + 2 * dbp) / 3),
        rr=round(max(RR_FLOOR, values["rr"])),
        spo2=round(clamp(values["spo2"], SPO2_FLOOR, SPO2_CEILING), 1),
        etco2=round(max(ETCO2_FLOOR, values["etco2"])),
    )
