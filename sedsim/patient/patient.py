from dataclasses import dataclass, replace
from typing import Dict, Optional


@dataclass
class Patient:
    """
    Patient demographics, risk factors and baseline physiology.
    """
    age: float = 45.0       # years
    weight: float = 70.0    # kg
    height: float = 170.0   # cm
    sex: str = "male"       # "male" or "female"
    asa: int = 2            # ASA physical status 1-4

    # Risk factors.
    mallampati: int = 1
    osa: bool = False       # obstructive sleep apnea
    copd: bool = False
    hepatic_function: float = 1.0  # 0.1-1.0 (1.0 = normal clearance)
    drug_sensitivity: float = 1.0  # 0.6-1.8, population mean 1.0

    # Baselines
    baseline_hr: float = 75.0
    baseline_sbp: float = 120.0
    baseline_dbp: float = 80.0
    baseline_rr: float = 14.0
    baseline_spo2: float = 99.0
    baseline_etco2: float = 38.0

    # Derived parameters (computed post-init)
    bmi: float = 0.0

    def __post_init__(self):
        self.bmi = self.weight / ((self.height / 100.0) ** 2)
        self._sanitize()

    def _sanitize(self):
        """Clamp modifier inputs to their documented ranges."""
        try:
            self.drug_sensitivity = float(self.drug_sensitivity)
        except (TypeError, ValueError):
            self.drug_sensitivity = 1.0
        try:
            self.hepatic_function = float(self.hepatic_function)
        except (TypeError, ValueError):
            self.hepatic_function = 1.0
        self.drug_sensitivity = max(0.6, min(1.8, self.drug_sensitivity))
        self.hepatic_function = max(0.1, min(1.0, self.hepatic_function))

    @property
    def brain_sensitivity(self) -> float:
        """Multiplier on drug effect (>1 means more sensitive)."""
        age_factor = 1.3 if self.age > 70 else 1.0
        return self.drug_sensitivity * age_factor

    @property
    def respiratory_drive(self) -> float:
        """Fraction of normal ventilatory reserve (OSA/COPD reduce it)."""
        if self.osa:
            return 0.7
        if self.copd:
            return 0.75
        return 1.0

    @property
    def clearance_factor(self) -> float:
        """Scales elimination (k10) for age and hepatic function."""
        if self.hepatic_function < 1.0:
            return self.hepatic_function
        if self.age > 65:
            return 0.8
        return 1.0


PATIENT_ARCHETYPES: Dict[str, Patient] = {
    "healthy_adult": Patient(age=45, weight=70, height=170, sex="male", asa=1),
    "elderly": Patient(
        age=78, weight=62, height=165, sex="female", asa=3,
        baseline_hr=68, baseline_sbp=145, baseline_dbp=82, baseline_spo2=96,
    ),
    "obese_osa": Patient(
        age=52, weight=128, height=175, sex="male", asa=3, mallampati=3, osa=True,
        baseline_hr=84, baseline_sbp=138, baseline_dbp=88, baseline_spo2=95,
        baseline_etco2=42,
    ),
    "elderly_copd": Patient(
        age=71, weight=68, height=170, sex="male", asa=3, copd=True,
        baseline_hr=88, baseline_rr=18, baseline_spo2=93, baseline_etco2=45,
    ),
    "pediatric": Patient(
        age=8, weight=26, height=128, sex="female", asa=1,
        baseline_hr=95, baseline_sbp=105, baseline_dbp=65, baseline_rr=20,
    ),
}


def get_archetype(key: str) -> Optional[Patient]:
    """Return a fresh copy of a named archetype, or None if unknown."""
    template = PATIENT_ARCHETYPES.get(key)
    if template is None:
        return None
    return replace(template)
