from enum import Enum


class Parameter(Enum):
    """Monitored physiological parameters a trigger or alert can watch."""
    SPO2 = "spo2"
    HR = "hr"
    RR = "rr"
    SBP = "sbp"
    MOASS = "moass"
    ETCO2 = "etco2"

    @property
    def label(self) -> str:
        return _PARAMETER_LABELS[self]

    def read(self, snapshot) -> float:
        """Current value of this parameter in a SimulationSnapshot."""
        if self is Parameter.MOASS:
            return float(snapshot.sedation_depth)
        return float(getattr(snapshot.vitals, self.value))


_PARAMETER_LABELS = {
    Parameter.SPO2: "SpO2",
    Parameter.HR: "HR",
    Parameter.RR: "RR",
    Parameter.SBP: "SBP",
    Parameter.MOASS: "MOASS",
    Parameter.ETCO2: "EtCO2",
}


class Direction(Enum):
    LOW = "low"
    HIGH = "high"


class Operator(Enum):
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    EQ = "=="

    def evaluate(self, value: float, threshold: float) -> bool:
        if self is Operator.LT:
            return value < threshold
        if self is Operator.GT:
            return value > threshold
        if self is Operator.LE:
            return value <= threshold
        if self is Operator.GE:
            return value >= threshold
        return value == threshold

    @property
    def directions(self) -> tuple:
        """Directions of derangement this comparison watches ('==' watches both)."""
        if self in (Operator.LT, Operator.LE):
            return (Direction.LOW,)
        if self in (Operator.GT, Operator.GE):
            return (Direction.HIGH,)
        return (Direction.LOW, Direction.HIGH)


class TriggerType(Enum):
    ON_START = "on_start"
    ON_TIME = "on_time"
    ON_PHYSIOLOGY = "on_physiology"
    ON_STEP_COMPLETE = "on_step_complete"


class Phase(Enum):
    PRE_INDUCTION = "pre_induction"
    INDUCTION = "induction"
    MAINTENANCE = "maintenance"
    COMPLICATION = "complication"
    RECOVERY = "recovery"
    DEBRIEF = "debrief"


class QuestionType(Enum):
    SINGLE_CHOICE = "single_choice"
    NUMERIC_RANGE = "numeric_range"
    MULTI_SELECT = "multi_select"


class Severity(Enum):
    """Highlight severity tiers, ordered from least to most severe."""
    NORMAL = "normal"
    WARNING = "warning"
    DANGER = "danger"


class AlertLevel(Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class EngineStatus(Enum):
    NOT_LOADED = "not_loaded"
    LOADED = "loaded"
    RUNNING = "running"
    STOPPED = "stopped"


class DrugClass(Enum):
    HYPNOTIC = "hypnotic"
    OPIOID = "opioid"
    REVERSAL = "reversal"


class AirwayDevice(Enum):
    """Airway devices (mutually exclusive, one at a time)."""
    ROOM_AIR = "room_air"
    NASAL_CANNULA = "nasal_cannula"
    NASAL_HOOD = "nasal_hood"
    ORAL_AIRWAY = "oral_airway"
    NASAL_AIRWAY = "nasal_airway"
    LMA = "lma"
    ETT = "ett"


class Intervention(Enum):
    """Supplementary airway manoeuvres (may be combined)."""
    JAW_THRUST = "jaw_thrust"
    CHIN_LIFT = "chin_lift"
    BAG_MASK = "bag_mask"
    SUCTION = "suction"
    INCREASE_FIO2 = "increase_fio2"


class SimActionType(Enum):
    ADMINISTER_DRUG = "administer_drug"
    SET_FIO2 = "set_fio2"
    SET_AIRWAY_DEVICE = "set_airway_device"
    APPLY_INTERVENTION = "apply_intervention"
    SELECT_PATIENT = "select_patient"
    ADVANCE_TIME = "advance_time"
    SET_SPEED = "set_speed"
