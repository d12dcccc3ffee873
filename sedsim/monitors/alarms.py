from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class AlarmLimit:
    """Bedside alarm band for one displayed vital."""
    low: Optional[float] = None
    high: Optional[float] = None
    delay_sec: float = 0.0  # how long the value must stay outside the band


DEFAULT_LIMITS: Dict[str, AlarmLimit] = {
    "SpO2": AlarmLimit(low=90, delay_sec=5),
    "HR": AlarmLimit(low=50, high=120),
    "SBP": AlarmLimit(low=80),
    "RR": AlarmLimit(low=6),
    "EtCO2": AlarmLimit(high=55),
}

# Clinical names used in the oracle's event log.
ALARM_NAMES = {
    ("SpO2", "low"): "Desaturation",
    ("HR", "low"): "Bradycardia",
    ("HR", "high"): "Tachycardia",
    ("SBP", "low"): "Hypotension",
    ("RR", "low"): "Respiratory Depression",
    ("EtCO2", "high"): "Hypercapnia",
}


class AlarmSystem:
    """
    Bedside monitor alarms on the displayed vitals.

    A vital alarms only once every reading in its delay window lies outside
    its band, so one noisy sample neither raises nor holds an alarm.
    """
    def __init__(self, limits: Mapping[str, AlarmLimit] = None, dt: float = 1.0):
        self.limits = dict(limits or DEFAULT_LIMITS)
        self.dt = dt
        self._windows: Dict[str, Deque[float]] = {}
        self.active: List[Tuple[str, str]] = []

    def _samples_needed(self, limit: AlarmLimit) -> int:
        return max(1, int(limit.delay_sec / self.dt))

    def update(self, readings: Mapping[str, float], dt: float = None) -> List[Tuple[str, str]]:
        """
        Feed one set of readings, e.g. {"SpO2": 91.0, "HR": 64}.

        Returns the active (vital, "low"/"high") pairs in limit order.
        """
        if dt is not None and dt > 0:
            self.dt = dt

        active = []
        for name, limit in self.limits.items():
            if name not in readings:
                continue
            needed = self._samples_needed(limit)
            window = self._windows.get(name)
            if window is None or window.maxlen != needed:
                window = self._windows[name] = deque(maxlen=needed)
            window.append(readings[name])
            if len(window) < needed:
                continue

            if limit.low is not None and max(window) < limit.low:
                active.append((name, "low"))
            if limit.high is not None and min(window) > limit.high:
                active.append((name, "high"))

        self.active = active
        return active

    def alarm_messages(self) -> List[str]:
        return [ALARM_NAMES.get(key, f"{key[0]} {key[1]}") for key in self.active]

    def reset(self):
        self._windows.clear()
        self.active = []
