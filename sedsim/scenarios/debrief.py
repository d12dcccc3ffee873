from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from sedsim.core.state import LogEntry, TrendPoint

# Target sedation for procedural cases (moderate to deep).
TARGET_MOASS = (2, 3)

DESATURATION_SPO2 = 90.0

GRADE_CUTOFFS = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))


@dataclass(frozen=True)
class ScoredReport:
    overall_grade: str
    titration_accuracy: int      # % of trend samples in the target MOASS range
    complication_response: int   # % score for responding to danger events
    strengths: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)
    desaturation_episodes: int = 0
    lowest_spo2: Optional[float] = None


def _grade(score: float) -> str:
    for cutoff, letter in GRADE_CUTOFFS:
        if score >= cutoff:
            return letter
    return "F"


def count_episodes(mask: np.ndarray) -> int:
    """Number of contiguous True runs in a boolean array."""
    if mask.size == 0:
        return 0
    padded = np.concatenate(([False], mask.astype(bool)))
    return int(np.count_nonzero(~padded[:-1] & padded[1:]))


class DebriefSummarizer:
    """
    Scores a finished run from the oracle's event log and trend samples.

    Titration accuracy is the share of trend samples at the target MOASS.
    Complication response credits one intervention per danger event, half
    credit being the floor once any danger event occurred.
    """
    def __init__(self, target_moass: Sequence[int] = TARGET_MOASS):
        self.target_moass = tuple(target_moass)

    def summarize(self, event_log: Sequence[LogEntry], trend_data: Sequence[TrendPoint]) -> ScoredReport:
        moass = np.array([t.sedation_depth for t in trend_data], dtype=int)
        spo2 = np.array([t.vitals.spo2 for t in trend_data], dtype=float)

        in_range = np.count_nonzero(np.isin(moass, self.target_moass))
        titration = int(round(100.0 * in_range / max(1, moass.size)))

        danger = sum(1 for e in event_log if e.severity == "danger")
        interventions = sum(1 for e in event_log if e.type == "intervention")
        if danger == 0:
            complication = 100
        else:
            complication = min(100, int(round(interventions / danger * 50 + 50)))

        overall = _grade((titration + complication) / 2.0)

        strengths = []
        improvements = []
        if titration > 70:
            strengths.append("Good sedation depth maintenance")
        else:
            low, high = min(self.target_moass), max(self.target_moass)
            improvements.append(f"Practice titrating to target MOASS {low}-{high}")

        if complication > 70:
            strengths.append("Appropriate complication management")
        else:
            improvements.append("Faster response to critical vital sign changes needed")

        episodes = count_episodes(spo2 < DESATURATION_SPO2)
        if episodes == 0:
            strengths.append("No significant desaturation episodes")
        else:
            improvements.append(f"{episodes} desaturation episode(s), review airway management")

        return ScoredReport(
            overall_grade=overall,
            titration_accuracy=titration,
            complication_response=complication,
            strengths=strengths,
            improvements=improvements,
            desaturation_episodes=episodes,
            lowest_spo2=float(spo2.min()) if spo2.size else None,
        )
