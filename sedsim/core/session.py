import logging
from typing import Optional

import numpy as np

from .enums import EngineStatus
from .oracle import PhysiologyOracle
from .progress import CompletedScenarioStore
from .recorder import TrendRecorder
from .scheduler import ManualScheduler, Scheduler
from .state import MonitorConfig, ScenarioConfig, SimulationConfig, SimulationSnapshot
from sedsim.monitors.coherence import VitalCoherenceMonitor
from sedsim.scenarios.base import ScenarioScript
from sedsim.scenarios.debrief import ScoredReport
from sedsim.scenarios.engine import ScenarioEngine
from sedsim.scenarios.presentation import PresentationSink, RecordingSink

logger = logging.getLogger(__name__)


class SimulationSession:
    """
    One isolated simulation run: oracle, scenario engine and coherence monitor
    sharing a scheduler.

    Tasks are registered in a fixed order so that at equal times the oracle
    ticks first, then the scenario, then the monitor; both consumers always
    see the snapshot for the current second.
    """
    def __init__(
        self,
        sim_config: SimulationConfig = None,
        scenario_config: ScenarioConfig = None,
        monitor_config: MonitorConfig = None,
        scheduler: Optional[Scheduler] = None,
        sink: Optional[PresentationSink] = None,
        summarizer=None,
        store: Optional[CompletedScenarioStore] = None,
        recorder: Optional[TrendRecorder] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.sim_config = sim_config or SimulationConfig()
        self.scheduler = scheduler or ManualScheduler()
        self.sink = sink or RecordingSink()
        self.store = store
        self.recorder = recorder

        self.oracle = PhysiologyOracle(self.sim_config, rng=rng)
        self.engine = ScenarioEngine(
            self.oracle, self.sink,
            scheduler=self.scheduler,
            summarizer=summarizer,
            config=scenario_config,
        )
        self.monitor = VitalCoherenceMonitor(
            self.oracle, self.sink,
            scenario=self.engine,
            script_provider=self._active_script,
            scheduler=self.scheduler,
            config=monitor_config,
        )
        self.engine.attach_monitor(self.monitor)
        self._oracle_timer = None

    def _active_script(self) -> Optional[ScenarioScript]:
        return self.engine.script if self.engine.is_running else None

    def _oracle_tick(self, dt: float) -> SimulationSnapshot:
        snapshot = self.oracle.tick(dt)
        if self.recorder is not None:
            self.recorder.log(snapshot)
        return snapshot

    def load(self, script: ScenarioScript):
        self.engine.load(script)

    def start(self) -> bool:
        """Start the loaded scenario; nothing is scheduled if the engine refuses."""
        if self.engine.status is not EngineStatus.LOADED:
            logger.debug("Session start ignored in state %s", self.engine.status.value)
            return False
        if self._oracle_timer is None:
            self._oracle_timer = self.scheduler.schedule_repeating(self.sim_config.dt, self._oracle_tick)
        if self.recorder is not None and not self.recorder.is_recording:
            self.recorder.start()
        return self.engine.start()

    def stop(self) -> Optional[ScoredReport]:
        if self._oracle_timer is not None:
            self._oracle_timer.cancel()
            self._oracle_timer = None
        report = self.engine.stop()
        if self.recorder is not None:
            self.recorder.stop()
        if report is not None and self.store is not None and self.engine.all_steps_fired:
            self.store.mark_completed(self.engine.script.id)
        return report

    def run_for(self, seconds: float):
        """Advance a ManualScheduler-driven session by `seconds` of simulated time."""
        if not isinstance(self.scheduler, ManualScheduler):
            raise TypeError("run_for() needs a ManualScheduler; Qt sessions run on the event loop")
        self.scheduler.advance(seconds)

    def answer(self, answer):
        return self.engine.answer_question(answer)
