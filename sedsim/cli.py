import argparse
import json
import logging
import sys
import time
from dataclasses import fields

from sedsim.core.constants import CoherenceThresholds
from sedsim.core.enums import QuestionType
from sedsim.core.progress import CompletedScenarioStore
from sedsim.core.recorder import TrendRecorder
from sedsim.core.scheduler import ManualScheduler, QtScheduler
from sedsim.core.session import SimulationSession
from sedsim.core.state import MonitorConfig, ScenarioConfig, SimulationConfig
from sedsim.core.utils import format_clock
from sedsim.scenarios import SCENARIO_BUILDERS, ScriptValidationError, load_script

logger = logging.getLogger("sedsim")

STATUS_INTERVAL_SEC = 30


def _known(cls, data: dict) -> dict:
    names = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - names)
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", cls.__name__, ", ".join(unknown))
    return {k: v for k, v in data.items() if k in names}


def load_config(path: str):
    """
    Read a JSON config with optional "simulation", "scenario" and "monitor"
    sections (monitor may contain "thresholds") and a "progress_file".
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("config must be a JSON object")

    sim = SimulationConfig(**_known(SimulationConfig, data.get("simulation", {})))
    scenario = ScenarioConfig(**_known(ScenarioConfig, data.get("scenario", {})))
    monitor_data = dict(data.get("monitor", {}))
    thresholds = CoherenceThresholds(**_known(CoherenceThresholds, monitor_data.pop("thresholds", {})))
    monitor = MonitorConfig(thresholds=thresholds, **_known(MonitorConfig, monitor_data))
    return sim, scenario, monitor, data.get("progress_file")


def pick_answer(question):
    """The answer a model learner gives (used with --auto-answer)."""
    if question.type is QuestionType.NUMERIC_RANGE:
        low, high = question.ideal_range
        return (low + high) / 2.0
    return question.correct_answer


def _auto_answer(session: SimulationSession):
    def answer(dt: float):
        pending = session.engine.pending_question
        if pending is not None:
            session.answer(pick_answer(pending.question))
    return answer


def _status(session: SimulationSession):
    def report(dt: float):
        snap = session.oracle.snapshot()
        v = snap.vitals
        logger.info(
            "[%s] HR %.0f | BP %.0f/%.0f | RR %.0f | SpO2 %.1f | EtCO2 %.0f | MOASS %d",
            format_clock(snap.time), v.hr, v.sbp, v.dbp, v.rr, v.spo2, v.etco2, snap.sedation_depth,
        )
    return report


def build_session(args, scheduler):
    sim_config, scenario_config, monitor_config = SimulationConfig(), ScenarioConfig(), MonitorConfig()
    progress_file = None
    if args.config:
        try:
            sim_config, scenario_config, monitor_config, progress_file = load_config(args.config)
        except (OSError, ValueError, TypeError) as e:
            logger.error("Error loading config: %s", e)
            sys.exit(1)
    if args.seed is not None:
        sim_config.rng_seed = args.seed

    try:
        if args.script:
            script = load_script(args.script)
        else:
            script = SCENARIO_BUILDERS[args.scenario]()
    except ScriptValidationError as e:
        logger.error("%s", e)
        sys.exit(2)
    except (OSError, ValueError) as e:
        logger.error("Error loading script: %s", e)
        sys.exit(1)

    recorder = None
    if args.record:
        recorder = TrendRecorder(output_dir=args.record_dir, sample_interval_sec=args.record_interval)
    store = CompletedScenarioStore(progress_file) if progress_file else None

    session = SimulationSession(
        sim_config, scenario_config, monitor_config,
        scheduler=scheduler, store=store, recorder=recorder,
    )
    session.load(script)
    return session


def run_headless(args):
    """Run a scenario in simulated time as fast as possible."""
    logger.info("Starting headless scenario (duration: %ss)", args.duration)
    session = build_session(args, ManualScheduler())
    session.start()
    if args.auto_answer:
        session.scheduler.schedule_repeating(1.0, _auto_answer(session))
    session.scheduler.schedule_repeating(STATUS_INTERVAL_SEC, _status(session))

    start_real = time.time()
    session.run_for(args.duration)
    session.stop()
    logger.info("Scenario completed in %.2fs real time.", time.time() - start_real)


def run_live(args):
    """Run a scenario in real time on a Qt event loop."""
    from PySide6.QtCore import QCoreApplication, QTimer

    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    scheduler = QtScheduler(speed=args.speed)
    session = build_session(args, scheduler)
    session.start()
    if args.auto_answer:
        scheduler.schedule_repeating(1.0, _auto_answer(session))
    scheduler.schedule_repeating(STATUS_INTERVAL_SEC, _status(session))

    def finish():
        session.stop()
        app.quit()

    QTimer.singleShot(int(args.duration * 1000 / scheduler.speed), finish)
    sys.exit(app.exec())


def main(argv=None):
    parser = argparse.ArgumentParser(description="SedSim - Procedural Sedation Scenario Simulator")
    parser.add_argument("--mode", choices=["headless", "live"], default="headless", help="Run mode (default: headless)")
    parser.add_argument("--scenario", choices=sorted(SCENARIO_BUILDERS), default="easy_colonoscopy",
                        help="Built-in scenario to run")
    parser.add_argument("--script", type=str, help="Path to a JSON scenario script (overrides --scenario)")
    parser.add_argument("--duration", type=float, default=600.0, help="Simulated seconds to run")
    parser.add_argument("--speed", type=float, default=1.0, help="Speed multiplier (live mode)")
    parser.add_argument("--config", type=str, help="Path to JSON configuration file")
    parser.add_argument("--seed", type=int, help="Seed for the vitals noise generator")
    parser.add_argument("--auto-answer", action="store_true", help="Answer every question with the model answer")
    parser.add_argument("--record", action="store_true", help="Enable CSV trend recording")
    parser.add_argument("--record-dir", type=str, default="recordings", help="Output directory for recordings")
    parser.add_argument("--record-interval", type=float, default=1.0, help="Sample interval in seconds for CSV")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.mode == "live":
        run_live(args)
    else:
        run_headless(args)


if __name__ == "__main__":
    main()
