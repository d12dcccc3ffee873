import json
import logging
import os
from typing import Set

logger = logging.getLogger(__name__)


class CompletedScenarioStore:
    """
    Completed scenario ids, persisted as a JSON list.

    A missing file reads as empty. A corrupt file is logged and read as
    empty; the next save overwrites it.
    """
    def __init__(self, path: str):
        self.path = path

    def load(self) -> Set[str]:
        if not os.path.exists(self.path):
            return set()
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read completed scenarios from %s: %s", self.path, e)
            return set()
        if not isinstance(data, list):
            logger.warning("Ignoring malformed completed-scenario file %s", self.path)
            return set()
        return {str(item) for item in data}

    def save(self, completed: Set[str]):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(sorted(completed), fh, indent=2)

    def mark_completed(self, scenario_id: str) -> Set[str]:
        completed = self.load()
        if scenario_id not in completed:
            completed.add(scenario_id)
            self.save(completed)
            logger.info("Scenario '%s' marked completed", scenario_id)
        return completed

    def is_completed(self, scenario_id: str) -> bool:
        return scenario_id in self.load()
