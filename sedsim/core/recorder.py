import csv
import logging
import os
import time
from dataclasses import fields

from .state import SimulationSnapshot, Vitals
from sedsim.patient.pk_models import DRUG_DATABASE

logger = logging.getLogger(__name__)


class TrendRecorder:
    """
    Records oracle snapshots to CSV.
    """
    def __init__(self, output_dir: str = ".", sample_interval_sec: float = 1.0, filename: str = None):
        self.output_dir = output_dir
        self.filename = filename or f"sedsim_log_{int(time.time())}.csv"
        self.file_path = os.path.join(output_dir, self.filename)
        self.file = None
        self.writer = None
        self.is_recording = False
        self.sample_interval_sec = max(0.0, sample_interval_sec)
        self._last_sample_time = None
        self._vital_names = [f.name for f in fields(Vitals)]
        self._drug_keys = sorted(DRUG_DATABASE)

    def header(self):
        return (
            ["time"] + self._vital_names + ["sedation_depth", "combined_effect"]
            + [f"ce_{key}" for key in self._drug_keys]
        )

    def start(self) -> bool:
        try:
            os.makedirs(self.output_dir, exist_ok=True)
            self.file = open(self.file_path, "w", newline="")
        except OSError as e:
            logger.error("Failed to start recording to %s: %s", self.file_path, e)
            self.is_recording = False
            return False
        self.writer = csv.writer(self.file)
        self.writer.writerow(self.header())
        self.is_recording = True
        self._last_sample_time = None
        logger.info("Recording trends to %s", self.file_path)
        return True

    def log(self, snapshot: SimulationSnapshot):
        if not self.is_recording or not self.writer:
            return

        if self.sample_interval_sec > 0.0:
            now = snapshot.time
            if self._last_sample_time is not None and (now - self._last_sample_time) < self.sample_interval_sec:
                return
            self._last_sample_time = now

        row = [round(snapshot.time, 3)]
        row += [getattr(snapshot.vitals, name) for name in self._vital_names]
        row += [snapshot.sedation_depth, round(snapshot.combined_effect, 4)]
        row += [round(snapshot.ce_by_drug.get(key, 0.0), 5) for key in self._drug_keys]
        self.writer.writerow(row)

    def stop(self):
        if self.file:
            self.file.close()
            self.file = None
        self.writer = None
        self.is_recording = False
