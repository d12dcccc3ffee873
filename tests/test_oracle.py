import pytest

from sedsim.core.enums import AirwayDevice, Intervention
from sedsim.core.oracle import PhysiologyOracle
from sedsim.core.state import SimulationConfig
from sedsim.monitors.alarms import AlarmSystem


def run(oracle, seconds):
    snap = oracle.snapshot()
    for _ in range(seconds):
        snap = oracle.tick()
    return snap


class TestBaseline:

    def test_resting_vitals(self, oracle):
        snap = oracle.snapshot()
        assert snap.vitals.hr == 75
        assert snap.vitals.spo2 == 99.0
        assert snap.sedation_depth == 5
        assert oracle.sedation_label() == "Awake / Alert"

    def test_drug_free_stays_at_baseline(self, oracle):
        snap = run(oracle, 60)
        assert snap.time == 60.0
        assert snap.vitals.hr == 75
        assert snap.vitals.rr == 14
        assert snap.sedation_depth == 5

    def test_unknown_archetype_falls_back(self):
        oracle = PhysiologyOracle(SimulationConfig(patient_archetype="martian", noise_enabled=False))
        assert oracle.patient_key == "healthy_adult"

    def test_select_patient(self, oracle):
        assert oracle.select_patient("obese_osa")
        assert oracle.snapshot().vitals.spo2 == 95.0
        assert not oracle.select_patient("martian")
        assert oracle.patient_key == "obese_osa"


class TestDrugs:

    def test_bolus_sedates(self, oracle):
        oracle.administer_drug("propofol", 150)
        snap = run(oracle, 120)
        assert snap.sedation_depth < 5, "Propofol 150 mg should sedate within 2 min"
        assert snap.vitals.rr < 14
        assert snap.ce_by_drug["propofol"] > 0

    def test_bolus_logged(self, oracle):
        assert oracle.administer_drug("Fentanyl", 50)
        entry = oracle.event_log[-1]
        assert entry.type == "bolus"
        assert "Fentanyl" in entry.message

    @pytest.mark.parametrize("name, dose", [("unobtainium", 5), ("propofol", 0), ("propofol", -10)])
    def test_invalid_bolus_ignored(self, oracle, name, dose):
        assert not oracle.administer_drug(name, dose)
        assert oracle.event_log == []
        assert oracle.drug_states() == {}

    def test_infusion_lifecycle(self, oracle):
        assert oracle.start_infusion("propofol", 10.0)
        assert "propofol" in oracle.active_infusions()
        run(oracle, 60)
        assert oracle.drug_states()["propofol"].c1 > 0
        assert oracle.stop_infusion("propofol")
        assert oracle.active_infusions() == {}
        assert not oracle.stop_infusion("propofol"), "Already stopped"

    def test_drug_states_are_copies(self, oracle):
        oracle.administer_drug("propofol", 100)
        states = oracle.drug_states()
        states["propofol"].c1 = 0.0
        assert oracle.drug_states()["propofol"].c1 > 0


class TestEnvironment:

    def test_fio2_clamped(self, oracle):
        assert oracle.set_environment(fio2=0.1).fio2 == pytest.approx(0.21)
        assert oracle.set_environment(fio2=1.5).fio2 == 1.0

    def test_airway_device(self, oracle):
        oracle.set_environment(airway_device="nasal_cannula")
        assert oracle.environment.airway_device is AirwayDevice.NASAL_CANNULA
        oracle.set_environment(airway_device="teleporter")
        assert oracle.environment.airway_device is AirwayDevice.NASAL_CANNULA

    def test_interventions(self, oracle):
        assert oracle.apply_intervention("jaw_thrust")
        assert oracle.apply_intervention(Intervention.INCREASE_FIO2)
        assert Intervention.JAW_THRUST in oracle.environment.interventions
        assert oracle.environment.fio2 >= 0.6
        assert not oracle.apply_intervention("prayer")
        assert oracle.remove_intervention("jaw_thrust")
        assert Intervention.JAW_THRUST not in oracle.environment.interventions

    def test_bag_mask_supports_ventilation(self, oracle):
        oracle.administer_drug("propofol", 400)
        depressed = run(oracle, 120)
        assert depressed.vitals.rr < 8, "Large propofol dose should depress breathing"
        oracle.apply_intervention("bag_mask")
        supported = run(oracle, 60)
        assert supported.vitals.rr > depressed.vitals.rr


class TestBookkeeping:

    def test_trend_every_interval(self, oracle):
        run(oracle, 30)
        assert [p.time for p in oracle.trend_data] == [1.0, 6.0, 11.0, 16.0, 21.0, 26.0]

    def test_zero_dt_is_noop(self, oracle):
        before = oracle.snapshot()
        assert oracle.tick(0) is before
        assert oracle.elapsed == 0.0

    def test_reset_keeps_patient(self, oracle):
        oracle.select_patient("elderly")
        oracle.administer_drug("midazolam", 1)
        run(oracle, 10)
        oracle.reset()
        assert oracle.elapsed == 0.0
        assert oracle.drug_states() == {}
        assert oracle.event_log == []
        assert oracle.patient_key == "elderly"

    def test_log_event(self, oracle):
        oracle.log_event("alert", "CRITICAL: SpO2 80%", "danger")
        assert oracle.event_log[-1].severity == "danger"

    def test_seeded_noise_reproducible(self):
        def trace(seed):
            oracle = PhysiologyOracle(SimulationConfig(rng_seed=seed))
            oracle.administer_drug("propofol", 100)
            return [oracle.tick() for _ in range(30)]

        assert trace(7) == trace(7)
        assert trace(7) != trace(8)


class TestAlarmSystem:

    def test_spo2_needs_sustained_window(self):
        alarms = AlarmSystem()
        for _ in range(4):
            alarms.update({"SpO2": 85})
        assert alarms.alarm_messages() == []
        alarms.update({"SpO2": 85})
        assert alarms.alarm_messages() == ["Desaturation"]

    def test_single_good_reading_clears(self):
        alarms = AlarmSystem()
        for value in (85, 85, 85, 85, 95):
            alarms.update({"SpO2": value})
        assert alarms.alarm_messages() == []

    def test_immediate_bradycardia(self):
        alarms = AlarmSystem()
        alarms.update({"HR": 45})
        assert alarms.alarm_messages() == ["Bradycardia"]
