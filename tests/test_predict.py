import pytest

from sedsim.core.predict import HypotheticalBolus, predict_forward
from sedsim.core.state import Environment, InfusionState
from sedsim.patient.pk_models import DRUG_DATABASE, PKState, step_pk
from sedsim.physiology.vitals import baseline_vitals


@pytest.fixture
def propofol_state():
    return {"propofol": step_pk(PKState(), DRUG_DATABASE["propofol"], 50.0, 0.0, 0.0)}


def predict(states, patient, infusions=None, **kwargs):
    return predict_forward(
        states, infusions or {}, patient, Environment(), baseline_vitals(patient), **kwargs
    )


class TestSampling:

    def test_sorted_and_deduplicated(self, propofol_state, patient):
        result = predict(propofol_state, patient, sample_times=[120, 30, 60, 30])
        assert [s.seconds_ahead for s in result] == [30, 60, 120]

    def test_default_horizon(self, propofol_state, patient):
        result = predict(propofol_state, patient)
        assert [s.seconds_ahead for s in result] == [30, 60, 120, 300, 600]

    def test_empty_sample_times(self, propofol_state, patient):
        assert predict(propofol_state, patient, sample_times=[]) == []

    def test_negative_time_rejected(self, propofol_state, patient):
        with pytest.raises(ValueError):
            predict(propofol_state, patient, sample_times=[-5, 30])

    @pytest.mark.parametrize("times", [[0.5], [30, 59.9], [float("nan")], [float("inf")]])
    def test_fractional_time_rejected(self, propofol_state, patient, times):
        with pytest.raises(ValueError):
            predict(propofol_state, patient, sample_times=times)

    def test_integral_floats_accepted(self, propofol_state, patient):
        result = predict(propofol_state, patient, sample_times=[30.0, 60])
        assert [s.seconds_ahead for s in result] == [30, 60]

    def test_effect_builds_then_sedates(self, patient):
        states = {"propofol": step_pk(PKState(), DRUG_DATABASE["propofol"], 150.0, 0.0, 0.0)}
        result = predict(states, patient, sample_times=[0, 120])
        assert result[0].combined_effect == 0.0, "Nothing at the effect site at t=0"
        assert result[1].combined_effect > result[0].combined_effect
        assert result[1].sedation_depth < 5


class TestSideEffectFree:

    def test_inputs_untouched(self, propofol_state, patient):
        before = {k: v.copy() for k, v in propofol_state.items()}
        predict(propofol_state, patient, hypothetical_bolus=HypotheticalBolus("fentanyl", 50.0))
        assert propofol_state == before
        assert "fentanyl" not in propofol_state

    def test_repeatable(self, propofol_state, patient):
        first = predict(propofol_state, patient)
        second = predict(propofol_state, patient)
        assert first == second

    def test_oracle_predict_leaves_live_state(self, oracle):
        oracle.administer_drug("propofol", 80)
        oracle.tick()
        states_before = oracle.drug_states()
        snapshot_before = oracle.snapshot()

        oracle.predict(hypothetical_bolus=HypotheticalBolus("propofol", 50))

        assert oracle.drug_states() == states_before
        assert oracle.snapshot() == snapshot_before
        assert oracle.elapsed == 1.0


class TestHypotheticalBolus:

    def test_ghost_bolus_deepens_prediction(self, propofol_state, patient):
        plain = predict(propofol_state, patient, sample_times=[120])
        ghost = predict(propofol_state, patient, sample_times=[120],
                        hypothetical_bolus=HypotheticalBolus("propofol", 50.0))
        assert ghost[0].ce_by_drug["propofol"] > plain[0].ce_by_drug["propofol"]
        assert ghost[0].combined_effect > plain[0].combined_effect

    def test_ghost_bolus_new_drug(self, patient):
        result = predict({}, patient, sample_times=[60],
                         hypothetical_bolus=HypotheticalBolus("Midazolam", 2.0))
        assert result[0].ce_by_drug["midazolam"] > 0

    def test_unknown_drug_ignored(self, propofol_state, patient):
        plain = predict(propofol_state, patient, sample_times=[60])
        ghost = predict(propofol_state, patient, sample_times=[60],
                        hypothetical_bolus=HypotheticalBolus("unobtainium", 5.0))
        assert ghost == plain


class TestInfusions:

    def test_running_infusion_continues(self, patient):
        states = {"propofol": PKState()}
        running = {"propofol": InfusionState("propofol", 10.0, True)}
        stopped = {"propofol": InfusionState("propofol", 10.0, False)}

        with_infusion = predict(states, patient, running, sample_times=[300])
        without = predict(states, patient, stopped, sample_times=[300])

        assert with_infusion[0].ce_by_drug["propofol"] > 0
        assert without[0].ce_by_drug["propofol"] == 0.0
