"""
Upper GI endoscopy in an obese patient with OSA (moderate).
"""

from sedsim.core.enums import Operator, Parameter, Phase, QuestionType, SimActionType, TriggerType
from .base import PreopVignette, Question, ScenarioScript, SimAction, Step, TriggerCondition

RESCUE_KIT = "LMA, bag-mask and difficult airway cart at the bedside"
FLAT_TRACE = "Airway obstruction: no CO2 is being exhaled"


def create_osa_endoscopy() -> ScenarioScript:
    """Conservative propofol dosing and partial airway obstruction in OSA."""
    steps = [
        Step(
            id="step_airway_plan",
            phase=Phase.PRE_INDUCTION,
            trigger_type=TriggerType.ON_START,
            dialogue=[
                "STOP-BANG 6, Mallampati 3, BMI 42. This is a high-risk airway.",
                "What rescue equipment must be ready before you sedate?",
            ],
            question=Question(
                type=QuestionType.SINGLE_CHOICE,
                prompt="Rescue airway preparation for this patient?",
                options=[
                    RESCUE_KIT,
                    "Nothing special for moderate sedation",
                    "Nasopharyngeal airway only",
                    "Surgical airway kit only",
                ],
                correct_answer=RESCUE_KIT,
                feedback={
                    RESCUE_KIT: "Correct. A high-risk airway means the full rescue kit is present first.",
                    "Nothing special for moderate sedation": "No. OSA with Mallampati 3 needs advanced preparation.",
                    "Nasopharyngeal airway only": "Useful, but not enough as the only rescue device.",
                    "Surgical airway kit only": "That is the last resort. Bag-mask and LMA come first.",
                },
            ),
            side_effects=[
                SimAction(SimActionType.SET_AIRWAY_DEVICE, device="nasal_cannula"),
                SimAction(SimActionType.SET_FIO2, fio2=0.40),
            ],
            highlight=["airway-nasal_cannula", "fio2-slider"],
            teaching_points=[
                "Pre-oxygenate for 3-5 minutes to extend safe apnea time.",
            ],
        ),
        Step(
            id="step_propofol",
            phase=Phase.INDUCTION,
            trigger_type=TriggerType.ON_STEP_COMPLETE,
            after_step_id="step_airway_plan",
            dialogue=[
                "The patient is pre-oxygenated and has had 25 mcg of fentanyl.",
                "Dose propofol on lean body weight (about 80 kg). How much do you give?",
            ],
            question=Question(
                type=QuestionType.NUMERIC_RANGE,
                prompt="Initial propofol dose (mg)",
                correct_answer=40,
                ideal_range=(30, 50),
                feedback={
                    "low": "Under 30 mg will barely sedate this patient.",
                    "ideal": "About 0.5 mg/kg lean body weight is appropriately conservative.",
                    "high": "More than 50 mg risks obstruction and apnea in OSA.",
                },
            ),
            side_effects=[
                SimAction(SimActionType.ADMINISTER_DRUG, drug="fentanyl", dose=25),
                SimAction(SimActionType.ADMINISTER_DRUG, drug="propofol", dose=40),
                SimAction(SimActionType.ADVANCE_TIME, seconds=90),
            ],
            highlight=["propofol-40"],
            teaching_points=[
                "Use lean body weight for propofol boluses in obesity.",
            ],
        ),
        Step(
            id="step_risk_factors",
            phase=Phase.MAINTENANCE,
            trigger_type=TriggerType.ON_STEP_COMPLETE,
            after_step_id="step_propofol",
            dialogue=[
                "Sedation is established and the scope is in.",
                "Which of these make rapid desaturation more likely in this patient?",
            ],
            question=Question(
                type=QuestionType.MULTI_SELECT,
                prompt="Select every factor that shortens the safe apnea time",
                options=[
                    "Reduced functional residual capacity",
                    "Supine position",
                    "Pharyngeal collapse under sedation",
                    "Supplemental oxygen",
                ],
                correct_answer=[
                    "Reduced functional residual capacity",
                    "Supine position",
                    "Pharyngeal collapse under sedation",
                ],
                feedback={
                    "correct": "Right. Low FRC, supine posture and collapse all work against this patient.",
                    "incorrect": "Supplemental oxygen helps; the other three all hasten desaturation.",
                },
            ),
            side_effects=[SimAction(SimActionType.ADVANCE_TIME, seconds=60)],
            teaching_points=[
                "Head-up positioning improves FRC in obese patients.",
            ],
        ),
        Step(
            id="step_obstruction",
            phase=Phase.COMPLICATION,
            trigger_type=TriggerType.ON_PHYSIOLOGY,
            trigger_condition=TriggerCondition(Parameter.SPO2, Operator.LT, 92, sustained_ticks=10),
            dialogue=[
                "The patient is snoring, SpO2 is falling and the capnogram has gone flat.",
                "What does the flat trace tell you?",
            ],
            question=Question(
                type=QuestionType.SINGLE_CHOICE,
                prompt="A flat capnography trace during sedation most likely means?",
                options=[
                    FLAT_TRACE,
                    "Normal finding in some patients",
                    "Sampling line fault, carry on",
                ],
                correct_answer=FLAT_TRACE,
                feedback={
                    FLAT_TRACE: "Correct. No waveform means no airflow. Act now.",
                    "Normal finding in some patients": "Every breathing patient exhales CO2.",
                    "Sampling line fault, carry on": "Assume obstruction until proven otherwise.",
                },
            ),
            side_effects=[
                SimAction(SimActionType.APPLY_INTERVENTION, intervention="jaw_thrust"),
                SimAction(SimActionType.SET_AIRWAY_DEVICE, device="nasal_airway"),
                SimAction(SimActionType.SET_FIO2, fio2=0.44),
            ],
            highlight=["spo2-display", "etco2-display"],
            teaching_points=[
                "Jaw thrust and a nasopharyngeal airway relieve most OSA-type obstruction.",
                "If that fails: bag-mask, then LMA, then call for help.",
            ],
        ),
        Step(
            id="step_apnea",
            phase=Phase.COMPLICATION,
            trigger_type=TriggerType.ON_PHYSIOLOGY,
            trigger_condition=TriggerCondition(Parameter.RR, Operator.EQ, 0, sustained_ticks=5),
            dialogue=["The patient has stopped breathing. Start bag-mask ventilation."],
            side_effects=[
                SimAction(SimActionType.APPLY_INTERVENTION, intervention="bag_mask"),
                SimAction(SimActionType.SET_FIO2, fio2=1.0),
            ],
            highlight=["rr-display"],
        ),
        Step(
            id="step_recovery",
            phase=Phase.RECOVERY,
            trigger_type=TriggerType.ON_TIME,
            trigger_time_sec=420,
            dialogue=[
                "The endoscopy is done. OSA risk continues into recovery.",
                "How should the patient be positioned?",
            ],
            question=Question(
                type=QuestionType.SINGLE_CHOICE,
                prompt="Best recovery position after sedation in OSA?",
                options=["Semi-lateral", "Supine flat", "Trendelenburg"],
                correct_answer="Semi-lateral",
                feedback={
                    "Semi-lateral": "Correct. Lateral positioning reduces gravitational collapse.",
                    "Supine flat": "The worst option for OSA; the tongue falls back.",
                    "Trendelenburg": "Increases work of breathing in obesity.",
                },
            ),
            teaching_points=["Restart home CPAP as soon as it is tolerated."],
        ),
    ]

    return ScenarioScript(
        id="mod_obese_osa",
        title="Obese OSA Patient - Upper GI Endoscopy",
        difficulty="moderate",
        patient_archetype="obese_osa",
        procedure="Upper GI endoscopy",
        description="High risk of pharyngeal collapse under sedation in an obese patient with OSA.",
        steps=steps,
        learning_objectives=[
            "Plan airway rescue for a high-risk OSA patient",
            "Dose propofol on lean body weight",
            "Recognise and treat partial airway obstruction",
        ],
        clinical_pearls=[
            "STOP-BANG of 5 or more means high OSA risk",
            "Supine position worsens OSA",
        ],
        preop=PreopVignette(
            indication="Dysphagia work-up",
            setting="Endoscopy suite",
            history=[
                "55-year-old woman, BMI 42, OSA on home CPAP",
                "STOP-BANG 6/8, hypertension, ASA 3",
            ],
            exam=[
                "Airway: Mallampati 3, short neck",
                "BP 148/92, HR 78, SpO2 97% on room air",
            ],
            baseline_monitors=["SpO2", "Continuous capnography", "NIBP q3min", "ECG"],
            target_sedation_goal="MOASS 2-3, avoid deep sedation",
        ),
        discussion_questions=[
            "When would you cancel this case for airway reasons?",
            "What is the role of CPAP around the procedure?",
        ],
        key_takeaways=[
            "Pre-oxygenate, dose conservatively and have the rescue airway ready.",
            "A flat capnogram means obstruction until proven otherwise.",
        ],
    )
