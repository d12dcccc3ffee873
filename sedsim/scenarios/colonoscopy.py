"""
Routine colonoscopy in a healthy adult (easy).
"""

from sedsim.core.enums import Operator, Parameter, Phase, QuestionType, SimActionType, TriggerType
from .base import PreopVignette, Question, ScenarioScript, SimAction, Step, TriggerCondition

CORRECT_AIRWAY_RESPONSE = "Increase O2 and perform chin lift / jaw thrust"


def create_colonoscopy() -> ScenarioScript:
    """Midazolam/fentanyl titration to MOASS 2-3 with an early desaturation."""
    steps = [
        Step(
            id="step_asa",
            phase=Phase.PRE_INDUCTION,
            trigger_type=TriggerType.ON_START,
            dialogue=[
                "Welcome. Before any sedation, let's classify this patient.",
                "From the history and exam, which ASA class fits?",
            ],
            question=Question(
                type=QuestionType.SINGLE_CHOICE,
                prompt="ASA class for this patient?",
                options=["ASA 1", "ASA 2", "ASA 3", "ASA 4"],
                correct_answer="ASA 1",
                feedback={
                    "ASA 1": "Correct. A healthy adult with no systemic disease.",
                    "ASA 2": "Not quite. ASA 2 needs mild systemic disease, which is absent here.",
                    "ASA 3": "Too high. ASA 3 is severe systemic disease.",
                    "ASA 4": "Far too high. ASA 4 is a constant threat to life.",
                },
            ),
            side_effects=[
                SimAction(SimActionType.SET_AIRWAY_DEVICE, device="nasal_cannula"),
                SimAction(SimActionType.SET_FIO2, fio2=0.29),
            ],
            highlight=["airway-nasal_cannula", "fio2-slider"],
            teaching_points=["The ASA class sets your monitoring level and rescue plan."],
        ),
        Step(
            id="step_midazolam",
            phase=Phase.INDUCTION,
            trigger_type=TriggerType.ON_STEP_COMPLETE,
            after_step_id="step_asa",
            dialogue=[
                "Nasal cannula is on. Time to start titrating.",
                "What first dose of midazolam would you give?",
            ],
            question=Question(
                type=QuestionType.NUMERIC_RANGE,
                prompt="Midazolam dose (mg)",
                correct_answer=1,
                ideal_range=(0.5, 1.0),
                feedback={
                    "low": "Under 0.5 mg gives little anxiolysis.",
                    "ideal": "Good. 0.5-1 mg is a safe opening dose for a healthy adult.",
                    "high": "More than 1 mg as a first dose can overshoot the target MOASS.",
                },
            ),
            side_effects=[
                SimAction(SimActionType.ADMINISTER_DRUG, drug="midazolam", dose=1.0),
                SimAction(SimActionType.ADVANCE_TIME, seconds=90),
            ],
            highlight=["midazolam-1"],
            teaching_points=[
                "Benzodiazepines give anxiolysis and amnesia but depress ventilation.",
                "Wait 60-90 s for the effect site to catch up before redosing.",
            ],
        ),
        Step(
            id="step_fentanyl",
            phase=Phase.INDUCTION,
            trigger_type=TriggerType.ON_STEP_COMPLETE,
            after_step_id="step_midazolam",
            dialogue=[
                "The patient is calmer, but scope insertion will hurt.",
                "How much fentanyl would you give for analgesia?",
            ],
            question=Question(
                type=QuestionType.NUMERIC_RANGE,
                prompt="Fentanyl dose (mcg)",
                correct_answer=50,
                ideal_range=(25, 50),
                feedback={
                    "low": "Under 25 mcg is unlikely to cover colonoscopy discomfort.",
                    "ideal": "Good. 25-50 mcg gives analgesia with modest respiratory depression.",
                    "high": "More than 50 mcg on top of midazolam risks significant hypoventilation.",
                },
            ),
            side_effects=[
                SimAction(SimActionType.ADMINISTER_DRUG, drug="fentanyl", dose=50),
                SimAction(SimActionType.ADVANCE_TIME, seconds=120),
            ],
            highlight=["fentanyl-50"],
            teaching_points=[
                "Opioids and benzodiazepines are synergistic on respiratory drive.",
                "Watch RR and EtCO2 closely after adding the opioid.",
            ],
        ),
        Step(
            id="step_maintenance",
            phase=Phase.MAINTENANCE,
            trigger_type=TriggerType.ON_STEP_COMPLETE,
            after_step_id="step_fentanyl",
            dialogue=[
                "The procedure is underway. Keep your eyes on the monitor.",
                "SpO2, EtCO2 and respiratory rate are your early warnings.",
            ],
            side_effects=[SimAction(SimActionType.ADVANCE_TIME, seconds=120)],
            teaching_points=[
                "Capnography shows hypoventilation before the SpO2 falls.",
            ],
        ),
        Step(
            id="step_desaturation",
            phase=Phase.COMPLICATION,
            trigger_type=TriggerType.ON_PHYSIOLOGY,
            trigger_condition=TriggerCondition(Parameter.SPO2, Operator.LT, 93, sustained_ticks=15),
            dialogue=[
                "SpO2 has been below 93% for a while now.",
                "What do you do first?",
            ],
            question=Question(
                type=QuestionType.SINGLE_CHOICE,
                prompt="Best immediate action?",
                options=[
                    CORRECT_AIRWAY_RESPONSE,
                    "Give more midazolam",
                    "Observe and wait",
                    "Give naloxone immediately",
                ],
                correct_answer=CORRECT_AIRWAY_RESPONSE,
                feedback={
                    CORRECT_AIRWAY_RESPONSE: "Correct. Open the airway and add oxygen first.",
                    "Give more midazolam": "Dangerous. That deepens the respiratory depression.",
                    "Observe and wait": "Risky. Early action prevents a deeper desaturation.",
                    "Give naloxone immediately": "Not first line unless a pure opioid overdose is likely.",
                },
            ),
            side_effects=[
                SimAction(SimActionType.APPLY_INTERVENTION, intervention="jaw_thrust"),
                SimAction(SimActionType.SET_FIO2, fio2=0.40),
            ],
            highlight=["spo2-display", "fio2-slider"],
            teaching_points=[
                "Airway manoeuvres and supplemental O2 fix most early desaturation.",
            ],
        ),
        Step(
            id="step_end",
            phase=Phase.RECOVERY,
            trigger_type=TriggerType.ON_TIME,
            trigger_time_sec=360,
            dialogue=[
                "The colonoscopy is finished and the patient is waking.",
                "What is the minimum MOASS before leaving the procedure room?",
            ],
            question=Question(
                type=QuestionType.SINGLE_CHOICE,
                prompt="Minimum MOASS for transfer out of the procedure room?",
                options=["MOASS 1", "MOASS 2", "MOASS 3", "MOASS 4"],
                correct_answer="MOASS 3",
                feedback={
                    "MOASS 1": "Too deep. Not safe for transfer.",
                    "MOASS 2": "Close, but most guidelines ask for MOASS 3 or better.",
                    "MOASS 3": "Correct. Responding to voice is the usual minimum.",
                    "MOASS 4": "Safe, but waiting for MOASS 4 can delay care needlessly.",
                },
            ),
            teaching_points=[
                "Confirm the patient can protect their own airway before transfer.",
            ],
        ),
    ]

    return ScenarioScript(
        id="easy_colonoscopy",
        title="Routine Colonoscopy - Healthy Adult",
        difficulty="easy",
        patient_archetype="healthy_adult",
        procedure="Colonoscopy",
        description="Colonoscopy sedation for a healthy adult. Titrate to MOASS 2-3.",
        steps=steps,
        learning_objectives=[
            "Assign an ASA class from a focused pre-sedation assessment",
            "Titrate midazolam and fentanyl to MOASS 2-3",
            "Recognise and treat early respiratory depression",
        ],
        clinical_pearls=[
            "Titrate in small increments and wait for the effect",
            "EtCO2 changes precede SpO2 drops",
        ],
        preop=PreopVignette(
            indication="Screening colonoscopy",
            setting="Ambulatory endoscopy suite",
            history=[
                "45-year-old man, first screening colonoscopy",
                "No cardiopulmonary disease, no OSA, no anesthesia problems",
                "No medications, no known drug allergies",
            ],
            exam=[
                "Airway: Mallampati I, good mouth opening",
                "Heart and lungs normal",
            ],
            baseline_monitors=["NIBP q5min", "SpO2", "ECG", "Capnography"],
            target_sedation_goal="MOASS 2-3 (moderate sedation)",
        ),
        discussion_questions=[
            "When could you have anticipated the desaturation?",
            "How would you change your dosing next time?",
        ],
        key_takeaways=[
            "Start small and give each dose time to work.",
            "Capnography is the earliest warning of hypoventilation.",
            "Routine cases in ASA 1 patients still need full monitoring.",
        ],
    )
