# Scenarios package
from .base import (
    PreopVignette,
    Question,
    ScenarioScript,
    ScriptValidationError,
    SimAction,
    Step,
    TriggerCondition,
    load_script,
    script_from_dict,
    validate_script,
)
from .colonoscopy import create_colonoscopy
from .osa_endoscopy import create_osa_endoscopy

# Built-in scenarios by script id.
SCENARIO_BUILDERS = {
    "easy_colonoscopy": create_colonoscopy,
    "mod_obese_osa": create_osa_endoscopy,
}

__all__ = [
    'PreopVignette',
    'Question',
    'ScenarioScript',
    'ScriptValidationError',
    'SimAction',
    'Step',
    'TriggerCondition',
    'load_script',
    'script_from_dict',
    'validate_script',
    'create_colonoscopy',
    'create_osa_endoscopy',
    'SCENARIO_BUILDERS',
]
