# Lottery entry form automation
from .heuristics import AutomationState, ControlCandidate, detect_platform, choose_entry_candidate, pick_option_value
from .form_automation import FormAutomation, AutomationOutcome, DiscoveredFields

__all__ = [
    'AutomationState', 'ControlCandidate', 'detect_platform', 'choose_entry_candidate', 'pick_option_value',
    'FormAutomation', 'AutomationOutcome', 'DiscoveredFields',
]
