"""
Settlement Workflow

Ordered, manually triggered settlement steps over an explicit context.
"""

from .controller import STEP_OUTPUTS, WorkflowController
from .models import FLOW_STEPS, FlowType, StepState, WorkflowContext, WorkflowStep

__all__ = [
    "STEP_OUTPUTS",
    "WorkflowController",
    "FLOW_STEPS",
    "FlowType",
    "StepState",
    "WorkflowContext",
    "WorkflowStep",
]
