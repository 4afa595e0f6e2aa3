from .dsl import always, contains, not_, sh, success, uses, wf
from .model import EnvBindings, Guard, InvocationInputs, InvocationResult, Step, Workflow
from .runner import build_context, load_workflow, plan_invocation, run_invocation

__all__ = [
    "always", "contains", "not_", "sh", "success", "uses", "wf",
    "EnvBindings", "Guard", "InvocationInputs", "InvocationResult", "Step", "Workflow",
    "build_context", "load_workflow", "plan_invocation", "run_invocation",
]
