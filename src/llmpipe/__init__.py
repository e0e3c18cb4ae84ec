"""llmpipe - call LLMs in your pipeline."""

from .config import BackendConfig, Schema, Settings
from .errors import LlmPipeError
from .step import Step, StepBuilder
from .types import InvocationRequest, InvocationResult, Output

__version__ = "0.1.0"

__all__ = [
    "BackendConfig",
    "InvocationRequest",
    "InvocationResult",
    "LlmPipeError",
    "Output",
    "Schema",
    "Settings",
    "Step",
    "StepBuilder",
]
