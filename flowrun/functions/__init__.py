"""Function-node collaborators."""

from flowrun.functions.builtin import LocalFunctionExecutor
from flowrun.functions.executor import FunctionExecutor, FunctionResult

__all__ = ["FunctionExecutor", "FunctionResult", "LocalFunctionExecutor"]
