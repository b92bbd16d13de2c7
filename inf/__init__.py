from inf.inf_runtime import new_context, evaluate, ScriptRunner, ExecutionResult, StdLib
from inf.inf_interpreter import Evaluator
from inf.inf_printer import Printer, display, to_source
