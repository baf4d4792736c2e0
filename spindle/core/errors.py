"""Exceptions raised by the dialogue interpreter."""


class DialogueError(Exception):
    """Base exception for everything raised by spindle."""


class LoadError(DialogueError):
    """Raised when a script cannot be merged into the node registry."""


class ParseError(LoadError):
    """Raised when script text violates the grammar."""

    def __init__(self, message: str, line: int | None = None):
        self.message = message
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class DuplicateNodeError(LoadError):
    """Raised when a node title is already taken and duplicates are refused."""


class EvaluationError(DialogueError):
    """Raised when an expression cannot be evaluated."""


class UnknownVariableError(EvaluationError):
    """Raised when an expression reads a variable that was never assigned."""


class UnknownFunctionError(EvaluationError):
    """Raised when an expression calls a function that is not registered."""


class ArityError(EvaluationError):
    """Raised when a function is called with the wrong number of arguments."""


class FunctionCallError(EvaluationError):
    """Raised when a host function fails or returns an unsupported value."""


class ChoiceError(DialogueError):
    """Raised when a choice cannot be made at the current position."""


class UnknownNodeError(DialogueError):
    """Raised when activating a node that has not been loaded."""


class DialogueRuntimeError(DialogueError):
    """Raised when the engine cannot continue the active conversation."""
