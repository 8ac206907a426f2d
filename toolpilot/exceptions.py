class ToolPilotError(Exception):
    """Base exception for ToolPilot errors"""
    def __init__(self, msg: str):
        self.msg = msg
        super().__init__(msg)

    def __str__(self):
        return self.msg


class ConfigError(ToolPilotError):
    pass


class LLMError(ToolPilotError):
    pass


class NoChatLLMConfigError(LLMError):
    def __init__(self, msg: str | None = None):
        super().__init__(msg or "Can not find available Chat LLM Config")


class UnsupportedModelError(LLMError):
    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Unsupported model: {model_id}")


class PlanError(ToolPilotError):
    pass


class MalformedPlanError(PlanError):
    """Raised when a model response can not be turned into a plan"""
    def __init__(self, reason: str, raw: str | None = None):
        self.reason = reason
        self.raw = raw
        super().__init__(f"Malformed plan: {reason}")


class ExecutionError(ToolPilotError):
    pass


class InvalidStepTransitionError(ExecutionError):
    """Raised when a step is moved against its state machine"""
    def __init__(self, step_id: str, current: str, target: str):
        self.step_id = step_id
        self.current = current
        self.target = target
        super().__init__(f"Step '{step_id}' can not move from '{current}' to '{target}'")


class UnknownStepError(ExecutionError):
    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(f"Step '{step_id}' not found on the board")


class ToolError(ToolPilotError):
    pass


class ToolNotFoundError(ToolError):
    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f'Tool "{tool_name}" not found')


class DuplicateToolError(ToolError):
    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f'Tool "{tool_name}" is already registered')
