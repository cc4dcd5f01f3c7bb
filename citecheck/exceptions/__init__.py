from typing import Optional, Dict, Any


class CiteCheckException(Exception):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ConfigurationException(CiteCheckException):
    def __init__(self, setting: str):
        super().__init__(
            f"{setting} is not set",
            {"setting": setting}
        )


class ToolException(CiteCheckException):
    def __init__(self, tool_name: str, reason: str):
        super().__init__(
            f"Tool {tool_name} failed: {reason}",
            {"tool": tool_name, "reason": reason}
        )


class RateLimitException(ToolException):
    def __init__(self, api_name: str, retry_after: Optional[float]):
        super().__init__(api_name, "rate limit exceeded")
        self.details["retry_after"] = retry_after


class LLMException(CiteCheckException):
    def __init__(self, reason: str, recoverable: bool = True):
        super().__init__(
            f"LLM service error: {reason}",
            {"reason": reason, "recoverable": recoverable}
        )


class ModelParseException(CiteCheckException):
    def __init__(self, reason: str, excerpt: str = ""):
        super().__init__(
            f"Failed to parse verification response: {reason}",
            {"reason": reason, "excerpt": excerpt}
        )
