from .status import ExitStatus
from .logger import AgentLogger, LogLevel, level_number

__all__ = ["ExitStatus", "AgentLogger", "LogLevel", "level_number"]
