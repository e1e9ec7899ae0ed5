"""
Game error kinds
游戏错误类型
"""

from typing import Optional


class GameError(Exception):
    """Base class for every error raised by the game core"""

    status_code = 400

    def __init__(self, message: str, *, detail: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class ValidationError(GameError):
    """Bad configuration or input; the action simply does not proceed"""

    status_code = 400


class NotFoundError(GameError):
    """Room or player lookup miss"""

    status_code = 404


class ConflictError(GameError):
    """Duplicate clue/vote or a lost race; callers usually ignore it"""

    status_code = 409


class InvalidPhaseError(ConflictError):
    """Action attempted in a phase that does not allow it"""

    def __init__(self, action: str, expected, actual):
        expected_values = expected if isinstance(expected, (list, tuple, set)) else [expected]
        names = ", ".join(getattr(p, "value", str(p)) for p in expected_values)
        actual_name = getattr(actual, "value", str(actual))
        super().__init__(
            f"{action} requires phase {names}, room is in {actual_name}",
            detail={"action": action, "expected": names, "actual": actual_name},
        )
        self.action = action
        self.expected = expected
        self.actual = actual


class PhaseTimeoutError(GameError):
    """A phase timer expired before all submissions landed"""

    status_code = 408

    def __init__(self, phase, generation: int):
        phase_name = getattr(phase, "value", str(phase))
        super().__init__(
            f"{phase_name} timer expired (generation {generation})",
            detail={"phase": phase_name, "generation": generation},
        )
        self.phase = phase
        self.generation = generation
