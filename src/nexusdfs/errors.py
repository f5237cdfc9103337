"""Exception hierarchy raised by the optimizer core."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from nexusdfs.validation import ValidationReport


class OptimizerError(Exception):
    """Base error carrying the stage/algorithm context it was raised from."""

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[str] = None,
        algorithm: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.algorithm = algorithm
        self.detail = detail

    def context(self) -> dict:
        return {
            "stage": self.stage,
            "algorithm": self.algorithm,
            "detail": self.detail,
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.algorithm:
            parts.append(f"algorithm={self.algorithm}")
        if self.stage:
            parts.append(f"stage={self.stage}")
        if self.detail:
            parts.append(f"detail={self.detail}")
        return " | ".join(parts)


class ValidationFailure(OptimizerError):
    def __init__(self, report: "ValidationReport", *, algorithm: Optional[str] = None):
        errors = "; ".join(report.errors) or "player pool rejected"
        super().__init__(f"Player pool validation failed: {errors}", stage="validate", algorithm=algorithm)
        self.report = report
        self.errors = list(report.errors)


class NotInitialized(OptimizerError):
    def __init__(self, algorithm: Optional[str] = None):
        super().__init__("Optimizer not initialized", stage="run", algorithm=algorithm)


class UnknownStrategy(OptimizerError, KeyError):
    def __init__(self, name: str):
        super().__init__(f"Unknown strategy {name!r}", stage="resolve_strategy", detail=name)
        self.name = name

    # KeyError quotes its message; keep the readable form.
    __str__ = OptimizerError.__str__


class AlgorithmFailure(OptimizerError):
    """A generator raised while producing lineups."""


class OptimizationCancelled(OptimizerError):
    def __init__(self, stage: Optional[str] = None, *, algorithm: Optional[str] = None):
        super().__init__("Optimization cancelled", stage=stage, algorithm=algorithm)


class NeighborGenerationFailure(OptimizerError):
    """A single annealing move could not build a valid neighbour."""

    def __init__(self, move: str, detail: Optional[str] = None):
        super().__init__(f"Unable to build neighbour via {move}", stage="neighbor", algorithm="annealing", detail=detail)
        self.move = move
