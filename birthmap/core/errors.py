# birthmap/core/errors.py
"""
Error taxonomy for the chart-point engine.

Every failure the engine reports is an AstroError carrying a stable `code`
(for JSON payloads and metrics labels) and, once known, the `point` it
belongs to. Callers can catch the base class or one of the four kinds:

  invalid_angle_input   non-finite / non-numeric angle reaching the math
  degenerate_geometry   observer latitude where the Vertex is undefined
  missing_dependency    a derived point lacks one of its inputs
  provider_failure      the ephemeris provider failed or returned garbage
"""
from __future__ import annotations

from typing import Any, Callable, Optional

__all__ = [
    "AstroError",
    "InvalidAngleInput",
    "DegenerateGeometry",
    "MissingDependency",
    "ProviderFailure",
    "call_provider",
]


class AstroError(Exception):
    code = "astro_error"

    def __init__(self, message: str, *, point: Optional[str] = None, **context: Any):
        self.message = message
        self.point = point
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        where = f" [{self.point}]" if self.point else ""
        return f"{self.code}{where}: {self.message}"

    def with_point(self, point: str) -> "AstroError":
        """Tag the error with the chart point it belongs to (first tag wins)."""
        if self.point is None:
            self.point = point
        return self

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, "point": self.point}


class InvalidAngleInput(AstroError, ValueError):
    code = "invalid_angle_input"


class DegenerateGeometry(AstroError, ValueError):
    code = "degenerate_geometry"


class MissingDependency(AstroError):
    code = "missing_dependency"


class ProviderFailure(AstroError, RuntimeError):
    code = "provider_failure"


def call_provider(fn: Callable[..., Any], what: str, *args: Any, **kwargs: Any) -> Any:
    """
    Invoke one ephemeris-provider capability. Engine errors pass through;
    anything else becomes a ProviderFailure naming the capability.
    """
    try:
        return fn(*args, **kwargs)
    except AstroError:
        raise
    except Exception as e:
        raise ProviderFailure(f"{what} failed: {type(e).__name__}: {e}", capability=what) from e
