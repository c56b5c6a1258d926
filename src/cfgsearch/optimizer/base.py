from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:
    from .session import Optimizer


class SearchPhase(ABC):
    """
    Base class for one phase of an optimizer session.

    A phase starts only while the remaining-time fraction of the session is
    above `start_above`, and stops issuing candidates once it falls to
    `stop_below`.
    """

    name: str = "phase"
    start_above: float = 0.0
    stop_below: float = 0.0

    def can_start(self, session: "Optimizer") -> bool:
        return session.remaining_fraction() > self.start_above

    @abstractmethod
    def run(self, session: "Optimizer") -> None:
        """Generate and test candidates through session.test()."""
        raise NotImplementedError

    def diagnostics(self) -> Dict[str, Any]:
        """Optional diagnostic information for logging/debugging.

        Should return a small JSON-serializable dict.
        Default: empty dict.
        """
        return {}
