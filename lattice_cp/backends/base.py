"""Abstract base class for per-group execution backends."""
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Sequence


class GroupBackend(ABC):
    """Abstract interface for mapping independent energy-group tasks.

    Every group of the collision probability assembly and of the linear
    system solve reads only shared immutable inputs and produces its own
    slice of the result tensors.  A backend maps a top-level task function
    over one task tuple per group and must return the results in group
    order, so the assembled tensors do not depend on execution order.
    """

    @abstractmethod
    def map_groups(self, func: Callable[[Any], Any], tasks: Sequence[Any]) -> List[Any]:
        """Apply func to every task and return results in task order.

        Args:
            func: module-level (picklable) function of one task tuple
            tasks: one task per energy group

        Returns:
            list of func(task), same order as tasks
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """Human-readable backend name, e.g. 'CPU (8 processes)'."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this backend can run on the current machine."""
        pass
