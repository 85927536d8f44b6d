"""
Batch planning for bulk title/ID requests.

Splits a large key list into ordered chunks that respect the server's batch
cap and, for GET requests, the URL length budget. A reverse index maps each
normalized key back to every input position so results can be reassembled
in input order.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, TypeVar
from urllib.parse import quote

from ..runtime.codec import SEPARATOR
from ..runtime.errors import WikiError, ErrorKind


R = TypeVar("R")

# Percent-encoded length of the "|" separator
_SEPARATOR_LENGTH = len(quote(SEPARATOR, safe=""))


@dataclass
class CapacityModel:
    """Server and transport limits for one batch request."""
    privileged_cap: int = 500
    slow_cap: int = 50
    url_budget: int = 8000
    privileged: bool = False

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.privileged_cap <= 0:
            raise ValueError("privileged_cap must be positive")
        if self.slow_cap <= 0:
            raise ValueError("slow_cap must be positive")
        if self.url_budget <= 0:
            raise ValueError("url_budget must be positive")

    def batch_cap(self, privileged: Optional[bool] = None) -> int:
        """Cap for a privileged (high-limit) or ordinary session."""
        if privileged is None:
            privileged = self.privileged
        return self.privileged_cap if privileged else self.slow_cap

    def for_session(self, privileged: bool) -> "CapacityModel":
        return replace(self, privileged=privileged)


@dataclass(frozen=True)
class Chunk:
    """One batch of normalized, sorted, distinct keys."""
    keys: Tuple[str, ...]

    def __len__(self) -> int:
        return len(self.keys)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys)

    def joined(self) -> str:
        """Keys joined with the multi-value separator."""
        return SEPARATOR.join(self.keys)


@dataclass
class BatchPlan:
    """Ordered chunks plus the index needed to reassemble results."""
    chunks: List[Chunk] = field(default_factory=list)
    reverse_index: Dict[str, List[int]] = field(default_factory=dict)
    input_size: int = 0

    def __len__(self) -> int:
        return len(self.chunks)

    def __iter__(self) -> Iterator[Chunk]:
        return iter(self.chunks)

    @property
    def is_empty(self) -> bool:
        return not self.chunks

    def reassemble(self, results: Mapping[str, R], default: Any = None) -> List[Any]:
        """
        Map per-key results back to input order.

        Every input position whose key normalized to the same value receives
        the shared result.

        Args:
            results: Result per normalized key
            default: Value for keys the server did not answer

        Returns:
            List aligned with the original input
        """
        merged: List[Any] = [default] * self.input_size
        for key, positions in self.reverse_index.items():
            if key in results:
                for position in positions:
                    merged[position] = results[key]
        return merged


class BatchPlanner:
    """
    Greedy packer for bulk keys.

    Normalization is domain specific and supplied by the caller.
    """

    def __init__(self, capacity: Optional[CapacityModel] = None, logger: Optional[logging.Logger] = None):
        """
        Initialize the planner.

        Args:
            capacity: Default limits when ``plan`` is not given any
            logger: Logger to use instead of the module logger
        """
        self.capacity = capacity or CapacityModel()
        self._logger = logger or logging.getLogger(__name__)

    @staticmethod
    def serialized_length(param_name: str, keys: Iterable[str]) -> int:
        """Length of ``param=key1|key2...`` once percent-encoded."""
        keys = list(keys)
        encoded = sum(len(quote(key, safe="")) for key in keys)
        separators = _SEPARATOR_LENGTH * max(len(keys) - 1, 0)
        return len(param_name) + 1 + encoded + separators

    def plan(
        self,
        keys: Iterable[Any],
        capacity: Optional[CapacityModel] = None,
        normalize: Optional[Callable[[Any], str]] = None,
        param_name: str = "titles",
        use_get: bool = True
    ) -> BatchPlan:
        """
        Partition keys into chunks.

        Args:
            keys: Titles or IDs in caller order; duplicates allowed
            capacity: Limits to respect; defaults to the planner's
            normalize: Key normalization; defaults to ``str``
            param_name: Name of the multi-value parameter
            use_get: Whether the URL budget applies (GET requests)

        Returns:
            The batch plan; empty input gives an empty plan

        Raises:
            WikiError: ``INVALID_ARGUMENT`` for blank keys or a key that
                alone exceeds the URL budget
        """
        capacity = capacity or self.capacity
        normalize = normalize or str
        cap = capacity.batch_cap()

        reverse_index: Dict[str, List[int]] = {}
        position = -1
        for position, key in enumerate(keys):
            normalized = normalize(key)
            if not normalized:
                raise WikiError(f"Blank key at position {position}", ErrorKind.INVALID_ARGUMENT,
                                details={"position": position})
            reverse_index.setdefault(normalized, []).append(position)

        plan = BatchPlan(reverse_index=reverse_index, input_size=position + 1)
        if not reverse_index:
            return plan

        base_length = len(param_name) + 1
        current: List[str] = []
        current_length = base_length
        for key in sorted(reverse_index):
            key_length = len(quote(key, safe=""))
            if use_get and base_length + key_length > capacity.url_budget:
                raise WikiError(
                    f"Key is longer than the URL budget of {capacity.url_budget}",
                    ErrorKind.INVALID_ARGUMENT,
                    details={"key": key[:100]},
                )
            added = key_length + (_SEPARATOR_LENGTH if current else 0)
            too_many = len(current) >= cap
            too_long = use_get and current_length + added > capacity.url_budget
            if current and (too_many or too_long):
                plan.chunks.append(Chunk(tuple(current)))
                current = []
                current_length = base_length
                added = key_length
            current.append(key)
            current_length += added
        if current:
            plan.chunks.append(Chunk(tuple(current)))

        self._logger.debug(
            f"Planned {len(reverse_index)} distinct key(s) from {plan.input_size} input(s) "
            f"into {len(plan.chunks)} chunk(s) (cap {cap})"
        )
        return plan


__all__ = [
    "CapacityModel",
    "Chunk",
    "BatchPlan",
    "BatchPlanner",
]
