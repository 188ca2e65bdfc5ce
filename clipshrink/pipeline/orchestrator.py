"""
The queue-driven orchestrator that sequences passes over one artifact.
"""
import time
from collections import deque
from enum import Enum
from types import MappingProxyType
from typing import Deque, Iterable, List, Mapping, Optional

from loguru import logger

from ..domain.exceptions import DuplicatePassIdentity, UnknownPassIdentity
from ..domain.media import Artifact
from ..domain.pass_models import PassKind, PipelineState
from ..services.passes import PostProcessPass
from ..utils.format_utils import formatted_size


class PassRegistry:
    """
    Maps each `PassKind` to the pass implementation that handles it.

    The registry is filled once at startup and then frozen. A frozen registry
    is read-only and can be shared by any number of concurrent pipeline runs.
    Passes registered with `run_immediately=True` form the default seed of
    every run's work queue, in registration order.
    """

    def __init__(self):
        self._passes = {}
        self._run_immediately: List[PassKind] = []
        self._frozen = False

    def register(self, pass_impl: PostProcessPass, run_immediately: bool = False) -> "PassRegistry":
        if self._frozen:
            raise RuntimeError("Cannot register passes on a frozen PassRegistry.")
        identity = getattr(pass_impl, "identity", None)
        if not isinstance(identity, Enum):
            raise TypeError(f"{type(pass_impl).__name__} does not declare an Enum identity such as PassKind.")
        if identity in self._passes:
            raise DuplicatePassIdentity(
                f"Identity '{identity.value}' is already registered to {self._passes[identity]!r}."
            )
        self._passes[identity] = pass_impl
        if run_immediately:
            self._run_immediately.append(identity)
        logger.debug(f"Registered {pass_impl!r} (run immediately: {run_immediately})")
        return self

    def freeze(self) -> "PassRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def passes(self) -> Mapping[PassKind, PostProcessPass]:
        return MappingProxyType(self._passes)

    @property
    def run_immediately(self) -> tuple:
        return tuple(self._run_immediately)

    def get(self, identity: PassKind) -> PostProcessPass:
        try:
            return self._passes[identity]
        except KeyError:
            raise UnknownPassIdentity(identity) from None

    def __contains__(self, identity) -> bool:
        return identity in self._passes

    def __len__(self) -> int:
        return len(self._passes)


class Orchestrator:
    """
    Drives one artifact through a self-extending queue of passes.

    The work queue is FIFO. Each dispatched identity is looked up in the
    registry and its pass asked whether it applies to the current artifact.
    Inapplicable passes are skipped without a trace in the history. Applicable
    passes execute; their identity is appended to the history, their artifact
    becomes the current one, and whatever identities they return are appended
    to the back of the queue. The run ends when the queue is empty.

    Any error raised by a pass aborts the run immediately and propagates.

    Superseded intermediates belong to the caller by default. With
    `cleanup_intermediates=True` every artifact produced during the run except
    the returned one is deleted, on success and on failure alike. The initial
    artifact is never deleted.
    """

    def __init__(
        self,
        registry: PassRegistry,
        run_immediately: Optional[Iterable[PassKind]] = None,
        cleanup_intermediates: bool = False,
        timeout: Optional[float] = None,
    ):
        self.registry = registry.freeze()
        self.run_immediately = tuple(registry.run_immediately if run_immediately is None else run_immediately)
        self.cleanup_intermediates = cleanup_intermediates
        self.timeout = timeout
        self.last_state: Optional[PipelineState] = None

    def process(self, initial: Artifact) -> Artifact:
        """
        Runs the queue to completion and returns the final artifact.

        Raises:
            ProbeError, BitrateComputationError, EncodeError, RetryBudgetExhausted:
                Propagated from the pass that failed.
            UnknownPassIdentity: If the queue names an unregistered pass.
            PipelineCancelled: If the run's timeout expired.
        """
        deadline = time.monotonic() + self.timeout if self.timeout is not None else None
        state = PipelineState(initial, deadline=deadline)
        queue: Deque[PassKind] = deque(self.run_immediately)
        produced: List[Artifact] = []
        succeeded = False

        logger.info(
            f"Post-processing {initial.display_name} ({formatted_size(initial.size)}), "
            f"queue: {[identity.value for identity in queue]}"
        )
        try:
            while queue:
                state.remaining_time()
                identity = queue.popleft()
                pass_impl = self.registry.get(identity)

                if not pass_impl.applies(state):
                    logger.debug(f"Skipping '{identity.value}': not applicable to {state.artifact.display_name}")
                    continue

                logger.debug(f"Running '{identity.value}' (previous runs: {state.runs_of(identity)})")
                result = pass_impl.execute(state)
                if result.artifact.path != state.artifact.path:
                    produced.append(result.artifact)
                state = state.advance(identity, result.artifact)
                queue.extend(result.additional_passes)
                logger.debug(
                    f"'{identity.value}' produced {formatted_size(result.artifact.size)}; "
                    f"remaining queue: {[queued.value for queued in queue]}"
                )
            succeeded = True
        finally:
            self.last_state = state
            if self.cleanup_intermediates:
                keep = state.artifact if succeeded else None
                self._discard(produced, initial, keep)

        logger.success(
            f"Finished {initial.display_name}: {formatted_size(initial.size)} -> "
            f"{formatted_size(state.artifact.size)} after {len(state.history)} pass(es)"
        )
        return state.artifact

    @staticmethod
    def _discard(produced: List[Artifact], initial: Artifact, keep: Optional[Artifact]):
        for artifact in produced:
            if artifact.path == initial.path or (keep is not None and artifact.path == keep.path):
                continue
            try:
                artifact.path.unlink(missing_ok=True)
                logger.debug(f"Removed intermediate {artifact.path}")
            except OSError as e:
                logger.warning(f"Could not remove intermediate {artifact.path}: {e}")
