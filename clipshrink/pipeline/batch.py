import argparse
import concurrent.futures
import shutil
import traceback
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from ..config.common import (
    RUN_STATUS_CANCELLED,
    RUN_STATUS_COMPLETED,
    RUN_STATUS_FAILED,
)
from ..domain.exceptions import ClipShrinkException, PipelineCancelled
from ..domain.media import Artifact
from ..services.encoder_service import TwoPassEncoder
from ..services.logging_service import RunLog
from ..services.passes import ShrinkPass
from ..services.probe_service import MediaProbe
from ..utils.format_utils import format_timedelta
from .orchestrator import Orchestrator, PassRegistry


def build_registry(
    max_size: int,
    work_dir: Optional[Path] = None,
    error_log_dir: Optional[Path] = None,
) -> PassRegistry:
    """The frozen registry every run of a batch shares."""
    encoder = TwoPassEncoder(work_dir=work_dir, error_log_dir=error_log_dir)
    registry = PassRegistry()
    probe = MediaProbe(error_log_dir=error_log_dir)
    registry.register(ShrinkPass(max_size, probe=probe, encoder=encoder), run_immediately=True)
    return registry.freeze()


def unique_destination(directory: Path, filename: str) -> Path:
    """`directory / filename`, suffixed with _1, _2, ... until it does not exist."""
    destination = directory / filename
    stem, suffix = Path(filename).stem, Path(filename).suffix
    counter = 0
    while destination.exists():
        counter += 1
        destination = directory / f"{stem}_{counter}{suffix}"
    return destination


class BatchRunner:
    """
    Runs one independent pipeline per input file, several at a time.

    Runs share nothing but the frozen pass registry. Each worker process builds
    its own orchestrator, so one failing input never affects the others.
    """

    def __init__(self, input_paths: List[Path], args: argparse.Namespace):
        self.input_paths = [Path(p) for p in input_paths]
        self.args = args
        self.output_dir: Optional[Path] = Path(args.output_dir).resolve() if getattr(args, "output_dir", None) else None
        self.run_log_dir: Optional[Path] = Path(args.run_log_dir).resolve() if getattr(args, "run_log_dir", None) else None
        work_dir = Path(args.work_dir).resolve() if getattr(args, "work_dir", None) else None
        self.registry = build_registry(args.max_size, work_dir=work_dir, error_log_dir=self.run_log_dir)

    def deliver(self, final: Artifact, initial: Artifact) -> Path:
        """
        Places the final artifact in the output directory.

        A new artifact is moved there; an untouched input is copied, never moved.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        destination = unique_destination(self.output_dir, final.display_name)
        if final.path == initial.path:
            shutil.copy2(final.path, destination)
        else:
            shutil.move(str(final.path), str(destination))
        logger.info(f"Delivered {final.display_name} to {destination}")
        return destination

    def process_single_file(self, path: Path) -> Dict:
        """
        Runs the pipeline for one input and returns a summary of the outcome.

        Pipeline errors are reported in the summary instead of raised. Anything
        else is a bug and propagates to the pool.
        """
        started = datetime.now()
        outcome = {
            "input": str(path),
            "status": RUN_STATUS_FAILED,
            "input_size": None,
            "final": None,
            "final_size": None,
            "history": [],
            "error_kind": None,
            "error": None,
        }
        orchestrator = Orchestrator(
            self.registry,
            cleanup_intermediates=getattr(self.args, "cleanup_intermediates", False),
            timeout=getattr(self.args, "timeout", None),
        )
        try:
            initial = Artifact(path)
            outcome["input_size"] = initial.size
            final = orchestrator.process(initial)
            final_path = self.deliver(final, initial) if self.output_dir else final.path
            outcome.update(status=RUN_STATUS_COMPLETED, final=str(final_path), final_size=final.size)
        except FileNotFoundError as e:
            logger.error(f"Input {path} does not exist: {e}")
            outcome.update(error_kind=type(e).__name__, error=str(e))
        except PipelineCancelled as e:
            logger.error(f"Pipeline for {path.name} cancelled: {e}")
            outcome.update(status=RUN_STATUS_CANCELLED, error_kind=type(e).__name__, error=str(e))
        except ClipShrinkException as e:
            logger.error(f"Pipeline for {path.name} failed with {type(e).__name__}: {e}")
            outcome.update(error_kind=type(e).__name__, error=str(e))
        finally:
            if orchestrator.last_state is not None:
                outcome["history"] = [identity.value for identity in orchestrator.last_state.history]
            outcome["elapsed"] = format_timedelta(datetime.now() - started)
            if self.run_log_dir:
                RunLog(self.run_log_dir).write(dict(outcome))
        return outcome

    def run(self) -> List[Dict]:
        """
        Processes every input and returns the outcomes in input order.
        """
        if not self.input_paths:
            logger.info("No input files given.")
            return []

        max_workers = max(1, min(getattr(self.args, "processes", 1) or 1, len(self.input_paths)))
        logger.info(f"Processing {len(self.input_paths)} file(s) with {max_workers} worker process(es).")

        outcomes: Dict[int, Dict] = {}
        if max_workers == 1:
            for index, path in enumerate(self.input_paths):
                outcomes[index] = self.process_single_file(path)
        else:
            with concurrent.futures.ProcessPoolExecutor(max_workers=max_workers) as executor:
                futures = {
                    executor.submit(self.process_single_file, path): index
                    for index, path in enumerate(self.input_paths)
                }
                for future in concurrent.futures.as_completed(futures):
                    index = futures[future]
                    path = self.input_paths[index]
                    try:
                        outcomes[index] = future.result()
                    except Exception as exc:  # a bug in the worker, not a pipeline error
                        tb_str = "".join(traceback.format_exception(exc))
                        logger.error(
                            f"Unhandled error processing {path.name} in pool:\n"
                            f"Exception type: {type(exc).__name__}\n"
                            f"Exception message: {exc}\n"
                            f"Traceback: {tb_str}"
                        )
                        outcomes[index] = {
                            "input": str(path),
                            "status": RUN_STATUS_FAILED,
                            "error_kind": type(exc).__name__,
                            "error": str(exc),
                        }

        if self.run_log_dir:
            RunLog.combine(self.run_log_dir)
        return [outcomes[index] for index in range(len(self.input_paths))]
