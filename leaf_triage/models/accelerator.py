# models/accelerator.py
"""
One-shot initialisation of the optional OpenCV accelerator.

• Resolved once at startup, bounded by a timeout.
• Returns a single typed status: ready | unavailable | timed_out.
• The backend it carries is handed to DiseaseSegmenter explicitly;
  nothing here is cached at module level.
"""
from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from enum import Enum
import logging
import os
from typing import Optional

from dotenv import load_dotenv

from .imaging_backend import ImagingBackend, PureBackend, ResilientBackend

load_dotenv()
ACCELERATOR_FLAG = os.getenv("SEGMENTATION_ACCELERATOR", "opencv").strip().lower()
INIT_TIMEOUT_S = float(os.getenv("ACCELERATOR_INIT_TIMEOUT_S", "5"))

_DISABLED_FLAGS = {"", "none", "off", "pure", "false", "0"}

logger = logging.getLogger(__name__)


class AcceleratorState(str, Enum):
    READY = "ready"
    UNAVAILABLE = "unavailable"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class AcceleratorStatus:
    state: AcceleratorState
    backend: ImagingBackend
    reason: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.state is AcceleratorState.READY

    def to_dict(self) -> dict:
        return {"state": self.state.value, "backend": self.backend.name, "reason": self.reason}


def _init_opencv() -> ImagingBackend:
    from .opencv_backend import OpenCVBackend

    backend = OpenCVBackend()
    backend.smoke_test()
    return backend


def load_accelerator(flag: str = ACCELERATOR_FLAG, timeout: float = INIT_TIMEOUT_S) -> AcceleratorStatus:
    """
    Resolve the imaging backend for this process.

    Any failure leaves the engine on PureBackend; it never raises.
    """
    flag = (flag or "").strip().lower()
    if flag in _DISABLED_FLAGS:
        logger.info("Accelerator disabled by configuration; using pure backend")
        return AcceleratorStatus(AcceleratorState.UNAVAILABLE, PureBackend(), "disabled")
    if flag != "opencv":
        logger.warning(f"Unknown accelerator {flag!r}; using pure backend")
        return AcceleratorStatus(AcceleratorState.UNAVAILABLE, PureBackend(), f"unknown accelerator {flag!r}")

    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="accelerator-init")
    try:
        future = pool.submit(_init_opencv)
        backend = future.result(timeout=timeout)
    except FutureTimeout:
        logger.warning(f"OpenCV initialisation exceeded {timeout:.1f}s; using pure backend")
        return AcceleratorStatus(AcceleratorState.TIMED_OUT, PureBackend(), f"timed out after {timeout}s")
    except Exception as err:
        logger.warning(f"OpenCV unavailable ({err}); using pure backend")
        return AcceleratorStatus(AcceleratorState.UNAVAILABLE, PureBackend(), str(err))
    finally:
        pool.shutdown(wait=False)

    logger.info(f"OpenCV accelerator ready (cv2 {getattr(backend, 'version', '?')})")
    return AcceleratorStatus(AcceleratorState.READY, ResilientBackend(backend))
