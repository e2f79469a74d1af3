"""
AI region edit flow.

The provider itself is out of scope; AiEditService is the seam. The flow is:
export a mask from the paint engine, submit it with the viewed version and
a prompt, poll the job until it completes, then download the provider's
output and store it as the next version.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from CS_Libs.constants import AI_POLL_INTERVAL_SECONDS, AI_POLL_TIMEOUT_SECONDS
from CS_Libs.EditingLib.image_codec import decode_image, encode_png
from CS_Libs.errors import ApplyFailed, InvalidRegion
from CS_Libs.VersionStoreLib.version_store import VersionStore

logger = logging.getLogger(__name__)

JOB_PENDING = "pending"
JOB_RUNNING = "running"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"


@dataclass(frozen=True)
class JobStatus:
    status: str
    output_ref: Optional[str] = None
    error: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.status in (JOB_COMPLETED, JOB_FAILED)


class AiEditService(ABC):
    """Provider of mask-guided inpainting."""

    @abstractmethod
    def submit_inpaint(self, base_ref: str, mask_bytes: bytes, prompt: str) -> str:
        """Start an inpaint job and return its id."""

    @abstractmethod
    def poll_job(self, job_id: str) -> JobStatus:
        """Current status of a job."""

    @abstractmethod
    def fetch_output(self, output_ref: str) -> bytes:
        """
        Download a finished job's output.

        Implementations raise StorageError when the output cannot be read.
        """


def run_region_edit(
    store: VersionStore,
    asset_id: str,
    mask_bytes: bytes,
    prompt: str,
    service: AiEditService,
    poll_interval: float = AI_POLL_INTERVAL_SECONDS,
    timeout: float = AI_POLL_TIMEOUT_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """
    Run an inpaint job against the viewed version and store its output.

    Args:
        store: Version store of the asset
        asset_id: Asset being edited
        mask_bytes: Mask PNG (255 = region to edit)
        prompt: Edit instruction
        service: Inpainting provider
        poll_interval: Seconds between polls
        timeout: Seconds before giving up
        sleep: Sleep function (injectable for tests)
        clock: Monotonic clock (injectable for tests)

    Returns:
        The new version number

    Raises:
        InvalidRegion: If the mask is empty
        ApplyFailed: If the prompt is blank, the job fails or times out
        DecodeError: If the output is not a readable image
        StorageError: If the output cannot be downloaded
    """
    if not mask_bytes:
        raise InvalidRegion("Paint the area you want to edit first")
    prompt = (prompt or "").strip()
    if not prompt:
        raise ApplyFailed("Describe the edit you want first")

    base_ref = store.base_reference(asset_id)
    job_id = service.submit_inpaint(base_ref, mask_bytes, prompt)
    logger.info(f"Submitted region edit job {job_id} for asset {asset_id}")

    deadline = clock() + timeout
    status = service.poll_job(job_id)
    while not status.finished:
        if clock() >= deadline:
            logger.warning(f"Region edit job {job_id} timed out after {timeout}s")
            raise ApplyFailed("The edit took too long. Please try again.")
        sleep(poll_interval)
        status = service.poll_job(job_id)

    if status.status == JOB_FAILED or not status.output_ref:
        logger.warning(f"Region edit job {job_id} failed: {status.error}")
        raise ApplyFailed(status.error or "The edit failed. Please try again.")

    output = decode_image(service.fetch_output(status.output_ref), "edit output")
    logger.info(f"Region edit job {job_id} produced {output.width}x{output.height} output")
    return store.add_version(
        asset_id,
        encode_png(output),
        {
            "kind": "region_edit",
            "prompt": prompt,
            "job_id": job_id,
            "base_ref": base_ref,
            "source_ref": status.output_ref,
        },
    )
