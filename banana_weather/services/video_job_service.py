import logging
import random
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from banana_weather.errors import (
    ExtractionError,
    JobCancelledError,
    PollError,
    ProviderError,
    SubmissionError,
)

logger = logging.getLogger(__name__)

VIDEO_PROMPT = (
    "The camera moves in parallax as the elements in the image move naturally, "
    "while the forecast data and the bold title remain fixed."
)

# Nova Reel writes the rendered clip under this name inside the invocation folder.
VIDEO_OBJECT_NAME = "output.mp4"

# Candidate locations of the result URI in a completed operation's output
# document, tried in order. The key names differ between model versions.
RESULT_URI_RULES: Sequence[Tuple[str, ...]] = (
    ("s3Uri",),
    ("videoUri",),
    ("uri",),
    ("video", "uri"),
    ("video", "s3Uri"),
    ("video", "videoUri"),
)


class JobState(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED})


@dataclass
class GenerationJob:
    operation_handle: str
    state: JobState = JobState.SUBMITTED
    result_uri: Optional[str] = None
    failure_reason: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES


def _lookup(document: Mapping[str, Any], path: Tuple[str, ...]) -> Optional[str]:
    node: Any = document
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    if isinstance(node, str) and node:
        return node
    return None


def extract_result_uri(
    document: Mapping[str, Any], rules: Sequence[Tuple[str, ...]] = RESULT_URI_RULES
) -> str:
    """Return the first non-empty string found at one of the candidate paths."""
    for path in rules:
        uri = _lookup(document, path)
        if uri:
            return uri
    raise ExtractionError(f"Video generated but URI is empty (output: {dict(document)!r})")


class VideoJobRunner:
    """Submits Nova Reel image-to-video jobs and polls them to a terminal state."""

    def __init__(
        self,
        bedrock_client,
        model_id: str,
        output_bucket: str,
        poll_interval: float = 5.0,
        timeout: Optional[float] = None,
        output_prefix: str = "videos",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = bedrock_client
        self.model_id = model_id
        self.output_uri = f"s3://{output_bucket}/{output_prefix.strip('/')}/"
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._clock = clock

    def submit(self, source_image_uri: str, prompt: str = VIDEO_PROMPT) -> GenerationJob:
        seed = random.randint(0, 2 ** 31 - 1)
        model_input = {
            "taskType": "MULTI_SHOT_MANUAL",
            "multiShotManualParams": {
                "shots": [
                    {
                        "text": prompt,
                        "image": {
                            "format": "png",
                            "source": {"s3Location": {"uri": source_image_uri}},
                        },
                    }
                ]
            },
            "videoGenerationConfig": {
                "fps": 24,
                "dimension": "1280x720",
                "seed": seed,
            },
        }

        logger.info("Generating video with model %s. Input: %s", self.model_id, source_image_uri)
        try:
            response = self.client.start_async_invoke(
                modelId=self.model_id,
                modelInput=model_input,
                outputDataConfig={"s3OutputDataConfig": {"s3Uri": self.output_uri}},
            )
        except (ClientError, BotoCoreError) as exc:
            logger.exception("Failed to start Nova Reel video generation job")
            raise SubmissionError(f"Unable to start video generation job: {exc}") from exc

        invocation_arn = response.get("invocationArn")
        if not invocation_arn:
            raise SubmissionError("Bedrock did not return an invocation ARN.")

        logger.info("Nova Reel operation started. ARN: %s", invocation_arn)
        return GenerationJob(operation_handle=invocation_arn)

    def await_completion(self, job: GenerationJob, cancel_event: Optional[threading.Event] = None) -> str:
        """Poll until the job is terminal and return the S3 URI of the video.

        Transient query errors are logged and retried on the next tick. Raises
        ProviderError, ExtractionError or JobCancelledError otherwise.
        """
        cancel_event = cancel_event or threading.Event()
        deadline = self._clock() + self.timeout if self.timeout else None
        job.state = JobState.POLLING

        while True:
            wait_for = self.poll_interval
            if deadline is not None:
                wait_for = max(0.0, min(wait_for, deadline - self._clock()))

            if cancel_event.wait(wait_for):
                self._cancel(job, "request cancelled")
            if deadline is not None and self._clock() >= deadline:
                self._cancel(job, f"no result after {self.timeout:g}s")

            try:
                response = self._query(job)
            except PollError as exc:
                logger.warning("Polling %s failed, retrying next tick: %s", job.operation_handle, exc)
                continue

            status = (response.get("status") or "").lower()
            if status == "completed":
                return self._complete(job, response)
            if status == "failed":
                job.state = JobState.FAILED
                job.failure_reason = response.get("failureMessage") or "Video generation failed."
                logger.error("Nova Reel job %s failed: %s", job.operation_handle, job.failure_reason)
                raise ProviderError(f"Operation failed: {job.failure_reason}")
            logger.info("Still polling Nova Reel (%s)...", status or "unknown")

    def generate(
        self,
        source_image_uri: str,
        prompt: str = VIDEO_PROMPT,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        job = self.submit(source_image_uri, prompt)
        return self.await_completion(job, cancel_event)

    def _query(self, job: GenerationJob) -> Mapping[str, Any]:
        try:
            return self.client.get_async_invoke(invocationArn=job.operation_handle)
        except (ClientError, BotoCoreError) as exc:
            raise PollError(str(exc)) from exc

    def _complete(self, job: GenerationJob, response: Mapping[str, Any]) -> str:
        document = (response.get("outputDataConfig") or {}).get("s3OutputDataConfig") or {}
        try:
            uri = extract_result_uri(document)
        except ExtractionError as exc:
            job.state = JobState.FAILED
            job.failure_reason = str(exc)
            logger.error("Nova Reel job %s completed without a result: %s", job.operation_handle, exc)
            raise

        if not uri.lower().endswith(".mp4"):
            uri = f"{uri.rstrip('/')}/{VIDEO_OBJECT_NAME}"
        job.state = JobState.SUCCEEDED
        job.result_uri = uri
        logger.info("Video generated (S3 URI): %s", uri)
        return uri

    def _cancel(self, job: GenerationJob, reason: str) -> None:
        job.state = JobState.CANCELLED
        logger.info("Stopped polling %s: %s", job.operation_handle, reason)
        raise JobCancelledError(f"Video job cancelled: {reason}")
