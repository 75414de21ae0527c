"""Durable job publisher backed by Upstash QStash.

A published job is delivered to ``WORKER_URL`` at least once. QStash
retries failed deliveries up to ``QUEUE_MAX_RETRIES`` times and signs every
delivery (see ``middleware/queue_auth.py``).
"""
import os
import logging
from typing import Optional

import httpx

from models.job_models import ProcessMeetingJob

logger = logging.getLogger(__name__)

DEFAULT_QSTASH_URL = "https://qstash.upstash.io"


class QueueServiceError(Exception):
    """Raised when a job cannot be handed to the queue."""
    pass


class QueueService:
    """Publishes meeting processing jobs."""

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client
        self.base_url = os.getenv("QSTASH_URL", DEFAULT_QSTASH_URL).rstrip("/")
        self.token = os.getenv("QSTASH_TOKEN")
        self.worker_url = os.getenv("WORKER_URL")
        self.max_retries = int(os.getenv("QUEUE_MAX_RETRIES", "3"))

    async def publish_job(self, job: ProcessMeetingJob) -> Optional[str]:
        """Publish one job.

        Returns:
            The queue's message id, if it returned one

        Raises:
            QueueServiceError: If the queue is not configured or rejects the job
        """
        if not self.token or not self.worker_url:
            raise QueueServiceError("QSTASH_TOKEN and WORKER_URL must be set to enqueue jobs")

        try:
            response = await self.http_client.post(
                f"{self.base_url}/v2/publish/{self.worker_url}",
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json",
                    "Upstash-Retries": str(self.max_retries),
                },
                content=job.model_dump_json(by_alias=True),
                timeout=10,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise QueueServiceError(f"Failed to publish job for meeting {job.meeting_id}: {e}") from e

        message_id = None
        try:
            message_id = response.json().get("messageId")
        except ValueError:
            logger.debug(f"Queue response was not JSON: meeting_id={job.meeting_id}")

        logger.info(f"Job published: meeting_id={job.meeting_id}, message_id={message_id}")
        return message_id
