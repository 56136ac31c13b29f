"""
infra/message_queue.py — Work queue between the upload endpoint and the
import worker, backed by SQS (or LocalStack).

Delivery is at-least-once. A message stays on the queue until delete() is
called with its receipt handle; if the consumer never deletes it, SQS makes
it visible again after the visibility timeout.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

# Longest single receive_message call; bounds how late a cancel is noticed.
_POLL_SLICE_SECONDS = 2

_MISSING_QUEUE_CODES = {
    "QueueDoesNotExist",
    "AWS.SimpleQueueService.NonExistentQueue",
}


class QueueError(Exception):
    """Raised when the queue cannot be reached or rejects a call."""


@dataclass(frozen=True)
class QueueMessage:
    body: str
    receipt_handle: str


class SqsMessageQueue:

    def __init__(self, client, queue_name: str, queue_url: str | None = None) -> None:
        self._client = client
        self.queue_name = queue_name
        self._queue_url = queue_url

    @classmethod
    def from_config(cls, config) -> "SqsMessageQueue":
        client = boto3.client(
            "sqs",
            endpoint_url=config.get("AWS_SQS_ENDPOINT"),
            region_name=config.get("AWS_SQS_REGION"),
            aws_access_key_id=config.get("AWS_SQS_ACCESS_KEY_ID"),
            aws_secret_access_key=config.get("AWS_SQS_SECRET_ACCESS_KEY"),
        )
        return cls(client, config["AWS_SQS_QUEUE_NAME"])

    @property
    def queue_url(self) -> str:
        """Resolved lazily so the app can start before the queue exists."""
        if self._queue_url is None:
            try:
                result = self._client.get_queue_url(QueueName=self.queue_name)
            except (BotoCoreError, ClientError) as exc:
                raise QueueError(f"Queue {self.queue_name} is unavailable: {exc}") from exc
            self._queue_url = result["QueueUrl"]
        return self._queue_url

    def ensure_queue(self) -> None:
        """Creates the queue if it does not exist yet (local development)."""
        try:
            result = self._client.get_queue_url(QueueName=self.queue_name)
            self._queue_url = result["QueueUrl"]
            logger.info("SQS queue %r already exists", self.queue_name)
            return
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") not in _MISSING_QUEUE_CODES:
                raise QueueError(f"Queue lookup failed: {exc}") from exc

        logger.info("Creating SQS queue %r", self.queue_name)
        try:
            result = self._client.create_queue(QueueName=self.queue_name)
        except (BotoCoreError, ClientError) as exc:
            raise QueueError(f"Could not create queue {self.queue_name}: {exc}") from exc
        self._queue_url = result["QueueUrl"]

    def send(self, body: dict) -> None:
        try:
            self._client.send_message(
                QueueUrl=self.queue_url,
                MessageBody=json.dumps(body),
            )
        except (BotoCoreError, ClientError) as exc:
            raise QueueError(f"Enqueue failed: {exc}") from exc
        logger.info("Sent message to SQS queue %r", self.queue_name)

    def receive(
            self,
            max_messages: int,
            wait_seconds: int,
            cancel: threading.Event | None = None,
    ) -> list[QueueMessage]:
        """
        Long-polls for up to max_messages; returns [] when the wait expires.

        The wait is split into calls of at most _POLL_SLICE_SECONDS, and
        `cancel` is checked between them, so setting it ends the poll within
        one slice instead of after the full wait.
        """
        remaining = wait_seconds
        while True:
            if cancel is not None and cancel.is_set():
                return []
            wait = min(remaining, _POLL_SLICE_SECONDS)
            try:
                result = self._client.receive_message(
                    QueueUrl=self.queue_url,
                    MaxNumberOfMessages=max_messages,
                    WaitTimeSeconds=wait,
                )
            except (BotoCoreError, ClientError) as exc:
                raise QueueError(f"Receive failed: {exc}") from exc

            remaining -= wait
            messages = result.get("Messages", [])
            if messages or remaining <= 0:
                return [
                    QueueMessage(body=raw.get("Body", ""), receipt_handle=raw["ReceiptHandle"])
                    for raw in messages
                ]

    def delete(self, receipt_handle: str) -> None:
        try:
            self._client.delete_message(
                QueueUrl=self.queue_url,
                ReceiptHandle=receipt_handle,
            )
        except (BotoCoreError, ClientError) as exc:
            raise QueueError(f"Delete failed: {exc}") from exc
