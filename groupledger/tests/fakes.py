"""
tests/fakes.py — In-memory stand-ins for the external collaborators.

They implement the same methods as infra/blob_store.py, infra/message_queue.py
and infra/notifier.py, and raise the same exception types when told to fail.
"""

from __future__ import annotations

import json

from groupledger.app.infra.blob_store import BlobStoreError
from groupledger.app.infra.message_queue import QueueError, QueueMessage


class FakeBlobStore:

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.fail_put = False
        self.fail_get = False

    def ensure_bucket(self) -> None:
        pass

    def put(self, key: str, data: bytes, content_type: str = "text/csv") -> None:
        if self.fail_put:
            raise BlobStoreError("put failed")
        self.objects[key] = data

    def get(self, key: str) -> bytes:
        if self.fail_get or key not in self.objects:
            raise BlobStoreError(f"no object {key}")
        return self.objects[key]

    def reset(self) -> None:
        self.objects.clear()
        self.fail_put = False
        self.fail_get = False


class FakeQueue:
    """
    Messages stay in `pending` until deleted, like SQS with a zero visibility
    timeout: every receive() returns everything not yet deleted.
    """

    def __init__(self) -> None:
        self.pending: dict[str, str] = {}
        self.deleted: list[str] = []
        self.fail_send = False
        self.fail_receive = False
        self._counter = 0

    def ensure_queue(self) -> None:
        pass

    def send(self, body: dict) -> None:
        if self.fail_send:
            raise QueueError("send failed")
        self.push_raw(json.dumps(body))

    def push_raw(self, body: str) -> str:
        self._counter += 1
        handle = f"receipt-{self._counter}"
        self.pending[handle] = body
        return handle

    def receive(self, max_messages: int, wait_seconds: int, cancel=None) -> list[QueueMessage]:
        if self.fail_receive:
            raise QueueError("receive failed")
        return [
            QueueMessage(body=body, receipt_handle=handle)
            for handle, body in list(self.pending.items())[:max_messages]
        ]

    def delete(self, receipt_handle: str) -> None:
        self.pending.pop(receipt_handle, None)
        self.deleted.append(receipt_handle)

    def bodies(self) -> list[dict]:
        return [json.loads(body) for body in self.pending.values()]

    def reset(self) -> None:
        self.pending.clear()
        self.deleted.clear()
        self.fail_send = False
        self.fail_receive = False


class FakeNotifier:

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False

    def send(self, to: str, subject: str, body: str) -> None:
        if self.fail:
            raise ConnectionError("mail relay down")
        self.sent.append({"to": to, "subject": subject, "body": body})

    def reset(self) -> None:
        self.sent.clear()
        self.fail = False
