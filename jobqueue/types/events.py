"""
Host event type definitions.

Batch invocations deliver queue records; the worker answers with a partial
batch failure list.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from jobqueue.constants import RECEIVE_COUNT_ATTRIBUTE


class QueueRecord(BaseModel):
    """One record of a batch delivery."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message_id: str = Field(alias="messageId")
    body: str
    receipt_handle: str = Field(alias="receiptHandle")
    attributes: dict[str, Any] = Field(default_factory=dict)

    @property
    def receive_count(self) -> int:
        """
        Attempt number derived from the queue's redelivery counter.
        Falls back to 1 when the counter is absent or unusable.
        """
        raw = self.attributes.get(RECEIVE_COUNT_ATTRIBUTE)
        try:
            count = int(raw)
        except (TypeError, ValueError):
            return 1
        return count if count >= 1 else 1


class BatchItemFailure(BaseModel):
    """A record the host should redeliver or dead-letter."""

    model_config = ConfigDict(populate_by_name=True)

    item_identifier: str = Field(alias="itemIdentifier")


class BatchResponse(BaseModel):
    """
    Partial batch response.
    An empty failure list acknowledges every record in the batch.
    """

    model_config = ConfigDict(populate_by_name=True)

    batch_item_failures: list[BatchItemFailure] = Field(
        default_factory=list, alias="batchItemFailures"
    )

    def add_failure(self, message_id: str) -> None:
        self.batch_item_failures.append(BatchItemFailure(item_identifier=message_id))

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
