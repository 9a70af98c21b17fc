"""Persisted transaction shape.

The storage layer keeps a flatter record than NormalizedTransaction: a numeric
amount, a plain ``date`` and the mailbox message that produced it. Only the
fields the deduplicator needs are modelled; anything else is preserved as
extra data.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StoredTransaction(BaseModel):
    """A transaction as read back from persistence."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = Field(default=None, alias="_id", description="Storage-layer identifier")
    date: datetime | None = Field(default=None, description="When the transaction happened")
    amount: float | None = Field(default=None, description="Amount as stored (numeric)")
    currency: str | None = Field(default=None, description="ISO-4217 currency code")
    operation_number: str | None = Field(
        default=None, alias="operationNumber", description="Bank operation number"
    )
    message_id: str | None = Field(
        default=None, alias="messageId", description="Mailbox message that produced the record"
    )
    description: str | None = Field(default=None, description="Display description")
