"""Pydantic request models for the Snapforge API."""

from typing import Optional

from pydantic import BaseModel

from ..constants import MANUAL_CHECKPOINT_SUMMARY


class ProjectCreateRequest(BaseModel):
    name: str
    owner_id: str = "default"


class CheckpointRequest(BaseModel):
    summary: str = MANUAL_CHECKPOINT_SUMMARY
    triggering_message_id: Optional[str] = None
