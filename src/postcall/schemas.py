"""Pydantic schemas for post-call processing."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TranscriptExtractionResult(BaseModel):
    """Customer details extracted from one finished call."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    customer_name: str = Field(alias="customerName")
    customer_availability: str = Field(alias="customerAvailability")
    special_notes: str = Field(alias="specialNotes")

    @classmethod
    def json_schema_for_llm(cls) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "customerName": {"type": "string"},
                "customerAvailability": {"type": "string"},
                "specialNotes": {"type": "string"},
            },
            "required": ["customerName", "customerAvailability", "specialNotes"],
            "additionalProperties": False,
        }

    def as_details(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class CallSummary(BaseModel):
    """Content of the system message stored next to a call transcript."""

    type: str = "call_summary"
    details: TranscriptExtractionResult
