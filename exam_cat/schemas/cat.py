"""Pydantic schemas for the JSON blob representation of CAT attempt state."""
from typing import List, Optional

from pydantic import BaseModel, Field


class CATResponseSchema(BaseModel):
    """One recorded response in an attempt's history."""

    question_id: str
    difficulty: float
    is_correct: bool

    model_config = {"from_attributes": True}


class CATStateSchema(BaseModel):
    """Serialized adaptive-testing state attached to an exam attempt."""

    ability_estimate: float
    standard_error: float = Field(gt=0.0)
    questions_administered: int = Field(ge=0)
    responses: List[CATResponseSchema] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class CATSettingsSchema(BaseModel):
    """Per-exam adaptive-testing settings as stored on the exam record.

    Every field is optional; missing values fall back to engine defaults.
    """

    initial_ability: Optional[float] = None
    precision_threshold: Optional[float] = Field(default=None, gt=0.0, le=1.0)
    min_questions: Optional[int] = Field(default=None, ge=1)
    max_questions: Optional[int] = Field(default=None, ge=1)

    model_config = {"from_attributes": True}
