"""
Database Schemas for the Flashcard Study backend

Each Pydantic model represents a collection in MongoDB. Collections and
flashcards are stored under their lowercase class name; scheduling records
live in the "user_flashcard_sm2" collection.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

DEFAULT_EASINESS_FACTOR = 2.5
MIN_EASINESS_FACTOR = 1.3


class Collection(BaseModel):
    name: str = Field(..., description="Collection name")
    description: Optional[str] = Field(None, description="What this collection covers")


class Flashcard(BaseModel):
    collection_id: str = Field(..., description="Parent collection id (stringified ObjectId)")
    front: str = Field(..., description="Question / prompt")
    back: str = Field(..., description="Answer / explanation")


class SchedulingRecord(BaseModel):
    user_id: str = Field(..., description="Owner of the record")
    flashcard_id: str = Field(..., description="Scheduled flashcard (stringified ObjectId)")
    # SM-2 state
    easiness_factor: float = Field(DEFAULT_EASINESS_FACTOR, description="Recall ease, never below 1.3 once reviewed")
    repetitions: int = Field(0, ge=0, description="Consecutive reviews with quality >= 3 since the last lapse")
    interval_days: int = Field(0, ge=0, description="Days between last_reviewed and due_date")
    due_date: Optional[datetime] = Field(None, description="When the card becomes reviewable again (UTC)")
    last_reviewed: Optional[datetime] = Field(None, description="Last review timestamp (UTC)")
    # Denormalized context, carried through untouched by the scheduler
    original_collection_id: Optional[str] = Field(None, description="Collection the card was reviewed from")
    collection_name: Optional[str] = Field(None, description="Display name of that collection")


class SuggestedCard(BaseModel):
    flashcard_id: str
    collection_id: str
    due_date: datetime
    sm2_parameters: SchedulingRecord


class ReviewPayload(BaseModel):
    flashcard_id: str
    collection_id: str
    collection_name: Optional[str] = None
    quality: int  # 0-5 (SM-2 quality score), clamped by the scheduler
