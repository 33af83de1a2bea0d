import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Header, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from database import SM2_COLLECTION, db, create_document, ensure_indexes, get_documents
from schemas import Collection, Flashcard, ReviewPayload, SchedulingRecord, SuggestedCard
from scheduling import (
    DEFAULT_DUE_LIMIT,
    compute_next_schedule,
    record_from_document,
    record_to_document,
    select_due_cards,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

MAX_SUGGESTION_LIMIT = 1000


@asynccontextmanager
async def lifespan(app: FastAPI):
    if db is not None:
        ensure_indexes(db)
    yield


app = FastAPI(title="Flashcard Study API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Helpers
def require_db():
    if db is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return db


def require_user(x_user_id: Optional[str]) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


def require_flashcard_param(flashcard_id: Optional[str]) -> str:
    if not flashcard_id:
        raise HTTPException(status_code=400, detail="Missing flashcard_id query parameter")
    return flashcard_id


def parse_object_id(value: str, what: str) -> ObjectId:
    if not ObjectId.is_valid(value):
        raise HTTPException(status_code=400, detail=f"Invalid {what} id")
    return ObjectId(value)


def with_id(doc: dict) -> dict:
    doc["id"] = str(doc.pop("_id"))
    return doc


@app.get("/")
def root():
    return {"message": "Flashcard Study Backend Running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Connected & Working"
            response["database_name"] = db.name
            response["connection_status"] = "Connected"
            response["collections"] = db.list_collection_names()[:10]
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Collection endpoints
@app.post("/api/collections")
def create_collection(collection: Collection):
    require_db()
    collection_id = create_document("collection", collection)
    return {"id": collection_id}


@app.get("/api/collections")
def list_collections():
    require_db()
    return [with_id(it) for it in get_documents("collection")]


# Flashcard endpoints
@app.post("/api/flashcards")
def create_flashcard(flashcard: Flashcard):
    database = require_db()
    collection_oid = parse_object_id(flashcard.collection_id, "collection")
    if database["collection"].count_documents({"_id": collection_oid}) == 0:
        raise HTTPException(status_code=404, detail="Collection not found")
    flashcard_id = create_document("flashcard", flashcard)
    return {"id": flashcard_id}


@app.get("/api/flashcards")
def list_flashcards(collection_id: Optional[str] = None):
    require_db()
    q = {"collection_id": collection_id} if collection_id else {}
    return [with_id(it) for it in get_documents("flashcard", q)]


# Scheduling records (SM-2)
def find_record(user_id: str, flashcard_id: str) -> Optional[SchedulingRecord]:
    doc = require_db()[SM2_COLLECTION].find_one({"user_id": user_id, "flashcard_id": flashcard_id})
    return record_from_document(doc) if doc else None


def user_records(user_id: str) -> List[SchedulingRecord]:
    cursor = require_db()[SM2_COLLECTION].find({"user_id": user_id}).sort("due_date", ASCENDING)
    return [record_from_document(doc) for doc in cursor]


@app.post("/api/user-flashcard-sm2", response_model=SchedulingRecord)
def review_flashcard(payload: ReviewPayload, x_user_id: Optional[str] = Header(None)):
    user_id = require_user(x_user_id)
    database = require_db()
    if not payload.collection_id.strip():
        raise HTTPException(status_code=400, detail="Missing collection_id")
    flashcard_oid = parse_object_id(payload.flashcard_id, "flashcard")
    if database["flashcard"].count_documents({"_id": flashcard_oid}) == 0:
        raise HTTPException(status_code=404, detail="Flashcard not found")

    try:
        current = find_record(user_id, payload.flashcard_id)
        updated = compute_next_schedule(
            current,
            payload.quality,
            user_id=user_id,
            flashcard_id=payload.flashcard_id,
            collection_id=payload.collection_id,
            collection_name=payload.collection_name,
        )
        doc = database[SM2_COLLECTION].find_one_and_update(
            {"user_id": user_id, "flashcard_id": payload.flashcard_id},
            {"$set": record_to_document(updated)},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        logger.error(f"Failed to update SM2 data for card {payload.flashcard_id}: {e}")
        raise HTTPException(status_code=500, detail="Could not update SM2 data")

    logger.info(
        f"User {user_id} rated card {payload.flashcard_id} with {payload.quality}: "
        f"next review in {updated.interval_days} day(s)"
    )
    return record_from_document(doc)


@app.get("/api/user-flashcard-sm2", response_model=SchedulingRecord)
def get_record(flashcard_id: Optional[str] = None, x_user_id: Optional[str] = Header(None)):
    user_id = require_user(x_user_id)
    flashcard_id = require_flashcard_param(flashcard_id)
    try:
        record = find_record(user_id, flashcard_id)
    except PyMongoError as e:
        logger.error(f"Failed to get SM2 data for card {flashcard_id}: {e}")
        raise HTTPException(status_code=500, detail="Could not retrieve SM2 data")
    if record is None:
        raise HTTPException(status_code=404, detail="SM2 record not found for this user and flashcard")
    return record


@app.delete("/api/user-flashcard-sm2", status_code=204)
def delete_record(flashcard_id: Optional[str] = None, x_user_id: Optional[str] = Header(None)):
    user_id = require_user(x_user_id)
    flashcard_id = require_flashcard_param(flashcard_id)
    database = require_db()
    try:
        result = database[SM2_COLLECTION].delete_one({"user_id": user_id, "flashcard_id": flashcard_id})
    except PyMongoError as e:
        logger.error(f"Failed to delete SM2 data for card {flashcard_id} for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Could not delete SM2 data")
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="SM2 record not found to delete for this user and flashcard")
    logger.info(f"Reset SM2 record for card {flashcard_id} of user {user_id}")
    return Response(status_code=204)


@app.get("/api/user-flashcard-sm2/all", response_model=List[SchedulingRecord])
def list_records(x_user_id: Optional[str] = Header(None)):
    user_id = require_user(x_user_id)
    try:
        return user_records(user_id)
    except PyMongoError as e:
        logger.error(f"Failed to get all SM2 records for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Could not retrieve all SM2 records")


@app.delete("/api/user-flashcard-sm2/all", status_code=204)
def delete_all_records(x_user_id: Optional[str] = Header(None)):
    user_id = require_user(x_user_id)
    database = require_db()
    try:
        result = database[SM2_COLLECTION].delete_many({"user_id": user_id})
    except PyMongoError as e:
        logger.error(f"Failed to delete all SM2 records for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Could not delete all SM2 records")
    logger.info(f"Deleted {result.deleted_count} SM2 records for user {user_id}")
    return Response(status_code=204)


# Study suggestions
@app.get("/api/study-suggestions", response_model=List[SuggestedCard])
def study_suggestions(
    limit: int = Query(DEFAULT_DUE_LIMIT, ge=1, le=MAX_SUGGESTION_LIMIT),
    x_user_id: Optional[str] = Header(None),
):
    user_id = require_user(x_user_id)
    try:
        records = user_records(user_id)
    except PyMongoError as e:
        logger.error(f"Failed to load SM2 records for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Could not build study suggestions")
    return select_due_cards(records, limit=limit)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
