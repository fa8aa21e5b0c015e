# MongoDB utilities for the HomeNest API.
# Handles properties, reviews and testimonials

import os
import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from dotenv import load_dotenv
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError
from pymongo.server_api import ServerApi
from bson import ObjectId

load_dotenv()

MONGODB_URI = os.getenv("MONGODB_URI")
MONGODB_DB = os.getenv("MONGODB_DB", "HomeNest")

UNKNOWN_PROPERTY_NAME = "Unknown Property"

logger = logging.getLogger(__name__)


# ========== CONNECTION ==========
def connect(uri: str, db_name: str = MONGODB_DB) -> Database:
    # Build the process-wide client and return its DB handle
    client = MongoClient(
        uri,
        server_api=ServerApi("1", strict=True, deprecation_errors=True),
        serverSelectionTimeoutMS=5000,
        appname="homenest",
    )
    client.admin.command("ping")
    logger.info("Pinged your deployment. You successfully connected to MongoDB!")
    return client[db_name]


# ========== INTIALIZATION ==========
def initialize_mongodb(db: Database) -> bool:
    # Create supporting indexes. None of them are unique: duplicate
    # reviews/testimonials are only guarded by the handlers
    try:
        # ===== PROPERTIES =====
        db.properties.create_index([("posted_by.email", ASCENDING)])

        # ===== REVIEWS =====
        db.reviews.create_index([("property_id", ASCENDING), ("reviewer_email", ASCENDING)])
        db.reviews.create_index([("reviewer_email", ASCENDING)])
        db.reviews.create_index([("created_at", DESCENDING)])

        # ===== TESTIMONIALS =====
        db.testimonials.create_index([("email", ASCENDING)])
        db.testimonials.create_index([("created_at", DESCENDING)])

        return True
    except PyMongoError as e:
        logger.warning("Mongo init error: %s", e)
        return False


# ========== HELPERS ==========
def is_valid_id(value: Any) -> bool:
    # 24-hex ObjectId strings only
    return isinstance(value, str) and ObjectId.is_valid(value)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is not None and "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


def _serialize_all(cursor) -> List[Dict[str, Any]]:
    results = []
    for doc in cursor:
        results.append(_serialize(doc))
    return results


def _without_id(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(payload)
    data.pop("_id", None)
    return data


def _enrich(review: Dict[str, Any], prop: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    # Copy the property's display fields onto a review
    prop = prop or {}
    return {
        **review,
        "property_name": prop.get("property_name") or UNKNOWN_PROPERTY_NAME,
        "property_image": prop.get("property_image") or "",
    }


# ========== PROPERTIES API ==========
def list_properties(db: Database) -> List[Dict[str, Any]]:
    return _serialize_all(db.properties.find())


def get_property(db: Database, property_id: str) -> Optional[Dict[str, Any]]:
    return _serialize(db.properties.find_one({"_id": ObjectId(property_id)}))


def list_properties_by_owner(db: Database, email: str) -> List[Dict[str, Any]]:
    return _serialize_all(db.properties.find({"posted_by.email": email}))


def create_property(db: Database, property_data: Dict[str, Any]) -> str:
    # Insert the listing as sent by the client
    res = db.properties.insert_one(dict(property_data))
    return str(res.inserted_id)


def update_property(db: Database, property_id: str, changes: Dict[str, Any]) -> bool:
    # Partial merge; returns False when no listing matched
    result = db.properties.update_one(
        {"_id": ObjectId(property_id)},
        {"$set": _without_id(changes)}
    )
    return result.matched_count > 0


def delete_property(db: Database, property_id: str) -> bool:
    result = db.properties.delete_one({"_id": ObjectId(property_id)})
    return result.deleted_count > 0


# ========== REVIEWS API ==========
def list_reviews_for_owner(db: Database, email: str) -> List[Dict[str, Any]]:
    """
    Reviews left on every property posted by `email`, newest first.
    Each review carries property_name/property_image joined in memory
    from the owner's listings.
    """
    owned = list(db.properties.find({"posted_by.email": email}))
    if not owned:
        return []

    by_id = {str(p["_id"]): p for p in owned}

    cursor = db.reviews.find(
        {"property_id": {"$in": list(by_id)}}
    ).sort("created_at", DESCENDING)

    results = []
    for review in cursor:
        results.append(_enrich(_serialize(review), by_id.get(review.get("property_id"))))
    return results


def list_reviews_by_reviewer(db: Database, email: str) -> List[Dict[str, Any]]:
    """
    Reviews written by `email`. The referenced property is looked up
    once per review.
    """
    results = []
    for review in db.reviews.find({"reviewer_email": email}):
        prop = None
        property_id = review.get("property_id")
        if is_valid_id(property_id):
            prop = db.properties.find_one({"_id": ObjectId(property_id)})
        results.append(_enrich(_serialize(review), prop))
    return results


def list_reviews_for_property(db: Database, property_id: str) -> List[Dict[str, Any]]:
    cursor = db.reviews.find({"property_id": property_id}).sort("created_at", DESCENDING)
    return _serialize_all(cursor)


def find_review(db: Database, property_id: str, reviewer_email: Optional[str]) -> Optional[Dict[str, Any]]:
    return _serialize(db.reviews.find_one({
        "property_id": property_id,
        "reviewer_email": reviewer_email,
    }))


def create_review(db: Database, property_id: str, review_data: Dict[str, Any]) -> str:
    # Only the known review fields are stored
    doc = {
        "property_id": property_id,
        "rating": review_data.get("rating"),
        "review_text": review_data.get("review_text"),
        "reviewer_email": review_data.get("reviewer_email"),
        "reviewer_name": review_data.get("reviewer_name"),
        "created_at": _now_iso(),
    }
    res = db.reviews.insert_one(doc)
    return str(res.inserted_id)


def update_review(db: Database, review_id: str, rating: Any, review_text: Any) -> bool:
    result = db.reviews.update_one(
        {"_id": ObjectId(review_id)},
        {"$set": {
            "rating": rating,
            "review_text": review_text,
            "updated_at": _now_iso(),
        }}
    )
    return result.matched_count > 0


def delete_review(db: Database, review_id: str) -> bool:
    result = db.reviews.delete_one({"_id": ObjectId(review_id)})
    return result.deleted_count > 0


# ========== TESTIMONIALS API ==========
def list_testimonials(db: Database) -> List[Dict[str, Any]]:
    return _serialize_all(db.testimonials.find().sort("created_at", DESCENDING))


def get_testimonial_by_email(db: Database, email: Optional[str]) -> Optional[Dict[str, Any]]:
    return _serialize(db.testimonials.find_one({"email": email}))


def create_testimonial(db: Database, testimonial_data: Dict[str, Any]) -> str:
    res = db.testimonials.insert_one(dict(testimonial_data))
    return str(res.inserted_id)


def update_testimonial(db: Database, testimonial_id: str, changes: Dict[str, Any]) -> bool:
    result = db.testimonials.update_one(
        {"_id": ObjectId(testimonial_id)},
        {"$set": {**_without_id(changes), "updated_at": _now_iso()}}
    )
    return result.matched_count > 0


def delete_testimonial(db: Database, testimonial_id: str) -> bool:
    result = db.testimonials.delete_one({"_id": ObjectId(testimonial_id)})
    return result.deleted_count > 0


# ========== HEALTH ==========
def check_database_health(db: Database) -> bool:
    # Check if MongoDB database is accessible
    try:
        db.command("ping")
        return True
    except PyMongoError as e:
        logger.warning("MongoDB health check failed: %s", e)
        return False
