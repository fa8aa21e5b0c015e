# app.py
import os
from datetime import datetime, timezone

from bson import ObjectId
from flask import Flask, request, jsonify, g
from flask.json.provider import DefaultJSONProvider
from flask_cors import CORS
from pymongo.database import Database

from db_mongo import (
    # Properties
    list_properties, get_property, list_properties_by_owner,
    create_property, update_property, delete_property,
    # Reviews
    list_reviews_for_owner, list_reviews_by_reviewer, list_reviews_for_property,
    find_review, create_review, update_review, delete_review,
    # Testimonials
    list_testimonials, get_testimonial_by_email, create_testimonial,
    update_testimonial, delete_testimonial,
    # Health
    check_database_health, is_valid_id,
)

from auth import token_required, verify_firebase_token, TokenVerifier


class MongoJSONProvider(DefaultJSONProvider):
    @staticmethod
    def default(o):
        # ObjectIds nested anywhere in a document render as hex strings
        if isinstance(o, ObjectId):
            return str(o)
        return DefaultJSONProvider.default(o)


def _failure(message, e):
    return jsonify({"message": message, "error": str(e)}), 500


def _cors_origins():
    origins = [o.strip() for o in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")]
    origins = [o for o in origins if o]
    return origins or "*"


# ========== FLASK APP INITIALIZATION ==========
def create_app(db: Database, verify_token: TokenVerifier = verify_firebase_token) -> Flask:
    """Build the API around an already-connected database handle"""
    app = Flask(__name__)
    app.json = MongoJSONProvider(app)
    app.config["TOKEN_VERIFIER"] = verify_token

    CORS(app, origins=_cors_origins())

    # ==================== PUBLIC ROUTES ====================

    @app.route("/")
    def index():
        return "HomeNest API Server Running!"

    @app.route("/health", methods=["GET"])
    def health():
        mongo_ok = check_database_health(db)
        return jsonify({
            "status": "healthy" if mongo_ok else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "mongodb_connected": mongo_ok,
        }), 200 if mongo_ok else 503

    # ==================== PROPERTY ROUTES ====================

    @app.route("/properties", methods=["GET"])
    def api_list_properties():
        try:
            return jsonify(list_properties(db))
        except Exception as e:
            app.logger.error("Error in GET /properties: %s", e)
            return _failure("Failed to fetch properties", e)

    @app.route("/properties/<property_id>", methods=["GET"])
    def api_get_property(property_id):
        if not is_valid_id(property_id):
            return jsonify({"message": "Invalid property ID"}), 400
        try:
            prop = get_property(db, property_id)
            if not prop:
                return jsonify({"message": "Property not found"}), 404
            return jsonify(prop)
        except Exception as e:
            app.logger.error("Error fetching property %s: %s", property_id, e)
            return _failure("Failed to fetch property", e)

    @app.route("/my-properties/<email>", methods=["GET"])
    @token_required
    def api_my_properties(email):
        """Listings posted by the given user"""
        try:
            return jsonify(list_properties_by_owner(db, email))
        except Exception as e:
            app.logger.error("Error fetching properties of %s: %s", email, e)
            return _failure("Failed to fetch user properties", e)

    @app.route("/properties", methods=["POST"])
    @token_required
    def api_create_property():
        try:
            payload = request.get_json(silent=True) or {}
            inserted_id = create_property(db, payload)
            app.logger.info("Property %s created by %s", inserted_id, g.user.get("email"))
            return jsonify({
                "message": "Property created successfully",
                "insertedId": inserted_id,
            }), 201
        except Exception as e:
            app.logger.error("Error creating property: %s", e)
            return _failure("Failed to create property", e)

    @app.route("/properties/<property_id>", methods=["PUT"])
    @token_required
    def api_update_property(property_id):
        if not is_valid_id(property_id):
            return jsonify({"message": "Invalid property ID"}), 400
        try:
            payload = request.get_json(silent=True) or {}
            if not update_property(db, property_id, payload):
                return jsonify({"message": "Property not found"}), 404
            return jsonify({"message": "Property updated successfully"})
        except Exception as e:
            app.logger.error("Error updating property %s: %s", property_id, e)
            return _failure("Failed to update property", e)

    @app.route("/properties/<property_id>", methods=["DELETE"])
    @token_required
    def api_delete_property(property_id):
        if not is_valid_id(property_id):
            return jsonify({"message": "Invalid property ID"}), 400
        try:
            if not delete_property(db, property_id):
                return jsonify({"message": "Property not found"}), 404
            return jsonify({"message": "Property deleted successfully"})
        except Exception as e:
            app.logger.error("Error deleting property %s: %s", property_id, e)
            return _failure("Failed to delete property", e)

    # ==================== REVIEW ROUTES ====================

    @app.route("/my-property-ratings/<email>", methods=["GET"])
    @token_required
    def api_my_property_ratings(email):
        """Reviews left on the user's own listings"""
        try:
            return jsonify(list_reviews_for_owner(db, email))
        except Exception as e:
            app.logger.error("Error fetching ratings for owner %s: %s", email, e)
            return _failure("Failed to fetch ratings", e)

    @app.route("/my-ratings/<email>", methods=["GET"])
    @token_required
    def api_my_ratings(email):
        """Reviews written by the user"""
        try:
            return jsonify(list_reviews_by_reviewer(db, email))
        except Exception as e:
            app.logger.error("Error fetching ratings by %s: %s", email, e)
            return _failure("Failed to fetch ratings", e)

    @app.route("/properties/<property_id>/reviews", methods=["GET"])
    def api_property_reviews(property_id):
        try:
            return jsonify(list_reviews_for_property(db, property_id))
        except Exception as e:
            app.logger.error("Error fetching reviews of %s: %s", property_id, e)
            return _failure("Failed to fetch reviews", e)

    @app.route("/properties/<property_id>/reviews", methods=["POST"])
    @token_required
    def api_add_review(property_id):
        try:
            data = request.get_json(silent=True) or {}

            # Check-then-insert; concurrent requests can both pass
            if find_review(db, property_id, data.get("reviewer_email")):
                return jsonify({"message": "You have already reviewed this property"}), 400

            inserted_id = create_review(db, property_id, data)
            return jsonify({
                "message": "Review added successfully",
                "result": {"acknowledged": True, "insertedId": inserted_id},
            }), 201
        except Exception as e:
            app.logger.error("Error adding review to %s: %s", property_id, e)
            return _failure("Failed to add review", e)

    @app.route("/reviews/<review_id>", methods=["PUT"])
    @token_required
    def api_update_review(review_id):
        if not is_valid_id(review_id):
            return jsonify({"message": "Invalid review ID"}), 400
        try:
            data = request.get_json(silent=True) or {}
            if not update_review(db, review_id, data.get("rating"), data.get("review_text")):
                return jsonify({"message": "Review not found"}), 404
            return jsonify({"message": "Review updated successfully"})
        except Exception as e:
            app.logger.error("Error updating review %s: %s", review_id, e)
            return _failure("Failed to update review", e)

    @app.route("/reviews/<review_id>", methods=["DELETE"])
    @token_required
    def api_delete_review(review_id):
        if not is_valid_id(review_id):
            return jsonify({"message": "Invalid review ID"}), 400
        try:
            if not delete_review(db, review_id):
                return jsonify({"message": "Review not found"}), 404
            return jsonify({"message": "Review deleted successfully"})
        except Exception as e:
            app.logger.error("Error deleting review %s: %s", review_id, e)
            return _failure("Failed to delete review", e)

    # ==================== TESTIMONIAL ROUTES ====================

    @app.route("/testimonials", methods=["GET"])
    def api_list_testimonials():
        try:
            return jsonify(list_testimonials(db))
        except Exception as e:
            app.logger.error("Error fetching testimonials: %s", e)
            return jsonify({"error": str(e)}), 500

    @app.route("/testimonials/user/<email>", methods=["GET"])
    @token_required
    def api_user_testimonial(email):
        try:
            testimonial = get_testimonial_by_email(db, email)
            if not testimonial:
                return jsonify({"error": "No testimonial found"}), 404
            return jsonify(testimonial)
        except Exception as e:
            app.logger.error("Error fetching testimonial of %s: %s", email, e)
            return jsonify({"error": str(e)}), 500

    @app.route("/testimonials", methods=["POST"])
    @token_required
    def api_create_testimonial():
        try:
            testimonial = request.get_json(silent=True) or {}

            if get_testimonial_by_email(db, testimonial.get("email")):
                return jsonify({"error": "You have already submitted a testimonial"}), 400

            inserted_id = create_testimonial(db, testimonial)
            return jsonify({
                "message": "Testimonial submitted successfully",
                "insertedId": inserted_id,
            }), 201
        except Exception as e:
            app.logger.error("Error creating testimonial: %s", e)
            return jsonify({"error": str(e)}), 500

    @app.route("/testimonials/<testimonial_id>", methods=["PUT"])
    @token_required
    def api_update_testimonial(testimonial_id):
        if not is_valid_id(testimonial_id):
            return jsonify({"error": "Invalid testimonial ID"}), 400
        try:
            data = request.get_json(silent=True) or {}
            if not update_testimonial(db, testimonial_id, data):
                return jsonify({"error": "Testimonial not found"}), 404
            return jsonify({"message": "Testimonial updated successfully"})
        except Exception as e:
            app.logger.error("Error updating testimonial %s: %s", testimonial_id, e)
            return jsonify({"error": str(e)}), 500

    @app.route("/testimonials/<testimonial_id>", methods=["DELETE"])
    @token_required
    def api_delete_testimonial(testimonial_id):
        if not is_valid_id(testimonial_id):
            return jsonify({"error": "Invalid testimonial ID"}), 400
        try:
            if not delete_testimonial(db, testimonial_id):
                return jsonify({"error": "Testimonial not found"}), 404
            return jsonify({"message": "Testimonial deleted successfully"})
        except Exception as e:
            app.logger.error("Error deleting testimonial %s: %s", testimonial_id, e)
            return jsonify({"error": str(e)}), 500

    # ==================== ERROR HANDLERS ====================

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"message": "Endpoint not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"message": "Method not allowed"}), 405

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"message": "Internal server error"}), 500

    return app
