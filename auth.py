# auth.py
"""
Authentication Module for the HomeNest API
Verifies Firebase ID tokens sent as bearer tokens and guards protected routes
"""

import os
import logging
from functools import wraps
from typing import Any, Callable, Dict, Optional

import firebase_admin
from firebase_admin import auth as firebase_auth, credentials
from flask import current_app, g, jsonify, request

FIREBASE_CREDENTIALS = os.getenv("FIREBASE_CREDENTIALS", "service_key.json")

BEARER_PREFIX = "Bearer "

logger = logging.getLogger(__name__)

TokenVerifier = Callable[[str], Dict[str, Any]]


# ========== FIREBASE CONFIGURATION ==========
def init_firebase(credentials_path: str = FIREBASE_CREDENTIALS) -> firebase_admin.App:
    """Initialize the default Firebase app from a service account file"""
    cred = credentials.Certificate(credentials_path)
    app = firebase_admin.initialize_app(cred)
    logger.info("Firebase Admin initialized from %s", credentials_path)
    return app


def verify_firebase_token(token: str) -> Dict[str, Any]:
    """Decode a Firebase ID token; raises on any verification failure"""
    return firebase_auth.verify_id_token(token)


# ========== TOKEN HELPERS ==========
def extract_bearer_token(header: Optional[str]) -> Optional[str]:
    """Return the token following 'Bearer ' in an Authorization header"""
    if not header or BEARER_PREFIX not in header:
        return None
    token = header.split(BEARER_PREFIX)[1]
    return token or None


# ========== DECORATORS ==========
def token_required(f):
    """Decorator to require a valid bearer token for a route"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = extract_bearer_token(request.headers.get("Authorization"))
        if not token:
            return jsonify({"message": "No token provided"}), 401

        verify = current_app.config["TOKEN_VERIFIER"]
        try:
            g.user = verify(token)
        except Exception as e:
            current_app.logger.info("Rejected token on %s: %s", request.path, e)
            return jsonify({"message": "Invalid token", "error": str(e)}), 401

        return f(*args, **kwargs)
    return decorated_function
