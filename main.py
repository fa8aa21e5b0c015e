import os
import sys
import logging

from db_mongo import MONGODB_URI, MONGODB_DB, connect, initialize_mongodb
from auth import init_firebase, FIREBASE_CREDENTIALS
from app import create_app

logger = logging.getLogger("homenest")


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not MONGODB_URI:
        logger.error("MONGODB_URI is not defined in .env file")
        sys.exit(1)

    port = int(os.getenv("PORT", 3000))

    db = connect(MONGODB_URI, MONGODB_DB)
    if not initialize_mongodb(db):
        logger.warning("MongoDB indexes could not be created; continuing without them")

    init_firebase(FIREBASE_CREDENTIALS)

    app = create_app(db)
    logger.info("HomeNest server listening at http://localhost:%s", port)
    app.run(host="0.0.0.0", port=port, threaded=True)


if __name__ == "__main__":
    main()
