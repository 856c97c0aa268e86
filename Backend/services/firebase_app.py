import json
import logging
import os
import tempfile

import firebase_admin
from firebase_admin import credentials

from config import AppConfig

logger = logging.getLogger("rxsupply.firebase")


def init_firebase(config: AppConfig) -> bool:
    """Initialize the Firebase Admin SDK once; returns whether it is available."""
    if firebase_admin._apps:
        return True
    firebase_sa = config.firebase_service_account
    if not firebase_sa:
        logger.warning("FIREBASE_SERVICE_ACCOUNT not set, Firebase Auth lookups disabled")
        return False
    try:
        sa_dict = json.loads(firebase_sa)
    except json.JSONDecodeError:
        # Render sometimes adds extra quotes; strip them
        cleaned = firebase_sa.strip().strip("'").strip('"')
        try:
            sa_dict = json.loads(cleaned)
        except json.JSONDecodeError:
            # Last resort: write to temp file and use file path
            logger.warning("Could not parse FIREBASE_SERVICE_ACCOUNT as JSON, writing to temp file")
            tmp = tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False)
            tmp.write(firebase_sa)
            tmp.close()
            os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = tmp.name
            firebase_admin.initialize_app()
            return True

    # Fix escaped newlines in private_key (common Render issue)
    if "private_key" in sa_dict and "\\n" in sa_dict["private_key"]:
        sa_dict["private_key"] = sa_dict["private_key"].replace("\\n", "\n")
    firebase_admin.initialize_app(credentials.Certificate(sa_dict))
    logger.info("Firebase Admin SDK initialized")
    return True
