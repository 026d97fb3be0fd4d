from typing import Optional

import firebase_admin
import structlog
from firebase_admin import credentials, firestore

logger = structlog.get_logger(__name__)


def get_firestore_client(
    service_account_key_path: Optional[str] = None,
    project_id: Optional[str] = None,
):
    """
    Return a Firestore client for the default Firebase app, initializing the
    Admin SDK on first use. Without a key path the SDK falls back to
    application default credentials.
    """
    try:
        app = firebase_admin.get_app()
    except ValueError:
        if service_account_key_path:
            cred = credentials.Certificate(service_account_key_path)
        else:
            cred = credentials.ApplicationDefault()
        options = {"projectId": project_id} if project_id else None
        app = firebase_admin.initialize_app(cred, options)
        logger.info("Initialized Firebase Admin SDK", project_id=project_id or app.project_id)

    # Get a reference to the Firestore database
    return firestore.client(app)
