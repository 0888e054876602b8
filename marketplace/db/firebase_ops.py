import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as gcp_exceptions
import logging
import os
from typing import Any, List, Optional
from pydantic import BaseModel as PydanticBaseModel # Alias Pydantic's BaseModel

from marketplace.core.config import get_settings
from marketplace.core.errors import ConflictError, StorageError, WorkflowError
from marketplace.db.store import EntityStore
from marketplace.db.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class FirebaseManager:
    """
    Firebase Firestore Manager for handling database operations
    """
    _instance = None
    _db = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(FirebaseManager, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if self._db is None:
            self.initialize_firebase()

    def initialize_firebase(self):
        """Initialize Firebase Admin SDK"""
        try:
            app = firebase_admin.get_app()
            self._db = firestore.client(app)
            logger.info("Using existing Firebase app")
            return
        except ValueError:
            pass # App doesn't exist, so we need to initialize it

        settings = get_settings()
        options = {'projectId': settings.firebase_project_id} if settings.firebase_project_id else None

        try:
            if os.path.exists(settings.firebase_credentials):
                cred = credentials.Certificate(settings.firebase_credentials)
                logger.info("Initializing Firebase with service account key from %s", settings.firebase_credentials)
            else:
                cred = credentials.ApplicationDefault()
                logger.info("Initializing Firebase with application default credentials")
            firebase_admin.initialize_app(cred, options)
            self._db = firestore.client()
        except Exception as exc:
            logger.error(
                "Could not initialize Firebase: %s. Set FIREBASE_CREDENTIALS to a service account key "
                "or GOOGLE_APPLICATION_CREDENTIALS for application default credentials.", exc
            )
            raise StorageError(f"Firestore is not available: {exc}") from exc
        logger.info("Firebase Firestore client initialized")

    def get_db(self):
        """Get Firestore database client"""
        return self._db


class FirestoreBaseModel(EntityStore):
    """
    Cloud Firestore implementation of EntityStore.
    commit() runs every staged write inside one Firestore transaction.
    """

    def __init__(self, db=None):
        self.db = db if db is not None else FirebaseManager().get_db()

    def get(self, collection_name: str, document_id: str, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> Optional[Any]:
        """Get document from Firestore by ID, optionally parsing into a Pydantic model."""
        try:
            doc = self.db.collection(collection_name).document(document_id).get()
        except Exception as exc:
            logger.error("Error getting document '%s' from Firestore collection '%s': %s", document_id, collection_name, exc)
            raise StorageError(f"Could not read '{collection_name}/{document_id}'") from exc

        if not doc.exists:
            return None
        return self._to_model(collection_name, doc.to_dict(), pydantic_model)

    def get_all(self, collection_name: str, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        """Get all documents from a collection in creation order."""
        try:
            docs = list(self.db.collection(collection_name).order_by("created_at").stream())
        except Exception as exc:
            logger.error("Error getting documents from Firestore collection '%s': %s", collection_name, exc)
            raise StorageError(f"Could not list '{collection_name}'") from exc
        return [self._to_model(collection_name, doc.to_dict(), pydantic_model) for doc in docs]

    def query(self, collection_name: str, field: str, operator: str, value: Any, pydantic_model: Optional[type[PydanticBaseModel]] = None) -> List[Any]:
        """Query documents by field, optionally parsing into Pydantic models."""
        try:
            query_ref = self.db.collection(collection_name).where(filter=firestore.FieldFilter(field, operator, value))
            docs = list(query_ref.stream())
        except Exception as exc:
            logger.error("Error querying Firestore collection '%s': %s", collection_name, exc)
            raise StorageError(f"Could not query '{collection_name}'") from exc
        documents = sorted((doc.to_dict() for doc in docs), key=lambda data: data.get("created_at") or "")
        return [self._to_model(collection_name, data, pydantic_model) for data in documents]

    def commit(self, unit_of_work: UnitOfWork) -> None:
        if not len(unit_of_work):
            return
        # One attempt only: a contended transaction surfaces as ConflictError instead of being retried.
        transaction = self.db.transaction(max_attempts=1)

        @firestore.transactional
        def apply_writes(transaction):
            refs = []
            # Firestore requires every read of a transaction to happen before its writes.
            for write in unit_of_work:
                ref = self.db.collection(write.collection_name).document(write.document_id)
                snapshot = ref.get(transaction=transaction)
                self._check_precondition(write, snapshot.to_dict() if snapshot.exists else None)
                refs.append(ref)

            now = self._timestamp()
            for write, ref in zip(unit_of_work, refs):
                document = self._document_for(write, now)
                if write.is_create:
                    transaction.create(ref, document)
                else:
                    transaction.update(ref, document)

        try:
            apply_writes(transaction)
        except WorkflowError:
            raise
        except Exception as exc:
            if _is_contention(exc):
                logger.warning("Firestore transaction with %d write(s) lost a race: %s", len(unit_of_work), exc)
                raise ConflictError("A concurrent update changed these records, try again") from exc
            logger.error("Firestore transaction with %d write(s) failed: %s", len(unit_of_work), exc)
            raise StorageError(f"Storage write failed, transition rolled back: {exc}") from exc


def _is_contention(exc: Exception) -> bool:
    """
    Aborted commits and creates of documents that appeared meanwhile mean another
    writer got there first. With max_attempts=1 the SDK reports an aborted commit
    as ValueError("Failed to commit transaction in 1 attempts.") caused by Aborted.
    """
    contention = (gcp_exceptions.Aborted, gcp_exceptions.AlreadyExists)
    if isinstance(exc, contention):
        return True
    return isinstance(exc, ValueError) and isinstance(exc.__cause__, contention)


def get_firestore_ops_instance() -> FirestoreBaseModel:
    return FirestoreBaseModel()
