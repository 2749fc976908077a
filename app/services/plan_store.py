"""
Saved plan persistence.

Backends (PLAN_STORE_BACKEND):
- memory: thread-safe in-process dict (default, dev/testing)
- firestore: users/{userId}/wellnessPlans via firebase_admin

A saved document is the full WellnessPlanOutput plus a store-assigned id and
createdAt. Rename touches personalizedPlan.title only.

PII-safe: never log user ids, titles or plan content.
"""
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from app.core.auth import init_firebase
from app.core.config import get_settings
from app.core.logging import get_safe_logger
from app.schemas.response import SavedPlan
from app.schemas.wellness_plan import WellnessPlanOutput
from app.services.exceptions import PlanNotFoundError, PlanStoreError

logger = get_safe_logger(__name__)

DEFAULT_LIST_LIMIT = 50
USERS_COLLECTION = "users"
PLANS_COLLECTION = "wellnessPlans"


def _with_title(plan: WellnessPlanOutput, title: Optional[str]) -> WellnessPlanOutput:
    """Copy of plan, with personalizedPlan.title replaced when title is given."""
    copied = plan.model_copy(deep=True)
    if title:
        copied.personalized_plan.title = title
    return copied


class PlanStore:
    """Interface for saved plan storage."""

    backend = "base"

    def save_plan(self, user_id: str, plan: WellnessPlanOutput, title: Optional[str] = None) -> SavedPlan:
        raise NotImplementedError

    def list_plans(self, user_id: str, limit: int = DEFAULT_LIST_LIMIT) -> List[SavedPlan]:
        raise NotImplementedError

    def get_plan(self, user_id: str, plan_id: str) -> SavedPlan:
        raise NotImplementedError

    def delete_plan(self, user_id: str, plan_id: str) -> None:
        raise NotImplementedError

    def rename_plan(self, user_id: str, plan_id: str, title: str) -> SavedPlan:
        raise NotImplementedError


class InMemoryPlanStore(PlanStore):
    """Process-local store. Not shared across workers."""

    backend = "memory"

    def __init__(self):
        self._plans: Dict[str, Dict[str, SavedPlan]] = {}
        self._lock = threading.Lock()

    def save_plan(self, user_id: str, plan: WellnessPlanOutput, title: Optional[str] = None) -> SavedPlan:
        stored = _with_title(plan, title)
        saved = SavedPlan(
            id=uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc),
            **stored.model_dump(),
        )
        with self._lock:
            self._plans.setdefault(user_id, {})[saved.id] = saved
        return saved.model_copy(deep=True)

    def list_plans(self, user_id: str, limit: int = DEFAULT_LIST_LIMIT) -> List[SavedPlan]:
        with self._lock:
            # Reverse insertion order first so equal timestamps still list newest first
            plans = list(reversed(self._plans.get(user_id, {}).values()))
        plans.sort(key=lambda p: p.created_at, reverse=True)
        return [p.model_copy(deep=True) for p in plans[:limit]]

    def get_plan(self, user_id: str, plan_id: str) -> SavedPlan:
        with self._lock:
            saved = self._plans.get(user_id, {}).get(plan_id)
        if saved is None:
            raise PlanNotFoundError()
        return saved.model_copy(deep=True)

    def delete_plan(self, user_id: str, plan_id: str) -> None:
        with self._lock:
            if self._plans.get(user_id, {}).pop(plan_id, None) is None:
                raise PlanNotFoundError()

    def rename_plan(self, user_id: str, plan_id: str, title: str) -> SavedPlan:
        with self._lock:
            saved = self._plans.get(user_id, {}).get(plan_id)
            if saved is None:
                raise PlanNotFoundError()
            saved.personalized_plan.title = title
            return saved.model_copy(deep=True)

    def clear(self) -> None:
        """Drop everything (for testing)."""
        with self._lock:
            self._plans.clear()


class FirestorePlanStore(PlanStore):
    """
    Firestore-backed store.
    Documents hold the camelCase plan payload plus createdAt.
    """

    backend = "firestore"

    def __init__(self, client=None):
        if client is None:
            client = firestore.client(init_firebase())
        self._db = client

    def _collection(self, user_id: str):
        return self._db.collection(USERS_COLLECTION).document(user_id).collection(PLANS_COLLECTION)

    @staticmethod
    def _from_snapshot(snapshot) -> SavedPlan:
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return SavedPlan.model_validate(data)

    def _fail(self, operation: str, exc: Exception) -> PlanStoreError:
        logger.error(
            "Plan store operation failed",
            error_code="STORE_ERROR",
            store_backend=self.backend,
            exception_class=type(exc).__name__,
        )
        return PlanStoreError(operation)

    def save_plan(self, user_id: str, plan: WellnessPlanOutput, title: Optional[str] = None) -> SavedPlan:
        stored = _with_title(plan, title)
        created_at = datetime.now(timezone.utc)
        data = stored.model_dump(by_alias=True)
        data["createdAt"] = created_at

        try:
            doc_ref = self._collection(user_id).document()
            doc_ref.set(data)
        except google_exceptions.GoogleAPICallError as exc:
            raise self._fail("save", exc)

        return SavedPlan(id=doc_ref.id, created_at=created_at, **stored.model_dump())

    def list_plans(self, user_id: str, limit: int = DEFAULT_LIST_LIMIT) -> List[SavedPlan]:
        try:
            query = (
                self._collection(user_id)
                .order_by("createdAt", direction=firestore.Query.DESCENDING)
                .limit(limit)
            )
            return [self._from_snapshot(snapshot) for snapshot in query.stream()]
        except google_exceptions.GoogleAPICallError as exc:
            raise self._fail("list", exc)

    def get_plan(self, user_id: str, plan_id: str) -> SavedPlan:
        try:
            snapshot = self._collection(user_id).document(plan_id).get()
        except google_exceptions.GoogleAPICallError as exc:
            raise self._fail("get", exc)

        if not snapshot.exists:
            raise PlanNotFoundError()
        return self._from_snapshot(snapshot)

    def delete_plan(self, user_id: str, plan_id: str) -> None:
        doc_ref = self._collection(user_id).document(plan_id)
        try:
            if not doc_ref.get().exists:
                raise PlanNotFoundError()
            doc_ref.delete()
        except google_exceptions.GoogleAPICallError as exc:
            raise self._fail("delete", exc)

    def rename_plan(self, user_id: str, plan_id: str, title: str) -> SavedPlan:
        doc_ref = self._collection(user_id).document(plan_id)
        try:
            doc_ref.update({"personalizedPlan.title": title})
        except google_exceptions.NotFound:
            raise PlanNotFoundError()
        except google_exceptions.GoogleAPICallError as exc:
            raise self._fail("rename", exc)
        return self.get_plan(user_id, plan_id)


_store: Optional[PlanStore] = None
_store_lock = threading.Lock()


def get_plan_store() -> PlanStore:
    """Get the configured store singleton."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                backend = get_settings().plan_store_backend
                _store = FirestorePlanStore() if backend == "firestore" else InMemoryPlanStore()
                logger.info("Plan store initialized", store_backend=_store.backend)
    return _store


def reset_plan_store() -> None:
    """Forget the singleton (for testing)."""
    global _store
    with _store_lock:
        _store = None
