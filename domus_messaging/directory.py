# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Sender identity lookup.

The identity collaborator answers "who is this user" for a whole batch of
ids at once. :class:`ParticipantDirectory` sits in front of it and keeps a
per-session cache so each distinct sender is resolved once, not once per
message.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from domus_storage import ASCENDING, DocumentStore, DocumentStoreError

from .errors import DependencyFailureError

logger = logging.getLogger(__name__)

ROLE_LODGER = "lodger"
ROLE_LANDLORD = "landlord"
ROLE_STAFF = "staff"
ROLE_ADMIN = "admin"
ROLE_UNKNOWN = "unknown"

KNOWN_ROLES = (ROLE_LODGER, ROLE_LANDLORD, ROLE_STAFF, ROLE_ADMIN)


@dataclass(frozen=True)
class Identity:
    """Role and display name for a user."""
    user_id: str
    role: str
    display_name: str

    @classmethod
    def unknown(cls, user_id: str) -> "Identity":
        return cls(user_id=user_id, role=ROLE_UNKNOWN, display_name="Unknown")


class IdentityProvider(ABC):
    """Identity collaborator interface."""

    @abstractmethod
    def get_identities(self, user_ids: Sequence[str]) -> Dict[str, Identity]:
        """Look up identities for a batch of users in one call.

        Returns:
            Mapping of user id to Identity; unknown ids are simply absent
        """
        pass

    @abstractmethod
    def find_users_by_role(self, role: str) -> List[str]:
        """Return user ids holding ``role``, in a stable order."""
        pass


class StaticIdentityProvider(IdentityProvider):
    """In-memory identity provider for tests and fixtures."""

    def __init__(self, identities: Iterable[Identity] = ()):
        self._identities: Dict[str, Identity] = {}
        self.lookups: List[List[str]] = []
        for identity in identities:
            self.add(identity)

    def add(self, identity: Identity) -> None:
        self._identities[identity.user_id] = identity

    def get_identities(self, user_ids: Sequence[str]) -> Dict[str, Identity]:
        self.lookups.append(list(user_ids))
        return {uid: self._identities[uid] for uid in user_ids if uid in self._identities}

    def find_users_by_role(self, role: str) -> List[str]:
        return [identity.user_id for identity in self._identities.values() if identity.role == role]


class DocumentStoreIdentityProvider(IdentityProvider):
    """Identity provider backed by a ``profiles`` collection.

    Each profile document is ``{_id: user_id, role, display_name, created_at}``.
    One ``$in`` query serves a whole batch, replacing a lookup per role table.
    """

    def __init__(self, document_store: DocumentStore, collection: str = "profiles"):
        self.document_store = document_store
        self.collection = collection

    def get_identities(self, user_ids: Sequence[str]) -> Dict[str, Identity]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        try:
            docs = self.document_store.query_documents(
                self.collection, {"_id": {"$in": ids}}, limit=len(ids)
            )
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Identity lookup failed: {e}") from e

        return {
            str(doc["_id"]): Identity(
                user_id=str(doc["_id"]),
                role=doc.get("role") or ROLE_UNKNOWN,
                display_name=doc.get("display_name") or "Unknown",
            )
            for doc in docs
        }

    def find_users_by_role(self, role: str) -> List[str]:
        try:
            docs = self.document_store.query_documents(
                self.collection,
                {"role": role},
                limit=1000,
                sort=[("created_at", ASCENDING), ("_id", ASCENDING)],
            )
        except DocumentStoreError as e:
            raise DependencyFailureError(f"Role lookup failed: {e}") from e
        return [str(doc["_id"]) for doc in docs]

    def save_identity(self, identity: Identity, created_at: Optional[str] = None) -> None:
        """Create or update a profile (used by fixtures and admin tooling)."""
        patch = {"role": identity.role, "display_name": identity.display_name}
        if created_at is not None:
            patch["created_at"] = created_at
        self.document_store.upsert_document(self.collection, identity.user_id, patch)


class ParticipantDirectory:
    """Memoized, batched front for an :class:`IdentityProvider`.

    Create one per session. Only ids missing from the cache are sent to the
    provider, and all of them go in a single call.
    """

    def __init__(self, provider: IdentityProvider):
        self.provider = provider
        self._cache: Dict[str, Identity] = {}
        self._lock = threading.Lock()

    def resolve(self, user_id: str) -> Identity:
        return self.resolve_many([user_id])[user_id]

    def resolve_many(self, user_ids: Iterable[str]) -> Dict[str, Identity]:
        """Resolve identities for a batch, e.g. the distinct senders of a page.

        Raises:
            DependencyFailureError: If the provider is unavailable
        """
        wanted = list(dict.fromkeys(user_ids))
        with self._lock:
            missing = [uid for uid in wanted if uid not in self._cache]

        if missing:
            try:
                found = self.provider.get_identities(missing)
            except OSError as e:
                raise DependencyFailureError(f"Identity lookup failed: {e}") from e

            with self._lock:
                for uid in missing:
                    self._cache[uid] = found.get(uid) or Identity.unknown(uid)
            logger.debug("Resolved %d identities (%d cached)", len(missing), len(wanted) - len(missing))

        with self._lock:
            return {uid: self._cache[uid] for uid in wanted}

    def default_assignee(self) -> Optional[str]:
        """First admin, the responder for complaints raised without an assignee."""
        admins = self.provider.find_users_by_role(ROLE_ADMIN)
        return admins[0] if admins else None

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
