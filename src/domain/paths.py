"""
Document paths - Namespaced locations used by the membership domain.

Layout under the configured application namespace ``<ns>``:

    <ns>/users/<uid>/profile          one profile per principal
    <ns>/public/announcements/<id>    shared content collections
    <ns>/public/activities/<id>
    <ns>/public/gallery/<id>
"""

from dataclasses import dataclass
from enum import Enum

PROFILE_DOCUMENT = "profile"


class ContentCollection(str, Enum):
    """Public content collections shown on the dashboard."""

    ANNOUNCEMENTS = "announcements"
    ACTIVITIES = "activities"
    GALLERY = "gallery"


@dataclass(frozen=True)
class DocumentPaths:
    """Builds store paths for one application namespace."""

    namespace: str

    def user_collection(self, uid: str) -> str:
        return f"{self.namespace}/users/{uid}"

    def profile(self, uid: str) -> str:
        return f"{self.user_collection(uid)}/{PROFILE_DOCUMENT}"

    def profiles(self) -> str:
        """Collection group spanning every principal's profile document."""
        return f"{self.namespace}/users/*"

    def content(self, collection: ContentCollection) -> str:
        return f"{self.namespace}/public/{collection.value}"

    @staticmethod
    def owner_of(profile_path: str) -> str:
        """Return the principal uid owning a profile document path."""
        return profile_path.rsplit("/", 2)[-2]
