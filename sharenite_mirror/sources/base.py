"""
Collaborator interfaces used by the sync engine and the cover service.

Concrete adapters (Sharenite HTML pages, IGDB) live next to this module; the
engines only ever talk to these interfaces.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
import logging

from ..models import DetailedRecord, ListingRecord, Profile


logger = logging.getLogger(__name__)


class ListingSource(ABC):
    """Paginated remote listing of a game collection."""

    @abstractmethod
    async def fetch_page(self, page: int) -> Tuple[List[ListingRecord], bool]:
        """
        Fetch one listing page (1-based).

        Returns:
            (records on the page in listing order, whether more pages exist)

        Raises:
            SourceUnavailable: on a non-success response or network failure.
        """
        pass

    async def fetch_profile(self) -> Optional[Profile]:
        """
        Fetch the profile summary. Default implementation has no profile.

        Raises:
            SourceUnavailable: when the profile page cannot be fetched.
        """
        return None


class DetailSource(ABC):
    """Per-record detail lookup."""

    @abstractmethod
    async def fetch_detail(self, record: ListingRecord) -> DetailedRecord:
        """
        Fetch the detailed attributes of a listing record.

        Raises:
            DetailFetchFailed: when the detail page cannot be fetched or parsed.
        """
        pass


class LookupProvider(ABC):
    """Resolves a lookup key (game title) to an external URL."""

    @abstractmethod
    async def resolve(self, key: str) -> Optional[str]:
        """
        Returns:
            The resolved URL, or None when nothing was found.

        Raises:
            LookupRateLimited: transient failure, worth retrying.
            LookupFailed: any other failure.
        """
        pass
