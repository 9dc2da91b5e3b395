"""
Data model for the library mirror.

ListingRecord is what a listing page yields; DetailedRecord is what the mirror
stores. Identity is the record id: later data for an id replaces earlier data,
except for the locally owned preference flags.
"""
from dataclasses import dataclass, field, asdict, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
import logging


logger = logging.getLogger(__name__)

# Play-time sentinel for games that were never played
NEVER_PLAYED = "00:00:00"


@dataclass(frozen=True)
class ListingRecord:
    """One row of a remote listing page"""
    id: str
    title: str
    last_activity: str = ""
    last_activity_date: str = ""  # ISO-8601 or empty
    url: str = ""


@dataclass
class DetailedRecord:
    """A game as kept in the local mirror"""
    id: str
    title: str
    last_activity: str = ""
    last_activity_date: str = ""
    url: str = ""
    play_time: str = NEVER_PLAYED
    play_count: int = 0
    platform: Optional[str] = None
    added: Optional[str] = None
    modified: Optional[str] = None
    is_custom_game: bool = False
    is_installed: bool = False
    is_installing: bool = False
    is_launching: bool = False
    is_running: bool = False
    is_uninstalling: bool = False
    user_score: Optional[str] = None
    community_score: Optional[str] = None
    critic_score: Optional[str] = None
    version: Optional[str] = None
    notes: Optional[str] = None
    # Locally owned; never taken from a remote fetch
    is_favorite: bool = False
    is_completed: bool = False

    @classmethod
    def from_listing(cls, record: ListingRecord, **details: Any) -> "DetailedRecord":
        """Build a detailed record from a listing row plus fetched detail fields."""
        return cls(
            id=record.id,
            title=record.title,
            last_activity=record.last_activity,
            last_activity_date=record.last_activity_date,
            url=record.url,
            play_time=details.get("play_time") or NEVER_PLAYED,
            play_count=int(details.get("play_count") or 0),
            platform=details.get("platform") or None,
            added=details.get("added") or None,
            modified=details.get("modified") or None,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetailedRecord":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def has_changed_from(self, other: "DetailedRecord") -> bool:
        """True if the activity fields differ from ``other``."""
        return (
            self.play_time != other.play_time
            or self.last_activity_date != other.last_activity_date
            or self.play_count != other.play_count
        )

    def with_preferences(self, is_favorite: bool, is_completed: bool) -> "DetailedRecord":
        return replace(self, is_favorite=is_favorite, is_completed=is_completed)


@dataclass
class Profile:
    """Summary of a remote profile"""
    username: str
    total_games: int = 0
    last_updated: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        return cls(
            username=data.get("username", ""),
            total_games=int(data.get("total_games") or 0),
            last_updated=data.get("last_updated") or "",
        )


def _utc_iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class Snapshot:
    """The local mirror of a remote collection at a point in time.

    ``games`` never holds two records with the same id; building a snapshot
    from a list keeps the last record seen for each id.
    """
    games: List[DetailedRecord] = field(default_factory=list)
    timestamp: float = 0.0
    last_updated: Optional[str] = None
    profile: Optional[Profile] = None

    def __post_init__(self):
        self.games = dedupe_records(self.games)
        if self.timestamp and not self.last_updated:
            self.last_updated = _utc_iso(self.timestamp)

    def __len__(self) -> int:
        return len(self.games)

    def by_id(self) -> Dict[str, DetailedRecord]:
        return {g.id: g for g in self.games}

    def get(self, game_id: str) -> Optional[DetailedRecord]:
        for game in self.games:
            if game.id == game_id:
                return game
        return None

    def is_stale(self, now: float, max_age: float) -> bool:
        return now - self.timestamp > max_age

    def to_dict(self) -> Dict[str, Any]:
        return {
            "games": [g.to_dict() for g in self.games],
            "timestamp": self.timestamp,
            "last_updated": self.last_updated,
            "profile": self.profile.to_dict() if self.profile else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        """Rebuild a stored snapshot; malformed parts are dropped, never raised."""
        games = []
        raw_games = data.get("games")
        if not isinstance(raw_games, list):
            raw_games = []
        for raw in raw_games:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping malformed cached game: {raw!r}")
                continue
            try:
                games.append(DetailedRecord.from_dict(raw))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed cached game: {e}")

        try:
            timestamp = float(data.get("timestamp") or 0.0)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed snapshot timestamp: {data.get('timestamp')!r}")
            timestamp = 0.0

        profile = None
        raw_profile = data.get("profile")
        if isinstance(raw_profile, dict):
            try:
                profile = Profile.from_dict(raw_profile)
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring malformed cached profile: {e}")

        last_updated = data.get("last_updated")
        return cls(
            games=games,
            timestamp=timestamp,
            last_updated=last_updated if isinstance(last_updated, str) else None,
            profile=profile,
        )


def dedupe_records(records: Iterable[DetailedRecord]) -> List[DetailedRecord]:
    """Keep one record per id (the last one), in first-seen order."""
    by_id: Dict[str, DetailedRecord] = {}
    for record in records:
        by_id[record.id] = record
    return list(by_id.values())
