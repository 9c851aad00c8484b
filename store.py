"""
Marketplace Monitor Listing Store
Flat JSON files for tracking seen listings and the current batch.
"""

import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

SEEN = "seen"
NEW = "new"

FILE_NAMES = {
    SEEN: "seen_items.json",
    NEW: "new_items.json",
}


class StoreError(Exception):
    """Raised when a backing file cannot be parsed."""


@dataclass(frozen=True)
class Listing:
    """Represents a marketplace listing. ``link`` is its identity."""
    link: str
    title: Optional[str] = None
    price: Optional[str] = None
    location: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Listing":
        return cls(
            link=data.get("link") or "",
            title=data.get("title"),
            price=data.get("price"),
            location=data.get("location"),
        )


class ListingStore:
    """Reads and writes the ``seen`` and ``new`` listing collections."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, kind: str) -> Path:
        """Get the backing file path for a collection kind."""
        try:
            return self.data_dir / FILE_NAMES[kind]
        except KeyError:
            raise ValueError(f"Unknown listing collection: {kind!r}") from None

    def load(self, kind: str) -> List[Listing]:
        """
        Load a collection.

        A missing file is created empty on first access.

        Args:
            kind: SEEN or NEW

        Returns:
            Listings in file order
        """
        path = self.path_for(kind)
        if not path.exists():
            logger.debug(f"Initializing empty {kind} file at {path}")
            self.save(kind, [])
            return []

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StoreError(f"Could not parse {path}: {e}") from e

        if not isinstance(data, list):
            raise StoreError(f"Expected a JSON array in {path}")

        return [Listing.from_dict(item) for item in data if isinstance(item, dict)]

    def save(self, kind: str, listings: List[Listing]):
        """Overwrite a collection with the given listings."""
        path = self.path_for(kind)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = [listing.to_dict() for listing in listings]
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug(f"Wrote {len(payload)} listings to {path}")

    def clear(self, kind: str):
        """Reset a collection to an empty array."""
        self.save(kind, [])
