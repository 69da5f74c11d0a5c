"""Registry Module - Holds catalog entries keyed by their benchmark id."""

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Union

from .check import CheckSpec, Section
from .config import RunRequest
from .exceptions import CatalogError
from .filter import IdentifierFilter
from .identifiers import parse_id

logger = logging.getLogger(__name__)

CatalogEntry = Union[Section, CheckSpec]


class CheckRegistry:
    """Ordered collection of sections and checks.

    Entries keep their declaration order, which is the order checks are
    submitted in. Ids are unique across sections and checks.
    """

    def __init__(self, benchmark: str = ""):
        self.benchmark = benchmark
        self._entries: Dict[str, CatalogEntry] = {}

    def register(self, entry: CatalogEntry) -> "CheckRegistry":
        """Add an entry to the registry.

        Args:
            entry: Section banner or check spec

        Returns:
            Self for chaining

        Raises:
            CatalogError: If the id is already registered
        """
        parse_id(entry.id)
        if entry.id in self._entries:
            raise CatalogError(f"Duplicate catalog id: {entry.id}")
        self._entries[entry.id] = entry
        return self

    def register_all(self, entries: Iterable[CatalogEntry]) -> "CheckRegistry":
        for entry in entries:
            self.register(entry)
        return self

    def get(self, entry_id: str) -> Optional[CatalogEntry]:
        return self._entries.get(entry_id)

    def entries(self) -> List[CatalogEntry]:
        """Get every entry in declaration order."""
        return list(self._entries.values())

    def checks(self) -> List[CheckSpec]:
        return [e for e in self._entries.values() if isinstance(e, CheckSpec)]

    def sections(self) -> List[Section]:
        return [e for e in self._entries.values() if isinstance(e, Section)]

    def select(
        self,
        request: RunRequest,
        check_filter: Optional[IdentifierFilter] = None,
    ) -> List[CatalogEntry]:
        """Get the entries a run with these options would show.

        Sections are matched by id only; checks also by level.

        Args:
            request: Run options holding level, include and exclude
            check_filter: Filter to apply, built from the request if omitted

        Returns:
            Accepted entries in declaration order
        """
        check_filter = check_filter or IdentifierFilter(request)
        selected = []
        for entry in self._entries.values():
            level = entry.level if isinstance(entry, CheckSpec) else None
            if check_filter.should_run(entry.id, level, request):
                selected.append(entry)
        logger.debug("Selected %s of %s catalog entries", len(selected), len(self._entries))
        return selected

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)
