"""Filter Module - Decides which catalog entries take part in a run."""

import logging
from typing import Optional

from .config import RunRequest
from .identifiers import is_ancestor, is_descendant

logger = logging.getLogger(__name__)


class IdentifierFilter:
    """Applies level, include and exclude selection to hierarchical ids.

    Rules, in order:

    1. A check whose level differs from a non-zero requested level is rejected.
       Sections carry no level and skip this rule.
    2. With a non-empty include list, an id is kept only if it equals, is an
       ancestor of, or is a descendant of some include entry.
    3. An id equal to, or a descendant of, an exclude entry is rejected.
       Exclusion always wins.
    """

    def __init__(self, request: Optional[RunRequest] = None):
        """Initialize the filter.

        Args:
            request: Default request used when should_run() is not given one
        """
        self.request = request or RunRequest()

    def should_run(
        self,
        identifier: str,
        level: Optional[int] = None,
        request: Optional[RunRequest] = None,
    ) -> bool:
        """Decide whether an entry is part of the run.

        Args:
            identifier: Hierarchical id such as "4.1.2"
            level: Check level, or None for section banners
            request: Request to evaluate against (default: the filter's own)

        Returns:
            True if the entry should run
        """
        request = request or self.request

        if request.level != 0 and level is not None and level != request.level:
            logger.debug("Excluding level %s test %s", level, identifier)
            return False

        if request.include and not self._matches_include(identifier, request):
            logger.debug("Excluding test %s (not found in the include list)", identifier)
            return False

        for entry in request.exclude:
            if identifier == entry:
                logger.debug("Excluding test %s (found in the exclude list)", identifier)
                return False
            if is_descendant(identifier, entry):
                logger.debug("Excluding test %s (parent found in the exclude list)", identifier)
                return False

        logger.debug("Including test %s", identifier)
        return True

    def _matches_include(self, identifier: str, request: RunRequest) -> bool:
        for entry in request.include:
            if identifier == entry:
                logger.debug("Test %s was explicitly included", identifier)
                return True
            if is_ancestor(identifier, entry):
                logger.debug("Test %s is the parent of an included test", identifier)
                return True
            if is_descendant(identifier, entry):
                logger.debug("Test %s is the child of an included test", identifier)
                return True
        return False
