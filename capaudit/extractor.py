"""Documented capability requirements, read from event type docstrings.

A docstring documents a requirement by linking to the capability member
inside an inline link span, for example::

    class GuildMemberJoinEvent(GenericGuildMemberEvent):
        \"\"\"Indicates that a member joined a guild.

        Requirements: {@link GatewayIntent#GUILD_MEMBERS GUILD_MEMBERS intent}
        \"\"\"

Only the first token of a span is the link target; the rest is a label.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Sequence

from .errors import ReferenceResolutionError
from .models import CapabilityTaxonomy, EventType, RequirementSet

logger = logging.getLogger(__name__)

# Javadoc-style inline tags and Sphinx roles
DEFAULT_LINK_PATTERNS: tuple[str, ...] = (
    r"\{@link\s+(?P<target>[^}]*)\}",
    r":[\w:.-]+:`(?P<target>[^`]*)`",
)

# Whitespace separates target and label, unless it follows a comma inside
# a parameter list like "Guild#getMember(long, boolean)"
LINK_SPLIT_PATTERN = re.compile(r"(?<!,)\s+")


class DocumentationExtractor:
    """Extracts documented capability members from type descriptions.

    Example:
        extractor = DocumentationExtractor()
        flags = extractor.extract(event_type, cache_flag_taxonomy)
        if flags is None:
            print("undocumented")
    """

    def __init__(self, link_patterns: Optional[Sequence[str]] = None) -> None:
        patterns = link_patterns or DEFAULT_LINK_PATTERNS
        self._link_patterns = [re.compile(p) for p in patterns]
        self._reference_patterns: dict[str, re.Pattern[str]] = {}

    def _reference_pattern(self, taxonomy: CapabilityTaxonomy) -> re.Pattern[str]:
        pattern = self._reference_patterns.get(taxonomy.name)
        if pattern is None:
            pattern = re.compile(r"\b" + re.escape(taxonomy.name) + r"#(\w+)")
            self._reference_patterns[taxonomy.name] = pattern
        return pattern

    def links(self, description: str) -> list[str]:
        """Link targets of every inline link span, in document order."""
        spans: list[tuple[int, str]] = []
        for pattern in self._link_patterns:
            for match in pattern.finditer(description):
                target = match.group("target") if "target" in pattern.groupindex else match.group(1)
                spans.append((match.start(), target))
        spans.sort(key=lambda span: span[0])

        links = []
        for _, target in spans:
            target = target.strip()
            if not target:
                continue
            links.append(LINK_SPLIT_PATTERN.split(target, maxsplit=1)[0])
        return links

    def extract(
        self, event_type: EventType, taxonomy: CapabilityTaxonomy
    ) -> Optional[frozenset[str]]:
        """Documented members of one taxonomy for a type.

        Returns:
            None if the type has no description, otherwise the set of
            referenced members (empty if nothing of this taxonomy is linked).

        Raises:
            ReferenceResolutionError: If a reference names an unknown member.
        """
        if event_type.description is None:
            return None

        pattern = self._reference_pattern(taxonomy)
        members: set[str] = set()
        for link in self.links(event_type.description):
            for match in pattern.finditer(link):
                member_name = match.group(1)
                if not taxonomy.contains(member_name):
                    raise ReferenceResolutionError(
                        event_type.name, match.group(0), taxonomy=taxonomy.name
                    )
                members.add(member_name)
        return frozenset(members)

    def extract_all(
        self, event_type: EventType, taxonomies: Iterable[CapabilityTaxonomy]
    ) -> Optional[RequirementSet]:
        """Documented members of every taxonomy, None if undocumented."""
        if event_type.description is None:
            return None
        return RequirementSet(members={
            taxonomy.name: self.extract(event_type, taxonomy) or frozenset()
            for taxonomy in taxonomies
        })
