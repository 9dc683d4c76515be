"""Registry of named system-prompt sections.

Sections are tokenized independently so the breakdown can attribute prompt
size to each part; their text is intentionally brief.
"""

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class PromptSection:
    """A named, ordered chunk of the system prompt."""

    id: str
    order: int
    content: str
    description: str = ""


class PromptSectionRegistry:
    """Holds prompt sections keyed by id, returned in ``order``."""

    def __init__(self, sections: Optional[List[PromptSection]] = None):
        self._sections: Dict[str, PromptSection] = {}
        self._lock = threading.Lock()
        for section in sections or []:
            self.register(section)

    def register(self, section: PromptSection) -> None:
        """Add or replace a section."""
        with self._lock:
            self._sections[section.id] = section

    def get(self, section_id: str) -> Optional[PromptSection]:
        with self._lock:
            return self._sections.get(section_id)

    def sections(self) -> List[PromptSection]:
        with self._lock:
            return sorted(self._sections.values(), key=lambda s: (s.order, s.id))

    def assemble(self, separator: str = "\n\n") -> str:
        """Join section contents in order."""
        return separator.join(s.content for s in self.sections())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sections)


DEFAULT_SECTIONS = [
    PromptSection(
        id="foundations",
        order=10,
        description="Role and operating rules",
        content=(
            "You are a debugging assistant for ephemeral preview environments built from pull "
            "requests. Investigate build and deploy failures using the available tools and report "
            "the root cause with evidence."
        ),
    ),
    PromptSection(
        id="investigation",
        order=20,
        description="Investigation workflow",
        content=(
            "Start from deployment status, then inspect failing pods, their logs, and the "
            "configuration files that produced them. Reuse earlier tool results instead of "
            "fetching the same data twice."
        ),
    ),
    PromptSection(
        id="safety",
        order=30,
        description="Rules for mutating tools",
        content=(
            "Never modify files or cluster resources without explicit confirmation. Prefer "
            "read-only tools. Explain every proposed change before making it."
        ),
    ),
    PromptSection(
        id="reference",
        order=40,
        description="Output format reference",
        content=(
            "When the investigation is complete, answer either in prose or as a JSON object "
            "with a \"type\" field describing the finding, the affected services, and the fix."
        ),
    ),
]


_default_registry = PromptSectionRegistry(DEFAULT_SECTIONS)


def get_default_section_registry() -> PromptSectionRegistry:
    return _default_registry
