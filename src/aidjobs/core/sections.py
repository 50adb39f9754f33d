"""Job-description sections: parsing, mutation and recompilation.

Generated text is split on ``#`` headings. Each heading is matched against a
fixed catalogue so titles are normalised and every catalogue section exists,
with placeholder content when the generated text omitted it.
"""

from __future__ import annotations

import math
import re
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from aidjobs.errors import (
    DuplicateSectionError,
    SectionLockedError,
    SectionNotDeletableError,
    SectionNotFoundError,
)
from aidjobs.types import SectionOrderEntry, SectionType, SectionVersionSummary, VersionSource

HEADING_PREFIX = "#"
CUSTOM_ORDER_BASE = 100
WORDS_PER_MINUTE = 200
CUSTOM_SECTION_TITLE = "Custom Section"
CUSTOM_SECTION_CONTENT = "Add your custom content here..."

_HEADING_MARKER = re.compile(r"^#+\s*")


@dataclass(slots=True, frozen=True)
class CatalogueEntry:
    type: SectionType
    section_id: str
    title: str
    order: int
    icon: str
    keyword: str
    placeholder: str

    def matches(self, heading: str) -> bool:
        heading_lower = heading.lower()
        title_lower = self.title.lower()
        return (
            title_lower in heading_lower
            or heading_lower in title_lower
            or self.keyword in heading_lower
        )


SECTION_CATALOGUE: tuple[CatalogueEntry, ...] = (
    CatalogueEntry("title", "job-title", "Job Title", 0, "briefcase", "title",
                   "Enter the job title here"),
    CatalogueEntry("overview", "overview", "Overview Panel", 1, "building", "overview",
                   "Provide a brief overview of the position"),
    CatalogueEntry("sdgs", "sdgs", "SDGs (AI-Detected)", 2, "globe", "sdg",
                   "Sustainable Development Goals relevant to this position"),
    CatalogueEntry("sectors", "sectors", "Sectors and Impact Areas", 3, "target", "sector",
                   "Sectors and impact areas related to this position"),
    CatalogueEntry("dei", "dei", "DEI and Language Analysis", 4, "users", "dei",
                   "Diversity, Equity, and Inclusion considerations"),
    CatalogueEntry("summary", "summary", "Job Summary", 5, "file-text", "summary",
                   "Summarize the key aspects of this job"),
    CatalogueEntry("responsibilities", "responsibilities", "Key Responsibilities", 6, "list-checks",
                   "responsib", "List the key responsibilities for this position"),
    CatalogueEntry("qualifications", "qualifications", "Qualifications and Competencies", 7,
                   "graduation-cap", "qualif", "List required and preferred qualifications"),
    CatalogueEntry("experience", "experience", "Experience and Languages", 8, "languages",
                   "experience", "Detail required experience and language skills"),
    CatalogueEntry("contract", "contract", "Contract Details", 9, "file-signature", "contract",
                   "Specify contract type, duration, and other details"),
    CatalogueEntry("how-to-apply", "how-to-apply", "How to Apply", 10, "send", "apply",
                   "Instructions for candidates on how to apply"),
    CatalogueEntry("organization", "organization", "About the Organization", 11, "landmark",
                   "organization", "Information about the organization"),
)
CATALOGUE_BY_TYPE: dict[str, CatalogueEntry] = {entry.type: entry for entry in SECTION_CATALOGUE}


def placeholder_for(section_type: str) -> str:
    entry = CATALOGUE_BY_TYPE.get(section_type)
    return entry.placeholder if entry else "Add content here"


def match_catalogue(heading: str) -> CatalogueEntry | None:
    for entry in SECTION_CATALOGUE:
        if entry.matches(heading):
            return entry
    return None


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class SectionVersion:
    content: str
    source: VersionSource
    id: str = field(default_factory=lambda: f"v-{uuid.uuid4().hex[:12]}")
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class DraftSection:
    id: str
    title: str
    content: str
    type: SectionType
    order: int
    locked: bool = False
    icon: str = "file-text"
    versions: list[SectionVersion] = field(default_factory=list)

    def record_version(self, source: VersionSource) -> SectionVersion:
        version = SectionVersion(content=self.content, source=source)
        self.versions.append(version)
        return version


def _section_from_entry(entry: CatalogueEntry, content: str) -> DraftSection:
    section = DraftSection(
        id=entry.section_id,
        title=entry.title,
        content=content,
        type=entry.type,
        order=entry.order,
        icon=entry.icon,
    )
    section.record_version("system")
    return section


def _split_headings(text: str) -> list[tuple[str, str]]:
    blocks: list[tuple[str, str]] = []
    heading: str | None = None
    lines: list[str] = []

    def flush() -> None:
        if heading:
            blocks.append((heading.strip(), "\n".join(lines).strip()))

    for line in text.splitlines():
        if line.startswith(HEADING_PREFIX):
            flush()
            heading = _HEADING_MARKER.sub("", line)
            lines = []
        else:
            lines.append(line)
    flush()
    return blocks


def parse_sections(text: str, *, keep_text_order: bool = False) -> list[DraftSection]:
    """Split ``text`` into sections, one per heading plus any missing catalogue type.

    With ``keep_text_order`` the parsed sections keep the order they appear in
    the text (used when reloading text this module compiled) and synthesized
    sections follow them.
    """
    sections: list[DraftSection] = []
    seen_types: set[str] = set()

    for heading, content in _split_headings(text):
        entry = match_catalogue(heading)
        if entry is not None and entry.type not in seen_types:
            seen_types.add(entry.type)
            sections.append(_section_from_entry(entry, content))
            continue

        custom = DraftSection(
            id=f"section-{len(sections)}",
            title=heading,
            content=content,
            type="custom",
            order=CUSTOM_ORDER_BASE + len(sections),
        )
        custom.record_version("system")
        sections.append(custom)

    if keep_text_order:
        for index, section in enumerate(sections):
            section.order = index

    for entry in SECTION_CATALOGUE:
        if entry.type not in seen_types:
            missing = _section_from_entry(entry, entry.placeholder)
            if keep_text_order:
                missing.order = len(sections)
            sections.append(missing)

    return sorted(sections, key=lambda section: section.order)


def compile_sections(sections: list[DraftSection]) -> str:
    ordered = sorted(sections, key=lambda section: section.order)
    return "\n\n".join(
        f"{HEADING_PREFIX} {section.title}\n\n{section.content}" for section in ordered
    )


def manual_template() -> str:
    """Skeleton text with every catalogue section and its placeholder."""
    return compile_sections(parse_sections(""))


class DraftSectionModel:
    """Ordered, lockable sections of one job-description draft.

    At most one section is being edited; the aggregate holds its id.
    """

    def __init__(self, sections: list[DraftSection] | None = None):
        self.sections: list[DraftSection] = list(sections or [])
        self.editing_id: str | None = None

    @classmethod
    def from_text(cls, text: str, *, keep_text_order: bool = False) -> "DraftSectionModel":
        return cls(parse_sections(text, keep_text_order=keep_text_order))

    @classmethod
    def from_payload(cls, items: list[dict[str, Any]]) -> "DraftSectionModel":
        """Build from client-supplied sections.

        Duplicate ids raise ``DuplicateSectionError``; a repeated known type is
        kept as a custom section, as the parser does.
        """
        model = cls()
        seen_ids: set[str] = set()
        seen_types: set[str] = set()
        for item in items:
            section_id = item["id"]
            if section_id in seen_ids:
                raise DuplicateSectionError(section_id)
            seen_ids.add(section_id)

            section_type = item.get("type", "custom")
            if section_type != "custom":
                if section_type in seen_types:
                    section_type = "custom"
                else:
                    seen_types.add(section_type)

            section = DraftSection(
                id=section_id,
                title=item["title"],
                content=item.get("content", ""),
                type=section_type,
                order=int(item.get("order", len(model.sections))),
                locked=bool(item.get("locked", False)),
                icon=item.get("icon") or "file-text",
            )
            section.record_version("user")
            model.sections.append(section)
            if item.get("editing"):
                model.editing_id = section.id
        return model

    @classmethod
    def restore(cls, text: str, entries: list[SectionOrderEntry]) -> "DraftSectionModel":
        """Rebuild saved sections, taking identity from the stored snapshot.

        ``text`` is compiled output and ``entries`` the matching
        ``section_order`` snapshot, both in display order. Headings are paired
        with entries by position so renamed sections keep their type and lock.
        Falls back to parsing when the two do not line up.
        """
        blocks = _split_headings(text)
        ids = {entry.id for entry in entries}
        if not entries or len(blocks) != len(entries) or len(ids) != len(entries):
            return cls.from_text(text, keep_text_order=True)

        payload = []
        for (heading, content), entry in zip(blocks, entries):
            catalogue = CATALOGUE_BY_TYPE.get(entry.type)
            payload.append(
                {
                    "id": entry.id,
                    "title": heading,
                    "content": content,
                    "type": entry.type,
                    "order": entry.order,
                    "locked": entry.locked,
                    "icon": catalogue.icon if catalogue else None,
                }
            )

        model = cls.from_payload(payload)
        for section in model.sections:
            section.versions[0].source = "system"
        return model

    def get(self, section_id: str) -> DraftSection:
        for section in self.sections:
            if section.id == section_id:
                return section
        raise SectionNotFoundError(section_id)

    def find_type(self, section_type: str) -> DraftSection | None:
        return next((section for section in self.sections if section.type == section_type), None)

    def ordered(self) -> list[DraftSection]:
        return sorted(self.sections, key=lambda section: section.order)

    def is_editing(self, section_id: str) -> bool:
        return self.editing_id == section_id

    def set_locked(self, section_id: str, locked: bool | None = None) -> DraftSection:
        section = self.get(section_id)
        section.locked = (not section.locked) if locked is None else locked
        return section

    def set_editing(self, section_id: str) -> str | None:
        section = self.get(section_id)
        if self.editing_id == section_id:
            last = section.versions[-1].content if section.versions else None
            if last != section.content:
                section.record_version("user")
            self.editing_id = None
        else:
            section.locked = False
            self.editing_id = section_id
        return self.editing_id

    def set_content(self, section_id: str, content: str) -> DraftSection:
        section = self.get(section_id)
        if section.locked:
            raise SectionLockedError(section_id)
        section.content = content
        return section

    def set_title(self, section_id: str, title: str) -> DraftSection:
        section = self.get(section_id)
        section.title = title
        return section

    def _next_order(self) -> int:
        # Equals the section count while orders are contiguous from 0.
        highest = max((section.order for section in self.sections), default=-1)
        return max(len(self.sections), highest + 1)

    def add_custom(self) -> DraftSection:
        section = DraftSection(
            id=f"custom-section-{uuid.uuid4().hex[:12]}",
            title=CUSTOM_SECTION_TITLE,
            content=CUSTOM_SECTION_CONTENT,
            type="custom",
            order=self._next_order(),
            icon="lightbulb",
        )
        section.record_version("user")
        self.sections.append(section)
        self.editing_id = section.id
        return section

    def delete_section(self, section_id: str) -> DraftSection:
        section = self.get(section_id)
        if section.type != "custom":
            raise SectionNotDeletableError(section_id, "catalogue sections are permanent")
        if section.locked:
            raise SectionNotDeletableError(section_id, "section is locked")

        self.sections.remove(section)
        if self.editing_id == section_id:
            self.editing_id = None
        return section

    def reorder(self, source_id: str, target_id: str) -> bool:
        if source_id == target_id:
            return False
        ordered = self.ordered()
        ids = [section.id for section in ordered]
        if source_id not in ids or target_id not in ids:
            return False

        source_index = ids.index(source_id)
        target_index = ids.index(target_id)
        moved = ordered.pop(source_index)
        ordered.insert(target_index, moved)
        for index, section in enumerate(ordered):
            section.order = index
        self.sections = ordered
        return True

    def compile(self) -> str:
        return compile_sections(self.sections)

    def apply_refinement(self, section_id: str, content: str) -> DraftSection:
        section = self.set_content(section_id, content)
        section.record_version("ai")
        return section

    def restore_version(self, section_id: str, version_id: str) -> DraftSection:
        section = self.get(section_id)
        version = next((item for item in section.versions if item.id == version_id), None)
        if version is None:
            raise SectionNotFoundError(f"{section_id}@{version_id}")
        self.set_content(section_id, version.content)
        section.record_version("user")
        return section

    def stats(self) -> dict[str, int]:
        words = sum(len(section.content.split()) for section in self.sections)
        return {"words": words, "reading_minutes": math.ceil(words / WORDS_PER_MINUTE)}

    def section_order(self) -> list[SectionOrderEntry]:
        return [
            SectionOrderEntry(
                id=section.id, type=section.type, order=section.order, locked=section.locked
            )
            for section in self.ordered()
        ]

    def section_versions(self) -> list[SectionVersionSummary]:
        return [
            SectionVersionSummary(id=section.id, version_count=len(section.versions))
            for section in self.ordered()
        ]

    def to_payload(self) -> list[dict[str, Any]]:
        return [
            {
                "id": section.id,
                "title": section.title,
                "content": section.content,
                "type": section.type,
                "order": section.order,
                "locked": section.locked,
                "icon": section.icon,
                "editing": self.is_editing(section.id),
                "version_count": len(section.versions),
            }
            for section in self.ordered()
        ]
