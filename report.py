"""Wikitext rendering of vote totals."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import ClassVar, Dict, List

import mwparserfromhell as mwpfh

from rfx import RfxSummary
from rfx_config import RfxConfiguration
from vote_calculator import VoteTotals, qualify_title


def slugify(s: str) -> str:
    """Convert a heading into a MediaWiki anchor (no spaces, punctuation stripped)."""
    text = mwpfh.parse(s).strip_code()
    return re.sub(r"\s+", "_", text).strip("_")


def plain(s: str | None) -> str:
    """Drop wiki markup (bold, links, templates) from a captured snippet."""
    if not s:
        return ""
    return mwpfh.parse(s).strip_code().strip()


@dataclass
class TypeTable:
    prefix: str
    sections: List[str]
    counts: Dict[str, int]
    pages: List[RfxSummary]
    ns_name: str = ""
    unavailable: str | None = None

    SUMMARY_HEADER: ClassVar[str] = "{| class=\"wikitable\"\n"
    PAGES_HEADER: ClassVar[str] = "{| class=\"wikitable sortable\"\n"

    def to_wikitext(self) -> str:
        heading_line = f"== {self.prefix.replace('_', ' ')} =="
        if self.unavailable is not None:
            return heading_line + f"\n''Could not be checked ({self.unavailable}).''"
        if not self.counts:
            return heading_line + "\n''No votes found.''"

        cols = self.sections + ["total"]
        summary = (
            self.SUMMARY_HEADER
            + "! " + " !! ".join(c.capitalize() for c in cols) + "\n"
            + "|-\n| " + " || ".join(str(self.counts.get(c, 0)) for c in cols)
            + "\n|}"
        )

        rows = []
        for p in self.pages:
            link = qualify_title(self.ns_name, p.title)
            vote = p.user_section or ""
            anchor = slugify(vote.capitalize()) if vote else ""
            target = f"{link}#{anchor}" if anchor else link
            dupes = ", ".join(f"[[User:{d}|{d}]]" for d in p.duplicates)
            rows.append(
                f"|-\n"
                f"| [[{link}|{p.candidate}]] "
                f"|| [[{target}|{vote}]] "
                + "".join(f"|| {p.counts.get(s, 0)} " for s in self.sections)
                + f"|| {plain(p.end_date)} || {dupes}"
            )
        pages = (
            self.PAGES_HEADER
            + "! Candidate !! Vote !! "
            + "".join(f"{s.capitalize()} !! " for s in self.sections)
            + "End date !! Duplicate voters\n"
            + "\n".join(rows)
            + "\n|}"
        )
        return heading_line + "\n" + summary + "\n\n" + pages


def render_totals(
    result: VoteTotals,
    user: str,
    config: RfxConfiguration,
    ns_name: str = "",
    header: str = "",
) -> str:
    """Build the whole report: one block per configured RfX type."""
    sections = [s.lower() for s in config.section_names]
    blocks: List[str] = [header] if header else []
    blocks.append(f"RfX votes by [[User:{user}|{user}]].")
    for prefix in config.page_prefixes:
        table = TypeTable(
            prefix,
            sections,
            result.totals.get(prefix, {}),
            result.pages.get(prefix, []),
            ns_name,
            result.unavailable.get(prefix),
        )
        blocks.append(table.to_wikitext())
    return "\n\n".join(blocks)
