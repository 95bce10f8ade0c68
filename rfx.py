"""
RfX page parsing.

An RfX page is a lead (nomination, closing time) followed by vote sections
such as ``=== Support ===``.  Every non-reply line in a vote section is one
vote, attributed to the first signature on that line.

:func:`parse_rfx` turns the wikitext into an immutable :class:`ParsedRfxPage`;
:func:`section_for` answers "where did this user vote?".
"""
from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

from rfx_config import RfxConfiguration
from signatures import first_signature

LOG = logging.getLogger(__name__)

REPLY_RE = re.compile(r"^\s*#?:")


@lru_cache(maxsize=32)
def _header_re(section_names: Tuple[str, ...]) -> re.Pattern:
    keys = "|".join(re.escape(s) for s in section_names)
    return re.compile(rf"={{1,6}}\s?({keys})\s?={{1,6}}", re.I)


@lru_cache(maxsize=32)
def _end_date_re(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.I)

###############################################################################
# Dataclasses                                                                 #
###############################################################################

@dataclass(frozen=True)
class ParsedRfxPage:
    sections: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    end_date: str | None = None
    duplicates: frozenset = field(default_factory=frozenset)

    def section(self, name: str) -> Tuple[str, ...]:
        """Signers of section ``name`` (case-insensitive); empty if absent."""
        return self.sections.get(name.lower(), ())

    def section_for(self, username: str) -> str | None:
        return section_for(self, username)


@dataclass
class RfxSummary:
    """What the vote report shows for a single page."""
    title: str
    candidate: str
    counts: Dict[str, int]
    end_date: str | None
    duplicates: List[str]
    user_section: str | None = None

    @property
    def total(self) -> int:
        return sum(self.counts.values())

###############################################################################
# Parser                                                                      #
###############################################################################

def parse_rfx(wikitext: str, config: RfxConfiguration) -> ParsedRfxPage:
    """Parse one RfX page.

    Lines are handled one at a time:

    * a heading naming a configured section switches the current section;
    * before any section, a line matching the end date pattern records the
      end date (a later match overwrites an earlier one);
    * inside a section, anything but a ``:``/``#:`` reply contributes the
      first signature on the line, if there is one.

    Everything else is ignored, so broken markup only costs the lines it
    appears on.
    """
    header_re = _header_re(config.section_names)
    date_re = _end_date_re(config.end_date_regex)

    data: Dict[str, List[str]] = {}
    end_date: str | None = None
    current = ""

    for line in wikitext.split("\n"):
        m = header_re.search(line)
        if m:
            current = m.group(1).lower()
            continue
        if not current:
            d = date_re.search(line)
            if d:
                end_date = d.group(1) if date_re.groups else d.group(0)
            continue
        if REPLY_RE.match(line):
            continue
        sig = first_signature(line)
        if sig is None:
            continue
        data.setdefault(current, []).append(sig.username.strip())

    counts = Counter(u.lower() for users in data.values() for u in users)
    duplicates = frozenset(u for u, n in counts.items() if n >= 2)

    LOG.debug(
        "Parsed RfX: %s; end date %s; %d duplicate(s)",
        ", ".join(f"{k}={len(v)}" for k, v in data.items()) or "no votes",
        end_date,
        len(duplicates),
    )
    return ParsedRfxPage(
        MappingProxyType({k: tuple(v) for k, v in data.items()}),
        end_date,
        duplicates,
    )


def section_for(parsed: ParsedRfxPage, username: str) -> str | None:
    """First section (in page order) where ``username`` signed, ignoring case."""
    wanted = username.strip().lower()
    for name, signers in parsed.sections.items():
        if any(s.lower() == wanted for s in signers):
            return name
    return None


def summarize(
    title: str,
    parsed: ParsedRfxPage,
    config: RfxConfiguration,
    prefix: str = "",
    username: str | None = None,
) -> RfxSummary:
    """Condense a parsed page into per-section counts for reporting."""
    norm = title.replace("_", " ")
    head = prefix.replace("_", " ") + "/"
    if prefix and norm.startswith(head):
        candidate = norm[len(head):]
    else:
        candidate = norm.split("/", 1)[-1]
    counts = {name.lower(): len(parsed.section(name)) for name in config.section_names}
    return RfxSummary(
        title=title,
        candidate=candidate,
        counts=counts,
        end_date=parsed.end_date,
        duplicates=sorted(parsed.duplicates),
        user_section=section_for(parsed, username) if username else None,
    )
