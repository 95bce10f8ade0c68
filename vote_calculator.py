"""
RfX vote calculator.

For one user on one project, find every RfX page of each configured type the
user edited, work out which section (support, oppose, ...) they voted in, and
total the votes per type.

Title discovery and page retrieval are supplied by the caller through the
:class:`TitleFinder` and :class:`PageSource` protocols (see ``wiki.py`` for
the pywikibot-backed ones), so everything here can run against fakes.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Protocol, Sequence, runtime_checkable

from rfx import RfxSummary, parse_rfx, section_for, summarize
from rfx_config import ExclusionRules, RfxConfigResolver, RfxConfiguration

LOG = logging.getLogger(__name__)

###############################################################################
# Errors                                                                      #
###############################################################################

class RfxError(Exception):
    """Base class for failures talking to the wiki."""


class TitleDiscoveryError(RfxError):
    """Candidate pages for an RfX type could not be listed."""


class PageFetchError(RfxError):
    """A single RfX page could not be retrieved."""

###############################################################################
# Collaborators                                                               #
###############################################################################

@runtime_checkable
class TitleFinder(Protocol):
    def find(
        self,
        project: object,
        user: str,
        namespace_id: int,
        prefix: str,
        exclusions: ExclusionRules,
    ) -> Sequence[str]:
        """Titles (without namespace) under ``prefix/`` that ``user`` edited."""
        ...

    def namespace_name(self, project: object, namespace_id: int) -> str:
        """Local name of the namespace, '' for the main namespace."""
        ...


@runtime_checkable
class PageSource(Protocol):
    def fetch(self, project: object, title: str) -> str:
        """Wikitext of the namespace-qualified ``title``; PageFetchError if missing."""
        ...


def qualify_title(ns_name: str, title: str) -> str:
    return f"{ns_name}:{title}" if ns_name else title

###############################################################################
# Results                                                                     #
###############################################################################

@dataclass
class VoteTotals:
    """Vote counts keyed by RfX type, then by section (plus ``total``).

    ``unavailable`` lists the types whose pages could not be discovered;
    they are missing from ``totals`` rather than reported as zero.
    """
    totals: Dict[str, Dict[str, int]] = field(default_factory=dict)
    unavailable: Dict[str, str] = field(default_factory=dict)
    pages: Dict[str, List[RfxSummary]] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.unavailable

    def as_dict(self) -> Dict[str, Dict[str, int]]:
        return {prefix: dict(counts) for prefix, counts in self.totals.items()}

###############################################################################
# Calculator                                                                  #
###############################################################################

class RfxVoteCalculator:
    def __init__(
        self,
        title_finder: TitleFinder,
        page_source: PageSource,
        config: RfxConfiguration,
    ):
        self.title_finder = title_finder
        self.page_source = page_source
        self.config = config

    def compute_totals(
        self,
        project: object,
        user: str,
        cancel: threading.Event | None = None,
    ) -> VoteTotals:
        result = VoteTotals()
        ns_name = self.title_finder.namespace_name(project, self.config.namespace_id)

        for prefix in self.config.page_prefixes:
            if cancel is not None and cancel.is_set():
                result.unavailable[prefix] = "cancelled"
                continue
            try:
                titles = self.title_finder.find(
                    project,
                    user,
                    self.config.namespace_id,
                    prefix,
                    self.config.exclusion_rules,
                )
            except TitleDiscoveryError as e:
                LOG.warning("Could not list %s pages for %s: %s", prefix, user, e)
                result.unavailable[prefix] = str(e)
                continue

            LOG.info("Checking %d %s page(s) for %s", len(titles), prefix, user)
            counts, pages, finished = self._tally(project, user, prefix, ns_name, titles, cancel)
            if not finished:
                result.unavailable[prefix] = "cancelled"
                continue
            result.totals[prefix] = counts
            result.pages[prefix] = pages

        return result

    def _tally(
        self,
        project: object,
        user: str,
        prefix: str,
        ns_name: str,
        titles: Sequence[str],
        cancel: threading.Event | None,
    ) -> tuple[Dict[str, int], List[RfxSummary], bool]:
        counts: Dict[str, int] = {}
        pages: List[RfxSummary] = []
        for title in titles:
            if cancel is not None and cancel.is_set():
                LOG.info("Cancelled while counting %s pages", prefix)
                return counts, pages, False
            full_title = qualify_title(ns_name, title)
            try:
                text = self.page_source.fetch(project, full_title)
            except PageFetchError as e:
                LOG.warning("Skipping %s: %s", full_title, e)
                continue

            parsed = parse_rfx(text, self.config)
            section = section_for(parsed, user)
            if section is None:
                # didn't !vote
                continue

            counts[section] = counts.get(section, 0) + 1
            counts["total"] = counts.get("total", 0) + 1
            pages.append(summarize(title, parsed, self.config, prefix, user))
        return counts, pages, True


def is_configured(resolver: RfxConfigResolver, domain: str) -> bool:
    return resolver.is_configured(domain)


def calculator_for(
    resolver: RfxConfigResolver,
    domain: str,
    title_finder: TitleFinder,
    page_source: PageSource,
) -> RfxVoteCalculator | None:
    """Build a calculator for ``domain``, or None if the tool is unsupported there."""
    config = resolver.config_for(domain)
    if config is None:
        return None
    return RfxVoteCalculator(title_finder, page_source, config)
