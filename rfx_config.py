"""
Per-project RfX configuration.

Each wiki that runs RfXs lays its pages out differently: which sections hold
the votes, how the closing time is announced, which namespace and title
prefixes the requests live under, and which pages under those prefixes are
not requests at all (headers, archives, talk subpages).  This module holds
that configuration and resolves it by project domain.
"""
from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Iterable, Mapping, Tuple

LOG = logging.getLogger(__name__)

###############################################################################
# Configuration store                                                         #
###############################################################################

# Keyed by project domain.  Field names follow the store format used by the
# JSON file named in RFX_CONFIG_FILE.
DEFAULT_RFX_CONFIG: Dict[str, Dict[str, object]] = {
    "en.wikipedia.org": {
        "sections": ["Support", "Oppose", "Neutral"],
        "date_regexp": r"Scheduled to end (\d{1,2}:\d{2}, \d{1,2} \w+ \d{4}) \(UTC\)",
        "rfx_namespace": 4,
        "pages": ["Requests_for_adminship", "Requests_for_bureaucratship"],
        "excluded_title": [
            "Requests_for_adminship/Front_matter",
            "Requests_for_adminship/Header",
            "Requests_for_adminship/Nomination_standards",
            "Requests_for_adminship/Bureaucratship",
            "Requests_for_bureaucratship/Header",
        ],
        "excluded_regex": [
            "RfA_analysis",
            "Bureaucrat_discussion",
            "/Optional_RfA_candidate_poll",
        ],
    },
}


class RfxConfigError(ValueError):
    """A configuration entry is malformed."""


@dataclass(frozen=True)
class ExclusionRules:
    titles: frozenset = field(default_factory=frozenset)
    patterns: frozenset = field(default_factory=frozenset)


@dataclass(frozen=True)
class RfxConfiguration:
    section_names: Tuple[str, ...]
    end_date_regex: str
    namespace_id: int
    page_prefixes: Tuple[str, ...]
    excluded_titles: frozenset = field(default_factory=frozenset)
    excluded_title_patterns: frozenset = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not self.section_names:
            raise RfxConfigError("at least one section name is required")
        try:
            re.compile(self.end_date_regex)
        except re.error as e:
            raise RfxConfigError(f"invalid end date pattern {self.end_date_regex!r}: {e}") from e

    @property
    def exclusion_rules(self) -> ExclusionRules:
        return ExclusionRules(self.excluded_titles, self.excluded_title_patterns)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object]) -> "RfxConfiguration":
        """Build a configuration from a store entry (``sections``, ``date_regexp`` ...)."""
        try:
            sections = _strings(raw["sections"])
            date_regexp = str(raw["date_regexp"])
            namespace = int(raw.get("rfx_namespace", 4))  # type: ignore[arg-type]
            pages = _strings(raw["pages"])
        except KeyError as e:
            raise RfxConfigError(f"missing required key {e.args[0]!r}") from e
        except (TypeError, ValueError) as e:
            raise RfxConfigError(str(e)) from e
        return cls(
            section_names=tuple(dict.fromkeys(sections)),
            end_date_regex=date_regexp,
            namespace_id=namespace,
            page_prefixes=tuple(pages),
            excluded_titles=frozenset(_strings(raw.get("excluded_title", []))),
            excluded_title_patterns=frozenset(_strings(raw.get("excluded_regex", []))),
        )


def _strings(value: object) -> Tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise RfxConfigError(f"expected a list of strings, got {value!r}")
    return tuple(str(v) for v in value)

###############################################################################
# Resolver                                                                    #
###############################################################################

class RfxConfigResolver:
    """Look up the RfX configuration of a project by its domain.

    Entries are converted on first use and kept for the lifetime of the
    resolver.  An unknown domain is not an error: it just means the tool is
    not available on that wiki.
    """

    def __init__(self, store: Mapping[str, Mapping[str, object]]):
        self._store = {k.lower(): v for k, v in store.items()}
        self._cache: Dict[str, RfxConfiguration] = {}

    def config_for(self, domain: str) -> RfxConfiguration | None:
        key = domain.lower()
        if key in self._cache:
            return self._cache[key]
        raw = self._store.get(key)
        if raw is None:
            LOG.debug("No RfX configuration for %s", domain)
            return None
        cfg = RfxConfiguration.from_mapping(raw)
        self._cache[key] = cfg
        return cfg

    def is_configured(self, domain: str) -> bool:
        return domain.lower() in self._store

    def domains(self) -> Tuple[str, ...]:
        return tuple(self._store)


def load_store(path: str) -> Dict[str, Dict[str, object]]:
    """Read a JSON configuration store keyed by project domain."""
    with open(os.path.expanduser(path), encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise RfxConfigError(f"{path}: top level must be an object keyed by domain")
    return data


@lru_cache(maxsize=1)
def get_resolver() -> RfxConfigResolver:
    """Process-wide resolver: built-in entries, overridden by RFX_CONFIG_FILE."""
    store: Dict[str, Dict[str, object]] = dict(DEFAULT_RFX_CONFIG)
    path = os.getenv("RFX_CONFIG_FILE")
    if path:
        extra = load_store(path)
        LOG.info("Loaded RfX configuration for %d project(s) from %s", len(extra), path)
        store.update(extra)
    return RfxConfigResolver(store)
