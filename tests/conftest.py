"""Shared pytest fixtures for RfXVoteBot tests."""

import os
from typing import Dict, List

import pytest
from unittest.mock import MagicMock

# pywikibot refuses to import without a user-config.py unless told otherwise.
os.environ.setdefault("PYWIKIBOT_NO_USER_CONFIG", "1")

from rfx_config import RfxConfiguration
from vote_calculator import PageFetchError, TitleDiscoveryError


@pytest.fixture
def config():
    """The minimal three-section configuration used throughout the tests."""
    return RfxConfiguration(
        section_names=("Support", "Oppose", "Neutral"),
        end_date_regex=r"Scheduled to end (\d{1,2}:\d{2}, \d{1,2} \w+ \d{4}) \(UTC\)",
        namespace_id=4,
        page_prefixes=("RfA",),
    )


class FakeTitleFinder:
    """In-memory TitleFinder: titles per prefix, or an exception to raise."""

    def __init__(self, titles: Dict[str, object], ns_name: str = "Wikipedia"):
        self.titles = titles
        self.ns_name = ns_name
        self.calls: List[tuple] = []

    def find(self, project, user, namespace_id, prefix, exclusions):
        self.calls.append((project, user, namespace_id, prefix, exclusions))
        found = self.titles.get(prefix, [])
        if isinstance(found, Exception):
            raise found
        return list(found)

    def namespace_name(self, project, namespace_id):
        return self.ns_name


class FakePageSource:
    """In-memory PageSource keyed by namespace-qualified title."""

    def __init__(self, pages: Dict[str, str]):
        self.pages = pages
        self.fetched: List[str] = []

    def fetch(self, project, title):
        self.fetched.append(title)
        if title not in self.pages:
            raise PageFetchError(f"{title} does not exist")
        return self.pages[title]


@pytest.fixture
def fake_finder():
    return FakeTitleFinder


@pytest.fixture
def fake_source():
    return FakePageSource


@pytest.fixture
def discovery_error():
    return TitleDiscoveryError("query failed")


@pytest.fixture
def mock_site():
    """Create a mock pywikibot APISite."""
    site = MagicMock()
    site.hostname.return_value = "en.wikipedia.org"
    site.namespace.return_value = "Wikipedia"
    return site
