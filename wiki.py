"""
pywikibot-backed collaborators for the vote calculator.

* :class:`ContribsTitleFinder` lists the RfX pages a user has edited, using
  the user's contributions in the RfX namespace.
* :class:`PywikibotPageSource` fetches page wikitext, preloading it in
  batches when the finder hands it a list of titles up front.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence

import pywikibot
from pywikibot.exceptions import Error as PywikibotError
from pywikibot.exceptions import IsRedirectPageError, NoPageError
from pywikibot.site import APISite

from rfx_config import ExclusionRules
from vote_calculator import PageFetchError, TitleDiscoveryError, qualify_title

LOG = logging.getLogger(__name__)

# Titles per preload request; long title lists make the request URI too long.
PRELOAD_BATCH = 20


def _norm(title: str) -> str:
    return title.replace("_", " ").strip()


def connect(domain: str, user_agent: str | None = None) -> APISite:
    """
    Build a pywikibot site for a host such as "en.wikipedia.org".

    Read-only use needs no login; pywikibot picks up credentials from its
    own user-config when saving.
    """
    host = domain.lower()
    # crude parse: "<code>.wikipedia.org" → ("en", "wikipedia")
    if host.endswith(".org"):
        parts = host.split(".")
        code = parts[0]
        family = parts[1] if len(parts) > 1 else "wikipedia"
    else:
        code, family = "en", "wikipedia"

    if user_agent:
        try:
            import pywikibot.config as pwb_config
            pwb_config.user_agent_description = user_agent
        except Exception:
            LOG.debug("Could not set custom user-agent via pywikibot.config; ignoring.")

    return pywikibot.Site(code=code, fam=family)


class PywikibotPageSource:
    def __init__(self) -> None:
        self._cache: Dict[str, str] = {}

    def prefetch(self, site: APISite, titles: Iterable[str]) -> None:
        """Load the wikitext of ``titles`` in batches of PRELOAD_BATCH."""
        pages = [pywikibot.Page(site, t) for t in titles if _norm(t) not in self._cache]
        if not pages:
            return
        try:
            for page in site.preloadpages(pages, groupsize=PRELOAD_BATCH):
                if page.exists() and not page.isRedirectPage():
                    self._cache[_norm(page.title())] = page.text
        except PywikibotError as e:
            # fetch() retries page by page
            LOG.warning("Preloading %d page(s) failed: %s", len(pages), e)

    def fetch(self, site: APISite, title: str) -> str:
        key = _norm(title)
        if key in self._cache:
            return self._cache.pop(key)
        try:
            return pywikibot.Page(site, title).get()
        except NoPageError as e:
            raise PageFetchError(f"{title} does not exist") from e
        except IsRedirectPageError as e:
            raise PageFetchError(f"{title} is a redirect") from e
        except PywikibotError as e:
            raise PageFetchError(f"{title}: {e}") from e


class ContribsTitleFinder:
    """
    Find RfX pages through the user's contributions.

    A page qualifies when it sits under ``prefix/``, is not the user's own
    request (``prefix/Username...``), is not one of the excluded titles and
    does not contain any excluded pattern.  Spaces and underscores are
    interchangeable everywhere.  Titles come back without their namespace,
    in the order the user first edited them (newest first).
    """

    def __init__(self, page_source: PywikibotPageSource | None = None):
        self.page_source = page_source

    def namespace_name(self, site: APISite, namespace_id: int) -> str:
        return site.namespace(namespace_id)

    def find(
        self,
        site: APISite,
        user: str,
        namespace_id: int,
        prefix: str,
        exclusions: ExclusionRules,
    ) -> Sequence[str]:
        head = _norm(prefix) + "/"
        own = head + _norm(user)
        excluded = {_norm(t) for t in exclusions.titles}
        patterns = [_norm(p) for p in exclusions.patterns]

        titles: List[str] = []
        seen = set()
        try:
            for contrib in site.usercontribs(user=user, namespaces=[namespace_id]):
                full = _norm(contrib["title"])
                title = full.split(":", 1)[1] if namespace_id and ":" in full else full
                if title in seen or not title.startswith(head):
                    continue
                seen.add(title)
                if own in title or title in excluded or any(p in title for p in patterns):
                    LOG.debug("Excluding %s", title)
                    continue
                titles.append(title)
        except PywikibotError as e:
            raise TitleDiscoveryError(f"contributions of {user} under {prefix}: {e}") from e

        LOG.debug("Found %d %s page(s) edited by %s", len(titles), prefix, user)
        if self.page_source is not None and titles:
            ns_name = self.namespace_name(site, namespace_id)
            self.page_source.prefetch(site, [qualify_title(ns_name, t) for t in titles])
        return titles
