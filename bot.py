#!/usr/bin/env python3
"""
RfXVoteBot
========================================

Counts how a user has voted in requests for adminship (and the other RfX
types configured for a wiki). It:

* Lists the RfX pages the user edited, per configured title prefix
* Parses each page's vote sections and finds the user's signature
* Totals the user's support/oppose/neutral votes per RfX type
* Prints a wikitext (or JSON) report, optionally saving it on-wiki

Wikis without an RfX configuration are rejected up front.
"""
from __future__ import annotations

# ---------------------------------------------------------------------------
# Standard library imports
# ---------------------------------------------------------------------------
import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from typing import Dict

# ---------------------------------------------------------------------------
# Third‑party dependencies
# ---------------------------------------------------------------------------
import pywikibot
from pywikibot.site import APISite

from report import render_totals
from rfx_config import get_resolver
from vote_calculator import VoteTotals, calculator_for
from wiki import ContribsTitleFinder, PywikibotPageSource, connect

###############################################################################
# Configuration                                                               #
###############################################################################

# Default configuration values
DEFAULT_CFG = {
    "SITE": "en.wikipedia.org",
    "USER_AGENT": "RfXVoteBot/1.0",
    "TARGET_PAGE": "User:RfXVoteBot/votes/{user}",
    "HEADER_TEXT": "",
    "EDIT_SUMMARY_SUFFIX": "",
}

# Global configuration dictionary
CFG: Dict[str, object] = {}

###############################################################################
# Logging                                                                     #
###############################################################################

# ─── CUSTOM LOGGING SETUP (INFO→stdout, WARNING+→stderr) ───────────────────
class MaxLevelFilter(logging.Filter):
    """Allow through only records <= a given level."""
    def __init__(self, level: int):
        super().__init__()
        self.max_level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self.max_level

LOG = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Attach the stdout/stderr handlers to the root logger once."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else os.getenv("LOG_LEVEL", "INFO"))
    if any(isinstance(f, MaxLevelFilter) for h in root.handlers for f in h.filters):
        return

    # Handler for INFO and DEBUG → stdout
    h_info = logging.StreamHandler(sys.stdout)
    h_info.setLevel(logging.DEBUG)
    h_info.addFilter(MaxLevelFilter(logging.INFO))

    # Handler for WARNING and above → stderr
    h_err = logging.StreamHandler(sys.stderr)
    h_err.setLevel(logging.WARNING)

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    h_info.setFormatter(fmt)
    h_err.setFormatter(fmt)

    root.addHandler(h_info)
    root.addHandler(h_err)

###############################################################################
# Runtime helpers                                                             #
###############################################################################

def load_settings() -> None:
    """Load settings from environment variables, falling back to defaults."""
    CFG.update(DEFAULT_CFG.copy())
    for env_var in DEFAULT_CFG.keys():
        value = os.getenv(env_var)
        if value is not None:
            CFG[env_var] = value


def totals_to_json(result: VoteTotals) -> str:
    return json.dumps(
        {
            "totals": result.as_dict(),
            "unavailable": result.unavailable,
            "pages": {k: [asdict(p) for p in v] for k, v in result.pages.items()},
        },
        indent=2,
        ensure_ascii=False,
    )


def save_report(site: APISite, user: str, text: str, result: VoteTotals) -> bool:
    """Write the report to TARGET_PAGE; returns True if the page changed."""
    target = pywikibot.Page(site, str(CFG["TARGET_PAGE"]).format(user=user))
    current_text = target.text if target.exists() else ""
    if text == current_text:
        LOG.info("No changes detected.")
        return False
    votes = sum(t.get("total", 0) for t in result.totals.values())
    summary = f"updating RfX votes for {user} ({votes} votes) {CFG['EDIT_SUMMARY_SUFFIX']}".strip()
    target.text = text
    target.save(summary=summary, minor=False, botflag=False)
    LOG.info("Updated %s.", target.title())
    return True


def run(user: str, domain: str, save: bool = False, as_json: bool = False) -> int:
    """
    Count ``user``'s votes on ``domain`` and print the report.

    Returns the process exit status: 0 on success, 1 when some RfX type
    could not be checked, 2 when the wiki has no RfX configuration.
    """
    source = PywikibotPageSource()
    finder = ContribsTitleFinder(source)
    calc = calculator_for(get_resolver(), domain, finder, source)
    if calc is None:
        LOG.error("%s is not configured for the RfX vote calculator.", domain)
        return 2

    site = connect(domain, str(CFG["USER_AGENT"]))

    result = calc.compute_totals(site, user)
    if as_json:
        text = totals_to_json(result)
    else:
        ns_name = finder.namespace_name(site, calc.config.namespace_id)
        text = render_totals(result, user, calc.config, ns_name, str(CFG["HEADER_TEXT"]))
    print(text)

    if save and not as_json:
        save_report(site, user, text, result)

    for prefix, reason in result.unavailable.items():
        LOG.warning("%s could not be checked: %s", prefix, reason)
    return 0 if result.complete else 1


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="RfXVoteBot 1.0")
    ap.add_argument("username", help="user whose RfX votes to count")
    ap.add_argument("--site", help="wiki host, e.g. en.wikipedia.org (default: $SITE)")
    ap.add_argument("--save", action="store_true", help="save the report to TARGET_PAGE")
    ap.add_argument("--json", action="store_true", help="print JSON instead of wikitext")
    ap.add_argument("--debug", action="store_true", help="verbose debug logging")
    args = ap.parse_args(argv)

    setup_logging(args.debug)
    load_settings()
    domain = args.site or str(CFG["SITE"])
    return run(args.username, domain, save=args.save, as_json=args.json)

###############################################################################
# CLI entry‑point                                                             #
###############################################################################

if __name__ == "__main__":
    sys.exit(main())
