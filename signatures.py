"""
Signature detection for RfX discussion wikitext.

Finds every user signature on a single line of wikitext. The idioms
recognised are the ones seen on vote pages in practice:

* ``[[User:X]]`` / ``[[User talk:X]]`` wikilinks (optionally piped)
* ``{{fullurl:User:X}}`` and unsubstituted ``{{unsigned|X}}``
* ``{{User:X/sig}}`` style custom signature templates
* unsubstituted ``{{unsigned2|date|X}}``
* ``[[User:X/sig]]`` signature subpage links

All matches are returned in document order together with the position of the
username in the line; callers decide which one to attribute the line to.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

###############################################################################
# Regex helpers & constants                                                   #
###############################################################################

_USER_NS = r"User(?:[\s_]talk)?"

SIG_RE = re.compile(
    # 1: [[User:X]], [[User talk:X|label]]
    rf"\[\[{_USER_NS}:([^\]|/]*)(?:\|[^\]]*)?\]\]"
    # 2: {{fullurl:User:X}}, {{unsigned|X}}, {{unsigned|X|date}}
    rf"|\{{\{{(?:fullurl:{_USER_NS}:|unsigned\|)([^}}|]*)(?:\|[^}}]*)?\}}\}}"
    # 3: {{User:X/sig}}, {{User talk:X}}
    rf"|\{{\{{{_USER_NS}:([^}}/|]*)"
    # 4: {{unsigned2|date|X}}
    r"|\{\{unsigned2\|[^|}]*\|([^}|]*)"
    # 5: [[User:X/sig]]
    r"|\[\[User:([^\]/|]*)/sig[|\]]",
    re.I,
)

_SEPARATORS = "/|[]{}"


@dataclass(frozen=True)
class Signature:
    username: str
    offset: int


def _clean(raw: str) -> str:
    return raw.strip().strip(_SEPARATORS).strip()


def find_signatures(line: str) -> List[Signature]:
    """Return every signature on ``line`` in document order.

    ``offset`` is the character index of the username inside ``line``.
    Malformed or signature-free text simply yields an empty list.
    """
    if not line:
        return []
    sigs: List[Signature] = []
    for m in SIG_RE.finditer(line):
        group = m.lastindex
        if group is None:
            continue
        username = _clean(m.group(group))
        if username:
            sigs.append(Signature(username, m.start(group)))
    return sigs


def first_signature(line: str) -> Signature | None:
    """Convenience wrapper: the earliest signature on ``line``, if any."""
    m = find_signatures(line)
    return m[0] if m else None
