"""
Download Mirrors.

Rewrites code-hosting download URLs to mirror hosts. The installer uses this
for its single retry after a failed download.
"""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class MirrorRule:
    """
    One URL substitution.

    Attributes:
        pattern: Regex matched against the start of the URL
        replacement: re.sub replacement template
    """

    pattern: str
    replacement: str

    def apply(self, url: str) -> str:
        return re.sub(self.pattern, self.replacement, url, count=1)


MIRROR_RULES: tuple[MirrorRule, ...] = (
    # Raw content
    MirrorRule(r"^https://raw\.githubusercontent\.com", "https://raw.fastgit.org"),
    # Raw files served from the repository page
    MirrorRule(
        r"^https://(?:gitee|github)\.com/([^/]+)/([^/]+)/raw",
        r"https://raw.fastgit.org/\1/\2",
    ),
    # Release assets
    MirrorRule(
        r"^https://github\.com/([^/]+)/([^/]+)/releases/download",
        r"https://download.fastgit.org/\1/\2/releases/download",
    ),
)


def rewrite_url(url: str, rules: tuple[MirrorRule, ...] = MIRROR_RULES) -> str:
    """
    Apply every mirror rule in order.

    Args:
        url: Original download URL
        rules: Substitutions to apply

    Returns:
        Rewritten URL (unchanged if no rule matches)
    """
    for rule in rules:
        url = rule.apply(url)
    return url
