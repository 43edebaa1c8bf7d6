"""Glob based exclusion rules for the content tree.

Rules come from an optional ``gallerymd.config.json`` document in the
content root::

    {
      "filters": {
        "excludePaths": ["**/drafts/**"],
        "excludePatterns": {"CASESTUDY.md": ["archive/*/CASESTUDY.md"]}
      }
    }

The two keys may also sit at the top level of the document.
"""

from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from casegallery.models import FilterRules

LOGGER = logging.getLogger(__name__)

CONFIG_FILENAME = "gallerymd.config.json"

DEFAULT_EXCLUDE_PATHS = (
    "**/runner-data*/**",
    "**/node_modules/**",
    "**/.git/**",
)

DEFAULT_RULES = FilterRules(exclude_paths=DEFAULT_EXCLUDE_PATHS)


class FilterConfigError(RuntimeError):
    """Raised when a filter configuration document exists but is unusable."""


class FilterSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    exclude_paths: List[str] = Field(default_factory=list, alias="excludePaths")
    exclude_patterns: Dict[str, List[str]] = Field(
        default_factory=dict, alias="excludePatterns"
    )


class FilterDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    filters: FilterSection | None = None


def _parse_document(payload: object) -> FilterRules:
    if not isinstance(payload, dict):
        raise FilterConfigError("Filter configuration must be a JSON object")
    if "filters" in payload:
        section = FilterDocument.model_validate(payload).filters or FilterSection()
    else:
        section = FilterSection.model_validate(payload)
    return FilterRules(
        exclude_paths=tuple(section.exclude_paths),
        exclude_patterns={
            name: tuple(patterns) for name, patterns in section.exclude_patterns.items()
        },
    )


def load_filter_rules(root: Path) -> FilterRules:
    """Load exclusion rules from ``root``, falling back to the defaults."""
    config_path = Path(root) / CONFIG_FILENAME
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        LOGGER.info("Using default filter configuration")
        return DEFAULT_RULES
    except OSError as exc:
        raise FilterConfigError(f"Unable to read {CONFIG_FILENAME}: {exc}") from exc

    try:
        rules = _parse_document(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise FilterConfigError(f"Invalid {CONFIG_FILENAME}: {exc}") from exc

    LOGGER.info("Loaded %s", CONFIG_FILENAME)
    return rules


def normalize_separators(path: str) -> str:
    return path.replace("\\", "/")


@lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a glob into an anchored regular expression.

    ``**/`` matches zero or more leading directories, any other ``**``
    matches across separators, ``*`` stays inside one segment and ``?``
    matches a single character. Everything else is literal.
    """
    pattern = normalize_separators(pattern)
    parts: List[str] = []
    i = 0
    length = len(pattern)
    while i < length:
        char = pattern[i]
        if char == "*":
            if pattern.startswith("**", i):
                if pattern.startswith("**/", i):
                    parts.append("(?:.*/)?")
                    i += 3
                else:
                    parts.append(".*")
                    i += 2
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("".join(parts), re.DOTALL)


def matches_pattern(path: str, pattern: str) -> bool:
    return glob_to_regex(pattern).fullmatch(normalize_separators(path)) is not None


def should_exclude(relative_path: str, rules: FilterRules, filename: str | None = None) -> bool:
    """Return True if ``relative_path`` is excluded by ``rules``.

    General rules are checked first; filename-scoped rules are checked in
    addition when ``filename`` has any.
    """
    normalized = normalize_separators(str(relative_path))

    for pattern in rules.exclude_paths:
        if matches_pattern(normalized, pattern):
            return True

    for pattern in rules.patterns_for(filename):
        if matches_pattern(normalized, pattern):
            return True

    return False
