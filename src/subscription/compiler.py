"""Compile subscription filter lists into store predicates.

Each non-empty filter family (keywords, tags, authors) becomes an OR group
over the content type's searchable fields, and the groups are AND-combined.
Keywords are split on whitespace, so ``["large model"]`` matches items
mentioning either word.
"""

import json
from dataclasses import dataclass
from typing import Any

from src.store.models import ContentType, Subscription
from src.store.predicates import AllOf, AnyOf, Contains, Equals, Predicate
from src.subscription.errors import InvalidFilterError


@dataclass(frozen=True)
class FieldMap:
    """Searchable fields of one content family."""

    keyword_fields: tuple[str, ...]
    tag_field: str | None = "tags"
    # Subscription list feeding the author group, if the family has one
    author_source: str | None = None
    required: tuple[Predicate, ...] = ()


FIELD_MAPS: dict[ContentType, FieldMap] = {
    ContentType.PAPER: FieldMap(("title", "summary"), author_source="authors"),
    ContentType.VIDEO: FieldMap(("title",), author_source="uploaders"),
    ContentType.REPO: FieldMap(("title", "summary"), author_source="owners"),
    ContentType.MODEL: FieldMap(("title",)),
    ContentType.JOB: FieldMap(
        ("title", "summary", "company"),
        required=(Equals("status", "open"),),
    ),
    ContentType.POST: FieldMap(
        ("title", "summary"),
        required=(Equals("status", "active"),),
    ),
    ContentType.NEWS: FieldMap(("title", "summary"), tag_field=None),
}


def parse_filter_list(field: str, value: Any) -> list[str]:
    """Decode one filter list.

    Args:
        field: Field name, for error reporting.
        value: A list, a JSON-encoded list, or None.

    Returns:
        Non-empty, stripped strings.

    Raises:
        InvalidFilterError: If a string is not valid JSON or the value is
            not a list.
    """
    if value is None:
        return []
    if isinstance(value, str):
        if not value.strip():
            return []
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise InvalidFilterError(field, f"malformed JSON: {e.msg}") from e
    if not isinstance(value, list):
        raise InvalidFilterError(field, f"expected a list, got {type(value).__name__}")
    return [str(v).strip() for v in value if str(v).strip()]


def expand_keywords(keywords: list[str]) -> list[str]:
    """Split keywords on whitespace, keeping first occurrences in order."""
    terms: list[str] = []
    for keyword in keywords:
        for term in keyword.split():
            if term not in terms:
                terms.append(term)
    return terms


def _group(fields: tuple[str, ...], terms: list[str]) -> AnyOf:
    return AnyOf(tuple(Contains(f, term) for term in terms for f in fields))


def compile_filter(
    content_type: ContentType | str,
    keywords: Any = None,
    tags: Any = None,
    authors: Any = None,
    uploaders: Any = None,
    owners: Any = None,
) -> Predicate:
    """Build the predicate for a family and raw filter lists.

    Args:
        content_type: Target content family.
        keywords: Free-text terms.
        tags: Tag terms.
        authors: Paper authors.
        uploaders: Video uploaders.
        owners: Repository owners.

    Returns:
        An AllOf of the required family conditions and one AnyOf per
        non-empty filter family. With nothing to filter on, every item of
        the family (subject to the required conditions) matches.

    Raises:
        InvalidFilterError: If the content type is unknown or a list
            cannot be decoded.
    """
    try:
        family = ContentType(content_type)
    except ValueError as e:
        raise InvalidFilterError(
            "content_type", f"unknown content type '{content_type}'"
        ) from e

    mapping = FIELD_MAPS[family]
    lists = {
        "authors": parse_filter_list("authors", authors),
        "uploaders": parse_filter_list("uploaders", uploaders),
        "owners": parse_filter_list("owners", owners),
    }
    groups: list[Predicate] = list(mapping.required)

    terms = expand_keywords(parse_filter_list("keywords", keywords))
    if terms:
        groups.append(_group(mapping.keyword_fields, terms))

    tag_terms = parse_filter_list("tags", tags)
    if tag_terms and mapping.tag_field:
        groups.append(_group((mapping.tag_field,), tag_terms))

    if mapping.author_source and lists[mapping.author_source]:
        groups.append(_group(("authors",), lists[mapping.author_source]))

    return AllOf(tuple(groups))


def compile_subscription(subscription: Subscription) -> Predicate:
    """Build the predicate for a stored subscription."""
    return compile_filter(
        subscription.content_type,
        keywords=subscription.keywords,
        tags=subscription.tags,
        authors=subscription.authors,
        uploaders=subscription.uploaders,
        owners=subscription.owners,
    )
