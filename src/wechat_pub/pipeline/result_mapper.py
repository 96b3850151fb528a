"""Turns upload outcomes into the lookup tables used for content rewriting."""

from __future__ import annotations

from collections.abc import Iterable

from wechat_pub.core.types import UploadOutcome


def build_mapping(outcomes: Iterable[UploadOutcome]) -> dict[str, str]:
    """Map each successfully uploaded reference to its remote URL.

    Failed outcomes are omitted; deciding whether an omission is fatal is
    left to the caller. When a reference occurs more than once, the first
    successful occurrence is kept.
    """
    mapping: dict[str, str] = {}
    for outcome in outcomes:
        url = outcome.url
        if url and outcome.reference not in mapping:
            mapping[outcome.reference] = url
    return mapping


def build_media_mapping(outcomes: Iterable[UploadOutcome]) -> dict[str, str]:
    """Map each successfully uploaded reference to its permanent media id."""
    mapping: dict[str, str] = {}
    for outcome in outcomes:
        media_id = outcome.media_id
        if media_id and outcome.reference not in mapping:
            mapping[outcome.reference] = media_id
    return mapping


def failed_outcomes(outcomes: Iterable[UploadOutcome]) -> list[UploadOutcome]:
    return [o for o in outcomes if not o.ok]
