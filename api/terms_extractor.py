"""Reduce a terms aggregation into label/value suggestions."""

from connector_models import SuggestionItem

TERMS_AGG_NAME = "1"


def extract_suggestions(response_slot: dict, agg_name: str = TERMS_AGG_NAME) -> list[SuggestionItem]:
    """Return one suggestion per bucket, in bucket order.

    A missing aggregation means nothing matched and yields an empty list.
    """
    aggregations = response_slot.get("aggregations") or {}
    terms = aggregations.get(agg_name)
    if not terms:
        return []
    return [
        SuggestionItem(
            label=bucket.get("key_as_string") or bucket["key"],
            value=bucket["key"],
        )
        for bucket in terms.get("buckets", [])
    ]
