"""Fold operator-chosen contact channels into the creator projection."""

from __future__ import annotations

from campaign_automation.domain.models import Creator, CreatorContactPreference
from campaign_automation.domain.types import ContactMethod


def apply_preferences(
    creators: list[Creator],
    preferences: list[CreatorContactPreference],
) -> list[Creator]:
    """Return *creators* with ``contact_preference`` set from *preferences*.

    Each creator takes the method of its matching preference, or ``NONE``
    when there is none; the last entry wins when a creator appears twice.
    Preferences for creators outside *creators* are ignored.  Applying the
    same preferences again yields the same list.

    Args:
        creators: The session's creator projection.
        preferences: Operator-supplied preferences.

    Returns:
        A new list, in the original order.
    """
    by_creator = {p.creator_id: p.contact_method for p in preferences}
    return [
        creator.model_copy(
            update={"contact_preference": by_creator.get(creator.id, ContactMethod.NONE)}
        )
        for creator in creators
    ]

