from models.snapshot import ActiveSet, ExternalOrderSnapshot


def resolve_active_set(snapshot: ExternalOrderSnapshot) -> ActiveSet:
    """Split a snapshot's line items into active (fulfillable_quantity > 0) and inactive.

    Partially fulfilled means both groups are non-empty and at least one line
    item anywhere carries a fulfillment status. Without that status, missing
    items were removed rather than shipped.
    """
    active = [li for li in snapshot.line_items if li.fulfillable_quantity > 0]
    inactive = [li for li in snapshot.line_items if li.fulfillable_quantity <= 0]
    any_fulfilled = any(li.fulfillment_status for li in snapshot.line_items)
    return ActiveSet(
        active=active,
        inactive=inactive,
        is_partially_fulfilled=bool(active) and bool(inactive) and any_fulfilled
    )
