"""Deduplication of classified requests into tracker groups."""

from typing import Dict, Iterable, List

from ..models.audit import ClassifiedRequest, Direction, TrackerGroup


def group_requests(
    classified: Iterable[ClassifiedRequest],
    existing: Iterable[TrackerGroup] = ()
) -> List[TrackerGroup]:
    """Group classified requests by signature key (hostname for unknowns).

    Hostnames, directions and sub-types accumulate as sets, so feeding the
    same requests again, in any order, yields the same groups.

    Args:
        classified: Classified requests to fold in
        existing: Groups from an earlier pass to merge with

    Returns:
        Groups sorted by key
    """
    accumulators: Dict[str, dict] = {}

    def _bucket(key: str, vendor: str, product, category) -> dict:
        if key not in accumulators:
            accumulators[key] = {
                "vendor": vendor,
                "product": product,
                "category": category,
                "hostnames": set(),
                "directions": set(),
                "sub_types": set(),
            }
        return accumulators[key]

    for group in existing:
        bucket = _bucket(group.key, group.vendor, group.product, group.category)
        bucket["hostnames"].update(group.hostnames)
        bucket["directions"].update(group.directions)
        bucket["sub_types"].update(group.sub_types)

    for request in classified:
        bucket = _bucket(request.key, request.vendor, request.product, request.category)
        bucket["hostnames"].add(request.hostname)
        bucket["directions"].add(request.direction)
        if request.sub_type:
            bucket["sub_types"].add(request.sub_type)

    direction_order = list(Direction)
    return [
        TrackerGroup(
            key=key,
            vendor=bucket["vendor"],
            product=bucket["product"],
            category=bucket["category"],
            hostnames=sorted(bucket["hostnames"]),
            directions=sorted(bucket["directions"], key=direction_order.index),
            sub_types=sorted(bucket["sub_types"]),
        )
        for key, bucket in sorted(accumulators.items())
    ]
