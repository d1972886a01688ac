# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Per-call region resolution.

Decides whether a bucket's region has to be discovered, and whether the
endpoint already names a region (in which case the region must not be
added to the host a second time).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from s3request.errors import RegionResolutionFailure


logger = logging.getLogger(__name__)

#: Region codes recognized inside endpoint host names.
KNOWN_REGIONS = frozenset(
    {
        "us-east-1",
        "us-east-2",
        "us-west-1",
        "us-west-2",
        "af-south-1",
        "ap-east-1",
        "ap-south-1",
        "ap-south-2",
        "ap-northeast-1",
        "ap-northeast-2",
        "ap-northeast-3",
        "ap-southeast-1",
        "ap-southeast-2",
        "ap-southeast-3",
        "ca-central-1",
        "eu-central-1",
        "eu-west-1",
        "eu-west-2",
        "eu-west-3",
        "eu-south-1",
        "eu-north-1",
        "eu-central-2",
        "me-south-1",
        "me-central-1",
        "sa-east-1",
    }
)

#: Region used when nothing else determines one.
DEFAULT_REGION = "us-east-1"

RegionDiscovery = Callable[[str], str]


class StaticRegionResolver:
    """Bucket-region discovery that always answers the same region."""

    def __init__(self, region: str = DEFAULT_REGION) -> None:
        self.region = region

    def __call__(self, bucket: str) -> str:
        return self.region


def endpoint_region(
    endpoint: str, known_regions: Iterable[str] = KNOWN_REGIONS
) -> str | None:
    """Return the first dot-separated endpoint label that is a region."""
    known = frozenset(known_regions)
    for label in endpoint.split("."):
        if label in known:
            return label
    return None


def endpoint_contains_region(
    endpoint: str, known_regions: Iterable[str] = KNOWN_REGIONS
) -> bool:
    """Check whether any dot-separated label of *endpoint* is a region.

    Labels must match exactly: ``s3.us-west-2.amazonaws.com`` contains a
    region, ``s3.us-west-2x.example.com`` does not.
    """
    return endpoint_region(endpoint, known_regions) is not None


def resolve_region(
    endpoint: str,
    supplied_region: str | None,
    bucket: str | None,
    discover: RegionDiscovery,
    known_regions: Iterable[str] = KNOWN_REGIONS,
) -> str | None:
    """Resolve the region to place in the request host.

    Args:
        endpoint: Configured endpoint host name.
        supplied_region: Region given by the caller, if any.
        bucket: Target bucket, if any.
        discover: Bucket-region discovery collaborator.
        known_regions: Region codes recognized in the endpoint.

    Returns:
        The supplied or discovered region, or ``None`` when the endpoint
        already encodes a region (or no region is known at all).

    Raises:
        RegionResolutionFailure: If discovery fails.
    """
    if endpoint_contains_region(endpoint, known_regions):
        if supplied_region is not None:
            logger.debug(
                "Endpoint %s already names a region, ignoring %s",
                endpoint,
                supplied_region,
            )
        return None

    if bucket is not None and supplied_region is None:
        try:
            return discover(bucket)
        except RegionResolutionFailure:
            raise
        except Exception as e:
            raise RegionResolutionFailure(bucket, str(e)) from e

    return supplied_region
