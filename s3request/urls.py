# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Path-style request URL construction.

Buckets and objects always go in the path
(``https://s3.<region>.<endpoint>/<bucket>/<object>``), never in a
virtual-host subdomain.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from s3request.signing import uri_encode


QueryValue = str | Sequence[str] | None
Queries = Mapping[str, QueryValue]


def build_host(endpoint: str, region: str | None) -> str:
    """Insert *region* into the endpoint host name.

    ``s3.amazonaws.com`` + ``us-west-2`` -> ``s3.us-west-2.amazonaws.com``;
    ``minio.local`` + ``eu-west-1`` -> ``s3.eu-west-1.minio.local``.
    An endpoint that already carries ``.<region>.`` is left unchanged.
    """
    if region is None or f".{region}." in f".{endpoint}.":
        return endpoint
    first, _, rest = endpoint.partition(".")
    if first == "s3" and rest:
        return f"s3.{region}.{rest}"
    return f"s3.{region}.{endpoint}"


def encode_queries(queries: Queries) -> str:
    """Encode extra query parameters.

    Keys are sorted; a ``None`` value yields a bare key and a sequence
    repeats the key once per value.
    """
    parts: list[str] = []
    for key in sorted(queries):
        value = queries[key]
        if value is None:
            parts.append(uri_encode(key))
        elif isinstance(value, str):
            parts.append(f"{uri_encode(key)}={uri_encode(value)}")
        else:
            parts.extend(f"{uri_encode(key)}={uri_encode(v)}" for v in value)
    return "&".join(parts)


def build_url(
    endpoint: str,
    region: str | None = None,
    bucket: str | None = None,
    object_name: str | None = None,
    resource: str | None = None,
    queries: Queries | None = None,
    use_ssl: bool = True,
    port: int | None = None,
) -> str:
    """Build the request URL.

    Args:
        endpoint: Endpoint host name (no scheme, no port).
        region: Retained region to insert into the host, if any.
        bucket: Bucket name.
        object_name: Object key; ``/`` inside it separates path segments.
        resource: Sub-resource marker such as ``location`` or
            ``uploads``, taken literally (a leading ``?`` is dropped).
        queries: Extra query parameters.
        use_ssl: Use ``https`` instead of ``http``.
        port: Explicit port; omitted from the URL when ``None``.

    Returns:
        The absolute URL.
    """
    host = build_host(endpoint, region)
    netloc = host if port is None else f"{host}:{port}"

    segments = [
        segment
        for part in (bucket, object_name)
        if part
        for segment in part.split("/")
        if segment
    ]
    path = "/" + "/".join(uri_encode(segment) for segment in segments)

    query_parts: list[str] = []
    if resource:
        query_parts.append(resource.removeprefix("?"))
    if queries:
        encoded = encode_queries(queries)
        if encoded:
            query_parts.append(encoded)
    query = "&".join(query_parts)

    scheme = "https" if use_ssl else "http"
    url = f"{scheme}://{netloc}{path}"
    if query:
        url += f"?{query}"
    return url
