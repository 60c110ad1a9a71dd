"""Atlassian's published egress and ingress ranges; an anonymous read outside the REST API."""

from bitbucket_provider.sources.external.bitbucket.descriptor import EndpointDescriptor
from bitbucket_provider.sources.external.bitbucket.schema import Block, integer, items, list_of, string

IP_RANGES_ROOT = "https://ip-ranges.atlassian.com"

IP_RANGES = EndpointDescriptor(
    name="bitbucket_ip_ranges",
    description="IP ranges used by Atlassian cloud products, Bitbucket included",
    path_template=(),
    api_root=IP_RANGES_ROOT,
    authenticated=False,
    projection=Block(
        fields={
            "creation_date": string("creationDate"),
            "sync_token": string("syncToken"),
            "items": items(
                {
                    "network": string(),
                    "mask_len": integer(),
                    "cidr": string(),
                    "mask": string(),
                    "region": list_of(string()),
                    "product": list_of(string()),
                    "direction": list_of(string()),
                }
            ),
        }
    ),
    id_rule="ip-ranges",
)

DESCRIPTORS = (IP_RANGES,)
