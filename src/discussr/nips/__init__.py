"""NIP layer: event builders, parsers, aggregation and NIP-19 helpers.

Implements the discussion conventions on top of NIP-01 (events and
coordinates), NIP-09 (deletion), NIP-19 (bech32), NIP-22 (comments),
NIP-25 (reactions) and NIP-72 (moderated communities). No network I/O.

Attributes:
    event_builders: Pure functions returning
        [UnsignedEvent][discussr.models.event.UnsignedEvent] templates.
    parsers: ``parse_*`` functions and
        [decode_event()][discussr.nips.parsers.decode_event].
    aggregation: Stats, ranking, latest-version selection, deletions and
        audit timelines.
    nip19: ``npub`` / ``naddr`` conversion and coordinate helpers.
"""

from .aggregation import (
    apply_deletions,
    approved_discussion_references,
    calculate_evaluation_stats,
    combine_posts_with_stats,
    create_audit_timeline,
    dedupe_events,
    filter_unevaluated_posts,
    latest_by_d_tag,
    latest_discussions,
    pick_latest_discussion,
    shuffle,
    sort_events_newest_first,
    sort_posts_by_score,
    top_posts_by_tag,
)
from .event_builders import (
    build_approval_event,
    build_delete_event,
    build_discussion_event,
    build_discussion_request_event,
    build_evaluation_event,
    build_listing_request_event,
    build_post_event,
    build_revocation_event,
)
from .nip19 import (
    build_discussion_id,
    build_discussion_naddr,
    extract_discussion_from_naddr,
    generate_d_tag,
    hex_to_npub,
    is_valid_npub,
    naddr_decode,
    naddr_encode,
    npub_to_hex,
    parse_coordinate,
)
from .parsers import (
    decode_event,
    parse_approval_event,
    parse_approvals,
    parse_discussion_event,
    parse_discussion_request_event,
    parse_evaluation_event,
    parse_evaluations,
    parse_listing_request_event,
    parse_listing_requests,
    parse_post_event,
    parse_posts,
    parse_profile_event,
)


__all__ = [
    "apply_deletions",
    "approved_discussion_references",
    "build_approval_event",
    "build_delete_event",
    "build_discussion_event",
    "build_discussion_id",
    "build_discussion_naddr",
    "build_discussion_request_event",
    "build_evaluation_event",
    "build_listing_request_event",
    "build_post_event",
    "build_revocation_event",
    "calculate_evaluation_stats",
    "combine_posts_with_stats",
    "create_audit_timeline",
    "decode_event",
    "dedupe_events",
    "extract_discussion_from_naddr",
    "filter_unevaluated_posts",
    "generate_d_tag",
    "hex_to_npub",
    "is_valid_npub",
    "latest_by_d_tag",
    "latest_discussions",
    "naddr_decode",
    "naddr_encode",
    "npub_to_hex",
    "parse_approval_event",
    "parse_approvals",
    "parse_coordinate",
    "parse_discussion_event",
    "parse_discussion_request_event",
    "parse_evaluation_event",
    "parse_evaluations",
    "parse_listing_request_event",
    "parse_listing_requests",
    "parse_post_event",
    "parse_posts",
    "parse_profile_event",
    "pick_latest_discussion",
    "shuffle",
    "sort_events_newest_first",
    "sort_posts_by_score",
    "top_posts_by_tag",
]
