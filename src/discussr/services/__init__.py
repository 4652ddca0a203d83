"""Services layer: relay pool, streaming protocol, moderation and actions.

Sits at the top of the diamond DAG and composes ``core``, ``nips`` and
``utils``:

- **RelayPool**: Fetch, subscribe and publish over untrusted relays.
- **NostrService**: One-shot and streaming retrieval with deduplication,
  newest-first ordering and EOSE timeouts, plus discussion queries.
- **ModerationController**: Pending/approved views and approve/revoke.
- **BusStopMemo**: Top approved post per bus stop from three streams.
- **DiscussionActions**: Create, request, post, evaluate and delete.

Example::

    from discussr.core import NostrServiceConfig
    from discussr.services import create_nostr_service

    service = create_nostr_service(NostrServiceConfig.from_yaml("config.yaml"))
    async with service:
        events = await service.get_approvals(discussion_id)
"""

from .actions import CreatedDiscussion, DiscussionActions, sign_and_publish
from .forms import (
    DiscussionCreationForm,
    raise_for_errors,
    validate_discussion_creation_form,
    validate_discussion_form,
    validate_post_form,
)
from .memo import BusStopMemo, compute_memo, load_memo
from .moderation import LoadSequence, ModerationController
from .nostr import (
    EventAccumulator,
    NostrService,
    StreamEose,
    StreamHandle,
    StreamUpdate,
    create_nostr_service,
)
from .permissions import (
    can_approve_post,
    can_delete_discussion,
    can_edit_discussion,
    can_view_audit_with_names,
    is_admin,
    is_discussion_creator,
    is_moderator,
)
from .pool import RelayPool, Subscription


__all__ = [
    # Pool
    "RelayPool",
    "Subscription",
    # Streaming service
    "EventAccumulator",
    "NostrService",
    "StreamEose",
    "StreamHandle",
    "StreamUpdate",
    "create_nostr_service",
    # Moderation
    "LoadSequence",
    "ModerationController",
    # Permissions
    "can_approve_post",
    "can_delete_discussion",
    "can_edit_discussion",
    "can_view_audit_with_names",
    "is_admin",
    "is_discussion_creator",
    "is_moderator",
    # Memo
    "BusStopMemo",
    "compute_memo",
    "load_memo",
    # Actions and forms
    "CreatedDiscussion",
    "DiscussionActions",
    "DiscussionCreationForm",
    "raise_for_errors",
    "sign_and_publish",
    "validate_discussion_creation_form",
    "validate_discussion_form",
    "validate_post_form",
]
