"""
User actions that publish events: create, list, request, post, evaluate, delete.

Every action follows the same pipeline: validate the input, build the
template with [discussr.nips.event_builders][], sign it through the opaque
[Signer][discussr.utils.keys.Signer], and publish it with
[NostrService.publish_signed_event()][discussr.services.nostr.NostrService.publish_signed_event].

Failures surface as exceptions from
[discussr.core.exceptions][]:

* [ValidationError][discussr.core.exceptions.ValidationError]: bad input,
  raised before anything is signed.
* [PermissionDeniedError][discussr.core.exceptions.PermissionDeniedError]:
  the signer's key may not perform the action.
* [SigningError][discussr.core.exceptions.SigningError]: the signer raised.
* [PublishingError][discussr.core.exceptions.PublishingError]: no write
  relay acknowledged the event.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from discussr.core.exceptions import (
    PermissionDeniedError,
    PublishingError,
    SigningError,
    ValidationError,
)
from discussr.core.logger import Logger
from discussr.models.constants import EventKind
from discussr.nips.event_builders import (
    build_delete_event,
    build_discussion_event,
    build_discussion_request_event,
    build_evaluation_event,
    build_listing_request_event,
    build_post_event,
)
from discussr.nips.nip19 import build_discussion_id, build_discussion_naddr, parse_coordinate

from .forms import (
    raise_for_errors,
    validate_discussion_creation_form,
    validate_discussion_form,
    validate_post_form,
)
from .permissions import can_delete_discussion


if TYPE_CHECKING:
    from discussr.models.discussion import Discussion
    from discussr.models.event import SignedEvent, UnsignedEvent
    from discussr.utils.keys import Signer

    from .forms import DiscussionCreationForm
    from .nostr import NostrService


_logger = Logger("actions")


async def sign_and_publish(
    service: NostrService, signer: Signer, template: UnsignedEvent
) -> SignedEvent:
    """Sign *template* and publish it.

    Raises:
        SigningError: The signer raised; the original exception is chained.
        PublishingError: No relay acknowledged the signed event.
    """
    try:
        event = await signer.sign_event(template)
    except SigningError:
        raise
    except Exception as e:  # opaque signer boundary
        raise SigningError(f"signer rejected kind {template.kind} event: {e}") from e

    if not await service.publish_signed_event(event):
        raise PublishingError(f"no relay accepted kind {event.kind} event {event.id}")
    _logger.debug("event_published", event_id=event.id, kind=event.kind)
    return event


@dataclass(frozen=True, slots=True)
class CreatedDiscussion:
    """A published discussion and its addresses."""

    event: SignedEvent
    discussion_id: str
    naddr: str
    listing_request: SignedEvent | None = None


class DiscussionActions:
    """Publishing actions bound to one signer and, optionally, one discussion.

    Args:
        service: Service used for publishing.
        signer: Signs every template.
        discussion_id: Coordinate of the discussion posts are submitted to.
        admin_pubkey: Instance admin; receives discussion requests and may
            delete any discussion.
        relays: Relay hints embedded in generated ``naddr`` strings.
        discussion_list_id: Coordinate of the discussion list community.
            When set, every created discussion is also submitted there for
            listing.
    """

    def __init__(
        self,
        service: NostrService,
        signer: Signer,
        *,
        discussion_id: str | None = None,
        admin_pubkey: str | None = None,
        relays: list[str] | None = None,
        discussion_list_id: str | None = None,
    ) -> None:
        self._service = service
        self._signer = signer
        self._discussion_id = discussion_id
        self._admin_pubkey = admin_pubkey
        self._relays = relays
        self._discussion_list_id = discussion_list_id

    async def create_discussion(self, form: DiscussionCreationForm) -> CreatedDiscussion:
        """Publish a new discussion definition authored by the signer.

        With a discussion list configured, a listing request quoting the new
        discussion is published right after the definition.

        Raises:
            PublishingError: The definition, or the listing request after it,
                was not accepted by any relay.
        """
        raise_for_errors(validate_discussion_creation_form(form))
        if self._discussion_list_id:
            list_parts = parse_coordinate(self._discussion_list_id)
            if list_parts is None or list_parts[0] != EventKind.COMMUNITY:
                raise ValidationError(
                    f"invalid discussion list coordinate: {self._discussion_list_id}",
                    {"discussion_list_id": "invalid"},
                )
        d_tag = (form.d_tag or "").strip()
        template = build_discussion_event(
            form.title.strip(),
            form.description.strip(),
            form.moderator_pubkeys,
            d_tag=d_tag,
        )
        event = await sign_and_publish(self._service, self._signer, template)
        discussion_id = build_discussion_id(event.pubkey, d_tag)
        naddr = build_discussion_naddr(event.pubkey, d_tag, self._relays)
        _logger.info("discussion_created", discussion_id=discussion_id)

        listing_request = None
        if self._discussion_list_id:
            listing_request = await sign_and_publish(
                self._service,
                self._signer,
                build_listing_request_event(discussion_id, naddr, self._discussion_list_id),
            )
            _logger.info(
                "listing_requested",
                discussion_id=discussion_id,
                discussion_list_id=self._discussion_list_id,
            )
        return CreatedDiscussion(
            event=event,
            discussion_id=discussion_id,
            naddr=naddr,
            listing_request=listing_request,
        )

    async def request_discussion(self, title: str, description: str) -> SignedEvent:
        """Ask the admin to open a discussion."""
        raise_for_errors(validate_discussion_form(title, description))
        if not self._admin_pubkey:
            raise ValidationError("admin pubkey is not configured", {"admin_pubkey": "required"})
        template = build_discussion_request_event(
            title.strip(), description.strip(), self._admin_pubkey
        )
        return await sign_and_publish(self._service, self._signer, template)

    async def submit_post(self, content: str, bus_stop_tag: str | None = None) -> SignedEvent:
        """Submit a post to the bound discussion; it starts pending approval."""
        raise_for_errors(validate_post_form(content, bus_stop_tag))
        if not self._discussion_id:
            raise ValidationError("no discussion selected", {"discussion_id": "required"})
        template = build_post_event(
            content.strip(),
            self._discussion_id,
            bus_stop_tag.strip() if bus_stop_tag else None,
        )
        return await sign_and_publish(self._service, self._signer, template)

    async def evaluate_post(self, post_id: str, rating: str) -> SignedEvent:
        """Rate a post ``"+"`` or ``"-"``."""
        template = build_evaluation_event(post_id, rating, self._discussion_id)
        return await sign_and_publish(self._service, self._signer, template)

    async def delete_discussion(self, discussion: Discussion) -> SignedEvent:
        """Request deletion of *discussion*; only its creator or the admin may."""
        user_pubkey = await self._signer.get_public_key()
        if not can_delete_discussion(user_pubkey, discussion, self._admin_pubkey):
            raise PermissionDeniedError(f"{user_pubkey} may not delete {discussion.id}")
        template = build_delete_event(discussion.event.id)
        event = await sign_and_publish(self._service, self._signer, template)
        _logger.info("discussion_deleted", discussion_id=discussion.id)
        return event
