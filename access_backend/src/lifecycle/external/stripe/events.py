"""
Stripe Event Schemas

Typed views of the Stripe events the synchronizer acts on, as a tagged union
keyed by the event ``type``. The modeled fields are validated strictly;
everything Stripe sends beyond them is ignored. Event types outside
``HANDLED_EVENT_TYPES`` are never parsed and are acknowledged with no effect.

Usage:
    from access_backend.src.lifecycle.external.stripe.events import parse_event

    event = parse_event(payload)  # None for unhandled event types
"""

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, TypeAdapter

from access_backend.src.lifecycle.shared.exceptions import WebhookError


class StripeModel(BaseModel):
    """Base for Stripe payload views: known fields typed, the rest ignored."""

    model_config = ConfigDict(extra='ignore', frozen=True)


# -----------------------------------------------------------------------------
# Objects
# -----------------------------------------------------------------------------

class Price(StripeModel):
    id: StrictStr


class SubscriptionItem(StripeModel):
    price: Price
    # Newer API versions report the billing period per item
    current_period_start: Optional[StrictInt] = None
    current_period_end: Optional[StrictInt] = None


class SubscriptionItemList(StripeModel):
    data: List[SubscriptionItem] = Field(default_factory=list)


class Card(StripeModel):
    brand: Optional[StrictStr] = None
    last4: Optional[StrictStr] = None


class PaymentMethod(StripeModel):
    id: StrictStr
    card: Optional[Card] = None


class Subscription(StripeModel):
    """A Stripe subscription object."""

    object: Literal['subscription'] = 'subscription'
    id: StrictStr
    customer: StrictStr
    status: Literal[
        'incomplete',
        'incomplete_expired',
        'trialing',
        'active',
        'past_due',
        'canceled',
        'unpaid',
        'paused',
    ]
    cancel_at_period_end: StrictBool = False
    current_period_start: Optional[StrictInt] = None
    current_period_end: Optional[StrictInt] = None
    canceled_at: Optional[StrictInt] = None
    items: SubscriptionItemList = Field(default_factory=SubscriptionItemList)
    # Expanded on list calls, a bare ID inside events
    default_payment_method: Optional[Union[PaymentMethod, StrictStr]] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    @property
    def price_id(self) -> Optional[str]:
        return self.items.data[0].price.id if self.items.data else None

    @property
    def period_start(self) -> Optional[int]:
        if self.current_period_start is not None:
            return self.current_period_start
        return self.items.data[0].current_period_start if self.items.data else None

    @property
    def period_end(self) -> Optional[int]:
        if self.current_period_end is not None:
            return self.current_period_end
        return self.items.data[0].current_period_end if self.items.data else None

    @property
    def card(self) -> Optional[Card]:
        if isinstance(self.default_payment_method, PaymentMethod):
            return self.default_payment_method.card
        return None


class CustomerDetails(StripeModel):
    email: Optional[StrictStr] = None


class CheckoutSession(StripeModel):
    """A Stripe Checkout session object."""

    object: Literal['checkout.session'] = 'checkout.session'
    id: StrictStr
    mode: Literal['payment', 'subscription', 'setup']
    customer: Optional[StrictStr] = None
    customer_email: Optional[StrictStr] = None
    customer_details: Optional[CustomerDetails] = None
    client_reference_id: Optional[StrictStr] = None
    payment_status: Optional[Literal['paid', 'unpaid', 'no_payment_required']] = None
    payment_intent: Optional[StrictStr] = None
    subscription: Optional[StrictStr] = None
    amount_subtotal: Optional[StrictInt] = None
    amount_total: Optional[StrictInt] = None
    currency: Optional[StrictStr] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    @property
    def email(self) -> Optional[str]:
        if self.customer_details and self.customer_details.email:
            return self.customer_details.email
        return self.customer_email

    @property
    def user_id(self) -> Optional[str]:
        return self.metadata.get('user_id') or self.client_reference_id


# -----------------------------------------------------------------------------
# Events
# -----------------------------------------------------------------------------

class CheckoutSessionData(StripeModel):
    object: CheckoutSession


class SubscriptionData(StripeModel):
    object: Subscription
    previous_attributes: Dict[str, Any] = Field(default_factory=dict)


class StripeEventBase(StripeModel):
    object: Literal['event'] = 'event'
    id: StrictStr
    created: StrictInt
    livemode: StrictBool = False


class CheckoutSessionCompleted(StripeEventBase):
    type: Literal['checkout.session.completed']
    data: CheckoutSessionData


class SubscriptionCreated(StripeEventBase):
    type: Literal['customer.subscription.created']
    data: SubscriptionData


class SubscriptionUpdated(StripeEventBase):
    type: Literal['customer.subscription.updated']
    data: SubscriptionData


class SubscriptionDeleted(StripeEventBase):
    type: Literal['customer.subscription.deleted']
    data: SubscriptionData


StripeEvent = Annotated[
    Union[CheckoutSessionCompleted, SubscriptionCreated, SubscriptionUpdated, SubscriptionDeleted],
    Field(discriminator='type'),
]

_event_adapter: TypeAdapter[StripeEvent] = TypeAdapter(StripeEvent)

HANDLED_EVENT_TYPES = frozenset({
    'checkout.session.completed',
    'customer.subscription.created',
    'customer.subscription.updated',
    'customer.subscription.deleted',
})


def peek_event_header(payload: bytes) -> Dict[str, Any]:
    """Read the ``id`` and ``type`` of a raw event without validating it."""
    try:
        raw = json.loads(payload)
    except ValueError as e:
        raise WebhookError(f"Invalid event payload: {e}") from e
    if not isinstance(raw, dict):
        raise WebhookError("Invalid event payload: not an object")
    return {'id': raw.get('id'), 'type': raw.get('type')}


def parse_event(payload: bytes) -> Optional[StripeEvent]:
    """
    Parse a verified raw payload into a typed event.

    Args:
        payload: Raw request body

    Returns:
        Typed event, or None when the event type is not handled

    Raises:
        WebhookError: If a handled event does not match its schema
    """
    header = peek_event_header(payload)
    if header['type'] not in HANDLED_EVENT_TYPES:
        return None
    try:
        return _event_adapter.validate_json(payload)
    except ValueError as e:
        raise WebhookError(
            f"Event payload does not match schema: {e}",
            event_id=header['id'],
            event_type=header['type'],
        ) from e
