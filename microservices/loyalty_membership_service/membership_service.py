"""
Loyalty Membership Lifecycle Service

Loads, caches and mutates one customer's membership and exposes the
derived status and discount rules over the current state.
"""

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional, Tuple
from urllib.parse import quote

from core.config import MembershipConfig

from .discount_engine import (
    StaticServiceCatalog,
    calculate_service_discount,
    get_service_discount_info,
    is_eligible_for_free_delivery,
)
from .events.models import (
    MembershipBaseEventData,
    MembershipCancelledEventData,
    MembershipEventType,
    MembershipLoadedEventData,
    MembershipPurchasedEventData,
    MembershipRenewedEventData,
    build_event,
)
from .load_registry import InflightLoadRegistry
from .membership_cache import MembershipCache
from .models import (
    DiscountCalculation,
    ErrorCode,
    Membership,
    MembershipStats,
    MembershipValidation,
    RenewalUrgency,
    ServiceDiscountInfo,
    StatusInfo,
)
from .protocols import (
    EventBusProtocol,
    MembershipError,
    MembershipRemoteServiceProtocol,
    ServiceCatalogProtocol,
    invalid_customer,
    wrap_error,
)
from .state_machine import (
    ErrorCleared,
    LoadFailed,
    LoadRejected,
    LoadSucceeded,
    MembershipState,
    MembershipStateMachine,
    MembershipUpdated,
    OperationAbandoned,
    OperationFailed,
    OperationStarted,
    StateListener,
)
from . import status_classifier

logger = logging.getLogger(__name__)


class MembershipLifecycleService:
    """Membership lifecycle controller for one customer session"""

    def __init__(
        self,
        remote: MembershipRemoteServiceProtocol,
        cache: MembershipCache,
        config: Optional[MembershipConfig] = None,
        event_bus: Optional[EventBusProtocol] = None,
        catalog: Optional[ServiceCatalogProtocol] = None,
        clock: Optional[Callable[[], datetime]] = None,
        loads: Optional[InflightLoadRegistry] = None,
    ):
        """
        Initialize lifecycle service with injected dependencies

        Args:
            remote: Remote membership service
            cache: Membership cache (may be shared across controllers)
            config: Program configuration
            event_bus: Optional event bus for publishing events
            catalog: Service catalog for display names
            clock: Time source, defaults to current UTC time
            loads: In-flight load registry (share one across controllers)
        """
        self.remote = remote
        self.cache = cache
        self.config = config or MembershipConfig()
        self.event_bus = event_bus
        self.catalog = catalog or StaticServiceCatalog(self.config.service_names)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self._machine = MembershipStateMachine()
        self.loads = loads if loads is not None else InflightLoadRegistry()
        self._last_customer_id: Optional[str] = None

    # ====================
    # State
    # ====================

    @property
    def state(self) -> MembershipState:
        return self._machine.state

    @property
    def membership(self) -> Optional[Membership]:
        return self._machine.state.membership

    @property
    def stats(self) -> Optional[MembershipStats]:
        return self._machine.state.stats

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener; returns the unsubscribe callable"""
        return self._machine.subscribe(listener)

    def clear_error(self) -> None:
        self._machine.update(ErrorCleared())

    # ====================
    # Loading
    # ====================

    async def load(self, customer_id: str) -> MembershipState:
        """
        Load membership and stats for a customer

        Serves from cache within the TTL, otherwise fetches membership and
        stats concurrently. Concurrent loads for the same customer share one
        fetch. Failures are recorded in state, never raised.
        """
        return await self._load(customer_id, force=False)

    async def refresh(self, customer_id: Optional[str] = None) -> MembershipState:
        """Invalidate the cache and load again (defaults to the last customer)"""
        customer_id = customer_id or self._last_customer_id or ""
        if customer_id.strip():
            self.cache.invalidate(customer_id)
        return await self._load(customer_id, force=True)

    async def _load(self, customer_id: str, force: bool) -> MembershipState:
        if not customer_id or not customer_id.strip():
            error = invalid_customer(customer_id)
            logger.warning(f"Rejected membership load: {error.message}")
            self._machine.update(LoadRejected(self._machine.next_ticket(), error))
            return self.state

        self._last_customer_id = customer_id

        task = None if force else self.loads.get(customer_id)
        if task is None and not force:
            entry = self.cache.get(customer_id)
            if entry is not None:
                ticket = self._machine.next_ticket()
                self._machine.update(OperationStarted(ticket))
                self._machine.update(LoadSucceeded(
                    ticket=ticket,
                    customer_id=customer_id,
                    membership=entry.membership,
                    stats=entry.stats,
                    loaded_at=entry.last_updated_at,
                ))
                return self.state

        ticket = self._machine.next_ticket()
        self._machine.update(OperationStarted(ticket))
        if task is None:
            task = asyncio.ensure_future(self._fetch(customer_id))
            self.loads.register(customer_id, task)
        else:
            logger.debug(f"Joining in-flight load for {customer_id}")
        task.add_done_callback(lambda t: self._on_load_done(customer_id, ticket, t))

        try:
            await asyncio.shield(task)
        except MembershipError:
            # Recorded in state by _on_load_done
            pass
        return self.state

    def _on_load_done(self, customer_id: str, ticket: int, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning(f"Membership load for {customer_id} was cancelled")
            self._machine.update(OperationAbandoned(ticket))
            return

        error = task.exception()
        if error is not None:
            self._machine.update(LoadFailed(
                ticket,
                customer_id,
                wrap_error(error, ErrorCode.NETWORK_ERROR, "Failed to load membership"),
            ))
            return

        membership, stats, loaded_at = task.result()
        self._machine.update(LoadSucceeded(
            ticket=ticket,
            customer_id=customer_id,
            membership=membership,
            stats=stats,
            loaded_at=loaded_at,
        ))

    async def _fetch_remote(self, customer_id: str) -> Tuple[Optional[Membership], MembershipStats]:
        """Fetch membership and stats concurrently; the first failure cancels the other call"""
        calls = [
            asyncio.ensure_future(self.remote.get_membership(customer_id)),
            asyncio.ensure_future(self.remote.get_membership_stats(customer_id)),
        ]
        try:
            done, _ = await asyncio.wait(calls, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            for call in calls:
                if not call.done():
                    call.cancel()

        errors = [call.exception() for call in calls if call in done and call.exception() is not None]
        if errors:
            raise errors[0]
        return calls[0].result(), calls[1].result()

    async def _fetch(self, customer_id: str) -> Tuple[Optional[Membership], MembershipStats, datetime]:
        """Fetch from the remote and write the cache unless it was invalidated meanwhile"""
        generation = self.cache.generation(customer_id)
        try:
            membership, stats = await self._fetch_remote(customer_id)
        except Exception as e:
            error = wrap_error(e, ErrorCode.NETWORK_ERROR, "Failed to load membership")
            logger.error(f"Failed to load membership for {customer_id}: [{error.code.value}] {error.message}")
            if error is e:
                raise
            raise error from e

        loaded_at = self.clock()
        self.cache.put(customer_id, membership, stats, generation=generation)
        logger.info(f"Loaded membership for {customer_id}: {'member' if membership else 'no membership'}")

        await self._publish_event(
            MembershipEventType.MEMBERSHIP_LOADED,
            MembershipLoadedEventData(
                customer_id=customer_id,
                is_member=membership is not None,
                membership_id=membership.membership_id if membership else None,
                status=membership.status.value if membership else None,
                expiration_date=membership.expiration_date if membership else None,
            ),
        )
        return membership, stats, loaded_at

    # ====================
    # Mutations
    # ====================

    async def _mutate(
        self,
        operation: str,
        call,
        error_code: ErrorCode,
        error_message: str,
    ) -> Membership:
        """Run a remote mutation, recording failure in state before raising it"""
        ticket = self._machine.next_ticket()
        self._machine.update(OperationStarted(ticket))
        try:
            membership = await call()
        except asyncio.CancelledError:
            self._machine.update(OperationAbandoned(ticket))
            raise
        except Exception as e:
            error = wrap_error(e, error_code, error_message)
            logger.error(f"Membership {operation} failed: [{error.code.value}] {error.message}")
            self._machine.update(OperationFailed(ticket, error))
            if error is e:
                raise
            raise error from e
        return membership

    def _commit(self, membership: Membership) -> None:
        """
        Apply a mutation result under a ticket drawn now, so a load that was
        started while the mutation was pending cannot overwrite it.
        """
        self.cache.invalidate(membership.customer_id)
        self._machine.update(MembershipUpdated(self._machine.next_ticket(), membership, self.clock()))

    async def purchase(self, customer_id: str) -> str:
        """
        Create a pending membership and return its checkout URL

        Raises:
            MembershipError: PAYMENT_FAILED (or the remote error's code)
        """
        if not customer_id or not customer_id.strip():
            ticket = self._machine.next_ticket()
            error = invalid_customer(customer_id)
            self._machine.update(OperationStarted(ticket))
            self._machine.update(OperationFailed(ticket, error))
            raise error

        membership = await self._mutate(
            "purchase",
            lambda: self.remote.create_membership(customer_id),
            ErrorCode.PAYMENT_FAILED,
            "Failed to purchase membership",
        )
        self._commit(membership)

        checkout_url = self.build_checkout_url(membership.membership_id)
        logger.info(f"Membership {membership.membership_id} created for {customer_id}")

        await self._publish_event(
            MembershipEventType.MEMBERSHIP_PURCHASED,
            MembershipPurchasedEventData(
                customer_id=customer_id,
                membership_id=membership.membership_id,
                annual_fee=membership.benefits.annual_fee,
                checkout_url=checkout_url,
            ),
        )
        return checkout_url

    async def renew(self, membership_id: str) -> Membership:
        """
        Renew a membership for another term, extending from its current expiration

        Raises:
            MembershipError: RENEWAL_FAILED (or the remote error's code)
        """
        membership = await self._mutate(
            "renewal",
            lambda: self.remote.renew_membership(membership_id, extend_from_current_expiration=True),
            ErrorCode.RENEWAL_FAILED,
            "Failed to renew membership",
        )
        self._commit(membership)
        logger.info(f"Membership {membership_id} renewed until {membership.expiration_date.isoformat()}")

        await self._publish_event(
            MembershipEventType.MEMBERSHIP_RENEWED,
            MembershipRenewedEventData(
                customer_id=membership.customer_id,
                membership_id=membership.membership_id,
                expiration_date=membership.expiration_date,
            ),
        )
        return membership

    async def cancel(self, membership_id: str) -> Membership:
        """
        Cancel a membership

        Raises:
            MembershipError: CANCELLATION_FAILED (or the remote error's code)
        """
        membership = await self._mutate(
            "cancellation",
            lambda: self.remote.cancel_membership(membership_id),
            ErrorCode.CANCELLATION_FAILED,
            "Failed to cancel membership",
        )
        self._commit(membership)
        logger.info(f"Membership {membership_id} cancelled")

        await self._publish_event(
            MembershipEventType.MEMBERSHIP_CANCELLED,
            MembershipCancelledEventData(
                customer_id=membership.customer_id,
                membership_id=membership.membership_id,
            ),
        )
        return membership

    def build_checkout_url(self, membership_id: str) -> str:
        """Checkout path for a membership, with the product variant when direct checkout is on"""
        locale = self.config.checkout_locale.strip("/")
        url = f"/{locale}/checkout/membership/{quote(membership_id)}" if locale else f"/checkout/membership/{quote(membership_id)}"
        if self.config.use_direct_checkout and self.config.is_variant_configured:
            url += f"?variantId={quote(self.config.variant_id, safe='')}"
        return url

    # ====================
    # Derived Reads
    # ====================

    def validate_membership(self) -> MembershipValidation:
        return status_classifier.validate_membership(
            self.membership,
            self.clock(),
            renewal_window_days=self.config.renewal_window_days,
        )

    def get_status_info(self) -> StatusInfo:
        return status_classifier.get_status_info(self.membership, self.clock())

    def get_renewal_urgency(self) -> RenewalUrgency:
        return status_classifier.get_renewal_urgency(self.membership, self.clock())

    def calculate_discount(self, price: Decimal, service_id: Optional[str] = None) -> DiscountCalculation:
        return calculate_service_discount(price, self.membership, service_id, self.clock())

    def get_service_discount_info(self, service_id: str, price: Decimal) -> ServiceDiscountInfo:
        return get_service_discount_info(
            service_id,
            price,
            self.membership,
            catalog=self.catalog,
            now=self.clock(),
            default_eligible_services=self.config.eligible_services,
        )

    def is_eligible_for_free_delivery(self) -> bool:
        return is_eligible_for_free_delivery(self.membership, self.clock())

    # ====================
    # Event Publishing
    # ====================

    async def _publish_event(self, event_type: MembershipEventType, data: MembershipBaseEventData) -> None:
        """Publish event to event bus"""
        if not self.event_bus:
            return

        try:
            data.timestamp = self.clock()
            await self.event_bus.publish(event_type.value, build_event(event_type, data))
        except Exception as e:
            logger.warning(f"Failed to publish event {event_type.value}: {e}")


__all__ = ["MembershipLifecycleService"]
