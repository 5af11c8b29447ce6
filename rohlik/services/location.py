"""
Delivery address, delivery slots, pickup points and delivery areas.
"""

import re
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional
from urllib.parse import urlencode

from ..base import DeliveryAddress, DeliveryArea, DeliverySlot, LocationValidationResult, PickupPoint
from ..errors import FormDiscoveryError, TransportError
from ..mutator import MutationIntent
from .base import BaseService

ADDRESS_PATH = '/adresa'
SLOTS_PATH = '/doruceni'
PICKUP_PATH = '/vyzvedni'

ACCEPTED_COUNTRIES = {'cz', 'czechia', 'czech republic'}

# Used when the delivery-area lookup is unavailable for a Prague postal code
PRAGUE_FALLBACK_FEE = Decimal('49')


def _decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value is not None else Decimal('0')
    except InvalidOperation:
        return Decimal('0')


class LocationService(BaseService):
    """
    Delivery location management.

    Usage:
        location = LocationService(context)
        result = await location.set_delivery_address(DeliveryAddress(
            street='Vinohradská', house_number='12', city='Praha', postal_code='120 00',
        ))
        slots = await location.get_delivery_slots('2024-03-12')
    """

    name = 'location'

    def __init__(self, context):
        super().__init__(context)
        self._current_address: Optional[DeliveryAddress] = None

    @staticmethod
    def validate_address_format(address: DeliveryAddress) -> LocationValidationResult:
        """Required fields, 5-digit postal code and Czech country."""
        errors = []

        if not (address.street or '').strip():
            errors.append('Street name is required')
        if not (address.house_number or '').strip():
            errors.append('House number is required')
        if not (address.city or '').strip():
            errors.append('City is required')

        if not (address.postal_code or '').strip():
            errors.append('Postal code is required')
        elif not re.fullmatch(r'\d{5}', address.normalized_postal_code):
            errors.append('Invalid Czech postal code format (should be 5 digits)')

        if not (address.country or '').strip():
            errors.append('Country is required')
        elif address.country.strip().lower() not in ACCEPTED_COUNTRIES:
            errors.append('Delivery is only available in Czech Republic')

        if errors:
            return LocationValidationResult.failure(*errors)
        return LocationValidationResult(is_valid=True, delivery_available=True)

    async def set_delivery_address(self, address: DeliveryAddress) -> LocationValidationResult:
        """
        Validate and submit a delivery address.

        Format and delivery-area problems, as well as a failed submission, are
        returned as an invalid LocationValidationResult.

        Raises:
            AuthenticationRequired: Not logged in
        """
        self.require_auth('set the delivery address')
        self.logger.info(f"Setting delivery address: {address.city}, {address.postal_code}")

        result = self.validate_address_format(address)
        if not result.is_valid:
            return result

        address = replace(address, postal_code=address.normalized_postal_code)
        area = await self.get_delivery_area(address.postal_code)
        if area is None:
            return LocationValidationResult.failure('Delivery not available in this area')
        if not area.available:
            return LocationValidationResult.failure('Delivery temporarily unavailable in this area')

        try:
            page = await self.transport.get(ADDRESS_PATH)
            form = self.engine.discover_form(page.text, 'address', page_url=str(page.url))
            fields = form.compose({
                'street': address.street,
                'house_number': address.house_number,
                'city': address.city,
                'postal_code': address.postal_code,
                'district': address.district or '',
                'country': 'CZ',
            })
            response = await self.transport.post_form(
                form.action, fields, headers={'Referer': self.transport.resolve(ADDRESS_PATH)}
            )
        except (FormDiscoveryError, TransportError) as e:
            self.logger.error(f"Failed to submit address: {e}")
            return LocationValidationResult.failure(f'Failed to submit address: {e}')

        delivery_fee = self.engine.parse_delivery_fee(response.text)
        self._current_address = address
        self.logger.info(f"Delivery address set: {address.city} (fee {delivery_fee or area.delivery_fee})")

        return LocationValidationResult(
            is_valid=True,
            delivery_available=True,
            delivery_fee=delivery_fee if delivery_fee is not None else area.delivery_fee,
            min_order_value=area.min_order_value,
        )

    def get_current_address(self) -> Optional[DeliveryAddress]:
        """Address set in this process, if any."""
        return self._current_address

    async def load_current_address(self) -> Optional[DeliveryAddress]:
        """Read the address the storefront has on file from the address page."""
        self.require_auth('read the delivery address')
        html = await self.transport.fetch_text(ADDRESS_PATH)
        address = self.engine.parse_current_address(html)
        if address is not None:
            self._current_address = address
        return address

    async def get_delivery_slots(self, date: Optional[str] = None) -> List[DeliverySlot]:
        """
        Delivery slots, optionally for one day (YYYY-MM-DD).

        Raises:
            AuthenticationRequired: Not logged in
        """
        self.require_auth('view delivery slots')
        url = SLOTS_PATH + (f"?{urlencode({'date': date})}" if date else '')

        html = await self.transport.fetch_text(url)
        slots = self.engine.parse_delivery_slots(html, date)
        available = sum(1 for slot in slots if slot.available)
        self.logger.info(f"Delivery slots fetched: {len(slots)} total, {available} available")
        return slots

    async def book_delivery_slot(self, slot_id: str) -> bool:
        """
        Book a delivery slot.

        Returns:
            True when either path confirmed the booking
        """
        self.require_auth('book a delivery slot')
        self.logger.info(f"Booking delivery slot {slot_id}")

        outcome = await self.mutator.execute(self._booking_intent(slot_id))
        if not outcome.success:
            self.logger.warning(f"Delivery slot {slot_id} not booked: {outcome.describe()}")
        return outcome.success

    def _booking_intent(self, slot_id: str) -> MutationIntent:
        return MutationIntent(
            name=f"book delivery slot {slot_id}",
            api_path=self.context.api_path('/delivery/book'),
            api_payload={'slotId': slot_id},
            reference_path=SLOTS_PATH,
            form_intent='book_slot',
            form_values={'slot_id': slot_id},
        )

    async def get_pickup_points(self) -> List[PickupPoint]:
        self.require_auth('view pickup points')
        html = await self.transport.fetch_text(PICKUP_PATH)
        points = self.engine.parse_pickup_points(html)
        self.logger.info(f"Pickup points fetched: {len(points)}")
        return points

    async def calculate_delivery_fee(self) -> Optional[Decimal]:
        """Delivery fee for the current address; None when no address or area is known."""
        if self._current_address is None:
            return None
        area = await self.get_delivery_area(self._current_address.postal_code)
        return area.delivery_fee if area is not None else None

    def _area_from_json(self, postal_code: str, data: Mapping[str, Any]) -> DeliveryArea:
        return DeliveryArea(
            postal_code=postal_code,
            city=data.get('city') or '',
            available=bool(data.get('available')),
            delivery_fee=_decimal(data.get('deliveryFee')),
            min_order_value=_decimal(data.get('minOrderValue')),
            express_available=bool(data.get('expressAvailable')),
        )

    async def _fetch_delivery_area(self, postal_code: str) -> Optional[DeliveryArea]:
        response = await self.transport.get(self.context.api_path(f'/delivery-areas/{postal_code}'))
        data = response.json()
        if not isinstance(data, dict):
            return None
        return self._area_from_json(postal_code, data)

    async def get_delivery_area(self, postal_code: str) -> Optional[DeliveryArea]:
        """
        Delivery area for a postal code (cached).

        When the lookup fails, Prague postal codes (1xxxx) fall back to a
        standard Prague area; anything else resolves to None.
        """
        postal_code = ''.join(postal_code.split())
        try:
            return await self.cache.get_or_load(
                'delivery_area', postal_code, lambda: self._fetch_delivery_area(postal_code)
            )
        except (TransportError, ValueError) as e:
            self.logger.warning(f"Delivery area lookup failed for {postal_code}: {e}")

        if postal_code.startswith('1'):
            self.logger.info(f"Using Prague fallback delivery area for {postal_code}")
            return DeliveryArea(
                postal_code=postal_code,
                city='Praha',
                available=True,
                delivery_fee=PRAGUE_FALLBACK_FEE,
                min_order_value=Decimal(self.settings.min_order_value),
                express_available=True,
            )
        return None
