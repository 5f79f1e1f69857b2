"""
Unit tests for listing enrichment and the budget check.
"""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from listings.enrichment import ListingEnricher
from models.appointment import Appointment
from models.booking_request import parse_booking_request
from models.listing import Listing
from utils.exceptions import BudgetBelowPriceError, ListingNotFoundError, ListingServiceError


def _appointment(appointment_id, property_id=None):
    return Appointment(
        id=appointment_id,
        slot_id="slot_1",
        client_name="Ana López",
        client_email="ana@example.com",
        property_id=property_id,
        appointment_date=date(2025, 12, 1),
        appointment_time="10:00:00",
    )


@pytest.fixture
def listing_client():
    client = AsyncMock()
    client.get_listing.return_value = Listing(public_id="EB-1", title="Casa", price=35000)
    return client


@pytest.mark.asyncio
async def test_enrich_attaches_listing_once_per_id(listing_client):
    """Test each listing id is fetched once per call."""
    enricher = ListingEnricher(listing_client)

    views = await enricher.enrich(
        [_appointment("a1", "EB-1"), _appointment("a2", "EB-1"), _appointment("a3")]
    )

    assert [view.id for view in views] == ["a1", "a2", "a3"]
    assert views[0].listing.title == "Casa"
    assert views[1].listing.title == "Casa"
    assert views[2].listing is None
    listing_client.get_listing.assert_awaited_once_with("EB-1")


@pytest.mark.asyncio
async def test_enrich_survives_listing_failures(listing_client):
    """Test a failing listing service leaves the listing empty."""
    listing_client.get_listing.side_effect = [
        ListingNotFoundError("gone", status_code=404),
        ListingServiceError("down", status_code=503),
    ]
    enricher = ListingEnricher(listing_client)

    views = await enricher.enrich([_appointment("a1", "EB-1"), _appointment("a2", "EB-2")])

    assert [view.listing for view in views] == [None, None]
    payload = views[0].model_dump(mode="json", by_alias=True)
    assert payload["clientEmail"] == "ana@example.com"
    assert payload["date"] == "2025-12-01"


@pytest.mark.asyncio
async def test_enrich_without_client():
    views = await ListingEnricher(None).enrich([_appointment("a1", "EB-1")])

    assert views[0].listing is None
    assert views[0].property_id == "EB-1"


@pytest.mark.asyncio
async def test_budget_below_price_rejected(listing_client, rent_payload):
    """Test a budget range starting below the listing price is rejected."""
    listing_client.get_listing.return_value = Listing(public_id="EB-1", price=45000)
    request = parse_booking_request({**rent_payload, "propertyId": "EB-1"})

    with pytest.raises(BudgetBelowPriceError) as exc_info:
        await ListingEnricher(listing_client).check_budget(request)

    assert exc_info.value.code == "BUDGET_BELOW_PRICE"
    assert exc_info.value.price == 45000
    assert exc_info.value.minimum_budget == 30000


@pytest.mark.asyncio
async def test_budget_covering_price_accepted(listing_client, rent_payload):
    request = parse_booking_request({**rent_payload, "propertyId": "EB-1", "budgetRentar": "mas-150000"})

    await ListingEnricher(listing_client).check_budget(request)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "listing",
    [None, Listing(public_id="EB-1", price=None), Listing(public_id="EB-1", price=0)],
)
async def test_budget_check_skipped_without_price(listing_client, rent_payload, listing):
    listing_client.get_listing.return_value = listing
    request = parse_booking_request({**rent_payload, "propertyId": "EB-1"})

    await ListingEnricher(listing_client).check_budget(request)


@pytest.mark.asyncio
async def test_budget_check_skipped_without_property(listing_client, rent_payload):
    await ListingEnricher(listing_client).check_budget(parse_booking_request(rent_payload))

    listing_client.get_listing.assert_not_awaited()


@pytest.mark.asyncio
async def test_budget_check_tolerates_service_failure(listing_client, rent_payload):
    listing_client.get_listing.side_effect = ListingServiceError("down")
    request = parse_booking_request({**rent_payload, "propertyId": "EB-1"})

    await ListingEnricher(listing_client).check_budget(request)
