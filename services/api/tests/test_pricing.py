from __future__ import annotations

import pytest
from packages.shared.schemas.order_v1 import (
    AddressV1,
    DraftOrderRequestV1,
    PorterOrderItemV1,
    PorterServiceDataV1,
    PrintoutOrderItemV1,
    PrintoutServiceDataV1,
    ProductOrderItemV1,
)
from services.api.app.services.pricing import (
    PromoCodeError,
    apply_promo,
    delivery_fee_for,
    price_draft,
    price_item,
)

HOME = AddressV1(_id="addr-home", street="221B Baker St", city="Pune")


def _request(*items, tip: float = 0, promo: str | None = None) -> DraftOrderRequestV1:
    return DraftOrderRequestV1(
        items=list(items), delivery_address=HOME, tip_amount=tip, promo_code=promo
    )


def test_price_draft_adds_fees_below_free_delivery_threshold() -> None:
    priced = price_draft(_request(ProductOrderItemV1(product_id="milk-1l", quantity=2)))

    assert priced.subtotal == 112.0
    assert priced.delivery_fee == 40.0
    assert priced.app_fee == 5.0
    assert priced.total_amount == 157.0
    assert priced.items[0]["product_name"] == "Toned Milk 1L"
    assert priced.items[0]["price"] == 56.0
    assert priced.items[0]["product"] == "milk-1l"
    assert "product_id" not in priced.items[0]


def test_price_draft_waives_delivery_at_threshold() -> None:
    priced = price_draft(
        _request(
            ProductOrderItemV1(product_id="rice-5kg"),
            ProductOrderItemV1(product_id="milk-1l"),
            ProductOrderItemV1(product_id="bread-white", quantity=2),
        )
    )

    assert priced.subtotal == 540.0
    assert priced.delivery_fee == 0.0
    assert priced.total_amount == 545.0


def test_service_items_are_priced_and_annotated() -> None:
    porter = PorterOrderItemV1(
        service_data=PorterServiceDataV1(
            pickup_address=AddressV1(_id="a"),
            delivery_address=AddressV1(_id="b"),
            estimated_distance=5,
            is_urgent=True,
        )
    )
    document = PrintoutOrderItemV1(
        service_data=PrintoutServiceDataV1(
            print_type="document", copies=2, pages=10, color=False, paper_size="A4"
        )
    )

    assert price_item(porter) == 100.0
    assert price_item(document) == 40.0

    priced = price_draft(_request(porter, document))
    assert [row["service_data"]["estimated_cost"] for row in priced.items] == [100.0, 40.0]


def test_photo_prints_use_size_price() -> None:
    photo = PrintoutOrderItemV1(
        service_data=PrintoutServiceDataV1(
            print_type="photo", copies=2, pages=3, color=True, paper_size="Passport"
        )
    )
    assert price_item(photo) == 90.0


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        (None, (40.0, 0.0)),
        ("freedel", (0.0, 0.0)),
        ("SAVE10", (40.0, 30.0)),
    ],
)
def test_apply_promo(code: str | None, expected: tuple[float, float]) -> None:
    assert apply_promo(code, 300.0, 40.0) == expected


def test_save10_discount_is_capped() -> None:
    assert apply_promo("SAVE10", 5000.0, 0.0) == (0.0, 100.0)


def test_unknown_promo_is_rejected() -> None:
    with pytest.raises(PromoCodeError):
        apply_promo("BOGUS", 100.0, 40.0)


def test_delivery_fee_for() -> None:
    assert delivery_fee_for(499.99) == 40.0
    assert delivery_fee_for(500.0) == 0.0
