from __future__ import annotations

import argparse
import asyncio
import logging
import os

from packages.shared.schemas.order_v1 import AddressV1, PaymentMethodV1
from services.checkout.app.client.factory import get_orders_api
from services.checkout.app.config import CheckoutSettings
from services.checkout.app.models.cart import (
    CartAddress,
    DocumentPrintDetails,
    PorterDetails,
    PorterLineItem,
    PrintoutLineItem,
    ProductLineItem,
)
from services.checkout.app.services.cart import Cart
from services.checkout.app.services.negotiation import CheckoutSession, NegotiationState
from services.checkout.app.services.tracking import OrderTracker


def main() -> int:
    parser = argparse.ArgumentParser(description="Run one checkout against the sandbox orders API")
    parser.add_argument("--promo", default=None, help="Promo code to send with the draft")
    parser.add_argument("--tip", type=float, default=0)
    parser.add_argument("--accept-price-change", action="store_true")
    parser.add_argument("--advance", type=int, default=3, help="Sandbox status steps to advance")
    parser.add_argument("--with-services", action="store_true", help="Add a porter and a print job")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )
    return asyncio.run(_run(args))


async def _run(args: argparse.Namespace) -> int:
    api = get_orders_api()
    settings = CheckoutSettings.from_env()
    try:
        cart = Cart(api, authenticated=True)
        cart.add_item(
            ProductLineItem(id="milk-1l", name="Toned Milk 1L", quantity=2, selling_price=56)
        )
        cart.add_item(ProductLineItem(id="eggs-12", name="Eggs (12)", quantity=1, selling_price=90))
        if args.with_services:
            cart.add_item(
                PorterLineItem(
                    id="porter-1",
                    selling_price=80,
                    service_details=PorterDetails(
                        pickup_address=CartAddress(_id="addr-pickup", city="Pune"),
                        delivery_address=CartAddress(_id="addr-drop", city="Pune"),
                        distance="5",
                    ),
                )
            )
            cart.add_item(
                PrintoutLineItem(
                    id="print-1",
                    selling_price=20,
                    service_details=DocumentPrintDetails(number_of_pages=10, copies=1),
                )
            )

        session = CheckoutSession(
            api,
            cart,
            settings,
            delivery_address=AddressV1(_id="addr-home", street="221B Baker St", city="Pune"),
            payment_method=PaymentMethodV1.COD,
        )
        session.tip = args.tip
        if args.promo:
            session.apply_promo(args.promo, 0)

        outcome = await session.place_order()
        if outcome is None:
            return 1

        if outcome.state is NegotiationState.PRICE_MISMATCH and outcome.mismatch is not None:
            print(outcome.mismatch.message)
            if not args.accept_price_change:
                session.decline_price()
                print("Price change declined; nothing was ordered.")
                return 0
            outcome = await session.accept_price()

        if outcome is None or outcome.confirmation is None:
            print(outcome.notice if outcome else "Checkout did not complete")
            return 1

        order_id = outcome.confirmation.order_id
        print(f"Order placed: {order_id}")

        tracker = OrderTracker(api, settings, order_id=order_id)
        await tracker.refresh()
        sandbox = os.getenv("DOORSTEP_ORDERS_API", "sandbox").strip().lower() == "sandbox"
        for _ in range(max(0, args.advance) if sandbox else 0):
            await _sandbox_advance(order_id)
        await tracker.refresh()

        print(f"Status: {tracker.status_label} ({tracker.progress:.0%})")
        print(f"Countdown: {tracker.countdown.label} {tracker.countdown.display}")
        await tracker.close()
        return 0
    finally:
        await api.aclose()


async def _sandbox_advance(order_id: str) -> None:
    import httpx
    from services.api.app.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://sandbox") as client:
        response = await client.post(f"/orders/{order_id}/advance")
        response.raise_for_status()


if __name__ == "__main__":
    raise SystemExit(main())
