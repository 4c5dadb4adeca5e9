# src/app.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple
import os

from dao import (
    UserDAO,
    ProductDAO,
    OrderDAO,
    Order,
    OrderItemData,
)
from messaging import MessageSender, get_sender
from metrics import ORDERS_TOTAL, ORDER_TOTAL_AMOUNT, NOTIFICATIONS_TOTAL
from pricing import (
    DiscountPolicy,
    InvalidLineItem,
    LineItem,
    PricingEngine,
    REGULAR,
    available_policies,
    get_policy,
    to_decimal,
)
import logging
logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    """A line in the in-memory shopping cart."""
    product_id: int
    qty: int
    unit_price: Decimal

    def to_line_item(self) -> LineItem:
        return LineItem(unit_price=self.unit_price, quantity=self.qty)


@dataclass
class Totals:
    subtotal: Decimal
    total: Decimal
    policy: str


class CartApp:
    """
    Business logic for the shopping cart: registration, login, cart
    management and checkout.  Pricing is delegated to PricingEngine with
    the logged-in user's tier policy; the notification sender is injected.
    """

    def __init__(self, sender: Optional[MessageSender] = None, conn=None) -> None:
        self.user_dao = UserDAO(conn)
        self.product_dao = ProductDAO(conn)
        self.order_dao = OrderDAO(conn)
        if sender is None:
            sender = get_sender(os.environ.get("CART_NOTIFY_CHANNEL", "email"))
        self.sender = sender

        # Cart keyed by product_id
        self._cart: Dict[int, CartLine] = {}
        self._current_user_id: int | None = None

    @property
    def current_user_id(self) -> int | None:
        return self._current_user_id

    # ---- Authentication ----

    def register(
        self, username: str, password: str, email: str = "", phone: str = "", tier: str = "regular"
    ) -> Tuple[bool, str]:
        tier = tier.strip().lower()
        if tier not in available_policies():
            return False, f"Unknown customer tier '{tier}'."
        ok = self.user_dao.register_user(username, password, email=email, phone=phone, tier=tier)
        return (ok, "User registered." if ok else "Username already exists.")

    def login(self, username: str, password: str) -> bool:
        uid = self.user_dao.authenticate(username, password)
        self._current_user_id = uid
        return uid is not None

    # ---- Product catalogue ----

    def add_product(self, name: str, price, stock: int) -> Tuple[Optional[int], str]:
        """Add a catalogue entry; returns ``(product_id, message)``.

        The id is None when the name, price or stock is rejected.
        """
        name = name.strip()
        if not name:
            return None, "Product name is required."
        try:
            price = to_decimal(price)
        except (InvalidOperation, TypeError, ValueError):
            return None, f"Invalid price '{price}'."
        if not price.is_finite() or price < 0:
            return None, "Price must be a non-negative amount."
        if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
            return None, "Stock must be a non-negative whole number."
        product_id = self.product_dao.add_product(name, price, stock)
        return product_id, f"Added product with ID {product_id}."

    def list_products(self):
        return self.product_dao.list_products()

    # ---- Cart operations ----

    def add_to_cart(self, product_id: int, qty: int) -> Tuple[bool, str]:
        if qty <= 0:
            return False, "Quantity must be positive."
        p = self.product_dao.get_product(product_id)
        if not p:
            return False, "Product not found."
        self._cart[product_id] = CartLine(product_id=product_id, qty=qty, unit_price=p.price)
        return True, f"Added {qty} x {p.name} to cart"

    def remove_from_cart(self, product_id: int) -> None:
        self._cart.pop(product_id, None)

    def clear_cart(self) -> None:
        self._cart.clear()

    def view_cart(self) -> List[CartLine]:
        return list(self._cart.values())

    def line_items(self) -> List[LineItem]:
        return [line.to_line_item() for line in self._cart.values()]

    # ---- Pricing ----

    def current_policy(self) -> DiscountPolicy:
        """Discount policy for the logged-in user's tier (Regular otherwise)."""
        if self._current_user_id is None:
            return REGULAR
        user = self.user_dao.get_user(self._current_user_id)
        if user is None:
            return REGULAR
        return get_policy(user.tier)

    def compute_cart_totals(self) -> Totals:
        """Price the cart with the current policy.

        Raises:
            InvalidLineItem: If a cart line has an unusable price.
        """
        policy = self.current_policy()
        engine = PricingEngine(policy, validate=True)
        items = self.line_items()
        return Totals(
            subtotal=engine.calculate_subtotal(items),
            total=engine.calculate_total(items),
            policy=policy.name,
        )

    # ---- Checkout ----

    def checkout(self) -> Tuple[bool, str]:
        """Price the cart, persist the order and notify the customer.

        Returns ``(True, receipt)`` on success or ``(False, reason)``.
        A failing notification is logged but does not undo the order.
        """
        if not self._current_user_id:
            return False, "You must be logged in."
        if not self._cart:
            return False, "Cart is empty."

        cart_items = [CartLine(l.product_id, l.qty, l.unit_price) for l in self._cart.values()]
        try:
            totals = self.compute_cart_totals()
        except InvalidLineItem as exc:
            logger.warning(
                "Checkout rejected: %s", exc, extra={"user_id": self._current_user_id}
            )
            return False, str(exc)

        order_id = self.order_dao.create_order(
            user_id=self._current_user_id,
            items=[
                OrderItemData(product_id=ln.product_id, quantity=ln.qty, unit_price=ln.unit_price)
                for ln in cart_items
            ],
            subtotal=totals.subtotal,
            total=totals.total,
            policy=totals.policy,
        )
        ORDERS_TOTAL.inc(policy=totals.policy)
        ORDER_TOTAL_AMOUNT.observe(totals.total, policy=totals.policy)
        logger.info(
            "Order placed",
            extra={
                "user_id": self._current_user_id,
                "order_id": order_id,
                "extra": {"total": str(totals.total), "policy": totals.policy},
            },
        )
        self.clear_cart()

        receipt_lines = [f"Order ID: {order_id}"]
        for ln in cart_items:
            p = self.product_dao.get_product(ln.product_id)
            name = p.name if p else f"#{ln.product_id}"
            receipt_lines.append(f" - {name} x {ln.qty} @ {ln.unit_price:.2f} = {ln.unit_price * ln.qty:.2f}")
        receipt_lines.append(f"Subtotal: {totals.subtotal:.2f}")
        receipt_lines.append(f"Discount: {totals.policy}")
        receipt_lines.append(f"Total: {totals.total:.2f}")

        self._notify(order_id, totals.total)
        return True, "\n".join(receipt_lines)

    def _notify(self, order_id: int, total: Decimal) -> None:
        user = self.user_dao.get_user(self._current_user_id)
        channel = self.sender.channel or "email"
        recipient = getattr(user, channel, "") if user else ""
        if not recipient:
            NOTIFICATIONS_TOTAL.inc(channel=channel, status="skipped")
            logger.warning(
                "No %s on file; order notification skipped", channel,
                extra={"user_id": self._current_user_id, "order_id": order_id},
            )
            return
        try:
            self.sender.send(recipient, f"Your order #{order_id} was placed. Total: {total:.2f}")
        except Exception:
            # delivery is best effort
            NOTIFICATIONS_TOTAL.inc(channel=channel, status="failed")
            logger.exception(
                "Order notification failed",
                extra={"user_id": self._current_user_id, "order_id": order_id},
            )
            return
        NOTIFICATIONS_TOTAL.inc(channel=channel, status="sent")

    # ---- Order history ----

    def order_history(self) -> List[Order]:
        if self._current_user_id is None:
            return []
        return self.order_dao.list_orders(user_id=self._current_user_id)
