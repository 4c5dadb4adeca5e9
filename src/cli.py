"""
Command-line interface for the shopping cart.

Wires ``CartApp`` into an interactive menu loop.  All pricing and
persistence lives in ``app``; this module only prompts and prints.
"""

import sys
from decimal import Decimal, InvalidOperation

from app import CartApp
from logging_config import configure_logging
from metrics import generate_metrics_text
from pricing import InvalidLineItem, available_policies


def print_menu() -> None:
    print("\n-- Shopping Cart --")
    print("1. Register")
    print("2. Login")
    print("3. List Products")
    print("4. Add Product to Cart")
    print("5. View Cart")
    print("6. Checkout")
    print("7. Add New Product")
    print("8. Order History")
    print("9. Metrics")
    print("0. Exit")


def interactive_cli(app: CartApp | None = None) -> None:
    """Run the menu loop until the user picks Exit."""
    app = app or CartApp()

    while True:
        print_menu()
        choice = input("Select an option: ").strip()
        if choice == "1":
            username = input("Username: ").strip()
            password = input("Password: ").strip()
            email = input("Email: ").strip()
            phone = input("Phone: ").strip()
            tier = input(f"Tier ({'/'.join(available_policies())}): ").strip() or "regular"
            ok, msg = app.register(username, password, email=email, phone=phone, tier=tier)
            print(msg)
        elif choice == "2":
            username = input("Username: ").strip()
            password = input("Password: ").strip()
            if app.login(username, password):
                print(f"Welcome, {username}!")
            else:
                print("Invalid credentials.")
        elif choice == "3":
            products = app.list_products()
            if not products:
                print("No products available.")
            else:
                print("\nAvailable Products:")
                for p in products:
                    print(f"{p.id}. {p.name} - ${p.price:.2f}")
        elif choice == "4":
            try:
                pid = int(input("Enter Product ID: "))
                qty = int(input("Enter quantity: "))
            except ValueError:
                print("Please enter valid numeric values.")
                continue
            ok, msg = app.add_to_cart(pid, qty)
            print(msg)
        elif choice == "5":
            cart_items = app.view_cart()
            if not cart_items:
                print("Cart is empty.")
                continue
            print("\nCart Contents:")
            for line in cart_items:
                print(f"#{line.product_id} x {line.qty} = ${line.unit_price * line.qty:.2f}")
            try:
                totals = app.compute_cart_totals()
            except InvalidLineItem as exc:
                print(f"Cannot price cart: {exc}")
                continue
            print(f"Subtotal: ${totals.subtotal:.2f}  Total ({totals.policy}): ${totals.total:.2f}")
        elif choice == "6":
            ok, receipt = app.checkout()
            if ok:
                print("\nOrder placed! Receipt:")
                print(receipt)
            else:
                print(f"Checkout failed: {receipt}")
        elif choice == "7":
            name = input("Product name: ").strip()
            try:
                price = Decimal(input("Price: ").strip())
                stock = int(input("Initial stock: "))
            except (InvalidOperation, ValueError):
                print("Please enter valid numeric values for price and stock.")
                continue
            _, msg = app.add_product(name, price, stock)
            print(msg)
        elif choice == "8":
            orders = app.order_history()
            if not orders:
                print("No orders yet.")
            for order in orders:
                print(f"Order {order.id} on {order.order_date}: ${order.total_amount:.2f} ({order.policy})")
        elif choice == "9":
            print(generate_metrics_text().decode("utf-8"))
        elif choice == "0":
            print("Exiting application.")
            break
        else:
            print("Invalid option. Please try again.")


def main() -> None:
    configure_logging()
    try:
        interactive_cli()
    except KeyboardInterrupt:
        print("\nInterrupted by user. Exiting.")
        sys.exit(0)


if __name__ == "__main__":
    main()
