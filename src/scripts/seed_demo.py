"""
Seed a demo restaurant with a chart of accounts, an active Square and Toast
connection and a few days of staged orders, then sync them into the ledger.

    python -m src.scripts.seed_demo
"""
from datetime import datetime, timedelta, date

import pytz

from src.core.security import create_access_token
from src.db.session import session_scope
from src.models.account import ChartOfAccount
from src.models.pos_connection import PosConnection
from src.models.pos_staging import (
    SquareOrder, SquareOrderLineItem, ToastOrder, ToastOrderItem, ToastPayment,
)
from src.models.restaurant import Restaurant, UserRestaurant
from src.models.user import User
from src.services.access import Caller
from src.services.sync_orchestrator import sync_all_restaurants

DEMO_ACCOUNTS = [
    ("4000", "Food Sales", "revenue", "food_sales"),
    ("4100", "Beverage Sales", "revenue", "beverage_sales"),
    ("2200", "Sales Tax Payable", "liability", "sales_tax"),
    ("2300", "Tips Payable", "liability", "tips"),
]


def seed():
    with session_scope() as db:
        print("Checking for demo user...")
        email = "demo@ledger.local"
        user = db.query(User).filter(User.email == email).first()
        if not user:
            print("Creating demo user...")
            user = User(email=email)
            db.add(user)
            db.flush()

        restaurant = (
            db.query(Restaurant)
            .join(UserRestaurant, UserRestaurant.restaurant_id == Restaurant.id)
            .filter(UserRestaurant.user_id == user.id, Restaurant.name == "Demo Bistro")
            .first()
        )
        if restaurant:
            print("Demo restaurant already exists.")
            return

        print("Creating demo restaurant...")
        restaurant = Restaurant(name="Demo Bistro", timezone="America/Chicago")
        db.add(restaurant)
        db.flush()
        db.add(UserRestaurant(user_id=user.id, restaurant_id=restaurant.id, role="owner"))
        for code, name, account_type, subtype in DEMO_ACCOUNTS:
            db.add(ChartOfAccount(
                restaurant_id=restaurant.id,
                account_code=code,
                account_name=name,
                account_type=account_type,
                account_subtype=subtype,
            ))
        db.add(PosConnection(restaurant_id=restaurant.id, pos_system="square", merchant_id="demo-sq"))
        db.add(PosConnection(restaurant_id=restaurant.id, pos_system="toast", merchant_id="demo-toast"))

        print("Staging orders...")
        today = date.today()
        for i in range(7):
            day = today - timedelta(days=i)
            closed = pytz.utc.localize(datetime(day.year, day.month, day.day, 23, 15))

            square_id = f"sq-demo-{i}"
            db.add(SquareOrder(
                restaurant_id=restaurant.id, order_id=square_id, state="COMPLETED",
                service_date=day, closed_at=closed,
            ))
            db.add(SquareOrderLineItem(
                restaurant_id=restaurant.id, order_id=square_id, uid=f"{square_id}-1",
                name="Signature Burger", quantity="2", base_price_money=1500, total_money=3000,
            ))

            toast_id = f"toast-demo-{i}"
            db.add(ToastOrder(
                restaurant_id=restaurant.id, toast_order_guid=toast_id, order_date=day,
                closed_date=closed, tax_amount=2.48,
            ))
            db.add(ToastOrderItem(
                restaurant_id=restaurant.id, toast_order_guid=toast_id, toast_item_guid=f"{toast_id}-1",
                item_name="House Wine", quantity=3, price=27.00, menu_category="Beverage",
            ))
            db.add(ToastPayment(
                restaurant_id=restaurant.id, toast_payment_guid=f"{toast_id}-pay", toast_order_guid=toast_id,
                payment_type="CREDIT", payment_status="CAPTURED", paid_date=closed, tip_amount=5.00,
            ))
        db.commit()

        caller = Caller.service("seed")
        for pos_system in ("square", "toast"):
            print(f"Syncing {pos_system}: {sync_all_restaurants(db, pos_system, caller).message}")

        print("Seeding complete!")
        print(f"Bearer token for {email}: {create_access_token(str(user.id))}")


if __name__ == "__main__":
    seed()
