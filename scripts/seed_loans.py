"""
Seed loan products and their dynamic form fields for local development.
Run: python -m scripts.seed_loans (from the project root).
"""
import asyncio
import os
import sys

# Add parent so we can import from the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from database import AsyncSessionLocal, dispose_db, init_db
from models import FormFieldDefinition, LoanProduct


LOANS_DATA = [
    {
        "id": "personal-loan",
        "name": "Personal Loan",
        "slug": "personal-loan",
        "type": "Personal",
        "category_id": "retail",
        "description": "Unsecured loan for personal expenses",
        "interest_rate": {"min": 10.5, "max": 24.0, "default": 12.0},
        "min_loan_amount": 50_000,
        "max_loan_amount": 2_500_000,
        "min_tenure": 12,
        "max_tenure": 60,
    },
    {
        "id": "home-loan",
        "name": "Home Loan",
        "slug": "home-loan",
        "type": "Home",
        "category_id": "secured",
        "description": "Loan for purchase or construction of a house",
        "interest_rate": {"min": 8.4, "max": 11.0, "default": 8.75},
        "min_loan_amount": 500_000,
        "max_loan_amount": 50_000_000,
        "min_tenure": 60,
        "max_tenure": 360,
    },
    {
        "id": "gold-loan",
        "name": "Gold Loan",
        "slug": "gold-loan",
        "type": "Gold",
        "category_id": "secured",
        "description": "Interest-free promotional loan against gold",
        "interest_rate": {"min": 0, "max": 0, "default": 0},
        "min_loan_amount": 10_000,
        "max_loan_amount": 1_000_000,
        "min_tenure": 3,
        "max_tenure": 12,
    },
]

FORM_FIELDS_DATA = [
    {
        "id": "field-home-property-value",
        "loan_id": "home-loan",
        "name": "propertyValue",
        "label": "Property value",
        "type": "Number",
        "required": True,
        "section": "loanDetails",
        "order": 1,
    },
    {
        "id": "field-home-sale-deed",
        "loan_id": "home-loan",
        "name": "saleDeed",
        "label": "Sale deed",
        "type": "File",
        "required": False,
        "section": "documents",
        "order": 2,
    },
    {
        "id": "field-secured-collateral",
        "category_id": "secured",
        "name": "collateralType",
        "label": "Collateral type",
        "type": "Select",
        "options": ["Property", "Gold", "Fixed Deposit"],
        "required": True,
        "section": "loanDetails",
        "order": 1,
    },
]


def _check_rate_band(loan: dict) -> None:
    band = loan["interest_rate"]
    if not band["min"] <= band["default"] <= band["max"]:
        raise ValueError(f"{loan['id']}: interest rate default must lie between min and max")


def _check_owner(field: dict) -> None:
    if bool(field.get("loan_id")) == bool(field.get("category_id")):
        raise ValueError(f"{field['id']}: exactly one of loan_id or category_id must be set")


async def seed_catalog(session) -> None:
    """Insert the sample loans and form fields that are not there yet."""
    for data in LOANS_DATA:
        _check_rate_band(data)
        existing = await session.execute(select(LoanProduct).where(LoanProduct.id == data["id"]))
        if existing.scalar_one_or_none():
            print(f"Skip existing loan: {data['id']}")
            continue
        band = data["interest_rate"]
        session.add(LoanProduct(
            id=data["id"],
            name=data["name"],
            slug=data["slug"],
            type=data["type"],
            category_id=data.get("category_id"),
            description=data.get("description"),
            interest_rate_min=band["min"],
            interest_rate_max=band["max"],
            interest_rate_default=band["default"],
            min_loan_amount=data["min_loan_amount"],
            max_loan_amount=data["max_loan_amount"],
            min_tenure=data["min_tenure"],
            max_tenure=data["max_tenure"],
            is_active=True,
        ))
        print(f"Added loan: {data['name']}")
    await session.flush()

    for data in FORM_FIELDS_DATA:
        _check_owner(data)
        existing = await session.execute(
            select(FormFieldDefinition).where(FormFieldDefinition.id == data["id"])
        )
        if existing.scalar_one_or_none():
            print(f"Skip existing form field: {data['id']}")
            continue
        session.add(FormFieldDefinition(**data))
        print(f"Added form field: {data['name']}")
    await session.commit()


async def seed():
    await init_db()
    async with AsyncSessionLocal() as session:
        await seed_catalog(session)
    await dispose_db()
    print("Seed done.")


if __name__ == "__main__":
    asyncio.run(seed())
