"""
Populate a database with sample catalog data.

    python -m shopwise.seed [--reset] [--admin]

Products are matched by SKU, so running the script twice adds nothing.
"""
import argparse
import logging
import os

from sqlalchemy.orm import Session

from shopwise.bootstrap import ensure_admin_exists
from shopwise.database import SessionLocal, init_database
from shopwise.models import Product

logger = logging.getLogger(__name__)


def _image(photo: str, alt: str) -> list:
    return [{
        "url": f"https://images.unsplash.com/{photo}?w=500",
        "alt": alt,
        "isPrimary": True,
    }]


def _specs(*features) -> list:
    return [{"name": "Feature", "value": feature} for feature in features]


SAMPLE_PRODUCTS = [
    {
        "name": "Wireless Bluetooth Headphones",
        "description": "High-quality wireless headphones with noise cancellation and 30-hour battery life.",
        "price": 79.99,
        "original_price": 99.99,
        "category": "Electronics",
        "subcategory": "Audio",
        "brand": "TechSound",
        "sku": "TS-WBH-001",
        "images": _image("photo-1505740420928-5e560c06d30e", "Wireless headphones"),
        "specifications": _specs("Noise Cancellation", "30-hour Battery", "Foldable"),
        "variants": [{
            "name": "Color",
            "options": [
                {"value": "Black", "price": 0, "stock": 30},
                {"value": "Silver", "price": 5, "stock": 20},
            ],
        }],
        "stock": 50,
        "is_featured": True,
        "is_on_sale": True,
    },
    {
        "name": "Smart Fitness Watch",
        "description": "Advanced fitness tracker with heart rate monitoring, GPS, and smartphone connectivity.",
        "price": 199.99,
        "category": "Electronics",
        "subcategory": "Wearables",
        "brand": "FitTech",
        "sku": "FT-SFW-002",
        "images": _image("photo-1523275335684-37898b6baf30", "Fitness watch"),
        "specifications": _specs("Heart Rate Monitor", "GPS", "Waterproof"),
        "stock": 30,
        "is_featured": True,
    },
    {
        "name": "Organic Cotton T-Shirt",
        "description": "Comfortable and sustainable organic cotton t-shirt available in multiple colors.",
        "price": 24.99,
        "category": "Clothing",
        "subcategory": "Tops",
        "brand": "EcoWear",
        "sku": "EW-OCT-003",
        "images": _image("photo-1521572163474-6864f9cf17ab", "Cotton t-shirt"),
        "specifications": _specs("Organic Cotton", "Machine Washable"),
        "variants": [{
            "name": "Size",
            "options": [
                {"value": "S", "price": 0, "stock": 30},
                {"value": "M", "price": 0, "stock": 40},
                {"value": "L", "price": 0, "stock": 20},
                {"value": "XL", "price": 2, "stock": 10},
            ],
        }],
        "stock": 100,
    },
    {
        "name": "Stainless Steel Water Bottle",
        "description": "Insulated stainless steel water bottle that keeps drinks cold for 24 hours or hot for 12 hours.",
        "price": 29.99,
        "category": "Home & Garden",
        "subcategory": "Kitchen",
        "brand": "HydroLife",
        "sku": "HL-SSB-004",
        "images": _image("photo-1602143407151-7111542de6e8", "Water bottle"),
        "specifications": _specs("Insulated", "BPA Free"),
        "stock": 75,
    },
    {
        "name": "Yoga Mat Premium",
        "description": "Non-slip premium yoga mat with extra cushioning for comfortable practice.",
        "price": 49.99,
        "category": "Sports & Outdoors",
        "subcategory": "Fitness",
        "brand": "ZenFit",
        "sku": "ZF-YMP-005",
        "images": _image("photo-1544367567-0f2fcb009e0b", "Yoga mat"),
        "specifications": _specs("Non-slip", "Extra Cushioning", "Carrying Strap"),
        "stock": 40,
        "is_featured": True,
    },
    {
        "name": "Coffee Maker Deluxe",
        "description": "Programmable coffee maker with built-in grinder and thermal carafe.",
        "price": 149.99,
        "category": "Home & Garden",
        "subcategory": "Kitchen",
        "brand": "BrewMaster",
        "sku": "BM-CMD-006",
        "images": _image("photo-1495474472287-4d71bcdd2085", "Coffee maker"),
        "specifications": _specs("Built-in Grinder", "Thermal Carafe", "Programmable"),
        "stock": 25,
    },
    {
        "name": "Skincare Set Natural",
        "description": "Complete natural skincare set with cleanser, toner, serum, and moisturizer.",
        "price": 89.99,
        "category": "Health & Beauty",
        "subcategory": "Skincare",
        "brand": "NaturGlow",
        "sku": "NG-SSN-007",
        "images": _image("photo-1556228578-8c89e6adf883", "Skincare set"),
        "specifications": _specs("Natural Ingredients", "Cruelty Free"),
        "stock": 35,
    },
    {
        "name": "Desk Lamp LED",
        "description": "Adjustable LED desk lamp with touch control and USB charging port.",
        "price": 39.99,
        "category": "Office Supplies",
        "subcategory": "Lighting",
        "brand": "BrightLight",
        "sku": "BL-DLL-008",
        "images": _image("photo-1507473885765-e6ed057f782c", "Desk lamp"),
        "specifications": _specs("Touch Control", "USB Charging"),
        "stock": 65,
    },
]


def seed_products(db: Session, reset: bool = False) -> int:
    """Insert missing sample products; returns how many were added."""
    if reset:
        removed = db.query(Product).delete()
        db.commit()
        logger.info("Removed existing products | count=%s", removed)

    existing = {sku for (sku,) in db.query(Product.sku).all()}
    created = 0

    for data in SAMPLE_PRODUCTS:
        if data["sku"] in existing:
            continue
        product = Product(**data)
        product.slug = Product.slugify(product.name)
        db.add(product)
        created += 1

    db.commit()
    logger.info("Sample products seeded | created=%s", created)
    return created


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed the ShopWise database with sample data.")
    parser.add_argument("--reset", action="store_true", help="delete existing products first")
    parser.add_argument("--admin", action="store_true", help="also create the admin account")
    parser.add_argument("--admin-email", default=os.getenv("ADMIN_EMAIL"))
    parser.add_argument("--admin-password", default=os.getenv("ADMIN_PASSWORD"))
    args = parser.parse_args(argv)

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

    init_database()
    db = SessionLocal()
    try:
        seed_products(db, reset=args.reset)
        if args.admin:
            if not args.admin_email or not args.admin_password:
                parser.error("--admin needs --admin-email/--admin-password or ADMIN_EMAIL/ADMIN_PASSWORD")
            ensure_admin_exists(db, args.admin_email, args.admin_password)
    finally:
        db.close()


if __name__ == "__main__":
    main()
