#!/usr/bin/env python3
"""Seed sample products with variant configuration for local development."""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from storefront import create_app
from storefront.models.product import Product
from storefront.services import product_service

app = create_app()

CDN = "https://placehold.co/800x800"

SAMPLE_PRODUCTS = [
    {
        "name": "Trail Running Shoe",
        "price": 89.0,
        "amazonUrl": "https://www.amazon.com/dp/B0SAMPLE01",
        "images": [
            f"{CDN}/2c3e50/fff?text=main",
            f"{CDN}/c0392b/fff?text=red",
            f"{CDN}/2980b9/fff?text=blue",
        ],
        "variants": [
            {"name": "Color", "options": ["Red", "Blue"]},
            {"name": "Size", "options": ["8", "9", "10"]},
        ],
        "variantOptionLinks": {
            "Color": {"Blue": "https://www.amazon.com/dp/B0SAMPLE02"},
            "__combo__": {"Color=Red|Size=10": "https://www.amazon.com/dp/B0SAMPLE03"},
        },
    },
    {
        "name": "Ceramic Pour-Over Set",
        "price": 34.0,
        "amazonUrl": "https://www.amazon.com/dp/B0SAMPLE10",
        "images": [f"{CDN}/ecf0f1/333?text=pour-over"],
        "variants": [{"name": "Finish", "options": ["Matte", "Gloss"]}],
        "variantImageMap": {"Finish": {"Gloss": 0}},
        "variantOptionImages": {"Finish": {"Matte": "swatches/matte.png"}},
    },
    {
        "name": "Canvas Tote",
        "price": 15.0,
        "amazonUrl": "https://www.amazon.com/dp/B0SAMPLE20",
        "images": [f"{CDN}/f1c40f/333?text=tote"],
    },
]


def seed():
    with app.app_context():
        if Product.query.first():
            print("Products already exist, skipping seed.")
            return

        for item in SAMPLE_PRODUCTS:
            product = product_service.create_product(item, actor="seed")
            product_service.publish_product(product.id, actor="seed")
            print(f"  Created {product.slug}: {product.title}")

        print(f"\nSeeded {len(SAMPLE_PRODUCTS)} products.")


if __name__ == "__main__":
    seed()
