"""Flask CLI commands for admin operations."""
import click


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        from storefront.extensions import db

        db.create_all()
        click.echo("Database initialized.")

    @app.cli.command("seed-demo")
    def seed_demo():
        """Seed demo products with variant configuration (idempotent)."""
        from storefront.models.product import Product
        from storefront.services import product_service

        if Product.query.first():
            click.echo("Products already exist, skipping demo seed.")
            return

        demo_products = [
            {
                "name": "Classic Cotton Tee",
                "price": 19.99,
                "amazonUrl": "https://www.amazon.com/dp/B000000001",
                "images": [
                    "https://cdn.example.com/tee/main.jpg",
                    "https://cdn.example.com/tee/red.jpg",
                    "https://cdn.example.com/tee/blue.jpg",
                ],
                "variants": [
                    {"name": "Color", "options": ["Red", "Blue"]},
                    {"name": "Size", "options": ["S", "M", "L"]},
                ],
                "variantOptionImages": {
                    "Color": {
                        "Red": "https://cdn.example.com/tee/swatch-red.jpg",
                        "Blue": "https://cdn.example.com/tee/swatch-blue.jpg",
                    }
                },
                "variantOptionLinks": {
                    "Color": {"Red": "https://www.amazon.com/dp/B000000002"},
                    "__combo__": {
                        "Color=Blue|Size=M": "https://www.amazon.com/dp/B000000003"
                    },
                },
            },
            {
                "name": "Stainless Water Bottle",
                "price": 24.5,
                "amazonUrl": "https://www.amazon.com/dp/B000000010",
                "images": ["https://cdn.example.com/bottle/main.jpg"],
            },
        ]
        for data in demo_products:
            product = product_service.create_product(data, actor="cli")
            product_service.publish_product(product.id, actor="cli")
        click.echo(f"Seeded {len(demo_products)} demo products.")

    @app.cli.command("create-product")
    @click.option("--title", required=True)
    @click.option("--price", required=True, type=float, help="Price in dollars")
    @click.option("--amazon-url", required=True)
    @click.option("--image", "images", multiple=True, required=True)
    def create_product(title, price, amazon_url, images):
        """Create a DRAFT product without variants."""
        from storefront.services import product_service

        try:
            product = product_service.create_product(
                {"name": title, "price": price, "amazonUrl": amazon_url, "images": list(images)},
                actor="cli",
            )
        except ValueError as e:
            raise click.ClickException(str(e))
        click.echo(f"Created: {product.slug} ({product.id}) {product.amazon_url}")

    @app.cli.command("combo-audit")
    @click.argument("product_id", type=int, required=False)
    def combo_audit(product_id):
        """Report combination links the current group order cannot reach."""
        from storefront.models.product import Product
        from storefront.workers.combo_audit import audit_combination_links

        if product_id is not None:
            ids = [product_id]
        else:
            ids = [p.id for p in Product.query.order_by(Product.id).all()]

        total = 0
        for pid in ids:
            orphaned = audit_combination_links(pid, actor="cli")
            for key in orphaned:
                click.echo(f"  product {pid}: {key}")
            total += len(orphaned)
        click.echo(f"Orphaned combination links: {total}")

    @app.cli.command("stats")
    def stats():
        """Show product statistics."""
        from storefront.services.product_service import get_stats

        s = get_stats()
        total = sum(s.values())
        click.echo(f"Total products: {total}")
        for status, count in sorted(s.items()):
            click.echo(f"  {status}: {count}")
