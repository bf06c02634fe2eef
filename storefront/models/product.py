from datetime import datetime, timezone
from storefront.extensions import db
from storefront.services.variant_service import VariantConfig, VariantGroup


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(255), unique=True, nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, default="")
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    amazon_url = db.Column(db.String(1024), nullable=False)
    main_image = db.Column(db.String(1024), nullable=False, default="")
    images = db.Column(db.JSON, default=list)  # ["https://cdn/.../main.jpg", ...]
    # group -> option -> int index into images (legacy)
    variant_image_map = db.Column(db.JSON)
    # group -> option -> thumbnail URL
    variant_option_images = db.Column(db.JSON)
    # group -> option -> URL, plus "__combo__" -> combo key -> URL
    variant_option_links = db.Column(db.JSON)
    status = db.Column(
        db.String(20), nullable=False, default="DRAFT", index=True
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    variants = db.relationship(
        "VariantOption",
        backref="product",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="VariantOption.sort_order",
    )

    VALID_STATUSES = {"DRAFT", "PUBLISHED", "HIDDEN"}

    @property
    def price_display(self):
        """Price in dollars as a float for display."""
        return (self.price_cents or 0) / 100

    @property
    def is_visible(self):
        return self.status == "PUBLISHED"

    @property
    def variant_groups(self):
        """Ordered variant groups rebuilt from the option rows."""
        groups = {}
        for row in sorted(self.variants, key=lambda v: v.sort_order or 0):
            groups.setdefault(row.type, []).append(row.value)
        return [VariantGroup(name, tuple(options)) for name, options in groups.items()]

    def variant_config(self):
        return VariantConfig(
            amazon_url=self.amazon_url,
            images=self.images if isinstance(self.images, list) else [],
            main_image=self.main_image,
            groups=self.variant_groups,
            image_map=self.variant_image_map,
            option_images=self.variant_option_images,
            option_links=self.variant_option_links,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "description": self.description or "",
            "price": self.price_display,
            "status": self.status,
            "amazonUrl": self.amazon_url,
            "mainImage": self.main_image,
            "images": self.variant_config().gallery,
            "variants": [
                {"name": g.name, "options": list(g.options)}
                for g in self.variant_groups
            ],
            "variantImageMap": self.variant_image_map,
            "variantOptionImages": self.variant_option_images,
            "variantOptionLinks": self.variant_option_links,
        }

    def __repr__(self):
        return f"<Product {self.slug}: {self.title}>"
