import json
import logging
import re
from datetime import datetime, timezone
from urllib.parse import urlsplit
from rq import Retry
from storefront import extensions as ext
from storefront.extensions import db
from storefront.models.product import Product
from storefront.models.variant import VariantOption
from storefront.models.audit_log import AuditLog
from storefront.services.variant_service import (
    COMBO_KEY,
    VariantGroup,
    all_combo_keys,
    first_missing_combo_key,
    orphaned_combo_keys,
)

logger = logging.getLogger(__name__)

ASIN_PATTERNS = [
    re.compile(r"/(?:dp|product)/([A-Z0-9]{10})", re.IGNORECASE),
    re.compile(r"/gp/product/([A-Z0-9]{10})", re.IGNORECASE),
    re.compile(r"[?&]ASIN=([A-Z0-9]{10})", re.IGNORECASE),
]


# ---------------------------------------------------------------------------
# Store-boundary normalization
# ---------------------------------------------------------------------------

def normalize_amazon_url(url):
    """Validate a purchase URL; canonicalize Amazon links to /dp/<ASIN>."""
    if not url or not isinstance(url, str):
        raise ValueError("amazonUrl is required.")

    candidate = url.strip()
    parts = urlsplit(candidate)
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        raise ValueError("amazonUrl must be an http(s) URL.")

    for pattern in ASIN_PATTERNS:
        match = pattern.search(candidate)
        if match:
            return f"https://www.amazon.com/dp/{match.group(1).upper()}"
    return candidate


def normalize_images(raw):
    if isinstance(raw, str):
        raw = _parse_json(raw)
    if not isinstance(raw, list):
        raw = []
    images = [str(src).strip() for src in raw if src and str(src).strip()]
    if not images:
        raise ValueError("At least one product image is required.")
    return images


def normalize_variant_groups(raw):
    """Clean up admin-submitted groups.

    Names and options are stripped, blank options dropped, groups without a
    name or without options dropped, repeated options collapsed. Two groups
    with the same name are rejected.
    """
    if isinstance(raw, str):
        raw = _parse_json(raw)
    if not isinstance(raw, list):
        return []

    groups = []
    seen = set()
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        name = str(entry.get("name") or "").strip()
        options = []
        for option in entry.get("options") or []:
            option = str(option).strip()
            if option and option not in options:
                options.append(option)
        if not name or not options:
            continue
        if name in seen:
            raise ValueError(f"Duplicate variant group: {name}")
        if name == COMBO_KEY:
            raise ValueError(f"'{COMBO_KEY}' is reserved and cannot be a group name.")
        seen.add(name)
        groups.append(VariantGroup(name, tuple(options)))
    return groups


def normalize_option_map(raw, value_kind="url"):
    """Normalize a group -> option -> value map, or return None.

    ``value_kind`` is ``"index"`` for the image map (integer values) and
    ``"url"`` for image/link overrides (non-empty strings).
    """
    if not raw:
        return None
    if isinstance(raw, str):
        raw = _parse_json(raw)
    if not isinstance(raw, dict):
        return None

    result = {}
    for group, options in raw.items():
        if not isinstance(options, dict):
            continue
        clean = {}
        for option, value in options.items():
            if value_kind == "index":
                if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                    clean[str(option)] = value
            elif isinstance(value, str) and value.strip():
                clean[str(option)] = value.strip()
        if clean:
            result[str(group)] = clean
    return result or None


def _parse_json(raw):
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None


def generate_slug(title):
    base = re.sub(r"[^a-z0-9]+", "-", title.lower().strip()).strip("-") or "product"
    slug = base
    suffix = 1
    while Product.query.filter_by(slug=slug).first():
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def parse_price_cents(raw):
    try:
        price = float(raw)
    except (TypeError, ValueError):
        raise ValueError("price must be a number.")
    if price <= 0:
        raise ValueError("price must be positive.")
    return int(round(price * 100))


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def _replace_variants(product, groups):
    product.variants.clear()
    db.session.flush()
    order = 0
    for group in groups:
        for option in group.options:
            product.variants.append(
                VariantOption(type=group.name, value=option, sort_order=order)
            )
            order += 1


def create_product(data, actor):
    """Create a DRAFT product from an admin payload. Raises ValueError."""
    title = str(data.get("name") or data.get("title") or "").strip()
    if not title:
        raise ValueError("name is required.")

    price_cents = parse_price_cents(data.get("price"))
    amazon_url = normalize_amazon_url(data.get("amazonUrl"))
    images = normalize_images(data.get("images"))
    groups = normalize_variant_groups(data.get("variants"))

    product = Product(
        slug=generate_slug(title),
        title=title,
        description=data.get("description") or "",
        price_cents=price_cents,
        amazon_url=amazon_url,
        main_image=images[0],
        images=images,
        variant_image_map=normalize_option_map(data.get("variantImageMap"), "index"),
        variant_option_images=normalize_option_map(data.get("variantOptionImages")),
        variant_option_links=normalize_option_map(data.get("variantOptionLinks")),
        status="DRAFT",
    )
    db.session.add(product)
    db.session.flush()
    _replace_variants(product, groups)

    db.session.add(
        AuditLog(
            actor=actor,
            action="CREATE_PRODUCT",
            product_id=product.id,
            payload={"slug": product.slug, "title": title},
        )
    )
    db.session.commit()
    logger.info("Created product %s", product.slug)
    return product


UPDATABLE_FIELDS = {
    "variants",
    "variantImageMap",
    "variantOptionImages",
    "variantOptionLinks",
    "amazonUrl",
    "images",
}


def update_variants(product_id, data, actor):
    """Replace a product's variant configuration.

    Only the keys present in ``data`` are touched. Combination links are
    stored as submitted; keys made stale by a group reorder are reported by
    the audit job, not rewritten.
    """
    product = db.session.get(Product, product_id)
    if not product:
        return None

    # Validate everything before touching the row.
    groups = normalize_variant_groups(data["variants"]) if "variants" in data else None
    amazon_url = normalize_amazon_url(data["amazonUrl"]) if "amazonUrl" in data else None
    images = normalize_images(data["images"]) if "images" in data else None

    if groups is not None:
        _replace_variants(product, groups)
    if "variantImageMap" in data:
        product.variant_image_map = normalize_option_map(data["variantImageMap"], "index")
    if "variantOptionImages" in data:
        product.variant_option_images = normalize_option_map(data["variantOptionImages"])
    if "variantOptionLinks" in data:
        product.variant_option_links = normalize_option_map(data["variantOptionLinks"])
    if amazon_url is not None:
        product.amazon_url = amazon_url
    if images is not None:
        product.images = images
        product.main_image = images[0]

    product.updated_at = datetime.now(timezone.utc)
    db.session.add(
        AuditLog(
            actor=actor,
            action="UPDATE_VARIANTS",
            product_id=product.id,
            payload={"fields": sorted(k for k in data if k in UPDATABLE_FIELDS)},
        )
    )
    db.session.commit()

    ext.task_queue.enqueue(
        "storefront.workers.combo_audit.audit_combination_links",
        product_id=product.id,
        actor=actor,
        retry=Retry(max=3, interval=[10, 60, 300]),
    )
    return product


def publish_product(product_id, actor):
    """Transition product from DRAFT/HIDDEN → PUBLISHED."""
    product = db.session.get(Product, product_id)
    if not product or product.status not in ("DRAFT", "HIDDEN"):
        return None

    product.status = "PUBLISHED"
    product.updated_at = datetime.now(timezone.utc)
    db.session.add(AuditLog(actor=actor, action="PUBLISH", product_id=product.id))
    db.session.commit()
    return product


def hide_product(product_id, actor):
    product = db.session.get(Product, product_id)
    if not product or product.status != "PUBLISHED":
        return None
    product.status = "HIDDEN"
    product.updated_at = datetime.now(timezone.utc)
    db.session.add(AuditLog(actor=actor, action="HIDE", product_id=product.id))
    db.session.commit()
    return product


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def combo_key_report(product):
    """Combination-link overview for the admin editor."""
    groups = product.variant_groups
    links = product.variant_option_links or {}
    existing = links.get(COMBO_KEY) or {}
    return {
        "groups": [g.name for g in groups],
        "all": all_combo_keys(groups) if len(groups) > 1 else [],
        "existing": existing,
        "firstMissing": first_missing_combo_key(groups, existing) if len(groups) > 1 else None,
        "orphaned": orphaned_combo_keys(groups, links),
    }


def get_published_products(option=None, sort="newest", page=1, per_page=24):
    """Fetch published products for the catalog listing."""
    query = Product.query.filter_by(status="PUBLISHED")

    if option:
        query = query.filter(
            Product.id.in_(
                db.session.query(VariantOption.product_id).filter(
                    VariantOption.value.ilike(f"%{option}%"),
                )
            )
        )

    if sort == "newest":
        query = query.order_by(Product.created_at.desc(), Product.id.desc())
    elif sort == "price_asc":
        query = query.order_by(Product.price_cents.asc())
    elif sort == "price_desc":
        query = query.order_by(Product.price_cents.desc())

    return query.paginate(page=page, per_page=per_page, error_out=False)


def get_product_by_slug(slug):
    return Product.query.filter_by(slug=slug.lower()).first()


def get_stats():
    """Product counts by status for the stats command."""
    rows = (
        db.session.query(Product.status, db.func.count(Product.id))
        .group_by(Product.status)
        .all()
    )
    return dict(rows)
