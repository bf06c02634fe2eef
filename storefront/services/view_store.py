"""Storage for product detail view sessions.

A view session is the selection state of one shopper on one product page.
It is created when the page opens, updated on every option click and
deleted when the shopper navigates away; anything left behind expires
after VIEW_SESSION_TTL seconds.
"""
import json
import logging
import secrets
from flask import current_app
from storefront import extensions as ext
from storefront.extensions import db
from storefront.models.product import Product
from storefront.services.variant_service import VariantSelection

logger = logging.getLogger(__name__)

KEY_PREFIX = "view:"


def _key(view_id):
    return f"{KEY_PREFIX}{view_id}"


def save_view(view_id, product_id, selection):
    state = selection.to_dict()
    state["product_id"] = product_id
    ext.view_backend.setex(
        _key(view_id),
        current_app.config["VIEW_SESSION_TTL"],
        json.dumps(state),
    )


def init_view(product):
    """Start a view session for a product. Returns (view_id, selection)."""
    view_id = secrets.token_urlsafe(16)
    selection = VariantSelection(product.variant_config())
    save_view(view_id, product.id, selection)
    return view_id, selection


def load_view(view_id):
    """Return (product, selection) or None when the view is gone.

    The product's variant config is read fresh from the database; only the
    shopper's picks come from the stored state.
    """
    raw = ext.view_backend.get(_key(view_id))
    if raw is None:
        return None

    try:
        state = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        state = None
    if not isinstance(state, dict):
        return _drop(view_id)

    product_id = state.get("product_id")
    if not isinstance(product_id, int) or isinstance(product_id, bool):
        return _drop(view_id)
    product = db.session.get(Product, product_id)
    if not product or not product.is_visible:
        return None

    try:
        selection = VariantSelection.from_dict(product.variant_config(), state)
    except (TypeError, ValueError):
        return _drop(view_id)
    return product, selection


def _drop(view_id):
    logger.warning("Dropping unreadable view state %s", view_id)
    ext.view_backend.delete(_key(view_id))
    return None


def teardown_view(view_id):
    return bool(ext.view_backend.delete(_key(view_id)))
