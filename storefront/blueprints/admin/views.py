"""Admin endpoints for product variant configuration.

Security:
- X-Admin-Token header must match ADMIN_API_TOKEN
- An empty ADMIN_API_TOKEN disables every endpoint here
"""
import hmac
import logging
from flask import current_app, request, abort
from storefront.blueprints.admin import admin_bp
from storefront.extensions import db
from storefront.models.product import Product
from storefront.services import product_service

logger = logging.getLogger(__name__)

ACTOR = "admin-api"


@admin_bp.before_request
def require_admin_token():
    expected = current_app.config["ADMIN_API_TOKEN"]
    token = request.headers.get("X-Admin-Token", "")
    if not expected or not hmac.compare_digest(token, expected):
        logger.warning("Rejected admin request to %s", request.path)
        abort(403)


@admin_bp.route("/products", methods=["POST"])
def create_product():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return {"error": "JSON object body required"}, 400

    try:
        product = product_service.create_product(body, actor=ACTOR)
    except ValueError as e:
        db.session.rollback()
        return {"error": str(e)}, 400
    return product.to_dict(), 201


@admin_bp.route("/products/<int:product_id>")
def get_product(product_id):
    product = db.session.get(Product, product_id)
    if not product:
        abort(404)
    return product.to_dict()


@admin_bp.route("/products/<int:product_id>/variants", methods=["PUT"])
def update_variants(product_id):
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return {"error": "JSON object body required"}, 400

    try:
        product = product_service.update_variants(product_id, body, actor=ACTOR)
    except ValueError as e:
        db.session.rollback()
        return {"error": str(e)}, 400
    if not product:
        abort(404)

    data = product.to_dict()
    data["comboKeys"] = product_service.combo_key_report(product)
    return data


@admin_bp.route("/products/<int:product_id>/combo-keys")
def combo_keys(product_id):
    """All combination keys, the first one without a link, and stale ones."""
    product = db.session.get(Product, product_id)
    if not product:
        abort(404)
    return product_service.combo_key_report(product)


@admin_bp.route("/products/<int:product_id>/publish", methods=["POST"])
def publish(product_id):
    product = product_service.publish_product(product_id, actor=ACTOR)
    if not product:
        return {"error": "Product not found or not in a publishable state"}, 409
    return product.to_dict()


@admin_bp.route("/products/<int:product_id>/hide", methods=["POST"])
def hide(product_id):
    product = product_service.hide_product(product_id, actor=ACTOR)
    if not product:
        return {"error": "Product not found or not published"}, 409
    return product.to_dict()
