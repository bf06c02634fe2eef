"""Public catalog, product and product-detail view session endpoints."""
from flask import current_app, request, abort, jsonify
from storefront.blueprints.public import public_bp
from storefront.services import product_service, view_store


@public_bp.route("/products")
def catalog():
    """Catalog listing with an option filter and sorting."""
    option = request.args.get("option")
    sort = request.args.get("sort", "newest")
    page = request.args.get("page", 1, type=int)

    pagination = product_service.get_published_products(
        option=option,
        sort=sort,
        page=page,
        per_page=current_app.config["CATALOG_PAGE_SIZE"],
    )
    return {
        "products": [p.to_dict() for p in pagination.items],
        "page": pagination.page,
        "pages": pagination.pages,
        "total": pagination.total,
    }


@public_bp.route("/products/<slug>")
def product_detail(slug):
    product = _get_visible_product(slug)
    return product.to_dict()


@public_bp.route("/products/<slug>/views", methods=["POST"])
def start_view(slug):
    """Open a product detail view: nothing selected, main image, base link."""
    product = _get_visible_product(slug)
    view_id, selection = view_store.init_view(product)
    return view_state(view_id, selection), 201


@public_bp.route("/views/<view_id>")
def get_view(view_id):
    _, selection = _load_view_or_404(view_id)
    return view_state(view_id, selection)


@public_bp.route("/views/<view_id>/select", methods=["POST"])
def select_option(view_id):
    body = request.get_json(silent=True) or {}
    group = body.get("group")
    option = body.get("option")
    if not isinstance(group, str) or not isinstance(option, str) or not group or not option:
        return {"error": "group and option are required"}, 400

    product, selection = _load_view_or_404(view_id)
    selection.select_option(group, option)
    view_store.save_view(view_id, product.id, selection)
    return view_state(view_id, selection)


@public_bp.route("/views/<view_id>/image", methods=["POST"])
def select_image(view_id):
    body = request.get_json(silent=True) or {}
    index = body.get("index")
    if not isinstance(index, int) or isinstance(index, bool):
        return {"error": "index must be an integer"}, 400

    product, selection = _load_view_or_404(view_id)
    if not selection.select_image(index):
        return {"error": "index out of range"}, 400
    view_store.save_view(view_id, product.id, selection)
    return view_state(view_id, selection)


@public_bp.route("/views/<view_id>/thumbnail-failed", methods=["POST"])
def thumbnail_failed(view_id):
    """The page reports a thumbnail that failed to load; show its label instead."""
    body = request.get_json(silent=True) or {}
    group = body.get("group")
    option = body.get("option")
    if not isinstance(group, str) or not isinstance(option, str):
        return {"error": "group and option are required"}, 400

    product, selection = _load_view_or_404(view_id)
    if selection.mark_thumbnail_failed(group, option):
        view_store.save_view(view_id, product.id, selection)
    return view_state(view_id, selection)


@public_bp.route("/views/<view_id>", methods=["DELETE"])
def end_view(view_id):
    view_store.teardown_view(view_id)
    return "", 204


def view_state(view_id, selection):
    """Serialize what the gallery and the buy button need."""
    return jsonify(
        view_id=view_id,
        selection=[
            {"group": group, "option": option}
            for group, option in selection.selection.items()
        ],
        last_touched=selection.last_touched,
        image_index=selection.image_index,
        image=selection.primary_image,
        purchase_url=selection.purchase_url,
        options=selection.options_state(),
    )


def _get_visible_product(slug):
    product = product_service.get_product_by_slug(slug)
    if not product or not product.is_visible:
        abort(404)
    return product


def _load_view_or_404(view_id):
    loaded = view_store.load_view(view_id)
    if loaded is None:
        abort(404)
    return loaded
