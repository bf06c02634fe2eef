"""Tests for product store validation and admin operations."""
from unittest.mock import MagicMock
import pytest
import storefront.extensions as ext
from storefront.models.audit_log import AuditLog
from storefront.services import product_service
from storefront.services.variant_service import COMBO_KEY, VariantGroup


def test_amazon_url_canonicalized_to_asin():
    assert (
        product_service.normalize_amazon_url(
            "https://www.amazon.com/Some-Thing/dp/b0cjzmp7l1/ref=sr_1_1?keywords=x"
        )
        == "https://www.amazon.com/dp/B0CJZMP7L1"
    )
    assert (
        product_service.normalize_amazon_url("https://amazon.com/gp/product/B0CJZMP7L1")
        == "https://www.amazon.com/dp/B0CJZMP7L1"
    )
    assert (
        product_service.normalize_amazon_url("https://shop.example.com/item?ASIN=B0CJZMP7L1")
        == "https://www.amazon.com/dp/B0CJZMP7L1"
    )


def test_non_amazon_url_kept_as_is():
    url = "https://shop.example.com/listing/42"
    assert product_service.normalize_amazon_url(f"  {url} ") == url


@pytest.mark.parametrize("bad", [None, "", "ftp://example.com/x", "not a url"])
def test_invalid_amazon_url_rejected(bad):
    with pytest.raises(ValueError):
        product_service.normalize_amazon_url(bad)


def test_normalize_variant_groups():
    groups = product_service.normalize_variant_groups([
        {"name": " Color ", "options": ["Red", " ", "Blue", "Red"]},
        {"name": "", "options": ["X"]},
        {"name": "Empty", "options": []},
        "junk",
        {"name": "Size", "options": ["S"]},
    ])
    assert groups == [VariantGroup("Color", ("Red", "Blue")), VariantGroup("Size", ("S",))]


def test_normalize_variant_groups_from_json_string():
    groups = product_service.normalize_variant_groups('[{"name": "Size", "options": ["M"]}]')
    assert groups == [VariantGroup("Size", ("M",))]
    assert product_service.normalize_variant_groups("{broken") == []


def test_duplicate_or_reserved_group_names_rejected():
    with pytest.raises(ValueError):
        product_service.normalize_variant_groups([
            {"name": "Color", "options": ["Red"]},
            {"name": "Color", "options": ["Blue"]},
        ])
    with pytest.raises(ValueError):
        product_service.normalize_variant_groups([{"name": COMBO_KEY, "options": ["x"]}])


def test_normalize_option_map():
    assert product_service.normalize_option_map(
        {"Color": {"Red": 1, "Blue": "2", "Green": -1, "Black": True}, "Size": "nope"},
        "index",
    ) == {"Color": {"Red": 1}}
    assert product_service.normalize_option_map(
        '{"Color": {"Red": " https://x/red ", "Blue": ""}}'
    ) == {"Color": {"Red": "https://x/red"}}
    assert product_service.normalize_option_map({}) is None
    assert product_service.normalize_option_map("{broken") is None
    assert product_service.normalize_option_map({"Color": {"Blue": ""}}) is None


def test_create_product_requires_fields(db):
    base = {"name": "Needs Fields", "price": 10, "amazonUrl": "https://example.com/a", "images": ["a.jpg"]}
    for missing in ("name", "price", "amazonUrl", "images"):
        data = dict(base)
        del data[missing]
        with pytest.raises(ValueError):
            product_service.create_product(data, actor="test")


def test_create_product_persists_variants(db):
    product = product_service.create_product(
        {
            "name": "Service Create Test",
            "price": "12.50",
            "amazonUrl": "https://example.com/buy/svc",
            "images": ["", "https://cdn/main.jpg", "https://cdn/red.jpg"],
            "variants": [
                {"name": "Color", "options": ["Red", "Blue"]},
                {"name": "Size", "options": ["S"]},
            ],
            "variantOptionLinks": {COMBO_KEY: {"Color=Red|Size=S": "https://example.com/rs"}},
        },
        actor="test",
    )

    assert product.status == "DRAFT"
    assert product.slug.startswith("service-create-test")
    assert product.price_cents == 1250
    assert product.main_image == "https://cdn/main.jpg"
    assert product.variant_groups == [
        VariantGroup("Color", ("Red", "Blue")),
        VariantGroup("Size", ("S",)),
    ]
    assert AuditLog.query.filter_by(product_id=product.id, action="CREATE_PRODUCT").count() == 1


def test_slug_gets_suffix_on_collision(make_product):
    first = make_product("Slug Collision")
    second = make_product("Slug Collision")
    assert first.slug == "slug-collision"
    assert second.slug == "slug-collision-1"


def test_update_variants_enqueues_audit(make_product, monkeypatch):
    queue = MagicMock()
    monkeypatch.setattr(ext, "task_queue", queue)
    product = make_product("Update Enqueue Test")

    updated = product_service.update_variants(
        product.id,
        {"variants": [{"name": "Size", "options": ["L", "XL"]}]},
        actor="test",
    )

    assert updated.variant_groups == [VariantGroup("Size", ("L", "XL"))]
    queue.enqueue.assert_called_once()
    args, kwargs = queue.enqueue.call_args
    assert args[0] == "storefront.workers.combo_audit.audit_combination_links"
    assert kwargs["product_id"] == product.id


def test_update_variants_validates_before_writing(make_product):
    product = make_product(
        "Update Validation Test",
        variants=[{"name": "Color", "options": ["Red"]}],
    )
    with pytest.raises(ValueError):
        product_service.update_variants(
            product.id,
            {
                "variants": [{"name": "Size", "options": ["M"]}],
                "amazonUrl": "not a url",
            },
            actor="test",
        )
    assert product.variant_groups == [VariantGroup("Color", ("Red",))]


def test_update_missing_product_returns_none(db):
    assert product_service.update_variants(999999, {}, actor="test") is None


def test_combo_key_report_flags_reordered_groups(make_product):
    product = make_product(
        "Combo Report Test",
        variants=[
            {"name": "Color", "options": ["Red", "Blue"]},
            {"name": "Size", "options": ["S", "M"]},
        ],
        variantOptionLinks={COMBO_KEY: {"Color=Red|Size=S": "https://example.com/rs"}},
    )

    report = product_service.combo_key_report(product)
    assert report["firstMissing"] == "Color=Red|Size=M"
    assert report["orphaned"] == []
    assert len(report["all"]) == 4

    product_service.update_variants(
        product.id,
        {"variants": [
            {"name": "Size", "options": ["S", "M"]},
            {"name": "Color", "options": ["Red", "Blue"]},
        ]},
        actor="test",
    )
    report = product_service.combo_key_report(product)
    assert report["groups"] == ["Size", "Color"]
    assert report["orphaned"] == ["Color=Red|Size=S"]
    assert report["existing"] == {"Color=Red|Size=S": "https://example.com/rs"}


def test_publish_and_hide_transitions(make_product):
    product = make_product("Publish Hide Test", publish=False)
    assert product_service.hide_product(product.id, actor="test") is None
    assert product_service.publish_product(product.id, actor="test").status == "PUBLISHED"
    assert product_service.publish_product(product.id, actor="test") is None
    assert product_service.hide_product(product.id, actor="test").status == "HIDDEN"


def test_catalog_option_filter(make_product):
    make_product("Catalog Filter Teal", variants=[{"name": "Color", "options": ["Teal"]}])
    make_product("Catalog Filter Draft", publish=False, variants=[{"name": "Color", "options": ["Teal"]}])

    page = product_service.get_published_products(option="teal")
    titles = [p.title for p in page.items]
    assert "Catalog Filter Teal" in titles
    assert "Catalog Filter Draft" not in titles
