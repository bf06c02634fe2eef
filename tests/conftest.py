import pytest
from storefront import create_app
from storefront.extensions import db as _db
from storefront.services import product_service


@pytest.fixture(scope="session")
def app():
    """Create application for testing."""
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
        yield app
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    """Per-test database session with rollback."""
    with app.app_context():
        _db.session.begin_nested()
        yield _db
        _db.session.rollback()


@pytest.fixture
def admin_headers(app):
    return {"X-Admin-Token": app.config["ADMIN_API_TOKEN"]}


@pytest.fixture
def make_product(db):
    """Create and publish a product through the service layer."""

    def _make(title, publish=True, **fields):
        data = {
            "name": title,
            "price": 19.99,
            "amazonUrl": "https://example.com/buy/base",
            "images": ["https://cdn.example.com/main.jpg"],
        }
        data.update(fields)
        product = product_service.create_product(data, actor="test")
        if publish:
            product_service.publish_product(product.id, actor="test")
        return product

    return _make
