import pytest
from decimal import Decimal

from cafe_pos import create_app
from cafe_pos.database import create_all, drop_all, get_session
from cafe_pos.models import Category, Product, RestaurantTable
from cafe_pos.services.cart_service import ProductSnapshot


@pytest.fixture(scope='function')
def app():
    """Create application instance on a fresh in-memory database."""
    app = create_app('config.TestConfig')
    with app.app_context():
        create_all()
        yield app
        get_session().remove()
        drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def staff_client(client):
    """Client whose session carries the STAFF role (POS access)."""
    with client.session_transaction() as sess:
        sess['user_id'] = 1
        sess['role'] = 'STAFF'
    return client


@pytest.fixture(scope='function')
def owner_client(client):
    """Client whose session carries the OWNER role (all permissions)."""
    with client.session_transaction() as sess:
        sess['user_id'] = 1
        sess['role'] = 'OWNER'
    return client


@pytest.fixture(scope='function')
def category(session):
    category = Category(name='Coffee', slug='coffee')
    session.add(category)
    session.commit()
    return category


@pytest.fixture(scope='function')
def espresso(session, category):
    """Sizeless product, plenty of stock."""
    product = Product(
        name='Espresso',
        category_id=category.id,
        price=Decimal('5.00'),
        quantity=Decimal('50'),
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def latte(session, category):
    """Product sold by size."""
    product = Product(
        name='Latte',
        category_id=category.id,
        price=Decimal('3.00'),
        quantity=Decimal('20'),
        unit='cup',
        size_prices={'S': '2.00', 'M': '3.00', 'L': '3.50'},
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def scarce(session, category):
    """Sizeless product with only two units on hand."""
    product = Product(
        name='Banana Bread',
        category_id=category.id,
        price=Decimal('3.10'),
        quantity=Decimal('2'),
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def table(session):
    table = RestaurantTable(table_number='T1', capacity='4')
    session.add(table)
    session.commit()
    return table


# Plain snapshots for tests that do not touch the database

@pytest.fixture
def product_a():
    return ProductSnapshot(id=1, name='Product A', price=Decimal('5.00'), quantity=Decimal('100'))


@pytest.fixture
def product_b():
    return ProductSnapshot(
        id=2, name='Product B', price=Decimal('2.50'), quantity=Decimal('100'),
        size_prices={'S': '2.00', 'M': '3.00'}
    )


@pytest.fixture
def product_c():
    return ProductSnapshot(id=3, name='Product C', price=Decimal('1.00'), quantity=Decimal('10'), unit='piece')
