from decimal import Decimal

import pytest

from robocrm import create_app
from robocrm.extensions import db
from robocrm.models import Client, Item, LeasePricing, RobotPricing
from robocrm.services import auth_service, session_service


TEST_PASSWORD = "Passw0rdTest"


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "STORAGE_ROOT": str(tmp_path_factory.mktemp("storage")),
        "FUNCTIONS_BASE_URL": "http://functions.test",
        "FUNCTIONS_API_KEY": "test-key",
    })
    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app, tmp_path):
    """Fresh app context per test; every table is emptied afterwards."""
    app.config["STORAGE_ROOT"] = str(tmp_path / "storage")
    app.config.pop("FUNCTIONS_TRANSPORT", None)
    with app.app_context():
        yield db.session
        db.session.rollback()
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
    app.config.pop("FUNCTIONS_TRANSPORT", None)


def _make_user(email, role):
    # Low bcrypt cost keeps the suite fast
    return auth_service.create_user(email, TEST_PASSWORD, full_name=email.split("@")[0], role=role, rounds=4)


@pytest.fixture
def admin_user(db_session):
    return _make_user("admin@robocrm.test", "admin")


@pytest.fixture
def manager_user(db_session):
    return _make_user("manager@robocrm.test", "manager")


@pytest.fixture
def sales_user(db_session):
    return _make_user("sales@robocrm.test", "salesperson")


def get_auth_token(user):
    _, token = session_service.create_session(user.id)
    return token


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(get_auth_token(admin_user))


@pytest.fixture
def manager_headers(manager_user):
    return auth_headers(get_auth_token(manager_user))


@pytest.fixture
def sales_headers(sales_user):
    return auth_headers(get_auth_token(sales_user))


# --- Data builders -----------------------------------------------------------

def make_robot(robot_model="R1", *, pln="1200", usd="300", eur="280", lease=None):
    """lease: {months: (pln, usd, eur)}"""
    row = RobotPricing(
        robot_model=robot_model,
        sale_price_pln_net=Decimal(pln),
        sale_price_usd_net=Decimal(usd),
        sale_price_eur_net=Decimal(eur),
        lowest_price_pln_net=Decimal("1000"),
    )
    for months, (l_pln, l_usd, l_eur) in (lease or {}).items():
        row.lease_prices.append(
            LeasePricing(
                months=months,
                price_pln_net=Decimal(l_pln),
                price_usd_net=Decimal(l_usd),
                price_eur_net=Decimal(l_eur),
            )
        )
    db.session.add(row)
    db.session.commit()
    return row


def make_item(name="Installation", price="500"):
    row = Item(name=name, price_net=Decimal(price), item_type="service")
    db.session.add(row)
    db.session.commit()
    return row


def make_client(name="Acme Robotics", **fields):
    row = Client(name=name, **fields)
    db.session.add(row)
    db.session.commit()
    return row


@pytest.fixture
def acme(db_session):
    return make_client(general_email="office@acme.test", city="Warsaw")
