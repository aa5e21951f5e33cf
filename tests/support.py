from datetime import date, timedelta

from sqlalchemy.orm import sessionmaker

from erp.database import Base, build_engine
from erp.models import import_all_models
from erp.models.customer import Customer
from erp.models.product import Product


def make_engine(url: str = "sqlite:///:memory:", settings=None):
    import_all_models()
    engine = build_engine(url, settings=settings)
    Base.metadata.create_all(bind=engine)
    return engine


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def add_product(db, name="Widget", price_per=10.0, **fields) -> Product:
    product = Product(name=name, price_per=price_per, **fields)
    db.add(product)
    db.commit()
    return product


def add_customer(db, name="Acme Ltd", email="billing@acme.example") -> Customer:
    customer = Customer(
        name=name,
        email=email,
        phone="555-0101",
        city="Springfield",
        country="USA",
    )
    db.add(customer)
    db.commit()
    return customer


def invoice_dates():
    today = date(2024, 3, 1)
    return {"year": today.year, "date": today, "due_date": today + timedelta(days=30)}
