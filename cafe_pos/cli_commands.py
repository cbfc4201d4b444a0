"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask seed-demo: Load a small demo catalog (categories, products, tables)
"""

import click
from decimal import Decimal

from cafe_pos.database import create_all, get_session
from cafe_pos.models import Category, Product, RestaurantTable

DEMO_CATEGORIES = [
    ('Coffee', 'coffee'),
    ('Bakery', 'bakery'),
]

# name, category slug, base price, on-hand quantity, size prices
DEMO_PRODUCTS = [
    ('Espresso', 'coffee', '2.00', '100', None),
    ('Latte', 'coffee', '3.00', '80', {'S': '2.50', 'M': '3.00', 'L': '3.50'}),
    ('Iced Tea', 'coffee', '2.50', '40', {'M': '2.50', 'L': '3.25'}),
    ('Croissant', 'bakery', '2.20', '24', None),
    ('Banana Bread', 'bakery', '3.10', '12', None),
]

DEMO_TABLES = [('T1', '2'), ('T2', '4'), ('T3', '4'), ('T4', '6')]


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('seed-demo')
    @click.option('--force', is_flag=True, help='Seed even when products already exist')
    def seed_demo(force):
        """Load demo categories, products and tables."""
        db_session = get_session()

        if db_session.query(Product).count() and not force:
            click.echo(click.style('Products already exist, use --force to seed anyway.', fg='yellow'))
            return

        try:
            categories = {}
            for name, slug in DEMO_CATEGORIES:
                category = db_session.query(Category).filter_by(slug=slug).first()
                if not category:
                    category = Category(name=name, slug=slug)
                    db_session.add(category)
                categories[slug] = category
            db_session.flush()

            for name, slug, price, quantity, size_prices in DEMO_PRODUCTS:
                db_session.add(Product(
                    name=name,
                    category_id=categories[slug].id,
                    price=Decimal(price),
                    quantity=Decimal(quantity),
                    size_prices=size_prices,
                ))

            for number, capacity in DEMO_TABLES:
                if not db_session.query(RestaurantTable).filter_by(table_number=number).first():
                    db_session.add(RestaurantTable(table_number=number, capacity=capacity))

            db_session.commit()
            click.echo(click.style(
                f'Seeded {len(DEMO_PRODUCTS)} products and {len(DEMO_TABLES)} tables.', fg='green'
            ))
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'Error seeding demo data: {e}', fg='red'))
            raise click.Abort()
