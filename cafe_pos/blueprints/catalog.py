"""Catalog blueprint - read-only product, table and stock endpoints."""
from flask import Blueprint, request, jsonify

from cafe_pos.database import get_session
from cafe_pos.decorators.permissions import require_permission
from cafe_pos.exceptions import BusinessLogicError
from cafe_pos.models import Product, RestaurantTable
from cafe_pos.services.cart_service import available_stock
from cafe_pos.services.stock_service import get_sold_quantities, get_product_or_error

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api')


def _product_with_stock(product, sold_quantities):
    rv = product.to_dict()
    rv['available'] = str(available_stock(product, sold_quantities))
    return rv


@catalog_bp.route('/products')
@require_permission('view_catalog')
def products_list():
    """List products, optionally filtered by category_id or a name search."""
    db_session = get_session()
    query = db_session.query(Product)

    category_id = request.args.get('category_id')
    if category_id:
        try:
            query = query.filter(Product.category_id == int(category_id))
        except ValueError:
            raise BusinessLogicError(f'Invalid category_id: {category_id}')

    search = (request.args.get('q') or '').strip()[:100]
    if search:
        query = query.filter(Product.name.ilike(f'%{search}%'))

    sold = get_sold_quantities(db_session)
    products = query.order_by(Product.name).all()
    return jsonify([_product_with_stock(p, sold) for p in products])


@catalog_bp.route('/products/<int:product_id>')
@require_permission('view_catalog')
def product_detail(product_id: int):
    db_session = get_session()
    product = get_product_or_error(db_session, product_id)
    return jsonify(_product_with_stock(product, get_sold_quantities(db_session)))


@catalog_bp.route('/tables')
@require_permission('view_catalog')
def tables_list():
    db_session = get_session()
    tables = db_session.query(RestaurantTable).order_by(RestaurantTable.table_number).all()
    return jsonify([t.to_dict() for t in tables])


@catalog_bp.route('/inventory/sold-quantities')
@require_permission('view_inventory')
def sold_quantities():
    """Product id -> quantity sold on completed orders."""
    sold = get_sold_quantities(get_session())
    return jsonify({str(product_id): qty for product_id, qty in sold.items()})
