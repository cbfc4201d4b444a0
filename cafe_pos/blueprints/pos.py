"""POS blueprint - session cart, size gate, drafts and checkout."""
from datetime import datetime
from typing import Any, Dict, Optional

from flask import Blueprint, request, session, jsonify, send_file, current_app
from flask_wtf.csrf import generate_csrf

from cafe_pos.database import get_session
from cafe_pos.decorators.permissions import require_permission
from cafe_pos.exceptions import BusinessLogicError, NotFoundError, OutOfStockError, InsufficientStockError
from cafe_pos.models import RestaurantTable
from cafe_pos.services import cart_service, draft_service, checkout_service, order_service
from cafe_pos.services.cart_service import Cart, LineKey, available_stock
from cafe_pos.services.order_payload import splits_from_request
from cafe_pos.services.pricing_service import calculate_cart_totals
from cafe_pos.services.receipt_service import build_receipt, generate_receipt_pdf
from cafe_pos.services.size_gate_service import PendingProduct, handle_add_to_order, confirm_size
from cafe_pos.services.stock_service import get_sold_quantities, load_product_snapshots
from cafe_pos.blueprints.metrics import (
    pos_orders_completed_total, pos_drafts_saved_total, pos_stock_rejections_total
)

pos_bp = Blueprint('pos', __name__, url_prefix='/pos')

CART_KEY = 'cart'
PENDING_KEY = 'pending_product_id'
LAST_RECEIPT_KEY = 'last_receipt'


# ============================================================================
# Session helpers
# ============================================================================

def _payload() -> Dict[str, Any]:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def get_cart(db_session) -> Cart:
    """Rehydrate the session cart against the current product snapshot."""
    raw = session.get(CART_KEY)
    products = load_product_snapshots(db_session, cart_service.product_ids_in(raw))
    return cart_service.cart_from_dict(raw, products)


def save_cart(cart: Cart) -> None:
    session[CART_KEY] = cart_service.cart_to_dict(cart)
    session.modified = True


def _get_pending(db_session, sold_quantities) -> Optional[PendingProduct]:
    product_id = session.get(PENDING_KEY)
    if product_id is None:
        return None
    product = load_product_snapshots(db_session, [product_id]).get(product_id)
    if product is None:
        session.pop(PENDING_KEY, None)
        return None
    return PendingProduct(product=product, available=available_stock(product, sold_quantities))


def _int_field(payload: Dict[str, Any], name: str, required: bool = True) -> Optional[int]:
    value = payload.get(name)
    if value in (None, ''):
        if required:
            raise BusinessLogicError(f'Missing {name}')
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BusinessLogicError(f'Invalid {name}: {value}')


def _line_key(cart: Cart, payload: Dict[str, Any]) -> LineKey:
    product_id = _int_field(payload, 'product_id')
    size = payload.get('size') or None
    for item in cart.items:
        if item.product.id == product_id:
            return LineKey.for_product(item.product, size)
    return LineKey(product_id, size)


def _cart_view(cart: Cart) -> Dict[str, Any]:
    return {
        'orderNumber': cart.order_number,
        'draftId': cart.draft_id,
        'tableId': cart.table_id,
        'diningOption': cart.dining_option.value,
        'discount': str(cart.discount),
        'discountType': cart.discount_type.value,
        'totals': calculate_cart_totals(cart),
    }


def _cart_response(cart: Cart, status_code: int = 200, **extra):
    body = {'status': 'ok', 'cart': _cart_view(cart)}
    body.update(extra)
    return jsonify(body), status_code


def _count_stock_rejection(error) -> None:
    reason = 'out_of_stock' if isinstance(error, OutOfStockError) else 'insufficient_stock'
    pos_stock_rejections_total.labels(reason=reason).inc()


# ============================================================================
# Cart
# ============================================================================

@pos_bp.route('/csrf-token')
def csrf_token():
    return jsonify({'csrfToken': generate_csrf()})


@pos_bp.route('/cart')
@require_permission('create_sales')
def cart_view():
    db_session = get_session()
    cart = get_cart(db_session)
    pending = _get_pending(db_session, get_sold_quantities(db_session))
    return _cart_response(cart, pending=pending.to_dict() if pending else None)


@pos_bp.route('/cart/add', methods=['POST'])
@require_permission('create_sales')
def cart_add():
    """Add one unit of a product; sized products go through the size gate."""
    db_session = get_session()
    payload = _payload()
    product_id = _int_field(payload, 'product_id')

    product = load_product_snapshots(db_session, [product_id]).get(product_id)
    if product is None:
        raise NotFoundError('Product not found.')

    cart = get_cart(db_session)
    sold = get_sold_quantities(db_session)
    try:
        cart, pending = handle_add_to_order(cart, product, sold)
    except (OutOfStockError, InsufficientStockError) as e:
        _count_stock_rejection(e)
        raise

    if pending is not None:
        session[PENDING_KEY] = product.id
        current_app.logger.info(f"[cart_add] product_id={product.id} awaiting size selection")
        return _cart_response(cart, pending=pending.to_dict())

    save_cart(cart)
    current_app.logger.info(f"[cart_add] product_id={product.id}, lines={len(cart.items)}")
    return _cart_response(cart)


@pos_bp.route('/cart/size/confirm', methods=['POST'])
@require_permission('create_sales')
def size_confirm():
    db_session = get_session()
    payload = _payload()
    sold = get_sold_quantities(db_session)
    pending = _get_pending(db_session, sold)

    cart = get_cart(db_session)
    try:
        cart = confirm_size(cart, pending, payload.get('size'), sold)
    except (OutOfStockError, InsufficientStockError) as e:
        _count_stock_rejection(e)
        raise

    session.pop(PENDING_KEY, None)
    save_cart(cart)
    current_app.logger.info(f"[size_confirm] product_id={pending.product.id}, size={payload.get('size')}")
    return _cart_response(cart)


@pos_bp.route('/cart/size/cancel', methods=['POST'])
@require_permission('create_sales')
def size_cancel():
    session.pop(PENDING_KEY, None)
    return _cart_response(get_cart(get_session()))


@pos_bp.route('/cart/update', methods=['POST'])
@require_permission('create_sales')
def cart_update():
    db_session = get_session()
    payload = _payload()
    cart = get_cart(db_session)
    key = _line_key(cart, payload)
    quantity = _int_field(payload, 'quantity')

    try:
        cart = cart_service.update_quantity(cart, key, quantity, get_sold_quantities(db_session))
    except InsufficientStockError as e:
        _count_stock_rejection(e)
        raise

    save_cart(cart)
    return _cart_response(cart)


@pos_bp.route('/cart/remove', methods=['POST'])
@require_permission('create_sales')
def cart_remove():
    db_session = get_session()
    cart = get_cart(db_session)
    cart = cart_service.remove_item(cart, _line_key(cart, _payload()))
    save_cart(cart)
    return _cart_response(cart)


@pos_bp.route('/cart/item-discount', methods=['POST'])
@require_permission('create_sales')
def cart_item_discount():
    db_session = get_session()
    payload = _payload()
    cart = get_cart(db_session)
    cart = cart_service.update_item_discount(
        cart, _line_key(cart, payload),
        payload.get('discount'),
        _discount_type(payload)
    )
    save_cart(cart)
    return _cart_response(cart)


@pos_bp.route('/cart/discount', methods=['POST'])
@require_permission('create_sales')
def cart_discount():
    payload = _payload()
    cart = cart_service.set_order_discount(get_cart(get_session()), payload.get('discount'), _discount_type(payload))
    save_cart(cart)
    return _cart_response(cart)


def _discount_type(payload: Dict[str, Any]) -> str:
    discount_type = payload.get('discount_type') or 'amount'
    if discount_type not in ('amount', 'percentage'):
        raise BusinessLogicError(f'Invalid discount type: {discount_type}')
    return discount_type


@pos_bp.route('/cart/table', methods=['POST'])
@require_permission('create_sales')
def cart_table():
    db_session = get_session()
    table_id = _int_field(_payload(), 'table_id', required=False)
    if table_id is not None and not db_session.get(RestaurantTable, table_id):
        raise NotFoundError('Table not found.')
    cart = cart_service.set_table(get_cart(db_session), table_id)
    save_cart(cart)
    return _cart_response(cart)


@pos_bp.route('/cart/dining-option', methods=['POST'])
@require_permission('create_sales')
def cart_dining_option():
    option = _payload().get('dining_option')
    try:
        cart = cart_service.set_dining_option(get_cart(get_session()), option)
    except ValueError:
        raise BusinessLogicError(f'Invalid dining option: {option}')
    save_cart(cart)
    return _cart_response(cart)


@pos_bp.route('/cart/clear', methods=['POST'])
@require_permission('create_sales')
def cart_clear():
    cart = cart_service.clear_cart(get_cart(get_session()))
    session.pop(PENDING_KEY, None)
    save_cart(cart)
    return _cart_response(cart)


@pos_bp.route('/orders/new', methods=['POST'])
@require_permission('create_sales')
def new_order():
    """Discard the current cart and start a new order."""
    db_session = get_session()
    cart = cart_service.new_cart(order_number=order_service.peek_next_order_number(db_session))
    session.pop(PENDING_KEY, None)
    save_cart(cart)
    return _cart_response(cart)


# ============================================================================
# Drafts
# ============================================================================

@pos_bp.route('/drafts', methods=['GET'])
@require_permission('view_sales')
def drafts_list():
    drafts = draft_service.list_drafts(get_session())
    return jsonify({'status': 'ok', 'drafts': [order.to_dict() for order in drafts]})


@pos_bp.route('/drafts', methods=['POST'])
@require_permission('create_sales')
def draft_save():
    """Save the cart as a draft (update in place when it is bound to one)."""
    db_session = get_session()
    result = draft_service.save_draft(db_session, get_cart(db_session))

    pos_drafts_saved_total.labels(action='created' if result.created else 'updated').inc()
    if result.cart_closed:
        session.pop(PENDING_KEY, None)
    save_cart(result.cart)

    return _cart_response(
        result.cart,
        201 if result.created else 200,
        order=result.order.to_dict(),
        cartClosed=result.cart_closed
    )


@pos_bp.route('/drafts/<int:order_id>/load', methods=['POST'])
@require_permission('create_sales')
def draft_load(order_id: int):
    """Replace the cart with the content of a draft."""
    db_session = get_session()
    cart = draft_service.load_draft(db_session, order_id)
    session.pop(PENDING_KEY, None)
    save_cart(cart)
    return _cart_response(cart)


@pos_bp.route('/drafts/<int:order_id>', methods=['DELETE'])
@require_permission('delete_sales')
def draft_delete(order_id: int):
    db_session = get_session()
    draft_service.delete_draft(db_session, order_id)

    cart = get_cart(db_session)
    if cart.draft_id == order_id:
        cart = cart_service.clear_cart(cart)
        save_cart(cart)
    return _cart_response(cart)


# ============================================================================
# Checkout & receipt
# ============================================================================

@pos_bp.route('/checkout', methods=['POST'])
@require_permission('create_sales')
def checkout():
    """Confirm payment and complete the order."""
    db_session = get_session()
    payload = _payload()

    result = checkout_service.confirm_payment(
        db_session,
        get_cart(db_session),
        payment_method=payload.get('payment_method'),
        amount_paid=payload.get('amount_paid'),
        splits=splits_from_request(payload.get('splits')),
        customer_name=payload.get('customer_name'),
        customer_phone=payload.get('customer_phone'),
        order_date=payload.get('order_date'),
        date_type=payload.get('date_type'),
    )

    pos_orders_completed_total.labels(payment_status=result.order.payment_status).inc()
    session.pop(PENDING_KEY, None)
    session[LAST_RECEIPT_KEY] = result.receipt
    save_cart(result.cart)

    return _cart_response(
        result.cart,
        201,
        order=result.order.to_dict(),
        receipt=result.receipt,
        changeDue=result.receipt['changeDue']
    )


@pos_bp.route('/receipt.pdf')
@require_permission('create_sales')
def receipt_pdf():
    """PDF of the current cart, or of the last completed order when the cart is empty."""
    db_session = get_session()
    cart = get_cart(db_session)

    if not cart.is_empty:
        table = db_session.get(RestaurantTable, cart.table_id) if cart.table_id else None
        receipt = build_receipt(cart, table_number=table.table_number if table else None)
    else:
        receipt = session.get(LAST_RECEIPT_KEY)
        if not receipt:
            raise BusinessLogicError('The cart is empty. Add products to print a receipt.')

    business_info = {
        'name': current_app.config.get('BUSINESS_NAME', 'My Cafe'),
        'address': current_app.config.get('BUSINESS_ADDRESS', ''),
        'phone': current_app.config.get('BUSINESS_PHONE', ''),
        'currency_symbol': current_app.config.get('CURRENCY_SYMBOL', '$'),
    }
    pdf_buffer = generate_receipt_pdf(receipt, business_info)

    filename = f"receipt_{receipt.get('orderNumber') or 'draft'}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.pdf"
    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=filename
    )
