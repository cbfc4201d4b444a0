"""Orders blueprint - REST resource for draft and completed orders."""
from flask import Blueprint, request, jsonify, current_app

from cafe_pos.database import get_session
from cafe_pos.decorators.permissions import require_permission
from cafe_pos.exceptions import BusinessLogicError
from cafe_pos.models import OrderStatus
from cafe_pos.services import order_service
from cafe_pos.services.order_payload import OrderPayload

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BusinessLogicError('Invalid order data: expected a JSON object.')
    return data


@orders_bp.route('', methods=['GET'])
@require_permission('view_sales')
def orders_list():
    status = request.args.get('status')
    if status and status not in {s.value for s in OrderStatus}:
        raise BusinessLogicError(f'Invalid order status: {status}')
    orders = order_service.list_orders(get_session(), status)
    return jsonify([order.to_dict() for order in orders])


@orders_bp.route('/drafts', methods=['GET'])
@require_permission('view_sales')
def drafts_list():
    return jsonify([order.to_dict() for order in order_service.list_drafts(get_session())])


@orders_bp.route('/<int:order_id>', methods=['GET'])
@require_permission('view_sales')
def order_detail(order_id: int):
    db_session = get_session()
    order = order_service.get_order(db_session, order_id)
    return jsonify(order_service.order_to_dict_with_items(db_session, order))


@orders_bp.route('/<int:order_id>/items', methods=['GET'])
@require_permission('view_sales')
def order_items(order_id: int):
    items = order_service.get_order_items_with_products(get_session(), order_id)
    return jsonify([item.to_dict(include_product=True) for item in items])


@orders_bp.route('', methods=['POST'])
@require_permission('create_sales')
def order_create():
    """Create an order with its items; the order number is assigned here."""
    db_session = get_session()
    payload = OrderPayload.from_dict(_json_body())
    order = order_service.create_order_with_items(db_session, payload)
    current_app.logger.info(f"[order_create] order_id={order.id}, number={order.order_number}")
    return jsonify(order_service.order_to_dict_with_items(db_session, order)), 201


@orders_bp.route('/<int:order_id>', methods=['PATCH', 'PUT'])
@require_permission('edit_sales')
def order_update(order_id: int):
    """Replace items when ``items`` is sent, otherwise update the given fields only."""
    db_session = get_session()
    data = _json_body()

    if 'items' in data:
        order = order_service.update_order_with_items(db_session, order_id, OrderPayload.from_dict(data))
    else:
        order = order_service.update_order_fields(db_session, order_id, data)

    return jsonify(order_service.order_to_dict_with_items(db_session, order))


@orders_bp.route('/<int:order_id>', methods=['DELETE'])
@require_permission('delete_sales')
def order_delete(order_id: int):
    order_service.delete_order(get_session(), order_id)
    return jsonify({'status': 'ok', 'deleted': order_id})
