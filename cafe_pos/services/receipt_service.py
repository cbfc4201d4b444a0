"""Receipt service - receipt data contract and its PDF rendering."""

from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Dict, Any, Optional, Sequence

from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER

from cafe_pos.services import pricing_service
from cafe_pos.services.cart_service import Cart
from cafe_pos.services.order_payload import PaymentSplit
from cafe_pos.utils.number_format import money_str, format_money, ZERO

DINING_LABELS = {
    'dine-in': 'Dine in',
    'takeaway': 'Takeaway',
    'delivery': 'Delivery',
}


def build_receipt(
    cart: Cart,
    order_number: Optional[str] = None,
    table_number: Optional[str] = None,
    payment_method: Optional[str] = None,
    splits: Sequence[PaymentSplit] = (),
    change_due: Decimal = ZERO,
    customer_name: Optional[str] = None,
    issued_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Receipt data for a cart, amounts as canonical money strings."""
    item_discounts = pricing_service.total_item_discounts(cart)
    order_discount = pricing_service.order_discount_amount(cart)

    lines = []
    for item in cart.items:
        lines.append({
            'name': item.product.name,
            'size': item.selected_size,
            'quantity': item.quantity,
            'unitPrice': money_str(pricing_service.effective_unit_price(item)),
            'lineSubtotal': money_str(pricing_service.line_subtotal(item)),
            'itemDiscount': money_str(pricing_service.item_discount_amount(item)),
            'itemDiscountType': item.item_discount_type.value,
            'lineTotal': money_str(pricing_service.line_total(item)),
        })

    return {
        'orderNumber': order_number or cart.order_number,
        'issuedAt': (issued_at or datetime.now()).isoformat(),
        'items': lines,
        'originalSubtotal': money_str(pricing_service.original_subtotal(cart)),
        'itemDiscounts': money_str(item_discounts),
        'subtotal': money_str(pricing_service.cart_subtotal(cart)),
        'orderDiscount': money_str(order_discount),
        'discountType': cart.discount_type.value,
        'discountValue': str(cart.discount),
        'totalDiscount': money_str(item_discounts + order_discount),
        'total': money_str(pricing_service.grand_total(cart)),
        'tableNumber': table_number,
        'diningOption': cart.dining_option.value,
        'paymentMethod': payment_method,
        'paymentSplits': [s.to_dict() for s in splits],
        'changeDue': money_str(change_due),
        'customerName': customer_name,
    }


def generate_receipt_pdf(receipt: Dict[str, Any], business_info: Dict[str, Any]) -> BytesIO:
    """Render receipt data (see ``build_receipt``) to an A4 PDF."""
    symbol = business_info.get('currency_symbol', '$')

    def money(value) -> str:
        return format_money(value, symbol)

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75*inch,
        leftMargin=0.75*inch,
        topMargin=0.75*inch,
        bottomMargin=0.75*inch
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'ReceiptTitle',
        parent=styles['Heading1'],
        fontSize=22,
        textColor=colors.HexColor('#2C3E50'),
        spaceAfter=12,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )

    header_style = ParagraphStyle(
        'ReceiptHeader',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#7F8C8D'),
        alignment=TA_CENTER,
        spaceAfter=6
    )

    # Business header
    elements.append(Paragraph("RECEIPT", title_style))
    if business_info.get('name'):
        elements.append(Paragraph(f"<b>{business_info['name']}</b>", header_style))
    if business_info.get('address'):
        elements.append(Paragraph(business_info['address'], header_style))
    if business_info.get('phone'):
        elements.append(Paragraph(f"Tel: {business_info['phone']}", header_style))
    elements.append(Spacer(1, 0.3*inch))

    # Order metadata
    issued = receipt.get('issuedAt') or datetime.now().isoformat()
    info_data = [
        ['Order #:', receipt.get('orderNumber') or '-'],
        ['Date:', datetime.fromisoformat(issued).strftime('%d/%m/%Y %H:%M')],
        ['Service:', DINING_LABELS.get(receipt.get('diningOption'), receipt.get('diningOption') or '-')],
    ]
    if receipt.get('tableNumber'):
        info_data.append(['Table:', receipt['tableNumber']])
    if receipt.get('customerName'):
        info_data.append(['Customer:', receipt['customerName']])
    if receipt.get('paymentMethod'):
        info_data.append(['Payment:', receipt['paymentMethod']])

    info_table = Table(info_data, colWidths=[2*inch, 3*inch])
    info_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
        ('ALIGN', (1, 0), (1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#34495E')),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.3*inch))

    # Line items
    table_data = [['Item', 'Qty', 'Unit Price', 'Discount', 'Total']]
    for line in receipt['items']:
        name = line['name'] if not line.get('size') else f"{line['name']} ({line['size']})"
        discount = Decimal(line['itemDiscount'])
        table_data.append([
            name,
            str(line['quantity']),
            money(line['unitPrice']),
            f"-{money(discount)}" if discount > 0 else '-',
            money(line['lineTotal']),
        ])

    items_table = Table(table_data, colWidths=[2.9*inch, 0.6*inch, 1.1*inch, 1*inch, 1.1*inch])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#3498DB')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 12),
        ('ALIGN', (1, 1), (1, -1), 'CENTER'),
        ('ALIGN', (2, 1), (-1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#BDC3C7')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#ECF0F1')]),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    # Totals
    totals_data = [['Subtotal:', money(receipt['originalSubtotal'])]]
    if Decimal(receipt['itemDiscounts']) > 0:
        totals_data.append(['Item discounts:', f"-{money(receipt['itemDiscounts'])}"])
    if Decimal(receipt['orderDiscount']) > 0:
        label = 'Order discount:'
        if receipt.get('discountType') == 'percentage':
            label = f"Order discount ({Decimal(receipt['discountValue']).normalize():f}%):"
        totals_data.append([label, f"-{money(receipt['orderDiscount'])}"])
    totals_table = Table(totals_data, colWidths=[5.7*inch, 1*inch])
    totals_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#34495E')),
    ]))
    elements.append(totals_table)

    total_table = Table([['TOTAL:', money(receipt['total'])]], colWidths=[5.7*inch, 1*inch])
    total_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, 0), 'RIGHT'),
        ('ALIGN', (1, 0), (1, 0), 'RIGHT'),
        ('FONTNAME', (0, 0), (-1, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 14),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#27AE60')),
        ('BACKGROUND', (0, 0), (-1, -1), colors.HexColor('#E8F8F5')),
        ('BOX', (0, 0), (-1, -1), 2, colors.HexColor('#27AE60')),
    ]))
    elements.append(total_table)

    payment_rows = [[s['method'].capitalize() + ':', money(s['amount'])] for s in receipt.get('paymentSplits') or []]
    if Decimal(receipt.get('changeDue') or '0') > 0:
        payment_rows.append(['Change:', money(receipt['changeDue'])])
    if payment_rows:
        elements.append(Spacer(1, 0.1*inch))
        payment_table = Table(payment_rows, colWidths=[5.7*inch, 1*inch])
        payment_table.setStyle(TableStyle([
            ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
        ]))
        elements.append(payment_table)

    elements.append(Spacer(1, 0.4*inch))
    footer_style = ParagraphStyle('Footer', parent=styles['Normal'], fontSize=9, textColor=colors.HexColor('#95A5A6'), alignment=TA_CENTER)
    elements.append(Paragraph("<b>Thank you for your visit!</b>", footer_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer
