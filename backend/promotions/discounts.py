"""
Discount calculation for campaigns

Per product the best applicable campaign wins; free shipping is decided on the cart.
All amounts are Decimals rounded to cents.
"""
from decimal import Decimal, ROUND_HALF_UP

ZERO = Decimal('0.00')
CENT = Decimal('0.01')


def to_money(value):
    return Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP)


def _format_amount(value):
    return f"{to_money(value):.2f}".replace('.', ',')


def get_campaign_badge(campaign):
    """Short storefront badge text for a campaign"""
    if campaign.type == 'PERCENTAGE' and campaign.discount_percent is not None:
        return f"-{Decimal(campaign.discount_percent).normalize():f}%"
    if campaign.type == 'FIXED_AMOUNT' and campaign.discount_amount is not None:
        return f"-{_format_amount(campaign.discount_amount)} €"
    if campaign.type == 'BUY_X_GET_Y' and campaign.buy_quantity and campaign.get_quantity:
        return f"{campaign.buy_quantity} für {campaign.get_quantity}"
    if campaign.type == 'FREE_SHIPPING':
        return 'Gratis Versand'
    return campaign.name


def campaign_summary(campaign):
    if campaign is None:
        return None
    return {
        'id': campaign.id,
        'name': campaign.name,
        'slug': campaign.slug,
        'type': campaign.type,
        'badge': get_campaign_badge(campaign),
    }


def line_discount(campaign, price, quantity=1):
    """Discount of one campaign on a cart line (price x quantity)"""
    price = Decimal(price or 0)
    quantity = int(quantity)
    discount = ZERO
    if campaign.type == 'PERCENTAGE':
        discount = price * quantity * Decimal(campaign.discount_percent or 0) / Decimal('100')
    elif campaign.type == 'FIXED_AMOUNT':
        discount = min(Decimal(campaign.discount_amount or 0), price) * quantity
    elif campaign.type == 'BUY_X_GET_Y':
        buy = campaign.buy_quantity or 0
        get = campaign.get_quantity or 0
        if buy > 0 and buy > get and quantity >= buy:
            # "buy X, pay Y": every full set of X contains X - Y free items
            sets = quantity // buy
            discount = sets * (buy - get) * price
    if campaign.max_discount is not None and discount > campaign.max_discount:
        discount = Decimal(campaign.max_discount)
    return to_money(min(discount, price * quantity))


class DiscountCalculator:
    """Applies a fixed set of active campaigns to products and carts"""

    def __init__(self, campaigns=None):
        self.campaigns = list(campaigns or [])

    def applicable_campaigns(self, product, subtotal=None):
        matches = []
        for campaign in self.campaigns:
            if campaign.type == 'FREE_SHIPPING':
                continue
            if campaign.min_purchase:
                # Without a cart there is nothing to compare the minimum against
                if subtotal is None or subtotal < campaign.min_purchase:
                    continue
            if campaign.apply_to_all:
                matches.append(campaign)
            elif product.category_id and product.category_id in (campaign.category_ids or []):
                matches.append(campaign)
            elif product.id in (campaign.product_ids or []):
                matches.append(campaign)
        return matches

    def best_campaign(self, product, quantity=1, subtotal=None):
        best, best_discount = None, ZERO
        for campaign in self.applicable_campaigns(product, subtotal):
            discount = line_discount(campaign, product.price, quantity)
            if discount > best_discount:
                best, best_discount = campaign, discount
        return best, best_discount

    def product_pricing(self, product):
        """Unit pricing shown on product cards"""
        price = to_money(product.price)
        campaign, discount = self.best_campaign(product, 1)
        return {
            'original_price': str(price),
            'discounted_price': str(to_money(price - discount)),
            'discount': str(discount),
            'campaign': campaign_summary(campaign),
        }

    def calculate_cart(self, items):
        """
        items: iterable of (product, quantity)
        Returns line details plus subtotal, campaign discount and discounted subtotal.
        """
        items = [(product, int(quantity)) for product, quantity in items]
        subtotal = sum((to_money(p.price) * q for p, q in items), ZERO)

        lines = []
        total_discount = ZERO
        applied = {}
        for product, quantity in items:
            unit_price = to_money(product.price)
            line_total = unit_price * quantity
            campaign, discount = self.best_campaign(product, quantity, subtotal)
            total_discount += discount
            if campaign is not None:
                applied[campaign.id] = campaign
            lines.append({
                'product': product,
                'quantity': quantity,
                'unit_price': unit_price,
                'line_total': to_money(line_total),
                'discount': discount,
                'final_total': to_money(line_total - discount),
                'campaign': campaign,
            })

        discounted_subtotal = to_money(subtotal - total_discount)
        return {
            'items': lines,
            'subtotal': to_money(subtotal),
            'discount': to_money(total_discount),
            'discounted_subtotal': discounted_subtotal,
            'applied_campaigns': list(applied.values()),
            'free_shipping_campaign': self.free_shipping_campaign(discounted_subtotal),
        }

    def free_shipping_campaign(self, subtotal):
        """First free-shipping campaign whose minimum purchase the subtotal reaches"""
        for campaign in self.campaigns:
            if campaign.type != 'FREE_SHIPPING':
                continue
            if not campaign.min_purchase or subtotal >= campaign.min_purchase:
                return campaign
        return None
