"""Product aggregate: the slice of catalogue data the checkout reads.

Prices are held in integer minor currency units (cents) so that order totals
never pick up floating-point drift.
"""

from datetime import UTC, datetime

from protean import handle
from protean.fields import Boolean, DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering


@ordering.aggregate
class Product:
    name = String(required=True, max_length=255)
    price = Integer(required=True, min_value=0)
    currency = String(max_length=3, default="usd")
    is_active = Boolean(default=True)
    created_at = DateTime()

    @classmethod
    def register(cls, name, price, currency="usd", product_id=None):
        attributes = {
            "name": name,
            "price": price,
            "currency": currency,
            "is_active": True,
            "created_at": datetime.now(UTC),
        }
        if product_id:
            attributes["id"] = product_id
        return cls(**attributes)

    def deactivate(self):
        self.is_active = False


@ordering.command(part_of="Product")
class RegisterProduct:
    product_id = Identifier()  # Optional; generated when omitted
    name = String(required=True, max_length=255)
    price = Integer(required=True, min_value=0)
    currency = String(max_length=3, default="usd")


@ordering.command(part_of="Product")
class DeactivateProduct:
    product_id = Identifier(required=True)


@ordering.command_handler(part_of=Product)
class ProductHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        product = Product.register(
            name=command.name,
            price=command.price,
            currency=command.currency or "usd",
            product_id=command.product_id,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(DeactivateProduct)
    def deactivate_product(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.deactivate()
        repo.add(product)
