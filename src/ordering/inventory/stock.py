"""Stock level value object and the InventoryItem aggregate that persists them.

Stock Level Model:
    quantity:  Units the store owns (sold units are removed on commit)
    reserved:  Held for open orders awaiting payment
    available: quantity - reserved (what can be offered to new orders)
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer

from ordering.domain import ordering
from ordering.errors import InsufficientInventory


@ordering.value_object
class StockLevels:
    """Immutable snapshot of a product's stock counters.

    Always build through ``StockLevels.of()`` so that ``available`` is derived
    from ``quantity`` and ``reserved`` rather than assigned.
    """

    quantity = Integer(default=0, min_value=0)
    reserved = Integer(default=0, min_value=0)
    available = Integer(default=0, min_value=0)

    @classmethod
    def of(cls, quantity, reserved=0):
        if quantity < 0:
            raise ValidationError({"quantity": [f"Quantity cannot be negative: {quantity}"]})
        if reserved < 0:
            raise ValidationError({"reserved": [f"Reserved cannot be negative: {reserved}"]})
        if reserved > quantity:
            raise ValidationError({"reserved": [f"Reserved ({reserved}) cannot exceed quantity ({quantity})"]})
        return cls(quantity=quantity, reserved=reserved, available=quantity - reserved)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class InventoryItem:
    """Stock counters for one product, stored under the product's id.

    Methods validate against the current levels before assigning anything,
    so a refused change leaves the counters untouched.
    """

    product_id = Identifier(identifier=True)
    quantity = Integer(default=0, min_value=0)
    reserved = Integer(default=0, min_value=0)
    updated_at = DateTime()

    @classmethod
    def open(cls, product_id):
        return cls(product_id=str(product_id), quantity=0, reserved=0, updated_at=datetime.now(UTC))

    @property
    def levels(self):
        return StockLevels.of(self.quantity, self.reserved)

    def _apply(self, levels):
        self.quantity = levels.quantity
        self.reserved = levels.reserved
        self.updated_at = datetime.now(UTC)
        return levels

    def restock(self, new_quantity):
        if new_quantity < self.reserved:
            raise ValidationError(
                {"quantity": [f"Adjustment would leave {new_quantity} units against {self.reserved} reserved"]}
            )
        return self._apply(StockLevels.of(new_quantity, self.reserved))

    def reserve(self, quantity):
        available = self.quantity - self.reserved
        if available < quantity:
            raise InsufficientInventory(str(self.product_id), requested=quantity, available=available)
        return self._apply(StockLevels.of(self.quantity, self.reserved + quantity))

    def release(self, quantity):
        if quantity > self.reserved:
            raise ValidationError({"quantity": [f"Cannot release {quantity} units, only {self.reserved} reserved"]})
        return self._apply(StockLevels.of(self.quantity, self.reserved - quantity))

    def commit(self, quantity):
        if quantity > self.reserved:
            raise ValidationError({"quantity": [f"Cannot commit {quantity} units, only {self.reserved} reserved"]})
        return self._apply(StockLevels.of(self.quantity - quantity, self.reserved - quantity))
