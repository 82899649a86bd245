"""Order repository and the order store built on it."""

import threading
from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import DuplicateOrderNumber, NotFound
from ordering.order.order import Order, OrderStatus, PaymentStatus
from ordering.order.store import OrderPage, OrderStore


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _newest_first(orders):
    return sorted(
        orders,
        key=lambda o: _as_utc(o.created_at) if o.created_at else datetime.min.replace(tzinfo=UTC),
        reverse=True,
    )


@ordering.repository(part_of=Order)
class OrderRepository:
    """Query methods on top of the standard CRUD operations."""

    def find_by_order_number(self, order_number: str) -> Order | None:
        return self._dao.query.filter(order_number=order_number).limit(None).all().first

    def find_by_customer(self, customer_id: str) -> list[Order]:
        return self._dao.query.filter(customer_id=str(customer_id)).limit(None).all().items

    def find_by_status(self, order_status: str) -> list[Order]:
        return self._dao.query.filter(order_status=order_status).limit(None).all().items

    def find_unpaid_pending(self) -> list[Order]:
        return (
            self._dao.query.filter(
                order_status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
            )
            .limit(None)
            .all()
            .items
        )

    def find_all(self) -> list[Order]:
        return self._dao.query.limit(None).all().items

    def find_page(self, order_status: str | None, offset: int, limit: int):
        """One page of orders, newest first. The result set carries the matching total."""
        query = self._dao.query
        if order_status:
            query = query.filter(order_status=order_status)
        return query.order_by("-created_at").offset(offset).limit(limit).all()


class RepositoryOrderStore(OrderStore):
    """Order store backed by the Protean repository for ``Order``.

    Every repository call runs under ``lock``. Saves therefore check the
    order number and insert as one step, the same guarantee a unique index
    gives in a relational database. Pass the lock shared with the other
    repository adapters when the provider is not thread-safe (the in-memory
    provider is not).
    """

    def __init__(self, lock=None) -> None:
        self._lock = lock or threading.RLock()

    @property
    def _repo(self) -> OrderRepository:
        return current_domain.repository_for(Order)

    def save(self, order: Order) -> Order:
        with self._lock:
            existing = self._repo.find_by_order_number(order.order_number)
            if existing is not None and str(existing.id) != str(order.id):
                raise DuplicateOrderNumber(order.order_number)
            self._repo.add(order)
        return order

    def find_by_id(self, order_id: str) -> Order:
        try:
            with self._lock:
                return self._repo.get(str(order_id))
        except ObjectNotFoundError:
            raise NotFound("Order", str(order_id)) from None

    def find_by_order_number(self, order_number: str) -> Order | None:
        with self._lock:
            return self._repo.find_by_order_number(order_number)

    def find_by_customer(self, customer_id: str) -> list[Order]:
        with self._lock:
            orders = self._repo.find_by_customer(customer_id)
        return _newest_first(orders)

    def find_all(self, status: str | None = None) -> list[Order]:
        with self._lock:
            orders = self._repo.find_by_status(status) if status else self._repo.find_all()
        return _newest_first(orders)

    def find_page(self, status: str | None = None, page: int = 1, limit: int = 20) -> OrderPage:
        with self._lock:
            result = self._repo.find_page(status, offset=(page - 1) * limit, limit=limit)
        return OrderPage(orders=list(result.items), total=result.total, page=page, limit=limit)

    def find_stale_pending(self, cutoff: datetime) -> list[Order]:
        cutoff = _as_utc(cutoff)
        with self._lock:
            candidates = self._repo.find_unpaid_pending()
        return [
            order for order in candidates if order.created_at is not None and _as_utc(order.created_at) <= cutoff
        ]
