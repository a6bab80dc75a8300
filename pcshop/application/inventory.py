from decimal import Decimal
from sqlalchemy import select, update
from sqlalchemy.orm import Session
from pcshop.domain.models import StockItem
from pcshop.domain.errors import InsufficientStock, NotFound, ValidationFailed
from pcshop.core.logging_config import get_logger
from .schemas import StockItemCreate, StockItemUpdate

logger = get_logger(__name__)

class InventoryService:
    def __init__(self, db: Session):
        self.db = db

    def list(self):
        return self.db.scalars(select(StockItem).order_by(StockItem.id)).all()

    def get(self, item_id: str) -> StockItem:
        item = self.db.get(StockItem, item_id)
        if not item:
            raise NotFound("Stock item not found")
        return item

    def create(self, data: StockItemCreate) -> StockItem:
        if self.db.get(StockItem, data.id):
            raise ValidationFailed(f"Stock item {data.id} already exists")
        payload = data.model_dump()
        payload["kind"] = data.kind.value
        payload["price"] = Decimal(str(data.price))
        obj = StockItem(**payload)
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def update(self, item_id: str, data: StockItemUpdate) -> StockItem:
        item = self.get(item_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            if key == "price":
                value = Decimal(str(value))
            setattr(item, key, value)
        self.db.commit()
        self.db.refresh(item)
        logger.info(f"Stock item {item_id} updated", extra={'extra_fields': {'quantity': item.quantity}})
        return item

    def lock(self, item_id: str):
        """Load a stock row for update inside the caller's transaction."""
        return self.db.scalars(
            select(StockItem).where(StockItem.id == item_id).with_for_update()
            .execution_options(populate_existing=True)
        ).one_or_none()

    def reserve(self, item_id: str, quantity: int) -> None:
        """Decrement stock only if enough remains; no commit.

        The check and the decrement are one statement so two transactions
        racing for the last unit cannot both succeed.
        """
        result = self.db.execute(
            update(StockItem)
            .where(StockItem.id == item_id, StockItem.quantity >= quantity)
            .values(quantity=StockItem.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InsufficientStock(item_id, quantity)
        self._expire(item_id)

    def release(self, item_id: str, quantity: int) -> bool:
        """Return units to stock; no commit. False if the item no longer exists."""
        result = self.db.execute(
            update(StockItem)
            .where(StockItem.id == item_id)
            .values(quantity=StockItem.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(f"Cannot restock missing item {item_id}")
            return False
        self._expire(item_id)
        return True

    def _expire(self, item_id: str) -> None:
        cached = self.db.identity_map.get(self.db.identity_key(StockItem, item_id))
        if cached is not None:
            self.db.expire(cached)
