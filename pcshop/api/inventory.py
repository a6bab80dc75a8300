from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pcshop.infrastructure.db import get_db
from pcshop.application.authorization import Actor, Action, authorize
from pcshop.application.inventory import InventoryService
from pcshop.application.schemas import StockItemCreate, StockItemUpdate, StockItemRead
from .deps import get_actor

router = APIRouter(prefix="/stock", tags=["inventory"])

@router.get("", response_model=list[StockItemRead])
def list_stock(db: Session = Depends(get_db)):
    return InventoryService(db).list()

@router.get("/{item_id}", response_model=StockItemRead)
def get_stock_item(item_id: str, db: Session = Depends(get_db)):
    return InventoryService(db).get(item_id)

@router.post("", response_model=StockItemRead, status_code=201)
def create_stock_item(payload: StockItemCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    authorize(actor, Action.MANAGE_STOCK)
    return InventoryService(db).create(payload)

@router.put("/{item_id}", response_model=StockItemRead)
def update_stock_item(item_id: str, payload: StockItemUpdate, db: Session = Depends(get_db),
                      actor: Actor = Depends(get_actor)):
    authorize(actor, Action.MANAGE_STOCK)
    return InventoryService(db).update(item_id, payload)
