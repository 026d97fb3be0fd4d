from fastapi import APIRouter, Depends, HTTPException, status

from storefront.models.stock import StockAction, StockOperationRequest, StockResponse
from storefront.services.container import Services, get_services

router = APIRouter(
    prefix="/stock",
    tags=["Stock"]
)


@router.post("/operate", status_code=status.HTTP_200_OK)
def operate_stock(request: StockOperationRequest, services: Services = Depends(get_services)):
    """
    A single endpoint for per-size stock records.
    - **READ_ALL**: every stored record.
    - **GET**: the record for `product_id` (all zeros when none is stored).
    - **SET**: replace sizes given in `payload`; sizes left out keep their value.
    - **DELETE**: remove the record for `product_id`.
    """
    action = request.action
    product_id = request.product_id

    if action == StockAction.READ_ALL:
        records = services.stock.get_all()
        return [StockResponse.of(pid, record).model_dump() for pid, record in sorted(records.items())]

    if not product_id:
        raise HTTPException(status_code=400, detail=f"product_id is required for {action.value} action.")

    if action == StockAction.GET:
        return StockResponse.of(product_id, services.stock.get(product_id)).model_dump()

    if action == StockAction.SET:
        if not request.payload:
            raise HTTPException(status_code=400, detail="Payload required for SET action.")
        sizes = request.payload.get("sizes", request.payload)
        if not isinstance(sizes, dict):
            raise HTTPException(status_code=422, detail="sizes must be an object of size to quantity.")
        record = services.stock.set(product_id, sizes)
        return StockResponse.of(product_id, record).model_dump()

    if action == StockAction.DELETE:
        if not services.stock.delete(product_id):
            raise HTTPException(status_code=404, detail="Stock record not found.")
        return {"status": "success", "message": f"Stock for {product_id} deleted."}

    raise HTTPException(status_code=400, detail="Invalid stock action provided.")
