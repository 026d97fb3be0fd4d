from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from pydantic import ValidationError

from storefront.errors import InsufficientStockError, shortfall_detail
from storefront.models.order import OrderPayload, PreorderAction, PreorderCreate, PreorderOperationRequest
from storefront.services.container import Services, get_services
from storefront.services.export import orders_to_csv

router = APIRouter(
    prefix="/preorders",
    tags=["Preorders"]
)


@router.post("/operate", status_code=status.HTTP_200_OK)
def operate_preorders(request: PreorderOperationRequest, services: Services = Depends(get_services)):
    """
    A single endpoint for the preorder ledger.
    - **CREATE**: reserve stock for `payload` and record the preorder.
    - **CHECK**: report whether `payload` (an order payload) could be reserved right now.
    - **READ_ALL**: every preorder, newest first.
    - **DELETE**: remove the preorder `order_id`.
    - **CLEAR**: remove every preorder.
    - **EXPORT_CSV**: every preorder as CSV.
    """
    action = request.action

    if action == PreorderAction.CREATE:
        try:
            preorder = PreorderCreate(**request.payload)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=f"Invalid payload for creating preorder: {e}")

        try:
            record = services.checkout.place(preorder)
        except InsufficientStockError as e:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"message": str(e), "shortfalls": e.detail()},
            )
        return record.to_response()

    if action == PreorderAction.CHECK:
        try:
            payload = OrderPayload(**request.payload)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=f"Invalid order payload: {e}")
        missing = services.reservations.check(payload)
        return {"fulfillable": not missing, "shortfalls": shortfall_detail(missing)}

    if action == PreorderAction.READ_ALL:
        return [record.to_response() for record in services.orders.list_all()]

    if action == PreorderAction.DELETE:
        if not services.orders.delete_by_id(request.order_id):
            raise HTTPException(status_code=404, detail="Preorder not found.")
        return {"status": "success", "message": f"Preorder {request.order_id} deleted."}

    if action == PreorderAction.CLEAR:
        removed = services.orders.clear()
        return {"status": "success", "removed": removed}

    if action == PreorderAction.EXPORT_CSV:
        content = orders_to_csv(services.orders.list_all())
        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="preorders.csv"'},
        )

    raise HTTPException(status_code=400, detail="Invalid preorder action provided.")
