import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.auth import CurrentUser, get_current_user
from app.core.dependencies import get_db, session_factory_for
from app.schemas.service_order import (
    BulkPdfRequest,
    OrderStatus,
    SendEmailRequest,
    SendEmailResponse,
    ServiceOrderCreate,
    ServiceOrderOut,
    ServiceOrderUpdate,
)
from app.services.documents.service import PdfGenerationError, render_order_pdf, render_orders_pdf
from app.services.email_service import (
    EmailAttachment,
    EmailConfigError,
    EmailSendError,
    OutgoingEmail,
    load_smtp_config,
    send_email_with_retry,
)
from app.services.email_templates import build_order_document_email
from app.services.notification_outbox import dispatch_notification
from app.services.order_service import (
    build_order_bundle,
    build_order_bundles,
    create_service_order,
    delete_service_order,
    get_service_order,
    list_service_orders,
    update_service_order,
)
from app.services.transition_service import status_label

logger = logging.getLogger(__name__)

router = APIRouter()


def _pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def order_pdf_filename(order_number: str) -> str:
    return f"orden-{order_number}.pdf"


@router.get("/service-orders", response_model=list[ServiceOrderOut])
async def list_orders(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return list_service_orders(db)


@router.post("/service-orders", response_model=ServiceOrderOut, status_code=201)
async def create_order(
    payload: ServiceOrderCreate,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    order, outbox_id = create_service_order(db, payload)
    db.commit()
    db.refresh(order)

    # Delivery happens after the response; the outbox worker retries failures.
    if outbox_id is not None:
        background_tasks.add_task(dispatch_notification, session_factory_for(db), outbox_id)
    return order


@router.post("/service-orders/bulk-pdf")
async def bulk_orders_pdf(
    payload: BulkPdfRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    bundles = build_order_bundles(db, payload.order_ids)
    try:
        content = await render_orders_pdf(bundles)
    except PdfGenerationError as exc:
        logger.error("Bulk PDF generation failed orders=%s: %s", len(bundles), exc)
        raise HTTPException(500, "PDF generation failed") from exc
    return _pdf_response(content, "ordenes-servicio.pdf")


@router.get("/service-orders/client/{client_id}", response_model=list[ServiceOrderOut])
async def list_orders_by_client(
    client_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return list_service_orders(db, client_id=client_id)


@router.get("/service-orders/technician/{technician_id}", response_model=list[ServiceOrderOut])
async def list_orders_by_technician(
    technician_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return list_service_orders(db, technician_id=technician_id)


@router.get("/service-orders/status/{status}", response_model=list[ServiceOrderOut])
async def list_orders_by_status(
    status: OrderStatus,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return list_service_orders(db, status=status)


@router.get("/service-orders/{order_id}", response_model=ServiceOrderOut)
async def get_order(
    order_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return get_service_order(db, order_id)


@router.put("/service-orders/{order_id}", response_model=ServiceOrderOut)
async def update_order(
    order_id: int,
    payload: ServiceOrderUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    order = update_service_order(db, order_id, payload)
    db.commit()
    db.refresh(order)
    return order


@router.delete("/service-orders/{order_id}", status_code=204)
async def delete_order(
    order_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    delete_service_order(db, order_id)
    db.commit()
    return Response(status_code=204)


@router.get("/service-orders/{order_id}/pdf")
async def order_pdf(
    order_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    order = get_service_order(db, order_id)
    try:
        content = await render_order_pdf(build_order_bundle(db, order))
    except PdfGenerationError as exc:
        logger.error("PDF generation failed order=%s: %s", order.order_number, exc)
        raise HTTPException(500, "PDF generation failed") from exc
    return _pdf_response(content, order_pdf_filename(order.order_number))


@router.post("/service-orders/{order_id}/send-email", response_model=SendEmailResponse)
async def send_order_email(
    order_id: int,
    payload: Optional[SendEmailRequest] = Body(default=None),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    order = get_service_order(db, order_id)
    bundle = build_order_bundle(db, order)

    recipient = (payload.to if payload else None) or (getattr(bundle.client, "email", "") or "").strip()
    if not recipient:
        raise HTTPException(400, "Client has no email address")

    try:
        smtp = load_smtp_config(db)
    except EmailConfigError as exc:
        raise HTTPException(400, str(exc)) from exc

    try:
        pdf = await render_order_pdf(bundle)
    except PdfGenerationError as exc:
        logger.error("PDF generation failed order=%s: %s", order.order_number, exc)
        raise HTTPException(500, "PDF generation failed") from exc

    content = build_order_document_email(
        order_number=order.order_number,
        client_name=getattr(bundle.client, "contact_name", None) or getattr(bundle.client, "name", ""),
        status_label=status_label(order.status),
        company=bundle.company,
        subject=payload.subject if payload else None,
        message=payload.message if payload else None,
    )
    email = OutgoingEmail(
        to=recipient,
        subject=content["subject"],
        html=content["html"],
        text=content["text"],
        attachments=[EmailAttachment(filename=order_pdf_filename(order.order_number), content=pdf)],
    )

    try:
        await asyncio.to_thread(send_email_with_retry, smtp, email)
    except EmailSendError as exc:
        logger.error("Email delivery failed order=%s: %s", order.order_number, exc)
        raise HTTPException(502, "Email delivery failed") from exc

    return SendEmailResponse(
        success=True,
        recipient=recipient,
        order_number=order.order_number,
        message="Email sent",
    )
