# app/api/routers/finance.py - Fee structures, invoices, payments and collection reports
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from datetime import date
from uuid import UUID
import logging

from app.core.db import get_db
from app.api.deps.tenancy import require_campus, require_campus_roles
from app.services.fee_service import FeeService
from app.services.invoice_service import InvoiceService
from app.services.payment_service import PaymentService
from app.schemas.finance import (
    FeeItemIn,
    FeeStructureCreate,
    FeeStructureUpdate,
    FeeStructureOut,
    InvoiceGenerate,
    BulkInvoiceGenerate,
    InvoiceCancel,
    InvoiceOut,
    BulkInvoiceOut,
    PaymentCreate,
    PaymentVoid,
    PaymentOut,
    ReceiptOut,
    DailyCollectionOut,
    CollectionReportOut,
    StatementOut,
)

logger = logging.getLogger(__name__)
router = APIRouter()

accountant = require_campus_roles(["ACCOUNTANT"])


# Fee structures

@router.post("/fee-structures", response_model=FeeStructureOut, status_code=status.HTTP_201_CREATED)
async def create_fee_structure(
    data: FeeStructureCreate,
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    payload = data.model_dump()
    return FeeService(db).create_structure(ctx["campus_id"], payload)


@router.get("/fee-structures", response_model=List[FeeStructureOut])
async def list_fee_structures(
    program_id: Optional[UUID] = Query(None),
    academic_year_id: Optional[UUID] = Query(None),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return FeeService(db).list_structures(ctx["campus_id"], program_id, academic_year_id)


@router.get("/fee-structures/lookup")
async def fee_structure_summary(
    program_id: UUID = Query(...),
    academic_year_id: UUID = Query(...),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    """Fees payable by a program in an academic year, or null when none is defined"""
    return FeeService(db).structure_summary(ctx["campus_id"], program_id, academic_year_id)


@router.get("/fee-structures/{structure_id}", response_model=FeeStructureOut)
async def get_fee_structure(
    structure_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return FeeService(db).get_structure(ctx["campus_id"], structure_id)


@router.patch("/fee-structures/{structure_id}", response_model=FeeStructureOut)
async def update_fee_structure(
    structure_id: UUID,
    data: FeeStructureUpdate,
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    return FeeService(db).update_structure(ctx["campus_id"], structure_id, data.model_dump(exclude_unset=True))


@router.post("/fee-structures/{structure_id}/items", response_model=FeeStructureOut)
async def add_fee_item(
    structure_id: UUID,
    data: FeeItemIn,
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    return FeeService(db).add_item(ctx["campus_id"], structure_id, data.model_dump())


@router.delete("/fee-structures/{structure_id}/items/{item_id}", response_model=FeeStructureOut)
async def remove_fee_item(
    structure_id: UUID,
    item_id: UUID,
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    return FeeService(db).remove_item(ctx["campus_id"], structure_id, item_id)


# Invoices

@router.post("/invoices", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
async def generate_invoice(
    data: InvoiceGenerate,
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    return InvoiceService(db).generate(
        ctx["campus_id"], data.student_id, data.semester_id, data.due_date, created_by=ctx["user"].id
    )


@router.post("/invoices/bulk", response_model=BulkInvoiceOut)
async def bulk_generate_invoices(
    data: BulkInvoiceGenerate,
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    """Invoice every active student; students already billed for the semester are skipped"""
    return InvoiceService(db).bulk_generate(
        ctx["campus_id"], data.semester_id, data.program_id, data.due_date, created_by=ctx["user"].id
    )


@router.get("/invoices", response_model=List[InvoiceOut])
async def list_invoices(
    student_id: Optional[UUID] = Query(None),
    semester_id: Optional[UUID] = Query(None),
    invoice_status: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    return InvoiceService(db).list_invoices(
        ctx["campus_id"],
        student_id=student_id,
        semester_id=semester_id,
        status=invoice_status,
        skip=skip,
        limit=limit,
    )


@router.get("/invoices/outstanding", response_model=List[InvoiceOut])
async def outstanding_invoices(
    student_id: Optional[UUID] = Query(None),
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    return InvoiceService(db).outstanding(ctx["campus_id"], student_id)


@router.post("/invoices/mark-overdue")
async def mark_overdue_invoices(
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    count = InvoiceService(db).mark_overdue(ctx["campus_id"])
    return {"updated": count}


@router.get("/invoices/{invoice_id}", response_model=InvoiceOut)
async def get_invoice(
    invoice_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return InvoiceService(db).get_invoice(ctx["campus_id"], invoice_id)


@router.post("/invoices/{invoice_id}/cancel", response_model=InvoiceOut)
async def cancel_invoice(
    invoice_id: UUID,
    data: InvoiceCancel,
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    return InvoiceService(db).cancel(ctx["campus_id"], invoice_id, data.reason, cancelled_by=ctx["user"].id)


# Payments

@router.post("/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
async def record_payment(
    data: PaymentCreate,
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    return PaymentService(db).record(ctx["campus_id"], data.model_dump(), received_by=ctx["user"].id)


@router.get("/payments", response_model=List[PaymentOut])
async def list_payments(
    student_id: Optional[UUID] = Query(None),
    invoice_id: Optional[UUID] = Query(None),
    include_voided: bool = Query(True),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    return PaymentService(db).list_payments(
        ctx["campus_id"],
        student_id=student_id,
        invoice_id=invoice_id,
        include_voided=include_voided,
        skip=skip,
        limit=limit,
    )


@router.get("/payments/{payment_id}", response_model=PaymentOut)
async def get_payment(
    payment_id: UUID,
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    return PaymentService(db).get_payment(ctx["campus_id"], payment_id)


@router.get("/payments/{payment_id}/receipt", response_model=ReceiptOut)
async def payment_receipt(
    payment_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return PaymentService(db).receipt(ctx["campus_id"], payment_id)


@router.post("/payments/{payment_id}/void", response_model=PaymentOut)
async def void_payment(
    payment_id: UUID,
    data: PaymentVoid,
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    """Void a payment inside the void window; the invoice balance is restored"""
    return PaymentService(db).void(ctx["campus_id"], payment_id, data.reason, ctx["user"].id)


# Reports

@router.get("/reports/daily", response_model=DailyCollectionOut)
async def daily_collection(
    day: Optional[date] = Query(None, alias="date"),
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    return PaymentService(db).daily_collection(ctx["campus_id"], day)


@router.get("/reports/collections", response_model=CollectionReportOut)
async def collection_report(
    start_date: date = Query(...),
    end_date: date = Query(...),
    ctx: Dict[str, Any] = Depends(accountant),
    db: Session = Depends(get_db)
):
    return PaymentService(db).collection_report(ctx["campus_id"], start_date, end_date)


@router.get("/students/{student_id}/statement", response_model=StatementOut)
async def student_statement(
    student_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return PaymentService(db).student_statement(ctx["campus_id"], student_id)
