# app/services/invoice_service.py - Student invoices and their settlement status
from sqlalchemy.orm import Session
from sqlalchemy import select
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.config import settings
from app.core.errors import AppError, ConflictError, NotFoundError, ValidationError
from app.models.academic import Semester
from app.models.payment import Invoice, InvoiceLine
from app.models.student import Student
from app.services.audit_service import AuditService
from app.services.fee_service import FeeService
from app.services.numbering import next_sequence_number

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("PENDING", "PARTIAL", "OVERDUE")


def derive_status(invoice: Invoice, today: Optional[date] = None) -> str:
    """Invoice status implied by its non-voided payments and due date"""
    if invoice.status == "CANCELLED":
        return "CANCELLED"
    paid = invoice.total_paid
    if paid >= invoice.amount:
        return "PAID"
    if paid > 0:
        return "PARTIAL"
    if invoice.due_date < (today or date.today()):
        return "OVERDUE"
    return "PENDING"


class InvoiceService:
    def __init__(self, db: Session):
        self.db = db
        self.fees = FeeService(db)
        self.audit = AuditService(db)

    def generate_invoice_number(self, campus_id: UUID, year: Optional[int] = None) -> str:
        prefix = f"INV-{year or date.today().year}-"
        return next_sequence_number(self.db, Invoice.invoice_number, Invoice.campus_id, campus_id, prefix, 6)

    def get_invoice(self, campus_id: UUID, invoice_id: UUID) -> Invoice:
        invoice = self.db.execute(
            select(Invoice).where(Invoice.id == invoice_id, Invoice.campus_id == campus_id)
        ).scalar_one_or_none()
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def generate(
        self,
        campus_id: UUID,
        student_id: UUID,
        semester_id: UUID,
        due_date: Optional[date] = None,
        created_by: Optional[UUID] = None,
        commit: bool = True,
    ) -> Invoice:
        """
        Bill a student for a semester from their program's fee structure.

        Raises:
            ValidationError: student not active or has no program
            ConflictError: an open invoice already exists for the semester
            NotFoundError: no fee structure for the program and academic year
        """
        student = self.db.execute(
            select(Student).where(Student.id == student_id, Student.campus_id == campus_id)
        ).scalar_one_or_none()
        if student is None:
            raise NotFoundError("Student", student_id)
        if student.status != "ACTIVE":
            raise ValidationError(f"Student is {student.status}; invoices are only issued to active students")
        if student.program_id is None:
            raise ValidationError("Student has no program assigned")

        semester = self.db.execute(
            select(Semester).where(Semester.id == semester_id, Semester.campus_id == campus_id)
        ).scalar_one_or_none()
        if semester is None:
            raise NotFoundError("Semester", semester_id)

        existing = self.db.execute(
            select(Invoice.id).where(
                Invoice.campus_id == campus_id,
                Invoice.student_id == student.id,
                Invoice.semester_id == semester.id,
                Invoice.status != "CANCELLED"
            )
        ).scalars().first()
        if existing:
            raise ConflictError(f"Student {student.student_number} already has an invoice for {semester.name}")

        structure = self.fees.find_structure(campus_id, student.program_id, semester.academic_year_id)
        if structure is None:
            raise NotFoundError("Fee structure")

        invoice = Invoice(
            campus_id=campus_id,
            invoice_number=self.generate_invoice_number(campus_id),
            student_id=student.id,
            semester_id=semester.id,
            status="PENDING",
            due_date=due_date or (date.today() + timedelta(days=settings.INVOICE_DUE_DAYS)),
        )
        invoice.invoice_lines = [
            InvoiceLine(campus_id=campus_id, item_name=item.name, amount=item.amount)
            for item in structure.items
        ]
        invoice.amount = sum((line.amount for line in invoice.invoice_lines), Decimal("0.00"))

        self.db.add(invoice)
        self.db.flush()
        self.audit.log(
            "INVOICE_GENERATED", "invoice", invoice.id,
            user_id=created_by, campus_id=campus_id, details={"amount": str(invoice.amount)}
        )
        if commit:
            self.db.commit()
            self.db.refresh(invoice)

        logger.info(f"Invoice {invoice.invoice_number} generated for {student.student_number}: {invoice.amount}")
        return invoice

    def bulk_generate(
        self,
        campus_id: UUID,
        semester_id: UUID,
        program_id: Optional[UUID] = None,
        due_date: Optional[date] = None,
        created_by: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        query = select(Student).where(Student.campus_id == campus_id, Student.status == "ACTIVE")
        if program_id:
            query = query.where(Student.program_id == program_id)
        students = self.db.execute(query).scalars().all()

        generated = 0
        skipped = 0
        errors = []
        for student in students:
            try:
                with self.db.begin_nested():
                    self.generate(campus_id, student.id, semester_id, due_date, created_by, commit=False)
                generated += 1
            except ConflictError:
                skipped += 1
            except AppError as e:
                errors.append({"student_id": str(student.id), "student_number": student.student_number, "error": e.message})

        self.db.commit()
        logger.info(f"Bulk invoicing for semester {semester_id}: {generated} generated, {skipped} skipped")
        return {"generated": generated, "skipped": skipped, "errors": errors}

    def list_invoices(
        self,
        campus_id: UUID,
        student_id: Optional[UUID] = None,
        semester_id: Optional[UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Invoice]:
        query = select(Invoice).where(Invoice.campus_id == campus_id)
        if student_id:
            query = query.where(Invoice.student_id == student_id)
        if semester_id:
            query = query.where(Invoice.semester_id == semester_id)
        if status:
            query = query.where(Invoice.status == status)
        query = query.order_by(Invoice.created_at.desc()).offset(skip).limit(limit)
        return list(self.db.execute(query).scalars().all())

    def cancel(self, campus_id: UUID, invoice_id: UUID, reason: Optional[str] = None, cancelled_by: Optional[UUID] = None) -> Invoice:
        invoice = self.get_invoice(campus_id, invoice_id)
        if invoice.status == "CANCELLED":
            raise ValidationError("Invoice is already cancelled")
        if any(not payment.is_voided for payment in invoice.payments):
            raise ValidationError("Invoice has payments; void them before cancelling")

        invoice.status = "CANCELLED"
        invoice.cancelled_at = datetime.utcnow()
        invoice.cancel_reason = reason
        self.audit.log(
            "INVOICE_CANCELLED", "invoice", invoice.id,
            user_id=cancelled_by, campus_id=campus_id, details={"reason": reason}
        )
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"Invoice {invoice.invoice_number} cancelled")
        return invoice

    def recalculate_status(self, invoice: Invoice) -> Invoice:
        new_status = derive_status(invoice)
        if new_status != invoice.status:
            logger.info(f"Invoice {invoice.invoice_number}: {invoice.status} -> {new_status}")
            invoice.status = new_status
        return invoice

    def mark_overdue(self, campus_id: UUID, today: Optional[date] = None) -> int:
        today = today or date.today()
        invoices = self.db.execute(
            select(Invoice).where(
                Invoice.campus_id == campus_id,
                Invoice.status.in_(("PENDING", "PARTIAL")),
                Invoice.due_date < today
            )
        ).scalars().all()
        for invoice in invoices:
            invoice.status = "OVERDUE"
        self.db.commit()
        if invoices:
            logger.info(f"Marked {len(invoices)} invoices overdue")
        return len(invoices)

    def outstanding(self, campus_id: UUID, student_id: Optional[UUID] = None) -> List[Invoice]:
        query = select(Invoice).where(Invoice.campus_id == campus_id, Invoice.status.in_(OPEN_STATUSES))
        if student_id:
            query = query.where(Invoice.student_id == student_id)
        invoices = self.db.execute(query.order_by(Invoice.due_date)).scalars().all()
        return [invoice for invoice in invoices if invoice.balance > 0]
