# app/services/payment_service.py - Payments, voids, receipts and collection reports
from sqlalchemy.orm import Session
from sqlalchemy import select
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models.payment import Invoice, Payment
from app.models.student import Student
from app.services.audit_service import AuditService
from app.services.invoice_service import InvoiceService
from app.services.notification_service import NotificationService
from app.services.sms_service import SmsService, SmsTemplate
from app.services.numbering import next_sequence_number

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("CASH", "BANK_TRANSFER", "CARD", "MOBILE_MONEY", "CHEQUE")


class PaymentService:
    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.invoices = InvoiceService(db)
        self.notifications = notifications or NotificationService(db)
        self.audit = AuditService(db)

    def generate_receipt_number(self, campus_id: UUID, year: Optional[int] = None) -> str:
        prefix = f"RCP-{year or date.today().year}-"
        return next_sequence_number(self.db, Payment.receipt_number, Payment.campus_id, campus_id, prefix, 6)

    def get_payment(self, campus_id: UUID, payment_id: UUID) -> Payment:
        payment = self.db.execute(
            select(Payment).where(Payment.id == payment_id, Payment.campus_id == campus_id)
        ).scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        return payment

    def record(
        self,
        campus_id: UUID,
        data: Dict[str, Any],
        received_by: Optional[UUID] = None,
    ) -> Payment:
        """
        Record a payment against an invoice and reconcile the invoice status.

        Raises:
            ValidationError: bad amount or method, invoice of another student,
                or invoice already cancelled or paid
        """
        amount = Decimal(str(data["amount"]))
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        if data["method"] not in PAYMENT_METHODS:
            raise ValidationError(f"Invalid payment method '{data['method']}'")

        invoice = self.invoices.get_invoice(campus_id, data["invoice_id"])
        if invoice.student_id != data["student_id"]:
            raise ValidationError("Invoice does not belong to this student")
        if invoice.status in ("CANCELLED", "PAID"):
            raise ValidationError(f"Invoice is {invoice.status}")

        payment = Payment(
            campus_id=campus_id,
            receipt_number=self.generate_receipt_number(campus_id),
            invoice_id=invoice.id,
            student_id=invoice.student_id,
            amount=amount,
            method=data["method"],
            reference=data.get("reference"),
            payment_date=data.get("payment_date") or datetime.utcnow(),
            received_by_id=received_by,
            notes=data.get("notes"),
        )
        self.db.add(payment)
        self.db.flush()
        self.db.refresh(invoice)

        self.invoices.recalculate_status(invoice)
        self.audit.log(
            "PAYMENT_RECORDED", "payment", payment.id,
            user_id=received_by, campus_id=campus_id,
            details={"invoice": invoice.invoice_number, "amount": str(amount)}
        )

        student = invoice.student
        if student.user_id:
            self.notifications.send(
                student.user_id,
                "PAYMENT",
                "Payment received",
                f"Payment of {amount} received. Receipt: {payment.receipt_number}. "
                f"Remaining balance: {invoice.balance}.",
                campus_id=campus_id,
                commit=False,
                sms_text=SmsService.render_template(
                    SmsTemplate.PAYMENT_RECEIVED,
                    amount=amount,
                    receipt_number=payment.receipt_number,
                    balance=invoice.balance,
                ),
            )

        self.db.commit()
        self.db.refresh(payment)
        logger.info(f"Payment {payment.receipt_number} of {amount} recorded on {invoice.invoice_number}")
        return payment

    def void(self, campus_id: UUID, payment_id: UUID, reason: str, voided_by: UUID) -> Payment:
        payment = self.get_payment(campus_id, payment_id)
        if payment.is_voided:
            raise ValidationError("Payment is already voided")
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to void a payment")

        window = timedelta(days=settings.PAYMENT_VOID_WINDOW_DAYS)
        if datetime.utcnow() - payment.created_at > window:
            raise ValidationError(
                f"Payments can only be voided within {settings.PAYMENT_VOID_WINDOW_DAYS} days"
            )

        payment.voided_at = datetime.utcnow()
        payment.voided_by_id = voided_by
        payment.void_reason = reason.strip()
        self.db.flush()

        invoice = payment.invoice
        self.db.refresh(invoice)
        self.invoices.recalculate_status(invoice)
        self.audit.log(
            "PAYMENT_VOIDED", "payment", payment.id,
            user_id=voided_by, campus_id=campus_id, details={"reason": payment.void_reason}
        )
        self.db.commit()
        self.db.refresh(payment)

        logger.info(f"Payment {payment.receipt_number} voided: {payment.void_reason}")
        return payment

    def list_payments(
        self,
        campus_id: UUID,
        student_id: Optional[UUID] = None,
        invoice_id: Optional[UUID] = None,
        include_voided: bool = True,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Payment]:
        query = select(Payment).where(Payment.campus_id == campus_id)
        if student_id:
            query = query.where(Payment.student_id == student_id)
        if invoice_id:
            query = query.where(Payment.invoice_id == invoice_id)
        if not include_voided:
            query = query.where(Payment.voided_at.is_(None))
        query = query.order_by(Payment.payment_date.desc()).offset(skip).limit(limit)
        return list(self.db.execute(query).scalars().all())

    def receipt(self, campus_id: UUID, payment_id: UUID) -> Dict[str, Any]:
        payment = self.get_payment(campus_id, payment_id)
        invoice = payment.invoice
        student = payment.student
        return {
            "receipt_number": payment.receipt_number,
            "payment_date": payment.payment_date,
            "amount": payment.amount,
            "method": payment.method,
            "reference": payment.reference,
            "is_voided": payment.is_voided,
            "void_reason": payment.void_reason,
            "invoice_number": invoice.invoice_number,
            "invoice_amount": invoice.amount,
            "invoice_status": invoice.status,
            "total_paid": invoice.total_paid,
            "balance": invoice.balance,
            "student_number": student.student_number,
            "student_name": student.full_name,
        }

    def _collected(self, campus_id: UUID, start: datetime, end: datetime) -> List[Payment]:
        return list(self.db.execute(
            select(Payment).where(
                Payment.campus_id == campus_id,
                Payment.voided_at.is_(None),
                Payment.payment_date >= start,
                Payment.payment_date < end
            )
        ).scalars().all())

    @staticmethod
    def _by_method(payments: List[Payment]) -> Dict[str, Decimal]:
        totals: Dict[str, Decimal] = {}
        for payment in payments:
            totals[payment.method] = totals.get(payment.method, Decimal("0.00")) + payment.amount
        return totals

    def daily_collection(self, campus_id: UUID, day: Optional[date] = None) -> Dict[str, Any]:
        day = day or date.today()
        start = datetime.combine(day, time.min)
        payments = self._collected(campus_id, start, start + timedelta(days=1))
        return {
            "date": day,
            "total": sum((p.amount for p in payments), Decimal("0.00")),
            "count": len(payments),
            "by_method": self._by_method(payments),
        }

    def collection_report(self, campus_id: UUID, start_date: date, end_date: date) -> Dict[str, Any]:
        if end_date < start_date:
            raise ValidationError("End date must not be before start date")

        payments = self._collected(
            campus_id,
            datetime.combine(start_date, time.min),
            datetime.combine(end_date + timedelta(days=1), time.min),
        )

        by_program: Dict[str, Decimal] = {}
        by_date: Dict[str, Decimal] = {}
        for payment in payments:
            program = payment.student.program
            program_key = program.code if program else "UNASSIGNED"
            by_program[program_key] = by_program.get(program_key, Decimal("0.00")) + payment.amount
            day_key = payment.payment_date.date().isoformat()
            by_date[day_key] = by_date.get(day_key, Decimal("0.00")) + payment.amount

        return {
            "start_date": start_date,
            "end_date": end_date,
            "total": sum((p.amount for p in payments), Decimal("0.00")),
            "count": len(payments),
            "by_method": self._by_method(payments),
            "by_program": by_program,
            "by_date": [{"date": day, "total": total} for day, total in sorted(by_date.items())],
        }

    def student_statement(self, campus_id: UUID, student_id: UUID) -> Dict[str, Any]:
        student = self.db.execute(
            select(Student).where(Student.id == student_id, Student.campus_id == campus_id)
        ).scalar_one_or_none()
        if student is None:
            raise NotFoundError("Student", student_id)

        invoices = self.db.execute(
            select(Invoice)
            .where(Invoice.student_id == student.id)
            .order_by(Invoice.created_at)
        ).scalars().all()
        payments = self.db.execute(
            select(Payment)
            .where(Payment.student_id == student.id)
            .order_by(Payment.payment_date)
        ).scalars().all()

        billed = sum((i.amount for i in invoices if i.status != "CANCELLED"), Decimal("0.00"))
        paid = sum((p.amount for p in payments if not p.is_voided), Decimal("0.00"))
        return {
            "student_id": student.id,
            "student_number": student.student_number,
            "student_name": student.full_name,
            "invoices": list(invoices),
            "payments": list(payments),
            "total_billed": billed,
            "total_paid": paid,
            "balance": sum((i.balance for i in invoices), Decimal("0.00")),
        }
