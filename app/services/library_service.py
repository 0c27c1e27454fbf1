# app/services/library_service.py - Catalogue, loans, late fees and reservations
from sqlalchemy.orm import Session
from sqlalchemy import select, func, or_
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging
import math

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.library import Book, BookCopy, Borrowing, BookReservation
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

BORROWER_TYPES = ("STUDENT", "EMPLOYEE")


def late_fee(due_date: datetime, returned_at: datetime) -> Decimal:
    """Fee for a return: whole days late, less the grace period, times the daily rate"""
    overdue_seconds = (returned_at - due_date).total_seconds()
    if overdue_seconds <= 0:
        return Decimal("0.00")
    days_late = math.ceil(overdue_seconds / 86400) - settings.LIBRARY_GRACE_PERIOD_DAYS
    if days_late <= 0:
        return Decimal("0.00")
    return (Decimal(days_late) * settings.LIBRARY_LATE_FEE_PER_DAY).quantize(Decimal("0.01"))


class LibraryService:
    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    # Catalogue

    def create_book(self, campus_id: UUID, data: Dict[str, Any]) -> Book:
        existing = self.db.execute(
            select(Book.id).where(Book.campus_id == campus_id, Book.isbn == data["isbn"])
        ).scalar_one_or_none()
        if existing:
            raise ConflictError(f"A book with ISBN {data['isbn']} already exists")

        book = Book(campus_id=campus_id, **data)
        self.db.add(book)
        self.db.commit()
        self.db.refresh(book)
        logger.info(f"Book added: {book.isbn} {book.title}")
        return book

    def get_book(self, campus_id: UUID, book_id: UUID) -> Book:
        book = self.db.execute(
            select(Book).where(Book.id == book_id, Book.campus_id == campus_id)
        ).scalar_one_or_none()
        if book is None:
            raise NotFoundError("Book", book_id)
        return book

    def update_book(self, campus_id: UUID, book_id: UUID, changes: Dict[str, Any]) -> Book:
        book = self.get_book(campus_id, book_id)
        if changes.get("isbn") and changes["isbn"] != book.isbn:
            clash = self.db.execute(
                select(Book.id).where(Book.campus_id == campus_id, Book.isbn == changes["isbn"])
            ).scalar_one_or_none()
            if clash:
                raise ConflictError(f"A book with ISBN {changes['isbn']} already exists")
        for field, value in changes.items():
            setattr(book, field, value)
        self.db.commit()
        self.db.refresh(book)
        return book

    def search_books(
        self,
        campus_id: UUID,
        search: Optional[str] = None,
        category: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        query = select(Book).where(Book.campus_id == campus_id)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Book.title.ilike(pattern), Book.author.ilike(pattern), Book.isbn.ilike(pattern)))
        if category:
            query = query.where(Book.category == category)
        books = self.db.execute(query.order_by(Book.title).offset(skip).limit(limit)).scalars().all()

        results = []
        for book in books:
            available = sum(1 for copy in book.copies if copy.status == "AVAILABLE")
            results.append({"book": book, "total_copies": len(book.copies), "available_copies": available})
        return results

    def add_copy(self, campus_id: UUID, book_id: UUID, barcode: str, location: Optional[str] = None) -> BookCopy:
        book = self.get_book(campus_id, book_id)
        existing = self.db.execute(
            select(BookCopy.id).where(BookCopy.campus_id == campus_id, BookCopy.barcode == barcode)
        ).scalar_one_or_none()
        if existing:
            raise ConflictError(f"Barcode {barcode} is already in use")

        copy = BookCopy(campus_id=campus_id, book_id=book.id, barcode=barcode, location=location, status="AVAILABLE")
        self.db.add(copy)
        self.db.commit()
        self.db.refresh(copy)
        return copy

    def get_copy(self, campus_id: UUID, copy_id: UUID) -> BookCopy:
        copy = self.db.execute(
            select(BookCopy).where(BookCopy.id == copy_id, BookCopy.campus_id == campus_id)
        ).scalar_one_or_none()
        if copy is None:
            raise NotFoundError("Book copy", copy_id)
        return copy

    def set_copy_status(self, campus_id: UUID, copy_id: UUID, status: str) -> BookCopy:
        copy = self.get_copy(campus_id, copy_id)
        if copy.status == "BORROWED":
            raise ValidationError("Copy is on loan; return it first")
        copy.status = status
        self.db.commit()
        self.db.refresh(copy)
        return copy

    # Loans

    def _active_borrowings(self, campus_id: UUID, user_id: UUID) -> List[Borrowing]:
        return list(self.db.execute(
            select(Borrowing).where(
                Borrowing.campus_id == campus_id,
                Borrowing.borrower_id == user_id,
                Borrowing.status.in_(("ACTIVE", "OVERDUE"))
            )
        ).scalars().all())

    def unpaid_fines(self, campus_id: UUID, user_id: UUID) -> Decimal:
        total = self.db.execute(
            select(func.coalesce(func.sum(Borrowing.late_fee), 0)).where(
                Borrowing.campus_id == campus_id,
                Borrowing.borrower_id == user_id,
                Borrowing.fee_status == "PENDING"
            )
        ).scalar_one()
        return Decimal(str(total))

    def can_borrow(self, campus_id: UUID, user_id: UUID, borrower_type: str) -> Dict[str, Any]:
        if borrower_type not in BORROWER_TYPES:
            raise ValidationError(f"Invalid borrower type '{borrower_type}'")

        active = self._active_borrowings(campus_id, user_id)
        limit = settings.LIBRARY_STUDENT_MAX_BOOKS if borrower_type == "STUDENT" else settings.LIBRARY_EMPLOYEE_MAX_BOOKS
        if len(active) >= limit:
            return {"allowed": False, "reason": f"Borrowing limit of {limit} books reached"}
        if any(b.status == "OVERDUE" for b in active):
            return {"allowed": False, "reason": "Overdue books must be returned first"}

        fines = self.unpaid_fines(campus_id, user_id)
        if fines > settings.LIBRARY_MAX_UNPAID_FINES:
            return {"allowed": False, "reason": f"Unpaid fines of {fines} exceed the limit"}
        return {"allowed": True, "reason": None}

    def get_borrowing(self, campus_id: UUID, borrowing_id: UUID) -> Borrowing:
        borrowing = self.db.execute(
            select(Borrowing).where(Borrowing.id == borrowing_id, Borrowing.campus_id == campus_id)
        ).scalar_one_or_none()
        if borrowing is None:
            raise NotFoundError("Borrowing", borrowing_id)
        return borrowing

    def issue(
        self,
        campus_id: UUID,
        copy_id: UUID,
        user_id: UUID,
        borrower_type: str,
        issued_by: Optional[UUID] = None,
    ) -> Borrowing:
        copy = self.get_copy(campus_id, copy_id)
        if copy.status != "AVAILABLE":
            raise ValidationError(f"Copy {copy.barcode} is {copy.status}")

        eligibility = self.can_borrow(campus_id, user_id, borrower_type)
        if not eligibility["allowed"]:
            raise ValidationError(eligibility["reason"])

        now = datetime.utcnow()
        borrowing = Borrowing(
            campus_id=campus_id,
            copy_id=copy.id,
            borrower_id=user_id,
            borrower_type=borrower_type,
            borrowed_at=now,
            due_date=now + timedelta(days=settings.LIBRARY_LOAN_PERIOD_DAYS),
            status="ACTIVE",
            renewals=0,
            late_fee=Decimal("0.00"),
            fee_status="NONE",
            issued_by_id=issued_by,
        )
        copy.status = "BORROWED"
        self.db.add(borrowing)

        reservation = self.db.execute(
            select(BookReservation).where(
                BookReservation.book_id == copy.book_id,
                BookReservation.user_id == user_id,
                BookReservation.status == "PENDING"
            )
        ).scalars().first()
        if reservation:
            reservation.status = "FULFILLED"

        self.db.commit()
        self.db.refresh(borrowing)
        logger.info(f"Copy {copy.barcode} issued to {user_id}, due {borrowing.due_date:%Y-%m-%d}")
        return borrowing

    def return_book(self, campus_id: UUID, borrowing_id: UUID, waive_fee: bool = False) -> Borrowing:
        borrowing = self.get_borrowing(campus_id, borrowing_id)
        if borrowing.returned_at is not None or borrowing.status == "RETURNED":
            raise ValidationError("Book has already been returned")

        now = datetime.utcnow()
        fee = late_fee(borrowing.due_date, now)
        borrowing.returned_at = now
        borrowing.status = "RETURNED"
        borrowing.late_fee = fee
        if fee > 0:
            borrowing.fee_status = "WAIVED" if waive_fee else "PENDING"
        borrowing.copy.status = "AVAILABLE"

        self.db.commit()
        self.db.refresh(borrowing)
        if fee > 0:
            logger.info(f"Borrowing {borrowing.id} returned late; fee {fee} ({borrowing.fee_status})")
        return borrowing

    def renew(self, campus_id: UUID, borrowing_id: UUID) -> Borrowing:
        borrowing = self.get_borrowing(campus_id, borrowing_id)
        if borrowing.status == "RETURNED":
            raise ValidationError("Returned books cannot be renewed")
        if borrowing.status == "LOST":
            raise ValidationError("Lost books cannot be renewed")
        if borrowing.renewals >= settings.LIBRARY_MAX_RENEWALS:
            raise ValidationError(f"Maximum of {settings.LIBRARY_MAX_RENEWALS} renewals reached")
        if borrowing.status == "OVERDUE" or borrowing.due_date < datetime.utcnow():
            raise ValidationError("Overdue books cannot be renewed")

        reserved = self.db.execute(
            select(BookReservation.id).where(
                BookReservation.book_id == borrowing.copy.book_id,
                BookReservation.user_id != borrowing.borrower_id,
                BookReservation.status == "PENDING"
            )
        ).scalars().first()
        if reserved:
            raise ValidationError("Book is reserved by another user")

        borrowing.due_date = borrowing.due_date + timedelta(days=settings.LIBRARY_LOAN_PERIOD_DAYS)
        borrowing.renewals += 1
        self.db.commit()
        self.db.refresh(borrowing)
        return borrowing

    def waive_fee(self, campus_id: UUID, borrowing_id: UUID) -> Borrowing:
        borrowing = self.get_borrowing(campus_id, borrowing_id)
        if borrowing.fee_status != "PENDING":
            raise ValidationError("No pending fee to waive")
        borrowing.fee_status = "WAIVED"
        self.db.commit()
        self.db.refresh(borrowing)
        return borrowing

    def pay_fee(self, campus_id: UUID, borrowing_id: UUID) -> Borrowing:
        borrowing = self.get_borrowing(campus_id, borrowing_id)
        if borrowing.fee_status != "PENDING":
            raise ValidationError("No pending fee to pay")
        borrowing.fee_status = "PAID"
        self.db.commit()
        self.db.refresh(borrowing)
        return borrowing

    def mark_overdue(self, campus_id: UUID, now: Optional[datetime] = None) -> int:
        now = now or datetime.utcnow()
        borrowings = self.db.execute(
            select(Borrowing).where(
                Borrowing.campus_id == campus_id,
                Borrowing.status == "ACTIVE",
                Borrowing.due_date < now
            )
        ).scalars().all()
        for borrowing in borrowings:
            borrowing.status = "OVERDUE"
            title = borrowing.copy.book.title
            self.notifications.send(
                borrowing.borrower_id,
                "LIBRARY",
                "Book overdue",
                f"\"{title}\" was due on {borrowing.due_date:%Y-%m-%d}. Please return it to avoid further fines.",
                campus_id=campus_id,
                commit=False,
            )
        self.db.commit()
        if borrowings:
            logger.info(f"Marked {len(borrowings)} borrowings overdue")
        return len(borrowings)

    def mark_lost(self, campus_id: UUID, borrowing_id: UUID) -> Borrowing:
        borrowing = self.get_borrowing(campus_id, borrowing_id)
        if borrowing.status in ("RETURNED", "LOST"):
            raise ValidationError(f"Borrowing is already {borrowing.status}")
        borrowing.status = "LOST"
        borrowing.copy.status = "LOST"
        self.db.commit()
        self.db.refresh(borrowing)
        logger.warning(f"Copy {borrowing.copy.barcode} reported lost")
        return borrowing

    def borrower_history(self, campus_id: UUID, user_id: UUID, active_only: bool = False) -> List[Borrowing]:
        query = select(Borrowing).where(Borrowing.campus_id == campus_id, Borrowing.borrower_id == user_id)
        if active_only:
            query = query.where(Borrowing.status.in_(("ACTIVE", "OVERDUE")))
        return list(self.db.execute(query.order_by(Borrowing.borrowed_at.desc())).scalars().all())

    def overdue_borrowings(self, campus_id: UUID) -> List[Borrowing]:
        return list(self.db.execute(
            select(Borrowing)
            .where(Borrowing.campus_id == campus_id, Borrowing.status == "OVERDUE")
            .order_by(Borrowing.due_date)
        ).scalars().all())

    # Reservations

    def reserve(self, campus_id: UUID, book_id: UUID, user_id: UUID) -> BookReservation:
        book = self.get_book(campus_id, book_id)
        existing = self.db.execute(
            select(BookReservation.id).where(
                BookReservation.book_id == book.id,
                BookReservation.user_id == user_id,
                BookReservation.status == "PENDING"
            )
        ).scalars().first()
        if existing:
            raise ConflictError("You already have a pending reservation for this book")

        reservation = BookReservation(campus_id=campus_id, book_id=book.id, user_id=user_id, status="PENDING")
        self.db.add(reservation)
        self.db.commit()
        self.db.refresh(reservation)
        return reservation

    def cancel_reservation(self, campus_id: UUID, reservation_id: UUID, user_id: Optional[UUID] = None) -> BookReservation:
        reservation = self.db.execute(
            select(BookReservation).where(BookReservation.id == reservation_id, BookReservation.campus_id == campus_id)
        ).scalar_one_or_none()
        if reservation is None:
            raise NotFoundError("Reservation", reservation_id)
        if user_id and reservation.user_id != user_id:
            raise ValidationError("Reservation belongs to another user")
        if reservation.status != "PENDING":
            raise ValidationError(f"Reservation is already {reservation.status}")
        reservation.status = "CANCELLED"
        self.db.commit()
        self.db.refresh(reservation)
        return reservation

    def list_reservations(self, campus_id: UUID, book_id: Optional[UUID] = None, user_id: Optional[UUID] = None) -> List[BookReservation]:
        query = select(BookReservation).where(BookReservation.campus_id == campus_id)
        if book_id:
            query = query.where(BookReservation.book_id == book_id)
        if user_id:
            query = query.where(BookReservation.user_id == user_id)
        return list(self.db.execute(query.order_by(BookReservation.created_at)).scalars().all())
