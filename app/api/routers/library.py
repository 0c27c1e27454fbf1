# app/api/routers/library.py - Catalogue, loans, fines and reservations
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from uuid import UUID

from app.core.db import get_db
from app.api.deps.tenancy import require_campus, require_campus_roles
from app.services.library_service import LibraryService
from app.schemas.library import (
    BookCreate,
    BookUpdate,
    BookOut,
    BookSearchOut,
    CopyCreate,
    CopyStatusUpdate,
    CopyOut,
    IssueIn,
    ReturnIn,
    EligibilityOut,
    BorrowingOut,
    ReservationCreate,
    ReservationOut,
    CountOut,
)

router = APIRouter()

librarian = require_campus_roles(["LIBRARIAN"])


# Books and copies

@router.post("/books", response_model=BookOut, status_code=status.HTTP_201_CREATED)
async def create_book(
    data: BookCreate,
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    return LibraryService(db).create_book(ctx["campus_id"], data.model_dump())


@router.get("/books", response_model=List[BookSearchOut])
async def search_books(
    search: Optional[str] = Query(None, description="Title, author or ISBN"),
    category: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return LibraryService(db).search_books(ctx["campus_id"], search, category, skip, limit)


@router.get("/books/{book_id}", response_model=BookOut)
async def get_book(
    book_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return LibraryService(db).get_book(ctx["campus_id"], book_id)


@router.patch("/books/{book_id}", response_model=BookOut)
async def update_book(
    book_id: UUID,
    data: BookUpdate,
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    return LibraryService(db).update_book(ctx["campus_id"], book_id, data.model_dump(exclude_unset=True))


@router.post("/books/{book_id}/copies", response_model=CopyOut, status_code=status.HTTP_201_CREATED)
async def add_copy(
    book_id: UUID,
    data: CopyCreate,
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    return LibraryService(db).add_copy(ctx["campus_id"], book_id, data.barcode, data.location)


@router.patch("/copies/{copy_id}/status", response_model=CopyOut)
async def set_copy_status(
    copy_id: UUID,
    data: CopyStatusUpdate,
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    return LibraryService(db).set_copy_status(ctx["campus_id"], copy_id, data.status)


# Loans

@router.get("/eligibility/{user_id}", response_model=EligibilityOut)
async def borrowing_eligibility(
    user_id: UUID,
    borrower_type: str = Query(...),
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    return LibraryService(db).can_borrow(ctx["campus_id"], user_id, borrower_type)


@router.post("/borrowings", response_model=BorrowingOut, status_code=status.HTTP_201_CREATED)
async def issue_book(
    data: IssueIn,
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    return LibraryService(db).issue(
        ctx["campus_id"], data.copy_id, data.user_id, data.borrower_type, issued_by=ctx["user"].id
    )


@router.get("/borrowings/me", response_model=List[BorrowingOut])
async def my_borrowings(
    active_only: bool = Query(False),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return LibraryService(db).borrower_history(ctx["campus_id"], ctx["user"].id, active_only)


@router.get("/borrowings/overdue", response_model=List[BorrowingOut])
async def overdue_borrowings(
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    return LibraryService(db).overdue_borrowings(ctx["campus_id"])


@router.post("/borrowings/mark-overdue", response_model=CountOut)
async def mark_overdue(
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    return CountOut(count=LibraryService(db).mark_overdue(ctx["campus_id"]))


@router.get("/borrowers/{user_id}/history", response_model=List[BorrowingOut])
async def borrower_history(
    user_id: UUID,
    active_only: bool = Query(False),
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    return LibraryService(db).borrower_history(ctx["campus_id"], user_id, active_only)


@router.post("/borrowings/{borrowing_id}/return", response_model=BorrowingOut)
async def return_book(
    borrowing_id: UUID,
    data: ReturnIn,
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    """Check a copy back in; late returns accrue a fee unless waived"""
    return LibraryService(db).return_book(ctx["campus_id"], borrowing_id, data.waive_fee)


@router.post("/borrowings/{borrowing_id}/renew", response_model=BorrowingOut)
async def renew_borrowing(
    borrowing_id: UUID,
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    return LibraryService(db).renew(ctx["campus_id"], borrowing_id)


@router.post("/borrowings/{borrowing_id}/lost", response_model=BorrowingOut)
async def mark_lost(
    borrowing_id: UUID,
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    return LibraryService(db).mark_lost(ctx["campus_id"], borrowing_id)


@router.post("/borrowings/{borrowing_id}/waive-fee", response_model=BorrowingOut)
async def waive_fee(
    borrowing_id: UUID,
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    return LibraryService(db).waive_fee(ctx["campus_id"], borrowing_id)


@router.post("/borrowings/{borrowing_id}/pay-fee", response_model=BorrowingOut)
async def pay_fee(
    borrowing_id: UUID,
    ctx: Dict[str, Any] = Depends(librarian),
    db: Session = Depends(get_db)
):
    return LibraryService(db).pay_fee(ctx["campus_id"], borrowing_id)


# Reservations

@router.post("/reservations", response_model=ReservationOut, status_code=status.HTTP_201_CREATED)
async def reserve_book(
    data: ReservationCreate,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    return LibraryService(db).reserve(ctx["campus_id"], data.book_id, ctx["user"].id)


@router.get("/reservations", response_model=List[ReservationOut])
async def list_reservations(
    book_id: Optional[UUID] = Query(None),
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    user_id = None if ctx["role"] in ("OWNER", "ADMIN", "LIBRARIAN") else ctx["user"].id
    return LibraryService(db).list_reservations(ctx["campus_id"], book_id, user_id)


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationOut)
async def cancel_reservation(
    reservation_id: UUID,
    ctx: Dict[str, Any] = Depends(require_campus),
    db: Session = Depends(get_db)
):
    user_id = None if ctx["role"] in ("OWNER", "ADMIN", "LIBRARIAN") else ctx["user"].id
    return LibraryService(db).cancel_reservation(ctx["campus_id"], reservation_id, user_id)
