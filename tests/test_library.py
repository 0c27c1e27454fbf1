from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from app.core.errors import ConflictError, ValidationError
from app.models import Notification
from app.services.library_service import LibraryService, late_fee

DUE = datetime(2026, 10, 1, 12, 0)


@pytest.mark.parametrize("returned, expected", [
    (DUE - timedelta(hours=1), "0.00"),
    (DUE, "0.00"),
    (DUE + timedelta(hours=3), "0.00"),       # within the one-day grace period
    (DUE + timedelta(days=1), "0.00"),
    (DUE + timedelta(days=1, minutes=1), "0.50"),
    (DUE + timedelta(days=5), "2.00"),
])
def test_late_fee(returned, expected):
    assert late_fee(DUE, returned) == Decimal(expected)


@pytest.fixture
def library(db):
    return LibraryService(db)


@pytest.fixture
def copy(library, campus):
    book = library.create_book(campus.id, {"isbn": "9780262033848", "title": "Introduction to Algorithms", "author": "Cormen"})
    return library.add_copy(campus.id, book.id, "LIB-0001")


def _make_late(db, borrowing, days):
    borrowing.due_date = datetime.utcnow() - timedelta(days=days) + timedelta(hours=1)
    db.commit()


def test_isbn_and_barcode_are_unique(library, campus, copy):
    with pytest.raises(ConflictError):
        library.create_book(campus.id, {"isbn": "9780262033848", "title": "Copy", "author": "Someone"})
    with pytest.raises(ConflictError):
        library.add_copy(campus.id, copy.book_id, "LIB-0001")


def test_issue_and_return_on_time(library, make, campus, copy):
    reader = make.user()

    borrowing = library.issue(campus.id, copy.id, reader.id, "STUDENT")
    assert borrowing.status == "ACTIVE"
    assert copy.status == "BORROWED"
    assert (borrowing.due_date - borrowing.borrowed_at).days == 14

    with pytest.raises(ValidationError, match="BORROWED"):
        library.issue(campus.id, copy.id, make.user().id, "STUDENT")

    returned = library.return_book(campus.id, borrowing.id)
    assert returned.status == "RETURNED"
    assert returned.late_fee == Decimal("0.00")
    assert returned.fee_status == "NONE"
    assert copy.status == "AVAILABLE"

    with pytest.raises(ValidationError, match="already been returned"):
        library.return_book(campus.id, borrowing.id)


def test_late_return_accrues_fee(db, library, make, campus, copy):
    reader = make.user()
    borrowing = library.issue(campus.id, copy.id, reader.id, "STUDENT")
    _make_late(db, borrowing, days=4)

    returned = library.return_book(campus.id, borrowing.id)

    assert returned.late_fee == Decimal("1.50")
    assert returned.fee_status == "PENDING"
    assert library.unpaid_fines(campus.id, reader.id) == Decimal("1.50")

    assert library.pay_fee(campus.id, borrowing.id).fee_status == "PAID"
    assert library.unpaid_fines(campus.id, reader.id) == Decimal("0")


def test_late_fee_can_be_waived_on_return(db, library, make, campus, copy):
    borrowing = library.issue(campus.id, copy.id, make.user().id, "EMPLOYEE")
    _make_late(db, borrowing, days=3)

    returned = library.return_book(campus.id, borrowing.id, waive_fee=True)

    assert returned.late_fee == Decimal("1.00")
    assert returned.fee_status == "WAIVED"


def test_renewal_limits(library, make, campus, copy):
    borrowing = library.issue(campus.id, copy.id, make.user().id, "STUDENT")
    original_due = borrowing.due_date

    library.renew(campus.id, borrowing.id)
    renewed = library.renew(campus.id, borrowing.id)
    assert renewed.renewals == 2
    assert renewed.due_date == original_due + timedelta(days=28)

    with pytest.raises(ValidationError, match="Maximum of 2 renewals"):
        library.renew(campus.id, borrowing.id)


def test_overdue_loans_cannot_be_renewed(db, library, make, campus, copy):
    borrowing = library.issue(campus.id, copy.id, make.user().id, "STUDENT")
    _make_late(db, borrowing, days=1)

    with pytest.raises(ValidationError, match="Overdue"):
        library.renew(campus.id, borrowing.id)


def test_reserved_books_cannot_be_renewed(library, make, campus, copy):
    borrowing = library.issue(campus.id, copy.id, make.user().id, "STUDENT")
    library.reserve(campus.id, copy.book_id, make.user().id)

    with pytest.raises(ValidationError, match="reserved by another user"):
        library.renew(campus.id, borrowing.id)


def test_issue_fulfils_own_reservation(library, make, campus, copy):
    reader = make.user()
    reservation = library.reserve(campus.id, copy.book_id, reader.id)
    with pytest.raises(ConflictError):
        library.reserve(campus.id, copy.book_id, reader.id)

    library.issue(campus.id, copy.id, reader.id, "STUDENT")

    assert reservation.status == "FULFILLED"


def test_student_borrowing_limit(library, make, campus):
    reader = make.user()
    book = library.create_book(campus.id, {"isbn": "9781491946008", "title": "Fluent Python", "author": "Ramalho"})
    for number in range(5):
        library.issue(campus.id, library.add_copy(campus.id, book.id, f"FP-{number}").id, reader.id, "STUDENT")

    eligibility = library.can_borrow(campus.id, reader.id, "STUDENT")
    assert eligibility == {"allowed": False, "reason": "Borrowing limit of 5 books reached"}
    assert library.can_borrow(campus.id, reader.id, "EMPLOYEE")["allowed"] is True


def test_overdue_loan_blocks_borrowing(db, library, make, campus, copy):
    reader = make.user()
    borrowing = library.issue(campus.id, copy.id, reader.id, "STUDENT")
    _make_late(db, borrowing, days=2)

    assert library.mark_overdue(campus.id) == 1
    assert library.can_borrow(campus.id, reader.id, "STUDENT")["reason"] == "Overdue books must be returned first"
    assert [b.id for b in library.overdue_borrowings(campus.id)] == [borrowing.id]


def test_unpaid_fines_block_borrowing(db, library, make, campus, copy):
    reader = make.user()
    borrowing = library.issue(campus.id, copy.id, reader.id, "STUDENT")
    _make_late(db, borrowing, days=30)
    library.return_book(campus.id, borrowing.id)

    eligibility = library.can_borrow(campus.id, reader.id, "STUDENT")
    assert eligibility["allowed"] is False
    assert "Unpaid fines" in eligibility["reason"]


def test_invalid_borrower_type(library, make, campus):
    with pytest.raises(ValidationError):
        library.can_borrow(campus.id, make.user().id, "VISITOR")


def test_lost_copy(library, make, campus, copy):
    borrowing = library.issue(campus.id, copy.id, make.user().id, "STUDENT")

    lost = library.mark_lost(campus.id, borrowing.id)

    assert lost.status == "LOST"
    assert copy.status == "LOST"
    with pytest.raises(ValidationError):
        library.renew(campus.id, borrowing.id)


def test_search_counts_available_copies(library, campus, copy):
    library.add_copy(campus.id, copy.book_id, "LIB-0002")
    library.set_copy_status(campus.id, copy.id, "DAMAGED")

    results = library.search_books(campus.id, search="algorithms")

    assert len(results) == 1
    assert results[0]["total_copies"] == 2
    assert results[0]["available_copies"] == 1


def test_library_api_issue_and_return(client, make, campus, owner, headers_for, copy):
    reader = make.user()
    headers = headers_for(owner, campus)

    issued = client.post("/api/library/borrowings", json={
        "copy_id": str(copy.id), "user_id": str(reader.id), "borrower_type": "STUDENT",
    }, headers=headers)
    assert issued.status_code == 201

    returned = client.post(f"/api/library/borrowings/{issued.json()['id']}/return", json={}, headers=headers)
    assert returned.status_code == 200
    assert returned.json()["status"] == "RETURNED"


def test_overdue_borrower_is_notified_once(db, library, make, campus, copy):
    reader = make.user()
    borrowing = library.issue(campus.id, copy.id, reader.id, "STUDENT")
    _make_late(db, borrowing, days=3)

    library.mark_overdue(campus.id)
    assert library.mark_overdue(campus.id) == 0

    notices = db.execute(select(Notification).where(Notification.user_id == reader.id)).scalars().all()
    assert [(n.type, n.title) for n in notices] == [("LIBRARY", "Book overdue")]
    assert notices[0].message.startswith('"Introduction to Algorithms" was due on ')
