# app/models/__init__.py - Import all models so SQLAlchemy can discover them

from app.models.base import Base

from app.models.user import User, UserRole, UserSession
from app.models.password_reset import PasswordResetToken
from app.models.campus import Campus, CampusMember
from app.models.audit import AuditLog
from app.models.academic import AcademicYear, Semester, RegistrationPeriod
from app.models.catalog import Department, Program, Course, CoursePrerequisite
from app.models.employee import Employee
from app.models.class_model import ClassSection
from app.models.room import Room, Schedule
from app.models.student import Student, Hold
from app.models.admission import AdmissionApplication
from app.models.enrollment import Enrollment, PrerequisiteOverride
from app.models.grading import GradeScale, GradeScaleBand, GradeComponent, GradeEntry
from app.models.attendance import AttendanceRecord, AttendanceExcuse
from app.models.fee import FeeStructure, FeeItem
from app.models.payment import Invoice, InvoiceLine, Payment
from app.models.leave import LeaveType, LeaveBalance, LeaveRequest
from app.models.payroll import SalaryComponent, Payroll, PayrollItem
from app.models.library import Book, BookCopy, Borrowing, BookReservation
from app.models.notification import Notification, NotificationPreference

__all__ = [
    "Base",
    "User",
    "UserRole",
    "UserSession",
    "PasswordResetToken",
    "Campus",
    "CampusMember",
    "AuditLog",
    "AcademicYear",
    "Semester",
    "RegistrationPeriod",
    "Department",
    "Program",
    "Course",
    "CoursePrerequisite",
    "Employee",
    "ClassSection",
    "Room",
    "Schedule",
    "Student",
    "Hold",
    "AdmissionApplication",
    "Enrollment",
    "PrerequisiteOverride",
    "GradeScale",
    "GradeScaleBand",
    "GradeComponent",
    "GradeEntry",
    "AttendanceRecord",
    "AttendanceExcuse",
    "FeeStructure",
    "FeeItem",
    "Invoice",
    "InvoiceLine",
    "Payment",
    "LeaveType",
    "LeaveBalance",
    "LeaveRequest",
    "SalaryComponent",
    "Payroll",
    "PayrollItem",
    "Book",
    "BookCopy",
    "Borrowing",
    "BookReservation",
    "Notification",
    "NotificationPreference",
]
