from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, ForeignKeyConstraint, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from app.domain.permissions import Role


def now_utc() -> datetime:
    return datetime.now(UTC)


def current_academic_year(today: date | None = None) -> str:
    year = (today or date.today()).year
    return f"{year}-{year + 1}"


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    tenant_id: str = Field(index=True)
    ts: datetime = Field(default_factory=now_utc, index=True)
    actor_id: str | None = Field(default=None, index=True)
    correlation_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(index=True)
    actor_id: str | None = Field(default=None, index=True)
    action: str
    resource: str
    method: str
    status_code: int
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class TenantStatus(StrEnum):
    TRIAL = "trial"
    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


BLOCKED_TENANT_STATUSES = frozenset({TenantStatus.EXPIRED, TenantStatus.SUSPENDED})


class SubscriptionPlan(StrEnum):
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class Tenant(SQLModel, table=True):
    __tablename__ = "tenants"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True)
    email: str = Field(index=True, unique=True)
    phone: str
    address: str
    city: str | None = None
    subscription_plan: SubscriptionPlan = Field(default=SubscriptionPlan.FREE)
    status: TenantStatus = Field(default=TenantStatus.TRIAL, index=True)
    trial_ends_at: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class UserStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class User(SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
        UniqueConstraint("tenant_id", "id", name="uq_users_tenant_id_id"),
        Index("ix_users_tenant_role", "tenant_id", "role"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    email: str = Field(index=True)
    password_hash: str
    first_name: str
    last_name: str
    phone: str | None = None
    role: Role = Field(default=Role.PARENT)
    status: UserStatus = Field(default=UserStatus.ACTIVE)
    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Gender(StrEnum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class TeacherStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on-leave"


class Teacher(SQLModel, table=True):
    __tablename__ = "teachers"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_teachers_tenant_email"),
        UniqueConstraint("tenant_id", "id", name="uq_teachers_tenant_id_id"),
        Index("ix_teachers_tenant_status", "tenant_id", "status"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    first_name: str
    last_name: str
    email: str = Field(index=True)
    phone: str | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    join_date: date = Field(default_factory=date.today)
    qualification: str | None = None
    specialization: str | None = None
    address: str | None = None
    salary: float | None = None
    status: TeacherStatus = Field(default=TeacherStatus.ACTIVE)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class SchoolClass(SQLModel, table=True):
    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", "section", name="uq_classes_tenant_name_section"),
        UniqueConstraint("tenant_id", "id", name="uq_classes_tenant_id_id"),
        ForeignKeyConstraint(
            ["tenant_id", "teacher_id"],
            ["teachers.tenant_id", "teachers.id"],
            name="fk_classes_tenant_teacher",
            ondelete="RESTRICT",
        ),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    name: str = Field(index=True)
    section: str = Field(default="A")
    teacher_id: str | None = Field(default=None, index=True)
    capacity: int | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class StudentStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    GRADUATED = "graduated"


class Student(SQLModel, table=True):
    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("tenant_id", "id", name="uq_students_tenant_id_id"),
        ForeignKeyConstraint(
            ["tenant_id", "class_id"],
            ["classes.tenant_id", "classes.id"],
            ondelete="RESTRICT",
        ),
        Index("ix_students_tenant_class", "tenant_id", "class_id"),
        Index("ix_students_tenant_status", "tenant_id", "status"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    first_name: str
    last_name: str
    class_id: str = Field(index=True)
    date_of_birth: date | None = None
    parent_name: str | None = None
    parent_email: str | None = None
    parent_phone: str | None = None
    status: StudentStatus = Field(default=StudentStatus.ACTIVE)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class AttendanceStatus(StrEnum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class Attendance(SQLModel, table=True):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("tenant_id", "student_id", "day", name="uq_attendance_tenant_student_day"),
        ForeignKeyConstraint(
            ["tenant_id", "student_id"],
            ["students.tenant_id", "students.id"],
            ondelete="CASCADE",
        ),
        Index("ix_attendance_tenant_class_day", "tenant_id", "class_id", "day"),
        Index("ix_attendance_tenant_day", "tenant_id", "day"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    student_id: str = Field(index=True)
    class_id: str = Field(index=True)
    day: date
    status: AttendanceStatus
    remarks: str | None = None
    marked_by: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class TenantSettings(SQLModel, table=True):
    __tablename__ = "tenant_settings"
    __table_args__ = (UniqueConstraint("tenant_id", name="uq_tenant_settings_tenant"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    currency: str = Field(default="INR")
    timezone: str = Field(default="Asia/Kolkata")
    academic_year: str = Field(default_factory=current_academic_year)
    working_days: list[str] = Field(
        default_factory=lambda: ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday"],
        sa_column=Column(JSON, nullable=False),
    )
    school_timings: dict[str, Any] = Field(
        default_factory=lambda: {"start_time": "08:00", "end_time": "14:00"},
        sa_column=Column(JSON, nullable=False),
    )
    fee_settings: dict[str, Any] = Field(
        default_factory=lambda: {"late_fee_percentage": 5, "grace_period_days": 7},
        sa_column=Column(JSON, nullable=False),
    )
    updated_by: str | None = None
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)


class FeeType(StrEnum):
    TUITION = "tuition"
    TRANSPORT = "transport"
    MEALS = "meals"
    ACTIVITIES = "activities"
    OTHER = "other"


class FeeStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    PARTIAL = "partial"


class PaymentMethod(StrEnum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    ONLINE = "online"


class Fee(SQLModel, table=True):
    __tablename__ = "fees"
    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id", "student_id"],
            ["students.tenant_id", "students.id"],
            ondelete="CASCADE",
        ),
        Index("ix_fees_tenant_student", "tenant_id", "student_id"),
        Index("ix_fees_tenant_status", "tenant_id", "status"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    student_id: str = Field(index=True)
    class_id: str = Field(index=True)
    fee_type: FeeType
    amount: float
    due_date: date
    paid_date: date | None = None
    status: FeeStatus = Field(default=FeeStatus.PENDING)
    payment_method: PaymentMethod | None = None
    transaction_id: str | None = None
    remarks: str | None = None
    created_by: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class AnnouncementType(StrEnum):
    GENERAL = "general"
    EVENT = "event"
    HOLIDAY = "holiday"
    URGENT = "urgent"
    REMINDER = "reminder"


class TargetAudience(StrEnum):
    ALL = "all"
    TEACHERS = "teachers"
    PARENTS = "parents"
    STAFF = "staff"


class AnnouncementPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnnouncementStatus(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Announcement(SQLModel, table=True):
    __tablename__ = "announcements"
    __table_args__ = (Index("ix_announcements_tenant_status", "tenant_id", "status"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    title: str
    content: str
    announcement_type: AnnouncementType = Field(default=AnnouncementType.GENERAL)
    target_audience: TargetAudience = Field(default=TargetAudience.ALL)
    priority: AnnouncementPriority = Field(default=AnnouncementPriority.MEDIUM)
    publish_date: datetime | None = None
    expiry_date: datetime | None = None
    status: AnnouncementStatus = Field(default=AnnouncementStatus.DRAFT)
    created_by: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    tenant_id: str
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: str | None = None
    correlation_id: str | None = None
    payload: dict[str, Any]


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class SchoolSignupRequest(BaseModel):
    school_name: str = PydanticField(min_length=1)
    owner_name: str = PydanticField(min_length=1)
    email: str = PydanticField(min_length=3)
    phone: str = PydanticField(min_length=1)
    address: str = PydanticField(min_length=1)
    city: str | None = None
    password: str = PydanticField(min_length=8)

    @field_validator("school_name", "owner_name")
    @classmethod
    def strip_names(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class LoginRequest(BaseModel):
    email: str
    password: str
    tenant_id: str | None = None


class ProfileUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = PydanticField(min_length=8)


class TenantRead(ORMReadModel):
    id: str
    name: str
    email: str
    status: TenantStatus
    subscription_plan: SubscriptionPlan
    trial_ends_at: datetime | None = None


class UserCreate(BaseModel):
    email: str = PydanticField(min_length=3)
    password: str = PydanticField(min_length=8)
    first_name: str
    last_name: str
    phone: str | None = None
    role: Role = Role.PARENT


class UserUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    status: UserStatus | None = None


class UserRead(ORMReadModel):
    id: str
    tenant_id: str
    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    role: Role
    status: UserStatus
    last_login_at: datetime | None = None
    created_at: datetime


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    permissions: dict[str, list[str]]
    school: TenantRead
    user: UserRead


class PermissionsRead(BaseModel):
    principal_id: str
    tenant_id: str
    role: Role
    permissions: dict[str, list[str]]


class MeRead(BaseModel):
    school: TenantRead
    user: UserRead
    permissions: dict[str, list[str]]


class SchoolClassCreate(BaseModel):
    name: str = PydanticField(min_length=1)
    section: str = "A"
    teacher_id: str | None = None
    capacity: int | None = None


class SchoolClassUpdate(BaseModel):
    name: str | None = None
    section: str | None = None
    teacher_id: str | None = None
    capacity: int | None = None


class SchoolClassRead(ORMReadModel):
    id: str
    tenant_id: str
    name: str
    section: str
    teacher_id: str | None = None
    capacity: int | None = None
    created_at: datetime


class StudentCreate(BaseModel):
    first_name: str = PydanticField(min_length=1)
    last_name: str = PydanticField(min_length=1)
    class_id: str
    date_of_birth: date | None = None
    parent_name: str | None = None
    parent_email: str | None = None
    parent_phone: str | None = None


class StudentUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    class_id: str | None = None
    date_of_birth: date | None = None
    parent_name: str | None = None
    parent_email: str | None = None
    parent_phone: str | None = None
    status: StudentStatus | None = None


class StudentRead(ORMReadModel):
    id: str
    tenant_id: str
    first_name: str
    last_name: str
    class_id: str
    date_of_birth: date | None = None
    parent_name: str | None = None
    parent_email: str | None = None
    parent_phone: str | None = None
    status: StudentStatus
    created_at: datetime


class AttendanceMarkRequest(BaseModel):
    student_id: str
    class_id: str
    day: date
    status: AttendanceStatus
    remarks: str | None = None


class AttendanceBulkItem(BaseModel):
    student_id: str
    class_id: str
    status: AttendanceStatus
    remarks: str | None = None


class AttendanceBulkRequest(BaseModel):
    day: date
    records: list[AttendanceBulkItem]


class AttendanceUpdate(BaseModel):
    status: AttendanceStatus | None = None
    remarks: str | None = None


class AttendanceRead(ORMReadModel):
    id: str
    tenant_id: str
    student_id: str
    class_id: str
    day: date
    status: AttendanceStatus
    remarks: str | None = None
    marked_by: str | None = None
    created_at: datetime
    updated_at: datetime


class AttendanceBulkError(BaseModel):
    index: int
    student_id: str
    reason: str


class AttendanceBulkRead(BaseModel):
    day: date
    attendance: list[AttendanceRead]
    errors: list[AttendanceBulkError]
    count: int


class AttendancePageRead(BaseModel):
    attendance: list[AttendanceRead]
    count: int
    page: int
    total_pages: int


class SettingsUpdate(BaseModel):
    currency: str | None = None
    timezone: str | None = None
    academic_year: str | None = None
    working_days: list[str] | None = None
    school_timings: dict[str, Any] | None = None
    fee_settings: dict[str, Any] | None = None


class SettingsRead(ORMReadModel):
    tenant_id: str
    currency: str
    timezone: str
    academic_year: str
    working_days: list[str]
    school_timings: dict[str, Any]
    fee_settings: dict[str, Any]
    updated_by: str | None = None
    updated_at: datetime


class AttendanceSummaryRead(BaseModel):
    day: date
    class_id: str | None = None
    total: int
    present: int
    absent: int
    late: int
    excused: int


class TeacherCreate(BaseModel):
    first_name: str = PydanticField(min_length=1)
    last_name: str = PydanticField(min_length=1)
    email: str = PydanticField(min_length=3)
    phone: str | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    join_date: date | None = None
    qualification: str | None = None
    specialization: str | None = None
    address: str | None = None
    salary: float | None = PydanticField(default=None, ge=0)


class TeacherUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    join_date: date | None = None
    qualification: str | None = None
    specialization: str | None = None
    address: str | None = None
    salary: float | None = PydanticField(default=None, ge=0)
    status: TeacherStatus | None = None


class TeacherRead(ORMReadModel):
    id: str
    tenant_id: str
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    join_date: date
    qualification: str | None = None
    specialization: str | None = None
    address: str | None = None
    salary: float | None = None
    status: TeacherStatus
    created_at: datetime


class TeacherPageRead(BaseModel):
    teachers: list[TeacherRead]
    count: int
    page: int
    total_pages: int


class FeeCreate(BaseModel):
    student_id: str
    class_id: str
    fee_type: FeeType
    amount: float = PydanticField(gt=0)
    due_date: date
    remarks: str | None = None


class FeeUpdate(BaseModel):
    fee_type: FeeType | None = None
    amount: float | None = PydanticField(default=None, gt=0)
    due_date: date | None = None
    status: FeeStatus | None = None
    remarks: str | None = None


class FeePaymentRequest(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.CASH
    transaction_id: str | None = None
    paid_date: date | None = None


class FeeRead(ORMReadModel):
    id: str
    tenant_id: str
    student_id: str
    class_id: str
    fee_type: FeeType
    amount: float
    due_date: date
    paid_date: date | None = None
    status: FeeStatus
    payment_method: PaymentMethod | None = None
    transaction_id: str | None = None
    remarks: str | None = None
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime


class FeePageRead(BaseModel):
    fees: list[FeeRead]
    count: int
    page: int
    total_pages: int


class FeeSummaryRead(BaseModel):
    total_amount: float
    paid_amount: float
    pending_amount: float
    overdue_amount: float
    collection_rate: int


class AnnouncementCreate(BaseModel):
    title: str = PydanticField(min_length=1)
    content: str = PydanticField(min_length=1)
    announcement_type: AnnouncementType = AnnouncementType.GENERAL
    target_audience: TargetAudience = TargetAudience.ALL
    priority: AnnouncementPriority = AnnouncementPriority.MEDIUM
    publish_date: datetime | None = None
    expiry_date: datetime | None = None


class AnnouncementUpdate(BaseModel):
    title: str | None = None
    content: str | None = None
    announcement_type: AnnouncementType | None = None
    target_audience: TargetAudience | None = None
    priority: AnnouncementPriority | None = None
    publish_date: datetime | None = None
    expiry_date: datetime | None = None
    status: AnnouncementStatus | None = None


class AnnouncementRead(ORMReadModel):
    id: str
    tenant_id: str
    title: str
    content: str
    announcement_type: AnnouncementType
    target_audience: TargetAudience
    priority: AnnouncementPriority
    publish_date: datetime | None = None
    expiry_date: datetime | None = None
    status: AnnouncementStatus
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime


class AnnouncementPageRead(BaseModel):
    announcements: list[AnnouncementRead]
    count: int
    page: int
    total_pages: int
