from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

TaskStatus = Literal['pending', 'in_progress', 'completed']
Priority = Literal['low', 'medium', 'high']
RsvpStatus = Literal['pending', 'yes', 'no', 'maybe']
VendorStatus = Literal['researching', 'contacted', 'quote_received', 'contract_sent', 'booked', 'cancelled']


def _decimal_string(value):
    """Accept numbers or numeric strings for money fields; store as strings."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValueError('must be a decimal amount')
    if isinstance(value, (int, float)):
        return str(value)
    text = str(value).strip()
    try:
        float(text)
    except ValueError:
        raise ValueError('must be a decimal amount')
    return text


class MoneyFields(BaseModel):
    """Mixin validating the decimal-as-string money fields."""

    @field_validator('budget', 'estimatedCost', 'actualCost', 'quote',
                     mode='before', check_fields=False)
    @classmethod
    def validate_money(cls, value):
        return _decimal_string(value)


# Project Models
class ProjectCreate(MoneyFields):
    name: str = Field(min_length=1)
    date: str
    venue: Optional[str] = None
    theme: Optional[str] = None
    budget: Optional[Union[str, float]] = None
    guestCount: Optional[int] = Field(default=None, ge=0)
    style: Optional[str] = None
    description: Optional[str] = None


class ProjectUpdate(MoneyFields):
    name: Optional[str] = Field(default=None, min_length=1)
    date: Optional[str] = None
    venue: Optional[str] = None
    theme: Optional[str] = None
    budget: Optional[Union[str, float]] = None
    guestCount: Optional[int] = Field(default=None, ge=0)
    style: Optional[str] = None
    description: Optional[str] = None


class Project(ProjectCreate):
    id: str
    createdBy: str
    createdAt: str


# Task Management Models
class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[Priority] = None
    status: TaskStatus = 'pending'
    dueDate: Optional[str] = None
    assignedTo: Optional[str] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None
    dueDate: Optional[str] = None
    assignedTo: Optional[str] = None


class Task(TaskCreate):
    id: str
    projectId: str
    createdBy: str
    createdAt: str
    completedAt: Optional[str] = None


# Guest & RSVP Management Models
class GuestCreate(BaseModel):
    name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    rsvpStatus: RsvpStatus = 'pending'
    group: Optional[str] = None
    plusOne: bool = False
    mealPreference: Optional[str] = None
    notes: Optional[str] = None


class GuestUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    rsvpStatus: Optional[RsvpStatus] = None
    group: Optional[str] = None
    plusOne: Optional[bool] = None
    mealPreference: Optional[str] = None
    notes: Optional[str] = None


class Guest(GuestCreate):
    id: str
    projectId: str
    createdBy: str
    createdAt: str


# Budget Management Models
class BudgetItemCreate(MoneyFields):
    category: str = Field(min_length=1)
    item: str = Field(min_length=1)
    estimatedCost: Optional[Union[str, float]] = None
    actualCost: Optional[Union[str, float]] = None
    isPaid: bool = False
    vendorId: Optional[str] = None
    notes: Optional[str] = None


class BudgetItemUpdate(MoneyFields):
    category: Optional[str] = Field(default=None, min_length=1)
    item: Optional[str] = Field(default=None, min_length=1)
    estimatedCost: Optional[Union[str, float]] = None
    actualCost: Optional[Union[str, float]] = None
    isPaid: Optional[bool] = None
    vendorId: Optional[str] = None
    notes: Optional[str] = None


class BudgetItem(BudgetItemCreate):
    id: str
    projectId: str
    createdBy: str
    createdAt: str


# Vendor Management Models
class VendorCreate(MoneyFields):
    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    quote: Optional[Union[str, float]] = None
    estimatedCost: Optional[Union[str, float]] = None
    actualCost: Optional[Union[str, float]] = None
    status: VendorStatus = 'researching'
    notes: Optional[str] = None


class VendorUpdate(MoneyFields):
    name: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    quote: Optional[Union[str, float]] = None
    estimatedCost: Optional[Union[str, float]] = None
    actualCost: Optional[Union[str, float]] = None
    status: Optional[VendorStatus] = None
    notes: Optional[str] = None


class Vendor(VendorCreate):
    id: str
    projectId: str
    createdBy: str
    createdAt: str


# Dashboard Models
class TaskStats(BaseModel):
    total: int = 0
    completed: int = 0
    overdue: int = 0
    highPriority: int = 0


class GuestStats(BaseModel):
    total: int = 0
    confirmed: int = 0
    declined: int = 0
    pending: int = 0


class BudgetStats(BaseModel):
    total: float = 0
    spent: float = 0
    remaining: float = 0
    percentageUsed: float = 0


class VendorStats(BaseModel):
    total: int = 0
    booked: int = 0


class DashboardStats(BaseModel):
    projectId: Optional[str] = None
    tasks: TaskStats = TaskStats()
    guests: GuestStats = GuestStats()
    budget: BudgetStats = BudgetStats()
    vendors: VendorStats = VendorStats()
    daysUntilWedding: int = 0


# Activity Log Models
class ActivityLogEntry(BaseModel):
    id: str
    projectId: str
    userId: str
    userName: str
    section: str
    action: str
    entityType: str
    entityId: Optional[str] = None
    details: str
    createdAt: str


# Analytics Models
class KpiDelta(BaseModel):
    value: float
    label: str
    positive: bool


class KpiValue(BaseModel):
    value: float
    delta: KpiDelta


class BudgetKpi(BaseModel):
    total: float
    spent: float
    delta: KpiDelta


class KpiResponse(BaseModel):
    budget: BudgetKpi
    daysUntilWedding: KpiValue
    tasksDueThisWeek: KpiValue
    vendorsBooked: KpiValue


class BudgetLine(BaseModel):
    name: str
    estimatedCost: str
    actualCost: str


class BudgetAnalytics(BaseModel):
    total: float
    spent: float
    categories: List[BudgetLine]
