"""
Planning service: persistence and aggregation for wedding projects and
their tasks, guests, budget items and vendors.
"""
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pymongo
from bson import ObjectId
from bson.errors import InvalidId
from pymongo.database import Database
from pymongo.errors import PyMongoError

from planhaus.analytics import get_tasks_due_this_week, summarize_budget_items
from planhaus.analytics.common import parse_amount, parse_datetime, safe_percentage, utc_now
from planhaus.analytics.tasks import is_completed
from planhaus.analytics.vendors import normalize_vendor_status
from planhaus.db import ActivityLog
from planhaus.utils.logger import get_logger

logger = get_logger(__name__)

# URL segment -> storage and activity-log naming
RESOURCES = {
    'tasks': {'collection': 'tasks', 'entity': 'task', 'name_field': 'title'},
    'guests': {'collection': 'guests', 'entity': 'guest', 'name_field': 'name'},
    'budget': {'collection': 'budget_items', 'entity': 'budget_item', 'name_field': 'item'},
    'vendors': {'collection': 'vendors', 'entity': 'vendor', 'name_field': 'name'},
}

DEFAULT_PROJECT_NAME = "My Wedding"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _object_id(value: Any) -> Optional[ObjectId]:
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def days_until(wedding_date: Any, now: Optional[datetime] = None) -> int:
    """Whole days left before the wedding, rounded up and never negative."""
    when = parse_datetime(wedding_date)
    if when is None:
        return 0
    now = now or utc_now()
    return max(0, math.ceil((when - now).total_seconds() / 86400))


class PlanningService:
    def __init__(self, db: Database):
        self.db = db
        self.activity = ActivityLog(db)

    def _serialize(self, doc: Optional[dict]) -> Optional[dict]:
        """Convert ObjectId to string for JSON serialization"""
        if doc is None:
            return None
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return doc

    def _collection(self, resource: str):
        if resource not in RESOURCES:
            raise ValueError(f"Unknown resource: {resource}")
        return self.db[RESOURCES[resource]['collection']]

    # Projects

    async def list_projects(self, user_id: str) -> List[dict]:
        cursor = self.db.projects.find({"createdBy": user_id}).sort("createdAt", pymongo.ASCENDING)
        return [self._serialize(p) for p in cursor]

    async def get_project(self, project_id: str, user_id: str) -> Optional[dict]:
        oid = _object_id(project_id)
        if oid is None:
            return None
        return self._serialize(self.db.projects.find_one({"_id": oid, "createdBy": user_id}))

    async def create_project(self, data: dict, user: dict) -> dict:
        user_id = str(user["_id"])
        doc = dict(data, createdBy=user_id, createdAt=_now_iso())
        result = self.db.projects.insert_one(doc)
        doc["_id"] = result.inserted_id
        project = self._serialize(doc)
        logger.info(f"Created project {project['id']} for user {user_id}")
        self.activity.log_change(project['id'], user, 'Created', 'project', project['name'],
                                 entity_id=project['id'])
        return project

    async def update_project(self, project_id: str, user: dict, updates: dict) -> Optional[dict]:
        user_id = str(user["_id"])
        oid = _object_id(project_id)
        if oid is None:
            return None
        if updates:
            result = self.db.projects.update_one({"_id": oid, "createdBy": user_id}, {"$set": updates})
            if result.matched_count == 0:
                return None
        project = await self.get_project(project_id, user_id)
        if project and updates:
            self.activity.log_change(project['id'], user, 'Updated', 'project', project['name'],
                                     entity_id=project['id'], details=', '.join(sorted(updates)))
        return project

    async def get_or_create_default_project(self, user: dict) -> dict:
        """The user's first project, creating a default one on first use."""
        user_id = str(user["_id"])
        projects = await self.list_projects(user_id)
        if projects:
            return projects[0]

        logger.info(f"Creating default project for user {user_id}")
        wedding_date = (datetime.now(timezone.utc) + timedelta(days=365)).date().isoformat()
        return await self.create_project({
            "name": DEFAULT_PROJECT_NAME,
            "date": wedding_date,
            "venue": None,
            "budget": "25000",
            "guestCount": 100,
            "theme": None,
        }, user)

    async def resolve_project(self, project_id: Optional[str], user: dict) -> Optional[dict]:
        """An explicitly requested project, or the user's current one."""
        if project_id:
            return await self.get_project(project_id, str(user["_id"]))
        return await self.get_or_create_default_project(user)

    # Project resources (tasks, guests, budget items, vendors)

    async def list_items(self, resource: str, project_id: str) -> List[dict]:
        cursor = self._collection(resource).find({"projectId": str(project_id)}).sort(
            "createdAt", pymongo.ASCENDING)
        return [self._serialize(doc) for doc in cursor]

    async def create_item(self, resource: str, project_id: str, data: dict, user: dict) -> dict:
        meta = RESOURCES[resource]
        now = _now_iso()
        doc = dict(data, projectId=str(project_id), createdBy=str(user["_id"]), createdAt=now)
        if resource == 'tasks' and doc.get("status") == 'completed':
            doc["completedAt"] = now
        result = self._collection(resource).insert_one(doc)
        doc["_id"] = result.inserted_id
        item = self._serialize(doc)

        self.activity.log_change(
            item["projectId"], user, 'Created', meta['entity'], item.get(meta['name_field']) or meta['entity'],
            entity_id=item["id"], category=item.get("category"),
        )
        return item

    async def _owned_item(self, resource: str, item_id: str, user_id: str) -> Optional[dict]:
        oid = _object_id(item_id)
        if oid is None:
            return None
        item = self._collection(resource).find_one({"_id": oid})
        if item is None:
            return None
        if await self.get_project(item.get("projectId"), user_id) is None:
            return None
        return item

    async def update_item(self, resource: str, item_id: str, updates: dict, user: dict) -> Optional[dict]:
        meta = RESOURCES[resource]
        existing = await self._owned_item(resource, item_id, str(user["_id"]))
        if existing is None:
            return None

        action = 'Updated'
        if resource == 'tasks' and "status" in updates:
            was_completed = is_completed(existing)
            if updates["status"] == 'completed' and not was_completed:
                updates["completedAt"] = _now_iso()
                action = 'Completed'
            elif updates["status"] != 'completed' and was_completed:
                updates["completedAt"] = None

        if updates:
            self._collection(resource).update_one({"_id": existing["_id"]}, {"$set": updates})
        item = self._serialize(self._collection(resource).find_one({"_id": existing["_id"]}))

        details = None if action == 'Completed' else ', '.join(sorted(k for k in updates if k != "completedAt"))
        self.activity.log_change(
            item["projectId"], user, action, meta['entity'], item.get(meta['name_field']) or meta['entity'],
            entity_id=item["id"], category=item.get("category"), details=details or None,
        )
        return item

    async def delete_item(self, resource: str, item_id: str, user: dict) -> Optional[dict]:
        """Delete an item; returns the deleted item, or None if it was not found."""
        meta = RESOURCES[resource]
        existing = await self._owned_item(resource, item_id, str(user["_id"]))
        if existing is None:
            return None
        self._collection(resource).delete_one({"_id": existing["_id"]})
        item = self._serialize(existing)
        self.activity.log_change(
            item["projectId"], user, 'Deleted', meta['entity'], item.get(meta['name_field']) or meta['entity'],
            entity_id=item["id"], category=item.get("category"),
        )
        return item

    async def _project_data(self, project_id: str) -> Dict[str, List[dict]]:
        return {
            resource: await self.list_items(resource, project_id)
            for resource in RESOURCES
        }

    # Aggregations

    async def dashboard_stats(self, project: dict, now: Optional[datetime] = None) -> dict:
        """Snapshot of task, guest, budget and vendor progress for one project."""
        now = now or utc_now()
        data = await self._project_data(project["id"])
        tasks, guests = data['tasks'], data['guests']
        budget_items, vendors = data['budget'], data['vendors']

        open_tasks = [t for t in tasks if not is_completed(t)]
        overdue = 0
        for task in open_tasks:
            due = parse_datetime(task.get("dueDate"))
            if due is not None and due < now:
                overdue += 1

        rsvp = [g.get("rsvpStatus") or 'pending' for g in guests]

        estimated = sum(parse_amount(item.get("estimatedCost")) for item in budget_items)
        spent = sum(parse_amount(item.get("actualCost")) for item in budget_items)
        project_budget = parse_amount(project.get("budget"))
        total = project_budget if project_budget > 0 else estimated

        return {
            "projectId": project["id"],
            "tasks": {
                "total": len(tasks),
                "completed": len(tasks) - len(open_tasks),
                "overdue": overdue,
                "highPriority": sum(1 for t in open_tasks if t.get("priority") == 'high'),
            },
            "guests": {
                "total": len(guests),
                "confirmed": rsvp.count('yes'),
                "declined": rsvp.count('no'),
                "pending": rsvp.count('pending') + rsvp.count('maybe'),
            },
            "budget": {
                "total": total,
                "spent": spent,
                "remaining": max(0.0, total - spent),
                "percentageUsed": safe_percentage(spent, total),
            },
            "vendors": {
                "total": len(vendors),
                "booked": sum(1 for v in vendors if normalize_vendor_status(v.get("status")) == 'booked'),
            },
            "daysUntilWedding": days_until(project.get("date"), now),
        }

    async def kpis(self, project: dict, now: Optional[datetime] = None) -> dict:
        now = now or utc_now()
        data = await self._project_data(project["id"])
        budget = summarize_budget_items(data['budget'])
        total, spent = budget['total'], budget['spent']
        budget_delta = safe_percentage(spent - total, total)
        booked = sum(1 for v in data['vendors'] if normalize_vendor_status(v.get("status")) == 'booked')

        return {
            "budget": {
                "total": total,
                "spent": spent,
                "delta": {
                    "value": budget_delta,
                    "label": f"{'+' if budget_delta > 0 else ''}{budget_delta:.1f}%",
                    "positive": budget_delta <= 0,
                },
            },
            "daysUntilWedding": {
                "value": days_until(project.get("date"), now),
                "delta": {"value": -1, "label": "1 day closer", "positive": False},
            },
            "tasksDueThisWeek": {
                "value": len(get_tasks_due_this_week(data['tasks'], now)),
                "delta": {"value": 0, "label": "No change", "positive": True},
            },
            "vendorsBooked": {
                "value": booked,
                "delta": {"value": 0, "label": "No change", "positive": True},
            },
        }

    async def budget_analytics(self, project: dict) -> dict:
        items = await self.list_items('budget', project["id"])
        summary = summarize_budget_items(items)
        summary["categories"] = [
            {
                "name": item.get("category") or 'Other',
                "estimatedCost": str(item.get("estimatedCost") or '0'),
                "actualCost": str(item.get("actualCost") or '0'),
            }
            for item in items
        ]
        return summary

    async def timeline_tasks(self, project: dict) -> List[dict]:
        """Tasks trimmed to the fields the burndown chart reads."""
        return [
            {
                "id": task["id"],
                "title": task.get("title"),
                "status": task.get("status"),
                "dueDate": task.get("dueDate"),
                "createdAt": task.get("createdAt") or _now_iso(),
            }
            for task in await self.list_items('tasks', project["id"])
        ]

    async def vendor_pipeline(self, project: dict) -> List[dict]:
        return [
            {
                "id": vendor["id"],
                "name": vendor.get("name"),
                "category": vendor.get("category"),
                "status": normalize_vendor_status(vendor.get("status")),
                "email": vendor.get("email"),
                "phone": vendor.get("phone"),
                "estimatedCost": vendor.get("estimatedCost"),
                "actualCost": vendor.get("actualCost"),
            }
            for vendor in await self.list_items('vendors', project["id"])
        ]

    async def activity_feed(self, project_id: str, limit: int = 50) -> List[dict]:
        try:
            return self.activity.recent(project_id, limit)
        except PyMongoError as e:
            logger.error(f"Error fetching activity log for project {project_id}: {e}")
            raise


def get_planning_service(db: Database) -> PlanningService:
    """Planning service bound to the request's database"""
    return PlanningService(db)
