from datetime import datetime, timezone
from typing import List, Optional

import pymongo
from pymongo.database import Database
from pymongo.errors import PyMongoError

from planhaus.utils.logger import get_logger

logger = get_logger(__name__)

# Section shown in the activity feed for each project resource
SECTIONS = {
    'task': 'Timeline',
    'guest': 'Guest List',
    'budget_item': 'Budget',
    'vendor': 'Vendors',
    'project': 'Project',
}


def create_activity_description(action: str, entity_type: str, entity_name: str,
                                details: Optional[str] = None) -> str:
    """Human-readable sentence for an activity feed entry."""
    action_text = action.lower()
    if action_text == 'created':
        return f"added {entity_name} to {entity_type}" + (f" ({details})" if details else '')
    if action_text == 'updated':
        return f"updated {entity_name} in {entity_type}" + (f" - {details}" if details else '')
    if action_text == 'deleted':
        return f"removed {entity_name} from {entity_type}"
    if action_text == 'completed':
        return f"completed {entity_name}" + (f". {details}" if details else '')
    return f"{action_text} {entity_name}" + (f" - {details}" if details else '')


class ActivityLog:
    def __init__(self, db: Database, collection: str = "activity_log"):
        self.collection = db[collection]

    def log(self, project_id: str, user_id: str, user_name: str, section: str, action: str,
            entity_type: str, details: str, entity_id: Optional[str] = None) -> bool:
        """Record an activity entry. Failures are logged and never raised."""
        try:
            self.collection.insert_one({
                "projectId": str(project_id),
                "userId": str(user_id),
                "userName": user_name,
                "section": section,
                "action": action,
                "entityType": entity_type,
                "entityId": str(entity_id) if entity_id is not None else None,
                "details": details,
                "createdAt": datetime.now(timezone.utc).isoformat(),
            })
            return True
        except PyMongoError as err:
            logger.error(f"Failed to log activity: {err}")
            return False

    def log_change(self, project_id: str, user: dict, action: str, entity_type: str,
                   entity_name: str, entity_id: Optional[str] = None,
                   category: Optional[str] = None, details: Optional[str] = None) -> bool:
        """Log a create/update/delete of a project resource with a generated description."""
        target = {
            'task': 'task',
            'guest': 'guest list',
            'budget_item': category or 'budget',
            'vendor': f"{category} vendor" if category else 'vendors',
        }.get(entity_type, entity_type)
        return self.log(
            project_id=project_id,
            user_id=str(user.get("_id", "")),
            user_name=user.get("name") or user.get("email") or "Someone",
            section=SECTIONS.get(entity_type, entity_type.title()),
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=create_activity_description(action, target, entity_name, details),
        )

    def recent(self, project_id: str, limit: int = 50) -> List[dict]:
        """Newest entries first."""
        entries = []
        cursor = self.collection.find({"projectId": str(project_id)}).sort(
            "createdAt", pymongo.DESCENDING).limit(limit)
        for doc in cursor:
            doc["id"] = str(doc.pop("_id"))
            entries.append(doc)
        return entries
