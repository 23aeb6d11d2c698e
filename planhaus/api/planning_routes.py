from fastapi import APIRouter, HTTPException, Depends, Query, status
from typing import List, Optional, Type
from pydantic import BaseModel
from pymongo.database import Database

from planhaus.api.planning_models import (
    Project, ProjectCreate, ProjectUpdate,
    Task, TaskCreate, TaskUpdate, Guest, GuestCreate, GuestUpdate,
    BudgetItem, BudgetItemCreate, BudgetItemUpdate, Vendor, VendorCreate, VendorUpdate,
    DashboardStats, ActivityLogEntry, KpiResponse, BudgetAnalytics,
)
from planhaus.api.planning_service import get_planning_service
from planhaus.api.auth_routes import get_current_user
from planhaus.api.mongo import get_db
from planhaus.api.realtime import ConnectionHub, get_hub
from planhaus.utils.logger import get_logger

logger = get_logger(__name__)

# Create routers for planning endpoints
planning_router = APIRouter(prefix="/api", tags=["planning"])
analytics_router = APIRouter(prefix="/api/analytics", tags=["analytics"])


async def _owned_project(service, project_id: str, current_user) -> dict:
    project = await service.get_project(project_id, str(current_user["_id"]))
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


async def _current_project(service, project_id: Optional[str], current_user) -> dict:
    project = await service.resolve_project(project_id, current_user)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


# Project Endpoints
@planning_router.get("/projects", response_model=List[Project])
async def get_projects(
    current_user=Depends(get_current_user),
    db: Database = Depends(get_db)
):
    """Get all projects owned by the current user"""
    try:
        service = get_planning_service(db)
        return await service.list_projects(str(current_user["_id"]))
    except Exception as e:
        logger.error(f"Failed to fetch projects: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch projects")


@planning_router.post("/projects", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    current_user=Depends(get_current_user),
    db: Database = Depends(get_db)
):
    """Create a new wedding project"""
    try:
        service = get_planning_service(db)
        return await service.create_project(project_data.model_dump(exclude_none=True), current_user)
    except Exception as e:
        logger.error(f"Failed to create project: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create project")


@planning_router.get("/projects/{project_id}", response_model=Project)
async def get_project(
    project_id: str,
    current_user=Depends(get_current_user),
    db: Database = Depends(get_db)
):
    """Get a specific project by ID"""
    try:
        service = get_planning_service(db)
        return await _owned_project(service, project_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch project {project_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch project")


@planning_router.patch("/projects/{project_id}", response_model=Project)
async def update_project(
    project_id: str,
    updates: ProjectUpdate,
    current_user=Depends(get_current_user),
    db: Database = Depends(get_db),
    hub: ConnectionHub = Depends(get_hub)
):
    """Update an existing project"""
    try:
        # Convert to dict and remove None values
        update_data = updates.model_dump(exclude_none=True)

        service = get_planning_service(db)
        project = await service.update_project(project_id, current_user, update_data)
        if not project:
            raise HTTPException(status_code=404, detail="Project not found")
        await hub.notify_update('projects', project["id"], project, 'updated', str(current_user["_id"]))
        return project
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update project {project_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update project")


@planning_router.get("/projects/{project_id}/activities", response_model=List[ActivityLogEntry])
@planning_router.get("/projects/{project_id}/activity-log", response_model=List[ActivityLogEntry])
async def get_activity_log(
    project_id: str,
    limit: int = Query(50, ge=1, le=200),
    current_user=Depends(get_current_user),
    db: Database = Depends(get_db)
):
    """Recent activity for a project, newest first"""
    try:
        service = get_planning_service(db)
        await _owned_project(service, project_id, current_user)
        return await service.activity_feed(project_id, limit)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch activity log for {project_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch activity log")


# Dashboard Endpoint
@planning_router.get("/dashboard/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    projectId: Optional[str] = None,
    current_user=Depends(get_current_user),
    db: Database = Depends(get_db)
):
    """Task, guest, budget and vendor totals for the current project"""
    try:
        service = get_planning_service(db)
        project = await _current_project(service, projectId, current_user)
        return await service.dashboard_stats(project)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to compute dashboard stats: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch dashboard stats")


# Task, Guest, Budget and Vendor Endpoints
def register_resource_routes(router: APIRouter, resource: str, label: str,
                             model: Type[BaseModel], create_model: Type[BaseModel],
                             update_model: Type[BaseModel]):
    """List/create under a project plus update/delete by item id for one resource."""

    async def list_items(
        project_id: str,
        current_user=Depends(get_current_user),
        db: Database = Depends(get_db)
    ):
        try:
            service = get_planning_service(db)
            await _owned_project(service, project_id, current_user)
            return await service.list_items(resource, project_id)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Failed to fetch {resource} for {project_id}: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Failed to fetch {label}s")

    async def create_item(
        project_id: str,
        item_data: create_model,
        current_user=Depends(get_current_user),
        db: Database = Depends(get_db),
        hub: ConnectionHub = Depends(get_hub)
    ):
        try:
            service = get_planning_service(db)
            await _owned_project(service, project_id, current_user)
            item = await service.create_item(resource, project_id, item_data.model_dump(exclude_none=True),
                                             current_user)
            await hub.notify_update(resource, project_id, item, 'created', str(current_user["_id"]))
            return item
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Failed to create {label}: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Failed to create {label}")

    async def update_item(
        item_id: str,
        updates: update_model,
        current_user=Depends(get_current_user),
        db: Database = Depends(get_db),
        hub: ConnectionHub = Depends(get_hub)
    ):
        try:
            service = get_planning_service(db)
            item = await service.update_item(resource, item_id, updates.model_dump(exclude_none=True),
                                             current_user)
            if not item:
                raise HTTPException(status_code=404, detail=f"{label.capitalize()} not found")
            await hub.notify_update(resource, item["projectId"], item, 'updated', str(current_user["_id"]))
            return item
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Failed to update {label} {item_id}: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Failed to update {label}")

    async def delete_item(
        item_id: str,
        current_user=Depends(get_current_user),
        db: Database = Depends(get_db),
        hub: ConnectionHub = Depends(get_hub)
    ):
        try:
            service = get_planning_service(db)
            item = await service.delete_item(resource, item_id, current_user)
            if not item:
                raise HTTPException(status_code=404, detail=f"{label.capitalize()} not found")
            await hub.notify_update(resource, item["projectId"], item, 'deleted', str(current_user["_id"]))
            return {"message": f"{label.capitalize()} deleted successfully"}
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Failed to delete {label} {item_id}: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Failed to delete {label}")

    router.add_api_route(f"/projects/{{project_id}}/{resource}", list_items, methods=["GET"],
                         response_model=List[model], name=f"list_{resource}")
    router.add_api_route(f"/projects/{{project_id}}/{resource}", create_item, methods=["POST"],
                         response_model=model, status_code=status.HTTP_201_CREATED, name=f"create_{resource}")
    router.add_api_route(f"/{resource}/{{item_id}}", update_item, methods=["PATCH"],
                         response_model=model, name=f"update_{resource}")
    router.add_api_route(f"/{resource}/{{item_id}}", delete_item, methods=["DELETE"],
                         name=f"delete_{resource}")


register_resource_routes(planning_router, 'tasks', 'task', Task, TaskCreate, TaskUpdate)
register_resource_routes(planning_router, 'guests', 'guest', Guest, GuestCreate, GuestUpdate)
register_resource_routes(planning_router, 'budget', 'budget item', BudgetItem, BudgetItemCreate, BudgetItemUpdate)
register_resource_routes(planning_router, 'vendors', 'vendor', Vendor, VendorCreate, VendorUpdate)


# Analytics Endpoints
@analytics_router.get("/kpis", response_model=KpiResponse)
async def get_kpis(
    projectId: Optional[str] = None,
    current_user=Depends(get_current_user),
    db: Database = Depends(get_db)
):
    """Headline numbers for the dashboard KPI cards"""
    try:
        service = get_planning_service(db)
        project = await _current_project(service, projectId, current_user)
        return await service.kpis(project)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"analytics-kpis failed for user {current_user['_id']}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch KPIs")


@analytics_router.get("/budget", response_model=BudgetAnalytics)
async def get_budget_analytics(
    projectId: Optional[str] = None,
    current_user=Depends(get_current_user),
    db: Database = Depends(get_db)
):
    """Budget totals plus one line per budget item"""
    try:
        service = get_planning_service(db)
        project = await _current_project(service, projectId, current_user)
        return await service.budget_analytics(project)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"analytics-budget failed for user {current_user['_id']}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch budget data")


@analytics_router.get("/timeline")
async def get_timeline_analytics(
    projectId: Optional[str] = None,
    current_user=Depends(get_current_user),
    db: Database = Depends(get_db)
):
    """Tasks in the shape the burndown chart consumes"""
    try:
        service = get_planning_service(db)
        project = await _current_project(service, projectId, current_user)
        return await service.timeline_tasks(project)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"analytics-timeline failed for user {current_user['_id']}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch timeline data")


@analytics_router.get("/vendors")
async def get_vendor_analytics(
    projectId: Optional[str] = None,
    current_user=Depends(get_current_user),
    db: Database = Depends(get_db)
):
    """Vendors with normalized funnel statuses"""
    try:
        service = get_planning_service(db)
        project = await _current_project(service, projectId, current_user)
        return await service.vendor_pipeline(project)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"analytics-vendors failed for user {current_user['_id']}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch vendors data")
