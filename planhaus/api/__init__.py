"""
FastAPI server for PlanHaus: auth, planning CRUD, dashboard and analytics
endpoints, rate limiting and the real-time hub.
"""
