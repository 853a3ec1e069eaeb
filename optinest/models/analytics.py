from typing import List, Optional
from sqlmodel import SQLModel
from pydantic import BaseModel

class PageViewEvent(SQLModel):
    id: str
    type: str = "pageview"
    path: str
    referrer: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: str

class PathViews(BaseModel):
    path: str
    views: int

class ReferrerViews(BaseModel):
    referrer: str
    views: int

class DailyViews(BaseModel):
    date: str
    views: int

class AnalyticsSummary(BaseModel):
    total_views: int = 0
    unique_paths: int = 0
    unique_referrers: int = 0
    top_paths: List[PathViews] = []
    top_referrers: List[ReferrerViews] = []
    daily_views: List[DailyViews] = []
