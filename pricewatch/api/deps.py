# pricewatch/api/deps.py
from typing import Optional
from fastapi import Depends, Header, Request
from pricewatch.db.mongo import get_db
from pricewatch.domain.services.browser import BrowserLauncher, launch_browser

# Dependency for injecting the MongoDB database into endpoints/services
async def mongo_db(db = Depends(get_db)):
    return db

# Browser factory for scraping routes (overridden in tests)
def browser_launcher() -> BrowserLauncher:
    return launch_browser

# Caller identity is owned upstream; the tracker only records it
async def owner_ref(x_owner_id: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_owner_id.strip() if x_owner_id and x_owner_id.strip() else None

# Scheduler built in lifespan (None when the refresh job is disabled)
def refresh_scheduler(request: Request):
    return getattr(request.app.state, "refresh_scheduler", None)
