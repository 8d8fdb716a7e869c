"""Site directory API endpoints."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import Site
from ..schemas.site import SiteCreate, SiteUpdate, SiteResponse
from ..utils.db_utils import retry_on_lock

router = APIRouter(prefix="/api/sites", tags=["sites"])


@router.get("", response_model=List[SiteResponse])
async def list_sites(db: AsyncSession = Depends(get_db)):
    """List all sites in the directory."""
    result = await db.execute(select(Site).order_by(Site.name))
    return result.scalars().all()


@router.post("", response_model=SiteResponse, status_code=201)
async def create_site(site: SiteCreate, db: AsyncSession = Depends(get_db)):
    """Add a site to the directory."""
    db_site = Site(**site.model_dump())

    async def insert():
        db.add(db_site)
        await db.commit()

    await retry_on_lock(db, insert)
    await db.refresh(db_site)
    return db_site


@router.get("/{site_id}", response_model=SiteResponse)
async def get_site(site_id: int, db: AsyncSession = Depends(get_db)):
    """Get a single site."""
    site = await db.get(Site, site_id)
    if not site:
        raise HTTPException(status_code=404, detail="Site not found")
    return site


@router.patch("/{site_id}", response_model=SiteResponse)
async def update_site(site_id: int, update: SiteUpdate, db: AsyncSession = Depends(get_db)):
    """Update a site's directory fields."""
    changes = update.model_dump(exclude_unset=True)

    async def apply():
        site = await db.get(Site, site_id)
        if not site:
            raise HTTPException(status_code=404, detail="Site not found")
        for field, value in changes.items():
            setattr(site, field, value)
        await db.commit()
        return site

    site = await retry_on_lock(db, apply)
    await db.refresh(site)
    return site
