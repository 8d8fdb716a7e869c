"""Site directory queries - which sites are eligible for each check."""
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Site
from ..models.enums import CheckType
from ..models.site import DEPLOYED_ACTIVE


@dataclass(frozen=True)
class MonitoredSite:
    """The directory fields the monitoring pipeline needs."""
    id: int
    name: str
    website_url: str
    contact_form_endpoint: Optional[str] = None

    @classmethod
    def from_site(cls, site: Site) -> "MonitoredSite":
        return cls(
            id=site.id,
            name=site.name,
            website_url=site.website_url,
            contact_form_endpoint=site.contact_form_endpoint,
        )


def monitored_sites_query(check_type: Optional[CheckType] = None):
    """Active sites with a website URL (and a form endpoint for contact form checks)."""
    query = select(Site).where(
        Site.project_status == DEPLOYED_ACTIVE,
        Site.website_url.is_not(None),
        Site.website_url != "",
    )
    if check_type is CheckType.CONTACT_FORM:
        query = query.where(
            Site.contact_form_endpoint.is_not(None),
            Site.contact_form_endpoint != "",
        )
    return query.order_by(Site.id)


async def get_monitored_sites(session: AsyncSession, check_type: CheckType) -> List[MonitoredSite]:
    """Get the sites a check type should probe."""
    result = await session.execute(monitored_sites_query(check_type))
    return [MonitoredSite.from_site(site) for site in result.scalars().all()]
