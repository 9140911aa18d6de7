"""CRUD operations for organizations."""

from billsync import schemas
from billsync.crud._base import CRUDBase
from billsync.models import Organization


class CRUDOrganization(CRUDBase[Organization, schemas.OrganizationCreate, schemas.Organization]):
    """CRUD operations for organizations."""


organization = CRUDOrganization(Organization)
