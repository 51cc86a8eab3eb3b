"""CompanyDAO — companies table operations."""

from skillsync.dao.base import BaseDAO
from skillsync.models.company import Company


class CompanyDAO(BaseDAO[Company]):
    model = Company
