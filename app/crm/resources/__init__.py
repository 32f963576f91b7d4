from app.crm.resources.base import Deadline, Resource, ResourceState, ServiceKey  # noqa: F401
from app.crm.resources.registry import ResourceRegistry  # noqa: F401
