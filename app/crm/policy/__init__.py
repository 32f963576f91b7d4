from app.crm.policy.authorize import Decision, authorize  # noqa: F401
from app.crm.policy.engine import PolicyEngine  # noqa: F401
from app.crm.policy.model import ALL_APIS_SUBJECT  # noqa: F401
from app.crm.policy.whitelist import PUBLIC_ROUTES, PublicRoute, is_public_route  # noqa: F401
