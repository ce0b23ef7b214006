from .actions_permissions import ActionsOrganizationPermissions
from .custom_property import RepositoryCustomProperty
from .organization_secrets import ActionsOrganizationSecret, DependabotOrganizationSecret
from .ruleset import OrganizationRuleset
from .secrets import ActionsSecret, CodespacesSecret, DependabotSecret
from .topics import RepositoryTopics
from .webhook import RepositoryWebhook

RESOURCE_TYPES = [
    ActionsSecret,
    DependabotSecret,
    CodespacesSecret,
    ActionsOrganizationSecret,
    DependabotOrganizationSecret,
    RepositoryCustomProperty,
    RepositoryWebhook,
    OrganizationRuleset,
    ActionsOrganizationPermissions,
    RepositoryTopics,
]
