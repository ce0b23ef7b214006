from .app_token import AppToken
from .branch_protection_rules import BranchProtectionRules
from .collaborators import Collaborators
from .public_keys import ActionsPublicKey, CodespacesPublicKey, DependabotPublicKey
from .users import Users

DATA_SOURCE_TYPES = [
    Collaborators,
    Users,
    AppToken,
    ActionsPublicKey,
    DependabotPublicKey,
    CodespacesPublicKey,
    BranchProtectionRules,
]
