from dataclasses import dataclass, field
from enum import Enum

from fastapi import Depends, HTTPException, Request, status


class PurchaseRole(str, Enum):
    MIDDLE_MANAGER = 'middle_manager'
    FINAL_APPROVER = 'final_approver'
    APP_ADMIN = 'app_admin'
    CEO = 'ceo'
    PURCHASE_MANAGER = 'purchase_manager'
    CONSUMABLE_MANAGER = 'consumable_manager'
    RAW_MATERIAL_MANAGER = 'raw_material_manager'
    LEAD_BUYER = 'lead_buyer'


ADMIN_TIER = frozenset({PurchaseRole.APP_ADMIN, PurchaseRole.CEO})


@dataclass
class Principal:
    id: int
    name: str
    email: str
    roles: frozenset[PurchaseRole] = field(default_factory=frozenset)
    active: bool = True


def parse_roles(tokens) -> frozenset[PurchaseRole]:
    roles = set()
    for token in tokens or []:
        try:
            roles.add(PurchaseRole(str(token).strip().lower()))
        except ValueError:
            # Unknown tokens carry no capability.
            continue
    return frozenset(roles)


def is_admin_tier(roles) -> bool:
    return bool(ADMIN_TIER & set(roles))


def has_any_role(roles, *wanted: PurchaseRole) -> bool:
    return is_admin_tier(roles) or bool(set(wanted) & set(roles))


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, 'principal', None)
    if not principal:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    if not principal.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return principal


def require_any_role(*allowed: PurchaseRole):
    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not has_any_role(principal.roles, *allowed):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
        return principal

    return _dep
