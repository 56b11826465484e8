"""
Role-scoped portal views.

Each view is guarded twice: the router checks the path against the role's
route prefixes and every endpoint names the roles it admits. Anyone
turned away is sent to the login route with a 303.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from portal_auth.api.v1.presenters import principal_view, session_view
from portal_auth.config import settings
from portal_auth.dependencies import peek_flow, require_path_access, require_roles
from portal_auth.domain.entities.principal import Principal
from portal_auth.domain.entities.role import Role, roles_creatable_by
from portal_auth.domain.services.authorization_gate import resolve_home
from portal_auth.domain.services.session_machine import SessionStateMachine

router = APIRouter(tags=["views"])
portal = APIRouter(dependencies=[Depends(require_path_access)], tags=["views"])


def _view(name: str, principal: Principal) -> dict:
    return {
        "view": name,
        "principal": principal_view(principal).model_dump(),
        "can_create": sorted(role.value for role in roles_creatable_by(principal.role)),
    }


@router.get("/")
async def home(flow: SessionStateMachine = Depends(peek_flow)):
    session = flow.session
    target = resolve_home(session.principal.role if session.is_authenticated else None)
    return RedirectResponse(target, status_code=303)


@router.get(settings.LOGIN_ROUTE)
async def login_view(flow: SessionStateMachine = Depends(peek_flow)):
    return {"view": "login", "session": session_view(flow).model_dump()}


# Super admin
@portal.get("/super-admin")
async def super_admin_dashboard(principal: Principal = Depends(require_roles(Role.SUPER_ADMIN))):
    return _view("super_admin.dashboard", principal)


@portal.get("/super-admin/brands")
async def super_admin_brands(principal: Principal = Depends(require_roles(Role.SUPER_ADMIN))):
    return _view("super_admin.brands", principal)


@portal.get("/super-admin/analytics")
async def super_admin_analytics(principal: Principal = Depends(require_roles(Role.SUPER_ADMIN))):
    return _view("super_admin.analytics", principal)


# Brand admin
@portal.get("/brand-admin")
async def brand_admin_dashboard(principal: Principal = Depends(require_roles(Role.BRAND_ADMIN))):
    return _view("brand_admin.dashboard", principal)


@portal.get("/brand-admin/shops")
async def brand_admin_shops(principal: Principal = Depends(require_roles(Role.BRAND_ADMIN))):
    return _view("brand_admin.shops", principal)


@portal.get("/brand-admin/districts")
async def brand_admin_districts(principal: Principal = Depends(require_roles(Role.BRAND_ADMIN))):
    return _view("brand_admin.districts", principal)


@portal.get("/brand-admin/analytics")
async def brand_admin_analytics(principal: Principal = Depends(require_roles(Role.BRAND_ADMIN))):
    return _view("brand_admin.analytics", principal)


@portal.get("/brand-admin/orders")
async def brand_admin_orders(principal: Principal = Depends(require_roles(Role.BRAND_ADMIN))):
    return _view("brand_admin.orders", principal)


# Managers
@portal.get("/district-manager/dashboard")
async def district_manager_dashboard(principal: Principal = Depends(require_roles(Role.DISTRICT_MANAGER))):
    return _view("district_manager.dashboard", principal)


@portal.get("/shop-manager/dashboard")
async def shop_manager_dashboard(principal: Principal = Depends(require_roles(Role.SHOP_MANAGER))):
    return _view("shop_manager.dashboard", principal)
