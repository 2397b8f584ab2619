# mill_core/conftest.py
from datetime import date, timedelta

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from mill_core.iam.authorization import actor_for_user
from mill_core.iam.models import UserProfile
from mill_core.iam.roles import Role
from mill_core.tenants.models import Tenant


def make_user(email: str, role: str, tenant=None, **profile_fields):
    """
    auth user + mill profile, the way UserService would leave them.
    """
    User = get_user_model()
    user = User.objects.create_user(username=email, email=email, password="pass12345")
    UserProfile.objects.create(user=user, tenant=tenant, role=role, name=email.split("@")[0], **profile_fields)
    return user


def client_for(user) -> APIClient:
    c = APIClient()
    c.force_authenticate(user=user)
    return c


def days_ago(n: int) -> date:
    return timezone.localdate() - timedelta(days=n)


def record_in(actor, product, *, bags=10, weight="100", price=None, farmer="Ramesh", on=None, tenant_id=None):
    from mill_core.inventory.services import MovementService

    return MovementService.record_stock_in(
        actor=actor,
        tenant_id=tenant_id,
        product_id=product.id,
        date=on or timezone.localdate(),
        farmer_name=farmer,
        farmer_contact="9800000001",
        vehicle_number="KA-01-1234",
        num_of_bags=bags,
        net_weight_per_bag_kg=weight,
        price_per_quintal=price,
    )


def record_out(actor, product, *, bags=10, weight="100", price=None, customer="Suresh Traders", on=None, tenant_id=None):
    from mill_core.inventory.services import MovementService

    return MovementService.record_stock_out(
        actor=actor,
        tenant_id=tenant_id,
        product_id=product.id,
        date=on or timezone.localdate(),
        customer_name=customer,
        customer_contact="9800000002",
        vehicle_number="KA-02-5678",
        num_of_bags=bags,
        net_weight_per_bag_kg=weight,
        price_per_quintal=price,
    )


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def tenant(db):
    return Tenant.objects.create(name="Sri Lakshmi Rice Mill", slug="sri-lakshmi")


@pytest.fixture
def other_tenant(db):
    return Tenant.objects.create(name="Ganga Rice Mill", slug="ganga")


# ----------------------------
# users (one per role)
# ----------------------------

@pytest.fixture
def super_admin_user(db):
    return make_user("root@mill.test", Role.SUPER_ADMIN)


@pytest.fixture
def company_admin_user(tenant):
    return make_user("owner@lakshmi.test", Role.COMPANY_ADMIN, tenant)


@pytest.fixture
def operator_user(tenant):
    return make_user("clerk@lakshmi.test", Role.OPERATOR, tenant)


@pytest.fixture
def viewer_user(tenant):
    return make_user("auditor@lakshmi.test", Role.VIEWER, tenant)


@pytest.fixture
def other_operator_user(other_tenant):
    return make_user("clerk@ganga.test", Role.OPERATOR, other_tenant)


# ----------------------------
# actors
# ----------------------------

@pytest.fixture
def super_admin(super_admin_user):
    return actor_for_user(super_admin_user)


@pytest.fixture
def company_admin(company_admin_user):
    return actor_for_user(company_admin_user)


@pytest.fixture
def operator(operator_user):
    return actor_for_user(operator_user)


@pytest.fixture
def viewer(viewer_user):
    return actor_for_user(viewer_user)


@pytest.fixture
def other_operator(other_operator_user):
    return actor_for_user(other_operator_user)


# ----------------------------
# inventory
# ----------------------------

@pytest.fixture
def product(operator):
    from mill_core.inventory.services import ProductService

    return ProductService.create(actor=operator, name="Sona Masoori Paddy", sku="SM-01", price_per_quintal="2200.00")


@pytest.fixture
def other_product(other_operator):
    from mill_core.inventory.services import ProductService

    return ProductService.create(actor=other_operator, name="Basmati Paddy", sku="BS-01", price_per_quintal="3100.00")


@pytest.fixture
def api_client(operator_user):
    return client_for(operator_user)
