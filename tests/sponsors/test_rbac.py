"""
Tests for sponsor-scoped RBAC provisioning and teardown.
"""
import asyncio
import logging

import pytest
from sqlalchemy import func, select

from app.features.permissions.authority import (
    find_permission_by_name,
    find_role_by_name,
    find_sponsor_roles,
    get_role_permission_names,
    get_user_roles,
    has_permission,
)
from app.features.permissions.models import Permission, Role
from app.features.sponsors import rbac
from app.features.sponsors.exceptions import MissingSponsorId
from app.features.sponsors.members import add_member
from app.features.sponsors.models import Sponsor
from app.features.sponsors.rbac import create_rbac_rules, destroy_rbac_rules


@pytest.fixture
async def sponsor_42(db, sponsor_factory, user_factory):
    """Sponsor 42 with an owner and an editor."""
    sponsor = await sponsor_factory(id="42")
    owner = await user_factory(fname="Ann")
    editor = await user_factory(fname="Ben")
    await add_member(db, sponsor, owner.id, "owner")
    await add_member(db, sponsor, editor.id, "editor")
    return sponsor, owner, editor


async def role_names(db, user_id, sponsor_id=None) -> list[str]:
    return [role.name for role in await get_user_roles(db, user_id, sponsor_id)]


async def count(db, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def test_provision_creates_roles_and_permissions(db, sponsor_42):
    sponsor, owner, editor = sponsor_42

    roles = await create_rbac_rules(db, sponsor)

    assert {key: role.name for key, role in roles.items()} == {
        "owner": "sponsor_42_owner",
        "editor": "sponsor_42_editor",
        "staff": "sponsor_42_staff",
    }

    assert await get_role_permission_names(db, roles["owner"].id) == [
        "sponsor_42_create_document",
        "sponsor_42_delete_document",
        "sponsor_42_edit_document",
        "sponsor_42_manage_document",
    ]
    assert await get_role_permission_names(db, roles["editor"].id) == [
        "sponsor_42_create_document",
        "sponsor_42_edit_document",
        "sponsor_42_manage_document",
    ]
    assert await get_role_permission_names(db, roles["staff"].id) == []

    permission = await find_permission_by_name(db, "sponsor_42_delete_document")
    assert permission.display_name == "Delete Documents"
    assert permission.resource == "document"
    assert permission.action == "delete"
    assert permission.sponsor_id == "42"


async def test_provision_attaches_roles_to_members(db, sponsor_42):
    sponsor, owner, editor = sponsor_42

    await create_rbac_rules(db, sponsor)

    assert await role_names(db, owner.id) == ["sponsor_42_owner"]
    assert await role_names(db, editor.id) == ["sponsor_42_editor"]


async def test_provisioned_permissions(db, sponsor_42):
    sponsor, owner, editor = sponsor_42

    await create_rbac_rules(db, sponsor)

    for action in ("create", "edit", "delete", "manage"):
        assert await has_permission(db, owner, "document", action, sponsor_id="42")

    assert await has_permission(db, editor, "document", "create", sponsor_id="42")
    assert await has_permission(db, editor, "document", "manage", sponsor_id="42")
    assert not await has_permission(db, editor, "document", "delete", sponsor_id="42")


async def test_staff_role_has_no_document_permissions(db, sponsor_42, user_factory):
    sponsor, _, _ = sponsor_42
    staff = await user_factory()
    await add_member(db, sponsor, staff.id, "staff")

    await create_rbac_rules(db, sponsor)

    assert await role_names(db, staff.id) == ["sponsor_42_staff"]
    assert not await has_permission(db, staff, "document", "create", sponsor_id="42")


async def test_reprovision_is_idempotent(db, sponsor_42):
    sponsor, owner, editor = sponsor_42

    await create_rbac_rules(db, sponsor)
    await create_rbac_rules(db, sponsor)

    assert await count(db, Role) == 3
    assert await count(db, Permission) == 4
    assert await role_names(db, owner.id) == ["sponsor_42_owner"]
    assert await role_names(db, editor.id) == ["sponsor_42_editor"]


async def test_reprovision_follows_membership_changes(db, sponsor_42):
    sponsor, owner, editor = sponsor_42
    await create_rbac_rules(db, sponsor)

    await add_member(db, sponsor, editor.id, "staff")
    await create_rbac_rules(db, sponsor)

    assert await role_names(db, editor.id) == ["sponsor_42_staff"]
    assert not await has_permission(db, editor, "document", "create", sponsor_id="42")


async def test_concurrent_provisioning_is_serialized(db, sponsor_42):
    sponsor, owner, _ = sponsor_42

    await asyncio.gather(create_rbac_rules(db, sponsor), create_rbac_rules(db, sponsor))

    assert await count(db, Role) == 3
    assert await count(db, Permission) == 4
    assert await role_names(db, owner.id) == ["sponsor_42_owner"]


async def test_teardown_removes_everything(db, sponsor_42):
    sponsor, owner, editor = sponsor_42
    await create_rbac_rules(db, sponsor)

    await destroy_rbac_rules(db, sponsor)

    for role in ("owner", "editor", "staff"):
        assert await find_role_by_name(db, f"sponsor_42_{role}") is None
    for action in ("create", "edit", "delete", "manage"):
        assert await find_permission_by_name(db, f"sponsor_42_{action}_document") is None

    assert await role_names(db, owner.id) == []
    assert await role_names(db, editor.id) == []
    assert not await has_permission(db, owner, "document", "create", sponsor_id="42")


async def test_teardown_without_rules_is_a_no_op(db, sponsor_42):
    sponsor, _, _ = sponsor_42

    await destroy_rbac_rules(db, sponsor)

    assert await count(db, Role) == 0
    assert await count(db, Permission) == 0


async def test_teardown_skips_members_without_users(db, sponsor_42, caplog):
    sponsor, owner, _ = sponsor_42
    await add_member(db, sponsor, "01HZNOSUCHUSER000000000000", "staff")
    await create_rbac_rules(db, sponsor)

    with caplog.at_level(logging.WARNING, logger="app.features.sponsors.rbac"):
        await destroy_rbac_rules(db, sponsor)

    assert await find_sponsor_roles(db, "42") == []
    assert await role_names(db, owner.id) == []
    assert any("01HZNOSUCHUSER000000000000" in r.getMessage() for r in caplog.records)


async def test_other_sponsors_are_untouched(db, sponsor_42, sponsor_factory, user_factory):
    sponsor, owner, _ = sponsor_42
    other = await sponsor_factory(id="43", name="Other")
    await add_member(db, other, owner.id, "editor")
    await create_rbac_rules(db, other)

    await create_rbac_rules(db, sponsor)
    await destroy_rbac_rules(db, sponsor)

    assert await role_names(db, owner.id) == ["sponsor_43_editor"]
    assert await has_permission(db, owner, "document", "edit", sponsor_id="43")
    assert not await has_permission(db, owner, "document", "edit", sponsor_id="42")
    assert len(await find_sponsor_roles(db, "43")) == 3


async def test_failed_provisioning_rolls_back(db, sponsor_42, monkeypatch):
    sponsor, owner, _ = sponsor_42
    owner_id = owner.id
    await create_rbac_rules(db, sponsor)

    async def broken_attach(*args, **kwargs):
        raise RuntimeError("authority unavailable")

    monkeypatch.setattr(rbac, "attach_role_to_user", broken_attach)

    with pytest.raises(RuntimeError):
        await create_rbac_rules(db, sponsor)

    # The previous rules survive intact and the sponsor is still usable
    assert sponsor.id == "42"
    assert sponsor.get_display_name() == "Acme Corporation"
    assert await role_names(db, owner_id, sponsor.id) == ["sponsor_42_owner"]
    assert len(await find_sponsor_roles(db, sponsor.id)) == 3


async def test_failed_teardown_rolls_back(db, sponsor_42, monkeypatch):
    sponsor, owner, _ = sponsor_42
    owner_id = owner.id
    await create_rbac_rules(db, sponsor)

    async def broken_detach(*args, **kwargs):
        raise RuntimeError("authority unavailable")

    monkeypatch.setattr(rbac, "detach_role_from_user", broken_detach)

    with pytest.raises(RuntimeError):
        await destroy_rbac_rules(db, sponsor)

    assert sponsor.id == "42"
    assert await role_names(db, owner_id, sponsor.id) == ["sponsor_42_owner"]


async def test_unsaved_sponsor_is_rejected(db):
    sponsor = Sponsor(name="Unsaved")

    with pytest.raises(MissingSponsorId):
        await create_rbac_rules(db, sponsor)

    with pytest.raises(MissingSponsorId):
        await destroy_rbac_rules(db, sponsor)
