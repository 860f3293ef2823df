"""
Preset repository tests
"""

import uuid

import pytest
from sqlalchemy.orm.exc import StaleDataError

from backend.app.core.exceptions import (
    PermissionDeniedError,
    PresetNotFoundError,
    PresetValidationError,
    TransientIOError,
)
from backend.app.models.preset import Preset
from backend.app.schemas.auth import CurrentUser
from backend.app.services.preset_service import PresetService
from backend.app.services.reaction_service import ReactionService

THUMBS_UP = "👍"


class TestSave:
    """Saving presets"""

    @pytest.mark.asyncio
    async def test_saved_preset_is_listed_for_owner(self, db, alice):
        """A saved preset is immediately returned by the owner's listing"""
        service = PresetService(db)
        saved = await service.create(
            owner=alice,
            tool_id="team-shuffler",
            name="Weekly Shuffle",
            parameters={"teamSize": 3},
            is_public=False,
        )

        page = await service.list_by_owner("alice", "team-shuffler", page=0)

        assert len(page.items) == 1
        item = page.items[0]
        assert item.id == saved.id
        assert item.name == "Weekly Shuffle"
        assert item.parameters == {"teamSize": 3}
        assert item.is_public is False
        assert item.reaction_counts == {}
        assert item.owner_display_name == "Alice"

    @pytest.mark.asyncio
    async def test_parameters_round_trip_unchanged(self, db, alice):
        """Arbitrary JSON documents come back exactly as saved"""
        parameters = {
            "teams": [["a", "b"], ["c"]],
            "seed": 42,
            "ratio": 0.5,
            "strict": True,
            "note": None,
            "nested": {"deep": {"list": [1, "two", 3.0, False]}},
        }
        service = PresetService(db)
        saved = await service.create(alice, "team-shuffler", "Complex", parameters)

        loaded = await service.get(saved.id, viewer_id="alice")

        assert loaded.parameters == parameters

    @pytest.mark.asyncio
    async def test_scalar_parameters_allowed(self, db, alice):
        """The store does not require parameters to be an object"""
        service = PresetService(db)
        saved = await service.create(alice, "dice", "Three dice", [1, 2, 3])

        assert saved.parameters == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_name_is_trimmed(self, db, alice):
        service = PresetService(db)
        saved = await service.create(alice, "team-shuffler", "  Friday  ", {})

        assert saved.name == "Friday"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   ", "\t\n"])
    async def test_empty_name_rejected(self, db, alice, name):
        """Blank names fail validation and nothing is stored"""
        service = PresetService(db)
        with pytest.raises(PresetValidationError):
            await service.create(alice, "team-shuffler", name, {})

        page = await service.list_by_owner("alice", "team-shuffler")
        assert page.items == []

    @pytest.mark.asyncio
    async def test_overlong_name_rejected(self, db, alice):
        service = PresetService(db)
        with pytest.raises(PresetValidationError):
            await service.create(alice, "team-shuffler", "x" * 101, {})

    @pytest.mark.asyncio
    async def test_duplicate_names_allowed(self, db, alice):
        """Saving the same name twice yields two presets"""
        service = PresetService(db)
        first = await service.create(alice, "team-shuffler", "Same", {})
        second = await service.create(alice, "team-shuffler", "Same", {})

        page = await service.list_by_owner("alice", "team-shuffler")

        assert first.id != second.id
        assert [p.id for p in page.items] == [second.id, first.id]


class TestOwnedListing:
    """Owner listings"""

    @pytest.mark.asyncio
    async def test_scoped_to_owner_and_tool(self, db, create_preset, bob):
        await create_preset("Mine")
        await create_preset("Other tool", tool_id="dice")
        await create_preset("Bob's", owner=bob)

        page = await PresetService(db).list_by_owner("alice", "team-shuffler")

        assert [p.name for p in page.items] == ["Mine"]

    @pytest.mark.asyncio
    async def test_newest_first(self, db, create_preset):
        for name in ["one", "two", "three"]:
            await create_preset(name)

        page = await PresetService(db).list_by_owner("alice", "team-shuffler")

        assert [p.name for p in page.items] == ["three", "two", "one"]
        created = [p.created_at for p in page.items]
        assert created == sorted(created, reverse=True)

    @pytest.mark.asyncio
    async def test_includes_private_and_public(self, db, create_preset):
        await create_preset("private", is_public=False)
        await create_preset("public", is_public=True)

        page = await PresetService(db).list_by_owner("alice", "team-shuffler")

        assert {p.name for p in page.items} == {"private", "public"}


class TestVisibility:
    """Visibility changes"""

    @pytest.mark.asyncio
    async def test_owner_can_publish(self, db, create_preset):
        preset = await create_preset()
        service = PresetService(db)

        updated = await service.set_visibility(preset.id, "alice", True)
        public = await service.list_public("team-shuffler")

        assert updated.is_public is True
        assert [p.id for p in public.items] == [preset.id]

    @pytest.mark.asyncio
    async def test_unpublish_hides_from_public_listing(self, db, create_preset):
        preset = await create_preset(is_public=True)
        service = PresetService(db)

        await service.set_visibility(preset.id, "alice", False)
        public = await service.list_public("team-shuffler")

        assert public.items == []

    @pytest.mark.asyncio
    async def test_setting_current_value_is_noop(self, db, create_preset):
        preset = await create_preset(is_public=True)
        service = PresetService(db)

        first = await service.set_visibility(preset.id, "alice", True)
        second = await service.set_visibility(preset.id, "alice", True)

        assert first.is_public is second.is_public is True
        assert second.updated_at == first.updated_at

    @pytest.mark.asyncio
    async def test_non_owner_denied(self, db, create_preset):
        """A non-owner cannot change visibility and the preset is unchanged"""
        preset = await create_preset(is_public=False)
        service = PresetService(db)

        with pytest.raises(PermissionDeniedError):
            await service.set_visibility(preset.id, "bob", True)

        loaded = await service.get(preset.id, viewer_id="alice")
        assert loaded.is_public is False

    @pytest.mark.asyncio
    async def test_missing_preset_not_found(self, db):
        with pytest.raises(PresetNotFoundError):
            await PresetService(db).set_visibility(uuid.uuid4(), "alice", True)


class TestSoftDelete:
    """Soft deletion"""

    @pytest.mark.asyncio
    async def test_deleted_preset_leaves_all_listings(self, db, create_preset):
        preset = await create_preset(is_public=True)
        service = PresetService(db)

        await service.soft_delete(preset.id, "alice")

        assert (await service.list_by_owner("alice", "team-shuffler")).items == []
        assert (await service.list_public("team-shuffler")).items == []
        with pytest.raises(PresetNotFoundError):
            await service.get(preset.id, viewer_id="alice")

    @pytest.mark.asyncio
    async def test_non_owner_cannot_delete(self, db, create_preset):
        preset = await create_preset()
        service = PresetService(db)

        with pytest.raises(PermissionDeniedError):
            await service.soft_delete(preset.id, "bob")

        assert len((await service.list_by_owner("alice", "team-shuffler")).items) == 1

    @pytest.mark.asyncio
    async def test_deleting_twice_is_not_found(self, db, create_preset):
        preset = await create_preset()
        service = PresetService(db)
        await service.soft_delete(preset.id, "alice")

        with pytest.raises(PresetNotFoundError):
            await service.soft_delete(preset.id, "alice")

    @pytest.mark.asyncio
    async def test_deleted_preset_cannot_change_visibility(self, db, create_preset):
        preset = await create_preset()
        service = PresetService(db)
        await service.soft_delete(preset.id, "alice")

        with pytest.raises(PresetNotFoundError):
            await service.set_visibility(preset.id, "alice", True)


class TestOwnerChangesDuringReactions:
    """Owner changes racing other users' reactions"""

    @pytest.mark.asyncio
    async def test_visibility_after_reaction_on_loaded_row(self, session_factory, create_preset):
        """A reaction committed after the owner's session loaded the row does not break the change"""
        preset = await create_preset(is_public=True)

        async with session_factory() as session:
            await session.get(Preset, preset.id)
            async with session_factory() as other:
                await ReactionService(other).toggle("bob", preset.id, THUMBS_UP)

            updated = await PresetService(session).set_visibility(preset.id, "alice", False)

        assert updated.is_public is False
        assert updated.reaction_counts == {THUMBS_UP: 1}

    @pytest.mark.asyncio
    async def test_delete_after_reaction_on_loaded_row(self, session_factory, create_preset):
        preset = await create_preset(is_public=True)

        async with session_factory() as session:
            await session.get(Preset, preset.id)
            async with session_factory() as other:
                await ReactionService(other).toggle("bob", preset.id, THUMBS_UP)

            await PresetService(session).soft_delete(preset.id, "alice")

        async with session_factory() as session:
            stored = await session.get(Preset, preset.id)
            assert stored.is_deleted is True
            assert stored.reaction_counts == {THUMBS_UP: 1}

    @pytest.mark.asyncio
    async def test_reaction_between_read_and_commit_is_retried(self, session_factory, create_preset):
        """A stale owner write reruns against the row the reaction produced"""
        preset = await create_preset(is_public=True)
        raced = []

        async with session_factory() as session:
            original_commit = session.commit

            async def racing_commit():
                if not raced:
                    raced.append(True)
                    async with session_factory() as other:
                        await ReactionService(other).toggle("bob", preset.id, THUMBS_UP)
                return await original_commit()

            session.commit = racing_commit
            updated = await PresetService(session).set_visibility(preset.id, "alice", False)

        assert raced
        assert updated.is_public is False
        assert updated.reaction_counts == {THUMBS_UP: 1}
        async with session_factory() as session:
            stored = await session.get(Preset, preset.id)
            assert stored.is_public is False
            assert stored.reaction_counts == {THUMBS_UP: 1}

    @pytest.mark.asyncio
    async def test_always_stale_is_transient(self, session_factory, create_preset):
        preset = await create_preset(is_public=True)

        async with session_factory() as session:

            async def stale_commit():
                raise StaleDataError("simulated concurrent update")

            session.commit = stale_commit
            with pytest.raises(TransientIOError):
                await PresetService(session).soft_delete(preset.id, "alice")

        async with session_factory() as session:
            stored = await session.get(Preset, preset.id)
            assert stored.is_deleted is False


class TestPublicListing:
    """Public listings"""

    @pytest.mark.asyncio
    async def test_only_public_presets_of_tool(self, db, create_preset, bob):
        await create_preset("private")
        await create_preset("public", is_public=True)
        await create_preset("bob public", owner=bob, is_public=True)
        await create_preset("dice public", tool_id="dice", is_public=True)

        page = await PresetService(db).list_public("team-shuffler")

        assert [p.name for p in page.items] == ["bob public", "public"]

    @pytest.mark.asyncio
    async def test_all_tools_when_tool_not_given(self, db, create_preset):
        await create_preset("a", is_public=True)
        await create_preset("b", tool_id="dice", is_public=True)

        page = await PresetService(db).list_public(None)

        assert {p.name for p in page.items} == {"a", "b"}

    @pytest.mark.asyncio
    async def test_search_matches_name_case_insensitively(self, db, create_preset):
        await create_preset("Weekly Shuffle", is_public=True)
        await create_preset("Daily standup", is_public=True)

        page = await PresetService(db).list_public("team-shuffler", search="WEEK")

        assert [p.name for p in page.items] == ["Weekly Shuffle"]

    @pytest.mark.asyncio
    async def test_search_wildcards_are_literal(self, db, create_preset):
        await create_preset("100% random", is_public=True)
        await create_preset("100 teams", is_public=True)

        page = await PresetService(db).list_public("team-shuffler", search="100%")

        assert [p.name for p in page.items] == ["100% random"]

    @pytest.mark.asyncio
    async def test_viewer_reaction_included(self, db, create_preset):
        preset = await create_preset(is_public=True)
        await ReactionService(db).toggle("bob", preset.id, "👍")
        service = PresetService(db)

        as_bob = await service.list_public("team-shuffler", viewer_id="bob")
        as_carol = await service.list_public("team-shuffler", viewer_id="carol")
        anonymous = await service.list_public("team-shuffler")

        assert as_bob.items[0].user_reaction == "👍"
        assert as_carol.items[0].user_reaction is None
        assert anonymous.items[0].user_reaction is None
        assert anonymous.items[0].reaction_counts == {"👍": 1}


class TestGet:
    """Single preset lookup"""

    @pytest.mark.asyncio
    async def test_private_preset_hidden_from_others(self, db, create_preset):
        preset = await create_preset(is_public=False)
        service = PresetService(db)

        assert (await service.get(preset.id, viewer_id="alice")).id == preset.id
        with pytest.raises(PresetNotFoundError):
            await service.get(preset.id, viewer_id="bob")
        with pytest.raises(PresetNotFoundError):
            await service.get(preset.id)

    @pytest.mark.asyncio
    async def test_public_preset_visible_to_anyone(self, db, create_preset):
        preset = await create_preset(is_public=True)

        loaded = await PresetService(db).get(preset.id)

        assert loaded.owner_id == "alice"

    @pytest.mark.asyncio
    async def test_owner_identity_is_snapshotted(self, db):
        owner = CurrentUser(user_id="dana", display_name="Dana", avatar_url="https://a/d.png")
        saved = await PresetService(db).create(owner, "dice", "Roll", {})

        assert saved.owner_display_name == "Dana"
        assert saved.owner_avatar_url == "https://a/d.png"
