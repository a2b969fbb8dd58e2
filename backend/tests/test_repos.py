"""Tests for the site, binding and config repositories."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from backend.models.app_config import UpdateConfigRequest
from backend.models.binding import CreateActionRequest, CreatePlaceholderRequest, UpsertComponentRequest
from backend.models.site import CreateApiRequest, UpdateApiRequest
from backend.repos.binding_repo import BindingRepo, new_binding_id
from backend.repos.config_repo import ConfigRepo
from backend.repos.site_repo import ApiNotFound, NameConflict, SiteNotFound, SiteRepo
from backend.storage import MemoryStore, StorageError


@pytest.fixture
def site_repo(store):
    return SiteRepo(store)


@pytest.fixture
def binding_repo(store):
    return BindingRepo(store)


async def make_site_with_apis(site_repo, *names):
    await site_repo.create("demo")
    for name in names:
        await site_repo.add_api("demo", CreateApiRequest(name=name, url=f"https://api.test/{name}"))


# ── sites ───────────────────────────────────────────────────────────────────


class TestSiteRepo:
    async def test_create(self, site_repo, store, websites):
        site = await site_repo.create("demo")
        assert site.to_dict() == {"name": "demo", "apis": []}
        assert store.documents["sites"] == {"sites": [{"name": "demo", "apis": []}]}
        assert store.documents["mappings"] == {"sites": {"demo": {"actions": [], "mappings": [], "pageMappings": []}}}
        assert (websites / "demo").is_dir()

    async def test_create_conflict(self, site_repo):
        await site_repo.create("demo")
        with pytest.raises(NameConflict):
            await site_repo.create("demo")

    async def test_get(self, site_repo):
        await site_repo.create("demo")
        assert (await site_repo.get("demo")).name == "demo"
        assert await site_repo.get("ghost") is None

    async def test_list_discovers_folders(self, site_repo, store, make_site):
        await site_repo.create("alpha")
        make_site("beta")
        names = [s.name for s in await site_repo.list_all()]
        assert names == ["alpha", "beta"]
        assert [s["name"] for s in store.documents["sites"]["sites"]] == ["alpha", "beta"]

    async def test_list_hides_unreadable_records(self):
        store = MemoryStore({"sites": {"sites": [{"name": "ok"}, {"apis": []}, "junk"]}})
        assert [s.name for s in await SiteRepo(store).list_all()] == ["ok"]


LEGACY = {"name": "legacy", "apis": [{"name": "feed", "url": None}]}


class TestUnreadableSiteRecords:
    """Records that fail validation survive every rewrite of the sites document."""

    @pytest.fixture
    def store(self):
        return MemoryStore({"sites": {"sites": [LEGACY, {"name": "ok", "apis": []}]}})

    async def test_create_keeps_them(self, store, websites):
        await SiteRepo(store).create("fresh")
        stored = store.documents["sites"]["sites"]
        assert stored[0] == LEGACY
        assert [s["name"] for s in stored] == ["legacy", "ok", "fresh"]

    async def test_api_edits_keep_them(self, store):
        repo = SiteRepo(store)
        await repo.add_api("ok", CreateApiRequest(name="menu", url="https://api.test/menu"))
        await repo.update_api("ok", "menu", UpdateApiRequest(method="post"))
        await repo.delete_api("ok", "menu")
        assert store.documents["sites"]["sites"][0] == LEGACY

    async def test_list_discovery_keeps_them(self, store, make_site):
        make_site("beta")
        names = [s.name for s in await SiteRepo(store).list_all()]
        assert names == ["ok", "beta"]
        assert store.documents["sites"]["sites"][0] == LEGACY

    async def test_name_still_taken(self, store, make_site):
        make_site("legacy")
        repo = SiteRepo(store)
        with pytest.raises(NameConflict):
            await repo.create("legacy")
        await repo.list_all()
        assert [s["name"] for s in store.documents["sites"]["sites"]] == ["legacy", "ok"]

    async def test_not_addressable(self, store):
        with pytest.raises(SiteNotFound):
            await SiteRepo(store).add_api("legacy", CreateApiRequest(name="x", url="https://api.test/x"))
        assert await SiteRepo(store).get("legacy") is None


class TestApis:
    async def test_add_api(self, site_repo):
        await site_repo.create("demo")
        api = await site_repo.add_api(
            "demo",
            CreateApiRequest.model_validate(
                {"name": "menu", "url": "https://api.test/menu", "method": "post", "params": {"a": 1}}
            ),
        )
        assert api.method == "POST"
        assert api.params == {"a": "1"}
        assert (await site_repo.get("demo")).get_api("menu") == api

    async def test_add_api_defaults_to_get(self, site_repo):
        await make_site_with_apis(site_repo, "menu")
        assert (await site_repo.get("demo")).get_api("menu").method == "GET"

    async def test_add_api_conflict_and_missing_site(self, site_repo):
        await make_site_with_apis(site_repo, "menu")
        with pytest.raises(NameConflict):
            await site_repo.add_api("demo", CreateApiRequest(name="menu", url="https://x.test"))
        with pytest.raises(SiteNotFound):
            await site_repo.add_api("ghost", CreateApiRequest(name="menu", url="https://x.test"))

    async def test_partial_update_keeps_other_fields(self, site_repo):
        await site_repo.create("demo")
        await site_repo.add_api(
            "demo",
            CreateApiRequest(name="menu", url="https://api.test/menu", method="POST", headers={"X-Key": "k"}),
        )
        updated = await site_repo.update_api("demo", "menu", UpdateApiRequest(url="https://api.test/v2/menu"))
        assert updated.url == "https://api.test/v2/menu"
        assert updated.method == "POST"
        assert updated.headers == {"X-Key": "k"}

    async def test_update_null_method_ignored(self, site_repo):
        await make_site_with_apis(site_repo, "menu")
        updated = await site_repo.update_api("demo", "menu", UpdateApiRequest(method=None, url="https://x.test"))
        assert updated.method == "GET"

    async def test_update_accepts_camel_case(self, site_repo):
        await make_site_with_apis(site_repo, "menu")
        req = UpdateApiRequest.model_validate({"bodyTemplate": {"q": 1}, "mappingConfig": {"contentType": "text/plain"}})
        updated = await site_repo.update_api("demo", "menu", req)
        assert updated.body_template == {"q": 1}
        assert updated.mapping_config.content_type == "text/plain"

    async def test_rename_cascades_to_bindings(self, site_repo, binding_repo):
        await make_site_with_apis(site_repo, "menu", "orders")
        await binding_repo.add_placeholder("demo", CreatePlaceholderRequest(placeholder="t", api_name="menu", json_path="title"))
        await binding_repo.add_action("demo", CreateActionRequest(selector="#b", api_name="menu"))
        await binding_repo.upsert_component("demo", UpsertComponentRequest(page="index.html", api_name="menu"))
        await binding_repo.add_placeholder("demo", CreatePlaceholderRequest(placeholder="o", api_name="orders", json_path="n"))

        await site_repo.update_api("demo", "menu", UpdateApiRequest(name="catalog"))

        site = await site_repo.get("demo")
        assert [a.name for a in site.apis] == ["catalog", "orders"]
        bindings = await binding_repo.get("demo")
        assert bindings.for_api("menu") == []
        assert len(bindings.for_api("catalog")) == 3
        assert [m.api_name for m in bindings.mappings] == ["catalog", "orders"]

    async def test_rename_conflict_changes_nothing(self, site_repo, binding_repo):
        await make_site_with_apis(site_repo, "menu", "orders")
        await binding_repo.add_placeholder("demo", CreatePlaceholderRequest(placeholder="t", api_name="menu", json_path="x"))
        with pytest.raises(NameConflict):
            await site_repo.update_api("demo", "menu", UpdateApiRequest(name="orders"))
        assert (await binding_repo.get("demo")).mappings[0].api_name == "menu"
        assert [a.name for a in (await site_repo.get("demo")).apis] == ["menu", "orders"]

    async def test_failed_save_leaves_bindings_alone(self, site_repo, binding_repo, store, monkeypatch):
        await make_site_with_apis(site_repo, "menu")
        await binding_repo.add_placeholder("demo", CreatePlaceholderRequest(placeholder="t", api_name="menu", json_path="x"))
        write = store.write

        async def failing_write(name, doc):
            if name == "sites":
                raise StorageError("bin unavailable")
            await write(name, doc)

        monkeypatch.setattr(store, "write", failing_write)
        with pytest.raises(StorageError):
            await site_repo.update_api("demo", "menu", UpdateApiRequest(name="catalog"))
        assert (await binding_repo.get("demo")).mappings[0].api_name == "menu"

    async def test_invalid_update_leaves_bindings_alone(self, site_repo, binding_repo):
        await make_site_with_apis(site_repo, "menu")
        await binding_repo.add_placeholder("demo", CreatePlaceholderRequest(placeholder="t", api_name="menu", json_path="x"))
        with pytest.raises(ValidationError):
            await site_repo.update_api("demo", "menu", UpdateApiRequest(name="catalog", url=None))
        assert (await binding_repo.get("demo")).mappings[0].api_name == "menu"

    async def test_update_missing(self, site_repo):
        await site_repo.create("demo")
        with pytest.raises(ApiNotFound):
            await site_repo.update_api("demo", "nope", UpdateApiRequest(url="https://x.test"))
        with pytest.raises(SiteNotFound):
            await site_repo.update_api("ghost", "nope", UpdateApiRequest(url="https://x.test"))

    async def test_delete_keeps_bindings_as_dangling(self, site_repo, binding_repo):
        await make_site_with_apis(site_repo, "menu")
        await binding_repo.add_placeholder("demo", CreatePlaceholderRequest(placeholder="t", api_name="menu", json_path="x"))
        await site_repo.delete_api("demo", "menu")
        assert (await site_repo.get("demo")).apis == []
        dangling = await binding_repo.dangling("demo", set())
        assert [b.api_name for b in dangling] == ["menu"]
        with pytest.raises(ApiNotFound):
            await site_repo.delete_api("demo", "menu")


# ── bindings ────────────────────────────────────────────────────────────────


class TestBindingIds:
    def test_format(self):
        ident = new_binding_id("action", set())
        prefix, _, suffix = ident.partition("_")
        assert prefix == "action"
        assert suffix.isalnum() and suffix == suffix.lower()

    def test_bumped_past_taken(self, monkeypatch):
        monkeypatch.setattr("backend.repos.binding_repo.time.time", lambda: 1.0)
        first = new_binding_id("pm", set())
        assert first == "pm_rs"
        assert new_binding_id("pm", {first}) == "pm_rt"


class TestBindingRepo:
    async def test_unknown_site_has_no_bindings(self, binding_repo):
        assert (await binding_repo.get("ghost")).all() == []
        assert not await binding_repo.has_site("ghost")

    async def test_add_placeholder(self, binding_repo, store):
        b = await binding_repo.add_placeholder(
            "demo",
            CreatePlaceholderRequest.model_validate(
                {"placeholder": "headline", "apiName": "menu", "jsonPath": "title", "pages": ["index.html"]}
            ),
        )
        assert b.to_dict() == {"placeholder": "headline", "apiName": "menu", "jsonPath": "title", "pages": ["index.html"]}
        assert store.documents["mappings"]["sites"]["demo"]["mappings"] == [b.to_dict()]

    async def test_add_action_ids_unique(self, binding_repo):
        a1 = await binding_repo.add_action("demo", CreateActionRequest(selector="#a", api_name="orders", method="put"))
        a2 = await binding_repo.add_action("demo", CreateActionRequest(selector="#b", api_name="orders"))
        assert a1.id != a2.id
        assert a1.id.startswith("action_")
        assert a1.method == "PUT"
        assert a2.method == "POST"

    async def test_upsert_component_creates_then_updates(self, binding_repo):
        created = await binding_repo.upsert_component(
            "demo",
            UpsertComponentRequest(
                page="index.html",
                api_name="orders",
                field_mappings={"qty": '[name="qty"]'},
                submit_selector="#go",
            ),
        )
        assert created.id.startswith("pm_")
        assert created.method == "POST"

        updated = await binding_repo.upsert_component(
            "demo", UpsertComponentRequest(page="index.html", api_name="orders", method="patch")
        )
        assert updated.id == created.id
        assert updated.method == "PATCH"
        assert updated.field_mappings == {"qty": '[name="qty"]'}
        assert updated.submit_selector == "#go"

        cleared = await binding_repo.upsert_component(
            "demo", UpsertComponentRequest(page="index.html", api_name="orders", submit_selector=None)
        )
        assert cleared.submit_selector is None
        assert len((await binding_repo.get("demo")).components) == 1

    async def test_one_component_per_page_and_api(self, binding_repo):
        await binding_repo.upsert_component("demo", UpsertComponentRequest(page="a.html", api_name="x"))
        await binding_repo.upsert_component("demo", UpsertComponentRequest(page="b.html", api_name="x"))
        await binding_repo.upsert_component("demo", UpsertComponentRequest(page="a.html", api_name="y"))
        await binding_repo.upsert_component("demo", UpsertComponentRequest(page="a.html", api_name="x"))
        assert len((await binding_repo.get("demo")).components) == 3

    async def test_rename_without_record(self, binding_repo, store):
        assert await binding_repo.rename_api("ghost", "a", "b") == 0
        assert "mappings" not in store.documents


class TestUnreadableBindings:
    """Binding records that cannot be loaded are written back untouched."""

    ORPHAN = {"apiName": "menu", "jsonPath": "title"}

    @pytest.fixture
    def store(self):
        record = {
            "actions": [],
            "mappings": [self.ORPHAN, {"placeholder": "p", "apiName": "menu", "jsonPath": "price"}],
            "pageMappings": ["junk"],
            "notes": "kept",
        }
        return MemoryStore({"mappings": {"sites": {"demo": record}}})

    def stored(self, store):
        return store.documents["mappings"]["sites"]["demo"]

    async def test_ensure_site_keeps_them(self, store):
        await BindingRepo(store).ensure_site("demo")
        assert self.stored(store)["mappings"][0] == self.ORPHAN
        assert self.stored(store)["pageMappings"] == ["junk"]
        assert self.stored(store)["notes"] == "kept"

    async def test_new_bindings_append_after_them(self, store):
        repo = BindingRepo(store)
        await repo.add_placeholder("demo", CreatePlaceholderRequest(placeholder="q", api_name="menu", json_path="q"))
        assert [m.get("placeholder") for m in self.stored(store)["mappings"]] == [None, "p", "q"]
        assert [m.placeholder for m in (await repo.get("demo")).mappings] == ["p", "q"]

    async def test_rename_reaches_them(self, store):
        assert await BindingRepo(store).rename_api("demo", "menu", "catalog") == 1
        assert [m["apiName"] for m in self.stored(store)["mappings"]] == ["catalog", "catalog"]


# ── config ──────────────────────────────────────────────────────────────────


class TestConfigRepo:
    async def test_defaults(self):
        cfg = await ConfigRepo(MemoryStore()).get()
        assert cfg.to_dict() == {"productionFolder": "production", "activePrototype": None}

    async def test_partial_update(self):
        store = MemoryStore()
        repo = ConfigRepo(store)
        await repo.update(UpdateConfigRequest.model_validate({"activePrototype": "demo"}))
        cfg = await repo.update(UpdateConfigRequest.model_validate({"productionFolder": "dist"}))
        assert cfg.to_dict() == {"productionFolder": "dist", "activePrototype": "demo"}
        assert store.documents["config"] == {"productionFolder": "dist", "activePrototype": "demo"}

    async def test_clear_active_prototype(self):
        store = MemoryStore({"config": {"productionFolder": "production", "activePrototype": "demo"}})
        cfg = await ConfigRepo(store).update(UpdateConfigRequest.model_validate({"activePrototype": None}))
        assert cfg.active_prototype is None

    async def test_invalid_document_reads_defaults(self):
        store = MemoryStore({"config": {"productionFolder": ["not", "a", "string"]}})
        assert (await ConfigRepo(store).get()).production_folder == "production"
