"""Tests for the ORM association analyzer."""

import pytest
from doubles import FakeAssociationProvider, FakeModel, col, pk
from schemagraph_core.analyzers import AssociationAnalyzer, Scope, SelfReferencePolicy
from schemagraph_core.analyzers.associations import (
    NODE_ONLY,
    AssociationExtractor,
    ModelDiscovery,
    group_by_table,
)
from schemagraph_core.providers import AssociationInfo, AssociationKind
from schemagraph_core.settings import Settings

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def blog_models() -> dict[str, FakeModel]:
    """User, Post, Comment and Tag models with typical associations."""
    user = FakeModel("User", "users", columns=[pk(), col("email", "VARCHAR")])
    post = FakeModel("Post", "posts", columns=[pk(), col("user_id"), col("title", "VARCHAR")])
    comment = FakeModel("Comment", "comments", columns=[pk(), col("post_id")])
    tag = FakeModel("Tag", "tags", columns=[pk()])
    tagging = FakeModel("Tagging", "taggings", columns=[pk(), col("post_id"), col("tag_id")])

    user.associations = [AssociationInfo(AssociationKind.HAS_MANY, post, "posts", foreign_key="user_id")]
    post.associations = [
        AssociationInfo(AssociationKind.BELONGS_TO, user, "user", foreign_key="user_id"),
        AssociationInfo(AssociationKind.HAS_MANY, comment, "comments"),
        AssociationInfo(AssociationKind.HAS_MANY_THROUGH, tag, "tags", through_type=tagging),
    ]
    comment.associations = [AssociationInfo(AssociationKind.BELONGS_TO, post, "post")]
    tagging.associations = [
        AssociationInfo(AssociationKind.BELONGS_TO, post, "post"),
        AssociationInfo(AssociationKind.BELONGS_TO, tag, "tag"),
    ]
    return {m.name: m for m in (user, post, comment, tag, tagging)}


@pytest.fixture
def blog_provider(blog_models: dict[str, FakeModel]) -> FakeAssociationProvider:
    return FakeAssociationProvider(list(blog_models.values()))


def _edges(dataset) -> list[tuple[str, str, str]]:
    return [(r.source_id, r.target_id, r.type) for r in dataset.relationships]


# =============================================================================
# DISCOVERY TESTS
# =============================================================================


class TestModelDiscovery:
    """Tests for ModelDiscovery."""

    def test_filters_abstract_tableless_and_missing(self) -> None:
        """Abstract, tableless and missing-table models are skipped."""
        models = [
            FakeModel("User", "users"),
            FakeModel("ApplicationRecord", None, abstract=True),
            FakeModel("Orphan", None),
            FakeModel("Legacy", "legacy_things"),
        ]
        provider = FakeAssociationProvider(models, existing_tables={"users"})

        discovered = ModelDiscovery(provider, Scope.all()).discover()

        assert [m.name for m in discovered] == ["User"]

    def test_groups_models_by_table(self) -> None:
        """Several types can share a table; ordering is deterministic."""
        models = [
            FakeModel("Admin::User", "users"),
            FakeModel("Post", "posts"),
            FakeModel("User", "users"),
        ]
        provider = FakeAssociationProvider(models)

        discovered = ModelDiscovery(provider, Scope.of(["users"])).discover()
        grouped = group_by_table(discovered)

        assert list(grouped) == ["users"]
        assert [m.name for m in grouped["users"]] == ["Admin::User", "User"]


# =============================================================================
# EXTRACTION TESTS
# =============================================================================


class TestAssociationExtractor:
    """Tests for AssociationExtractor."""

    def test_has_many_through_label(self, blog_provider: FakeAssociationProvider) -> None:
        """has_many_through labels name the through table."""
        models = ModelDiscovery(blog_provider, Scope.all()).discover()
        records = AssociationExtractor(blog_provider, Scope.all()).extract_all(models)

        through = [r for r in records if r.type == "has_many_through"]
        assert len(through) == 1
        assert through[0].association_name == "tags (through taggings)"
        assert through[0].through_table == "taggings"

    def test_placeholder_for_model_without_in_scope_associations(
        self, blog_provider: FakeAssociationProvider
    ) -> None:
        """A model whose associations all leave the scope becomes node_only."""
        scope = Scope.of(["users", "comments"])
        models = ModelDiscovery(blog_provider, scope).discover()
        records = AssociationExtractor(blog_provider, scope).extract_all(models)

        assert sorted((r.source_model, r.type) for r in records) == [
            ("Comment", NODE_ONLY),
            ("User", NODE_ONLY),
        ]

    def test_skips_polymorphic_and_unknown_kinds(self) -> None:
        """Polymorphic associations and unknown kinds are skipped."""
        picture = FakeModel("Picture", "pictures")
        user = FakeModel("User", "users")
        picture.associations = [
            AssociationInfo(AssociationKind.BELONGS_TO, None, "imageable", polymorphic=True),
            AssociationInfo("composed_of", user, "owner"),
            AssociationInfo(AssociationKind.BELONGS_TO, user, "user"),
        ]
        provider = FakeAssociationProvider([picture, user])

        records = AssociationExtractor(provider, Scope.all()).extract_all(
            ModelDiscovery(provider, Scope.all()).discover()
        )

        picture_records = [r for r in records if r.source_model == "Picture"]
        assert [(r.type, r.association_name) for r in picture_records] == [("belongs_to", "user")]

    def test_attachment_is_recorded_as_has_one(self) -> None:
        """Attachment associations become has_one edges."""
        attachment = FakeModel("Attachment", "attachments")
        user = FakeModel("User", "users")
        user.associations = [AssociationInfo(AssociationKind.ATTACHMENT, attachment, "avatar_attachment")]
        provider = FakeAssociationProvider([user, attachment])

        records = AssociationExtractor(provider, Scope.all()).extract_all(
            ModelDiscovery(provider, Scope.all()).discover()
        )

        avatar = [r for r in records if r.association_name == "avatar_attachment"]
        assert avatar[0].type == "has_one"
        assert avatar[0].target_table == "attachments"

    def test_unresolvable_target_is_skipped(self) -> None:
        """An association whose target table cannot be resolved is skipped."""
        ghost = FakeModel("Ghost", None)
        user = FakeModel("User", "users")
        user.associations = [AssociationInfo(AssociationKind.HAS_MANY, ghost, "ghosts")]
        provider = FakeAssociationProvider([user])

        records = AssociationExtractor(provider, Scope.all()).extract_all(
            ModelDiscovery(provider, Scope.all()).discover()
        )

        assert [(r.source_model, r.type) for r in records] == [("User", NODE_ONLY)]


# =============================================================================
# ANALYZER TESTS
# =============================================================================


class TestAssociationAnalyzer:
    """Tests for AssociationAnalyzer."""

    def test_self_referential_association_is_flagged(self, settings: Settings) -> None:
        """Category belongs_to parent Category keeps a flagged self-edge."""
        category = FakeModel("Category", "categories", columns=[pk(), col("parent_id"), col("name", "VARCHAR")])
        category.associations = [
            AssociationInfo(AssociationKind.BELONGS_TO, category, "parent", foreign_key="parent_id")
        ]
        provider = FakeAssociationProvider([category])

        dataset = AssociationAnalyzer(provider, settings=settings).run()

        assert len(dataset.relationships) == 1
        rel = dataset.relationships[0]
        assert rel.source_id == "categories"
        assert rel.target_id == "categories"
        assert rel.metadata["self_referential"] is True
        assert rel.cardinality == "many_to_one"
        assert dataset.is_valid()

    def test_drop_policy_removes_self_reference(self, settings: Settings) -> None:
        """With the DROP policy the self-edge is dropped but the node stays."""
        category = FakeModel("Category", "categories", columns=[pk()])
        category.associations = [AssociationInfo(AssociationKind.BELONGS_TO, category, "parent")]
        provider = FakeAssociationProvider([category])

        dataset = AssociationAnalyzer(
            provider, self_reference_policy=SelfReferencePolicy.DROP, settings=settings
        ).run()

        assert dataset.relationships == []
        assert dataset.has_entity("categories")

    def test_global_blog_dataset(self, blog_provider: FakeAssociationProvider, settings: Settings) -> None:
        """All declared associations become typed edges between tables."""
        dataset = AssociationAnalyzer(blog_provider, settings=settings).run()

        assert set(dataset.entities) == {"users", "posts", "comments", "tags", "taggings"}
        assert ("users", "posts", "has_many") in _edges(dataset)
        assert ("posts", "users", "belongs_to") in _edges(dataset)
        assert ("posts", "tags", "has_many_through") in _edges(dataset)
        assert dataset.is_valid()
        assert dataset.metadata["status"] == "ok"

    def test_entities_are_models_with_attributes(
        self, blog_provider: FakeAssociationProvider, settings: Settings
    ) -> None:
        """Entities carry model metadata and column attributes."""
        dataset = AssociationAnalyzer(blog_provider, settings=settings).run()

        posts = dataset.get_entity("posts")
        assert posts.name == "Post"
        assert posts.type == "model"
        assert posts.metadata == {
            "table_name": "posts",
            "model_class": "Post",
            "model_classes": ["Post"],
            "source": "orm_model",
        }
        assert [a.name for a in posts.attributes] == ["id", "user_id", "title"]
        assert posts.get_attribute("user_id").metadata["foreign_key"] is True

    def test_relationship_metadata(self, blog_provider: FakeAssociationProvider, settings: Settings) -> None:
        """Relationships carry association details in metadata."""
        dataset = AssociationAnalyzer(blog_provider, settings=settings).run()

        belongs_to = next(
            r for r in dataset.relationships if r.type == "belongs_to" and r.source_id == "posts"
        )
        assert belongs_to.label == "user"
        assert belongs_to.metadata == {
            "association_name": "user",
            "source_model": "Post",
            "target_model": "User",
            "original_type": "belongs_to",
            "self_referential": False,
            "foreign_key": "user_id",
        }
        through = next(r for r in dataset.relationships if r.type == "has_many_through")
        assert through.cardinality == "many_to_many"
        assert through.metadata["through_table"] == "taggings"

    def test_scope_keeps_both_endpoints_inside(
        self, blog_provider: FakeAssociationProvider, settings: Settings
    ) -> None:
        """Scoped analysis only keeps edges with both tables in scope."""
        dataset = AssociationAnalyzer(blog_provider, Scope.of(["users", "posts"]), settings=settings).run()

        assert set(dataset.entities) == {"users", "posts"}
        assert sorted(_edges(dataset)) == [
            ("posts", "users", "belongs_to"),
            ("users", "posts", "has_many"),
        ]
        assert dataset.metadata["scope"] == ["posts", "users"]

    def test_node_only_models_appear_as_isolated_entities(
        self, blog_provider: FakeAssociationProvider, settings: Settings
    ) -> None:
        """Models without in-scope associations are nodes without edges."""
        dataset = AssociationAnalyzer(blog_provider, ["tags"], settings=settings).run()

        assert list(dataset.entities) == ["tags"]
        assert dataset.relationships == []
        assert dataset.stats()["isolated_entities"] == ["tags"]
        assert dataset.metadata["status"] == "ok"

    def test_habtm_join_table(self, settings: Settings) -> None:
        """has_and_belongs_to_many edges record the join table."""
        role = FakeModel("Role", "roles")
        user = FakeModel("User", "users")
        user.associations = [
            AssociationInfo(AssociationKind.HAS_AND_BELONGS_TO_MANY, role, "roles", join_table="roles_users")
        ]
        provider = FakeAssociationProvider([user, role])

        dataset = AssociationAnalyzer(provider, settings=settings).run()

        rel = dataset.relationships[0]
        assert rel.type == "has_and_belongs_to_many"
        assert rel.cardinality == "many_to_many"
        assert rel.metadata["join_table"] == "roles_users"

    def test_model_failing_introspection_is_skipped(
        self, blog_models: dict[str, FakeModel], settings: Settings
    ) -> None:
        """A model whose associations raise is skipped; others continue."""
        provider = FakeAssociationProvider(list(blog_models.values()), failing_associations={"Post"})

        dataset = AssociationAnalyzer(provider, settings=settings).run()

        assert all(r.metadata["source_model"] != "Post" for r in dataset.relationships)
        assert ("users", "posts", "has_many") in _edges(dataset)
        assert dataset.is_valid()

    def test_failing_columns_leave_entity_without_attributes(
        self, blog_models: dict[str, FakeModel], settings: Settings
    ) -> None:
        """Column failures are logged and yield an entity without attributes."""
        provider = FakeAssociationProvider(list(blog_models.values()), failing_columns={"User"})

        dataset = AssociationAnalyzer(provider, settings=settings).run()

        assert dataset.get_entity("users").attributes == []

    @pytest.mark.parametrize("name", [None, "", " "])
    def test_column_without_name_is_skipped(
        self, name: str | None, blog_models: dict[str, FakeModel], settings: Settings
    ) -> None:
        """A nameless model column is dropped; associations are unaffected."""
        blog_models["Comment"].columns.append(col(name, "TEXT"))
        provider = FakeAssociationProvider(list(blog_models.values()))

        dataset = AssociationAnalyzer(provider, settings=settings).run()

        assert [a.name for a in dataset.get_entity("comments").attributes] == ["id", "post_id"]
        assert ("comments", "posts", "belongs_to") in _edges(dataset)
        assert dataset.metadata["status"] == "ok"

    def test_shared_table_lists_all_model_classes(self, settings: Settings) -> None:
        """Types mapped to one table collapse into one entity."""
        provider = FakeAssociationProvider([FakeModel("User", "users"), FakeModel("Admin::User", "users")])

        dataset = AssociationAnalyzer(provider, settings=settings).run()

        users = dataset.get_entity("users")
        assert users.name == "Admin::User"
        assert users.metadata["model_classes"] == ["Admin::User", "User"]
        assert dataset.metadata["total_models"] == 2

    def test_no_models(self, settings: Settings) -> None:
        """No models yields an empty dataset without raising."""
        dataset = AssociationAnalyzer(FakeAssociationProvider([]), settings=settings).run()

        assert dataset.is_empty()
        assert dataset.stats()["entity_count"] == 0
        assert dataset.metadata["status"] == "empty"
