"""Unit tests for history schema derivation."""

from dataclasses import fields

import pytest
from sqlalchemy import Boolean, DateTime, Integer, String

from shadowbase.domain.entities import (
    NOW,
    AttributeSpec,
    ForeignKeyRef,
    HistoryOptions,
    IndexSpec,
    ModelOptions,
)
from shadowbase.domain.exceptions import SchemaDerivationError
from shadowbase.domain.services.schema_deriver import (
    ARCHIVED_AT,
    EXCLUDED_ATTRIBUTE_FIELDS,
    HISTORY_KEY,
    derive_history_schema,
    history_model_name,
)


def _live_attributes() -> dict[str, AttributeSpec]:
    return {
        "id": AttributeSpec(
            name="id", type=Integer(), primary_key=True, autoincrement=True, nullable=False
        ),
        "email": AttributeSpec(
            name="email",
            type=String(255),
            unique=True,
            nullable=False,
            index=True,
            set=str.lower,
            get=str.upper,
            comment="login",
        ),
        "account_id": AttributeSpec(
            name="account_id",
            type=Integer(),
            references=ForeignKeyRef(model="Account"),
            on_delete="CASCADE",
            on_update="CASCADE",
        ),
        "created_at": AttributeSpec(
            name="created_at", type=DateTime(), nullable=False, default=NOW
        ),
        "updated_at": AttributeSpec(
            name="updated_at", type=DateTime(), nullable=False, default=NOW
        ),
    }


def _live_options(**overrides) -> ModelOptions:
    values = dict(
        table_name="users",
        hooks={"before_update": lambda instance, options: None},
        scopes={"active": {"email": "a@b.c"}},
        default_scope={"account_id": 1},
        instance_methods={"greet": lambda self: "hi"},
        comment="users table",
        extra={"engine": "InnoDB"},
        indexes=(
            IndexSpec(fields=("email",), name="users_email_unique", unique=True),
            IndexSpec(fields=("account_id", "email"), name="users_account_email", type="unique"),
            IndexSpec(fields=("account_id",), name="users_account"),
            IndexSpec(fields=("created_at",)),
        ),
    )
    values.update(overrides)
    return ModelOptions(**values)


@pytest.fixture
def config() -> HistoryOptions:
    return HistoryOptions()


class TestAttributes:
    """Tests for derived history attributes."""

    def test_copied_attributes_carry_no_constraint_metadata(self, config) -> None:
        """Test that no uniqueness, key, or foreign key metadata survives."""
        schema = derive_history_schema(_live_attributes(), _live_options(), config)

        for name in _live_attributes():
            attribute = schema.attributes[name]
            assert attribute.unique is False
            assert attribute.primary_key is False
            assert attribute.autoincrement is False
            assert attribute.references is None
            assert attribute.on_delete is None
            assert attribute.on_update is None
            assert attribute.get is None
            assert attribute.set is None
            assert attribute.index is False

    def test_excluded_fields_are_real_attribute_fields(self) -> None:
        names = {f.name for f in fields(AttributeSpec)}
        assert EXCLUDED_ATTRIBUTE_FIELDS <= names

    def test_other_metadata_is_kept(self, config) -> None:
        schema = derive_history_schema(_live_attributes(), _live_options(), config)

        email = schema.attributes["email"]
        assert email.nullable is False
        assert email.comment == "login"
        assert isinstance(email.type, String)
        assert email.type.length == 255

    def test_timestamps_become_plain_without_default(self, config) -> None:
        """Test that the two conventional timestamps are copied values, not defaults."""
        schema = derive_history_schema(_live_attributes(), _live_options(), config)

        for name in ("created_at", "updated_at"):
            attribute = schema.attributes[name]
            assert attribute.default is None
            assert isinstance(attribute.type, DateTime)
            assert attribute.type.timezone is True

    def test_custom_timestamp_names_are_followed(self, config) -> None:
        attributes = {
            "made": AttributeSpec(name="made", type=DateTime(), default=NOW),
            "touched": AttributeSpec(name="touched", type=DateTime(), default=NOW),
        }
        options = ModelOptions(created_at="made", updated_at="touched")

        schema = derive_history_schema(attributes, options, config)

        assert schema.attributes["made"].default is None
        assert schema.attributes["touched"].default is None

    def test_exactly_three_own_attributes_are_added(self, config) -> None:
        live = _live_attributes()
        schema = derive_history_schema(live, _live_options(), config)

        added = set(schema.attributes) - set(live)
        assert added == {HISTORY_KEY, ARCHIVED_AT, "history_deleted"}

    def test_attribute_order(self, config) -> None:
        """Test live attributes come first, in order, then the own attributes."""
        schema = derive_history_schema(_live_attributes(), _live_options(), config)

        assert list(schema.attributes) == [
            "id",
            "email",
            "account_id",
            "created_at",
            "updated_at",
            HISTORY_KEY,
            ARCHIVED_AT,
            "history_deleted",
        ]

    def test_own_attribute_definitions(self, config) -> None:
        schema = derive_history_schema(_live_attributes(), _live_options(), config)

        hid = schema.attributes[HISTORY_KEY]
        assert hid.primary_key is True
        assert hid.autoincrement is True
        assert hid.unique is True

        archived_at = schema.attributes[ARCHIVED_AT]
        assert archived_at.nullable is False
        assert archived_at.default is NOW

        deleted = schema.attributes["history_deleted"]
        assert isinstance(deleted.type, Boolean)
        assert deleted.nullable is True
        assert deleted.default is None

    def test_own_attributes_win_on_collision(self, config) -> None:
        live = _live_attributes()
        live[ARCHIVED_AT] = AttributeSpec(name=ARCHIVED_AT, type=String(10), unique=True)

        schema = derive_history_schema(live, _live_options(), config)

        assert schema.attributes[ARCHIVED_AT].default is NOW
        assert list(schema.attributes)[-2] == ARCHIVED_AT

    def test_deleted_marker_name_is_configurable(self) -> None:
        config = HistoryOptions(deleted_column_name="was_deleted")

        schema = derive_history_schema(_live_attributes(), _live_options(), config)

        assert "was_deleted" in schema.attributes
        assert "history_deleted" not in schema.attributes


class TestOptions:
    """Tests for derived history options."""

    def test_live_only_options_are_dropped(self, config) -> None:
        schema = derive_history_schema(_live_attributes(), _live_options(), config)

        assert schema.options.table_name is None
        assert dict(schema.options.hooks) == {}
        assert dict(schema.options.scopes) == {}
        assert dict(schema.options.default_scope) == {}
        assert dict(schema.options.instance_methods) == {}

    def test_timestamps_are_off(self, config) -> None:
        schema = derive_history_schema(
            _live_attributes(), _live_options(timestamps=True, paranoid=True), config
        )

        assert schema.options.timestamps is False
        assert schema.options.is_paranoid is False

    def test_other_options_are_copied(self, config) -> None:
        schema = derive_history_schema(_live_attributes(), _live_options(), config)

        assert schema.options.comment == "users table"
        assert dict(schema.options.extra) == {"engine": "InnoDB"}

    def test_unique_indexes_are_dropped(self, config) -> None:
        """Test that indexes unique by flag or by type never survive."""
        schema = derive_history_schema(_live_attributes(), _live_options(), config)

        assert not any(index.is_unique for index in schema.options.indexes)
        assert len(schema.options.indexes) == 2

    def test_surviving_indexes_end_with_suffix(self) -> None:
        config = HistoryOptions(index_suffix="_hist")

        schema = derive_history_schema(
            _live_attributes(), _live_options(), config, source_table="users"
        )

        assert [index.name for index in schema.options.indexes] == [
            "users_account_hist",
            "users_created_at_hist",
        ]
        assert all(index.name.endswith("_hist") for index in schema.options.indexes)

    def test_inputs_are_not_modified(self, config) -> None:
        live = _live_attributes()
        options = _live_options()
        before = (dict(live), options)

        derive_history_schema(live, options, config)

        assert (dict(live), options) == before
        assert live["email"].unique is True
        assert len(options.indexes) == 4


class TestDeterminism:
    def test_identical_inputs_give_identical_outputs(self, config) -> None:
        live = _live_attributes()
        options = _live_options()

        first = derive_history_schema(live, options, config, source_table="users")
        second = derive_history_schema(live, options, config, source_table="users")

        assert list(first.attributes) == list(second.attributes)
        assert first.attributes == second.attributes
        assert first.options == second.options


class TestValidation:
    """Tests for fail-fast validation."""

    def test_key_must_match_name(self, config) -> None:
        live = {"title": AttributeSpec(name="heading", type=String(10))}

        with pytest.raises(SchemaDerivationError, match="heading"):
            derive_history_schema(live, ModelOptions(), config)

    def test_type_is_required(self, config) -> None:
        live = {"title": AttributeSpec(name="title", type=None)}

        with pytest.raises(SchemaDerivationError, match="no type"):
            derive_history_schema(live, ModelOptions(), config)

    def test_index_on_unknown_attribute(self, config) -> None:
        live = {"title": AttributeSpec(name="title", type=String(10))}
        options = ModelOptions(indexes=(IndexSpec(fields=("missing",), name="idx"),))

        with pytest.raises(SchemaDerivationError, match="missing"):
            derive_history_schema(live, options, config)

    def test_model_name_gets_suffix(self, config) -> None:
        assert history_model_name("Post", config) == "PostHistory"
        assert history_model_name("Post", HistoryOptions(model_suffix="Log")) == "PostLog"

    def test_model_name_already_suffixed(self, config) -> None:
        with pytest.raises(SchemaDerivationError, match="suffix"):
            history_model_name("PostHistory", config)
