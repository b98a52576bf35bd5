"""Unit tests for metadata discovery."""

from dataclasses import dataclass
from typing import Annotated, ClassVar

import pytest
from pydantic import BaseModel

from src.contract.discovery import AnnotatedMetadataProvider, resolve_type_ref
from src.contract.metadata import PropertyMeta, api_operation, api_resource, api_response
from tests.fixtures.dtos import Node, UserDto


@dataclass
class Broken:
    """References a name that does not exist."""

    good: Annotated[int, PropertyMeta(required=True)]
    bad: "Annotated[Missing, PropertyMeta()]"  # type: ignore[name-defined]  # noqa: F821


class Model(BaseModel):
    registry: ClassVar[dict[str, int]] = {}

    title: Annotated[str, PropertyMeta(required=True)]
    plain: int = 0


@pytest.fixture
def provider() -> AnnotatedMetadataProvider:
    """The default provider."""
    return AnnotatedMetadataProvider()


@pytest.mark.unit
class TestResolveTypeRef:
    """Resolving class references."""

    def test_class_passes_through(self) -> None:
        """Classes resolve to themselves."""
        assert resolve_type_ref(UserDto) is UserDto

    @pytest.mark.parametrize(
        "ref", ["tests.fixtures.dtos:UserDto", "tests.fixtures.dtos.UserDto"]
    )
    def test_import_paths(self, ref: str) -> None:
        """Colon and dotted forms are both accepted."""
        assert resolve_type_ref(ref) is UserDto

    @pytest.mark.parametrize(
        "ref",
        [
            None,
            "UserDto",
            "tests.fixtures.dtos:Missing",
            "tests.fixtures.nope:UserDto",
            "tests.fixtures.dtos:Status.ACTIVE",
            ":UserDto",
        ],
    )
    def test_unresolvable(self, ref: str | None) -> None:
        """Anything that is not a loadable class resolves to None."""
        assert resolve_type_ref(ref) is None


@pytest.mark.unit
class TestDescribeType:
    """Reading property declarations."""

    def test_declaration_order_and_meta(self, provider: AnnotatedMetadataProvider) -> None:
        """Every annotated attribute is described in order, declared or not."""
        descriptors = provider.describe_type(UserDto)

        assert [d.name for d in descriptors] == [
            "id",
            "email",
            "nickname",
            "tags",
            "addresses",
            "status",
            "internal_note",
        ]
        assert [d.index for d in descriptors] == list(range(7))
        assert descriptors[0].annotation is int
        assert descriptors[0].meta == PropertyMeta(required=True, minimum=1)
        assert descriptors[-1].meta is None
        assert all(d.owner is UserDto for d in descriptors)

    def test_forward_references(self, provider: AnnotatedMetadataProvider) -> None:
        """String annotations are evaluated."""
        parent = next(d for d in provider.describe_type(Node) if d.name == "parent")

        assert parent.annotation == Node | None
        assert parent.meta is not None
        assert parent.meta.nullable is True

    def test_unevaluable_annotations_fall_back(
        self, provider: AnnotatedMetadataProvider
    ) -> None:
        """Unresolvable annotations are kept as written."""
        descriptors = provider.describe_type(Broken)

        assert [d.name for d in descriptors] == ["good", "bad"]
        assert descriptors[0].meta == PropertyMeta(required=True)
        assert isinstance(descriptors[1].annotation, str)
        assert descriptors[1].meta is None

    def test_pydantic_models_skip_bookkeeping(self, provider: AnnotatedMetadataProvider) -> None:
        """Class variables and library internals are not properties."""
        descriptors = provider.describe_type(Model)

        assert [d.name for d in descriptors] == ["title", "plain"]


@pytest.mark.unit
class TestDescribeDeclarations:
    """Reading decorator declarations."""

    def test_type_responses(self, provider: AnnotatedMetadataProvider) -> None:
        """Type-level responses come from the class itself."""
        assert [m.status for m in provider.describe_type_responses(UserDto)] == [201]
        assert provider.describe_type_responses(Node) == []

    def test_operation(self, provider: AnnotatedMetadataProvider) -> None:
        """Operation metadata and method-level responses are read back."""

        @api_operation(summary="Do it")
        @api_response(status=204)
        def handler() -> None: ...

        operation = provider.describe_operation(handler)
        assert operation is not None
        assert operation.summary == "Do it"
        assert [m.status for m in provider.describe_operation_responses(handler)] == [204]

    def test_undecorated(self, provider: AnnotatedMetadataProvider) -> None:
        """Plain functions and classes carry nothing."""

        def handler() -> None: ...

        assert provider.describe_operation(handler) is None
        assert provider.describe_operation_responses(handler) == []
        assert provider.describe_resource(object) is None

    def test_resource(self, provider: AnnotatedMetadataProvider) -> None:
        """Resource metadata is read from controllers."""

        @api_resource(name="Things")
        class Controller:
            pass

        resource = provider.describe_resource(Controller)
        assert resource is not None
        assert resource.name == "Things"
