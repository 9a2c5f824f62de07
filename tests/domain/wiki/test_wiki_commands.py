import pytest

from domain.wiki.commands import WikiPageCommandFactory
from domain.wiki.exceptions import WikiValidationError
from domain.wiki.slug import SlugService
from domain.wiki.types import Actor, ProtectionLevel


def test_build_creation_command_normalizes_values() -> None:
    factory = WikiPageCommandFactory()

    command = factory.build_creation_command(
        namespace="  Main ",
        title="  Getting Started  ",
        content="Hello",
        slug=None,
        summary="  first  ",
        categories=["guide", "", None, "guide", "intro"],
    )

    assert command.namespace == "main"
    assert command.slug == "getting-started"
    assert command.title == "Getting Started"
    assert command.summary == "first"
    assert command.categories == ("guide", "intro")


def test_build_creation_command_keeps_explicit_slug() -> None:
    command = WikiPageCommandFactory().build_creation_command(
        namespace=None, title="Test", content="Hello", slug="Test"
    )

    assert command.namespace == "main"
    assert command.slug == "Test"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"title": " ", "content": "body"},
        {"title": "Title", "content": "   "},
        {"title": "Title", "content": "body", "slug": "bad slug!"},
        {"title": "Title", "content": "body", "summary": "x" * 501},
    ],
)
def test_build_creation_command_rejects_invalid_input(kwargs) -> None:
    with pytest.raises(WikiValidationError):
        WikiPageCommandFactory().build_creation_command(namespace="main", **kwargs)


def test_build_edit_command_parses_expected_revision() -> None:
    factory = WikiPageCommandFactory()

    command = factory.build_edit_command(
        namespace="main", slug="Test", content="Hello World", expected_revision="3"
    )

    assert command.expected_revision == 3
    with pytest.raises(WikiValidationError):
        factory.build_edit_command(namespace="main", slug="Test", content="x", expected_revision="abc")
    with pytest.raises(WikiValidationError):
        factory.build_edit_command(namespace="main", slug="Test", content="x", expected_revision=0)


def test_build_protection_command_rejects_unknown_level() -> None:
    factory = WikiPageCommandFactory()

    command = factory.build_protection_command(namespace="main", slug="Test", level="FULL")
    assert command.level is ProtectionLevel.FULL

    with pytest.raises(WikiValidationError):
        factory.build_protection_command(namespace="main", slug="Test", level="locked")


def test_build_move_command_derives_slug_from_title() -> None:
    command = WikiPageCommandFactory().build_move_command(
        namespace="main", slug="Test", new_title="Renamed Page"
    )

    assert command.new_slug == "renamed-page"
    assert command.new_title == "Renamed Page"


def test_slug_service_keeps_unicode_words() -> None:
    service = SlugService()

    assert service.generate_from_text("日本語 テスト").value == "日本語-テスト"
    with pytest.raises(WikiValidationError):
        service.generate_from_text("!!!")
    with pytest.raises(WikiValidationError):
        service.namespace("Bad Namespace")


def test_actor_requires_positive_id_and_known_role() -> None:
    assert Actor(id=7, role="Editor").name == "user-7"
    with pytest.raises(ValueError):
        Actor(id=0, role="editor")
    with pytest.raises(ValueError):
        Actor(id=1, role="superuser")
