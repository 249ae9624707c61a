"""Tests for the procedure router."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from postgate.domain.errors import (
    InvalidInputError,
    MethodNotSupportedError,
    NotFoundError,
    ProcedureNotFoundError,
    ResourceNotFoundError,
    UnauthenticatedError,
)
from postgate.services.posts import InMemoryPostStore
from postgate.services.procedures import (
    ProcedureContext,
    ProcedureKind,
    ProcedureName,
    ProcedureRouter,
)
from tests.conftest import make_session

ANONYMOUS = ProcedureContext()


def test_health_check_returns_ok(router: ProcedureRouter) -> None:
    assert router.call("healthCheck", None, ANONYMOUS) == "OK"


def test_create_then_by_id_returns_created_post(router: ProcedureRouter) -> None:
    payload = {"title": "Hello", "content": "World", "author": "Ada"}

    created = router.call("posts.create", payload, ANONYMOUS)
    fetched = router.call("posts.byId", {"id": created.id}, ANONYMOUS)

    assert fetched == created
    assert (created.title, created.content, created.author) == ("Hello", "World", "Ada")


def test_create_is_not_idempotent(router: ProcedureRouter) -> None:
    payload = {"title": "Same", "content": "Same", "author": "Same"}

    first = router.call("posts.create", payload, ANONYMOUS)
    second = router.call("posts.create", payload, ANONYMOUS)

    assert first.id != second.id
    assert len(router.call("posts.list", None, ANONYMOUS)) == 5


def test_by_id_for_each_present_post_returns_exactly_that_post(
    router: ProcedureRouter, post_store: InMemoryPostStore
) -> None:
    for post in post_store.list():
        assert router.call("posts.byId", {"id": post.id}, ANONYMOUS) == post


@pytest.mark.parametrize("missing_id", ["0", "42", "", "one"])
def test_by_id_for_missing_post_fails_not_found(
    router: ProcedureRouter, missing_id: str
) -> None:
    with pytest.raises(ResourceNotFoundError) as excinfo:
        router.call("posts.byId", {"id": missing_id}, ANONYMOUS)

    assert excinfo.value.kind == "resource"
    assert excinfo.value.path == "posts.byId"


def test_by_author_empty_substring_matches_everything(router: ProcedureRouter) -> None:
    assert len(router.call("posts.byAuthor", {"author": ""}, ANONYMOUS)) == 3


def test_by_author_without_match_returns_empty_list(router: ProcedureRouter) -> None:
    assert router.call("posts.byAuthor", {"author": "nonexistent-xyz"}, ANONYMOUS) == []


def test_private_data_requires_session(router: ProcedureRouter) -> None:
    with pytest.raises(UnauthenticatedError):
        router.call("privateData", None, ANONYMOUS)


def test_private_data_embeds_context_user(router: ProcedureRouter) -> None:
    session = make_session(name="Grace Hopper")

    result = router.call("privateData", None, ProcedureContext(session=session))

    assert result["message"] == "This is private"
    assert result["user"] == session.user


def test_invalid_create_reports_field_and_writes_nothing(
    router: ProcedureRouter, post_store: InMemoryPostStore
) -> None:
    with pytest.raises(InvalidInputError) as excinfo:
        router.call(
            "posts.create", {"title": "", "content": "Body", "author": "Ada"}, ANONYMOUS
        )

    assert [issue.path for issue in excinfo.value.issues] == ["title"]
    assert len(post_store.list()) == 3


def test_create_with_missing_and_mistyped_fields(router: ProcedureRouter) -> None:
    with pytest.raises(InvalidInputError) as excinfo:
        router.call("posts.create", {"title": "T", "content": 5}, ANONYMOUS)

    paths = sorted(issue.path for issue in excinfo.value.issues)
    assert paths == ["author", "content"]


def test_by_id_rejects_non_object_input(router: ProcedureRouter) -> None:
    with pytest.raises(InvalidInputError) as excinfo:
        router.call("posts.byId", None, ANONYMOUS)

    assert excinfo.value.issues


def test_unknown_procedure_is_distinct_from_missing_post(
    router: ProcedureRouter,
) -> None:
    with pytest.raises(ProcedureNotFoundError) as excinfo:
        router.call("posts.delete", {"id": "1"}, ANONYMOUS)

    assert isinstance(excinfo.value, NotFoundError)
    assert not isinstance(excinfo.value, ResourceNotFoundError)
    assert excinfo.value.error_data()["kind"] == "procedure"


def test_kind_mismatch_is_rejected(router: ProcedureRouter) -> None:
    with pytest.raises(MethodNotSupportedError):
        router.call(
            "posts.create",
            {"title": "T", "content": "C", "author": "A"},
            ANONYMOUS,
            kind=ProcedureKind.QUERY,
        )
    assert router.call("posts.list", None, ANONYMOUS, kind=ProcedureKind.QUERY)


def test_server_time_uses_configured_timezone(post_store: InMemoryPostStore) -> None:
    fixed = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    router = ProcedureRouter(
        store=post_store,
        timezone="Europe/Berlin",
        clock=lambda tz: fixed.astimezone(tz),
    )

    result = router.call("serverTime", None, ANONYMOUS)

    assert result["timezone"] == "Europe/Berlin"
    assert result["timestamp"] == fixed
    assert result["timestamp"].tzinfo == ZoneInfo("Europe/Berlin")


def test_every_declared_procedure_resolves(router: ProcedureRouter) -> None:
    for name in ProcedureName:
        assert router.resolve(name.value).name is name


def test_caller_helpers_share_the_context(router: ProcedureRouter) -> None:
    session = make_session()
    caller = router.create_caller(ProcedureContext(session=session))

    created = caller.create_post("Title", "Content", "Author")

    assert caller.health_check() == "OK"
    assert caller.post_by_id(created.id) == created
    assert caller.posts_by_author("author") == [created]
    assert caller.private_data()["user"] == session.user
