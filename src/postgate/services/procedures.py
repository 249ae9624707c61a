"""Typed procedure router over the post store."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

from postgate.domain.errors import (
    InputIssue,
    InternalProcedureError,
    InvalidInputError,
    MethodNotSupportedError,
    ProcedureError,
    ProcedureNotFoundError,
    ResourceNotFoundError,
    UnauthenticatedError,
)
from postgate.domain.posts import Post
from postgate.domain.sessions import Session
from postgate.services.posts import PostStore

_logger = logging.getLogger(__name__)


class ProcedureName(StrEnum):
    """The closed set of procedures the router exposes."""

    HEALTH_CHECK = "healthCheck"
    PRIVATE_DATA = "privateData"
    POSTS_LIST = "posts.list"
    POSTS_BY_ID = "posts.byId"
    POSTS_BY_AUTHOR = "posts.byAuthor"
    POSTS_CREATE = "posts.create"
    SERVER_TIME = "serverTime"


class ProcedureKind(StrEnum):
    QUERY = "query"
    MUTATION = "mutation"


class Access(StrEnum):
    PUBLIC = "public"
    PROTECTED = "protected"


class _Input(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PostByIdInput(_Input):
    id: StrictStr


class PostByAuthorInput(_Input):
    author: StrictStr


class PostCreateInput(_Input):
    title: StrictStr = Field(min_length=1)
    content: StrictStr = Field(min_length=1)
    author: StrictStr = Field(min_length=1)


@dataclass(frozen=True)
class ProcedureContext:
    """Per-call context: the already-resolved session, or None."""

    session: Session | None = None


Handler = Callable[[ProcedureContext, Any], object]


@dataclass(frozen=True)
class ProcedureDefinition:
    """Declaration of one procedure and how it is dispatched."""

    name: ProcedureName
    kind: ProcedureKind
    access: Access
    handler: Handler
    input_model: type[BaseModel] | None = None


@dataclass
class ProcedureRouter:
    """Validates input, enforces access and dispatches named procedures."""

    store: PostStore
    timezone: str = "UTC"
    clock: Callable[[ZoneInfo], datetime] = datetime.now
    _procedures: dict[ProcedureName, ProcedureDefinition] = field(
        init=False, repr=False
    )

    def __post_init__(self) -> None:
        self._procedures = {
            definition.name: definition for definition in self._declare()
        }
        missing = set(ProcedureName) - set(self._procedures)
        if missing:
            raise RuntimeError(f"Procedures without a handler: {sorted(missing)}")

    def _declare(self) -> list[ProcedureDefinition]:
        query, mutation = ProcedureKind.QUERY, ProcedureKind.MUTATION
        public, protected = Access.PUBLIC, Access.PROTECTED
        return [
            ProcedureDefinition(
                ProcedureName.HEALTH_CHECK, query, public, self._health_check
            ),
            ProcedureDefinition(
                ProcedureName.PRIVATE_DATA, query, protected, self._private_data
            ),
            ProcedureDefinition(
                ProcedureName.POSTS_LIST, query, public, self._posts_list
            ),
            ProcedureDefinition(
                ProcedureName.POSTS_BY_ID,
                query,
                public,
                self._post_by_id,
                PostByIdInput,
            ),
            ProcedureDefinition(
                ProcedureName.POSTS_BY_AUTHOR,
                query,
                public,
                self._posts_by_author,
                PostByAuthorInput,
            ),
            ProcedureDefinition(
                ProcedureName.POSTS_CREATE,
                mutation,
                public,
                self._create_post,
                PostCreateInput,
            ),
            ProcedureDefinition(
                ProcedureName.SERVER_TIME, query, public, self._server_time
            ),
        ]

    def resolve(self, name: str) -> ProcedureDefinition:
        """Return the definition for a procedure name."""
        try:
            return self._procedures[ProcedureName(name)]
        except ValueError:
            raise ProcedureNotFoundError(
                f'No procedure found on path "{name}"', path=name
            ) from None

    def call(
        self,
        name: str,
        raw_input: object,
        context: ProcedureContext,
        *,
        kind: ProcedureKind | None = None,
    ) -> object:
        """Run a procedure by name and return its result.

        When ``kind`` is given the procedure must be of that kind, which is how
        transports keep mutations off the query channel.
        """
        definition = self.resolve(name)
        if kind is not None and definition.kind != kind:
            raise MethodNotSupportedError(
                f'Procedure "{name}" is a {definition.kind}, not a {kind}',
                path=name,
            )
        if definition.access is Access.PROTECTED and context.session is None:
            raise UnauthenticatedError("Authentication required", path=name)
        parsed = _validate_input(definition, raw_input)
        try:
            return definition.handler(context, parsed)
        except ProcedureError as exc:
            exc.path = exc.path or name
            raise
        except Exception as exc:
            _logger.exception("Procedure handler failed", extra={"procedure": name})
            raise InternalProcedureError("Internal server error", path=name) from exc

    def create_caller(self, context: ProcedureContext) -> ProcedureCaller:
        """Return an in-process caller bound to a context."""
        return ProcedureCaller(router=self, context=context)

    def _health_check(self, context: ProcedureContext, _: None) -> str:
        return "OK"

    def _private_data(
        self, context: ProcedureContext, _: None
    ) -> dict[str, object]:
        # Only reached through call(), which rejects protected calls without a session.
        session: Session = context.session  # type: ignore[assignment]
        return {"message": "This is private", "user": session.user}

    def _posts_list(self, context: ProcedureContext, _: None) -> list[Post]:
        return self.store.list()

    def _post_by_id(self, context: ProcedureContext, data: PostByIdInput) -> Post:
        post = self.store.find(data.id)
        if post is None:
            raise ResourceNotFoundError("Post not found")
        return post

    def _posts_by_author(
        self, context: ProcedureContext, data: PostByAuthorInput
    ) -> list[Post]:
        return self.store.filter_by_author(data.author)

    def _create_post(self, context: ProcedureContext, data: PostCreateInput) -> Post:
        post = self.store.create(
            title=data.title, content=data.content, author=data.author
        )
        _logger.info("Post created: id=%s", post.id)
        return post

    def _server_time(
        self, context: ProcedureContext, _: None
    ) -> dict[str, object]:
        return {
            "timestamp": self.clock(ZoneInfo(self.timezone)),
            "timezone": self.timezone,
        }


def _validate_input(definition: ProcedureDefinition, raw_input: object) -> Any:
    if definition.input_model is None:
        return None
    try:
        return definition.input_model.model_validate(raw_input)
    except ValidationError as exc:
        issues = [
            InputIssue(
                path=".".join(str(part) for part in error["loc"]),
                message=error["msg"],
            )
            for error in exc.errors()
        ]
        raise InvalidInputError(issues, path=definition.name.value) from None


@dataclass(frozen=True)
class ProcedureCaller:
    """In-process client that calls procedures with a fixed context."""

    router: ProcedureRouter
    context: ProcedureContext

    def call(self, name: str, raw_input: object = None) -> object:
        return self.router.call(name, raw_input, self.context)

    def health_check(self) -> str:
        return self.call(ProcedureName.HEALTH_CHECK)  # type: ignore[return-value]

    def private_data(self) -> dict[str, object]:
        return self.call(ProcedureName.PRIVATE_DATA)  # type: ignore[return-value]

    def posts_list(self) -> list[Post]:
        return self.call(ProcedureName.POSTS_LIST)  # type: ignore[return-value]

    def post_by_id(self, post_id: str) -> Post:
        return self.call(ProcedureName.POSTS_BY_ID, {"id": post_id})  # type: ignore[return-value]

    def posts_by_author(self, author: str) -> list[Post]:
        return self.call(ProcedureName.POSTS_BY_AUTHOR, {"author": author})  # type: ignore[return-value]

    def create_post(self, title: str, content: str, author: str) -> Post:
        return self.call(  # type: ignore[return-value]
            ProcedureName.POSTS_CREATE,
            {"title": title, "content": content, "author": author},
        )

    def server_time(self) -> dict[str, object]:
        return self.call(ProcedureName.SERVER_TIME)  # type: ignore[return-value]
