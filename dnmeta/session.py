# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Edit session state machine

An EditSession is an immutable value. Every change is expressed as an
action and applied by reduce_session(), which returns a new session and
never mutates its input (metadata models are copied before editing).

    EMPTY --SelectFile--> LOADING --ParseSuccess--> READY
                                  --ParseFailure--> ERROR
    READY, editing --SaveStart--> LOADING --SaveSuccess--> READY
                                          --SaveFailure--> ERROR (edits kept)

Copyright 2025 DNAi inc.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union

from dnmeta.exceptions import ErrorKind, InvalidTransitionError
from dnmeta.model import FieldValue, MetadataModel


class SessionState(Enum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class SourceFile:
    """A selected file. Its identity is fixed for the life of a session."""
    data: bytes = field(repr=False)
    filename: str
    mime: str = ''

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class EditSession:
    """
    Snapshot of one editing session.
    
    original_metadata is taken once when parsing succeeds and is only read
    by Reset. working_metadata holds the edits.
    """
    state: SessionState = SessionState.EMPTY
    token: int = 0
    source: Optional[SourceFile] = None
    original_metadata: Optional[MetadataModel] = None
    working_metadata: Optional[MetadataModel] = None
    is_editing: bool = False
    is_saving: bool = False
    last_error: Optional[ErrorKind] = None
    error_message: str = ''

    @property
    def is_loading(self) -> bool:
        return self.state == SessionState.LOADING


# ----------------------------------------------------------------------
# Actions
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class SelectFile:
    token: int
    source: SourceFile


@dataclass(frozen=True)
class RejectFile:
    """A selected file was refused before parsing (unsupported type)."""
    token: int
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class ParseSuccess:
    token: int
    metadata: MetadataModel


@dataclass(frozen=True)
class ParseFailure:
    token: int
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class SetEditing:
    editing: bool


@dataclass(frozen=True)
class UpdateField:
    category: str
    key: str
    value: FieldValue


@dataclass(frozen=True)
class AddCustomField:
    pass


@dataclass(frozen=True)
class RemoveCustomField:
    key: str


@dataclass(frozen=True)
class RenameCustomField:
    old_key: str
    new_key: str
    new_value: FieldValue


@dataclass(frozen=True)
class Reset:
    pass


@dataclass(frozen=True)
class SaveStart:
    token: int


@dataclass(frozen=True)
class SaveSuccess:
    token: int


@dataclass(frozen=True)
class SaveFailure:
    token: int
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class ClearError:
    pass


Action = Union[
    SelectFile, RejectFile, ParseSuccess, ParseFailure, SetEditing, UpdateField,
    AddCustomField, RemoveCustomField, RenameCustomField, Reset,
    SaveStart, SaveSuccess, SaveFailure, ClearError,
]

MUTATIONS = (UpdateField, AddCustomField, RemoveCustomField, RenameCustomField)
TOKEN_ACTIONS = (ParseSuccess, ParseFailure, SaveStart, SaveSuccess, SaveFailure)


def _require(session: EditSession, condition: bool, action: Action) -> None:
    if not condition:
        raise InvalidTransitionError(
            f"{type(action).__name__} is not valid in state {session.state.name}"
        )


def _mutate(session: EditSession, action: Action) -> EditSession:
    working = session.working_metadata.copy()
    if isinstance(action, UpdateField):
        working.update_field(action.category, action.key, action.value)
    elif isinstance(action, AddCustomField):
        working.add_custom_field()
    elif isinstance(action, RemoveCustomField):
        working.remove_custom_field(action.key)
    else:
        working.rename_custom_field(action.old_key, action.new_key, action.new_value)
    return replace(session, working_metadata=working)


def reduce_session(session: EditSession, action: Action) -> EditSession:
    """
    Apply an action to a session.
    
    Completions carrying a token other than the session's are stale and
    return the session unchanged.
    
    Raises:
        InvalidTransitionError: If the action is not accepted in the current state
        DuplicateFieldKeyError: If RenameCustomField targets a key already in use
    """
    if isinstance(action, (SelectFile, RejectFile)):
        if action.token <= session.token:
            raise InvalidTransitionError("Session tokens must increase with every selection")
        if isinstance(action, RejectFile):
            return EditSession(token=action.token, last_error=action.kind,
                               error_message=action.message)
        return EditSession(state=SessionState.LOADING, token=action.token, source=action.source)

    if isinstance(action, TOKEN_ACTIONS) and action.token != session.token:
        return session

    if isinstance(action, ParseSuccess):
        _require(session, session.state == SessionState.LOADING and not session.is_saving, action)
        return replace(
            session,
            state=SessionState.READY,
            original_metadata=action.metadata.copy(),
            working_metadata=action.metadata.copy(),
        )

    if isinstance(action, ParseFailure):
        _require(session, session.state == SessionState.LOADING and not session.is_saving, action)
        return EditSession(
            state=SessionState.ERROR,
            token=session.token,
            last_error=action.kind,
            error_message=action.message,
        )

    if isinstance(action, SetEditing):
        _require(session, session.state == SessionState.READY, action)
        return replace(session, is_editing=action.editing)

    if isinstance(action, MUTATIONS):
        _require(session, session.state == SessionState.READY, action)
        return _mutate(session, action)

    if isinstance(action, Reset):
        _require(session, session.state == SessionState.READY, action)
        return replace(session, working_metadata=session.original_metadata.copy(), is_editing=False)

    if isinstance(action, SaveStart):
        retry = session.state == SessionState.ERROR and session.working_metadata is not None
        _require(session, (session.state == SessionState.READY or retry) and session.is_editing, action)
        return replace(session, state=SessionState.LOADING, is_saving=True)

    if isinstance(action, SaveSuccess):
        _require(session, session.state == SessionState.LOADING and session.is_saving, action)
        return replace(
            session,
            state=SessionState.READY,
            is_saving=False,
            is_editing=False,
            last_error=None,
            error_message='',
        )

    if isinstance(action, SaveFailure):
        _require(session, session.state == SessionState.LOADING and session.is_saving, action)
        return replace(
            session,
            state=SessionState.ERROR,
            is_saving=False,
            last_error=action.kind,
            error_message=action.message,
        )

    if isinstance(action, ClearError):
        _require(session, session.state == SessionState.ERROR, action)
        if session.working_metadata is None:
            return EditSession(token=session.token)
        return replace(session, state=SessionState.READY, last_error=None, error_message='')

    raise InvalidTransitionError(f"Unknown action: {action!r}")
