"""Reading JSON request bodies and writing JSON responses.

``ReadRespond`` is the single entry point handlers use:

    codec = ReadRespond(max_bytes=1 << 20)

    payload = await codec.read_json(request, CreateUser)   # strict, single value
    await codec.write_json(w, 201, JSONResponse.success(payload))
    await codec.write_error(w, exc)                         # 400 by default

Decoding is strict: the target type's fields are the allow-list, and anything
but whitespace after the first JSON value is rejected. Failures are raised to
the handler as ``jsonexchange.exceptions`` errors; nothing is answered
automatically.
"""

import dataclasses
import json
import re
import types
from collections.abc import Mapping, Sequence
from functools import lru_cache
from typing import (
    Annotated,
    Any,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
    is_typeddict,
)

from pydantic import AliasChoices, BaseModel, TypeAdapter, ValidationError
from pydantic.fields import FieldInfo
from pydantic_core import to_jsonable_python
from starlette.background import BackgroundTask
from starlette.requests import Request

from jsonexchange.body import read_body
from jsonexchange.config import CodecSettings
from jsonexchange.exceptions import (
    MalformedJSONError,
    SchemaMismatchError,
    SerializationError,
    TrailingDataError,
    UnknownFieldError,
)
from jsonexchange.logging import get_logger
from jsonexchange.responses import CodecResponse
from jsonexchange.schemas.envelope import JSONResponse
from jsonexchange.writer import ResponseWriter

T = TypeVar("T")

logger = get_logger(__name__)

CONTENT_TYPE = "application/json;charset=utf-8"
DEFAULT_ERROR_STATUS = 400

# Flush encoded output to the transport once this many bytes are buffered
_FLUSH_SIZE = 64 * 1024

_WHITESPACE = re.compile(r"[ \t\n\r]*")
_TOO_DEEP = "body exceeds the maximum JSON nesting depth"

Headers = Mapping[str, str | Sequence[str]]


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid character '{name[0]}' looking for beginning of value")


_decoder = json.JSONDecoder(parse_constant=_reject_constant)
_encoder = json.JSONEncoder(
    ensure_ascii=False,
    separators=(",", ":"),
    allow_nan=False,
    default=to_jsonable_python,
)


@lru_cache(maxsize=256)
def _adapter(target: Any) -> TypeAdapter[Any]:
    return TypeAdapter(target)


def _accepted_keys(fields: Mapping[str, FieldInfo], config: Mapping[str, Any]) -> dict[str, Any]:
    """Map every key pydantic fills a field from to that field's annotation.

    A field's own name counts only when it has no alias or the config
    enables validation by name; aliases count unless validation by alias is off.
    """
    by_name = bool(config.get("validate_by_name") or config.get("populate_by_name"))
    by_alias = config.get("validate_by_alias", True)
    keys: dict[str, Any] = {}
    for name, field in fields.items():
        aliases: list[str] = []
        if field.alias:
            aliases.append(field.alias)
        if isinstance(field.validation_alias, str):
            aliases.append(field.validation_alias)
        elif isinstance(field.validation_alias, AliasChoices):
            aliases.extend(c for c in field.validation_alias.choices if isinstance(c, str))
        if not aliases or by_name or not by_alias:
            keys[name] = field.annotation
        if by_alias:
            for alias in aliases:
                keys[alias] = field.annotation
    return keys


def _declared_keys(annotation: Any) -> dict[str, Any] | None:
    """Keys a record type accepts, or None when ``annotation`` is not a record.

    Records are pydantic models, pydantic and stdlib dataclasses, and TypedDicts.
    """
    if not isinstance(annotation, type):
        return None
    if issubclass(annotation, BaseModel):
        return _accepted_keys(annotation.model_fields, annotation.model_config)
    if dataclasses.is_dataclass(annotation):
        pydantic_fields = getattr(annotation, "__pydantic_fields__", None)
        if pydantic_fields is not None:
            config = getattr(annotation, "__pydantic_config__", None) or {}
            return _accepted_keys(pydantic_fields, config)
        hints = get_type_hints(annotation)
        return {field.name: hints.get(field.name, Any) for field in dataclasses.fields(annotation)}
    if is_typeddict(annotation):
        return dict(get_type_hints(annotation))
    return None


_CONTAINER_ORIGINS = (
    list,
    set,
    frozenset,
    tuple,
    dict,
    Sequence,
    Mapping,
    Annotated,
    Union,
    types.UnionType,
)


def _is_structured(annotation: Any) -> bool:
    if _declared_keys(annotation) is not None:
        return True
    return get_origin(annotation) in _CONTAINER_ORIGINS


def find_unknown_field(value: Any, annotation: Any) -> str | None:
    """Return the first key in ``value`` that ``annotation`` does not declare.

    Walks nested models, dataclasses, TypedDicts, lists, tuples, sets, dict
    values, Annotated and Optional/Union annotations. Other annotations accept
    any keys.
    """
    declared = _declared_keys(annotation)
    if declared is not None:
        if not isinstance(value, dict):
            return None
        for key, item in value.items():
            if key not in declared:
                return key
            unknown = find_unknown_field(item, declared[key])
            if unknown is not None:
                return unknown
        return None

    origin = get_origin(annotation)
    args = get_args(annotation)
    if origin is Annotated:
        return find_unknown_field(value, args[0])
    if origin is Union or origin is types.UnionType:
        # Accept the value if any structured member of the union declares all its keys
        candidates = [arg for arg in args if _is_structured(arg)]
        found = None
        for arg in candidates:
            found = find_unknown_field(value, arg)
            if found is None:
                return None
        return found
    if origin in (list, set, frozenset, Sequence) and isinstance(value, list) and args:
        for item in value:
            unknown = find_unknown_field(item, args[0])
            if unknown is not None:
                return unknown
    elif origin is tuple and isinstance(value, list) and args:
        element_types = [args[0]] * len(value) if args[-1] is Ellipsis else args
        for item, element_type in zip(value, element_types, strict=False):
            unknown = find_unknown_field(item, element_type)
            if unknown is not None:
                return unknown
    elif origin in (dict, Mapping) and isinstance(value, dict) and len(args) == 2:
        for item in value.values():
            unknown = find_unknown_field(item, args[1])
            if unknown is not None:
                return unknown
    return None


def _mismatch_message(exc: ValidationError) -> str:
    first = exc.errors(include_url=False)[0]
    location = ".".join(str(part) for part in first["loc"])
    if location:
        return f'json: invalid value for field "{location}": {first["msg"]}'
    return f"json: invalid value: {first['msg']}"


class ReadRespond:
    """Reads one JSON value from a request and writes JSON responses.

    Immutable after construction and safe to share between concurrent requests.
    ``max_bytes`` given as a keyword overrides the value from ``settings``.
    """

    __slots__ = ("_settings",)

    def __init__(
        self, settings: CodecSettings | None = None, *, max_bytes: int | None = None
    ) -> None:
        if settings is None:
            settings = CodecSettings()
        if max_bytes is not None:
            settings = CodecSettings(**{**settings.model_dump(), "max_bytes": max_bytes})
        self._settings = settings

    def __repr__(self) -> str:
        return f"ReadRespond(max_bytes={self.max_bytes})"

    @property
    def settings(self) -> CodecSettings:
        return self._settings

    @property
    def max_bytes(self) -> int:
        return self._settings.max_bytes

    async def read_json(self, request: Request, target: type[T]) -> T:
        """Decode exactly one JSON value from the request body into ``target``.

        Raises:
            BodyTooLargeError: the body exceeds ``max_bytes`` (when positive).
            MalformedJSONError: the body is empty or not valid JSON.
            UnknownFieldError: an object carries a key the target does not declare.
            SchemaMismatchError: a value has the wrong type for its field.
            TrailingDataError: anything but whitespace follows the first value.
        """
        raw = await read_body(request, self.max_bytes)
        text = raw.decode("utf-8", errors="replace")

        start = _WHITESPACE.match(text).end()  # type: ignore[union-attr]
        if start == len(text):
            raise MalformedJSONError("body must not be empty", position=start)
        try:
            value, end = _decoder.raw_decode(text, start)
        except json.JSONDecodeError as exc:
            raise MalformedJSONError(
                f"body contains badly-formed JSON (at character {exc.pos}): {exc.msg}",
                position=exc.pos,
            ) from exc
        except ValueError as exc:
            raise MalformedJSONError(f"body contains badly-formed JSON: {exc}") from exc
        except RecursionError as exc:
            raise MalformedJSONError(_TOO_DEEP) from exc

        try:
            unknown = find_unknown_field(value, target)
        except RecursionError as exc:
            raise MalformedJSONError(_TOO_DEEP) from exc
        if unknown is not None:
            raise UnknownFieldError(unknown)

        try:
            result = _adapter(target).validate_json(text[start:end], strict=True)
        except ValidationError as exc:
            raise SchemaMismatchError(
                _mismatch_message(exc), errors=exc.errors(include_url=False)
            ) from exc

        if _WHITESPACE.match(text, end).end() != len(text):  # type: ignore[union-attr]
            raise TrailingDataError()

        logger.debug("json_body_decoded", target=getattr(target, "__name__", str(target)))
        return result

    async def write_json(
        self,
        w: ResponseWriter,
        status_code: int,
        data: Any,
        headers: Headers | None = None,
    ) -> None:
        """Write ``data`` as JSON with ``status_code`` and optional extra headers.

        Extra headers replace existing values for the same key; Content-Type is
        always forced to ``application/json;charset=utf-8``. The status line is
        committed before serialization starts, so a SerializationError raised
        here arrives after the status has been sent.
        """
        if headers:
            for key, value in headers.items():
                if isinstance(value, str):
                    w.headers[key] = value
                else:
                    del w.headers[key]
                    for item in value:
                        w.headers.append(key, item)

        w.headers["Content-Type"] = CONTENT_TYPE
        await w.write_header(status_code)

        buffer = bytearray()
        try:
            for chunk in _encoder.iterencode(data):
                buffer += chunk.encode("utf-8")
                if len(buffer) >= _FLUSH_SIZE:
                    await w.write(bytes(buffer))
                    buffer.clear()
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"json: unsupported value: {exc}") from exc
        buffer += b"\n"
        await w.write(bytes(buffer))

    async def write_error(
        self,
        w: ResponseWriter,
        err: BaseException,
        status_code: int = DEFAULT_ERROR_STATUS,
    ) -> None:
        """Write ``{"error": true, "message": str(err)}`` with ``status_code`` (400 by default)."""
        await self.write_json(w, status_code, self.error_envelope(err))

    def error_envelope(self, err: BaseException) -> JSONResponse:
        """Build the failure envelope ``write_error`` sends for ``err``."""
        return JSONResponse.failure(str(err))

    def respond(
        self,
        status_code: int,
        data: Any,
        headers: Headers | None = None,
        background: BackgroundTask | None = None,
    ) -> CodecResponse:
        """Wrap ``write_json`` in a Response an endpoint can return."""
        return CodecResponse(self, status_code, data, headers=headers, background=background)

    def respond_error(
        self, err: BaseException, status_code: int = DEFAULT_ERROR_STATUS
    ) -> CodecResponse:
        """Wrap ``write_error`` in a Response an endpoint can return."""
        return CodecResponse(self, status_code, self.error_envelope(err))
