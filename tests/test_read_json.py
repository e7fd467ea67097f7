"""Tests for ReadRespond.read_json."""

from dataclasses import dataclass
from typing import TypedDict

import pytest
from pydantic import BaseModel, ConfigDict, Field
from pydantic.dataclasses import dataclass as pydantic_dataclass

from jsonexchange.codec import ReadRespond
from jsonexchange.exceptions import (
    BodyTooLargeError,
    DecodeError,
    MalformedJSONError,
    SchemaMismatchError,
    TrailingDataError,
    UnknownFieldError,
)
from tests.factories import CountingReceive, make_request


class Named(BaseModel):
    Name: str


class Address(BaseModel):
    city: str
    zip_code: str = Field(alias="zipCode")


class Customer(BaseModel):
    id: int
    email: str
    active: bool
    score: float
    tags: list[str]
    address: Address
    previous: list[Address] = []
    billing: Address | None = None


class AddressByName(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    city: str
    zip_code: str = Field("", alias="zipCode")


@dataclass
class NamedRecord:
    Name: str


class RecordHolder(BaseModel):
    inner: NamedRecord


class NamedDict(TypedDict):
    Name: str


class DictHolder(BaseModel):
    inner: NamedDict


@pydantic_dataclass
class AddressRecord:
    city: str
    zip_code: str = Field("", alias="zipCode")


class Node(BaseModel):
    child: "Node | None" = None


CUSTOMER_BODY = (
    b'{"id": 7, "email": "ada@example.com", "active": true, "score": 9.5,'
    b' "tags": ["vip"], "address": {"city": "Berlin", "zipCode": "10115"},'
    b' "previous": [{"city": "Paris", "zipCode": "75001"}]}'
)


# ---------------------------------------------------------------------------
# 1. Single well-formed object
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_reads_single_object(codec: ReadRespond) -> None:
    named = await codec.read_json(make_request(b'{"Name":"a"}'), Named)
    assert named.Name == "a"


@pytest.mark.asyncio
async def test_reads_all_supported_types(codec: ReadRespond) -> None:
    customer = await codec.read_json(make_request(CUSTOMER_BODY), Customer)

    assert customer.id == 7
    assert customer.email == "ada@example.com"
    assert customer.active is True
    assert customer.score == 9.5
    assert customer.tags == ["vip"]
    assert customer.address == Address(city="Berlin", zipCode="10115")
    assert customer.previous[0].city == "Paris"
    assert customer.billing is None


@pytest.mark.asyncio
async def test_reads_body_split_across_chunks(codec: ReadRespond) -> None:
    request = make_request(b'{"Na', b'me":', b'"split"}')
    named = await codec.read_json(request, Named)
    assert named.Name == "split"


@pytest.mark.asyncio
async def test_surrounding_whitespace_is_allowed(codec: ReadRespond) -> None:
    named = await codec.read_json(make_request(b'  \n{"Name":"a"}\r\n\t '), Named)
    assert named.Name == "a"


@pytest.mark.asyncio
async def test_non_object_targets(codec: ReadRespond) -> None:
    assert await codec.read_json(make_request(b"[1, 2, 3]"), list[int]) == [1, 2, 3]
    assert await codec.read_json(make_request(b'{"a": 1}'), dict[str, int]) == {"a": 1}


# ---------------------------------------------------------------------------
# 2. Unknown fields
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_misspelled_field_is_rejected(codec: ReadRespond) -> None:
    with pytest.raises(UnknownFieldError) as exc_info:
        await codec.read_json(make_request(b'{"Nme":"a"}'), Named)

    assert exc_info.value.field == "Nme"
    assert str(exc_info.value) == 'json: unknown field "Nme"'


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body, field",
    [
        (b'{"Name":"a","extra":1}', "extra"),
        (CUSTOMER_BODY[:-1] + b', "nickname": "ada"}', "nickname"),
        (CUSTOMER_BODY.replace(b'"city": "Berlin"', b'"city": "Berlin", "street": "x"'), "street"),
        (CUSTOMER_BODY.replace(b'"city": "Paris"', b'"city": "Paris", "floor": 2'), "floor"),
        (CUSTOMER_BODY[:-1] + b', "billing": {"city": "Rome", "zipCode": "1", "x": 0}}', "x"),
    ],
    ids=["top_level", "customer_level", "nested_model", "model_in_list", "optional_model"],
)
async def test_unknown_field_anywhere_is_rejected(
    codec: ReadRespond, body: bytes, field: str
) -> None:
    target = Named if body.startswith(b'{"Name"') else Customer
    with pytest.raises(UnknownFieldError) as exc_info:
        await codec.read_json(make_request(body), target)
    assert exc_info.value.field == field


@pytest.mark.asyncio
async def test_alias_is_a_known_field(codec: ReadRespond) -> None:
    address = await codec.read_json(make_request(b'{"city":"Oslo","zipCode":"0150"}'), Address)
    assert address.zip_code == "0150"


@pytest.mark.asyncio
async def test_field_name_of_aliased_field_is_unknown(codec: ReadRespond) -> None:
    with pytest.raises(UnknownFieldError) as exc_info:
        await codec.read_json(make_request(b'{"city":"Oslo","zip_code":"0150"}'), Address)
    assert exc_info.value.field == "zip_code"


@pytest.mark.asyncio
async def test_field_name_is_known_when_model_validates_by_name(codec: ReadRespond) -> None:
    address = await codec.read_json(
        make_request(b'{"city":"Oslo","zip_code":"0150"}'), AddressByName
    )
    assert address.zip_code == "0150"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body, target, field",
    [
        (b'{"Name":"a","extra":1}', NamedRecord, "extra"),
        (b'{"inner":{"Name":"a","extra":1}}', RecordHolder, "extra"),
        (b'{"Name":"a","extra":1}', NamedDict, "extra"),
        (b'{"inner":{"Name":"a","extra":1}}', DictHolder, "extra"),
        (b'{"city":"Oslo","zipCode":"1","floor":2}', AddressRecord, "floor"),
        (b'{"city":"Oslo","zip_code":"1"}', AddressRecord, "zip_code"),
    ],
    ids=[
        "dataclass",
        "dataclass_in_model",
        "typeddict",
        "typeddict_in_model",
        "pydantic_dataclass",
        "pydantic_dataclass_field_name",
    ],
)
async def test_unknown_field_in_non_model_records_is_rejected(
    codec: ReadRespond, body: bytes, target: type, field: str
) -> None:
    with pytest.raises(UnknownFieldError) as exc_info:
        await codec.read_json(make_request(body), target)
    assert exc_info.value.field == field


@pytest.mark.asyncio
async def test_non_model_records_decode(codec: ReadRespond) -> None:
    assert await codec.read_json(make_request(b'{"Name":"a"}'), NamedRecord) == NamedRecord("a")
    holder = await codec.read_json(make_request(b'{"inner":{"Name":"b"}}'), DictHolder)
    assert holder.inner == {"Name": "b"}


# ---------------------------------------------------------------------------
# 3. Trailing content
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [b'{"Name":"a"}{"extra":1}', b'{"Name":"a"} {"Name":"b"}', b'{"Name":"a"}{}', b'{"Name":"a"}x'],
    ids=["second_object", "second_valid_object", "empty_object", "garbage"],
)
async def test_trailing_content_is_rejected(codec: ReadRespond, body: bytes) -> None:
    with pytest.raises(TrailingDataError, match="body must contain a single JSON object"):
        await codec.read_json(make_request(body), Named)


# ---------------------------------------------------------------------------
# 4. Syntax and type errors
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [b'{"Name":', b"{'Name': 'a'}", b'{"Name":"a",}', b"NaN", b"[Infinity]"],
    ids=["truncated", "single_quotes", "trailing_comma", "nan", "infinity"],
)
async def test_malformed_json_is_rejected(codec: ReadRespond, body: bytes) -> None:
    with pytest.raises(MalformedJSONError):
        await codec.read_json(make_request(body), Named if body.startswith(b"{") else list)


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"", b"  \n "], ids=["empty", "whitespace_only"])
async def test_empty_body_is_rejected(codec: ReadRespond, body: bytes) -> None:
    with pytest.raises(MalformedJSONError, match="body must not be empty"):
        await codec.read_json(make_request(body), Named)


@pytest.mark.asyncio
async def test_wrong_type_is_a_schema_mismatch(codec: ReadRespond) -> None:
    with pytest.raises(SchemaMismatchError) as exc_info:
        await codec.read_json(make_request(b'{"Name": 5}'), Named)

    assert exc_info.value.errors[0]["loc"] == ("Name",)
    assert 'field "Name"' in exc_info.value.message


@pytest.mark.asyncio
async def test_numeric_strings_are_not_coerced(codec: ReadRespond) -> None:
    with pytest.raises(SchemaMismatchError):
        body = CUSTOMER_BODY.replace(b'"id": 7', b'"id": "7"')
        await codec.read_json(make_request(body), Customer)


@pytest.mark.asyncio
async def test_schema_error_wins_over_trailing_content(codec: ReadRespond) -> None:
    with pytest.raises(SchemaMismatchError):
        await codec.read_json(make_request(b'{"Name": 1}{"Name": 2}'), Named)


@pytest.mark.asyncio
async def test_decode_errors_share_a_base_class(codec: ReadRespond) -> None:
    with pytest.raises(DecodeError) as exc_info:
        await codec.read_json(make_request(b"{"), Named)
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("target", [list, Node], ids=["list", "self_referencing_model"])
async def test_excessive_nesting_is_malformed(codec: ReadRespond, target: type) -> None:
    if target is list:
        body = b"[" * 100_000 + b"]" * 100_000
    else:
        body = b'{"child":' * 100_000 + b"null" + b"}" * 100_000
    with pytest.raises(MalformedJSONError, match="nesting depth"):
        await codec.read_json(make_request(body), target)


# ---------------------------------------------------------------------------
# 5. Body size limit
# ---------------------------------------------------------------------------
BODY = b'{"Name":"abcdef"}'


@pytest.mark.asyncio
async def test_body_at_limit_is_accepted() -> None:
    codec = ReadRespond(max_bytes=len(BODY))
    named = await codec.read_json(make_request(BODY), Named)
    assert named.Name == "abcdef"


@pytest.mark.asyncio
async def test_body_over_limit_is_rejected() -> None:
    codec = ReadRespond(max_bytes=len(BODY) - 1)
    with pytest.raises(BodyTooLargeError) as exc_info:
        await codec.read_json(make_request(BODY), Named)

    assert exc_info.value.status_code == 413
    assert exc_info.value.limit == len(BODY) - 1
    assert str(exc_info.value) == "http: request body too large"


@pytest.mark.asyncio
async def test_zero_limit_means_unlimited() -> None:
    codec = ReadRespond(max_bytes=0)
    big = b'{"Name":"' + b"x" * 100_000 + b'"}'
    named = await codec.read_json(make_request(big), Named)
    assert len(named.Name) == 100_000


@pytest.mark.asyncio
async def test_reading_stops_once_limit_is_crossed() -> None:
    receive = CountingReceive(*([b"x" * 5] * 10))
    codec = ReadRespond(max_bytes=12)

    with pytest.raises(BodyTooLargeError):
        await codec.read_json(make_request(receive=receive), Named)

    assert receive.calls == 3
    assert len(receive.messages) == 7


@pytest.mark.asyncio
async def test_oversize_check_precedes_parsing() -> None:
    codec = ReadRespond(max_bytes=4)
    with pytest.raises(BodyTooLargeError):
        await codec.read_json(make_request(b"not json at all"), Named)
