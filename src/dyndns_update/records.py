"""Typed representation of provider DNS records and API response envelopes.

Records arrive as flat JSON objects tagged by a ``type`` field. Each known type
is validated into a payload variant; anything the provider adds later ends up
as ``UnhandledData`` so a list response never fails because of one exotic
record.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Tuple, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    StrictBool,
    Tag,
    model_validator,
)

# =============================================================================
# Validation
# =============================================================================

TTL_AUTOMATIC = 1
TTL_MIN = 60
TTL_MAX = 86400

MAX_ID_LENGTH = 32
MAX_NAME_LENGTH = 255
MIN_MESSAGE_CODE = 1000


def _check_ttl(value: int) -> int:
    if value == TTL_AUTOMATIC or TTL_MIN <= value <= TTL_MAX:
        return value
    raise ValueError(f"Invalid TTL int: {value}")


# 1 means "automatic"; everything else must lie in 60-86400
Ttl = Annotated[int, Field(strict=True), AfterValidator(_check_ttl)]

Identifier = Annotated[str, Field(max_length=MAX_ID_LENGTH)]

# =============================================================================
# Record Types
# =============================================================================


class RecordType(str, Enum):
    """Record types the provider accepts in a type filter."""

    A = "A"
    AAAA = "AAAA"
    CAA = "CAA"
    CERT = "CERT"
    CNAME = "CNAME"
    DNSKEY = "DNSKEY"
    DS = "DS"
    HTTPS = "HTTPS"
    LOC = "LOC"
    MX = "MX"
    NAPTR = "NAPTR"
    NS = "NS"
    PTR = "PTR"
    SMIMEA = "SMIMEA"
    SRV = "SRV"
    SSHFP = "SSHFP"
    SVCB = "SVCB"
    TLSA = "TLSA"
    TXT = "TXT"
    URI = "URI"


IP_RECORD_TYPES = frozenset({RecordType.A.value, RecordType.AAAA.value})
CONTENT_RECORD_TYPES = frozenset({"CNAME", "NS", "PTR", "TXT"})
# Types whose payload lives in a nested ``data`` object.
DATA_RECORD_TYPES = frozenset({"CAA", "CERT", "DNSKEY", "DS", "HTTPS", "URI"})
# Types the provider describes with ``data`` too, but which we only carry as content.
LOOSE_DATA_RECORD_TYPES = frozenset({"LOC", "NAPTR", "SMIMEA", "SRV", "SSHFP", "SVCB", "TLSA"})


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True)


class AddressData(_Payload):
    """Payload of A and AAAA records."""

    content: str
    proxied: Optional[bool] = None


class ContentData(_Payload):
    """Payload of CNAME, NS, PTR and TXT records."""

    content: str
    proxied: Optional[bool] = None


class MXData(_Payload):
    content: str
    priority: int = Field(strict=True, ge=0, le=65535)


class StructuredData(_Payload):
    """Payload of record types carrying a provider-defined ``data`` object."""

    content: str
    data: Optional[Dict[str, Any]] = None


class KeyedData(StructuredData):
    """StructuredData for the types that cannot be described without ``data``."""

    data: Dict[str, Any]


class UnhandledData(_Payload):
    """Payload of a record type this tool does not know about."""

    raw: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _keep_whole_record(cls, value: Any) -> Any:
        if isinstance(value, dict) and "type" in value:
            return {"raw": dict(value)}
        return value


_TAG_BY_CLASS = {
    AddressData: "address",
    ContentData: "content",
    MXData: "mx",
    StructuredData: "structured",
    KeyedData: "keyed",
    UnhandledData: "unhandled",
}


def _payload_tag(value: Any) -> Optional[str]:
    """Pick the payload variant for a raw record object or an already built payload."""
    if isinstance(value, _Payload):
        return _TAG_BY_CLASS.get(type(value))
    if not isinstance(value, dict):
        return None

    record_type = value.get("type")
    if not isinstance(record_type, str):
        return None
    if record_type in IP_RECORD_TYPES:
        return "address"
    if record_type in CONTENT_RECORD_TYPES:
        return "content"
    if record_type == RecordType.MX.value:
        return "mx"
    if record_type in DATA_RECORD_TYPES:
        return "keyed"
    if record_type in LOOSE_DATA_RECORD_TYPES:
        return "structured"
    return "unhandled"


TypeData = Annotated[
    Union[
        Annotated[AddressData, Tag("address")],
        Annotated[ContentData, Tag("content")],
        Annotated[MXData, Tag("mx")],
        Annotated[KeyedData, Tag("keyed")],
        Annotated[StructuredData, Tag("structured")],
        Annotated[UnhandledData, Tag("unhandled")],
    ],
    Discriminator(_payload_tag),
]

# =============================================================================
# Record
# =============================================================================


class Record(BaseModel):
    """One DNS record as listed by the provider. Never mutated locally."""

    model_config = ConfigDict(frozen=True)

    type: str
    name: str = Field(max_length=MAX_NAME_LENGTH)
    data: TypeData
    id: Optional[Identifier] = None
    comment: Optional[str] = None
    tags: Optional[Tuple[str, ...]] = None
    ttl: Optional[Ttl] = None
    zone_id: Optional[Identifier] = None
    zone_name: Optional[str] = None
    proxiable: Optional[bool] = None
    locked: Optional[bool] = None
    created_on: Optional[str] = None
    modified_on: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None

    @model_validator(mode="before")
    @classmethod
    def _split_payload(cls, value: Any) -> Any:
        # The provider sends the payload fields next to the common ones; hand
        # the whole object to the variant so it can pick its own fields.
        if isinstance(value, dict) and not isinstance(value.get("data"), _Payload):
            return {**value, "data": dict(value)}
        return value

    @property
    def is_ip_record(self) -> bool:
        return isinstance(self.data, AddressData)

    @property
    def content(self) -> Optional[str]:
        """Current content in string form, if the variant has one."""
        return getattr(self.data, "content", None)


# =============================================================================
# Response Envelopes
# =============================================================================


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: int = Field(strict=True, ge=MIN_MESSAGE_CODE)
    message: str = ""

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ResultInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int
    page: int
    per_page: int
    total_count: int


class ListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    result: List[Record]
    errors: List[Message]
    messages: List[Message]
    success: StrictBool
    result_info: Optional[ResultInfo] = None


class PatchResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    # A failed patch carries ``result: null``
    result: Optional[Record] = None
    errors: List[Message]
    messages: List[Message]
    success: StrictBool
