from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, ClassVar, Dict, List, Literal, Optional, Tuple
import re

Method = Literal["get", "post", "put", "delete"]


class ProxyBody(BaseModel):
    """Base for inbound proxy bodies. Field aliases are the camelCase wire names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # Attributes that must be present and non-blank
    required: ClassVar[Tuple[str, ...]] = ()

    def missing_fields(self) -> List[str]:
        missing = []
        for name in self.required:
            value = getattr(self, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(type(self).model_fields[name].alias or name)
        return missing


class DataOperationBody(ProxyBody):
    endpoint: Optional[str] = None
    method: Method = "get"
    data: Optional[Dict[str, Any]] = None

    @field_validator("method", mode="before")
    @classmethod
    def lowercase_method(cls, value):
        if value is None:
            return "get"
        return value.lower() if isinstance(value, str) else value


def _stringify_id(value):
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


# Values sent as HTTP header values upstream
_HEADER_VALUE_RE = re.compile(r"^[\x20-\x7e]*$")


def _header_value(value):
    if isinstance(value, str) and not _HEADER_VALUE_RE.match(value):
        raise ValueError("must contain only printable ASCII characters")
    return value


class QBOTokenRequest(ProxyBody):
    required = ("code", "redirect_uri")

    code: Optional[str] = None
    redirect_uri: Optional[str] = Field(default=None, alias="redirectUri")
    client_id: Optional[str] = Field(default=None, alias="clientId")
    client_secret: Optional[str] = Field(default=None, alias="clientSecret")

    @field_validator("client_id", "client_secret")
    @classmethod
    def credentials_are_header_safe(cls, value):
        return _header_value(value)


class QBORefreshRequest(ProxyBody):
    required = ("refresh_token",)

    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    client_id: Optional[str] = Field(default=None, alias="clientId")
    client_secret: Optional[str] = Field(default=None, alias="clientSecret")

    @field_validator("client_id", "client_secret")
    @classmethod
    def credentials_are_header_safe(cls, value):
        return _header_value(value)


class QBODataOperationRequest(DataOperationBody):
    required = ("access_token", "realm_id", "endpoint")

    access_token: Optional[str] = Field(default=None, alias="accessToken")
    realm_id: Optional[str] = Field(default=None, alias="realmId")

    @field_validator("realm_id", mode="before")
    @classmethod
    def realm_id_to_str(cls, value):
        return _stringify_id(value)

    @field_validator("access_token")
    @classmethod
    def token_is_header_safe(cls, value):
        return _header_value(value)


class QBOTestConnectionRequest(ProxyBody):
    required = ("access_token", "realm_id")

    access_token: Optional[str] = Field(default=None, alias="accessToken")
    realm_id: Optional[str] = Field(default=None, alias="realmId")

    @field_validator("realm_id", mode="before")
    @classmethod
    def realm_id_to_str(cls, value):
        return _stringify_id(value)

    @field_validator("access_token")
    @classmethod
    def token_is_header_safe(cls, value):
        return _header_value(value)


class StripeProxyRequest(DataOperationBody):
    required = ("endpoint",)

    access_token: Optional[str] = Field(default=None, alias="accessToken")
    secret_key: Optional[str] = Field(default=None, alias="secretKey")
    account_id: Optional[str] = Field(default=None, alias="accountId")

    @field_validator("access_token", "secret_key", "account_id")
    @classmethod
    def credentials_are_header_safe(cls, value):
        return _header_value(value)

    @property
    def token(self) -> Optional[str]:
        return self.access_token or self.secret_key


class StripeTokenRequest(ProxyBody):
    required = ("code",)

    code: Optional[str] = None
    grant_type: str = Field(default="authorization_code", alias="grantType")


class BackendProxyRequest(DataOperationBody):
    required = ("endpoint", "auth_token")

    auth_token: Optional[str] = Field(default=None, alias="authToken")

    @field_validator("auth_token")
    @classmethod
    def token_is_header_safe(cls, value):
        return _header_value(value)


class HealthResponse(BaseModel):
    status: str
    name: str
    version: str
    timestamp: str
    endpoints: Dict[str, Dict[str, str]]
