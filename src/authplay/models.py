"""Canonical Pydantic models for formulas, the catalog's unit of data.

A *formula* is a provider-specific authentication recipe: which auth
methods the provider supports, the endpoints and scopes each method needs,
the public OAuth clients bundled for it, and the APIs a resulting token can
call. These models are the single source of truth for that shape; the
catalog loader validates documents against them and the relay server
serialises them back out unchanged.

The models fall into two groups:

**Recipe models** -- one per nested object in a formula document:
    :class:`Register`, :class:`ScriptStep`, :class:`Method`,
    :class:`ApiVariable`, :class:`Api`, :class:`Client`, :class:`Identity`.

**Catalog models** -- :class:`Formula` and the :class:`FormulaSummary`
    returned by :meth:`~authplay.catalog.FormulaCatalog.list`.

All models use Pydantic v2 with ``extra="allow"`` so that keys added to
formula documents after this release survive a load/dump round trip.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


DEVICE_CODE = "device_code"
"""Method name of the OAuth 2.0 Device Authorization Grant (:rfc:`8628`)."""


# --- Recipe models ---


class Register(BaseModel):
    """Manual app-registration hint: where to go and what to click."""

    model_config = ConfigDict(extra="allow")

    url: str
    steps: list[str] = Field(default_factory=list)


class ScriptStep(BaseModel):
    """One step of a scripted (non-OAuth) credential acquisition."""

    model_config = ConfigDict(extra="allow")

    type: str
    value: Optional[str] = None
    note: Optional[str] = None


class Method(BaseModel):
    """How to obtain a credential with one auth method.

    Example::

        Method(
            label="Device code",
            endpoints={
                "device": "https://github.com/login/device/code",
                "token": "https://github.com/login/oauth/access_token",
            },
            scope="repo read:org",
        )
    """

    model_config = ConfigDict(extra="allow")

    label: Optional[str] = None
    endpoints: dict[str, str] = Field(default_factory=dict)
    scope: Optional[str] = Field(
        default=None, description="Space-delimited OAuth scope string"
    )
    register: Optional[Register] = None
    script: Optional[list[ScriptStep]] = None
    dynamic_registration: Optional[dict[str, Any]] = None


class ApiVariable(BaseModel):
    """A named placeholder inside an API's URLs (``{owner}``, ``{repo}``)."""

    model_config = ConfigDict(extra="allow")

    hint: Optional[str] = None
    example: Optional[str] = None


class Api(BaseModel):
    """An API surface that accepts tokens from some of the formula's methods."""

    model_config = ConfigDict(extra="allow")

    base_url: str
    auth_header: str = Field(
        description="Header template, e.g. 'Authorization: Bearer {token}'"
    )
    docs_url: Optional[str] = None
    spec_url: Optional[str] = None
    spec_type: Optional[str] = None
    methods: list[str] = Field(
        default_factory=list,
        description="Method names whose tokens are accepted by this API",
    )
    example_endpoint: Optional[str] = None
    variables: Optional[dict[str, ApiVariable]] = None


class Client(BaseModel):
    """A public OAuth client bundled with a formula."""

    model_config = ConfigDict(extra="allow")

    name: str
    id: str
    secret: Optional[str] = None
    source: Optional[str] = None
    methods: Optional[list[str]] = None
    redirect_uri: Optional[str] = None

    def supports(self, method: str) -> bool:
        """Return ``True`` if this client declares support for *method*."""
        return method in (self.methods or [])


class Identity(BaseModel):
    """Hint for telling apart several accounts on the same provider."""

    model_config = ConfigDict(extra="allow")

    label: Optional[str] = None
    hint: Optional[str] = None


# --- Catalog models ---


class Formula(BaseModel):
    """A named authentication recipe for one external API provider.

    ``id`` is the stable catalog key. The document's ``schema`` key is
    exposed as :attr:`schema_version` because ``schema`` is reserved on
    Pydantic models; dump with ``by_alias=True`` to get the original key
    back (see :meth:`to_wire`).
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_version: str = Field(default="v1", alias="schema")
    id: str = Field(min_length=1)
    label: str
    description: Optional[str] = None
    methods: dict[str, Method] = Field(default_factory=dict)
    apis: dict[str, Api] = Field(default_factory=dict)
    clients: list[Client] = Field(default_factory=list)
    identity: Optional[Identity] = None

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready dict served by the catalog read API."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def get_client(self, name: str) -> Optional[Client]:
        """Find a bundled client by name."""
        for client in self.clients:
            if client.name == name:
                return client
        return None

    @property
    def device_method(self) -> Optional[Method]:
        """The ``device_code`` method when it carries both required endpoints."""
        method = self.methods.get(DEVICE_CODE)
        if method is None:
            return None
        if not method.endpoints.get("device") or not method.endpoints.get("token"):
            return None
        return method

    def device_flow_client(self, name: Optional[str] = None) -> Optional[Client]:
        """Return the client to run the device flow with.

        Args:
            name: Specific client name. When omitted, the first client that
                lists ``device_code`` among its methods is used.

        Returns:
            The client, or ``None`` when no suitable client exists.
        """
        if name is not None:
            client = self.get_client(name)
            if client is not None and client.supports(DEVICE_CODE):
                return client
            return None
        for client in self.clients:
            if client.supports(DEVICE_CODE):
                return client
        return None

    def device_flow_api(self) -> Optional[tuple[str, Api]]:
        """Return the first ``(name, api)`` pair accepting device-code tokens."""
        for api_name, api in self.apis.items():
            if DEVICE_CODE in api.methods:
                return api_name, api
        return None

    @property
    def supports_playground(self) -> bool:
        """Whether the device-flow playground can run for this formula.

        All three must hold at once: a complete ``device_code`` method, a
        client declaring ``device_code``, and an API accepting its tokens.
        """
        return (
            self.device_method is not None
            and self.device_flow_client() is not None
            and self.device_flow_api() is not None
        )


class FormulaSummary(BaseModel):
    """The ``{id, label}`` pair returned by catalog listings."""

    id: str
    label: str
