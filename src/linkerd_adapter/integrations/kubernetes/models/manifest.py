"""Models for decoded manifest documents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from linkerd_adapter.integrations.kubernetes.exceptions import KubernetesError


class GroupVersionKind(NamedTuple):
    """API group, version and kind triple identifying a resource type."""

    group: str
    version: str
    kind: str

    @classmethod
    def from_api_version(cls, api_version: str, kind: str) -> GroupVersionKind:
        """Split an ``apiVersion`` such as ``apps/v1`` or ``v1``."""
        group, _, version = api_version.rpartition("/")
        return cls(group=group, version=version, kind=kind)

    @property
    def api_version(self) -> str:
        """Recombined ``apiVersion`` string."""
        return f"{self.group}/{self.version}" if self.group else self.version

    def __str__(self) -> str:
        return f"{self.api_version}, Kind={self.kind}"


class ManifestMetadata(BaseModel):
    """The metadata fields the adapter relies on."""

    model_config = ConfigDict(extra="ignore")

    name: StrictStr = Field(min_length=1)
    namespace: StrictStr | None = None


class ManifestHeader(BaseModel):
    """Type header every decodable document must carry."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    api_version: StrictStr = Field(alias="apiVersion", min_length=1)
    kind: StrictStr = Field(min_length=1)
    metadata: ManifestMetadata


@dataclass
class ManifestDocument:
    """One decoded document of a manifest batch.

    ``content`` is the full attribute tree exactly as decoded, in key order.
    """

    index: int
    raw: str
    gvk: GroupVersionKind
    content: dict[str, Any]

    @property
    def kind(self) -> str:
        return self.gvk.kind

    @property
    def name(self) -> str:
        return str(self.content["metadata"]["name"])

    @property
    def namespace(self) -> str | None:
        namespace = self.content["metadata"].get("namespace")
        return str(namespace) if namespace else None

    @property
    def identifier(self) -> str:
        """``Kind/name`` identifier used in logs and results."""
        return f"{self.kind}/{self.name}"


@dataclass
class DecodeResult:
    """Outcome of decoding one fragment: a document or a skip reason."""

    index: int
    document: ManifestDocument | None = None
    error: KubernetesError | None = None

    @property
    def ok(self) -> bool:
        return self.document is not None
