"""Registry of the operations the adapter accepts.

The same table drives both what :func:`supported_operations` advertises and
how :class:`~linkerd_adapter.services.mesh.orchestrator.MeshOrchestrator`
dispatches a request.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from linkerd_adapter.services.mesh.exceptions import OperationValidationError

MESH_NAME = "Linkerd"


class OpCategory(str, Enum):
    """Operation categories as advertised to clients."""

    INSTALL = "INSTALL"
    SAMPLE_APPLICATION = "SAMPLE_APPLICATION"
    CONFIGURE = "CONFIGURE"
    VALIDATE = "VALIDATE"
    CUSTOM = "CUSTOM"


class ManifestSourceKind(str, Enum):
    """Where an operation's manifest comes from."""

    CUSTOM = "custom"
    INSTALLER = "installer"
    TEMPLATE = "template"
    REMOTE = "remote"


class SupportedOperation(BaseModel):
    """Static description of one operation key."""

    model_config = ConfigDict(frozen=True)

    key: str
    display_name: str
    category: OpCategory
    source: ManifestSourceKind
    manifest: str | None = None
    app_name: str | None = None
    service_name: str | None = None

    @property
    def is_async(self) -> bool:
        """Whether the operation runs as a background task."""
        return self.source is not ManifestSourceKind.CUSTOM


CUSTOM_OPERATION = "custom"
INSTALL_LINKERD = "linkerd_install"
BOOKS_APP = "linkerd_books_app"
HTTP_BIN_APP = "linkerd_http_bin_app"
BOOK_INFO_APP = "linkerd_istio_book_info_app"
EMOJIVOTO_APP = "linkerd_emojivoto_app"

SUPPORTED_OPERATIONS: dict[str, SupportedOperation] = {
    op.key: op
    for op in (
        SupportedOperation(
            key=INSTALL_LINKERD,
            display_name="Latest version of Linkerd",
            category=OpCategory.INSTALL,
            source=ManifestSourceKind.INSTALLER,
        ),
        SupportedOperation(
            key=BOOKS_APP,
            display_name="Linkerd Books Application",
            category=OpCategory.SAMPLE_APPLICATION,
            source=ManifestSourceKind.REMOTE,
            manifest="booksapp.yml",
            app_name="Linkerd Books App",
            service_name="webapp",
        ),
        SupportedOperation(
            key=HTTP_BIN_APP,
            display_name="HTTPbin Application",
            category=OpCategory.SAMPLE_APPLICATION,
            source=ManifestSourceKind.TEMPLATE,
            manifest="httpbin.yml",
            app_name="HTTP Bin App",
            service_name="httpbin",
        ),
        SupportedOperation(
            key=BOOK_INFO_APP,
            display_name="Istio BookInfo Application",
            category=OpCategory.SAMPLE_APPLICATION,
            source=ManifestSourceKind.TEMPLATE,
            manifest="bookinfo.yml",
            app_name="Istio canonical Book Info App",
            service_name="productpage",
        ),
        SupportedOperation(
            key=EMOJIVOTO_APP,
            display_name="Emojivoto Application",
            category=OpCategory.SAMPLE_APPLICATION,
            source=ManifestSourceKind.REMOTE,
            manifest="emojivoto.yml",
            app_name="Emojivoto App",
            service_name="web-svc",
        ),
        SupportedOperation(
            key=CUSTOM_OPERATION,
            display_name="Custom YAML",
            category=OpCategory.CUSTOM,
            source=ManifestSourceKind.CUSTOM,
        ),
    )
}


def supported_operations() -> list[dict[str, str]]:
    """List the registry as ``{key, value, category}`` entries."""
    return [
        {"key": op.key, "value": op.display_name, "category": op.category.value}
        for op in SUPPORTED_OPERATIONS.values()
    ]


class Operation(BaseModel):
    """A single operation request. Immutable once dispatched."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    operation_id: str
    op_name: str
    namespace: str = ""
    delete_op: bool = False
    custom_body: str = ""
    username: str = ""

    @property
    def verb(self) -> str:
        """Past participle used in event texts."""
        return "removed" if self.delete_op else "deployed"

    @property
    def gerund(self) -> str:
        return "removing" if self.delete_op else "deploying"

    def descriptor(self) -> SupportedOperation:
        """Look up and validate this request against the registry.

        Raises:
            OperationValidationError: If the name is unknown, or a custom
                operation carries no body.
        """
        descriptor = SUPPORTED_OPERATIONS.get(self.op_name)
        if descriptor is None:
            raise OperationValidationError(
                self.operation_id, f"{self.op_name} is not a valid operation name"
            )
        if descriptor.source is ManifestSourceKind.CUSTOM and not self.custom_body.strip():
            raise OperationValidationError(
                self.operation_id, f"yaml body is empty for {self.op_name} operation"
            )
        return descriptor
