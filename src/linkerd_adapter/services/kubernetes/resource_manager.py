"""Ordered create and cascading delete of manifest batches.

Applies decoded documents one by one, in textual order, against the resource
endpoints resolved through discovery. Namespace deletes are held back until
every other object of the batch is gone.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from linkerd_adapter.integrations.kubernetes.exceptions import (
    ApplyCancelledError,
    KubernetesConflictError,
    KubernetesNotFoundError,
)
from linkerd_adapter.services.kubernetes.base import K8sBaseManager
from linkerd_adapter.services.kubernetes.discovery import ResourceMapping, ResourceResolver
from linkerd_adapter.services.kubernetes.manifest_manager import ManifestDecoder, describe

if TYPE_CHECKING:
    from linkerd_adapter.integrations.kubernetes.client import KubernetesClient
    from linkerd_adapter.integrations.kubernetes.models.manifest import ManifestDocument

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PROPAGATION_FOREGROUND = "Foreground"
CLUSTER_SCOPED_GRACE_PERIOD_SECONDS = 1
PROTECTED_NAMESPACE = "default"


# ---------------------------------------------------------------------------
# Result Dataclasses
# ---------------------------------------------------------------------------


@dataclass
class ApplyResult:
    """Result of applying a single manifest document."""

    resource: str
    action: str
    namespace: str
    success: bool
    message: str = ""


# ---------------------------------------------------------------------------
# ResourceManager
# ---------------------------------------------------------------------------


class ResourceManager(K8sBaseManager):
    """Applies manifest batches through the dynamic client.

    Create treats AlreadyExists as success and delete treats NotFound as
    success; any other failure aborts the rest of the batch. Objects applied
    before the failure stay applied.
    """

    _entity_name = "resource"

    def __init__(
        self,
        client: KubernetesClient,
        resolver: ResourceResolver | None = None,
        decoder: ManifestDecoder | None = None,
    ) -> None:
        super().__init__(client)
        self._resolver = resolver or ResourceResolver(client)
        self._decoder = decoder or ManifestDecoder()

    @property
    def resolver(self) -> ResourceResolver:
        return self._resolver

    # -----------------------------------------------------------------------
    # Batch apply
    # -----------------------------------------------------------------------

    def apply_manifests(
        self,
        manifest: str,
        namespace: str | None = None,
        *,
        delete: bool = False,
        cancel: threading.Event | None = None,
    ) -> list[ApplyResult]:
        """Create or delete every accepted document of *manifest*.

        Args:
            manifest: Multi-document YAML.
            namespace: Namespace for namespaced documents that declare none.
            delete: Delete the objects instead of creating them.
            cancel: Checked before each document; when set the batch stops.

        Returns:
            One :class:`ApplyResult` per document, skipped ones included.

        Raises:
            DiscoveryError: If a document's kind cannot be resolved.
            ApplyCancelledError: If *cancel* is set before the batch ends.
            KubernetesError: On any create/delete failure other than
                AlreadyExists / NotFound respectively.
        """
        fallback_namespace = self._resolve_namespace(namespace)
        decoded = self._decoder.decode_manifests(manifest)
        results: list[ApplyResult] = []
        deferred: list[tuple[ResourceMapping, ManifestDocument]] = []
        applied = 0

        for item in decoded:
            if item.document is None:
                results.append(
                    ApplyResult(
                        resource=f"document[{item.index}]",
                        action="skipped",
                        namespace=fallback_namespace,
                        success=False,
                        message=str(item.error),
                    )
                )
                continue

            self._check_cancelled(cancel, applied)
            document = item.document
            mapping = self._resolver.resolve(document.gvk)

            if not mapping.namespaced and delete and document.kind == "Namespace":
                self._log.debug("namespace_delete_deferred", name=document.name)
                deferred.append((mapping, document))
                continue

            if mapping.namespaced:
                target_ns: str | None = document.namespace or fallback_namespace
            else:
                target_ns = None

            if delete:
                results.append(self._delete(mapping, document, target_ns))
            else:
                results.append(self._create(mapping, document, target_ns))
            applied += 1

        for mapping, document in deferred:
            if document.name == PROTECTED_NAMESPACE:
                self._log.info("namespace_delete_skipped", name=document.name)
                results.append(
                    ApplyResult(
                        resource=document.identifier,
                        action="skipped (protected)",
                        namespace="",
                        success=True,
                    )
                )
                continue
            self._check_cancelled(cancel, applied)
            results.append(self._delete(mapping, document, None))
            applied += 1

        self._log.info(
            "applied_manifests",
            delete=delete,
            succeeded=sum(1 for r in results if r.success),
            **describe(decoded),
        )
        return results

    @staticmethod
    def _check_cancelled(cancel: threading.Event | None, applied: int) -> None:
        if cancel is not None and cancel.is_set():
            raise ApplyCancelledError(applied=applied)

    def _create(
        self,
        mapping: ResourceMapping,
        document: ManifestDocument,
        namespace: str | None,
    ) -> ApplyResult:
        try:
            mapping.client.create(
                mapping.api,
                body=document.content,
                namespace=namespace,
                **self._request_options,
            )
        except Exception as e:
            error = self._client.translate_api_exception(
                e, document.kind, document.name, namespace
            )
            if not isinstance(error, KubernetesConflictError):
                self._log.error(
                    "create_failed",
                    kind=document.kind,
                    name=document.name,
                    namespace=namespace,
                    error=str(error),
                )
                raise error from e
            self._log.info(
                "create_skipped_already_exists",
                kind=document.kind,
                name=document.name,
                namespace=namespace,
            )
            return ApplyResult(
                resource=document.identifier,
                action="unchanged (already exists)",
                namespace=namespace or "",
                success=True,
            )

        self._log.info("created", kind=document.kind, name=document.name, namespace=namespace)
        return ApplyResult(
            resource=document.identifier,
            action="created",
            namespace=namespace or "",
            success=True,
        )

    def _delete(
        self,
        mapping: ResourceMapping,
        document: ManifestDocument,
        namespace: str | None,
    ) -> ApplyResult:
        from kubernetes.client import V1DeleteOptions

        options = V1DeleteOptions(propagation_policy=PROPAGATION_FOREGROUND)
        # Namespaces keep the default grace period, other cluster objects go fast
        if not mapping.namespaced and document.kind != "Namespace":
            options.grace_period_seconds = CLUSTER_SCOPED_GRACE_PERIOD_SECONDS

        try:
            mapping.client.delete(
                mapping.api,
                name=document.name,
                namespace=namespace,
                body=options,
                **self._request_options,
            )
        except Exception as e:
            error = self._client.translate_api_exception(
                e, document.kind, document.name, namespace
            )
            if not isinstance(error, KubernetesNotFoundError):
                self._log.error(
                    "delete_failed",
                    kind=document.kind,
                    name=document.name,
                    namespace=namespace,
                    error=str(error),
                )
                raise error from e
            self._log.info(
                "delete_skipped_not_found",
                kind=document.kind,
                name=document.name,
                namespace=namespace,
            )
            return ApplyResult(
                resource=document.identifier,
                action="unchanged (already absent)",
                namespace=namespace or "",
                success=True,
            )

        self._log.info("deleted", kind=document.kind, name=document.name, namespace=namespace)
        return ApplyResult(
            resource=document.identifier,
            action="deleted",
            namespace=namespace or "",
            success=True,
        )

    # -----------------------------------------------------------------------
    # Lookup / update with scope fallback
    # -----------------------------------------------------------------------

    def get_resource(
        self,
        mapping: ResourceMapping,
        name: str,
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Retrieve an object without knowing its scope up front.

        Tries a namespaced read first and falls back to a cluster-scoped
        read when that fails.

        Raises:
            KubernetesError: If both reads fail; reflects the second failure.
        """
        try:
            obj = mapping.client.get(
                mapping.api,
                name=name,
                namespace=namespace,
                **self._request_options,
            )
        except Exception as e:
            self._log.warning(
                "namespaced_get_failed_retrying_without_namespace",
                kind=mapping.gvk.kind,
                name=name,
                namespace=namespace,
                error=str(e),
            )
            try:
                obj = mapping.client.get(
                    mapping.api,
                    name=name,
                    **self._request_options,
                )
            except Exception as retry_error:
                self._log.error(
                    "get_failed",
                    kind=mapping.gvk.kind,
                    name=name,
                    error=str(retry_error),
                )
                self._handle_api_error(retry_error, mapping.gvk.kind, name, namespace)

        self._log.info("retrieved", kind=mapping.gvk.kind, name=name)
        return _as_dict(obj)

    def update_resource(self, mapping: ResourceMapping, body: dict[str, Any]) -> dict[str, Any]:
        """Replace an object, with the same scope fallback as :meth:`get_resource`.

        Raises:
            KubernetesError: If both attempts fail.
        """
        metadata = body.get("metadata", {})
        name = metadata.get("name")
        namespace = metadata.get("namespace")
        try:
            obj = mapping.client.replace(
                mapping.api,
                body=body,
                name=name,
                namespace=namespace,
                **self._request_options,
            )
        except Exception as e:
            self._log.warning(
                "namespaced_update_failed_retrying_without_namespace",
                kind=mapping.gvk.kind,
                name=name,
                error=str(e),
            )
            try:
                obj = mapping.client.replace(
                    mapping.api,
                    body=body,
                    name=name,
                    **self._request_options,
                )
            except Exception as retry_error:
                self._log.error(
                    "update_failed",
                    kind=mapping.gvk.kind,
                    name=name,
                    error=str(retry_error),
                )
                self._handle_api_error(retry_error, mapping.gvk.kind, name, namespace)

        self._log.info("updated", kind=mapping.gvk.kind, name=name)
        return _as_dict(obj)


def _as_dict(obj: Any) -> dict[str, Any]:
    """Convert a dynamic ``ResourceInstance`` (or plain dict) into a dict."""
    if isinstance(obj, dict):
        return obj
    return dict(obj.to_dict())

