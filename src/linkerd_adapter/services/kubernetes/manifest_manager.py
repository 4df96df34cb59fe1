"""Kubernetes YAML manifest decoding.

Splits multi-document manifests, decodes each document into a typed header
plus its full attribute tree, and filters the result against the set of
object kinds the adapter is willing to provision.
"""

from __future__ import annotations

import re
from typing import Any

import structlog
from pydantic import ValidationError

from linkerd_adapter.integrations.kubernetes.exceptions import (
    ManifestDecodeError,
    UnsupportedKindError,
)
from linkerd_adapter.integrations.kubernetes.models.manifest import (
    DecodeResult,
    GroupVersionKind,
    ManifestDocument,
    ManifestHeader,
)

logger = structlog.get_logger()

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DOCUMENT_SEPARATOR = re.compile(r"^---$", re.MULTILINE)

# Groups of the built-in scheme plus the two extension families a mesh
# install needs: CRD registration and API aggregation.
CORE_API_GROUPS = frozenset(
    {
        "",
        "admissionregistration.k8s.io",
        "apps",
        "authentication.k8s.io",
        "authorization.k8s.io",
        "autoscaling",
        "batch",
        "certificates.k8s.io",
        "coordination.k8s.io",
        "discovery.k8s.io",
        "events.k8s.io",
        "extensions",
        "flowcontrol.apiserver.k8s.io",
        "networking.k8s.io",
        "node.k8s.io",
        "policy",
        "rbac.authorization.k8s.io",
        "scheduling.k8s.io",
        "storage.k8s.io",
    }
)
EXTENSION_API_GROUPS = frozenset({"apiextensions.k8s.io", "apiregistration.k8s.io"})
KNOWN_API_GROUPS = CORE_API_GROUPS | EXTENSION_API_GROUPS

ACCEPTED_KINDS = frozenset(
    {
        "Namespace",
        "Role",
        "ClusterRole",
        "RoleBinding",
        "ClusterRoleBinding",
        "ServiceAccount",
        "MutatingWebhookConfiguration",
        "ValidatingWebhookConfiguration",
        "Secret",
        "APIService",
        "PodSecurityPolicy",
        "ConfigMap",
        "Service",
        "Deployment",
        "CronJob",
        "CustomResourceDefinition",
    }
)


def split_documents(manifest: str) -> list[str]:
    """Split a manifest on ``---`` separator lines, dropping blank fragments."""
    text = manifest.replace("\r\n", "\n")
    return [fragment for fragment in DOCUMENT_SEPARATOR.split(text) if fragment.strip()]


class ManifestDecoder:
    """Decoder for multi-document Kubernetes manifests.

    Decoding never raises for a bad document: each fragment yields a
    :class:`DecodeResult` carrying either the document or the reason it is
    skipped.
    """

    def __init__(self, accepted_kinds: frozenset[str] = ACCEPTED_KINDS) -> None:
        self._accepted_kinds = accepted_kinds
        self._log = logger.bind(entity="manifest")

    def decode_manifests(self, manifest: str) -> list[DecodeResult]:
        """Decode every document of *manifest* in textual order.

        Args:
            manifest: Text holding zero or more YAML documents.

        Returns:
            One :class:`DecodeResult` per non-blank document.
        """
        results: list[DecodeResult] = []
        for index, fragment in enumerate(split_documents(manifest)):
            result = self._decode_fragment(index, fragment)
            if result is None:
                continue
            if result.ok and result.document is not None:
                if result.document.kind not in self._accepted_kinds:
                    self._log.warning(
                        "skipping_unsupported_kind",
                        index=index,
                        kind=result.document.kind,
                        name=result.document.name,
                    )
                    result = DecodeResult(
                        index=index,
                        error=UnsupportedKindError(
                            result.document.kind, resource_name=result.document.name
                        ),
                    )
            results.append(result)

        self._log.debug(
            "decoded_manifests",
            total=len(results),
            accepted=sum(1 for r in results if r.ok),
        )
        return results

    def _decode_fragment(self, index: int, fragment: str) -> DecodeResult | None:
        """Decode one fragment; ``None`` means it holds no document at all."""
        from ruamel.yaml import YAML
        from ruamel.yaml.error import YAMLError

        # Kubernetes reads manifests with YAML 1.1 rules (0755 is octal, "on" is a bool)
        yaml = YAML(typ="safe", pure=True)
        yaml.version = (1, 1)
        try:
            content = yaml.load(fragment)
        except YAMLError as e:
            return self._failure(index, f"invalid YAML: {e}")

        if content is None:
            return None
        if not isinstance(content, dict):
            return self._failure(
                index, f"expected a mapping, got {type(content).__name__}"
            )

        try:
            header = ManifestHeader.model_validate(content)
        except ValidationError as e:
            return self._failure(index, self._summarize_validation(e))

        gvk = GroupVersionKind.from_api_version(header.api_version, header.kind)
        if gvk.group not in KNOWN_API_GROUPS:
            return self._failure(
                index, f'no kind "{gvk.kind}" is registered for version "{gvk.api_version}"'
            )

        return DecodeResult(
            index=index,
            document=ManifestDocument(
                index=index,
                raw=fragment,
                gvk=gvk,
                content=content,
            ),
        )

    def _failure(self, index: int, reason: str) -> DecodeResult:
        self._log.debug("skipping_undecodable_document", index=index, reason=reason)
        return DecodeResult(index=index, error=ManifestDecodeError(reason, index=index))

    @staticmethod
    def _summarize_validation(error: ValidationError) -> str:
        problems: list[str] = []
        for item in error.errors():
            location = ".".join(str(part) for part in item["loc"])
            problems.append(f"{location}: {item['msg']}")
        return "; ".join(problems)


def describe(results: list[DecodeResult]) -> dict[str, Any]:
    """Counts used in summary log lines."""
    return {
        "documents": len(results),
        "accepted": sum(1 for r in results if r.ok),
        "undecodable": sum(1 for r in results if isinstance(r.error, ManifestDecodeError)),
        "unsupported": sum(1 for r in results if isinstance(r.error, UnsupportedKindError)),
    }
