"""Linkerd CLI wrapper for installation manifest generation.

Wraps the ``linkerd`` binary via subprocess. The adapter never lets the
binary touch the cluster beyond its pre-flight check; the install manifest is
captured from stdout and applied through the discovery-driven resource
manager.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

import structlog

from linkerd_adapter.integrations.kubernetes.exceptions import KubernetesError

logger = structlog.get_logger()

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

LINKERD_TIMEOUT_SECONDS = 300


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class LinkerdError(KubernetesError):
    """Base exception for Linkerd CLI operations."""

    def __init__(
        self,
        message: str,
        stderr: str | None = None,
    ) -> None:
        super().__init__(message=message)
        self.stderr = stderr


class LinkerdBinaryNotFoundError(LinkerdError):
    """Raised when linkerd binary is not found in PATH."""

    def __init__(self) -> None:
        super().__init__(
            message=(
                "linkerd binary not found in PATH. "
                "Install from: https://linkerd.io/2/getting-started/"
            ),
        )


class LinkerdCommandError(LinkerdError):
    """Raised when a linkerd command fails."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class LinkerdClient:
    """Client for the Linkerd CLI.

    Every invocation follows the same argument convention::

        linkerd --namespace <ns> [--context <ctx>] [--kubeconfig <path>] <command...>
    """

    def __init__(
        self,
        binary_path: str | None = None,
        timeout: int = LINKERD_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize Linkerd client.

        Args:
            binary_path: Optional explicit path to linkerd binary.
                If None, searches PATH.
            timeout: Timeout in seconds for each invocation.

        Raises:
            LinkerdBinaryNotFoundError: If binary not found.
        """
        self._binary = self._find_binary(binary_path)
        self._timeout = timeout
        self._log = logger.bind(binary=self._binary)
        self._log.debug("linkerd_client_initialized")

    @staticmethod
    def _find_binary(binary_path: str | None) -> str:
        """Locate the linkerd binary.

        Args:
            binary_path: Explicit path or None to search PATH.

        Returns:
            Path to linkerd binary.

        Raises:
            LinkerdBinaryNotFoundError: If not found.
        """
        if binary_path:
            path = Path(binary_path)
            if not path.exists():
                raise LinkerdBinaryNotFoundError()
            return str(path.resolve())

        found = shutil.which("linkerd")
        if not found:
            raise LinkerdBinaryNotFoundError()

        return found

    @staticmethod
    def base_args(namespace: str, kubeconfig: Path | None, context: str = "") -> list[str]:
        """Build the global flags shared by every invocation.

        ``--kubeconfig`` is left out when *kubeconfig* is ``None``.
        """
        args = ["--namespace", namespace]
        if context:
            args.extend(["--context", context])
        if kubeconfig is not None:
            args.extend(["--kubeconfig", str(kubeconfig)])
        return args

    def _run(
        self, args: list[str], kubeconfig: Path | None
    ) -> subprocess.CompletedProcess[str]:
        """Run a linkerd command.

        ``KUBECONFIG`` is set for the child process only, and only when a
        kubeconfig path is known.

        Raises:
            LinkerdCommandError: On non-zero exit.
            LinkerdError: On timeout.
        """
        cmd = [self._binary, *args]
        env = dict(os.environ)
        if kubeconfig is not None:
            env["KUBECONFIG"] = str(kubeconfig)
        self._log.debug("running_linkerd_command", args=args)

        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self._timeout,
                env=env,
            )
        except subprocess.CalledProcessError as e:
            raise LinkerdCommandError(
                message=f"Linkerd command failed: {e.stderr.strip() if e.stderr else f'exit code {e.returncode}'}",
                stderr=e.stderr,
            ) from e
        except subprocess.TimeoutExpired as e:
            raise LinkerdError(
                message=f"Linkerd command timed out after {self._timeout}s",
            ) from e

    # -----------------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------------

    def check_pre(self, namespace: str, kubeconfig: Path | None, context: str = "") -> None:
        """Run the pre-installation checks against the cluster.

        Raises:
            LinkerdCommandError: If any check fails.
        """
        args = [*self.base_args(namespace, kubeconfig, context), "check", "--pre"]
        self._run(args, kubeconfig)
        self._log.info("linkerd_precheck_passed", namespace=namespace)

    def install_manifest(
        self, namespace: str, kubeconfig: Path | None, context: str = ""
    ) -> str:
        """Render the control plane installation manifest.

        Returns:
            Multi-document YAML emitted by ``linkerd install``.

        Raises:
            LinkerdCommandError: If the command fails or writes to stderr.
        """
        args = [
            *self.base_args(namespace, kubeconfig, context),
            "install",
            "--ignore-cluster",
        ]
        result = self._run(args, kubeconfig)
        if result.stderr:
            raise LinkerdCommandError(
                message=(
                    "received error while attempting to prepare install yaml: "
                    f"{result.stderr.strip()}"
                ),
                stderr=result.stderr,
            )
        self._log.debug("linkerd_manifest_rendered", size=len(result.stdout))
        return result.stdout
