# /*
# Copyright 2026 The Grove Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Classify raw installation failures into typed, recoverability-tagged errors.

The registry DNS signatures are heuristics observed on WSL2 hosts where Docker
Hub resolution is flaky. They are loaded from ``dependencies.yaml`` and can be
overridden per call; neither the false-positive nor the false-negative rate is
zero.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from bootstrap_manager import logger
from bootstrap_manager.constants import dep_value
from bootstrap_manager.errors import BootstrapError, InstallationError, RegistryDNSError


class ClassifierPolicy(BaseModel):
    """Signatures and remediation used to recognise registry DNS failures.

    Attributes:
        registry: Registry host reported on the classified error.
        retry_after_seconds: Fixed suggested retry delay for registry DNS errors.
        assume_dns_on_wsl: Treat a bare pre-install timeout as DNS on WSL hosts.
        helm_timeout_phases: Phrases naming the helm hook phase that timed out.
        helm_timeout_condition: Phrase helm prints when a wait expires.
        preinstall_phrase: Phrase identifying a pre-install hook failure.
        registry_phrases: Image-pull / registry lookup failure phrases.
        dial_timeout_phrases: Phrases that together indicate a TCP dial timeout.
        suggestions: Remediation steps attached to registry DNS errors.
    """

    model_config = ConfigDict(frozen=True)

    registry: str = "registry-1.docker.io"
    retry_after_seconds: float = Field(default=120.0, ge=0)
    assume_dns_on_wsl: bool = True
    helm_timeout_phases: tuple[str, ...] = ()
    helm_timeout_condition: str = "timed out waiting for the condition"
    preinstall_phrase: str = "failed pre-install"
    registry_phrases: tuple[str, ...] = ()
    dial_timeout_phrases: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()


@lru_cache(maxsize=1)
def default_policy() -> ClassifierPolicy:
    """Load the packaged registry DNS policy from dependencies.yaml."""
    return ClassifierPolicy(**dep_value("registry_dns", default={}))


def running_in_wsl(proc_version: Path = Path("/proc/version")) -> bool:
    """Return whether the current host is a WSL kernel."""
    try:
        return "microsoft" in proc_version.read_text().lower()
    except OSError:
        return False


# ============================================================================
# Signature checks
# ============================================================================

def _message(err: BaseException | str) -> str:
    output = getattr(err, "output", None)
    text = str(err)
    if isinstance(output, str) and output and output not in text:
        return f"{text}\n{output}"
    return text


def is_helm_timeout(err: BaseException | str, policy: ClassifierPolicy | None = None) -> bool:
    """Return whether *err* is a helm hook timeout."""
    policy = policy or default_policy()
    msg = _message(err)
    return (any(phase in msg for phase in policy.helm_timeout_phases)
            and policy.helm_timeout_condition in msg)


def has_registry_dns_signature(err: BaseException | str, policy: ClassifierPolicy | None = None) -> bool:
    """Return whether *err* mentions an image pull, registry lookup, or dial timeout."""
    policy = policy or default_policy()
    msg = _message(err)
    if any(phrase in msg for phrase in policy.registry_phrases):
        return True
    return bool(policy.dial_timeout_phrases) and all(p in msg for p in policy.dial_timeout_phrases)


def is_helm_timeout_with_registry_dns(err: BaseException | str | None,
                                      policy: ClassifierPolicy | None = None) -> bool:
    """Return whether *err* is a helm timeout caused by registry DNS issues.

    Both signal classes must be present: a helm hook timeout phrase and an
    image-pull / registry-DNS / dial-timeout phrase.
    """
    if err is None:
        return False
    return is_helm_timeout(err, policy) and has_registry_dns_signature(err, policy)


def is_helm_preinstall_timeout(err: BaseException | str | None,
                               policy: ClassifierPolicy | None = None) -> bool:
    """Return whether *err* is any helm pre-install hook timeout."""
    if err is None:
        return False
    policy = policy or default_policy()
    msg = _message(err)
    return policy.preinstall_phrase in msg and policy.helm_timeout_condition in msg


# ============================================================================
# Classification
# ============================================================================

def classify_install_error(
    component: str,
    cluster_name: str | None,
    err: BaseException | None,
    *,
    phase: str = "installation",
    policy: ClassifierPolicy | None = None,
    wsl_host: bool | None = None,
) -> BootstrapError | None:
    """Turn a raw installation failure into a classified error.

    Args:
        component: Component being installed (e.g. ``ArgoCD``).
        cluster_name: Target cluster name, if known.
        err: Raw error raised by the chart tooling.
        phase: Installation phase recorded on a plain InstallationError.
        policy: Signature policy override, or None for the packaged default.
        wsl_host: Host platform override, or None to probe ``/proc/version``.

    Returns:
        None for no error; an already classified error unchanged; a
        :class:`RegistryDNSError` for registry DNS signatures; otherwise a
        non-recoverable :class:`InstallationError`.
    """
    if err is None:
        return None
    if isinstance(err, BootstrapError):
        return err

    policy = policy or default_policy()
    registry_dns = is_helm_timeout_with_registry_dns(err, policy)
    if not registry_dns and policy.assume_dns_on_wsl and is_helm_preinstall_timeout(err, policy):
        if wsl_host is None:
            wsl_host = running_in_wsl()
        registry_dns = wsl_host
        if registry_dns:
            logger.debug("Treating pre-install timeout for %s as registry DNS failure on WSL", component)

    if registry_dns:
        return RegistryDNSError(
            component,
            policy.registry,
            err,
            retry_after=policy.retry_after_seconds,
            suggestions=policy.suggestions,
            cluster_name=cluster_name,
        )
    return InstallationError(component, phase, err, cluster_name=cluster_name)
