"""Exception types for the conformance engine.

Rule violations are never raised; they are recorded on verdicts as
``RuleId`` values (see ``conformance.rules``). The classes below cover the
infrastructural failures that abort a run and the internal signals the
bundled signers use.
"""
from __future__ import annotations


class SuiteAbort(Exception):
    """Base for failures that abort the whole conformance run."""


class SignerUnavailable(SuiteAbort):
    """The external signer cannot be reached or started at all."""


class ConfigError(SuiteAbort):
    """Malformed suite configuration, registry source or key manifest."""


class KeyCatalogError(SuiteAbort):
    """A case requires a key type the catalog has no material for."""


class VectorNotFound(SuiteAbort):
    """A named test vector has no fixture."""


class IllegalTransition(RuntimeError):
    """A case attempted a state transition its lifecycle does not allow."""


class SigningRefused(Exception):
    """Raised by the reference signer when it declines to sign a request."""


__all__ = [
    "SuiteAbort",
    "SignerUnavailable",
    "ConfigError",
    "KeyCatalogError",
    "VectorNotFound",
    "IllegalTransition",
    "SigningRefused",
]
