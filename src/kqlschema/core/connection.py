"""Cluster connection settings and cluster name resolution.

A loader is created from one default connection. Every other cluster it
talks to gets a connection derived from that default: same credentials,
different data source, system default catalog. Derivation is a pure
function so equal inputs always map onto the same data source, which is
what the provider cache keys on.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from urllib.parse import urlsplit

DEFAULT_DOMAIN = ".kusto.windows.net"
DEFAULT_CATALOG = "NetDefaultDB"
DEFAULT_SCHEME = "https"


class AuthMethod(str, Enum):
    """
    Supported ways of authenticating against a cluster.

    Values:
        AZ_CLI: Reuse the Azure CLI login of the current user.
        APP_KEY: AAD application id + secret.
        APP_CERTIFICATE: AAD application id + PEM certificate and thumbprint.
        MANAGED_IDENTITY: Managed identity of the host (optional client id).
        DEVICE_CODE: Interactive device code flow.
        USER_TOKEN: A pre-acquired user access token.
    """

    AZ_CLI = "az-cli"
    APP_KEY = "app-key"
    APP_CERTIFICATE = "app-certificate"
    MANAGED_IDENTITY = "managed-identity"
    DEVICE_CODE = "device-code"
    USER_TOKEN = "user-token"


@dataclass(frozen=True)
class ClusterConnection:
    """Connection settings for one physical cluster."""

    data_source: str
    initial_catalog: str | None = None
    auth: AuthMethod = AuthMethod.AZ_CLI
    application_client_id: str | None = None
    application_key: str | None = field(default=None, repr=False)
    application_certificate: str | None = field(default=None, repr=False)
    application_certificate_thumbprint: str | None = None
    authority_id: str | None = None
    managed_identity_client_id: str | None = None
    user_token: str | None = field(default=None, repr=False)

    @property
    def scheme(self) -> str:
        return urlsplit(self.data_source).scheme or DEFAULT_SCHEME

    @property
    def host(self) -> str:
        return cluster_host(self.data_source)

    @property
    def address(self) -> str:
        """Host plus `:port` when the data source names one."""
        host, port = _split_host_port(self.data_source)
        return f"{host}{port}"

    @property
    def endpoint(self) -> tuple[str, str, str]:
        """(scheme, host, ':port' or '') identifying the physical cluster."""
        host, port = _split_host_port(self.data_source)
        return self.scheme.lower(), host, port


def _split_host_port(cluster_name_or_uri: str) -> tuple[str, str]:
    """Return (host, ':port' or '') for a bare name or a URI."""
    text = cluster_name_or_uri.strip()
    if "://" not in text:
        text = f"{DEFAULT_SCHEME}://{text}"
    parts = urlsplit(text)
    host = (parts.hostname or "").lower()
    port = f":{parts.port}" if parts.port else ""
    return host, port


def full_host_name(cluster_name_or_uri: str, default_domain: str = DEFAULT_DOMAIN) -> str:
    """
    Return the fully-qualified host name of a cluster.

    Short names such as `help` become `help.kusto.windows.net`; names that
    already carry a domain (or `localhost`) are kept. Scheme, port and path
    of a URI are dropped.
    """
    host, _ = _split_host_port(cluster_name_or_uri)
    if host and "." not in host and host != "localhost":
        host = f"{host}{default_domain.lower()}"
    return host


def cluster_host(data_source: str) -> str:
    """Return the host name of a data source URI."""
    host, _ = _split_host_port(data_source)
    return host


class ConnectionResolver:
    """Derives per-cluster connections from a default connection."""

    def __init__(
        self,
        default_connection: ClusterConnection,
        default_domain: str | None = None,
    ) -> None:
        domain = default_domain or DEFAULT_DOMAIN
        if not domain.startswith("."):
            raise ValueError(f"Default domain must start with '.': {domain!r}")

        self.default_connection = default_connection
        self.default_domain = domain
        self.default_cluster = default_connection.host

    def resolve(self, cluster_name_or_uri: str | None) -> ClusterConnection:
        """
        Return the connection to use for a cluster name or URI.

        The default connection is returned as-is for an empty name or for
        the default cluster's scheme, host and port. Any other cluster gets a
        copy of the default connection's credentials with its own data
        source and the system default catalog. A name without a scheme takes
        the default connection's scheme.
        """
        if not cluster_name_or_uri or not cluster_name_or_uri.strip():
            return self.default_connection

        text = cluster_name_or_uri.strip()
        if "://" in text:
            scheme = urlsplit(text).scheme.lower()
        else:
            scheme = self.default_connection.scheme.lower()

        host = full_host_name(text, self.default_domain)
        _, port = _split_host_port(text)
        if (scheme, host, port) == self.default_connection.endpoint:
            return self.default_connection

        return replace(
            self.default_connection,
            data_source=f"{scheme}://{host}{port}",
            initial_catalog=DEFAULT_CATALOG,
        )
